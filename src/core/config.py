"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP/SMS) lean timeouts y defaults de forma consistente.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "vvm3-provisioner"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "vvm3-provisioner"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "vvm3-provisioner"
    return Path.home() / ".config" / "vvm3-provisioner"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# vvm3-provisioner user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central del cliente de aprovisionamiento.

    Los valores por defecto reproducen los límites del protocolo VVM3:
    30 s por petición HTTP y 60 s de espera para el STATUS SMS.
    """

    model_config = SettingsConfigDict(
        env_prefix="VVM3_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Límite por cada petición a VMG/SPG (segundos).",
    )
    confirmation_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Límite de espera del STATUS SMS tras pulsar el enlace (segundos).",
    )
    user_agent: str = Field(
        default="vvm3-provisioner/0.1",
        min_length=1,
        description="User-Agent de la sesión HTTP.",
    )
    device_model: str = Field(
        default="Android",
        min_length=1,
        description="Modelo de dispositivo enviado al VMG en <devicemodel>.",
    )

    log_level: str = Field(
        default="INFO",
        description="Nivel de log (DEBUG, INFO, WARNING, ERROR).",
    )
    log_json: bool = Field(
        default=False,
        description="Emitir logs como JSON (una línea por evento).",
    )
