"""Taxonomía de fallos del aprovisionamiento.

Cada excepción lleva un `FailureKind` legible por máquina; el orquestador la
captura en su borde, la registra con esa categoría y aborta la activación.
Nunca se formatea texto para el usuario aquí.
"""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    CONFIGURATION_MISSING = "configuration_missing"
    TIMEOUT = "timeout"
    TRANSACTION_MISMATCH = "transaction_mismatch"
    FIELD_NOT_FOUND = "field_not_found"
    LINK_NOT_FOUND = "link_not_found"
    UNEXPECTED_STATUS = "unexpected_status"
    TRANSPORT = "transport"


class ProvisioningError(Exception):
    """Base de todos los fallos de un intento de suscripción."""

    kind: FailureKind = FailureKind.TRANSPORT

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class ConfigurationMissing(ProvisioningError):
    """Falta un dato de configuración obligatorio (p.ej. `vmg_url`)."""

    kind = FailureKind.CONFIGURATION_MISSING

    def __init__(self, key: str) -> None:
        super().__init__(f"configuration key {key!r} is missing")
        self.key = key


class ProvisioningTimeout(ProvisioningError):
    """Una espera acotada expiró (petición HTTP o STATUS SMS)."""

    kind = FailureKind.TIMEOUT

    def __init__(self, step: str, seconds: float) -> None:
        super().__init__(f"{step} did not complete within {seconds:g}s")
        self.step = step
        self.seconds = seconds


class TransactionMismatch(ProvisioningError):
    kind = FailureKind.TRANSACTION_MISMATCH

    def __init__(self, expected: str, received: str) -> None:
        super().__init__(f"transaction id mismatch: sent {expected}, got {received}")
        self.expected = expected
        self.received = received


class FieldNotFound(ProvisioningError):
    kind = FailureKind.FIELD_NOT_FOUND

    def __init__(self, tag: str) -> None:
        super().__init__(f"tag {tag} not found in response")
        self.tag = tag


class LinkNotFound(ProvisioningError):
    """No hay ancla con el texto buscado.

    `examined_text` concatena el texto de todas las anclas revisadas, para diagnóstico.
    """

    kind = FailureKind.LINK_NOT_FOUND

    def __init__(self, label: str, examined_text: str) -> None:
        super().__init__(f"link {label!r} not found: {examined_text}")
        self.label = label
        self.examined_text = examined_text


class UnexpectedStatus(ProvisioningError):
    kind = FailureKind.UNEXPECTED_STATUS

    def __init__(self, code: str) -> None:
        super().__init__(f"status {code!r} is not ready or new after subscribing")
        self.code = code


class TransportFailure(ProvisioningError):
    """Error de red o respuesta HTTP no exitosa."""

    kind = FailureKind.TRANSPORT

    def __init__(self, step: str, cause: str) -> None:
        super().__init__(f"{step} failed: {cause}")
        self.step = step
        self.cause = cause
