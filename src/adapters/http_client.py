"""Wrapper de httpx.

Por qué un wrapper:
- Estandariza timeouts, headers y la ruta de red de la sesión de aprovisionamiento.
- Cada intento recibe su propio cliente y su propio cookie jar: el SPG
  necesita la cookie de la página para aceptar el clic del enlace, pero
  esa sesión no debe filtrarse al siguiente intento.
- Facilita testeo: se puede inyectar un `httpx.MockTransport`.
"""

from __future__ import annotations

import httpx

from core.config import AppSettings
from core.domain.models import NetworkContext


def build_transport(network: NetworkContext | None) -> httpx.AsyncHTTPTransport:
    """Transporte ligado a la IP de origen del contexto de red (si la hay)."""

    if network is not None and network.local_address:
        return httpx.AsyncHTTPTransport(local_address=network.local_address)
    return httpx.AsyncHTTPTransport()


def build_async_client(
    settings: AppSettings | None = None,
    *,
    network: NetworkContext | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` para un único intento.

    `transport` tiene prioridad sobre `network` (tests, proxies).
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    }
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.request_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        cookies=httpx.Cookies(),
        transport=transport or build_transport(network),
    )
