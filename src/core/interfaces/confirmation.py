"""Contratos del canal de confirmación (STATUS SMS).

Por qué Protocol:
- La entrega del SMS es externa (módem, broker, emulador); el Core solo
  necesita "abrir escucha, recibir uno, cerrar".
- Permite sustituir el canal real por uno en memoria en tests y en la CLI.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import ConfirmationPayload


@runtime_checkable
class ConfirmationListener(Protocol):
    """Escucha abierta para un suscriptor.

    Reglas de diseño:
    - `receive` devuelve mensajes en orden de llegada; el primero tras abrir
      la escucha se atribuye al intento en curso.
    - `aclose` es idempotente.
    """

    async def receive(self) -> ConfirmationPayload:
        ...

    async def aclose(self) -> None:
        ...


@runtime_checkable
class ConfirmationSource(Protocol):
    """Fuente asíncrona de confirmaciones."""

    def open(self, subscriber_number: str) -> ConfirmationListener:
        """Empieza a escuchar confirmaciones para `subscriber_number`."""

        ...
