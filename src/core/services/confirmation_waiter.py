"""Espera acotada del STATUS SMS posterior a la suscripción.

La escucha se abre al entrar en el contexto, antes de pulsar el enlace, para
no perder una confirmación rápida; se cierra siempre al salir (éxito,
timeout o cancelación).

No hay token de correlación en el SMS: el primer mensaje recibido tras abrir
la escucha se atribuye al intento.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from core.domain.events import VvmEvent
from core.domain.models import ConfirmationOutcome
from core.errors import ProvisioningTimeout
from core.interfaces.confirmation import ConfirmationListener, ConfirmationSource
from core.observability import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIRMATION_TIMEOUT_SECONDS = 60.0


class ConfirmationWaiter:
    """Uso::

        async with ConfirmationWaiter(source, number) as waiter:
            await gateway.invoke_link(link)
            outcome = await waiter.await_confirmation()
    """

    def __init__(
        self,
        source: ConfirmationSource,
        subscriber_number: str,
        *,
        timeout: float = DEFAULT_CONFIRMATION_TIMEOUT_SECONDS,
        on_event: Callable[[VvmEvent], None] | None = None,
    ) -> None:
        self._source = source
        self._subscriber_number = subscriber_number
        self._timeout = timeout
        self._on_event = on_event
        self._listener: ConfirmationListener | None = None

    async def __aenter__(self) -> "ConfirmationWaiter":
        self._listener = self._source.open(self._subscriber_number)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            await listener.aclose()

    async def await_confirmation(self, timeout: float | None = None) -> ConfirmationOutcome:
        """Espera la siguiente confirmación y la decodifica.

        Lanza `ProvisioningTimeout` (tras emitir `CONFIRMATION_TIMED_OUT`) si no
        llega a tiempo.
        """

        if self._listener is None:
            raise RuntimeError("ConfirmationWaiter must be entered before awaiting")

        timeout = self._timeout if timeout is None else timeout
        try:
            payload = await asyncio.wait_for(self._listener.receive(), timeout)
        except asyncio.TimeoutError:
            logger.warning("confirmation_timed_out", timeout=timeout)
            if self._on_event is not None:
                self._on_event(VvmEvent.CONFIRMATION_TIMED_OUT)
            raise ProvisioningTimeout("status_sms", timeout) from None

        outcome = ConfirmationOutcome.from_payload(payload)
        logger.info("confirmation_received", status=payload.provisioning_status, outcome=outcome.kind.value)
        return outcome
