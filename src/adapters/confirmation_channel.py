"""Canal de confirmaciones en memoria.

Implementa `core.interfaces.confirmation.ConfirmationSource` sobre colas de
asyncio. Quien recibe los STATUS SMS (receptor del módem, webhook, CLI)
llama a `publish`; cada escucha abierta para ese número recibe una copia.

Un mensaje publicado sin escuchas abiertas se descarta, igual que un SMS que
llega cuando nadie está registrado para recibirlo.
"""

from __future__ import annotations

import asyncio

from core.domain.models import ConfirmationPayload
from core.observability import get_logger

logger = get_logger(__name__)


class QueueListener:
    def __init__(self, channel: "InMemoryConfirmationChannel", subscriber_number: str) -> None:
        self._channel = channel
        self.subscriber_number = subscriber_number
        self._queue: asyncio.Queue[ConfirmationPayload] = asyncio.Queue()
        self.closed = False

    def deliver(self, payload: ConfirmationPayload) -> None:
        self._queue.put_nowait(payload)

    async def receive(self) -> ConfirmationPayload:
        if self.closed:
            raise RuntimeError("listener is closed")
        return await self._queue.get()

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._channel.detach(self)


class InMemoryConfirmationChannel:
    def __init__(self) -> None:
        self._listeners: dict[str, list[QueueListener]] = {}

    def open(self, subscriber_number: str) -> QueueListener:
        listener = QueueListener(self, subscriber_number)
        self._listeners.setdefault(subscriber_number, []).append(listener)
        return listener

    def detach(self, listener: QueueListener) -> None:
        listeners = self._listeners.get(listener.subscriber_number, [])
        if listener in listeners:
            listeners.remove(listener)
        if not listeners:
            self._listeners.pop(listener.subscriber_number, None)

    def listener_count(self, subscriber_number: str) -> int:
        return len(self._listeners.get(subscriber_number, []))

    def publish(self, subscriber_number: str, payload: ConfirmationPayload) -> int:
        """Entrega `payload` a las escuchas del número. Devuelve cuántas lo recibieron."""

        listeners = list(self._listeners.get(subscriber_number, []))
        if not listeners:
            logger.warning("confirmation_dropped", status=payload.provisioning_status)
        for listener in listeners:
            listener.deliver(payload)
        return len(listeners)
