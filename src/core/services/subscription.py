"""Suscripción a Basic Visual Voicemail (VVM3).

La suscripción es necesaria cuando el usuario no está aprovisionado, p.ej.
porque venía de un servicio legacy o de otro cliente de visual voicemail.

El STATUS SMS trae la URL del voicemail management gateway (`vmg_url`). Con
ella obtenemos la URL del self-provisioning gateway, cuya página contiene el
enlace "Subscribe to Basic Visual Voice Mail". Pulsarlo (con la cookie de la
página, sobre la red celular) activa el servicio, y el carrier envía otro
STATUS SMS con el suscriptor en estado ready o new.

Estados::

    IDLE → RESOLVING_GATEWAY → FETCHING_PAGE → EXTRACTING_LINK → INVOKING_LINK
         → AWAITING_CONFIRMATION → READY_SUCCESS | NEW_STATUS_HANDOFF | FAILED
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import httpx

from adapters.gateway_client import VMG_URL_KEY, GatewayClient
from adapters.html_links import BASIC_SUBSCRIBE_LINK_TEXT, find_link_by_text
from adapters.http_client import build_async_client
from core.config import AppSettings
from core.domain.events import VvmEvent
from core.domain.models import (
    ConfirmationOutcome,
    ConfirmationPayload,
    NetworkContext,
    OutcomeKind,
    SubscriptionState,
)
from core.errors import ProvisioningError, UnexpectedStatus
from core.interfaces.confirmation import ConfirmationSource
from core.observability import get_logger
from core.services.confirmation_waiter import ConfirmationWaiter

logger = get_logger(__name__)


@dataclass
class SubscriptionHooks:
    """Colaboradores externos.

    `on_event` es síncrono; el resto puede ser síncrono o `async`.
    """

    on_event: Callable[[VvmEvent], None] | None = None
    commit_subscriber_state: Callable[[ConfirmationPayload], Any] | None = None
    continue_provisioning: Callable[[ConfirmationPayload], Any] | None = None
    abort_activation: Callable[[], Any] | None = None


@dataclass
class SubscriptionResult:
    """Resultado terminal de un intento."""

    state: SubscriptionState
    outcome: ConfirmationOutcome | None = None
    failure: ProvisioningError | None = None
    gateway_address: str | None = None
    subscribe_link: str | None = None
    events: list[VvmEvent] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state in (SubscriptionState.READY_SUCCESS, SubscriptionState.NEW_STATUS_HANDOFF)


class AttemptContext:
    """Recursos de un intento: sesión httpx y su cookie jar sobre la ruta dada.

    `async with` entrega el cliente; se libera al salir, por cualquier camino.
    """

    def __init__(
        self,
        settings: AppSettings,
        network: NetworkContext,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.network = network
        self._settings = settings
        self._transport = transport
        self.client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> httpx.AsyncClient:
        client = build_async_client(
            self._settings,
            network=self.network,
            transport=self._transport,
        )
        self.client = client
        return client

    async def __aexit__(self, *exc_info: object) -> None:
        client, self.client = self.client, None
        if client is not None:
            await client.aclose()


async def _call_hook(hook: Callable[..., Any] | None, *args: Any) -> None:
    if hook is None:
        return
    result = hook(*args)
    if inspect.isawaitable(result):
        await result


class SubscriptionOrchestrator:
    """Máquina de estados de un único intento de suscripción.

    No hay vuelta a IDLE: un nuevo intento requiere una instancia nueva.
    """

    def __init__(
        self,
        *,
        subscriber_number: str,
        config: Mapping[str, Any] | None,
        confirmations: ConfirmationSource,
        network: NetworkContext | None = None,
        hooks: SubscriptionHooks | None = None,
        settings: AppSettings | None = None,
        device_model: str | None = None,
        link_label: str = BASIC_SUBSCRIBE_LINK_TEXT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._subscriber_number = subscriber_number
        self._config = config or {}
        self._confirmations = confirmations
        self._network = network or NetworkContext()
        self._hooks = hooks or SubscriptionHooks()
        self._device_model = device_model or self._settings.device_model
        self._link_label = link_label
        self._transport = transport
        self._events: list[VvmEvent] = []
        self._started = False
        self.state = SubscriptionState.IDLE

    def _transition(self, state: SubscriptionState) -> None:
        logger.info("subscription_state", previous=self.state.value, state=state.value)
        self.state = state

    def _emit(self, event: VvmEvent) -> None:
        self._events.append(event)
        if self._hooks.on_event is not None:
            self._hooks.on_event(event)

    async def subscribe(self) -> SubscriptionResult:
        """Ejecuta el intento completo. Nunca lanza `ProvisioningError`."""

        if self._started:
            raise RuntimeError("a subscription attempt can only run once")
        self._started = True

        logger.info("subscribing", network=self._network.label)
        result = SubscriptionResult(state=self.state)
        try:
            async with AttemptContext(self._settings, self._network, transport=self._transport) as client:
                gateway = GatewayClient(client, self._settings, on_event=self._emit)
                outcome = await self._run(gateway, result)
            await self._finish(outcome)
        except ProvisioningError as exc:
            logger.error(
                "subscription_failed",
                kind=exc.kind.value,
                error=exc.message,
                state=self.state.value,
            )
            result.failure = exc
            self._transition(SubscriptionState.FAILED)
            await _call_hook(self._hooks.abort_activation)

        result.state = self.state
        result.events = list(self._events)
        return result

    async def _run(self, gateway: GatewayClient, result: SubscriptionResult) -> ConfirmationOutcome:
        self._transition(SubscriptionState.RESOLVING_GATEWAY)
        gateway_address = await gateway.resolve_gateway(
            self._config.get(VMG_URL_KEY),
            self._subscriber_number,
            self._device_model,
        )
        result.gateway_address = gateway_address

        self._transition(SubscriptionState.FETCHING_PAGE)
        page = await gateway.fetch_provisioning_page(gateway_address, self._subscriber_number)

        self._transition(SubscriptionState.EXTRACTING_LINK)
        subscribe_link = find_link_by_text(page, self._link_label)
        result.subscribe_link = subscribe_link

        self._transition(SubscriptionState.INVOKING_LINK)
        async with ConfirmationWaiter(
            self._confirmations,
            self._subscriber_number,
            timeout=self._settings.confirmation_timeout_seconds,
            on_event=self._emit,
        ) as waiter:
            # El carrier envía un nuevo STATUS SMS tras este POST.
            await gateway.invoke_link(subscribe_link)
            self._transition(SubscriptionState.AWAITING_CONFIRMATION)
            outcome = await waiter.await_confirmation()

        result.outcome = outcome
        return outcome

    async def _finish(self, outcome: ConfirmationOutcome) -> None:
        if outcome.kind is OutcomeKind.READY:
            self._transition(SubscriptionState.READY_SUCCESS)
            await _call_hook(self._hooks.commit_subscriber_state, outcome.payload)
            return
        if outcome.kind is OutcomeKind.NEW:
            self._transition(SubscriptionState.NEW_STATUS_HANDOFF)
            await _call_hook(self._hooks.continue_provisioning, outcome.payload)
            return

        self._emit(VvmEvent.GATEWAY_CONNECTION_FAILED)
        raise UnexpectedStatus(outcome.raw_status or "")
