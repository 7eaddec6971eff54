"""Cliente de los gateways VVM3 (VMG y SPG).

Tres llamadas secuenciales sobre la misma sesión httpx del intento:

1. VMG: consulta XML `retrieveSPGURL` → URL del self-provisioning gateway.
2. SPG: POST de formulario → página HTML con el enlace de suscripción.
3. Enlace: POST vacío que dispara la activación en el carrier; el resultado
   real llega después por STATUS SMS, no en esta respuesta.

Cada llamada está acotada por `request_timeout_seconds`. Timeouts y errores de
transporte emiten el evento del gateway correspondiente (una vez) y se
convierten en `ProvisioningError`.
"""

from __future__ import annotations

import asyncio
from typing import Callable

import httpx

from core.config import AppSettings
from core.domain.events import VvmEvent
from core.errors import (
    ConfigurationMissing,
    FieldNotFound,
    ProvisioningTimeout,
    TransactionMismatch,
    TransportFailure,
)
from core.observability import get_logger
from core.protocol import SPG_URL_TAG, build_request, encode, parse_response

logger = get_logger(__name__)

VMG_URL_KEY = "vmg_url"

# Self provisioning POST key/values (VVM3 API 2.1.0, 12.3).
SPG_VZW_MDN_PARAM = "VZW_MDN"
SPG_VZW_SERVICE_PARAM = "VZW_SERVICE"
SPG_VZW_SERVICE_BASIC = "BVVM"
SPG_DEVICE_MODEL_PARAM = "DEVICE_MODEL"
# Mismo valor para todo dispositivo Android.
SPG_DEVICE_MODEL_ANDROID = "DROID_4G"
SPG_APP_TOKEN_PARAM = "APP_TOKEN"
SPG_APP_TOKEN = "q8e3t5u2o1"
SPG_LANGUAGE_PARAM = "SPG_LANGUAGE_PARAM"
# La página nunca se muestra al usuario.
SPG_LANGUAGE_EN = "ENGLISH"


def spg_form(subscriber_number: str) -> dict[str, str]:
    return {
        SPG_VZW_MDN_PARAM: subscriber_number,
        SPG_VZW_SERVICE_PARAM: SPG_VZW_SERVICE_BASIC,
        SPG_DEVICE_MODEL_PARAM: SPG_DEVICE_MODEL_ANDROID,
        SPG_APP_TOKEN_PARAM: SPG_APP_TOKEN,
        SPG_LANGUAGE_PARAM: SPG_LANGUAGE_EN,
    }


class GatewayClient:
    """Llamadas HTTP del protocolo. No posee el cliente: lo cierra el intento."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: AppSettings | None = None,
        *,
        on_event: Callable[[VvmEvent], None] | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or AppSettings()
        self._on_event = on_event

    def _emit(self, event: VvmEvent) -> None:
        logger.warning("gateway_event", gateway_event=event.value)
        if self._on_event is not None:
            self._on_event(event)

    async def _post(
        self,
        url: str,
        *,
        step: str,
        event: VvmEvent,
        content: bytes | None = None,
        data: dict[str, str] | None = None,
    ) -> httpx.Response:
        timeout = self._settings.request_timeout_seconds
        logger.debug("gateway_post", step=step, url=url)
        try:
            response = await asyncio.wait_for(
                self._client.post(url, content=content, data=data),
                timeout,
            )
            response.raise_for_status()
        except (asyncio.TimeoutError, httpx.TimeoutException):
            self._emit(event)
            raise ProvisioningTimeout(step, timeout) from None
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self._emit(event)
            raise TransportFailure(step, str(exc)) from exc
        return response

    async def resolve_gateway(
        self,
        vmg_url: str | None,
        subscriber_number: str,
        device_model: str,
    ) -> str:
        """Pregunta al VMG por la URL del SPG."""

        if not vmg_url:
            logger.error("vmg_url_unknown")
            raise ConfigurationMissing(VMG_URL_KEY)

        request = build_request(subscriber_number=subscriber_number, device_model=device_model)
        logger.info("retrieving_spg_url", operation=request.operation.value)
        response = await self._post(
            vmg_url,
            step="vmg_request",
            event=VvmEvent.MANAGEMENT_GATEWAY_CONNECTION_FAILED,
            content=encode(request),
        )

        parsed = parse_response(response.text, (SPG_URL_TAG,))
        if not parsed.matches(request):
            raise TransactionMismatch(request.transaction_id, parsed.transaction_id)
        try:
            return parsed.fields[SPG_URL_TAG]
        except KeyError:
            raise FieldNotFound(SPG_URL_TAG) from None

    async def fetch_provisioning_page(self, gateway_address: str, subscriber_number: str) -> str:
        """Pide al SPG la página de suscripción (HTML crudo)."""

        logger.info("retrieving_self_provisioning_page")
        response = await self._post(
            gateway_address,
            step="spg_request",
            event=VvmEvent.GATEWAY_CONNECTION_FAILED,
            data=spg_form(subscriber_number),
        )
        return response.text

    async def invoke_link(self, subscribe_link: str) -> None:
        """Pulsa el enlace de suscripción (POST vacío)."""

        logger.info("clicking_subscribe_link")
        await self._post(
            subscribe_link,
            step="subscribe_link",
            event=VvmEvent.GATEWAY_CONNECTION_FAILED,
            content=b"",
        )
