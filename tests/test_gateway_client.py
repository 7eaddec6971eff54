from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

import core.protocol.transaction as transaction
from adapters.gateway_client import GatewayClient, spg_form
from core.domain.events import VvmEvent
from core.errors import (
    ConfigurationMissing,
    FieldNotFound,
    ProvisioningTimeout,
    TransactionMismatch,
    TransportFailure,
)
from core.protocol import extract_field

VMG_URL = "http://vmg.example/vvm"


def _gateway(handler, settings, events) -> tuple[httpx.AsyncClient, GatewayClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client, GatewayClient(client, settings, on_event=events.append)


@pytest.mark.asyncio
async def test_resolve_gateway_returns_spg_url(settings, events, monkeypatch):
    monkeypatch.setattr(transaction, "new_transaction_id", lambda: "123")
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["body"] = request.content.decode("utf-8")
        return httpx.Response(
            200,
            text="<transactionid>123</transactionid><spgurl>http://spg.example/x</spgurl>",
        )

    client, gateway = _gateway(handler, settings, events)
    async with client:
        spg_url = await gateway.resolve_gateway(VMG_URL, "5551234567", "Pixel")

    assert spg_url == "http://spg.example/x"
    assert seen["method"] == "POST"
    assert extract_field(seen["body"], "transactionid") == "123"
    assert extract_field(seen["body"], "mdn") == "5551234567"
    assert extract_field(seen["body"], "operation") == "retrieveSPGURL"
    assert extract_field(seen["body"], "devicemodel") == "Pixel"
    assert events == []


@pytest.mark.asyncio
async def test_resolve_gateway_without_vmg_url_makes_no_call(settings, events):
    calls: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    client, gateway = _gateway(handler, settings, events)
    async with client:
        with pytest.raises(ConfigurationMissing) as excinfo:
            await gateway.resolve_gateway(None, "5551234567", "Pixel")

    assert excinfo.value.key == "vmg_url"
    assert calls == []
    assert events == []


@pytest.mark.asyncio
async def test_resolve_gateway_rejects_foreign_transaction(settings, events, monkeypatch):
    monkeypatch.setattr(transaction, "new_transaction_id", lambda: "123")
    calls: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(
            200,
            text="<transactionid>999</transactionid><spgurl>http://spg.example/x</spgurl>",
        )

    client, gateway = _gateway(handler, settings, events)
    async with client:
        with pytest.raises(TransactionMismatch) as excinfo:
            await gateway.resolve_gateway(VMG_URL, "5551234567", "Pixel")

    assert excinfo.value.expected == "123"
    assert excinfo.value.received == "999"
    assert len(calls) == 1
    assert events == []


@pytest.mark.asyncio
async def test_resolve_gateway_missing_spg_url(settings, events, monkeypatch):
    monkeypatch.setattr(transaction, "new_transaction_id", lambda: "5")

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<transactionid>5</transactionid>")

    client, gateway = _gateway(handler, settings, events)
    async with client:
        with pytest.raises(FieldNotFound) as excinfo:
            await gateway.resolve_gateway(VMG_URL, "5551234567", "Pixel")

    assert excinfo.value.tag == "spgurl"


@pytest.mark.asyncio
async def test_resolve_gateway_timeout_signals_vmg_failure_once(settings, events):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    client, gateway = _gateway(handler, settings, events)
    async with client:
        with pytest.raises(ProvisioningTimeout):
            await gateway.resolve_gateway(VMG_URL, "5551234567", "Pixel")

    assert events == [VvmEvent.MANAGEMENT_GATEWAY_CONNECTION_FAILED]


@pytest.mark.asyncio
async def test_resolve_gateway_http_error_is_transport_failure(settings, events):
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    client, gateway = _gateway(handler, settings, events)
    async with client:
        with pytest.raises(TransportFailure):
            await gateway.resolve_gateway(VMG_URL, "5551234567", "Pixel")

    assert events == [VvmEvent.MANAGEMENT_GATEWAY_CONNECTION_FAILED]


@pytest.mark.asyncio
async def test_fetch_provisioning_page_posts_fixed_form(settings, events):
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["form"] = {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}
        return httpx.Response(200, text="<html>page</html>")

    client, gateway = _gateway(handler, settings, events)
    async with client:
        page = await gateway.fetch_provisioning_page("http://spg.example/x", "5551234567")

    assert page == "<html>page</html>"
    assert seen["url"] == "http://spg.example/x"
    assert seen["form"] == {
        "VZW_MDN": "5551234567",
        "VZW_SERVICE": "BVVM",
        "DEVICE_MODEL": "DROID_4G",
        "APP_TOKEN": "q8e3t5u2o1",
        "SPG_LANGUAGE_PARAM": "ENGLISH",
    }
    assert seen["form"] == spg_form("5551234567")


@pytest.mark.asyncio
async def test_fetch_provisioning_page_timeout_signals_spg_failure_once(settings, events):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    client, gateway = _gateway(handler, settings, events)
    async with client:
        with pytest.raises(ProvisioningTimeout) as excinfo:
            await gateway.fetch_provisioning_page("http://spg.example/x", "5551234567")

    assert excinfo.value.step == "spg_request"
    assert events == [VvmEvent.GATEWAY_CONNECTION_FAILED]


@pytest.mark.asyncio
async def test_invoke_link_posts_empty_body(settings, events):
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["body"] = request.content
        return httpx.Response(200, text="thanks")

    client, gateway = _gateway(handler, settings, events)
    async with client:
        await gateway.invoke_link("http://spg.example/subscribe")

    assert seen == {"method": "POST", "body": b""}
    assert events == []


@pytest.mark.asyncio
async def test_invoke_link_timeout_signals_spg_failure_once(settings, events):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    client, gateway = _gateway(handler, settings, events)
    async with client:
        with pytest.raises(ProvisioningTimeout):
            await gateway.invoke_link("http://spg.example/subscribe")

    assert events == [VvmEvent.GATEWAY_CONNECTION_FAILED]


@pytest.mark.asyncio
async def test_connection_error_is_transport_failure(settings, events):
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("network unreachable", request=request)

    client, gateway = _gateway(handler, settings, events)
    async with client:
        with pytest.raises(TransportFailure) as excinfo:
            await gateway.invoke_link("http://spg.example/subscribe")

    assert "network unreachable" in excinfo.value.cause
    assert events == [VvmEvent.GATEWAY_CONNECTION_FAILED]
