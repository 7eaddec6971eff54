"""Codec de transacciones VMG.

- Construye el XML `VMGVVMRequest` (plantilla fija, cuatro sustituciones).
- Extrae valores de la respuesta por tag, sin parser XML completo: el VMG
  devuelve documentos con estructura variable y solo nos interesan dos tags.

Limitación conocida: `extract_field` honra solo el primer par `<tag>...</tag>`;
tags anidados con el mismo nombre se extraen mal.
"""

from __future__ import annotations

import html
import re
import secrets
from typing import Iterable

from jinja2 import Environment

from core.domain.models import Operation, ProvisioningRequest, ProvisioningResponse
from core.errors import FieldNotFound

TRANSACTION_ID_TAG = "transactionid"
SPG_URL_TAG = "spgurl"

_VMG_REQUEST_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    "<VMGVVMRequest>"
    "  <MessageHeader>"
    "    <transactionid>{{ transaction_id }}</transactionid>"
    "  </MessageHeader>"
    "  <MessageBody>"
    "    <mdn>{{ subscriber_number }}</mdn>"
    "    <operation>{{ operation }}</operation>"
    "    <source>Device</source>"
    "    <devicemodel>{{ device_model }}</devicemodel>"
    "  </MessageBody>"
    "</VMGVVMRequest>"
)

# autoescape: los valores se escapan aunque hoy sean internos.
_template = Environment(autoescape=True).from_string(_VMG_REQUEST_TEMPLATE)


def new_transaction_id() -> str:
    """Id decimal aleatorio de 63 bits. Sin contador global; colisiones no se vigilan."""

    return str(secrets.randbits(63))


def build_request(
    *,
    subscriber_number: str,
    device_model: str,
    operation: Operation = Operation.QUERY_GATEWAY,
    transaction_id: str | None = None,
) -> ProvisioningRequest:
    return ProvisioningRequest(
        transaction_id=transaction_id or new_transaction_id(),
        subscriber_number=subscriber_number,
        operation=operation,
        device_model=device_model,
    )


def encode_request(
    transaction_id: str,
    subscriber_number: str,
    operation: Operation | str,
    device_model: str,
) -> bytes:
    """Renderiza el cuerpo POST para el VMG (UTF-8)."""

    op = operation.value if isinstance(operation, Operation) else operation
    body = _template.render(
        transaction_id=transaction_id,
        subscriber_number=subscriber_number,
        operation=op,
        device_model=device_model,
    )
    return body.encode("utf-8")


def encode(request: ProvisioningRequest) -> bytes:
    return encode_request(
        request.transaction_id,
        request.subscriber_number,
        request.operation,
        request.device_model,
    )


def extract_field(response_text: str, tag: str) -> str:
    """Devuelve el texto del primer `<tag>...</tag>` (no codicioso).

    Las entidades XML del valor se decodifican. Lanza `FieldNotFound` si no hay match.
    """

    escaped = re.escape(tag)
    match = re.search(f"<{escaped}>(.*?)</{escaped}>", response_text, re.DOTALL)
    if match is None:
        raise FieldNotFound(tag)
    return html.unescape(match.group(1))


def parse_response(response_text: str, tags: Iterable[str] = ()) -> ProvisioningResponse:
    """Construye un `ProvisioningResponse` con el transaction id y los tags pedidos.

    Los tags opcionales ausentes se omiten; el transaction id es obligatorio.
    """

    fields: dict[str, str] = {}
    for tag in tags:
        try:
            fields[tag] = extract_field(response_text, tag)
        except FieldNotFound:
            continue
    return ProvisioningResponse(
        transaction_id=extract_field(response_text, TRANSACTION_ID_TAG),
        fields=fields,
    )
