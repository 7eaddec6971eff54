"""Piezas puras del protocolo VVM3 (sin I/O)."""

from core.protocol.transaction import (
    SPG_URL_TAG,
    TRANSACTION_ID_TAG,
    build_request,
    encode,
    encode_request,
    extract_field,
    new_transaction_id,
    parse_response,
)

__all__ = [
    "SPG_URL_TAG",
    "TRANSACTION_ID_TAG",
    "build_request",
    "encode",
    "encode_request",
    "extract_field",
    "new_transaction_id",
    "parse_response",
]
