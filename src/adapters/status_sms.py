"""Decodificación del STATUS SMS (OMTP).

Formato: `//VVM:STATUS:st=R;rc=0;srv=1.2.3.4;...`. También se acepta el cuerpo
`clave=valor;...` sin prefijo (cuando el transporte ya lo quitó).
"""

from __future__ import annotations

from core.domain.models import ConfirmationPayload

STATUS_PREFIX = "//VVM:STATUS:"
PROVISIONING_STATUS_KEY = "st"


def parse_status_sms(text: str) -> ConfirmationPayload:
    body = text.strip()
    if body.startswith(STATUS_PREFIX):
        body = body[len(STATUS_PREFIX):]
    elif body.startswith("//VVM:"):
        raise ValueError(f"not a STATUS message: {text!r}")

    fields: dict[str, str] = {}
    for part in body.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip()
        if key:
            fields[key] = value.strip()

    status = fields.get(PROVISIONING_STATUS_KEY)
    if not status:
        raise ValueError(f"STATUS message without {PROVISIONING_STATUS_KEY!r} field: {text!r}")
    return ConfirmationPayload(provisioning_status=status, fields=fields)
