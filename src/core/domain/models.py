"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta de los valores que viajan entre pasos del protocolo.
- Modelos inmutables para petición/resultado: un intento no los reescribe.

Nota:
- Estos modelos describen *qué* se intercambia con VMG/SPG, no *cómo*.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class Operation(str, Enum):
    """Operaciones del VMG. El valor es el código que viaja en `<operation>`."""

    QUERY_GATEWAY = "retrieveSPGURL"


class ProvisioningStatus(str, Enum):
    """Códigos OMTP de estado de suscriptor (campo `st` del STATUS SMS)."""

    NEW = "N"
    READY = "R"
    PROVISIONED = "P"
    UNKNOWN = "U"
    BLOCKED = "B"


class OutcomeKind(str, Enum):
    READY = "ready"
    NEW = "new"
    UNEXPECTED = "unexpected"


class SubscriptionState(str, Enum):
    IDLE = "idle"
    RESOLVING_GATEWAY = "resolving_gateway"
    FETCHING_PAGE = "fetching_page"
    EXTRACTING_LINK = "extracting_link"
    INVOKING_LINK = "invoking_link"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    READY_SUCCESS = "ready_success"
    NEW_STATUS_HANDOFF = "new_status_handoff"
    FAILED = "failed"


class ProvisioningRequest(BaseModel):
    """Una consulta al VMG. Se construye una por petición saliente."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str = Field(
        ...,
        pattern=r"^\d+$",
        description="Token de correlación (decimal, no negativo).",
    )
    subscriber_number: str = Field(..., description="MDN del suscriptor.")
    operation: Operation = Field(default=Operation.QUERY_GATEWAY)
    device_model: str = Field(..., description="Modelo enviado en `<devicemodel>`.")


class ProvisioningResponse(BaseModel):
    """Respuesta del VMG reducida a los tags que nos interesan."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    fields: dict[str, str] = Field(default_factory=dict)

    def matches(self, request: ProvisioningRequest) -> bool:
        return self.transaction_id == request.transaction_id


class ConfirmationPayload(BaseModel):
    """STATUS SMS ya decodificado (entrega y decodificación son externas)."""

    model_config = ConfigDict(frozen=True)

    provisioning_status: str = Field(..., description="Código crudo del campo `st`.")
    fields: dict[str, str] = Field(
        default_factory=dict,
        description="Todos los pares clave/valor del mensaje.",
    )


class ConfirmationOutcome(BaseModel):
    """Variante etiquetada: READY, NEW o UNEXPECTED(raw_status)."""

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    payload: ConfirmationPayload
    raw_status: str | None = None

    @classmethod
    def from_payload(cls, payload: ConfirmationPayload) -> "ConfirmationOutcome":
        status = payload.provisioning_status
        if status == ProvisioningStatus.READY.value:
            return cls(kind=OutcomeKind.READY, payload=payload)
        if status == ProvisioningStatus.NEW.value:
            return cls(kind=OutcomeKind.NEW, payload=payload)
        return cls(kind=OutcomeKind.UNEXPECTED, payload=payload, raw_status=status)


class NetworkContext(BaseModel):
    """Ruta de red que el llamador ya tiene lista.

    `local_address` fija la IP de origen de la sesión HTTP (p.ej. la interfaz
    celular); `None` deja que el sistema elija la ruta.
    """

    model_config = ConfigDict(frozen=True)

    local_address: str | None = None
    label: str = "default"
