"""Request shapes, relay results and the response envelope."""

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PaymentInitiationRequest(BaseModel):
    """Validated input for one provider payment request."""

    model_config = ConfigDict(frozen=True)

    from_payer: str
    amount: Decimal

    @property
    def amount_text(self) -> str:
        return format(self.amount, "f")


class PaymentVerificationRequest(BaseModel):
    """Validated input for one provider status query."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str


class FailureKind(str, Enum):
    """Why a relay operation did not produce a success envelope."""

    VALIDATION = "validation"
    CONFIG = "config"
    PROVIDER = "provider"
    PROVIDER_PROTOCOL = "provider_protocol"
    TRANSPORT = "transport"

    @property
    def status_code(self) -> int:
        return FAILURE_STATUS_CODES[self]

    @property
    def internal(self) -> bool:
        """Internal failures hide their detail in production."""

        return self in (FailureKind.PROVIDER_PROTOCOL, FailureKind.TRANSPORT)


FAILURE_STATUS_CODES: dict[FailureKind, int] = {
    FailureKind.VALIDATION: 400,
    FailureKind.CONFIG: 500,
    FailureKind.PROVIDER: 400,
    FailureKind.PROVIDER_PROTOCOL: 500,
    FailureKind.TRANSPORT: 500,
}


class RelaySuccess(BaseModel):
    """Provider accepted the call; `data` is passed through untouched."""

    model_config = ConfigDict(frozen=True)

    message: str
    data: Any = None


class RelayFailure(BaseModel):
    """Client-facing message plus optional internal detail for logs/dev."""

    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    message: str
    detail: str | None = None


RelayResult = RelaySuccess | RelayFailure


class Envelope(BaseModel):
    """Uniform `{isError, message, data?}` body returned to callers."""

    model_config = ConfigDict(populate_by_name=True)

    is_error: bool = Field(alias="isError")
    message: str
    data: Any = None
    error: str | None = None
    path: str | None = None

    def body(self) -> dict[str, Any]:
        # `data` goes out exactly as the provider sent it.
        out: dict[str, Any] = {"isError": self.is_error, "message": self.message}
        for key in ("data", "error", "path"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out
