"""Mobile-money payment relay: validate, call provider, translate."""

import re
from collections.abc import Awaitable, Callable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from safecircle.common.config import RelaySettings
from safecircle.common.logging import logger, mask_phone, transaction_id_ctx
from safecircle.common.metrics import relay_requests_total
from safecircle.services.payment_relay.provider import MoneyUnifyClient, ProviderProtocolError, ProviderReply
from safecircle.services.payment_relay.schemas import (
    FailureKind,
    PaymentInitiationRequest,
    PaymentVerificationRequest,
    RelayFailure,
    RelayResult,
    RelaySuccess,
)

PHONE_PATTERN = re.compile(r"[0-9]{10}")
AMOUNT_PRECISION = Decimal("0.01")

MISSING_PAYMENT_FIELDS = "Missing required fields: from_payer or amount"
INVALID_PHONE = "Invalid phone number format. Must be 10 digits (e.g., 0971234567)"
INVALID_AMOUNT = "Invalid amount. Must be a positive number."
INVALID_AMOUNT_PRECISION = "Invalid amount. At most two decimal places are allowed."
MISSING_TRANSACTION_ID = "Missing required field: transaction_id"
INVALID_TRANSACTION_ID = "Invalid transaction_id. Must be a string."
NOT_CONFIGURED = "Payment service not configured. Please contact support."
INITIATION_FAILED = "Payment initiation failed"
INTERNAL_ERROR = "Internal server error"


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_amount(value: Any) -> Decimal:
    """Positive, finite, at most two decimal places; the value is never rounded."""

    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValueError(INVALID_AMOUNT)
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite() or amount <= 0:
            raise ValueError(INVALID_AMOUNT)
        padded = amount.quantize(AMOUNT_PRECISION)
    except InvalidOperation as exc:
        raise ValueError(INVALID_AMOUNT) from exc
    # Trailing zeros are fine ("10.500"), extra precision is not ("10.005").
    if padded != amount:
        raise ValueError(INVALID_AMOUNT_PRECISION)
    return padded


def parse_initiation(payload: Mapping[str, Any]) -> PaymentInitiationRequest:
    """Raise ValueError with a client-facing message on bad input."""

    from_payer = payload.get("from_payer")
    amount = payload.get("amount")
    if _is_absent(from_payer) or _is_absent(amount):
        raise ValueError(MISSING_PAYMENT_FIELDS)
    if not isinstance(from_payer, str) or PHONE_PATTERN.fullmatch(from_payer) is None:
        raise ValueError(INVALID_PHONE)
    return PaymentInitiationRequest(from_payer=from_payer, amount=_parse_amount(amount))


def parse_verification(payload: Mapping[str, Any]) -> PaymentVerificationRequest:
    """Raise ValueError with a client-facing message on bad input."""

    transaction_id = payload.get("transaction_id")
    if _is_absent(transaction_id):
        raise ValueError(MISSING_TRANSACTION_ID)
    if isinstance(transaction_id, int) and not isinstance(transaction_id, bool):
        transaction_id = str(transaction_id)
    if not isinstance(transaction_id, str):
        raise ValueError(INVALID_TRANSACTION_ID)
    return PaymentVerificationRequest(transaction_id=transaction_id.strip())


def _provider_message(payload: Mapping[str, Any]) -> str:
    message = payload.get("message")
    if message is None:
        return ""
    return message if isinstance(message, str) else str(message)


class PaymentRelayService:
    """Stateless relay between app clients and the MoneyUnify API.

    Every public operation returns a `RelayResult`; nothing is raised to the
    HTTP layer for expected failures.
    """

    def __init__(self, settings: RelaySettings, provider: MoneyUnifyClient) -> None:
        self.settings = settings
        self.provider = provider

    def _finish(self, operation: str, result: RelayResult) -> RelayResult:
        outcome = "success" if isinstance(result, RelaySuccess) else result.kind.value
        relay_requests_total.labels(
            service=self.settings.service_name,
            operation=operation,
            outcome=outcome,
        ).inc()
        return result

    async def _call_provider(
        self,
        operation: str,
        send: Callable[[dict[str, str]], Awaitable[ProviderReply]],
        form: dict[str, str],
    ) -> ProviderReply | RelayFailure:
        try:
            return await send(form)
        except ProviderProtocolError as exc:
            logger.error("%s provider protocol error: %s", operation, exc)
            return RelayFailure(kind=FailureKind.PROVIDER_PROTOCOL, message=INTERNAL_ERROR, detail=str(exc))
        except httpx.HTTPError as exc:
            detail = str(exc) or type(exc).__name__
            logger.error("%s provider call failed: %s", operation, detail)
            return RelayFailure(kind=FailureKind.TRANSPORT, message=INTERNAL_ERROR, detail=detail)

    async def initiate_payment(self, payload: Mapping[str, Any]) -> RelayResult:
        """Ask the provider to push a mobile-money prompt to the payer."""

        logger.info(
            "payment request received from_payer=%s amount=%s",
            mask_phone(payload.get("from_payer")),
            payload.get("amount"),
        )
        try:
            request = parse_initiation(payload)
        except ValueError as exc:
            logger.info("payment request rejected: %s", exc)
            return self._finish("initiate", RelayFailure(kind=FailureKind.VALIDATION, message=str(exc)))

        if not self.settings.provider_configured:
            logger.error("MONEYUNIFY_AUTH_ID not configured")
            return self._finish("initiate", RelayFailure(kind=FailureKind.CONFIG, message=NOT_CONFIGURED))

        form = {
            "from_payer": request.from_payer,
            "amount": request.amount_text,
            "auth_id": self.settings.moneyunify_auth_id,
            # Callers poll the verify endpoint instead of receiving webhooks.
            "webhook_url": "",
        }
        reply = await self._call_provider("initiate", self.provider.request_payment, form)
        if isinstance(reply, RelayFailure):
            return self._finish("initiate", reply)

        body = reply.payload
        if body.get("isError") or not reply.ok:
            logger.error("provider rejected payment status=%s body=%s", reply.status_code, body)
            message = _provider_message(body) or INITIATION_FAILED
            return self._finish("initiate", RelayFailure(kind=FailureKind.PROVIDER, message=message))

        data = body.get("data")
        if isinstance(data, Mapping) and data.get("transaction_id") is not None:
            transaction_id_ctx.set(str(data["transaction_id"]))
        logger.info("payment initiated transaction_id=%s", transaction_id_ctx.get() or "<missing>")
        return self._finish("initiate", RelaySuccess(message=_provider_message(body), data=data))

    async def verify_payment(self, payload: Mapping[str, Any]) -> RelayResult:
        """Fetch payment status; interpreting it is left to the caller."""

        try:
            request = parse_verification(payload)
        except ValueError as exc:
            logger.info("verification request rejected: %s", exc)
            return self._finish("verify", RelayFailure(kind=FailureKind.VALIDATION, message=str(exc)))

        transaction_id_ctx.set(request.transaction_id)
        logger.info("verification request received transaction_id=%s", request.transaction_id)

        if not self.settings.provider_configured:
            logger.error("MONEYUNIFY_AUTH_ID not configured")
            return self._finish("verify", RelayFailure(kind=FailureKind.CONFIG, message=NOT_CONFIGURED))

        form = {
            "auth_id": self.settings.moneyunify_auth_id,
            "transaction_id": request.transaction_id,
        }
        reply = await self._call_provider("verify", self.provider.verify_payment, form)
        if isinstance(reply, RelayFailure):
            return self._finish("verify", reply)

        body = reply.payload
        data = body.get("data")
        status = data.get("status") if isinstance(data, Mapping) else None
        logger.info(
            "verification result transaction_id=%s status=%s",
            request.transaction_id,
            status or "unknown",
        )
        return self._finish("verify", RelaySuccess(message=_provider_message(body), data=data))
