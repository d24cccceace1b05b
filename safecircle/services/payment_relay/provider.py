"""MoneyUnify HTTP client.

Keeps every outbound call in one place: form-encoded POSTs, JSON replies.
Non-JSON bodies raise `ProviderProtocolError`; transport problems surface as
`httpx.HTTPError`. Both are translated into relay results by the service.
"""

from typing import Any

import httpx
from pydantic import BaseModel

from safecircle.common.config import RelaySettings
from safecircle.common.logging import logger
from safecircle.common.metrics import provider_request_duration_seconds

REQUEST_PATH = "/payments/request"
VERIFY_PATH = "/payments/verify"
FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}
INVALID_RESPONSE = "Invalid response from payment provider"


class ProviderProtocolError(Exception):
    """Provider answered with a body the relay cannot interpret."""


class ProviderReply(BaseModel):
    """Decoded JSON object returned by the provider."""

    status_code: int
    payload: dict[str, Any]

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def parse_reply(response: httpx.Response) -> ProviderReply:
    """Accept only JSON object bodies, whatever the HTTP status."""

    content_type = response.headers.get("content-type", "")
    if "application/json" not in content_type.lower():
        logger.error(
            "non-JSON response from provider status=%s content_type=%s body=%s",
            response.status_code,
            content_type or "<none>",
            response.text[:500],
        )
        raise ProviderProtocolError(f"{INVALID_RESPONSE} (content-type: {content_type or 'none'})")
    try:
        payload = response.json()
    except ValueError as exc:
        raise ProviderProtocolError(f"{INVALID_RESPONSE} (malformed JSON)") from exc
    if not isinstance(payload, dict):
        raise ProviderProtocolError(f"{INVALID_RESPONSE} (expected a JSON object)")
    return ProviderReply(status_code=response.status_code, payload=payload)


class MoneyUnifyClient:
    """Lazy httpx client wrapper shared by all requests of one app."""

    def __init__(self, settings: RelaySettings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.base_url = settings.moneyunify_api_url
        self.timeout = settings.provider_timeout_seconds
        self.service_name = settings.service_name
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def request_payment(self, form: dict[str, str]) -> ProviderReply:
        return await self._post_form(REQUEST_PATH, form)

    async def verify_payment(self, form: dict[str, str]) -> ProviderReply:
        return await self._post_form(VERIFY_PATH, form)

    async def _post_form(self, path: str, form: dict[str, str]) -> ProviderReply:
        with provider_request_duration_seconds.labels(service=self.service_name, endpoint=path).time():
            response = await self.client().post(path, data=form, headers=FORM_HEADERS)
        return parse_reply(response)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
