"""Pytest fixtures: relay settings and a scripted MoneyUnify stand-in."""

from urllib.parse import parse_qsl

import httpx
import pytest

from safecircle.common.config import RelaySettings


class ProviderStub:
    """Serves canned replies per provider path and records every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._replies: dict[str, object] = {}

    def reply(self, path: str, status_code: int = 200, json=None, text: str | None = None, headers=None) -> None:
        if json is not None:
            self._replies[path] = lambda: httpx.Response(status_code, json=json, headers=headers)
        else:
            self._replies[path] = lambda: httpx.Response(status_code, text=text or "", headers=headers)

    def fail(self, path: str, exc: Exception) -> None:
        self._replies[path] = exc

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self._replies.get(request.url.path)
        if outcome is None:
            raise AssertionError(f"unexpected provider call: {request.url.path}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome()

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def form(self, index: int = -1) -> dict[str, str]:
        """Decoded form body of one recorded request."""

        return dict(parse_qsl(self.requests[index].content.decode(), keep_blank_values=True))


def make_settings(**overrides) -> RelaySettings:
    values = {
        "moneyunify_auth_id": "auth-123",
        "moneyunify_api_url": "https://provider.test",
        "environment": "production",
        "otel_exporter_otlp_endpoint": None,
    }
    values.update(overrides)
    return RelaySettings(_env_file=None, **values)


@pytest.fixture
def settings() -> RelaySettings:
    return make_settings()


@pytest.fixture
def settings_factory():
    """Build settings with selected fields overridden."""

    return make_settings


@pytest.fixture
def provider() -> ProviderStub:
    return ProviderStub()
