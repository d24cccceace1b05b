"""Settings, logging and startup helpers."""

import logging

import pytest
from fastapi import FastAPI
from pydantic import ValidationError

from safecircle.common.config import RelaySettings
from safecircle.common.logging import ContextFilter, mask_phone, trace_id_ctx, transaction_id_ctx
from safecircle.common.startup import log_startup, startup_summary
from safecircle.common.tracing import configure_tracing


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("MONEYUNIFY_AUTH_ID", "secret-id")
    monkeypatch.setenv("MONEYUNIFY_API_URL", "https://api.example.test/")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", '["https://app.example.test"]')

    loaded = RelaySettings(_env_file=None)

    assert loaded.port == 8080
    assert loaded.moneyunify_auth_id == "secret-id"
    assert loaded.moneyunify_api_url == "https://api.example.test"
    assert loaded.cors_allow_origins == ["https://app.example.test"]
    assert loaded.provider_configured
    assert not loaded.is_production


def test_empty_secret_is_unset(monkeypatch):
    monkeypatch.setenv("MONEYUNIFY_AUTH_ID", "")

    loaded = RelaySettings(_env_file=None)

    assert loaded.moneyunify_auth_id is None
    assert not loaded.provider_configured


def test_settings_are_immutable(settings):
    with pytest.raises(ValidationError):
        settings.moneyunify_auth_id = "changed"


@pytest.mark.parametrize("environment, production", [("production", True), (" Production ", True), ("staging", False)])
def test_is_production(settings_factory, environment, production):
    assert settings_factory(environment=environment).is_production is production


@pytest.mark.parametrize(
    "phone, masked",
    [("0971234567", "097****567"), ("12345", "****"), ("", "N/A"), (None, "N/A"), (971234567, "N/A")],
)
def test_mask_phone(phone, masked):
    assert mask_phone(phone) == masked


def test_context_filter_injects_identifiers():
    trace_token = trace_id_ctx.set("trace-1")
    txn_token = transaction_id_ctx.set("T1")
    try:
        record = logging.LogRecord("safecircle", logging.INFO, __file__, 1, "msg", None, None)
        assert ContextFilter("payment-relay").filter(record)
    finally:
        trace_id_ctx.reset(trace_token)
        transaction_id_ctx.reset(txn_token)

    assert record.service_name == "payment-relay"
    assert record.trace_id == "trace-1"
    assert record.transaction_id == "T1"


def test_startup_summary_hides_secret(settings_factory):
    summary = startup_summary(settings_factory(moneyunify_auth_id="secret-id", provider_timeout_seconds=9.0))

    assert summary["moneyunify_auth_id"] == "<redacted>"
    assert summary["moneyunify_api_url"] == "https://provider.test"
    assert summary["provider_timeout_seconds"] == 9.0
    assert "secret-id" not in str(summary)


def test_startup_summary_reports_missing_secret(settings_factory):
    assert startup_summary(settings_factory(moneyunify_auth_id=None))["moneyunify_auth_id"] == "<unset>"


def test_startup_warns_without_secret(settings_factory, caplog):
    caplog.set_level(logging.INFO, logger="safecircle")

    log_startup(settings_factory(moneyunify_auth_id=None), {"/health": "GET"})

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert any("MONEYUNIFY_AUTH_ID" in r.getMessage() for r in warnings)
    assert any("endpoint GET /health" in r.getMessage() for r in caplog.records)


def test_tracing_off_without_endpoint(settings):
    assert configure_tracing(FastAPI(), settings) is False
