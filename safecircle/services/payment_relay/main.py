"""HTTP surface for the mobile-money payment relay.

Routes parse the inbound body, hand it to `PaymentRelayService` and translate
the returned result into the `{isError, message, data?}` envelope.
"""

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from time import perf_counter
from typing import Any
from uuid import uuid4

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from safecircle.common.config import RelaySettings, settings
from safecircle.common.logging import configure_logging, logger, trace_id_ctx
from safecircle.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from safecircle.common.startup import log_startup
from safecircle.common.tracing import configure_tracing
from safecircle.services.payment_relay.provider import MoneyUnifyClient
from safecircle.services.payment_relay.schemas import Envelope, FailureKind, RelayFailure, RelayResult, RelaySuccess
from safecircle.services.payment_relay.service import PaymentRelayService

ROUTES = {
    "/health": "GET",
    "/": "GET",
    "/metrics": "GET",
    "/create-mobile-money-payment": "POST",
    "/verify-mobile-money-payment": "POST",
}
MALFORMED_BODY = "Malformed request body"
GENERIC_ERROR = "An error occurred"
CORRELATION_HEADER = "X-Correlation-Id"


def internal_error_response(detail: str | None, app_settings: RelaySettings) -> JSONResponse:
    """500 envelope; the detail is only echoed outside production."""

    error = GENERIC_ERROR if app_settings.is_production else (detail or GENERIC_ERROR)
    envelope = Envelope(is_error=True, message="Internal server error", error=error)
    return JSONResponse(envelope.body(), status_code=500)


def to_response(result: RelayResult, app_settings: RelaySettings) -> JSONResponse:
    """Translate a relay result into an HTTP response."""

    if isinstance(result, RelaySuccess):
        return JSONResponse(Envelope(is_error=False, message=result.message, data=result.data).body())
    if result.kind.internal:
        return internal_error_response(result.detail, app_settings)
    envelope = Envelope(is_error=True, message=result.message)
    return JSONResponse(envelope.body(), status_code=result.kind.status_code)


async def read_payload(request: Request) -> dict[str, Any]:
    """Decode a JSON or form-encoded body; an empty body reads as `{}`."""

    content_type = request.headers.get("content-type", "").lower()
    if "application/x-www-form-urlencoded" in content_type:
        form = await request.form()
        return dict(form.items())

    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise ValueError(MALFORMED_BODY) from exc
    if not isinstance(payload, dict):
        raise ValueError(MALFORMED_BODY)
    return payload


def create_app(
    app_settings: RelaySettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the relay app around one settings value and provider client."""

    app_settings = app_settings or settings
    provider = MoneyUnifyClient(app_settings, transport=transport)
    service = PaymentRelayService(app_settings, provider)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Own the provider connection pool for the app lifetime."""

        log_startup(app_settings, ROUTES)
        yield
        await provider.close()

    app = FastAPI(title=app_settings.service_title, version=app_settings.service_version, lifespan=lifespan)
    app.state.settings = app_settings
    app.state.service = service
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    configure_tracing(app, app_settings)

    @app.middleware("http")
    async def correlation_and_metrics_middleware(request: Request, call_next):
        """Tag logs with a trace id and record request count and latency."""

        trace_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
        trace_id_ctx.set(trace_id)
        start = perf_counter()
        route = "<unmatched>"
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            response.headers[CORRELATION_HEADER] = trace_id
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=app_settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=app_settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Unknown paths and known paths with the wrong method look the same.
        if exc.status_code in (404, 405):
            envelope = Envelope(is_error=True, message="Endpoint not found", path=request.url.path)
            return JSONResponse(envelope.body(), status_code=404)
        envelope = Envelope(is_error=True, message=str(exc.detail))
        return JSONResponse(envelope.body(), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        # Runs outside the middleware stack: the correlation header is set here,
        # CORS headers are not added to these responses.
        logger.exception("unhandled error path=%s", request.url.path)
        response = internal_error_response(str(exc), app_settings)
        trace_id = trace_id_ctx.get()
        if trace_id:
            response.headers[CORRELATION_HEADER] = trace_id
        return response

    @app.get("/health")
    def health():
        """Liveness check with provider configuration flag."""

        return {
            "status": "ok",
            "service": app_settings.service_title,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "moneyunify_configured": app_settings.provider_configured,
        }

    @app.get("/")
    def root():
        return {
            "message": app_settings.service_title,
            "version": app_settings.service_version,
            "endpoints": {
                "health": "/health",
                "createPayment": "/create-mobile-money-payment",
                "verifyPayment": "/verify-mobile-money-payment",
                "metrics": "/metrics",
            },
        }

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    @app.post("/create-mobile-money-payment", response_model=Envelope)
    async def create_mobile_money_payment(request: Request):
        """Initiate a mobile-money payment; no downstream state is touched."""

        try:
            payload = await read_payload(request)
        except ValueError as exc:
            return to_response(RelayFailure(kind=FailureKind.VALIDATION, message=str(exc)), app_settings)
        return to_response(await service.initiate_payment(payload), app_settings)

    @app.post("/verify-mobile-money-payment", response_model=Envelope)
    async def verify_mobile_money_payment(request: Request):
        """Return the provider's view of a payment for the caller to interpret."""

        try:
            payload = await read_payload(request)
        except ValueError as exc:
            return to_response(RelayFailure(kind=FailureKind.VALIDATION, message=str(exc)), app_settings)
        return to_response(await service.verify_payment(payload), app_settings)

    return app


configure_logging()
app = create_app(settings)


def run() -> None:
    """Serve the module-level app with uvicorn on the configured port."""

    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
