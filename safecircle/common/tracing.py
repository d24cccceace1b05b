"""Optional OpenTelemetry tracing, switched on by OTEL_EXPORTER_OTLP_ENDPOINT."""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from safecircle.common.config import RelaySettings
from safecircle.common.logging import logger


def configure_tracing(app: FastAPI, settings: RelaySettings) -> bool:
    """Export request spans over OTLP/HTTP when an endpoint is configured."""

    endpoint = settings.otel_exporter_otlp_endpoint
    if not endpoint:
        return False
    resource = Resource.create(
        {"service.name": settings.service_name, "service.version": settings.service_version}
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
    logger.info("tracing enabled endpoint=%s", endpoint)
    return True
