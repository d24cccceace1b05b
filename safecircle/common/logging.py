"""Structured JSON logging with request context fields."""

import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from safecircle.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
transaction_id_ctx: ContextVar[str] = ContextVar("transaction_id", default="")


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        record.trace_id = trace_id_ctx.get()
        record.transaction_id = transaction_id_ctx.get()
        return True


def configure_logging(service_name: str | None = None, log_level: str | None = None) -> None:
    """Configure root logger once per process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter(service_name or settings.service_name)
    handler.addFilter(context_filter)
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(service_name)s %(trace_id)s %(transaction_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level or settings.log_level)
    root.addFilter(context_filter)


def mask_phone(phone: object) -> str:
    """Hide the middle digits of a payer number, e.g. 097****567."""

    if not isinstance(phone, str) or not phone:
        return "N/A"
    if len(phone) < 7:
        return "****"
    return f"{phone[:3]}****{phone[7:]}"


logger = logging.getLogger("safecircle")
