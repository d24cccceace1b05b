"""Startup logging: effective settings with secrets hidden, then the routes."""

from typing import Any

from safecircle.common.config import RelaySettings
from safecircle.common.logging import logger

SECRET_MARKERS = ("key", "secret", "password", "token", "auth")


def startup_summary(settings: RelaySettings) -> dict[str, Any]:
    """Settings as they will be used; secret-like fields only report presence."""

    summary: dict[str, Any] = {}
    for name, value in settings.model_dump().items():
        if any(marker in name for marker in SECRET_MARKERS):
            summary[name] = "<unset>" if value is None else "<redacted>"
        else:
            summary[name] = value
    return summary


def log_startup(settings: RelaySettings, routes: dict[str, str]) -> None:
    """Log config, provider readiness and the public routes once per process."""

    logger.info("startup_config=%s", startup_summary(settings))
    logger.info(
        "%s started port=%s environment=%s",
        settings.service_title,
        settings.port,
        settings.environment,
    )
    if not settings.provider_configured:
        logger.warning("MONEYUNIFY_AUTH_ID is not set; payment endpoints will report a config error")
    for route, method in routes.items():
        logger.info("endpoint %s %s", method, route)
