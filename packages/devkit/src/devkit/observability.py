from __future__ import annotations

import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_otel_configured = False
_logging_configured = False
_health_filter_configured = False


class _HealthCheckAccessLogFilter(logging.Filter):
    """Drops successful uvicorn access lines for health checks."""

    def __init__(self, ignored_paths: tuple[str, ...]) -> None:
        super().__init__()
        self._ignored_paths = {self._normalize_path(path) for path in ignored_paths}

    @staticmethod
    def _normalize_path(path: str) -> str:
        base = path.split("?", 1)[0]
        if base != "/" and base.endswith("/"):
            return base[:-1]
        return base

    def filter(self, record: logging.LogRecord) -> bool:
        # uvicorn.access args: (client, method, path, http_version, status)
        args: Any = getattr(record, "args", ())
        if not isinstance(args, tuple) or len(args) < 5 or not isinstance(args[2], str):
            return True
        try:
            status = int(args[4])
        except (TypeError, ValueError):
            return True
        return not (status == 200 and self._normalize_path(args[2]) in self._ignored_paths)


def configure_logging(level: str = "INFO") -> None:
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)
    _logging_configured = True


def configure_otel(service_name: str) -> None:
    global _otel_configured
    if _otel_configured:
        return
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    trace.set_tracer_provider(provider)
    _otel_configured = True


def configure_health_access_log_filter(ignored_paths: tuple[str, ...] = ("/healthz", "/readyz")) -> None:
    global _health_filter_configured
    if _health_filter_configured:
        return
    logging.getLogger("uvicorn.access").addFilter(_HealthCheckAccessLogFilter(ignored_paths=ignored_paths))
    _health_filter_configured = True
