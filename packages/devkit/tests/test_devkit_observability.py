from __future__ import annotations

import logging

import pytest

from devkit import observability
from devkit.observability import _HealthCheckAccessLogFilter, configure_health_access_log_filter


def _uvicorn_access(path: str, status: int | str) -> logging.LogRecord:
    return logging.LogRecord(
        name="uvicorn.access",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg='%s - "%s %s HTTP/%s" %s',
        args=("10.0.0.5:40122", "GET", path, "1.1", status),
        exc_info=None,
    )


@pytest.mark.parametrize("path", ["/healthz", "/readyz/", "/readyz?deep=1"])
def test_successful_health_check_lines_are_dropped(path: str) -> None:
    assert _HealthCheckAccessLogFilter(ignored_paths=("/healthz", "/readyz")).filter(_uvicorn_access(path, 200)) is False


@pytest.mark.parametrize(
    ("path", "status"),
    [("/healthz", 503), ("/auth/login", 200), ("/migration/test-connection", 200), ("/readyz", "n/a")],
)
def test_other_access_lines_are_kept(path: str, status) -> None:
    assert _HealthCheckAccessLogFilter(ignored_paths=("/healthz", "/readyz")).filter(_uvicorn_access(path, status)) is True


def test_records_without_access_args_are_kept() -> None:
    record = logging.LogRecord("uvicorn.access", logging.INFO, __file__, 1, "startup", None, None)
    assert _HealthCheckAccessLogFilter(ignored_paths=("/healthz",)).filter(record) is True


def test_health_filter_is_installed_once(monkeypatch) -> None:
    access_logger = logging.getLogger("uvicorn.access")
    monkeypatch.setattr(observability, "_health_filter_configured", False)
    monkeypatch.setattr(access_logger, "filters", [])

    configure_health_access_log_filter()
    configure_health_access_log_filter()

    assert len([item for item in access_logger.filters if isinstance(item, _HealthCheckAccessLogFilter)]) == 1
