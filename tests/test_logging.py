import logging

import pytest
import structlog

from gentrack.utils.logging import setup_logging, tracking_context


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def test_tracking_context_binds_job_fields(reset_structlog) -> None:
    with tracking_context(container_id="proj-1", kind="prompt", session_id=None):
        assert structlog.contextvars.get_contextvars() == {
            "container_id": "proj-1",
            "kind": "prompt",
        }

    assert structlog.contextvars.get_contextvars() == {}


def test_tracking_context_keeps_outer_fields(reset_structlog) -> None:
    with tracking_context(container_id="outer"):
        with tracking_context(container_id="inner", kind="shop_config"):
            assert structlog.contextvars.get_contextvars() == {
                "container_id": "outer",
                "kind": "shop_config",
            }
        assert structlog.contextvars.get_contextvars() == {"container_id": "outer"}


@pytest.mark.parametrize(
    ("json_logs", "renderer_type"),
    [
        (True, structlog.processors.JSONRenderer),
        (False, structlog.dev.ConsoleRenderer),
    ],
)
def test_setup_logging_picks_renderer(reset_structlog, json_logs, renderer_type) -> None:
    setup_logging(level=logging.DEBUG, json_logs=json_logs)

    assert isinstance(structlog.get_config()["processors"][-1], renderer_type)
    assert logging.getLogger("gentrack").level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
