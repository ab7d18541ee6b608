import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_logging():
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
