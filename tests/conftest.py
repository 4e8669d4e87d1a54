import pytest
import structlog


@pytest.fixture(autouse=True)
def _isolate_structlog_config():
    # structlog.testing.capture_logs leaves structlog marked as configured on
    # exit; put the global back the way the test found it.
    was_configured = structlog.is_configured()
    yield
    if not was_configured and structlog.is_configured():
        structlog.reset_defaults()
