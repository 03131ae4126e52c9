"""Test-wide setup: load .env.tests and point structlog at stdlib logging."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import SHARED_PROCESSORS, _serialize_enums

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# Same processor chain as production minus the renderer, so caplog records
# keep the raw event dict in record.msg.
structlog.configure(
    processors=[
        *SHARED_PROCESSORS,
        _serialize_enums,
        structlog.processors.StackInfoRenderer(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=False,
)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Connection and room ids bound by one test must not show up in the next."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
