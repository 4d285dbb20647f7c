import pytest
from loguru import logger


@pytest.fixture(name="log_messages")
def fixture_log_messages():
    """Captures loguru messages emitted during the test."""
    messages: list[str] = []
    handler_id = logger.add(messages.append, format="{level}: {message}", level="DEBUG")
    yield messages
    logger.remove(handler_id)
