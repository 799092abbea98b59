from __future__ import annotations

from typing import Iterator

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def _reset_log_sinks() -> Iterator[None]:
    """Drop sinks bound to a test's captured stderr once the test ends."""
    yield
    logger.remove()
