from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import Mock, patch

import pytest

from restexec.models import LogicalRequest
from tests.helpers import ACCOUNTS_URL

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture
def mock_sleep() -> Generator[Mock, None, None]:
    """Patch time.sleep to make tests run faster."""
    with patch("time.sleep", return_value=None) as mock:
        yield mock


@pytest.fixture
def mock_asleep() -> Generator[Mock, None, None]:
    """Patch asyncio.sleep to make tests run faster."""
    with patch("asyncio.sleep", return_value=None) as mock:
        yield mock


@pytest.fixture
def get_request() -> LogicalRequest:
    """Create a GET request with query parameters and a custom header."""
    return LogicalRequest(
        "GET",
        ACCOUNTS_URL,
        params={"limit": "25"},
        headers={"Accept": "application/json"},
    )
