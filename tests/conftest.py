import itertools
import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from infrastructure.repositories.memory_record_store import MemoryRecordStore  # noqa: E402
from services.accounting_dispatcher import AccountingDispatcher  # noqa: E402
from shared.util import format_timestamp  # noqa: E402

pytest_plugins = ('pytest_asyncio',)


@pytest.fixture(autouse=True)
def mock_settings():
    """Pin settings so tests never depend on the local environment"""
    with patch('settings.RECORD_STORE_BACKEND', 'memory'), \
         patch('settings.REDIS_URL', 'redis://localhost:6379/15'), \
         patch('settings.STORE_TIMEOUT_SECONDS', 2.0), \
         patch('settings.STORE_TRANSACTION_ATTEMPTS', 5), \
         patch('settings.LATEST_VERSION_LOOKAHEAD', 5), \
         patch('settings.ACCOUNTING_DRAIN_TIMEOUT', 5.0):
        yield


@pytest.fixture
def fixed_clock():
    """Strictly increasing timestamps, one microsecond apart"""
    start = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
    counter = itertools.count()
    return lambda: format_timestamp(start + timedelta(microseconds=next(counter)))


def seed_documents():
    return {
        "datasets/D1": {"visibility": "Private", "accessUsers": ["u1"], "requestCount": 0},
        "datasets/D1/versions/1.0": {
            "publishedOn": "2024-01-01T00:00:00Z",
            "files": [{"fileUrl": "https://files.example.com/d1/1.0/data.zip", "name": "data.zip"}],
        },
        "datasets/D1/versions/2.0": {
            "publishedOn": "2024-02-01T00:00:00Z",
            "files": [
                {"fileUrl": "https://files.example.com/d1/2.0/train.zip", "name": "train.zip"},
                {"fileUrl": "https://files.example.com/d1/2.0/test.zip", "name": "test.zip"},
            ],
        },
        "datasets/D1/versions/2.0/instances/snap-1": {
            "savedAt": "2024-02-10T08:30:00Z",
            "files": [{"fileUrl": "https://files.example.com/d1/2.0/snap-1.zip"}],
        },
        "datasets/PUB": {"visibility": "Public"},
        "datasets/PUB/versions/0.1": {
            "publishedOn": 1704067200000,
            "fileUrls": ["https://files.example.com/pub/a.zip", "https://files.example.com/pub/b.zip"],
        },
        "datasets/LEGACY": {"isPublic": True, "latestVersion": "3.1"},
        "datasets/LEGACY/versions/3.1": {"fileUrl": "https://files.example.com/legacy/3.1.zip"},
    }


@pytest.fixture
def memory_store():
    """In-process record store seeded with a few datasets"""
    return MemoryRecordStore(seed_documents())


@pytest.fixture
def reported_errors():
    return []


@pytest.fixture
def dispatcher(reported_errors):
    """Dispatcher whose error channel appends to reported_errors"""
    instance = AccountingDispatcher(
        max_workers=4,
        drain_timeout=5.0,
        error_reporter=lambda error, context: reported_errors.append((error, context)),
    )
    yield instance
    instance.shutdown(timeout=5.0)
