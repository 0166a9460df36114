import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Ensure project root is on sys.path for CI environments where
# Python might not automatically include it (e.g., some GitHub
# Actions runners invoking pytest differently).
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from services.db import Database, SqliteMatchStore
from services.match_service import MatchLifecycleManager
from services.match_store import JsonMatchStore
from tests.factories import FakeProvisioner, make_settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def provisioner():
    return FakeProvisioner()


@pytest_asyncio.fixture()
async def json_store(tmp_path):
    """JSON match store backed by a file in a temporary directory."""
    store = JsonMatchStore(tmp_path / "match_channels.json")
    await store.initialize()
    yield store
    await store.shutdown()


@pytest_asyncio.fixture()
async def sqlite_store(tmp_path):
    """SQLite match store backed by a temporary database file."""
    store = SqliteMatchStore(Database(str(tmp_path / "match_channels.db")))
    await store.initialize()
    yield store
    await store.shutdown()


@pytest_asyncio.fixture()
async def manager(json_store, provisioner, settings):
    """Lifecycle manager wired to a real JSON store and a fake provisioner."""
    service = MatchLifecycleManager(json_store, provisioner, settings)
    await service.initialize()
    yield service
    await service.shutdown()
