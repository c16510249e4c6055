"""
Pytest configuration and shared fixtures for the catchphrase bot tests.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from bot.guild_state import GuildStateStore  # noqa: E402
from core.storage import SnapshotStore  # noqa: E402
from services.oracle import RelevanceOracleClient  # noqa: E402

from fakes import FakeClock, FakeSession  # noqa: E402


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return GuildStateStore()


@pytest.fixture
def snapshot_store(tmp_path):
    return SnapshotStore(tmp_path / "servers")


@pytest.fixture
def make_oracle():
    """Factory for an oracle client backed by a FakeSession."""

    def _make(payload=None, timeout_seconds=1.0, **session_kwargs):
        session = FakeSession(payload=payload, **session_kwargs)
        client = RelevanceOracleClient(
            api_key="test-key",
            base_url="https://oracle.test/v1",
            model="babbage",
            timeout_seconds=timeout_seconds,
            session=session,
        )
        return client, session

    return _make
