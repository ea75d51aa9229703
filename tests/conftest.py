"""Shared fixtures for store-backed tests."""

import pytest

from models.team import Team
from services.result_store import ResultStore


@pytest.fixture
def store(tmp_path):
    """A fresh SQLite store in a temporary directory."""
    result_store = ResultStore(str(tmp_path / 'data' / 'scrims.db'))
    yield result_store
    result_store.close()


@pytest.fixture
def scrim(store):
    """A scrim with DS, RX and NV registered in slots 2-4."""
    created = store.create_scrim(guild_id=100, name='Evening Scrim')
    for slot, (tag, name) in enumerate([('DS', 'DarkSide'), ('RX', 'Rex'), ('NV', 'Nova')], start=2):
        store.insert_team(created.id, Team(team_tag=tag, team_name=name, slot=slot, owner_user_id=slot * 10))
    return created
