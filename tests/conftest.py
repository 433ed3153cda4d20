import asyncio

import pytest

from dynasty_lineage.store import LineageStore
from factories import dynasty_graph, seed_dynasty


@pytest.fixture
def store(tmp_path):
    """A temporary SQLite store holding the two-season example dynasty."""
    lineage_store = LineageStore(str(tmp_path / "lineage.db"))
    asyncio.run(seed_dynasty(lineage_store))
    return lineage_store


@pytest.fixture
def empty_store(tmp_path):
    lineage_store = LineageStore(str(tmp_path / "empty.db"))
    asyncio.run(lineage_store.create_tables())
    return lineage_store


@pytest.fixture
def graph():
    return dynasty_graph()
