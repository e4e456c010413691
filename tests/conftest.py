"""Shared test fixtures."""

import pytest

from store import ClubStore


@pytest.fixture
def store() -> ClubStore:
    """Empty in-memory store."""
    return ClubStore()


@pytest.fixture
def alice(store):
    return store.add_player('Alice Khan', nickname='Ace')


@pytest.fixture
def bob(store):
    return store.add_player('Bob Shah')


@pytest.fixture
def carol(store):
    return store.add_player('Carol Dar', phone='555-0101')
