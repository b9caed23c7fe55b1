"""
Tests for the local draft store and its storage backends
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.core.errors import LocalStorageError
from app.schemas.guest import DietaryPreferences, DraftId, Guest, Location, PersistedId
from app.state.draft_store import DraftStore, guests_key, locations_key
from app.state.storage import MemoryStorage, SqlStorage
from tests.factories import GROUP_ID, make_guest

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_drafts.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

class BrokenStorage:
    """Storage whose every call fails"""

    def get(self, key):
        raise LocalStorageError("disk unavailable")

    def set(self, key, value):
        raise LocalStorageError("disk unavailable")

    def remove(self, key):
        raise LocalStorageError("disk unavailable")

@pytest.fixture
def sql_storage():
    """SQLite-backed storage, recreated per test"""
    Base.metadata.create_all(bind=engine)
    try:
        yield SqlStorage(TestingSessionLocal)
    finally:
        Base.metadata.drop_all(bind=engine)

def _draft(name):
    return Guest(
        id=DraftId(),
        guest_group_id=GROUP_ID,
        name=name,
        attending_locations=["sardinia"],
        dietary_preferences=DietaryPreferences(halal=True, other="no nuts"),
    )

def test_keys_are_derived_from_group_id():
    assert guests_key("abc") == "draft-guests:abc"
    assert locations_key("abc") == "draft-locations:abc"

def test_only_draft_guests_are_saved(draft_store):
    drafts = [_draft("Luca"), _draft("Sofia")]

    assert draft_store.save_draft_guests(GROUP_ID, [make_guest("g1", "Anna")] + drafts) is True

    assert draft_store.load_draft_guests(GROUP_ID) == drafts

def test_missing_draft_loads_as_empty(draft_store):
    assert draft_store.load_draft_guests(GROUP_ID) == []
    assert draft_store.load_location_map(GROUP_ID) == {}

def test_corrupt_values_load_as_empty(storage, draft_store):
    storage.set(guests_key(GROUP_ID), "{not json")
    storage.set(locations_key(GROUP_ID), "[1, 2, 3]")

    assert draft_store.load_draft_guests(GROUP_ID) == []
    assert draft_store.load_location_map(GROUP_ID) == {}

def test_bad_location_entries_are_skipped(storage, draft_store):
    storage.set(locations_key(GROUP_ID), '{"persisted:g1": ["nice"], "bogus": ["nice"], "draft:x": ["mars"]}')

    assert draft_store.load_location_map(GROUP_ID) == {PersistedId(remote_id="g1"): {Location.NICE}}

def test_location_map_round_trip(draft_store):
    draft_id = DraftId()
    location_map = {
        draft_id: {Location.SARDINIA, Location.NICE},
        PersistedId(remote_id="g1"): set(),
    }

    draft_store.save_location_map(GROUP_ID, location_map)

    assert draft_store.load_location_map(GROUP_ID) == location_map

def test_clear_removes_both_keys(storage, draft_store):
    draft_store.save_draft_guests(GROUP_ID, [_draft("Luca")])
    draft_store.save_location_map(GROUP_ID, {})

    draft_store.clear(GROUP_ID)

    assert storage.get(guests_key(GROUP_ID)) is None
    assert storage.get(locations_key(GROUP_ID)) is None

def test_storage_failures_never_escape():
    store = DraftStore(BrokenStorage())

    assert store.save_draft_guests(GROUP_ID, [_draft("Luca")]) is False
    assert store.load_draft_guests(GROUP_ID) == []
    assert store.load_location_map(GROUP_ID) == {}
    store.clear(GROUP_ID)

def test_drafts_are_kept_per_group(draft_store):
    draft_store.save_draft_guests("other-group", [_draft("Luca")])

    assert draft_store.load_draft_guests(GROUP_ID) == []

def test_sql_storage_set_get_remove(sql_storage):
    assert sql_storage.get("k") is None

    sql_storage.set("k", "one")
    sql_storage.set("k", "two")
    assert sql_storage.get("k") == "two"

    sql_storage.remove("k")
    sql_storage.remove("k")
    assert sql_storage.get("k") is None

def test_draft_store_over_sql_storage(sql_storage):
    store = DraftStore(sql_storage)
    drafts = [_draft("Luca")]

    store.save_draft_guests(GROUP_ID, drafts)

    assert DraftStore(sql_storage).load_draft_guests(GROUP_ID) == drafts

def test_memory_storage_is_isolated():
    first, second = MemoryStorage(), MemoryStorage()
    first.set("k", "v")

    assert second.get("k") is None
