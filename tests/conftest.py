"""
Shared fixtures for the RSVP tests
"""

import pytest
from unittest.mock import AsyncMock

from app.services.repositories import GuestRepository
from app.services.rsvp_service import RsvpSession
from app.state.draft_store import DraftStore
from app.state.storage import MemoryStorage
from tests.factories import make_group, saved_guest

@pytest.fixture
def group():
    return make_group()

@pytest.fixture
def storage():
    return MemoryStorage()

@pytest.fixture
def draft_store(storage):
    return DraftStore(storage)

@pytest.fixture
def repository():
    """Repository mock whose writes echo back a saved guest"""
    repo = AsyncMock(spec=GuestRepository)
    repo.list_guests.return_value = []
    created = []

    async def create_guest(group_id, code, name, locations, dietary, age_category):
        created.append(name)
        return saved_guest(f"new-{len(created)}", group_id, name, locations, dietary, age_category)

    async def update_guest(guest_id, group_id, code, name, locations, dietary, age_category):
        return saved_guest(guest_id, group_id, name, locations, dietary, age_category)

    repo.create_guest.side_effect = create_guest
    repo.update_guest.side_effect = update_guest
    repo.delete_guest.return_value = None
    repo.update_group_party_size.return_value = None
    repo.update_group_notes.return_value = None
    return repo

@pytest.fixture
def reloads():
    return []

@pytest.fixture
def session(group, repository, draft_store, reloads):
    rsvp = RsvpSession(group, repository, draft_store, reload_delay=0, on_reload=lambda: reloads.append(True))
    yield rsvp
    rsvp.close()
