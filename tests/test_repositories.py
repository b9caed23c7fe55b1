"""
Tests for the SQL and Firestore guest repositories
"""

import pytest
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.core.errors import AuthError, NotFoundError
from app.models import Guest as GuestModel, GuestGroup as GuestGroupModel
from app.schemas.guest import AgeCategory, DietaryPreferences, Location, PersistedId
from app.services.repositories import FirestoreGuestRepository, SqlGuestRepository

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_repositories.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def sample_group(db_session):
    """Guest group with one guest already on the list"""
    group = GuestGroupModel(
        id="group-1",
        name="The Rossi Family",
        email="rossi@example.com",
        invitation_code="code-123",
        party_size=2,
        locations=["sardinia", "nice"],
        default_language="it",
    )
    db_session.add(group)
    db_session.flush()
    db_session.add(GuestModel(
        id="guest-1",
        guest_group_id=group.id,
        name="Anna Rossi",
        attending_locations=["nice"],
        dietary_preferences={"vegetarian": True},
        age_category="adult",
    ))
    db_session.add(GuestGroupModel(
        id="group-2",
        name="The Bianchi Family",
        invitation_code="code-456",
        locations=["tunisia"],
    ))
    db_session.commit()
    return group

@pytest.fixture
def repo():
    return SqlGuestRepository(TestingSessionLocal)

@pytest.mark.asyncio
async def test_authenticate_returns_group(repo, sample_group):
    group = await repo.authenticate("code-123")

    assert group.id == "group-1"
    assert group.locations == [Location.SARDINIA, Location.NICE]
    assert group.default_language == "it"
    assert await repo.authenticate("nope") is None

@pytest.mark.asyncio
async def test_list_guests(repo, sample_group):
    guests = await repo.list_guests("group-1", "code-123")

    assert len(guests) == 1
    assert guests[0].id == PersistedId(remote_id="guest-1")
    assert guests[0].attending_locations == [Location.NICE]
    assert guests[0].dietary_preferences.vegetarian is True

@pytest.mark.asyncio
async def test_wrong_code_is_rejected(repo, sample_group):
    with pytest.raises(AuthError):
        await repo.list_guests("group-1", "code-456")
    with pytest.raises(AuthError):
        await repo.update_group_notes("missing", "code-123", "hi")

@pytest.mark.asyncio
async def test_create_guest_marks_self_added(repo, sample_group, db_session):
    guest = await repo.create_guest(
        "group-1", "code-123", " Luca ", [Location.SARDINIA],
        DietaryPreferences(gluten_free=True), AgeCategory.CHILD_UNDER_10,
    )

    assert not guest.id.is_draft
    assert guest.name == "Luca"
    row = db_session.get(GuestModel, guest.id.remote_id)
    assert row.self_added is True
    assert row.attending_locations == ["sardinia"]
    assert row.age_category == "child_under_10"
    names = [g.name for g in await repo.list_guests("group-1", "code-123")]
    assert names == ["Anna Rossi", "Luca"]

@pytest.mark.asyncio
async def test_update_guest(repo, sample_group):
    guest = await repo.update_guest(
        "guest-1", "group-1", "code-123", "Anna Maria", ["sardinia", "nice"],
        DietaryPreferences(), AgeCategory.ADULT,
    )

    assert guest.name == "Anna Maria"
    assert guest.attending_locations == [Location.SARDINIA, Location.NICE]
    assert guest.dietary_preferences.vegetarian is False

@pytest.mark.asyncio
async def test_guest_of_other_group_is_not_found(repo, sample_group):
    with pytest.raises(NotFoundError):
        await repo.delete_guest("guest-1", "group-2", "code-456")

@pytest.mark.asyncio
async def test_delete_guest(repo, sample_group):
    await repo.delete_guest("guest-1", "group-1", "code-123")

    assert await repo.list_guests("group-1", "code-123") == []

@pytest.mark.asyncio
async def test_group_party_size_and_notes(repo, sample_group, db_session):
    await repo.update_group_party_size("group-1", "code-123", 4)
    await repo.update_group_notes("group-1", "code-123", "Arriving by ferry")

    db_session.expire_all()
    group = db_session.get(GuestGroupModel, "group-1")
    assert group.party_size == 4
    assert group.additional_notes == "Arriving by ferry"

# -------- Firestore --------

def _document(doc_id, data):
    doc = MagicMock()
    doc.id = doc_id
    doc.exists = data is not None
    doc.to_dict.return_value = data
    return doc

@pytest.fixture
def firestore_client():
    client = MagicMock()
    group_data = {
        "name": "The Rossi Family",
        "invitation_code": "code-123",
        "party_size": 2,
        "locations": ["sardinia"],
    }
    groups = client.collection.return_value
    groups.where.return_value.limit.return_value.get.return_value = [_document("group-1", group_data)]
    group_ref = groups.document.return_value
    group_ref.get.return_value = _document("group-1", group_data)
    guests = group_ref.collection.return_value
    guests.order_by.return_value.get.return_value = [
        _document("guest-1", {"name": "Anna", "attending_locations": ["sardinia"], "age_category": "adult"}),
    ]
    return client

@pytest.mark.asyncio
async def test_firestore_authenticate(firestore_client):
    repo = FirestoreGuestRepository(firestore_client)

    group = await repo.authenticate("code-123")

    assert group.id == "group-1"
    assert group.locations == [Location.SARDINIA]
    firestore_client.collection.assert_called_with("guest_groups")

@pytest.mark.asyncio
async def test_firestore_list_guests(firestore_client):
    repo = FirestoreGuestRepository(firestore_client)

    guests = await repo.list_guests("group-1", "code-123")

    assert [guest.name for guest in guests] == ["Anna"]
    assert guests[0].id == PersistedId(remote_id="guest-1")

@pytest.mark.asyncio
async def test_firestore_rejects_wrong_code(firestore_client):
    repo = FirestoreGuestRepository(firestore_client)

    with pytest.raises(AuthError):
        await repo.list_guests("group-1", "wrong")
