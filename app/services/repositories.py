"""
Remote guest repository layer (SQLAlchemy, Firebase Firestore, PostgREST RPC).

Every operation takes the guest group id together with its invitation code;
the pair is checked by the backing store before anything is read or written.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from google.api_core.exceptions import GoogleAPICallError, GoogleAPIError
from pydantic import ValidationError as SchemaError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import SessionLocal
from app.core.errors import AuthError, NetworkError, NotFoundError, ParseError, ServerError
from app.models import Guest as GuestModel, GuestGroup as GuestGroupModel
from app.schemas.guest import AgeCategory, DietaryPreferences, Guest, GuestGroup, Location, PersistedId
from app.services.firebase_client import GROUPS_COLLECTION, get_firestore_client, group_document, guests_collection

logger = logging.getLogger(__name__)


class GuestRepository(ABC):
    """Async, fallible access to guests and guest groups."""

    @abstractmethod
    async def authenticate(self, invitation_code: str) -> Optional[GuestGroup]:
        """Return the guest group owning ``invitation_code``, if any"""

    @abstractmethod
    async def list_guests(self, group_id: str, code: str) -> List[Guest]:
        ...

    @abstractmethod
    async def create_guest(
        self,
        group_id: str,
        code: str,
        name: str,
        locations: Iterable[Location],
        dietary: DietaryPreferences,
        age_category: AgeCategory,
    ) -> Guest:
        """Not idempotent: each call creates a new row"""

    @abstractmethod
    async def update_guest(
        self,
        guest_id: str,
        group_id: str,
        code: str,
        name: str,
        locations: Iterable[Location],
        dietary: DietaryPreferences,
        age_category: AgeCategory,
    ) -> Guest:
        ...

    @abstractmethod
    async def delete_guest(self, guest_id: str, group_id: str, code: str) -> None:
        ...

    @abstractmethod
    async def update_group_party_size(self, group_id: str, code: str, new_size: int) -> None:
        ...

    @abstractmethod
    async def update_group_notes(self, group_id: str, code: str, notes: str) -> None:
        ...

    async def close(self) -> None:
        """Release transport resources"""


def _location_values(locations: Iterable[Location]) -> List[str]:
    return [Location.parse(location).value for location in locations]


def _guest_from_fields(guest_id: str, group_id: str, fields: Dict[str, Any]) -> Guest:
    return Guest(
        id=PersistedId(remote_id=str(guest_id)),
        guest_group_id=str(group_id),
        name=fields.get("name") or "",
        attending_locations=fields.get("attending_locations") or [],
        dietary_preferences=DietaryPreferences(**(fields.get("dietary_preferences") or {})),
        age_category=fields.get("age_category") or AgeCategory.ADULT,
        created_at=fields.get("created_at"),
        updated_at=fields.get("updated_at"),
    )


def _group_from_fields(group_id: str, code: str, fields: Dict[str, Any]) -> GuestGroup:
    return GuestGroup(
        id=str(group_id),
        name=fields.get("name") or "",
        email=fields.get("email"),
        invitation_code=code,
        party_size=fields.get("party_size") or 0,
        locations=fields.get("locations") or [],
        default_language=fields.get("default_language") or "en",
        additional_notes=fields.get("additional_notes"),
    )


# -------- SQLAlchemy repository --------

class SqlGuestRepository(GuestRepository):
    """Guest store backed by the application database."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(self._in_session, fn, *args)
        except SQLAlchemyError as e:
            logger.error(f"Database error in {fn.__name__}: {e}")
            raise ServerError(str(e)) from e
        except SchemaError as e:
            raise ParseError(str(e)) from e

    def _in_session(self, fn: Callable[..., Any], *args: Any) -> Any:
        with self._session_factory() as db:
            return fn(db, *args)

    @staticmethod
    def _authorized_group(db: Session, group_id: str, code: str) -> GuestGroupModel:
        group = db.get(GuestGroupModel, group_id)
        if not group or not secrets.compare_digest(str(group.invitation_code), str(code)):
            raise AuthError("Invalid invitation code for guest group")
        return group

    @staticmethod
    def _guest_in_group(db: Session, guest_id: str, group_id: str) -> GuestModel:
        guest = db.get(GuestModel, guest_id)
        if not guest or guest.guest_group_id != group_id:
            raise NotFoundError(f"Guest {guest_id} not found in group {group_id}")
        return guest

    @staticmethod
    def _to_guest(row: GuestModel) -> Guest:
        return _guest_from_fields(row.id, row.guest_group_id, {
            "name": row.name,
            "attending_locations": row.attending_locations,
            "dietary_preferences": row.dietary_preferences,
            "age_category": row.age_category,
            "created_at": row.created_at,
            "updated_at": row.updated_at,
        })

    async def authenticate(self, invitation_code: str) -> Optional[GuestGroup]:
        def query(db: Session) -> Optional[GuestGroup]:
            row = db.query(GuestGroupModel).filter(GuestGroupModel.invitation_code == invitation_code).first()
            if not row:
                return None
            return _group_from_fields(row.id, invitation_code, {
                "name": row.name,
                "email": row.email,
                "party_size": row.party_size,
                "locations": row.locations,
                "default_language": row.default_language,
                "additional_notes": row.additional_notes,
            })

        return await self._run(query)

    async def list_guests(self, group_id: str, code: str) -> List[Guest]:
        def query(db: Session) -> List[Guest]:
            self._authorized_group(db, group_id, code)
            rows = (
                db.query(GuestModel)
                .filter(GuestModel.guest_group_id == group_id)
                .order_by(GuestModel.created_at)
                .all()
            )
            return [self._to_guest(row) for row in rows]

        return await self._run(query)

    async def create_guest(self, group_id, code, name, locations, dietary, age_category) -> Guest:
        def insert(db: Session) -> Guest:
            self._authorized_group(db, group_id, code)
            row = GuestModel(
                guest_group_id=group_id,
                name=name.strip(),
                attending_locations=_location_values(locations),
                dietary_preferences=dietary.model_dump(),
                age_category=AgeCategory(age_category).value,
                self_added=True,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info(f"Created guest {row.id} in group {group_id}")
            return self._to_guest(row)

        return await self._run(insert)

    async def update_guest(self, guest_id, group_id, code, name, locations, dietary, age_category) -> Guest:
        def update(db: Session) -> Guest:
            self._authorized_group(db, group_id, code)
            row = self._guest_in_group(db, guest_id, group_id)
            row.name = name.strip()
            row.attending_locations = _location_values(locations)
            row.dietary_preferences = dietary.model_dump()
            row.age_category = AgeCategory(age_category).value
            row.updated_at = datetime.utcnow()
            db.commit()
            db.refresh(row)
            logger.info(f"Updated guest {guest_id} in group {group_id}")
            return self._to_guest(row)

        return await self._run(update)

    async def delete_guest(self, guest_id: str, group_id: str, code: str) -> None:
        def delete(db: Session) -> None:
            self._authorized_group(db, group_id, code)
            db.delete(self._guest_in_group(db, guest_id, group_id))
            db.commit()
            logger.info(f"Deleted guest {guest_id} from group {group_id}")

        await self._run(delete)

    async def update_group_party_size(self, group_id: str, code: str, new_size: int) -> None:
        def update(db: Session) -> None:
            group = self._authorized_group(db, group_id, code)
            group.party_size = new_size
            db.commit()

        await self._run(update)

    async def update_group_notes(self, group_id: str, code: str, notes: str) -> None:
        def update(db: Session) -> None:
            group = self._authorized_group(db, group_id, code)
            group.additional_notes = notes
            db.commit()

        await self._run(update)


# -------- Firestore repository --------

class FirestoreGuestRepository(GuestRepository):
    """Guest store in Firestore: ``guest_groups/{id}`` with a ``guests`` subcollection."""

    def __init__(self, client=None):
        self._client = client

    @property
    def fs(self):
        if self._client is None:
            self._client = get_firestore_client()
        return self._client

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except GoogleAPICallError as e:
            logger.error(f"Firestore error in {fn.__name__}: {e}")
            raise ServerError(str(e)) from e
        except GoogleAPIError as e:
            raise NetworkError(str(e)) from e
        except SchemaError as e:
            raise ParseError(str(e)) from e

    def _authorized_group(self, group_id: str, code: str) -> Dict[str, Any]:
        doc = group_document(self.fs, group_id).get()
        data = doc.to_dict() if doc.exists else None
        if not data or not secrets.compare_digest(str(data.get("invitation_code", "")), str(code)):
            raise AuthError("Invalid invitation code for guest group")
        return data

    def _guest_document(self, guest_id: str, group_id: str):
        ref = guests_collection(self.fs, group_id).document(guest_id)
        if not ref.get().exists:
            raise NotFoundError(f"Guest {guest_id} not found in group {group_id}")
        return ref

    async def authenticate(self, invitation_code: str) -> Optional[GuestGroup]:
        def query() -> Optional[GuestGroup]:
            docs = self.fs.collection(GROUPS_COLLECTION).where("invitation_code", "==", invitation_code).limit(1).get()
            if not docs:
                return None
            return _group_from_fields(docs[0].id, invitation_code, docs[0].to_dict())

        return await self._run(query)

    async def list_guests(self, group_id: str, code: str) -> List[Guest]:
        def query() -> List[Guest]:
            self._authorized_group(group_id, code)
            docs = guests_collection(self.fs, group_id).order_by("created_at").get()
            return [_guest_from_fields(d.id, group_id, d.to_dict()) for d in docs]

        return await self._run(query)

    async def create_guest(self, group_id, code, name, locations, dietary, age_category) -> Guest:
        def insert() -> Guest:
            self._authorized_group(group_id, code)
            now = datetime.utcnow().isoformat()
            data = {
                "name": name.strip(),
                "attending_locations": _location_values(locations),
                "dietary_preferences": dietary.model_dump(),
                "age_category": AgeCategory(age_category).value,
                "self_added": True,
                "created_at": now,
                "updated_at": now,
            }
            ref = guests_collection(self.fs, group_id).document()
            ref.set(data)
            logger.info(f"Created guest {ref.id} in group {group_id}")
            return _guest_from_fields(ref.id, group_id, data)

        return await self._run(insert)

    async def update_guest(self, guest_id, group_id, code, name, locations, dietary, age_category) -> Guest:
        def update() -> Guest:
            self._authorized_group(group_id, code)
            ref = self._guest_document(guest_id, group_id)
            ref.set({
                "name": name.strip(),
                "attending_locations": _location_values(locations),
                "dietary_preferences": dietary.model_dump(),
                "age_category": AgeCategory(age_category).value,
                "updated_at": datetime.utcnow().isoformat(),
            }, merge=True)
            return _guest_from_fields(guest_id, group_id, ref.get().to_dict())

        return await self._run(update)

    async def delete_guest(self, guest_id: str, group_id: str, code: str) -> None:
        def delete() -> None:
            self._authorized_group(group_id, code)
            self._guest_document(guest_id, group_id).delete()
            logger.info(f"Deleted guest {guest_id} from group {group_id}")

        await self._run(delete)

    async def update_group_party_size(self, group_id: str, code: str, new_size: int) -> None:
        def update() -> None:
            self._authorized_group(group_id, code)
            group_document(self.fs, group_id).set({"party_size": new_size}, merge=True)

        await self._run(update)

    async def update_group_notes(self, group_id: str, code: str, notes: str) -> None:
        def update() -> None:
            self._authorized_group(group_id, code)
            group_document(self.fs, group_id).set({"additional_notes": notes}, merge=True)

        await self._run(update)


def create_guest_repository() -> GuestRepository:
    """Build the repository selected by ``REMOTE_BACKEND``."""
    backend = settings.REMOTE_BACKEND.lower()
    if backend == "sql":
        return SqlGuestRepository()
    if backend == "firestore":
        return FirestoreGuestRepository()
    if backend == "rpc":
        from app.services.rpc_repository import RpcGuestRepository
        return RpcGuestRepository()
    raise RuntimeError(f"Unknown REMOTE_BACKEND: {settings.REMOTE_BACKEND}")
