"""In-memory registry of live RSVP sessions with TTL and LRU eviction."""

from __future__ import annotations

import logging
import secrets
import time
from collections import OrderedDict
from typing import Optional

from app.core.config import settings
from app.core.errors import AuthError
from app.schemas.guest import GuestGroup
from app.schemas.rsvp import RsvpStatus
from app.services.repositories import GuestRepository, create_guest_repository
from app.services.rsvp_service import RsvpSession
from app.state.draft_store import DraftStore
from app.state.storage import create_storage

logger = logging.getLogger(__name__)


class SessionRegistry:
    """One ``RsvpSession`` per guest group.

    Sessions that are idle for longer than ``ttl`` seconds, or pushed out by
    the ``maxsize`` cap, are closed. Their drafts survive in the draft store,
    so a later request simply loads a fresh session.
    """

    def __init__(
        self,
        repository: Optional[GuestRepository] = None,
        draft_store: Optional[DraftStore] = None,
        maxsize: Optional[int] = None,
        ttl: Optional[float] = None,
        reload_delay: Optional[float] = None,
    ) -> None:
        self._repository = repository
        self._draft_store = draft_store
        self.maxsize = maxsize or settings.SESSION_MAX_ACTIVE
        self.ttl = ttl or settings.SESSION_TTL_SECONDS
        self.reload_delay = reload_delay
        self._data: "OrderedDict[str, tuple[RsvpSession, float]]" = OrderedDict()

    @property
    def repository(self) -> GuestRepository:
        if self._repository is None:
            self._repository = create_guest_repository()
        return self._repository

    @property
    def draft_store(self) -> DraftStore:
        if self._draft_store is None:
            self._draft_store = DraftStore(create_storage())
        return self._draft_store

    def _close(self, group_id: str, session: RsvpSession) -> None:
        session.close()
        logger.info(f"Closed RSVP session for group {group_id}")

    def _evict_expired(self) -> None:
        now = time.time()
        expired = [gid for gid, (_, ts) in self._data.items() if now - ts > self.ttl]
        for gid in expired:
            session, _ = self._data.pop(gid)
            self._close(gid, session)

    def get(self, group_id: str) -> Optional[RsvpSession]:
        """Return the session for ``group_id`` if it exists and is fresh."""

        self._evict_expired()
        item = self._data.get(group_id)
        if not item:
            return None
        session, _ = item
        # mark as recently used
        self._data.move_to_end(group_id)
        self._data[group_id] = (session, time.time())
        return session

    def set(self, group_id: str, session: RsvpSession) -> None:
        self._evict_expired()
        previous = self._data.pop(group_id, None)
        if previous and previous[0] is not session:
            self._close(group_id, previous[0])
        self._data[group_id] = (session, time.time())
        # LRU eviction
        if len(self._data) > self.maxsize:
            gid, (oldest, _) = self._data.popitem(last=False)
            self._close(gid, oldest)

    def evict(self, group_id: str) -> None:
        item = self._data.pop(group_id, None)
        if item:
            self._close(group_id, item[0])

    def __len__(self) -> int:
        return len(self._data)

    async def open(self, group: GuestGroup) -> RsvpSession:
        """Return the loaded session for ``group``, creating it if needed.

        A session whose last load failed is loaded again.
        """
        session = self.get(group.id)
        if session is None:
            session = RsvpSession(group, self.repository, self.draft_store, reload_delay=self.reload_delay)
            self.set(group.id, session)
        if session.status in (RsvpStatus.UNINITIALIZED, RsvpStatus.LOAD_FAILED):
            await session.load()
        return session

    async def login(self, invitation_code: str) -> RsvpSession:
        group = await self.repository.authenticate(invitation_code.strip())
        if group is None:
            raise AuthError("Unknown invitation code")
        logger.info(f"Guest group {group.id} logged in")
        return await self.open(group)

    async def resume(self, group_id: str, invitation_code: str) -> RsvpSession:
        """Session for ``group_id`` if ``invitation_code`` belongs to it"""
        session = self.get(group_id)
        if session is not None:
            if not secrets.compare_digest(session.group.invitation_code, invitation_code):
                raise AuthError("Invitation code does not match this group")
            if session.status == RsvpStatus.LOAD_FAILED:
                await session.load()
            return session

        group = await self.repository.authenticate(invitation_code)
        if group is None or group.id != group_id:
            raise AuthError("Invitation code does not match this group")
        return await self.open(group)

    async def close(self) -> None:
        for gid, (session, _) in list(self._data.items()):
            self._close(gid, session)
        self._data.clear()
        if self._repository is not None:
            await self._repository.close()


# Global registry instance
session_registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    return session_registry
