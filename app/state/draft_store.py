"""Local persistence for unsaved RSVP drafts.

Only draft guests (never persisted ones) and the per-guest location selections
are kept here, keyed by guest group id. Every read fails soft: a missing key, a
storage failure and a corrupt value all look like an empty draft.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Set

from pydantic import TypeAdapter, ValidationError

from app.core.errors import LocalStorageError
from app.schemas.guest import Guest, GuestId, Location, parse_guest_key
from app.state.storage import KeyValueStorage

logger = logging.getLogger(__name__)

GUESTS_KEY_PREFIX = "draft-guests:"
LOCATIONS_KEY_PREFIX = "draft-locations:"

LocationMap = Dict[GuestId, Set[Location]]

_guest_list = TypeAdapter(List[Guest])


def guests_key(group_id: str) -> str:
    return GUESTS_KEY_PREFIX + group_id


def locations_key(group_id: str) -> str:
    return LOCATIONS_KEY_PREFIX + group_id


class DraftStore:
    """Adapter between the RSVP engine and a key-value storage."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage

    def _read(self, key: str):
        raw = self.storage.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def _write(self, key: str, value) -> bool:
        try:
            self.storage.set(key, json.dumps(value, ensure_ascii=False))
            return True
        except (LocalStorageError, TypeError, ValueError) as e:
            logger.warning(f"Could not save draft {key}: {e}")
            return False

    def load_draft_guests(self, group_id: str) -> List[Guest]:
        """Draft guests for ``group_id`` in their saved order; ``[]`` on any failure."""
        key = guests_key(group_id)
        try:
            raw = self._read(key)
            if raw is None:
                return []
            guests = _guest_list.validate_python(raw)
        except (LocalStorageError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable draft {key}: {e}")
            return []
        return [guest for guest in guests if guest.id.is_draft]

    def save_draft_guests(self, group_id: str, guests: List[Guest]) -> bool:
        """Persist only the draft-id guests of ``guests``."""
        drafts = [guest.model_dump(mode="json") for guest in guests if guest.id.is_draft]
        return self._write(guests_key(group_id), drafts)

    def load_location_map(self, group_id: str) -> LocationMap:
        """Saved location selections; unreadable entries are skipped."""
        key = locations_key(group_id)
        try:
            raw = self._read(key)
        except (LocalStorageError, ValueError) as e:
            logger.warning(f"Ignoring unreadable draft {key}: {e}")
            return {}
        if not isinstance(raw, dict):
            return {}

        result: LocationMap = {}
        for guest_key, values in raw.items():
            try:
                guest_id = parse_guest_key(guest_key)
                result[guest_id] = {Location.parse(value) for value in values}
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping draft location entry {guest_key!r}: {e}")
        return result

    def save_location_map(self, group_id: str, location_map: LocationMap) -> bool:
        payload = {
            guest_id.key: sorted(location.value for location in locations)
            for guest_id, locations in location_map.items()
        }
        return self._write(locations_key(group_id), payload)

    def clear(self, group_id: str) -> None:
        for key in (guests_key(group_id), locations_key(group_id)):
            try:
                self.storage.remove(key)
            except LocalStorageError as e:
                logger.warning(f"Could not clear draft {key}: {e}")
