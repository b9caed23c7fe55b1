"""
Per-row editing behaviour for the RSVP guest list
"""

import asyncio
import logging
from typing import List, Optional

from app.core.errors import ValidationError
from app.schemas.guest import AgeCategory, DietaryPreferences, Guest, GuestFieldsUpdate, GuestId, Location
from app.services.rsvp_service import RsvpSession

logger = logging.getLogger(__name__)


class GuestRow:
    """View-model of one guest row.

    Typing only changes the in-memory draft. Committing events (leaving a text
    field, ticking a checkbox, picking an age category) also autosave the row
    when the guest already exists remotely. Location toggles are never sent on
    their own; they go out with ``RsvpSession.submit``.
    """

    def __init__(self, session: RsvpSession, guest_id: GuestId):
        self.session = session
        self.guest_id = guest_id

    @property
    def guest(self) -> Guest:
        return self.session.get_guest(self.guest_id)

    @property
    def name(self) -> str:
        return self.guest.name

    @property
    def dietary_preferences(self) -> DietaryPreferences:
        return self.guest.dietary_preferences

    @property
    def age_category(self) -> AgeCategory:
        return self.guest.age_category

    @property
    def is_persisted(self) -> bool:
        return not self.guest_id.is_draft

    @property
    def is_new(self) -> bool:
        """A fresh, still unnamed draft row (gets input focus)"""
        return self.guest_id.is_draft and not self.guest.name

    @property
    def available_locations(self) -> List[Location]:
        return list(self.session.group.locations)

    @property
    def is_single_location(self) -> bool:
        return len(self.session.group.locations) == 1

    def is_attending(self, location) -> bool:
        return Location.parse(location) in self.session.attendance(self.guest_id)

    # -------- Text inputs --------

    def input_name(self, value: str) -> None:
        self.session.update_guest(self.guest_id, name=value)

    def input_other_dietary(self, value: str) -> None:
        dietary = self.dietary_preferences.model_copy(update={"other": value})
        self.session.update_guest(self.guest_id, dietary_preferences=dietary)

    def blur(self) -> Optional[asyncio.Task]:
        return self.commit()

    # -------- Committing inputs --------

    def set_dietary_flag(self, flag: str, value: bool) -> Optional[asyncio.Task]:
        if flag not in DietaryPreferences.FLAGS:
            raise ValidationError(f"Unknown dietary flag {flag!r}", flag=flag)
        dietary = self.dietary_preferences.model_copy(update={flag: bool(value)})
        self.session.update_guest(self.guest_id, dietary_preferences=dietary)
        return self.commit()

    def set_age_category(self, age_category) -> Optional[asyncio.Task]:
        self.session.update_guest(self.guest_id, age_category=AgeCategory(age_category))
        return self.commit()

    def toggle_location(self, location):
        return self.session.toggle_location(self.guest_id, location)

    def apply(self, update: GuestFieldsUpdate) -> Optional[asyncio.Task]:
        """Apply a partial edit as the matching input events would"""
        self.session.update_guest(
            self.guest_id,
            name=update.name,
            dietary_preferences=update.dietary_preferences,
            age_category=update.age_category,
        )
        if update.commit:
            return self.commit()
        return None

    def commit(self) -> Optional[asyncio.Task]:
        if not self.is_persisted:
            return None
        logger.debug(f"Autosaving guest {self.guest_id.key}")
        return self.session.autosave_guest(self.guest_id)

    async def remove(self) -> bool:
        return await self.session.remove_guest(self.guest_id)
