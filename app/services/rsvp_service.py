"""
RSVP reconciliation engine

One ``RsvpSession`` owns the editable draft of one guest group: the ordered
guest list and the per-guest location selections. Edits stay in memory and
are mirrored to the local draft store; the remote store is written by
``submit`` (plus removals and the per-guest autosave of persisted guests).
"""

import asyncio
import logging
from typing import Callable, Dict, FrozenSet, List, Optional, Set

from app.core.config import settings
from app.core.errors import (
    AutosaveError,
    EmptyNameError,
    GuestDeleteError,
    GuestSaveError,
    LoadError,
    LocationNotInvitedError,
    NoLocationError,
    NotesSaveError,
    PartySizeError,
    RemoteError,
    RsvpError,
    SessionStateError,
    UnknownGuestError,
)
from app.core.i18n import translate
from app.schemas.guest import (
    AgeCategory,
    DietaryPreferences,
    DraftId,
    Guest,
    GuestGroup,
    GuestId,
    Location,
)
from app.schemas.rsvp import ErrorMessage, GuestRowView, RsvpSnapshot, RsvpStatus
from app.services.repositories import GuestRepository
from app.state.draft_store import DraftStore

logger = logging.getLogger(__name__)

Observer = Callable[["RsvpSession"], None]


class RsvpSession:
    """Draft/merge/submit state machine for one guest group"""

    def __init__(
        self,
        group: GuestGroup,
        repository: GuestRepository,
        draft_store: DraftStore,
        reload_delay: Optional[float] = None,
        on_reload: Optional[Callable[[], None]] = None,
    ):
        self.group = group
        self.repository = repository
        self.draft_store = draft_store
        self.reload_delay = settings.RSVP_RELOAD_DELAY_SECONDS if reload_delay is None else reload_delay
        self._on_reload = on_reload

        self.status = RsvpStatus.UNINITIALIZED
        self.guests: List[Guest] = []
        self.locations: Dict[GuestId, Set[Location]] = {}
        self.notes = group.additional_notes or ""
        self.error: Optional[RsvpError] = None
        self.closed = False

        self._observers: List[Observer] = []
        self._tasks: Set[asyncio.Task] = set()
        self._removing: Set[GuestId] = set()
        self._reload_handle: Optional[asyncio.TimerHandle] = None

    # -------- Observation --------

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Call ``callback`` after every change; returns the unsubscribe function"""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._observers):
            try:
                callback(self)
            except Exception as e:
                logger.error(f"RSVP observer failed for group {self.group.id}: {e}")

    @property
    def loading(self) -> bool:
        return self.status in (RsvpStatus.UNINITIALIZED, RsvpStatus.LOADING)

    @property
    def saving(self) -> bool:
        return self.status == RsvpStatus.SUBMITTING

    @property
    def success(self) -> bool:
        return self.status == RsvpStatus.SUCCEEDED

    @property
    def code(self) -> str:
        return self.group.invitation_code

    def get_guest(self, guest_id: GuestId) -> Guest:
        for guest in self.guests:
            if guest.id == guest_id:
                return guest
        raise UnknownGuestError(f"No guest {guest_id.key} in group {self.group.id}")

    def attendance(self, guest_id: GuestId) -> FrozenSet[Location]:
        return frozenset(self.locations.get(guest_id, ()))

    def _ordered(self, selected) -> List[Location]:
        return [location for location in self.group.locations if location in selected]

    # -------- Loading --------

    async def load(self) -> bool:
        """Merge remote guests, local drafts and local location selections"""
        if self.status not in (RsvpStatus.UNINITIALIZED, RsvpStatus.LOAD_FAILED):
            raise SessionStateError(f"RSVP session is {self.status.value}")

        self.status = RsvpStatus.LOADING
        self.error = None
        self._notify()

        try:
            remote_guests = await self.repository.list_guests(self.group.id, self.code)
        except RemoteError as e:
            if self.closed:
                return False
            logger.warning(f"Could not load guests for group {self.group.id}: {e}")
            self.guests = []
            self.locations = {}
            self.error = LoadError(e)
            self.status = RsvpStatus.LOAD_FAILED
            self._notify()
            return False
        if self.closed:
            return False

        guests = list(remote_guests)
        known = {guest.id for guest in guests}
        for draft in self.draft_store.load_draft_guests(self.group.id):
            if draft.id not in known:
                guests.append(draft)
                known.add(draft.id)

        # A guest with no recorded selection attends everything invited
        invited = self.group.invited_locations
        locations: Dict[GuestId, Set[Location]] = {}
        for guest in guests:
            selected = {location for location in guest.attending_locations if location in invited}
            locations[guest.id] = selected or set(invited)

        # Local selections only ever add to the derived set
        for guest_id, selected in self.draft_store.load_location_map(self.group.id).items():
            if guest_id in locations:
                locations[guest_id] |= {location for location in selected if location in invited}

        self.guests = guests
        self.locations = locations
        self.status = RsvpStatus.READY
        logger.info(
            f"Loaded RSVP for group {self.group.id}: "
            f"{len(remote_guests)} saved guest(s), {len(guests) - len(remote_guests)} draft(s)"
        )
        self._persist()
        self._notify()
        return True

    def reset(self) -> None:
        """Drop all in-memory state so ``load`` can run again"""
        self.status = RsvpStatus.UNINITIALIZED
        self.guests = []
        self.locations = {}
        self.notes = self.group.additional_notes or ""
        self.error = None

    # -------- Interactive edits --------

    def _require_ready(self) -> None:
        if self.status != RsvpStatus.READY:
            raise SessionStateError(f"RSVP session is {self.status.value}")

    def _persist(self) -> None:
        self.draft_store.save_draft_guests(self.group.id, self.guests)
        self.draft_store.save_location_map(self.group.id, self.locations)

    def _changed(self) -> None:
        self._persist()
        self._notify()

    def add_guest(self) -> Guest:
        """Append an unnamed draft guest attending every invited location"""
        self._require_ready()
        guest = Guest(
            id=DraftId(),
            guest_group_id=self.group.id,
            attending_locations=list(self.group.locations),
        )
        self.guests.append(guest)
        self.locations[guest.id] = set(self.group.locations)
        self._changed()
        return guest

    def update_guest(
        self,
        guest_id: GuestId,
        *,
        name: Optional[str] = None,
        dietary_preferences: Optional[DietaryPreferences] = None,
        age_category: Optional[AgeCategory] = None,
    ) -> Guest:
        self._require_ready()
        changes = {}
        if name is not None:
            changes["name"] = name
        if dietary_preferences is not None:
            changes["dietary_preferences"] = dietary_preferences.model_copy()
        if age_category is not None:
            changes["age_category"] = AgeCategory(age_category)

        guest = self.get_guest(guest_id)
        updated = guest.model_copy(update=changes)
        self.guests[self.guests.index(guest)] = updated
        self._changed()
        return updated

    def set_notes(self, notes: str) -> None:
        self._require_ready()
        self.notes = notes
        self._notify()

    def toggle_location(self, guest_id: GuestId, location) -> FrozenSet[Location]:
        """Add ``location`` to the guest's selection if absent, remove it if present"""
        self._require_ready()
        try:
            location = Location.parse(location)
        except ValueError:
            raise LocationNotInvitedError(f"Unknown location {location!r}", location=str(location)) from None
        if location not in self.group.invited_locations:
            raise LocationNotInvitedError(f"{location.value} is not invited", location=location.value)
        guest = self.get_guest(guest_id)

        selected = self.locations.setdefault(guest_id, set())
        if location in selected:
            selected.remove(location)
        else:
            selected.add(location)
        # Drafts have no remote value, their own field mirrors the selection
        if guest.id.is_draft:
            self.guests[self.guests.index(guest)] = guest.model_copy(
                update={"attending_locations": self._ordered(selected)}
            )
        self._changed()
        return frozenset(selected)

    def _drop(self, guest_id: GuestId) -> None:
        self.guests = [guest for guest in self.guests if guest.id != guest_id]
        self.locations.pop(guest_id, None)
        self._changed()

    async def remove_guest(self, guest_id: GuestId) -> bool:
        """Drafts vanish locally; persisted guests are deleted remotely first"""
        self._require_ready()
        guest = self.get_guest(guest_id)
        if guest.id.is_draft:
            self._drop(guest.id)
            return True

        self._removing.add(guest.id)
        try:
            await self.repository.delete_guest(guest.id.remote_id, self.group.id, self.code)
        except RemoteError as e:
            if self.closed:
                return False
            logger.warning(f"Could not delete guest {guest.id.remote_id}: {e}")
            self.error = GuestDeleteError(e, name=guest.name)
            self._notify()
            return False
        finally:
            self._removing.discard(guest.id)
        if self.closed or self.status != RsvpStatus.READY:
            return False

        logger.info(f"Removed guest {guest.id.remote_id} from group {self.group.id}")
        self._drop(guest.id)
        return True

    def autosave_guest(self, guest_id: GuestId) -> Optional[asyncio.Task]:
        """Push a persisted guest's fields to the remote store without waiting.

        The location selection is not part of this write; it is only sent by
        ``submit``.
        """
        self._require_ready()
        guest = self.get_guest(guest_id)
        if guest.id.is_draft or not guest.name.strip():
            return None

        task = asyncio.get_running_loop().create_task(self._autosave(guest))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def _autosave(self, guest: Guest) -> None:
        try:
            await self.repository.update_guest(
                guest.id.remote_id,
                self.group.id,
                self.code,
                guest.name.strip(),
                guest.attending_locations,
                guest.dietary_preferences,
                guest.age_category,
            )
        except RemoteError as e:
            if self.closed:
                return
            logger.warning(f"Autosave failed for guest {guest.id.remote_id}: {e}")
            self.error = AutosaveError(e, name=guest.name)
            self._notify()

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled() or task.exception() is None:
            return
        logger.error(f"Background RSVP task failed for group {self.group.id}: {task.exception()!r}")
        if not self.closed:
            self.error = RsvpError(str(task.exception()))
            self._notify()

    # -------- Submission --------

    def _validate(self, guests: List[Guest]) -> None:
        for guest in guests:
            if not guest.name.strip():
                raise EmptyNameError("Every guest needs a name")
        for guest in guests:
            if not self.locations.get(guest.id):
                raise NoLocationError("Every guest needs at least one location", name=guest.name.strip())

    def _fail(self, error: RsvpError) -> bool:
        if self.closed:
            return False
        logger.warning(f"RSVP submission failed for group {self.group.id}: {error.code} {error.detail}")
        self.error = error
        self.status = RsvpStatus.READY
        self._notify()
        return False

    def _mark_saved(self, old_id: GuestId, saved: Guest, selected: List[Location]) -> None:
        for index, guest in enumerate(self.guests):
            if guest.id == old_id:
                self.guests[index] = guest.model_copy(update={
                    "id": saved.id,
                    "attending_locations": list(selected),
                })
                break
        if saved.id != old_id:
            self.locations[saved.id] = self.locations.pop(old_id, set(selected))
        self._persist()

    async def submit(self) -> bool:
        """Validate, then write every guest, the party size and the notes in order.

        Stops at the first remote failure; writes that already succeeded stay
        committed. Returns True once everything is saved.
        """
        self._require_ready()
        if self._removing:
            raise SessionStateError("A guest removal is still in progress")
        self.error = None
        guests = list(self.guests)
        try:
            self._validate(guests)
        except (EmptyNameError, NoLocationError) as e:
            self.error = e
            self._notify()
            return False

        snapshot = {guest.id: self._ordered(self.locations[guest.id]) for guest in guests}
        notes = self.notes
        self.status = RsvpStatus.SUBMITTING
        self._notify()

        for guest in guests:
            selected = snapshot[guest.id]
            name = guest.name.strip()
            try:
                if guest.id.is_draft:
                    saved = await self.repository.create_guest(
                        self.group.id, self.code, name, selected,
                        guest.dietary_preferences, guest.age_category,
                    )
                else:
                    saved = await self.repository.update_guest(
                        guest.id.remote_id, self.group.id, self.code, name, selected,
                        guest.dietary_preferences, guest.age_category,
                    )
            except RemoteError as e:
                return self._fail(GuestSaveError(e, name=name))
            if self.closed:
                return False
            self._mark_saved(guest.id, saved, selected)

        total = len(guests)
        if total > self.group.party_size:
            try:
                await self.repository.update_group_party_size(self.group.id, self.code, total)
            except RemoteError as e:
                return self._fail(PartySizeError(e, party_size=total))
            self.group = self.group.model_copy(update={"party_size": total})

        try:
            await self.repository.update_group_notes(self.group.id, self.code, notes)
        except RemoteError as e:
            return self._fail(NotesSaveError(e))
        self.group = self.group.model_copy(update={"additional_notes": notes})
        if self.closed:
            return False

        self.draft_store.clear(self.group.id)
        self.status = RsvpStatus.SUCCEEDED
        logger.info(f"RSVP submitted for group {self.group.id} with {total} guest(s)")
        self._notify()
        self._schedule_reload()
        return True

    def _schedule_reload(self) -> None:
        loop = asyncio.get_running_loop()
        self._reload_handle = loop.call_later(self.reload_delay, self._reload)

    def _reload(self) -> None:
        self._reload_handle = None
        if self.closed:
            return
        if self._on_reload is not None:
            self._on_reload()
            return
        self.reset()
        task = asyncio.get_running_loop().create_task(self._load_if_idle())
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    async def _load_if_idle(self) -> None:
        # Another caller may have started loading since the reset
        if self.status == RsvpStatus.UNINITIALIZED:
            await self.load()

    # -------- Lifetime --------

    def close(self) -> None:
        """Detach observers; results that arrive later are ignored"""
        self.closed = True
        self._observers.clear()
        if self._reload_handle is not None:
            self._reload_handle.cancel()
            self._reload_handle = None

    def snapshot(self) -> RsvpSnapshot:
        error = None
        if self.error is not None:
            error = ErrorMessage(
                code=self.error.code,
                message=translate(self.error.code, self.group.default_language, **self.error.params),
                params=self.error.params,
            )
        return RsvpSnapshot(
            group_id=self.group.id,
            group_name=self.group.name,
            status=self.status,
            loading=self.loading,
            saving=self.saving,
            success=self.success,
            available_locations=list(self.group.locations),
            guests=[
                GuestRowView(
                    key=guest.id.key,
                    is_draft=guest.id.is_draft,
                    name=guest.name,
                    locations=self._ordered(self.locations.get(guest.id, ())),
                    dietary_preferences=guest.dietary_preferences,
                    age_category=guest.age_category,
                )
                for guest in self.guests
            ],
            notes=self.notes,
            error=error,
        )
