"""
Guest-facing RSVP routes
"""

from fastapi import APIRouter, Depends, Request

from app.core.errors import RsvpError, UnknownGuestError
from app.core.i18n import translate
from app.schemas.guest import GuestFieldsUpdate, LoginRequest, NotesUpdate, parse_guest_key
from app.schemas.rsvp import RsvpStatus
from app.services.guest_row import GuestRow
from app.services.rsvp_service import RsvpSession
from app.services.session_registry import SessionRegistry, get_registry
from app.utils.security import enforce_rate_limit, invitation_code
from app.utils.responses import success_response, rsvp_error_response

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])

def _language(request: Request, session: RsvpSession = None) -> str:
    if session is not None:
        return session.group.default_language
    return request.headers.get("Accept-Language", "en")

def _snapshot(session: RsvpSession) -> dict:
    return session.snapshot().model_dump(mode="json")

def _row(session: RsvpSession, guest_key: str) -> GuestRow:
    try:
        guest_id = parse_guest_key(guest_key)
    except ValueError:
        raise UnknownGuestError(f"Malformed guest key {guest_key!r}") from None
    session.get_guest(guest_id)
    return GuestRow(session, guest_id)

def _failure_response(session: RsvpSession):
    """Error envelope for the operation that just failed, with the current state"""
    error = session.error or RsvpError("Operation did not complete")
    return rsvp_error_response(error, session.group.default_language, details=_snapshot(session))

def _loaded_response(session: RsvpSession):
    if session.status == RsvpStatus.LOAD_FAILED:
        return _failure_response(session)
    return success_response(message="RSVP loaded", data=_snapshot(session))

@router.post("/login")
async def login(
    request: Request,
    login_data: LoginRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    """Authenticate with an invitation code and open the group's RSVP"""
    try:
        session = await registry.login(login_data.invitation_code)
    except RsvpError as e:
        return rsvp_error_response(e, _language(request))
    return _loaded_response(session)

@router.get("/{group_id}")
async def get_rsvp(
    group_id: str,
    request: Request,
    code: str = Depends(invitation_code),
    registry: SessionRegistry = Depends(get_registry)
):
    """Current RSVP state of a guest group"""
    try:
        session = await registry.resume(group_id, code)
    except RsvpError as e:
        return rsvp_error_response(e, _language(request))
    return _loaded_response(session)

@router.post("/{group_id}/guests")
async def add_guest(
    group_id: str,
    request: Request,
    code: str = Depends(invitation_code),
    registry: SessionRegistry = Depends(get_registry)
):
    """Append an empty draft guest"""
    session = None
    try:
        session = await registry.resume(group_id, code)
        guest = session.add_guest()
    except RsvpError as e:
        return rsvp_error_response(e, _language(request, session))
    return success_response(
        message="Guest added",
        data={"guest_key": guest.id.key, "rsvp": _snapshot(session)},
        status_code=201
    )

@router.patch("/{group_id}/guests/{guest_key}")
async def update_guest(
    group_id: str,
    guest_key: str,
    request: Request,
    update: GuestFieldsUpdate,
    code: str = Depends(invitation_code),
    registry: SessionRegistry = Depends(get_registry)
):
    """Edit a guest row; ``commit`` autosaves guests that already exist remotely"""
    session = None
    try:
        session = await registry.resume(group_id, code)
        _row(session, guest_key).apply(update)
    except RsvpError as e:
        return rsvp_error_response(e, _language(request, session))
    return success_response(message="Guest updated", data=_snapshot(session))

@router.post("/{group_id}/guests/{guest_key}/locations/{location}")
async def toggle_location(
    group_id: str,
    guest_key: str,
    location: str,
    request: Request,
    code: str = Depends(invitation_code),
    registry: SessionRegistry = Depends(get_registry)
):
    """Flip one location in a guest's selection"""
    session = None
    try:
        session = await registry.resume(group_id, code)
        _row(session, guest_key).toggle_location(location)
    except RsvpError as e:
        return rsvp_error_response(e, _language(request, session))
    return success_response(message="Location updated", data=_snapshot(session))

@router.delete("/{group_id}/guests/{guest_key}")
async def remove_guest(
    group_id: str,
    guest_key: str,
    request: Request,
    code: str = Depends(invitation_code),
    registry: SessionRegistry = Depends(get_registry)
):
    """Remove a guest; saved guests are deleted remotely first"""
    session = None
    try:
        session = await registry.resume(group_id, code)
        removed = await _row(session, guest_key).remove()
    except RsvpError as e:
        return rsvp_error_response(e, _language(request, session))
    if not removed:
        return _failure_response(session)
    return success_response(message="Guest removed", data=_snapshot(session))

@router.put("/{group_id}/notes")
async def set_notes(
    group_id: str,
    request: Request,
    notes_data: NotesUpdate,
    code: str = Depends(invitation_code),
    registry: SessionRegistry = Depends(get_registry)
):
    """Replace the free-text notes (saved on submit)"""
    session = None
    try:
        session = await registry.resume(group_id, code)
        session.set_notes(notes_data.notes)
    except RsvpError as e:
        return rsvp_error_response(e, _language(request, session))
    return success_response(message="Notes updated", data=_snapshot(session))

@router.post("/{group_id}/submit")
async def submit_rsvp(
    group_id: str,
    request: Request,
    code: str = Depends(invitation_code),
    registry: SessionRegistry = Depends(get_registry)
):
    """Validate and save the whole RSVP"""
    session = None
    try:
        session = await registry.resume(group_id, code)
        submitted = await session.submit()
    except RsvpError as e:
        return rsvp_error_response(e, _language(request, session))
    if not submitted:
        return _failure_response(session)

    language = session.group.default_language
    message = translate("rsvp.success", language)
    refresh = translate("rsvp.success_refresh", language, seconds=int(session.reload_delay))
    return success_response(message=f"{message} {refresh}", data=_snapshot(session))
