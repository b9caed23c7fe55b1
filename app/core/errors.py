"""
RSVP error taxonomy

Every error carries a translation ``code`` and the ``params`` used to format
the localized message, so the API layer never has to guess what to show.
"""

from typing import Any, Dict, Optional


class RsvpError(Exception):
    """Base class for all RSVP errors"""

    code = "rsvp.error_generic"

    def __init__(self, detail: str = "", **params: Any):
        super().__init__(detail or self.code)
        self.detail = detail
        self.params: Dict[str, Any] = params


# -------- Validation (local, pre-flight) --------

class ValidationError(RsvpError):
    code = "rsvp.error_validation"


class EmptyNameError(ValidationError):
    code = "rsvp.error_empty_names"


class NoLocationError(ValidationError):
    code = "rsvp.error_no_locations"


class LocationNotInvitedError(ValidationError):
    code = "rsvp.error_location_not_invited"


# -------- Local draft storage --------

class LocalStorageError(RsvpError):
    """Read/write/parse failure on the local draft store. Never fatal."""

    code = "rsvp.error_local_storage"


# -------- Remote repository --------

class RemoteError(RsvpError):
    code = "rsvp.error_generic"


class NetworkError(RemoteError):
    code = "rsvp.error_network"


class AuthError(RemoteError):
    code = "rsvp.error_code_invalid"


class ServerError(RemoteError):
    code = "rsvp.error_server"


class NotFoundError(ServerError):
    code = "rsvp.error_not_found"


class ParseError(RemoteError):
    code = "rsvp.error_parse"


# -------- Engine operations --------

class StepError(RsvpError):
    """A remote failure wrapped with the operation that was running"""

    def __init__(self, cause: Optional[RemoteError] = None, **params: Any):
        super().__init__(str(cause) if cause else "", **params)
        self.cause = cause


class LoadError(StepError):
    code = "rsvp.error_loading"


class GuestSaveError(StepError):
    code = "rsvp.error_saving_guest"


class PartySizeError(StepError):
    code = "rsvp.error_party_size"


class NotesSaveError(StepError):
    code = "rsvp.error_notes"


class GuestDeleteError(StepError):
    code = "rsvp.error_deleting_guest"


class AutosaveError(StepError):
    code = "rsvp.error_autosave"


class SessionStateError(RsvpError):
    code = "rsvp.error_busy"


class UnknownGuestError(RsvpError):
    code = "rsvp.error_unknown_guest"
