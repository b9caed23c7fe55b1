"""
Pydantic schemas package
"""

from .common import *
from .guest import *
from .rsvp import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "Location",
    "AgeCategory",
    "DietaryPreferences",
    "DraftId",
    "PersistedId",
    "GuestId",
    "parse_guest_key",
    "Guest",
    "GuestGroup",
    "LoginRequest",
    "GuestFieldsUpdate",
    "NotesUpdate",
    "RsvpStatus",
    "ErrorMessage",
    "GuestRowView",
    "RsvpSnapshot",
]
