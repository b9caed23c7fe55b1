"""
RSVP session state schemas
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.schemas.guest import AgeCategory, DietaryPreferences, Location

class RsvpStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    LOAD_FAILED = "load_failed"
    READY = "ready"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"

class ErrorMessage(BaseModel):
    """Error banner content"""
    code: str
    message: str
    params: Dict[str, Any] = {}

class GuestRowView(BaseModel):
    """One guest row as shown to the guest group"""
    key: str
    is_draft: bool
    name: str
    locations: List[Location]
    dietary_preferences: DietaryPreferences
    age_category: AgeCategory

class RsvpSnapshot(BaseModel):
    """Observable RSVP state pushed to clients"""
    group_id: str
    group_name: str
    status: RsvpStatus
    loading: bool
    saving: bool
    success: bool
    available_locations: List[Location]
    guests: List[GuestRowView]
    notes: str
    error: Optional[ErrorMessage] = None
