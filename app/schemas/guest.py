"""
Guest-related Pydantic schemas
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, ClassVar, FrozenSet, List, Literal, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

class Location(str, Enum):
    """Wedding celebration a guest group can be invited to"""
    SARDINIA = "sardinia"
    TUNISIA = "tunisia"
    NICE = "nice"

    @classmethod
    def parse(cls, value: Union[str, "Location"]) -> "Location":
        """Case-insensitive lookup; unknown identifiers are rejected"""
        if isinstance(value, Location):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown location: {value!r}") from None

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def flag_emoji(self) -> str:
        return _FLAGS[self]


_FLAGS = {
    Location.SARDINIA: "🇮🇹",
    Location.TUNISIA: "🇹🇳",
    Location.NICE: "🇫🇷",
}


class AgeCategory(str, Enum):
    ADULT = "adult"
    CHILD_UNDER_3 = "child_under_3"
    CHILD_UNDER_10 = "child_under_10"

    @property
    def display_name(self) -> str:
        return {
            AgeCategory.ADULT: "Adult",
            AgeCategory.CHILD_UNDER_3: "Child (< 3 years)",
            AgeCategory.CHILD_UNDER_10: "Child (< 10 years)",
        }[self]


class DietaryPreferences(BaseModel):
    """Five dietary flags plus free text"""
    vegetarian: bool = False
    vegan: bool = False
    halal: bool = False
    no_pork: bool = False
    gluten_free: bool = False
    other: str = ""

    FLAGS: ClassVar[Tuple[str, ...]] = ("vegetarian", "vegan", "halal", "no_pork", "gluten_free")

    def has_any(self) -> bool:
        return any(getattr(self, flag) for flag in self.FLAGS) or bool(self.other)

    def format_display(self) -> str:
        """Human-readable summary, ``-`` when nothing is set"""
        labels = {
            "vegetarian": "🥗 Vegetarian",
            "vegan": "🌱 Vegan",
            "halal": "☪️ Halal",
            "no_pork": "🚫🐷 No Pork",
            "gluten_free": "🌾 Gluten-Free",
        }
        items = [labels[flag] for flag in self.FLAGS if getattr(self, flag)]
        if self.other:
            items.append(f"📝 {self.other}")
        return ", ".join(items) if items else "-"


# -------- Guest identity --------

class DraftId(BaseModel):
    """Locally generated id of a guest that does not exist remotely yet"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["draft"] = "draft"
    local_id: str = Field(default_factory=lambda: uuid4().hex)

    @property
    def is_draft(self) -> bool:
        return True

    @property
    def key(self) -> str:
        return f"draft:{self.local_id}"


class PersistedId(BaseModel):
    """Id assigned by the remote store"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["persisted"] = "persisted"
    remote_id: str

    @property
    def is_draft(self) -> bool:
        return False

    @property
    def key(self) -> str:
        return f"persisted:{self.remote_id}"


GuestId = Annotated[Union[DraftId, PersistedId], Field(discriminator="kind")]


def parse_guest_key(key: str) -> Union[DraftId, PersistedId]:
    """Inverse of ``GuestId.key``"""
    kind, sep, value = key.partition(":")
    if not sep or not value:
        raise ValueError(f"Malformed guest key: {key!r}")
    if kind == "draft":
        return DraftId(local_id=value)
    if kind == "persisted":
        return PersistedId(remote_id=value)
    raise ValueError(f"Unknown guest key kind: {kind!r}")


# -------- Entities --------

class Guest(BaseModel):
    """One invitee of a guest group"""
    id: GuestId
    guest_group_id: str
    name: str = ""
    attending_locations: List[Location] = Field(default_factory=list)
    dietary_preferences: DietaryPreferences = Field(default_factory=DietaryPreferences)
    age_category: AgeCategory = AgeCategory.ADULT
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("attending_locations", mode="before")
    @classmethod
    def _parse_locations(cls, value):
        return [Location.parse(item) for item in value or []]


class GuestGroup(BaseModel):
    """A household / party holding one invitation code"""
    id: str
    name: str
    email: Optional[str] = None
    invitation_code: str
    party_size: int = Field(default=0, ge=0)
    locations: List[Location] = Field(min_length=1)
    default_language: str = "en"
    additional_notes: Optional[str] = None

    @field_validator("locations", mode="before")
    @classmethod
    def _dedupe_locations(cls, value):
        seen: List[Location] = []
        for item in value or []:
            location = Location.parse(item)
            if location not in seen:
                seen.append(location)
        return seen

    @property
    def invited_locations(self) -> FrozenSet[Location]:
        return frozenset(self.locations)


class LoginRequest(BaseModel):
    """Invitation-code login"""
    invitation_code: str


class GuestFieldsUpdate(BaseModel):
    """Partial edit of one guest row"""
    name: Optional[str] = None
    dietary_preferences: Optional[DietaryPreferences] = None
    age_category: Optional[AgeCategory] = None
    # True when the edit comes from a blur / change event
    commit: bool = False


class NotesUpdate(BaseModel):
    notes: str = ""
