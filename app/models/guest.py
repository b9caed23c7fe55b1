"""
Guest group and guest models
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship

from app.core.db import Base

def _uuid() -> str:
    return str(uuid.uuid4())

class GuestGroup(Base):
    __tablename__ = "guest_groups"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    invitation_code = Column(String(64), unique=True, nullable=False, index=True, default=_uuid)
    party_size = Column(Integer, nullable=False, default=1)
    locations = Column(JSON, nullable=False, default=list)  # ["sardinia", "nice", ...]
    default_language = Column(String(8), nullable=False, default="en")
    additional_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    guests = relationship(
        "Guest",
        back_populates="guest_group",
        cascade="all, delete-orphan",
        order_by="Guest.created_at",
    )

class Guest(Base):
    __tablename__ = "guests"

    id = Column(String(36), primary_key=True, default=_uuid)
    guest_group_id = Column(String(36), ForeignKey("guest_groups.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    attending_locations = Column(JSON, nullable=False, default=list)
    dietary_preferences = Column(JSON, nullable=False, default=dict)
    age_category = Column(String(32), nullable=False, default="adult")
    self_added = Column(Boolean, nullable=False, default=False)  # created from the RSVP page
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    guest_group = relationship("GuestGroup", back_populates="guests")
