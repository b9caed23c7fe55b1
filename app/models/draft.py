"""
Draft entry model backing the local draft store
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text

from app.core.db import Base

class DraftEntry(Base):
    __tablename__ = "draft_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
