"""
Database models package
"""

from .guest import GuestGroup, Guest
from .draft import DraftEntry

__all__ = ["GuestGroup", "Guest", "DraftEntry"]
