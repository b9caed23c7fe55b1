"""
Firebase initialization and Firestore document helpers
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any
import base64
import os

import firebase_admin
from firebase_admin import credentials, firestore

from app.core.config import settings

GROUPS_COLLECTION = "guest_groups"
GUESTS_COLLECTION = "guests"


def _load_credentials() -> dict[str, Any]:
    info: dict[str, Any] | None = None
    if settings.FIREBASE_CREDENTIALS_JSON:
        info = json.loads(settings.FIREBASE_CREDENTIALS_JSON)
    elif settings.FIREBASE_CREDENTIALS_B64:
        decoded = base64.b64decode(settings.FIREBASE_CREDENTIALS_B64).decode("utf-8")
        info = json.loads(decoded)
    elif settings.FIREBASE_CREDENTIALS_FILE and os.path.exists(settings.FIREBASE_CREDENTIALS_FILE):
        with open(settings.FIREBASE_CREDENTIALS_FILE, "r", encoding="utf-8") as f:
            info = json.load(f)

    if not info:
        raise RuntimeError("Firebase credentials not provided. Set FIREBASE_CREDENTIALS_FILE, FIREBASE_CREDENTIALS_JSON, or FIREBASE_CREDENTIALS_B64")
    return info


@lru_cache(maxsize=1)
def get_firestore_client():
    """Initialize the Firebase app once and return a cached Firestore client."""
    if not firebase_admin._apps:
        firebase_admin.initialize_app(credentials.Certificate(_load_credentials()))
    return firestore.client()


def group_document(fs, group_id: str):
    """``guest_groups/{group_id}``"""
    return fs.collection(GROUPS_COLLECTION).document(group_id)


def guests_collection(fs, group_id: str):
    """``guest_groups/{group_id}/guests``"""
    return group_document(fs, group_id).collection(GUESTS_COLLECTION)
