"""
Configuration settings for the application
"""

import os
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./wedding_rsvp.db")

    # Remote guest store: "sql", "firestore" or "rpc"
    REMOTE_BACKEND: str = os.getenv("REMOTE_BACKEND", "sql")
    FIREBASE_CREDENTIALS_JSON: str | None = os.getenv("FIREBASE_CREDENTIALS_JSON")
    FIREBASE_CREDENTIALS_FILE: str | None = os.getenv("FIREBASE_CREDENTIALS_FILE")
    FIREBASE_CREDENTIALS_B64: str | None = os.getenv("FIREBASE_CREDENTIALS_B64")
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "http://localhost:54321")
    SUPABASE_PUBLISHABLE_KEY: str = os.getenv("SUPABASE_PUBLISHABLE_KEY", "")
    REMOTE_TIMEOUT_SECONDS: float = 10.0

    # Local draft store: "sql" or "memory"
    DRAFT_STORE_BACKEND: str = os.getenv("DRAFT_STORE_BACKEND", "sql")

    # RSVP sessions
    RSVP_RELOAD_DELAY_SECONDS: float = 5.0
    SESSION_TTL_SECONDS: int = 60 * 60
    SESSION_MAX_ACTIVE: int = 256

    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5000",
        "http://localhost:8000",
    ]

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 60

    class Config:
        env_file = ".env"

settings = Settings()
