"""
Runtime settings.

Values come from environment variables; ``typetalk.main`` loads the project
``.env`` file with python-dotenv before the first call to ``get_settings``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from typetalk.rules.collections import COLLECTION_EMAILS


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() == "true"


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    demo_mode: bool = True
    document_store: str = "firestore"  # "firestore" | "memory"
    firebase_project_id: Optional[str] = None
    email_lookup_collection: str = COLLECTION_EMAILS

    @classmethod
    def from_env(cls) -> "Settings":
        environment = os.environ.get("ENVIRONMENT", "development")
        return cls(
            environment=environment,
            # Demo identities are opt-in in production
            demo_mode=_env_bool("DEMO_MODE", environment != "production"),
            document_store=os.environ.get("DOCUMENT_STORE", "firestore").lower(),
            firebase_project_id=os.environ.get("FIREBASE_PROJECT_ID") or None,
            email_lookup_collection=os.environ.get("EMAIL_LOOKUP_COLLECTION", COLLECTION_EMAILS),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings (read once)."""
    return Settings.from_env()
