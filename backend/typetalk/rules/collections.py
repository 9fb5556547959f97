"""Firestore collection names.

The five client-facing collections are declared by the rule set; anything else
(including ``emails`` and ``_migrations``, which only the Admin SDK writes) is
undeclared and closed to clients.
"""

from enum import Enum
from typing import Optional


class Collection(str, Enum):
    USERS = "users"
    RECOMMENDATIONS = "recommendations"
    CHATS = "chats"
    MESSAGES = "messages"
    MBTI_TESTS = "mbti_tests"

    @classmethod
    def parse(cls, name: object) -> Optional["Collection"]:
        """Return the declared collection for ``name`` or None."""
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            return None


# Admin-only collections
COLLECTION_EMAILS = "emails"
COLLECTION_MIGRATIONS = "_migrations"
