"""Value types passed to and returned from the policy engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from typetalk.rules.values import is_server_assigned

Document = Mapping[str, Any]


class Operation(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW

    @classmethod
    def of(cls, allowed: bool) -> "Decision":
        return cls.ALLOW if allowed else cls.DENY


@dataclass(frozen=True)
class Identity:
    """The requester. ``uid`` is only meaningful when ``authenticated``."""

    uid: Optional[str] = None
    authenticated: bool = False

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls()

    @classmethod
    def signed_in(cls, uid: str) -> "Identity":
        return cls(uid=uid, authenticated=True)

    @property
    def is_signed_in(self) -> bool:
        return self.authenticated and bool(self.uid)


@dataclass(frozen=True)
class DocumentPath:
    collection: str
    document_id: str

    def __str__(self) -> str:
        return f"{self.collection}/{self.document_id}"


@dataclass(frozen=True)
class AccessRequest:
    """
    One document operation to be admitted or refused.

    ``existing`` is the stored snapshot (None if absent); ``proposed`` is the
    full post-write field set for create and update. ``lookups`` holds the
    auxiliary documents the engine declared through ``required_lookups``.
    """

    operation: Operation
    collection: str
    identity: Identity
    document_id: Optional[str] = None
    existing: Optional[Document] = None
    proposed: Optional[Document] = None
    lookups: Mapping[DocumentPath, Optional[Document]] = field(default_factory=dict)

    @property
    def uid(self) -> Optional[str]:
        return self.identity.uid if self.identity.is_signed_in else None

    def lookup(self, path: DocumentPath) -> Optional[Document]:
        return self.lookups.get(path)

    def changed_fields(self) -> set[str]:
        """Fields added, removed or modified between existing and proposed.

        A server-assigned value always counts as a change: it resolves to the
        request time, never to the stored value.
        """
        before = self.existing or {}
        after = self.proposed or {}
        changed = set()
        for key in set(before) | set(after):
            if key not in before or key not in after:
                changed.add(key)
            elif is_server_assigned(after[key]) or before[key] != after[key]:
                changed.add(key)
        return changed
