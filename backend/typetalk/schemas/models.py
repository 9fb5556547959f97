"""
TypeTalk Models

Enumerations shared by the rule set and pydantic models for the API and the
email lookup collection.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class MbtiType(str, Enum):
    """The 16 canonical MBTI personality codes."""

    ISTJ = "ISTJ"
    ISFJ = "ISFJ"
    INFJ = "INFJ"
    INTJ = "INTJ"
    ISTP = "ISTP"
    ISFP = "ISFP"
    INFP = "INFP"
    INTP = "INTP"
    ESTP = "ESTP"
    ESFP = "ESFP"
    ENFP = "ENFP"
    ENTP = "ENTP"
    ESTJ = "ESTJ"
    ESFJ = "ESFJ"
    ENFJ = "ENFJ"
    ENTJ = "ENTJ"


class ActionTaken(str, Enum):
    """What a user did with a recommendation."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"


MBTI_CODES = frozenset(t.value for t in MbtiType)
ACTION_TAKEN_VALUES = frozenset(a.value for a in ActionTaken)


# =============================================================================
# Lookup Records
# =============================================================================


class EmailLookup(BaseModel):
    """A row of the emails/{email_lower} lookup collection."""

    email: str = Field(..., description="Lower-cased email address (also the document id)")
    uid: str = Field(..., description="Firebase Auth uid owning the address")

    @classmethod
    def for_user(cls, email: str, uid: str) -> "EmailLookup":
        return cls(email=email.strip().lower(), uid=uid)


# =============================================================================
# Request Models
# =============================================================================


class DocumentWrite(BaseModel):
    """Request model for creating or updating a document."""

    data: dict[str, Any] = Field(..., description="Document fields (create) or field patch (update)")
    server_timestamps: list[str] = Field(
        default_factory=list,
        description="Field names the server should set to the request time",
    )


class EvaluateRequest(BaseModel):
    """Request model for a dry-run rule evaluation."""

    operation: str = Field(..., description="read | create | update | delete | list")
    collection: str
    document_id: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    server_timestamps: list[str] = Field(default_factory=list)


# =============================================================================
# Response Models
# =============================================================================


class DocumentResponse(BaseModel):
    """Response model for a single document."""

    id: str
    collection: str
    data: dict[str, Any]


class DocumentListResponse(BaseModel):
    """Response model for a collection listing."""

    collection: str
    documents: list[DocumentResponse]


class EvaluateResponse(BaseModel):
    """Response model for a dry-run rule evaluation."""

    decision: str
    allowed: bool
