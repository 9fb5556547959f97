"""
TypeTalk Rule Set

One rule record per declared collection. The evaluator in
``typetalk.rules.policy`` applies the field constraints (immutable fields,
mutable-field allowlist, enumerations) before calling the predicates below.

    users/{uid}              read: signed in, write: self
    recommendations/{id}     read/update: owner (userId), created by the backend
    chats/{chatId}           read: signed in, write: participants
    messages/{messageId}     read/create: participants of chats/{chatId}, update: sender
    mbti_tests/{testId}      read/create: owner (userId), never updated
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from typetalk.rules.collections import Collection
from typetalk.rules.models import AccessRequest, Document, DocumentPath, Operation
from typetalk.schemas.models import ACTION_TAKEN_VALUES, MBTI_CODES

Predicate = Callable[[AccessRequest], bool]
LookupPlanner = Callable[[Operation, Optional[Document], Optional[Document]], list[DocumentPath]]


def deny(request: AccessRequest) -> bool:
    return False


def signed_in(request: AccessRequest) -> bool:
    return request.uid is not None


def no_lookups(
    operation: Operation,
    existing: Optional[Document],
    proposed: Optional[Document],
) -> list[DocumentPath]:
    return []


@dataclass(frozen=True)
class CollectionRules:
    read: Predicate = deny
    create: Predicate = deny
    update: Predicate = deny
    delete: Predicate = deny
    # Collection-level reads are only open when `read` never looks at the document.
    list_allowed: bool = False
    immutable_fields: frozenset[str] = frozenset()
    # None means any field may change on update.
    mutable_fields: Optional[frozenset[str]] = None
    enum_fields: Mapping[str, frozenset[str]] = field(default_factory=dict)
    required_on_create: frozenset[str] = frozenset()
    lookups: LookupPlanner = no_lookups


# =============================================================================
# Helpers
# =============================================================================


def _field(document: Optional[Document], name: str):
    return (document or {}).get(name)


def _document_id_matches(request: AccessRequest) -> bool:
    return request.document_id is None or request.document_id == request.uid


def _chat_path(chat_id) -> Optional[DocumentPath]:
    if not isinstance(chat_id, str) or not chat_id:
        return None
    return DocumentPath(Collection.CHATS.value, chat_id)


def _is_participant(uid: Optional[str], chat: Optional[Document]) -> bool:
    participants = _field(chat, "participants")
    if uid is None or not isinstance(participants, (list, tuple)):
        return False
    return uid in participants


def _is_chat_participant(request: AccessRequest, chat_id) -> bool:
    path = _chat_path(chat_id)
    if path is None:
        return False
    # An unresolved or missing chat fails closed
    return _is_participant(request.uid, request.lookup(path))


# =============================================================================
# users
# =============================================================================


def _user_create(request: AccessRequest) -> bool:
    return _document_id_matches(request) and _field(request.proposed, "uid") == request.uid


def _user_update(request: AccessRequest) -> bool:
    return _document_id_matches(request) and _field(request.existing, "uid") == request.uid


USER_RULES = CollectionRules(
    read=signed_in,
    create=_user_create,
    update=_user_update,
    list_allowed=True,
    immutable_fields=frozenset({"uid", "email", "createdAt"}),
    enum_fields={"mbtiType": MBTI_CODES},
    required_on_create=frozenset({"mbtiType"}),
)


# =============================================================================
# recommendations
# =============================================================================


def _owns_recommendation(request: AccessRequest) -> bool:
    return request.uid is not None and _field(request.existing, "userId") == request.uid


RECOMMENDATION_RULES = CollectionRules(
    read=_owns_recommendation,
    update=_owns_recommendation,
    immutable_fields=frozenset({"userId", "score", "reasons"}),
    mutable_fields=frozenset({"viewedAt", "actionTaken"}),
    enum_fields={"actionTaken": ACTION_TAKEN_VALUES},
)


# =============================================================================
# chats
# =============================================================================


def _chat_create(request: AccessRequest) -> bool:
    return _is_participant(request.uid, request.proposed)


def _chat_update(request: AccessRequest) -> bool:
    return _is_participant(request.uid, request.existing)


CHAT_RULES = CollectionRules(
    read=signed_in,
    create=_chat_create,
    update=_chat_update,
    list_allowed=True,
    immutable_fields=frozenset({"participants", "createdBy", "createdAt"}),
)


# =============================================================================
# messages
# =============================================================================


def _message_read(request: AccessRequest) -> bool:
    return _is_chat_participant(request, _field(request.existing, "chatId"))


def _message_create(request: AccessRequest) -> bool:
    return (
        _field(request.proposed, "senderId") == request.uid
        and _is_chat_participant(request, _field(request.proposed, "chatId"))
    )


def _message_update(request: AccessRequest) -> bool:
    return request.uid is not None and _field(request.existing, "senderId") == request.uid


def _message_lookups(
    operation: Operation,
    existing: Optional[Document],
    proposed: Optional[Document],
) -> list[DocumentPath]:
    if operation is Operation.READ:
        path = _chat_path(_field(existing, "chatId"))
    elif operation is Operation.CREATE:
        path = _chat_path(_field(proposed, "chatId"))
    else:
        path = None
    return [path] if path else []


MESSAGE_RULES = CollectionRules(
    read=_message_read,
    create=_message_create,
    update=_message_update,
    immutable_fields=frozenset({"senderId", "chatId", "createdAt"}),
    lookups=_message_lookups,
)


# =============================================================================
# mbti_tests
# =============================================================================


def _owns_test(request: AccessRequest) -> bool:
    return request.uid is not None and _field(request.existing, "userId") == request.uid


def _test_create(request: AccessRequest) -> bool:
    return request.uid is not None and _field(request.proposed, "userId") == request.uid


MBTI_TEST_RULES = CollectionRules(
    read=_owns_test,
    create=_test_create,
    enum_fields={"result": MBTI_CODES},
    required_on_create=frozenset({"result"}),
)


RULES: dict[Collection, CollectionRules] = {
    Collection.USERS: USER_RULES,
    Collection.RECOMMENDATIONS: RECOMMENDATION_RULES,
    Collection.CHATS: CHAT_RULES,
    Collection.MESSAGES: MESSAGE_RULES,
    Collection.MBTI_TESTS: MBTI_TEST_RULES,
}
