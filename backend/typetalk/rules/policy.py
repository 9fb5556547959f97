"""
Authorization Policy Engine

Decides whether a single document operation is admitted. Evaluation is pure:
all state comes from the request (identity, snapshots, resolved lookups), so
one engine can be shared across threads and requests.

Usage:
    engine = PolicyEngine()
    paths = engine.required_lookups(Operation.CREATE, "messages", None, message)
    lookups = {path: store.get(path.collection, path.document_id) for path in paths}
    decision = engine.evaluate(AccessRequest(..., lookups=lookups))
"""

from __future__ import annotations

from typing import Mapping, Optional, Union

from typetalk.core.logging import get_logger
from typetalk.rules.collections import Collection
from typetalk.rules.models import (
    AccessRequest,
    Decision,
    Document,
    DocumentPath,
    Identity,
    Operation,
)
from typetalk.rules.ruleset import RULES, CollectionRules
from typetalk.rules.values import is_server_assigned

logger = get_logger(__name__)


def _parse_operation(operation: Union[Operation, str]) -> Optional[Operation]:
    try:
        return Operation(operation)
    except ValueError:
        return None


class PolicyEngine:
    """Evaluates access requests against a rule set (default-deny)."""

    def __init__(self, rules: Optional[Mapping[Collection, CollectionRules]] = None) -> None:
        self.rules = dict(RULES if rules is None else rules)

    def rules_for(self, collection: Union[Collection, str]) -> Optional[CollectionRules]:
        declared = Collection.parse(collection)
        if declared is None:
            return None
        return self.rules.get(declared)

    def required_lookups(
        self,
        operation: Union[Operation, str],
        collection: Union[Collection, str],
        existing: Optional[Document] = None,
        proposed: Optional[Document] = None,
    ) -> list[DocumentPath]:
        """Documents the caller must resolve before calling ``evaluate``."""
        op = _parse_operation(operation)
        rules = self.rules_for(collection)
        if op is None or rules is None:
            return []
        return rules.lookups(op, existing, proposed)

    def evaluate(self, request: AccessRequest) -> Decision:
        decision = Decision.of(self._admit(request))
        if not decision.allowed:
            logger.debug(
                "Denied %s on %s/%s for uid=%s",
                request.operation.value,
                request.collection,
                request.document_id or "*",
                request.uid,
            )
        return decision

    def _admit(self, request: AccessRequest) -> bool:
        rules = self.rules_for(request.collection)
        if rules is None:
            return False

        if not request.identity.is_signed_in:
            return False

        operation = request.operation
        if operation is Operation.LIST:
            return rules.list_allowed
        if operation is Operation.READ:
            return rules.read(request)
        if operation is Operation.CREATE:
            return self._admit_create(rules, request)
        if operation is Operation.UPDATE:
            return self._admit_update(rules, request)
        if operation is Operation.DELETE:
            return request.existing is not None and rules.delete(request)
        return False

    def _admit_create(self, rules: CollectionRules, request: AccessRequest) -> bool:
        if request.existing is not None or request.proposed is None:
            return False
        for name in rules.required_on_create:
            if name not in request.proposed:
                return False
        if not _enum_fields_valid(rules, request.proposed):
            return False
        return rules.create(request)

    def _admit_update(self, rules: CollectionRules, request: AccessRequest) -> bool:
        if request.existing is None or request.proposed is None:
            return False
        changed = request.changed_fields()
        if changed & rules.immutable_fields:
            return False
        if rules.mutable_fields is not None and not changed <= rules.mutable_fields:
            return False
        if not _enum_fields_valid(rules, request.proposed):
            return False
        return rules.update(request)


def _enum_fields_valid(rules: CollectionRules, document: Document) -> bool:
    for name, allowed in rules.enum_fields.items():
        if name not in document:
            continue
        value = document[name]
        if is_server_assigned(value) or not isinstance(value, str) or value not in allowed:
            return False
    return True


_default_engine = PolicyEngine()


def evaluate(
    operation: Union[Operation, str],
    collection: Union[Collection, str],
    identity: Optional[Identity],
    existing: Optional[Document] = None,
    proposed: Optional[Document] = None,
    lookups: Optional[Mapping[DocumentPath, Optional[Document]]] = None,
    document_id: Optional[str] = None,
) -> Decision:
    """Evaluate one operation with the default rule set.

    Unknown operations and collections are denied rather than raising.
    """
    op = _parse_operation(operation)
    if op is None:
        return Decision.DENY
    request = AccessRequest(
        operation=op,
        collection=collection.value if isinstance(collection, Collection) else str(collection),
        identity=identity or Identity.anonymous(),
        document_id=document_id,
        existing=existing,
        proposed=proposed,
        lookups=dict(lookups or {}),
    )
    return _default_engine.evaluate(request)


def get_policy_engine() -> PolicyEngine:
    """Get the shared PolicyEngine instance."""
    return _default_engine
