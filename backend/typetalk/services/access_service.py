"""
Access Service

Runs every client document operation through the policy engine before it
reaches the document store: resolve the existing snapshot, build the proposed
snapshot, resolve the lookups the engine declares, evaluate, then write.
"""

from __future__ import annotations

import re
from typing import Any, Optional, Protocol

from google.api_core import exceptions as google_exceptions

from typetalk.core.config import get_settings
from typetalk.core.exceptions import (
    DocumentExistsError,
    DocumentNotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from typetalk.core.logging import get_logger
from typetalk.rules.models import (
    AccessRequest,
    Decision,
    Document,
    DocumentPath,
    Identity,
    Operation,
)
from typetalk.rules.policy import PolicyEngine, get_policy_engine

logger = get_logger(__name__)

# Update patches are merged per top-level field; Firestore would read anything
# else (dots, backticks) as a nested field path.
SIMPLE_FIELD_NAME = re.compile(r"^[_a-zA-Z][_a-zA-Z0-9]*$")


class DocumentStore(Protocol):
    def get(self, collection: str, document_id: str) -> Optional[dict[str, Any]]: ...

    def create(self, collection: str, document_id: str, data: dict[str, Any]) -> None: ...

    def update(self, collection: str, document_id: str, patch: dict[str, Any]) -> None: ...

    def delete(self, collection: str, document_id: str) -> None: ...

    def list(self, collection: str) -> list[tuple[str, dict[str, Any]]]: ...


def _check_field_names(patch: dict[str, Any]) -> None:
    invalid = sorted(
        str(key) for key in patch if not (isinstance(key, str) and SIMPLE_FIELD_NAME.match(key))
    )
    if invalid:
        raise ValidationError(
            f"Update fields must be top-level names: {', '.join(invalid)}",
            details={"fields": invalid},
        )


class AccessService:
    """Rule-enforcing gateway in front of a DocumentStore."""

    def __init__(self, store: DocumentStore, engine: Optional[PolicyEngine] = None) -> None:
        self.store = store
        self.engine = engine or get_policy_engine()

    # =========================================================================
    # Evaluation
    # =========================================================================

    def build_request(
        self,
        identity: Identity,
        operation: Operation,
        collection: str,
        document_id: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> AccessRequest:
        """
        Assemble an AccessRequest from the store's current state.

        Args:
            identity: Requester
            operation: Operation to evaluate
            collection: Target collection name
            document_id: Target document (None for list)
            data: Full document for create, field patch for update

        Returns:
            Request with existing/proposed snapshots and resolved lookups

        Raises:
            ValidationError: If the document id or an update field is not a plain name
        """
        if document_id is not None and "/" in document_id:
            raise ValidationError(f"Invalid document id: {document_id!r}")

        if self.engine.rules_for(collection) is None:
            # Undeclared collections are denied without touching the store
            return AccessRequest(
                operation=operation,
                collection=collection,
                identity=identity,
                document_id=document_id,
            )

        if operation is Operation.UPDATE:
            _check_field_names(data or {})

        existing: Optional[Document] = None
        if document_id is not None and operation is not Operation.LIST:
            existing = self.store.get(collection, document_id)

        proposed: Optional[Document] = None
        if operation is Operation.CREATE:
            proposed = dict(data or {})
        elif operation is Operation.UPDATE and existing is not None:
            proposed = {**existing, **(data or {})}

        lookups = self._resolve_lookups(
            self.engine.required_lookups(operation, collection, existing, proposed)
        )

        return AccessRequest(
            operation=operation,
            collection=collection,
            identity=identity,
            document_id=document_id,
            existing=existing,
            proposed=proposed,
            lookups=lookups,
        )

    def _resolve_lookups(
        self, paths: list[DocumentPath]
    ) -> dict[DocumentPath, Optional[Document]]:
        return {path: self.store.get(path.collection, path.document_id) for path in paths}

    def check(
        self,
        identity: Identity,
        operation: Operation,
        collection: str,
        document_id: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> Decision:
        """Evaluate without performing the operation."""
        request = self.build_request(identity, operation, collection, document_id, data)
        return self.engine.evaluate(request)

    def _authorize(self, request: AccessRequest) -> AccessRequest:
        if not self.engine.evaluate(request).allowed:
            logger.info(
                "Denied %s on %s/%s for uid=%s",
                request.operation.value,
                request.collection,
                request.document_id or "*",
                request.uid,
            )
            raise PermissionDeniedError(request)
        return request

    # =========================================================================
    # Document Operations
    # =========================================================================

    def get_document(self, identity: Identity, collection: str, document_id: str) -> dict[str, Any]:
        request = self._authorize(
            self.build_request(identity, Operation.READ, collection, document_id)
        )
        if request.existing is None:
            raise DocumentNotFoundError(f"{collection}/{document_id} not found")
        return dict(request.existing)

    def list_documents(self, identity: Identity, collection: str) -> list[tuple[str, dict[str, Any]]]:
        self._authorize(self.build_request(identity, Operation.LIST, collection))
        return self.store.list(collection)

    def create_document(
        self,
        identity: Identity,
        collection: str,
        document_id: str,
        data: dict[str, Any],
    ) -> None:
        if not document_id:
            raise ValidationError("Document id is required")
        self._authorize(
            self.build_request(identity, Operation.CREATE, collection, document_id, data)
        )
        try:
            self.store.create(collection, document_id, data)
        except google_exceptions.AlreadyExists:
            # Lost a race with a concurrent create of the same id
            raise DocumentExistsError(f"{collection}/{document_id} already exists")
        logger.info("Created %s/%s by uid=%s", collection, document_id, identity.uid)

    def update_document(
        self,
        identity: Identity,
        collection: str,
        document_id: str,
        patch: dict[str, Any],
    ) -> None:
        if not patch:
            raise ValidationError("Update requires at least one field")
        self._authorize(
            self.build_request(identity, Operation.UPDATE, collection, document_id, patch)
        )
        self.store.update(collection, document_id, patch)
        logger.info("Updated %s/%s by uid=%s", collection, document_id, identity.uid)

    def delete_document(self, identity: Identity, collection: str, document_id: str) -> None:
        self._authorize(self.build_request(identity, Operation.DELETE, collection, document_id))
        self.store.delete(collection, document_id)


# Singleton instance
_access_service: Optional[AccessService] = None


def get_document_store() -> DocumentStore:
    """Build the store selected by the DOCUMENT_STORE setting."""
    settings = get_settings()
    if settings.document_store == "memory":
        from typetalk.repositories.local_repo import MemoryDocumentStore

        return MemoryDocumentStore()

    from typetalk.repositories.firestore_repo import FirestoreDocumentStore

    return FirestoreDocumentStore()


def get_access_service() -> AccessService:
    """Get the singleton AccessService instance."""
    global _access_service
    if _access_service is None:
        _access_service = AccessService(get_document_store())
    return _access_service
