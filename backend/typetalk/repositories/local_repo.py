import copy
import threading
from typing import Any, Optional

from google.api_core.exceptions import AlreadyExists

from typetalk.rules.values import resolve_server_values


class MemoryDocumentStore:
    """In-process document store for demo mode and tests.

    Mirrors Firestore write semantics: ``create`` fails on an existing document,
    ``update`` requires one and merges the patch, and server timestamps resolve
    at write time.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def get(self, collection: str, document_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(document_id)
            return copy.deepcopy(doc) if doc is not None else None

    def create(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            if document_id in docs:
                raise AlreadyExists(f"Document already exists: {collection}/{document_id}")
            docs[document_id] = copy.deepcopy(resolve_server_values(data))

    def set(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        """Unchecked write, as the Admin SDK would do it."""
        with self._lock:
            self._collections.setdefault(collection, {})[document_id] = copy.deepcopy(
                resolve_server_values(data)
            )

    def update(self, collection: str, document_id: str, patch: dict[str, Any]) -> None:
        with self._lock:
            docs = self._collections.get(collection, {})
            if document_id not in docs:
                raise KeyError(f"{collection}/{document_id}")
            docs[document_id].update(copy.deepcopy(resolve_server_values(patch)))

    def delete(self, collection: str, document_id: str) -> None:
        with self._lock:
            self._collections.get(collection, {}).pop(document_id, None)

    def list(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        with self._lock:
            docs = self._collections.get(collection, {})
            return [(doc_id, copy.deepcopy(data)) for doc_id, data in sorted(docs.items())]
