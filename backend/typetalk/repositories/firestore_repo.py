"""
Firestore Repository

Document store backed by Cloud Firestore through the Firebase Admin SDK.
Admin credentials bypass Firestore's own security rules, so every client
operation must go through ``AccessService`` which evaluates the TypeTalk rule
set before calling into this store.

Data Structure:
    users/{uid}                  - User profiles
    recommendations/{recId}      - Match recommendations (written by the backend)
    chats/{chatId}               - Chat rooms with a participants array
    messages/{messageId}         - Chat messages referencing chats/{chatId}
    mbti_tests/{testId}          - MBTI test results
    emails/{email_lower}         - Email -> uid lookup (Admin SDK only)
"""

from typing import Any, Optional

import firebase_admin
from firebase_admin import firestore
from google.cloud.firestore_v1 import Client


class FirestoreDocumentStore:
    """Document store using Firestore for persistence."""

    def __init__(self, db: Optional[Client] = None) -> None:
        if db is None:
            # Initialize Firebase Admin SDK with Application Default Credentials
            if not firebase_admin._apps:
                firebase_admin.initialize_app()
            db = firestore.client()

        self.db = db

    def get(self, collection: str, document_id: str) -> Optional[dict[str, Any]]:
        """
        Get a document snapshot.

        Args:
            collection: Collection name
            document_id: Document ID within the collection

        Returns:
            Document data or None if not found
        """
        doc = self.db.collection(collection).document(document_id).get()
        if not doc.exists:
            return None
        return doc.to_dict()

    def create(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        """
        Write a new document. SERVER_TIMESTAMP values are resolved by Firestore.

        Raises:
            google.api_core.exceptions.AlreadyExists: If the document exists
        """
        self.db.collection(collection).document(document_id).create(data)

    def update(self, collection: str, document_id: str, patch: dict[str, Any]) -> None:
        """Merge a field patch into an existing document."""
        self.db.collection(collection).document(document_id).update(patch)

    def delete(self, collection: str, document_id: str) -> None:
        self.db.collection(collection).document(document_id).delete()

    def list(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        """List all documents of a collection as (id, data) pairs."""
        return [(doc.id, doc.to_dict()) for doc in self.db.collection(collection).stream()]
