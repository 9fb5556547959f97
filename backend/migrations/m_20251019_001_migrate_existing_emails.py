"""
Migration: migrate_existing_emails
Created: 2025-10-19

Description:
    Copies the email address of every existing Firebase Auth user into the
    emails lookup collection so sign-up can check for taken addresses.

    emails/{email_lower} = {email, uid, source, createdAt, updatedAt}

    Users without an email are skipped, and so are addresses that already
    have a lookup document. All new documents are written with batched
    writes (at most 500 per batch) and tagged with this migration's id in
    ``source``; downgrade only removes tagged documents.
"""

from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP, Client

from typetalk.core.config import get_settings
from typetalk.core.exceptions import MigrationError
from typetalk.schemas.models import EmailLookup

MIGRATION_ID = "m_20251019_001_migrate_existing_emails"

# Firestore batch write limit
BATCH_SIZE = 500


def _list_auth_users() -> list:
    try:
        return list(auth.list_users().iterate_all())
    except FirebaseError as e:
        raise MigrationError(f"Could not list Firebase Auth users: {e}") from e


def upgrade(db: Client) -> None:
    """
    Add an emails/{email_lower} document for every Auth user that lacks one.

    Args:
        db: Firestore client instance
    """
    collection = get_settings().email_lookup_collection
    users = _list_auth_users()
    print(f"  Found {len(users)} Auth user(s)")

    pending: list[tuple] = []
    seen: set[str] = set()

    try:
        for user_record in users:
            if not user_record.email:
                continue

            lookup = EmailLookup.for_user(user_record.email, user_record.uid)
            if lookup.email in seen:
                print(f"    Duplicate address in Auth, keeping first: {user_record.email}")
                continue
            seen.add(lookup.email)

            doc_ref = db.collection(collection).document(lookup.email)
            if doc_ref.get().exists:
                print(f"    Already exists: {user_record.email}")
                continue

            pending.append((doc_ref, {
                **lookup.model_dump(),
                "source": MIGRATION_ID,
                "createdAt": SERVER_TIMESTAMP,
                "updatedAt": SERVER_TIMESTAMP,
            }))
            print(f"    Will add: {user_record.email} -> {user_record.uid}")

        if not pending:
            print("  No new emails to add")
            return

        for i in range(0, len(pending), BATCH_SIZE):
            batch = db.batch()
            for doc_ref, data in pending[i:i + BATCH_SIZE]:
                batch.set(doc_ref, data)
            batch.commit()

    except google_exceptions.GoogleAPICallError as e:
        raise MigrationError(f"Email migration failed: {e}") from e

    print(f"  Added {len(pending)} email(s) to {collection}")


def downgrade(db: Client) -> None:
    """
    Remove the lookup documents this migration wrote.

    Documents created by sign-up (no ``source`` tag) are left in place, as are
    tagged documents whose uid no longer matches the Auth user.

    Args:
        db: Firestore client instance
    """
    collection = get_settings().email_lookup_collection
    removed_count = 0

    for user_record in _list_auth_users():
        if not user_record.email:
            continue

        doc_ref = db.collection(collection).document(user_record.email.strip().lower())
        doc = doc_ref.get()
        if not doc.exists:
            continue

        data = doc.to_dict() or {}
        if data.get("source") == MIGRATION_ID and data.get("uid") == user_record.uid:
            doc_ref.delete()
            removed_count += 1

    print(f"  Removed {removed_count} email(s) from {collection}")
