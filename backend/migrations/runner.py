"""
Firestore Migration Runner

A simple migration system for Firestore that tracks executed migrations
in a _migrations collection.

Usage:
    python -m migrations.runner migrate      # Run pending migrations
    python -m migrations.runner status       # Show migration status
    python -m migrations.runner rollback ID  # Undo an executed migration
    python -m migrations.runner create NAME  # Create new migration file
"""

import argparse
import importlib.util
from datetime import datetime, timezone
from pathlib import Path
from types import ModuleType
from typing import Optional

import firebase_admin
from firebase_admin import firestore
from google.cloud.firestore_v1 import Client

from typetalk.core.config import get_settings
from typetalk.rules.collections import COLLECTION_MIGRATIONS

MIGRATIONS_DIR = Path(__file__).parent

_db: Optional[Client] = None


def get_db() -> Client:
    """Get the Firestore client, initializing Firebase on first use."""
    global _db
    if _db is None:
        if not firebase_admin._apps:
            project_id = get_settings().firebase_project_id
            options = {"projectId": project_id} if project_id else None
            firebase_admin.initialize_app(options=options)
        _db = firestore.client()
    return _db


def get_executed_migrations(db: Client) -> set[str]:
    """Get set of already executed migration IDs."""
    docs = db.collection(COLLECTION_MIGRATIONS).stream()
    return {doc.id for doc in docs}


def mark_migration_executed(db: Client, migration_id: str) -> None:
    """Mark a migration as executed."""
    db.collection(COLLECTION_MIGRATIONS).document(migration_id).set({
        "executed_at": datetime.now(timezone.utc).isoformat(),
        "status": "completed",
    })


def get_pending_migrations(db: Client, migrations_dir: Path = MIGRATIONS_DIR) -> list[tuple[str, Path]]:
    """Get list of pending migrations (not yet executed)."""
    executed = get_executed_migrations(db)

    pending = []
    for file in sorted(migrations_dir.glob("m_*.py")):
        migration_id = file.stem  # e.g., "m_20251019_001_migrate_existing_emails"
        if migration_id not in executed:
            pending.append((migration_id, file))

    return pending


def _load_migration(migration_id: str, file_path: Path) -> ModuleType:
    spec = importlib.util.spec_from_file_location(migration_id, file_path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def run_migration(db: Client, migration_id: str, file_path: Path) -> bool:
    """Run a single migration."""
    print(f"Running migration: {migration_id}")

    try:
        module = _load_migration(migration_id, file_path)

        if hasattr(module, "upgrade"):
            module.upgrade(db)
            mark_migration_executed(db, migration_id)
            print(f"  ✓ Completed: {migration_id}")
            return True
        else:
            print(f"  ✗ Error: {migration_id} has no 'upgrade' function")
            return False

    except Exception as e:
        print(f"  ✗ Error running {migration_id}: {e}")
        return False


def cmd_migrate(db: Client, migrations_dir: Path = MIGRATIONS_DIR) -> int:
    """Run all pending migrations. Returns the number that completed."""
    pending = get_pending_migrations(db, migrations_dir)

    if not pending:
        print("No pending migrations.")
        return 0

    print(f"Found {len(pending)} pending migration(s):\n")

    success_count = 0
    for migration_id, file_path in pending:
        if run_migration(db, migration_id, file_path):
            success_count += 1
        else:
            print("\nStopping due to error.")
            break

    print(f"\nCompleted {success_count}/{len(pending)} migrations.")
    return success_count


def cmd_status(db: Client, migrations_dir: Path = MIGRATIONS_DIR) -> None:
    """Show migration status."""
    executed = get_executed_migrations(db)

    all_migrations = sorted(migrations_dir.glob("m_*.py"))

    if not all_migrations:
        print("No migrations found.")
        return

    print("Migration Status:\n")
    for file in all_migrations:
        migration_id = file.stem
        status = "✓ executed" if migration_id in executed else "○ pending"
        print(f"  {status}  {migration_id}")


def cmd_rollback(db: Client, migration_id: str, migrations_dir: Path = MIGRATIONS_DIR) -> bool:
    """Run an executed migration's downgrade and forget that it ran."""
    if migration_id not in get_executed_migrations(db):
        print(f"Not executed: {migration_id}")
        return False

    file_path = migrations_dir / f"{migration_id}.py"
    if not file_path.exists():
        print(f"  ✗ Error: {file_path.name} not found")
        return False

    print(f"Rolling back migration: {migration_id}")

    try:
        module = _load_migration(migration_id, file_path)
        if not hasattr(module, "downgrade"):
            print(f"  ✗ Error: {migration_id} has no 'downgrade' function")
            return False
        module.downgrade(db)
    except Exception as e:
        print(f"  ✗ Error rolling back {migration_id}: {e}")
        return False

    db.collection(COLLECTION_MIGRATIONS).document(migration_id).delete()
    print(f"  ✓ Rolled back: {migration_id}")
    return True


def cmd_create(name: str, migrations_dir: Path = MIGRATIONS_DIR) -> Path:
    """Create a new migration file."""
    timestamp = datetime.now().strftime("%Y%m%d")

    # Find next sequence number for today
    existing = list(migrations_dir.glob(f"m_{timestamp}_*.py"))
    seq = len(existing) + 1

    safe_name = name.lower().replace(" ", "_").replace("-", "_")
    migration_id = f"m_{timestamp}_{seq:03d}_{safe_name}"

    file_path = migrations_dir / f"{migration_id}.py"

    template = f'''"""
Migration: {name}
Created: {datetime.now().isoformat()}

Description:
    Describe what this migration does.
"""

from google.cloud.firestore_v1 import SERVER_TIMESTAMP, Client

from typetalk.core.exceptions import MigrationError
from typetalk.rules.collections import Collection

MIGRATION_ID = "{migration_id}"
COLLECTION = Collection.USERS.value

# Firestore batch write limit
BATCH_SIZE = 500


def _changes(data: dict) -> dict:
    """Fields to write on one document; empty means leave it alone."""
    return {{}}


def upgrade(db: Client) -> None:
    """
    Apply ``_changes`` to every document in COLLECTION.

    Args:
        db: Firestore client instance
    """
    pending = []
    for doc in db.collection(COLLECTION).stream():
        changes = _changes(doc.to_dict() or {{}})
        if changes:
            pending.append((doc.reference, {{**changes, "updatedAt": SERVER_TIMESTAMP}}))

    for i in range(0, len(pending), BATCH_SIZE):
        batch = db.batch()
        for doc_ref, data in pending[i:i + BATCH_SIZE]:
            batch.update(doc_ref, data)
        batch.commit()

    print(f"  Updated {{len(pending)}} document(s) in {{COLLECTION}}")


def downgrade(db: Client) -> None:
    """
    Reverse the migration.

    Args:
        db: Firestore client instance
    """
    raise MigrationError(f"{{MIGRATION_ID}} cannot be rolled back")
'''

    file_path.write_text(template)
    print(f"Created migration: {file_path}")
    return file_path


def main() -> None:
    parser = argparse.ArgumentParser(description="Firestore Migration Runner")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("migrate", help="Run pending migrations")
    subparsers.add_parser("status", help="Show migration status")

    rollback_parser = subparsers.add_parser("rollback", help="Undo an executed migration")
    rollback_parser.add_argument("migration_id", help="Migration id (file name without .py)")

    create_parser = subparsers.add_parser("create", help="Create new migration")
    create_parser.add_argument("name", help="Migration name (e.g., 'backfill_mbti_type')")

    args = parser.parse_args()

    if args.command == "migrate":
        cmd_migrate(get_db())
    elif args.command == "status":
        cmd_status(get_db())
    elif args.command == "rollback":
        cmd_rollback(get_db(), args.migration_id)
    elif args.command == "create":
        cmd_create(args.name)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
