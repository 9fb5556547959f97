# Firestore Migrations
#
# Versioned Python scripts that transform Firestore data, run with the
# Firebase Admin SDK (which bypasses client security rules).
#
# Usage:
#   python -m migrations.runner migrate
#   python -m migrations.runner status
#   python -m migrations.runner create <name>
