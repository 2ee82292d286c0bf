#!/usr/bin/env python3
"""
Schema management for the floor database.

Usage:
    python migrate.py create "description of changes"  # Autogenerate a revision from the models
    python migrate.py upgrade                          # Apply all pending revisions
    python migrate.py downgrade                        # Roll back one revision
    python migrate.py current                          # Print the database revision
    python migrate.py stamp [revision]                 # Adopt a create_all database (default: head)
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from alembic import command

from nightbase.core.migrations import get_alembic_config, get_current_revision, run_migrations, stamp_database


def main() -> int:
    if len(sys.argv) < 2:
        print(__doc__)
        return 1

    cmd = sys.argv[1].lower()
    if cmd == "create":
        if len(sys.argv) < 3:
            print('Usage: python migrate.py create "description of changes"')
            return 1
        command.revision(get_alembic_config(), message=sys.argv[2], autogenerate=True)
        print("Review the generated file in alembic/versions/ before upgrading")
    elif cmd == "upgrade":
        run_migrations()
    elif cmd == "downgrade":
        command.downgrade(get_alembic_config(), "-1")
    elif cmd == "current":
        print(get_current_revision() or "<none>")
    elif cmd == "stamp":
        stamp_database(sys.argv[2] if len(sys.argv) > 2 else "head")
    else:
        print(f"Error: Unknown command '{cmd}'")
        print(__doc__)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
