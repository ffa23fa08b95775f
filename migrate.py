#!/usr/bin/env python3
"""
Manage database migrations with Alembic.
"""
import sys
from pathlib import Path

from alembic.config import Config
from alembic import command
from ledgerpos.core.config import settings

root_dir = Path(__file__).parent


def get_alembic_config() -> Config:
    """Alembic config pointed at the configured database."""
    alembic_cfg = Config(str(root_dir / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(root_dir / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    return alembic_cfg


def create_migration(message: str):
    command.revision(get_alembic_config(), autogenerate=True, message=message)
    print(f"Migration created: {message}")


def run_migrations():
    command.upgrade(get_alembic_config(), "head")
    print("Migrations applied")


def rollback_migration():
    command.downgrade(get_alembic_config(), "-1")
    print("Last migration rolled back")


def show_history():
    command.history(get_alembic_config())


def show_current():
    command.current(get_alembic_config())


USAGE = """Usage:
  python migrate.py create 'message'  # create a migration
  python migrate.py upgrade            # apply pending migrations
  python migrate.py downgrade          # roll back the last migration
  python migrate.py history            # show history
  python migrate.py current            # show current revision"""


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    action = sys.argv[1]

    if action == "create":
        if len(sys.argv) < 3:
            print("Error: a migration message is required")
            sys.exit(1)
        create_migration(sys.argv[2])
    elif action == "upgrade":
        run_migrations()
    elif action == "downgrade":
        rollback_migration()
    elif action == "history":
        show_history()
    elif action == "current":
        show_current()
    else:
        print(f"Unknown action: {action}")
        print(USAGE)
        sys.exit(1)
