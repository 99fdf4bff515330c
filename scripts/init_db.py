from __future__ import annotations

import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy import inspect

from mazayago.db.engine import make_engine

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def alembic_config() -> Config:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    return cfg


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to ``target_revision``."""
    command.upgrade(alembic_config(), target_revision)


def report() -> None:
    """Print the applied revision and the giveaway tables that exist."""
    engine = make_engine()
    with engine.connect() as connection:
        revision = MigrationContext.configure(connection).get_current_revision()
        tables = sorted(inspect(connection).get_table_names())
    engine.dispose()
    print(f"Database revision: {revision or 'none'}")
    print("Tables:", ", ".join(t for t in tables if t != "alembic_version"))


def main(argv: list[str]) -> None:
    upgrade_db(argv[0] if argv else "head")
    report()


if __name__ == "__main__":
    main(sys.argv[1:])
