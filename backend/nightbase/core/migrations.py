"""Database migration utilities using Alembic."""
from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext

from .config import settings
from .db import build_engine

logger = logging.getLogger(__name__)


def get_alembic_config() -> Config:
    """Get Alembic configuration object."""
    # backend/ holds alembic.ini next to the nightbase package
    backend_dir = Path(__file__).parent.parent.parent
    alembic_ini_path = backend_dir / "alembic.ini"

    if not alembic_ini_path.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini_path}")

    alembic_cfg = Config(str(alembic_ini_path))
    alembic_cfg.set_main_option("script_location", str(backend_dir / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.DB_URL)
    # the app has already configured logging
    alembic_cfg.attributes["configure_logger"] = False
    return alembic_cfg


def run_migrations() -> None:
    """Run all pending database migrations."""
    try:
        logger.info("Running database migrations...")
        command.upgrade(get_alembic_config(), "head")
        logger.info("Database migrations completed successfully")
    except Exception as e:
        logger.error(f"Error running migrations: {e}")
        raise


def stamp_database(revision: str = "head") -> None:
    """
    Mark the database as being at ``revision`` without running any SQL.

    Used when a database was created with ``create_all`` and should be
    handed over to Alembic afterwards.
    """
    try:
        logger.info(f"Stamping database with revision: {revision}")
        command.stamp(get_alembic_config(), revision)
        logger.info(f"Database stamped successfully with revision: {revision}")
    except Exception as e:
        logger.error(f"Error stamping database: {e}")
        raise


def get_current_revision() -> str | None:
    """Get the current database revision."""
    engine = build_engine(settings.DB_URL)
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    except Exception as e:
        logger.warning(f"Could not get current revision: {e}")
        return None
    finally:
        engine.dispose()
