from __future__ import annotations

import logging
import traceback
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "infrastructure" / "db" / "migrations"


def alembic_config(database_url: str, root_dir: Path | None = None) -> Config:
    ini_path = (root_dir / "alembic.ini") if root_dir else None
    cfg = Config(str(ini_path)) if ini_path and ini_path.exists() else Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def run_migrations(*, database_url: str, log_dir: Path, root_dir: Path | None = None) -> bool:
    logger = logging.getLogger(__name__)
    try:
        command.upgrade(alembic_config(database_url, root_dir), "head")
        return True
    except Exception:  # noqa: BLE001
        logger.exception("Failed to run migrations")
        try:
            error_path = log_dir / "migration_error.log"
            error_path.parent.mkdir(parents=True, exist_ok=True)
            with error_path.open("a", encoding="utf-8") as handle:
                handle.write("\n--- Migration error ---\n")
                handle.write(f"DB: {database_url}\n")
                handle.write(f"Migrations: {MIGRATIONS_DIR}\n")
                handle.write(traceback.format_exc())
        except OSError:
            logger.exception("Failed to write migration error log")
        return False


def seed_master_data(container: Any) -> dict[str, int]:
    logger = logging.getLogger(__name__)
    try:
        container.master_data_service.seed_defaults_if_empty()
        counts = container.master_data_service.category_counts()
    except Exception:  # noqa: BLE001
        logger.exception("Failed to seed master data")
        return {}
    logger.info("Master data available: %s", counts)
    return counts
