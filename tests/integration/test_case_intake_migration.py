from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any, cast

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect, text

from caseintake.bootstrap.startup import run_migrations, seed_master_data

MIGRATION_MODULE = "caseintake.infrastructure.db.migrations.versions.0001_case_intake_schema"


def _run_migration(connection, *, fn_name: str) -> None:
    module = cast(Any, importlib.import_module(MIGRATION_MODULE))
    context = MigrationContext.configure(connection)
    operations = Operations(context)
    original_op = module.op
    try:
        module.op = operations
        getattr(module, fn_name)()
    finally:
        module.op = original_op


def _table_names(connection) -> set[str]:
    rows = connection.execute(text("SELECT name FROM sqlite_master WHERE type='table'")).fetchall()
    return {str(row[0]) for row in rows}


def test_schema_migration_creates_and_drops_tables(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite:///{(tmp_path / 'schema.db').as_posix()}", future=True)

    with engine.begin() as connection:
        _run_migration(connection, fn_name="upgrade")

        assert {"ref_master_data", "patients", "clinical_case"} <= _table_names(connection)
        indexes = {index["name"] for index in inspect(connection).get_indexes("clinical_case")}
        assert "ix_clinical_case_patient_date" in indexes

        _run_migration(connection, fn_name="downgrade")

        assert not {"ref_master_data", "patients", "clinical_case"} & _table_names(connection)


def test_run_migrations_upgrades_to_head(tmp_path: Path) -> None:
    db_path = tmp_path / "startup.db"

    assert run_migrations(database_url=f"sqlite:///{db_path.as_posix()}", log_dir=tmp_path) is True

    engine = create_engine(f"sqlite:///{db_path.as_posix()}", future=True)
    with engine.connect() as connection:
        tables = _table_names(connection)
        version = connection.execute(text("SELECT version_num FROM alembic_version")).scalar_one()
    assert {"ref_master_data", "patients", "clinical_case"} <= tables
    assert version == "0001_case_intake_schema"


def test_run_migrations_failure_writes_error_log(tmp_path: Path) -> None:
    bad_url = f"sqlite:///{(tmp_path / 'missing' / 'nested' / 'app.db').as_posix()}"

    assert run_migrations(database_url=bad_url, log_dir=tmp_path / "logs") is False

    log_text = (tmp_path / "logs" / "migration_error.log").read_text(encoding="utf-8")
    assert "Migration error" in log_text
    assert bad_url in log_text


def test_seed_master_data_failure_is_logged_not_raised() -> None:
    class _BrokenMasterData:
        def seed_defaults_if_empty(self) -> bool:
            raise RuntimeError("disk full")

    class _Container:
        master_data_service = _BrokenMasterData()

    assert seed_master_data(_Container()) == {}
