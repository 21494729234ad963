from __future__ import annotations

import json
from pathlib import Path

import pytest
from sqlalchemy import create_engine

from caseintake import config
from caseintake.application.services.master_data_service import DEFAULT_SEED_PATH, MasterDataService
from caseintake.infrastructure.db.models_sqlalchemy import Base
from caseintake.infrastructure.db.repositories.master_data_repo import MasterDataRepository
from caseintake.infrastructure.db.session import SessionFactory, make_session_scope


def make_session_factory(db_path: Path) -> SessionFactory:
    engine = create_engine(f"sqlite:///{db_path.as_posix()}", future=True)
    Base.metadata.create_all(engine)
    return make_session_scope(engine)


def _make_service(db_path: Path) -> MasterDataService:
    return MasterDataService(repo=MasterDataRepository(), session_factory=make_session_factory(db_path))


def test_default_seed_ships_inside_the_package() -> None:
    package_dir = Path(config.__file__).resolve().parent

    assert DEFAULT_SEED_PATH.is_file()
    assert DEFAULT_SEED_PATH.is_relative_to(package_dir)


def test_seed_defaults_loads_every_category(tmp_path: Path) -> None:
    service = _make_service(tmp_path / "master_seed.db")

    written = service.seed_defaults()

    assert written["treatments"] == 7
    assert written["eye_selection"] == 3
    assert written["complaint_categories"] == 3
    assert written["complaints"] == 13
    counts = service.category_counts()
    assert counts["anesthesia_types"] == 4
    assert counts["complaints"] == 13


def test_seed_defaults_is_idempotent(tmp_path: Path) -> None:
    service = _make_service(tmp_path / "master_seed_twice.db")
    service.seed_defaults()
    first = service.category_counts()

    service.seed_defaults()

    assert service.category_counts() == first


def test_seed_defaults_if_empty_only_seeds_once(tmp_path: Path) -> None:
    service = _make_service(tmp_path / "master_seed_empty.db")

    assert service.seed_defaults_if_empty() is True
    assert service.seed_defaults_if_empty() is False


def test_fetch_categories_returns_ordered_options_and_errors(tmp_path: Path) -> None:
    service = _make_service(tmp_path / "master_fetch.db")
    service.seed_defaults()

    batch = service.fetch_categories(["eye_selection", "medicines", "colours"])

    assert [item.label for item in batch.options["eye_selection"]] == ["Right Eye", "Left Eye", "Both Eyes"]
    assert len(batch.options["medicines"]) == 8
    assert "colours" not in batch.options
    assert batch.errors == {"colours": "Unknown master data category: colours"}


def test_empty_category_is_returned_as_empty_list(tmp_path: Path) -> None:
    service = _make_service(tmp_path / "master_empty.db")

    assert service.list_options("routes") == []
    with pytest.raises(ValueError, match="Unknown master data category"):
        service.list_options("colours")


def test_list_complaint_groups_nests_complaints(tmp_path: Path) -> None:
    service = _make_service(tmp_path / "master_groups.db")
    service.seed_defaults()

    groups = service.list_complaint_groups()

    assert [group.category_name for group in groups] == ["Vision", "Pain & Irritation", "Discharge & Redness"]
    assert [item.label for item in groups[1].complaints] == [
        "Eye pain",
        "Itching",
        "Foreign body sensation",
        "Photophobia",
    ]
    assert all(item.value for group in groups for item in group.complaints)


def test_seed_file_with_unknown_category_is_partially_applied(tmp_path: Path) -> None:
    seed_path = tmp_path / "seed.json"
    seed_path.write_text(
        json.dumps(
            {
                "categories": {
                    "routes": [{"code": "ORAL", "name": "Oral"}, {"code": "", "name": "Blank"}],
                    "colours": [{"code": "RED", "name": "Red"}],
                },
                "complaints": [],
            }
        ),
        encoding="utf-8",
    )
    service = _make_service(tmp_path / "master_custom.db")

    written = service.seed_defaults(seed_path)

    assert written["routes"] == 1
    assert "colours" not in written
    assert [item.label for item in service.list_options("routes")] == ["Oral"]


def test_missing_seed_file_writes_nothing(tmp_path: Path) -> None:
    service = _make_service(tmp_path / "master_missing.db")

    assert service.seed_defaults(tmp_path / "absent.json") == {}
    assert service.category_counts() == {}
