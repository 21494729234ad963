from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine

from caseintake.application.dto.patient_dto import PatientCreateRequest
from caseintake.application.services.patient_service import PatientService
from caseintake.infrastructure.db.models_sqlalchemy import Base
from caseintake.infrastructure.db.repositories.case_repo import CaseRepository
from caseintake.infrastructure.db.repositories.patient_repo import PatientRepository
from caseintake.infrastructure.db.session import SessionFactory, make_session_scope


def make_session_factory(db_path: Path) -> SessionFactory:
    engine = create_engine(f"sqlite:///{db_path.as_posix()}", future=True)
    Base.metadata.create_all(engine)
    return make_session_scope(engine)


def _add_case(session_factory: SessionFactory, patient_id: str, case_no: str) -> None:
    with session_factory() as session:
        CaseRepository().create(
            session,
            case_no=case_no,
            patient_id=patient_id,
            encounter_date=date(2024, 1, 10),
            visit_type="First",
            status="active",
            document_json=json.dumps({"case_no": case_no}),
        )


def test_visit_type_follows_prior_case_count(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "patient_visits.db")
    service = PatientService(PatientRepository(), CaseRepository(), session_factory)
    patient = service.create_patient(PatientCreateRequest(full_name="Asha Rao", sex="F"))

    observed = [service.determine_visit_type(patient.id)]
    for index in range(4):
        _add_case(session_factory, patient.id, f"OPT2024-CASE-{index}")
        observed.append(service.determine_visit_type(patient.id))

    assert observed == ["First", "Follow-up-1", "Follow-up-2", "Follow-up-3", "Follow-up-3"]


def test_visit_type_for_blank_patient_is_first(tmp_path: Path) -> None:
    service = PatientService(session_factory=make_session_factory(tmp_path / "patient_blank.db"))
    assert service.determine_visit_type("") == "First"


def test_visit_type_lookup_errors_fall_back_to_first() -> None:
    @contextmanager
    def _broken_scope():
        raise RuntimeError("database locked")
        yield

    service = PatientService(session_factory=_broken_scope)

    assert service.determine_visit_type("p-1") == "First"


def test_create_patient_rejects_duplicate_code(tmp_path: Path) -> None:
    service = PatientService(session_factory=make_session_factory(tmp_path / "patient_dup.db"))
    created = service.create_patient(
        PatientCreateRequest(full_name=" Ravi Kumar ", patient_code="MRN-1", dob=date(1960, 2, 3), sex="M")
    )

    assert created.full_name == "Ravi Kumar"
    assert created.status == "active"
    with pytest.raises(ValueError, match="Patient code already in use: MRN-1"):
        service.create_patient(PatientCreateRequest(full_name="Someone Else", patient_code="MRN-1"))


def test_list_active_skips_inactive_patients(tmp_path: Path) -> None:
    service = PatientService(session_factory=make_session_factory(tmp_path / "patient_list.db"))
    kept = service.create_patient(PatientCreateRequest(full_name="Bina Shah", patient_code=""))
    gone = service.create_patient(PatientCreateRequest(full_name="Anil Das"))

    service.deactivate(gone.id)

    assert [item.id for item in service.list_active()] == [kept.id]
    assert kept.patient_code is None
    assert service.get_patient(gone.id).status == "inactive"
    assert service.get_patient("missing") is None
    with pytest.raises(ValueError, match="Patient not found"):
        service.deactivate("missing")
