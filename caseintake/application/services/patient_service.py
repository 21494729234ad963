from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import IntegrityError

from caseintake.application.dto.patient_dto import PatientCreateRequest, PatientResponse
from caseintake.domain.constants import VisitType
from caseintake.domain.rules.visit_type_rules import visit_type_for_prior_cases
from caseintake.infrastructure.db.repositories.case_repo import CaseRepository
from caseintake.infrastructure.db.repositories.patient_repo import PatientRepository
from caseintake.infrastructure.db.session import session_scope


def _to_response(patient: Any) -> PatientResponse:
    return PatientResponse(
        id=str(patient.id),
        patient_code=patient.patient_code,
        full_name=patient.full_name,
        dob=patient.dob,
        sex=patient.sex,
        phone=patient.phone,
        status=patient.status,
    )


class PatientService:
    def __init__(
        self,
        patient_repo: PatientRepository | None = None,
        case_repo: CaseRepository | None = None,
        session_factory: Callable = session_scope,
    ) -> None:
        self.patient_repo = patient_repo or PatientRepository()
        self.case_repo = case_repo or CaseRepository()
        self.session_factory = session_factory
        self._logger = logging.getLogger(__name__)

    def create_patient(self, request: PatientCreateRequest) -> PatientResponse:
        with self.session_factory() as session:
            if request.patient_code and self.patient_repo.get_by_code(session, request.patient_code):
                raise ValueError(f"Patient code already in use: {request.patient_code}")
            try:
                patient = self.patient_repo.create(
                    session,
                    full_name=request.full_name,
                    patient_code=request.patient_code,
                    dob=request.dob,
                    sex=request.sex,
                    phone=request.phone,
                )
            except IntegrityError as exc:
                raise ValueError("Patient could not be saved") from exc
            return _to_response(patient)

    def list_active(self, limit: int | None = None) -> list[PatientResponse]:
        with self.session_factory() as session:
            rows = self.patient_repo.list_active(session, limit=limit or 1000)
            return [_to_response(row) for row in rows]

    def get_patient(self, patient_id: str) -> PatientResponse | None:
        with self.session_factory() as session:
            patient = self.patient_repo.get_by_id(session, patient_id)
            return _to_response(patient) if patient else None

    def deactivate(self, patient_id: str) -> None:
        with self.session_factory() as session:
            if self.patient_repo.get_by_id(session, patient_id) is None:
                raise ValueError("Patient not found")
            self.patient_repo.set_status(session, patient_id, "inactive")

    def determine_visit_type(self, patient_id: str) -> str:
        """Visit type for a new case of ``patient_id`` from its prior cases.

        Lookup failures are logged and fall back to the first visit so the
        wizard can proceed.
        """
        if not patient_id:
            return VisitType.FIRST.value
        try:
            with self.session_factory() as session:
                count = self.case_repo.count_for_patient(session, patient_id)
        except Exception:  # noqa: BLE001
            self._logger.exception("Failed to determine visit type for patient %s", patient_id)
            return VisitType.FIRST.value
        return visit_type_for_prior_cases(count).value
