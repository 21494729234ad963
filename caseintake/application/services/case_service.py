from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from caseintake.application.dto.case_document_dto import CaseHeader, CaseSaved
from caseintake.infrastructure.db.repositories.case_repo import CaseRepository
from caseintake.infrastructure.db.repositories.patient_repo import PatientRepository
from caseintake.infrastructure.db.session import session_scope

_FIELD_LABELS = {
    "patient_id": "Patient",
    "case_no": "Case Number",
    "encounter_date": "Case Date",
    "visit_type": "Visit Type",
}


def _error_field(err: Any) -> str:
    loc = err.get("loc") or ("document",)
    return str(loc[0])


def _parse_header(document: Mapping[str, Any]) -> CaseHeader:
    try:
        return CaseHeader.model_validate(dict(document))
    except ValidationError as exc:
        fields = sorted({_FIELD_LABELS.get(_error_field(err), _error_field(err)) for err in exc.errors()})
        raise ValueError("Invalid case data: " + ", ".join(fields)) from exc


class CaseService:
    def __init__(
        self,
        case_repo: CaseRepository | None = None,
        patient_repo: PatientRepository | None = None,
        session_factory: Callable = session_scope,
    ) -> None:
        self.case_repo = case_repo or CaseRepository()
        self.patient_repo = patient_repo or PatientRepository()
        self.session_factory = session_factory
        self._logger = logging.getLogger(__name__)

    def create_case(self, document: Mapping[str, Any]) -> CaseSaved:
        header = _parse_header(document)
        with self.session_factory() as session:
            if self.patient_repo.get_by_id(session, header.patient_id) is None:
                raise ValueError("Patient not found")
            if self.case_repo.get_by_case_no(session, header.case_no) is not None:
                raise ValueError(f"Case number already exists: {header.case_no}")
            case = self.case_repo.create(
                session,
                case_no=header.case_no,
                patient_id=header.patient_id,
                encounter_date=header.encounter_date,
                visit_type=header.visit_type,
                status=header.status,
                document_json=json.dumps(dict(document), ensure_ascii=False),
            )
            self._logger.info("Case created: id=%s case_no=%s", case.id, case.case_no)
            return CaseSaved(
                id=str(case.id),
                case_no=str(case.case_no),
                patient_id=str(case.patient_id),
                visit_type=str(case.visit_type),
            )

    def update_case(self, case_id: str, document: Mapping[str, Any]) -> CaseSaved:
        header = _parse_header(document)
        with self.session_factory() as session:
            case = self.case_repo.get_by_id(session, case_id)
            if case is None:
                raise ValueError("Case not found")
            if header.case_no != case.case_no:
                raise ValueError("Case number cannot be changed for an existing case")
            if self.patient_repo.get_by_id(session, header.patient_id) is None:
                raise ValueError("Patient not found")
            case.patient_id = header.patient_id
            case.encounter_date = header.encounter_date
            case.visit_type = header.visit_type
            case.status = header.status
            case.document_json = json.dumps(dict(document), ensure_ascii=False)
            session.flush()
            self._logger.info("Case updated: id=%s case_no=%s", case.id, case.case_no)
            return CaseSaved(
                id=str(case.id),
                case_no=str(case.case_no),
                patient_id=str(case.patient_id),
                visit_type=str(case.visit_type),
            )

    def get_case_document(self, case_id: str) -> dict[str, Any] | None:
        with self.session_factory() as session:
            case = self.case_repo.get_by_id(session, case_id)
            if case is None:
                return None
            try:
                payload = json.loads(str(case.document_json))
            except json.JSONDecodeError:
                self._logger.warning("Stored case document is not valid JSON: id=%s", case_id)
                payload = {}
            if not isinstance(payload, dict):
                payload = {}
            payload.setdefault("case_no", case.case_no)
            payload.setdefault("patient_id", case.patient_id)
            payload.setdefault("encounter_date", case.encounter_date.isoformat())
            payload.setdefault("visit_type", case.visit_type)
            return payload

    def count_cases_for_patient(self, patient_id: str) -> int:
        with self.session_factory() as session:
            return self.case_repo.count_for_patient(session, patient_id)

    def submit_callback(self, case_id: str | None = None) -> Callable[[dict[str, Any]], CaseSaved]:
        """Submission sink for the wizard: create, or update ``case_id``."""

        def _submit(document: dict[str, Any]) -> CaseSaved:
            if case_id is None:
                return self.create_case(document)
            return self.update_case(case_id, document)

        return _submit
