from __future__ import annotations

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from caseintake.infrastructure.db.models_sqlalchemy import ClinicalCase


class CaseRepository:
    def get_by_id(self, session: Session, case_id: str) -> ClinicalCase | None:
        return session.get(ClinicalCase, case_id)

    def get_by_case_no(self, session: Session, case_no: str) -> ClinicalCase | None:
        stmt = select(ClinicalCase).where(ClinicalCase.case_no == case_no)
        return session.execute(stmt).scalar_one_or_none()

    def count_for_patient(self, session: Session, patient_id: str) -> int:
        stmt = select(func.count(ClinicalCase.id)).where(ClinicalCase.patient_id == patient_id)
        return int(session.execute(stmt).scalar_one())

    def create(
        self,
        session: Session,
        *,
        case_no: str,
        patient_id: str,
        encounter_date: date,
        visit_type: str,
        status: str,
        document_json: str,
    ) -> ClinicalCase:
        case = ClinicalCase(
            case_no=case_no,
            patient_id=patient_id,
            encounter_date=encounter_date,
            visit_type=visit_type,
            status=status,
            document_json=document_json,
        )
        session.add(case)
        session.flush()
        return case
