from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from caseintake.infrastructure.db.models_sqlalchemy import Patient


class PatientRepository:
    def get_by_id(self, session: Session, patient_id: str) -> Patient | None:
        return session.get(Patient, patient_id)

    def get_by_code(self, session: Session, patient_code: str) -> Patient | None:
        stmt = select(Patient).where(Patient.patient_code == patient_code)
        return session.execute(stmt).scalar_one_or_none()

    def create(
        self,
        session: Session,
        *,
        full_name: str,
        patient_code: str | None,
        dob: date | None,
        sex: str,
        phone: str | None,
    ) -> Patient:
        patient = Patient(
            full_name=full_name,
            patient_code=patient_code,
            dob=dob,
            sex=sex,
            phone=phone,
        )
        session.add(patient)
        session.flush()
        return patient

    def list_active(self, session: Session, limit: int = 1000) -> list[Patient]:
        stmt = (
            select(Patient)
            .where(Patient.status == "active")
            .order_by(Patient.full_name, Patient.created_at)
            .limit(limit)
        )
        return list(session.execute(stmt).scalars())

    def set_status(self, session: Session, patient_id: str, status: str) -> None:
        patient = session.get(Patient, patient_id)
        if patient:
            patient.status = status
