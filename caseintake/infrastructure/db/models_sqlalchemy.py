from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.sql import expression

naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    # avoid constraint_name token to allow unnamed CheckConstraint
    "ck": "ck_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=naming_convention)


class Base(DeclarativeBase):
    metadata = metadata


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_uuid() -> str:
    return str(uuid4())


class RefMasterData(Base):
    __tablename__ = "ref_master_data"

    id = Column(String(36), primary_key=True, default=new_uuid)
    category = Column(String, nullable=False)
    code = Column(String, nullable=True)
    name = Column(Text, nullable=False)
    parent_id = Column(String(36), ForeignKey("ref_master_data.id", ondelete="CASCADE"), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0, server_default="0")
    is_active = Column(Boolean, nullable=False, server_default=expression.true())

    parent = relationship("RefMasterData", remote_side=[id])

    __table_args__ = (
        UniqueConstraint("category", "code", name="uq_ref_master_data_category_code"),
        Index("ix_ref_master_data_category", "category", "sort_order"),
    )


class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=new_uuid)
    patient_code = Column(String, unique=True, nullable=True)
    full_name = Column(Text, nullable=False)
    dob = Column(Date, nullable=True)
    sex = Column(String(1), nullable=False, default="U")
    phone = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active", server_default="active")
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint("sex in ('M','F','U')", name="ck_patients_sex"),
        CheckConstraint("status in ('active','inactive')", name="ck_patients_status"),
    )


class ClinicalCase(Base):
    __tablename__ = "clinical_case"

    id = Column(String(36), primary_key=True, default=new_uuid)
    case_no = Column(String, nullable=False, unique=True)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="RESTRICT"), nullable=False)
    encounter_date = Column(Date, nullable=False)
    visit_type = Column(String, nullable=False)
    status = Column(String, nullable=False, default="active", server_default="active")
    document_json = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    patient = relationship("Patient")

    __table_args__ = (
        Index("ix_clinical_case_patient_date", "patient_id", "encounter_date"),
    )
