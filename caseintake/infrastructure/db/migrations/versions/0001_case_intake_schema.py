"""Master data, patients and clinical cases"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_case_intake_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "ref_master_data",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("code", sa.String(), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column(
            "parent_id",
            sa.String(36),
            sa.ForeignKey("ref_master_data.id", ondelete="CASCADE", name="fk_ref_master_data_parent_id_ref_master_data"),
            nullable=True,
        ),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.UniqueConstraint("category", "code", name="uq_ref_master_data_category_code"),
    )
    op.create_index("ix_ref_master_data_category", "ref_master_data", ["category", "sort_order"])

    op.create_table(
        "patients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("patient_code", sa.String(), nullable=True, unique=True),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("dob", sa.Date(), nullable=True),
        sa.Column("sex", sa.String(1), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("sex in ('M','F','U')", name="ck_patients_sex"),
        sa.CheckConstraint("status in ('active','inactive')", name="ck_patients_status"),
    )

    op.create_table(
        "clinical_case",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("case_no", sa.String(), nullable=False, unique=True),
        sa.Column(
            "patient_id",
            sa.String(36),
            sa.ForeignKey("patients.id", ondelete="RESTRICT", name="fk_clinical_case_patient_id_patients"),
            nullable=False,
        ),
        sa.Column("encounter_date", sa.Date(), nullable=False),
        sa.Column("visit_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("document_json", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_clinical_case_patient_date", "clinical_case", ["patient_id", "encounter_date"])


def downgrade() -> None:
    op.drop_index("ix_clinical_case_patient_date", table_name="clinical_case")
    op.drop_table("clinical_case")
    op.drop_table("patients")
    op.drop_index("ix_ref_master_data_category", table_name="ref_master_data")
    op.drop_table("ref_master_data")
