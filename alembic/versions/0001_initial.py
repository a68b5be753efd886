"""Initial schema — cases, exhibits, approvals, case_activities, identifier_sequences

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_JSON = sa.JSON().with_variant(JSONB(), "postgresql")


def upgrade() -> None:
    # -- cases --
    op.create_table(
        "cases",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("case_number", sa.String(64), nullable=False),
        sa.Column("lab_number", sa.String(64), nullable=False),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(512), nullable=True),
        sa.Column("incident_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="open"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="medium"),
        sa.Column("analyst_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("investigator_id", sa.String(128), nullable=True),
        sa.Column("supervisor_id", sa.String(128), nullable=True),
        sa.Column("analyst_id", sa.String(128), nullable=True),
        sa.Column("exhibit_officer_id", sa.String(128), nullable=True),
        sa.Column("opened_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("case_notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_cases_case_number", "cases", ["case_number"], unique=True)
    op.create_index("ix_cases_lab_number", "cases", ["lab_number"], unique=True)
    op.create_index("ix_cases_status", "cases", ["status"])
    op.create_index("ix_cases_analyst_id", "cases", ["analyst_id"])

    # -- exhibits --
    op.create_table(
        "exhibits",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("exhibit_number", sa.String(64), nullable=False),
        sa.Column("lab_item", sa.Integer(), nullable=False),
        sa.Column("case_id", sa.Uuid(), sa.ForeignKey("cases.id"), nullable=False),
        sa.Column("exhibit_type", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="received"),
        sa.Column("device_name", sa.String(256), nullable=False),
        sa.Column("brand", sa.String(128), nullable=True),
        sa.Column("model", sa.String(128), nullable=True),
        sa.Column("serial_number", sa.String(128), nullable=True),
        sa.Column("imei", sa.String(32), nullable=True),
        sa.Column("mac_address", sa.String(32), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("storage_location", sa.String(256), nullable=True),
        sa.Column("assigned_analyst_id", sa.String(128), nullable=True),
        sa.Column("received_by", sa.String(128), nullable=False),
        sa.Column("received_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("chain_of_custody", _JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("case_id", "lab_item", name="uq_exhibit_case_item"),
    )
    op.create_index("ix_exhibits_exhibit_number", "exhibits", ["exhibit_number"], unique=True)
    op.create_index("ix_exhibits_case_id", "exhibits", ["case_id"])
    op.create_index("ix_exhibits_status", "exhibits", ["status"])

    # -- approvals --
    op.create_table(
        "approvals",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("case_id", sa.Uuid(), sa.ForeignKey("cases.id"), nullable=False),
        sa.Column("approval_type", sa.String(32), nullable=False),
        sa.Column("approval_status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("submitted_by", sa.String(128), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("document_path", sa.String(1024), nullable=True),
        sa.Column("approved_by", sa.String(128), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_comments", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_approvals_case_id", "approvals", ["case_id"])
    op.create_index(
        "uq_approval_pending_per_type",
        "approvals",
        ["case_id", "approval_type"],
        unique=True,
        postgresql_where=sa.text("approval_status = 'pending'"),
        sqlite_where=sa.text("approval_status = 'pending'"),
    )

    # -- case_activities --
    op.create_table(
        "case_activities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("subject_id", sa.String(64), nullable=False),
        sa.Column("case_id", sa.Uuid(), nullable=True),
        sa.Column("actor_id", sa.String(128), nullable=True),
        sa.Column("activity_type", sa.String(64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("metadata", _JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_case_activities_subject_id", "case_activities", ["subject_id"])
    op.create_index("ix_case_activities_case_id", "case_activities", ["case_id"])
    op.create_index("ix_case_activities_created_at", "case_activities", ["created_at"])

    # -- identifier_sequences --
    op.create_table(
        "identifier_sequences",
        sa.Column("scope", sa.String(128), primary_key=True),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
    )


def downgrade() -> None:
    op.drop_table("identifier_sequences")
    op.drop_table("case_activities")
    op.drop_index("uq_approval_pending_per_type", table_name="approvals")
    op.drop_table("approvals")
    op.drop_table("exhibits")
    op.drop_table("cases")
