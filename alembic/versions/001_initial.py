"""initial compliance schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Organizations, obligation sources, recipients, alerts, notification jobs,
score snapshots, sweep audit and sweep locks.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
OPEN_ALERT_PREDICATE = sa.text("status IN ('active', 'acknowledged')")


def _org_fk() -> sa.Column:
    return sa.Column(
        "organization_id",
        sa.Uuid(),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("escalation_contact_name", sa.String(length=255), nullable=True),
        sa.Column("escalation_contact_email", sa.String(length=255), nullable=True),
        sa.Column("escalation_contact_phone", sa.String(length=32), nullable=True),
        sa.Column("escalation_after_hours", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("job_title", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_employees_organization_id", "employees", ["organization_id"])

    op.create_table(
        "equipment",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("equipment_type", sa.String(length=16), nullable=False),
        sa.Column("serial_number", sa.String(length=128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_equipment_organization_id", "equipment", ["organization_id"])

    op.create_table(
        "medical_examinations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column(
            "employee_id",
            sa.Uuid(),
            sa.ForeignKey("employees.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("examination_type", sa.String(length=64), nullable=False),
        sa.Column("examination_date", sa.Date(), nullable=True),
        sa.Column("periodicity_months", sa.Integer(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("computed_due_date", sa.Date(), nullable=True),
        sa.Column("compliance_status", sa.String(length=16), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_medical_examinations_organization_id", "medical_examinations", ["organization_id"]
    )
    op.create_index("ix_medical_examinations_employee_id", "medical_examinations", ["employee_id"])

    op.create_table(
        "training_assignments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column(
            "employee_id",
            sa.Uuid(),
            sa.ForeignKey("employees.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("training_name", sa.String(length=255), nullable=False),
        sa.Column("completed_on", sa.Date(), nullable=True),
        sa.Column("periodicity_months", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("computed_due_date", sa.Date(), nullable=True),
        sa.Column("compliance_status", sa.String(length=16), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_training_assignments_organization_id", "training_assignments", ["organization_id"]
    )
    op.create_index("ix_training_assignments_employee_id", "training_assignments", ["employee_id"])

    op.create_table(
        "equipment_checks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column(
            "equipment_id",
            sa.Uuid(),
            sa.ForeignKey("equipment.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("check_type", sa.String(length=64), nullable=False),
        sa.Column("last_check_date", sa.Date(), nullable=True),
        sa.Column("periodicity_months", sa.Integer(), nullable=True),
        sa.Column("next_check_date", sa.Date(), nullable=True),
        sa.Column("computed_due_date", sa.Date(), nullable=True),
        sa.Column("compliance_status", sa.String(length=16), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_equipment_checks_organization_id", "equipment_checks", ["organization_id"])
    op.create_index("ix_equipment_checks_equipment_id", "equipment_checks", ["equipment_id"])

    op.create_table(
        "legal_obligation_instances",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("domain", sa.String(length=16), nullable=False),
        sa.Column("last_fulfilled_on", sa.Date(), nullable=True),
        sa.Column("periodicity_months", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("published_at", sa.Date(), nullable=True),
        sa.Column("computed_due_date", sa.Date(), nullable=True),
        sa.Column("compliance_status", sa.String(length=16), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_legal_obligation_instances_organization_id",
        "legal_obligation_instances",
        ["organization_id"],
    )

    op.create_table(
        "organization_members",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("push_token", sa.String(length=512), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_organization_members_organization_id", "organization_members", ["organization_id"]
    )

    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column(
            "member_id",
            sa.Uuid(),
            sa.ForeignKey("organization_members.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("email_enabled", sa.Boolean(), nullable=False),
        sa.Column("push_enabled", sa.Boolean(), nullable=False),
        sa.Column("sms_enabled", sa.Boolean(), nullable=False),
        sa.Column("whatsapp_enabled", sa.Boolean(), nullable=False),
        sa.Column("quiet_hours_start", sa.Time(), nullable=True),
        sa.Column("quiet_hours_end", sa.Time(), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        sa.Column("channel_opt_outs", JSON_TYPE, nullable=True),
        sa.Column("digest_mode", sa.String(length=16), nullable=False),
    )

    op.create_table(
        "alerts",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        _org_fk(),
        sa.Column("entity_kind", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("category", sa.String(length=16), nullable=False),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_by", sa.String(length=255), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by", sa.String(length=255), nullable=True),
        sa.Column("close_reason", sa.Text(), nullable=True),
    )
    op.create_index(
        "uq_alerts_open_entity",
        "alerts",
        ["organization_id", "entity_kind", "entity_id"],
        unique=True,
        postgresql_where=OPEN_ALERT_PREDICATE,
        sqlite_where=OPEN_ALERT_PREDICATE,
    )
    op.create_index("ix_alerts_organization_status", "alerts", ["organization_id", "status"])

    op.create_table(
        "notification_jobs",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        _org_fk(),
        sa.Column(
            "alert_id",
            sa.Integer(),
            sa.ForeignKey("alerts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("alert_ids", JSON_TYPE, nullable=True),
        sa.Column("channel", sa.String(length=16), nullable=False),
        sa.Column("recipient_ref", sa.String(length=128), nullable=False),
        sa.Column("recipient_address", sa.String(length=512), nullable=False),
        sa.Column("dedup_key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("trigger", sa.String(length=16), nullable=False),
        sa.Column("attempt", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("not_before", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("provider_message_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notification_jobs_alert_id", "notification_jobs", ["alert_id"])
    op.create_index(
        "ix_notification_jobs_status_not_before", "notification_jobs", ["status", "not_before"]
    )
    op.create_index(
        "ix_notification_jobs_organization_created",
        "notification_jobs",
        ["organization_id", "created_at"],
    )

    op.create_table(
        "compliance_score_snapshots",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        _org_fk(),
        sa.Column("as_of", sa.Date(), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("medical", sa.Integer(), nullable=True),
        sa.Column("training", sa.Integer(), nullable=True),
        sa.Column("equipment", sa.Integer(), nullable=True),
        sa.Column("legal", sa.Integer(), nullable=True),
        sa.Column("unscheduled", sa.Integer(), nullable=False),
        sa.Column("explain", JSON_TYPE, nullable=True),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "organization_id", "as_of", name="uq_compliance_score_snapshots_org_as_of"
        ),
    )

    op.create_table(
        "sweep_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        _org_fk(),
        sa.Column("trigger", sa.String(length=16), nullable=False),
        sa.Column("forced", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked", sa.Integer(), nullable=True),
        sa.Column("alerts_created", sa.Integer(), nullable=True),
        sa.Column("alerts_escalated", sa.Integer(), nullable=True),
        sa.Column("alerts_resolved", sa.Integer(), nullable=True),
        sa.Column("notifications_sent", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_sweep_runs_organization_id", "sweep_runs", ["organization_id"])

    op.create_table(
        "sweep_locks",
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("run_id", sa.Integer(), nullable=True),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("sweep_locks")
    op.drop_index("ix_sweep_runs_organization_id", table_name="sweep_runs")
    op.drop_table("sweep_runs")
    op.drop_table("compliance_score_snapshots")
    op.drop_index("ix_notification_jobs_organization_created", table_name="notification_jobs")
    op.drop_index("ix_notification_jobs_status_not_before", table_name="notification_jobs")
    op.drop_index("ix_notification_jobs_alert_id", table_name="notification_jobs")
    op.drop_table("notification_jobs")
    op.drop_index("ix_alerts_organization_status", table_name="alerts")
    op.drop_index("uq_alerts_open_entity", table_name="alerts")
    op.drop_table("alerts")
    op.drop_table("notification_preferences")
    op.drop_table("organization_members")
    op.drop_table("legal_obligation_instances")
    op.drop_table("equipment_checks")
    op.drop_table("training_assignments")
    op.drop_table("medical_examinations")
    op.drop_table("equipment")
    op.drop_table("employees")
    op.drop_table("organizations")
