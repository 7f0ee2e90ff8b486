"""tenant pipeline schema: stages, rules, SLAs, teams, leads and history

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_key", sa.String(120), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_key"),
    )

    op.create_table(
        "pipeline_stages",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("color", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_initial_state", sa.Boolean(), nullable=False),
        sa.Column("is_final_state", sa.Boolean(), nullable=False),
        sa.Column("allowed_transitions", sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pipeline_stages_tenant_id", "pipeline_stages", ["tenant_id"])
    op.create_index("idx_pipeline_stage_tenant_order", "pipeline_stages", ["tenant_id", "order"])

    op.create_table(
        "validation_rules",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("conditions", sa.JSON(), nullable=False),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("pipeline_stage_id", sa.String(36), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["pipeline_stage_id"], ["pipeline_stages.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_validation_rules_tenant_id", "validation_rules", ["tenant_id"])
    op.create_index("idx_validation_rules_tenant_order", "validation_rules", ["tenant_id", "order"])

    op.create_table(
        "sla_configs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("pipeline_stage_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("timeframe", sa.Integer(), nullable=False),
        sa.Column("time_unit", sa.String(20), nullable=False),
        sa.Column("escalation_rules", sa.JSON(), nullable=True),
        sa.Column("notification_rules", sa.JSON(), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["pipeline_stage_id"], ["pipeline_stages.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sla_configs_tenant_id", "sla_configs", ["tenant_id"])
    op.create_index("ix_sla_configs_pipeline_stage_id", "sla_configs", ["pipeline_stage_id"])

    op.create_table(
        "teams",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("pipeline_stage_ids", sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_teams_tenant_id", "teams", ["tenant_id"])

    op.create_table(
        "team_members",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("team_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(120), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("role", sa.String(120), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_team_members_team_user", "team_members", ["team_id", "user_id"])

    op.create_table(
        "leads",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("first_name", sa.String(120), nullable=True),
        sa.Column("last_name", sa.String(120), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("current_stage_id", sa.String(36), nullable=True),
        sa.Column("state_context", sa.JSON(), nullable=True),
        sa.Column("state_metadata", sa.JSON(), nullable=True),
        sa.Column("last_modified", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["current_stage_id"], ["pipeline_stages.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_leads_tenant_id", "leads", ["tenant_id"])
    op.create_index("idx_leads_tenant_stage", "leads", ["tenant_id", "current_stage_id"])

    op.create_table(
        "state_transitions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("lead_id", sa.String(36), nullable=False),
        sa.Column("from_stage_id", sa.String(36), nullable=True),
        sa.Column("to_stage_id", sa.String(36), nullable=False),
        sa.Column("event", sa.String(150), nullable=False),
        sa.Column("triggered_by", sa.String(120), nullable=False),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("triggered_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["lead_id"], ["leads.id"]),
        sa.ForeignKeyConstraint(["from_stage_id"], ["pipeline_stages.id"]),
        sa.ForeignKeyConstraint(["to_stage_id"], ["pipeline_stages.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_state_transitions_tenant_id", "state_transitions", ["tenant_id"])
    op.create_index("idx_state_transitions_lead_time", "state_transitions", ["lead_id", "triggered_at"])


def downgrade() -> None:
    op.drop_index("idx_state_transitions_lead_time", table_name="state_transitions")
    op.drop_index("ix_state_transitions_tenant_id", table_name="state_transitions")
    op.drop_table("state_transitions")
    op.drop_index("idx_leads_tenant_stage", table_name="leads")
    op.drop_index("ix_leads_tenant_id", table_name="leads")
    op.drop_table("leads")
    op.drop_index("idx_team_members_team_user", table_name="team_members")
    op.drop_table("team_members")
    op.drop_index("ix_teams_tenant_id", table_name="teams")
    op.drop_table("teams")
    op.drop_index("ix_sla_configs_pipeline_stage_id", table_name="sla_configs")
    op.drop_index("ix_sla_configs_tenant_id", table_name="sla_configs")
    op.drop_table("sla_configs")
    op.drop_index("idx_validation_rules_tenant_order", table_name="validation_rules")
    op.drop_index("ix_validation_rules_tenant_id", table_name="validation_rules")
    op.drop_table("validation_rules")
    op.drop_index("idx_pipeline_stage_tenant_order", table_name="pipeline_stages")
    op.drop_index("ix_pipeline_stages_tenant_id", table_name="pipeline_stages")
    op.drop_table("pipeline_stages")
    op.drop_table("tenants")
