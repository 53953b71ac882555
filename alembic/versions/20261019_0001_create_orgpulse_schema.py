"""create orgpulse schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("organization_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("react_flow_nodes", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("react_flow_edges", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("viewport", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("share_token", sa.String(length=64), nullable=True),
        sa.Column("is_publicly_shared", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_teams"),
        sa.UniqueConstraint("share_token", name="uq_teams_share_token"),
    )
    op.create_index("ix_teams_organization_id", "teams", ["organization_id"], unique=False)

    op.create_table(
        "integrations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("connection_id", sa.String(length=255), nullable=False),
        sa.Column("provider_id", sa.String(length=100), nullable=False),
        sa.Column("organization_id", sa.String(length=255), nullable=False),
        sa.Column("connected_by", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="End-user email/display name captured at connection time",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_integrations"),
        sa.UniqueConstraint("connection_id", name="uq_integrations_connection_id"),
    )
    op.create_index("ix_integrations_organization_id", "integrations", ["organization_id"], unique=False)
    op.create_index("ix_integrations_provider_id", "integrations", ["provider_id"], unique=False)

    op.create_table(
        "metrics",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("organization_id", sa.String(length=255), nullable=False),
        sa.Column("team_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("integration_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("template_id", sa.String(length=100), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("endpoint_config", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("poll_frequency", sa.String(length=16), nullable=False),
        sa.Column("next_poll_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_fetched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("refresh_status", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["team_id"], ["teams.id"], name="fk_metrics_team_id_teams", ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["integration_id"],
            ["integrations.id"],
            name="fk_metrics_integration_id_integrations",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_metrics"),
    )
    op.create_index("ix_metrics_organization_id", "metrics", ["organization_id"], unique=False)
    op.create_index("ix_metrics_team_id", "metrics", ["team_id"], unique=False)
    op.create_index("ix_metrics_next_poll_at", "metrics", ["next_poll_at"], unique=False)

    op.create_table(
        "roles",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("team_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=True),
        sa.Column("metric_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("node_id", sa.String(length=100), nullable=True, comment="Canvas node id"),
        sa.Column("assigned_user_id", sa.String(length=255), nullable=True),
        sa.Column("assigned_user_name", sa.String(length=255), nullable=True),
        sa.Column("color", sa.String(length=7), nullable=False),
        sa.Column("effort_points", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], name="fk_roles_team_id_teams", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["metric_id"], ["metrics.id"], name="fk_roles_metric_id_metrics", ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_roles"),
    )
    op.create_index("ix_roles_team_id", "roles", ["team_id"], unique=False)
    op.create_index("ix_roles_metric_id", "roles", ["metric_id"], unique=False)
    op.create_index("ix_roles_assigned_user_id", "roles", ["assigned_user_id"], unique=False)

    op.create_table(
        "dashboard_charts",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("organization_id", sa.String(length=255), nullable=False),
        sa.Column("metric_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("chart_type", sa.String(length=16), nullable=False),
        sa.Column(
            "chart_config",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Output of the chart transformer plus user overrides",
        ),
        sa.Column("size", sa.String(length=16), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["metric_id"], ["metrics.id"], name="fk_dashboard_charts_metric_id_metrics", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_dashboard_charts"),
    )
    op.create_index("ix_dashboard_charts_organization_id", "dashboard_charts", ["organization_id"], unique=False)
    op.create_index("ix_dashboard_charts_metric_id", "dashboard_charts", ["metric_id"], unique=False)

    op.create_table(
        "metric_goals",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("metric_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("goal_type", sa.String(length=16), nullable=False),
        sa.Column(
            "target_value",
            sa.Float(),
            nullable=False,
            comment="Absolute target, or growth percent for RELATIVE goals",
        ),
        sa.Column("baseline_value", sa.Float(), nullable=True),
        sa.Column("baseline_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("on_track_threshold", sa.Float(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["metric_id"], ["metrics.id"], name="fk_metric_goals_metric_id_metrics", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_metric_goals"),
        sa.UniqueConstraint("metric_id", name="uq_metric_goals_metric_id"),
    )

    op.create_table(
        "data_ingestion_transformers",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "template_id",
            sa.String(length=100),
            nullable=False,
            comment="Keyed by metric id so each metric owns its transformer",
        ),
        sa.Column("transformer_code", sa.Text(), nullable=False),
        sa.Column("value_label", sa.String(length=100), nullable=True),
        sa.Column("data_description", sa.Text(), nullable=True),
        sa.Column("extraction_prompt_used", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_data_ingestion_transformers"),
        sa.UniqueConstraint("template_id", name="uq_data_ingestion_transformers_template_id"),
    )

    op.create_table(
        "chart_transformers",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dashboard_chart_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("transformer_code", sa.Text(), nullable=False),
        sa.Column("chart_type", sa.String(length=16), nullable=False),
        sa.Column("cadence", sa.String(length=16), nullable=False),
        sa.Column("date_range", sa.String(length=16), nullable=False),
        sa.Column("aggregation", sa.String(length=16), nullable=False),
        sa.Column("user_prompt", sa.Text(), nullable=True),
        sa.Column("selected_dimension", sa.String(length=100), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["dashboard_chart_id"],
            ["dashboard_charts.id"],
            name="fk_chart_transformers_dashboard_chart_id_dashboard_charts",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_chart_transformers"),
        sa.UniqueConstraint("dashboard_chart_id", name="uq_chart_transformers_dashboard_chart_id"),
    )

    op.create_table(
        "metric_data_points",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("metric_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("dimensions", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(
            ["metric_id"], ["metrics.id"], name="fk_metric_data_points_metric_id_metrics", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_metric_data_points"),
        sa.UniqueConstraint("metric_id", "timestamp", name="uq_metric_data_points_metric_id_timestamp"),
    )
    op.create_index(
        "ix_metric_data_points_metric_id_timestamp",
        "metric_data_points",
        ["metric_id", "timestamp"],
        unique=False,
    )

    op.create_table(
        "metric_api_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("metric_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("endpoint", sa.Text(), nullable=False),
        sa.Column("endpoint_config", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("raw_response", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["metric_id"], ["metrics.id"], name="fk_metric_api_logs_metric_id_metrics", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_metric_api_logs"),
    )
    op.create_index(
        "ix_metric_api_logs_metric_id_created_at",
        "metric_api_logs",
        ["metric_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "metric_snapshots",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("metric_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column("captured_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["metric_id"], ["metrics.id"], name="fk_metric_snapshots_metric_id_metrics", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_metric_snapshots"),
    )
    op.create_index(
        "ix_metric_snapshots_metric_id_captured_at",
        "metric_snapshots",
        ["metric_id", "captured_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_metric_snapshots_metric_id_captured_at", table_name="metric_snapshots")
    op.drop_table("metric_snapshots")
    op.drop_index("ix_metric_api_logs_metric_id_created_at", table_name="metric_api_logs")
    op.drop_table("metric_api_logs")
    op.drop_index("ix_metric_data_points_metric_id_timestamp", table_name="metric_data_points")
    op.drop_table("metric_data_points")
    op.drop_table("chart_transformers")
    op.drop_table("data_ingestion_transformers")
    op.drop_table("metric_goals")
    op.drop_index("ix_dashboard_charts_metric_id", table_name="dashboard_charts")
    op.drop_index("ix_dashboard_charts_organization_id", table_name="dashboard_charts")
    op.drop_table("dashboard_charts")
    op.drop_index("ix_roles_assigned_user_id", table_name="roles")
    op.drop_index("ix_roles_metric_id", table_name="roles")
    op.drop_index("ix_roles_team_id", table_name="roles")
    op.drop_table("roles")
    op.drop_index("ix_metrics_next_poll_at", table_name="metrics")
    op.drop_index("ix_metrics_team_id", table_name="metrics")
    op.drop_index("ix_metrics_organization_id", table_name="metrics")
    op.drop_table("metrics")
    op.drop_index("ix_integrations_provider_id", table_name="integrations")
    op.drop_index("ix_integrations_organization_id", table_name="integrations")
    op.drop_table("integrations")
    op.drop_index("ix_teams_organization_id", table_name="teams")
    op.drop_table("teams")
