"""Initial schema for RBAC, assistance requests and the audit log

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "202610190001"
down_revision = None
branch_labels = None
depends_on = None

request_status_enum = sa.Enum(
    "brouillon",
    "soumise",
    "verification",
    "validation_dec",
    "validation_bao",
    "approuvee",
    "assignee",
    "en_cours",
    "resolue",
    "fermee",
    "rejetee",
    name="request_status",
)
request_priority_enum = sa.Enum("basse", "normale", "haute", "critique", name="request_priority")
request_category_enum = sa.Enum(
    "technique", "administrative", "financiere", "rh", "autre", name="request_category"
)
workflow_stage_enum = sa.Enum(
    "verification",
    "validation_dec",
    "validation_bao",
    "assignation",
    "resolution",
    name="workflow_stage",
)
workflow_step_status_enum = sa.Enum(
    "en_attente", "en_cours", "termine", "rejete", name="workflow_step_status"
)
audit_action_enum = sa.Enum(
    "LOGIN",
    "LOGOUT",
    "CREATE_REQUEST",
    "UPDATE_REQUEST",
    "VALIDATE_REQUEST",
    "REJECT_REQUEST",
    "CANCEL_REQUEST",
    "DELETE_REQUEST",
    "ACCESS_DENIED",
    name="audit_action",
)


def _timestamp(name: str, nullable: bool = True, server_default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.func.now() if server_default else None,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at", nullable=False, server_default=True),
        _timestamp("updated_at", nullable=False, server_default=True),
        _timestamp("last_login_at"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=64), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("created_at", nullable=False, server_default=True),
    )

    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("module", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.UniqueConstraint("module", "action", name="uq_permission_pair"),
    )

    op.create_table(
        "user_roles",
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "role_id",
            sa.Integer(),
            sa.ForeignKey("roles.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "role_permissions",
        sa.Column(
            "role_id",
            sa.Integer(),
            sa.ForeignKey("roles.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "permission_id",
            sa.Integer(),
            sa.ForeignKey("permissions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "assistance_requests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("reference", sa.String(length=64), nullable=False, unique=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", request_category_enum, nullable=False),
        sa.Column("priority", request_priority_enum, nullable=False),
        sa.Column(
            "application_id",
            sa.Integer(),
            sa.ForeignKey("applications.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("status", request_status_enum, nullable=False),
        sa.Column("requester_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("verifier_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("dec_validator_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("bao_validator_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("technician_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("assigned_by_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        _timestamp("created_at", nullable=False, server_default=True),
        _timestamp("updated_at", nullable=False, server_default=True),
        _timestamp("submitted_at"),
        _timestamp("verified_at"),
        _timestamp("dec_validated_at"),
        _timestamp("bao_validated_at"),
        _timestamp("assigned_at"),
        _timestamp("resolved_at"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_assistance_requests_status", "assistance_requests", ["status"])
    op.create_index("ix_assistance_requests_priority", "assistance_requests", ["priority"])
    op.create_index("ix_assistance_requests_requester_id", "assistance_requests", ["requester_id"])
    op.create_index(
        "ix_assistance_requests_application_id", "assistance_requests", ["application_id"]
    )
    op.create_index("ix_assistance_requests_created_at", "assistance_requests", ["created_at"])

    op.create_table(
        "workflow_steps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "request_id",
            sa.String(length=36),
            sa.ForeignKey("assistance_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("stage", workflow_stage_enum, nullable=False),
        sa.Column("status", workflow_step_status_enum, nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("assignee_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        _timestamp("started_at"),
        _timestamp("ended_at"),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.UniqueConstraint("request_id", "stage", name="uq_workflow_step_stage"),
    )
    op.create_index("ix_workflow_steps_request_id", "workflow_steps", ["request_id"])

    op.create_table(
        "request_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "request_id",
            sa.String(length=36),
            sa.ForeignKey("assistance_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("actor_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        _timestamp("created_at", nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("stage", sa.String(length=32), nullable=True),
        sa.UniqueConstraint("request_id", "position", name="uq_request_history_position"),
    )
    op.create_index("ix_request_history_request_id", "request_history", ["request_id"])

    op.create_table(
        "request_comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "request_id",
            sa.String(length=36),
            sa.ForeignKey("assistance_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at", nullable=False),
    )
    op.create_index("ix_request_comments_request_id", "request_comments", ["request_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_id", sa.String(length=36), nullable=True),
        sa.Column("action", audit_action_enum, nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=True),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        _timestamp("created_at", nullable=False, server_default=True),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("request_comments")
    op.drop_table("request_history")
    op.drop_table("workflow_steps")
    op.drop_table("assistance_requests")
    op.drop_table("applications")
    op.drop_table("role_permissions")
    op.drop_table("user_roles")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (
        audit_action_enum,
        workflow_step_status_enum,
        workflow_stage_enum,
        request_status_enum,
        request_priority_enum,
        request_category_enum,
    ):
        enum.drop(bind, checkfirst=True)
