"""Create generation, version and audit tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "illustration_generations",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("project_id", sa.String(128), nullable=False),
        sa.Column("character_id", sa.String(128), nullable=True),
        sa.Column("original_prompt", sa.Text, nullable=False),
        sa.Column("enhanced_prompt", sa.Text, nullable=True),
        sa.Column("provider", sa.String(64), nullable=False),
        sa.Column("model", sa.String(128), nullable=False),
        sa.Column("is_free", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "status",
            sa.Enum("pending", "processing", "completed", "failed", name="generation_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("width", sa.Integer, nullable=False),
        sa.Column("height", sa.Integer, nullable=False),
        sa.Column("image_url", sa.String(2000), nullable=True),
        sa.Column("image_path", sa.String(2000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_illustration_generations_project_id", "illustration_generations", ["project_id"])
    op.create_index("ix_illustration_generations_character_id", "illustration_generations", ["character_id"])
    op.create_index("ix_illustration_generations_provider", "illustration_generations", ["provider"])
    op.create_index("ix_illustration_generations_status", "illustration_generations", ["status"])
    op.create_index(
        "ix_illustration_generations_project_created",
        "illustration_generations",
        ["project_id", "created_at"],
    )

    op.create_table(
        "illustration_versions",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("project_id", sa.String(128), nullable=False),
        sa.Column("character_id", sa.String(128), nullable=True),
        sa.Column("version_type", sa.String(32), nullable=False),
        sa.Column("version_number", sa.Numeric(12, 1), nullable=False),
        sa.Column("parent_version_id", sa.String(128), nullable=True),
        sa.Column("root_version_id", sa.String(128), nullable=False),
        sa.Column("branch_name", sa.String(128), nullable=True),
        sa.Column(
            "status",
            sa.Enum("active", "archived", "superseded", name="version_status"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("linked_generation_id", sa.String(128), nullable=True),
        sa.Column("prompt", sa.Text, nullable=True),
        sa.Column("title", sa.String(256), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("ai_parameters", sa.JSON, nullable=True),
        sa.Column("width", sa.Integer, nullable=True),
        sa.Column("height", sa.Integer, nullable=True),
        sa.Column("generation_time_ms", sa.Integer, nullable=False, server_default="0"),
        sa.Column("file_size_bytes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("view_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("like_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("export_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "root_version_id",
            "version_number",
            name="uq_illustration_versions_root_number",
        ),
    )
    op.create_index("ix_illustration_versions_project_id", "illustration_versions", ["project_id"])
    op.create_index("ix_illustration_versions_character_id", "illustration_versions", ["character_id"])
    op.create_index("ix_illustration_versions_parent_version_id", "illustration_versions", ["parent_version_id"])
    op.create_index("ix_illustration_versions_root_version_id", "illustration_versions", ["root_version_id"])
    op.create_index("ix_illustration_versions_status", "illustration_versions", ["status"])
    op.create_index(
        "ix_illustration_versions_linked_generation_id",
        "illustration_versions",
        ["linked_generation_id"],
    )
    op.create_index(
        "ix_illustration_versions_project_created",
        "illustration_versions",
        ["project_id", "created_at"],
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "actor_kind",
            sa.Enum("human", "agent", "system", name="audit_actor_kind"),
            nullable=False,
        ),
        sa.Column("actor_id", sa.String(128), nullable=False),
        sa.Column(
            "action",
            sa.Enum("created", "updated", "status_changed", "linked", name="audit_action"),
            nullable=False,
        ),
        sa.Column("entity_kind", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(128), nullable=False),
        sa.Column("before", sa.JSON, nullable=True),
        sa.Column("after", sa.JSON, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
    )
    op.create_index("ix_audit_log_ts", "audit_log", ["ts"])
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_entity_kind", "audit_log", ["entity_kind"])
    op.create_index("ix_audit_log_entity_id", "audit_log", ["entity_id"])
    op.create_index("ix_audit_log_entity", "audit_log", ["entity_kind", "entity_id"])
    op.create_index("ix_audit_log_entity_ts", "audit_log", ["entity_kind", "entity_id", "ts"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("illustration_versions")
    op.drop_table("illustration_generations")

    bind = op.get_bind()
    for enum_name in ("audit_action", "audit_actor_kind", "version_status", "generation_status"):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
