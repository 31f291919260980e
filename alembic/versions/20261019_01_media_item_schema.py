"""Media item and moderation decision tables."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "media_item",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("source_path", sa.String(length=512), nullable=False),
        sa.Column("declared_duration", sa.Float()),
        sa.Column("title", sa.String(length=256)),
        sa.Column("category", sa.String(length=64)),
        sa.Column("normalized_path", sa.String(length=512)),
        sa.Column("staging_uri", sa.String(length=512)),
        sa.Column("public_url", sa.String(length=512)),
        sa.Column("thumbnail_url", sa.Text()),
        sa.Column("cdn_asset_id", sa.String(length=128)),
        sa.Column("quarantine_ref", sa.String(length=512)),
        sa.Column("failure_reason", sa.Text()),
        sa.Column("error_category", sa.String(length=16)),
        sa.Column("user_message", sa.String(length=256)),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_media_item_status", "media_item", ["status"])
    op.create_index("ix_media_item_updated_at", "media_item", ["updated_at"])

    op.create_table(
        "moderation_decision",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "item_id",
            sa.String(length=64),
            sa.ForeignKey("media_item.id"),
            nullable=False,
        ),
        sa.Column("approved", sa.Boolean(), nullable=False),
        sa.Column("visual_passed", sa.Boolean(), nullable=False),
        sa.Column("audio_status", sa.String(length=16), nullable=False),
        sa.Column("reason", sa.Text()),
        sa.Column("transcript", sa.Text()),
        sa.Column("keywords_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column(
            "decided_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_moderation_decision_item_id", "moderation_decision", ["item_id"])


def downgrade() -> None:
    op.drop_index("ix_moderation_decision_item_id", table_name="moderation_decision")
    op.drop_table("moderation_decision")
    op.drop_index("ix_media_item_updated_at", table_name="media_item")
    op.drop_index("ix_media_item_status", table_name="media_item")
    op.drop_table("media_item")
