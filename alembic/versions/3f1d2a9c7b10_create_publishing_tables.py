"""create_publishing_tables

Revision ID: 3f1d2a9c7b10
Revises:
Create Date: 2026-10-19 10:12:41.318204

"""

from typing import Sequence, Union

import sqlalchemy as sa
import sqlmodel

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1d2a9c7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

work_status = sa.Enum("DRAFT", "PUBLISHING", "MINTED", "FAILED", name="workstatus")
outbox_event_status = sa.Enum(
    "PENDING", "PROCESSING", "COMPLETED", "FAILED", name="outboxeventstatus"
)
mint_intent_status = sa.Enum(
    "PENDING", "SUBMITTED", "CONFIRMED", "FAILED", name="mintintentstatus"
)


def upgrade() -> None:
    """Create works, outbox_events and mint_intents tables."""
    op.create_table(
        "works",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_wallet", sqlmodel.sql.sqltypes.AutoString(length=42), nullable=False),
        sa.Column("title", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("status", work_status, nullable=False),
        sa.Column("metadata_uri", sqlmodel.sql.sqltypes.AutoString(length=512), nullable=True),
        sa.Column("nft_token_id", sa.Numeric(precision=78, scale=0), nullable=True),
        sa.Column("nft_tx_hash", sqlmodel.sql.sqltypes.AutoString(length=66), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_works_owner_wallet"), "works", ["owner_wallet"], unique=False)
    op.create_index(op.f("ix_works_status"), "works", ["status"], unique=False)

    op.create_table(
        "outbox_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("event_type", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("aggregate_id", sa.Uuid(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", outbox_event_status, nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sqlmodel.sql.sqltypes.AutoString(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["aggregate_id"], ["works.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_outbox_events_event_type"), "outbox_events", ["event_type"], unique=False
    )
    op.create_index(
        op.f("ix_outbox_events_aggregate_id"), "outbox_events", ["aggregate_id"], unique=False
    )
    op.create_index(op.f("ix_outbox_events_status"), "outbox_events", ["status"], unique=False)
    op.create_index(
        op.f("ix_outbox_events_created_at"), "outbox_events", ["created_at"], unique=False
    )
    # Claim query: oldest pending first
    op.create_index(
        "ix_outbox_events_status_created_at",
        "outbox_events",
        ["status", "created_at"],
        unique=False,
    )

    op.create_table(
        "mint_intents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("intent_key", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("work_id", sa.Uuid(), nullable=False),
        sa.Column("status", mint_intent_status, nullable=False),
        sa.Column("tx_hash", sqlmodel.sql.sqltypes.AutoString(length=66), nullable=True),
        sa.Column("token_id", sa.Numeric(precision=78, scale=0), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["work_id"], ["works.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_mint_intents_intent_key"), "mint_intents", ["intent_key"], unique=True)
    op.create_index(op.f("ix_mint_intents_work_id"), "mint_intents", ["work_id"], unique=False)
    op.create_index(op.f("ix_mint_intents_status"), "mint_intents", ["status"], unique=False)


def downgrade() -> None:
    """Drop publishing tables and their enum types."""
    op.drop_index(op.f("ix_mint_intents_status"), table_name="mint_intents")
    op.drop_index(op.f("ix_mint_intents_work_id"), table_name="mint_intents")
    op.drop_index(op.f("ix_mint_intents_intent_key"), table_name="mint_intents")
    op.drop_table("mint_intents")

    op.drop_index("ix_outbox_events_status_created_at", table_name="outbox_events")
    op.drop_index(op.f("ix_outbox_events_created_at"), table_name="outbox_events")
    op.drop_index(op.f("ix_outbox_events_status"), table_name="outbox_events")
    op.drop_index(op.f("ix_outbox_events_aggregate_id"), table_name="outbox_events")
    op.drop_index(op.f("ix_outbox_events_event_type"), table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index(op.f("ix_works_status"), table_name="works")
    op.drop_index(op.f("ix_works_owner_wallet"), table_name="works")
    op.drop_table("works")

    mint_intent_status.drop(op.get_bind(), checkfirst=True)
    outbox_event_status.drop(op.get_bind(), checkfirst=True)
    work_status.drop(op.get_bind(), checkfirst=True)
