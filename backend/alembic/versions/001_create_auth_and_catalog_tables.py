"""Create auth and catalog tables

Revision ID: 001
Revises: None
Create Date: 2025-01-10 00:00:00.000000+00:00

What:  Creates users, login_codes, sessions, usage_events, perfumes, notes,
       and perfume_notes.
How:   PostgreSQL types: UUID primary keys generated by gen_random_uuid(),
       TIMESTAMP WITH TIME ZONE, TEXT[] for season/climate tags.

Rollback: downgrade() drops every table (destructive, all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _created_at_column() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def _user_fk_column() -> sa.Column:
    return sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False)


def _user_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        ["user_id"], ["users.id"], ondelete="CASCADE", onupdate="CASCADE"
    )


def upgrade() -> None:
    # ── Accounts ──────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _id_column(),
        sa.Column(
            "email_hash",
            sa.String(64),
            nullable=False,
            comment="SHA-256 hex of the trimmed, lower-cased email",
        ),
        sa.Column(
            "phone_hash",
            sa.String(64),
            nullable=False,
            comment="SHA-256 hex of the phone number's digits",
        ),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email_hash", name="users_email_hash_key"),
    )

    op.create_table(
        "login_codes",
        _id_column(),
        _user_fk_column(),
        sa.Column("code", sa.String(6), nullable=False),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("consumed", sa.Boolean(), server_default=sa.false(), nullable=False),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        _user_fk(),
    )
    op.create_index("login_codes_user_id_idx", "login_codes", ["user_id"])
    op.create_index("login_codes_code_expires_at_idx", "login_codes", ["code", "expires_at"])

    op.create_table(
        "sessions",
        _id_column(),
        _user_fk_column(),
        sa.Column(
            "token_hash",
            sa.String(64),
            nullable=False,
            comment="SHA-256 hex of the session cookie value",
        ),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_hash", name="sessions_token_hash_key"),
        _user_fk(),
    )
    op.create_index("sessions_user_id_idx", "sessions", ["user_id"])

    op.create_table(
        "usage_events",
        _id_column(),
        _user_fk_column(),
        sa.Column("event_type", sa.String(50), nullable=False),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        _user_fk(),
    )
    op.create_index("usage_events_user_id_idx", "usage_events", ["user_id"])
    op.create_index("usage_events_created_at_idx", "usage_events", ["created_at"])
    op.create_index("usage_events_event_type_idx", "usage_events", ["event_type"])

    # ── Catalog ───────────────────────────────────────────────────────────
    op.create_table(
        "perfumes",
        _id_column(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("brand", sa.String(255), nullable=False),
        sa.Column("gender_marketing", sa.String(50), nullable=False),
        sa.Column("price_tier", sa.String(50), nullable=False),
        sa.Column("approximate_price", sa.Float(), nullable=True),
        sa.Column("release_year", sa.Integer(), nullable=True),
        sa.Column("concentration", sa.String(50), nullable=True),
        sa.Column("intensity_tag", sa.String(50), nullable=False),
        sa.Column(
            "season_tags",
            postgresql.ARRAY(sa.String(50)),
            server_default=sa.text("'{}'"),
            nullable=False,
        ),
        sa.Column(
            "climate_tags",
            postgresql.ARRAY(sa.String(50)),
            server_default=sa.text("'{}'"),
            nullable=False,
        ),
        sa.Column(
            "source_id",
            sa.String(255),
            nullable=True,
            comment="Identifier in the dataset the row was ingested from",
        ),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("perfumes_brand_idx", "perfumes", ["brand"])
    op.create_index("perfumes_price_tier_idx", "perfumes", ["price_tier"])
    op.create_index("perfumes_intensity_tag_idx", "perfumes", ["intensity_tag"])

    op.create_table(
        "notes",
        _id_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("note_family", sa.String(50), nullable=False),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="notes_name_key"),
    )
    op.create_index("notes_note_family_idx", "notes", ["note_family"])

    op.create_table(
        "perfume_notes",
        _id_column(),
        sa.Column("perfume_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("note_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("note_level", sa.String(20), nullable=False),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["perfume_id"], ["perfumes.id"], ondelete="CASCADE", onupdate="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["note_id"], ["notes.id"], ondelete="CASCADE", onupdate="CASCADE"
        ),
        sa.UniqueConstraint(
            "perfume_id", "note_id", name="perfume_notes_perfume_id_note_id_key"
        ),
    )
    op.create_index("perfume_notes_perfume_id_idx", "perfume_notes", ["perfume_id"])
    op.create_index("perfume_notes_note_id_idx", "perfume_notes", ["note_id"])
    op.create_index("perfume_notes_note_level_idx", "perfume_notes", ["note_level"])


def downgrade() -> None:
    """Drop children before parents."""
    op.drop_table("perfume_notes")
    op.drop_table("notes")
    op.drop_table("perfumes")
    op.drop_table("usage_events")
    op.drop_table("sessions")
    op.drop_table("login_codes")
    op.drop_table("users")
