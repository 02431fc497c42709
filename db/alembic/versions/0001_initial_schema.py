"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def _character_fk(**kwargs) -> sa.Column:
    return sa.Column(
        "character_id",
        sa.Integer,
        sa.ForeignKey("characters.id", ondelete="CASCADE"),
        nullable=False,
        **kwargs,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("username", sa.String(length=80), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        _created_at(),
    )

    op.create_table(
        "characters",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("level", sa.Integer, nullable=False, server_default="1"),
        sa.Column("class", sa.String(length=80)),
        sa.Column("race", sa.String(length=80)),
        sa.Column("alignment", sa.String(length=8), nullable=False, server_default="CN"),
        sa.Column("portrait_mode", sa.String(length=20), nullable=False, server_default="civil"),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )

    stat_defaults = {
        "str": "8",
        "dex": "8",
        "con": "8",
        "int_stat": "8",
        "wis": "8",
        "cha": "8",
        "current_hp": "9",
        "max_hp": "9",
        "temp_hp": "0",
        "armor_class": "15",
        "proficiency_bonus": "2",
        "current_xp": "0",
        "current_bi": "2",
        "max_bi": "3",
        "current_hd": "1",
        "max_hd": "1",
    }
    op.create_table(
        "character_stats",
        sa.Column("id", sa.Integer, primary_key=True),
        _character_fk(unique=True),
        *[
            sa.Column(name, sa.Integer, nullable=False, server_default=default)
            for name, default in stat_defaults.items()
        ],
    )

    op.create_table(
        "items",
        sa.Column("id", sa.Integer, primary_key=True),
        _character_fk(index=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="equipment"),
        sa.Column("category", sa.String(length=20), nullable=False, server_default="equipment"),
        sa.Column("damage", sa.String(length=80)),
        sa.Column("to_hit", sa.String(length=20)),
        sa.Column("range_property", sa.String(length=80)),
        sa.Column("combat_type", sa.String(length=40)),
        sa.Column("hands", sa.String(length=20)),
        sa.Column("light", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("offhand_damage", sa.String(length=80)),
        sa.Column("ac", sa.Integer),
        sa.Column("dex_bonus", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("max_dex_bonus", sa.Integer),
        sa.Column("value", sa.String(length=80)),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("properties", postgresql.JSONB),
        _created_at(),
    )

    op.create_table(
        "equipment_slots",
        sa.Column("id", sa.Integer, primary_key=True),
        _character_fk(),
        sa.Column("slot_type", sa.String(length=20), nullable=False),
        sa.Column("item_id", sa.Integer, sa.ForeignKey("items.id", ondelete="SET NULL")),
        sa.UniqueConstraint("character_id", "slot_type"),
    )

    op.create_table(
        "money",
        sa.Column("id", sa.Integer, primary_key=True),
        _character_fk(unique=True),
        sa.Column("gold", sa.Integer, nullable=False, server_default="0"),
        sa.Column("silver", sa.Integer, nullable=False, server_default="0"),
        sa.Column("copper", sa.Integer, nullable=False, server_default="0"),
    )

    op.create_table(
        "notes",
        sa.Column("id", sa.Integer, primary_key=True),
        _character_fk(),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.UniqueConstraint("character_id", "type"),
    )

    op.create_table(
        "death_saves",
        sa.Column("id", sa.Integer, primary_key=True),
        _character_fk(unique=True),
        sa.Column("successes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("failures", sa.Integer, nullable=False, server_default="0"),
    )

    op.create_table(
        "skills",
        sa.Column("id", sa.Integer, primary_key=True),
        _character_fk(),
        sa.Column("skill_name", sa.String(length=80), nullable=False),
        sa.Column("proficient", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("expertise", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("bonus", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint("character_id", "skill_name"),
    )

    op.create_table(
        "spell_slots",
        sa.Column("id", sa.Integer, primary_key=True),
        _character_fk(),
        sa.Column("slot_level", sa.Integer, nullable=False),
        sa.Column("slot_number", sa.Integer, nullable=False),
        sa.Column("used", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("character_id", "slot_level", "slot_number"),
    )

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer, primary_key=True),
        _character_fk(index=True),
        sa.Column("session_name", sa.String(length=160)),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("ended_at", sa.DateTime(timezone=True)),
        sa.Column("notes", sa.Text),
    )

    op.create_table(
        "session_snapshots",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "session_id",
            sa.Integer,
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            index=True,
        ),
        _character_fk(index=True),
        sa.Column("snapshot_type", sa.String(length=20), nullable=False),
        sa.Column("character_data", sa.Text, nullable=False),
        _created_at(),
    )


def downgrade() -> None:
    op.drop_table("session_snapshots")
    op.drop_table("sessions")
    op.drop_table("spell_slots")
    op.drop_table("skills")
    op.drop_table("death_saves")
    op.drop_table("notes")
    op.drop_table("money")
    op.drop_table("equipment_slots")
    op.drop_table("items")
    op.drop_table("character_stats")
    op.drop_table("characters")
    op.drop_table("users")
