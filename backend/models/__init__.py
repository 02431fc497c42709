from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSON().with_variant(JSONB(), "postgresql")

SLOT_TYPES = ("armor", "mainhand", "offhand")
NOTE_TYPES = ("adventure", "character", "performance")
SNAPSHOT_TYPES = ("session_start", "session_end", "manual")
USER_ROLES = ("admin", "user")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(80), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    characters: Mapped[list[Character]] = relationship(back_populates="user")


class Character(Base):
    __tablename__ = "characters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    character_class: Mapped[str | None] = mapped_column("class", String(80))
    race: Mapped[str | None] = mapped_column(String(80))
    alignment: Mapped[str] = mapped_column(String(8), nullable=False, default="CN")
    portrait_mode: Mapped[str] = mapped_column(String(20), nullable=False, default="civil")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
    )

    user: Mapped[User | None] = relationship(back_populates="characters")
    stats: Mapped[CharacterStats | None] = relationship(
        back_populates="character", cascade="all, delete-orphan", passive_deletes=True
    )
    money: Mapped[Money | None] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    death_saves: Mapped[DeathSaves | None] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    items: Mapped[list[Item]] = relationship(
        back_populates="character", cascade="all, delete-orphan", passive_deletes=True
    )
    equipment_slots: Mapped[list[EquipmentSlot]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    notes: Mapped[list[Note]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    skills: Mapped[list[Skill]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    spell_slots: Mapped[list[SpellSlot]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    sessions: Mapped[list[Session]] = relationship(
        back_populates="character", cascade="all, delete-orphan", passive_deletes=True
    )


class CharacterStats(Base):
    __tablename__ = "character_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    str_stat: Mapped[int] = mapped_column("str", Integer, nullable=False, default=8)
    dex: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    con: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    int_stat: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    wis: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    cha: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    current_hp: Mapped[int] = mapped_column(Integer, nullable=False, default=9)
    max_hp: Mapped[int] = mapped_column(Integer, nullable=False, default=9)
    temp_hp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    armor_class: Mapped[int] = mapped_column(Integer, nullable=False, default=15)
    proficiency_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    current_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_bi: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    max_bi: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    current_hd: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_hd: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    character: Mapped[Character] = relationship(back_populates="stats")


class Item(Base):
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="equipment")
    category: Mapped[str] = mapped_column(String(20), nullable=False, default="equipment")
    damage: Mapped[str | None] = mapped_column(String(80))
    to_hit: Mapped[str | None] = mapped_column(String(20))
    range_property: Mapped[str | None] = mapped_column(String(80))
    combat_type: Mapped[str | None] = mapped_column(String(40))
    hands: Mapped[str | None] = mapped_column(String(20))
    light: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    offhand_damage: Mapped[str | None] = mapped_column(String(80))
    ac: Mapped[int | None] = mapped_column(Integer)
    dex_bonus: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_dex_bonus: Mapped[int | None] = mapped_column(Integer)
    value: Mapped[str | None] = mapped_column(String(80))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    properties: Mapped[dict | list | None] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    character: Mapped[Character] = relationship(back_populates="items")


class EquipmentSlot(Base):
    __tablename__ = "equipment_slots"
    __table_args__ = (UniqueConstraint("character_id", "slot_type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"), nullable=False
    )
    slot_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_id: Mapped[int | None] = mapped_column(ForeignKey("items.id", ondelete="SET NULL"))

    item: Mapped[Item | None] = relationship()


class Money(Base):
    __tablename__ = "money"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    gold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    silver: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    copper: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Note(Base):
    __tablename__ = "notes"
    __table_args__ = (UniqueConstraint("character_id", "type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")


class DeathSaves(Base):
    __tablename__ = "death_saves"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    successes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Skill(Base):
    __tablename__ = "skills"
    __table_args__ = (UniqueConstraint("character_id", "skill_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"), nullable=False
    )
    skill_name: Mapped[str] = mapped_column(String(80), nullable=False)
    proficient: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    expertise: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SpellSlot(Base):
    __tablename__ = "spell_slots"
    __table_args__ = (UniqueConstraint("character_id", "slot_level", "slot_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"), nullable=False
    )
    slot_level: Mapped[int] = mapped_column(Integer, nullable=False)
    slot_number: Mapped[int] = mapped_column(Integer, nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Session(Base):
    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_name: Mapped[str | None] = mapped_column(String(160))
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(Text)

    character: Mapped[Character] = relationship(back_populates="sessions")
    snapshots: Mapped[list[SessionSnapshot]] = relationship(
        back_populates="session", passive_deletes=True
    )


class SessionSnapshot(Base):
    __tablename__ = "session_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_id: Mapped[int | None] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"), index=True
    )
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    snapshot_type: Mapped[str] = mapped_column(String(20), nullable=False)
    character_data: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    session: Mapped[Session | None] = relationship(back_populates="snapshots")
