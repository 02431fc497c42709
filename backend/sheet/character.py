from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db import transaction
from errors import BadRequestError, NotFoundError
from logs import get_logger
from models import (
    NOTE_TYPES,
    Character,
    CharacterStats,
    DeathSaves,
    EquipmentSlot,
    Item,
    Money,
    Note,
    Skill,
    SpellSlot,
    User,
)
from sheet.coerce import is_present, to_flag, to_int, to_text
from sheet.inventory import init_equipment, save_equipment, save_inventory
from sheet.items import format_item

logger = get_logger(__name__)

DEFAULT_NAME = "New Character"
DEFAULT_LEVEL = 1
DEFAULT_ALIGNMENT = "CN"
DEFAULT_PORTRAIT_MODE = "civil"
DEATH_SAVE_LIMIT = 3
STARTING_SPELL_SLOTS = 2

# payload key -> column attribute
STAT_FIELDS = {
    "str": "str_stat",
    "dex": "dex",
    "con": "con",
    "int": "int_stat",
    "wis": "wis",
    "cha": "cha",
    "current_hp": "current_hp",
    "max_hp": "max_hp",
    "temp_hp": "temp_hp",
    "armor_class": "armor_class",
    "proficiency_bonus": "proficiency_bonus",
    "current_xp": "current_xp",
    "current_bi": "current_bi",
    "max_bi": "max_bi",
    "current_hd": "current_hd",
    "max_hd": "max_hd",
}
STAT_DEFAULTS = {
    "str": 8,
    "dex": 8,
    "con": 8,
    "int": 8,
    "wis": 8,
    "cha": 8,
    "current_hp": 9,
    "max_hp": 9,
    "temp_hp": 0,
    "armor_class": 15,
    "proficiency_bonus": 2,
    "current_xp": 0,
    "current_bi": 2,
    "max_bi": 3,
    "current_hd": 1,
    "max_hd": 1,
}
MONEY_FIELDS = ("gold", "silver", "copper")

# update order matters: equipment is written before inventory so that newly
# equipped items are part of the retain set when the inventory is pruned
SUB_RESOURCES = (
    "stats",
    "equipment",
    "inventory",
    "spellSlots",
    "money",
    "notes",
    "deathSaves",
    "skills",
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _get_character(db: Session, character_id: int) -> Character:
    character = db.get(Character, character_id)
    if character is None:
        raise NotFoundError("Character not found")
    return character


def _require_object(data: Any, field: str) -> dict:
    if not isinstance(data, dict):
        raise BadRequestError(f"{field} must be an object")
    return data


def _require_list(data: Any, field: str) -> list:
    if not isinstance(data, list):
        raise BadRequestError(f"{field} must be a list")
    return data


# --- stats -----------------------------------------------------------------


def _stat_value(stats: dict, key: str, default: int) -> int:
    if key == "int" and not is_present(stats, "int"):
        return to_int(stats.get("int_stat"), default)
    return to_int(stats.get(key), default)


def get_stats(db: Session, character_id: int) -> dict | None:
    record = db.scalars(
        select(CharacterStats).where(CharacterStats.character_id == character_id)
    ).first()
    if record is None:
        return None
    return {key: getattr(record, column) for key, column in STAT_FIELDS.items()}


def init_stats(db: Session, character_id: int, stats: dict | None) -> CharacterStats:
    stats = stats or {}
    values = {
        STAT_FIELDS[key]: _stat_value(stats, key, default)
        for key, default in STAT_DEFAULTS.items()
    }
    record = CharacterStats(character_id=character_id, **values)
    db.add(record)
    db.flush()
    return record


def update_stats(db: Session, character_id: int, stats: Any) -> None:
    stats = _require_object(stats, "stats")
    record = db.scalars(
        select(CharacterStats).where(CharacterStats.character_id == character_id)
    ).first()
    if record is None:
        init_stats(db, character_id, stats)
        return
    for key, column in STAT_FIELDS.items():
        present = is_present(stats, key) or (key == "int" and is_present(stats, "int_stat"))
        if present:
            setattr(record, column, _stat_value(stats, key, getattr(record, column)))


# --- equipment & inventory -------------------------------------------------


def get_equipment(db: Session, character_id: int) -> dict[str, dict | None]:
    equipment: dict[str, dict | None] = {"armor": None, "mainhand": None, "offhand": None}
    slots = db.scalars(
        select(EquipmentSlot).where(EquipmentSlot.character_id == character_id)
    )
    for slot in slots:
        equipment[slot.slot_type] = format_item(slot.item) if slot.item is not None else None
    return equipment


def get_inventory(db: Session, character_id: int) -> list[dict]:
    equipped = (
        select(EquipmentSlot.item_id)
        .where(EquipmentSlot.character_id == character_id)
        .where(EquipmentSlot.item_id.is_not(None))
    )
    records = db.scalars(
        select(Item)
        .where(Item.character_id == character_id)
        .where(Item.id.not_in(equipped))
        .order_by(Item.category, Item.name, Item.id)
    )
    return [format_item(record) for record in records]


# --- spell slots -----------------------------------------------------------


def get_spell_slots(db: Session, character_id: int) -> list[bool]:
    """Level-1 slots only, as an ordered list of used flags."""
    records = db.scalars(
        select(SpellSlot)
        .where(SpellSlot.character_id == character_id)
        .where(SpellSlot.slot_level == 1)
        .order_by(SpellSlot.slot_number)
    )
    return [bool(record.used) for record in records]


def save_spell_slots(db: Session, character_id: int, slots: Any) -> None:
    slots = _require_list(slots, "spellSlots")
    existing = {
        record.slot_number: record
        for record in db.scalars(
            select(SpellSlot)
            .where(SpellSlot.character_id == character_id)
            .where(SpellSlot.slot_level == 1)
        )
    }
    for index, used in enumerate(slots, start=1):
        record = existing.get(index)
        if record is None:
            db.add(
                SpellSlot(
                    character_id=character_id,
                    slot_level=1,
                    slot_number=index,
                    used=to_flag(used),
                )
            )
        else:
            record.used = to_flag(used)
    for number, record in existing.items():
        if number > len(slots):
            db.delete(record)
    db.flush()


def init_spell_slots(db: Session, character_id: int, level: int) -> None:
    count = STARTING_SPELL_SLOTS if level >= 1 else 0
    save_spell_slots(db, character_id, [False] * count)


# --- money -----------------------------------------------------------------


def get_money(db: Session, character_id: int) -> dict:
    record = db.scalars(select(Money).where(Money.character_id == character_id)).first()
    if record is None:
        return {"gold": 0, "silver": 0, "copper": 0}
    return {field: getattr(record, field) for field in MONEY_FIELDS}


def save_money(db: Session, character_id: int, money: Any) -> None:
    money = _require_object(money, "money")
    record = db.scalars(select(Money).where(Money.character_id == character_id)).first()
    if record is None:
        record = Money(character_id=character_id, gold=0, silver=0, copper=0)
        db.add(record)
    for field in MONEY_FIELDS:
        if is_present(money, field):
            setattr(record, field, to_int(money[field], 0))
    db.flush()


# --- notes -----------------------------------------------------------------


def get_notes(db: Session, character_id: int) -> dict[str, str]:
    records = db.scalars(select(Note).where(Note.character_id == character_id))
    return {record.type: record.content for record in records}


def save_notes(db: Session, character_id: int, notes: Any) -> None:
    notes = _require_object(notes, "notes")
    existing = {
        record.type: record
        for record in db.scalars(select(Note).where(Note.character_id == character_id))
    }
    for note_type in NOTE_TYPES:
        if note_type not in notes:
            continue
        content = to_text(notes[note_type]) or ""
        record = existing.get(note_type)
        if record is None:
            db.add(Note(character_id=character_id, type=note_type, content=content))
        else:
            record.content = content
    db.flush()


# --- death saves -----------------------------------------------------------


def _save_count(value: Any) -> int:
    count = len(value) if isinstance(value, list) else to_int(value, 0)
    return max(0, min(DEATH_SAVE_LIMIT, count))


def get_death_saves(db: Session, character_id: int) -> dict[str, list[int]]:
    record = db.scalars(
        select(DeathSaves).where(DeathSaves.character_id == character_id)
    ).first()
    if record is None:
        return {"successes": [], "failures": []}
    return {
        "successes": list(range(1, record.successes + 1)),
        "failures": list(range(1, record.failures + 1)),
    }


def save_death_saves(db: Session, character_id: int, saves: Any) -> None:
    saves = _require_object(saves, "deathSaves")
    record = db.scalars(
        select(DeathSaves).where(DeathSaves.character_id == character_id)
    ).first()
    if record is None:
        record = DeathSaves(character_id=character_id, successes=0, failures=0)
        db.add(record)
    record.successes = _save_count(saves.get("successes"))
    record.failures = _save_count(saves.get("failures"))
    db.flush()


# --- skills ----------------------------------------------------------------


def get_skills(db: Session, character_id: int) -> list[dict]:
    records = db.scalars(
        select(Skill).where(Skill.character_id == character_id).order_by(Skill.skill_name)
    )
    return [
        {
            "skill_name": record.skill_name,
            "proficient": bool(record.proficient),
            "expertise": bool(record.expertise),
            "bonus": record.bonus,
        }
        for record in records
    ]


def save_skills(db: Session, character_id: int, skills: Any) -> None:
    """Replace the character's skill rows with the given list."""
    skills = _require_list(skills, "skills")
    wanted: dict[str, Skill] = {}
    for entry in skills:
        if not isinstance(entry, dict) or not entry.get("skill_name"):
            raise BadRequestError("Every skill needs a skill_name")
        name = str(entry["skill_name"]).strip()
        wanted[name] = Skill(
            character_id=character_id,
            skill_name=name,
            proficient=to_flag(entry.get("proficient")),
            expertise=to_flag(entry.get("expertise")),
            bonus=to_int(entry.get("bonus"), 0),
        )
    db.execute(delete(Skill).where(Skill.character_id == character_id))
    db.add_all(wanted.values())
    db.flush()


# --- aggregate -------------------------------------------------------------


def character_summary(character: Character) -> dict:
    return {
        "id": character.id,
        "name": character.name,
        "level": character.level,
        "class": character.character_class,
        "race": character.race,
        "alignment": character.alignment,
        "portrait_mode": character.portrait_mode,
        "user_id": character.user_id,
        "created_at": _iso(character.created_at),
        "updated_at": _iso(character.updated_at),
    }


def load_character(db: Session, character_id: int) -> dict:
    """Return the full nested character sheet consumed by the browser."""
    character = _get_character(db, character_id)
    payload = character_summary(character)
    payload["stats"] = get_stats(db, character_id)
    payload["equipment"] = get_equipment(db, character_id)
    payload["inventory"] = get_inventory(db, character_id)
    payload["spellSlots"] = get_spell_slots(db, character_id)
    payload["money"] = get_money(db, character_id)
    payload["notes"] = get_notes(db, character_id)
    payload["deathSaves"] = get_death_saves(db, character_id)
    payload["skills"] = get_skills(db, character_id)
    return payload


def list_characters(db: Session, *, user_id: int | None, is_admin: bool) -> list[dict]:
    query = select(Character).order_by(Character.name, Character.id)
    if not is_admin:
        query = query.where(Character.user_id == user_id)
    records = db.scalars(query).all()
    if is_admin:
        return [
            {
                "id": record.id,
                "name": record.name,
                "level": record.level,
                "class": record.character_class,
                "race": record.race,
                "alignment": record.alignment,
                "portrait_mode": record.portrait_mode,
                "user_id": record.user_id,
            }
            for record in records
        ]
    return [
        {
            "id": record.id,
            "name": record.name,
            "level": record.level,
            "class": record.character_class,
            "race": record.race,
        }
        for record in records
    ]


def _apply_base_fields(character: Character, data: dict) -> None:
    if is_present(data, "name") and str(data["name"]).strip():
        character.name = str(data["name"]).strip()
    if is_present(data, "level"):
        character.level = max(1, to_int(data["level"], character.level or DEFAULT_LEVEL))
    if is_present(data, "alignment"):
        character.alignment = str(data["alignment"])
    if is_present(data, "portrait_mode"):
        character.portrait_mode = str(data["portrait_mode"])
    if "class" in data:
        character.character_class = to_text(data["class"])
    if "race" in data:
        character.race = to_text(data["race"])
    if "user_id" in data:
        character.user_id = to_int(data["user_id"], None)


def create_character(db: Session, data: dict, *, owner_id: int | None) -> int:
    """Insert a character and all of its sub-resources in one transaction."""
    data = _require_object(data, "character")
    with transaction(db):
        level = max(1, to_int(data.get("level"), DEFAULT_LEVEL))
        character = Character(
            name=str(data.get("name") or "").strip() or DEFAULT_NAME,
            level=level,
            alignment=str(data.get("alignment") or DEFAULT_ALIGNMENT),
            portrait_mode=str(data.get("portrait_mode") or DEFAULT_PORTRAIT_MODE),
            character_class=to_text(data.get("class")),
            race=to_text(data.get("race")),
            user_id=owner_id,
        )
        db.add(character)
        db.flush()
        character_id = character.id

        stats = data.get("stats")
        init_stats(db, character_id, _require_object(stats, "stats") if stats else None)
        init_equipment(db, character_id)
        save_money(db, character_id, data.get("money") or {})
        if data.get("spellSlots") is not None:
            save_spell_slots(db, character_id, data["spellSlots"])
        else:
            init_spell_slots(db, character_id, level)
        save_death_saves(db, character_id, data.get("deathSaves") or {})
        notes = {note_type: "" for note_type in NOTE_TYPES}
        notes.update(_require_object(data.get("notes") or {}, "notes"))
        save_notes(db, character_id, notes)
        if data.get("inventory") is not None:
            save_inventory(db, character_id, data["inventory"])
        if data.get("equipment") is not None:
            save_equipment(db, character_id, data["equipment"])
        if data.get("skills") is not None:
            save_skills(db, character_id, data["skills"])

    logger.info("characters.created", character_id=character_id, owner_id=owner_id)
    return character_id


_WRITERS = {
    "stats": update_stats,
    "equipment": save_equipment,
    "inventory": save_inventory,
    "spellSlots": save_spell_slots,
    "money": save_money,
    "notes": save_notes,
    "deathSaves": save_death_saves,
    "skills": save_skills,
}


def update_character(db: Session, character_id: int, data: dict) -> None:
    """Apply a partial update; sub-resources absent from ``data`` are untouched.

    All writes share one transaction, so any failure leaves the stored
    character exactly as it was.
    """
    data = _require_object(data, "character")
    with transaction(db):
        character = _get_character(db, character_id)
        if data.get("user_id") is not None:
            owner_id = to_int(data["user_id"], None)
            if owner_id is None or isinstance(data["user_id"], bool):
                raise BadRequestError("user_id must be a user id or null")
            if db.get(User, owner_id) is None:
                raise BadRequestError("Unknown user")
        _apply_base_fields(character, data)
        for field in SUB_RESOURCES:
            if data.get(field) is not None:
                _WRITERS[field](db, character_id, data[field])
        character.updated_at = datetime.now(timezone.utc)
        db.flush()

    logger.info(
        "characters.updated",
        character_id=character_id,
        fields=sorted(key for key in data if data[key] is not None),
    )


def delete_character(db: Session, character_id: int) -> bool:
    """Delete the character row; dependent rows go with it through FK cascades."""
    with transaction(db):
        result = db.execute(delete(Character).where(Character.id == character_id))
    deleted = (result.rowcount or 0) > 0
    if deleted:
        logger.info("characters.deleted", character_id=character_id)
    return deleted
