"""Item persistence for a character: inventory reconciliation and equipment slots.

``save_inventory`` treats the payload as the complete desired item set.
Items carrying an id owned by the character are updated in place, all
others are inserted, and afterwards every item of the character that is
neither equipped nor part of the payload is deleted.

There is no version check: two concurrent saves for the same character
race, and the last one to commit decides the item set (including deleting
items the other request just created).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from errors import BadRequestError, CharSheetError, InventoryError
from logs import get_logger
from models import SLOT_TYPES, EquipmentSlot, Item
from sheet.coerce import to_int
from sheet.items import item_columns, normalize_item_kind

logger = get_logger(__name__)


@dataclass
class InventorySaveResult:
    created: int = 0
    updated: int = 0
    pruned: int = 0
    kept_ids: set[int] = field(default_factory=set)


def create_item(
    db: Session, character_id: int, data: dict, *, category: str | None = None
) -> Item:
    name = str(data.get("name") or "").strip()
    if not name:
        raise BadRequestError("Item name is missing")
    item_type, item_category = normalize_item_kind(
        data.get("type"), data.get("category") or category
    )
    columns = item_columns(data, partial=False)
    columns["name"] = name
    item = Item(
        character_id=character_id,
        type=item_type,
        category=item_category,
        **columns,
    )
    db.add(item)
    db.flush()
    return item


def update_item(item: Item, data: dict) -> Item:
    for column, value in item_columns(data, partial=True).items():
        if column == "name" and not value:
            continue
        setattr(item, column, value)

    if data.get("type") is not None:
        incoming_type = data["type"]
    elif data.get("category") is not None:
        incoming_type = None
    else:
        incoming_type = item.type
    item.type, item.category = normalize_item_kind(
        incoming_type, data.get("category") or item.category
    )
    return item


def owned_items(db: Session, character_id: int) -> dict[int, Item]:
    records = db.scalars(select(Item).where(Item.character_id == character_id))
    return {record.id: record for record in records}


def equipped_item_ids(db: Session, character_id: int) -> set[int]:
    rows = db.scalars(
        select(EquipmentSlot.item_id)
        .where(EquipmentSlot.character_id == character_id)
        .where(EquipmentSlot.item_id.is_not(None))
    )
    return {int(item_id) for item_id in rows}


def _iter_payload(inventory: Any) -> Iterable[tuple[str | None, Any]]:
    if isinstance(inventory, dict):
        for category, entries in inventory.items():
            if not isinstance(entries, list):
                continue
            for entry in entries:
                yield category, entry
    elif isinstance(inventory, list):
        for entry in inventory:
            yield None, entry
    else:
        raise BadRequestError("inventory must be a list or an object keyed by category")


def save_inventory(db: Session, character_id: int, inventory: Any) -> InventorySaveResult:
    """Write the desired item set and prune everything else that is not equipped.

    Every entry is attempted; if any of them fails the collected messages are
    raised together as ``InventoryError`` and the caller's transaction rolls
    the whole write back.
    """
    result = InventorySaveResult()
    failures: list[str] = []
    existing = owned_items(db, character_id)

    for category, entry in _iter_payload(inventory):
        if not isinstance(entry, dict):
            failures.append(f"Item {entry!r}: not an object")
            continue
        try:
            item_id = to_int(entry.get("id"), None)
            if item_id and item_id in existing:
                update_item(existing[item_id], entry)
                result.updated += 1
                result.kept_ids.add(item_id)
            else:
                item = create_item(db, character_id, entry, category=category)
                existing[item.id] = item
                result.created += 1
                result.kept_ids.add(item.id)
        except CharSheetError as exc:
            label = entry.get("name") or "unknown"
            failures.append(f"Item '{label}': {exc.message}")
            logger.warning(
                "inventory.item_failed",
                character_id=character_id,
                item=label,
                error=exc.message,
            )

    if failures:
        raise InventoryError(failures)

    db.flush()
    retain = equipped_item_ids(db, character_id) | result.kept_ids
    pruned = db.execute(
        delete(Item)
        .where(Item.character_id == character_id)
        .where(Item.id.not_in(retain))
        .execution_options(synchronize_session="fetch")
    )
    result.pruned = pruned.rowcount or 0
    logger.info(
        "inventory.saved",
        character_id=character_id,
        created=result.created,
        updated=result.updated,
        kept=len(retain),
        pruned=result.pruned,
    )
    return result


def find_or_create_item(
    db: Session, character_id: int, data: dict, existing: dict[int, Item]
) -> Item:
    item_id = to_int(data.get("id"), None)
    if item_id and item_id in existing:
        return update_item(existing[item_id], data)

    wanted_type, _ = normalize_item_kind(data.get("type"), data.get("category"))
    name = str(data.get("name") or "").strip()
    for record in existing.values():
        if record.name == name and record.type == wanted_type:
            return update_item(record, data)

    item = create_item(db, character_id, data)
    existing[item.id] = item
    return item


def _resolve_slot_item(
    db: Session, character_id: int, value: Any, existing: dict[int, Item]
) -> int | None:
    if not value:
        return None
    if isinstance(value, dict):
        if value.get("name"):
            return find_or_create_item(db, character_id, value, existing).id
        item_id = to_int(value.get("id"), None)
    elif isinstance(value, bool):
        return None
    else:
        item_id = to_int(value, None)
    return item_id if item_id in existing else None


def init_equipment(db: Session, character_id: int) -> None:
    for slot_type in SLOT_TYPES:
        db.add(EquipmentSlot(character_id=character_id, slot_type=slot_type, item_id=None))
    db.flush()


def save_equipment(db: Session, character_id: int, equipment: Any) -> dict[str, int | None]:
    """Point each slot at an owned item (object, bare id or null)."""
    if not isinstance(equipment, dict):
        raise BadRequestError("equipment must be an object keyed by slot")

    existing = owned_items(db, character_id)
    slots = {
        slot.slot_type: slot
        for slot in db.scalars(
            select(EquipmentSlot).where(EquipmentSlot.character_id == character_id)
        )
    }
    assigned: dict[str, int | None] = {}
    for slot_type in SLOT_TYPES:
        item_id = _resolve_slot_item(db, character_id, equipment.get(slot_type), existing)
        slot = slots.get(slot_type)
        if slot is None:
            slot = EquipmentSlot(character_id=character_id, slot_type=slot_type)
            db.add(slot)
        slot.item_id = item_id
        assigned[slot_type] = item_id
    db.flush()
    return assigned


def repair_item_kinds(db: Session, character_id: int | None = None) -> list[dict]:
    """Re-apply kind normalization to stored items and report the changes."""
    query = select(Item).order_by(Item.id)
    if character_id is not None:
        query = query.where(Item.character_id == character_id)

    changes: list[dict] = []
    for item in db.scalars(query):
        new_type, new_category = normalize_item_kind(item.type, item.category)
        if (new_type, new_category) == (item.type, item.category):
            continue
        changes.append(
            {
                "id": item.id,
                "character_id": item.character_id,
                "name": item.name,
                "old_type": item.type,
                "new_type": new_type,
                "old_category": item.category,
                "new_category": new_category,
            }
        )
        item.type, item.category = new_type, new_category
    db.flush()
    return changes
