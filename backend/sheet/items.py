from __future__ import annotations

from typing import Any

from models import Item
from sheet.coerce import to_flag, to_int, to_text

ITEM_TYPES = ("weapon", "armor", "consumable", "tool", "treasure", "equipment")
ITEM_CATEGORIES = ("equipment", "consumables", "tools", "treasure")

TYPE_TYPOS = {
    "tools": "tool",
    "consumables": "consumable",
    "treasures": "treasure",
    "weapons": "weapon",
}
CATEGORY_TYPOS = {
    "tool": "tools",
    "consumable": "consumables",
    "treasures": "treasure",
}
CATEGORY_TO_TYPE = {
    "tools": "tool",
    "consumables": "consumable",
    "treasure": "treasure",
    "equipment": "equipment",
}
TYPE_TO_CATEGORY = {
    "tool": "tools",
    "consumable": "consumables",
    "treasure": "treasure",
}

# payload key -> (column, converter)
ITEM_FIELDS: dict[str, tuple[str, Any]] = {
    "damage": ("damage", to_text),
    "toHit": ("to_hit", to_text),
    "range": ("range_property", to_text),
    "combatType": ("combat_type", to_text),
    "hands": ("hands", to_text),
    "light": ("light", to_flag),
    "offhandDamage": ("offhand_damage", to_text),
    "ac": ("ac", lambda value: to_int(value, None)),
    "dexBonus": ("dex_bonus", to_flag),
    "maxDexBonus": ("max_dex_bonus", lambda value: to_int(value, None)),
    "value": ("value", to_text),
    "quantity": ("quantity", lambda value: to_int(value, 1)),
    "properties": ("properties", lambda value: value),
}


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def normalize_item_kind(item_type: Any, category: Any) -> tuple[str, str]:
    """Return a consistent ``(type, category)`` pair.

    Precedence: an explicit valid type wins, then a type inferred from the
    category, then ``equipment``. The category always follows the final type.
    """
    raw_type = _clean(item_type)
    raw_type = TYPE_TYPOS.get(raw_type, raw_type)
    raw_category = _clean(category)
    raw_category = CATEGORY_TYPOS.get(raw_category, raw_category)

    if raw_type in ITEM_TYPES:
        resolved_type = raw_type
    elif raw_category in CATEGORY_TO_TYPE:
        resolved_type = CATEGORY_TO_TYPE[raw_category]
    else:
        resolved_type = "equipment"

    return resolved_type, TYPE_TO_CATEGORY.get(resolved_type, "equipment")


def item_columns(data: dict, *, partial: bool) -> dict[str, Any]:
    """Map a frontend item payload onto column values.

    With ``partial`` only keys present (and not null) in the payload are
    returned; otherwise every column gets a value.
    """
    columns: dict[str, Any] = {}
    if data.get("name") is not None:
        columns["name"] = str(data["name"]).strip()
    for key, (column, convert) in ITEM_FIELDS.items():
        if key in data and data[key] is not None:
            columns[column] = convert(data[key])
        elif not partial:
            columns[column] = convert(None)
    return columns


def format_item(item: Item) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "type": item.type,
        "category": item.category,
        "damage": item.damage,
        "toHit": item.to_hit,
        "range": item.range_property,
        "combatType": item.combat_type,
        "hands": item.hands,
        "light": bool(item.light),
        "offhandDamage": item.offhand_damage,
        "ac": item.ac,
        "dexBonus": bool(item.dex_bonus),
        "maxDexBonus": item.max_dex_bonus,
        "value": item.value,
        "quantity": item.quantity if item.quantity is not None else 1,
        "properties": item.properties,
    }


def group_by_category(items: list[dict]) -> dict[str, list[dict]]:
    grouped: dict[str, list[dict]] = {category: [] for category in ITEM_CATEGORIES}
    for item in items:
        _, category = normalize_item_kind(item.get("type"), item.get("category"))
        grouped[category].append(item)
    return grouped
