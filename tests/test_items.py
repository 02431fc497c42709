import pytest

from models import Item
from sheet.items import format_item, group_by_category, item_columns, normalize_item_kind


@pytest.mark.parametrize(
    ("item_type", "category", "expected"),
    [
        ("tools", None, ("tool", "tools")),
        ("Tools", "", ("tool", "tools")),
        ("consumables", "equipment", ("consumable", "consumables")),
        ("treasures", None, ("treasure", "treasure")),
        ("weapons", None, ("weapon", "equipment")),
        ("weapon", "tools", ("weapon", "equipment")),
        ("tool", "equipment", ("tool", "tools")),
        (None, "tools", ("tool", "tools")),
        (None, "tool", ("tool", "tools")),
        ("", "consumable", ("consumable", "consumables")),
        (None, "treasures", ("treasure", "treasure")),
        ("gizmo", None, ("equipment", "equipment")),
        (None, None, ("equipment", "equipment")),
        ("armor", "armor", ("armor", "equipment")),
    ],
)
def test_normalize_item_kind(item_type, category, expected) -> None:
    assert normalize_item_kind(item_type, category) == expected


def test_item_columns_full_fills_defaults() -> None:
    columns = item_columns({"name": " Dagger ", "light": "false", "toHit": 4}, partial=False)
    assert columns["name"] == "Dagger"
    assert columns["light"] is False
    assert columns["to_hit"] == "4"
    assert columns["quantity"] == 1
    assert columns["ac"] is None
    assert columns["dex_bonus"] is False


def test_item_columns_partial_only_present_keys() -> None:
    columns = item_columns({"quantity": "3", "damage": None, "dexBonus": 1}, partial=True)
    assert columns == {"quantity": 3, "dex_bonus": True}


def test_format_item_uses_frontend_keys() -> None:
    item = Item(
        id=4,
        name="Shortsword",
        type="weapon",
        category="equipment",
        damage="1d6",
        to_hit="+5",
        range_property="5 ft",
        combat_type="melee",
        hands="1",
        light=True,
        offhand_damage="1d6",
        ac=None,
        dex_bonus=False,
        max_dex_bonus=None,
        value="10 gp",
        quantity=None,
        properties={"finesse": True},
    )
    payload = format_item(item)
    assert payload["toHit"] == "+5"
    assert payload["range"] == "5 ft"
    assert payload["combatType"] == "melee"
    assert payload["offhandDamage"] == "1d6"
    assert payload["light"] is True
    assert payload["quantity"] == 1
    assert payload["properties"] == {"finesse": True}


def test_group_by_category_repairs_kind() -> None:
    grouped = group_by_category(
        [
            {"name": "Rope", "type": "equipment", "category": "equipment"},
            {"name": "Thieves' Tools", "type": "tools"},
            {"name": "Ruby", "type": "treasure", "category": "treasures"},
        ]
    )
    assert [item["name"] for item in grouped["tools"]] == ["Thieves' Tools"]
    assert [item["name"] for item in grouped["treasure"]] == ["Ruby"]
    assert [item["name"] for item in grouped["equipment"]] == ["Rope"]
    assert grouped["consumables"] == []
