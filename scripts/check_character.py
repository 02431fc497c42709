"""Fetch a character over the HTTP API and print its sheet.

    python scripts/check_character.py 1 --username admin --password admin123
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "backend"))

from sheet.items import group_by_category  # noqa: E402


class CharSheetClientError(RuntimeError):
    pass


class CharSheetClient:
    def __init__(self, *, base_url: str | None = None, timeout: int | None = None) -> None:
        self.base_url = (base_url or os.getenv("CHARSHEET_URL") or "http://localhost:8000").rstrip(
            "/"
        )
        if timeout is None:
            timeout = int(os.getenv("CHARSHEET_TIMEOUT", "10"))
        self.timeout = timeout
        self.http = requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> object:
        try:
            response = self.http.request(
                method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            raise CharSheetClientError(f"API not reachable at {self.base_url}: {exc}") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise CharSheetClientError(
                f"Invalid JSON from {path}: {response.text[:200]}"
            ) from exc
        if response.status_code >= 400:
            message = payload.get("error") if isinstance(payload, dict) else payload
            raise CharSheetClientError(f"{response.status_code}: {message}")
        return payload

    def login(self, username: str, password: str) -> dict:
        return self._request(
            "POST",
            "/auth",
            params={"action": "login"},
            json={"username": username, "password": password},
        )

    def get_character(self, character_id: int) -> dict:
        return self._request("GET", "/characters", params={"id": character_id})


def format_item_line(item: dict) -> str:
    details = []
    if item.get("damage"):
        details.append(f"damage {item['damage']}")
    if item.get("ac") is not None:
        details.append(f"AC {item['ac']}")
    if item.get("quantity", 1) != 1:
        details.append(f"x{item['quantity']}")
    suffix = f" ({', '.join(details)})" if details else ""
    return f"    - [{item.get('id')}] {item.get('name')} <{item.get('type')}>{suffix}"


def format_sheet(character: dict) -> str:
    lines = [
        f"#{character.get('id')} {character.get('name')}",
        f"  Level {character.get('level')} {character.get('race') or '?'} "
        f"{character.get('class') or '?'}, alignment {character.get('alignment')}",
        "",
    ]

    stats = character.get("stats") or {}
    if stats:
        abilities = " ".join(
            f"{key.upper()} {stats.get(key, 0)}" for key in ("str", "dex", "con", "int", "wis", "cha")
        )
        lines += [
            "Stats:",
            f"  {abilities}",
            f"  HP {stats.get('current_hp', 0)}/{stats.get('max_hp', 0)} "
            f"(temp {stats.get('temp_hp', 0)}), AC {stats.get('armor_class', 0)}, "
            f"proficiency +{stats.get('proficiency_bonus', 0)}, XP {stats.get('current_xp', 0)}",
            f"  Inspiration {stats.get('current_bi', 0)}/{stats.get('max_bi', 0)}, "
            f"hit dice {stats.get('current_hd', 0)}/{stats.get('max_hd', 0)}",
            "",
        ]

    lines.append("Equipment:")
    for slot, item in (character.get("equipment") or {}).items():
        lines.append(f"  {slot}: {item['name'] if item else '-'}")
    lines.append("")

    lines.append("Inventory:")
    for category, items in group_by_category(character.get("inventory") or []).items():
        lines.append(f"  {category} ({len(items)})")
        lines.extend(format_item_line(item) for item in items)
    lines.append("")

    money = character.get("money") or {}
    lines.append(
        f"Money: {money.get('gold', 0)} gp, {money.get('silver', 0)} sp, {money.get('copper', 0)} cp"
    )
    slots = character.get("spellSlots") or []
    lines.append(f"Spell slots (level 1): {sum(1 for used in slots if used)}/{len(slots)} used")
    saves = character.get("deathSaves") or {}
    lines.append(
        f"Death saves: {len(saves.get('successes') or [])} successes, "
        f"{len(saves.get('failures') or [])} failures"
    )
    skills = [skill["skill_name"] for skill in character.get("skills") or [] if skill.get("proficient")]
    lines.append(f"Proficient skills: {', '.join(skills) if skills else '-'}")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Print a character sheet from the API.")
    parser.add_argument("character_id", type=int)
    parser.add_argument("--url", default=None)
    parser.add_argument("--username", default=os.getenv("CHARSHEET_USERNAME", "admin"))
    parser.add_argument("--password", default=os.getenv("CHARSHEET_PASSWORD", "admin123"))
    args = parser.parse_args(argv)

    client = CharSheetClient(base_url=args.url)
    try:
        client.login(args.username, args.password)
        character = client.get_character(args.character_id)
    except CharSheetClientError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    print(format_sheet(character))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
