import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent
sys.path = [path for path in sys.path if Path(path).resolve() != SCRIPT_DIR]

REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(REPO_ROOT))
sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import func, select  # noqa: E402

import settings  # noqa: E402
from db import SessionLocal  # noqa: E402
from logs import configure_logging  # noqa: E402
from models import Character, User  # noqa: E402
from sheet.accounts import ensure_default_admin  # noqa: E402
from sheet.character import create_character  # noqa: E402

DEMO_CHARACTER = {
    "name": "Demo Bard",
    "level": 1,
    "class": "Bard",
    "race": "Half-Elf",
    "alignment": "CG",
    "stats": {"str": 8, "dex": 14, "con": 12, "int": 10, "wis": 10, "cha": 16},
    "money": {"gold": 15, "silver": 0, "copper": 0},
    "inventory": [
        {"name": "Lute", "type": "tool"},
        {"name": "Potion of Healing", "type": "consumable", "quantity": 2},
        {"name": "Rapier", "type": "weapon", "damage": "1d8", "combatType": "melee"},
        {"name": "Leather Armor", "type": "armor", "ac": 11, "dexBonus": True},
    ],
    "equipment": {
        "armor": {"name": "Leather Armor", "type": "armor"},
        "mainhand": {"name": "Rapier", "type": "weapon"},
        "offhand": None,
    },
}


def seed_admin(session) -> User:
    if ensure_default_admin(session):
        print("Created default admin account.")
    username, _ = settings.default_admin_credentials()
    admin = session.scalars(select(User).where(User.username == username)).first()
    if admin is None:
        admin = session.scalars(select(User).where(User.role == "admin")).first()
    return admin


def seed_demo_character(session, owner: User | None) -> None:
    if session.scalar(select(func.count(Character.id))):
        print("Characters already present, skipping demo character.")
        return
    character_id = create_character(
        session, dict(DEMO_CHARACTER), owner_id=owner.id if owner else None
    )
    print(f"Created demo character {character_id}.")


def main() -> None:
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    with SessionLocal() as session:
        admin = seed_admin(session)
        seed_demo_character(session, admin)


if __name__ == "__main__":
    main()
