"""Re-apply item kind normalization to stored items.

Usage::

    python db/repair_items.py               # every character, dry run
    python db/repair_items.py --apply       # write the corrections
    python db/repair_items.py --character 3 --apply
"""

import argparse
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent
sys.path = [path for path in sys.path if Path(path).resolve() != SCRIPT_DIR]

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "backend"))

import settings  # noqa: E402
from db import SessionLocal, transaction  # noqa: E402
from logs import configure_logging, get_logger  # noqa: E402
from sheet.inventory import repair_item_kinds  # noqa: E402

logger = get_logger("repair_items")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--character", type=int, default=None, help="limit to one character id")
    parser.add_argument("--apply", action="store_true", help="commit the corrections")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    with SessionLocal() as session:
        if args.apply:
            with transaction(session):
                changes = repair_item_kinds(session, args.character)
        else:
            changes = repair_item_kinds(session, args.character)
            session.rollback()

    for change in changes:
        print(
            f"#{change['id']} {change['name']} (character {change['character_id']}): "
            f"{change['old_type']}/{change['old_category']} -> "
            f"{change['new_type']}/{change['new_category']}"
        )
    logger.info("items.repaired", count=len(changes), applied=args.apply)
    if not changes:
        print("All items are consistent.")
    elif not args.apply:
        print(f"{len(changes)} item(s) would change; rerun with --apply to write them.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
