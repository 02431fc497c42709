from __future__ import annotations

import math
from typing import Any

FALSE_STRINGS = {"", "0", "false", "no", "off"}


def to_flag(value: Any) -> bool:
    """Interpret a loosely typed JSON value as a boolean.

    The browser sends flags as ``true``/``false``, ``1``/``0`` or their string
    forms depending on which widget produced them. ``None``, ``False``, zero
    and the strings in ``FALSE_STRINGS`` (case-insensitive) are false;
    everything else is true.
    """
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_STRINGS
    return bool(value)


def to_int(value: Any, default: int | None = 0) -> int | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            return int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                return default
            return int(number) if math.isfinite(number) else default
    return default


def to_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def is_present(data: dict, key: str) -> bool:
    return key in data and data[key] is not None
