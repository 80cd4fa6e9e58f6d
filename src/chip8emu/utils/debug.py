"""Category-gated diagnostic output for the CHIP-8 emulator.

``CHIP8EMU_DEBUG`` holds a comma separated list of categories:

``cpu``
    one trace line per executed instruction (address, decoded fields,
    registers before execution).
``timer``
    60 Hz timer ticks with the delay/sound values and the tone state.
``display``
    sprite draws and presented frames.
``all``
    every category above.
"""

from __future__ import annotations

import os
import sys
from typing import FrozenSet, Iterable

ENV_DEBUG = "CHIP8EMU_DEBUG"
KNOWN_CATEGORIES: FrozenSet[str] = frozenset({"cpu", "timer", "display"})

_CATEGORIES: FrozenSet[str] | None = None


def _load_categories() -> FrozenSet[str]:
    global _CATEGORIES
    if _CATEGORIES is not None:
        return _CATEGORIES
    parts: Iterable[str] = (part.strip().lower() for part in os.environ.get(ENV_DEBUG, "").split(","))
    requested = {part for part in parts if part}
    if "all" in requested:
        requested = set(KNOWN_CATEGORIES)
    unknown = requested - KNOWN_CATEGORIES
    if unknown:
        print(f"{ENV_DEBUG}: ignoring unknown categories: {', '.join(sorted(unknown))}", file=sys.stderr)
    _CATEGORIES = frozenset(requested & KNOWN_CATEGORIES)
    return _CATEGORIES


def reload_categories() -> None:
    """Forget cached categories so the environment is read again."""

    global _CATEGORIES
    _CATEGORIES = None


def enabled_categories() -> FrozenSet[str]:
    return _load_categories()


def debug_enabled(category: str) -> bool:
    return category.lower() in _load_categories()


def debug_log(category: str, message: str, *args) -> None:
    if not debug_enabled(category):
        return
    if args:
        try:
            message = message % args
        except (TypeError, ValueError):
            message = f"{message} {args!r}"
    print(f"[CHIP8][{category}] {message}")
