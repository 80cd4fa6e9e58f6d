"""Utility helpers for the CHIP-8 emulator."""

from .debug import KNOWN_CATEGORIES, debug_enabled, debug_log, enabled_categories, reload_categories

__all__ = [
    "KNOWN_CATEGORIES",
    "debug_enabled",
    "debug_log",
    "enabled_categories",
    "reload_categories",
]
