"""CHIP-8 hexadecimal keypad handling."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Set

KEY_COUNT = 16

# Physical key name -> VM key, laid out as the classic COSMAC VIP keypad:
#   1 2 3 C      1 2 3 4
#   4 5 6 D  <-  Q W E R
#   7 8 9 E      A S D F
#   A 0 B F      Z X C V
DEFAULT_KEYMAP: Dict[str, int] = {
    "x": 0x0,
    "1": 0x1,
    "2": 0x2,
    "3": 0x3,
    "q": 0x4,
    "w": 0x5,
    "e": 0x6,
    "a": 0x7,
    "s": 0x8,
    "d": 0x9,
    "z": 0xA,
    "c": 0xB,
    "4": 0xC,
    "r": 0xD,
    "f": 0xE,
    "v": 0xF,
}


def validate_keymap(keymap: Mapping[str, int]) -> Dict[str, int]:
    result: Dict[str, int] = {}
    for name, value in keymap.items():
        key = int(value)
        if not (0 <= key < KEY_COUNT):
            raise ValueError(f"key value out of range for {name!r}: {value}")
        text = str(name).strip().lower()
        if not text:
            raise ValueError("empty key name in keymap")
        result[text] = key
    return result


@dataclass
class Chip8Keypad:
    """Set of currently held VM keys (0x0-0xF)."""

    _pressed: Set[int] = field(default_factory=set)

    def press(self, key: int) -> None:
        if not (0 <= key < KEY_COUNT):
            raise ValueError("key out of range")
        self._pressed.add(key)

    def release(self, key: int) -> None:
        if not (0 <= key < KEY_COUNT):
            raise ValueError("key out of range")
        self._pressed.discard(key)

    def set_pressed(self, keys: Iterable[int]) -> None:
        values = set(keys)
        if any(not (0 <= key < KEY_COUNT) for key in values):
            raise ValueError("key out of range")
        self._pressed = values

    def clear(self) -> None:
        self._pressed = set()

    def pressed_keys(self) -> FrozenSet[int]:
        return frozenset(self._pressed)


class KeyMapper:
    """Translates pygame key codes to VM keys using a name-based keymap."""

    def __init__(self, keymap: Optional[Mapping[str, int]] = None) -> None:
        self._by_code: Dict[int, int] = {}
        for name, value in validate_keymap(keymap or DEFAULT_KEYMAP).items():
            if len(name) != 1:
                raise ValueError(f"key names must be single characters: {name!r}")
            self._by_code[ord(name)] = value

    def snapshot(self, key_state: Sequence[bool]) -> FrozenSet[int]:
        """VM keys held in a ``pygame.key.get_pressed()`` style state, indexed by key code."""

        return frozenset(value for code, value in self._by_code.items() if key_state[code])
