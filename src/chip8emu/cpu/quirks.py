"""Platform quirk profiles."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Platform(str, Enum):
    CHIP8 = "chip8"
    SUPERCHIP = "superchip"

    @classmethod
    def parse(cls, value: "str | Platform") -> "Platform":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().replace("-", "").replace("_", "")
        aliases = {"chip8": cls.CHIP8, "base": cls.CHIP8, "superchip": cls.SUPERCHIP, "super": cls.SUPERCHIP, "schip": cls.SUPERCHIP}
        try:
            return aliases[text]
        except KeyError:
            raise ValueError(f"unknown platform: {value}") from None


@dataclass(frozen=True)
class Quirks:
    """Instruction behaviours that differ between historical interpreters.

    reset_flag:
        8XY1/8XY2/8XY3 clear VF after the logic operation.
    increment_index_register:
        FX55/FX65 leave I one past the last register transferred.
    shift_in_place:
        8XY6/8XYE shift VX itself instead of copying VY first.
    jump_plus_x_register:
        BNNN adds VX (X being the high nibble of NNN) instead of V0.
    """

    reset_flag: bool = True
    increment_index_register: bool = True
    shift_in_place: bool = False
    jump_plus_x_register: bool = False

    @classmethod
    def for_platform(cls, platform: "str | Platform") -> "Quirks":
        if Platform.parse(platform) is Platform.SUPERCHIP:
            return cls(
                reset_flag=False,
                increment_index_register=False,
                shift_in_place=True,
                jump_plus_x_register=True,
            )
        return cls()
