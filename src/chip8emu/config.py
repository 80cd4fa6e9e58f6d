"""Emulator configuration: defaults, JSON config files and colour parsing."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field, replace
import json
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from chip8emu.chip8.keyboard import DEFAULT_KEYMAP, validate_keymap
from chip8emu.cpu.quirks import Platform
from chip8emu.system.computer import DEFAULT_INSTRUCTION_TIME_NS

Color = Tuple[int, int, int]

DEFAULT_SCALE = 10
DEFAULT_FOREGROUND: Color = (255, 255, 255)
DEFAULT_BACKGROUND: Color = (0, 0, 0)


def parse_color(value: object) -> Color:
    """Parse ``#RRGGBB``, ``RRGGBB``, ``r,g,b`` or a 3-item sequence."""

    if isinstance(value, (list, tuple)):
        parts = [int(part) for part in value]
    else:
        text = str(value).strip()
        if "," in text:
            parts = [int(part.strip()) for part in text.split(",")]
        else:
            if text.startswith("#"):
                text = text[1:]
            if len(text) != 6:
                raise ValueError(f"invalid colour: {value!r}")
            try:
                parts = [int(text[i:i + 2], 16) for i in (0, 2, 4)]
            except ValueError:
                raise ValueError(f"invalid colour: {value!r}") from None
    if len(parts) != 3 or any(not (0 <= part <= 255) for part in parts):
        raise ValueError(f"invalid colour: {value!r}")
    return (parts[0], parts[1], parts[2])


def platform_argument(value: str) -> Platform:
    """argparse ``type=`` converter accepting every platform alias."""

    try:
        return Platform.parse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


@dataclass(frozen=True)
class EmulatorConfig:
    platform: Platform = Platform.CHIP8
    instruction_time_ns: int = DEFAULT_INSTRUCTION_TIME_NS
    scale: int = DEFAULT_SCALE
    debug: bool = False
    foreground: Color = DEFAULT_FOREGROUND
    background: Color = DEFAULT_BACKGROUND
    enable_audio: bool = True
    keymap: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_KEYMAP))

    def __post_init__(self) -> None:
        if self.instruction_time_ns <= 0:
            raise ValueError("instruction time must be positive")
        if self.scale <= 0:
            raise ValueError("scale must be positive")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EmulatorConfig":
        return cls().merged(data)

    def merged(self, data: Mapping[str, Any]) -> "EmulatorConfig":
        """Return a copy with every non-``None`` entry of ``data`` applied."""

        changes: Dict[str, Any] = {}
        for key, value in data.items():
            if value is None:
                continue
            name = key.replace("-", "_")
            if name == "platform":
                changes[name] = Platform.parse(value)
            elif name in ("instruction_time_ns", "instruction_time", "scale"):
                changes["instruction_time_ns" if name.startswith("instruction") else name] = int(value)
            elif name in ("debug", "enable_audio"):
                changes[name] = bool(value)
            elif name in ("foreground", "background"):
                changes[name] = parse_color(value)
            elif name == "keymap":
                if not isinstance(value, Mapping):
                    raise ValueError("keymap must be an object of key name -> value")
                changes[name] = validate_keymap(value)
            else:
                raise ValueError(f"unknown configuration option: {key}")
        return replace(self, **changes)


def load_config_file(path: str | Path) -> Dict[str, Any]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("configuration file must contain a JSON object")
    return data


def write_config_template(path: str | Path) -> None:
    config = EmulatorConfig()
    payload = {
        "platform": config.platform.value,
        "instruction_time_ns": config.instruction_time_ns,
        "scale": config.scale,
        "debug": config.debug,
        "foreground": "#{:02X}{:02X}{:02X}".format(*config.foreground),
        "background": "#{:02X}{:02X}{:02X}".format(*config.background),
        "enable_audio": config.enable_audio,
        "keymap": config.keymap,
    }
    Path(path).write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
