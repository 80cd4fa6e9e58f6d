"""Program image loaders for CHIP-8 user programs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from chip8emu.errors import ProgramLoadError
from chip8emu.memory import MEMORY_CAPACITY, PROGRAM_START, Memory

MAX_PROGRAM_LENGTH = MEMORY_CAPACITY - PROGRAM_START


@dataclass
class ProgramInfo:
    name: str = ""
    start: int = PROGRAM_START
    length: int = 0
    path: Optional[Path] = None

    @property
    def end(self) -> int:
        """Last address occupied by the program (inclusive)."""

        return self.start + max(self.length, 1) - 1


def load_program_bytes(memory: Memory, data: bytes, *, name: str = "") -> ProgramInfo:
    """Copy a raw program image into memory at the program start address."""

    if len(data) > MAX_PROGRAM_LENGTH:
        raise ProgramLoadError(
            f"program is {len(data)} bytes; at most {MAX_PROGRAM_LENGTH} fit after 0x{PROGRAM_START:03X}"
        )
    if data:
        memory.load_block(PROGRAM_START, data)
    return ProgramInfo(name=name, start=PROGRAM_START, length=len(data))


def load_program(memory: Memory, path: str | Path) -> ProgramInfo:
    """Load a headerless CHIP-8 image from ``path`` into memory."""

    file_path = Path(path)
    if not str(path):
        raise ProgramLoadError("program path is empty")
    try:
        data = file_path.read_bytes()
    except OSError as exc:
        raise ProgramLoadError(f"Failed to read file {file_path}: {exc}") from exc
    info = load_program_bytes(memory, data, name=file_path.stem.upper())
    info.path = file_path
    return info
