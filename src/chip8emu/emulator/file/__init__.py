"""File loading helpers for the CHIP-8 emulator."""

from chip8emu.emulator.file.program import (
    MAX_PROGRAM_LENGTH,
    ProgramInfo,
    ProgramLoadError,
    load_program,
    load_program_bytes,
)

__all__ = [
    "MAX_PROGRAM_LENGTH",
    "ProgramInfo",
    "ProgramLoadError",
    "load_program",
    "load_program_bytes",
]
