"""Instruction word decoding."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DecodedInstruction:
    raw: int
    opcode: int
    x: int
    y: int
    n: int
    nn: int
    nnn: int

    def __str__(self) -> str:
        return (
            f"Instruction: {self.raw:04X} | Opcode: {self.opcode:X} | X: {self.x:X} | Y: {self.y:X}"
            f" | N: {self.n:X} | NN: {self.nn:02X} | NNN: {self.nnn:03X}"
        )


def decode(instruction: int) -> DecodedInstruction:
    """Split a 16-bit instruction word into its nibble/byte fields."""

    instruction &= 0xFFFF
    return DecodedInstruction(
        raw=instruction,
        opcode=(instruction & 0xF000) >> 12,
        x=(instruction & 0x0F00) >> 8,
        y=(instruction & 0x00F0) >> 4,
        n=instruction & 0x000F,
        nn=instruction & 0x00FF,
        nnn=instruction & 0x0FFF,
    )
