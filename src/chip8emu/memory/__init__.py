"""Memory primitives for the CHIP-8 address space."""

from __future__ import annotations

from typing import Iterable, List

from chip8emu.errors import MemoryAccessError

MEMORY_CAPACITY = 0x1000
PROGRAM_START = 0x200
FONT_START = 0x050
FONT_GLYPH_BYTES = 5

FONT: tuple[int, ...] = (
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
)
FONT_END = FONT_START + len(FONT)


class Memory:
    """Flat RAM block with bounds-checked 8/16-bit accesses.

    Unlike the wrapping blocks of larger machines, every out-of-range access
    raises :class:`MemoryAccessError`.
    """

    def __init__(self, capacity: int = MEMORY_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("invalid memory capacity")
        self.capacity = capacity
        self.data = bytearray(capacity)

    def get_start_address(self) -> int:
        return 0

    def get_end_address(self) -> int:
        return self.capacity - 1

    def _check(self, address: int, length: int = 1) -> None:
        if address < 0 or address + length > self.capacity:
            raise MemoryAccessError(
                f"address 0x{address:04X} (+{length}) outside 0x000-0x{self.capacity - 1:03X}"
            )

    def load8(self, address: int) -> int:
        self._check(address)
        return self.data[address]

    def store8(self, address: int, value: int) -> None:
        self._check(address)
        self.data[address] = value & 0xFF

    def load16(self, address: int) -> int:
        self._check(address, 2)
        return (self.data[address] << 8) | self.data[address + 1]

    def store16(self, address: int, value: int) -> None:
        self._check(address, 2)
        self.data[address] = (value >> 8) & 0xFF
        self.data[address + 1] = value & 0xFF

    def load_block(self, address: int, values: Iterable[int]) -> int:
        """Copy ``values`` starting at ``address`` and return the byte count."""

        payload = bytes(value & 0xFF for value in values)
        self._check(address, max(1, len(payload)))
        self.data[address:address + len(payload)] = payload
        return len(payload)

    def read_block(self, address: int, length: int) -> bytes:
        self._check(address, max(1, length))
        return bytes(self.data[address:address + length])

    def install_font(self) -> None:
        self.load_block(FONT_START, FONT)

    def clear(self) -> None:
        self.data = bytearray(self.capacity)

    def dump(self) -> List[int]:
        return list(self.data)
