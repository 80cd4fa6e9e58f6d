"""CHIP-8 CPU core: register file, call stack, timers and opcode handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import random
from typing import AbstractSet, Callable, Dict, List, Optional, Tuple

from chip8emu.cpu.decoder import DecodedInstruction, decode
from chip8emu.cpu.quirks import Quirks
from chip8emu.errors import StackOverflowError, StackUnderflowError, UnknownOpcodeError
from chip8emu.memory import FONT_GLYPH_BYTES, FONT_START, PROGRAM_START
from chip8emu.utils.debug import debug_enabled, debug_log

Handler = Callable[[DecodedInstruction], None]

REGISTER_COUNT = 16
STACK_DEPTH = 16
FLAG_REGISTER = 0xF
INSTRUCTION_WIDTH = 2
SPRITE_WIDTH = 8


class ExecutionStatus(Enum):
    RUNNING = "running"
    AWAITING_KEY = "awaiting_key"


@dataclass
class CPURegisters:
    """Register file matching the CHIP-8 layout."""

    v: List[int] = field(default_factory=lambda: [0] * REGISTER_COUNT)
    index: int = 0
    program_counter: int = PROGRAM_START
    stack_pointer: int = 0
    delay_timer: int = 0
    sound_timer: int = 0


class Chip8CPU:
    """Fetch-decode-execute engine for the base CHIP-8 instruction set.

    The CPU owns registers, stack and timers; memory and the framebuffer are
    reached through ``computer.hardware``. Quirks are fixed at construction.
    """

    # Secondary dispatch: primary nibble -> (decoded field, field label)
    SUB_OPCODE_FIELDS: Dict[int, Tuple[str, str]] = {
        0x0: ("nn", "second byte"),
        0x8: ("n", "fourth nibble"),
        0xE: ("nn", "second byte"),
        0xF: ("nn", "second byte"),
    }

    def __init__(
        self,
        computer: object,
        quirks: Optional[Quirks] = None,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.computer = computer
        self.quirks = quirks if quirks is not None else Quirks()
        self.registers = CPURegisters()
        self.stack: List[int] = [0] * STACK_DEPTH
        self.status = ExecutionStatus.RUNNING
        self.memory = self._resolve_hardware("memory")
        self.display = self._resolve_hardware("display")
        self._rng = rng if rng is not None else random.Random()
        self._pressed_keys: AbstractSet[int] = frozenset()
        self._opcode_table: Dict[int, Handler] = {}
        self._sub_opcode_tables: Dict[int, Dict[int, Handler]] = {}
        self._init_opcode_table()

    def _resolve_hardware(self, name: str) -> Optional[object]:
        hardware = getattr(self.computer, "hardware", None)
        if hardware is None:
            return None
        return getattr(hardware, name, None)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self.registers = CPURegisters()
        self.stack = [0] * STACK_DEPTH
        self.status = ExecutionStatus.RUNNING
        self._pressed_keys = frozenset()

    def step(self, pressed_keys: AbstractSet[int] = frozenset()) -> DecodedInstruction:
        """Execute exactly one instruction and return its decoded form."""

        if self.memory is None:
            raise RuntimeError("Memory is not attached to Chip8CPU")

        self._pressed_keys = pressed_keys
        address = self.registers.program_counter
        decoded = decode(self._fetch_instruction())
        if debug_enabled("cpu"):
            debug_log("cpu", "%03X %s", address, self.format_trace(decoded))
        handler = self._resolve_handler(decoded, address)
        handler(decoded)
        return decoded

    def decrement_timers(self) -> bool:
        """Count both timers down once; return whether the tone should sound."""

        regs = self.registers
        if regs.delay_timer > 0:
            regs.delay_timer -= 1
        sounding = regs.sound_timer > 0
        if sounding:
            regs.sound_timer -= 1
        return sounding

    @property
    def awaiting_key(self) -> bool:
        return self.status is ExecutionStatus.AWAITING_KEY

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    def format_registers(self) -> str:
        regs = self.registers
        parts = [f"V{i:X}: {value:02X}" for i, value in enumerate(regs.v)]
        parts.append(f"I: {regs.index:03X}")
        parts.append(f"PC: {regs.program_counter:03X}")
        parts.append(f"SP: {regs.stack_pointer:X}")
        parts.append(f"DT: {regs.delay_timer:02X}")
        parts.append(f"ST: {regs.sound_timer:02X}")
        return " | ".join(parts)

    def format_trace(self, decoded: DecodedInstruction) -> str:
        return f"{decoded} || {self.format_registers()}"

    def peek_instruction(self) -> DecodedInstruction:
        """Decode the instruction at PC without executing it."""

        return decode(self.memory.load16(self.registers.program_counter))

    # ------------------------------------------------------------------
    # Fetch / dispatch
    # ------------------------------------------------------------------
    def _fetch_instruction(self) -> int:
        instruction = self.memory.load16(self.registers.program_counter)
        self.registers.program_counter += INSTRUCTION_WIDTH
        return instruction

    def _resolve_handler(self, decoded: DecodedInstruction, address: int) -> Handler:
        sub_field = self.SUB_OPCODE_FIELDS.get(decoded.opcode)
        if sub_field is None:
            handler = self._opcode_table.get(decoded.opcode)
            if handler is None:
                raise UnknownOpcodeError(decoded.raw, address, "opcode", decoded.opcode, decoded.opcode)
            return handler
        attribute, label = sub_field
        key = getattr(decoded, attribute)
        handler = self._sub_opcode_tables[decoded.opcode].get(key)
        if handler is None:
            raise UnknownOpcodeError(decoded.raw, address, label, key, decoded.opcode)
        return handler

    def _init_opcode_table(self) -> None:
        self._opcode_table.clear()
        self._sub_opcode_tables = {opcode: {} for opcode in self.SUB_OPCODE_FIELDS}
        self._register_sub_opcode(0x0, 0xE0, self._opcode_cls)
        self._register_sub_opcode(0x0, 0xEE, self._opcode_ret)
        self._register_opcode(0x1, self._opcode_jp)
        self._register_opcode(0x2, self._opcode_call)
        self._register_opcode(0x3, self._opcode_se_value)
        self._register_opcode(0x4, self._opcode_sne_value)
        self._register_opcode(0x5, self._opcode_se_register)
        self._register_opcode(0x6, self._opcode_ld_value)
        self._register_opcode(0x7, self._opcode_add_value)
        self._register_sub_opcode(0x8, 0x0, self._opcode_ld_register)
        self._register_sub_opcode(0x8, 0x1, self._opcode_or)
        self._register_sub_opcode(0x8, 0x2, self._opcode_and)
        self._register_sub_opcode(0x8, 0x3, self._opcode_xor)
        self._register_sub_opcode(0x8, 0x4, self._opcode_add_register)
        self._register_sub_opcode(0x8, 0x5, self._opcode_sub)
        self._register_sub_opcode(0x8, 0x6, self._opcode_shr)
        self._register_sub_opcode(0x8, 0x7, self._opcode_subn)
        self._register_sub_opcode(0x8, 0xE, self._opcode_shl)
        self._register_opcode(0x9, self._opcode_sne_register)
        self._register_opcode(0xA, self._opcode_ld_index)
        self._register_opcode(0xB, self._opcode_jp_offset)
        self._register_opcode(0xC, self._opcode_rnd)
        self._register_opcode(0xD, self._opcode_drw)
        self._register_sub_opcode(0xE, 0x9E, self._opcode_skp)
        self._register_sub_opcode(0xE, 0xA1, self._opcode_sknp)
        self._register_sub_opcode(0xF, 0x07, self._opcode_ld_from_delay)
        self._register_sub_opcode(0xF, 0x0A, self._opcode_ld_key)
        self._register_sub_opcode(0xF, 0x15, self._opcode_ld_delay)
        self._register_sub_opcode(0xF, 0x18, self._opcode_ld_sound)
        self._register_sub_opcode(0xF, 0x1E, self._opcode_add_index)
        self._register_sub_opcode(0xF, 0x29, self._opcode_ld_font)
        self._register_sub_opcode(0xF, 0x33, self._opcode_ld_bcd)
        self._register_sub_opcode(0xF, 0x55, self._opcode_store_registers)
        self._register_sub_opcode(0xF, 0x65, self._opcode_load_registers)

    def _register_opcode(self, opcode: int, handler: Handler) -> None:
        self._opcode_table[opcode & 0xF] = handler

    def _register_sub_opcode(self, opcode: int, key: int, handler: Handler) -> None:
        self._sub_opcode_tables[opcode & 0xF][key] = handler

    def _skip(self) -> None:
        self.registers.program_counter += INSTRUCTION_WIDTH

    def _set_flag(self, value: int) -> None:
        self.registers.v[FLAG_REGISTER] = value & 0x01

    # ------------------------------------------------------------------
    # 0x0 / 0x1 / 0x2: screen and flow control
    # ------------------------------------------------------------------
    def _opcode_cls(self, ins: DecodedInstruction) -> None:
        self.display.clear()

    def _opcode_ret(self, ins: DecodedInstruction) -> None:
        regs = self.registers
        if regs.stack_pointer == 0:
            raise StackUnderflowError("Stack pointer is 0, cannot return from subroutine")
        regs.stack_pointer -= 1
        regs.program_counter = self.stack[regs.stack_pointer]

    def _opcode_jp(self, ins: DecodedInstruction) -> None:
        self.registers.program_counter = ins.nnn

    def _opcode_call(self, ins: DecodedInstruction) -> None:
        regs = self.registers
        if regs.stack_pointer >= STACK_DEPTH:
            raise StackOverflowError(f"Stack depth {STACK_DEPTH} exceeded calling 0x{ins.nnn:03X}")
        self.stack[regs.stack_pointer] = regs.program_counter
        regs.stack_pointer += 1
        regs.program_counter = ins.nnn

    # ------------------------------------------------------------------
    # 0x3 - 0x7 / 0x9: conditional skips and immediate loads
    # ------------------------------------------------------------------
    def _opcode_se_value(self, ins: DecodedInstruction) -> None:
        if self.registers.v[ins.x] == ins.nn:
            self._skip()

    def _opcode_sne_value(self, ins: DecodedInstruction) -> None:
        if self.registers.v[ins.x] != ins.nn:
            self._skip()

    def _opcode_se_register(self, ins: DecodedInstruction) -> None:
        if self.registers.v[ins.x] == self.registers.v[ins.y]:
            self._skip()

    def _opcode_sne_register(self, ins: DecodedInstruction) -> None:
        if self.registers.v[ins.x] != self.registers.v[ins.y]:
            self._skip()

    def _opcode_ld_value(self, ins: DecodedInstruction) -> None:
        self.registers.v[ins.x] = ins.nn

    def _opcode_add_value(self, ins: DecodedInstruction) -> None:
        v = self.registers.v
        v[ins.x] = (v[ins.x] + ins.nn) & 0xFF

    # ------------------------------------------------------------------
    # 0x8: register arithmetic
    # ------------------------------------------------------------------
    def _opcode_ld_register(self, ins: DecodedInstruction) -> None:
        self.registers.v[ins.x] = self.registers.v[ins.y]

    def _opcode_or(self, ins: DecodedInstruction) -> None:
        v = self.registers.v
        v[ins.x] |= v[ins.y]
        if self.quirks.reset_flag:
            self._set_flag(0)

    def _opcode_and(self, ins: DecodedInstruction) -> None:
        v = self.registers.v
        v[ins.x] &= v[ins.y]
        if self.quirks.reset_flag:
            self._set_flag(0)

    def _opcode_xor(self, ins: DecodedInstruction) -> None:
        v = self.registers.v
        v[ins.x] ^= v[ins.y]
        if self.quirks.reset_flag:
            self._set_flag(0)

    def _opcode_add_register(self, ins: DecodedInstruction) -> None:
        v = self.registers.v
        total = v[ins.x] + v[ins.y]
        v[ins.x] = total & 0xFF
        self._set_flag(1 if total > 0xFF else 0)

    def _opcode_sub(self, ins: DecodedInstruction) -> None:
        v = self.registers.v
        minuend, subtrahend = v[ins.x], v[ins.y]
        v[ins.x] = (minuend - subtrahend) & 0xFF
        self._set_flag(1 if minuend >= subtrahend else 0)

    def _opcode_subn(self, ins: DecodedInstruction) -> None:
        v = self.registers.v
        minuend, subtrahend = v[ins.y], v[ins.x]
        v[ins.x] = (minuend - subtrahend) & 0xFF
        self._set_flag(1 if minuend >= subtrahend else 0)

    def _opcode_shr(self, ins: DecodedInstruction) -> None:
        v = self.registers.v
        if not self.quirks.shift_in_place:
            v[ins.x] = v[ins.y]
        shifted_out = v[ins.x] & 0x01
        v[ins.x] >>= 1
        self._set_flag(shifted_out)

    def _opcode_shl(self, ins: DecodedInstruction) -> None:
        v = self.registers.v
        if not self.quirks.shift_in_place:
            v[ins.x] = v[ins.y]
        shifted_out = (v[ins.x] & 0x80) >> 7
        v[ins.x] = (v[ins.x] << 1) & 0xFF
        self._set_flag(shifted_out)

    # ------------------------------------------------------------------
    # 0xA - 0xD: index, offset jump, random, draw
    # ------------------------------------------------------------------
    def _opcode_ld_index(self, ins: DecodedInstruction) -> None:
        self.registers.index = ins.nnn

    def _opcode_jp_offset(self, ins: DecodedInstruction) -> None:
        register = ins.x if self.quirks.jump_plus_x_register else 0
        self.registers.program_counter = ins.nnn + self.registers.v[register]

    def _opcode_rnd(self, ins: DecodedInstruction) -> None:
        self.registers.v[ins.x] = self._rng.randrange(0x100) & ins.nn

    def _opcode_drw(self, ins: DecodedInstruction) -> None:
        # Sprites are clipped at the right and bottom edges on every platform.
        display = self.display
        regs = self.registers
        origin_x = regs.v[ins.x] % display.WIDTH
        origin_y = regs.v[ins.y] % display.HEIGHT
        self._set_flag(0)

        collision = False
        for row in range(ins.n):
            y = origin_y + row
            if y >= display.HEIGHT:
                break
            sprite = self.memory.load8(regs.index + row)
            for column in range(SPRITE_WIDTH):
                x = origin_x + column
                if x >= display.WIDTH:
                    break
                if (sprite >> (7 - column)) & 0x01 and display.toggle_pixel(x, y):
                    collision = True

        if collision:
            self._set_flag(1)
        display.mark_dirty()
        debug_log("display", "sprite %dx%d at (%d, %d) from I=%03X collision=%d",
                  SPRITE_WIDTH, ins.n, origin_x, origin_y, regs.index, int(collision))

    # ------------------------------------------------------------------
    # 0xE: keypad
    # ------------------------------------------------------------------
    def _opcode_skp(self, ins: DecodedInstruction) -> None:
        if self.registers.v[ins.x] in self._pressed_keys:
            self._skip()

    def _opcode_sknp(self, ins: DecodedInstruction) -> None:
        if self.registers.v[ins.x] not in self._pressed_keys:
            self._skip()

    # ------------------------------------------------------------------
    # 0xF: timers, key wait, index arithmetic, memory transfers
    # ------------------------------------------------------------------
    def _opcode_ld_from_delay(self, ins: DecodedInstruction) -> None:
        self.registers.v[ins.x] = self.registers.delay_timer

    def _opcode_ld_key(self, ins: DecodedInstruction) -> None:
        if not self._pressed_keys:
            # Refetch this instruction next cycle until a key is held.
            self.registers.program_counter -= INSTRUCTION_WIDTH
            self.status = ExecutionStatus.AWAITING_KEY
            return
        self.registers.v[ins.x] = min(self._pressed_keys)
        self.status = ExecutionStatus.RUNNING

    def _opcode_ld_delay(self, ins: DecodedInstruction) -> None:
        self.registers.delay_timer = self.registers.v[ins.x]

    def _opcode_ld_sound(self, ins: DecodedInstruction) -> None:
        self.registers.sound_timer = self.registers.v[ins.x]

    def _opcode_add_index(self, ins: DecodedInstruction) -> None:
        regs = self.registers
        regs.index = (regs.index + regs.v[ins.x]) & 0xFFFF

    def _opcode_ld_font(self, ins: DecodedInstruction) -> None:
        self.registers.index = FONT_START + self.registers.v[ins.x] * FONT_GLYPH_BYTES

    def _opcode_ld_bcd(self, ins: DecodedInstruction) -> None:
        value = self.registers.v[ins.x]
        digits = (value // 100, (value // 10) % 10, value % 10)
        self.memory.load_block(self.registers.index, digits)

    def _opcode_store_registers(self, ins: DecodedInstruction) -> None:
        regs = self.registers
        for i in range(ins.x + 1):
            if self.quirks.increment_index_register:
                self.memory.store8(regs.index, regs.v[i])
                regs.index = (regs.index + 1) & 0xFFFF
            else:
                self.memory.store8(regs.index + i, regs.v[i])

    def _opcode_load_registers(self, ins: DecodedInstruction) -> None:
        regs = self.registers
        for i in range(ins.x + 1):
            if self.quirks.increment_index_register:
                regs.v[i] = self.memory.load8(regs.index)
                regs.index = (regs.index + 1) & 0xFFFF
            else:
                regs.v[i] = self.memory.load8(regs.index + i)
