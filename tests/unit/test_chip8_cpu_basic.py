"""CHIP-8 CPU 基本テスト: one instruction at a time against a dummy machine."""

from __future__ import annotations

from dataclasses import dataclass, field
import random

import pytest

from chip8emu.chip8.display import Chip8Display
from chip8emu.cpu.cpu import Chip8CPU, ExecutionStatus
from chip8emu.cpu.quirks import Quirks
from chip8emu.errors import (
    EXIT_DECODE_FAILURE,
    MemoryAccessError,
    StackOverflowError,
    StackUnderflowError,
    UnknownOpcodeError,
)
from chip8emu.memory import FONT_START, Memory


@dataclass
class DummyHardware:
    memory: Memory
    display: Chip8Display = field(default_factory=Chip8Display)


@dataclass
class DummyComputer:
    hardware: DummyHardware


def make_cpu(quirks: Quirks | None = None, seed: int = 1234) -> Chip8CPU:
    memory = Memory()
    memory.install_font()
    computer = DummyComputer(DummyHardware(memory))
    return Chip8CPU(computer, quirks, rng=random.Random(seed))


def execute(cpu: Chip8CPU, instruction: int, keys=frozenset()) -> None:
    cpu.memory.store16(cpu.registers.program_counter, instruction)
    cpu.step(keys)


def test_fetch_advances_program_counter_by_two() -> None:
    cpu = make_cpu()
    execute(cpu, 0x6005)
    assert cpu.registers.program_counter == 0x202
    assert cpu.registers.v[0] == 0x05


def test_add_value_wraps_without_touching_flag() -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = 0xFF
    cpu.registers.v[0xF] = 0x05

    execute(cpu, 0x7002)

    assert cpu.registers.v[0] == 0x01
    assert cpu.registers.v[0xF] == 0x05


@pytest.mark.parametrize(
    "a, b, result, flag",
    [(0xFF, 0x01, 0x00, 1), (0x10, 0x20, 0x30, 0), (0x80, 0x80, 0x00, 1), (0xFF, 0xFF, 0xFE, 1)],
)
def test_add_register_sets_carry(a: int, b: int, result: int, flag: int) -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = a
    cpu.registers.v[1] = b

    execute(cpu, 0x8014)

    assert cpu.registers.v[0] == result
    assert cpu.registers.v[0xF] == flag


@pytest.mark.parametrize(
    "a, b, result, flag",
    [(0x05, 0x03, 0x02, 1), (0x03, 0x05, 0xFE, 0), (0x07, 0x07, 0x00, 1), (0x00, 0xFF, 0x01, 0)],
)
def test_subtract_sets_not_borrow(a: int, b: int, result: int, flag: int) -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = a
    cpu.registers.v[1] = b

    execute(cpu, 0x8015)

    assert cpu.registers.v[0] == result
    assert cpu.registers.v[0xF] == flag


def test_subtract_reversed_uses_y_minus_x() -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = 0x03
    cpu.registers.v[1] = 0x05

    execute(cpu, 0x8017)

    assert cpu.registers.v[0] == 0x02
    assert cpu.registers.v[0xF] == 1

    cpu.registers.v[0] = 0x05
    cpu.registers.v[1] = 0x03
    execute(cpu, 0x8017)

    assert cpu.registers.v[0] == 0xFE
    assert cpu.registers.v[0xF] == 0


def test_flag_register_as_destination_keeps_flag() -> None:
    cpu = make_cpu()
    cpu.registers.v[0xF] = 0xFF
    cpu.registers.v[1] = 0x01

    execute(cpu, 0x8F14)

    assert cpu.registers.v[0xF] == 1


def test_set_register_from_register() -> None:
    cpu = make_cpu()
    cpu.registers.v[3] = 0x42
    execute(cpu, 0x8530)
    assert cpu.registers.v[5] == 0x42


@pytest.mark.parametrize(
    "instruction, a, b, expected",
    [(0x8011, 0x0C, 0x03, 0x0F), (0x8012, 0x0C, 0x06, 0x04), (0x8013, 0x0C, 0x06, 0x0A)],
)
def test_logic_operations(instruction: int, a: int, b: int, expected: int) -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = a
    cpu.registers.v[1] = b
    execute(cpu, instruction)
    assert cpu.registers.v[0] == expected


@pytest.mark.parametrize(
    "instruction, value, skipped",
    [(0x3042, 0x42, True), (0x3042, 0x41, False), (0x4042, 0x42, False), (0x4042, 0x41, True)],
)
def test_skip_against_value(instruction: int, value: int, skipped: bool) -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = value
    execute(cpu, instruction)
    assert cpu.registers.program_counter == (0x204 if skipped else 0x202)


@pytest.mark.parametrize(
    "instruction, equal, skipped",
    [(0x5010, True, True), (0x5010, False, False), (0x9010, True, False), (0x9010, False, True)],
)
def test_skip_against_register(instruction: int, equal: bool, skipped: bool) -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = 0x10
    cpu.registers.v[1] = 0x10 if equal else 0x11
    execute(cpu, instruction)
    assert cpu.registers.program_counter == (0x204 if skipped else 0x202)


def test_jump_sets_program_counter() -> None:
    cpu = make_cpu()
    execute(cpu, 0x1ABC)
    assert cpu.registers.program_counter == 0xABC


def test_call_and_return() -> None:
    cpu = make_cpu()
    cpu.memory.store16(0x300, 0x00EE)

    execute(cpu, 0x2300)
    assert cpu.registers.program_counter == 0x300
    assert cpu.registers.stack_pointer == 1
    assert cpu.stack[0] == 0x202

    cpu.step()
    assert cpu.registers.program_counter == 0x202
    assert cpu.registers.stack_pointer == 0


def test_return_with_empty_stack_is_fatal() -> None:
    cpu = make_cpu()
    with pytest.raises(StackUnderflowError):
        execute(cpu, 0x00EE)


def test_call_beyond_stack_depth_is_fatal() -> None:
    cpu = make_cpu()
    cpu.memory.store16(0x200, 0x2200)
    for _ in range(16):
        cpu.step()
    assert cpu.registers.stack_pointer == 16
    with pytest.raises(StackOverflowError):
        cpu.step()


@pytest.mark.parametrize(
    "instruction, field_name, value",
    [(0x0123, "second byte", 0x23), (0x8008, "fourth nibble", 0x8), (0xE000, "second byte", 0x00), (0xF0FF, "second byte", 0xFF)],
)
def test_unknown_instruction_is_fatal(instruction: int, field_name: str, value: int) -> None:
    cpu = make_cpu()
    with pytest.raises(UnknownOpcodeError) as info:
        execute(cpu, instruction)
    error = info.value
    assert error.field == field_name
    assert error.value == value
    assert error.address == 0x200
    assert error.exit_code == EXIT_DECODE_FAILURE
    assert f"0x{instruction:04X}" in str(error)


def test_fetch_outside_memory_is_fatal() -> None:
    cpu = make_cpu()
    cpu.registers.program_counter = 0xFFF
    with pytest.raises(MemoryAccessError):
        cpu.step()


def test_set_index_and_add_to_index() -> None:
    cpu = make_cpu()
    execute(cpu, 0xA123)
    assert cpu.registers.index == 0x123

    cpu.registers.v[2] = 0x10
    execute(cpu, 0xF21E)
    assert cpu.registers.index == 0x133


def test_add_to_index_wraps_at_sixteen_bits() -> None:
    cpu = make_cpu()
    cpu.registers.index = 0xFFFF
    cpu.registers.v[0] = 0x02
    execute(cpu, 0xF01E)
    assert cpu.registers.index == 0x0001


def test_random_is_masked_by_operand() -> None:
    cpu = make_cpu(seed=99)
    expected = random.Random(99).randrange(0x100) & 0x0F

    execute(cpu, 0xC30F)
    assert cpu.registers.v[3] == expected

    execute(cpu, 0xC300)
    assert cpu.registers.v[3] == 0


def test_skip_if_key_pressed() -> None:
    cpu = make_cpu()
    cpu.registers.v[1] = 0x0A
    execute(cpu, 0xE19E, keys=frozenset({0x0A}))
    assert cpu.registers.program_counter == 0x204

    execute(cpu, 0xE19E, keys=frozenset({0x0B}))
    assert cpu.registers.program_counter == 0x206


def test_skip_if_key_not_pressed() -> None:
    cpu = make_cpu()
    cpu.registers.v[1] = 0x0A
    execute(cpu, 0xE1A1, keys=frozenset())
    assert cpu.registers.program_counter == 0x204

    execute(cpu, 0xE1A1, keys=frozenset({0x0A}))
    assert cpu.registers.program_counter == 0x206


def test_key_wait_spins_until_key_pressed() -> None:
    cpu = make_cpu()
    cpu.memory.store16(0x200, 0xF30A)

    cpu.step(frozenset())
    assert cpu.registers.program_counter == 0x200
    assert cpu.status is ExecutionStatus.AWAITING_KEY
    assert cpu.awaiting_key

    cpu.step(frozenset())
    assert cpu.registers.program_counter == 0x200

    cpu.step(frozenset({0x9, 0x2}))
    assert cpu.registers.v[3] == 0x2
    assert cpu.registers.program_counter == 0x202
    assert cpu.status is ExecutionStatus.RUNNING


def test_timer_transfers() -> None:
    cpu = make_cpu()
    cpu.registers.v[4] = 0x30
    execute(cpu, 0xF415)
    execute(cpu, 0xF418)
    assert cpu.registers.delay_timer == 0x30
    assert cpu.registers.sound_timer == 0x30

    cpu.registers.delay_timer = 0x12
    execute(cpu, 0xF507)
    assert cpu.registers.v[5] == 0x12


def test_decrement_timers_never_underflows() -> None:
    cpu = make_cpu()
    cpu.registers.delay_timer = 2
    cpu.registers.sound_timer = 1

    assert cpu.decrement_timers() is True
    assert (cpu.registers.delay_timer, cpu.registers.sound_timer) == (1, 0)
    assert cpu.decrement_timers() is False
    assert (cpu.registers.delay_timer, cpu.registers.sound_timer) == (0, 0)
    assert cpu.decrement_timers() is False
    assert (cpu.registers.delay_timer, cpu.registers.sound_timer) == (0, 0)


def test_font_sprite_address() -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = 0x0A
    execute(cpu, 0xF029)
    assert cpu.registers.index == FONT_START + 0x0A * 5
    assert cpu.memory.load8(cpu.registers.index) == 0xF0


@pytest.mark.parametrize("value, digits", [(255, [2, 5, 5]), (7, [0, 0, 7]), (120, [1, 2, 0])])
def test_store_bcd(value: int, digits: list) -> None:
    cpu = make_cpu()
    cpu.registers.v[6] = value
    cpu.registers.index = 0x400

    execute(cpu, 0xF633)

    assert list(cpu.memory.read_block(0x400, 3)) == digits
    assert cpu.registers.index == 0x400


def test_store_bcd_outside_memory_is_fatal() -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = 123
    cpu.registers.index = 0xFFE
    with pytest.raises(MemoryAccessError):
        execute(cpu, 0xF033)
    assert cpu.memory.load8(0xFFE) == 0


def test_clear_screen_marks_dirty() -> None:
    cpu = make_cpu()
    cpu.display.toggle_pixel(3, 3)
    cpu.display.dirty = False

    execute(cpu, 0x00E0)

    assert not any(cpu.display.pixels)
    assert cpu.display.dirty is True


def test_reset_restores_power_on_state() -> None:
    cpu = make_cpu()
    cpu.registers.v[1] = 9
    cpu.registers.program_counter = 0x345
    cpu.registers.stack_pointer = 3
    cpu.status = ExecutionStatus.AWAITING_KEY

    cpu.reset()

    assert cpu.registers.v[1] == 0
    assert cpu.registers.program_counter == 0x200
    assert cpu.registers.stack_pointer == 0
    assert cpu.status is ExecutionStatus.RUNNING


def test_format_trace_contains_registers() -> None:
    cpu = make_cpu()
    cpu.registers.v[0xA] = 0x3C
    cpu.memory.store16(0x200, 0x6001)
    decoded = cpu.step()
    trace = cpu.format_trace(decoded)
    assert "Instruction: 6001" in trace
    assert "VA: 3C" in trace
    assert "I: 000" in trace


@pytest.mark.parametrize(
    "shift_in_place, expected, flag",
    [(False, 0x02, 0), (True, 0x00, 1)],
)
def test_shift_left_honours_shift_source(shift_in_place: bool, expected: int, flag: int) -> None:
    cpu = make_cpu(Quirks(shift_in_place=shift_in_place))
    cpu.registers.v[0] = 0x80
    cpu.registers.v[1] = 0x01

    execute(cpu, 0x801E)

    assert cpu.registers.v[0] == expected
    assert cpu.registers.v[0xF] == flag


@pytest.mark.parametrize("increment, final_index", [(True, 0x503), (False, 0x500)])
def test_block_load_honours_index_increment(increment: bool, final_index: int) -> None:
    cpu = make_cpu(Quirks(increment_index_register=increment))
    cpu.memory.load_block(0x500, [7, 8, 9, 10])
    cpu.registers.index = 0x500

    execute(cpu, 0xF265)

    assert cpu.registers.v[:4] == [7, 8, 9, 0]
    assert cpu.registers.index == final_index


@pytest.mark.parametrize("jump_plus_x, target", [(False, 0x305), (True, 0x309)])
def test_jump_with_offset_register(jump_plus_x: bool, target: int) -> None:
    cpu = make_cpu(Quirks(jump_plus_x_register=jump_plus_x))
    cpu.registers.v[0] = 0x05
    cpu.registers.v[3] = 0x09

    execute(cpu, 0xB300)

    assert cpu.registers.program_counter == target


def test_logic_keeps_flag_without_reset_quirk() -> None:
    cpu = make_cpu(Quirks(reset_flag=False))
    cpu.registers.v[0xF] = 0x01
    execute(cpu, 0x8012)
    assert cpu.registers.v[0xF] == 0x01


@pytest.mark.parametrize(
    "instruction, expected",
    [
        (0x8014, lambda a, b: ((a + b) & 0xFF, int(a + b > 0xFF))),
        (0x8015, lambda a, b: ((a - b) & 0xFF, int(a >= b))),
        (0x8017, lambda a, b: ((b - a) & 0xFF, int(b >= a))),
    ],
)
def test_arithmetic_flag_for_every_operand_pair(instruction: int, expected) -> None:
    cpu = make_cpu()
    cpu.memory.store16(0x200, instruction)
    regs = cpu.registers
    for a in range(0x100):
        for b in range(0x100):
            regs.program_counter = 0x200
            regs.v[0] = a
            regs.v[1] = b
            cpu.step()
            assert (regs.v[0], regs.v[0xF]) == expected(a, b), (a, b)
