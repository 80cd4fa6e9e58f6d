"""Headless runner for CHIP-8 program debugging workflows."""

from __future__ import annotations

import argparse
import random
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.config import platform_argument
from chip8emu.cpu.quirks import Platform
from chip8emu.errors import EXIT_OK, Chip8Error, exit_code_for
from chip8emu.memory import PROGRAM_START


DEFAULT_MAX_INSTRUCTIONS = 10_000
ADDRESS_MASK = 0x0FFF
EXIT_BUDGET_EXHAUSTED = 4


@dataclass(frozen=True)
class DumpRange:
    """Inclusive memory range used for dumping."""

    start: int
    end: int

    def iter_addresses(self) -> Iterable[int]:
        for address in range(self.start, self.end + 1):
            yield address & ADDRESS_MASK


def _parse_hex(value: str, *, limit: int = ADDRESS_MASK) -> int:
    text = value.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if not text:
        raise ValueError("empty hexadecimal value")
    result = int(text, 16)
    if not (0 <= result <= limit):
        raise ValueError("hex value out of range")
    return result


def _parse_range(spec: str) -> DumpRange:
    start_str, sep, end_str = spec.partition(":")
    if not sep:
        raise ValueError("range specification must contain ':'")
    start = _parse_hex(start_str)
    end = _parse_hex(end_str)
    if end < start:
        raise ValueError("range end must be >= start")
    return DumpRange(start, end)


def _parse_keys(spec: str) -> List[int]:
    keys: List[int] = []
    for part in spec.split(","):
        part = part.strip()
        if part:
            keys.append(_parse_hex(part, limit=0xF))
    return keys


def _merge_ranges(ranges: Sequence[DumpRange]) -> List[DumpRange]:
    if not ranges:
        return []
    ordered = sorted(ranges, key=lambda r: (r.start, r.end))
    merged: List[DumpRange] = []
    for current in ordered:
        if not merged:
            merged.append(current)
            continue
        last = merged[-1]
        if current.start <= last.end + 1:
            merged[-1] = DumpRange(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def _format_hex_dump(memory, dump_ranges: Sequence[DumpRange]) -> str:
    lines: List[str] = []
    header = "ADDR " + " ".join(f"+{offset:X}" for offset in range(16))
    for index, dump_range in enumerate(dump_ranges):
        if index:
            lines.append("")
        lines.append(header)
        start_line = dump_range.start & ~0x0F
        end_line = dump_range.end | 0x0F
        for base in range(start_line, end_line + 1, 16):
            row = [f"{base & ADDRESS_MASK:04X}"]
            for offset in range(16):
                address = (base + offset) & ADDRESS_MASK
                value = memory.load8(address) & 0xFF
                row.append(f"{value:02X}")
            lines.append(" ".join(row))
    return "\n".join(lines)


def _write_dump(memory, dump_ranges: Sequence[DumpRange], *, target: Path | None, fmt: str) -> None:
    ranges = _merge_ranges(dump_ranges)
    if not ranges:
        return
    if fmt == "bin":
        data = bytearray()
        for dump_range in ranges:
            for address in dump_range.iter_addresses():
                data.append(memory.load8(address) & 0xFF)
        if target is None:
            sys.stdout.buffer.write(bytes(data))
            return
        target.write_bytes(bytes(data))
        return

    text = _format_hex_dump(memory, ranges)
    if target is None:
        print(text)
    else:
        target.write_text(text + "\n")


def _execute_program(
    computer: Chip8Computer,
    *,
    max_instructions: int,
    breakpoints: Sequence[int],
) -> Tuple[int, bool]:
    """Run until a breakpoint or the budget; return (executed, break_hit)."""

    cpu = computer.cpu_core
    break_set = {value & ADDRESS_MASK for value in breakpoints}
    executed = 0
    while executed < max_instructions:
        step = computer.run_for(1)
        if step == 0:
            break
        executed += step
        if break_set and cpu.registers.program_counter in break_set:
            return executed, True
    return executed, False


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chip8emu-debug",
        description="Headless CHIP-8 runner for program diagnostics.",
    )
    parser.add_argument("--program", type=str, required=True, help="CHIP-8 program image")
    parser.add_argument(
        "--platform",
        type=platform_argument,
        metavar="{chip8,superchip}",
        default=Platform.CHIP8.value,
        help="Platform quirks to apply",
    )
    parser.add_argument(
        "--cycles",
        type=int,
        default=DEFAULT_MAX_INSTRUCTIONS,
        help="Number of instructions to execute",
    )
    parser.add_argument(
        "--break-pc",
        action="append",
        default=[],
        help="Stop when PC reaches the given hex address (repeatable)",
    )
    parser.add_argument("--keys", type=str, default="", help="Comma separated hex keys held for the whole run")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the CXNN random source")
    parser.add_argument("--dump", type=str, default=None, help="File path for memory dump (defaults to stdout)")
    parser.add_argument(
        "--dump-range",
        action="append",
        default=[],
        help="Memory range to dump in START:END hex form (inclusive). Repeat to add multiple ranges.",
    )
    parser.add_argument(
        "--dump-format",
        choices=("hex", "bin"),
        default="hex",
        help="Dump format (hex table or raw binary)",
    )
    parser.add_argument("--registers", action="store_true", help="Print the register file after the run")
    parser.add_argument("--screen", action="store_true", help="Print the framebuffer as text after the run")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 4 when the instruction budget runs out before a breakpoint",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_argument_parser()
    args = parser.parse_args(argv)

    breakpoints: List[int] = []
    for spec in args.break_pc:
        try:
            breakpoints.append(_parse_hex(spec))
        except ValueError as exc:
            parser.error(f"invalid breakpoint address '{spec}': {exc}")

    dump_ranges: List[DumpRange] = []
    for spec in args.dump_range:
        try:
            dump_ranges.append(_parse_range(spec))
        except ValueError as exc:
            parser.error(f"invalid dump range '{spec}': {exc}")

    try:
        keys = _parse_keys(args.keys)
    except ValueError as exc:
        parser.error(f"invalid key list '{args.keys}': {exc}")

    rng = random.Random(args.seed) if args.seed is not None else None

    computer = Chip8Computer(platform=args.platform, enable_audio=False, rng=rng)
    try:
        computer.load_user_program(args.program)
    except Chip8Error as exc:
        print(f"Failed to load program: {exc}", file=sys.stderr)
        return exit_code_for(exc)

    computer.keypad.set_pressed(keys)
    computer.power_on(0)

    exit_code = EXIT_OK
    break_hit = False
    try:
        executed, break_hit = _execute_program(
            computer,
            max_instructions=max(0, args.cycles),
            breakpoints=breakpoints,
        )
    except Chip8Error as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        exit_code = exit_code_for(exc)
        executed = computer.instruction_count

    dump_target = Path(args.dump) if args.dump is not None else None
    _write_dump(computer.memory, dump_ranges, target=dump_target, fmt=args.dump_format)

    if args.registers:
        print(f"Executed {executed} instructions from 0x{PROGRAM_START:03X}")
        print(computer.cpu_core.format_registers())
    if args.screen:
        print(computer.display.render_text())

    if exit_code != EXIT_OK:
        return exit_code
    if args.strict and breakpoints and not break_hit:
        print("Execution stopped: instruction limit reached", file=sys.stderr)
        return EXIT_BUDGET_EXHAUSTED
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
