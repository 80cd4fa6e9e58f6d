"""CHIP-8 emulator pygame application."""

from __future__ import annotations

import argparse
import sys
import time
from typing import Callable, Optional, Sequence

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.chip8.keyboard import KeyMapper
from chip8emu.config import (
    EmulatorConfig,
    load_config_file,
    parse_color,
    platform_argument,
    write_config_template,
)
from chip8emu.errors import EXIT_OK, Chip8Error, exit_code_for
from chip8emu.system.computer import NANOSECONDS_PER_SECOND, Computer
from chip8emu.utils.debug import debug_log, enabled_categories

BASE_CAPTION = "CHIP-8 Emulator"
# Longest single sleep of the main loop; shorter waits only yield.
MAX_SLEEP_NS = 1_000_000


def build_computer(config: EmulatorConfig, *, enable_audio: Optional[bool] = None) -> Chip8Computer:
    audio = config.enable_audio if enable_audio is None else enable_audio
    return Chip8Computer(
        platform=config.platform,
        instruction_time_ns=config.instruction_time_ns,
        single_step=config.debug,
        enable_audio=audio,
    )


def _pace(computer: Chip8Computer, sleep: Callable[[float], None] = time.sleep) -> int:
    """Run everything due now, then wait for the next deadline (at most 1 ms).

    Returns the number of instructions executed.
    """

    clock = computer.time_manager
    now_ns = clock.now()
    executed = 0
    while computer.tick(now_ns):
        executed += 1
    remaining = computer.next_deadline_ns() - clock.now()
    if remaining >= MAX_SLEEP_NS:
        sleep(MAX_SLEEP_NS / NANOSECONDS_PER_SECOND)
    elif remaining > 0:
        sleep(0)
    return executed


def _poll_keypad(computer: Chip8Computer, mapper: KeyMapper) -> None:
    import pygame  # type: ignore

    computer.keypad.set_pressed(mapper.snapshot(pygame.key.get_pressed()))


def _debug_step(computer: Chip8Computer) -> Optional[str]:
    """Execute one instruction and return its trace, taken before execution."""

    if computer.get_running_status() == Computer.STATUS_STOPPED:
        return None
    cpu = computer.cpu_core
    trace = cpu.format_trace(cpu.peek_instruction())
    computer.step()
    return trace


def _present(screen, computer: Chip8Computer, config: EmulatorConfig) -> None:
    import pygame  # type: ignore

    display = computer.display
    display.blit_to(screen, config.scale, config.foreground, config.background)
    pygame.display.flip()
    debug_log("display", "frame %d presented (%d lit pixels, %d instructions)",
              display.frames_presented, display.lit_count(), computer.instruction_count)


def _pygame_loop(computer: Chip8Computer, config: EmulatorConfig) -> None:
    import pygame  # type: ignore

    display = computer.display
    mapper = KeyMapper(config.keymap)

    pygame.init()
    try:
        screen = pygame.display.set_mode((display.WIDTH * config.scale, display.HEIGHT * config.scale))
        caption = BASE_CAPTION
        if computer.program_info is not None and computer.program_info.name:
            caption = f"{BASE_CAPTION} | Program: {computer.program_info.name}"
        if config.debug:
            caption += " | Debug (RETURN: step)"
        pygame.display.set_caption(caption)
        _present(screen, computer, config)

        computer.power_on()
        running = True
        while running:
            step_requested = False
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        running = False
                    elif event.key == pygame.K_RETURN and config.debug:
                        step_requested = True
            if not running:
                break

            _poll_keypad(computer, mapper)
            if step_requested:
                trace = _debug_step(computer)
                if trace is not None:
                    print(trace)
            _pace(computer)
            if display.consume_dirty():
                _present(screen, computer, config)
    finally:
        computer.power_off()
        computer.beeper.close()
        pygame.quit()


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chip8emu",
        description="CHIP-8 / SuperChip interpreter.",
    )
    parser.add_argument("rom_file", nargs="?", help="Path to the ROM file to load")
    parser.add_argument(
        "-p",
        "--platform",
        type=platform_argument,
        metavar="{chip8,superchip}",
        default=None,
        help="Platform to emulate (default: chip8)",
    )
    parser.add_argument(
        "-i",
        "--instruction-time",
        type=int,
        default=None,
        help="The instruction time in nanoseconds (default: 140000)",
    )
    parser.add_argument("-s", "--scale", type=int, default=None, help="The display scale (default: 10)")
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        default=None,
        help="Debug mode (prints registers and waits for RETURN before each instruction)",
    )
    parser.add_argument("--foreground", type=str, default=None, help="Foreground colour (#RRGGBB or r,g,b)")
    parser.add_argument("--background", type=str, default=None, help="Background colour (#RRGGBB or r,g,b)")
    parser.add_argument("--no-audio", action="store_true", help="Disable the beeper")
    parser.add_argument("--config", type=str, default=None, help="JSON configuration file")
    parser.add_argument(
        "--write-config-template",
        type=str,
        default=None,
        metavar="PATH",
        help="Write a JSON configuration template to PATH and exit",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> EmulatorConfig:
    config = EmulatorConfig()
    if args.config:
        config = config.merged(load_config_file(args.config))
    overrides = {
        "platform": args.platform,
        "instruction_time_ns": args.instruction_time,
        "scale": args.scale,
        "debug": args.debug,
        "foreground": parse_color(args.foreground) if args.foreground else None,
        "background": parse_color(args.background) if args.background else None,
        "enable_audio": False if args.no_audio else None,
    }
    return config.merged(overrides)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_argument_parser()
    args = parser.parse_args(argv)

    if args.write_config_template:
        write_config_template(args.write_config_template)
        print(f"Configuration template written to {args.write_config_template}")
        return EXIT_OK

    if not args.rom_file:
        parser.error("the following arguments are required: rom_file")

    try:
        config = resolve_config(args)
    except (OSError, ValueError) as exc:
        parser.error(f"invalid configuration: {exc}")

    computer = build_computer(config)
    try:
        computer.load_user_program(args.rom_file)
    except Chip8Error as exc:
        print(f"Failed to load program: {exc}", file=sys.stderr)
        return exit_code_for(exc)

    categories = enabled_categories()
    if categories:
        print(f"Debug output: {', '.join(sorted(categories))}", file=sys.stderr)

    try:
        _pygame_loop(computer, config)
    except Chip8Error as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return exit_code_for(exc)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
