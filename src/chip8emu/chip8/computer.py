"""CHIP-8 system wiring."""

from __future__ import annotations

import os
from pathlib import Path
import random
from typing import Optional

from chip8emu.chip8.display import Chip8Display
from chip8emu.chip8.hardware import Chip8Hardware
from chip8emu.chip8.keyboard import Chip8Keypad
from chip8emu.chip8.sound import Chip8Beeper
from chip8emu.cpu.cpu import Chip8CPU
from chip8emu.cpu.quirks import Platform, Quirks
from chip8emu.emulator.file import ProgramInfo, load_program, load_program_bytes
from chip8emu.memory import Memory
from chip8emu.system.computer import DEFAULT_INSTRUCTION_TIME_NS, Computer, TimeManager


class Chip8Computer(Computer):
    """Concrete CHIP-8 machine: 4 KiB RAM, 64x32 display, hex keypad, beeper."""

    def __init__(
        self,
        *,
        platform: "str | Platform" = Platform.CHIP8,
        quirks: Optional[Quirks] = None,
        instruction_time_ns: int = DEFAULT_INSTRUCTION_TIME_NS,
        single_step: bool = False,
        enable_audio: bool = False,
        rng: Optional[random.Random] = None,
        time_manager: Optional[TimeManager] = None,
    ) -> None:
        memory = Memory()
        memory.install_font()
        hardware = Chip8Hardware(
            memory=memory,
            display=Chip8Display(),
            keypad=Chip8Keypad(),
            beeper=Chip8Beeper(enable_audio=enable_audio),
        )
        super().__init__(
            hardware,
            instruction_time_ns=instruction_time_ns,
            single_step=single_step,
            time_manager=time_manager,
        )
        self.platform = Platform.parse(platform)
        self.quirks = quirks if quirks is not None else Quirks.for_platform(self.platform)
        self.program_info: Optional[ProgramInfo] = None
        self.cpu_core = Chip8CPU(self, self.quirks, rng=rng)
        self.set_cpu(self.cpu_core)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def memory(self) -> Memory:
        return self.hardware.memory

    @property
    def display(self) -> Chip8Display:
        return self.hardware.display

    @property
    def keypad(self) -> Chip8Keypad:
        return self.hardware.keypad

    @property
    def beeper(self) -> Chip8Beeper:
        return self.hardware.beeper

    # ------------------------------------------------------------------
    # Program loading
    # ------------------------------------------------------------------
    def load_user_program(self, path: str | os.PathLike[str]) -> ProgramInfo:
        info = load_program(self.memory, Path(path))
        self._after_load(info)
        return info

    def load_program_bytes(self, data: bytes, *, name: str = "") -> ProgramInfo:
        info = load_program_bytes(self.memory, bytes(data), name=name)
        self._after_load(info)
        return info

    def _after_load(self, info: ProgramInfo) -> None:
        self.program_info = info
        self.cpu_core.reset()
