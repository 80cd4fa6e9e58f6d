"""Computer scaffold providing cycle scheduling and control utilities."""

from __future__ import annotations

import time
from typing import Callable, Optional, TYPE_CHECKING

from chip8emu.utils.debug import debug_log

if TYPE_CHECKING:
    from chip8emu.chip8.hardware import Chip8Hardware
    from chip8emu.cpu.cpu import Chip8CPU
else:  # pragma: no cover - used for runtime only
    Chip8Hardware = object
    Chip8CPU = object

NANOSECONDS_PER_SECOND = 1_000_000_000
TIMER_FREQUENCY_HZ = 60
TIMER_INTERVAL_NS = NANOSECONDS_PER_SECOND // TIMER_FREQUENCY_HZ
DEFAULT_INSTRUCTION_TIME_NS = 140_000
# A late caller may owe at most one frame of instructions.
MAX_INSTRUCTION_BACKLOG_NS = TIMER_INTERVAL_NS


def _advance(last_ns: int, interval_ns: int, now_ns: int, max_backlog_ns: int) -> int:
    """Move a deadline on by one period, keeping its phase unless too far behind."""

    return max(last_ns + interval_ns, now_ns - max_backlog_ns)


class TimeManager:
    """Monotonic nanosecond clock, replaceable by a fake in tests."""

    def __init__(self, clock: Optional[Callable[[], int]] = None) -> None:
        self._clock = clock if clock is not None else time.perf_counter_ns

    def now(self) -> int:
        return int(self._clock())


class Computer:
    """Cycle scheduler tying the CPU to its timers and peripherals.

    ``tick(now_ns)`` decides what is due at the given instant: the 60 Hz timer
    decrement and at most one instruction. Pacing and sleeping belong to the
    caller, which supplies clock readings.
    """

    STATUS_RUNNING = 0
    STATUS_PAUSED = 1
    STATUS_STOPPED = 2

    def __init__(
        self,
        hardware: Chip8Hardware,
        *,
        instruction_time_ns: int = DEFAULT_INSTRUCTION_TIME_NS,
        single_step: bool = False,
        time_manager: Optional[TimeManager] = None,
    ) -> None:
        if instruction_time_ns <= 0:
            raise ValueError("instruction time must be positive")
        self.hardware = hardware
        self.instruction_time_ns = instruction_time_ns
        self.single_step = single_step
        self.instruction_count: int = 0
        self.timer_ticks: int = 0
        self._cpu: Optional[Chip8CPU] = None
        self._running_status: int = self.STATUS_STOPPED
        self._time_manager = time_manager if time_manager is not None else TimeManager()
        self._last_instruction_ns: int = 0
        self._last_timer_ns: int = 0
        self._last_tick_ns: int = 0

    # ------------------------------------------------------------------
    # CPU integration
    # ------------------------------------------------------------------
    @property
    def cpu(self) -> Optional[Chip8CPU]:
        return self._cpu

    def set_cpu(self, cpu: Chip8CPU) -> None:
        self._cpu = cpu
        if hasattr(cpu, "computer"):
            setattr(cpu, "computer", self)

    @property
    def time_manager(self) -> TimeManager:
        return self._time_manager

    def tick(self, now_ns: Optional[int] = None) -> int:
        """Service whatever is due at ``now_ns`` and return instructions run."""

        if self._running_status != self.STATUS_RUNNING:
            return 0
        if now_ns is None:
            now_ns = self._time_manager.now()
        self._last_tick_ns = now_ns

        if now_ns - self._last_timer_ns >= TIMER_INTERVAL_NS:
            self._decrement_timers()
            self._last_timer_ns = _advance(self._last_timer_ns, TIMER_INTERVAL_NS, now_ns, TIMER_INTERVAL_NS - 1)

        if self.single_step:
            return 0
        if now_ns - self._last_instruction_ns < self.instruction_time_ns:
            return 0
        self._execute_instruction()
        self._last_instruction_ns = _advance(
            self._last_instruction_ns, self.instruction_time_ns, now_ns, MAX_INSTRUCTION_BACKLOG_NS
        )
        return 1

    def next_deadline_ns(self) -> int:
        """Clock reading at which ``tick`` next has work to do."""

        deadline = self._last_timer_ns + TIMER_INTERVAL_NS
        if not self.single_step:
            deadline = min(deadline, self._last_instruction_ns + self.instruction_time_ns)
        return deadline

    def step(self):
        """Execute one instruction now, ignoring the instruction interval.

        Returns the decoded instruction, or ``None`` when powered off.
        """

        if self._running_status == self.STATUS_STOPPED:
            return None
        return self._execute_instruction()

    def run_for(self, instructions: int, *, start_ns: Optional[int] = None) -> int:
        """Drive ``tick`` with a synthetic clock until ``instructions`` have run.

        The clock advances by one instruction interval per tick, so timers
        decrement at the same ratio as in real time.
        """

        now = self._last_tick_ns if start_ns is None else start_ns
        executed = 0
        while executed < instructions and self._running_status == self.STATUS_RUNNING:
            now += self.instruction_time_ns
            if self.single_step:
                self.tick(now)
                self.step()
                executed += 1
            else:
                executed += self.tick(now)
        return executed

    # ------------------------------------------------------------------
    # Control lifecycle
    # ------------------------------------------------------------------
    def power_on(self, now_ns: Optional[int] = None) -> None:
        if now_ns is None:
            now_ns = self._time_manager.now()
        self._last_instruction_ns = now_ns
        self._last_timer_ns = now_ns
        self._last_tick_ns = now_ns
        self._running_status = self.STATUS_RUNNING

    def power_off(self) -> None:
        if self._running_status == self.STATUS_STOPPED:
            return
        self._running_status = self.STATUS_STOPPED
        beeper = getattr(self.hardware, "beeper", None)
        if beeper is not None:
            beeper.stop()

    def pause(self) -> None:
        if self._running_status == self.STATUS_RUNNING:
            self._running_status = self.STATUS_PAUSED

    def resume(self, now_ns: Optional[int] = None) -> None:
        if self._running_status != self.STATUS_PAUSED:
            return
        self.power_on(now_ns)

    def get_running_status(self) -> int:
        return self._running_status

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _pressed_keys(self):
        keypad = getattr(self.hardware, "keypad", None)
        if keypad is None:
            return frozenset()
        return keypad.pressed_keys()

    def _execute_instruction(self):
        if self._cpu is None:
            raise RuntimeError("CPU is not attached to Computer")
        decoded = self._cpu.step(self._pressed_keys())
        self.instruction_count += 1
        return decoded

    def _decrement_timers(self) -> None:
        self.timer_ticks += 1
        if self._cpu is None:
            return
        sounding = self._cpu.decrement_timers()
        beeper = getattr(self.hardware, "beeper", None)
        if beeper is None:
            return
        if sounding:
            beeper.play()
        else:
            beeper.stop()
        debug_log("timer", "tick %d delay=%d sound=%d tone=%s", self.timer_ticks,
                  self._cpu.registers.delay_timer, self._cpu.registers.sound_timer,
                  f"{beeper.frequency:.0f}Hz" if beeper.playing else "off")
