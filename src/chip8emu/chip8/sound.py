"""CHIP-8 beeper with optional square-wave playback."""

from __future__ import annotations

from array import array
from dataclasses import dataclass, field
from typing import List, Tuple

from chip8emu.utils.debug import debug_log


@dataclass
class Chip8Beeper:
    """Audio sink driven by the sound timer.

    ``play``/``stop`` are called once per 60 Hz timer tick; only transitions
    reach the mixer. Without pygame (or with ``enable_audio`` off) the beeper
    only records its history.
    """

    history: List[Tuple[str, float]] = field(default_factory=list)
    sample_rate: int = 44100
    frequency: float = 440.0
    volume: float = 0.3
    enable_audio: bool = False

    def __post_init__(self) -> None:
        self._playing: bool = False
        self._audio_initialized: bool = False
        self._channel = None
        self._sound = None

    @property
    def playing(self) -> bool:
        return self._playing

    # ------------------------------------------------------------------
    # Scheduler callbacks
    # ------------------------------------------------------------------
    def play(self) -> None:
        if self._playing:
            return
        self._playing = True
        self.history.append(("play", self.frequency))
        debug_log("timer", "beeper on (%.1f Hz)", self.frequency)
        if not self._ensure_mixer():
            return
        self._channel.set_volume(self.volume)
        self._channel.play(self._sound, loops=-1)

    def stop(self) -> None:
        if not self._playing:
            return
        self._playing = False
        self.history.append(("stop", 0.0))
        debug_log("timer", "beeper off")
        if self._channel is not None:
            self._channel.stop()

    def close(self) -> None:
        self.stop()
        self._channel = None
        self._sound = None
        self._audio_initialized = False

    # ------------------------------------------------------------------
    # Audio control helpers
    # ------------------------------------------------------------------
    def _ensure_mixer(self) -> bool:
        if not self.enable_audio:
            return False
        if self._audio_initialized:
            return True
        try:
            import pygame  # type: ignore

            if not pygame.mixer.get_init():
                pygame.mixer.init(frequency=self.sample_rate, size=-16, channels=1)
            self._channel = pygame.mixer.Channel(0)
            self._sound = pygame.mixer.Sound(buffer=self._render_period())
            self._audio_initialized = True
        except Exception as exc:
            debug_log("timer", "audio disabled: %s", exc)
            self.enable_audio = False
            self._channel = None
            self._sound = None
            self._audio_initialized = False
        return self._audio_initialized

    def _render_period(self) -> array:
        """Render one second of square wave, trimmed to whole periods."""

        amplitude = int(self.volume * 32767)
        period = max(2, int(self.sample_rate / self.frequency))
        half = period // 2
        cycles = max(1, self.sample_rate // period)
        buffer = array("h")
        for _ in range(cycles):
            buffer.extend([amplitude] * half)
            buffer.extend([-amplitude] * (period - half))
        return buffer
