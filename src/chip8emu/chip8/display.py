"""CHIP-8 monochrome framebuffer model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

Color = Tuple[int, int, int]

WHITE: Color = (255, 255, 255)
BLACK: Color = (0, 0, 0)


@dataclass
class Chip8Display:
    WIDTH: int = 64
    HEIGHT: int = 32

    pixels: List[bool] = field(default_factory=lambda: [False] * (64 * 32))
    dirty: bool = False
    frames_presented: int = 0

    def __post_init__(self) -> None:
        if len(self.pixels) != self.WIDTH * self.HEIGHT:
            self.pixels = [False] * (self.WIDTH * self.HEIGHT)

    # ------------------------------------------------------------------
    # Framebuffer mutation
    # ------------------------------------------------------------------
    def clear(self) -> None:
        self.pixels = [False] * (self.WIDTH * self.HEIGHT)
        self.dirty = True

    def get_pixel(self, x: int, y: int) -> bool:
        if not (0 <= x < self.WIDTH and 0 <= y < self.HEIGHT):
            raise ValueError("pixel coordinate out of range")
        return self.pixels[y * self.WIDTH + x]

    def toggle_pixel(self, x: int, y: int) -> bool:
        """XOR the pixel at (x, y) and return its value before the toggle."""

        index = y * self.WIDTH + x
        previous = self.pixels[index]
        self.pixels[index] = not previous
        return previous

    def mark_dirty(self) -> None:
        self.dirty = True

    def consume_dirty(self) -> bool:
        """Clear the dirty flag; a true result counts as one presented frame."""

        dirty = self.dirty
        self.dirty = False
        if dirty:
            self.frames_presented += 1
        return dirty

    def lit_count(self) -> int:
        return sum(self.pixels)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def rows(self) -> List[List[bool]]:
        return [self.pixels[row * self.WIDTH:(row + 1) * self.WIDTH] for row in range(self.HEIGHT)]

    def render_text(self, on: str = "#", off: str = ".") -> str:
        return "\n".join("".join(on if pixel else off for pixel in row) for row in self.rows())

    def render_pixels(self, foreground: Color = WHITE, background: Color = BLACK) -> List[List[Color]]:
        return [[foreground if pixel else background for pixel in row] for row in self.rows()]

    def render_pygame_surface(
        self,
        scaling: int = 1,
        foreground: Color = WHITE,
        background: Color = BLACK,
    ):
        """Render the framebuffer into a pygame Surface.

        Parameters
        ----------
        scaling:
            Integer scale factor applied to both axes.
        foreground, background:
            RGB tuples for lit and unlit pixels.

        Returns
        -------
        pygame.Surface
            Surface of ``WIDTH * scaling`` by ``HEIGHT * scaling`` pixels.

        Raises
        ------
        RuntimeError
            If pygame is not available.
        """

        if scaling <= 0:
            raise ValueError("scaling factor must be positive")

        try:
            import pygame  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("pygame is required for render_pygame_surface") from exc

        surface = pygame.Surface((self.WIDTH * scaling, self.HEIGHT * scaling))
        self.blit_to(surface, scaling, foreground, background)
        return surface

    def blit_to(self, surface, scaling: int, foreground: Color = WHITE, background: Color = BLACK) -> None:
        surface.fill(background)
        for y, row in enumerate(self.rows()):
            for x, pixel in enumerate(row):
                if pixel:
                    surface.fill(foreground, (x * scaling, y * scaling, scaling, scaling))

    def load_rows(self, rows: Sequence[Sequence[bool]]) -> None:
        if len(rows) != self.HEIGHT or any(len(row) != self.WIDTH for row in rows):
            raise ValueError("framebuffer must be 64x32")
        self.pixels = [bool(pixel) for row in rows for pixel in row]
        self.dirty = True
