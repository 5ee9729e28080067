"""Pygame 2D viewer and editor for the fluxgrid simulation.

Shows the summed radiance of every cell with a simple clamp tone map,
overlays walls and emitters, and lets the mouse paint with the active
editor tool.  The simulation steps at a configurable tick rate while the
display refreshes at the Pygame frame rate; edits are applied between
ticks.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar

import numpy as np
import pygame

if TYPE_CHECKING:
    from fluxgrid.simulation.engine import SimulationEngine

from fluxgrid.errors import UnsupportedWallError
from fluxgrid.lattice.cell import WallKind
from fluxgrid.ui.editor import EditorState, ToolMode, apply_tool

logger = logging.getLogger(__name__)

# Colour palette
_BG = (10, 10, 14)
_TEXT = (200, 200, 200)
_EMITTER = (255, 60, 60)

_WALL_COLOURS: dict[WallKind, tuple[int, int, int]] = {
    WallKind.ABSORB: (20, 120, 20),
    WallKind.DIFFUSE: (150, 150, 150),
    WallKind.BLUR: (90, 60, 140),
    WallKind.TINT: (40, 100, 160),
}

_TOOL_KEYS: dict[int, ToolMode] = {
    pygame.K_1: ToolMode.EMITTER,
    pygame.K_2: ToolMode.ERASE,
    pygame.K_3: ToolMode.ABSORB,
    pygame.K_4: ToolMode.BLUR,
    pygame.K_5: ToolMode.DIFFUSE,
    pygame.K_6: ToolMode.TINT,
    pygame.K_7: ToolMode.REFLECT_PENDING,
}


def tone_map(power: np.ndarray, exposure: float = 1.0) -> np.ndarray:
    """Map per-cell flux ``(h, w, channels)`` to 8-bit RGB ``(h, w, 3)``."""
    if power.shape[-1] == 1:
        power = np.repeat(power, 3, axis=-1)
    elif power.shape[-1] != 3:
        power = np.repeat(power.mean(axis=-1, keepdims=True), 3, axis=-1)
    return (np.clip(power * exposure, 0.0, 1.0) * 255).astype(np.uint8)


class PygameRenderer:
    """Renders a SimulationEngine state into a Pygame window.

    Attributes:
        engine: The simulation engine to visualise.
        cell_size: Pixel size of each grid cell.
        editor: Active tool and colours.
        screen: The Pygame display surface.
    """

    # Speed presets: ticks per second
    _SPEED_STEPS: ClassVar[list[float]] = [
        1.0,
        5.0,
        10.0,
        30.0,
        60.0,
        120.0,
        240.0,
    ]

    def __init__(
        self,
        engine: SimulationEngine,
        cell_size: int = 8,
        ticks_per_second: float = 60.0,
        exposure: float = 1.0,
    ) -> None:
        """Initialise the renderer.

        Args:
            engine: The simulation engine to render.
            cell_size: Pixel width/height per grid cell.
            ticks_per_second: Simulation ticks per real-time second.
            exposure: Multiplier applied to flux before clamping.
        """
        self.engine = engine
        self.cell_size = cell_size
        self.ticks_per_second = ticks_per_second
        self.exposure = exposure
        self._speed_index = self._nearest_speed(ticks_per_second)
        self._tick_accumulator = 0.0
        self.editor = EditorState.for_channels(
            engine.grid.channels,
            tuple(engine.config.emitter_color),
        )
        self._status = ""
        self._buttons: set[int] = set()

        w = engine.grid.width * cell_size
        h = engine.grid.height * cell_size
        self._panel_width = 220
        self._win_w = w + self._panel_width
        self._win_h = h

        pygame.init()
        self.screen = pygame.display.set_mode((self._win_w, self._win_h))
        pygame.display.set_caption("fluxgrid")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("monospace", 14)
        self.running = True
        self.paused = False

    def _nearest_speed(self, tps: float) -> int:
        """Return the index of the closest speed preset."""
        diffs = [abs(s - tps) for s in self._SPEED_STEPS]
        return diffs.index(min(diffs))

    def run(self, fps: int = 60) -> None:
        """Main loop: handle events, step sim, render.

        Args:
            fps: Target frames per second.
        """
        while self.running:
            dt = self.clock.tick(fps) / 1000.0  # seconds elapsed
            self._handle_events()
            self._paint()
            if not self.paused:
                self._tick_accumulator += self.ticks_per_second * dt
                steps = int(self._tick_accumulator)
                self._tick_accumulator -= steps
                for _ in range(steps):
                    self.engine.step()
            self._draw()

        pygame.quit()

    def _grid_pos(self, pixel: tuple[int, int]) -> tuple[int, int] | None:
        x, y = pixel[0] // self.cell_size, pixel[1] // self.cell_size
        if 0 <= x < self.engine.grid.width and 0 <= y < self.engine.grid.height:
            return x, y
        return None

    def _handle_events(self) -> None:
        """Process Pygame input events."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.MOUSEMOTION:
                self.editor.cursor = self._grid_pos(event.pos)
            elif event.type == pygame.MOUSEBUTTONDOWN:
                self._buttons.add(event.button)
                self.editor.cursor = self._grid_pos(event.pos)
            elif event.type == pygame.MOUSEBUTTONUP:
                self._buttons.discard(event.button)
            elif event.type == pygame.KEYDOWN:
                self._handle_key(event.key)

    def _handle_key(self, key: int) -> None:
        if key == pygame.K_ESCAPE:
            self.running = False
        elif key == pygame.K_SPACE:
            self.paused = not self.paused
        elif key in _TOOL_KEYS:
            self.editor.tool = _TOOL_KEYS[key]
            self._status = ""
        elif key == pygame.K_LEFTBRACKET:
            self.editor.brush_radius = max(0, self.editor.brush_radius - 1)
        elif key == pygame.K_RIGHTBRACKET:
            self.editor.brush_radius += 1
        elif key == pygame.K_c:
            self.engine.grid.clear()
        elif key in (pygame.K_PLUS, pygame.K_EQUALS):
            self._speed_index = min(len(self._SPEED_STEPS) - 1, self._speed_index + 1)
            self.ticks_per_second = self._SPEED_STEPS[self._speed_index]
        elif key == pygame.K_MINUS:
            self._speed_index = max(0, self._speed_index - 1)
            self.ticks_per_second = self._SPEED_STEPS[self._speed_index]

    def _paint(self) -> None:
        """Apply the active tool under the cursor while a button is held."""
        if self.editor.cursor is None or not self._buttons:
            return
        x, y = self.editor.cursor
        if 3 in self._buttons:
            erase = EditorState(
                tool=ToolMode.ERASE,
                brush_radius=self.editor.brush_radius,
            )
            apply_tool(self.engine.grid, erase, x, y)
            return
        try:
            apply_tool(self.engine.grid, self.editor, x, y)
        except UnsupportedWallError as exc:
            self._status = "reflect: not available"
            logger.warning("%s", exc)
            self._buttons.clear()

    def _draw(self) -> None:
        """Render one frame."""
        self.screen.fill(_BG)
        self._draw_radiance()
        self._draw_walls()
        self._draw_info_panel()
        pygame.display.flip()

    def _draw_radiance(self) -> None:
        """Blit the tone-mapped radiance, scaled up to cell size."""
        rgb = tone_map(self.engine.grid.power(), self.exposure)
        surface = pygame.surfarray.make_surface(rgb.swapaxes(0, 1))
        grid = self.engine.grid
        surface = pygame.transform.scale(
            surface,
            (grid.width * self.cell_size, grid.height * self.cell_size),
        )
        self.screen.blit(surface, (0, 0))

    def _draw_walls(self) -> None:
        """Draw walls and emitters as solid cells."""
        cs = self.cell_size
        grid = self.engine.grid
        for kind, colour in _WALL_COLOURS.items():
            ys, xs = np.nonzero(grid.walls.mask(kind))
            for x, y in zip(xs.tolist(), ys.tolist()):
                pygame.draw.rect(self.screen, colour, (x * cs, y * cs, cs, cs))
        ys, xs = np.nonzero(grid.emitter_mask())
        for x, y in zip(xs.tolist(), ys.tolist()):
            pygame.draw.rect(self.screen, _EMITTER, (x * cs, y * cs, cs, cs))

    def _draw_info_panel(self) -> None:
        """Draw a stats panel on the right side of the window."""
        panel_x = self.engine.grid.width * self.cell_size + 10
        y = 10

        lines = [
            f"Tick: {self.engine.tick}",
            f"Speed: {self.ticks_per_second:.1f} t/s",
            f"{'PAUSED' if self.paused else 'RUNNING'}",
            f"Flux: {self.engine.total_radiance():.2f}",
            "",
            f"Tool: {self.editor.tool.value}",
            f"Brush: {self.editor.brush_radius}",
            self._status,
            "",
            "--- Controls ---",
            "1-7: tool",
            "LMB: paint  RMB: erase",
            "[ ]: brush size",
            "C: clear",
            "SPACE: pause",
            "+/-: speed",
            "ESC: quit",
        ]

        for line in lines:
            surf = self.font.render(line, True, _TEXT)
            self.screen.blit(surf, (panel_x, y))
            y += 18
