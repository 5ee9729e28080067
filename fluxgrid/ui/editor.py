"""Editor tools — translate painting actions into lattice edits.

The interactive client keeps its state (active tool, colours, brush)
in an ``EditorState`` and calls ``apply_tool`` between ticks.  Keeping
this separate from the Pygame code lets the edit rules be tested
without a display.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from fluxgrid.errors import UnsupportedWallError
from fluxgrid.lattice.cell import WallKind

if TYPE_CHECKING:
    from fluxgrid.lattice.grid import DoubleBufferedGrid


class ToolMode(Enum):
    """What a mouse stroke paints."""

    EMITTER = "emitter"
    ERASE = "erase"
    ABSORB = "absorb"
    BLUR = "blur"
    DIFFUSE = "diffuse"
    TINT = "tint"
    REFLECT_PENDING = "reflect"


_WALL_TOOLS: dict[ToolMode, WallKind] = {
    ToolMode.ABSORB: WallKind.ABSORB,
    ToolMode.BLUR: WallKind.BLUR,
    ToolMode.DIFFUSE: WallKind.DIFFUSE,
    ToolMode.TINT: WallKind.TINT,
}


@dataclass
class EditorState:
    """Interactive editing state.

    Attributes:
        tool: Active tool.
        emitter_color: Colour painted by the emitter tool, every bin.
        tint_color: Colour given to TINT walls.
        brush_radius: Cells painted around the cursor (0 = single cell).
        cursor: Last grid position under the pointer, if any.
    """

    tool: ToolMode = ToolMode.EMITTER
    emitter_color: tuple[float, ...] = (0.7, 0.1, 0.1)
    tint_color: tuple[float, ...] = (0.2, 0.6, 1.0)
    brush_radius: int = 0
    cursor: tuple[int, int] | None = None

    @classmethod
    def for_channels(
        cls,
        channels: int,
        emitter_color: tuple[float, ...] = (0.7, 0.1, 0.1),
    ) -> EditorState:
        """Editor state whose colours fit a lattice with ``channels`` channels.

        Colours of a different width collapse to their grey mean.
        """

        def fit(color: tuple[float, ...]) -> tuple[float, ...]:
            if len(color) == channels:
                return tuple(float(c) for c in color)
            grey = sum(color) / len(color)
            return (grey,) * channels

        return cls(
            emitter_color=fit(tuple(emitter_color)),
            tint_color=fit((0.2, 0.6, 1.0)),
        )


def brush_cells(
    grid: DoubleBufferedGrid,
    x: int,
    y: int,
    radius: int,
) -> list[tuple[int, int]]:
    """Cells within ``radius`` of ``(x, y)`` that lie on the grid.

    Raises:
        IndexError: If the centre itself is off the grid.
    """
    if not (0 <= x < grid.width and 0 <= y < grid.height):
        msg = f"({x}, {y}) out of bounds for {grid.width}x{grid.height}"
        raise IndexError(msg)
    cells = []
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            nx, ny = x + dx, y + dy
            if dx * dx + dy * dy > radius * radius:
                continue
            if 0 <= nx < grid.width and 0 <= ny < grid.height:
                cells.append((nx, ny))
    return cells


def apply_tool(grid: DoubleBufferedGrid, state: EditorState, x: int, y: int) -> int:
    """Paint the active tool at ``(x, y)``.

    Args:
        grid: Lattice to edit; must not be mid-step.
        state: Current editor state.
        x: Column under the cursor.
        y: Row under the cursor.

    Returns:
        Number of cells edited.

    Raises:
        IndexError: If ``(x, y)`` is off the grid.
        UnsupportedWallError: If the reflect tool is active.
    """
    if state.tool is ToolMode.REFLECT_PENDING:
        msg = "the reflect tool has no transport rule yet"
        raise UnsupportedWallError(msg)

    cells = brush_cells(grid, x, y, state.brush_radius)
    emission = [state.emitter_color] * grid.total_bins
    for cx, cy in cells:
        if state.tool is ToolMode.EMITTER:
            grid.set_emission(cx, cy, emission)
        elif state.tool is ToolMode.ERASE:
            grid.set_wall(cx, cy, WallKind.EMPTY)
            grid.set_emission(cx, cy, None)
        elif state.tool is ToolMode.TINT:
            grid.set_wall(cx, cy, WallKind.TINT, state.tint_color)
        else:
            grid.set_wall(cx, cy, _WALL_TOOLS[state.tool])
    return len(cells)
