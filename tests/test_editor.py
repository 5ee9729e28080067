"""Tests for fluxgrid.ui.editor — painting tools without a display."""

from __future__ import annotations

import numpy as np
import pytest

from fluxgrid.errors import UnsupportedWallError
from fluxgrid.lattice.cell import WallKind
from fluxgrid.lattice.grid import DoubleBufferedGrid
from fluxgrid.ui.editor import EditorState, ToolMode, apply_tool, brush_cells


class TestEditorState:
    """Colour fitting for the lattice channel count."""

    def test_rgb_colours_kept(self) -> None:
        state = EditorState.for_channels(3, (0.7, 0.1, 0.1))
        assert state.emitter_color == (0.7, 0.1, 0.1)
        assert len(state.tint_color) == 3

    def test_grey_lattice(self) -> None:
        state = EditorState.for_channels(1, (0.3, 0.3, 0.9))
        assert state.emitter_color == pytest.approx((0.5,))
        assert len(state.tint_color) == 1

    def test_defaults(self) -> None:
        state = EditorState()
        assert state.tool is ToolMode.EMITTER
        assert state.brush_radius == 0
        assert state.cursor is None


class TestBrush:
    """Brush footprint."""

    def test_single_cell(self, small_grid: DoubleBufferedGrid) -> None:
        assert brush_cells(small_grid, 4, 4, 0) == [(4, 4)]

    def test_radius_one_is_a_plus(self, small_grid: DoubleBufferedGrid) -> None:
        cells = brush_cells(small_grid, 4, 4, 1)
        assert sorted(cells) == [(3, 4), (4, 3), (4, 4), (4, 5), (5, 4)]

    def test_clipped_at_corner(self, small_grid: DoubleBufferedGrid) -> None:
        cells = brush_cells(small_grid, 0, 0, 1)
        assert sorted(cells) == [(0, 0), (0, 1), (1, 0)]

    def test_off_grid_centre(self, small_grid: DoubleBufferedGrid) -> None:
        with pytest.raises(IndexError):
            brush_cells(small_grid, 9, 0, 2)


class TestApplyTool:
    """Each tool edits the lattice the way its name says."""

    def test_emitter(self, small_grid: DoubleBufferedGrid) -> None:
        state = EditorState(tool=ToolMode.EMITTER, emitter_color=(1.0, 0.0, 0.5))
        assert apply_tool(small_grid, state, 3, 3) == 1
        assert small_grid.emitter_mask()[3, 3]
        assert np.allclose(small_grid.emission[3, 3, :, 2], 0.5)

    @pytest.mark.parametrize(
        ("tool", "kind"),
        [
            (ToolMode.ABSORB, WallKind.ABSORB),
            (ToolMode.BLUR, WallKind.BLUR),
            (ToolMode.DIFFUSE, WallKind.DIFFUSE),
            (ToolMode.TINT, WallKind.TINT),
        ],
    )
    def test_wall_tools(
        self,
        small_grid: DoubleBufferedGrid,
        tool: ToolMode,
        kind: WallKind,
    ) -> None:
        apply_tool(small_grid, EditorState(tool=tool), 2, 5)
        assert small_grid.walls.kind_at(2, 5) is kind

    def test_tint_uses_tint_colour(self, small_grid: DoubleBufferedGrid) -> None:
        state = EditorState(tool=ToolMode.TINT, tint_color=(0.1, 0.2, 0.3))
        apply_tool(small_grid, state, 2, 5)
        assert np.allclose(small_grid.walls.color_at(2, 5), (0.1, 0.2, 0.3))

    def test_erase(self, small_grid: DoubleBufferedGrid) -> None:
        small_grid.set_wall(4, 4, WallKind.DIFFUSE)
        small_grid.set_emission(4, 4, 1.0)
        apply_tool(small_grid, EditorState(tool=ToolMode.ERASE), 4, 4)
        assert small_grid.walls.kind_at(4, 4) is WallKind.EMPTY
        assert not small_grid.emitter_mask().any()

    def test_brush_radius(self, small_grid: DoubleBufferedGrid) -> None:
        state = EditorState(tool=ToolMode.ABSORB, brush_radius=1)
        assert apply_tool(small_grid, state, 4, 4) == 5
        assert small_grid.walls.mask(WallKind.ABSORB).sum() == 5

    def test_reflect_pending(self, small_grid: DoubleBufferedGrid) -> None:
        state = EditorState(tool=ToolMode.REFLECT_PENDING, brush_radius=2)
        with pytest.raises(UnsupportedWallError):
            apply_tool(small_grid, state, 4, 4)
        assert not small_grid.walls.kinds.any()

    def test_emitter_colour_on_one_bin_per_face(self) -> None:
        grid = DoubleBufferedGrid(width=5, height=5, total_bins=4, channels=4)
        state = EditorState(emitter_color=(0.1, 0.2, 0.3, 0.4))
        apply_tool(grid, state, 2, 2)
        assert np.allclose(grid.emission[2, 2, :, 3], 0.4)
        assert np.allclose(grid.emission[2, 2, 1], (0.1, 0.2, 0.3, 0.4))
