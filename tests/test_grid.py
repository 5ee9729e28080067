"""Tests for fluxgrid.lattice — grid buffers, walls and cell snapshots."""

from __future__ import annotations

import numpy as np
import pytest

from fluxgrid.errors import UnsupportedWallError
from fluxgrid.lattice.cell import WallKind
from fluxgrid.lattice.grid import DoubleBufferedGrid, as_bin_vector
from fluxgrid.lattice.walls import WallClassifier


class TestGridCreation:
    """Allocation and validation."""

    def test_shape(self, small_grid: DoubleBufferedGrid) -> None:
        assert small_grid.current().shape == (9, 9, 16, 3)
        assert small_grid.total_radiance() == 0.0

    @pytest.mark.parametrize(("width", "height"), [(2, 9), (9, 2), (0, 0)])
    def test_too_small(self, width: int, height: int) -> None:
        with pytest.raises(ValueError, match="at least"):
            DoubleBufferedGrid(width=width, height=height, total_bins=8)

    def test_bins_multiple_of_four(self) -> None:
        with pytest.raises(ValueError, match="multiple of 4"):
            DoubleBufferedGrid(width=5, height=5, total_bins=6)

    def test_channels_positive(self) -> None:
        with pytest.raises(ValueError, match="channels"):
            DoubleBufferedGrid(width=5, height=5, total_bins=8, channels=0)


class TestBuffers:
    """Double buffering and direct radiance edits."""

    def test_current_is_read_only(self, small_grid: DoubleBufferedGrid) -> None:
        with pytest.raises(ValueError):
            small_grid.current()[1, 1, 0, 0] = 1.0

    def test_flip_swaps_buffers(self, small_grid: DoubleBufferedGrid) -> None:
        small_grid.next_buffer()[2, 3] = 0.5
        assert small_grid.current()[2, 3].sum() == 0.0
        small_grid.flip()
        assert small_grid.parity == 1
        assert np.all(small_grid.current()[2, 3] == 0.5)

    def test_set_radiance_writes_current(self, small_grid: DoubleBufferedGrid) -> None:
        small_grid.set_radiance(3, 2, (0.1, 0.2, 0.3))
        cell = small_grid.current()[2, 3]
        assert np.allclose(cell[:, 1], 0.2)
        assert small_grid.total_radiance() == pytest.approx(16 * 0.6)

    def test_power_sums_bins(self, small_grid: DoubleBufferedGrid) -> None:
        small_grid.set_radiance(4, 4, 0.25)
        power = small_grid.power()
        assert power.shape == (9, 9, 3)
        assert np.allclose(power[4, 4], 4.0)

    def test_clear(self, small_grid: DoubleBufferedGrid) -> None:
        small_grid.set_radiance(4, 4, 1.0)
        small_grid.set_emission(2, 2, 1.0)
        small_grid.set_wall(3, 3, WallKind.ABSORB)
        small_grid.clear()
        assert small_grid.total_radiance() == 0.0
        assert not small_grid.emitter_mask().any()
        assert small_grid.walls.kind_at(3, 3) is WallKind.EMPTY

    def test_step_order(self, small_grid: DoubleBufferedGrid) -> None:
        """The stepper fills the next buffer, emitters overwrite, then flip."""
        calls = []

        class Recorder:
            def advance(self, current, out, walls) -> None:
                calls.append(current is not out)
                out[1:-1, 1:-1] = 2.0

        small_grid.set_emission(4, 4, 1.0)
        small_grid.step(Recorder())
        assert calls == [True]
        assert small_grid.parity == 1
        current = small_grid.current()
        assert np.all(current[4, 4] == 1.0)
        assert np.all(current[3, 3] == 2.0)
        assert np.all(current[0] == 0.0)


class TestBoundsAndEdits:
    """Out-of-range coordinates and invalid edits leave state unchanged."""

    @pytest.mark.parametrize(("x", "y"), [(-1, 0), (0, -1), (9, 0), (0, 9)])
    def test_out_of_bounds(self, small_grid: DoubleBufferedGrid, x: int, y: int) -> None:
        before = small_grid.current().copy()
        with pytest.raises(IndexError):
            small_grid.set_wall(x, y, WallKind.ABSORB)
        with pytest.raises(IndexError):
            small_grid.set_emission(x, y, 1.0)
        with pytest.raises(IndexError):
            small_grid.set_radiance(x, y, 1.0)
        with pytest.raises(IndexError):
            small_grid.cell_at(x, y)
        assert np.array_equal(small_grid.current(), before)
        assert not small_grid.emitter_mask().any()
        assert not small_grid.walls.kinds.any()

    def test_reflect_is_rejected(self, small_grid: DoubleBufferedGrid) -> None:
        with pytest.raises(UnsupportedWallError):
            small_grid.set_wall(4, 4, WallKind.REFLECT)
        assert small_grid.walls.kind_at(4, 4) is WallKind.EMPTY

    def test_reflect_is_not_implemented(self) -> None:
        assert issubclass(UnsupportedWallError, NotImplementedError)

    def test_tint_needs_colour(self, small_grid: DoubleBufferedGrid) -> None:
        with pytest.raises(ValueError, match="colour"):
            small_grid.set_wall(4, 4, WallKind.TINT)

    def test_bad_colour(self, small_grid: DoubleBufferedGrid) -> None:
        with pytest.raises(ValueError):
            small_grid.set_wall(4, 4, WallKind.DIFFUSE, (1.0, 0.5))
        with pytest.raises(ValueError):
            small_grid.set_wall(4, 4, WallKind.TINT, (1.0, -0.5, 0.0))


class TestEmission:
    """Broadcasting and clearing of emitter vectors."""

    def test_scalar(self, small_grid: DoubleBufferedGrid) -> None:
        small_grid.set_emission(1, 1, 0.5)
        assert np.all(small_grid.emission[1, 1] == 0.5)

    def test_colour(self, small_grid: DoubleBufferedGrid) -> None:
        small_grid.set_emission(1, 1, (0.7, 0.1, 0.1))
        assert np.allclose(small_grid.emission[1, 1, :, 0], 0.7)
        assert np.allclose(small_grid.emission[1, 1, :, 2], 0.1)

    def test_per_bin(self, small_grid: DoubleBufferedGrid) -> None:
        values = np.arange(16, dtype=float)
        small_grid.set_emission(1, 1, values)
        assert np.array_equal(small_grid.emission[1, 1, :, 1], values)

    def test_full_vector(self, small_grid: DoubleBufferedGrid, rng: np.random.Generator) -> None:
        values = rng.random((16, 3))
        small_grid.set_emission(1, 1, values)
        assert np.array_equal(small_grid.emission[1, 1], values)

    @pytest.mark.parametrize(
        "value",
        [(1.0, 2.0), np.ones((4, 3)), -1.0, np.nan],
    )
    def test_rejected(self, small_grid: DoubleBufferedGrid, value: object) -> None:
        with pytest.raises(ValueError):
            small_grid.set_emission(1, 1, value)
        assert not small_grid.emitter_mask().any()

    def test_none_and_zero_clear(self, small_grid: DoubleBufferedGrid) -> None:
        small_grid.set_emission(2, 3, 1.0)
        assert small_grid.emitter_mask()[3, 2]
        small_grid.set_emission(2, 3, None)
        assert not small_grid.emitter_mask().any()
        small_grid.set_emission(2, 3, 1.0)
        small_grid.set_emission(2, 3, 0.0)
        assert not small_grid.emitter_mask().any()

    def test_ambiguous_length_rejected(self) -> None:
        grid = DoubleBufferedGrid(width=5, height=5, total_bins=4, channels=4)
        with pytest.raises(ValueError, match="ambiguous"):
            grid.set_emission(2, 2, (0.1, 0.2, 0.3, 0.4))
        assert not grid.emitter_mask().any()
        grid.set_emission(2, 2, [(0.1, 0.2, 0.3, 0.4)] * 4)
        assert np.allclose(grid.emission[2, 2, 0], (0.1, 0.2, 0.3, 0.4))

    def test_as_bin_vector_is_a_copy(self) -> None:
        colour = np.array([0.1, 0.2])
        vector = as_bin_vector(colour, 8, 2)
        vector[0, 0] = 9.0
        assert colour[0] == 0.1


class TestCellSnapshot:
    """cell_at reports the site state."""

    def test_plain_cell(self, small_grid: DoubleBufferedGrid) -> None:
        cell = small_grid.cell_at(3, 4)
        assert (cell.x, cell.y) == (3, 4)
        assert cell.wall is WallKind.EMPTY
        assert cell.wall_color is None
        assert not cell.is_emitter

    def test_emitter_and_wall(self, small_grid: DoubleBufferedGrid) -> None:
        small_grid.set_wall(3, 4, WallKind.TINT, (0.2, 0.4, 0.6))
        small_grid.set_emission(3, 4, 1.0)
        small_grid.set_radiance(3, 4, 0.5)
        cell = small_grid.cell_at(3, 4)
        assert cell.wall is WallKind.TINT
        assert np.allclose(cell.wall_color, (0.2, 0.4, 0.6))
        assert cell.is_emitter
        assert cell.power == pytest.approx(24.0)

    def test_snapshot_is_detached(self, small_grid: DoubleBufferedGrid) -> None:
        cell = small_grid.cell_at(3, 4)
        cell.radiance[...] = 1.0
        assert small_grid.total_radiance() == 0.0


class TestWallClassifier:
    """Wall masks and colours."""

    def test_opaque_mask(self) -> None:
        walls = WallClassifier(width=5, height=5, channels=1)
        walls.set(1, 1, WallKind.DIFFUSE)
        walls.set(2, 2, WallKind.TINT, 0.5)
        walls.set(3, 3, WallKind.BLUR)
        assert walls.opaque_mask().sum() == 2
        assert walls.mask(WallKind.BLUR)[3, 3]

    def test_colour_ignored_for_transparent_kinds(self) -> None:
        walls = WallClassifier(width=5, height=5)
        walls.set(1, 1, WallKind.ABSORB, (0.1, 0.2, 0.3))
        assert walls.color_at(1, 1) is None
        assert np.all(walls.colors[1, 1] == 1.0)

    def test_replacing_wall_resets_colour(self) -> None:
        walls = WallClassifier(width=5, height=5)
        walls.set(1, 1, WallKind.TINT, (0.1, 0.2, 0.3))
        walls.set(1, 1, WallKind.DIFFUSE)
        assert walls.color_at(1, 1) is None
        assert walls.kind_at(1, 1) is WallKind.DIFFUSE

    def test_is_opaque(self) -> None:
        assert WallKind.DIFFUSE.is_opaque
        assert WallKind.TINT.is_opaque
        assert not WallKind.BLUR.is_opaque
        assert not WallKind.ABSORB.is_opaque
