"""DoubleBufferedGrid — the lattice state the simulation advances.

Two radiance buffers alternate as "current" and "next" each tick.  The
stepper only ever reads the current buffer and writes the next one, so
every cell update within a tick is independent of every other.  Walls
and emission are single grids owned here too; edits are point writes
that callers must keep out of an in-flight ``step``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import numpy as np
from numpy.typing import NDArray

from fluxgrid.lattice.cell import Cell, WallKind
from fluxgrid.lattice.walls import WallClassifier

if TYPE_CHECKING:
    from numpy.typing import ArrayLike

logger = logging.getLogger(__name__)

MIN_SIZE = 3


class Stepper(Protocol):
    """Anything that computes the next radiance buffer from the current one."""

    def advance(
        self,
        current: NDArray[np.float64],
        out: NDArray[np.float64],
        walls: WallClassifier,
    ) -> None: ...


def as_bin_vector(value: ArrayLike, total_bins: int, channels: int) -> NDArray[np.float64]:
    """Broadcast a flux value to a full ``(total_bins, channels)`` vector.

    Accepts a scalar, a per-channel colour ``(channels,)``, a per-bin
    scalar vector ``(total_bins,)`` or the full shape.  When ``channels``
    equals ``total_bins`` a 1-D vector could be either, so it is refused;
    pass the full shape instead.

    Raises:
        ValueError: If the shape does not fit, is ambiguous, or values are
            negative/non-finite.
    """
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 1 and arr.shape[0] == total_bins:
        if channels == total_bins:
            msg = (
                f"a vector of length {total_bins} is ambiguous with {channels} "
                f"channels and {total_bins} bins; pass shape ({total_bins}, {channels})"
            )
            raise ValueError(msg)
        arr = arr[:, None]
    try:
        out = np.broadcast_to(arr, (total_bins, channels)).copy()
    except ValueError:
        msg = f"flux of shape {arr.shape} does not fit ({total_bins}, {channels})"
        raise ValueError(msg) from None
    if not np.all(np.isfinite(out)) or np.any(out < 0.0):
        msg = "flux values must be finite and >= 0"
        raise ValueError(msg)
    return out


@dataclass
class DoubleBufferedGrid:
    """Radiance buffers A/B, emission grid and walls for one lattice.

    Attributes:
        width: Number of columns (≥ 3).
        height: Number of rows (≥ 3).
        total_bins: Direction bins per cell (``4 * D``).
        channels: Colour channels per flux value.
        walls: Per-cell wall kinds and colours.
        emission: Constant sources, zero where a cell is not an emitter.
        parity: Index of the buffer that is currently "current".
    """

    width: int
    height: int
    total_bins: int
    channels: int = 3
    walls: WallClassifier = field(init=False, repr=False)
    emission: NDArray[np.float64] = field(init=False, repr=False)
    _buffers: tuple[NDArray[np.float64], NDArray[np.float64]] = field(
        init=False,
        repr=False,
    )
    parity: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        """Allocate zeroed buffers."""
        if self.width < MIN_SIZE or self.height < MIN_SIZE:
            msg = f"lattice must be at least {MIN_SIZE}x{MIN_SIZE}, got {self.width}x{self.height}"
            raise ValueError(msg)
        if self.total_bins < 4 or self.total_bins % 4:
            msg = f"total_bins must be a positive multiple of 4, got {self.total_bins}"
            raise ValueError(msg)
        if self.channels < 1:
            msg = f"channels must be >= 1, got {self.channels}"
            raise ValueError(msg)
        shape = (self.height, self.width, self.total_bins, self.channels)
        self._buffers = (np.zeros(shape), np.zeros(shape))
        self.emission = np.zeros(shape)
        self.walls = WallClassifier(
            width=self.width,
            height=self.height,
            channels=self.channels,
        )

    def _check_bounds(self, x: int, y: int) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            msg = f"({x}, {y}) out of bounds for {self.width}x{self.height}"
            raise IndexError(msg)

    def current(self) -> NDArray[np.float64]:
        """Read-only view of the current radiance buffer, ``[y, x, bin, channel]``."""
        view = self._buffers[self.parity].view()
        view.setflags(write=False)
        return view

    def next_buffer(self) -> NDArray[np.float64]:
        """The writable buffer the next tick is computed into."""
        return self._buffers[1 - self.parity]

    def flip(self) -> None:
        """Make the next buffer current."""
        self.parity = 1 - self.parity

    def step(self, stepper: Stepper) -> None:
        """Advance one tick.

        The stepper reads the current buffer and fills the next one,
        emitters then overwrite their cells, and the buffers swap.
        Border cells of the next buffer are copied unchanged.

        Args:
            stepper: Transport rule to apply.
        """
        current = self._buffers[self.parity]
        out = self.next_buffer()
        _copy_border(current, out)
        stepper.advance(current, out, self.walls)
        self.inject_emission(out)
        self.flip()

    def inject_emission(self, buffer: NDArray[np.float64]) -> None:
        """Overwrite emitter cells of ``buffer`` with their emission."""
        mask = self.emitter_mask()
        buffer[mask] = self.emission[mask]

    def emitter_mask(self) -> NDArray[np.bool_]:
        """Boolean grid of cells with a non-zero emission vector."""
        return np.any(self.emission != 0.0, axis=(2, 3))

    def set_wall(
        self,
        x: int,
        y: int,
        kind: WallKind,
        color: ArrayLike | None = None,
    ) -> None:
        """Place a wall at ``(x, y)``; see ``WallClassifier.set``."""
        self.walls.set(x, y, kind, color)
        logger.debug("wall %s at (%d, %d)", kind.name, x, y)

    def set_emission(self, x: int, y: int, value: ArrayLike | None) -> None:
        """Make ``(x, y)`` a constant source, or clear it with None.

        Args:
            x: Column index.
            y: Row index.
            value: Emission broadcastable to ``(total_bins, channels)``.
                An all-zero vector clears the emitter.

        Raises:
            IndexError: If coordinates are out of bounds.
            ValueError: If the vector does not fit or is negative.
        """
        self._check_bounds(x, y)
        if value is None:
            self.emission[y, x] = 0.0
            return
        self.emission[y, x] = as_bin_vector(value, self.total_bins, self.channels)

    def set_radiance(self, x: int, y: int, value: ArrayLike) -> None:
        """Overwrite the current radiance at ``(x, y)``.

        Raises:
            IndexError: If coordinates are out of bounds.
            ValueError: If the vector does not fit or is negative.
        """
        self._check_bounds(x, y)
        vector = as_bin_vector(value, self.total_bins, self.channels)
        self._buffers[self.parity][y, x] = vector

    def cell_at(self, x: int, y: int) -> Cell:
        """Return a snapshot of the site at ``(x, y)``.

        Raises:
            IndexError: If coordinates are out of bounds.
        """
        self._check_bounds(x, y)
        emission = self.emission[y, x]
        return Cell(
            x=x,
            y=y,
            wall=self.walls.kind_at(x, y),
            wall_color=self.walls.color_at(x, y),
            radiance=self._buffers[self.parity][y, x].copy(),
            emission=emission.copy() if np.any(emission != 0.0) else None,
        )

    def total_radiance(self) -> float:
        """Sum of the current buffer over all cells, bins and channels."""
        return float(self._buffers[self.parity].sum())

    def power(self) -> NDArray[np.float64]:
        """Per-cell flux summed over bins, shape ``(height, width, channels)``."""
        return self._buffers[self.parity].sum(axis=2)

    def clear(self) -> None:
        """Zero both buffers, the emission grid and all walls."""
        for buf in self._buffers:
            buf[...] = 0.0
        self.emission[...] = 0.0
        self.walls.clear()


def _copy_border(src: NDArray[np.float64], dst: NDArray[np.float64]) -> None:
    dst[0] = src[0]
    dst[-1] = src[-1]
    dst[:, 0] = src[:, 0]
    dst[:, -1] = src[:, -1]
