"""WallClassifier — per-cell wall kind and colour.

Mutated only by edit operations between ticks, read by the transport
stepper as whole-grid masks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from fluxgrid.errors import UnsupportedWallError
from fluxgrid.lattice.cell import WallKind

if TYPE_CHECKING:
    from numpy.typing import ArrayLike


@dataclass
class WallClassifier:
    """Wall kinds and colours for a ``width x height`` lattice.

    Attributes:
        width: Number of columns.
        height: Number of rows.
        channels: Colour channels per flux value.
        kinds: ``WallKind`` values indexed ``[y, x]``.
        colors: Re-emission colour per cell, ones where no colour is set.
    """

    width: int
    height: int
    channels: int = 3
    kinds: NDArray[np.int8] = field(init=False, repr=False)
    colors: NDArray[np.float64] = field(init=False, repr=False)
    _colored: NDArray[np.bool_] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Start with every cell EMPTY and uncoloured."""
        self.kinds = np.zeros((self.height, self.width), dtype=np.int8)
        self.colors = np.ones((self.height, self.width, self.channels))
        self._colored = np.zeros((self.height, self.width), dtype=bool)

    def _check_bounds(self, x: int, y: int) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            msg = f"({x}, {y}) out of bounds for {self.width}x{self.height}"
            raise IndexError(msg)

    def set(
        self,
        x: int,
        y: int,
        kind: WallKind,
        color: ArrayLike | None = None,
    ) -> None:
        """Set the wall at ``(x, y)``.

        Colours only matter for DIFFUSE (optional, white when omitted) and
        TINT (required); they are ignored for other kinds.

        Args:
            x: Column index.
            y: Row index.
            kind: Wall kind to place.
            color: Scalar or per-channel colour.

        Raises:
            IndexError: If coordinates are out of bounds.
            UnsupportedWallError: If ``kind`` is REFLECT.
            ValueError: If a TINT wall has no colour or the colour is invalid.
        """
        self._check_bounds(x, y)
        if kind is WallKind.REFLECT:
            msg = "REFLECT walls have no transport rule yet"
            raise UnsupportedWallError(msg)
        if kind is WallKind.TINT and color is None:
            msg = "TINT walls need a colour"
            raise ValueError(msg)

        rgb = None
        if kind.is_opaque and color is not None:
            rgb = self._parse_color(color)

        self.kinds[y, x] = kind.value
        if rgb is None:
            self.colors[y, x] = 1.0
            self._colored[y, x] = False
        else:
            self.colors[y, x] = rgb
            self._colored[y, x] = True

    def _parse_color(self, color: ArrayLike) -> NDArray[np.float64]:
        arr = np.asarray(color, dtype=np.float64)
        try:
            rgb = np.broadcast_to(arr, (self.channels,)).copy()
        except ValueError:
            msg = f"colour of shape {arr.shape} does not fit {self.channels} channels"
            raise ValueError(msg) from None
        if not np.all(np.isfinite(rgb)) or np.any(rgb < 0.0):
            msg = f"colour components must be finite and >= 0, got {rgb.tolist()}"
            raise ValueError(msg)
        return rgb

    def kind_at(self, x: int, y: int) -> WallKind:
        """Return the wall kind at ``(x, y)``."""
        self._check_bounds(x, y)
        return WallKind(int(self.kinds[y, x]))

    def color_at(self, x: int, y: int) -> NDArray[np.float64] | None:
        """Return the explicit colour at ``(x, y)``, or None."""
        self._check_bounds(x, y)
        if not self._colored[y, x]:
            return None
        return self.colors[y, x].copy()

    def mask(self, kind: WallKind) -> NDArray[np.bool_]:
        """Boolean grid of cells holding ``kind``."""
        return self.kinds == kind.value

    def opaque_mask(self) -> NDArray[np.bool_]:
        """Cells that block ordinary transport and re-emit (DIFFUSE, TINT)."""
        return self.mask(WallKind.DIFFUSE) | self.mask(WallKind.TINT)

    def clear(self) -> None:
        """Reset every cell to EMPTY."""
        self.kinds[...] = WallKind.EMPTY.value
        self.colors[...] = 1.0
        self._colored[...] = False
