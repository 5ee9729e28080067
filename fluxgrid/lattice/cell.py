"""Cell — a snapshot of one lattice site.

The lattice itself stores radiance, walls and emission as dense NumPy
arrays; ``Cell`` is the per-site view handed to renderers, editors and
tests so they do not have to know the array layout.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import NDArray


class WallKind(Enum):
    """Surface interaction applied to a cell each tick."""

    EMPTY = 0
    ABSORB = 1
    DIFFUSE = 2
    BLUR = 3
    TINT = 4
    REFLECT = 5

    @property
    def is_opaque(self) -> bool:
        """True for walls that stop ordinary transport and re-emit instead."""
        return self in (WallKind.DIFFUSE, WallKind.TINT)


@dataclass(frozen=True, eq=False)
class Cell:
    """Read-only view of a single lattice site.

    Attributes:
        x: Column position.
        y: Row position.
        wall: Wall kind at this site.
        wall_color: Re-emission colour for DIFFUSE/TINT walls, else None.
        radiance: Flux per bin, shape ``(4 * D, channels)``.
        emission: Constant source per bin, or None when not an emitter.
    """

    x: int
    y: int
    wall: WallKind
    wall_color: NDArray[np.float64] | None
    radiance: NDArray[np.float64]
    emission: NDArray[np.float64] | None = None

    @property
    def is_emitter(self) -> bool:
        """Return True if this cell holds a constant source."""
        return self.emission is not None

    @property
    def power(self) -> float:
        """Total flux in the cell over all bins and channels."""
        return float(self.radiance.sum())
