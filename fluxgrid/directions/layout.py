"""DirectionLayout — how a face's field of view is split into bins.

Every face of a cell sees a ±45° cone.  The layout fixes how many bins
(``D``) that cone is divided into, the nominal angle of each bin and the
fraction of flux each bin leaks sideways (blur).  Layouts are built once
at startup and never mutated.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from fluxgrid.errors import LayoutError

FIELD_OF_VIEW = math.pi / 2
HALF_FIELD = math.pi / 4
MAX_BLUR = 0.5


class BlurProfile(Enum):
    """Generator for per-bin blur values of a uniform layout."""

    NONE = "none"
    CONSTANT = "constant"
    CENTER_PEAKED = "center_peaked"


@dataclass(frozen=True, eq=False)
class DirectionLayout:
    """Discretisation of one face's field of view into ``D`` bins.

    Attributes:
        angles: Nominal travel angle of each bin, relative to the face
            normal, strictly increasing inside ``(-pi/4, pi/4)``.
        blurs: Fraction of flux each bin leaks to its neighbours, in
            ``[0, 0.5)``.
    """

    angles: NDArray[np.float64]
    blurs: NDArray[np.float64]
    _edges: NDArray[np.float64] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate and freeze the arrays."""
        angles = np.array(self.angles, dtype=np.float64).reshape(-1)
        blurs = np.array(self.blurs, dtype=np.float64).reshape(-1)
        if angles.size < 1:
            msg = "a direction layout needs at least one bin per face"
            raise LayoutError(msg)
        if blurs.size != angles.size:
            msg = f"{blurs.size} blur values for {angles.size} angles"
            raise LayoutError(msg)
        if not np.all(np.isfinite(angles)):
            msg = "bin angles must be finite"
            raise LayoutError(msg)
        if np.any(np.diff(angles) <= 0):
            bad = int(np.argmax(np.diff(angles) <= 0)) + 1
            msg = f"bin angles must be strictly increasing (bin {bad})"
            raise LayoutError(msg)
        if angles[0] <= -HALF_FIELD or angles[-1] >= HALF_FIELD:
            msg = "bin angles must lie strictly inside the ±45° field of view"
            raise LayoutError(msg)
        out_of_range = (blurs < 0.0) | (blurs >= MAX_BLUR) | ~np.isfinite(blurs)
        if np.any(out_of_range):
            bad = int(np.argmax(out_of_range))
            msg = f"blur of bin {bad} is {blurs[bad]!r}, expected [0, {MAX_BLUR})"
            raise LayoutError(msg)

        edges = np.empty(angles.size + 1, dtype=np.float64)
        edges[0] = -HALF_FIELD
        edges[-1] = HALF_FIELD
        edges[1:-1] = 0.5 * (angles[:-1] + angles[1:])

        for arr in (angles, blurs, edges):
            arr.setflags(write=False)
        object.__setattr__(self, "angles", angles)
        object.__setattr__(self, "blurs", blurs)
        object.__setattr__(self, "_edges", edges)

    @classmethod
    def uniform(
        cls,
        directions: int,
        blur_profile: BlurProfile = BlurProfile.NONE,
        blur_strength: float = 0.0,
    ) -> DirectionLayout:
        """Evenly spaced bins across the field of view.

        Args:
            directions: Bins per face (``D``).
            blur_profile: How blur varies across the bins.
            blur_strength: Blur value (or peak value) used by the profile.

        Returns:
            A validated layout.

        Raises:
            LayoutError: If ``directions < 1`` or the blur is out of range.
        """
        if directions < 1:
            msg = f"directions must be >= 1, got {directions}"
            raise LayoutError(msg)
        angles = ((np.arange(directions) + 0.5) / directions - 0.5) * FIELD_OF_VIEW
        if blur_profile is BlurProfile.NONE:
            blurs = np.zeros(directions)
        elif blur_profile is BlurProfile.CONSTANT:
            blurs = np.full(directions, blur_strength)
        else:
            blurs = blur_strength * (1.0 - (angles / HALF_FIELD) ** 2)
        return cls(angles=angles, blurs=blurs)

    @classmethod
    def calibrated(
        cls,
        angles: Sequence[float],
        blurs: Sequence[float] | None = None,
        directions: int | None = None,
    ) -> DirectionLayout:
        """Layout from literal angle/blur tables.

        Args:
            angles: Bin angles in radians.
            blurs: Per-bin blur; zeros when omitted.
            directions: Expected ``D``; checked against the table lengths.

        Raises:
            LayoutError: On length mismatch or invalid values.
        """
        if blurs is None:
            blurs = [0.0] * len(angles)
        if directions is not None and len(angles) != directions:
            msg = f"calibrated table has {len(angles)} angles, expected {directions}"
            raise LayoutError(msg)
        return cls(angles=np.asarray(angles), blurs=np.asarray(blurs))

    @property
    def directions(self) -> int:
        """Bins per face (``D``)."""
        return int(self.angles.size)

    @property
    def total_bins(self) -> int:
        """Bins per cell over all four faces."""
        return 4 * self.directions

    def bin_edges(self) -> NDArray[np.float64]:
        """Return the ``D + 1`` angular boundaries between bins."""
        return self._edges

    def bin_widths(self) -> NDArray[np.float64]:
        """Return the angular width of each bin."""
        return np.diff(self._edges)

    def angle_at(self, position: float) -> float:
        """Map a fractional bin coordinate in ``[0, D]`` to an angle."""
        return float(np.interp(position, np.arange(self.directions + 1), self._edges))

    def position_of(self, angle: float) -> float:
        """Map an angle inside the field of view to a fractional bin coordinate."""
        return float(np.interp(angle, self._edges, np.arange(self.directions + 1)))

    def face_angles(self) -> NDArray[np.float64]:
        """Travel angle of each of the ``4 * D`` bins of a cell.

        Face ``f`` is the canonical face turned by ``f * 90°``.
        """
        offsets = np.repeat(np.arange(4) * (math.pi / 2), self.directions)
        return offsets + np.tile(self.angles, 4)
