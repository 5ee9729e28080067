"""Face — the four cardinal rotations of the canonical +x face.

Gather tables are built for face 0 only.  The other faces reuse them by
rotating neighbour offsets and shifting bin indices, so the rotation
lives here as a closed enum rather than integer arithmetic scattered
through the stepper.
"""

from __future__ import annotations

import math
from enum import Enum

Offset = tuple[int, int]

CARDINALS: tuple[Offset, ...] = ((1, 0), (0, 1), (-1, 0), (0, -1))


class Face(Enum):
    """Direction of travel owned by a group of ``D`` bins."""

    EAST = 0
    NORTH = 1
    WEST = 2
    SOUTH = 3

    @property
    def angle(self) -> float:
        """Angle of the face normal in radians."""
        return self.value * (math.pi / 2)

    @property
    def normal(self) -> Offset:
        """Unit offset the face's light travels along."""
        return CARDINALS[self.value]

    def rotate(self, offset: Offset) -> Offset:
        """Rotate a canonical-face offset onto this face."""
        dx, dy = offset
        for _ in range(self.value):
            dx, dy = -dy, dx
        return dx, dy

    def bin_slice(self, directions: int) -> slice:
        """Slice of the ``4 * D`` radiance bins owned by this face."""
        start = self.value * directions
        return slice(start, start + directions)

    @classmethod
    def from_direction(cls, offset: Offset) -> Face:
        """Return the face whose light travels along ``offset``.

        Raises:
            ValueError: If ``offset`` is not a cardinal unit vector.
        """
        try:
            return cls(CARDINALS.index(offset))
        except ValueError:
            msg = f"{offset} is not a cardinal unit offset"
            raise ValueError(msg) from None
