"""Gather tables — transmission coefficients for the canonical face.

A gather table says, for every destination bin of the +x face, which
neighbour cell and which of its bins the light is pulled from, and with
what weight.  Offsets point upstream: the straight neighbour of the +x
face is ``(-1, 0)``.  The other three faces reuse the same table rotated
at use time (see ``Face.rotate``).

Two builders are provided:

- ``build_slope_split``: cheap approximation, three entries per bin.
- ``build_exact_interval``: projects each bin's angular interval
  through the straight neighbour as seen from a viewpoint two cells
  behind the face; whatever the straight neighbour cannot supply is
  taken from the two face-turn (perpendicular) neighbours.

Both keep the weights of every destination bin summing to 1, and every
source bin's outgoing weights summing to 1, so free-space transport
neither creates nor destroys flux.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

import numpy as np
from numpy.typing import NDArray

from fluxgrid.directions.layout import DirectionLayout
from fluxgrid.errors import GatherTableError
from fluxgrid.transport.faces import Face, Offset

logger = logging.getLogger(__name__)

STRAIGHT: Offset = (-1, 0)
TURN_LOW: Offset = (0, 1)  # feeds bins angled towards -y
TURN_HIGH: Offset = (0, -1)  # feeds bins angled towards +y

EPSILON = 0.001  # in bins
WEIGHT_TOLERANCE = 1e-5
_EMPTY = 1e-9

# Geometric share kept by a blurred bin never drops below this, so every
# geometric entry survives into the balancing pass.
_MIN_KEEP = 0.01
_BALANCE_ROUNDS = 10_000
_BALANCE_TOLERANCE = 1e-12

# The face point (1, tan a) is looked at from two cells behind the face.
_VIEWPOINT_BACKSET = 2.0


class GatherMethod(Enum):
    """Which builder produces the gather table."""

    SLOPE_SPLIT = "slope"
    EXACT_INTERVAL = "exact"


@dataclass(frozen=True)
class GatherEntry:
    """One weighted contribution to a destination bin.

    Attributes:
        offset: Neighbour position relative to the gathering cell.
        source_bin: Bin read from the neighbour.
        dest_bin: Bin written in the gathering cell.
        weight: Fraction of the source bin transferred (≥ 0).
    """

    offset: Offset
    source_bin: int
    dest_bin: int
    weight: float


@dataclass(frozen=True)
class GatherTable:
    """Immutable gather entries for the canonical +x face.

    Attributes:
        directions: Bins per face the table was built for.
        entries: Ordered gather entries.
    """

    directions: int
    entries: tuple[GatherEntry, ...]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[GatherEntry]:
        return iter(self.entries)

    def weight_sums(self) -> NDArray[np.float64]:
        """Total weight arriving at each destination bin."""
        sums = np.zeros(self.directions, dtype=np.float64)
        for entry in self.entries:
            sums[entry.dest_bin] += entry.weight
        return sums

    def source_sums(self) -> NDArray[np.float64]:
        """Total weight leaving each source bin over all readers."""
        sums = np.zeros(self.directions, dtype=np.float64)
        for entry in self.entries:
            sums[entry.source_bin] += entry.weight
        return sums

    def offsets(self) -> list[Offset]:
        """Distinct neighbour offsets used by the table, in first-use order."""
        return list(dict.fromkeys(entry.offset for entry in self.entries))

    def for_face(self, face: Face) -> list[GatherEntry]:
        """Entries rotated onto ``face`` with absolute bin indices.

        Args:
            face: Target face.

        Returns:
            Entries whose offsets are rotated and whose bins index the
            full ``4 * D`` radiance vector.
        """
        shift = face.value * self.directions
        return [
            GatherEntry(
                offset=face.rotate(entry.offset),
                source_bin=entry.source_bin + shift,
                dest_bin=entry.dest_bin + shift,
                weight=entry.weight,
            )
            for entry in self.entries
        ]


def build_gather_table(layout: DirectionLayout, method: GatherMethod) -> GatherTable:
    """Build a gather table with the selected algorithm.

    Raises:
        GatherTableError: If the layout produces invalid geometry.
    """
    if method is GatherMethod.SLOPE_SPLIT:
        table = build_slope_split(layout)
    else:
        table = build_exact_interval(layout)
    logger.info(
        "built %s gather table: %d bins per face, %d entries",
        method.value,
        table.directions,
        len(table),
    )
    return table


def build_slope_split(layout: DirectionLayout) -> GatherTable:
    """Split each bin between the straight and one lateral neighbour.

    The straight share is ``1 / (1 + |tan a|)``, the rest comes from the
    lateral neighbour on the side the bin leans towards.  Blur ``b`` moves
    ``b`` onto every one of the three neighbours.

    Args:
        layout: Direction layout to build for.

    Returns:
        A table with exactly three entries per bin.
    """
    entries: list[GatherEntry] = []
    for i, (angle, blur) in enumerate(zip(layout.angles, layout.blurs)):
        slope = math.tan(angle)
        straight = 1.0 / (1.0 + abs(slope))
        lateral = abs(slope) / (1.0 + abs(slope))
        side = 1 if slope >= 0 else -1
        keep = 1.0 - 3.0 * blur
        entries.append(GatherEntry(STRAIGHT, i, i, straight * keep + blur))
        entries.append(GatherEntry((0, -side), i, i, lateral * keep + blur))
        entries.append(GatherEntry((0, side), i, i, float(blur)))

    table = GatherTable(directions=layout.directions, entries=tuple(entries))
    _check_weights(table)
    return table


def _projected_position(layout: DirectionLayout, position: float) -> float:
    """Where a bin coordinate lands after projection through the straight neighbour."""
    angle = layout.angle_at(position)
    x, y = 1.0, math.tan(angle)
    seen = math.atan2(y, x + _VIEWPOINT_BACKSET)
    return layout.position_of(seen)


def _nudge(start: float, end: float) -> tuple[float, float]:
    """Move endpoints off integer bin boundaries towards the interval's inside."""
    lo, hi = start, end
    nearest = round(lo)
    if abs(lo - nearest) < EPSILON:
        lo = nearest + EPSILON
    nearest = round(hi)
    if abs(hi - nearest) < EPSILON:
        hi = nearest - EPSILON
    if lo > hi:
        # narrower than 2 * EPSILON around a boundary: keep it in one bucket
        lo = hi = 0.5 * (start + end)
    return lo, hi


def split_interval(
    layout: DirectionLayout,
    dest_bin: int,
    offset: Offset,
    start: float,
    end: float,
) -> list[GatherEntry]:
    """Turn a source-space interval into one or two gather entries.

    Endpoints within ``EPSILON`` of a bin boundary are nudged inside the
    interval before bucketing; weights use the original endpoints.

    Args:
        layout: Layout whose ``D`` bounds the source range.
        dest_bin: Destination bin the entries feed.
        offset: Neighbour the interval is read from.
        start: Interval start in fractional source bins.
        end: Interval end in fractional source bins.

    Returns:
        Zero entries for an empty interval, else one or two.

    Raises:
        GatherTableError: If the interval is reversed, leaves ``[0, D)`` or
            covers more than two source bins.
    """
    where = f"bin {dest_bin}, offset {offset}, interval [{start:.6f}, {end:.6f})"
    if end < start - _EMPTY:
        msg = f"interval is not monotonic ({where})"
        raise GatherTableError(msg)
    if end - start <= _EMPTY:
        return []

    lo, hi = _nudge(start, end)
    if lo < 0.0 or hi >= layout.directions:
        msg = f"interval leaves the {layout.directions} source bins ({where})"
        raise GatherTableError(msg)

    first, last = math.floor(lo), math.floor(hi)
    if first == last:
        return [GatherEntry(offset, first, dest_bin, end - start)]
    if last == first + 1:
        return [
            GatherEntry(offset, first, dest_bin, last - start),
            GatherEntry(offset, last, dest_bin, end - last),
        ]
    msg = f"interval spans more than two source bins ({where})"
    raise GatherTableError(msg)


def build_exact_interval(layout: DirectionLayout) -> GatherTable:
    """Gather coefficients from exact angular interval intersection.

    For destination bin ``i`` the interval ``[i, i + 1)`` is projected
    through the straight neighbour; the projection is narrower than one
    bin, and the part of the bin it does not cover is supplied by the
    face-turn neighbour on that side of the face normal.  Across all
    destination bins the straight projections tile the middle of the
    source range and the face-turn intervals tile its two ends.

    Args:
        layout: Direction layout to build for.

    Returns:
        The gather table.

    Raises:
        GatherTableError: On any geometric invariant violation.
    """
    directions = layout.directions
    middle = layout.position_of(0.0)
    low_base = _projected_position(layout, 0.0)
    high_base = _projected_position(layout, float(directions))

    def excess(position: float) -> float:
        return position - _projected_position(layout, position)

    merged: dict[tuple[Offset, int, int], float] = {}
    for i in range(directions):
        lo, hi = float(i), float(i + 1)
        intervals = (
            (STRAIGHT, _projected_position(layout, lo), _projected_position(layout, hi)),
            (
                TURN_LOW,
                low_base + excess(min(lo, middle)),
                low_base + excess(min(hi, middle)),
            ),
            (
                TURN_HIGH,
                high_base + excess(max(lo, middle)),
                high_base + excess(max(hi, middle)),
            ),
        )

        # Each offset ends up with share * (1 - 3b) + b, as in the slope
        # split.  The geometric part keeps at least _MIN_KEEP; whatever it
        # cannot carry moves onto the same-bin entry.
        blur = float(layout.blurs[i])
        keep = max(_MIN_KEEP, 1.0 - 3.0 * blur)
        for offset, start, end in intervals:
            share = 0.0
            for entry in split_interval(layout, i, offset, start, end):
                key = (entry.offset, entry.source_bin, entry.dest_bin)
                merged[key] = merged.get(key, 0.0) + entry.weight * keep
                share += entry.weight
            if blur > 0.0:
                key = (offset, i, i)
                extra = share * (1.0 - 3.0 * blur) + blur - share * keep
                merged[key] = merged.get(key, 0.0) + extra

    if np.any(layout.blurs != layout.blurs[0]):
        merged = _balance(merged, directions)

    entries = tuple(
        GatherEntry(offset, source, dest, weight)
        for (offset, source, dest), weight in merged.items()
    )
    table = GatherTable(directions=directions, entries=entries)
    _check_weights(table)
    return table


def _balance(
    merged: dict[tuple[Offset, int, int], float],
    directions: int,
) -> dict[tuple[Offset, int, int], float]:
    """Rescale weights so every source bin also sends out a total of 1.

    Blur that differs between bins takes a different amount from each
    source bin than it hands back, which would create or destroy flux in
    empty space.  Alternating source and destination normalisation
    (Sinkhorn balancing) restores both sums while keeping every entry's
    sign and each bin's split between offsets.  The destination pass runs
    last, so destination sums are exact.
    """
    keys = list(merged)
    source = np.array([key[1] for key in keys])
    dest = np.array([key[2] for key in keys])
    weights = np.array([merged[key] for key in keys], dtype=np.float64)
    for _ in range(_BALANCE_ROUNDS):
        sent = np.bincount(source, weights=weights, minlength=directions)
        if np.all(np.abs(sent - 1.0) <= _BALANCE_TOLERANCE):
            break
        weights = weights / sent[source]
        received = np.bincount(dest, weights=weights, minlength=directions)
        weights = weights / received[dest]
    else:
        logger.warning(
            "gather balancing stopped after %d rounds, source sums off by %.3g",
            _BALANCE_ROUNDS,
            float(np.max(np.abs(sent - 1.0))),
        )
    return dict(zip(keys, weights.tolist()))


def _check_weights(table: GatherTable) -> None:
    """Fail fast unless every bin gathers, and sends out, a total weight of 1."""
    for entry in table.entries:
        if entry.weight < 0.0:
            msg = f"negative weight {entry.weight} for {entry}"
            raise GatherTableError(msg)
    checks = (
        ("weights gathered by", table.weight_sums()),
        ("weights sent from", table.source_sums()),
    )
    for label, sums in checks:
        off = np.abs(sums - 1.0) > WEIGHT_TOLERANCE
        if np.any(off):
            bad = int(np.argmax(off))
            msg = f"{label} bin {bad} sum to {sums[bad]:.6f}, expected 1"
            raise GatherTableError(msg)
