"""TransportStepper — one tick of directional flux transport.

Every interior cell gathers flux from its four cardinal neighbours
through the rotated gather table, then applies its wall rule:

1. ABSORB cells drop everything.
2. Gathering skips opaque (DIFFUSE/TINT) neighbours unless the cell is
   opaque itself; opaque walls do not forward light.
3. Instead, a cell next to an opaque wall re-emits what it sends into
   the wall, tinted by the wall colour and spread over its bins with a
   clamped cosine around the direction pointing away from the wall.
4. BLUR cells replace every bin with the mean over bins.
5. The result is ``step_diffuse * light + bounce``.

The grid is processed as horizontal bands of interior rows.  Bands only
read the current buffer and write disjoint rows of the next one, so they
can run on a thread pool in any order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from fluxgrid.directions.gather import GatherTable
from fluxgrid.directions.layout import DirectionLayout
from fluxgrid.lattice.cell import WallKind
from fluxgrid.lattice.walls import WallClassifier
from fluxgrid.transport.bounce import BouncePolicy, bounce_weights
from fluxgrid.transport.faces import CARDINALS, Face, Offset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportConfig:
    """Which transport features are active.

    Attributes:
        bounce: Wall re-emission policy (NONE disables re-emission).
        blur_walls: Whether BLUR cells scatter isotropically; when off
            they behave like EMPTY cells.
        step_diffuse: Global per-tick attenuation in ``(0, 1]``.
        workers: Threads used to process row bands.
    """

    bounce: BouncePolicy = BouncePolicy.UNIFORM
    blur_walls: bool = True
    step_diffuse: float = 1.0
    workers: int = 1

    def __post_init__(self) -> None:
        """Reject values that would break energy bounds or scheduling."""
        if not 0.0 < self.step_diffuse <= 1.0:
            msg = f"step_diffuse must be in (0, 1], got {self.step_diffuse}"
            raise ValueError(msg)
        if self.workers < 1:
            msg = f"workers must be >= 1, got {self.workers}"
            raise ValueError(msg)


@dataclass
class _WallMasks:
    """Whole-grid wall masks sampled once per tick."""

    opaque: NDArray[np.bool_]
    absorb: NDArray[np.bool_]
    blur: NDArray[np.bool_]
    colors: NDArray[np.float64]


@dataclass
class TransportStepper:
    """Advances radiance one tick using a gather table.

    Attributes:
        layout: Direction layout the table was built for.
        table: Canonical-face gather table.
        config: Active transport features.
    """

    layout: DirectionLayout
    table: GatherTable
    config: TransportConfig = field(default_factory=TransportConfig)
    _gather: dict[Offset, NDArray[np.float64]] = field(init=False, repr=False)
    _sent: dict[Offset, NDArray[np.float64]] = field(init=False, repr=False)
    _reemit: dict[Offset, NDArray[np.float64]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Expand the canonical table into per-neighbour transfer matrices."""
        if self.table.directions != self.layout.directions:
            msg = (
                f"gather table has {self.table.directions} bins per face, "
                f"layout has {self.layout.directions}"
            )
            raise ValueError(msg)
        bins = self.layout.total_bins

        # _gather[d][dest, src]: weight pulled from the neighbour at offset d
        self._gather = {d: np.zeros((bins, bins)) for d in CARDINALS}
        for face in Face:
            for entry in self.table.for_face(face):
                if entry.offset not in self._gather:
                    msg = f"gather offset {entry.offset} is not a cardinal neighbour"
                    raise ValueError(msg)
                self._gather[entry.offset][entry.dest_bin, entry.source_bin] += entry.weight

        # What the neighbour at d pulls out of this cell, per bin of this cell.
        self._sent = {}
        for d in CARDINALS:
            back = (-d[0], -d[1])
            self._sent[d] = self._gather[back].sum(axis=0)

        angles = self.layout.face_angles()
        baseline = None
        if self.config.bounce is BouncePolicy.WEIGHTED:
            baseline = np.tile(self.layout.bin_widths(), 4)
        self._reemit = {}
        for d in CARDINALS:
            away = Face.from_direction((-d[0], -d[1]))
            self._reemit[d] = bounce_weights(angles, away.angle, baseline)

    def advance(
        self,
        current: NDArray[np.float64],
        out: NDArray[np.float64],
        walls: WallClassifier,
    ) -> None:
        """Compute the next radiance for every interior cell.

        Args:
            current: Radiance read this tick, ``[y, x, bin, channel]``.
            out: Buffer receiving the interior cells; border cells are
                left untouched.
            walls: Wall state for this tick.
        """
        masks = _WallMasks(
            opaque=walls.opaque_mask(),
            absorb=walls.mask(WallKind.ABSORB),
            blur=walls.mask(WallKind.BLUR),
            colors=walls.colors,
        )
        height = current.shape[0]
        bands = _row_bands(1, height - 1, self.config.workers)
        if len(bands) == 1:
            self._advance_rows(current, out, masks, *bands[0])
            return

        with ThreadPoolExecutor(max_workers=len(bands)) as executor:
            futures = [
                executor.submit(self._advance_rows, current, out, masks, start, stop)
                for start, stop in bands
            ]
            for future in as_completed(futures):
                future.result()

    def _advance_rows(
        self,
        current: NDArray[np.float64],
        out: NDArray[np.float64],
        masks: _WallMasks,
        start: int,
        stop: int,
    ) -> None:
        """Update interior rows ``start..stop`` of ``out``."""
        width = current.shape[1]
        cols = slice(1, width - 1)

        def shifted(grid: NDArray, d: Offset) -> NDArray:
            dx, dy = d
            return grid[start + dy : stop + dy, 1 + dx : width - 1 + dx]

        here_opaque = masks.opaque[start:stop, cols]

        light = np.zeros((stop - start, width - 2) + current.shape[2:])
        for d, matrix in self._gather.items():
            contribution = np.matmul(matrix, shifted(current, d))
            blocked = shifted(masks.opaque, d) & ~here_opaque
            contribution[blocked] = 0.0
            light += contribution

        delta = None
        if self.config.bounce is not BouncePolicy.NONE:
            delta = np.zeros_like(light)
            for d in CARDINALS:
                hits = shifted(masks.opaque, d) & ~here_opaque
                if not hits.any():
                    continue
                sent = np.einsum("j,yxjc->yxc", self._sent[d], light)
                sent *= shifted(masks.colors, d)
                sent[~hits] = 0.0
                delta += sent[:, :, None, :] * self._reemit[d][None, None, :, None]

        if self.config.blur_walls:
            blur = masks.blur[start:stop, cols]
            if blur.any():
                light[blur] = light[blur].mean(axis=1, keepdims=True)

        if self.config.step_diffuse != 1.0:
            light *= self.config.step_diffuse
        if delta is not None:
            light += delta

        light[masks.absorb[start:stop, cols]] = 0.0
        out[start:stop, cols] = light


def _row_bands(start: int, stop: int, workers: int) -> list[tuple[int, int]]:
    """Split rows ``start..stop`` into at most ``workers`` contiguous bands."""
    rows = stop - start
    count = max(1, min(workers, rows))
    edges = np.linspace(start, stop, count + 1).round().astype(int)
    return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]
