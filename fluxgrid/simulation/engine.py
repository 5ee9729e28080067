"""SimulationEngine — builds the core once and runs the tick loop.

Startup order: direction layout, gather table, lattice, stepper.  Any
failure there is a configuration problem and aborts startup.  Each tick
then follows the canonical order:

1. Edits queued by the caller have already been applied (between ticks)
2. Transport: read the current buffer, write the next one
3. Emitters overwrite their cells in the next buffer
4. The next buffer becomes current
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fluxgrid.directions.gather import GatherTable, build_gather_table
from fluxgrid.directions.layout import DirectionLayout
from fluxgrid.errors import FluxGridError
from fluxgrid.lattice.grid import DoubleBufferedGrid
from fluxgrid.simulation.config import SimulationConfig
from fluxgrid.transport.stepper import TransportStepper

if TYPE_CHECKING:
    from numpy.typing import ArrayLike

    from fluxgrid.lattice.cell import WallKind

logger = logging.getLogger(__name__)


@dataclass
class SimulationEngine:
    """Drives the simulation forward tick by tick.

    Attributes:
        config: Loaded simulation configuration.
        layout: Direction discretisation, fixed for the process lifetime.
        table: Canonical-face gather table, fixed for the process lifetime.
        grid: Double-buffered lattice state.
        stepper: Transport rule applied each tick.
        tick: Current tick count.
    """

    config: SimulationConfig
    layout: DirectionLayout = field(init=False)
    table: GatherTable = field(init=False, repr=False)
    grid: DoubleBufferedGrid = field(init=False, repr=False)
    stepper: TransportStepper = field(init=False, repr=False)
    tick: int = 0

    def __post_init__(self) -> None:
        """Build layout, gather table, lattice and stepper from config."""
        try:
            self.layout = self.config.build_layout()
            self.table = build_gather_table(
                self.layout,
                self.config.build_gather_method(),
            )
            self.grid = DoubleBufferedGrid(
                width=self.config.grid_width,
                height=self.config.grid_height,
                total_bins=self.layout.total_bins,
                channels=self.config.channels,
            )
            self.stepper = TransportStepper(
                layout=self.layout,
                table=self.table,
                config=self.config.build_transport(),
            )
        except (FluxGridError, ValueError):
            logger.exception("invalid simulation configuration")
            raise
        logger.info(
            "lattice %dx%d, %d bins per cell, %d channels",
            self.grid.width,
            self.grid.height,
            self.layout.total_bins,
            self.grid.channels,
        )

    def step(self) -> None:
        """Advance the simulation by one tick."""
        self.grid.step(self.stepper)
        self.tick += 1
        logger.debug("tick %d, total radiance %.6g", self.tick, self.grid.total_radiance())

    def run(self, ticks: int) -> None:
        """Run the simulation for a fixed number of ticks.

        Args:
            ticks: Number of ticks to advance.
        """
        for _ in range(ticks):
            self.step()

    def total_radiance(self) -> float:
        """Sum of the current radiance over the whole lattice."""
        return self.grid.total_radiance()

    def set_wall(
        self,
        x: int,
        y: int,
        kind: WallKind,
        color: ArrayLike | None = None,
    ) -> None:
        """Place a wall; must be called between ticks."""
        self.grid.set_wall(x, y, kind, color)

    def set_emission(self, x: int, y: int, value: ArrayLike | None) -> None:
        """Place or clear an emitter; must be called between ticks."""
        self.grid.set_emission(x, y, value)
