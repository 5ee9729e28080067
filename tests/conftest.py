"""Shared fixtures for the fluxgrid test suite."""

from __future__ import annotations

import numpy as np
import pytest
from numpy.random import Generator

from fluxgrid.directions.layout import DirectionLayout
from fluxgrid.lattice.grid import DoubleBufferedGrid
from fluxgrid.simulation.config import SimulationConfig


@pytest.fixture
def rng() -> Generator:
    """A deterministic random generator for reproducible tests."""
    return np.random.default_rng(seed=12345)


@pytest.fixture
def layout() -> DirectionLayout:
    """A uniform layout with 4 bins per face."""
    return DirectionLayout.uniform(4)


@pytest.fixture
def small_grid(layout: DirectionLayout) -> DoubleBufferedGrid:
    """A 9x9 RGB lattice for fast tests."""
    return DoubleBufferedGrid(
        width=9,
        height=9,
        total_bins=layout.total_bins,
        channels=3,
    )


@pytest.fixture
def small_config() -> SimulationConfig:
    """An 11x11 single-channel config (no YAML file needed)."""
    return SimulationConfig(
        grid_width=11,
        grid_height=11,
        channels=1,
        directions=4,
    )
