"""Cosine redistribution of flux re-emitted by diffuse walls."""

from __future__ import annotations

from enum import Enum

import numpy as np
from numpy.typing import NDArray

NORMALISER_FLOOR = 1e-12


class BouncePolicy(Enum):
    """How wall re-emission is normalised across bins.

    ``UNIFORM`` weights every bin by its clamped cosine alone;
    ``WEIGHTED`` also multiplies by each bin's baseline brightness (its
    angular width), which only differs for non-uniform layouts.
    """

    NONE = "none"
    UNIFORM = "uniform"
    WEIGHTED = "weighted"


def bounce_weights(
    bin_angles: NDArray[np.float64],
    incident_angle: float,
    baseline: NDArray[np.float64] | None = None,
) -> NDArray[np.float64]:
    """Fractions of re-emitted flux sent into each bin.

    Args:
        bin_angles: Travel angle of every bin.
        incident_angle: Direction pointing away from the wall.
        baseline: Optional per-bin brightness factor.

    Returns:
        Non-negative weights summing to 1, or all zeros when no bin faces
        away from the wall (nothing is re-emitted in that case).
    """
    weights = np.maximum(np.cos(np.asarray(bin_angles) - incident_angle), 0.0)
    if baseline is not None:
        weights = weights * baseline
    total = float(weights.sum())
    if not np.isfinite(total) or total <= NORMALISER_FLOOR:
        return np.zeros_like(weights)
    return weights / total
