"""Exception types raised by the fluxgrid core.

Configuration and geometry problems are fatal at startup; they get their
own types so the CLI can report them cleanly.  Out-of-range coordinates
use the built-in ``IndexError``.
"""

from __future__ import annotations


class FluxGridError(Exception):
    """Base class for all fluxgrid errors."""


class LayoutError(FluxGridError, ValueError):
    """A direction layout is inconsistent (lengths, ordering, ranges)."""


class GatherTableError(FluxGridError):
    """Gather-table construction hit a geometric invariant violation."""


class ConfigError(FluxGridError, ValueError):
    """A configuration value could not be interpreted."""


class UnsupportedWallError(FluxGridError, NotImplementedError):
    """A wall kind was selected that has no transport rule yet."""
