"""Config — load simulation parameters from YAML files.

Grid size, the direction layout, the gather algorithm and the active
transport features all live in YAML and are parsed into a typed
dataclass here.  Helpers turn the raw values into the core's objects so
that a bad name fails at startup rather than mid-run.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from fluxgrid.directions.gather import GatherMethod
from fluxgrid.directions.layout import BlurProfile, DirectionLayout
from fluxgrid.errors import ConfigError
from fluxgrid.transport.bounce import BouncePolicy
from fluxgrid.transport.stepper import TransportConfig


@dataclass
class SimulationConfig:
    """Top-level simulation configuration.

    Attributes:
        grid_width: Number of lattice columns.
        grid_height: Number of lattice rows.
        channels: Colour channels per flux value (1 = grey, 3 = RGB).
        directions: Bins per face for the uniform layout.
        layout: ``"uniform"`` or ``"calibrated"``.
        angles: Bin angles in radians for the calibrated layout.
        blurs: Per-bin blur for the calibrated layout.
        blur_profile: Blur generator for the uniform layout.
        blur_strength: Blur value (or peak) for the uniform layout.
        gather_method: ``"exact"`` or ``"slope"``.
        bounce: Wall re-emission policy: ``"none"``, ``"uniform"`` or
            ``"weighted"``.
        blur_walls: Whether BLUR cells scatter isotropically.
        step_diffuse: Global per-tick attenuation in ``(0, 1]``.
        workers: Threads processing row bands each tick.
        emitter_color: Default colour painted by the emitter tool.
        log_level: Logging level name for the CLI.
    """

    grid_width: int = 128
    grid_height: int = 128
    channels: int = 3

    # Direction layout
    directions: int = 8
    layout: str = "uniform"
    angles: list[float] = field(default_factory=list)
    blurs: list[float] = field(default_factory=list)
    blur_profile: str = "none"
    blur_strength: float = 0.0

    # Transport
    gather_method: str = "exact"
    bounce: str = "uniform"
    blur_walls: bool = True
    step_diffuse: float = 1.0
    workers: int = 1

    emitter_color: list[float] = field(default_factory=lambda: [0.7, 0.1, 0.1])
    log_level: str = "INFO"

    @classmethod
    def from_yaml(cls, path: str | Path) -> SimulationConfig:
        """Load configuration from a YAML file.

        Keys that are missing fall back to the dataclass defaults.

        Args:
            path: Path to the YAML config file.

        Returns:
            A populated SimulationConfig instance.

        Raises:
            FileNotFoundError: If the config file does not exist.
            ConfigError: If the file holds unknown keys or is not a mapping.
        """
        path = Path(path)
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            msg = f"{path}: expected a mapping at the top level"
            raise ConfigError(msg)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            msg = f"{path}: unknown config keys {unknown}"
            raise ConfigError(msg)
        return cls(**data)

    def build_layout(self) -> DirectionLayout:
        """Create the direction layout described by this config.

        Raises:
            ConfigError: If the layout or blur profile name is unknown.
            LayoutError: If the layout values are invalid.
        """
        if self.layout == "uniform":
            return DirectionLayout.uniform(
                self.directions,
                blur_profile=_lookup(BlurProfile, self.blur_profile, "blur_profile"),
                blur_strength=self.blur_strength,
            )
        if self.layout == "calibrated":
            return DirectionLayout.calibrated(
                self.angles,
                self.blurs or None,
                directions=self.directions,
            )
        msg = f"layout must be 'uniform' or 'calibrated', got {self.layout!r}"
        raise ConfigError(msg)

    def build_gather_method(self) -> GatherMethod:
        """Return the configured gather algorithm."""
        return _lookup(GatherMethod, self.gather_method, "gather_method")

    def build_transport(self) -> TransportConfig:
        """Return the configured transport feature set.

        Raises:
            ConfigError: If a name or value is invalid.
        """
        try:
            return TransportConfig(
                bounce=_lookup(BouncePolicy, self.bounce, "bounce"),
                blur_walls=bool(self.blur_walls),
                step_diffuse=float(self.step_diffuse),
                workers=int(self.workers),
            )
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc


def _lookup(enum_cls, value: str, key: str):
    """Find the enum member whose value is ``value``."""
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ", ".join(repr(m.value) for m in enum_cls)
        msg = f"{key} must be one of {choices}, got {value!r}"
        raise ConfigError(msg) from None
