"""Entry point for ``python -m fluxgrid``.

Loads the default YAML config, builds a simulation engine and opens a
Pygame window to paint emitters and walls.  With ``--headless`` it runs a
fixed number of ticks without a window and prints the total radiance.
"""

from __future__ import annotations

import argparse
import logging
import pathlib

from fluxgrid.simulation.config import SimulationConfig
from fluxgrid.simulation.engine import SimulationEngine
from fluxgrid.ui.editor import EditorState

_DEFAULT_CONFIG = (
    pathlib.Path(__file__).resolve().parent.parent / "config" / "default.yaml"
)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI args, create engine, launch renderer."""
    parser = argparse.ArgumentParser(
        prog="fluxgrid",
        description="fluxgrid - directional light diffusion on a 2-D lattice",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=pathlib.Path,
        default=_DEFAULT_CONFIG,
        help="Path to YAML config file (default: config/default.yaml)",
    )
    parser.add_argument(
        "--cell-size",
        type=int,
        default=8,
        help="Pixel size per grid cell (default: 8)",
    )
    parser.add_argument(
        "--fps",
        type=int,
        default=60,
        help="Target frames per second (default: 60)",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=60.0,
        help="Simulation ticks per second (default: 60)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: log_level from the config)",
    )
    parser.add_argument(
        "--headless",
        type=int,
        metavar="TICKS",
        default=None,
        help="Run TICKS ticks with an emitter at the centre, no window",
    )
    args = parser.parse_args(argv)

    config = SimulationConfig.from_yaml(args.config)
    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    engine = SimulationEngine(config=config)

    if args.headless is not None:
        color = EditorState.for_channels(
            config.channels,
            tuple(config.emitter_color),
        ).emitter_color
        engine.set_emission(
            config.grid_width // 2,
            config.grid_height // 2,
            [color] * engine.layout.total_bins,
        )
        engine.run(ticks=args.headless)
        print(f"tick {engine.tick}: total radiance {engine.total_radiance():.6f}")
        return

    from fluxgrid.ui.pygame_client import PygameRenderer

    renderer = PygameRenderer(
        engine=engine,
        cell_size=args.cell_size,
        ticks_per_second=args.speed,
    )
    renderer.run(fps=args.fps)


if __name__ == "__main__":
    main()
