"""Smoke tests for the UI module and CLI (no display required)."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from fluxgrid.ui.pygame_client import PygameRenderer, tone_map


def test_pygame_renderer_importable() -> None:
    """PygameRenderer class is importable without initialising pygame."""
    assert PygameRenderer is not None


def test_main_module_importable() -> None:
    """The __main__ module is importable and exposes main()."""
    from fluxgrid.__main__ import main

    assert callable(main)


class TestToneMap:
    """Flux to 8-bit colour."""

    def test_rgb_clamped(self) -> None:
        power = np.array([[[0.0, 0.5, 2.0]]])
        rgb = tone_map(power)
        assert rgb.dtype == np.uint8
        assert rgb.tolist() == [[[0, 127, 255]]]

    def test_grey_expanded(self) -> None:
        rgb = tone_map(np.full((2, 3, 1), 0.2), exposure=5.0)
        assert rgb.shape == (2, 3, 3)
        assert np.all(rgb == 255)

    def test_other_channel_counts_use_mean(self) -> None:
        rgb = tone_map(np.array([[[0.2, 0.4, 0.6, 0.8]]]))
        assert rgb.shape == (1, 1, 3)
        assert np.all(rgb == 127)


def test_headless_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """--headless steps without a window and reports the total flux."""
    from fluxgrid.__main__ import main

    config = tmp_path / "tiny.yaml"
    config.write_text("grid_width: 9\ngrid_height: 9\ndirections: 2\nlog_level: WARNING\n")
    main(["--config", str(config), "--headless", "3"])
    out = capsys.readouterr().out
    assert out.startswith("tick 3: total radiance ")
    assert float(out.split()[-1]) > 0.0
