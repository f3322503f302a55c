from __future__ import annotations

import matplotlib.pyplot as plt
import numpy as np

import lens_model as lm
from lens_visualization import material_to_color, plot_lens_cross_section, radial_profile, shell_bounds


def test_shell_bounds_follow_radii() -> None:
    bounds = shell_bounds(lm.SimulationParameters())
    assert bounds[0] == (0.0, 0.2)
    assert bounds[3] == (0.6, 0.8)
    assert bounds[-1] == (0.8, 1.0)


def test_radial_profile_is_stepwise() -> None:
    r, eps, mu = radial_profile(lm.SimulationParameters(), samples=101)
    assert len(r) == len(eps) == len(mu) == 101
    assert eps[0] == 1.96
    assert eps[np.searchsorted(r, 0.5)] == 1.64
    assert eps[-1] == 1.0
    assert np.all(mu == 1.0)


def test_material_color_is_rgb() -> None:
    color = material_to_color(2.0, 1.5, 1.0, 4.0, 2.0)
    assert len(color) == 3
    assert all(0.0 <= c <= 1.0 for c in color)


def test_cross_section_draws_one_circle_per_layer() -> None:
    params = lm.add_layer(lm.SimulationParameters())
    fig = plot_lens_cross_section(params)
    try:
        ax = fig.axes[0]
        assert len(ax.patches) == params.layer_count
        assert "R/r0 = 10" in ax.get_title()
    finally:
        plt.close(fig)
