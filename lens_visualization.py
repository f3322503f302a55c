import colorsys

import matplotlib.patches as patches
import matplotlib.pyplot as plt
import numpy as np


AIR_COLOR = "#E8F1FA"


def material_to_color(dielectric, permeability, e_min=1.0, e_max=4.0, mu_max=2.0):
    # hue follows the dielectric constant, saturation drops with permeability
    e_norm = (dielectric - e_min) / (e_max - e_min + 1e-6)
    H = 0.6 - 0.6 * np.clip(e_norm, 0.0, 1.0)
    mu_norm = np.clip((permeability - 1.0) / (mu_max - 1.0 + 1e-6), 0.0, 1.0)
    S = 0.35 + 0.5 * (1 - mu_norm)
    V = 0.55 + 0.4 * mu_norm
    return colorsys.hsv_to_rgb(H, S, V)


def shell_bounds(params):
    """(inner, outer) normalized radius of every layer, in layer order."""
    bounds = []
    inner = 0.0
    for radius in params.normalized_radii:
        outer = min(max(radius, 0.0), 1.0)
        bounds.append((inner, outer))
        inner = outer
    return bounds


def radial_profile(params, samples=400):
    """
    Sample the stepwise dielectric/permeability profile over r in [0, 1].

    Every sample belongs to the first layer whose normalized radius is not
    below it, which is how the shells nest.
    """
    r = np.linspace(0.0, 1.0, samples)
    radii = np.asarray(params.normalized_radii, dtype=float)
    idx = np.searchsorted(np.maximum.accumulate(radii), r, side="left")
    idx = np.clip(idx, 0, len(radii) - 1)
    eps = np.asarray(params.dielectric_constants, dtype=float)[idx]
    mu = np.asarray(params.magnetic_permeabilities, dtype=float)[idx]
    return r, eps, mu


def plot_lens_cross_section(params, title="Lens cross-section"):
    fig, ax = plt.subplots(figsize=(6, 6))

    eps = params.dielectric_constants
    mu = params.magnetic_permeabilities
    e_min, e_max = min(eps), max(eps)
    mu_max = max(max(mu), 1.0 + 1e-6)

    legend_handles = {}
    # outermost first so the inner shells stay visible
    order = sorted(range(params.layer_count), key=lambda i: params.normalized_radii[i], reverse=True)
    bounds = shell_bounds(params)
    for i in order:
        layer = params.layers[i]
        outer = bounds[i][1]
        if layer.is_air:
            color = AIR_COLOR
            name = "air"
        else:
            color = material_to_color(layer.dielectric, layer.permeability, e_min, e_max, mu_max)
            name = f"#{i + 1}: ε={layer.dielectric:g}, μ={layer.permeability:g}"
        circle = patches.Circle((0, 0), outer, facecolor=color, edgecolor="white", lw=0.8)
        ax.add_patch(circle)
        legend_handles[name] = circle

    for i, (inner, outer) in enumerate(bounds):
        if outer <= inner:
            continue
        ax.text((inner + outer) / 2, 0, str(i + 1), va="center", ha="center", fontsize=8, color="black")

    ax.set_xlim(-1.05, 1.05)
    ax.set_ylim(-1.05, 1.05)
    ax.set_aspect("equal")
    ax.set_xlabel("r / R")
    ax.set_title(f"{title} (R/r0 = {params.radius_ratio})")
    ax.legend(list(legend_handles.values()), list(legend_handles.keys()),
              loc="upper left", bbox_to_anchor=(1.0, 1.0), framealpha=0.9, fontsize=8)
    fig.tight_layout()
    return fig
