import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class PlotType(str, Enum):
    BOTH = "both"
    LINE = "line"
    POLAR = "polar"


class LayerKind(str, Enum):
    PHYSICAL = "physical"
    AIR = "air"


# wire name -> Layer attribute
LAYER_ARRAYS = {
    "norm_radii": "radius",
    "dielectric_constants": "dielectric",
    "magnetic_permeabilities": "permeability",
}
LAYER_FIELDS = set(LAYER_ARRAYS.values())

SCALAR_ALIASES = {
    "radius_ratio": "radius_ratio",
    "radiusRatio": "radius_ratio",
    "plot_type": "plot_type",
}

MIN_LAYER_COUNT = 2
MAX_PHYSICAL_RADIUS = 0.999


@dataclass(frozen=True)
class Layer:
    radius: float = 1.0
    dielectric: float = 1.0
    permeability: float = 1.0
    kind: LayerKind = LayerKind.PHYSICAL

    def __post_init__(self):
        if self.kind is LayerKind.AIR and (self.radius, self.dielectric, self.permeability) != (1.0, 1.0, 1.0):
            raise ValueError("Air layer is fixed to radius=1, dielectric=1, permeability=1")

    @classmethod
    def air(cls) -> "Layer":
        return cls(kind=LayerKind.AIR)

    @property
    def is_air(self):
        return self.kind is LayerKind.AIR

    def with_value(self, name: str, value: float) -> "Layer":
        # air layer is read-only
        if self.is_air:
            return self
        return replace(self, **{name: value})


def _default_layers():
    radii = [0.2, 0.4, 0.6, 0.8]
    dielectric = [1.96, 1.84, 1.64, 1.36]
    return tuple(Layer(r, e, 1.0) for r, e in zip(radii, dielectric)) + (Layer.air(),)


@dataclass(frozen=True)
class SimulationParameters:
    """
    Request payload for the lens image service.

    The per-layer quantities are stored as one tuple of ``Layer`` records, the
    last of which is always the air layer.  ``normalized_radii``,
    ``dielectric_constants`` and ``magnetic_permeabilities`` are views over it.
    """
    radius_ratio: int = 10
    layers: Tuple[Layer, ...] = field(default_factory=_default_layers)
    plot_type: PlotType = PlotType.BOTH

    def __post_init__(self):
        if len(self.layers) < MIN_LAYER_COUNT:
            raise ValueError(f"At least {MIN_LAYER_COUNT} layers are required, got {len(self.layers)}")
        if not self.layers[-1].is_air:
            raise ValueError("The last layer must be the air layer")
        if any(layer.is_air for layer in self.layers[:-1]):
            raise ValueError("Only the last layer may be the air layer")

    @property
    def layer_count(self) -> int:
        return len(self.layers)

    @property
    def air_index(self) -> int:
        return len(self.layers) - 1

    @property
    def normalized_radii(self) -> Tuple[float, ...]:
        return tuple(layer.radius for layer in self.layers)

    @property
    def dielectric_constants(self) -> Tuple[float, ...]:
        return tuple(layer.dielectric for layer in self.layers)

    @property
    def magnetic_permeabilities(self) -> Tuple[float, ...]:
        return tuple(layer.permeability for layer in self.layers)


def parse_int(value) -> int:
    """Lenient integer parsing for form input: anything unusable becomes 0."""
    if isinstance(value, bool):
        return int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        pass
    number = parse_float(value)
    return int(number)


def parse_float(value) -> float:
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def set_scalar(params: SimulationParameters, name: str, value) -> SimulationParameters:
    attr = SCALAR_ALIASES.get(name)
    if attr is None:
        logger.warning("Ignoring update of unknown or structural field %r", name)
        return params

    if attr == "radius_ratio":
        return replace(params, radius_ratio=parse_int(value))

    try:
        plot_type = PlotType(str(value))
    except ValueError:
        logger.warning("Ignoring unsupported plot type %r", value)
        return params
    return replace(params, plot_type=plot_type)


def set_layer_field(params: SimulationParameters, array_name: str, index: int, value) -> SimulationParameters:
    attr = LAYER_ARRAYS.get(array_name, array_name)
    if attr not in LAYER_FIELDS:
        logger.warning("Ignoring update of unknown layer array %r", array_name)
        return params
    if not 0 <= index < params.air_index:
        logger.debug("Ignoring %s update at read-only index %s", attr, index)
        return params

    layers = list(params.layers)
    layers[index] = layers[index].with_value(attr, parse_float(value))
    return replace(params, layers=tuple(layers))


def add_layer(params: SimulationParameters) -> SimulationParameters:
    # new neutral layer goes right before the air layer
    layers = params.layers[:-1] + (Layer(), Layer.air())
    return replace(params, layers=layers)


def remove_layer(params: SimulationParameters) -> SimulationParameters:
    if params.layer_count <= MIN_LAYER_COUNT:
        return params
    # drop the last physical layer together with the old air slot
    layers = params.layers[:-2] + (Layer.air(),)
    return replace(params, layers=layers)


def to_payload(params: SimulationParameters) -> dict:
    return {
        "radiusRatio": params.radius_ratio,
        "layers_count": params.layer_count,
        "norm_radii": list(params.normalized_radii),
        "dielectric_constants": list(params.dielectric_constants),
        "magnetic_permeabilities": list(params.magnetic_permeabilities),
        "plot_type": params.plot_type.value,
    }


def layer_label(index, params):
    label = str(index + 1)
    if index == params.air_index:
        label += " (air)"
    return label


def radius_upper_bound(index, params):
    return 1.0 if index == params.air_index else MAX_PHYSICAL_RADIUS


# layer table used by st.data_editor
FRAME_COLUMNS = {
    "Radius": "norm_radii",
    "Dielectric constant": "dielectric_constants",
    "Magnetic permeability": "magnetic_permeabilities",
}


def layers_frame(params):
    rows = []
    for i, layer in enumerate(params.layers):
        rows.append({
            "Layer": layer_label(i, params),
            "Radius": layer.radius,
            "Dielectric constant": layer.dielectric,
            "Magnetic permeability": layer.permeability,
        })
    return pd.DataFrame(rows, columns=["Layer", *FRAME_COLUMNS])


def frame_matches(params, df):
    """True when the table shows exactly the values stored in ``params``."""
    if len(df) != params.layer_count or not set(FRAME_COLUMNS) <= set(df.columns):
        return False
    columns = list(FRAME_COLUMNS)
    shown = df[columns].apply(pd.to_numeric, errors="coerce").to_numpy(dtype=float)
    stored = layers_frame(params)[columns].to_numpy(dtype=float)
    return bool(np.allclose(shown, stored))


def apply_layers_frame(params, df):
    """
    Push the cells of an edited layer table back into ``params``.

    Rows are matched by position; extra or missing rows are ignored because the
    layer count only changes through ``add_layer``/``remove_layer``.
    """
    current = layers_frame(params)
    rows = min(len(df), len(current))
    for i in range(rows):
        for column, array_name in FRAME_COLUMNS.items():
            if column not in df.columns:
                continue
            new_value = df[column].iloc[i]
            if new_value == current[column].iloc[i]:
                continue
            params = set_layer_field(params, array_name, i, new_value)
    return params
