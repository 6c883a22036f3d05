"""Building a plot: from components to per-layer computed data.

:func:`build_plot` runs the layer pipeline that rendering needs:

1. choose each layer's data and combine the plot and layer mappings,
2. evaluate every aesthetic against the data (deferred expressions resolve
   names here, so scoping errors surface here),
3. assign groups, train position scales and map discrete positions to
   integers, apply scale transformations and limits,
4. drop rows with missing positions, run the stat, set up geom extents and
   apply the position adjustment,
5. train the colour/fill/linetype/shape scales and resolve labels.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

import numpy as np
import pandas as pd

from .Layer import Layer
from .aesthetics import Aes
from .coords import Coord
from .expressions import as_factor
from .geoms import Geom, get_geom
from .positions import get_position
from .scales import WAIVER, Scale, TrainedScale, is_discrete_values
from .stats import get_stat, prepare_smooth_params, prepare_summary_params
from .themes import Theme

if TYPE_CHECKING:
    from .GGPlot import GGPlot

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


X_AESTHETICS = ("x", "xmin", "xmax", "xintercept")
Y_AESTHETICS = ("y", "ymin", "ymax", "yintercept")
NON_POSITION_SCALED = ("colour", "fill", "linetype", "shape")
LABELLED_AESTHETICS = ("x", "y", "colour", "fill", "linetype", "shape", "size", "alpha")
_RULE_COLUMNS = {"hline": "yintercept", "vline": "xintercept"}


def _family(aes: str) -> Optional[str]:
    if aes in X_AESTHETICS:
        return "x"
    if aes in Y_AESTHETICS:
        return "y"
    return None


@dataclass
class LayerData:
    """One layer after building."""

    layer: Layer
    geom: Geom
    mapping: Aes
    data: pd.DataFrame
    style: dict[str, Any]


@dataclass
class BuiltPlot:
    """The result of :meth:`GGPlot.build`: computed data per layer plus trained scales."""

    plot: "GGPlot"
    layers: list[LayerData]
    scales: dict[str, TrainedScale]
    labels: dict[str, Optional[str]]
    coord: Coord
    theme: Theme
    timings: dict[str, float] = field(default_factory=dict)

    def label(self, aes: str) -> Optional[str]:
        return self.labels.get(aes)

    def layer_data(self, i: int = 0) -> pd.DataFrame:
        return self.layers[i].data

    def data_range(self, aes: str, *, include_zero: bool = False) -> tuple[float, float]:
        """Finite range of a position family over every layer (NaN when empty)."""
        family = X_AESTHETICS if aes == "x" else Y_AESTHETICS
        lo, hi = np.inf, -np.inf
        for ld in self.layers:
            for col in family:
                if col in ld.data.columns:
                    values = pd.to_numeric(ld.data[col], errors="coerce").to_numpy(dtype=float)
                    finite = values[np.isfinite(values)]
                    if finite.size:
                        lo, hi = min(lo, finite.min()), max(hi, finite.max())
        if include_zero:
            lo, hi = min(lo, 0.0), max(hi, 0.0)
        if lo > hi:
            return np.nan, np.nan
        return float(lo), float(hi)

    def has_rects(self) -> bool:
        return any({"xmin", "xmax", "ymin", "ymax"} <= set(ld.data.columns) for ld in self.layers)


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------

def _layer_source(plot: "GGPlot", layer: Layer) -> pd.DataFrame:
    data = layer.data
    if callable(data) and not isinstance(data, pd.DataFrame):
        if plot.data is None:
            raise ValueError("A layer with function data needs plot data to transform")
        data = data(plot.data)
        if not isinstance(data, pd.DataFrame):
            raise TypeError(f"layer data function must return a DataFrame, got {type(data).__name__}")
    if data is None:
        data = plot.data
    if data is None:
        return pd.DataFrame(index=pd.RangeIndex(1))
    return data


def _effective_mapping(plot: "GGPlot", layer: Layer) -> Aes:
    mapping = plot.mapping.merge(layer.mapping) if layer.inherit_aes else layer.mapping
    overridden = [name for name in mapping if name in layer.params]
    return mapping.drop(*overridden) if overridden else mapping


def _evaluate(mapping: Aes, data: pd.DataFrame) -> pd.DataFrame:
    columns: dict[str, Any] = {}
    for name, expr in mapping.items():
        columns[name] = expr.evaluate(data)
    frame = pd.DataFrame(index=data.index)
    for name, values in columns.items():
        frame[name] = values
    return frame.reset_index(drop=True)


def add_group(frame: pd.DataFrame) -> pd.DataFrame:
    """Add an integer ``group`` column.

    An explicit ``group`` aesthetic wins; otherwise groups are the interaction
    of all discrete aesthetics; ``-1`` means "no grouping".
    """
    out = frame.copy()
    if "group" in out.columns:
        codes = np.asarray(as_factor(out["group"]).codes, dtype=int)
        out["group"] = codes + 1
        return out
    discrete = [c for c in out.columns if is_discrete_values(out[c])]
    if not discrete or out.empty:
        out["group"] = -1
        return out
    keys = pd.DataFrame({c: np.asarray(as_factor(out[c]).codes) for c in discrete}, index=out.index)
    out["group"] = keys.groupby(discrete, sort=True).ngroup().to_numpy() + 1
    return out


def _position_scale(spec: Optional[Scale], aes: str, discrete: bool) -> TrainedScale:
    if spec is not None and spec.is_position:
        if spec.is_discrete != discrete and not spec.is_discrete:
            raise ValueError(f"Discrete value supplied to continuous scale for '{aes}'")
        discrete = spec.is_discrete
    return TrainedScale(aes, spec, discrete)


def _remove_missing(frame: pd.DataFrame, layer: Layer, geom: Geom) -> pd.DataFrame:
    position_cols = [c for c in frame.columns if _family(c) is not None]
    if not position_cols or frame.empty:
        return frame
    values = frame[position_cols].apply(pd.to_numeric, errors="coerce")
    keep = np.isfinite(values.to_numpy(dtype=float)).all(axis=1)
    removed = int((~keep).sum())
    if removed:
        if not layer.params.get("na_rm", False):
            logger.info(
                "Removed %d rows containing missing values or values outside the scale range (geom_%s).",
                removed,
                geom.name,
            )
        frame = frame.loc[keep].reset_index(drop=True)
    return frame


def _stat_params(layer: Layer, frame: pd.DataFrame) -> dict[str, Any]:
    params = dict(layer.params)
    if layer.stat == "summary":
        return prepare_summary_params(params)
    if layer.stat == "smooth":
        return prepare_smooth_params(params, len(frame))
    return params


def _resolve_labels(
    plot: "GGPlot",
    layers: list[LayerData],
    scales: dict[str, TrainedScale],
) -> dict[str, Optional[str]]:
    labels: dict[str, Optional[str]] = {}
    for name, expr in plot.mapping.items():
        labels.setdefault(name, expr.label)
    for ld in layers:
        for name, expr in ld.mapping.items():
            labels.setdefault(name, expr.label)
        stat = get_stat(ld.layer.stat)
        for name, text in stat.default_labels.items():
            if name not in ld.mapping:
                labels.setdefault(name, text)
    for family, members in (("x", X_AESTHETICS), ("y", Y_AESTHETICS)):
        if family not in labels:
            for member in members[1:]:
                if member in labels:
                    labels[family] = labels[member]
                    break
    labels.update(dict(plot.labels))
    for aes, scale in scales.items():
        if scale.name is not WAIVER:
            labels[aes] = scale.name
    return labels


# ---------------------------------------------------------------------------
# build
# ---------------------------------------------------------------------------

def build_plot(plot: "GGPlot", *, theme: Optional[Theme] = None) -> "BuiltPlot":
    """Run the layer pipeline for ``plot``.

    Raises
    ------
    UnboundVariableError
        If an aesthetic refers to a name that is neither a column nor visible
        in the environment it was captured in.
    ValueError
        For missing required aesthetics, incompatible scales, or bad stat
        parameters.
    """
    from .theme_context import theme_get

    start = time.perf_counter()
    specs = {s.aesthetic: s for s in plot.scales}

    # 1-2: evaluate mappings
    frames: list[pd.DataFrame] = []
    mappings: list[Aes] = []
    for layer in plot.layers:
        geom = get_geom(layer.geom)
        rule_column = _RULE_COLUMNS.get(layer.geom)
        if rule_column is not None and rule_column in layer.params:
            values = np.atleast_1d(np.asarray(layer.params[rule_column], dtype=float))
            frame = pd.DataFrame({rule_column: values})
            mapping = Aes()
        else:
            mapping = _effective_mapping(plot, layer)
            frame = _evaluate(mapping, _layer_source(plot, layer))
        frames.append(add_group(frame))
        mappings.append(mapping)

    # 3: position scales
    scales: dict[str, TrainedScale] = {}
    for aes in ("x", "y"):
        family = X_AESTHETICS if aes == "x" else Y_AESTHETICS
        present = [f[c] for f in frames for c in family if c in f.columns]
        if not present and aes not in specs:
            continue
        discrete = any(is_discrete_values(v) for v in present)
        trained = _position_scale(specs.get(aes), aes, discrete)
        if trained.discrete:
            for values in present:
                trained.train_discrete(values)
        scales[aes] = trained

    for i, frame in enumerate(frames):
        for col in frame.columns:
            fam = _family(col)
            if fam is None or fam not in scales:
                continue
            trained = scales[fam]
            if trained.discrete:
                frame[col] = trained.map_discrete(frame[col])
            else:
                if is_discrete_values(frame[col]):
                    raise ValueError(f"Discrete value supplied to continuous scale for '{col}'")
                frame[col] = trained.transform(frame[col])

    # 4: stat, geom setup, position
    built_layers: list[LayerData] = []
    for layer, mapping, frame in zip(plot.layers, mappings, frames):
        geom = get_geom(layer.geom)
        stat = get_stat(layer.stat)
        if layer.stat == "smooth" and "x" in scales and scales["x"].discrete:
            raise ValueError("stat_smooth needs a continuous x; map x to a numeric column")
        frame = _remove_missing(frame, layer, geom)
        params = _stat_params(layer, frame)
        data = stat.compute(frame, params)
        if geom.setup_data is not None and not data.empty:
            data = geom.setup_data(data, params)
        data = get_position(layer.position)(data, params)
        if not data.empty:
            geom.check_required(data)
        style = {**geom.defaults, **layer.params}
        built_layers.append(LayerData(layer, geom, mapping, data.reset_index(drop=True), style))
        logger.debug("layer geom_%s/stat_%s: %d rows", layer.geom, layer.stat, len(data))

    # 5: continuous position ranges and non-position scales
    for aes in ("x", "y"):
        trained = scales.get(aes)
        if trained is None or trained.discrete:
            continue
        family = X_AESTHETICS if aes == "x" else Y_AESTHETICS
        for ld in built_layers:
            for col in family:
                if col in ld.data.columns:
                    trained.train_continuous(ld.data[col])

    for aes in NON_POSITION_SCALED:
        present = [ld.data[aes] for ld in built_layers if aes in ld.data.columns]
        if not present:
            continue
        spec = specs.get(aes)
        discrete = any(is_discrete_values(v) for v in present)
        if spec is not None:
            if spec.is_discrete and not discrete:
                raise ValueError(f"Continuous values supplied to discrete scale for '{aes}'")
            discrete = spec.is_discrete
        trained = TrainedScale(aes, spec, discrete)
        for values in present:
            if discrete:
                trained.train_discrete(values)
            else:
                trained.train_continuous(values)
        scales[aes] = trained

    labels = _resolve_labels(plot, built_layers, scales)
    effective_theme = theme if theme is not None else theme_get()
    if plot.theme is not None:
        effective_theme = effective_theme + plot.theme
    built = BuiltPlot(plot, built_layers, scales, labels, plot.coord, effective_theme)
    built.timings["build"] = time.perf_counter() - start
    logger.debug("built %d layers in %.4fs", len(built_layers), built.timings["build"])
    return built


__all__ = ["BuiltPlot", "LayerData", "add_group", "build_plot"]
