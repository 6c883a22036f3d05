"""Geoms: how a layer's computed data is drawn.

A geom turns the built data of one layer into :class:`Mark` records, plain
descriptions of points, lines, rectangles, ribbons, boxes and reference
rules in data coordinates. The coordinate system (:mod:`gg_toolkit.coords`)
turns marks into plotly traces, so the same geom draws in cartesian, flipped
and polar space.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd

from .plot_style import css_colour

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


LEGEND_AESTHETICS = ("colour", "fill", "linetype", "shape")
LINETYPE_CYCLE = ("solid", "dashed", "dotted", "dotdash", "longdash", "twodash")
SHAPE_CYCLE = (16, 17, 15, 3, 7, 8)


@dataclass
class Mark:
    """One drawable element in data coordinates.

    ``kind`` is one of ``points``, ``lines``, ``rects``, ``ribbon``, ``boxes``,
    ``hline`` or ``vline``. ``data`` holds equally long arrays; ``style`` holds
    scalar or per-row style values using aesthetic names.
    """

    kind: str
    data: dict[str, np.ndarray]
    style: dict[str, Any]
    name: Optional[str] = None
    legendgroup: Optional[str] = None
    showlegend: bool = False


@dataclass
class DrawContext:
    """What a geom needs to know about the plot while drawing one layer."""

    scales: Mapping[str, Any]
    show_legend: Optional[bool] = None
    layer_index: int = 0


@dataclass(frozen=True)
class Geom:
    """A named geometric object."""

    name: str
    draw: Callable[[pd.DataFrame, Mapping[str, Any], DrawContext], list[Mark]]
    required_aes: tuple[str, ...] = ()
    default_stat: str = "identity"
    default_position: str = "identity"
    defaults: Mapping[str, Any] = field(default_factory=dict)
    extra_params: frozenset[str] = field(default_factory=frozenset)
    setup_data: Optional[Callable[[pd.DataFrame, Mapping[str, Any]], pd.DataFrame]] = None
    line_like: bool = False

    def check_required(self, data: pd.DataFrame) -> None:
        missing = [a for a in self.required_aes if a not in data.columns]
        if missing:
            raise ValueError(f"geom_{self.name} requires the following missing aesthetics: {', '.join(missing)}")


# ---------------------------------------------------------------------------
# style resolution
# ---------------------------------------------------------------------------

def _rescale(values: np.ndarray, lo: float, hi: float) -> np.ndarray:
    finite = values[np.isfinite(values)]
    if finite.size == 0 or finite.max() == finite.min():
        return np.full(values.shape, (lo + hi) / 2)
    return lo + (values - finite.min()) / (finite.max() - finite.min()) * (hi - lo)


def resolve_style(data: pd.DataFrame, aesthetic: str, style: Mapping[str, Any], ctx: DrawContext) -> Any:
    """Per-row values for ``aesthetic`` when it is mapped, else the constant style value."""
    if aesthetic not in data.columns:
        value = style.get(aesthetic)
        return css_colour(value) if aesthetic in ("colour", "fill") else value
    values = data[aesthetic]
    scale = ctx.scales.get(aesthetic)
    if aesthetic in ("colour", "fill") and scale is not None:
        return scale.map_colours(values)
    if aesthetic in ("linetype", "shape") and scale is not None and scale.discrete:
        cycle = LINETYPE_CYCLE if aesthetic == "linetype" else SHAPE_CYCLE
        levels = scale.final_levels()
        labels = values.astype(object).to_numpy()
        return [cycle[levels.index(str(v)) % len(cycle)] if str(v) in levels else None for v in labels]
    if aesthetic == "size":
        return _rescale(values.to_numpy(dtype=float), 1.0, 6.0)
    if aesthetic == "alpha":
        return _rescale(values.to_numpy(dtype=float), 0.1, 1.0)
    return values.to_numpy()


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple, np.ndarray)):
        return value[0] if len(value) else None
    return value


def _legend_splits(data: pd.DataFrame, ctx: DrawContext) -> list[tuple[Optional[str], pd.DataFrame]]:
    """Split rows by the levels of discrete legend aesthetics."""
    keys = [
        a
        for a in LEGEND_AESTHETICS
        if a in data.columns and ctx.scales.get(a) is not None and ctx.scales[a].discrete
    ]
    if not keys or data.empty:
        return [(None, data)]
    labels = pd.DataFrame(
        {a: [ctx.scales[a].level_label(str(v)) for v in data[a].astype(object)] for a in keys},
        index=data.index,
    )
    order = {a: ctx.scales[a].final_levels() for a in keys}
    out: list[tuple[Optional[str], pd.DataFrame]] = []
    for combo, idx in labels.groupby(keys, sort=False).groups.items():
        combo = combo if isinstance(combo, tuple) else (combo,)
        out.append((", ".join(str(c) for c in combo), data.loc[idx]))

    def _sort_key(item: tuple[Optional[str], pd.DataFrame]) -> tuple[int, ...]:
        first = item[1].iloc[0]
        return tuple(
            order[a].index(str(first[a])) if str(first[a]) in order[a] else len(order[a]) for a in keys
        )

    return sorted(out, key=_sort_key)


def _showlegend(name: Optional[str], ctx: DrawContext) -> bool:
    if ctx.show_legend is False:
        return False
    return name is not None


def _style(data: pd.DataFrame, style: Mapping[str, Any], ctx: DrawContext, names: tuple[str, ...]) -> dict[str, Any]:
    return {a: resolve_style(data, a, style, ctx) for a in names}


# ---------------------------------------------------------------------------
# draw functions
# ---------------------------------------------------------------------------

def _col(data: pd.DataFrame, name: str) -> np.ndarray:
    return data[name].to_numpy(dtype=float)


def draw_points(data: pd.DataFrame, style: Mapping[str, Any], ctx: DrawContext) -> list[Mark]:
    marks = []
    colour_scale = ctx.scales.get("colour")
    continuous_colour = "colour" in data.columns and colour_scale is not None and not colour_scale.discrete
    for name, part in _legend_splits(data, ctx):
        st = _style(part, style, ctx, ("colour", "fill", "size", "shape", "alpha"))
        if continuous_colour:
            st["colour_values"] = _col(part, "colour")
            st["colorscale"] = colour_scale.colorscale()
            st["colour_limits"] = colour_scale.limits()
        marks.append(
            Mark(
                "points",
                {"x": _col(part, "x"), "y": _col(part, "y")},
                st,
                name=name,
                legendgroup=name,
                showlegend=_showlegend(name, ctx),
            )
        )
    return marks


def _draw_lines(data: pd.DataFrame, style: Mapping[str, Any], ctx: DrawContext, *, sort: bool) -> list[Mark]:
    marks = []
    for name, part in _legend_splits(data, ctx):
        for _, group in part.groupby("group", sort=True):
            if sort:
                group = group.sort_values("x", kind="mergesort")
            st = _style(group, style, ctx, ("colour", "linewidth", "linetype", "alpha"))
            st = {k: _first(v) for k, v in st.items()}
            marks.append(
                Mark(
                    "lines",
                    {"x": _col(group, "x"), "y": _col(group, "y")},
                    st,
                    name=name,
                    legendgroup=name,
                    showlegend=_showlegend(name, ctx),
                )
            )
    return marks


def draw_line(data: pd.DataFrame, style: Mapping[str, Any], ctx: DrawContext) -> list[Mark]:
    return _draw_lines(data, style, ctx, sort=True)


def draw_path(data: pd.DataFrame, style: Mapping[str, Any], ctx: DrawContext) -> list[Mark]:
    return _draw_lines(data, style, ctx, sort=False)


def draw_rects(data: pd.DataFrame, style: Mapping[str, Any], ctx: DrawContext) -> list[Mark]:
    marks = []
    for name, part in _legend_splits(data, ctx):
        st = _style(part, style, ctx, ("colour", "fill", "linewidth", "alpha"))
        marks.append(
            Mark(
                "rects",
                {k: _col(part, k) for k in ("xmin", "xmax", "ymin", "ymax")},
                st,
                name=name,
                legendgroup=name,
                showlegend=_showlegend(name, ctx),
            )
        )
    return marks


def draw_smooth(data: pd.DataFrame, style: Mapping[str, Any], ctx: DrawContext) -> list[Mark]:
    marks = []
    for name, part in _legend_splits(data, ctx):
        for _, group in part.groupby("group", sort=True):
            group = group.sort_values("x", kind="mergesort")
            has_band = (
                style.get("se", True)
                and {"ymin", "ymax"} <= set(group.columns)
                and np.isfinite(_col(group, "ymin")).any()
            )
            if has_band:
                band = _style(group, style, ctx, ("fill",))
                marks.append(
                    Mark(
                        "ribbon",
                        {"x": _col(group, "x"), "ymin": _col(group, "ymin"), "ymax": _col(group, "ymax")},
                        {"fill": _first(band["fill"]), "alpha": style.get("alpha", 0.4)},
                        legendgroup=name,
                    )
                )
            st = _style(group, style, ctx, ("colour", "linewidth", "linetype"))
            st = {k: _first(v) for k, v in st.items()}
            st["alpha"] = style.get("line_alpha", 1.0)
            marks.append(
                Mark(
                    "lines",
                    {"x": _col(group, "x"), "y": _col(group, "y")},
                    st,
                    name=name,
                    legendgroup=name,
                    showlegend=_showlegend(name, ctx),
                )
            )
    return marks


def _segments(x0: np.ndarray, y0: np.ndarray, x1: np.ndarray, y1: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Interleave segment endpoints with NaN breaks: one polyline for many segments."""
    n = x0.size
    xs = np.full(3 * n, np.nan)
    ys = np.full(3 * n, np.nan)
    xs[0::3], xs[1::3] = x0, x1
    ys[0::3], ys[1::3] = y0, y1
    return xs, ys


def draw_errorbar(data: pd.DataFrame, style: Mapping[str, Any], ctx: DrawContext) -> list[Mark]:
    marks = []
    for name, part in _legend_splits(data, ctx):
        xmin, xmax = _col(part, "xmin"), _col(part, "xmax")
        ymin, ymax = _col(part, "ymin"), _col(part, "ymax")
        xc = (xmin + xmax) / 2
        top = _segments(xmin, ymax, xmax, ymax)
        stem = _segments(xc, ymin, xc, ymax)
        bottom = _segments(xmin, ymin, xmax, ymin)
        st = _style(part, style, ctx, ("colour", "linewidth", "linetype", "alpha"))
        st = {k: _first(v) for k, v in st.items()}
        marks.append(
            Mark(
                "lines",
                {"x": np.concatenate([top[0], stem[0], bottom[0]]), "y": np.concatenate([top[1], stem[1], bottom[1]])},
                st,
                name=name,
                legendgroup=name,
                showlegend=_showlegend(name, ctx),
            )
        )
    return marks


def draw_pointrange(data: pd.DataFrame, style: Mapping[str, Any], ctx: DrawContext) -> list[Mark]:
    marks = []
    for name, part in _legend_splits(data, ctx):
        x = _col(part, "x")
        xs, ys = _segments(x, _col(part, "ymin"), x, _col(part, "ymax"))
        st = _style(part, style, ctx, ("colour", "linewidth", "linetype", "alpha"))
        marks.append(Mark("lines", {"x": xs, "y": ys}, {k: _first(v) for k, v in st.items()}, legendgroup=name))
        pst = _style(part, style, ctx, ("colour", "fill", "shape", "alpha"))
        pst["size"] = style.get("size", 0.5) * 4
        marks.append(
            Mark(
                "points",
                {"x": x, "y": _col(part, "y")},
                pst,
                name=name,
                legendgroup=name,
                showlegend=_showlegend(name, ctx),
            )
        )
    return marks


def draw_boxplot(data: pd.DataFrame, style: Mapping[str, Any], ctx: DrawContext) -> list[Mark]:
    marks = []
    for name, part in _legend_splits(data, ctx):
        for _, group in part.groupby("group", sort=True):
            x = _col(group, "x") if "x" in group.columns else np.zeros(len(group))
            st = _style(group, style, ctx, ("colour", "fill", "linewidth", "alpha"))
            st = {k: _first(v) for k, v in st.items()}
            st["width"] = style.get("width", 0.75)
            marks.append(
                Mark(
                    "boxes",
                    {"x": x, "y": _col(group, "y")},
                    st,
                    name=name,
                    legendgroup=name,
                    showlegend=_showlegend(name, ctx),
                )
            )
    return marks


def _draw_rule(kind: str, column: str) -> Callable[[pd.DataFrame, Mapping[str, Any], DrawContext], list[Mark]]:
    def draw(data: pd.DataFrame, style: Mapping[str, Any], ctx: DrawContext) -> list[Mark]:
        st = _style(data, style, ctx, ("colour", "linewidth", "linetype", "alpha"))
        st = {k: _first(v) for k, v in st.items()}
        return [Mark(kind, {column: _col(data, column)}, st)]

    return draw


# ---------------------------------------------------------------------------
# data setup
# ---------------------------------------------------------------------------

def resolution(values: np.ndarray) -> float:
    """Smallest gap between distinct finite values (1 when there is at most one)."""
    u = np.unique(values[np.isfinite(values)])
    if u.size < 2:
        return 1.0
    return float(np.min(np.diff(u)))


def _with_width(data: pd.DataFrame, params: Mapping[str, Any], default: float) -> pd.DataFrame:
    out = data.copy()
    x = _col(out, "x")
    width = float(params.get("width", default)) * resolution(x)
    out["xmin"] = x - width / 2
    out["xmax"] = x + width / 2
    return out


def setup_bar(data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    out = _with_width(data, params, 0.9)
    y = _col(out, "y")
    out["ymin"] = np.minimum(y, 0.0)
    out["ymax"] = np.maximum(y, 0.0)
    return out


def setup_errorbar(data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    return _with_width(data, params, 0.5)


# ---------------------------------------------------------------------------
# registry
# ---------------------------------------------------------------------------

_LINE_DEFAULTS = {"colour": "black", "linewidth": 0.5, "linetype": "solid", "alpha": 1.0}

GEOMS: dict[str, Geom] = {
    "point": Geom(
        "point",
        draw_points,
        required_aes=("x", "y"),
        defaults={"colour": "black", "fill": None, "size": 1.5, "shape": 19, "alpha": 1.0},
    ),
    "line": Geom("line", draw_line, required_aes=("x", "y"), defaults=_LINE_DEFAULTS, line_like=True),
    "path": Geom("path", draw_path, required_aes=("x", "y"), defaults=_LINE_DEFAULTS, line_like=True),
    "bar": Geom(
        "bar",
        draw_rects,
        required_aes=("x", "y"),
        default_stat="count",
        default_position="stack",
        defaults={"colour": None, "fill": "grey35", "linewidth": 0.5, "alpha": 1.0},
        extra_params=frozenset({"width"}),
        setup_data=setup_bar,
    ),
    "col": Geom(
        "col",
        draw_rects,
        required_aes=("x", "y"),
        default_position="stack",
        defaults={"colour": None, "fill": "grey35", "linewidth": 0.5, "alpha": 1.0},
        extra_params=frozenset({"width"}),
        setup_data=setup_bar,
    ),
    "smooth": Geom(
        "smooth",
        draw_smooth,
        required_aes=("x", "y"),
        default_stat="smooth",
        defaults={"colour": "#3366FF", "fill": "grey60", "linewidth": 1.0, "linetype": "solid", "alpha": 0.4},
        extra_params=frozenset({"line_alpha"}),
        line_like=True,
    ),
    "errorbar": Geom(
        "errorbar",
        draw_errorbar,
        required_aes=("x", "ymin", "ymax"),
        defaults=_LINE_DEFAULTS,
        extra_params=frozenset({"width"}),
        setup_data=setup_errorbar,
        line_like=True,
    ),
    "pointrange": Geom(
        "pointrange",
        draw_pointrange,
        required_aes=("x", "y", "ymin", "ymax"),
        defaults={**_LINE_DEFAULTS, "fill": None, "size": 0.5, "shape": 19},
    ),
    "boxplot": Geom(
        "boxplot",
        draw_boxplot,
        required_aes=("y",),
        defaults={"colour": "grey20", "fill": "white", "linewidth": 0.5, "alpha": 1.0},
        extra_params=frozenset({"width"}),
    ),
    "hline": Geom("hline", _draw_rule("hline", "yintercept"), required_aes=("yintercept",), defaults=_LINE_DEFAULTS),
    "vline": Geom("vline", _draw_rule("vline", "xintercept"), required_aes=("xintercept",), defaults=_LINE_DEFAULTS),
}


def get_geom(name: str) -> Geom:
    try:
        return GEOMS[name]
    except KeyError:
        raise ValueError(f"Unknown geom {name!r}; expected one of: {', '.join(GEOMS)}") from None


__all__ = [
    "DrawContext",
    "GEOMS",
    "Geom",
    "Mark",
    "get_geom",
    "resolution",
    "resolve_style",
]
