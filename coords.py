"""Coordinate systems: turning :class:`~gg_toolkit.geoms.Mark` records into plotly traces.

Cartesian coordinates map marks onto ``go.Scatter``/``go.Bar``/``go.Box``;
:func:`coord_flip` swaps the axes first; :func:`coord_polar` maps one
position to angle and the other to radius, drawing rectangles as
``go.Barpolar`` wedges (a stacked bar becomes a pie chart).
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any, Optional

import numpy as np
import plotly.graph_objects as go

from .InputConvert import InputConvert, convert_limits
from .geoms import Mark
from .plot_style import linewidth_px, plotly_dash, plotly_symbol, point_size_px
from .scales import pretty_breaks

if TYPE_CHECKING:
    from .plot_build import BuiltPlot

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def _list(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    return value


def _marker(mark: Mark) -> dict[str, Any]:
    st = mark.style
    size = st.get("size", 1.5)
    size = [point_size_px(s) for s in size] if isinstance(size, (list, np.ndarray)) else point_size_px(size)
    shape = st.get("shape", 19)
    symbol = [plotly_symbol(s) for s in shape] if isinstance(shape, (list, np.ndarray)) else plotly_symbol(shape)
    marker: dict[str, Any] = {"size": _list(size), "symbol": symbol, "opacity": _list(st.get("alpha", 1.0))}
    if "colour_values" in st:
        lo, hi = st.get("colour_limits") or (None, None)
        marker.update(
            color=_list(st["colour_values"]),
            colorscale=st["colorscale"],
            cmin=lo,
            cmax=hi,
            showscale=True,
        )
    else:
        marker["color"] = _list(st.get("colour"))
    return marker


def _line(mark: Mark) -> dict[str, Any]:
    st = mark.style
    return {
        "color": st.get("colour"),
        "width": linewidth_px(st.get("linewidth", 0.5)),
        "dash": plotly_dash(st.get("linetype")),
    }


def _legend_args(mark: Mark) -> dict[str, Any]:
    return {"name": mark.name, "legendgroup": mark.legendgroup, "showlegend": mark.showlegend}


class Coord:
    """Base class for coordinate systems."""

    name = "cartesian"

    def train(self, built: "BuiltPlot") -> None:
        """Look at the built data before drawing (polar needs the ranges)."""

    def add_mark(self, fig: go.Figure, mark: Mark) -> None:
        raise NotImplementedError

    def decorate(self, fig: go.Figure, built: "BuiltPlot") -> None:
        raise NotImplementedError

    def labels_for_axes(self, built: "BuiltPlot") -> tuple[str, str]:
        """Which aesthetic's label goes on the horizontal and vertical axis."""
        return "x", "y"


class CoordCartesian(Coord):
    """Cartesian coordinates; ``xlim``/``ylim`` zoom without dropping data."""

    flipped = False

    def __init__(self, xlim: Any = None, ylim: Any = None, expand: bool = True) -> None:
        self.xlim = convert_limits(xlim, what="xlim")
        self.ylim = convert_limits(ylim, what="ylim")
        self.expand = expand

    def __repr__(self) -> str:
        args = []
        if self.xlim is not None:
            args.append(f"xlim={self.xlim!r}")
        if self.ylim is not None:
            args.append(f"ylim={self.ylim!r}")
        if not self.expand:
            args.append("expand=False")
        return f"coord_cartesian({', '.join(args)})"

    def _swap(self, mark: Mark) -> Mark:
        if not self.flipped:
            return mark
        swap = {"x": "y", "y": "x", "xmin": "ymin", "xmax": "ymax", "ymin": "xmin", "ymax": "xmax",
                "xintercept": "yintercept", "yintercept": "xintercept"}
        kind = {"hline": "vline", "vline": "hline"}.get(mark.kind, mark.kind)
        data = {swap.get(k, k): v for k, v in mark.data.items()}
        return Mark(kind, data, mark.style, mark.name, mark.legendgroup, mark.showlegend)

    def add_mark(self, fig: go.Figure, mark: Mark) -> None:
        horizontal = self.flipped
        mark = self._swap(mark)
        d = mark.data
        st = mark.style
        if mark.kind == "points":
            fig.add_trace(
                go.Scatter(
                    x=_list(d["x"]), y=_list(d["y"]), mode="markers", marker=_marker(mark), **_legend_args(mark),
                )
            )
        elif mark.kind == "lines":
            fig.add_trace(
                go.Scatter(
                    x=_list(d["x"]), y=_list(d["y"]), mode="lines", line=_line(mark),
                    opacity=st.get("alpha", 1.0), **_legend_args(mark),
                )
            )
        elif mark.kind == "rects":
            fig.add_trace(_bar_trace(mark, horizontal))
        elif mark.kind == "ribbon":
            if horizontal:
                xs = np.concatenate([d["xmax"], d["xmin"][::-1]])
                ys = np.concatenate([d["y"], d["y"][::-1]])
            else:
                xs = np.concatenate([d["x"], d["x"][::-1]])
                ys = np.concatenate([d["ymax"], d["ymin"][::-1]])
            fig.add_trace(
                go.Scatter(
                    x=_list(xs), y=_list(ys), fill="toself", fillcolor=st.get("fill"), mode="lines",
                    line={"width": 0}, opacity=st.get("alpha", 0.4), hoverinfo="skip",
                    showlegend=False, legendgroup=mark.legendgroup,
                )
            )
        elif mark.kind == "boxes":
            box: dict[str, Any] = {"x": _list(d["x"]), "y": _list(d["y"])}
            fig.add_trace(
                go.Box(
                    **box, orientation="h" if horizontal else "v", width=st.get("width", 0.75),
                    fillcolor=st.get("fill"),
                    line={"color": st.get("colour"), "width": linewidth_px(st.get("linewidth", 0.5))},
                    marker={"color": st.get("colour")}, opacity=st.get("alpha", 1.0), boxpoints="outliers",
                    **_legend_args(mark),
                )
            )
        elif mark.kind in ("hline", "vline"):
            line = _line(mark)
            values = d["yintercept"] if mark.kind == "hline" else d["xintercept"]
            for v in values:
                if not np.isfinite(v):
                    continue
                if mark.kind == "hline":
                    fig.add_hline(
                        y=float(v), line_color=line["color"], line_width=line["width"],
                        line_dash=line["dash"], opacity=st.get("alpha", 1.0),
                    )
                else:
                    fig.add_vline(
                        x=float(v), line_color=line["color"], line_width=line["width"],
                        line_dash=line["dash"], opacity=st.get("alpha", 1.0),
                    )
        else:
            raise ValueError(f"Cannot draw mark kind {mark.kind!r}")

    def labels_for_axes(self, built: "BuiltPlot") -> tuple[str, str]:
        return ("y", "x") if self.flipped else ("x", "y")

    def _axis_range(self, built: "BuiltPlot", aes: str) -> Optional[list[float]]:
        lims = self.xlim if aes == "x" else self.ylim
        scale = built.scales.get(aes)
        if lims is not None:
            lo, hi = lims
            data_range = built.data_range(aes)
            trans = scale.trans if scale is not None else "identity"
            conv = {"log10": math.log10, "sqrt": math.sqrt}.get(trans, float)
            lo = conv(lo) if lo is not None else data_range[0]
            hi = conv(hi) if hi is not None else data_range[1]
            if not self.expand:
                return [lo, hi]
            pad = (hi - lo) * 0.05
            return [lo - pad, hi + pad]
        if scale is None:
            return None
        if scale.discrete:
            n = len(scale.final_levels())
            return [0.4, n + 0.6]
        if scale.spec is not None and scale.spec.limits is not None:
            lo, hi = scale.limits()
            pad = (hi - lo) * 0.05
            return [lo - pad, hi + pad]
        return None

    def _axis_layout(self, built: "BuiltPlot", aes: str) -> dict[str, Any]:
        axis: dict[str, Any] = {"title": {"text": built.label(aes)}}
        scale = built.scales.get(aes)
        if scale is not None:
            ticks = scale.axis_ticks()
            if ticks is not None:
                axis.update(tickmode="array", tickvals=ticks[0], ticktext=ticks[1])
        rng = self._axis_range(built, aes)
        if rng is not None:
            axis["range"] = rng
        return axis

    def decorate(self, fig: go.Figure, built: "BuiltPlot") -> None:
        horizontal_aes, vertical_aes = self.labels_for_axes(built)
        fig.update_layout(
            xaxis=self._axis_layout(built, horizontal_aes),
            yaxis=self._axis_layout(built, vertical_aes),
            barmode="overlay",
        )


def _bar_trace(mark: Mark, horizontal: bool) -> go.Bar:
    d = mark.data
    st = mark.style
    line_width = linewidth_px(st.get("linewidth", 0.5)) if st.get("colour") is not None else 0
    marker = {
        "color": _list(st.get("fill")),
        "opacity": _list(st.get("alpha", 1.0)),
        "line": {"color": _list(st.get("colour")), "width": line_width},
    }
    if horizontal:
        return go.Bar(
            y=_list((d["ymin"] + d["ymax"]) / 2), x=_list(d["xmax"] - d["xmin"]), base=_list(d["xmin"]),
            width=_list(d["ymax"] - d["ymin"]), orientation="h", marker=marker, **_legend_args(mark),
        )
    return go.Bar(
        x=_list((d["xmin"] + d["xmax"]) / 2), y=_list(d["ymax"] - d["ymin"]), base=_list(d["ymin"]),
        width=_list(d["xmax"] - d["xmin"]), marker=marker, **_legend_args(mark),
    )


class CoordFlip(CoordCartesian):
    """Cartesian coordinates with x and y swapped."""

    flipped = True

    def __repr__(self) -> str:
        return super().__repr__().replace("coord_cartesian", "coord_flip", 1)


class CoordFixed(CoordCartesian):
    """Cartesian coordinates with a fixed aspect ratio (y units per x unit)."""

    def __init__(self, ratio: Any = 1, xlim: Any = None, ylim: Any = None, expand: bool = True) -> None:
        super().__init__(xlim=xlim, ylim=ylim, expand=expand)
        self.ratio = InputConvert(ratio, float)
        if self.ratio <= 0:
            raise ValueError(f"coord_fixed ratio must be positive, got {ratio!r}")

    def __repr__(self) -> str:
        inner = super().__repr__()[len("coord_cartesian("):-1]
        return f"coord_fixed(ratio={self.ratio!r}{', ' + inner if inner else ''})"

    def decorate(self, fig: go.Figure, built: "BuiltPlot") -> None:
        super().decorate(fig, built)
        fig.update_yaxes(scaleanchor="x", scaleratio=self.ratio)


class CoordPolar(Coord):
    """Polar coordinates.

    ``theta`` names the position aesthetic mapped to angle; the other one maps
    to radius. ``start`` is the offset of the starting angle from 12 o'clock in
    radians; ``direction=1`` runs clockwise, ``-1`` anticlockwise.
    """

    name = "polar"

    def __init__(self, theta: str = "x", start: Any = 0, direction: int = 1) -> None:
        if theta not in ("x", "y"):
            raise ValueError(f"theta must be 'x' or 'y', got {theta!r}")
        if direction not in (1, -1):
            raise ValueError(f"direction must be 1 or -1, got {direction!r}")
        self.theta = theta
        self.r = "y" if theta == "x" else "x"
        self.start = InputConvert(start, float)
        self.direction = direction
        self._theta_range: tuple[float, float] = (0.0, 1.0)
        self._r_offset = 0.0
        self._r_discrete = False

    def __repr__(self) -> str:
        args = [f"theta={self.theta!r}"]
        if self.start:
            args.append(f"start={self.start!r}")
        if self.direction != 1:
            args.append(f"direction={self.direction!r}")
        return f"coord_polar({', '.join(args)})"

    def train(self, built: "BuiltPlot") -> None:
        lo, hi = built.data_range(self.theta, include_zero=self.theta == "y" and built.has_rects())
        theta_scale = built.scales.get(self.theta)
        if theta_scale is not None and theta_scale.discrete:
            lo, hi = 0.5, len(theta_scale.final_levels()) + 0.5
        if not (np.isfinite(lo) and np.isfinite(hi)) or hi == lo:
            lo, hi = (lo, lo + 1.0) if np.isfinite(lo) else (0.0, 1.0)
        self._theta_range = (lo, hi)
        r_scale = built.scales.get(self.r)
        self._r_discrete = r_scale is not None and r_scale.discrete
        if self._r_discrete:
            self._r_offset = 0.5
        else:
            r_lo, _ = built.data_range(self.r)
            self._r_offset = min(0.0, r_lo) if np.isfinite(r_lo) else 0.0

    def _angle(self, values: np.ndarray) -> np.ndarray:
        lo, hi = self._theta_range
        return 360.0 * (np.asarray(values, dtype=float) - lo) / (hi - lo)

    def _radius(self, values: np.ndarray) -> np.ndarray:
        return np.asarray(values, dtype=float) - self._r_offset

    def add_mark(self, fig: go.Figure, mark: Mark) -> None:
        d = mark.data
        st = mark.style
        if mark.kind == "rects":
            t0 = self._angle(d[f"{self.theta}min"])
            t1 = self._angle(d[f"{self.theta}max"])
            r0 = self._radius(d[f"{self.r}min"])
            r1 = self._radius(d[f"{self.r}max"])
            line_width = linewidth_px(st.get("linewidth", 0.5)) if st.get("colour") is not None else 0
            fig.add_trace(
                go.Barpolar(
                    theta=_list((t0 + t1) / 2), width=_list(t1 - t0), base=_list(r0), r=_list(r1 - r0),
                    marker={
                        "color": _list(st.get("fill")),
                        "opacity": _list(st.get("alpha", 1.0)),
                        "line": {"color": _list(st.get("colour")), "width": line_width},
                    },
                    **_legend_args(mark),
                )
            )
        elif mark.kind in ("points", "lines"):
            theta = self._angle(d[self.theta])
            r = self._radius(d[self.r])
            if mark.kind == "points":
                fig.add_trace(
                    go.Scatterpolar(
                        theta=_list(theta), r=_list(r), mode="markers", marker=_marker(mark),
                        **_legend_args(mark),
                    )
                )
            else:
                fig.add_trace(
                    go.Scatterpolar(
                        theta=_list(theta), r=_list(r), mode="lines", line=_line(mark),
                        opacity=st.get("alpha", 1.0), **_legend_args(mark),
                    )
                )
        else:
            raise ValueError(f"coord_polar cannot draw {mark.kind}; use cartesian coordinates for this layer")

    def decorate(self, fig: go.Figure, built: "BuiltPlot") -> None:
        angular: dict[str, Any] = {
            "rotation": 90.0 - math.degrees(self.start),
            "direction": "clockwise" if self.direction == 1 else "counterclockwise",
        }
        theta_scale = built.scales.get(self.theta)
        if theta_scale is not None and theta_scale.discrete:
            levels = theta_scale.final_levels()
            ticks = self._angle(np.arange(1, len(levels) + 1))
            angular.update(tickmode="array", tickvals=_list(ticks), ticktext=levels)
        elif built.label(self.theta) is None:
            angular.update(showticklabels=False, ticks="")
        else:
            lo, hi = self._theta_range
            ticks = pretty_breaks(lo, hi)
            ticks = ticks[(ticks >= lo) & (ticks < hi)]
            angular.update(tickmode="array", tickvals=_list(self._angle(ticks)), ticktext=[f"{t:g}" for t in ticks])

        radial: dict[str, Any] = {"title": {"text": built.label(self.r)}}
        r_scale = built.scales.get(self.r)
        if r_scale is not None and r_scale.discrete:
            levels = r_scale.final_levels()
            radial.update(
                range=[0, len(levels)],
                tickmode="array",
                tickvals=[i + 0.5 for i in range(len(levels))],
                ticktext=levels,
            )
        if built.label(self.r) is None:
            radial.update(showticklabels=False, ticks="")
        fig.update_layout(polar={"angularaxis": angular, "radialaxis": radial}, barmode="overlay")

    def labels_for_axes(self, built: "BuiltPlot") -> tuple[str, str]:
        return self.theta, self.r


def coord_cartesian(xlim: Any = None, ylim: Any = None, expand: bool = True) -> CoordCartesian:
    """Cartesian coordinates; limits zoom the view without removing observations."""
    return CoordCartesian(xlim=xlim, ylim=ylim, expand=expand)


def coord_flip(xlim: Any = None, ylim: Any = None, expand: bool = True) -> CoordFlip:
    """Swap the horizontal and vertical axes."""
    return CoordFlip(xlim=xlim, ylim=ylim, expand=expand)


def coord_fixed(ratio: Any = 1, xlim: Any = None, ylim: Any = None, expand: bool = True) -> CoordFixed:
    return CoordFixed(ratio=ratio, xlim=xlim, ylim=ylim, expand=expand)


def coord_polar(theta: str = "x", start: Any = 0, direction: int = 1) -> CoordPolar:
    """Polar coordinates; ``coord_polar(theta="y")`` on a single stacked bar draws a pie chart."""
    return CoordPolar(theta=theta, start=start, direction=direction)


__all__ = [
    "Coord",
    "CoordCartesian",
    "CoordFixed",
    "CoordFlip",
    "CoordPolar",
    "coord_cartesian",
    "coord_fixed",
    "coord_flip",
    "coord_polar",
]
