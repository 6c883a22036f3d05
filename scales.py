"""Scales: how data values become positions and colours.

A :class:`Scale` is the user-facing component added to a plot
(``+ scale_fill_manual(values=...)``). When a plot is built, every mapped
aesthetic is trained into a :class:`TrainedScale` that knows the observed
levels (discrete) or range (continuous) and maps values to axis positions or
plotly colour strings.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Optional

import numpy as np
import pandas as pd
import plotly.colors as pc

from .InputConvert import convert_limits
from .aesthetics import standardise_aes_name
from .expressions import as_factor
from .plot_style import css_colour

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class _Waiver:
    """Sentinel meaning "use the default" (for names, breaks and labels)."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "waiver()"


WAIVER = _Waiver()


def waiver() -> _Waiver:
    return WAIVER


TRANSFORMS = ("identity", "log10", "sqrt")

DEFAULT_GRADIENT = ("#132B43", "#56B1F7")
NA_COLOUR = "#7F7F7F"


def _default_palette() -> list[str]:
    return list(pc.qualitative.Plotly)


@dataclass(frozen=True, eq=False)
class Scale:
    """A scale specification for one aesthetic.

    Parameters
    ----------
    aesthetic : str
        ``x``, ``y``, ``colour`` or ``fill``.
    kind : str
        ``continuous``, ``discrete``, ``manual`` or ``gradient``.
    name : str, None, or waiver()
        Axis/legend title; ``None`` removes it.
    limits : tuple or sequence, optional
        ``(lower, upper)`` for continuous scales, allowed levels (in order)
        for discrete ones.
    """

    aesthetic: str
    kind: str
    name: Any = WAIVER
    limits: Any = None
    breaks: Any = WAIVER
    labels: Any = WAIVER
    values: Any = None
    trans: str = "identity"
    palette: Optional[tuple[str, ...]] = None
    gradient: tuple[str, str] = DEFAULT_GRADIENT
    na_value: str = NA_COLOUR
    call: str = field(default="", compare=False)

    @property
    def is_position(self) -> bool:
        return self.aesthetic in ("x", "y")

    @property
    def is_discrete(self) -> bool:
        return self.kind in ("discrete", "manual")

    def replace(self, **changes: Any) -> "Scale":
        return replace(self, **changes)

    def __repr__(self) -> str:
        return self.call or f"Scale({self.aesthetic!r}, {self.kind!r})"


def _call_repr(fn: str, *args: Any, **kwargs: Any) -> str:
    parts = [repr(a) for a in args]
    parts += [f"{k}={v!r}" for k, v in kwargs.items() if v is not None and v is not WAIVER]
    return f"{fn}({', '.join(parts)})"


def _continuous(aesthetic: str, fn: str, name: Any, limits: Any, breaks: Any, labels: Any, trans: str) -> Scale:
    if trans not in TRANSFORMS:
        raise ValueError(f"Unknown transformation {trans!r}; expected one of: {', '.join(TRANSFORMS)}")
    lims = convert_limits(limits, what=f"{aesthetic} limits")
    call_kwargs: dict[str, Any] = {"limits": limits, "breaks": breaks, "labels": labels}
    if trans != "identity" and not fn.endswith(("log10", "sqrt")):
        call_kwargs["trans"] = trans
    call = _call_repr(fn, *([] if name is WAIVER else [name]), **call_kwargs)
    return Scale(aesthetic, "continuous", name=name, limits=lims, breaks=breaks, labels=labels, trans=trans, call=call)


def scale_x_continuous(
    name: Any = WAIVER,
    *,
    limits: Any = None,
    breaks: Any = WAIVER,
    labels: Any = WAIVER,
    trans: str = "identity",
) -> Scale:
    """Continuous x position scale."""
    return _continuous("x", "scale_x_continuous", name, limits, breaks, labels, trans)


def scale_y_continuous(
    name: Any = WAIVER,
    *,
    limits: Any = None,
    breaks: Any = WAIVER,
    labels: Any = WAIVER,
    trans: str = "identity",
) -> Scale:
    """Continuous y position scale."""
    return _continuous("y", "scale_y_continuous", name, limits, breaks, labels, trans)


def scale_x_log10(name: Any = WAIVER, *, limits: Any = None, breaks: Any = WAIVER, labels: Any = WAIVER) -> Scale:
    return _continuous("x", "scale_x_log10", name, limits, breaks, labels, "log10")


def scale_y_log10(name: Any = WAIVER, *, limits: Any = None, breaks: Any = WAIVER, labels: Any = WAIVER) -> Scale:
    return _continuous("y", "scale_y_log10", name, limits, breaks, labels, "log10")


def scale_x_sqrt(name: Any = WAIVER, *, limits: Any = None, breaks: Any = WAIVER, labels: Any = WAIVER) -> Scale:
    return _continuous("x", "scale_x_sqrt", name, limits, breaks, labels, "sqrt")


def scale_y_sqrt(name: Any = WAIVER, *, limits: Any = None, breaks: Any = WAIVER, labels: Any = WAIVER) -> Scale:
    return _continuous("y", "scale_y_sqrt", name, limits, breaks, labels, "sqrt")


def _discrete_limits(limits: Any) -> Optional[tuple[str, ...]]:
    if limits is None:
        return None
    if isinstance(limits, str):
        raise ValueError("Discrete limits must be a sequence of levels, not a single string")
    return tuple(str(v) for v in limits)


def scale_x_discrete(name: Any = WAIVER, *, limits: Any = None, labels: Any = WAIVER) -> Scale:
    """Discrete x position scale; ``limits`` chooses and orders the levels."""
    call = _call_repr("scale_x_discrete", *([] if name is WAIVER else [name]), limits=limits, labels=labels)
    return Scale("x", "discrete", name=name, limits=_discrete_limits(limits), labels=labels, call=call)


def scale_y_discrete(name: Any = WAIVER, *, limits: Any = None, labels: Any = WAIVER) -> Scale:
    call = _call_repr("scale_y_discrete", *([] if name is WAIVER else [name]), limits=limits, labels=labels)
    return Scale("y", "discrete", name=name, limits=_discrete_limits(limits), labels=labels, call=call)


def _manual(aesthetic: str, fn: str, values: Any, name: Any, limits: Any, breaks: Any, labels: Any) -> Scale:
    if values is None:
        raise ValueError(f"{fn}() requires values=")
    if isinstance(values, Mapping):
        normalized: Any = {str(k): css_colour(v) for k, v in values.items()}
    elif isinstance(values, str):
        normalized = (css_colour(values),)
    else:
        normalized = tuple(css_colour(v) for v in values)
    call = _call_repr(
        fn, *([] if name is WAIVER else [name]), values=values, limits=limits, breaks=breaks, labels=labels,
    )
    return Scale(
        standardise_aes_name(aesthetic),
        "manual",
        name=name,
        limits=_discrete_limits(limits),
        breaks=breaks,
        labels=labels,
        values=normalized,
        call=call,
    )


def scale_colour_manual(
    *args: Any,
    values: Any = None,
    name: Any = WAIVER,
    limits: Any = None,
    breaks: Any = WAIVER,
    labels: Any = WAIVER,
) -> Scale:
    """Map discrete colour levels to hand-picked colours.

    ``values`` is a list (used in level order) or a mapping from level to colour.
    """
    if args:
        values = args[0] if len(args) == 1 and not isinstance(args[0], str) else args
    return _manual("colour", "scale_colour_manual", values, name, limits, breaks, labels)


def scale_fill_manual(
    *args: Any,
    values: Any = None,
    name: Any = WAIVER,
    limits: Any = None,
    breaks: Any = WAIVER,
    labels: Any = WAIVER,
) -> Scale:
    """Map discrete fill levels to hand-picked colours."""
    if args:
        values = args[0] if len(args) == 1 and not isinstance(args[0], str) else args
    return _manual("fill", "scale_fill_manual", values, name, limits, breaks, labels)


scale_color_manual = scale_colour_manual


def _discrete_colour(
    aesthetic: str,
    fn: str,
    name: Any,
    palette: Optional[Sequence[str]],
    limits: Any,
    labels: Any,
) -> Scale:
    call = _call_repr(fn, *([] if name is WAIVER else [name]), palette=palette, limits=limits, labels=labels)
    return Scale(
        aesthetic,
        "discrete",
        name=name,
        limits=_discrete_limits(limits),
        labels=labels,
        palette=tuple(css_colour(c) for c in palette) if palette is not None else None,
        call=call,
    )


def scale_colour_discrete(
    name: Any = WAIVER,
    *,
    palette: Optional[Sequence[str]] = None,
    limits: Any = None,
    labels: Any = WAIVER,
) -> Scale:
    """Discrete colour scale using a qualitative palette."""
    return _discrete_colour("colour", "scale_colour_discrete", name, palette, limits, labels)


def scale_fill_discrete(
    name: Any = WAIVER,
    *,
    palette: Optional[Sequence[str]] = None,
    limits: Any = None,
    labels: Any = WAIVER,
) -> Scale:
    return _discrete_colour("fill", "scale_fill_discrete", name, palette, limits, labels)


scale_color_discrete = scale_colour_discrete


def _gradient(aesthetic: str, fn: str, name: Any, low: str, high: str, limits: Any) -> Scale:
    call = _call_repr(fn, *([] if name is WAIVER else [name]), low=low, high=high, limits=limits)
    return Scale(
        aesthetic,
        "gradient",
        name=name,
        limits=convert_limits(limits, what=f"{aesthetic} limits"),
        gradient=(css_colour(low), css_colour(high)),
        call=call,
    )


def scale_colour_gradient(
    name: Any = WAIVER,
    *,
    low: str = DEFAULT_GRADIENT[0],
    high: str = DEFAULT_GRADIENT[1],
    limits: Any = None,
) -> Scale:
    """Continuous colour scale interpolating between ``low`` and ``high``."""
    return _gradient("colour", "scale_colour_gradient", name, low, high, limits)


def scale_fill_gradient(
    name: Any = WAIVER,
    *,
    low: str = DEFAULT_GRADIENT[0],
    high: str = DEFAULT_GRADIENT[1],
    limits: Any = None,
) -> Scale:
    return _gradient("fill", "scale_fill_gradient", name, low, high, limits)


scale_color_gradient = scale_colour_gradient


def _limits_scale(aesthetic: str, limits: tuple[Any, ...]) -> Scale:
    if len(limits) == 1 and isinstance(limits[0], (list, tuple, np.ndarray)):
        limits = tuple(limits[0])
    fn = f"{aesthetic}lim"
    if limits and all(isinstance(v, str) for v in limits):
        try:
            scale = _continuous(aesthetic, fn, WAIVER, limits, WAIVER, WAIVER, "identity")
            return scale.replace(call=_call_repr(fn, *limits))
        except ValueError:
            return Scale(aesthetic, "discrete", limits=tuple(limits), call=_call_repr(fn, *limits))
    return _continuous(aesthetic, fn, WAIVER, limits, WAIVER, WAIVER, "identity").replace(call=_call_repr(fn, *limits))


def xlim(*limits: Any) -> Scale:
    """Set x limits. Two numbers give a continuous range, strings give discrete levels.

    Numeric limits may be SymPy-parsable strings: ``xlim("0", "2*pi")``.
    """
    return _limits_scale("x", limits)


def ylim(*limits: Any) -> Scale:
    """Set y limits; see :func:`xlim`."""
    return _limits_scale("y", limits)


# ---------------------------------------------------------------------------
# trained scales
# ---------------------------------------------------------------------------

def is_discrete_values(values: Any) -> bool:
    """Whether evaluated aesthetic values are discrete (categorical, string or boolean)."""
    if isinstance(values, pd.Series):
        values = values.array
    if isinstance(values, pd.Categorical):
        return True
    return np.asarray(values).dtype.kind in ("O", "U", "S", "b")


def _apply_trans(values: np.ndarray, trans: str) -> np.ndarray:
    if trans == "identity":
        return values
    with np.errstate(divide="ignore", invalid="ignore"):
        if trans == "log10":
            out = np.log10(values)
        else:
            out = np.sqrt(values)
    out[~np.isfinite(out)] = np.nan
    return out


def _inverse_trans(values: np.ndarray, trans: str) -> np.ndarray:
    if trans == "log10":
        return np.power(10.0, values)
    if trans == "sqrt":
        return np.square(values)
    return values


def pretty_breaks(lo: float, hi: float, n: int = 5) -> np.ndarray:
    """Round-number breaks covering ``[lo, hi]``."""
    if not (np.isfinite(lo) and np.isfinite(hi)):
        return np.array([])
    if hi == lo:
        return np.array([lo])
    raw = (hi - lo) / max(n - 1, 1)
    magnitude = 10 ** math.floor(math.log10(raw))
    step = min((m * magnitude for m in (1, 2, 2.5, 5, 10) if m * magnitude >= raw), default=10 * magnitude)
    start = math.ceil(lo / step - 1e-9) * step
    return np.arange(start, hi + step * 1e-9, step)


@dataclass
class TrainedScale:
    """A scale after seeing the data of every layer."""

    aesthetic: str
    spec: Optional[Scale]
    discrete: bool
    levels: list[str] = field(default_factory=list)
    range: Optional[tuple[float, float]] = None

    @property
    def trans(self) -> str:
        return self.spec.trans if self.spec is not None else "identity"

    @property
    def name(self) -> Any:
        return self.spec.name if self.spec is not None else WAIVER

    # -- training ----------------------------------------------------------

    def train_discrete(self, values: Any) -> None:
        cat = as_factor(values)
        codes = np.asarray(cat.codes)
        present = set(codes[codes >= 0].tolist())
        for code, level in enumerate(cat.categories):
            if code in present and level not in self.levels:
                self.levels.append(str(level))

    def train_continuous(self, values: Any) -> None:
        arr = np.asarray(values, dtype=float)
        finite = arr[np.isfinite(arr)]
        if finite.size == 0:
            return
        lo, hi = float(finite.min()), float(finite.max())
        if self.range is not None:
            lo, hi = min(lo, self.range[0]), max(hi, self.range[1])
        self.range = (lo, hi)

    def final_levels(self) -> list[str]:
        if self.spec is not None and self.spec.is_discrete and self.spec.limits is not None:
            return list(self.spec.limits)
        return list(self.levels)

    def _transformed_limit(self, value: Optional[float], default: float) -> float:
        if value is None:
            return default
        return float(_apply_trans(np.array([float(value)]), self.trans)[0])

    def limits(self) -> Optional[tuple[float, float]]:
        """Continuous limits in transformed space, with open ends filled from the data."""
        lims = self.spec.limits if self.spec is not None and not self.spec.is_discrete else None
        if lims is None:
            return self.range
        data_lo, data_hi = self.range if self.range is not None else (np.nan, np.nan)
        return self._transformed_limit(lims[0], data_lo), self._transformed_limit(lims[1], data_hi)

    # -- position mapping --------------------------------------------------

    def transform(self, values: Any) -> np.ndarray:
        """Apply the scale transformation and out-of-limits censoring to continuous values."""
        arr = _apply_trans(np.asarray(values, dtype=float).copy(), self.trans)
        lims = self.spec.limits if self.spec is not None and not self.spec.is_discrete else None
        if lims is not None:
            lo, hi = lims
            lo_t = _apply_trans(np.array([float(lo)]), self.trans)[0] if lo is not None else -np.inf
            hi_t = _apply_trans(np.array([float(hi)]), self.trans)[0] if hi is not None else np.inf
            arr[(arr < lo_t) | (arr > hi_t)] = np.nan
        return arr

    def map_discrete(self, values: Any) -> np.ndarray:
        """Map discrete values to 1-based integer positions (NaN for dropped levels)."""
        lookup = {level: i + 1 for i, level in enumerate(self.final_levels())}
        cat = as_factor(values)
        labels = np.asarray(cat.astype(object))
        return np.array([lookup.get(str(v), np.nan) if not pd.isna(v) else np.nan for v in labels], dtype=float)

    def axis_ticks(self) -> Optional[tuple[list[float], list[str]]]:
        """Tick positions and labels, or ``None`` to let plotly decide."""
        spec = self.spec
        if self.discrete:
            levels = self.final_levels()
            labels = levels
            if spec is not None and spec.labels is not WAIVER and spec.labels is not None:
                labels = _relabel(levels, spec.labels)
            return [float(i + 1) for i in range(len(levels))], labels
        breaks = spec.breaks if spec is not None else WAIVER
        if breaks is WAIVER and self.trans == "identity":
            return None
        if breaks is None:
            return [], []
        lims = self.limits()
        if breaks is WAIVER:
            if lims is None:
                return None
            if self.trans == "log10":
                ticks_t = np.arange(math.floor(lims[0]), math.ceil(lims[1]) + 1, dtype=float)
            else:
                raw = _inverse_trans(np.array(lims, dtype=float), self.trans)
                ticks_t = _apply_trans(pretty_breaks(float(raw[0]), float(raw[1])), self.trans)
        else:
            ticks_t = _apply_trans(np.asarray(list(breaks), dtype=float), self.trans)
        raw_values = _inverse_trans(ticks_t, self.trans)
        if spec is not None and spec.labels is not WAIVER and spec.labels is not None:
            text = [str(s) for s in spec.labels]
        else:
            text = [f"{v:g}" for v in raw_values]
        return [float(t) for t in ticks_t], text

    # -- colour mapping ----------------------------------------------------

    def palette_for_levels(self) -> dict[str, str]:
        levels = self.final_levels()
        spec = self.spec
        if spec is not None and spec.kind == "manual":
            values = spec.values
            if isinstance(values, Mapping):
                missing = [lv for lv in levels if lv not in values]
                if missing:
                    logger.info("scale_%s_manual: no value for levels %s; using na_value", self.aesthetic, missing)
                return {lv: values.get(lv, spec.na_value) for lv in levels}
            if len(values) < len(levels):
                raise ValueError(
                    f"Insufficient values in manual scale. {len(levels)} needed but only {len(values)} provided."
                )
            return dict(zip(levels, values))
        palette = list(spec.palette) if spec is not None and spec.palette else _default_palette()
        return {lv: palette[i % len(palette)] for i, lv in enumerate(levels)}

    def map_colours(self, values: Any) -> list[Optional[str]]:
        """Map evaluated values to plotly colour strings."""
        na = self.spec.na_value if self.spec is not None else NA_COLOUR
        if self.discrete:
            lookup = self.palette_for_levels()
            labels = np.asarray(as_factor(values).astype(object))
            return [na if pd.isna(v) else lookup.get(str(v), na) for v in labels]
        arr = np.asarray(values, dtype=float)
        lo, hi = self.limits() or (0.0, 1.0)
        span = hi - lo if hi > lo else 1.0
        frac = (arr - lo) / span
        low, high = self.spec.gradient if self.spec is not None else DEFAULT_GRADIENT
        scale = [[0.0, low], [1.0, high]]
        out: list[Optional[str]] = []
        for f in frac:
            if not np.isfinite(f) or f < 0 or f > 1:
                out.append(na)
            else:
                out.append(pc.sample_colorscale(scale, [float(f)])[0])
        return out

    def colorscale(self) -> list[list[Any]]:
        low, high = self.spec.gradient if self.spec is not None else DEFAULT_GRADIENT
        return [[0.0, low], [1.0, high]]

    def level_label(self, level: str) -> str:
        spec = self.spec
        if spec is None or spec.labels is WAIVER or spec.labels is None:
            return level
        return _relabel([level], spec.labels, all_levels=self.final_levels())[0]


def _relabel(levels: list[str], labels: Any, *, all_levels: Optional[list[str]] = None) -> list[str]:
    if isinstance(labels, Mapping):
        return [str(labels.get(lv, lv)) for lv in levels]
    if callable(labels):
        return [str(labels(lv)) for lv in levels]
    ordered = list(all_levels if all_levels is not None else levels)
    table = dict(zip(ordered, (str(s) for s in labels)))
    return [table.get(lv, lv) for lv in levels]


def add_scale(scales: tuple[Scale, ...], scale: Scale) -> tuple[Scale, ...]:
    """Return ``scales`` with ``scale`` added, replacing any scale for the same aesthetic."""
    if any(s.aesthetic == scale.aesthetic for s in scales):
        logger.info(
            "Scale for '%s' is already present. Adding another scale for '%s', which will replace the existing scale.",
            scale.aesthetic,
            scale.aesthetic,
        )
    return tuple(s for s in scales if s.aesthetic != scale.aesthetic) + (scale,)


__all__ = [
    "NA_COLOUR",
    "Scale",
    "TrainedScale",
    "WAIVER",
    "add_scale",
    "is_discrete_values",
    "pretty_breaks",
    "scale_color_discrete",
    "scale_color_gradient",
    "scale_color_manual",
    "scale_colour_discrete",
    "scale_colour_gradient",
    "scale_colour_manual",
    "scale_fill_discrete",
    "scale_fill_gradient",
    "scale_fill_manual",
    "scale_x_continuous",
    "scale_x_discrete",
    "scale_x_log10",
    "scale_x_sqrt",
    "scale_y_continuous",
    "scale_y_discrete",
    "scale_y_log10",
    "scale_y_sqrt",
    "waiver",
    "xlim",
    "ylim",
]
