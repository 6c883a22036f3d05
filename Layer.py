"""Layer records and the ``geom_*`` / ``stat_*`` constructors.

A :class:`Layer` is an immutable value describing one geometric layer: which
geom draws it, which stat transforms its data first, how overlapping objects
are positioned, its own aesthetic mapping, optional layer data and constant
parameters. Layers do nothing until they are added to a plot and the plot is
built; that makes them safe to store in variables, lists and helper
functions::

    bestfit = geom_smooth(method="lm", se=False, colour="steelblue")
    ggplot(mpg, aes("displ", "hwy")) + geom_point() + bestfit
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Optional

import pandas as pd

from .aesthetics import Aes, standardise_aes_name
from .geoms import get_geom
from .plot_style import resolve_style_aliases
from .positions import get_position
from .stats import formula_degree, get_stat, resolve_summary_function

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


_COMMON_PARAMS = frozenset(
    {"colour", "fill", "alpha", "size", "linewidth", "linetype", "shape", "na_rm", "reverse", "weight"}
)


def _value_code(value: Any) -> str:
    if isinstance(value, pd.DataFrame):
        return f"<DataFrame {value.shape[0]}x{value.shape[1]}>"
    if callable(value) and hasattr(value, "__name__"):
        return value.__name__
    return repr(value)


@dataclass(frozen=True, eq=False)
class Layer:
    """One layer of a plot.

    Parameters
    ----------
    geom, stat, position : str
        Registered geom, stat and position names.
    mapping : Aes
        Layer-specific aesthetic mapping, combined with the plot mapping when
        ``inherit_aes`` is true.
    data : DataFrame, callable, or None
        Layer data. ``None`` uses the plot data; a callable receives the plot
        data and returns the layer data.
    params : Mapping
        Constant aesthetics (``colour="red"``) and geom/stat parameters.
    """

    geom: str
    stat: str = "identity"
    position: str = "identity"
    mapping: Aes = field(default_factory=Aes)
    data: Any = None
    params: Mapping[str, Any] = field(default_factory=dict)
    inherit_aes: bool = True
    show_legend: Optional[bool] = None
    name: Optional[str] = None
    constructor: str = "layer"

    def replace(self, **changes: Any) -> "Layer":
        """Return a copy with fields replaced; ``params`` entries are merged, not replaced."""
        if "params" in changes:
            changes["params"] = {**self.params, **changes["params"]}
        return replace(self, **changes)

    def with_params(self, **params: Any) -> "Layer":
        return self.replace(params=_normalise_params(self.geom, params))

    def _constructor_defaults(self) -> dict[str, str]:
        if self.constructor.startswith("geom_"):
            g = get_geom(self.geom)
            return {"geom": self.geom, "stat": g.default_stat, "position": g.default_position}
        if self.constructor == "stat_summary":
            return {"geom": "pointrange", "stat": "summary", "position": "identity"}
        if self.constructor == "stat_smooth":
            return {"geom": "smooth", "stat": "smooth", "position": "identity"}
        return {}

    def to_code(self, data_code: Optional[str] = None) -> str:
        """Python source that rebuilds this layer; ``data_code`` names the layer data."""
        args: list[str] = []
        if len(self.mapping):
            args.append(repr(self.mapping))
        if self.data is not None:
            args.append(f"data={data_code if data_code is not None else _value_code(self.data)}")
        defaults = self._constructor_defaults()
        for key in ("geom", "stat", "position"):
            value = getattr(self, key)
            if defaults.get(key) != value:
                args.append(f"{key}={value!r}")
        for key, value in self.params.items():
            args.append(f"{key}={_value_code(value)}")
        if not self.inherit_aes and self.constructor not in ("geom_hline", "geom_vline"):
            args.append("inherit_aes=False")
        if self.show_legend is not None:
            args.append(f"show_legend={self.show_legend!r}")
        if self.name is not None:
            args.append(f"name={self.name!r}")
        return f"{self.constructor}({', '.join(args)})"

    def __repr__(self) -> str:
        return self.to_code()


def _normalise_params(geom: str, params: Mapping[str, Any]) -> dict[str, Any]:
    line_like = get_geom(geom).line_like
    resolved = resolve_style_aliases(params, line_like=line_like)
    out: dict[str, Any] = {}
    for key, value in resolved.items():
        out[standardise_aes_name(key)] = value
    return out


def _coerce_mapping(mapping: Any, data: Any) -> tuple[Aes, Any]:
    if isinstance(mapping, pd.DataFrame) and (data is None or isinstance(data, Aes)):
        mapping, data = data, mapping
    if mapping is None:
        mapping = Aes()
    if not isinstance(mapping, Aes):
        raise TypeError(f"mapping must be created by aes(), got {type(mapping).__name__}")
    if data is not None and not (isinstance(data, pd.DataFrame) or callable(data) or isinstance(data, Mapping)):
        raise TypeError(
            f"layer data must be a DataFrame, a mapping of columns, or a callable, got {type(data).__name__}"
        )
    if isinstance(data, Mapping):
        data = pd.DataFrame(data)
    return mapping, data


def layer(
    geom: str,
    stat: str = "identity",
    position: str = "identity",
    mapping: Any = None,
    data: Any = None,
    *,
    inherit_aes: bool = True,
    show_legend: Optional[bool] = None,
    name: Optional[str] = None,
    constructor: str = "layer",
    **params: Any,
) -> Layer:
    """Build a layer from registered geom, stat and position names.

    Unknown parameters are dropped with a warning.

    Raises
    ------
    ValueError
        For unknown geom, stat or position names, or conflicting style aliases.
    TypeError
        If ``mapping`` is not an :class:`Aes` or ``data`` is of an unsupported type.
    """
    geom_spec = get_geom(geom)
    stat_spec = get_stat(stat)
    get_position(position)
    mapping, data = _coerce_mapping(mapping, data)

    normalised = _normalise_params(geom, params)
    allowed = (
        set(geom_spec.defaults)
        | geom_spec.extra_params
        | stat_spec.parameters
        | _COMMON_PARAMS
        | set(geom_spec.required_aes)
    )
    unknown = sorted(k for k in normalised if k not in allowed)
    if unknown:
        logger.warning("Ignoring unknown parameters: %s", ", ".join(unknown))
        normalised = {k: v for k, v in normalised.items() if k not in unknown}

    return Layer(
        geom=geom,
        stat=stat,
        position=position,
        mapping=mapping,
        data=data,
        params=normalised,
        inherit_aes=inherit_aes,
        show_legend=show_legend,
        name=name,
        constructor=constructor,
    )


def _geom(
    name: str,
    mapping: Any,
    data: Any,
    stat: Optional[str],
    position: Optional[str],
    params: dict[str, Any],
) -> Layer:
    spec = get_geom(name)
    return layer(
        name,
        stat if stat is not None else spec.default_stat,
        position if position is not None else spec.default_position,
        mapping,
        data,
        constructor=f"geom_{name}",
        **params,
    )


def _drop_none(**kwargs: Any) -> dict[str, Any]:
    return {k: v for k, v in kwargs.items() if v is not None}


def geom_point(
    mapping: Any = None,
    data: Any = None,
    *,
    stat: Optional[str] = None,
    position: Optional[str] = None,
    **params: Any,
) -> Layer:
    """Scatterplot points."""
    return _geom("point", mapping, data, stat, position, params)


def geom_line(
    mapping: Any = None,
    data: Any = None,
    *,
    stat: Optional[str] = None,
    position: Optional[str] = None,
    **params: Any,
) -> Layer:
    """Lines connecting observations in order of x (one line per group)."""
    return _geom("line", mapping, data, stat, position, params)


def geom_path(
    mapping: Any = None,
    data: Any = None,
    *,
    stat: Optional[str] = None,
    position: Optional[str] = None,
    **params: Any,
) -> Layer:
    """Lines connecting observations in data order."""
    return _geom("path", mapping, data, stat, position, params)


def geom_bar(
    mapping: Any = None,
    data: Any = None,
    *,
    stat: Optional[str] = None,
    position: Optional[str] = None,
    width: Optional[float] = None,
    **params: Any,
) -> Layer:
    """Bars whose height is the number of cases at each x (``stat="count"``), stacked.

    Use ``stat="identity"`` (or :func:`geom_col`) to map bar heights directly.
    ``width`` is a fraction of the spacing between x positions (default 0.9).
    """
    return _geom("bar", mapping, data, stat, position, {**params, **_drop_none(width=width)})


def geom_col(
    mapping: Any = None,
    data: Any = None,
    *,
    stat: Optional[str] = None,
    position: Optional[str] = None,
    width: Optional[float] = None,
    **params: Any,
) -> Layer:
    """Bars whose height is the ``y`` value, stacked."""
    return _geom("col", mapping, data, stat, position, {**params, **_drop_none(width=width)})


def _smooth_params(
    method: str,
    formula: str,
    se: bool,
    level: float,
    span: float,
    n: int,
    degree: Optional[int],
) -> dict[str, Any]:
    if method not in ("auto", "lm", "loess"):
        raise ValueError(f"Unknown smoothing method {method!r}; expected 'lm', 'loess' or 'auto'")
    if degree is None:
        formula_degree(formula)
    elif int(degree) < 0:
        raise ValueError(f"degree must be non-negative, got {degree!r}")
    candidates = {
        "method": method, "formula": formula, "se": se, "level": level, "span": span, "n": n, "degree": degree,
    }
    defaults = {"method": "auto", "formula": "y ~ x", "se": True, "level": 0.95, "span": 0.75, "n": 80, "degree": None}
    return {k: v for k, v in candidates.items() if v != defaults[k]}


def geom_smooth(
    mapping: Any = None,
    data: Any = None,
    *,
    stat: Optional[str] = None,
    position: Optional[str] = None,
    method: str = "auto",
    formula: str = "y ~ x",
    se: bool = True,
    level: float = 0.95,
    span: float = 0.75,
    n: int = 80,
    degree: Optional[int] = None,
    **params: Any,
) -> Layer:
    """Smoothed conditional means.

    Parameters
    ----------
    method : {"auto", "lm", "loess"}
        ``lm`` fits a polynomial by least squares; ``loess`` fits local
        quadratics with tricube weights. ``auto`` picks ``loess`` for fewer than
        1000 observations and ``lm`` otherwise.
    formula : str
        ``"y ~ x"``, ``"y ~ poly(x, k)"`` or ``"y ~ 1"`` (``lm`` only).
    se : bool
        Draw a confidence band around the fit (``lm`` only).
    level : float
        Confidence level of the band.
    degree : int, optional
        Polynomial degree; overrides ``formula``.

    The line is drawn with ``colour``/``linewidth``; ``alpha`` applies to the
    band, ``line_alpha`` to the line.
    """
    smooth = _smooth_params(method, formula, se, level, span, n, degree)
    return _geom("smooth", mapping, data, stat, position, {**smooth, **params})


def stat_smooth(
    mapping: Any = None,
    data: Any = None,
    *,
    geom: str = "smooth",
    position: str = "identity",
    method: str = "auto",
    formula: str = "y ~ x",
    se: bool = True,
    level: float = 0.95,
    span: float = 0.75,
    n: int = 80,
    degree: Optional[int] = None,
    **params: Any,
) -> Layer:
    """The smoothing statistic with a choice of geom; see :func:`geom_smooth`."""
    smooth = _smooth_params(method, formula, se, level, span, n, degree)
    return layer(geom, "smooth", position, mapping, data, constructor="stat_smooth", **smooth, **params)


def stat_summary(
    mapping: Any = None,
    data: Any = None,
    *,
    geom: str = "pointrange",
    position: str = "identity",
    fun: Any = None,
    fun_data: Any = None,
    fun_min: Any = None,
    fun_max: Any = None,
    fun_args: Optional[Mapping[str, Any]] = None,
    **params: Any,
) -> Layer:
    """Summarise ``y`` at every unique ``x``.

    ``fun``/``fun_min``/``fun_max`` take a vector and return one number
    (names: ``mean``, ``median``, ``min``, ``max``, ``sum``); ``fun_data``
    returns ``y``, ``ymin`` and ``ymax`` together (names: ``mean_se``,
    ``mean_cl_normal``, ``mean_sdl``, ``median_hilow``). Without any of them
    ``mean_se`` is used.

    >>> stat_summary(fun="mean", geom="bar")
    stat_summary(geom='bar', fun='mean')
    """
    resolve_summary_function(fun_data, what="fun_data")
    for key, value in (("fun", fun), ("fun_min", fun_min), ("fun_max", fun_max)):
        resolve_summary_function(value, what=key)
    summary = _drop_none(
        fun=fun,
        fun_data=fun_data,
        fun_min=fun_min,
        fun_max=fun_max,
        fun_args=dict(fun_args) if fun_args else None,
    )
    return layer(geom, "summary", position, mapping, data, constructor="stat_summary", **summary, **params)


def geom_errorbar(
    mapping: Any = None,
    data: Any = None,
    *,
    stat: Optional[str] = None,
    position: Optional[str] = None,
    width: Optional[float] = None,
    **params: Any,
) -> Layer:
    """Vertical intervals with caps, from ``ymin`` to ``ymax``."""
    return _geom("errorbar", mapping, data, stat, position, {**params, **_drop_none(width=width)})


def geom_pointrange(
    mapping: Any = None,
    data: Any = None,
    *,
    stat: Optional[str] = None,
    position: Optional[str] = None,
    **params: Any,
) -> Layer:
    return _geom("pointrange", mapping, data, stat, position, params)


def geom_boxplot(
    mapping: Any = None,
    data: Any = None,
    *,
    stat: Optional[str] = None,
    position: Optional[str] = None,
    width: Optional[float] = None,
    **params: Any,
) -> Layer:
    """Box and whiskers plot; quartiles and outliers are computed by plotly."""
    return _geom("boxplot", mapping, data, stat, position, {**params, **_drop_none(width=width)})


def _rule(name: str, column: str, mapping: Any, data: Any, intercept: Any, params: dict[str, Any]) -> Layer:
    if intercept is None:
        return _geom(name, mapping, data, None, None, params)
    if mapping is not None or data is not None:
        raise ValueError(f"geom_{name}() takes either {column}= or mapping/data, not both")
    out = _geom(name, None, None, None, None, params)
    return out.replace(params={column: intercept}, inherit_aes=False)


def geom_hline(mapping: Any = None, data: Any = None, *, yintercept: Any = None, **params: Any) -> Layer:
    """Horizontal reference line(s) at ``yintercept``."""
    return _rule("hline", "yintercept", mapping, data, yintercept, params)


def geom_vline(mapping: Any = None, data: Any = None, *, xintercept: Any = None, **params: Any) -> Layer:
    """Vertical reference line(s) at ``xintercept``."""
    return _rule("vline", "xintercept", mapping, data, xintercept, params)


__all__ = [
    "Layer",
    "geom_bar",
    "geom_boxplot",
    "geom_col",
    "geom_errorbar",
    "geom_hline",
    "geom_line",
    "geom_path",
    "geom_point",
    "geom_pointrange",
    "geom_smooth",
    "geom_vline",
    "layer",
    "stat_smooth",
    "stat_summary",
]
