"""Statistical transformations applied to a layer's data before drawing.

Every stat works on the per-layer frame produced by evaluating the aesthetic
mapping (columns named after aesthetics: ``x``, ``y``, ``colour``, ``group``
...) and returns a new frame in the same vocabulary. Computation is split by
the ``group`` column; columns that are constant within a group (a bar's
``fill``, a line's ``colour``) are carried over to the result.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd

from .theme_context import plot_defaults

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


ComputeGroup = Callable[[pd.DataFrame, Mapping[str, Any]], Optional[pd.DataFrame]]


@dataclass(frozen=True)
class Stat:
    """A named statistical transformation."""

    name: str
    compute_group: ComputeGroup
    required_aes: tuple[str, ...] = ()
    parameters: frozenset[str] = field(default_factory=frozenset)
    default_labels: Mapping[str, str] = field(default_factory=dict)

    def compute(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        missing = [a for a in self.required_aes if a not in data.columns]
        if missing:
            raise ValueError(f"stat_{self.name} requires the following missing aesthetics: {', '.join(missing)}")
        if data.empty:
            return data
        pieces: list[pd.DataFrame] = []
        for group_id, group_df in data.groupby("group", sort=True, observed=True):
            result = self.compute_group(group_df, params)
            if result is None or result.empty:
                continue
            result = _carry_constant_columns(group_df, result.reset_index(drop=True))
            result["group"] = group_id
            pieces.append(result)
        if not pieces:
            return data.iloc[0:0]
        out = pd.concat(pieces, ignore_index=True)
        logger.debug("stat_%s: %d rows -> %d rows", self.name, len(data), len(out))
        return out


def _carry_constant_columns(source: pd.DataFrame, result: pd.DataFrame) -> pd.DataFrame:
    for col in source.columns:
        if col in result.columns or col == "group":
            continue
        values = source[col]
        if values.nunique(dropna=False) > 1:
            continue
        result[col] = values.iloc[[0] * len(result)].reset_index(drop=True)
    return result


# ---------------------------------------------------------------------------
# identity / count
# ---------------------------------------------------------------------------

def _identity_group(data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    return data.drop(columns=["group"])


def _count_group(data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    weight = data["weight"].to_numpy(dtype=float) if "weight" in data.columns else np.ones(len(data))
    counts = pd.Series(weight, index=data.index).groupby(data["x"].to_numpy(), sort=True).sum()
    total = counts.sum()
    return pd.DataFrame(
        {
            "x": counts.index.to_numpy(dtype=float),
            "count": counts.to_numpy(),
            "prop": counts.to_numpy() / total if total else np.nan,
            "y": counts.to_numpy(),
        }
    )


# ---------------------------------------------------------------------------
# summary
# ---------------------------------------------------------------------------

def _clean(values: Any) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    return arr[~np.isnan(arr)]


def mean_se(values: Any, mult: float = 1.0) -> dict[str, float]:
    """Mean with a band of ``mult`` standard errors."""
    x = _clean(values)
    if x.size == 0:
        return {"y": np.nan, "ymin": np.nan, "ymax": np.nan}
    mean = float(x.mean())
    se = float(x.std(ddof=1) / math.sqrt(x.size)) if x.size > 1 else np.nan
    return {"y": mean, "ymin": mean - mult * se, "ymax": mean + mult * se}


def mean_cl_normal(values: Any, conf_int: float = 0.95) -> dict[str, float]:
    """Mean with a Student-t confidence interval."""
    from scipy import stats as _scipy_stats

    x = _clean(values)
    if x.size == 0:
        return {"y": np.nan, "ymin": np.nan, "ymax": np.nan}
    mean = float(x.mean())
    if x.size < 2:
        return {"y": mean, "ymin": np.nan, "ymax": np.nan}
    se = float(x.std(ddof=1) / math.sqrt(x.size))
    half = float(_scipy_stats.t.ppf((1 + conf_int) / 2, x.size - 1)) * se
    return {"y": mean, "ymin": mean - half, "ymax": mean + half}


def mean_sdl(values: Any, mult: float = 2.0) -> dict[str, float]:
    """Mean plus or minus ``mult`` standard deviations."""
    x = _clean(values)
    if x.size == 0:
        return {"y": np.nan, "ymin": np.nan, "ymax": np.nan}
    mean = float(x.mean())
    sd = float(x.std(ddof=1)) if x.size > 1 else np.nan
    return {"y": mean, "ymin": mean - mult * sd, "ymax": mean + mult * sd}


def median_hilow(values: Any, conf_int: float = 0.95) -> dict[str, float]:
    """Median with the outer quantiles covering ``conf_int`` of the data."""
    x = _clean(values)
    if x.size == 0:
        return {"y": np.nan, "ymin": np.nan, "ymax": np.nan}
    lo, hi = np.quantile(x, [(1 - conf_int) / 2, (1 + conf_int) / 2])
    return {"y": float(np.median(x)), "ymin": float(lo), "ymax": float(hi)}


SUMMARY_FUNCTIONS: dict[str, Callable[[np.ndarray], float]] = {
    "mean": np.mean,
    "median": np.median,
    "min": np.min,
    "max": np.max,
    "sum": np.sum,
}

SUMMARY_DATA_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "mean_se": mean_se,
    "mean_cl_normal": mean_cl_normal,
    "mean_sdl": mean_sdl,
    "median_hilow": median_hilow,
}


def resolve_summary_function(fun: Any, *, what: str) -> Optional[Callable[..., Any]]:
    """Look up a summary function by name, or accept a callable."""
    if fun is None:
        return None
    if callable(fun):
        return fun
    table = SUMMARY_DATA_FUNCTIONS if what == "fun_data" else SUMMARY_FUNCTIONS
    if isinstance(fun, str) and fun in table:
        return table[fun]
    raise ValueError(f"Unknown {what} {fun!r}; expected a callable or one of: {', '.join(table)}")


def _summary_result(value: Any) -> dict[str, float]:
    if isinstance(value, Mapping):
        return {k: float(value[k]) for k in ("y", "ymin", "ymax") if k in value}
    if isinstance(value, pd.Series):
        return {k: float(value[k]) for k in ("y", "ymin", "ymax") if k in value.index}
    if isinstance(value, pd.DataFrame):
        return _summary_result(value.iloc[0])
    if isinstance(value, (tuple, list)) and len(value) == 3:
        return dict(zip(("y", "ymin", "ymax"), (float(v) for v in value)))
    raise TypeError(
        "fun_data must return a mapping with y/ymin/ymax entries or a (y, ymin, ymax) tuple, "
        f"got {type(value).__name__}"
    )


def _summary_group(data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    fun_data = params.get("fun_data")
    fun = params.get("fun")
    fun_min = params.get("fun_min")
    fun_max = params.get("fun_max")
    fun_args = dict(params.get("fun_args") or {})

    rows = []
    for x_value, cell in data.groupby("x", sort=True):
        y = cell["y"].to_numpy(dtype=float)
        if fun_data is not None:
            row = _summary_result(fun_data(y, **fun_args))
        else:
            row = {}
            if fun is not None:
                row["y"] = float(fun(y, **fun_args))
            if fun_min is not None:
                row["ymin"] = float(fun_min(y))
            if fun_max is not None:
                row["ymax"] = float(fun_max(y))
        row["x"] = float(x_value)
        rows.append(row)
    return pd.DataFrame(rows)


def prepare_summary_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Resolve summary function names; default to ``mean_se`` when none is given."""
    out = dict(params)
    out["fun_data"] = resolve_summary_function(out.get("fun_data"), what="fun_data")
    for key in ("fun", "fun_min", "fun_max"):
        out[key] = resolve_summary_function(out.get(key), what=key)
    if all(out.get(k) is None for k in ("fun_data", "fun", "fun_min", "fun_max")):
        logger.info("No summary function supplied, defaulting to mean_se()")
        out["fun_data"] = mean_se
    return out


# ---------------------------------------------------------------------------
# smooth
# ---------------------------------------------------------------------------

_FORMULA_RE = re.compile(r"^\s*y\s*~\s*(?P<rhs>.+?)\s*$")
_POLY_RE = re.compile(r"^poly\(\s*x\s*,\s*(?P<k>\d+)\s*\)$")


def formula_degree(formula: str) -> int:
    """Polynomial degree described by ``y ~ x``, ``y ~ poly(x, k)`` or ``y ~ 1``.

    Raises
    ------
    ValueError
        For any other formula.
    """
    m = _FORMULA_RE.match(str(formula))
    if m is not None:
        rhs = m.group("rhs").replace(" ", "")
        if rhs == "x":
            return 1
        if rhs == "1":
            return 0
        poly = _POLY_RE.match(rhs)
        if poly is not None and int(poly.group("k")) >= 1:
            return int(poly.group("k"))
    raise ValueError(
        f"Unsupported smoothing formula {formula!r}; use 'y ~ x', 'y ~ poly(x, k)' or 'y ~ 1'"
    )


def fit_lm(x: np.ndarray, y: np.ndarray, grid: np.ndarray, *, degree: int, se: bool, level: float):
    """Least-squares polynomial fit evaluated on ``grid``.

    Returns ``(fitted, lower, upper, stderr)``; the band arrays are NaN when
    ``se`` is false.
    """
    p = degree + 1
    design = np.vander(x, p, increasing=True)
    beta, *_ = np.linalg.lstsq(design, y, rcond=None)
    grid_design = np.vander(grid, p, increasing=True)
    fitted = grid_design @ beta
    nan = np.full_like(fitted, np.nan)
    if not se:
        return fitted, nan, nan, nan
    dof = x.size - p
    if dof <= 0:
        return fitted, nan, nan, nan
    from scipy import stats as _scipy_stats

    residuals = y - design @ beta
    sigma2 = float(residuals @ residuals) / dof
    cov = sigma2 * np.linalg.pinv(design.T @ design)
    stderr = np.sqrt(np.einsum("ij,jk,ik->i", grid_design, cov, grid_design))
    half = float(_scipy_stats.t.ppf((1 + level) / 2, dof)) * stderr
    return fitted, fitted - half, fitted + half, stderr


def fit_loess(x: np.ndarray, y: np.ndarray, grid: np.ndarray, *, span: float, degree: int = 2) -> np.ndarray:
    """Local polynomial regression with tricube weights."""
    n = x.size
    q = min(n, max(degree + 1, int(math.ceil(span * n))))
    fitted = np.empty(grid.size)
    for i, x0 in enumerate(grid):
        dist = np.abs(x - x0)
        h = np.partition(dist, q - 1)[q - 1]
        if span > 1:
            h *= span
        if h <= 0:
            h = np.max(dist) or 1.0
        w = np.clip(1 - (dist / h) ** 3, 0, None) ** 3
        design = np.vander(x - x0, degree + 1, increasing=True)
        sw = np.sqrt(w)
        beta, *_ = np.linalg.lstsq(design * sw[:, None], y * sw, rcond=None)
        fitted[i] = beta[0]
    return fitted


def _smooth_group(data: pd.DataFrame, params: Mapping[str, Any]) -> Optional[pd.DataFrame]:
    x = data["x"].to_numpy(dtype=float)
    y = data["y"].to_numpy(dtype=float)
    method = params.get("method", "lm")
    degree = params["degree"]
    n_unique = np.unique(x).size
    needed = degree + 1 if method == "lm" else 3
    if n_unique < needed:
        logger.info(
            "stat_smooth: skipping group with %d unique x values (method=%s needs %d)",
            n_unique,
            method,
            needed,
        )
        return None

    grid = np.linspace(x.min(), x.max(), int(params.get("n", plot_defaults().smooth_points)))
    if method == "lm":
        fitted, lower, upper, stderr = fit_lm(
            x, y, grid, degree=degree, se=bool(params.get("se", True)), level=float(params.get("level", 0.95))
        )
    else:
        local_degree = 2 if n_unique > 3 else 1
        fitted = fit_loess(x, y, grid, span=float(params.get("span", 0.75)), degree=local_degree)
        lower = upper = stderr = np.full_like(fitted, np.nan)
    return pd.DataFrame({"x": grid, "y": fitted, "ymin": lower, "ymax": upper, "se": stderr})


def prepare_smooth_params(params: Mapping[str, Any], n_rows: int) -> dict[str, Any]:
    """Resolve ``method="auto"`` and the polynomial degree for ``stat_smooth``."""
    out = dict(params)
    method = out.get("method", "auto")
    if method == "auto":
        method = "loess" if n_rows < 1000 else "lm"
        logger.info("geom_smooth() using method = '%s' and formula = '%s'", method, out.get("formula", "y ~ x"))
    if method not in ("lm", "loess"):
        raise ValueError(f"Unknown smoothing method {method!r}; expected 'lm', 'loess' or 'auto'")
    out["method"] = method
    degree = out.get("degree")
    out["degree"] = int(degree) if degree is not None else formula_degree(out.get("formula", "y ~ x"))
    if method == "loess" and out.get("se", True):
        logger.info("stat_smooth: confidence band is only computed for method='lm'")
    return out


# ---------------------------------------------------------------------------
# registry
# ---------------------------------------------------------------------------

STATS: dict[str, Stat] = {
    "identity": Stat("identity", _identity_group),
    "count": Stat(
        "count",
        _count_group,
        required_aes=("x",),
        parameters=frozenset({"width"}),
        default_labels={"y": "count"},
    ),
    "summary": Stat(
        "summary",
        _summary_group,
        required_aes=("x", "y"),
        parameters=frozenset({"fun", "fun_data", "fun_min", "fun_max", "fun_args"}),
    ),
    "smooth": Stat(
        "smooth",
        _smooth_group,
        required_aes=("x", "y"),
        parameters=frozenset({"method", "formula", "degree", "se", "level", "span", "n"}),
    ),
}


def get_stat(name: str) -> Stat:
    try:
        return STATS[name]
    except KeyError:
        raise ValueError(f"Unknown stat {name!r}; expected one of: {', '.join(STATS)}") from None


__all__ = [
    "STATS",
    "SUMMARY_DATA_FUNCTIONS",
    "SUMMARY_FUNCTIONS",
    "Stat",
    "fit_lm",
    "fit_loess",
    "formula_degree",
    "get_stat",
    "mean_cl_normal",
    "mean_sdl",
    "mean_se",
    "median_hilow",
    "prepare_smooth_params",
    "prepare_summary_params",
    "resolve_summary_function",
]
