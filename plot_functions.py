"""Functions that return whole plots, and the data transforms behind them.

A plot function fixes the data transformation and the components, and takes
the data (and optionally extra mappings) as arguments. Because plots are
values, callers can keep adding to the result:

>>> import pandas as pd
>>> df = pd.DataFrame({"a": [1, 2, 3], "b": [3.0, 1.0, 2.0]})
>>> p = pcp(df) + remove_labels()
>>> sorted(pcp_data(df).columns)
['_row', '_val', '_var']
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np
import pandas as pd

from .GGPlot import GGPlot, ggplot
from .Layer import geom_bar, geom_line
from .aesthetics import Aes, aes
from .coords import coord_polar
from .expressions import CALLER, factor, resolve_environment
from .labels import xlab, ylab

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["pcp", "pcp_data", "piechart", "rescale01"]


def rescale01(values: Any) -> np.ndarray:
    """Linearly rescale ``values`` to ``[0, 1]``, ignoring NaN.

    A constant input (or one with no finite values) maps to ``0.0`` where
    finite; NaN stays NaN.

    >>> rescale01([2, 4, 6]).tolist()
    [0.0, 0.5, 1.0]
    """
    arr = np.asarray(values, dtype=float)
    finite = arr[np.isfinite(arr)]
    if finite.size == 0:
        return arr.copy()
    lo, hi = float(finite.min()), float(finite.max())
    if hi == lo:
        return np.where(np.isnan(arr), np.nan, 0.0)
    return (arr - lo) / (hi - lo)


def piechart(data: Any, mapping: Optional[Aes] = None, *, var: Any = None, env: Any = CALLER) -> GGPlot:
    """A pie chart: a single stacked bar drawn in polar coordinates.

    Parameters
    ----------
    data : DataFrame or mapping of columns
    mapping : Aes, optional
        Must provide ``fill`` unless ``var`` is given.
    var : str, SymPy expression or AesExpression, optional
        Variable whose counts make the slices; bound as
        ``aes(x=factor(1), fill=var)``.
    env : Mapping, None, or CALLER
        Environment for resolving ``var`` when it is not a column.
    """
    if var is not None:
        captured = resolve_environment(env, stacklevel=1)
        slices = aes(x=factor(1), fill=var, env=captured)
        mapping = slices if mapping is None else slices.merge(mapping)
    return (
        ggplot(data, mapping)
        + geom_bar(width=1)
        + coord_polar(theta="y")
        + xlab(None)
        + ylab(None)
    )


def pcp_data(df: Any) -> pd.DataFrame:
    """Long-form data for a parallel coordinates plot.

    Every numeric column is rescaled to ``[0, 1]`` and stacked into ``_var``
    (categorical, in column order) and ``_val``; ``_row`` holds the original
    row label so each observation can be drawn as one line. Non-numeric
    columns are kept as identifiers.

    Raises
    ------
    TypeError
        If ``df`` is not a DataFrame or mapping of columns.
    ValueError
        If there are no numeric columns.
    """
    if isinstance(df, dict):
        df = pd.DataFrame(df)
    if not isinstance(df, pd.DataFrame):
        raise TypeError(f"pcp_data() needs a DataFrame, got {type(df).__name__}")
    numeric = [
        c for c in df.columns
        if pd.api.types.is_numeric_dtype(df[c]) and not pd.api.types.is_bool_dtype(df[c])
    ]
    if not numeric:
        raise ValueError("pcp_data() needs at least one numeric column")
    for reserved in ("_row", "_var", "_val"):
        if reserved in df.columns:
            raise ValueError(f"Column name {reserved!r} is reserved by pcp_data()")

    ids = [c for c in df.columns if c not in numeric]
    scaled = df[ids].copy()
    for c in numeric:
        scaled[c] = rescale01(df[c].to_numpy())
    scaled["_row"] = [str(label) for label in df.index]

    long = scaled.melt(id_vars=ids + ["_row"], value_vars=numeric, var_name="_var", value_name="_val")
    long["_var"] = pd.Categorical(long["_var"].astype(str), categories=[str(c) for c in numeric])
    logger.debug("pcp_data: %d rows x %d variables", len(df), len(numeric))
    return long


def pcp(df: Any, mapping: Optional[Aes] = None, **kwargs: Any) -> GGPlot:
    """Parallel coordinates plot: one line per row across all numeric columns.

    ``mapping`` and ``kwargs`` go to the line layer, so
    ``pcp(mpg, aes(colour="drv"))`` colours lines by a kept identifier column.
    """
    return ggplot(pcp_data(df), aes("_var", "_val", group="_row", env=None)) + geom_line(mapping, **kwargs)
