"""Code generation for reproducing plots.

This module converts a plot (or its :class:`PlotSnapshot`) into
self-contained Python source that, when executed, recreates the plot: the
import preamble, the data as a ``pd.DataFrame`` literal, and the ``ggplot(...)``
call followed by one ``+ component`` line per layer, scale, coordinate
system, label set and theme.

Aesthetic mappings are emitted by source text, so names that are not data
columns must be bound in the scope where the script runs.

Two public helpers are provided:

- :func:`dataframe_to_code`: a ``pd.DataFrame({...})`` literal.
- :func:`plot_to_code`: a complete, runnable script.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from .Layer import Layer
from .PlotSnapshot import PlotSnapshot


@dataclass(frozen=True)
class CodegenOptions:
    """Configuration knobs for :func:`plot_to_code`.

    Parameters
    ----------
    include_imports : bool, optional
        Whether to emit the import preamble.
    include_data : bool, optional
        Whether to emit data frames as literals. When false the script
        expects the variables named by ``data_name`` (and ``layer_data_name``
        with a layer index suffix) to exist.
    data_name : str, optional
        Variable name for the default data.
    layer_data_name : str, optional
        Prefix for per-layer data variables.
    max_rows : int or None, optional
        Refuse to inline data frames longer than this.
    """

    include_imports: bool = True
    include_data: bool = True
    data_name: str = "df"
    layer_data_name: str = "layer_df"
    max_rows: Optional[int] = 10_000

    def __post_init__(self) -> None:
        for name in (self.data_name, self.layer_data_name):
            if not name.isidentifier():
                raise ValueError(f"data variable names must be identifiers, got {name!r}")


def _fmt_value(value: Any) -> str:
    """Format one cell for code output."""
    if value is None:
        return "None"
    if isinstance(value, (bool, np.bool_)):
        return repr(bool(value))
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        v = float(value)
        if math.isnan(v):
            return "float('nan')"
        if math.isinf(v):
            return "float('inf')" if v > 0 else "-float('inf')"
        return repr(v)
    if isinstance(value, pd.Timestamp):
        return f"pd.Timestamp({value.isoformat()!r})"
    return repr(value)


def _fmt_list(values: Any) -> str:
    return "[" + ", ".join(_fmt_value(v) for v in values) + "]"


def _column_code(series: pd.Series) -> str:
    if isinstance(series.dtype, pd.CategoricalDtype):
        values = [None if pd.isna(v) else v for v in series.tolist()]
        categories = _fmt_list(series.cat.categories.tolist())
        ordered = ", ordered=True" if series.cat.ordered else ""
        return f"pd.Categorical({_fmt_list(values)}, categories={categories}{ordered})"
    if pd.api.types.is_datetime64_any_dtype(series.dtype):
        return f"pd.to_datetime({_fmt_list(series.astype(str).tolist())})"
    return _fmt_list(series.tolist())


def dataframe_to_code(frame: pd.DataFrame, *, max_rows: Optional[int] = None) -> str:
    """Return a ``pd.DataFrame({...})`` literal equal to ``frame`` (index dropped).

    Raises
    ------
    ValueError
        If ``frame`` has more than ``max_rows`` rows or non-string column names.

    Examples
    --------
    >>> print(dataframe_to_code(pd.DataFrame({"x": [1, 2], "g": ["a", "b"]})))
    pd.DataFrame({
        'x': [1, 2],
        'g': ['a', 'b'],
    })
    """
    if max_rows is not None and len(frame) > max_rows:
        raise ValueError(
            f"Data has {len(frame)} rows, more than max_rows={max_rows}; "
            "pass include_data=False and supply the data yourself"
        )
    if not frame.columns.size:
        return "pd.DataFrame()"
    lines = ["pd.DataFrame({"]
    for name in frame.columns:
        if not isinstance(name, str):
            raise ValueError(f"Only string column names can be emitted as code, got {name!r}")
        lines.append(f"    {name!r}: {_column_code(frame[name])},")
    lines.append("})")
    return "\n".join(lines)


def _layer_data_code(layer: Layer, index: int, options: CodegenOptions, preamble: list[str]) -> Optional[str]:
    data = layer.data
    if data is None:
        return None
    if isinstance(data, pd.DataFrame):
        name = f"{options.layer_data_name}{index}"
        if options.include_data:
            preamble.append(f"{name} = {dataframe_to_code(data, max_rows=options.max_rows)}")
        return name
    # Callables are referenced by name and must be defined by the reader.
    return getattr(data, "__name__", repr(data))


def plot_to_code(plot: Union["PlotSnapshot", Any], options: Optional[CodegenOptions] = None) -> str:
    """Generate a self-contained Python script that recreates ``plot``.

    Parameters
    ----------
    plot : GGPlot or PlotSnapshot
        The plot to emit.
    options : CodegenOptions | None, optional
        Output-style configuration.

    Returns
    -------
    str
        Complete Python source code ending with the expression ``p``.
    """
    options = options or CodegenOptions()
    snapshot = plot if isinstance(plot, PlotSnapshot) else plot.snapshot()
    lines: list[str] = []

    if options.include_imports:
        lines.append("import pandas as pd")
        lines.append("from gg_toolkit import *")
        lines.append("")

    data_lines: list[str] = []
    if snapshot.data is not None and options.include_data:
        data_lines.append(
            f"{options.data_name} = {dataframe_to_code(snapshot.data, max_rows=options.max_rows)}"
        )

    components: list[str] = []
    for index, component in enumerate(snapshot.components):
        if isinstance(component, Layer):
            data_code = _layer_data_code(component, index, options, data_lines)
            components.append(component.to_code(data_code))
        else:
            components.append(repr(component))

    if data_lines:
        lines.append("# Data")
        lines.extend(data_lines)
        lines.append("")

    args = []
    if snapshot.data is not None:
        args.append(options.data_name)
    if len(snapshot.mapping):
        args.append(repr(snapshot.mapping))

    lines.append("# Plot")
    head = f"ggplot({', '.join(args)})"
    if not components:
        lines.append(f"p = {head}")
    else:
        lines.append("p = (")
        lines.append(f"    {head}")
        for code in components:
            lines.append(f"    + {code}")
        lines.append(")")
    lines.append("p")
    lines.append("")
    return "\n".join(lines)


__all__ = ["CodegenOptions", "dataframe_to_code", "plot_to_code"]
