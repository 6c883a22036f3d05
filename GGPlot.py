"""
GGPlot: immutable plot values composed with ``+``
================================================

Purpose
-------
A plot is a value: default data, a default aesthetic mapping and a list of
components (layers, scales, coordinates, theme, labels). ``plot + component``
returns a *new* plot, so helpers can build and return plots or components
freely, and the same base plot can be extended in several directions.

Composition rules
-----------------
- :class:`~gg_toolkit.Layer.Layer` objects are appended in order.
- A :class:`~gg_toolkit.scales.Scale` replaces any earlier scale for the same
  aesthetic (an info message is logged).
- A coordinate system replaces the current one.
- :class:`~gg_toolkit.themes.Theme` objects merge (complete themes replace).
- :class:`~gg_toolkit.labels.Labels` merge; ``None`` removes a label.
- An :class:`~gg_toolkit.aesthetics.Aes` updates the default mapping.
- Lists and tuples are added element by element (nested lists flatten) and
  ``None`` is ignored, so a helper can return ``[layer, None if cond else other]``.
- Any object with a ``__gg_add__(plot)`` method may return the new plot.
- Anything else raises :class:`TypeError`.

Examples
--------
>>> import pandas as pd
>>> df = pd.DataFrame({"x": [1, 2, 3], "y": [2, 4, 3]})
>>> p = ggplot(df, aes("x", "y")) + [geom_point(), None, geom_line(colour="red")]
>>> len(p.layers)
2
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd
import plotly.graph_objects as go

from .Layer import Layer
from .aesthetics import Aes, aes
from .coords import Coord, CoordCartesian
from .expressions import CALLER, resolve_environment
from .labels import Labels
from .scales import Scale, add_scale
from .themes import Theme

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def _coerce_data(data: Any) -> Optional[pd.DataFrame]:
    if data is None or isinstance(data, pd.DataFrame):
        return data
    if isinstance(data, Mapping):
        return pd.DataFrame(data)
    raise TypeError(
        f"ggplot() data must be a pandas DataFrame or a mapping of columns, got {type(data).__name__}"
    )


class GGPlot:
    """An immutable plot specification. Build one with :func:`ggplot`."""

    __slots__ = ("data", "mapping", "layers", "scales", "coord", "theme", "labels", "_coord_set")

    def __init__(
        self,
        data: Optional[pd.DataFrame] = None,
        mapping: Optional[Aes] = None,
        *,
        layers: tuple[Layer, ...] = (),
        scales: tuple[Scale, ...] = (),
        coord: Optional[Coord] = None,
        theme: Optional[Theme] = None,
        labels: Optional[Labels] = None,
    ) -> None:
        self.data = _coerce_data(data)
        self.mapping = mapping if mapping is not None else Aes()
        if not isinstance(self.mapping, Aes):
            raise TypeError(f"mapping must be created by aes(), got {type(self.mapping).__name__}")
        self.layers = tuple(layers)
        self.scales = tuple(scales)
        self._coord_set = coord is not None
        self.coord = coord if coord is not None else CoordCartesian()
        self.theme = theme
        self.labels = labels if labels is not None else Labels()

    def _replace(self, **changes: Any) -> "GGPlot":
        fields = {
            "data": self.data,
            "mapping": self.mapping,
            "layers": self.layers,
            "scales": self.scales,
            "coord": self.coord if self._coord_set else None,
            "theme": self.theme,
            "labels": self.labels,
        }
        fields.update(changes)
        data = fields.pop("data")
        mapping = fields.pop("mapping")
        return GGPlot(data, mapping, **fields)

    # -- composition -------------------------------------------------------

    def add(self, component: Any) -> "GGPlot":
        """Return a new plot with ``component`` added (see module docs for the rules)."""
        if component is None:
            return self
        if isinstance(component, (list, tuple)):
            out = self
            for item in component:
                out = out.add(item)
            return out
        if isinstance(component, GGPlot):
            raise TypeError(
                "Cannot add two plots together. Did you mean to add the components of one plot to the other?"
            )
        if isinstance(component, Layer):
            return self._replace(layers=self.layers + (component,))
        if isinstance(component, Scale):
            return self._replace(scales=add_scale(self.scales, component))
        if isinstance(component, Coord):
            if self._coord_set:
                logger.info(
                    "Coordinate system already present. "
                    "Adding new coordinate system, which will replace the existing one."
                )
            return self._replace(coord=component)
        if isinstance(component, Theme):
            return self._replace(theme=component if self.theme is None else self.theme + component)
        if isinstance(component, Labels):
            return self._replace(labels=self.labels + component)
        if isinstance(component, Aes):
            return self._replace(mapping=self.mapping.merge(component))
        hook = getattr(component, "__gg_add__", None)
        if callable(hook):
            result = hook(self)
            if not isinstance(result, GGPlot):
                raise TypeError(
                    f"{type(component).__name__}.__gg_add__ must return a plot, got {type(result).__name__}"
                )
            return result
        raise TypeError(f"Can't add an object of type {type(component).__name__} to a plot.")

    def __add__(self, component: Any) -> "GGPlot":
        return self.add(component)

    def with_data(self, data: Any) -> "GGPlot":
        """Return the same plot drawn with new default data."""
        if data is None:
            raise TypeError("with_data() needs a DataFrame or a mapping of columns")
        return self._replace(data=_coerce_data(data))

    # -- building and rendering -------------------------------------------

    def build(self, *, theme: Optional[Theme] = None):
        """Evaluate every layer; returns a :class:`~gg_toolkit.plot_build.BuiltPlot`."""
        from .plot_build import build_plot

        return build_plot(self, theme=theme)

    def figure(self, *, theme: Optional[Theme] = None) -> go.Figure:
        """Render to a new plotly figure."""
        from .plot_render import render

        return render(self.build(theme=theme))

    def show(self, **kwargs: Any) -> None:
        self.figure().show(**kwargs)

    def save(self, path: Union[str, Path], **kwargs: Any) -> Path:
        """Write the plot to ``path``: ``.html`` via plotly, other suffixes via image export."""
        target = Path(path)
        fig = self.figure()
        if target.suffix.lower() in (".html", ".htm"):
            fig.write_html(str(target), **kwargs)
        else:
            fig.write_image(str(target), **kwargs)
        logger.debug("saved plot to %s", target)
        return target

    def _repr_mimebundle_(self, include: Any = None, exclude: Any = None, **kwargs: Any) -> dict:
        return self.figure()._repr_mimebundle_(include, exclude, **kwargs)

    # -- reproducibility --------------------------------------------------

    def snapshot(self):
        """Immutable record of this plot; see :class:`~gg_toolkit.PlotSnapshot.PlotSnapshot`."""
        from .PlotSnapshot import PlotSnapshot

        return PlotSnapshot.from_plot(self)

    def to_code(self, **options: Any) -> str:
        """Python source that rebuilds this plot."""
        from .codegen import CodegenOptions, plot_to_code

        return plot_to_code(self, CodegenOptions(**options))

    def __repr__(self) -> str:
        data = "no data" if self.data is None else f"data {self.data.shape[0]}x{self.data.shape[1]}"
        return f"<GGPlot: {data}, {self.mapping!r}, {len(self.layers)} layer(s)>"


def ggplot(data: Any = None, mapping: Any = None, *, env: Any = CALLER, **aesthetics: Any) -> GGPlot:
    """Start a plot.

    Parameters
    ----------
    data : DataFrame or mapping of columns, optional
        Default data for every layer.
    mapping : Aes, optional
        Default aesthetic mapping (from :func:`aes`).
    env : Mapping, None, or CALLER
        Environment for ``**aesthetics`` (see :func:`aes`).
    **aesthetics
        Shorthand for ``mapping=aes(**aesthetics)``.

    Raises
    ------
    TypeError
        If ``data`` or ``mapping`` has an unsupported type.
    """
    if isinstance(data, Aes) and mapping is None:
        data, mapping = None, data
    if mapping is not None and not isinstance(mapping, Aes):
        raise TypeError(f"mapping must be created by aes(), got {type(mapping).__name__}")
    if aesthetics:
        captured = resolve_environment(env, stacklevel=1)
        extra = aes(env=captured, **aesthetics)
        mapping = extra if mapping is None else mapping.merge(extra)
    return GGPlot(data, mapping)


__all__ = ["GGPlot", "ggplot"]
