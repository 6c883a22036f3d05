"""Immutable snapshot of a plot's reproducible state.

A ``PlotSnapshot`` captures everything needed to rebuild a plot: the default
data, default mapping, layers, scales, coordinate system, theme and labels.
Every component is already immutable, so the snapshot simply pins the tuple
of them; the data frame is copied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

import pandas as pd

from .Layer import Layer
from .aesthetics import Aes
from .coords import Coord
from .labels import Labels
from .scales import Scale
from .themes import Theme

if TYPE_CHECKING:
    from .GGPlot import GGPlot


@dataclass(frozen=True)
class PlotSnapshot:
    """Immutable record of one plot's state.

    Parameters
    ----------
    data : pandas.DataFrame or None
        Copy of the default data.
    mapping : Aes
        Default aesthetic mapping.
    layers : tuple[Layer, ...]
        Layers in drawing order.
    scales : tuple[Scale, ...]
        Explicit scales, at most one per aesthetic.
    coord : Coord or None
        Coordinate system, or ``None`` when the default was never replaced.
    theme : Theme or None
        Plot-level theme additions.
    labels : Labels
        Label overrides.
    """

    data: Optional[pd.DataFrame] = field(compare=False)
    mapping: Aes
    layers: tuple[Layer, ...]
    scales: tuple[Scale, ...]
    coord: Optional[Coord]
    theme: Optional[Theme]
    labels: Labels

    @classmethod
    def from_plot(cls, plot: "GGPlot") -> "PlotSnapshot":
        return cls(
            data=None if plot.data is None else plot.data.copy(),
            mapping=plot.mapping,
            layers=tuple(plot.layers),
            scales=tuple(plot.scales),
            coord=plot.coord if plot._coord_set else None,
            theme=plot.theme,
            labels=plot.labels,
        )

    def restore(self) -> "GGPlot":
        """Return a new plot equal to the one this snapshot was taken from."""
        from .GGPlot import GGPlot

        return GGPlot(
            None if self.data is None else self.data.copy(),
            self.mapping,
            layers=self.layers,
            scales=self.scales,
            coord=self.coord,
            theme=self.theme,
            labels=self.labels,
        )

    @property
    def components(self) -> tuple[Any, ...]:
        """Everything added after ``ggplot(...)``, in the order it is emitted as code."""
        out: list[Any] = list(self.layers)
        out.extend(self.scales)
        if self.coord is not None:
            out.append(self.coord)
        if len(self.labels):
            out.append(self.labels)
        if self.theme is not None:
            out.append(self.theme)
        return tuple(out)

    def __repr__(self) -> str:
        shape = None if self.data is None else self.data.shape
        return (
            f"PlotSnapshot(data={shape}, mapping={self.mapping!r}, "
            f"layers={len(self.layers)}, scales={len(self.scales)})"
        )
