"""Rendering a built plot to a ``plotly.graph_objects.Figure``."""

from __future__ import annotations

import logging
import time
from typing import Optional

import plotly.graph_objects as go

from .geoms import LEGEND_AESTHETICS, DrawContext
from .plot_build import BuiltPlot
from .theme_context import plot_defaults

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def _title(built: BuiltPlot) -> Optional[dict]:
    title = built.label("title")
    subtitle = built.label("subtitle")
    if title is None and subtitle is None:
        return None
    text = title or ""
    if subtitle:
        text = f"{text}<br><sup>{subtitle}</sup>" if text else f"<sup>{subtitle}</sup>"
    return {"text": text, "x": 0.0, "xanchor": "left"}


def _legend_title(built: BuiltPlot) -> Optional[str]:
    titles = []
    for aes in LEGEND_AESTHETICS:
        scale = built.scales.get(aes)
        if scale is None or not scale.discrete:
            continue
        label = built.label(aes)
        if label is not None and label not in titles:
            titles.append(label)
    return ", ".join(titles) if titles else None


def render(built: BuiltPlot) -> go.Figure:
    """Draw every layer of ``built`` and apply coordinates, labels and theme."""
    start = time.perf_counter()
    fig = go.Figure()
    coord = built.coord
    coord.train(built)

    shown: set[str] = set()
    for index, ld in enumerate(built.layers):
        if ld.data.empty:
            continue
        ctx = DrawContext(scales=built.scales, show_legend=ld.layer.show_legend, layer_index=index)
        marks = ld.geom.draw(ld.data, ld.style, ctx)
        for mark in marks:
            if mark.showlegend:
                if mark.legendgroup in shown:
                    mark.showlegend = False
                else:
                    shown.add(mark.legendgroup)
            coord.add_mark(fig, mark)
        logger.debug("layer %d (geom_%s): %d marks", index, ld.layer.geom, len(marks))

    coord.decorate(fig, built)

    defaults = plot_defaults()
    layout: dict = {"width": defaults.width, "height": defaults.height}
    title = _title(built)
    if title is not None:
        layout["title"] = title
    legend_title = _legend_title(built)
    layout["legend"] = {"title": {"text": legend_title}, "tracegroupgap": 0}
    layout["showlegend"] = bool(shown)
    fig.update_layout(**layout)

    caption = built.label("caption")
    if caption:
        fig.add_annotation(
            text=caption, xref="paper", yref="paper", x=1.0, y=-0.12,
            xanchor="right", yanchor="top", showarrow=False,
        )

    fig.update_layout(**built.theme.layout)
    logger.debug("rendered %d traces in %.4fs", len(fig.data), time.perf_counter() - start)
    return fig


__all__ = ["render"]
