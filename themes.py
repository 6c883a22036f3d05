"""Themes: non-data appearance of a plot, expressed as plotly layout overrides.

A partial theme (``theme(legend_position="bottom")``) is merged into the
current theme; a complete theme (``theme_bw()``) replaces it. Layout entries
use plotly ``update_layout`` keywords, including the magic-underscore form
(``title_font_size=18``) and nested dictionaries.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

_LEGEND_POSITIONS: dict[str, dict[str, Any]] = {
    "none": {"showlegend": False},
    "right": {
        "showlegend": True,
        "legend": {"orientation": "v", "x": 1.02, "xanchor": "left", "y": 1.0, "yanchor": "top"},
    },
    "left": {
        "showlegend": True,
        "legend": {"orientation": "v", "x": -0.15, "xanchor": "right", "y": 1.0, "yanchor": "top"},
    },
    "bottom": {
        "showlegend": True,
        "legend": {"orientation": "h", "x": 0.5, "xanchor": "center", "y": -0.2, "yanchor": "top"},
    },
    "top": {
        "showlegend": True,
        "legend": {"orientation": "h", "x": 0.5, "xanchor": "center", "y": 1.02, "yanchor": "bottom"},
    },
}


def merge_layout(base: Mapping[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge two layout dictionaries; ``update`` wins."""
    out = dict(base)
    for key, value in update.items():
        if isinstance(value, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = merge_layout(out[key], value)
        else:
            out[key] = value
    return out


@dataclass(frozen=True, eq=False)
class Theme:
    """Plotly layout overrides plus a ``complete`` flag."""

    layout: Mapping[str, Any] = field(default_factory=dict)
    complete: bool = False
    name: Optional[str] = None

    def __add__(self, other: Any) -> "Theme":
        if not isinstance(other, Theme):
            return NotImplemented
        if other.complete:
            return other
        name = f"{self.name} + {other!r}" if self.name is not None else None
        return Theme(merge_layout(self.layout, other.layout), complete=self.complete, name=name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Theme):
            return NotImplemented
        return (self.layout, self.complete, self.name) == (other.layout, other.complete, other.name)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self.name is not None:
            return self.name
        inner = ", ".join(f"{k}={v!r}" for k, v in self.layout.items())
        return f"theme({inner})"


def theme(*, legend_position: Optional[str] = None, **layout: Any) -> Theme:
    """Build a partial theme.

    Parameters
    ----------
    legend_position : {"none", "right", "left", "bottom", "top"}, optional
        Where the legend goes; ``"none"`` hides it.
    **layout
        Any plotly ``update_layout`` keyword (``font_size=14``,
        ``plot_bgcolor="white"``, ``xaxis={"showgrid": False}``).

    Examples
    --------
    >>> theme(legend_position="none")
    theme(showlegend=False)
    """
    out: dict[str, Any] = {}
    if legend_position is not None:
        if legend_position not in _LEGEND_POSITIONS:
            raise ValueError(
                f"legend_position must be one of {', '.join(_LEGEND_POSITIONS)}, got {legend_position!r}"
            )
        out = merge_layout(out, _LEGEND_POSITIONS[legend_position])
    return Theme(merge_layout(out, layout))


def _complete(name: str, base_size: float, layout: Mapping[str, Any]) -> Theme:
    call = name if base_size == 11 else f"{name.removesuffix('()')}(base_size={base_size!r})"
    return Theme(merge_layout({"font": {"size": base_size * 96 / 72}}, layout), complete=True, name=call)


def theme_grey(base_size: float = 11) -> Theme:
    """The default theme: grey panel, white grid lines."""
    return _complete("theme_grey()", base_size, {"template": "ggplot2"})


theme_gray = theme_grey


def theme_bw(base_size: float = 11) -> Theme:
    """White panel with a dark border and light grid lines."""
    axis = {"showline": True, "mirror": True, "linecolor": "#333333", "gridcolor": "#EBEBEB", "zeroline": False}
    return _complete(
        "theme_bw()",
        base_size,
        {"template": "plotly_white", "xaxis": axis, "yaxis": axis},
    )


def theme_minimal(base_size: float = 11) -> Theme:
    return _complete("theme_minimal()", base_size, {"template": "plotly_white"})


def theme_classic(base_size: float = 11) -> Theme:
    """Axis lines and no grid."""
    return _complete("theme_classic()", base_size, {"template": "simple_white"})


def theme_void(base_size: float = 11) -> Theme:
    """Nothing but the data: no axes, grid or background (useful for pie charts)."""
    hidden = {"visible": False}
    return _complete(
        "theme_void()",
        base_size,
        {
            "template": "none",
            "xaxis": hidden,
            "yaxis": hidden,
            "plot_bgcolor": "white",
            "paper_bgcolor": "white",
            "polar": {"angularaxis": hidden, "radialaxis": hidden, "bgcolor": "white"},
        },
    )


__all__ = [
    "Theme",
    "merge_layout",
    "theme",
    "theme_bw",
    "theme_classic",
    "theme_gray",
    "theme_grey",
    "theme_minimal",
    "theme_void",
]
