"""Plot-style option contracts shared by every layer constructor.

This module centralizes the discoverable style keyword metadata, alias
resolution rules and unit conversions used when constant aesthetics
(``colour="steelblue"``, ``linewidth=2``) are turned into plotly trace
properties. Keeping them here gives tests a single place to lock style
semantics.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any, Optional

STYLE_OPTIONS: dict[str, str] = {
    "colour": "Stroke colour. Accepts CSS-like names (e.g., steelblue), hex (#RRGGBB), or rgb()/rgba() strings.",
    "color": "Alias for colour.",
    "fill": "Interior colour of bars, ribbons and boxes.",
    "alpha": "Opacity from 0.0 (fully transparent) to 1.0 (fully opaque).",
    "opacity": "Alias for alpha.",
    "linewidth": "Line width in millimetre-like grammar units; converted to pixels.",
    "size": "Point size in grammar units; alias for linewidth on line-like geoms.",
    "linetype": "Line pattern: solid, dashed, dotted, dotdash, longdash, twodash.",
    "shape": "Point shape: a plotly marker symbol name or a classic integer point code (0-25).",
    "width": "Bar or error-bar width as a fraction of the spacing between x positions.",
}

# Pixels per grammar unit (grammar units follow the millimetre-based convention).
PX_PER_LINEWIDTH = 96 / 25.4 * 0.75
PX_PER_POINT_SIZE = 96 / 72 * 72.27 / 25.4

LINETYPES: dict[str, str] = {
    "solid": "solid",
    "dashed": "dash",
    "dotted": "dot",
    "dotdash": "dashdot",
    "longdash": "longdash",
    "twodash": "longdashdot",
    "blank": "solid",
}

POINT_SHAPES: dict[int, str] = {
    0: "square-open",
    1: "circle-open",
    2: "triangle-up-open",
    3: "cross-thin-open",
    4: "x-thin-open",
    5: "diamond-open",
    6: "triangle-down-open",
    8: "asterisk-open",
    15: "square",
    16: "circle",
    17: "triangle-up",
    18: "diamond",
    19: "circle",
    20: "circle",
    21: "circle",
    22: "square",
    23: "diamond",
    24: "triangle-up",
    25: "triangle-down",
}

_ALIAS_PAIRS: tuple[tuple[str, str], ...] = (("colour", "color"), ("alpha", "opacity"))


def resolve_style_aliases(params: Mapping[str, Any], *, line_like: bool = False) -> dict[str, Any]:
    """Return ``params`` with style aliases folded into canonical names.

    ``size`` is an alias for ``linewidth`` on line-like geoms only; on points
    it keeps its own meaning.

    Raises
    ------
    ValueError
        If an alias and its canonical name are both provided with different values.
    """
    out = dict(params)
    pairs = _ALIAS_PAIRS + ((("linewidth", "size"),) if line_like else ())
    for canonical, alias in pairs:
        if alias not in out:
            continue
        value = out.pop(alias)
        if canonical in out and out[canonical] != value:
            raise ValueError(
                f"received both {canonical}= and {alias}= with different values; use only one."
            )
        out.setdefault(canonical, value)
    return out


def linewidth_px(value: Any) -> float:
    return float(value) * PX_PER_LINEWIDTH


def point_size_px(value: Any) -> float:
    return float(value) * PX_PER_POINT_SIZE


_GREY_RE = re.compile(r"^gr[ae]y(\d{1,3})$")


def css_colour(value: Any) -> Optional[str]:
    """Normalise a colour name for plotly.

    ``grey0``..``grey100`` (and ``gray``) become hex greys; ``None``/NaN stay
    ``None``; everything else is passed through unchanged.
    """
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    text = str(value).strip()
    m = _GREY_RE.match(text.lower())
    if m is not None:
        level = int(m.group(1))
        if level > 100:
            raise ValueError(f"Unknown colour {value!r}")
        v = round(255 * level / 100)
        return f"#{v:02X}{v:02X}{v:02X}"
    return text


def plotly_dash(linetype: Any) -> str:
    """Translate a grammar linetype into a plotly dash name."""
    if linetype is None:
        return "solid"
    key = str(linetype)
    if key in LINETYPES:
        return LINETYPES[key]
    if key in LINETYPES.values():
        return key
    raise ValueError(f"Unknown linetype {linetype!r}; expected one of {', '.join(LINETYPES)}")


def plotly_symbol(shape: Any) -> str:
    """Translate a point shape into a plotly marker symbol."""
    if shape is None:
        return "circle"
    if isinstance(shape, (int, float)) and not isinstance(shape, bool):
        code = int(shape)
        if code not in POINT_SHAPES:
            raise ValueError(f"Unknown point shape code {shape!r}")
        return POINT_SHAPES[code]
    return str(shape)


__all__ = [
    "LINETYPES",
    "POINT_SHAPES",
    "PX_PER_LINEWIDTH",
    "PX_PER_POINT_SIZE",
    "STYLE_OPTIONS",
    "css_colour",
    "linewidth_px",
    "plotly_dash",
    "plotly_symbol",
    "point_size_px",
    "resolve_style_aliases",
]
