"""Position adjustments: ``identity``, ``stack`` and ``fill``."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def position_identity(data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    return data


def _stack_values(data: pd.DataFrame, *, reverse: bool, normalise: bool) -> pd.DataFrame:
    if data.empty or "y" not in data.columns:
        return data
    out = data.reset_index(drop=True)
    heights = out["y"].to_numpy(dtype=float)
    ymin = np.full(len(out), np.nan)
    ymax = np.full(len(out), np.nan)

    # The first group ends up on top unless reverse=True.
    ordered = out.sort_values(["x", "group"], ascending=[True, reverse], kind="mergesort")
    for _, block in ordered.groupby("x", sort=False):
        rows = block.index.to_numpy()
        pos_total = 0.0
        neg_total = 0.0
        for row in rows:
            h = heights[row]
            if np.isnan(h):
                continue
            if h >= 0:
                ymin[row], ymax[row] = pos_total, pos_total + h
                pos_total += h
            else:
                ymin[row], ymax[row] = neg_total + h, neg_total
                neg_total += h
        if normalise and pos_total - neg_total:
            ymin[rows] /= pos_total - neg_total
            ymax[rows] /= pos_total - neg_total

    out["ymin"] = ymin
    out["ymax"] = ymax
    out["y"] = ymax
    return out


def position_stack(data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    """Stack overlapping objects on top of one another, per x position."""
    return _stack_values(data, reverse=bool(params.get("reverse", False)), normalise=False)


def position_fill(data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    """Stack and rescale every x position to a total height of one."""
    return _stack_values(data, reverse=bool(params.get("reverse", False)), normalise=True)


POSITIONS: dict[str, Callable[[pd.DataFrame, Mapping[str, Any]], pd.DataFrame]] = {
    "identity": position_identity,
    "stack": position_stack,
    "fill": position_fill,
}


def get_position(name: str) -> Callable[[pd.DataFrame, Mapping[str, Any]], pd.DataFrame]:
    try:
        return POSITIONS[name]
    except KeyError:
        raise ValueError(f"Unknown position {name!r}; expected one of: {', '.join(POSITIONS)}") from None


__all__ = ["POSITIONS", "get_position", "position_fill", "position_identity", "position_stack"]
