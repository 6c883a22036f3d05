"""Theme context stack and plot defaults.

The current theme is the top of a thread-local override stack pushed with
:func:`use_theme`, else the process-wide theme set with :func:`theme_set`
(initially :func:`~gg_toolkit.themes.theme_grey`). Plots read it when they
are rendered, not when they are built, so ``theme_set`` affects every plot
shown afterwards.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Optional

from .themes import Theme, theme, theme_grey

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_THEME_STACK_LOCAL = threading.local()
_GLOBAL_LOCK = threading.Lock()
_global_theme: Theme = theme_grey()


@dataclass(frozen=True)
class PlotDefaults:
    """Figure-level defaults read at render time.

    Parameters
    ----------
    width, height : int or None
        Figure size in pixels; ``None`` lets plotly size the figure.
    smooth_points : int
        Evaluation points along x for smoothers without an explicit ``n``.
    """

    width: Optional[int] = None
    height: Optional[int] = 450
    smooth_points: int = 80


_global_defaults = PlotDefaults()


def _theme_stack() -> list[Theme]:
    """Return a thread-local theme stack."""
    stack = getattr(_THEME_STACK_LOCAL, "stack", None)
    if stack is None:
        stack = []
        _THEME_STACK_LOCAL.stack = stack
    return stack


def theme_get() -> Theme:
    """Return the theme currently in effect."""
    stack = _theme_stack()
    if stack:
        return stack[-1]
    return _global_theme


def theme_set(new: Theme) -> Theme:
    """Replace the process-wide theme and return the previous one.

    A partial theme is added to the current global theme.

    Raises
    ------
    TypeError
        If ``new`` is not a :class:`Theme`.
    """
    global _global_theme
    if not isinstance(new, Theme):
        raise TypeError(f"theme_set() expects a Theme, got {type(new).__name__}")
    with _GLOBAL_LOCK:
        old = _global_theme
        _global_theme = old + new
    logger.debug("theme_set: %r -> %r", old, _global_theme)
    return old


def theme_update(**layout: Any) -> Theme:
    """Merge layout overrides into the process-wide theme; return the previous theme."""
    return theme_set(theme(**layout))


def _push_theme(t: Theme) -> None:
    _theme_stack().append(t)


def _pop_theme(t: Theme) -> None:
    """Remove a specific theme from the stack if present."""
    stack = _theme_stack()
    if not stack:
        return
    if stack[-1] is t:
        stack.pop()
        return
    for i in range(len(stack) - 1, -1, -1):
        if stack[i] is t:
            del stack[i]
            break


@contextmanager
def use_theme(t: Theme) -> Iterator[Theme]:
    """Context manager that temporarily sets the current theme in this thread.

    Yields
    ------
    Theme
        The effective theme inside the block (``t`` added to the current one).
    """
    if not isinstance(t, Theme):
        raise TypeError(f"use_theme() expects a Theme, got {type(t).__name__}")
    effective = theme_get() + t
    _push_theme(effective)
    try:
        yield effective
    finally:
        _pop_theme(effective)


def plot_defaults() -> PlotDefaults:
    return _global_defaults


def set_plot_defaults(**changes: Any) -> PlotDefaults:
    """Update the figure defaults; returns the previous defaults."""
    global _global_defaults
    with _GLOBAL_LOCK:
        old = _global_defaults
        _global_defaults = replace(old, **changes)
    return old


__all__ = [
    "PlotDefaults",
    "plot_defaults",
    "set_plot_defaults",
    "theme_get",
    "theme_set",
    "theme_update",
    "use_theme",
]
