"""Functional programming with plot objects.

Plots and components are plain values, so the usual functional tools apply:
map a list of components over a base plot, flatten component lists, or
partially apply a constructor so a project's house style lives in one place.

>>> import pandas as pd
>>> df = pd.DataFrame({"x": [1, 2, 3], "y": [3, 1, 2]})
>>> base = ggplot(df, aes("x", "y"))
>>> plots = plot_each(base, [geom_point(), geom_line()])
>>> [p.layers[0].geom for p in plots]
['point', 'line']
"""

from __future__ import annotations

import functools
from collections.abc import Iterable
from typing import Any, Callable

from .GGPlot import GGPlot
from .Layer import Layer, layer
from .geoms import get_geom

__all__ = ["combine", "layer_factory", "plot_each", "with_defaults"]


def _flatten(items: Iterable[Any]) -> Iterable[Any]:
    for item in items:
        if item is None:
            continue
        if isinstance(item, (list, tuple)):
            yield from _flatten(item)
        else:
            yield item


def combine(*components: Any) -> list[Any]:
    """Flatten components and lists of components into one list, dropping ``None``.

    >>> combine(None, [1, [2, None]], 3)
    [1, 2, 3]
    """
    return list(_flatten(components))


def plot_each(base: GGPlot, components: Iterable[Any]) -> list[GGPlot]:
    """Return ``base + c`` for every ``c`` in ``components``.

    Raises
    ------
    TypeError
        If ``base`` is not a plot.
    """
    if not isinstance(base, GGPlot):
        raise TypeError(f"plot_each() needs a plot as base, got {type(base).__name__}")
    return [base + c for c in components]


def with_defaults(factory: Callable[..., Any], **defaults: Any) -> Callable[..., Any]:
    """Partially apply keyword defaults; keyword arguments at call time win.

    Unlike :func:`functools.partial` the result keeps the factory's name and
    docstring.

    >>> big_points = with_defaults(geom_point, size=4)
    >>> big_points(size=1).params["size"]
    1
    """
    if not callable(factory):
        raise TypeError(f"with_defaults() needs a callable, got {type(factory).__name__}")

    @functools.wraps(factory)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return factory(*args, **{**defaults, **kwargs})

    wrapper.defaults = dict(defaults)  # type: ignore[attr-defined]
    return wrapper


def layer_factory(
    geom: str,
    *,
    stat: str | None = None,
    position: str | None = None,
    **defaults: Any,
) -> Callable[..., Layer]:
    """Build a ``geom_*``-style constructor for a registered geom with fixed defaults.

    The returned function takes ``(mapping=None, data=None, **params)`` and is
    named ``geom_<geom>``.

    Raises
    ------
    ValueError
        If ``geom`` is not registered.
    """
    spec = get_geom(geom)
    default_stat = stat if stat is not None else spec.default_stat
    default_position = position if position is not None else spec.default_position

    def constructor(mapping: Any = None, data: Any = None, **params: Any) -> Layer:
        chosen_stat = params.pop("stat", default_stat)
        chosen_position = params.pop("position", default_position)
        return layer(
            geom,
            chosen_stat,
            chosen_position,
            mapping,
            data,
            constructor=f"geom_{geom}",
            **{**defaults, **params},
        )

    constructor.__name__ = constructor.__qualname__ = f"geom_{geom}"
    constructor.__doc__ = f"``geom_{geom}`` layer with defaults {defaults!r}."
    return constructor
