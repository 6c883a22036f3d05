"""Reusable components: small functions that return layers, or lists of them.

Every helper calls the underlying grammar with defaults that the caller can
override. Lists returned here can be added to a plot directly; ``None``
entries are skipped, so optional pieces are written as
``[a, b if cond else None]``.

Examples
--------
>>> import pandas as pd
>>> df = pd.DataFrame({"cls": ["a", "a", "b"], "hwy": [20.0, 24.0, 30.0]})
>>> p = ggplot(df, aes("cls", "hwy")) + geom_mean(se=False)
>>> [layer.geom for layer in p.layers]
['bar']
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from .Layer import Layer, geom_smooth, stat_summary
from .labels import Labels, labs
from .plot_style import resolve_style_aliases

__all__ = ["bestfit", "geom_lm", "geom_mean", "remove_labels"]


def _styled(defaults: Mapping[str, Any], overrides: Mapping[str, Any], *, line_like: bool = True) -> dict[str, Any]:
    """Merge style dicts after folding aliases, so ``color=`` overrides a ``colour`` default."""
    base = resolve_style_aliases(defaults, line_like=line_like)
    base.update(resolve_style_aliases(overrides, line_like=line_like))
    return base


#: A linear line of best fit without a confidence band.
bestfit: Layer = geom_smooth(method="lm", se=False, colour="steelblue", line_alpha=0.5, linewidth=2)


def geom_lm(
    formula: str = "y ~ x",
    colour: str = "steelblue",
    alpha: float = 0.5,
    linewidth: float = 2,
    *,
    degree: Optional[int] = None,
    **kwargs: Any,
) -> Layer:
    """A least-squares smoothing line with fixed styling defaults.

    Parameters
    ----------
    formula : str
        Model formula; ``"y ~ x"`` or ``"y ~ poly(x, k)"``.
    colour, alpha, linewidth
        Line styling. ``alpha`` is the opacity of the line itself.
    degree : int, optional
        Polynomial degree; shorthand for ``formula="y ~ poly(x, degree)"``.
    **kwargs
        Passed to :func:`geom_smooth`, overriding the defaults above
        (``se=True`` adds the confidence band, ``color=`` works too).

    Examples
    --------
    >>> geom_lm(degree=2).params["degree"]
    2
    """
    if degree is not None:
        formula = f"y ~ poly(x, {int(degree)})"
    options = {"method": "lm", "se": False, "formula": formula, "degree": degree}
    for key in ("method", "se", "formula", "level", "n", "span", "mapping", "data"):
        if key in kwargs:
            options[key] = kwargs.pop(key)
    style = _styled({"colour": colour, "line_alpha": alpha, "linewidth": linewidth}, kwargs)
    return geom_smooth(**options, **style)


def geom_mean(
    se: bool = True,
    *,
    bar_params: Optional[Mapping[str, Any]] = None,
    errorbar_params: Optional[Mapping[str, Any]] = None,
    **params: Any,
) -> list[Optional[Layer]]:
    """Bars at the group means, with 95% normal confidence intervals on top.

    ``params`` go to both layers; ``bar_params`` and ``errorbar_params``
    override them for one layer only. With ``se=False`` the second element is
    ``None``.
    """
    bar = _styled({"fill": "grey70"}, {**params, **(bar_params or {})}, line_like=False)
    bar_layer = stat_summary(fun="mean", geom="bar", **bar)
    if not se:
        return [bar_layer, None]
    shared = {k: v for k, v in params.items() if k != "fill"}
    err = _styled({"width": 0.4}, {**shared, **(errorbar_params or {})})
    err_layer = stat_summary(fun_data="mean_cl_normal", geom="errorbar", **err)
    return [bar_layer, err_layer]


def remove_labels() -> Labels:
    """Remove the ``x`` and ``y`` axis titles."""
    return labs(x=None, y=None)
