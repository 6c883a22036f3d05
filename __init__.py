"""Top-level public API for the ``gg_toolkit`` package.

This module re-exports the grammar (``ggplot``, ``aes``, ``geom_*``,
``stat_*``, ``scale_*``, ``coord_*``, ``theme_*``, ``labs``) together with the
programming helpers built on it, so users can import from a single namespace:

>>> from gg_toolkit import ggplot, aes, geom_point, geom_lm  # doctest: +SKIP

It also exposes lower-level building blocks (deferred aesthetic expressions,
the build step and code generation) for advanced integrations.
"""

from . import numpify as numpify_module
from .GGPlot import GGPlot, ggplot
from .Layer import (
    Layer,
    geom_bar,
    geom_boxplot,
    geom_col,
    geom_errorbar,
    geom_hline,
    geom_line,
    geom_path,
    geom_point,
    geom_pointrange,
    geom_smooth,
    geom_vline,
    layer,
    stat_smooth,
    stat_summary,
)
from .NamedFunction import NamedFunction as NamedFunction
from .PlotSnapshot import PlotSnapshot
from .aesthetics import Aes, aes
from .codegen import CodegenOptions, dataframe_to_code, plot_to_code
from .components import bestfit, geom_lm, geom_mean, remove_labels
from .coords import coord_cartesian, coord_fixed, coord_flip, coord_polar
from .expressions import (
    CALLER,
    DATA,
    AesExpression,
    UnboundVariableError,
    columns,
    cut_width,
    factor,
    quote,
    substitute,
)
from .functional import combine, layer_factory, plot_each, with_defaults
from .labels import Labels, ggtitle, labs, xlab, ylab
from .numpify import numpify, numpify_cached
from .plot_build import BuiltPlot, build_plot
from .plot_functions import pcp, pcp_data, piechart, rescale01
from .scales import (
    Scale,
    scale_color_discrete,
    scale_color_gradient,
    scale_color_manual,
    scale_colour_discrete,
    scale_colour_gradient,
    scale_colour_manual,
    scale_fill_discrete,
    scale_fill_gradient,
    scale_fill_manual,
    scale_x_continuous,
    scale_x_discrete,
    scale_x_log10,
    scale_x_sqrt,
    scale_y_continuous,
    scale_y_discrete,
    scale_y_log10,
    scale_y_sqrt,
    waiver,
    xlim,
    ylim,
)
from .stats import mean_cl_normal, mean_sdl, mean_se, median_hilow
from .theme_context import (
    PlotDefaults,
    plot_defaults,
    set_plot_defaults,
    theme_get,
    theme_set,
    theme_update,
    use_theme,
)
from .themes import (
    Theme,
    theme,
    theme_bw,
    theme_classic,
    theme_gray,
    theme_grey,
    theme_minimal,
    theme_void,
)

__all__ = [
    "Aes",
    "AesExpression",
    "BuiltPlot",
    "CALLER",
    "CodegenOptions",
    "DATA",
    "GGPlot",
    "Labels",
    "Layer",
    "NamedFunction",
    "PlotDefaults",
    "PlotSnapshot",
    "Scale",
    "Theme",
    "UnboundVariableError",
    "aes",
    "bestfit",
    "build_plot",
    "columns",
    "combine",
    "coord_cartesian",
    "coord_fixed",
    "coord_flip",
    "coord_polar",
    "cut_width",
    "dataframe_to_code",
    "factor",
    "geom_bar",
    "geom_boxplot",
    "geom_col",
    "geom_errorbar",
    "geom_hline",
    "geom_line",
    "geom_lm",
    "geom_mean",
    "geom_path",
    "geom_point",
    "geom_pointrange",
    "geom_smooth",
    "geom_vline",
    "ggplot",
    "ggtitle",
    "labs",
    "layer",
    "layer_factory",
    "mean_cl_normal",
    "mean_sdl",
    "mean_se",
    "median_hilow",
    "numpify",
    "numpify_cached",
    "pcp",
    "pcp_data",
    "piechart",
    "plot_defaults",
    "plot_each",
    "plot_to_code",
    "quote",
    "remove_labels",
    "rescale01",
    "scale_color_discrete",
    "scale_color_gradient",
    "scale_color_manual",
    "scale_colour_discrete",
    "scale_colour_gradient",
    "scale_colour_manual",
    "scale_fill_discrete",
    "scale_fill_gradient",
    "scale_fill_manual",
    "scale_x_continuous",
    "scale_x_discrete",
    "scale_x_log10",
    "scale_x_sqrt",
    "scale_y_continuous",
    "scale_y_discrete",
    "scale_y_log10",
    "scale_y_sqrt",
    "set_plot_defaults",
    "stat_smooth",
    "stat_summary",
    "substitute",
    "theme",
    "theme_bw",
    "theme_classic",
    "theme_get",
    "theme_gray",
    "theme_grey",
    "theme_minimal",
    "theme_set",
    "theme_update",
    "theme_void",
    "use_theme",
    "waiver",
    "with_defaults",
    "xlab",
    "xlim",
    "ylab",
    "ylim",
]
