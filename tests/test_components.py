from __future__ import annotations

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest
from scipy import stats

from gg_toolkit import (
    Labels,
    Layer,
    aes,
    bestfit,
    factor,
    geom_lm,
    geom_mean,
    geom_point,
    ggplot,
    pcp,
    pcp_data,
    piechart,
    quote,
    remove_labels,
    rescale01,
)


# -- reusable components ----------------------------------------------------

def test_bestfit_is_a_linear_smooth_without_band() -> None:
    assert isinstance(bestfit, Layer)
    assert bestfit.geom == "smooth"
    assert bestfit.params["method"] == "lm"
    assert bestfit.params["se"] is False
    assert bestfit.params["colour"] == "steelblue"
    assert bestfit.params["linewidth"] == 2


def test_geom_lm_defaults() -> None:
    layer = geom_lm()
    assert layer.params["method"] == "lm"
    assert layer.params["colour"] == "steelblue"
    assert layer.params["line_alpha"] == 0.5
    assert layer.params["linewidth"] == 2
    assert "formula" not in layer.params


def test_geom_lm_every_default_can_be_overridden() -> None:
    layer = geom_lm(colour="red", alpha=1.0, linewidth=0.5, se=True)
    assert layer.params["colour"] == "red"
    assert layer.params["line_alpha"] == 1.0
    assert layer.params["linewidth"] == 0.5
    assert "se" not in layer.params


def test_geom_lm_color_alias_overrides_colour_default() -> None:
    assert geom_lm(color="darkred").params["colour"] == "darkred"


def test_geom_lm_degree_builds_polynomial_formula() -> None:
    layer = geom_lm(degree=3)
    assert layer.params["formula"] == "y ~ poly(x, 3)"
    assert layer.params["degree"] == 3


def test_geom_lm_fits_in_a_plot(mpg_small) -> None:
    fig = (ggplot(mpg_small, aes("displ", "hwy")) + geom_point() + geom_lm()).figure()
    lines = [t for t in fig.data if isinstance(t, go.Scatter) and t.mode == "lines"]
    assert len(lines) == 1
    assert lines[0].opacity == pytest.approx(0.5)


def test_geom_mean_returns_bar_and_errorbar() -> None:
    bar, err = geom_mean()
    assert (bar.geom, bar.stat) == ("bar", "summary")
    assert bar.params["fun"] == "mean"
    assert bar.params["fill"] == "grey70"
    assert (err.geom, err.stat) == ("errorbar", "summary")
    assert err.params["fun_data"] == "mean_cl_normal"
    assert err.params["width"] == 0.4


def test_geom_mean_without_se_yields_none(mpg_small) -> None:
    parts = geom_mean(se=False)
    assert parts[1] is None
    p = ggplot(mpg_small, aes("drv", "hwy")) + parts
    assert len(p.layers) == 1


def test_geom_mean_shared_and_per_layer_params() -> None:
    bar, err = geom_mean(colour="black", bar_params={"fill": "steelblue"}, errorbar_params={"width": 0.2})
    assert bar.params["colour"] == "black"
    assert bar.params["fill"] == "steelblue"
    assert err.params["colour"] == "black"
    assert err.params["width"] == 0.2


def test_geom_mean_errorbars_are_t_intervals(mpg_small) -> None:
    built = (ggplot(mpg_small, aes("drv", "hwy")) + geom_mean()).build()
    levels = built.scales["x"].final_levels()
    err = built.layer_data(1).sort_values("x").reset_index(drop=True)
    for i, level in enumerate(levels):
        values = mpg_small.loc[mpg_small["drv"] == level, "hwy"].to_numpy()
        half = stats.t.ppf(0.975, len(values) - 1) * values.std(ddof=1) / np.sqrt(len(values))
        assert err.loc[i, "y"] == pytest.approx(values.mean())
        assert err.loc[i, "ymax"] == pytest.approx(values.mean() + half)
        assert err.loc[i, "ymin"] == pytest.approx(values.mean() - half)


def test_remove_labels_blanks_axis_titles(mpg_small) -> None:
    labels = remove_labels()
    assert isinstance(labels, Labels)
    built = (ggplot(mpg_small, aes("displ", "hwy")) + geom_point() + remove_labels()).build()
    assert built.label("x") is None
    assert built.label("y") is None


# -- plot functions --------------------------------------------------------

def test_piechart_draws_full_disc_of_polar_bars(mpg_small) -> None:
    fig = piechart(mpg_small, aes(x=factor(1), fill="drv")).figure()
    bars = [t for t in fig.data if isinstance(t, go.Barpolar)]
    assert len(bars) == 3
    assert sum(sum(t.width) for t in bars) == pytest.approx(360.0)
    assert {t.name for t in bars} == {"4", "f", "r"}
    for t in bars:
        assert t.base[0] == pytest.approx(0.0)
        assert t.r[0] == pytest.approx(1.0)


def test_piechart_binds_var_indirectly(mpg_small) -> None:
    p = piechart(mpg_small, var="drv")
    assert p.mapping["fill"].source == "drv"
    assert p.mapping["x"].source == "factor(1)"
    built = p.build()
    assert built.label("x") is None
    assert built.label("y") is None
    assert built.label("fill") == "drv"


def test_piechart_accepts_quoted_var(mpg_small) -> None:
    var = quote("factor(cyl)")
    built = piechart(mpg_small, var=var).build()
    assert built.scales["fill"].final_levels() == ["4", "6", "8"]


def test_rescale01_handles_nan_and_constants() -> None:
    np.testing.assert_allclose(rescale01([1.0, np.nan, 3.0]), [0.0, np.nan, 1.0])
    assert rescale01([5, 5, 5]).tolist() == [0.0, 0.0, 0.0]


def test_pcp_data_long_form(mpg_small) -> None:
    long = pcp_data(mpg_small)
    numeric = ["displ", "hwy", "cyl"]
    assert len(long) == len(mpg_small) * len(numeric)
    assert list(long["_var"].cat.categories) == numeric
    assert {"drv", "class", "_row", "_var", "_val"} <= set(long.columns)
    assert long["_val"].min() == 0.0
    assert long["_val"].max() == 1.0
    first = long[long["_row"] == "0"].set_index("_var")["_val"]
    assert first["displ"] == 0.0
    assert first["hwy"] == pytest.approx((29.0 - 12.0) / (31.0 - 12.0))


def test_pcp_data_constant_column_maps_to_zero() -> None:
    long = pcp_data(pd.DataFrame({"a": [1.0, 2.0], "b": [7.0, 7.0]}))
    assert long.loc[long["_var"] == "b", "_val"].tolist() == [0.0, 0.0]


def test_pcp_data_requires_numeric_columns() -> None:
    with pytest.raises(ValueError, match="numeric column"):
        pcp_data(pd.DataFrame({"a": ["x", "y"]}))
    with pytest.raises(TypeError, match="needs a DataFrame"):
        pcp_data([1, 2, 3])


def test_pcp_draws_one_line_per_row(mpg_small) -> None:
    built = pcp(mpg_small).build()
    data = built.layer_data(0)
    assert data["group"].nunique() == len(mpg_small)
    assert built.scales["x"].final_levels() == ["displ", "hwy", "cyl"]


def test_pcp_passes_mapping_to_lines(mpg_small) -> None:
    fig = pcp(mpg_small, aes(colour="drv"), alpha=0.5).figure()
    names = {t.name for t in fig.data if t.showlegend}
    assert names == {"4", "f", "r"}
