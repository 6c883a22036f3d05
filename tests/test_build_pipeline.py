from __future__ import annotations

import logging

import numpy as np
import pandas as pd
import pytest

from gg_toolkit import (
    UnboundVariableError,
    aes,
    geom_bar,
    geom_col,
    geom_hline,
    geom_line,
    geom_point,
    geom_smooth,
    ggplot,
    labs,
    scale_x_continuous,
    scale_x_log10,
    stat_summary,
    xlim,
)


def test_count_bars_use_discrete_positions(mpg_small) -> None:
    built = (ggplot(mpg_small, aes("class")) + geom_bar()).build()
    data = built.layer_data(0).sort_values("x")
    assert built.scales["x"].final_levels() == ["2seater", "compact", "midsize", "suv"]
    assert data["x"].tolist() == [1.0, 2.0, 3.0, 4.0]
    assert data["count"].tolist() == [1, 2, 2, 3]
    assert data["y"].tolist() == [1, 2, 2, 3]
    np.testing.assert_allclose(data["xmax"] - data["xmin"], 0.9)


def test_count_labels_default_to_count(mpg_small) -> None:
    built = (ggplot(mpg_small, aes("class")) + geom_bar()).build()
    assert built.label("x") == "class"
    assert built.label("y") == "count"


def test_labs_override_mapping_labels(mpg_small) -> None:
    built = (ggplot(mpg_small, aes("displ", "hwy / cyl")) + geom_point() + labs(y="ratio")).build()
    assert built.label("x") == "displ"
    assert built.label("y") == "ratio"


def test_scale_name_beats_labs(mpg_small) -> None:
    p = ggplot(mpg_small, aes("displ", "hwy")) + geom_point() + labs(x="from labs") + scale_x_continuous("from scale")
    assert p.build().label("x") == "from scale"


def test_stacked_bars_put_first_group_on_top() -> None:
    df = pd.DataFrame({"x": ["a", "a"], "g": ["first", "second"], "y": [1.0, 2.0]})
    built = (ggplot(df, aes("x", "y", fill="g")) + geom_col()).build()
    data = built.layer_data(0).set_index("fill")
    assert data.loc["second", "ymin"] == 0.0
    assert data.loc["second", "ymax"] == 2.0
    assert data.loc["first", "ymin"] == 2.0
    assert data.loc["first", "ymax"] == 3.0


def test_fill_position_normalises_stack() -> None:
    df = pd.DataFrame({"x": ["a", "a", "b"], "g": ["p", "q", "p"]})
    built = (ggplot(df, aes("x", fill="g")) + geom_bar(position="fill")).build()
    data = built.layer_data(0)
    tops = data.groupby("x")["ymax"].max()
    np.testing.assert_allclose(tops.to_numpy(), [1.0, 1.0])


def test_stat_summary_mean_per_x(mpg_small) -> None:
    built = (ggplot(mpg_small, aes("drv", "hwy")) + stat_summary(fun="mean", geom="bar")).build()
    data = built.layer_data(0).sort_values("x")
    levels = built.scales["x"].final_levels()
    means = mpg_small.groupby("drv")["hwy"].mean()
    assert data["y"].tolist() == pytest.approx([means[level] for level in levels])


def test_stat_summary_defaults_to_mean_se(mpg_small, caplog) -> None:
    with caplog.at_level(logging.INFO):
        built = (ggplot(mpg_small, aes("drv", "hwy")) + stat_summary()).build()
    assert "defaulting to mean_se" in caplog.text
    assert {"y", "ymin", "ymax"} <= set(built.layer_data(0).columns)


def test_smooth_lm_recovers_linear_fit() -> None:
    x = np.linspace(0.0, 10.0, 20)
    df = pd.DataFrame({"x": x, "y": 2.0 * x + 1.0})
    built = (ggplot(df, aes("x", "y")) + geom_smooth(method="lm")).build()
    data = built.layer_data(0)
    assert len(data) == 80
    np.testing.assert_allclose(data["y"], 2.0 * data["x"] + 1.0, atol=1e-8)
    np.testing.assert_allclose(data["ymax"] - data["ymin"], 0.0, atol=1e-6)


def test_smooth_polynomial_degree() -> None:
    x = np.linspace(-3.0, 3.0, 30)
    df = pd.DataFrame({"x": x, "y": x**2})
    built = (ggplot(df, aes("x", "y")) + geom_smooth(method="lm", formula="y ~ poly(x, 2)", se=False)).build()
    data = built.layer_data(0)
    np.testing.assert_allclose(data["y"], data["x"] ** 2, atol=1e-8)
    assert data["ymin"].isna().all()


def test_smooth_auto_logs_chosen_method(caplog) -> None:
    df = pd.DataFrame({"x": np.arange(10.0), "y": np.arange(10.0) ** 0.5})
    with caplog.at_level(logging.INFO):
        (ggplot(df, aes("x", "y")) + geom_smooth()).build()
    assert "method = 'loess'" in caplog.text


def test_smooth_rejects_bad_formula() -> None:
    with pytest.raises(ValueError, match="Unsupported smoothing formula"):
        geom_smooth(formula="y ~ log(x)")


def test_smooth_with_discrete_x_raises(mpg_small) -> None:
    with pytest.raises(ValueError, match="continuous x"):
        (ggplot(mpg_small, aes("class", "hwy")) + geom_smooth(method="lm")).build()


@pytest.mark.parametrize("method", ["lm", "loess"])
def test_smooth_skips_groups_with_too_few_points(method, caplog) -> None:
    df = pd.DataFrame(
        {
            "x": [1.0, 2.0, 3.0, 4.0, 5.0, 3.0],
            "y": [1.0, 3.0, 2.0, 5.0, 4.0, 2.0],
            "g": ["a"] * 5 + ["b"],
        }
    )
    with caplog.at_level(logging.INFO):
        built = (ggplot(df, aes("x", "y", colour="g")) + geom_smooth(method=method, se=False)).build()
    assert "stat_smooth: skipping group with 1 unique x values" in caplog.text
    assert f"method={method}" in caplog.text
    assert built.layer_data(0)["group"].unique().tolist() == [1]


def test_scoping_failure_surfaces_at_build(mpg_small) -> None:
    def scaled_line(n):
        return geom_line(aes(y="hwy / n", env=None))

    p = ggplot(mpg_small, aes("displ", "hwy")) + scaled_line(10)
    with pytest.raises(UnboundVariableError, match="object 'n' not found") as info:
        p.build()
    assert info.value.name == "n"


def test_helper_with_captured_environment_builds(mpg_small) -> None:
    def scaled_line(n):
        return geom_line(aes(y="hwy / n"))

    built = (ggplot(mpg_small, aes("displ", "hwy")) + scaled_line(10)).build()
    np.testing.assert_allclose(np.sort(built.layer_data(0)["y"]), np.sort(mpg_small["hwy"] / 10))


def test_missing_values_are_removed_with_info(caplog) -> None:
    df = pd.DataFrame({"x": [1.0, np.nan, 3.0], "y": [1.0, 2.0, 3.0]})
    with caplog.at_level(logging.INFO):
        built = (ggplot(df, aes("x", "y")) + geom_point()).build()
    assert len(built.layer_data(0)) == 2
    assert "Removed 1 rows" in caplog.text


def test_na_rm_silences_removal_message(caplog) -> None:
    df = pd.DataFrame({"x": [1.0, np.nan, 3.0], "y": [1.0, 2.0, 3.0]})
    with caplog.at_level(logging.INFO):
        (ggplot(df, aes("x", "y")) + geom_point(na_rm=True)).build()
    assert "Removed" not in caplog.text


def test_log10_scale_transforms_data() -> None:
    df = pd.DataFrame({"x": [1.0, 10.0, 100.0], "y": [1.0, 2.0, 3.0]})
    built = (ggplot(df, aes("x", "y")) + geom_point() + scale_x_log10()).build()
    np.testing.assert_allclose(built.layer_data(0)["x"], [0.0, 1.0, 2.0])


def test_xlim_censors_out_of_range_values() -> None:
    df = pd.DataFrame({"x": [1.0, 2.0, 3.0, 4.0], "y": [1.0, 2.0, 3.0, 4.0]})
    built = (ggplot(df, aes("x", "y")) + geom_point() + xlim(2, 3)).build()
    assert built.layer_data(0)["x"].tolist() == [2.0, 3.0]


def test_constant_parameter_overrides_mapping(mpg_small) -> None:
    built = (ggplot(mpg_small, aes("displ", "hwy", colour="drv")) + geom_point(colour="red")).build()
    assert "colour" not in built.layer_data(0).columns
    assert built.layers[0].style["colour"] == "red"


def test_hline_does_not_inherit_mapping(mpg_small) -> None:
    built = (ggplot(mpg_small, aes("displ", "hwy")) + geom_point() + geom_hline(yintercept=[20, 25])).build()
    assert built.layer_data(1)["yintercept"].tolist() == [20.0, 25.0]


def test_layer_data_function_receives_plot_data(mpg_small) -> None:
    def big_engines(df):
        return df[df["displ"] > 5]

    built = (ggplot(mpg_small, aes("displ", "hwy")) + geom_point(data=big_engines)).build()
    assert len(built.layer_data(0)) == 3


def test_missing_required_aesthetic_raises(mpg_small) -> None:
    with pytest.raises(ValueError, match="requires"):
        (ggplot(mpg_small, aes("displ")) + geom_point()).build()


def test_unknown_parameters_are_dropped_with_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        layer = geom_point(bogus=1)
    assert "bogus" not in layer.params
    assert "Ignoring unknown parameters: bogus" in caplog.text


def test_discrete_colour_scale_is_trained(mpg_small) -> None:
    built = (ggplot(mpg_small, aes("displ", "hwy", colour="drv")) + geom_point()).build()
    scale = built.scales["colour"]
    assert scale.discrete
    assert scale.final_levels() == ["4", "f", "r"]
