from __future__ import annotations

import pandas as pd
import pytest

from gg_toolkit import (
    aes,
    combine,
    geom_line,
    geom_point,
    geom_smooth,
    ggplot,
    labs,
    layer_factory,
    plot_each,
    with_defaults,
)


@pytest.fixture
def base() -> object:
    df = pd.DataFrame({"x": [1.0, 2.0, 3.0, 4.0], "y": [3.0, 1.0, 2.0, 5.0]})
    return ggplot(df, aes("x", "y"))


def test_plot_each_maps_components_over_base(base) -> None:
    plots = plot_each(base, [geom_point(), geom_line(), [geom_point(), labs(title="both")]])
    assert [len(p.layers) for p in plots] == [1, 1, 1]
    assert plots[2].labels["title"] == "both"
    assert len(base.layers) == 0


def test_plot_each_rejects_non_plot_base() -> None:
    with pytest.raises(TypeError, match="needs a plot"):
        plot_each(geom_point(), [geom_line()])


def test_combine_flattens_and_drops_none() -> None:
    a, b = geom_point(), geom_line()
    assert combine(a, None, [b, [None]]) == [a, b]


def test_combined_components_add_like_a_list(base) -> None:
    p = base + combine(geom_point(), None, geom_line())
    assert [layer.geom for layer in p.layers] == ["point", "line"]


def test_with_defaults_lets_caller_override() -> None:
    red_points = with_defaults(geom_point, colour="red", size=3)
    assert red_points.__name__ == "geom_point"
    assert red_points().params["colour"] == "red"
    assert red_points(colour="blue").params["colour"] == "blue"
    assert red_points.defaults == {"colour": "red", "size": 3}


def test_with_defaults_passes_positional_arguments() -> None:
    smooth = with_defaults(geom_smooth, method="lm", se=False)
    layer = smooth(aes("x", "y"))
    assert layer.mapping["x"].source == "x"
    assert layer.params["method"] == "lm"


def test_with_defaults_requires_callable() -> None:
    with pytest.raises(TypeError, match="needs a callable"):
        with_defaults("geom_point")


def test_layer_factory_builds_named_constructor(base) -> None:
    geom_dashed = layer_factory("line", linetype="dashed", colour="grey50")
    assert geom_dashed.__name__ == "geom_line"
    layer = geom_dashed(colour="black")
    assert layer.geom == "line"
    assert layer.params == {"linetype": "dashed", "colour": "black"}
    fig = (base + geom_dashed()).figure()
    assert fig.data[0].line.dash == "dash"


def test_layer_factory_rejects_unknown_geom() -> None:
    with pytest.raises(ValueError, match="Unknown geom"):
        layer_factory("hexagon")
