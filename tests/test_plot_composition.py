from __future__ import annotations

import logging

import pandas as pd
import pytest

from gg_toolkit import (
    GGPlot,
    aes,
    coord_flip,
    coord_polar,
    geom_line,
    geom_point,
    ggplot,
    labs,
    scale_colour_manual,
    scale_x_log10,
    theme,
    theme_bw,
    xlab,
)
from gg_toolkit.aesthetics import Aes


@pytest.fixture
def df() -> pd.DataFrame:
    return pd.DataFrame({"x": [1.0, 2.0, 3.0], "y": [2.0, 4.0, 3.0], "g": ["a", "b", "a"]})


def test_aes_standardises_aliases() -> None:
    mapping = aes("x", "y", color="g", lwd="y")
    assert set(mapping) == {"x", "y", "colour", "linewidth"}
    assert "color" in mapping
    assert mapping["color"].source == "g"


def test_aes_repr_is_valid_code() -> None:
    assert repr(aes("displ", "hwy", colour="factor(cyl)")) == "aes(x='displ', y='hwy', colour='factor(cyl)')"


def test_aes_merge_overrides_and_keeps_order() -> None:
    merged = aes("a", "b") + aes(y="c", fill="d")
    assert list(merged) == ["x", "y", "fill"]
    assert merged["y"].source == "c"


def test_adding_returns_new_plot(df) -> None:
    base = ggplot(df, aes("x", "y"))
    p = base + geom_point()
    assert isinstance(p, GGPlot)
    assert len(base.layers) == 0
    assert len(p.layers) == 1


def test_lists_nest_and_none_is_ignored(df) -> None:
    p = ggplot(df, aes("x", "y")) + [geom_point(), None, [geom_line(), [None]]] + None
    assert [layer.geom for layer in p.layers] == ["point", "line"]


def test_tuple_of_components_is_added_in_order(df) -> None:
    p = ggplot(df) + (geom_line(aes("x", "y")), labs(title="T"), theme_bw())
    assert p.layers[0].geom == "line"
    assert p.labels["title"] == "T"
    assert p.theme is not None


def test_adding_two_plots_raises(df) -> None:
    with pytest.raises(TypeError, match="Cannot add two plots together"):
        ggplot(df) + ggplot(df)


def test_adding_unknown_object_raises(df) -> None:
    with pytest.raises(TypeError, match="Can't add an object of type int"):
        ggplot(df) + 3


def test_gg_add_hook_is_used(df) -> None:
    class Titled:
        def __gg_add__(self, plot):
            return plot + labs(title="hooked")

    p = ggplot(df) + Titled()
    assert p.labels["title"] == "hooked"


def test_gg_add_hook_must_return_a_plot(df) -> None:
    class Broken:
        def __gg_add__(self, plot):
            return "nope"

    with pytest.raises(TypeError, match="must return a plot"):
        ggplot(df) + Broken()


def test_aes_added_to_plot_updates_default_mapping(df) -> None:
    p = ggplot(df, aes("x", "y")) + aes(colour="g")
    assert set(p.mapping) == {"x", "y", "colour"}


def test_scale_replacement_logs_info(df, caplog) -> None:
    with caplog.at_level(logging.INFO):
        p = ggplot(df) + scale_colour_manual("red", "blue") + scale_colour_manual("green", "black")
    assert len(p.scales) == 1
    assert "colour" in caplog.text


def test_coord_replacement_logs_info(df, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="gg_toolkit.GGPlot"):
        p = ggplot(df) + coord_flip() + coord_polar()
    assert repr(p.coord) == "coord_polar(theta='x')"
    assert "Coordinate system already present" in caplog.text


def test_labels_merge_and_none_removes(df) -> None:
    p = ggplot(df, aes("x", "y")) + labs(x="X", y="Y") + xlab(None)
    assert p.labels["x"] is None
    assert p.labels["y"] == "Y"


def test_theme_additions_merge(df) -> None:
    p = ggplot(df) + theme(legend_position="bottom") + theme(title_font_size=20)
    assert "legend" in p.theme.layout


def test_with_data_swaps_default_data(df) -> None:
    p = ggplot(df, aes("x", "y")) + geom_point()
    other = pd.DataFrame({"x": [10.0], "y": [20.0]})
    q = p.with_data(other)
    assert q.data is other
    assert p.data is df
    assert q.layers == p.layers


def test_ggplot_accepts_mapping_as_first_argument() -> None:
    p = ggplot(aes("x", "y"))
    assert p.data is None
    assert isinstance(p.mapping, Aes)


def test_ggplot_converts_dict_data() -> None:
    p = ggplot({"x": [1, 2]}, x="x")
    assert isinstance(p.data, pd.DataFrame)
    assert p.mapping["x"].source == "x"


def test_ggplot_rejects_bad_data() -> None:
    with pytest.raises(TypeError, match="must be a pandas DataFrame"):
        ggplot([1, 2, 3])


def test_ggplot_rejects_non_aes_mapping(df) -> None:
    with pytest.raises(TypeError, match="mapping must be created by aes"):
        ggplot(df, {"x": "x"})


def test_layer_repr_omits_defaults() -> None:
    assert repr(geom_point(colour="red")) == "geom_point(colour='red')"


def test_scale_repr_is_call(df) -> None:
    assert repr(scale_x_log10()).startswith("scale_x_log10(")
