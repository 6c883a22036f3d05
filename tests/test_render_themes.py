from __future__ import annotations

import threading

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest

from gg_toolkit import (
    aes,
    coord_cartesian,
    coord_fixed,
    coord_flip,
    geom_boxplot,
    geom_col,
    geom_point,
    geom_smooth,
    ggplot,
    ggtitle,
    labs,
    scale_colour_manual,
    scale_x_discrete,
    scale_x_log10,
    set_plot_defaults,
    theme,
    theme_bw,
    theme_get,
    theme_grey,
    theme_set,
    theme_update,
    use_theme,
)


# -- axes and coordinates ----------------------------------------------------

def test_discrete_axis_gets_level_ticks(mpg_small) -> None:
    fig = (ggplot(mpg_small, aes("class", "hwy")) + geom_point()).figure()
    assert list(fig.layout.xaxis.tickvals) == [1.0, 2.0, 3.0, 4.0]
    assert list(fig.layout.xaxis.ticktext) == ["2seater", "compact", "midsize", "suv"]
    assert list(fig.layout.xaxis.range) == [0.4, 4.6]


def test_discrete_scale_relabels_and_orders(mpg_small) -> None:
    p = (
        ggplot(mpg_small, aes("class", "hwy"))
        + geom_point()
        + scale_x_discrete(limits=["suv", "compact"], labels={"suv": "SUV"})
    )
    fig = p.figure()
    assert list(fig.layout.xaxis.ticktext) == ["SUV", "compact"]
    xs = np.concatenate([np.asarray(t.x, dtype=float) for t in fig.data])
    assert set(xs[np.isfinite(xs)]) == {1.0, 2.0}


def test_log_axis_ticks_show_raw_values() -> None:
    df = pd.DataFrame({"x": [1.0, 10.0, 100.0], "y": [1.0, 2.0, 3.0]})
    fig = (ggplot(df, aes("x", "y")) + geom_point() + scale_x_log10()).figure()
    assert list(fig.layout.xaxis.tickvals) == [0.0, 1.0, 2.0]
    assert list(fig.layout.xaxis.ticktext) == ["1", "10", "100"]


def test_coord_flip_draws_horizontal_bars(mpg_small) -> None:
    p = ggplot(mpg_small, aes("class", "hwy")) + geom_col() + coord_flip()
    fig = p.figure()
    assert all(t.orientation == "h" for t in fig.data if isinstance(t, go.Bar))
    assert fig.layout.yaxis.title.text == "class"
    assert fig.layout.xaxis.title.text == "hwy"


def test_coord_cartesian_zooms_without_dropping(mpg_small) -> None:
    p = ggplot(mpg_small, aes("displ", "hwy")) + geom_point() + coord_cartesian(xlim=(2, 4), expand=False)
    fig = p.figure()
    assert list(fig.layout.xaxis.range) == [2.0, 4.0]
    assert len(fig.data[0].x) == len(mpg_small)


def test_coord_fixed_anchors_axes(mpg_small) -> None:
    fig = (ggplot(mpg_small, aes("displ", "hwy")) + geom_point() + coord_fixed(ratio=2)).figure()
    assert fig.layout.yaxis.scaleanchor == "x"
    assert fig.layout.yaxis.scaleratio == 2.0


def test_coord_fixed_rejects_non_positive_ratio() -> None:
    with pytest.raises(ValueError, match="positive"):
        coord_fixed(ratio=0)


def test_boxplot_renders_box_traces(mpg_small) -> None:
    fig = (ggplot(mpg_small, aes("drv", "hwy")) + geom_boxplot()).figure()
    boxes = [t for t in fig.data if isinstance(t, go.Box)]
    assert boxes
    assert boxes[0].boxpoints == "outliers"
    assert list(fig.layout.xaxis.ticktext) == ["4", "f", "r"]


# -- labels and legends --------------------------------------------------------

def test_title_subtitle_and_caption(mpg_small) -> None:
    p = ggplot(mpg_small, aes("displ", "hwy")) + geom_point() + labs(title="T", subtitle="S", caption="C")
    fig = p.figure()
    assert fig.layout.title.text == "T<br><sup>S</sup>"
    assert fig.layout.annotations[0].text == "C"


def test_ggtitle_sets_title(mpg_small) -> None:
    fig = (ggplot(mpg_small, aes("displ", "hwy")) + geom_point() + ggtitle("Only title")).figure()
    assert fig.layout.title.text == "Only title"


def test_legend_has_one_entry_per_level(mpg_small) -> None:
    fig = (ggplot(mpg_small, aes("displ", "hwy", colour="drv")) + geom_point()).figure()
    names = [t.name for t in fig.data if t.showlegend]
    assert sorted(names) == ["4", "f", "r"]
    assert fig.layout.legend.title.text == "drv"
    assert fig.layout.showlegend is True


def test_manual_scale_colours_levels_in_order(mpg_small) -> None:
    p = (
        ggplot(mpg_small, aes("displ", "hwy", colour="drv"))
        + geom_point()
        + scale_colour_manual("red", "green", "blue")
    )
    colours = {t.name: set(t.marker.color) for t in p.figure().data}
    assert colours == {"4": {"red"}, "f": {"green"}, "r": {"blue"}}


def test_manual_scale_with_too_few_values_raises(mpg_small) -> None:
    p = ggplot(mpg_small, aes("displ", "hwy", colour="drv")) + geom_point() + scale_colour_manual("red", "blue")
    with pytest.raises(ValueError, match="Insufficient values in manual scale"):
        p.figure()


def test_legend_position_none_hides_legend(mpg_small) -> None:
    p = ggplot(mpg_small, aes("displ", "hwy", colour="drv")) + geom_point() + theme(legend_position="none")
    assert p.figure().layout.showlegend is False


def test_unknown_legend_position_raises() -> None:
    with pytest.raises(ValueError, match="legend_position"):
        theme(legend_position="middle")


# -- themes --------------------------------------------------------------------

def test_theme_reprs() -> None:
    assert repr(theme(legend_position="none")) == "theme(showlegend=False)"
    assert repr(theme_bw()) == "theme_bw()"
    assert repr(theme_bw(base_size=14)) == "theme_bw(base_size=14)"


def test_complete_theme_replaces_partial() -> None:
    merged = theme(font_size=20) + theme_bw()
    assert merged == theme_bw()


def test_theme_set_returns_previous_theme() -> None:
    old = theme_set(theme_bw())
    assert old == theme_grey()
    assert theme_get() == theme_bw()


def test_theme_set_rejects_non_themes() -> None:
    with pytest.raises(TypeError, match="expects a Theme"):
        theme_set("bw")


def test_theme_update_merges_into_current_theme() -> None:
    old = theme_update(legend={"orientation": "h"}, font_size=20)
    assert old == theme_grey()
    current = theme_get()
    assert current.layout["legend"]["orientation"] == "h"
    assert current.layout["font_size"] == 20
    assert current.layout["template"] == "ggplot2"
    assert current.complete


def test_theme_is_read_when_rendering(mpg_small) -> None:
    p = ggplot(mpg_small, aes("displ", "hwy")) + geom_point()
    before = p.figure()
    theme_set(theme_bw())
    after = p.figure()
    assert before.layout.xaxis.linecolor is None
    assert after.layout.xaxis.linecolor == "#333333"


def test_figure_theme_argument_overrides_current(mpg_small) -> None:
    p = ggplot(mpg_small, aes("displ", "hwy")) + geom_point()
    fig = p.figure(theme=theme_bw())
    assert fig.layout.xaxis.mirror is True


def test_plot_theme_is_added_to_current_theme(mpg_small) -> None:
    theme_set(theme_bw())
    p = ggplot(mpg_small, aes("displ", "hwy", colour="drv")) + geom_point() + theme(legend_position="bottom")
    fig = p.figure()
    assert fig.layout.legend.orientation == "h"
    assert fig.layout.xaxis.linecolor == "#333333"


def test_use_theme_is_scoped_to_thread() -> None:
    seen: list[object] = []

    def other_thread() -> None:
        seen.append(theme_get())

    with use_theme(theme_bw()) as effective:
        assert theme_get() is effective
        worker = threading.Thread(target=other_thread)
        worker.start()
        worker.join()
    assert seen == [theme_grey()]
    assert theme_get() == theme_grey()


def test_use_theme_rejects_non_themes() -> None:
    with pytest.raises(TypeError):
        with use_theme({"template": "none"}):
            pass


def test_plot_defaults_size_figures(mpg_small) -> None:
    old = set_plot_defaults(width=600, height=300)
    try:
        fig = (ggplot(mpg_small, aes("displ", "hwy")) + geom_point()).figure()
        assert (fig.layout.width, fig.layout.height) == (600, 300)
    finally:
        set_plot_defaults(width=old.width, height=old.height)


# -- output --------------------------------------------------------------------

def test_save_html(mpg_small, tmp_path) -> None:
    target = (ggplot(mpg_small, aes("displ", "hwy")) + geom_point()).save(tmp_path / "plot.html")
    assert target.exists()
    assert "plotly" in target.read_text(encoding="utf-8").lower()


def test_plot_defaults_control_smooth_resolution(mpg_small) -> None:
    old = set_plot_defaults(smooth_points=20)
    try:
        built = (ggplot(mpg_small, aes("displ", "hwy")) + geom_smooth(method="lm")).build()
        assert len(built.layer_data(0)) == 20
        built = (ggplot(mpg_small, aes("displ", "hwy")) + geom_smooth(method="lm", n=5)).build()
        assert len(built.layer_data(0)) == 5
    finally:
        set_plot_defaults(smooth_points=old.smooth_points)
