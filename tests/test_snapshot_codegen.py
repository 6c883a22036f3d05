from __future__ import annotations

import pandas as pd
import pytest

import gg_toolkit
from gg_toolkit import (
    CodegenOptions,
    PlotSnapshot,
    aes,
    coord_flip,
    dataframe_to_code,
    geom_mean,
    geom_point,
    ggplot,
    labs,
    plot_to_code,
    scale_colour_manual,
    theme,
    theme_bw,
)


@pytest.fixture
def df() -> pd.DataFrame:
    return pd.DataFrame({"x": [1.0, 2.0, 3.0], "y": [2.0, 4.0, 3.0], "g": ["a", "b", "a"]})


def _run(code: str) -> object:
    namespace: dict[str, object] = {}
    exec(compile(code, "<generated>", "exec"), namespace)
    return namespace["p"]


def test_snapshot_is_frozen_and_restores(df) -> None:
    p = ggplot(df, aes("x", "y")) + geom_point() + coord_flip()
    snap = p.snapshot()
    assert isinstance(snap, PlotSnapshot)
    with pytest.raises(AttributeError):
        snap.layers = ()
    restored = snap.restore()
    assert restored.layers == p.layers
    assert repr(restored.coord) == "coord_flip()"
    pd.testing.assert_frame_equal(restored.data, df)


def test_snapshot_copies_data(df) -> None:
    snap = ggplot(df).snapshot()
    df.loc[0, "x"] = 100.0
    assert snap.data.loc[0, "x"] == 1.0


def test_snapshot_components_order(df) -> None:
    p = ggplot(df, aes("x", "y")) + theme_bw() + labs(title="t") + geom_point() + scale_colour_manual("red", "blue")
    kinds = [type(c).__name__ for c in p.snapshot().components]
    assert kinds == ["Layer", "Scale", "Labels", "Theme"]


def test_dataframe_to_code_round_trips_values() -> None:
    frame = pd.DataFrame({"n": [1, 2], "f": [0.5, float("nan")], "s": ["a", None]})
    code = dataframe_to_code(frame)
    rebuilt = eval(code, {"pd": pd})
    pd.testing.assert_frame_equal(rebuilt, frame)


def test_dataframe_to_code_keeps_categories() -> None:
    frame = pd.DataFrame({"c": pd.Categorical(["b", "a"], categories=["b", "a"])})
    rebuilt = eval(dataframe_to_code(frame), {"pd": pd})
    assert list(rebuilt["c"].cat.categories) == ["b", "a"]


def test_dataframe_to_code_refuses_large_frames() -> None:
    with pytest.raises(ValueError, match="max_rows"):
        dataframe_to_code(pd.DataFrame({"x": range(5)}), max_rows=3)


def test_plot_to_code_is_runnable(df) -> None:
    p = (
        ggplot(df, aes("x", "y", colour="g"))
        + geom_point(size=3)
        + geom_mean(se=False)
        + scale_colour_manual("red", "blue")
        + labs(title="Generated")
        + theme_bw()
        + theme(legend_position="bottom")
    )
    code = p.to_code()
    assert "from gg_toolkit import *" in code
    assert "geom_point(size=3)" in code
    assert "scale_colour_manual(values=('red', 'blue'))" in code
    rebuilt = _run(code)
    assert [layer.geom for layer in rebuilt.layers] == ["point", "bar"]
    assert rebuilt.labels["title"] == "Generated"
    assert rebuilt.theme == p.theme
    assert rebuilt.figure().layout.title.text == "Generated"


def test_plot_to_code_without_data(df) -> None:
    p = ggplot(df, aes("x", "y")) + geom_point()
    code = plot_to_code(p, CodegenOptions(include_data=False, include_imports=False))
    assert "pd.DataFrame" not in code
    assert code.splitlines()[1] == "p = ("
    assert "ggplot(df, aes(x='x', y='y'))" in code


def test_plot_to_code_names_layer_data(df) -> None:
    extra = pd.DataFrame({"x": [1.5], "y": [3.5]})
    p = ggplot(df, aes("x", "y")) + geom_point() + geom_point(data=extra, colour="red")
    code = p.to_code()
    assert "layer_df1 = pd.DataFrame(" in code
    assert "geom_point(data=layer_df1, colour='red')" in code
    assert len(_run(code).layers[1].data) == 1


def test_codegen_options_validate_names() -> None:
    with pytest.raises(ValueError, match="identifiers"):
        CodegenOptions(data_name="my data")


def test_star_import_exposes_generated_names() -> None:
    for name in ("ggplot", "aes", "geom_point", "labs", "theme_bw", "scale_colour_manual", "factor"):
        assert name in gg_toolkit.__all__
