from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
import sympy as sp

from gg_toolkit.expressions import (
    DATA,
    AesExpression,
    UnboundVariableError,
    as_factor,
    columns,
    parse_expression,
    quote,
    substitute,
)


@pytest.fixture
def df() -> pd.DataFrame:
    return pd.DataFrame({"hwy": [20.0, 30.0, 40.0], "cyl": [4, 6, 8], "engine size": [1.0, 2.0, 3.0]})


def test_bare_identifier_names_a_column(df) -> None:
    expr = quote("hwy")
    assert isinstance(expr, AesExpression)
    assert expr.label == "hwy"
    np.testing.assert_allclose(expr.evaluate(df), [20.0, 30.0, 40.0])


def test_expression_uses_captured_local_variable(df) -> None:
    n = 10
    np.testing.assert_allclose(quote("hwy / n").evaluate(df), [2.0, 3.0, 4.0])
    assert n == 10


def test_data_column_shadows_environment_variable(df) -> None:
    hwy = 1000.0  # noqa: F841
    np.testing.assert_allclose(quote("hwy + 1").evaluate(df), [21.0, 31.0, 41.0])


def test_helper_local_variable_is_visible_with_default_env(df) -> None:
    def scaled(n):
        return quote("hwy / n")

    np.testing.assert_allclose(scaled(2).evaluate(df), [10.0, 15.0, 20.0])


def test_env_none_reproduces_scoping_failure(df) -> None:
    def scaled(n):
        return quote("hwy / n", env=None)

    expr = scaled(2)
    with pytest.raises(UnboundVariableError, match="object 'n' not found") as info:
        expr.evaluate(df)
    assert isinstance(info.value, NameError)
    assert info.value.name == "n"
    assert "env=None" in str(info.value)


def test_unknown_function_reports_function_name(df) -> None:
    with pytest.raises(UnboundVariableError, match="could not find function 'nosuchfn'"):
        quote("nosuchfn(hwy)", env=None).evaluate(df)


def test_callable_from_environment_is_applied(df) -> None:
    def double(values):
        return 2 * np.asarray(values)

    np.testing.assert_allclose(quote("double(hwy)").evaluate(df), [40.0, 60.0, 80.0])
    assert double(1) == 2


def test_pi_constant_is_available(df) -> None:
    out = quote("cyl * pi", env=None).evaluate(df)
    np.testing.assert_allclose(out, np.array([4, 6, 8]) * np.pi)


def test_data_pronoun_for_non_identifier_columns(df) -> None:
    expr = quote(DATA["engine size"] * 2)
    assert "DATA['engine size']" in expr.source
    np.testing.assert_allclose(expr.evaluate(df), [2.0, 4.0, 6.0])
    parsed = quote("DATA['engine size'] + 1", env=None)
    np.testing.assert_allclose(parsed.evaluate(df), [2.0, 3.0, 4.0])


def test_python_keyword_column_name_quotes_directly() -> None:
    frame = pd.DataFrame({"class": ["a", "b"]})
    assert list(quote("class").evaluate(frame)) == ["a", "b"]


def test_constant_broadcasts_to_rows(df) -> None:
    out = quote(3).evaluate(df)
    assert out.tolist() == [3, 3, 3]


def test_wrong_length_environment_array_raises(df) -> None:
    weights = np.array([1.0, 2.0])  # noqa: F841
    with pytest.raises(ValueError, match="Aesthetics must be either length 1"):
        quote("weights").evaluate(df)


def test_factor_gives_ordered_categorical_levels(df) -> None:
    out = quote("factor(cyl)").evaluate(df)
    assert isinstance(out, pd.Categorical)
    assert list(out.categories) == ["4", "6", "8"]
    assert list(out) == ["4", "6", "8"]


def test_as_factor_sorts_numeric_levels_naturally() -> None:
    out = as_factor([10, 2, 2, None])
    assert list(out.categories) == ["2", "10"]
    assert pd.isna(out[3])


def test_cut_width_bins_values(df) -> None:
    out = quote("cut_width(hwy, 10)").evaluate(df)
    assert isinstance(out, pd.Categorical)
    assert len(out.categories) >= 2
    assert out[0] != out[2]


def test_cut_width_rejects_non_positive_width(df) -> None:
    with pytest.raises(ValueError, match="positive width"):
        quote("cut_width(hwy, 0)").evaluate(df)


def test_substitute_splices_column_name(df) -> None:
    expr = substitute("var / n", var="hwy", n=2)
    assert expr.source == "hwy/2"
    np.testing.assert_allclose(expr.evaluate(df), [10.0, 15.0, 20.0])


def test_substitute_accepts_quoted_expression(df) -> None:
    inner = quote("cyl * 2")
    expr = substitute("var + 1", var=inner)
    np.testing.assert_allclose(expr.evaluate(df), [9.0, 13.0, 17.0])


def test_environment_expression_is_spliced(df) -> None:
    var = sp.Symbol("cyl")  # noqa: F841
    np.testing.assert_allclose(quote("var * 10").evaluate(df), [40.0, 60.0, 80.0])


def test_quote_returns_existing_expression_unchanged() -> None:
    expr = quote("hwy", env=None)
    assert quote(expr) is expr


def test_quote_rejects_unsupported_values() -> None:
    with pytest.raises(TypeError, match="Cannot map a list"):
        quote([1, 2])
    with pytest.raises(ValueError, match="must not be empty"):
        quote("   ")


def test_parse_expression_reports_bad_syntax() -> None:
    with pytest.raises(ValueError, match="Could not parse aesthetic expression"):
        parse_expression("hwy +")


def test_columns_helper_returns_symbols() -> None:
    hwy, cyl = columns("hwy, cyl")
    assert (hwy.name, cyl.name) == ("hwy", "cyl")


def test_expression_equality_ignores_environment() -> None:
    assert quote("hwy", env=None) == quote("hwy")
