from __future__ import annotations

import numpy as np
import pytest
import sympy as sp

from gg_toolkit.NamedFunction import NamedFunction
from gg_toolkit.numpify import numpify, numpify_cached


def test_numpify_binds_constants_from_f_numpy() -> None:
    hwy, n = sp.symbols("hwy n")
    f = numpify(hwy / n, vars=hwy, f_numpy={n: 4.0})
    np.testing.assert_allclose(f(np.array([8.0, 12.0])), [2.0, 3.0])
    assert f.var_names == ("hwy",)


def test_numpify_binds_array_constants() -> None:
    hwy, w = sp.symbols("hwy w")
    f = numpify(hwy * w, vars=hwy, f_numpy={w: np.array([1.0, 0.0, 2.0])})
    np.testing.assert_allclose(f(np.array([1.0, 2.0, 3.0])), [1.0, 0.0, 6.0])


def test_numpify_constant_broadcasts_to_column_shape() -> None:
    x = sp.Symbol("x")
    out = numpify(sp.Integer(7), vars=x)(np.arange(4))
    assert out.tolist() == [7, 7, 7, 7]


def test_numpify_mangles_non_identifier_column_names() -> None:
    col = sp.Symbol("engine size")
    cls = sp.Symbol("class")
    f = numpify(col + cls, vars=(col, cls))
    assert all(name.isidentifier() for name in f.var_names)
    assert "class" not in f.var_names
    np.testing.assert_allclose(f(np.array([1.0]), np.array([2.0])), [3.0])


def test_numpify_rejects_unbound_symbols() -> None:
    x, y = sp.symbols("x y")
    with pytest.raises(ValueError, match="unbound symbols: y"):
        numpify(x + y, vars=x, cache=False)


def test_numpify_rejects_unknown_functions() -> None:
    x = sp.Symbol("x")
    mystery = sp.Function("mystery")
    with pytest.raises(ValueError, match="without a NumPy implementation: mystery"):
        numpify(mystery(x), vars=x, cache=False)


def test_numpify_uses_function_bindings() -> None:
    x = sp.Symbol("x")
    clip = sp.Function("clip01")
    f = numpify(clip(x), vars=x, f_numpy={clip: lambda v: np.clip(v, 0, 1)})
    np.testing.assert_allclose(f(np.array([-1.0, 0.5, 2.0])), [0.0, 0.5, 1.0])


def test_numpify_checks_argument_count() -> None:
    x = sp.Symbol("x")
    f = numpify(x + 1, vars=x)
    with pytest.raises(TypeError, match="expects 1 column argument"):
        f(np.array([1.0]), np.array([2.0]))


def test_numpify_cache_reuses_compiled_function() -> None:
    x = sp.Symbol("x")
    first = numpify(2 * x, vars=x)
    second = numpify(2 * x, vars=x)
    assert first is second
    assert numpify(2 * x, vars=x, cache=False) is not first


def test_numpify_cache_distinguishes_bindings() -> None:
    x, k = sp.symbols("x k")
    one = numpify_cached(x * k, vars=x, f_numpy={k: 1.0})
    two = numpify_cached(x * k, vars=x, f_numpy={k: 2.0})
    assert one is not two
    np.testing.assert_allclose(two(np.array([3.0])), [6.0])


def test_named_function_from_spec_class() -> None:
    @NamedFunction
    class halve:
        def symbolic(self, x):
            return x / 2

        def numeric(self, x):
            return np.asarray(x) / 2

    x = sp.Symbol("x")
    assert halve(x).rewrite("expand_definition") == x / 2
    f = numpify(halve(x), vars=x)
    np.testing.assert_allclose(f(np.array([4.0])), [2.0])


def test_named_function_opaque_definition_stays_a_call() -> None:
    def dense_rank(x):
        return None

    dense_rank.f_numpy = lambda v: np.argsort(np.argsort(v))
    dense_rank = NamedFunction(dense_rank)
    x = sp.Symbol("x")
    assert dense_rank(x).rewrite("expand_definition") == dense_rank(x)
    assert numpify(dense_rank(x), vars=x)(np.array([30, 10, 20])).tolist() == [2, 0, 1]


def test_named_function_rejects_defaults_and_varargs() -> None:
    with pytest.raises(ValueError, match="default values"):
        @NamedFunction
        def with_default(x, k=1):
            return x * k

    with pytest.raises(ValueError, match="only positional parameters"):
        @NamedFunction
        def with_varargs(*xs):
            return sum(xs)


def test_named_function_spec_arity_must_match() -> None:
    with pytest.raises(ValueError, match="Signature mismatch"):
        @NamedFunction
        class bad:
            def symbolic(self, x):
                return x

            def numeric(self, x, y):
                return x
