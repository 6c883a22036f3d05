"""Captured aesthetic expressions and their deferred evaluation.

Purpose
-------
A grammar-of-graphics mapping such as ``aes(y="hwy / cyl")`` names *columns*,
not values. This module captures that source form as a SymPy expression
(:class:`AesExpression`) together with the environment it was written in, and
evaluates it later against a data frame.

Concepts and structure
----------------------
- :func:`quote` captures a string, SymPy expression or literal.
- :data:`DATA` is the data pronoun: ``DATA["engine size"]`` names a column
  that is not a Python identifier.
- :func:`substitute` replaces names in a template with other expressions, the
  way a helper function splices a caller's variable into a mapping.
- :meth:`AesExpression.evaluate` compiles the expression with
  :func:`gg_toolkit.numpify.numpify_cached` and runs it over the columns.

Name resolution
---------------
When an expression is evaluated, every name is looked up in this order:

1. the columns of the data frame,
2. the environment captured when the expression was quoted (by default the
   caller's locals and globals),
3. built-in constants (``pi``).

A name found nowhere raises :class:`UnboundVariableError`. Quoting with
``env=None`` skips step 2, which reproduces the classic scoping failure of a
helper that refers to one of its own local variables::

    def scaled_line(n):
        return geom_line(aes(y="y / n", env=None))

    ggplot(df, aes("x", "y")) + scaled_line(10)   # object 'n' not found

Examples
--------
>>> import pandas as pd
>>> df = pd.DataFrame({"hwy": [20, 30], "cyl": [4, 6]})
>>> quote("hwy / cyl").evaluate(df)
array([5., 5.])
>>> n = 10
>>> quote("hwy / n").evaluate(df)
array([2., 3.])
"""

from __future__ import annotations

import inspect
import io
import keyword
import logging
import tokenize
from collections import ChainMap
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd
import sympy as sp
from sympy.core.function import AppliedUndef
from sympy.parsing.sympy_parser import parse_expr, standard_transformations
from sympy.printing.str import StrPrinter

from .NamedFunction import NamedFunction
from .numpify import numpify_cached

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class UnboundVariableError(NameError):
    """A mapped expression refers to a name that is not visible at evaluation time."""

    def __init__(
        self,
        name: str,
        expression: Optional["AesExpression"] = None,
        *,
        kind: str = "object",
    ) -> None:
        if kind == "function":
            head = f"could not find function '{name}'"
        else:
            head = f"object '{name}' not found"
        detail = ""
        if expression is not None:
            detail = (
                f" while evaluating aesthetic '{expression.source}'. Names are looked up in the "
                "data columns, then in the environment captured when the mapping was created"
            )
            if expression.env is None:
                detail += " (this mapping was created with env=None)"
        super().__init__(head + detail + ".", name=name)
        self.expression = expression
        self.kind = kind


class _CallerSentinel:
    """Sentinel meaning "capture the calling frame's environment"."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "CALLER"


CALLER = _CallerSentinel()


def capture_environment(stacklevel: int = 1) -> Mapping[str, Any]:
    """Return the locals (snapshot) and globals of a calling frame.

    ``stacklevel=1`` is the caller of the function that calls
    ``capture_environment``.
    """
    frame = inspect.currentframe()
    target = frame
    try:
        for _ in range(stacklevel + 1):
            if target is None:
                break
            target = target.f_back
        if target is None:
            return {}
        return ChainMap(dict(target.f_locals), target.f_globals)
    finally:
        del frame
        del target


def resolve_environment(env: Any, stacklevel: int = 1) -> Optional[Mapping[str, Any]]:
    """Normalize an ``env=`` argument; :data:`CALLER` captures ``stacklevel`` frames up."""
    if env is CALLER:
        return capture_environment(stacklevel + 1)
    if env is None or isinstance(env, Mapping):
        return env
    raise TypeError(f"env must be a mapping, None, or CALLER; got {type(env).__name__}")


class _DataPronoun:
    """``DATA["col"]`` / ``DATA.col``: refer to a data column by name."""

    __slots__ = ()

    def __getitem__(self, name: str) -> sp.Symbol:
        if not isinstance(name, str) or not name:
            raise TypeError(f"DATA[...] expects a non-empty column name, got {name!r}")
        return sp.Symbol(name)

    def __getattr__(self, name: str) -> sp.Symbol:
        if name.startswith("__"):
            raise AttributeError(name)
        return sp.Symbol(name)

    def __repr__(self) -> str:
        return "DATA"


DATA = _DataPronoun()


def columns(names: str) -> tuple[sp.Symbol, ...]:
    """Return column symbols for a whitespace- or comma-separated list of names."""
    parts = [p for p in names.replace(",", " ").split() if p]
    return tuple(sp.Symbol(p) for p in parts)


# ---------------------------------------------------------------------------
# Vectorised helper functions available inside expressions
# ---------------------------------------------------------------------------

def _level_label(value: Any) -> str:
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    if isinstance(value, (np.integer, np.bool_)):
        return str(value.item())
    return str(value)


def as_factor(values: Any) -> pd.Categorical:
    """Return ``values`` as a categorical with naturally ordered levels."""
    if isinstance(values, pd.Categorical):
        return values
    if isinstance(values, pd.Series) and isinstance(values.dtype, pd.CategoricalDtype):
        return values.array
    arr = np.atleast_1d(np.asarray(values, dtype=object))
    present = [v for v in pd.unique(arr) if not pd.isna(v)]
    try:
        present = sorted(present)
    except TypeError:
        pass
    levels = list(dict.fromkeys(_level_label(v) for v in present))
    labels = [None if pd.isna(v) else _level_label(v) for v in arr]
    return pd.Categorical(labels, categories=levels)


@NamedFunction
class factor:
    """Treat values as discrete categories (numeric levels keep numeric order)."""

    def symbolic(self, x):
        return None

    def numeric(self, x):
        return as_factor(x)


@NamedFunction
class cut_width:
    """Bin a continuous variable into intervals of equal ``width`` centred on multiples of it."""

    def symbolic(self, x, width):
        return None

    def numeric(self, x, width):
        return _cut_width(x, width)


def _cut_width(values: Any, width: Any) -> pd.Categorical:
    arr = np.asarray(values, dtype=float)
    w = float(np.asarray(width, dtype=float).ravel()[0])
    if not np.isfinite(w) or w <= 0:
        raise ValueError(f"cut_width() needs a positive width, got {width!r}")
    finite = arr[np.isfinite(arr)]
    if finite.size == 0:
        return pd.Categorical([None] * arr.size)
    boundary = w / 2
    lo = np.floor((finite.min() - boundary) / w) * w + boundary
    hi = np.ceil((finite.max() - boundary) / w) * w + boundary
    if hi <= lo:
        hi = lo + w
    edges = np.arange(lo, hi + w / 2, w)
    labels = [
        f"{'[' if i == 0 else '('}{edges[i]:g},{edges[i + 1]:g}]" for i in range(len(edges) - 1)
    ]
    return pd.cut(arr, edges, labels=labels, include_lowest=True, right=True)


def _log10(x: sp.Basic) -> sp.Basic:
    return sp.log(x, 10)


EXPRESSION_FUNCTIONS: dict[str, Any] = {
    "log": sp.log,
    "log10": _log10,
    "exp": sp.exp,
    "sqrt": sp.sqrt,
    "abs": sp.Abs,
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "factor": factor,
    "cut_width": cut_width,
}

EXPRESSION_CONSTANTS: dict[str, Any] = {"pi": np.pi}


# ---------------------------------------------------------------------------
# Source text <-> SymPy
# ---------------------------------------------------------------------------

class _AesPrinter(StrPrinter):
    """Print expressions back into text that :func:`quote` parses again."""

    def _print_Symbol(self, expr: sp.Symbol) -> str:  # noqa: N802
        name = expr.name
        if name.isidentifier() and not keyword.iskeyword(name):
            return name
        return f"DATA[{name!r}]"


def expression_to_source(expr: sp.Basic) -> str:
    """Return parseable source text for ``expr``."""
    return _AesPrinter().doprint(expr)


def _next_significant(tokens: list[tokenize.TokenInfo], idx: int) -> Optional[tokenize.TokenInfo]:
    skip = {tokenize.NL, tokenize.NEWLINE, tokenize.COMMENT, tokenize.INDENT, tokenize.DEDENT}
    for tok in tokens[idx + 1:]:
        if tok.type not in skip:
            return tok
    return None


def parse_expression(text: str) -> sp.Basic:
    """Parse aesthetic source text into SymPy.

    Every bare name becomes a symbol (resolved against data, then environment,
    at evaluation time); names followed by ``(`` are functions.
    """
    try:
        tokens = list(tokenize.generate_tokens(io.StringIO(text).readline))
    except (tokenize.TokenError, SyntaxError) as e:
        raise ValueError(f"Could not parse aesthetic expression {text!r}: {e}") from e

    local_dict: dict[str, Any] = {"DATA": DATA}
    for idx, tok in enumerate(tokens):
        if tok.type != tokenize.NAME or keyword.iskeyword(tok.string) or tok.string == "DATA":
            continue
        prev = tokens[idx - 1] if idx > 0 else None
        if prev is not None and prev.type == tokenize.OP and prev.string == ".":
            continue
        nxt = _next_significant(tokens, idx)
        if nxt is not None and nxt.type == tokenize.OP and nxt.string == "(":
            if tok.string in EXPRESSION_FUNCTIONS:
                local_dict[tok.string] = EXPRESSION_FUNCTIONS[tok.string]
            continue
        local_dict[tok.string] = sp.Symbol(tok.string)

    try:
        expr = parse_expr(text, local_dict=local_dict, transformations=standard_transformations)
    except (SyntaxError, TypeError, tokenize.TokenError, sp.SympifyError) as e:
        raise ValueError(
            f"Could not parse aesthetic expression {text!r}. Column names that are not Python "
            f"identifiers must be written as DATA['name']. ({e})"
        ) from e
    if not isinstance(expr, sp.Basic):
        expr = sp.sympify(expr)
    return expr


# ---------------------------------------------------------------------------
# AesExpression
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AesExpression:
    """A captured mapping expression.

    Parameters
    ----------
    source : str
        Text shown to users (default axis and legend label).
    expr : sympy.Basic
        The parsed expression.
    env : Mapping or None
        Environment captured at quoting time; ``None`` means data only.
    """

    source: str
    expr: sp.Basic
    env: Optional[Mapping[str, Any]] = field(default=None, compare=False, hash=False, repr=False)

    @property
    def label(self) -> str:
        return self.source

    @property
    def is_constant(self) -> bool:
        return not self.expr.free_symbols and not self.expr.atoms(AppliedUndef)

    def with_env(self, env: Optional[Mapping[str, Any]]) -> "AesExpression":
        return AesExpression(self.source, self.expr, env)

    def _lookup(self, name: str) -> tuple[bool, Any]:
        if self.env is not None and name in self.env:
            return True, self.env[name]
        return False, None

    def _splice_environment_expressions(self, data_columns: set[str]) -> sp.Basic:
        """Substitute environment values that are themselves expressions."""
        expr = self.expr
        for _ in range(10):
            subs: dict[sp.Basic, sp.Basic] = {}
            for sym in expr.free_symbols:
                if sym.name in data_columns:
                    continue
                found, value = self._lookup(sym.name)
                if not found:
                    continue
                if isinstance(value, AesExpression) and value.expr != sym:
                    subs[sym] = value.expr
                elif isinstance(value, sp.Basic) and value != sym:
                    subs[sym] = value
            if not subs:
                break
            expr = expr.xreplace(subs)
        return expr

    def evaluate(self, data: pd.DataFrame) -> Any:
        """Evaluate over ``data``, returning one value per row.

        Returns a NumPy array, or a :class:`pandas.Categorical` for discrete
        values produced by ``factor``/``cut_width`` or categorical columns.

        Raises
        ------
        UnboundVariableError
            If a name is neither a column nor bound in the captured environment.
        """
        n = len(data)
        data_columns = {str(c) for c in data.columns}

        if isinstance(self.expr, sp.Symbol) and self.expr.name in data_columns:
            return column_values(data[self.expr.name])

        expr = self._splice_environment_expressions(data_columns)

        column_syms: list[sp.Symbol] = []
        bindings: dict[Any, Any] = {}
        for sym in sorted(expr.free_symbols, key=sp.default_sort_key):
            name = sym.name
            if name in data_columns:
                column_syms.append(sym)
                continue
            found, value = self._lookup(name)
            if found and not isinstance(value, (sp.Basic, AesExpression)) and not callable(value):
                bindings[sym] = value
                continue
            if name in EXPRESSION_CONSTANTS:
                bindings[sym] = EXPRESSION_CONSTANTS[name]
                continue
            raise UnboundVariableError(name, self)

        for app in expr.atoms(AppliedUndef):
            fn_class = app.func
            if callable(getattr(fn_class, "f_numpy", None)):
                continue
            found, value = self._lookup(fn_class.__name__)
            if not found or not callable(value):
                raise UnboundVariableError(fn_class.__name__, self, kind="function")
            bindings[fn_class] = value

        compiled = numpify_cached(expr, vars=tuple(column_syms), f_numpy=bindings)
        logger.debug("evaluate %r over columns %s", self.source, [s.name for s in column_syms])
        result = compiled(*(column_values(data[s.name]) for s in column_syms))
        return broadcast_values(result, n, label=self.source)

    def __repr__(self) -> str:
        return f"quote({self.source!r})"


def column_values(series: pd.Series) -> Any:
    """Column contents as an array, keeping categorical columns categorical."""
    if isinstance(series.dtype, pd.CategoricalDtype):
        return series.array
    return series.to_numpy()


def broadcast_values(values: Any, n: int, *, label: str = "") -> Any:
    """Broadcast an evaluation result to ``n`` rows."""
    if isinstance(values, pd.Categorical):
        if len(values) == n:
            return values
        if len(values) == 1:
            return pd.Categorical(np.repeat(np.asarray(values, dtype=object), n), categories=values.categories)
    else:
        arr = np.asarray(values)
        if arr.ndim == 0:
            return np.repeat(arr.reshape(1), n)
        if arr.shape == (n,):
            return arr
        if arr.size == 1:
            return np.repeat(arr.reshape(1), n)
    raise ValueError(
        f"Aesthetics must be either length 1 or the same as the data ({n}): {label or 'expression'}"
    )


def quote(value: Any, *, env: Any = CALLER) -> AesExpression:
    """Capture ``value`` as an :class:`AesExpression` without evaluating it.

    Strings that are plain identifiers name a column directly, so Python
    keywords such as ``"class"`` work. Other strings are parsed as expressions.
    An existing :class:`AesExpression` is returned unchanged, keeping the
    environment it was captured in.

    Raises
    ------
    TypeError
        For unsupported value types.
    ValueError
        For unparseable expression text.
    """
    if isinstance(value, AesExpression):
        return value
    captured = resolve_environment(env, stacklevel=1)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Aesthetic expressions must not be empty")
        if text.isidentifier():
            return AesExpression(text, sp.Symbol(text), captured)
        return AesExpression(text, parse_expression(text), captured)

    if isinstance(value, sp.Basic):
        return AesExpression(expression_to_source(value), value, captured)

    if isinstance(value, (bool, int, float, np.number)):
        return AesExpression(repr(value.item() if isinstance(value, np.number) else value), sp.sympify(value), captured)

    raise TypeError(
        f"Cannot map a {type(value).__name__}; use a column name, an expression string, "
        "a SymPy expression, or a number"
    )


def substitute(template: Any, *, env: Any = CALLER, **bindings: Any) -> AesExpression:
    """Return ``template`` with the named symbols replaced.

    Strings in ``bindings`` are quoted (so ``var="hwy"`` splices the column
    ``hwy``), SymPy expressions and :class:`AesExpression` objects are spliced
    as-is, numbers become constants.

    >>> substitute("var / n", var="hwy", n=2).source
    'hwy/2'
    """
    captured = resolve_environment(env, stacklevel=1)
    base = quote(template, env=captured)
    replacements: dict[sp.Basic, sp.Basic] = {}
    for name, value in bindings.items():
        if isinstance(value, AesExpression):
            replacements[sp.Symbol(name)] = value.expr
        elif isinstance(value, (str, sp.Basic)):
            replacements[sp.Symbol(name)] = quote(value, env=None).expr
        else:
            replacements[sp.Symbol(name)] = sp.sympify(value)
    expr = base.expr.xreplace(replacements)
    return AesExpression(expression_to_source(expr), expr, base.env)


__all__ = [
    "AesExpression",
    "CALLER",
    "DATA",
    "EXPRESSION_CONSTANTS",
    "EXPRESSION_FUNCTIONS",
    "UnboundVariableError",
    "as_factor",
    "capture_environment",
    "columns",
    "cut_width",
    "expression_to_source",
    "factor",
    "parse_expression",
    "quote",
    "resolve_environment",
    "substitute",
]
