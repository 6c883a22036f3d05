"""
numpify: Compile SymPy aesthetic expressions to NumPy column functions
=====================================================================

Purpose
-------
Turn a captured aesthetic expression (for example ``hwy / cyl`` or
``factor(cyl)``) into a callable that evaluates one value per data row using
NumPy broadcasting.

The compiled callable takes the referenced *columns* as positional arguments.
Everything else the expression needs is injected as a binding:

- scalar or array constants found in the mapping's captured environment,
- implementations for functions such as ``factor`` that carry a NumPy
  implementation (``f_numpy``), or user callables found in the environment.

Public API
----------
- :func:`numpify`
- :func:`numpify_cached`
- :class:`NumpifiedFunction`

Examples
--------
>>> import numpy as np
>>> import sympy as sp
>>> from gg_toolkit.numpify import numpify  # doctest: +SKIP
>>> hwy, n = sp.symbols("hwy n")
>>> f = numpify(hwy / n, vars=hwy, f_numpy={n: 2.0})
>>> f(np.array([10.0, 20.0]))
array([ 5., 10.])

Constants broadcast to the argument shape, including non-numeric results:

>>> f = numpify(sp.Integer(5), vars=hwy)
>>> f(np.array([1, 2, 3]))
array([5, 5, 5])

Logging
-------
This module uses Python's standard :mod:`logging` library and is silent by
default. Compilation timings are reported at DEBUG level.
"""

from __future__ import annotations

from functools import lru_cache
import builtins
import keyword
import logging
import textwrap
import time
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union, cast

import numpy as np
import sympy as sp
from sympy.core.function import FunctionClass
from sympy.printing.numpy import NumPyPrinter


__all__ = [
    "numpify",
    "numpify_cached",
    "NumpifiedFunction",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


_FuncBindingKey = Union[FunctionClass, sp.Function]
_BindingKey = Union[sp.Symbol, _FuncBindingKey]
_SymBindings = Dict[str, Any]
_FuncBindings = Dict[str, Callable[..., Any]]


class NumpifiedFunction:
    """Compiled SymPy->NumPy callable over a fixed tuple of column symbols."""

    __slots__ = ("_fn", "symbolic", "call_signature", "source")

    def __init__(
        self,
        fn: Callable[..., Any],
        symbolic: sp.Basic,
        call_signature: tuple[tuple[sp.Symbol, str], ...],
        source: str,
    ) -> None:
        self._fn = fn
        self.symbolic = symbolic
        self.call_signature = call_signature
        self.source = source

    @property
    def vars(self) -> tuple[sp.Symbol, ...]:
        return tuple(sym for sym, _ in self.call_signature)

    @property
    def var_names(self) -> tuple[str, ...]:
        """Generated Python parameter names, in call order."""
        return tuple(name for _, name in self.call_signature)

    def __call__(self, *columns: Any) -> Any:
        if len(columns) != len(self.call_signature):
            raise TypeError(
                f"{self!r} expects {len(self.call_signature)} column argument(s), got {len(columns)}"
            )
        return self._fn(*columns)

    def __repr__(self) -> str:
        vars_str = ", ".join(sym.name for sym in self.vars)
        return f"NumpifiedFunction({self.symbolic!r}, vars=({vars_str}))"


def numpify(
    expr: Any,
    *,
    vars: Optional[Union[sp.Symbol, Iterable[sp.Symbol]]] = None,
    f_numpy: Optional[Mapping[_BindingKey, Any]] = None,
    vectorize: bool = True,
    cache: bool = True,
) -> NumpifiedFunction:
    """Compile a SymPy expression into a NumPy-evaluable column function.

    Parameters
    ----------
    expr:
        A SymPy expression or anything accepted by :func:`sympy.sympify`.
    vars:
        Column symbols, in positional order. ``None`` uses every free symbol
        sorted by ``sympy.default_sort_key``.
    f_numpy:
        Bindings keyed by SymPy symbols (injected constants) or SymPy function
        classes (callable implementations).
    vectorize:
        Convert each argument with ``numpy.asarray`` before evaluation.
    cache:
        Reuse compiled callables through :func:`numpify_cached`.

    Raises
    ------
    TypeError
        If ``expr`` is not SymPy-compatible or a function binding is not callable.
    ValueError
        If the expression references unbound symbols or functions.
    """
    if cache:
        return numpify_cached(expr, vars=vars, f_numpy=f_numpy, vectorize=vectorize)
    return _numpify_uncached(expr, vars=vars, f_numpy=f_numpy, vectorize=vectorize)


def _sympify_expr(expr: Any) -> sp.Basic:
    try:
        out = sp.sympify(expr)
    except Exception as e:
        raise TypeError(f"numpify expects a SymPy-compatible expression, got {type(expr).__name__}") from e
    if not isinstance(out, sp.Basic):
        raise TypeError(f"numpify expects a SymPy expression, got {type(out).__name__}")
    return cast(sp.Basic, out)


def _is_valid_parameter_name(name: str) -> bool:
    return bool(name) and name.isidentifier() and not keyword.iskeyword(name)


def _mangle_base_name(name: str) -> str:
    cleaned = "".join(ch if (ch == "_" or ch.isalnum()) else "_" for ch in name)
    if not cleaned or cleaned[0].isdigit():
        cleaned = f"_{cleaned}"
    if keyword.iskeyword(cleaned):
        cleaned = f"{cleaned}__"
    return cleaned


def _build_call_signature(
    vars_tuple: tuple[sp.Symbol, ...], reserved_names: set[str]
) -> tuple[tuple[sp.Symbol, str], ...]:
    """Pair each column symbol with a unique, valid Python parameter name.

    Column names such as ``"engine size"`` or ``"class"`` are legal symbol
    names but not legal parameters, so they are mangled.
    """
    used = set(reserved_names)
    out: list[tuple[sp.Symbol, str]] = []
    for sym in vars_tuple:
        base = sym.name if _is_valid_parameter_name(sym.name) else _mangle_base_name(sym.name)
        candidate = base
        suffix = 0
        while candidate in used or not _is_valid_parameter_name(candidate):
            candidate = f"{base}__{suffix}"
            suffix += 1
        used.add(candidate)
        out.append((sym, candidate))
    return tuple(out)


def _numpify_uncached(
    expr: Any,
    *,
    vars: Optional[Union[sp.Symbol, Iterable[sp.Symbol]]] = None,
    f_numpy: Optional[Mapping[_BindingKey, Any]] = None,
    vectorize: bool = True,
) -> NumpifiedFunction:
    """Compile ``expr`` without consulting the cache.

    Notes
    -----
    This function uses ``exec`` to define the generated function. Avoid calling
    it on untrusted expressions.
    """
    expr = _sympify_expr(expr)
    vars_tuple = _normalize_vars(expr, vars)

    log_debug = logger.isEnabledFor(logging.DEBUG)
    t0 = time.perf_counter() if log_debug else 0.0

    sym_bindings, func_bindings = _parse_bindings(expr, f_numpy)

    var_names_set = {a.name for a in vars_tuple}
    missing_names = {s.name for s in expr.free_symbols} - var_names_set - set(sym_bindings)
    if missing_names:
        raise ValueError(
            "Expression contains unbound symbols: "
            f"{', '.join(sorted(missing_names))}. Pass them as vars=... or bind via f_numpy={{symbol: value}}."
        )

    overlap = var_names_set & set(sym_bindings)
    if overlap:
        raise ValueError(
            "Symbol bindings overlap with column vars: " + ", ".join(sorted(overlap))
        )

    printer = NumPyPrinter(settings={"user_functions": {}, "allow_unknown_functions": True})
    _require_bound_unknown_functions(expr, printer, func_bindings)

    reserved_names = set(keyword.kwlist) | set(dir(builtins)) | {"numpy", "_sym_bindings"}
    reserved_names |= set(sym_bindings) | set(func_bindings)
    call_signature = _build_call_signature(vars_tuple, reserved_names)
    arg_names = [name for _, name in call_signature]

    # Bound symbols may also carry non-identifier names; give them safe aliases.
    bound_aliases = {
        name: _mangle_base_name(name) + "__bound" for name in sym_bindings if not _is_valid_parameter_name(name)
    }
    replacement: dict[sp.Basic, sp.Basic] = {sym: sp.Symbol(name) for sym, name in call_signature}
    for sym in expr.free_symbols:
        if sym.name in bound_aliases:
            replacement[sym] = sp.Symbol(bound_aliases[sym.name])
    expr_code = printer.doprint(expr.xreplace(replacement))

    lines = ["def _generated(" + ", ".join(arg_names) + "):"]
    if vectorize:
        lines.extend(f"    {nm} = numpy.asarray({nm})" for nm in arg_names)
    for nm in sorted(sym_bindings):
        lines.append(f"    {bound_aliases.get(nm, nm)} = _sym_bindings[{nm!r}]")

    is_constant = not expr.free_symbols
    if vectorize and arg_names and is_constant:
        # numpy.broadcast_to keeps string/categorical constants intact.
        lines.append(f"    _shape = numpy.broadcast({', '.join(arg_names)}).shape")
        lines.append(f"    return numpy.broadcast_to(numpy.asarray({expr_code}), _shape)")
    else:
        lines.append(f"    return {expr_code}")
    src = "\n".join(lines)

    glb: Dict[str, Any] = {"numpy": np, "_sym_bindings": sym_bindings, **func_bindings}
    loc: Dict[str, Any] = {}
    exec(src, glb, loc)
    fn = cast(Callable[..., Any], loc["_generated"])
    fn.__doc__ = textwrap.dedent(
        f"""
        Auto-generated column function.

        expr: {expr!r}
        columns: {[sym.name for sym in vars_tuple]}

        Source:
        {src}
        """
    ).strip()

    if log_debug:
        logger.debug(
            "numpify: compiled %s over %s in %.2f ms",
            expr,
            [a.name for a in vars_tuple],
            1000.0 * (time.perf_counter() - t0),
        )

    return NumpifiedFunction(fn=fn, symbolic=expr, call_signature=call_signature, source=src)


def _normalize_vars(
    expr: sp.Basic, vars: Optional[Union[sp.Symbol, Iterable[sp.Symbol]]]
) -> Tuple[sp.Symbol, ...]:
    """Normalize vars into a tuple of SymPy Symbols."""
    if vars is None:
        return tuple(sorted(expr.free_symbols, key=sp.default_sort_key))
    if isinstance(vars, sp.Symbol):
        return (vars,)
    try:
        vars_tuple = tuple(vars)
    except TypeError as e:
        raise TypeError("vars must be a SymPy Symbol or an iterable of SymPy Symbols") from e
    for a in vars_tuple:
        if not isinstance(a, sp.Symbol):
            raise TypeError(f"vars must contain only SymPy Symbols, got {type(a).__name__}")
    return cast(Tuple[sp.Symbol, ...], vars_tuple)


def _parse_bindings(
    expr: sp.Basic, f_numpy: Optional[Mapping[_BindingKey, Any]]
) -> Tuple[_SymBindings, _FuncBindings]:
    """Split bindings into symbol and function bindings, plus auto-bindings."""
    sym_bindings: _SymBindings = {}
    func_bindings: _FuncBindings = {}

    for key, value in (f_numpy or {}).items():
        if isinstance(key, sp.Symbol):
            sym_bindings[key.name] = value
            continue
        if isinstance(key, (sp.Function, FunctionClass)):
            name = key.func.__name__ if isinstance(key, sp.Function) else key.__name__
            if not callable(value):
                raise TypeError(f"Function binding for {name} must be callable, got {type(value).__name__}")
            func_bindings[name] = cast(Callable[..., Any], value)
            continue
        raise TypeError(
            f"f_numpy keys must be SymPy Symbols or SymPy function classes, got {type(key).__name__}"
        )

    # Functions built with @NamedFunction carry their own implementation.
    for app in expr.atoms(sp.Function):
        impl = getattr(app.func, "f_numpy", None)
        if callable(impl) and app.func.__name__ not in func_bindings:
            func_bindings[app.func.__name__] = cast(Callable[..., Any], impl)

    return sym_bindings, func_bindings


def _require_bound_unknown_functions(
    expr: sp.Basic, printer: NumPyPrinter, func_bindings: Mapping[str, Callable[..., Any]]
) -> None:
    """Raise if a function prints as a bare call with no runtime implementation."""
    missing: set[str] = set()
    for app in expr.atoms(sp.Function):
        name = app.func.__name__
        code = printer.doprint(app).strip()
        if code.startswith(f"{name}(") and name not in func_bindings:
            missing.add(name)
    if missing:
        raise ValueError(
            "Expression calls function(s) without a NumPy implementation: "
            f"{', '.join(sorted(missing))}. Define them in the calling scope, decorate them with "
            "@NamedFunction, or pass f_numpy={F: callable}."
        )


# ---------------------------------------------------------------------------
# Cached compilation
# ---------------------------------------------------------------------------

_NUMPIFY_CACHE_MAXSIZE = 256


def _value_marker(value: Any) -> tuple[str, Any]:
    """Hashable marker: the value itself when hashable, else its identity."""
    try:
        hash(value)
    except TypeError:
        return ("ID", id(value))
    return ("H", value)


class _FrozenBindings:
    """Hashable wrapper so :func:`functools.lru_cache` can key on bindings.

    Unhashable values (arrays, lists) are keyed by identity, so cache hits are
    session-local for those.
    """

    __slots__ = ("mapping", "_key")

    def __init__(self, mapping: Optional[Mapping[_BindingKey, Any]]):
        self.mapping: dict[_BindingKey, Any] = dict(mapping or {})
        entries = []
        for k, v in self.mapping.items():
            if isinstance(k, sp.Symbol):
                k_norm: tuple[Any, ...] = ("S", k.name)
            else:
                fc = k.func if isinstance(k, sp.Function) else k
                k_norm = ("F", getattr(fc, "__module__", ""), getattr(fc, "__qualname__", fc.__name__))
            entries.append((k_norm, _value_marker(v)))
        entries.sort(key=lambda item: item[0])
        self._key = tuple(entries)

    def __hash__(self) -> int:
        return hash(self._key)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _FrozenBindings) and self._key == other._key


@lru_cache(maxsize=_NUMPIFY_CACHE_MAXSIZE)
def _numpify_cached_impl(
    expr: sp.Basic,
    vars_tuple: Tuple[sp.Symbol, ...],
    frozen: _FrozenBindings,
    vectorize: bool,
) -> NumpifiedFunction:
    logger.debug("numpify_cached: cache MISS for %s", expr)
    return _numpify_uncached(expr, vars=vars_tuple, f_numpy=frozen.mapping, vectorize=vectorize)


def numpify_cached(
    expr: Any,
    *,
    vars: Optional[Union[sp.Symbol, Iterable[sp.Symbol]]] = None,
    f_numpy: Optional[Mapping[_BindingKey, Any]] = None,
    vectorize: bool = True,
) -> NumpifiedFunction:
    """Cached version of :func:`numpify`.

    The cache key is the sympified expression, the vars tuple, a hashable view
    of ``f_numpy`` and ``vectorize``. Clear it with
    ``numpify_cached.cache_clear()``.
    """
    expr_sym = _sympify_expr(expr)
    vars_tuple = _normalize_vars(expr_sym, vars)
    return _numpify_cached_impl(expr_sym, vars_tuple, _FrozenBindings(f_numpy), vectorize)


numpify_cached.cache_info = _numpify_cached_impl.cache_info  # type: ignore[attr-defined]
numpify_cached.cache_clear = _numpify_cached_impl.cache_clear  # type: ignore[attr-defined]
