"""
NamedFunction: SymPy ``Function`` classes that carry a NumPy implementation
==========================================================================

Purpose
-------
Aesthetic expressions are parsed into SymPy, so every function an expression
may call (``factor(cyl)``, ``cut_width(displ, 1)``) must exist as a SymPy
``Function`` class. :func:`NamedFunction` turns either

1) a regular Python function returning a symbolic definition, or
2) a small "spec class" with ``symbolic`` and ``numeric`` methods

into such a class. The NumPy implementation is exposed as ``f_numpy`` and is
picked up automatically by :func:`gg_toolkit.numpify.numpify` when the
expression is compiled against data columns.

Key invariants
--------------
- Arguments are positional, required, and fixed in number.
- A symbolic definition may return ``None`` to keep the function opaque. Opaque
  functions stay as calls in the compiled source and must carry ``f_numpy``.

Examples
--------
>>> import numpy as np
>>> import sympy as sp
>>> @NamedFunction
... class double:
...     def symbolic(self, x):
...         return None
...     def numeric(self, x):
...         return 2 * np.asarray(x)
>>> x = sp.Symbol("x")
>>> double(x).rewrite("expand_definition") == double(x)
True
>>> double.f_numpy(np.array([1, 2]))
array([2, 4])
"""

from __future__ import annotations

import inspect
from typing import Callable, Optional, Protocol, Type, Union, cast

import sympy as sp


__all__ = ["NamedFunction"]


_SymbolicReturn = Union[sp.Basic, int, float, complex, str, None]
_SymbolicCallable = Callable[..., _SymbolicReturn]


class _NamedFunctionSpec(Protocol):
    """Protocol for @NamedFunction class-decoration.

    A spec class is never instantiated; its methods are called with ``self=None``.
    """

    def symbolic(self, *args: sp.Basic) -> _SymbolicReturn:
        ...

    def numeric(self, *args: object) -> object:
        ...


class _SignedFunctionMeta(type(sp.Function)):
    """Metaclass that allows overriding ``__signature__`` on generated classes."""

    @property
    def __signature__(cls) -> Optional[inspect.Signature]:  # noqa: D401
        return cast(Optional[inspect.Signature], getattr(cls, "_custom_signature", None))


def _validate_fixed_positional_signature(sig: inspect.Signature, *, what: str) -> int:
    """Return the number of positional parameters, rejecting anything else.

    Raises
    ------
    ValueError
        If the signature contains varargs, varkw, keyword-only parameters, or defaults.
    """
    supported_kinds = {
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    }
    params = list(sig.parameters.values())
    for p in params:
        if p.kind not in supported_kinds:
            raise ValueError(
                f"{what} must use only positional parameters (no *args, **kwargs, or keyword-only). "
                f"Got parameter {p.name!r} with kind={p.kind}."
            )
        if p.default is not inspect.Parameter.empty:
            raise ValueError(
                f"{what} must not define default values; SymPy Function calls always pass every argument."
            )
    return len(params)


def _coerce_definition(value: _SymbolicReturn) -> Optional[sp.Basic]:
    """Sympify a symbolic definition, returning ``None`` when that is impossible."""
    if value is None:
        return None
    if isinstance(value, sp.Basic):
        return value
    try:
        coerced = sp.sympify(value)
    except (sp.SympifyError, TypeError, SyntaxError):
        return None
    return coerced if isinstance(coerced, sp.Basic) else None


def _make_rewrite(call_symbolic: Callable[..., _SymbolicReturn]) -> Callable[..., sp.Basic]:
    def _eval_rewrite_as_expand_definition(self: sp.Function, *args: object, **_kwargs: object) -> sp.Basic:
        expr = _coerce_definition(call_symbolic(*args))
        if expr is None or expr == self:
            return self
        return expr

    return _eval_rewrite_as_expand_definition


def _build_class(
    name: str,
    *,
    nargs: int,
    module: str,
    doc: Optional[str],
    call_symbolic: Callable[..., _SymbolicReturn],
    f_numpy: Optional[Callable[..., object]],
    signature: inspect.Signature,
) -> Type[sp.Function]:
    class_dict: dict[str, object] = {
        "nargs": nargs,
        "_eval_rewrite_as_expand_definition": _make_rewrite(call_symbolic),
        "__module__": module,
        "__doc__": doc,
        "f_numpy": staticmethod(f_numpy) if f_numpy is not None else None,
    }
    new_class = _SignedFunctionMeta(name, (sp.Function,), class_dict)
    new_class._custom_signature = signature
    return cast(Type[sp.Function], new_class)


def NamedFunction(obj: Union[_SymbolicCallable, Type[_NamedFunctionSpec]]) -> Type[sp.Function]:
    """Decorate a Python callable or spec class to produce a SymPy Function class.

    Mode 1: function decorator
        The function takes ``n`` positional arguments and returns a symbolic
        definition (or ``None`` for an opaque function). Attach a NumPy
        implementation by setting ``func.f_numpy`` *before* decorating.

    Mode 2: class decorator
        The class defines ``symbolic(self, *args)`` and ``numeric(self, *args)``
        with matching arity. ``numeric`` becomes ``f_numpy``.

    Raises
    ------
    TypeError
        If ``obj`` is neither a function nor a class.
    ValueError
        If the decorated object does not meet the signature constraints.
    """
    if inspect.isclass(obj):
        return _handle_class_decoration(cast(Type[_NamedFunctionSpec], obj))
    if callable(obj):
        return _handle_function_decoration(cast(_SymbolicCallable, obj))
    raise TypeError(f"@NamedFunction must decorate a function or a class, not {type(obj).__name__}")


def _handle_function_decoration(func: _SymbolicCallable) -> Type[sp.Function]:
    sig = inspect.signature(func)
    nargs = _validate_fixed_positional_signature(sig, what=f"function {getattr(func, '__name__', '<callable>')}")
    return _build_class(
        func.__name__,
        nargs=nargs,
        module=func.__module__,
        doc=func.__doc__,
        call_symbolic=func,
        f_numpy=getattr(func, "f_numpy", None),
        signature=sig,
    )


def _handle_class_decoration(cls: Type[_NamedFunctionSpec]) -> Type[sp.Function]:
    if not hasattr(cls, "symbolic") or not hasattr(cls, "numeric"):
        raise ValueError(
            f"Class {cls.__name__} decorated with @NamedFunction must define both "
            "'symbolic' and 'numeric' methods."
        )
    symbolic_func = getattr(cls, "symbolic")
    numeric_func = getattr(cls, "numeric")

    sig_sym = inspect.signature(symbolic_func)
    nparams_sym = _validate_fixed_positional_signature(sig_sym, what=f"{cls.__name__}.symbolic")
    nparams_num = _validate_fixed_positional_signature(
        inspect.signature(numeric_func), what=f"{cls.__name__}.numeric"
    )
    if nparams_sym != nparams_num:
        raise ValueError(
            f"Signature mismatch in {cls.__name__}: 'symbolic' takes {nparams_sym} parameters "
            f"but 'numeric' takes {nparams_num} parameters."
        )
    if nparams_sym < 1:
        raise ValueError(f"{cls.__name__}.symbolic must accept at least 'self'.")

    def f_numpy(*args: object) -> object:
        return numeric_func(None, *args)

    def call_symbolic(*args: object) -> _SymbolicReturn:
        return symbolic_func(None, *args)

    # Public signature matches SymPy usage (no 'self').
    public_sig = inspect.Signature(list(sig_sym.parameters.values())[1:])
    return _build_class(
        cls.__name__,
        nargs=nparams_sym - 1,
        module=cls.__module__,
        doc=cls.__doc__,
        call_symbolic=call_symbolic,
        f_numpy=f_numpy,
        signature=public_sig,
    )
