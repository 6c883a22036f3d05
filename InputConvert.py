"""Numeric input conversion for limits, breaks and other user-typed numbers.

``xlim("0", "2*pi")`` and ``coord_cartesian(ylim=(0, "sqrt(2)"))`` accept
numbers, numeric strings and SymPy-parsable strings. ``None`` and NaN are kept
as ``None`` and mean "use the data range" for that end of a limit pair.
"""

from __future__ import annotations

import math
from typing import Any, Optional, Sequence, Type, TypeVar

import numpy as np
import sympy as sp

T = TypeVar("T", int, float)


def InputConvert(obj: Any, dest_type: Type[T] = float, truncate: bool = True) -> T:
    """
    Convert ``obj`` to ``dest_type`` (``float`` or ``int``).

    Rules:
    - Numbers (including NumPy and SymPy numbers) are cast directly.
    - Strings are tried as ``float(s)`` first, then parsed with SymPy and
      evaluated, so ``"pi/2"`` and ``"1e3"`` both work.

    When converting to ``int``, ``truncate=False`` requires an exact integer.

    Raises
    ------
    NotImplementedError
        If dest_type is unsupported.
    ValueError
        If conversion fails, yields a non-real value, or violates truncation rules.
    """
    if dest_type not in (float, int):
        raise NotImplementedError(
            f"Unsupported destination type: {dest_type!r}. Only float and int are supported."
        )

    if isinstance(obj, bool):
        raise ValueError(f"Could not convert boolean {obj!r} to {dest_type.__name__}.")

    if isinstance(obj, (int, float, np.integer, np.floating)):
        value = float(obj)
    elif isinstance(obj, sp.Basic):
        value = _evaluate_sympy(obj, obj)
    elif isinstance(obj, str):
        s = obj.strip()
        if s == "":
            raise ValueError(f"Cannot convert empty string to {dest_type.__name__}.")
        try:
            value = float(s)
        except ValueError:
            try:
                expr = sp.sympify(s)
            except (sp.SympifyError, SyntaxError, TypeError) as e:
                raise ValueError(f"Could not convert {obj!r} to {dest_type.__name__}.") from e
            value = _evaluate_sympy(expr, obj)
    else:
        raise ValueError(f"Could not convert {obj!r} to {dest_type.__name__}.")

    if dest_type is float:
        return float(value)  # type: ignore[return-value]
    if not value.is_integer() and not truncate:
        raise ValueError(f"Could not convert {obj!r} to int: value is not an exact integer.")
    return int(value)  # type: ignore[return-value]


def _evaluate_sympy(expr: sp.Basic, original: Any) -> float:
    if expr.free_symbols:
        names = ", ".join(sorted(str(s) for s in expr.free_symbols))
        raise ValueError(f"Could not convert {original!r} to a number: free symbols {names}.")
    val = complex(expr.evalf())
    if val.imag != 0:
        raise ValueError(f"Could not convert non-real {original!r} to a real number.")
    return val.real


def convert_limits(
    limits: Optional[Sequence[Any]],
    *,
    what: str = "limits",
) -> Optional[tuple[Optional[float], Optional[float]]]:
    """Normalise a numeric ``(lower, upper)`` pair.

    Either end may be ``None`` (or NaN) to keep the data range there.

    Raises
    ------
    ValueError
        If ``limits`` is not a pair or the lower end exceeds the upper end.
    """
    if limits is None:
        return None
    if isinstance(limits, (str, bytes)) or len(limits) != 2:
        raise ValueError(f"{what} must be a pair (lower, upper), got {limits!r}")
    out: list[Optional[float]] = []
    for end in limits:
        if end is None or (isinstance(end, float) and math.isnan(end)):
            out.append(None)
        else:
            out.append(InputConvert(end, float))
    lo, hi = out
    if lo is not None and hi is not None and lo > hi:
        raise ValueError(f"{what} lower end {lo} is greater than upper end {hi}")
    return lo, hi


__all__ = ["InputConvert", "convert_limits"]
