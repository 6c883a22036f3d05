"""Aesthetic mappings: ``aes()`` and the :class:`Aes` value type."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Optional

from .expressions import CALLER, AesExpression, quote, resolve_environment

# Alternative spellings accepted for aesthetic and parameter names.
AES_ALIASES: dict[str, str] = {
    "color": "colour",
    "lwd": "linewidth",
    "lty": "linetype",
    "pch": "shape",
}

POSITION_AESTHETICS = ("x", "y", "xmin", "xmax", "ymin", "ymax", "xintercept", "yintercept")


def standardise_aes_name(name: str) -> str:
    """Return the canonical spelling of an aesthetic name."""
    return AES_ALIASES.get(name, name)


class Aes(Mapping[str, AesExpression]):
    """Immutable mapping from aesthetic names to captured expressions.

    Adding two mappings (``a + b``) returns a new mapping where ``b`` wins.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Optional[Mapping[str, AesExpression]] = None) -> None:
        normalized: dict[str, AesExpression] = {}
        for name, value in (items or {}).items():
            if not isinstance(value, AesExpression):
                raise TypeError("Aes values must be AesExpression objects; use aes() to build mappings")
            normalized[standardise_aes_name(name)] = value
        self._items = normalized

    def __getitem__(self, key: str) -> AesExpression:
        return self._items[standardise_aes_name(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and standardise_aes_name(key) in self._items

    def merge(self, other: Optional[Mapping[str, AesExpression]]) -> "Aes":
        if not other:
            return self
        merged = dict(self._items)
        for name, value in other.items():
            merged[standardise_aes_name(name)] = value
        return Aes(merged)

    def __add__(self, other: Any) -> "Aes":
        if isinstance(other, Aes):
            return self.merge(other)
        return NotImplemented

    def drop(self, *names: str) -> "Aes":
        dropped = {standardise_aes_name(n) for n in names}
        return Aes({k: v for k, v in self._items.items() if k not in dropped})

    def labels(self) -> dict[str, str]:
        """Default labels: the source text of each mapping."""
        return {name: expr.label for name, expr in self._items.items()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Aes):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(tuple(sorted((k, v.expr) for k, v in self._items.items())))

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v.source!r}" for k, v in self._items.items())
        return f"aes({inner})"


def aes(x: Any = None, y: Any = None, *, env: Any = CALLER, **aesthetics: Any) -> Aes:
    """Build an aesthetic mapping.

    Parameters
    ----------
    x, y : optional
        Position aesthetics; may be given positionally.
    env : Mapping, None, or CALLER
        Environment used to resolve names that are not data columns. By
        default the caller's locals and globals are captured. ``None``
        restricts evaluation to the data.
    **aesthetics
        Other aesthetics (``colour``/``color``, ``fill``, ``group``, ...).
        Values are column names, expression strings, SymPy expressions,
        numbers, or already-quoted :class:`AesExpression` objects.

    Examples
    --------
    >>> aes("displ", "hwy", colour="factor(cyl)")
    aes(x='displ', y='hwy', colour='factor(cyl)')
    """
    captured = resolve_environment(env, stacklevel=1)
    items: dict[str, Any] = {}
    if x is not None:
        items["x"] = x
    if y is not None:
        items["y"] = y
    for name, value in aesthetics.items():
        if value is not None:
            items[standardise_aes_name(name)] = value
    return Aes({name: quote(value, env=captured) for name, value in items.items()})


__all__ = ["AES_ALIASES", "Aes", "POSITION_AESTHETICS", "aes", "standardise_aes_name"]
