"""Axis, legend and plot titles: ``labs()``, ``xlab()``, ``ylab()``, ``ggtitle()``."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Optional

from .aesthetics import standardise_aes_name


class Labels(Mapping[str, Optional[str]]):
    """Immutable label overrides; a value of ``None`` removes that label."""

    __slots__ = ("_items",)

    def __init__(self, items: Optional[Mapping[str, Any]] = None) -> None:
        self._items = {
            standardise_aes_name(k): (None if v is None else str(v)) for k, v in (items or {}).items()
        }

    def __getitem__(self, key: str) -> Optional[str]:
        return self._items[standardise_aes_name(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __add__(self, other: Any) -> "Labels":
        if not isinstance(other, Labels):
            return NotImplemented
        return Labels({**self._items, **other._items})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Labels):
            return NotImplemented
        return self._items == other._items

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return "labs(" + ", ".join(f"{k}={v!r}" for k, v in self._items.items()) + ")"


def labs(**labels: Any) -> Labels:
    """Set labels for aesthetics (``x``, ``y``, ``colour``, ``fill`` ...) and for
    ``title``, ``subtitle`` and ``caption``. ``None`` removes a label.

    >>> labs(x="Displacement", colour=None)
    labs(x='Displacement', colour=None)
    """
    return Labels(labels)


def xlab(label: Optional[str]) -> Labels:
    return Labels({"x": label})


def ylab(label: Optional[str]) -> Labels:
    return Labels({"y": label})


def ggtitle(title: Optional[str], subtitle: Optional[str] = None) -> Labels:
    items: dict[str, Any] = {"title": title}
    if subtitle is not None:
        items["subtitle"] = subtitle
    return Labels(items)


__all__ = ["Labels", "ggtitle", "labs", "xlab", "ylab"]
