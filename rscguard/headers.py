"""Case-insensitive header lookup over the header shapes the guard accepts.

Three shapes are supported:

  - CapabilityLookup: any object with a callable ``get(name)`` that already
    does case-insensitive lookup (``starlette.datastructures.Headers``,
    ``httpx.Headers``). Called with the lower-cased name.
  - OrderedPairs: a list or tuple of ``(name, value)`` pairs, or an items
    view such as ``dict.items()`` or ``httpx.Headers.items()``.
    The first case-insensitive match wins.
  - MappingHeaders: a plain ``dict``. The exact key is tried first, then the
    lower-cased key; ``None`` values count as absent.

as_header_bag() resolves a raw object into one of these once, at the boundary.
Everything downstream calls get_header() on the resolved bag.
"""

from __future__ import annotations

from collections.abc import ItemsView, Mapping
from typing import Any, Iterable, Optional, Protocol, Sequence, Union


class SupportsGet(Protocol):
    """Header container exposing a case-insensitive ``get``."""

    def get(self, key: str, default: Any = None) -> Any:
        ...


class CapabilityLookup:
    """Header bag backed by an object's own ``get``."""

    __slots__ = ("source",)

    def __init__(self, source: SupportsGet) -> None:
        self.source = source

    def get(self, name: str) -> Optional[str]:
        return self.source.get(name.lower())

    def __repr__(self) -> str:
        return f"CapabilityLookup({self.source!r})"


class OrderedPairs:
    """Header bag backed by an ordered sequence of (name, value) pairs."""

    __slots__ = ("pairs",)

    def __init__(self, pairs: Iterable[tuple[str, str]]) -> None:
        self.pairs: tuple[tuple[str, str], ...] = tuple(pairs)

    def get(self, name: str) -> Optional[str]:
        key = name.lower()
        for pair_name, value in self.pairs:
            if pair_name.lower() == key:
                return value
        return None

    def __repr__(self) -> str:
        return f"OrderedPairs({list(self.pairs)!r})"


class MappingHeaders:
    """Header bag backed by a name → optional value mapping."""

    __slots__ = ("mapping",)

    def __init__(self, mapping: Mapping[str, Optional[str]]) -> None:
        self.mapping = mapping

    def get(self, name: str) -> Optional[str]:
        value = self.mapping.get(name)
        if value is None:
            value = self.mapping.get(name.lower())
        return value

    def __repr__(self) -> str:
        return f"MappingHeaders({dict(self.mapping)!r})"


HeaderBag = Union[CapabilityLookup, OrderedPairs, MappingHeaders]

# Anything as_header_bag() accepts.
HeaderInput = Union[
    HeaderBag,
    SupportsGet,
    Sequence[tuple[str, str]],
    ItemsView[str, str],
    Mapping[str, Optional[str]],
]

_RESOLVED_TYPES = (CapabilityLookup, OrderedPairs, MappingHeaders)


def as_header_bag(headers: Any) -> HeaderBag:
    """Resolve a raw header container into one of the three header bag shapes.

    ``dict`` is checked before the ``get`` capability: a dict has ``get`` but
    its keys are case-sensitive, so it must go through the exact-then-lower
    mapping rule.

    Raises:
        TypeError: If ``headers`` matches none of the supported shapes.
    """
    if isinstance(headers, _RESOLVED_TYPES):
        return headers
    if isinstance(headers, dict):
        return MappingHeaders(headers)
    if isinstance(headers, (list, tuple, ItemsView)):
        return OrderedPairs(headers)
    if callable(getattr(headers, "get", None)):
        return CapabilityLookup(headers)
    if isinstance(headers, Mapping):
        return MappingHeaders(headers)
    raise TypeError(
        f"Unsupported header container: {type(headers).__name__}. "
        "Expected an object with get(), a sequence of (name, value) pairs, or a dict."
    )


def get_header(headers: Any, name: str) -> Optional[str]:
    """Return the value of header ``name`` (case-insensitive), or None if absent."""
    return as_header_bag(headers).get(name)
