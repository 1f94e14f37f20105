from __future__ import annotations

from collections import Counter
from math import gcd
from typing import Iterable, Mapping, Sequence, Tuple, Union

from .exceptions import UnsupportedCompositionError

__all__ = [
    "multiset_key",
    "merge_pairs",
    "normalize_counter",
    "parse_side",
    "require_flat",
    "as_int",
    "lcm",
]


def multiset_key(c: Mapping[int, int]) -> Tuple[Tuple[int, int], ...]:
    """
    Make a stable, hashable key from a multiset.

    :param c: Mapping from species index to count.
    :returns: Sorted tuple of ``(index, count)`` pairs with zero counts removed.
    """
    return tuple(sorted((int(k), int(v)) for k, v in c.items() if v != 0))


def merge_pairs(ids: Sequence[int], stoich: Sequence[int]) -> Counter:
    """
    Merge parallel ``ids``/``stoich`` sequences, summing repeated ids.

    :param ids: Species indices.
    :param stoich: Coefficients aligned with ``ids``.
    :returns: Counter ``{id: total}``.
    :raises ValueError: If the sequences differ in length.
    """
    if len(ids) != len(stoich):
        raise ValueError(
            f"ids and stoich must have the same length ({len(ids)} != {len(stoich)})"
        )
    merged: Counter = Counter()
    for i, c in zip(ids, stoich):
        merged[int(i)] += as_int(c)
    return merged


def normalize_counter(c: Counter) -> Counter:
    """
    Remove zero entries in-place.

    :param c: Counter to normalize.
    :returns: The same counter (for chaining).
    """
    for k in list(c.keys()):
        if c[k] == 0:
            del c[k]
    return c


def parse_side(
    obj: Union[None, str, Iterable[str], Mapping[str, int]],
) -> Counter:
    """
    Parse one side of a reaction into a :class:`Counter` of species names.

    :param obj: None (empty side), ``"A"``, ``["A", "A", "B"]`` or
        ``{"A": 2, "B": 1}``.
    :returns: Counter of names with positive counts.
    """
    if obj is None:
        return Counter()
    if isinstance(obj, str):
        return Counter([obj])
    if isinstance(obj, Mapping):
        return normalize_counter(Counter({str(k): as_int(v) for k, v in obj.items()}))
    return Counter(str(x) for x in obj)


def require_flat(network, what: str) -> None:
    """
    Reject networks that still carry sub-systems.

    :param network: Network to check.
    :param what: Name of the requested quantity (used in the message).
    :raises UnsupportedCompositionError: If ``network.systems`` is non-empty.
    """
    if network.systems:
        raise UnsupportedCompositionError(
            f"{what} does not currently support networks with subsystems; "
            "call flatten() on the network first."
        )


def as_int(value) -> int:
    """
    Coerce an integral value (int, numpy integer, integral float) to ``int``.

    :raises ValueError: If ``value`` is not integral.
    """
    iv = int(value)
    if iv != value:
        raise ValueError(f"stoichiometric coefficients must be integers, got {value!r}")
    return iv


def lcm(a: int, b: int) -> int:
    """Least common multiple of two integers (``lcm(0, b) == 0``)."""
    if a == 0 or b == 0:
        return 0
    return abs(a * b) // gcd(a, b)
