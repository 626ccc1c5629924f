from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Callable, TypeAlias

Key: TypeAlias = int
KeyFormatter: TypeAlias = Callable[[Key], str]

_CHAR_BITS = 8
_INDEX_BITS = 64 - _CHAR_BITS
_INDEX_MASK = (1 << _INDEX_BITS) - 1


def symbol(char: str, index: int) -> Key:
    """Encode a character and an index into a single key, eg `symbol("x", 3)`."""
    if len(char) != 1 or ord(char) >= 1 << _CHAR_BITS:
        raise ValueError(
            f"Symbol character must be a single 8-bit character, got {char!r}."
        )
    if not 0 <= index <= _INDEX_MASK:
        raise ValueError(f"Symbol index {index} does not fit in {_INDEX_BITS} bits.")
    return (ord(char) << _INDEX_BITS) | index


def symbol_char(key: Key) -> str:
    return chr(key >> _INDEX_BITS)


def symbol_index(key: Key) -> int:
    return key & _INDEX_MASK


def default_key_formatter(key: Key) -> str:
    """Format symbol keys as `x3`, anything else as a plain integer."""
    char_code = key >> _INDEX_BITS
    if 0 < char_code < 128 and chr(char_code).isprintable():
        return f"{chr(char_code)}{key & _INDEX_MASK}"
    return str(key)


@dataclass(frozen=True)
class DiscreteKey:
    """Identifier of a discrete variable, along with its number of states."""

    key: Key
    cardinality: int

    def __post_init__(self) -> None:
        if self.cardinality < 1:
            raise ValueError(
                f"Discrete key {self.key} needs a positive cardinality, got"
                f" {self.cardinality}."
            )


def merge_continuous_keys(
    keys1: Iterable[Key], keys2: Iterable[Key] | Iterable[DiscreteKey]
) -> tuple[Key, ...]:
    """Ordered union of two key sequences. Keys keep the order in which they
    first appear in `keys1`, then `keys2`.

    If `keys2` holds discrete keys, their identifiers are appended instead; this
    gives the combined key listing of a factor over both variable kinds."""
    out = dict[Key, None]()
    for key in keys1:
        out.setdefault(key)
    for key in keys2:
        out.setdefault(key.key if isinstance(key, DiscreteKey) else key)
    return tuple(out)


def merge_discrete_keys(
    keys1: Iterable[DiscreteKey], keys2: Iterable[DiscreteKey]
) -> tuple[DiscreteKey, ...]:
    """Ordered union of two discrete key sequences, deduplicated by identifier.

    Raises `ValueError` if an identifier shows up with two different
    cardinalities."""
    out = dict[Key, DiscreteKey]()
    for dkey in (*keys1, *keys2):
        existing = out.setdefault(dkey.key, dkey)
        if existing.cardinality != dkey.cardinality:
            raise ValueError(
                f"Discrete key {dkey.key} used with cardinalities"
                f" {existing.cardinality} and {dkey.cardinality}."
            )
    return tuple(out.values())


def cardinalities(discrete_keys: Sequence[DiscreteKey]) -> dict[Key, int]:
    return {dkey.key: dkey.cardinality for dkey in discrete_keys}
