from __future__ import annotations

import abc
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, TypeAlias

import jax
import jax_dataclasses as jdc

from ._keys import (
    DiscreteKey,
    Key,
    KeyFormatter,
    default_key_formatter,
    merge_continuous_keys,
)
from ._values import HybridValues


def _check_continuous_keys(keys: tuple[Key, ...]) -> None:
    if len(keys) == 0:
        raise ValueError("Expected at least one continuous key.")


def _check_discrete_keys(keys: tuple[DiscreteKey, ...]) -> None:
    if len(keys) == 0:
        raise ValueError("Expected at least one discrete key.")
    labels = [k.key for k in keys]
    if len(set(labels)) != len(labels):
        raise ValueError(f"Duplicate discrete keys: {labels}.")


@dataclass(frozen=True)
class ContinuousScope:
    """Scope of a factor over continuous variables only."""

    continuous_keys: tuple[Key, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "continuous_keys", tuple(self.continuous_keys))
        _check_continuous_keys(self.continuous_keys)


@dataclass(frozen=True)
class DiscreteScope:
    """Scope of a factor over discrete variables only."""

    discrete_keys: tuple[DiscreteKey, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "discrete_keys", tuple(self.discrete_keys))
        _check_discrete_keys(self.discrete_keys)


@dataclass(frozen=True)
class HybridScope:
    """Scope of a factor over both continuous and discrete variables."""

    continuous_keys: tuple[Key, ...]
    discrete_keys: tuple[DiscreteKey, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "continuous_keys", tuple(self.continuous_keys))
        object.__setattr__(self, "discrete_keys", tuple(self.discrete_keys))
        _check_continuous_keys(self.continuous_keys)
        _check_discrete_keys(self.discrete_keys)


FactorScope: TypeAlias = ContinuousScope | DiscreteScope | HybridScope


def make_scope(
    continuous_keys: Iterable[Key] = (),
    discrete_keys: Iterable[DiscreteKey] = (),
) -> FactorScope:
    """Pick the scope variant that matches which key sets are non-empty. A
    factor without any keys is rejected with a `ValueError`."""
    continuous_keys = tuple(continuous_keys)
    discrete_keys = tuple(discrete_keys)
    match len(continuous_keys) > 0, len(discrete_keys) > 0:
        case True, True:
            return HybridScope(continuous_keys, discrete_keys)
        case True, False:
            return ContinuousScope(continuous_keys)
        case False, True:
            return DiscreteScope(discrete_keys)
        case _:
            raise ValueError("Hybrid factors need at least one key.")


@jdc.pytree_dataclass
class HybridFactor(abc.ABC):
    """Base class for factors over continuous variables, discrete variables,
    or both.

    Subclasses are pytree dataclasses that add their own fields and implement
    `error()`. Whether a factor is discrete, continuous, or hybrid is decided
    by the variant of `scope`; exactly one of the three holds.

    Examples of subclasses: Gaussian mixture factors and conditionals, or
    nonlinear mixture factors.
    """

    scope: jdc.Static[FactorScope]
    """Keys touched by this factor."""

    @abc.abstractmethod
    def error(self, values: HybridValues) -> jax.Array:
        """Compute the error of this factor given continuous values and a
        discrete assignment.

        Missing keys in `values` raise `KeyError`."""

    def is_discrete(self) -> bool:
        """True if this is a factor of discrete variables only."""
        return isinstance(self.scope, DiscreteScope)

    def is_continuous(self) -> bool:
        """True if this is a factor of continuous variables only."""
        return isinstance(self.scope, ContinuousScope)

    def is_hybrid(self) -> bool:
        """True if this is a discrete-continuous factor."""
        return isinstance(self.scope, HybridScope)

    def continuous_keys(self) -> tuple[Key, ...]:
        match self.scope:
            case ContinuousScope(keys) | HybridScope(keys, _):
                return keys
            case DiscreteScope():
                return ()

    def discrete_keys(self) -> tuple[DiscreteKey, ...]:
        match self.scope:
            case DiscreteScope(keys) | HybridScope(_, keys):
                return keys
            case ContinuousScope():
                return ()

    def num_continuous(self) -> int:
        return len(self.continuous_keys())

    def keys(self) -> tuple[Key, ...]:
        """All keys: continuous keys, followed by discrete ones."""
        return merge_continuous_keys(self.continuous_keys(), self.discrete_keys())

    def equals(self, other: HybridFactor, tol: float = 1e-9) -> bool:
        """Compare scopes. Subclasses should extend this to cover their own
        fields, using `tol` for numerical ones."""
        del tol
        return isinstance(other, HybridFactor) and self.scope == other.scope

    def format(
        self, s: str = "HybridFactor", formatter: KeyFormatter = default_key_formatter
    ) -> str:
        match self.scope:
            case ContinuousScope():
                kind = "Continuous"
            case DiscreteScope():
                kind = "Discrete"
            case HybridScope():
                kind = "Hybrid"
        continuous = " ".join(formatter(k) for k in self.continuous_keys())
        discrete = " ".join(formatter(k.key) for k in self.discrete_keys())
        separator = "; " if continuous and discrete else ""
        line = f"{kind} [{continuous}{separator}{discrete}]"
        return f"{s}\n{line}" if s else line

    def print(
        self, s: str = "HybridFactor", formatter: KeyFormatter = default_key_formatter
    ) -> None:
        print(self.format(s, formatter))

    def state_dict(self) -> dict[str, Any]:
        """Serializable fields. Subclasses should extend the returned dict."""
        return {
            "is_discrete": self.is_discrete(),
            "is_continuous": self.is_continuous(),
            "is_hybrid": self.is_hybrid(),
            "discrete_keys": [[k.key, k.cardinality] for k in self.discrete_keys()],
            "continuous_keys": list(self.continuous_keys()),
        }
