from __future__ import annotations

from collections.abc import Mapping

import jax
import jax_dataclasses as jdc
from frozendict import frozendict
from jax import numpy as jnp

from ._keys import Key, KeyFormatter, default_key_formatter


@jdc.pytree_dataclass
class HybridValues:
    """A joint assignment: vector values for continuous variables, and states
    for discrete variables.

    Lookups never fall back to defaults; a missing key raises `KeyError`.
    """

    continuous: dict[Key, jax.Array]
    """Value of each continuous variable."""

    discrete: jdc.Static[Mapping[Key, int]]
    """State of each discrete variable, in `0..cardinality-1`. Always a
    `frozendict`."""

    @staticmethod
    def make(
        continuous: Mapping[Key, jax.Array] | None = None,
        discrete: Mapping[Key, int] | None = None,
    ) -> HybridValues:
        return HybridValues(
            continuous={
                key: jnp.atleast_1d(jnp.asarray(value))
                for key, value in (continuous or {}).items()
            },
            discrete=frozendict(
                {key: int(state) for key, state in (discrete or {}).items()}
            ),
        )

    def at(self, key: Key) -> jax.Array:
        """Value of a continuous variable."""
        if key not in self.continuous:
            raise KeyError(f"No continuous value for key {key}.")
        return self.continuous[key]

    def at_discrete(self, key: Key) -> int:
        """State of a discrete variable."""
        if key not in self.discrete:
            raise KeyError(f"No discrete value for key {key}.")
        return self.discrete[key]

    def insert(self, other: HybridValues) -> HybridValues:
        """Merge two sets of values. Entries in `other` take precedence."""
        return HybridValues(
            continuous={**self.continuous, **other.continuous},
            discrete=frozendict({**self.discrete, **other.discrete}),
        )

    def format(self, formatter: KeyFormatter = default_key_formatter) -> str:
        lines = ["HybridValues("]
        lines.extend(
            f"    {formatter(k)}: {v}" for k, v in self.continuous.items()
        )
        lines.extend(f"    {formatter(k)}: {v}" for k, v in self.discrete.items())
        lines.append(")")
        return "\n".join(lines)
