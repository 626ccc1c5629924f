from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import TYPE_CHECKING

import jax
import jax_dataclasses as jdc
import numpy as onp
from jax import numpy as jnp

from ._keys import Key, KeyFormatter, default_key_formatter, merge_continuous_keys

if TYPE_CHECKING:
    from ._values import HybridValues


@jdc.pytree_dataclass
class DiagonalGaussian:
    sqrt_precision_diagonal: jax.Array
    """Diagonal elements of square root precision matrix."""

    @staticmethod
    def make_from_sigmas(sigmas: jax.Array | Sequence[float]) -> DiagonalGaussian:
        return DiagonalGaussian(sqrt_precision_diagonal=1.0 / jnp.asarray(sigmas))

    def get_residual_dim(self) -> int:
        return self.sqrt_precision_diagonal.shape[-1]

    def whiten_residual_vector(self, residual_vector: jax.Array) -> jax.Array:
        assert residual_vector.shape == self.sqrt_precision_diagonal.shape
        return self.sqrt_precision_diagonal * residual_vector

    def whiten_jacobian(self, jacobian: jax.Array) -> jax.Array:
        assert len(jacobian.shape) == 2
        assert self.sqrt_precision_diagonal.shape == (jacobian.shape[0],)
        return self.sqrt_precision_diagonal[:, None] * jacobian

    def log_normalization_constant(self) -> jax.Array:
        """Log of the Gaussian normalization term, `-0.5 * log|2 pi Sigma|`."""
        dim = self.get_residual_dim()
        return -0.5 * dim * jnp.log(2.0 * jnp.pi) + jnp.sum(
            jnp.log(self.sqrt_precision_diagonal)
        )


@jdc.pytree_dataclass
class JacobianFactor:
    """Whitened linear factor, with error `0.5 * ||(sum_i A_i x_i) - b||^2`.

    Equality via `==` is by reference. Use `equals()` to compare numerically.
    """

    keys: jdc.Static[tuple[Key, ...]]
    """Continuous variables touched by this factor. 1-to-1 with `A`."""
    A: tuple[jax.Array, ...]
    """One `(rows, dim_i)` block per key."""
    b: jax.Array
    """Right-hand side, shape `(rows,)`."""

    __eq__ = object.__eq__
    __hash__ = object.__hash__

    @staticmethod
    def make(
        terms: Sequence[tuple[Key, jax.Array | onp.ndarray]],
        b: jax.Array | onp.ndarray | Sequence[float],
        noise_model: DiagonalGaussian | None = None,
    ) -> JacobianFactor:
        """Build a factor from `(key, A_i)` pairs and a right-hand side. If a
        noise model is passed, blocks and right-hand side are whitened."""
        b = jnp.atleast_1d(jnp.asarray(b, dtype=float))
        keys = tuple(key for key, _ in terms)
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate keys in linear factor: {keys}.")

        blocks = []
        for key, block in terms:
            block = jnp.asarray(block, dtype=b.dtype)
            if block.ndim != 2 or block.shape[0] != b.shape[0]:
                raise ValueError(
                    f"Block for key {key} has shape {block.shape}, expected"
                    f" ({b.shape[0]}, dim)."
                )
            blocks.append(block)

        if noise_model is not None:
            blocks = [noise_model.whiten_jacobian(block) for block in blocks]
            b = noise_model.whiten_residual_vector(b)
        return JacobianFactor(keys=keys, A=tuple(blocks), b=b)

    def rows(self) -> int:
        return self.b.shape[0]

    def residual(self, values: HybridValues) -> jax.Array:
        out = -self.b
        for key, block in zip(self.keys, self.A):
            out = out + block @ values.at(key)
        return out

    def error(self, values: HybridValues) -> jax.Array:
        r = self.residual(values)
        return 0.5 * jnp.sum(r**2)

    def equals(self, other: JacobianFactor, tol: float = 1e-9) -> bool:
        if self.keys != other.keys:
            return False
        for a, b in zip((*self.A, self.b), (*other.A, other.b)):
            if a.shape != b.shape or not bool(jnp.allclose(a, b, rtol=0.0, atol=tol)):
                return False
        return True

    def format(self, formatter: KeyFormatter = default_key_formatter) -> str:
        lines = [f"JacobianFactor [{' '.join(formatter(k) for k in self.keys)}]"]
        for key, block in zip(self.keys, self.A):
            lines.append(f"  A[{formatter(key)}] = {onp.asarray(block).tolist()}")
        lines.append(f"  b = {onp.asarray(self.b).tolist()}")
        return "\n".join(lines)


@jdc.pytree_dataclass
class GaussianFactorGraph:
    """An ordered collection of linear factors.

    `==` compares the contained factors by reference; `equals()` compares
    their contents up to a tolerance.
    """

    factors: tuple[JacobianFactor, ...] = ()

    @staticmethod
    def make(factors: Iterable[JacobianFactor]) -> GaussianFactorGraph:
        return GaussianFactorGraph(factors=tuple(factors))

    def __len__(self) -> int:
        return len(self.factors)

    def __iter__(self) -> Iterator[JacobianFactor]:
        return iter(self.factors)

    def concat(self, other: GaussianFactorGraph) -> GaussianFactorGraph:
        """Factors of `self`, followed by factors of `other`."""
        return GaussianFactorGraph(factors=self.factors + other.factors)

    def __add__(self, other: GaussianFactorGraph) -> GaussianFactorGraph:
        return self.concat(other)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GaussianFactorGraph):
            return NotImplemented
        return len(self.factors) == len(other.factors) and all(
            a is b for a, b in zip(self.factors, other.factors)
        )

    def __hash__(self) -> int:
        return hash(tuple(id(f) for f in self.factors))

    def keys(self) -> tuple[Key, ...]:
        """Continuous keys touched by any factor, in order of first appearance."""
        out: tuple[Key, ...] = ()
        for factor in self.factors:
            out = merge_continuous_keys(out, factor.keys)
        return out

    def error(self, values: HybridValues) -> jax.Array:
        return sum(
            (factor.error(values) for factor in self.factors), start=jnp.zeros(())
        )

    def equals(self, other: GaussianFactorGraph, tol: float = 1e-9) -> bool:
        return len(self.factors) == len(other.factors) and all(
            a.equals(b, tol) for a, b in zip(self.factors, other.factors)
        )

    def format(
        self, s: str = "", formatter: KeyFormatter = default_key_formatter
    ) -> str:
        lines = [s] if s else []
        lines.append(f"size: {len(self.factors)}")
        for i, factor in enumerate(self.factors):
            lines.append(f"factor {i}: {factor.format(formatter)}")
        return "\n".join(lines)

    def print(
        self, s: str = "", formatter: KeyFormatter = default_key_formatter
    ) -> None:
        print(self.format(s, formatter))
