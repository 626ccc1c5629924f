from __future__ import annotations

import operator
from collections.abc import Iterable
from typing import TypeAlias

import jax
import jax_dataclasses as jdc

from ._decision_tree import DecisionTree
from ._keys import DiscreteKey, KeyFormatter, default_key_formatter
from ._linear import GaussianFactorGraph


@jdc.pytree_dataclass
class GraphAndConstant:
    """Gaussian factor graph and log of normalizing constant.

    `==` (and hashing) use reference equality on the graph's factors and exact
    equality on the constant; traced constants compare by identity. This is
    what decision trees use to merge leaves.
    `equals()` compares contents up to a tolerance.
    """

    graph: GaussianFactorGraph
    constant: float | jax.Array

    def _constant_key(self) -> tuple[str, float | int]:
        # Traced constants have no value; fall back to object identity.
        if isinstance(self.constant, jax.core.Tracer):
            return ("tracer", id(self.constant))
        return ("value", float(self.constant))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GraphAndConstant):
            return NotImplemented
        return self.graph == other.graph and self._constant_key() == (
            other._constant_key()
        )

    def __hash__(self) -> int:
        return hash((self.graph, self._constant_key()))

    def __add__(self, other: GraphAndConstant) -> GraphAndConstant:
        """Concatenate graphs and sum constants."""
        return GraphAndConstant(
            graph=self.graph + other.graph, constant=self.constant + other.constant
        )

    def equals(self, other: GraphAndConstant, tol: float = 1e-9) -> bool:
        return (
            self.graph.equals(other.graph, tol)
            and abs(float(self.constant) - float(other.constant)) <= tol
        )

    def format(
        self, s: str = "Graph: ", formatter: KeyFormatter = default_key_formatter
    ) -> str:
        return f"{self.graph.format(s, formatter)}\nConstant: {float(self.constant)}"

    def print(
        self, s: str = "Graph: ", formatter: KeyFormatter = default_key_formatter
    ) -> None:
        print(self.format(s, formatter))


GaussianFactorGraphTree: TypeAlias = DecisionTree[GraphAndConstant]
"""One `GraphAndConstant` per assignment of a set of discrete variables."""


def make_graph_tree(
    discrete_keys: Iterable[DiscreteKey],
    graphs_and_constants: Iterable[GraphAndConstant],
) -> GaussianFactorGraphTree:
    """Build a graph tree from one entry per discrete assignment, enumerated in
    the order of `enumerate_assignments()`."""
    return DecisionTree.from_leaves(discrete_keys, graphs_and_constants)


def sum_graph_trees(
    tree0: GaussianFactorGraphTree, tree1: GaussianFactorGraphTree
) -> GaussianFactorGraphTree:
    """For each joint assignment: concatenate the two graphs, add the two
    constants."""
    return tree0.apply_binary(tree1, operator.add)


def graph_tree_equals(
    tree0: GaussianFactorGraphTree, tree1: GaussianFactorGraphTree, tol: float = 1e-9
) -> bool:
    return tree0.equals(tree1, lambda a, b: a.equals(b, tol))


def format_graph_tree(
    tree: GaussianFactorGraphTree,
    s: str = "",
    formatter: KeyFormatter = default_key_formatter,
) -> str:
    return tree.format(s, formatter, lambda leaf: leaf.format("Graph: ", formatter))
