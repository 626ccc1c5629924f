from __future__ import annotations

import itertools
import math
import operator
from collections.abc import Callable, Hashable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import jax_dataclasses as jdc
from loguru import logger

from ._keys import (
    DiscreteKey,
    Key,
    KeyFormatter,
    cardinalities,
    default_key_formatter,
    merge_discrete_keys,
)

Y = TypeVar("Y", bound=Hashable)
T = TypeVar("T", bound=Hashable)
U = TypeVar("U", bound=Hashable)
X = TypeVar("X")


@dataclass(frozen=True)
class _Leaf:
    index: int
    """Index into `DecisionTree.leaf_values`."""


@dataclass(frozen=True)
class _Choice:
    label: Key
    branches: tuple[int, ...]
    """Node handle for each state of `label`."""


def enumerate_assignments(
    discrete_keys: Sequence[DiscreteKey],
) -> Iterator[dict[Key, int]]:
    """Every full assignment of `discrete_keys`, in lexicographic order. The
    first key is the most significant."""
    for states in itertools.product(*(range(k.cardinality) for k in discrete_keys)):
        yield {k.key: state for k, state in zip(discrete_keys, states)}


class _TreeBuilder(Generic[Y]):
    """Interns nodes and leaf values while a tree is being built.

    Identical leaves and identical subtrees share a single handle, and choices
    whose branches all point at the same node are replaced by that node."""

    def __init__(self) -> None:
        self.nodes: list[_Leaf | _Choice] = []
        self.leaf_values: list[Y] = []
        self._handle_from_node: dict[_Leaf | _Choice, int] = {}
        self._index_from_leaf: dict[Y, int] = {}

    def leaf(self, value: Y) -> int:
        index = self._index_from_leaf.setdefault(value, len(self.leaf_values))
        if index == len(self.leaf_values):
            self.leaf_values.append(value)
        return self._intern(_Leaf(index))

    def choice(self, label: Key, branches: Sequence[int]) -> int:
        assert len(branches) > 0
        if all(b == branches[0] for b in branches):
            return branches[0]
        return self._intern(_Choice(label, tuple(branches)))

    def _intern(self, node: _Leaf | _Choice) -> int:
        handle = self._handle_from_node.setdefault(node, len(self.nodes))
        if handle == len(self.nodes):
            self.nodes.append(node)
        return handle

    def build(
        self, discrete_keys: tuple[DiscreteKey, ...], root: int
    ) -> DecisionTree[Y]:
        tree = DecisionTree(
            discrete_keys=discrete_keys,
            nodes=tuple(self.nodes),
            root=root,
            leaf_values=tuple(self.leaf_values),
        )
        logger.debug(
            "Built decision tree over {} discrete keys: {} choices, {} distinct leaves.",
            len(discrete_keys),
            tree.num_choices(),
            tree.num_leaves(),
        )
        return tree


@jdc.pytree_dataclass
class DecisionTree(Generic[Y]):
    """A function from assignments of discrete variables to values, stored as a
    tree whose internal nodes branch on the state of one discrete variable.

    Nodes live in a flat table and refer to each other by integer handle. Trees
    are built through the `from_*` constructors, which merge identical leaves
    and subtrees; two trees built from different inputs can therefore describe
    the same mapping with different structure.

    Leaf values must be hashable. They are the only pytree children; the tree
    topology is static.
    """

    discrete_keys: jdc.Static[tuple[DiscreteKey, ...]]
    """Discrete variables this tree is defined over, in enumeration order."""
    nodes: jdc.Static[tuple[_Leaf | _Choice, ...]]
    root: jdc.Static[int]
    leaf_values: tuple[Any, ...]
    """Distinct leaf values."""

    @staticmethod
    def constant(
        value: T, discrete_keys: Iterable[DiscreteKey] = ()
    ) -> DecisionTree[T]:
        """Tree that maps every assignment to `value`."""
        builder = _TreeBuilder[T]()
        return builder.build(tuple(discrete_keys), builder.leaf(value))

    @staticmethod
    def from_leaves(
        discrete_keys: Iterable[DiscreteKey], values: Iterable[T]
    ) -> DecisionTree[T]:
        """Build a tree from one value per assignment.

        Values are listed in lexicographic order of the assignments: the first
        discrete key is the most significant, and each key ranges over
        `0..cardinality-1`. See `enumerate_assignments()`.
        """
        discrete_keys = tuple(discrete_keys)
        values = tuple(values)
        labels = [k.key for k in discrete_keys]
        if len(set(labels)) != len(labels):
            raise ValueError(f"Duplicate discrete keys: {labels}.")
        expected = math.prod(k.cardinality for k in discrete_keys)
        if len(values) != expected:
            raise ValueError(
                f"Expected {expected} leaf values for discrete keys"
                f" {[(k.key, k.cardinality) for k in discrete_keys]}, got"
                f" {len(values)}."
            )

        builder = _TreeBuilder[T]()

        def build_subtree(depth: int, start: int, count: int) -> int:
            if depth == len(discrete_keys):
                assert count == 1
                return builder.leaf(values[start])
            cardinality = discrete_keys[depth].cardinality
            stride = count // cardinality
            return builder.choice(
                discrete_keys[depth].key,
                [
                    build_subtree(depth + 1, start + i * stride, stride)
                    for i in range(cardinality)
                ],
            )

        return builder.build(discrete_keys, build_subtree(0, 0, len(values)))

    @staticmethod
    def from_function(
        discrete_keys: Iterable[DiscreteKey],
        fn: Callable[[dict[Key, int]], T],
    ) -> DecisionTree[T]:
        """Build a tree by evaluating `fn` on every assignment."""
        discrete_keys = tuple(discrete_keys)
        return DecisionTree.from_leaves(
            discrete_keys, [fn(a) for a in enumerate_assignments(discrete_keys)]
        )

    def __call__(self, assignment: Mapping[Key, int]) -> Y:
        """Look up the value for an assignment. Only the keys on the path from
        the root are read; a missing key raises `KeyError`."""
        node = self.nodes[self.root]
        while isinstance(node, _Choice):
            state = assignment[node.label]
            if not 0 <= state < len(node.branches):
                raise IndexError(
                    f"State {state} out of range for discrete key {node.label}"
                    f" with cardinality {len(node.branches)}."
                )
            node = self.nodes[node.branches[state]]
        return self.leaf_values[node.index]

    def apply(self, fn: Callable[[Y], T]) -> DecisionTree[T]:
        """Map each leaf through `fn`."""
        builder = _TreeBuilder[T]()
        handle_map: dict[int, int] = {}

        def walk(handle: int) -> int:
            if handle not in handle_map:
                match self.nodes[handle]:
                    case _Leaf(index):
                        handle_map[handle] = builder.leaf(fn(self.leaf_values[index]))
                    case _Choice(label, branches):
                        handle_map[handle] = builder.choice(
                            label, [walk(b) for b in branches]
                        )
            return handle_map[handle]

        return builder.build(self.discrete_keys, walk(self.root))

    def apply_binary(
        self, other: DecisionTree[U], op: Callable[[Y, U], T]
    ) -> DecisionTree[T]:
        """Combine two trees leaf by leaf.

        The result is defined over the union of both trees' discrete keys. Its
        value at each assignment is `op(self(a), other(a))`, where each input
        only reads the keys it is defined over. Raises `ValueError` if the two
        trees disagree on the cardinality of a shared key.
        """
        discrete_keys = merge_discrete_keys(self.discrete_keys, other.discrete_keys)
        rank = {k.key: i for i, k in enumerate(discrete_keys)}
        cardinality_from_key = cardinalities(discrete_keys)
        builder = _TreeBuilder[T]()

        def descend(tree: DecisionTree, handle: int, fixed: dict[Key, int]) -> int:
            node = tree.nodes[handle]
            while isinstance(node, _Choice) and node.label in fixed:
                handle = node.branches[fixed[node.label]]
                node = tree.nodes[handle]
            return handle

        def combine(handle_a: int, handle_b: int, fixed: dict[Key, int]) -> int:
            handle_a = descend(self, handle_a, fixed)
            handle_b = descend(other, handle_b, fixed)
            node_a = self.nodes[handle_a]
            node_b = other.nodes[handle_b]
            if isinstance(node_a, _Leaf) and isinstance(node_b, _Leaf):
                return builder.leaf(
                    op(self.leaf_values[node_a.index], other.leaf_values[node_b.index])
                )

            # Branch on whichever root label comes first in the merged key order.
            label = min(
                (n.label for n in (node_a, node_b) if isinstance(n, _Choice)),
                key=rank.__getitem__,
            )
            return builder.choice(
                label,
                [
                    combine(handle_a, handle_b, {**fixed, label: state})
                    for state in range(cardinality_from_key[label])
                ],
            )

        return builder.build(discrete_keys, combine(self.root, other.root, {}))

    def labels(self) -> tuple[Key, ...]:
        """Discrete keys branched on anywhere in the tree, in depth-first order."""
        out = dict[Key, None]()
        visited = set[int]()

        def walk(handle: int) -> None:
            if handle in visited:
                return
            visited.add(handle)
            node = self.nodes[handle]
            if isinstance(node, _Choice):
                out.setdefault(node.label)
                for b in node.branches:
                    walk(b)

        walk(self.root)
        return tuple(out)

    def num_choices(self) -> int:
        """Number of distinct internal nodes."""
        return sum(isinstance(node, _Choice) for node in self.nodes)

    def num_leaves(self) -> int:
        """Number of distinct leaf values."""
        return len(self.leaf_values)

    def assignments(self) -> Iterator[tuple[dict[Key, int], Y]]:
        """Iterate over `(assignment, value)` for every full assignment of
        `discrete_keys`."""
        for assignment in enumerate_assignments(self.discrete_keys):
            yield assignment, self(assignment)

    def leaves(self) -> tuple[Y, ...]:
        """Distinct leaf values, in the order their leaf nodes appear in the
        node table."""
        return tuple(
            self.leaf_values[node.index]
            for node in self.nodes
            if isinstance(node, _Leaf)
        )

    def fold(self, fn: Callable[[Y, X], X], init: X) -> X:
        """Accumulate `fn(value, acc)` over the value at every full assignment,
        in the order of `assignments()`. Merged leaves are visited once per
        assignment they cover."""
        acc = init
        for _, value in self.assignments():
            acc = fn(value, acc)
        return acc

    def equals(
        self,
        other: DecisionTree[Y],
        compare: Callable[[Y, Y], bool] = operator.eq,
    ) -> bool:
        """Structural equality: same branching, with leaves equal under
        `compare`."""

        def recurse(handle_a: int, handle_b: int) -> bool:
            match self.nodes[handle_a], other.nodes[handle_b]:
                case _Leaf(index_a), _Leaf(index_b):
                    return bool(
                        compare(self.leaf_values[index_a], other.leaf_values[index_b])
                    )
                case _Choice(label_a, branches_a), _Choice(label_b, branches_b):
                    return (
                        label_a == label_b
                        and len(branches_a) == len(branches_b)
                        and all(map(recurse, branches_a, branches_b))
                    )
                case _:
                    return False

        return recurse(self.root, other.root)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DecisionTree):
            return NotImplemented
        return self.equals(other)

    def __hash__(self) -> int:
        return hash(self.labels())

    def format(
        self,
        s: str = "",
        label_formatter: KeyFormatter = default_key_formatter,
        value_formatter: Callable[[Y], str] = str,
    ) -> str:
        lines = [s] if s else []

        def walk(handle: int, prefix: str) -> None:
            match self.nodes[handle]:
                case _Leaf(index):
                    text = value_formatter(self.leaf_values[index]).replace(
                        "\n", "\n" + " " * (len(prefix) + 5)
                    )
                    lines.append(f"{prefix}Leaf {text}")
                case _Choice(label, branches):
                    lines.append(f"{prefix}Choice({label_formatter(label)})")
                    for state, b in enumerate(branches):
                        walk(b, f"{prefix}{state} ")

        walk(self.root, "")
        return "\n".join(lines)

    def print(
        self,
        s: str = "",
        label_formatter: KeyFormatter = default_key_formatter,
        value_formatter: Callable[[Y], str] = str,
    ) -> None:
        print(self.format(s, label_formatter, value_formatter))
