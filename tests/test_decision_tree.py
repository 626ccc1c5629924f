import operator

import jax
import pytest

import hybridfg
from hybridfg import DecisionTree, DiscreteKey

D0 = DiscreteKey(0, 2)
D1 = DiscreteKey(1, 2)
D2 = DiscreteKey(2, 3)


def test_lookup_every_assignment() -> None:
    tree = DecisionTree.from_leaves([D0, D1], ["s00", "s01", "s10", "s11"])
    assert tree({0: 0, 1: 0}) == "s00"
    assert tree({0: 0, 1: 1}) == "s01"
    assert tree({0: 1, 1: 0}) == "s10"
    assert tree({0: 1, 1: 1}) == "s11"
    assert tree.num_leaves() == 4
    assert tree.num_choices() == 3
    assert tree.labels() == (0, 1)


def test_merged_subtrees_do_not_change_lookup() -> None:
    tree = DecisionTree.from_leaves([D0, D1], ["a", "a", "b", "b"])
    assert tree({0: 0, 1: 0}) == "a"
    assert tree({0: 0, 1: 1}) == "a"
    assert tree({0: 1, 1: 0}) == "b"
    assert tree({0: 1, 1: 1}) == "b"

    # Only the choice on D0 is left.
    assert tree.num_choices() == 1
    assert tree.num_leaves() == 2
    assert tree.labels() == (0,)

    # D1 is no longer read.
    assert tree({0: 1}) == "b"


def test_identical_subtrees_are_shared() -> None:
    tree = DecisionTree.from_leaves([D0, D1], ["a", "b", "a", "b"])
    assert tree.num_choices() == 1
    assert tree.labels() == (1,)
    assert [value for _, value in tree.assignments()] == ["a", "b", "a", "b"]


def test_canonical_enumeration_order() -> None:
    tree = DecisionTree.from_leaves([D0, D2], range(6))
    assert tree({0: 0, 2: 2}) == 2
    assert tree({0: 1, 2: 0}) == 3
    assert [a for a, _ in tree.assignments()] == list(
        hybridfg.enumerate_assignments([D0, D2])
    )
    assert [v for _, v in tree.assignments()] == list(range(6))


def test_from_function() -> None:
    tree = DecisionTree.from_function([D0, D2], lambda a: 3 * a[0] + a[2])
    for assignment, value in tree.assignments():
        assert value == 3 * assignment[0] + assignment[2]


def test_constant() -> None:
    tree = DecisionTree.constant(5.0, [D0, D1])
    assert tree.num_choices() == 0
    assert tree({}) == 5.0
    assert [v for _, v in tree.assignments()] == [5.0] * 4


def test_wrong_number_of_leaves() -> None:
    with pytest.raises(ValueError):
        DecisionTree.from_leaves([D0, D1], ["a", "b", "c"])


def test_duplicate_keys() -> None:
    with pytest.raises(ValueError):
        DecisionTree.from_leaves([D0, D0], ["a", "b", "c", "d"])


def test_missing_key() -> None:
    tree = DecisionTree.from_leaves([D0, D1], ["s00", "s01", "s10", "s11"])
    with pytest.raises(KeyError):
        tree({0: 1})


def test_state_out_of_range() -> None:
    tree = DecisionTree.from_leaves([D0], ["a", "b"])
    with pytest.raises(IndexError):
        tree({0: 2})


def test_apply() -> None:
    tree = DecisionTree.from_leaves([D0, D2], range(6))
    parity = tree.apply(lambda x: x % 2)
    for assignment, value in parity.assignments():
        assert value == tree(assignment) % 2
    assert parity.num_leaves() == 2


def test_leaves() -> None:
    tree = DecisionTree.from_leaves([D0, D1], ["a", "b", "a", "c"])
    assert tree.leaves() == ("a", "b", "c")
    assert len(tree.leaves()) == tree.num_leaves()
    assert DecisionTree.constant(1.0, [D0]).leaves() == (1.0,)


def test_fold_visits_every_assignment() -> None:
    tree = DecisionTree.from_leaves([D0, D1], [1, 1, 1, 5])
    assert tree.num_leaves() == 2
    assert tree.fold(lambda value, acc: acc + value, 0) == 8
    assert tree.fold(lambda value, acc: acc + [value], []) == [1, 1, 1, 5]
    assert DecisionTree.constant(2, [D0, D2]).fold(operator.add, 0) == 12


def test_apply_binary_same_keys() -> None:
    tree0 = DecisionTree.from_leaves([D0, D1], [1.0, 2.0, 3.0, 4.0])
    tree1 = DecisionTree.from_leaves([D0, D1], [10.0, 20.0, 30.0, 40.0])
    total = tree0.apply_binary(tree1, operator.add)
    assert total.discrete_keys == (D0, D1)
    assert [v for _, v in total.assignments()] == [11.0, 22.0, 33.0, 44.0]


def test_apply_binary_overlapping_keys() -> None:
    tree0 = DecisionTree.from_leaves([D0, D1], [0, 1, 2, 3])
    tree1 = DecisionTree.from_leaves([D2, D1], [0, 10, 20, 30, 40, 50])
    combined = tree0.apply_binary(tree1, lambda a, b: (a, b))
    assert combined.discrete_keys == (D0, D1, D2)
    assert len(list(combined.assignments())) == 12
    for assignment, value in combined.assignments():
        assert value == (tree0(assignment), tree1(assignment))


def test_apply_binary_cardinality_mismatch() -> None:
    tree0 = DecisionTree.from_leaves([D0], [0, 1])
    tree1 = DecisionTree.from_leaves([DiscreteKey(0, 3)], [0, 1, 2])
    with pytest.raises(ValueError):
        tree0.apply_binary(tree1, operator.add)


def test_equals() -> None:
    tree0 = DecisionTree.from_leaves([D0, D1], [1, 2, 3, 4])
    tree1 = DecisionTree.from_leaves([D0, D1], [1, 2, 3, 4])
    tree2 = DecisionTree.from_leaves([D0, D1], [1, 2, 3, 5])
    assert tree0 == tree0
    assert tree0 == tree1 and tree1 == tree0
    assert tree0 != tree2

    close0 = DecisionTree.from_leaves([D0], [1.0, 2.0])
    close1 = DecisionTree.from_leaves([D0], [1.0, 2.0 + 1e-12])
    assert close0 != close1
    assert close0.equals(close1, lambda a, b: abs(a - b) <= 1e-9)


def test_format() -> None:
    tree = DecisionTree.from_leaves([D0], ["a", "b"])
    assert tree.format() == "Choice(0)\n0 Leaf a\n1 Leaf b"

    tree = DecisionTree.from_leaves([D0, D1], ["a", "a", "b", "c"])
    assert tree.format("tree") == "\n".join(
        [
            "tree",
            "Choice(0)",
            "0 Leaf a",
            "1 Choice(1)",
            "1 0 Leaf b",
            "1 1 Leaf c",
        ]
    )


def test_tree_map_over_leaves() -> None:
    tree = DecisionTree.from_leaves([D0], [1.0, 2.0])
    doubled = jax.tree.map(lambda x: x * 2.0, tree)
    assert doubled({0: 0}) == 2.0
    assert doubled({0: 1}) == 4.0
    assert doubled.discrete_keys == tree.discrete_keys
