import logging

import pytest

from cfparse import earley, examples
from cfparse.earley import (
    CompleteEdge,
    CompleteItem,
    IncompleteItem,
    ItemRef,
    ScanEdge,
    predicted,
)
from cfparse.grammar import NonTerminal, build_grammar
from cfparse.tree import Node

from treeforms import (
    ARITHMETIC_TOKENS,
    ARITHMETIC_TREE,
    LEFT_NESTED_BBB,
    RIGHT_NESTED_BBB,
    make_tree,
)


def test_items():
    grammar = examples.binary()
    pair, single = grammar.productions_for(NonTerminal("S"))

    item = predicted(pair, 3)
    assert isinstance(item, IncompleteItem)
    assert item.next_symbol == NonTerminal("S")
    assert item.format() == "S -> . S S (3)"

    item = item.advance()
    assert isinstance(item, IncompleteItem)
    assert item.format() == "S -> S . S (3)"

    item = item.advance()
    assert isinstance(item, CompleteItem)
    assert item.lhs == NonTerminal("S")
    assert item.format() == "S -> S S . (3)"
    assert not hasattr(item, "advance")

    assert isinstance(predicted(single, 0).advance(), CompleteItem)


def test_epsilon_items_are_complete_when_predicted():
    grammar = build_grammar("S", "", [("S", "")], "S")
    (production,) = grammar.productions
    item = predicted(production, 0)
    assert isinstance(item, CompleteItem)
    assert item.format() == "S -> . (0)"


def test_items_check_their_dot():
    grammar = examples.binary()
    pair, _ = grammar.productions_for(NonTerminal("S"))
    with pytest.raises(AssertionError):
        IncompleteItem(production=pair, dot=2, origin=0)
    with pytest.raises(AssertionError):
        CompleteItem(production=pair, dot=1, origin=0)


def test_arithmetic():
    grammar = examples.arithmetic_ll1()
    assert earley.parse(grammar, ARITHMETIC_TOKENS) == [ARITHMETIC_TREE]


def test_binary_ambiguity():
    trees = earley.parse(examples.binary(), ["b", "b", "b"])
    assert len(trees) == 2
    assert set(trees) == {LEFT_NESTED_BBB, RIGHT_NESTED_BBB}


@pytest.mark.parametrize(
    "count,expected",
    [(1, 1), (2, 1), (3, 2), (4, 5), (5, 14), (6, 42)],
)
def test_binary_tree_counts(count, expected):
    """Every binary bracketing, exactly once: the Catalan numbers."""
    trees = earley.parse(examples.binary(), ["b"] * count)
    assert len(trees) == expected
    assert len(set(trees)) == expected


def test_shared_subtrees():
    trees = earley.parse(examples.binary(), ["b", "b", "b"])
    left = next(t for t in trees if len(t.children[0].children) == 2)
    right = next(t for t in trees if len(t.children[0].children) == 1)
    assert left.children[0].children[0] is right.children[0]


def test_they_can_fish():
    trees = earley.parse(examples.they_can_fish(), ["they", "can", "fish"])
    assert set(trees) == {
        make_tree(("S", ("NP", ("N", "they")), ("VP", ("V", "can"), ("NP", ("N", "fish"))))),
        make_tree(("S", ("NP", ("N", "they")), ("VP", ("V", "can"), ("VP", ("V", "fish"))))),
    }


def test_ambiguous_arithmetic():
    trees = earley.parse(examples.arithmetic_ambiguous(), "w + x * y".split())
    assert len(trees) == 2
    assert {tree.children[1].name for tree in trees} == {"+", "*"}


def test_nullable_predicted_late():
    """B is predicted after A was already completed empty in the same state
    set, and still gets to use it.
    """
    grammar = build_grammar(
        "S A B",
        "a c",
        [("S", "A B c"), ("A", " | a"), ("B", "A")],
        "S",
    )
    assert earley.parse(grammar, ["c"]) == [make_tree(("S", ("A",), ("B", ("A",)), "c"))]
    assert set(earley.parse(grammar, ["a", "c"])) == {
        make_tree(("S", ("A", "a"), ("B", ("A",)), "c")),
        make_tree(("S", ("A",), ("B", ("A", "a")), "c")),
    }
    assert earley.parse(grammar, ["a", "a", "c"]) == [
        make_tree(("S", ("A", "a"), ("B", ("A", "a")), "c"))
    ]


def test_empty_input():
    grammar = build_grammar("S", "", [("S", "")], "S")
    assert earley.parse(grammar, []) == [Node(NonTerminal("S"), ())]
    assert earley.parse(grammar, ["x"]) == []


def test_cycles_are_finite():
    grammar = build_grammar("A", "a", [("A", "A | a")], "A")
    trees = earley.parse(grammar, ["a"])
    assert set(trees) == {
        make_tree(("A", "a")),
        make_tree(("A", ("A", "a"))),
    }


def test_nullable_cycles_are_finite():
    grammar = build_grammar("A", "", [("A", "A | ")], "A")
    trees = earley.parse(grammar, [])
    assert set(trees) == {make_tree(("A",)), make_tree(("A", ("A",)))}


def test_no_parse():
    grammar = examples.arithmetic_ll1()
    parser = earley.EarleyParser(grammar)
    assert parser.parse("w + x )".split()) == []
    assert parser.parse("w +".split()) == []
    assert parser.parse([]) == []
    assert not parser.recognize("w w".split())
    assert parser.recognize("( w )".split())


def test_chart_invariants():
    grammar = examples.they_can_fish()
    chart = earley.EarleyParser(grammar).chart(["they", "can", "fish"])

    assert len(chart.state_sets) == 4
    for state, state_set in enumerate(chart.state_sets):
        for item in state_set.items:
            assert item.origin <= state
        # No duplicates.
        assert len(set(state_set.items)) == len(state_set)

    for ref, edges in chart.history.items():
        for edge in edges:
            match edge:
                case ScanEdge(predecessor=predecessor):
                    assert predecessor.state == ref.state - 1
                case CompleteEdge(predecessor=predecessor, child=child):
                    assert child.state == ref.state
                    assert predecessor.state == chart.item(child).origin

    accepting = chart.accepting()
    assert chart.accepted
    assert all(ref.state == 3 for ref in accepting)
    assert all(chart.item(ref).lhs == grammar.start for ref in accepting)


def test_chart_format():
    chart = earley.build_chart(examples.binary(), ["b", "b"])
    lines = chart.format().splitlines()
    assert lines[0] == "== 0 == next: b"
    assert lines[1] == "  [0] S -> . S S (0)"
    assert lines[2] == "  [1] S -> . b (0)"
    assert "== 2 == next: $" in lines
    assert any("<- scan (0, 1)" in line for line in lines)


def test_build_trees_for_any_complete_item():
    chart = earley.build_chart(examples.binary(), ["b", "b"])
    builder = earley.TreeBuilder(chart)
    (ref,) = chart.accepting()
    assert earley.build_trees(chart, ref, builder) == [
        make_tree(("S", ("S", "b"), ("S", "b")))
    ]

    inner = ItemRef(1, 0)
    assert isinstance(chart.item(inner), CompleteItem)
    assert earley.build_trees(chart, inner) == [make_tree(("S", "b"))]


def test_logging(caplog):
    with caplog.at_level(logging.DEBUG, logger="cfparse.earley"):
        earley.parse(examples.binary(), ["b", "b"])

    messages = [r.getMessage() for r in caplog.records if r.name == "cfparse.earley"]
    assert any(message.startswith("Earley chart:") for message in messages)
    assert "1 parse trees for 2 tokens" in messages
