import logging

from cfparse import examples, ll1
from cfparse.grammar import END, NonTerminal, Terminal, build_grammar
from cfparse.tree import Node, NoParse, Parse

from treeforms import ARITHMETIC_TOKENS, ARITHMETIC_TREE, make_tree


def test_arithmetic():
    result = ll1.parse(examples.arithmetic_ll1(), ARITHMETIC_TOKENS)
    assert result == Parse(ARITHMETIC_TREE)
    assert result.tree.tokens() == ARITHMETIC_TOKENS


def test_table_cells():
    parser = ll1.LL1Parser(examples.arithmetic_ll1())
    assert not parser.table.has_conflict
    assert parser.conflicts == []

    e_prime = NonTerminal("E'")
    assert [str(p) for p in parser.table.get(e_prime, END)] == ["E' -> ε"]
    assert [str(p) for p in parser.table.get(e_prime, Terminal(")"))] == ["E' -> ε"]
    assert [str(p) for p in parser.table.get(e_prime, Terminal("+"))] == ["E' -> + T E'"]
    assert parser.table.get(e_prime, Terminal("*")) == []
    assert [str(p) for p in parser.table.get(NonTerminal("F"), Terminal("("))] == ["F -> ( E )"]

    # Every nonterminal gets a cell for every terminal, and the end.
    assert len(parser.table.cells) == 6 * 9


def test_table_format():
    parser = ll1.LL1Parser(examples.arithmetic_ll1())
    lines = parser.table.format().splitlines()
    assert lines[0].split() == ["|", "(", ")", "*", "+", "w", "x", "y", "z", "$"]
    assert lines[2].startswith("E ")
    assert "T E'" in lines[2]


def test_ambiguous_grammar_conflicts():
    result = ll1.parse(examples.binary(), ["b", "b", "b"])
    assert isinstance(result, ll1.Conflict)

    (conflict,) = result.conflicts
    assert conflict.nonterminal == NonTerminal("S")
    assert conflict.terminal == Terminal("b")
    assert [str(p) for p in conflict.productions] == ["S -> S S", "S -> b"]
    assert "When we are expanding 'S' and see 'b' we don't know whether:" in str(result)
    assert "- to use `S -> S S`" in str(conflict)


def test_left_recursion_conflicts():
    """Left recursion is never LL(1), even for an unambiguous grammar."""
    parser = ll1.LL1Parser(examples.arithmetic_left_recursive())
    assert parser.table.has_conflict
    assert {c.nonterminal.name for c in parser.conflicts} == {"E", "T"}

    # The conflict is reported whatever the input is.
    assert isinstance(parser.parse(["w"]), ll1.Conflict)
    assert isinstance(parser.parse([")"]), ll1.Conflict)


def test_conflict_is_not_no_parse():
    result = ll1.parse(examples.binary(), ["b"])
    assert result != NoParse()
    assert not isinstance(result, NoParse)


def test_leftover_input():
    assert ll1.parse(examples.arithmetic_ll1(), "w + x )".split()) == NoParse()


def test_truncated_input():
    assert ll1.parse(examples.arithmetic_ll1(), "w +".split()) == NoParse()
    assert ll1.parse(examples.arithmetic_ll1(), []) == NoParse()


def test_unknown_token():
    assert ll1.parse(examples.arithmetic_ll1(), "w + q".split()) == NoParse()


def test_end_marker_token():
    """A literal '$' in the input is just a token no grammar has, not the
    end of the input.
    """
    assert ll1.parse(examples.arithmetic_ll1(), ["w", "$"]) == NoParse()
    assert ll1.parse(examples.arithmetic_ll1(), ["$"]) == NoParse()

    grammar = build_grammar("S", "a", [("S", "a S | ")], "S")
    assert ll1.parse(grammar, ["$"]) == NoParse()
    assert ll1.parse(grammar, ["a", "$", "a"]) == NoParse()


def test_long_input():
    """Deeply nested derivations don't need a deep Python stack."""
    tokens = ("w + " * 1500 + "w").split()
    result = ll1.parse(examples.arithmetic_ll1(), tokens)
    assert isinstance(result, Parse)
    assert result.tree.name == "E"
    assert result.tree.tokens() == tokens

    grammar = build_grammar("S", "a", [("S", "a S | ")], "S")
    result = ll1.parse(grammar, ["a"] * 5000)
    assert isinstance(result, Parse)
    assert len(result.tree.tokens()) == 5000


def test_nullable_start():
    grammar = build_grammar("S", "a", [("S", "a S | ")], "S")
    assert ll1.parse(grammar, []) == Parse(Node(NonTerminal("S"), ()))
    assert ll1.parse(grammar, ["a"]) == Parse(
        make_tree(("S", "a", ("S",))),
    )


def test_parser_reuse():
    parser = ll1.LL1Parser(examples.arithmetic_ll1())
    assert parser.parse(ARITHMETIC_TOKENS) == Parse(ARITHMETIC_TREE)
    assert parser.parse(["w", "w"]) == NoParse()
    assert parser.parse(["(", "z", ")"]) == Parse(
        make_tree(
            (
                "E",
                ("T", ("F", "(", ("E", ("T", ("F", ("ID", "z")), ("T'",)), ("E'",)), ")"), ("T'",)),
                ("E'",),
            )
        )
    )


def test_logging(caplog):
    with caplog.at_level(logging.DEBUG, logger="cfparse.ll1"):
        ll1.parse(examples.arithmetic_ll1(), ["w"])

    messages = [record.getMessage() for record in caplog.records if record.name == "cfparse.ll1"]
    assert any(message.startswith("LL(1) table:") for message in messages)
    assert len(messages) > 1


def test_silent_by_default(capsys):
    ll1.parse(examples.arithmetic_ll1(), ARITHMETIC_TOKENS)
    captured = capsys.readouterr()
    assert captured.out == ""
