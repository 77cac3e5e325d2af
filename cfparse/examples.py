"""A handful of small grammars for trying the parsers out.

Each one exercises something different:

- `arithmetic_ll1` is the classic expression grammar with left recursion
  removed by hand. It is LL(1), so every parser handles it.
- `arithmetic_left_recursive` is the same language written the natural
  way. It is unambiguous but left recursive, so it is not LL(1).
- `arithmetic_ambiguous` doesn't bother with precedence at all.
- `they_can_fish` is a toy English grammar where "can" and "fish" are
  both nouns and verbs.
- `binary` is `S -> S S | b`, the smallest interesting ambiguous grammar.
"""

from .grammar import Grammar, build_grammar


def arithmetic_ll1() -> Grammar:
    return build_grammar(
        "E E' T T' F ID",
        "+ * ( ) w x y z",
        [
            ("E", "T E'"),
            ("E'", "+ T E' | "),
            ("T", "F T'"),
            ("T'", "* F T' | "),
            ("F", "( E ) | ID"),
            ("ID", "w | x | y | z"),
        ],
        "E",
    )


def arithmetic_left_recursive() -> Grammar:
    return build_grammar(
        "E T F ID",
        "+ * ( ) w x y z",
        [
            ("E", "E + T | T"),
            ("T", "T * F | F"),
            ("F", "( E ) | ID"),
            ("ID", "w | x | y | z"),
        ],
        "E",
    )


def arithmetic_ambiguous() -> Grammar:
    return build_grammar(
        "E ID",
        "+ * ( ) w x y z",
        [
            ("E", "E + E | E * E | ( E ) | ID"),
            ("ID", "w | x | y | z"),
        ],
        "E",
    )


def they_can_fish() -> Grammar:
    return build_grammar(
        "S NP VP PP N V P",
        "can fish in rivers they",
        [
            ("S", "NP VP"),
            ("NP", "N PP | N"),
            ("PP", "P NP"),
            ("VP", "VP PP | V VP | V NP | V"),
            ("N", "can | they | fish | rivers"),
            ("P", "in"),
            ("V", "can | fish"),
        ],
        "S",
    )


def binary() -> Grammar:
    return build_grammar("S", "b", [("S", "S S | b")], "S")


GRAMMARS = {
    "arithmetic": arithmetic_ll1,
    "left-recursive": arithmetic_left_recursive,
    "ambiguous": arithmetic_ambiguous,
    "english": they_can_fish,
    "binary": binary,
}
