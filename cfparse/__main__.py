import argparse
import logging
import sys

from . import descent
from . import earley
from . import ll1
from .examples import GRAMMARS
from .grammar import Grammar
from .tree import NoParse, Parse


METHODS = ["ll1", "descent", "earley"]


def run_ll1(grammar: Grammar, tokens: list[str], show_table: bool) -> bool:
    parser = ll1.LL1Parser(grammar)
    if show_table:
        print("FIRST:")
        print(parser.firsts.format())
        print("FOLLOW:")
        print(parser.follows.format())
        print("TABLE:")
        print(parser.table.format())
        print()

    match parser.parse(tokens):
        case Parse(tree=tree):
            print(tree.format())
            return True
        case ll1.Conflict() as conflict:
            print("conflict: the grammar is not LL(1)")
            print(str(conflict))
            return False
        case NoParse():
            print("no parse")
            return False


def run_descent(grammar: Grammar, tokens: list[str]) -> bool:
    match descent.parse(grammar, tokens):
        case Parse(tree=tree):
            print(tree.format())
            return True
        case NoParse():
            print("no parse")
            return False


def run_earley(grammar: Grammar, tokens: list[str]) -> bool:
    trees = earley.parse(grammar, tokens)
    if len(trees) == 0:
        print("no parse")
        return False

    print(f"{len(trees)} tree{'s' if len(trees) != 1 else ''}")
    for tree in trees:
        print(tree.format())
        print()
    return True


def main(args: list[str] | None = None) -> int:
    if args is None:
        args = sys.argv[1:]

    parser = argparse.ArgumentParser(
        prog="cfparse",
        description="Parse a token string with one of the example grammars",
    )
    parser.add_argument("tokens", help="The input, as whitespace-separated tokens")
    parser.add_argument(
        "--grammar",
        choices=sorted(GRAMMARS),
        default="arithmetic",
        help="The example grammar to parse with. The default is the LL(1) arithmetic grammar.",
    )
    parser.add_argument(
        "--method",
        choices=METHODS + ["all"],
        default="all",
        help="Which parser to run. The default is to run all of them.",
    )
    parser.add_argument(
        "--table",
        action="store_true",
        help="Print the FIRST and FOLLOW sets and the LL(1) table before parsing.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log the parsers' internal steps (tables, charts, and stacks).",
    )

    parsed = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )

    grammar = GRAMMARS[parsed.grammar]()
    tokens = parsed.tokens.split()
    methods = METHODS if parsed.method == "all" else [parsed.method]

    accepted = True
    for method in methods:
        print(f"--- {method} ---")
        if method == "ll1":
            ok = run_ll1(grammar, tokens, parsed.table)
        elif method == "descent":
            ok = run_descent(grammar, tokens)
        else:
            ok = run_earley(grammar, tokens)
        accepted = accepted and ok

    return 0 if accepted else 1


if __name__ == "__main__":
    sys.exit(main())
