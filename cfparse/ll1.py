"""A table-driven predictive (LL(1)) parser.

The table maps (nonterminal, lookahead terminal) to the productions worth
trying. For an LL(1) grammar every cell holds at most one production, and
that is the whole trick: the parser never has to choose, it just looks up
what to do next. If any cell holds more than one production the grammar is
not LL(1), and we say so up front (a `Conflict`) instead of guessing.

The parse itself is non-recursive. The stack holds grammar symbols, each
tagged with the integer id of the child list it will be appended to, and
the tree under construction lives in a flat "forest" of child lists. Id 0
is a virtual root whose only child ends up being the real root.
"""

import dataclasses
import logging
import typing

from . import first_follow
from .first_follow import FirstSets, FollowSets
from .grammar import END, Grammar, NonTerminal, Production, Terminal
from .tree import Leaf, Node, NoParse, Parse


ll1_log = logging.getLogger("cfparse.ll1")


@dataclasses.dataclass(frozen=True)
class TableConflict:
    """A table cell where one token of lookahead doesn't pick a production."""

    nonterminal: NonTerminal
    terminal: Terminal
    productions: typing.Tuple[Production, ...]

    def __str__(self):
        lines = []
        if self.terminal == END:
            lookahead = "the end of the input"
        else:
            lookahead = f"'{self.terminal}'"
        lines.append(
            f"When we are expanding '{self.nonterminal}' and see {lookahead} we don't know whether:"
        )
        lines.extend(f"- to use `{production}`" for production in self.productions)
        return "\n".join(lines)


@dataclasses.dataclass(frozen=True)
class Conflict:
    """The grammar is not LL(1): this method cannot decide, which says
    nothing about whether the input is valid.
    """

    conflicts: typing.Tuple[TableConflict, ...]

    def __str__(self):
        return f"{len(self.conflicts)} conflicts:\n\n" + "\n\n".join(
            str(conflict) for conflict in self.conflicts
        )


ParseResult = Parse | NoParse | Conflict


@dataclasses.dataclass
class ParseTable:
    """The LL(1) parse table.

    There is a cell for every declared nonterminal and every declared
    terminal (plus END); most of them are empty. An empty cell means
    "syntax error".
    """

    nonterminals: list[NonTerminal]
    terminals: list[Terminal]
    cells: dict[typing.Tuple[NonTerminal, Terminal], list[Production]]

    def get(self, nonterminal: NonTerminal, terminal: Terminal) -> list[Production]:
        return self.cells.get((nonterminal, terminal), [])

    def conflicts(self) -> list[TableConflict]:
        """Every cell that holds more than one production."""
        return [
            TableConflict(nonterminal=nt, terminal=t, productions=tuple(productions))
            for (nt, t), productions in self.cells.items()
            if len(productions) > 1
        ]

    @property
    def has_conflict(self) -> bool:
        return any(len(productions) > 1 for productions in self.cells.values())

    def format(self) -> str:
        """Format a parser table so pretty."""

        def format_cell(nt: NonTerminal, t: Terminal):
            productions = self.get(nt, t)
            if len(productions) == 0:
                return ""
            return " / ".join(
                " ".join(str(s) for s in p.rhs) if not p.is_epsilon else "ε"
                for p in productions
            )

        width = max(
            [6]
            + [len(t.name) for t in self.terminals]
            + [len(format_cell(nt, t)) for nt in self.nonterminals for t in self.terminals]
        )
        name_width = max([4] + [len(nt.name) for nt in self.nonterminals])

        header = "{blank: <{nw}} | {terms}".format(
            blank="",
            nw=name_width,
            terms=" ".join(f"{t.name: <{width}}" for t in self.terminals),
        )
        lines = [
            header,
            "-" * len(header),
        ] + [
            "{name: <{nw}} | {cells}".format(
                name=nt.name,
                nw=name_width,
                cells=" ".join(f"{format_cell(nt, t): <{width}}" for t in self.terminals),
            )
            for nt in self.nonterminals
        ]
        return "\n".join(lines)


def build_table(grammar: Grammar, firsts: FirstSets, follows: FollowSets) -> ParseTable:
    """Build the LL(1) table for a grammar.

    Each production goes in the cell for every terminal in FIRST of its
    right-hand side. If the right-hand side can be empty, it also goes in
    the cell for every terminal that can follow the left-hand side (END
    included), since the only way to see such a terminal is to derive
    nothing at all here.

    Conflicts are recorded, not rejected; see `ParseTable.conflicts`.
    """
    nonterminals = sorted(grammar.nonterminals, key=lambda nt: nt.name)
    terminals = sorted(grammar.terminals, key=lambda t: t.name) + [END]

    cells: dict[typing.Tuple[NonTerminal, Terminal], list[Production]] = {
        (nt, t): [] for nt in nonterminals for t in terminals
    }

    for production in grammar.productions:
        lhs = production.lhs
        lookahead, nullable = first_follow.first_of_sequence(production.rhs, firsts)
        if nullable:
            lookahead.update(follows[lhs])

        for terminal in lookahead:
            cell = cells.get((lhs, terminal))
            if cell is None:
                # Only possible for a grammar that refers to symbols it never
                # declared; such a cell can never be looked up anyway.
                continue
            if production not in cell:
                cell.append(production)

    table = ParseTable(nonterminals=nonterminals, terminals=terminals, cells=cells)
    if ll1_log.isEnabledFor(logging.DEBUG):
        ll1_log.debug("LL(1) table:\n%s", table.format())
    return table


class _Branch(typing.NamedTuple):
    """A nonterminal in the forest, whose children live at `forest[index]`."""

    symbol: NonTerminal
    index: int


def _materialize(forest: list[list[Leaf | _Branch]]) -> Node:
    """Turn the forest into a tree, without recursing.

    A child list is always allocated after the list its branch lives in, so
    walking the forest from the back builds every subtree before the node
    that holds it.
    """
    children: list[typing.Tuple[Node | Leaf, ...]] = [()] * len(forest)
    for index in reversed(range(len(forest))):
        built: list[Node | Leaf] = []
        for entry in forest[index]:
            match entry:
                case Leaf():
                    built.append(entry)
                case _Branch(symbol=symbol, index=child):
                    built.append(Node(symbol=symbol, children=children[child]))
        children[index] = tuple(built)

    (root,) = children[0]
    assert isinstance(root, Node)
    return root


def parse_with_table(
    grammar: Grammar,
    tokens: typing.Sequence[str],
    table: ParseTable,
) -> ParseResult:
    """Parse the tokens with a table built for this grammar.

    The table is checked for conflicts first; a conflicted table is never
    used to parse.
    """
    conflicts = table.conflicts()
    if len(conflicts) > 0:
        return Conflict(conflicts=tuple(conflicts))

    # '$' is never a terminal of any grammar, and as a token it would look
    # just like the end of the input to the table.
    if END.name in tokens:
        ll1_log.debug("the end marker appears in the input")
        return NoParse()

    # Our stack is a stack of tuples, where the first entry is the grammar
    # symbol and the second entry is the id of the child list the symbol's
    # tree gets appended to.
    stack: list[typing.Tuple[Terminal | NonTerminal, int]] = [(END, 0), (grammar.start, 0)]
    forest: list[list[Leaf | _Branch]] = [[]]
    input_index = 0

    al = ll1_log
    while True:
        top, parent = stack.pop()
        if input_index < len(tokens):
            current = Terminal(tokens[input_index])
        else:
            current = END

        if al.isEnabledFor(logging.DEBUG):
            al.debug(
                "{stack: <40} {input: <15} {top}".format(
                    stack=" ".join(str(s) for s, _ in stack[-6:]),
                    input=current.name,
                    top=top,
                )
            )

        match top:
            case Terminal() if top == END:
                # We are at the bottom of the stack and we're done, as long
                # as there is nothing left over.
                if input_index < len(tokens):
                    al.debug("input remains after the end of the derivation")
                    return NoParse()
                break

            case Terminal():
                # Consume a token.
                if current != top:
                    return NoParse()
                forest[parent].append(Leaf(top))
                input_index += 1

            case NonTerminal():
                productions = table.get(top, current)
                if len(productions) == 0:
                    return NoParse()
                assert len(productions) == 1, "conflicted table used for parsing"
                production = productions[0]

                # Add the subtree for this production, and hook it into the
                # children of the parent.
                index = len(forest)
                forest.append([])
                forest[parent].append(_Branch(top, index))

                # Push the rhs onto the stack in reverse, so that it comes off
                # the stack left to right.
                stack.extend((symbol, index) for symbol in reversed(production.rhs))

            case _:
                typing.assert_never(top)

    assert len(forest[0]) == 1
    return Parse(_materialize(forest))


class LL1Parser:
    """Analyze a grammar once, then parse as many inputs as you like."""

    grammar: Grammar
    firsts: FirstSets
    follows: FollowSets
    table: ParseTable

    def __init__(self, grammar: Grammar):
        self.grammar = grammar
        self.firsts = first_follow.compute_first(grammar)
        self.follows = first_follow.compute_follow(grammar, self.firsts)
        self.table = build_table(grammar, self.firsts, self.follows)

    @property
    def conflicts(self) -> list[TableConflict]:
        return self.table.conflicts()

    def parse(self, tokens: typing.Sequence[str]) -> ParseResult:
        return parse_with_table(self.grammar, tokens, self.table)


def parse(grammar: Grammar, tokens: typing.Sequence[str]) -> ParseResult:
    """Build the table for the grammar and parse the tokens with it."""
    return LL1Parser(grammar).parse(tokens)
