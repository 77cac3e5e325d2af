"""The grammar model shared by every parsing engine.

A grammar here is deliberately plain data: a set of nonterminals, a set of
terminals, an ordered list of productions, and a start symbol. None of the
engines ever mutate it, so one grammar can be handed to as many parsers as
you like.

Grammars are usually written with `build_grammar`, which takes the same
little textual form the example drivers use:

    grammar = build_grammar(
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

An empty alternative (as in `"+ T E' | "`) is an epsilon production.
"""

import dataclasses
import enum
import logging
import typing


grammar_log = logging.getLogger("cfparse.grammar")


@dataclasses.dataclass(frozen=True)
class Terminal:
    """A token label, or terminal symbol in the grammar."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclasses.dataclass(frozen=True)
class NonTerminal:
    """A symbol defined by one or more productions."""

    name: str

    def __str__(self) -> str:
        return self.name


Symbol = Terminal | NonTerminal


# The end-of-input marker. It never appears in user input; FOLLOW uses it to
# say "the input can end here" and the LL(1) stack bottoms out on it.
END = Terminal("$")


class Epsilon(enum.Enum):
    """The marker placed in FIRST sets for nullable nonterminals."""

    EPSILON = "ε"

    def __str__(self) -> str:
        return self.value


EPSILON = Epsilon.EPSILON


@dataclasses.dataclass(frozen=True)
class Production:
    lhs: NonTerminal
    rhs: tuple[Symbol, ...]

    @property
    def is_epsilon(self) -> bool:
        return len(self.rhs) == 0

    def __str__(self) -> str:
        if self.is_epsilon:
            return f"{self.lhs} -> ε"
        return f"{self.lhs} -> {' '.join(str(s) for s in self.rhs)}"


class GrammarError(ValueError):
    """Raised when a grammar refers to symbols it does not declare."""


class Grammar:
    """A context-free grammar.

    Construction checks the grammar invariant: every symbol used in a
    production (and the start symbol) must be declared in the matching set,
    nothing may be declared as both a terminal and a nonterminal, and nobody
    gets to use '$', which is reserved to mean end-of-input.
    """

    nonterminals: frozenset[NonTerminal]
    terminals: frozenset[Terminal]
    productions: tuple[Production, ...]
    start: NonTerminal

    _by_lhs: dict[NonTerminal, tuple[Production, ...]]

    def __init__(
        self,
        nonterminals: typing.Iterable[NonTerminal],
        terminals: typing.Iterable[Terminal],
        productions: typing.Iterable[Production],
        start: NonTerminal,
    ):
        self.nonterminals = frozenset(nonterminals)
        self.terminals = frozenset(terminals)
        self.productions = tuple(productions)
        self.start = start

        self._check()

        # We count on python dictionaries retaining the insertion order, so
        # the productions for a nonterminal come back in declared order.
        by_lhs: dict[NonTerminal, list[Production]] = {nt: [] for nt in self.nonterminals}
        for production in self.productions:
            by_lhs[production.lhs].append(production)
        self._by_lhs = {nt: tuple(productions) for nt, productions in by_lhs.items()}

    def _check(self):
        problems = []

        reserved = sorted(
            s.name for s in (*self.nonterminals, *self.terminals) if s.name == END.name
        )
        if reserved:
            problems.append("'$' is reserved for the end of input")

        both = sorted(
            {nt.name for nt in self.nonterminals} & {t.name for t in self.terminals}
        )
        if both:
            problems.append(
                "declared as both terminal and nonterminal: {}".format(", ".join(both))
            )

        if self.start not in self.nonterminals:
            problems.append(f"start symbol {self.start} is not a declared nonterminal")

        undeclared = []
        for production in self.productions:
            if production.lhs not in self.nonterminals:
                undeclared.append(f"{production.lhs} (left side of '{production}')")
            for symbol in production.rhs:
                if isinstance(symbol, NonTerminal):
                    declared = symbol in self.nonterminals
                else:
                    declared = symbol in self.terminals
                if not declared:
                    undeclared.append(f"{symbol} (in '{production}')")
        if undeclared:
            problems.append("undeclared symbols: {}".format(", ".join(undeclared)))

        if problems:
            raise GrammarError("Malformed grammar: " + "; ".join(problems))

    def productions_for(self, nonterminal: NonTerminal) -> tuple[Production, ...]:
        """The productions with the given left-hand side, in declared order.

        Undeclared symbols have no productions.
        """
        return self._by_lhs.get(nonterminal, ())

    def format(self) -> str:
        return "\n".join(str(production) for production in self.productions)

    def __repr__(self) -> str:
        return f"<Grammar start={self.start} productions={len(self.productions)}>"


def build_grammar(
    nonterminals: str,
    terminals: str,
    productions: typing.Iterable[tuple[str, str]],
    start: str,
) -> Grammar:
    """Build a grammar from its textual description.

    `nonterminals` and `terminals` are whitespace-separated label lists.
    Each production entry is a left-hand side label and a string of
    alternatives separated by '|', each alternative a whitespace-separated
    sequence of labels. An empty alternative denotes epsilon.

    Any label that isn't a declared nonterminal is a terminal, even if the
    terminal list forgot it; such terminals are added to the grammar.
    """
    nt_labels = nonterminals.split()
    nt_set = {NonTerminal(name) for name in nt_labels}
    declared_terminals = [Terminal(name) for name in terminals.split()]
    t_set = set(declared_terminals)

    def symbol(label: str) -> Symbol:
        if NonTerminal(label) in nt_set:
            return NonTerminal(label)

        terminal = Terminal(label)
        if terminal not in t_set:
            grammar_log.debug("treating undeclared label %r as a terminal", label)
            t_set.add(terminal)
        return terminal

    result: list[Production] = []
    for lhs, alternatives in productions:
        for alternative in alternatives.split("|"):
            rhs = tuple(symbol(label) for label in alternative.split())
            result.append(Production(NonTerminal(lhs.strip()), rhs))

    return Grammar(nt_set, t_set, result, NonTerminal(start.strip()))
