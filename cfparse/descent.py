"""A backtracking recursive-descent parser.

There is no table here: we just try every way of expanding the grammar that
is consistent with the input, depth first, and return the first derivation
that consumes all of the tokens. This is exponential in general; it's here
for small grammars and for checking the other parsers, not for speed.

Partial derivations are cloned every time we have a choice of production,
so they are built to be cheap to clone. A derivation is an "arena": a list
of entries, one per expanded production, each entry a tuple of slots. A slot
is a terminal still to match, a nonterminal still to expand, or a
nonterminal that was expanded into some other entry of the arena (by index).
Each entry also remembers the slot that owns it (its parent cursor), and a
cursor points at the next slot to work on. No entry ever refers to another
by reference, so cloning is a shallow copy of a few lists plus a new tuple
for the one entry we changed.

Left recursion, epsilon cycles, and their friends would send a naive
version of this into an infinite loop, so the driver throws away two kinds
of derivation that can never be the *first* successful one:

- Derivations that still owe more tokens than the input has left. Each
  pending terminal owes one token, each pending nonterminal owes the length
  of its shortest sentence.

- Derivations that expand X at input position p inside more than N - p
  other expansions of X that also started at p. Nested expansions of the
  same nonterminal from the same position must each cover strictly more
  input than the one inside them (otherwise the inner one could replace the
  outer one), and there are only N - p + 1 lengths to go around.
"""

import collections
import dataclasses
import logging
import math
import typing

from .grammar import Grammar, NonTerminal, Production, Symbol, Terminal
from .tree import Leaf, Node, NoParse, Parse


descent_log = logging.getLogger("cfparse.descent")


@dataclasses.dataclass(frozen=True)
class TerminalSlot:
    terminal: Terminal


@dataclasses.dataclass(frozen=True)
class Unexpanded:
    symbol: NonTerminal


@dataclasses.dataclass(frozen=True)
class Expanded:
    symbol: NonTerminal
    child: int


Slot = TerminalSlot | Unexpanded | Expanded


class Cursor(typing.NamedTuple):
    entry: int
    slot: int


def shortest_yields(grammar: Grammar) -> dict[NonTerminal, int]:
    """The length of the shortest sentence each nonterminal derives.

    A nonterminal that derives no sentence at all (one that can only ever
    expand into more of itself) does not appear in the result. Computed to a
    fixed point, in the same manner as FIRST.
    """
    lengths: dict[NonTerminal, int] = {}
    changed = True
    while changed:
        changed = False
        for production in grammar.productions:
            length = _sequence_yield(production.rhs, lengths)
            if length == math.inf:
                continue
            existing = lengths.get(production.lhs)
            if existing is None or length < existing:
                lengths[production.lhs] = int(length)
                changed = True
    return lengths


def _sequence_yield(symbols: typing.Iterable[Symbol], lengths: dict[NonTerminal, int]) -> float:
    total: float = 0
    for symbol in symbols:
        if isinstance(symbol, Terminal):
            total += 1
        else:
            total += lengths.get(symbol, math.inf)
    return total


class Step(typing.NamedTuple):
    """The result of stepping a partial derivation once."""

    successors: list["PartialDerivation"]
    # How many tokens the successors consumed: 1 for a terminal match, 0 for
    # an expansion.
    advance: int


@dataclasses.dataclass
class PartialDerivation:
    grammar: Grammar
    lengths: dict[NonTerminal, int]

    # arena[i] is the list of slots for one expanded production. Entry 0 is
    # a virtual root holding the start symbol.
    arena: list[typing.Tuple[Slot, ...]]
    # parents[i] is the slot that was expanded into arena[i]. The root has no
    # parent.
    parents: list[Cursor | None]
    # origins[i] is the input position at which arena[i] was expanded.
    origins: list[int]
    # The next slot to process. None means the derivation is complete.
    cursor: Cursor | None
    # The fewest tokens the slots at or after the cursor must still consume.
    pending: float

    @classmethod
    def initial(cls, grammar: Grammar, lengths: dict[NonTerminal, int] | None = None):
        if lengths is None:
            lengths = shortest_yields(grammar)
        state = cls(
            grammar=grammar,
            lengths=lengths,
            arena=[(Unexpanded(grammar.start),)],
            parents=[None],
            origins=[0],
            cursor=Cursor(0, 0),
            pending=lengths.get(grammar.start, math.inf),
        )
        state.normalize()
        return state

    @property
    def is_complete(self) -> bool:
        return self.cursor is None

    def clone(self) -> "PartialDerivation":
        return dataclasses.replace(
            self,
            arena=list(self.arena),
            parents=list(self.parents),
            origins=list(self.origins),
        )

    def normalize(self):
        """Move the cursor off the end of any finished entries.

        While the cursor has run past the end of its entry, climb to the slot
        that owns the entry and move past that. Climbing out of the root
        means the derivation is complete.
        """
        cursor = self.cursor
        while cursor is not None and cursor.slot >= len(self.arena[cursor.entry]):
            parent = self.parents[cursor.entry]
            if parent is None:
                cursor = None
            else:
                cursor = Cursor(parent.entry, parent.slot + 1)
        self.cursor = cursor

    def step(self, token: str | None, position: int) -> Step:
        """Process the slot under the cursor.

        `token` is the next input token (None at the end of the input) and
        `position` its index. A terminal slot either matches the token,
        producing one successor, or the branch dies. A nonterminal slot
        produces one successor for every production of the nonterminal.
        """
        cursor = self.cursor
        assert cursor is not None, "stepping a complete derivation"

        slot = self.arena[cursor.entry][cursor.slot]
        match slot:
            case TerminalSlot(terminal=terminal):
                if token is None or terminal.name != token:
                    return Step(successors=[], advance=1)

                successor = self.clone()
                successor.cursor = Cursor(cursor.entry, cursor.slot + 1)
                successor.pending -= 1
                successor.normalize()
                return Step(successors=[successor], advance=1)

            case Unexpanded(symbol=symbol):
                successors = [
                    self._expand(cursor, symbol, production, position)
                    for production in self.grammar.productions_for(symbol)
                ]
                return Step(successors=successors, advance=0)

            case Expanded():
                raise AssertionError("stepped into an already expanded nonterminal")

            case _:
                typing.assert_never(slot)

    def _expand(
        self, cursor: Cursor, symbol: NonTerminal, production: Production, position: int
    ) -> "PartialDerivation":
        successor = self.clone()
        index = len(self.arena)

        entry = list(self.arena[cursor.entry])
        entry[cursor.slot] = Expanded(symbol, index)
        successor.arena[cursor.entry] = tuple(entry)

        successor.arena.append(
            tuple(
                TerminalSlot(s) if isinstance(s, Terminal) else Unexpanded(s)
                for s in production.rhs
            )
        )
        successor.parents.append(cursor)
        successor.origins.append(position)
        successor.cursor = Cursor(index, 0)
        successor.pending += _sequence_yield(production.rhs, self.lengths) - self.lengths.get(
            symbol, math.inf
        )
        successor.normalize()
        return successor

    def symbol_of(self, entry: int) -> NonTerminal | None:
        """The nonterminal that was expanded into the given entry."""
        parent = self.parents[entry]
        if parent is None:
            return None
        slot = self.arena[parent.entry][parent.slot]
        assert isinstance(slot, Expanded)
        return slot.symbol

    def nesting(self, entry: int) -> int:
        """Count the enclosing entries that expanded the same nonterminal as
        `entry` and started at the same input position.
        """
        symbol = self.symbol_of(entry)
        origin = self.origins[entry]
        count = 0
        parent = self.parents[entry]
        while parent is not None:
            ancestor = parent.entry
            if self.origins[ancestor] == origin and self.symbol_of(ancestor) == symbol:
                count += 1
            parent = self.parents[ancestor]
        return count

    def to_tree(self) -> Node:
        """Materialize the derivation. Only complete derivations have trees."""
        assert self.is_complete

        def children(index: int) -> typing.Tuple[Node | Leaf, ...]:
            result: list[Node | Leaf] = []
            for slot in self.arena[index]:
                match slot:
                    case TerminalSlot(terminal=terminal):
                        result.append(Leaf(terminal))
                    case Expanded(symbol=symbol, child=child):
                        result.append(Node(symbol, children(child)))
                    case Unexpanded():
                        raise AssertionError("unexpanded nonterminal in a complete derivation")
            return tuple(result)

        (root,) = children(0)
        assert isinstance(root, Node)
        return root


def parse(grammar: Grammar, tokens: typing.Sequence[str]) -> Parse | NoParse:
    """Find a derivation of the tokens, or report that there isn't one.

    The worklist is a stack: the most recently produced derivation is
    explored first, which makes this a depth-first search. Successors are
    pushed so that a nonterminal's productions are tried in the order the
    grammar declares them. For an ambiguous grammar that decides which tree
    comes back; no other disambiguation is attempted.
    """
    count = len(tokens)
    initial = PartialDerivation.initial(grammar)

    todo: collections.deque[typing.Tuple[PartialDerivation, int]] = collections.deque()
    if initial.pending <= count:
        todo.append((initial, 0))

    explored = 0
    pruned = 0
    while len(todo) > 0:
        state, position = todo.pop()
        explored += 1

        if state.is_complete:
            if position == count:
                descent_log.debug("found a derivation after exploring %d states", explored)
                return Parse(state.to_tree())
            # Complete, but input remains: this branch is dead.
            continue

        token = tokens[position] if position < count else None
        step = state.step(token, position)

        remaining = count - (position + step.advance)
        successors = []
        for successor in step.successors:
            if successor.pending > remaining:
                pruned += 1
                continue
            if step.advance == 0:
                newest = len(successor.arena) - 1
                if successor.nesting(newest) > count - position:
                    pruned += 1
                    continue
            successors.append(successor)

        todo.extend((successor, position + step.advance) for successor in reversed(successors))

    descent_log.debug("no derivation: explored %d states, pruned %d", explored, pruned)
    return NoParse()
