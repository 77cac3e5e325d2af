"""FIRST and FOLLOW sets.

(The notes I learned these from are handout 7 of the Stanford CS143 lecture
notes, http://dragonbook.stanford.edu/lecture-notes/Stanford-CS143/.)

Both sets are computed by iterating to a fixed point. Sets only ever grow, so
the loops always terminate; in practice they settle after a handful of
passes even for grammars full of recursive and mutually recursive rules.
"""

import collections.abc
import dataclasses
import logging
import typing

from .grammar import END, EPSILON, Epsilon, Grammar, NonTerminal, Symbol, Terminal


first_follow_log = logging.getLogger("cfparse.first_follow")


def update_changed(items: set, other: typing.Iterable) -> bool:
    """Merge the `other` items into the `items` set, and return True if this
    changed the items set.
    """
    old_len = len(items)
    items.update(other)
    return old_len != len(items)


def _format_sets(sets: typing.Mapping[NonTerminal, typing.AbstractSet]) -> str:
    return "\n".join(
        "{name}: {values}".format(
            name=nt.name,
            values=", ".join(sorted(str(value) for value in values)),
        )
        for nt, values in sorted(sets.items(), key=lambda kv: kv[0].name)
    )


@dataclasses.dataclass(frozen=True)
class FirstSets(collections.abc.Mapping):
    """The first set of every nonterminal in a grammar. (Or, as it is
    commonly styled in textbooks, FIRST.)

    firsts[A] is the set of terminals that can begin a string derived from
    A, plus EPSILON if A can derive the empty string.

    For example, consider following grammar:

        x -> y A
        y -> z | B x | ε
        z -> C | D x

    For this grammar, FIRST[z] is {C, D}.

    FIRST[y] is {B, C, D, ε}. The first production contributes FIRST[z]; the
    second contributes B; the last one doesn't have anything in it, so it
    contributes epsilon.

    Finally, FIRST[x] is {A, B, C, D}. {B, C, D} comes from FIRST[y], as y is
    first in our only production. But the A comes from the fact that y is
    nullable: since y can match empty input, it is also legal for x to begin
    with A. And x itself is not nullable, because A is not.

    Looking up a symbol the grammar never declared yields the empty set.
    """

    firsts: typing.Mapping[NonTerminal, frozenset[Terminal | Epsilon]]

    def __getitem__(self, nonterminal: NonTerminal) -> frozenset[Terminal | Epsilon]:
        return self.firsts.get(nonterminal, frozenset())

    def __iter__(self) -> typing.Iterator[NonTerminal]:
        return iter(self.firsts)

    def __len__(self) -> int:
        return len(self.firsts)

    def nullable(self, nonterminal: NonTerminal) -> bool:
        return EPSILON in self[nonterminal]

    def format(self) -> str:
        return _format_sets(self.firsts)


@dataclasses.dataclass(frozen=True)
class FollowSets(collections.abc.Mapping):
    """The follow set of every nonterminal in a grammar. (Or, again, as the
    textbooks would have it, FOLLOW.)

    The follow set for a nonterminal is the set of terminals that can follow
    the nonterminal in a valid sentence. END stands for "the input may stop
    here", and the start symbol always has it.

    In order to compute follow, we need to find every place that a given
    nonterminal appears in the grammar, and look at the first set of whatever
    follows it. If what follows it can be empty (or nothing follows it at
    all), then anything that can follow the production's own left-hand side
    can follow this nonterminal too.

    Consider this nonsense grammar:

        s -> x A
        x -> y B | y z
        y -> x C
        z -> D | ε

    In this grammar, FOLLOW[y] is {A, B, C, D}. B comes from the first
    production of x, that's easy. D comes from the second production of x:
    FIRST[z] is {D, ε}, and so D goes into FOLLOW[y].

    A and C are the surprising ones: they come from the fact that z is
    nullable. Since z can successfully match on empty input, we need to
    treat y as if it were at the end of x. Anything that can follow x can
    also follow y. A is in FOLLOW[x] (from the production for s) and so is C
    (from the production for y), so both are in FOLLOW[y].
    """

    follows: typing.Mapping[NonTerminal, frozenset[Terminal]]

    def __getitem__(self, nonterminal: NonTerminal) -> frozenset[Terminal]:
        return self.follows.get(nonterminal, frozenset())

    def __iter__(self) -> typing.Iterator[NonTerminal]:
        return iter(self.follows)

    def __len__(self) -> int:
        return len(self.follows)

    def format(self) -> str:
        return _format_sets(self.follows)


def first_of_sequence(
    symbols: typing.Iterable[Symbol],
    firsts: typing.Mapping[NonTerminal, typing.AbstractSet[Terminal | Epsilon]],
) -> typing.Tuple[set[Terminal], bool]:
    """Return the first set for a *sequence* of symbols, without epsilon,
    and whether the whole sequence is nullable.

    Build the set by combining the first sets of the symbols from left to
    right as long as epsilon remains in the first set. If we reach the end
    and every symbol has had epsilon, then the sequence is nullable.

    Otherwise we can stop as soon as we get to a symbol that can't be empty.
    """
    result: set[Terminal] = set()
    for symbol in symbols:
        if isinstance(symbol, Terminal):
            result.add(symbol)
            return (result, False)

        symbol_firsts = firsts.get(symbol, ())
        result.update(s for s in symbol_firsts if s is not EPSILON)
        if EPSILON not in symbol_firsts:
            return (result, False)

    return (result, True)


def compute_first(grammar: Grammar) -> FirstSets:
    """Compute FIRST for every nonterminal of the grammar."""
    firsts: dict[NonTerminal, set[Terminal | Epsilon]] = {
        nt: set() for nt in grammar.nonterminals
    }

    # Because we're working with recursive and mutually recursive rules, we
    # need to make sure we terminate once we've actually found all the first
    # symbols. Naive recursion will go forever; iteration to fixed-point is
    # what every other parser generator uses in the end.
    passes = 0
    changed = True
    while changed:
        changed = False
        passes += 1
        for production in grammar.productions:
            terminals, nullable = first_of_sequence(production.rhs, firsts)
            f = firsts[production.lhs]
            changed = update_changed(f, terminals) or changed
            if nullable and EPSILON not in f:
                # Every symbol on the right can be empty (or there are no
                # symbols at all), so the left side can be empty too.
                f.add(EPSILON)
                changed = True

    first_follow_log.debug("FIRST settled after %d passes", passes)
    return FirstSets(firsts={nt: frozenset(s) for nt, s in firsts.items()})


def compute_follow(grammar: Grammar, firsts: FirstSets) -> FollowSets:
    """Compute FOLLOW for every nonterminal of the grammar."""
    follows: dict[NonTerminal, set[Terminal]] = {nt: set() for nt in grammar.nonterminals}
    follows[grammar.start].add(END)

    passes = 0
    changed = True
    while changed:
        changed = False
        passes += 1
        for production in grammar.productions:
            rhs = production.rhs
            for index, symbol in enumerate(rhs):
                if not isinstance(symbol, NonTerminal):
                    continue

                # The follow of this symbol contains the first of whatever
                # comes after it. If that remainder can be empty, then
                # whatever follows the whole production follows this symbol
                # too. (An empty remainder, i.e. the last symbol, is nullable
                # by definition.)
                terminals, nullable = first_of_sequence(rhs[index + 1 :], firsts)
                f = follows[symbol]
                changed = update_changed(f, terminals) or changed
                if nullable:
                    changed = update_changed(f, follows[production.lhs]) or changed

    first_follow_log.debug("FOLLOW settled after %d passes", passes)
    return FollowSets(follows={nt: frozenset(s) for nt, s in follows.items()})
