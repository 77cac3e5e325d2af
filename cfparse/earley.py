"""An Earley chart parser that returns every parse tree.

(With credit to Loup Vaillant's tutorial on Earley parsing,
https://loup-vaillant.fr/tutorials/earley-parsing/, which is where the
shape of the recogniser here comes from.)

The chart has one state set per input position, 0 through N. Each state
set is a list of items, where an item is a production with a dot somewhere
in it plus the position where matching of that production started (its
origin). Items are processed strictly in discovery order, and new items
get appended to the set that is being processed, so the loop over a set
keeps going until the set stops growing.

Three things can happen to an item:

- If the dot is in front of a nonterminal, we *predict*: every production
  of that nonterminal starts here.
- If the dot is in front of a terminal and the next token is that
  terminal, we *scan*: the item, with the dot moved over the terminal,
  goes in the next state set.
- If the dot is at the end, the item is *complete*, and every item that
  was waiting for its left-hand side back at its origin gets its dot moved
  forward, in the current state set.

To get trees back out, every item created by a scan or a completion
remembers where it came from: a list of "history" edges pointing at the
item it was advanced from (and, for completions, at the completed child).
An item with no history was created by a prediction; it's where some
production started matching. Walking the history backwards from an
accepting item gives every tree.
"""

import dataclasses
import logging
import typing

from .grammar import Grammar, NonTerminal, Production, Symbol, Terminal
from .tree import Leaf, Node


earley_log = logging.getLogger("cfparse.earley")


def _format_item(production: Production, dot: int, origin: int) -> str:
    bits = [sym.name for sym in production.rhs]
    bits.insert(dot, ".")
    return "{name} -> {bits} ({origin})".format(
        name=production.lhs.name,
        bits=" ".join(bits),
        origin=origin,
    )


@dataclasses.dataclass(frozen=True)
class IncompleteItem:
    """An item whose dot is still in front of some symbol."""

    production: Production
    dot: int
    origin: int

    def __post_init__(self):
        assert self.dot < len(self.production.rhs)

    @property
    def next_symbol(self) -> Symbol:
        return self.production.rhs[self.dot]

    def advance(self) -> "Item":
        """Move the dot over the next symbol.

        This is the only way to get a complete item from an incomplete one.
        """
        dot = self.dot + 1
        if dot == len(self.production.rhs):
            return CompleteItem(production=self.production, dot=dot, origin=self.origin)
        return IncompleteItem(production=self.production, dot=dot, origin=self.origin)

    def format(self) -> str:
        return _format_item(self.production, self.dot, self.origin)


@dataclasses.dataclass(frozen=True)
class CompleteItem:
    """An item whose dot has reached the end of its production."""

    production: Production
    dot: int
    origin: int

    def __post_init__(self):
        assert self.dot == len(self.production.rhs)

    @property
    def lhs(self) -> NonTerminal:
        return self.production.lhs

    def format(self) -> str:
        return _format_item(self.production, self.dot, self.origin)


Item = IncompleteItem | CompleteItem


def predicted(production: Production, origin: int) -> Item:
    """The item for a production that starts matching at `origin`.

    An epsilon production is complete the moment it is predicted.
    """
    if production.is_epsilon:
        return CompleteItem(production=production, dot=0, origin=origin)
    return IncompleteItem(production=production, dot=0, origin=origin)


class ItemRef(typing.NamedTuple):
    """The address of an item in the chart."""

    state: int
    index: int


@dataclasses.dataclass(frozen=True)
class ScanEdge:
    """The item was made by scanning a terminal past `predecessor`."""

    predecessor: ItemRef


@dataclasses.dataclass(frozen=True)
class CompleteEdge:
    """The item was made by advancing `predecessor` over the left-hand side
    of the complete item `child`.
    """

    predecessor: ItemRef
    child: ItemRef


Edge = ScanEdge | CompleteEdge


class StateSet:
    """The items that end at one input position, in discovery order."""

    items: list[Item]

    # Processed incomplete items, by the nonterminal they are waiting for.
    waiting: dict[NonTerminal, list[int]]
    # Processed complete items that matched nothing (origin == this set),
    # by left-hand side.
    empty: dict[NonTerminal, list[int]]

    _index: dict[Item, int]

    def __init__(self):
        self.items = []
        self.waiting = {}
        self.empty = {}
        self._index = {}

    def add(self, item: Item) -> typing.Tuple[int, bool]:
        """Add the item unless it is already present. Returns the item's
        index and whether it was new.
        """
        index = self._index.get(item)
        if index is not None:
            return (index, False)

        index = len(self.items)
        self.items.append(item)
        self._index[item] = index
        return (index, True)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index: int) -> Item:
        return self.items[index]


@dataclasses.dataclass
class Chart:
    grammar: Grammar
    tokens: typing.Sequence[str]
    state_sets: list[StateSet]
    history: dict[ItemRef, list[Edge]]

    def item(self, ref: ItemRef) -> Item:
        return self.state_sets[ref.state][ref.index]

    def accepting(self) -> list[ItemRef]:
        """The complete items for the start symbol that span the whole
        input.
        """
        last = len(self.state_sets) - 1
        return [
            ItemRef(last, index)
            for index, item in enumerate(self.state_sets[last].items)
            if isinstance(item, CompleteItem)
            and item.origin == 0
            and item.lhs == self.grammar.start
        ]

    @property
    def accepted(self) -> bool:
        return len(self.accepting()) > 0

    def format(self) -> str:
        lines = []
        for state, state_set in enumerate(self.state_sets):
            token = self.tokens[state] if state < len(self.tokens) else "$"
            lines.append(f"== {state} == next: {token}")
            for index, item in enumerate(state_set.items):
                edges = self.history.get(ItemRef(state, index), [])
                sources = []
                for edge in edges:
                    match edge:
                        case ScanEdge(predecessor=p):
                            sources.append(f"scan {tuple(p)}")
                        case CompleteEdge(predecessor=p, child=c):
                            sources.append(f"complete {tuple(p)} with {tuple(c)}")
                suffix = "   <- " + "; ".join(sources) if sources else ""
                lines.append(f"  [{index}] {item.format()}{suffix}")
        return "\n".join(lines)


def _add_history(history: dict[ItemRef, list[Edge]], ref: ItemRef, edge: Edge):
    edges = history.get(ref)
    if edges is None:
        edges = []
        history[ref] = edges
    edges.append(edge)


def build_chart(grammar: Grammar, tokens: typing.Sequence[str]) -> Chart:
    """Run the recogniser over the tokens, recording history as we go."""
    sets = [StateSet() for _ in range(len(tokens) + 1)]
    history: dict[ItemRef, list[Edge]] = {}

    for production in grammar.productions_for(grammar.start):
        sets[0].add(predicted(production, 0))

    def complete(end: int, parent: ItemRef, child: ItemRef):
        parent_item = sets[parent.state][parent.index]
        assert isinstance(parent_item, IncompleteItem)
        index, _ = sets[end].add(parent_item.advance())
        # Even when the item already existed we keep the edge: every
        # provenance is another way to build the tree.
        _add_history(history, ItemRef(end, index), CompleteEdge(parent, child))

    for end, current in enumerate(sets):
        # NOTE: `current` grows while we walk it, so this must be an index
        #       loop; items appended while processing this set are
        #       processed before we move on to the next one.
        index = 0
        while index < len(current):
            item = current[index]
            match item:
                case IncompleteItem(next_symbol=Terminal() as terminal):
                    # Scan.
                    if end < len(tokens) and tokens[end] == terminal.name:
                        next_index, _ = sets[end + 1].add(item.advance())
                        _add_history(
                            history,
                            ItemRef(end + 1, next_index),
                            ScanEdge(ItemRef(end, index)),
                        )

                case IncompleteItem(next_symbol=NonTerminal() as symbol):
                    # Predict.
                    for production in grammar.productions_for(symbol):
                        current.add(predicted(production, end))

                    # Anything that already matched `symbol` here matched
                    # nothing at all, and was completed before we showed up
                    # to wait for it. Catch up on those now.
                    current.waiting.setdefault(symbol, []).append(index)
                    for child_index in current.empty.get(symbol, ()):
                        complete(end, ItemRef(end, index), ItemRef(end, child_index))

                case CompleteItem(production=production, origin=origin):
                    # Complete. When origin == end this matched nothing, and
                    # the parents are in the set we're building: pair with the
                    # ones already processed here, and leave a note for the
                    # ones that haven't been processed yet.
                    if origin == end:
                        current.empty.setdefault(production.lhs, []).append(index)

                    parents = sets[origin].waiting.get(production.lhs, ())
                    for parent_index in list(parents):
                        complete(end, ItemRef(origin, parent_index), ItemRef(end, index))

                case _:
                    raise AssertionError(f"unexpected item {item!r}")

            index += 1

    chart = Chart(grammar=grammar, tokens=tokens, state_sets=sets, history=history)
    if earley_log.isEnabledFor(logging.DEBUG):
        earley_log.debug("Earley chart:\n%s", chart.format())
    return chart


class TreeBuilder:
    """Reconstruct trees from a chart's history.

    Trees for each complete item are computed once and shared by every tree
    that contains them, so ambiguous parses share their common subtrees.
    """

    chart: Chart

    _trees: dict[ItemRef, list[Node]]
    _active: set[ItemRef]
    _cuts: int

    def __init__(self, chart: Chart):
        self.chart = chart
        self._trees = {}
        self._active = set()
        self._cuts = 0

    def trees(self, ref: ItemRef) -> list[Node]:
        """Every tree for the complete item at `ref`."""
        cached = self._trees.get(ref)
        if cached is not None:
            return cached

        if ref in self._active:
            # A cyclic grammar (A -> A, say) can nest an item inside itself
            # forever. We only enumerate derivations that don't.
            self._cuts += 1
            return []

        item = self.chart.item(ref)
        assert isinstance(item, CompleteItem)

        self._active.add(ref)
        cuts = self._cuts
        try:
            result = [
                Node(symbol=item.lhs, children=children) for children in self.children(ref)
            ]
        finally:
            self._active.discard(ref)

        # Results that had a cycle cut out of them depend on where we came
        # in from, so they don't get shared.
        if cuts == self._cuts:
            self._trees[ref] = result
        return result

    def children(self, ref: ItemRef) -> list[typing.Tuple[Node | Leaf, ...]]:
        """Every sequence of children matched by the item at `ref` so far.

        This walks the history backwards from the item, depth first,
        collecting children in reverse. When we reach an item with no
        history we're at the start of the production and the (reversed)
        collection is one complete list of children.
        """
        results: list[typing.Tuple[Node | Leaf, ...]] = []
        stack: list[typing.Tuple[ItemRef, typing.Tuple[Node | Leaf, ...]]] = [(ref, ())]
        while len(stack) > 0:
            current, reversed_children = stack.pop()
            edges = self.chart.history.get(current)
            if not edges:
                results.append(tuple(reversed(reversed_children)))
                continue

            for edge in edges:
                match edge:
                    case ScanEdge(predecessor=predecessor):
                        scanned = self.chart.item(predecessor)
                        assert isinstance(scanned, IncompleteItem)
                        terminal = scanned.next_symbol
                        assert isinstance(terminal, Terminal)
                        stack.append((predecessor, reversed_children + (Leaf(terminal),)))

                    case CompleteEdge(predecessor=predecessor, child=child):
                        for tree in self.trees(child):
                            stack.append((predecessor, reversed_children + (tree,)))

                    case _:
                        typing.assert_never(edge)

        return results


def build_trees(chart: Chart, ref: ItemRef, builder: TreeBuilder | None = None) -> list[Node]:
    """Every tree for the accepting (or any complete) item at `ref`."""
    if builder is None:
        builder = TreeBuilder(chart)
    return builder.trees(ref)


class EarleyParser:
    grammar: Grammar

    def __init__(self, grammar: Grammar):
        self.grammar = grammar

    def chart(self, tokens: typing.Sequence[str]) -> Chart:
        return build_chart(self.grammar, tokens)

    def recognize(self, tokens: typing.Sequence[str]) -> bool:
        return self.chart(tokens).accepted

    def parse(self, tokens: typing.Sequence[str]) -> list[Node]:
        """Every parse tree for the tokens. An empty list means the tokens
        are not in the language; more than one tree means they are ambiguous.
        """
        chart = self.chart(tokens)
        builder = TreeBuilder(chart)

        result: list[Node] = []
        for ref in chart.accepting():
            result.extend(builder.trees(ref))

        earley_log.debug("%d parse trees for %d tokens", len(result), len(tokens))
        return result


def parse(grammar: Grammar, tokens: typing.Sequence[str]) -> list[Node]:
    return EarleyParser(grammar).parse(tokens)
