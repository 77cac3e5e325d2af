"""Derivation trees, the output shape shared by every engine, and the
outcome values the engines return.

Trees are immutable. Two engines that find the same derivation produce
trees that compare equal, which is what the cross-engine tests lean on.
"""

import typing
from dataclasses import dataclass

from .grammar import NonTerminal, Terminal


@dataclass(frozen=True)
class Leaf:
    terminal: Terminal

    @property
    def name(self) -> str:
        return self.terminal.name


@dataclass(frozen=True)
class Node:
    symbol: NonTerminal
    children: typing.Tuple["Node | Leaf", ...]

    @property
    def name(self) -> str:
        return self.symbol.name

    def leaves(self) -> typing.Iterator[Leaf]:
        """Yield the terminal leaves of the tree from left to right."""
        stack: list[Node | Leaf] = [self]
        while len(stack) > 0:
            node = stack.pop()
            match node:
                case Leaf():
                    yield node
                case Node(children=children):
                    stack.extend(reversed(children))

    def tokens(self) -> list[str]:
        return [leaf.name for leaf in self.leaves()]

    def format_lines(self) -> list[str]:
        lines = []

        def format_node(node: Node | Leaf, indent: int):
            match node:
                case Node(symbol=symbol, children=children):
                    lines.append((" " * indent) + symbol.name)
                    for child in children:
                        format_node(child, indent + 2)

                case Leaf(terminal=terminal):
                    lines.append((" " * indent) + f"'{terminal.name}'")

        format_node(self, 0)
        return lines

    def format(self) -> str:
        return "\n".join(self.format_lines())


Tree = Node | Leaf


@dataclass(frozen=True)
class Parse:
    """The input was derived; `tree` is the derivation."""

    tree: Node


@dataclass(frozen=True)
class NoParse:
    """The input is not derivable from the grammar."""

    pass
