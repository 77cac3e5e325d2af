"""A small toolkit for parsing with context-free grammars.

Three parsers share one grammar model and one tree shape:

- `ll1`: a table-driven predictive parser, for grammars that are LL(1).
- `descent`: a backtracking top-down parser that needs no table at all.
- `earley`: a chart parser that handles any grammar and returns every tree.
"""
from . import descent
from . import earley
from . import first_follow
from . import ll1

from .grammar import *
from .tree import *
