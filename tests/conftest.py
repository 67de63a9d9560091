# tests/conftest.py
"""
Shared CFG builders for the lsap-core test-suite.

Test modules import the helpers directly::

    from tests.conftest import DIAMOND, build, n
"""

import pytest

from lsap_core.graph_model import EdgeKind, Graph, GraphBuilder, NodeKind
from lsap_core.graph_text import node_named, parse_function


# ── Textual CFGs ─────────────────────────────────────────────────

# root a branches on x to b (true) or c (false); both join at exit d.
DIAMOND = """
function diamond {
    node a condition "x" root
    node d exit
    a -> b [true]
    a -> c [false]
    b -> d
    c -> d
}
"""

# while (i < n) { body }
LOOP = """
function loop {
    node h condition "i < n" root
    node x exit
    h -> body [true]
    body -> h [back]
    h -> x [false]
}
"""

# Two branches on the same condition "flag": the mixed paths can never run.
CORRELATED = """
function correlated {
    node a condition "flag" root
    node c condition "flag"
    node e exit
    a -> lock [true]
    a -> c [false]
    lock -> c
    c -> unlock [true]
    c -> e [false]
    unlock -> e
}
"""

# lock(); if (err) return; unlock();   with an early exit.
EARLY_RETURN = """
function early_return {
    node entry root
    node err condition "err"
    node ret exit
    node out exit
    entry -> lock
    lock -> err
    err -> ret [true]
    err -> unlock [false]
    unlock -> out
}
"""

# switch (v) with raw labels: constraints cannot be modelled.
SWITCH = """
function switch_fn {
    node s condition "v" root
    node j exit
    s -> one [cond=case_1]
    s -> two [cond=default]
    one -> j
    two -> j
}
"""


def build(text: str) -> Graph:
    """Parse a single-function CFG description."""
    return parse_function(text)


def n(graph: Graph, ident: str):
    """Node written as *ident* in the CFG text."""
    return node_named(graph, ident)


def straight_line(length: int) -> Graph:
    """root -> n1 -> ... -> exit, built without the text parser."""
    b = GraphBuilder()
    prev = b.add_node(name="s0", is_root=True)
    for i in range(1, length):
        node = b.add_node(name=f"s{i}", is_exit_point=(i == length - 1))
        b.add_edge(prev, node)
        prev = node
    return b.build()


def ladder(rungs: int) -> Graph:
    """*rungs* consecutive if/else diamonds: 2**rungs paths."""
    b = GraphBuilder()
    join = b.add_node(name="start", is_root=True)
    for i in range(rungs):
        cond = b.add_node(NodeKind.CONDITION, f"c{i}")
        b.add_edge(join, cond)
        left = b.add_node(name=f"l{i}")
        right = b.add_node(name=f"r{i}")
        b.add_edge(cond, left, condition="true")
        b.add_edge(cond, right, condition="false")
        join = b.add_node(name=f"j{i}", is_exit_point=(i == rungs - 1))
        b.add_edge(left, join)
        b.add_edge(right, join)
    return b.build()


def structural_edges(graph: Graph):
    return [e for e in graph.edges if e.kind is EdgeKind.STRUCTURAL]


@pytest.fixture
def diamond():
    return build(DIAMOND)


@pytest.fixture
def loop():
    return build(LOOP)
