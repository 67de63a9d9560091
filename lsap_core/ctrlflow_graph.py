# lsap_core/ctrlflow_graph.py
"""
lsap_core.ctrlflow_graph
========================

The augmented control-flow graph of one function.

A raw per-function CFG may have several roots and several exit points.
:class:`ControlFlowGraph` wraps it into a graph with a unique source and a
unique sink: a synthetic *master entry* node edged to every structural root
and a synthetic *master exit* node reached from every structural exit point.
The input graph is never modified; the augmented graph shares its node and
edge identities and adds two nodes plus their connecting edges.

Public API
----------
    ControlFlowGraph   - augmented CFG (entry_node, exit_node, successors, ...)
    detect_back_edges  - DFS back-edge detection
    is_acyclic         - DAG test
    loop_free_graph    - drop back edges so path enumeration terminates

Typical usage::

    from lsap_core.ctrlflow_graph import ControlFlowGraph

    cfg = ControlFlowGraph(function_graph)
    for succ in cfg.successors(cfg.entry_node):
        print(succ.name)
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .errors import ErrorCodes, GraphInvariantError, MalformedGraph
from .graph_model import (
    Edge,
    EdgeKind,
    Graph,
    GraphBuilder,
    Node,
    NodeKind,
    NodeRef,
)

logger = logging.getLogger(__name__)

# Names and tags applied to the synthetic elements.
CFG_MASTER_ENTRY_NODE = "EFG_ENTRY"
CFG_MASTER_EXIT_NODE = "EFG_EXIT"
CFG_ENTRY_EDGE = "CFG_ENTRY_EDGE"
CFG_EXIT_EDGE = "CFG_EXIT_EDGE"


class ControlFlowGraph:
    """A function CFG with a single master entry and a single master exit.

    Attributes
    ----------
    base : Graph
        The raw function graph this CFG was built from.
    graph : Graph
        The augmented graph (``base`` plus the synthetic elements).
    entry_node, exit_node : Node
        The synthetic master entry / exit nodes.
    roots, exit_points : list[Node]
        Structural roots and exit points of ``base``, in graph order.

    Raises
    ------
    MalformedGraph
        If ``base`` has no structural root.
    GraphInvariantError
        If ``base`` already contains an ENTRY or EXIT node.
    """

    def __init__(self, graph: Graph, name: Optional[str] = None) -> None:
        self.base = graph
        self.name = name
        synthetic = graph.nodes_of_kind(NodeKind.ENTRY, NodeKind.EXIT)
        if synthetic:
            raise GraphInvariantError(
                f"raw CFG already contains synthetic node(s) {synthetic!r}"
            )

        self.roots: List[Node] = graph.roots()
        if not self.roots:
            raise MalformedGraph(
                f"CFG{self._label()} has no control-flow root",
                ErrorCodes.NO_STRUCTURAL_ROOT,
            )
        self.exit_points: List[Node] = graph.exit_points()
        if not self.exit_points:
            logger.warning(
                "CFG%s has no control-flow exit point; the master exit node "
                "is unreachable", self._label(),
            )

        builder = GraphBuilder.from_graph(graph)
        self.entry_node = builder.add_node(
            NodeKind.ENTRY, CFG_MASTER_ENTRY_NODE, attrs={"tag": CFG_MASTER_ENTRY_NODE}
        )
        for root in self.roots:
            builder.add_edge(
                self.entry_node, root,
                kind=EdgeKind.ENTRY_SYNTHETIC, tags=(CFG_ENTRY_EDGE,),
            )
        self.exit_node = builder.add_node(
            NodeKind.EXIT, CFG_MASTER_EXIT_NODE, attrs={"tag": CFG_MASTER_EXIT_NODE}
        )
        for exit_point in self.exit_points:
            builder.add_edge(
                exit_point, self.exit_node,
                kind=EdgeKind.EXIT_SYNTHETIC, tags=(CFG_EXIT_EDGE,),
            )
        self.graph: Graph = builder.build()
        logger.debug(
            "augmented CFG%s: %d roots, %d exit points, %r",
            self._label(), len(self.roots), len(self.exit_points), self.graph,
        )

    def _label(self) -> str:
        return f" of {self.name!r}" if self.name else ""

    # ----- queries ----------------------------------------------------------

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return self.graph.nodes

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return self.graph.edges

    def node(self, ref: NodeRef) -> Node:
        return self.graph.node(ref)

    def successors(self, node: NodeRef) -> List[Node]:
        return self.graph.successors(node)

    def predecessors(self, node: NodeRef) -> List[Node]:
        return self.graph.predecessors(node)

    def reachable_from(self, start: NodeRef, reverse: bool = False) -> Set[Node]:
        """Return the set of nodes reachable from *start*.

        With ``reverse=True`` the walk follows incoming edges instead.
        """
        step = self.graph.predecessors if reverse else self.graph.successors
        first = self.graph.node(start)
        visited: Set[Node] = set()
        worklist = [first]
        while worklist:
            n = worklist.pop()
            if n in visited:
                continue
            visited.add(n)
            worklist.extend(step(n))
        return visited

    def __contains__(self, item) -> bool:
        return item in self.graph

    def __repr__(self) -> str:
        return (
            f"ControlFlowGraph(name={self.name!r}, nodes={len(self.graph)}, "
            f"edges={len(self.graph.edges)})"
        )


# ---------------------------------------------------------------------------
# Back edges and loop-free graphs
# ---------------------------------------------------------------------------


def detect_back_edges(graph: Graph, roots: Optional[Iterable[NodeRef]] = None) -> List[Edge]:
    """Return the edges whose target is on the DFS stack when explored.

    The search starts from *roots* (default: the graph's structural roots,
    then every node not yet visited, in graph order) and follows out-edges
    in insertion order.
    """
    starts: List[Node] = [graph.node(r) for r in roots] if roots is not None else graph.roots()
    starts += [n for n in graph.nodes if n not in starts]

    WHITE, GREY, BLACK = 0, 1, 2
    color: Dict[int, int] = {n.id: WHITE for n in graph.nodes}
    back: List[Edge] = []

    for start in starts:
        if color[start.id] != WHITE:
            continue
        color[start.id] = GREY
        stack: List[Tuple[Node, int]] = [(start, 0)]
        while stack:
            node, idx = stack[-1]
            out = graph.out_edges(node)
            if idx < len(out):
                stack[-1] = (node, idx + 1)
                edge = out[idx]
                state = color[edge.dst]
                if state == GREY:
                    back.append(edge)
                elif state == WHITE:
                    color[edge.dst] = GREY
                    stack.append((graph.node(edge.dst), 0))
            else:
                color[node.id] = BLACK
                stack.pop()
    return back


def is_acyclic(graph: Graph) -> bool:
    """True if *graph* has no directed cycle (self-loops included)."""
    return not detect_back_edges(graph)


def loop_free_graph(graph: Graph, repair: bool = True) -> Graph:
    """Return *graph* without its loop back edges.

    Edges flagged ``back_edge`` by the host store are dropped first.  If a
    cycle survives and *repair* is true, the back edges found by
    :func:`detect_back_edges` are dropped as well; otherwise
    :class:`MalformedGraph` is raised.
    """
    flagged = [e for e in graph.edges if e.back_edge]
    dag = graph.without_edges(flagged)
    remaining = detect_back_edges(dag)
    if not remaining:
        return dag
    if not repair:
        raise MalformedGraph(
            f"{len(remaining)} cycle-closing edge(s) are not flagged as back edges",
            ErrorCodes.CYCLIC_LOOP_FREE_GRAPH,
        )
    logger.warning(
        "dropping %d unflagged back edge(s) to obtain a DAG: %s",
        len(remaining), ", ".join(f"{e.src}->{e.dst}" for e in remaining),
    )
    return dag.without_edges(remaining)
