# lsap_core/event_flow.py
"""
lsap_core.event_flow
====================

Event flow graph (EFG) reduction.

Given a function CFG and a set of *event* nodes, the EFG is the smallest
graph that keeps every event, the master entry and exit nodes, and every
node needed to preserve the branching structure between them.  The
retained set is the event set closed under the post-dominance frontier:
a branch that decides whether an event is reached stays in the graph.

Every other node is *consumed*: each of its incoming edges is joined with
each of its outgoing edges into a bypass edge that carries the incoming
edge's branch label, and the node disappears.  Path structure between
retained nodes is preserved; path multiplicity is not, because parallel
edges on the same ``(src, dst)`` pair are collapsed to the first one.

Public API
----------
    EventFlowGraphTransformation - reducer; ``construct_efg()`` runs it
    EventFlowGraph               - the result (graph + retained/consumed)
    EFG_NODE, EFG_EDGE, NEW_EFG_EDGE - store tags used by ``materialize``

Typical usage::

    efg = EventFlowGraphTransformation(function_graph, events).construct_efg()
    for node in efg.successors(efg.entry):
        ...
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .ctrlflow_graph import (
    CFG_MASTER_ENTRY_NODE,
    CFG_MASTER_EXIT_NODE,
    ControlFlowGraph,
)
from .dominance import DominanceAnalysis
from .errors import DisconnectedEventSet, GraphInvariantError
from .graph_model import Edge, EdgeKind, Graph, Node, NodeKind, NodeRef
from .graph_store import StoreTransaction, TaggedGraphStore

logger = logging.getLogger(__name__)

EFG_NODE = "EFG_NODE"
EFG_EDGE = "EFG_EDGE"
NEW_EFG_EDGE = "NEW_EFG_EDGE"


@dataclass(frozen=True)
class EventFlowGraph:
    """Result of an EFG reduction.

    ``graph`` holds only retained nodes.  Its edges are either ``REDUCED``
    (an original CFG edge between two retained nodes; the original kind is
    kept as a tag) or ``BYPASS`` (created while consuming a node).
    """

    graph: Graph
    entry: Node
    exit: Node
    events: Tuple[Node, ...]
    retained: Tuple[Node, ...]
    consumed: Tuple[Node, ...]
    disconnected: bool = False

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return self.graph.nodes

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return self.graph.edges

    def successors(self, node: NodeRef) -> List[Node]:
        return self.graph.successors(node)

    def predecessors(self, node: NodeRef) -> List[Node]:
        return self.graph.predecessors(node)

    def bypass_edges(self) -> List[Edge]:
        return [e for e in self.graph.edges if e.kind is EdgeKind.BYPASS]

    def __contains__(self, item) -> bool:
        return item in self.graph

    def materialize(self, store: TaggedGraphStore) -> StoreTransaction:
        """Write this reduction into *store* and return the undo journal.

        Retained nodes that already live in the store are tagged
        ``EFG_NODE``; the master entry/exit nodes are created.  Reduced
        edges that exist in the store are tagged ``EFG_EDGE``; synthetic
        and bypass edges are created with their tags.  ``undo()`` on the
        returned transaction removes all of it.
        """
        tx = StoreTransaction(store)
        mapping: Dict[int, Node] = {}
        for node in self.graph.nodes:
            if node.kind in (NodeKind.ENTRY, NodeKind.EXIT):
                created = tx.create_node(node.kind, node.name, attrs=node.attrs)
                tag = CFG_MASTER_ENTRY_NODE if node.kind is NodeKind.ENTRY else CFG_MASTER_EXIT_NODE
                tx.tag(created, tag)
                mapping[node.id] = created
            else:
                mapping[node.id] = store.node(node)
            tx.tag(mapping[node.id], EFG_NODE)

        for edge in self.graph.edges:
            src, dst = mapping[edge.src], mapping[edge.dst]
            if self._stored_original(store, edge, src, dst):
                tx.tag(store.edge(edge.id), EFG_EDGE)
                continue
            tx.create_edge(
                src, dst,
                kind=edge.kind, condition=edge.condition, back_edge=edge.back_edge,
                tags=set(edge.tags) | {EFG_EDGE}, attrs=edge.attrs,
            )
        logger.info(
            "materialized EFG: %d node(s) created, %d edge(s) created, %d tag(s) added",
            len(tx.created_nodes), len(tx.created_edges), len(tx.added_tags),
        )
        return tx

    @staticmethod
    def _stored_original(store: TaggedGraphStore, edge: Edge, src: Node, dst: Node) -> bool:
        if edge.kind is not EdgeKind.REDUCED or EdgeKind.STRUCTURAL.value not in edge.tags:
            return False
        if not store.has_edge(edge.id):
            return False
        stored = store.edge(edge.id)
        return stored.src == src.id and stored.dst == dst.id


class _WorkingGraph:
    """Mutable edge set used while consuming nodes."""

    def __init__(self, graph: Graph) -> None:
        self.edges: Dict[int, Edge] = {}
        self.out: Dict[int, Dict[int, None]] = {n.id: {} for n in graph.nodes}
        self.inn: Dict[int, Dict[int, None]] = {n.id: {} for n in graph.nodes}
        self.next_edge_id = graph.max_edge_id() + 1
        for e in graph.edges:
            self.add(e)

    def add(self, edge: Edge) -> None:
        self.edges[edge.id] = edge
        self.out[edge.src][edge.id] = None
        self.inn[edge.dst][edge.id] = None

    def remove(self, edge: Edge) -> None:
        del self.edges[edge.id]
        self.out[edge.src].pop(edge.id, None)
        self.inn[edge.dst].pop(edge.id, None)

    def in_edges(self, node: Node) -> List[Edge]:
        return [self.edges[i] for i in self.inn[node.id]]

    def out_edges(self, node: Node) -> List[Edge]:
        return [self.edges[i] for i in self.out[node.id]]


class EventFlowGraphTransformation:
    """Reduce a function CFG to the event flow graph of *events*.

    Args:
        graph: A raw function graph or an already augmented
            :class:`ControlFlowGraph`.
        events: Event nodes (objects or identities) of *graph*.
        name: Optional function name used in log messages.

    Raises:
        MalformedGraph: from the CFG augmentation (no structural root).
        UnknownNodeError: an event is not a node of the graph.
    """

    def __init__(
        self,
        graph: Union[Graph, ControlFlowGraph],
        events: Iterable[NodeRef],
        name: Optional[str] = None,
    ) -> None:
        self.cfg = graph if isinstance(graph, ControlFlowGraph) else ControlFlowGraph(graph, name)
        self.name = name if name is not None else self.cfg.name
        unique: Dict[Node, None] = {}
        for ev in events:
            unique.setdefault(self.cfg.node(ev), None)
        self.events: Tuple[Node, ...] = tuple(unique)

    def _label(self) -> str:
        return f" of {self.name!r}" if self.name else ""

    def _reachable_events(self) -> List[Node]:
        reachable = self.cfg.reachable_from(self.cfg.entry_node)
        kept = [e for e in self.events if e in reachable]
        dropped = [e for e in self.events if e not in reachable]
        if dropped:
            logger.warning(
                "EFG%s: dropping %d event(s) unreachable from the entry node: %s",
                self._label(), len(dropped), ", ".join(n.name for n in dropped),
            )
        return kept

    def _retained_nodes(self, events: List[Node]) -> Set[Node]:
        pdom = DominanceAnalysis(self.cfg, post_dominance=True)
        stuck = [e for e in events if e in pdom.unreachable]
        if stuck:
            logger.warning(
                "EFG%s: %d event(s) cannot reach the exit node, the branches "
                "leading to them are not retained: %s",
                self._label(), len(stuck), ", ".join(n.name for n in stuck),
            )
        retained = set(pdom.iterated_dominance_frontier(events))
        retained.add(self.cfg.entry_node)
        retained.add(self.cfg.exit_node)
        return retained

    @staticmethod
    def _consume(work: _WorkingGraph, node: Node) -> None:
        ins = [e for e in work.in_edges(node) if not e.is_self_loop]
        outs = [e for e in work.out_edges(node) if not e.is_self_loop]
        for in_edge in ins:
            for out_edge in outs:
                work.add(Edge(
                    work.next_edge_id, in_edge.src, out_edge.dst,
                    kind=EdgeKind.BYPASS,
                    condition=in_edge.condition,
                    back_edge=in_edge.back_edge,
                    tags=set(in_edge.tags) | {NEW_EFG_EDGE, EFG_EDGE},
                    attrs=in_edge.attrs,
                ))
                work.next_edge_id += 1
        for edge in work.in_edges(node) + work.out_edges(node):
            if edge.id in work.edges:
                work.remove(edge)

    @staticmethod
    def _dedup(edges: Iterable[Edge]) -> List[Edge]:
        seen: Set[Tuple[int, int]] = set()
        kept: List[Edge] = []
        for e in edges:
            if (e.src, e.dst) in seen:
                continue
            seen.add((e.src, e.dst))
            kept.append(e)
        return kept

    @staticmethod
    def _as_reduced(edge: Edge) -> Edge:
        if edge.kind is EdgeKind.BYPASS:
            return edge
        return edge.with_changes(
            kind=EdgeKind.REDUCED,
            tags=set(edge.tags) | {edge.kind.value, EFG_EDGE},
        )

    def construct_efg(self) -> EventFlowGraph:
        """Run the reduction and return the :class:`EventFlowGraph`."""
        events = self._reachable_events()
        retained_set = self._retained_nodes(events)
        retained = tuple(n for n in self.cfg.nodes if n in retained_set)
        consumed = tuple(n for n in self.cfg.nodes if n not in retained_set)

        work = _WorkingGraph(self.cfg.graph)
        for node in consumed:
            self._consume(work, node)

        edges = [self._as_reduced(e) for e in self._dedup(work.edges.values())]
        for e in edges:
            if self.cfg.node(e.src) not in retained_set or self.cfg.node(e.dst) not in retained_set:
                raise GraphInvariantError(
                    f"EFG edge {e!r} references a consumed node"
                )
        graph = Graph(retained, edges)

        entry, exit_ = self.cfg.entry_node, self.cfg.exit_node
        disconnected = not _reaches(graph, entry, exit_)
        if disconnected:
            message = (
                f"EFG{self._label()}: no path connects "
                f"{CFG_MASTER_ENTRY_NODE} to {CFG_MASTER_EXIT_NODE}"
            )
            logger.warning(message)
            warnings.warn(DisconnectedEventSet(message), stacklevel=2)

        logger.info(
            "EFG%s: %d event(s), %d node(s) retained, %d consumed, %d edge(s)",
            self._label(), len(events), len(retained), len(consumed), len(edges),
        )
        return EventFlowGraph(
            graph=graph,
            entry=entry,
            exit=exit_,
            events=tuple(events),
            retained=retained,
            consumed=consumed,
            disconnected=disconnected,
        )


def _reaches(graph: Graph, start: Node, goal: Node) -> bool:
    seen: Set[Node] = set()
    stack = [start]
    while stack:
        n = stack.pop()
        if n == goal:
            return True
        if n in seen:
            continue
        seen.add(n)
        stack.extend(graph.successors(n))
    return False
