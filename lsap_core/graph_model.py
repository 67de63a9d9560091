# lsap_core/graph_model.py
"""
lsap_core.graph_model
=====================

Minimal directed-graph model shared by every analysis in the package.

Graphs are immutable values backed by an *arena*: every node and every edge
carries a stable integer identity allocated by a :class:`GraphBuilder`.
Transformations never mutate a graph; they open a builder (optionally
continuing an existing arena with :meth:`GraphBuilder.from_graph`) and
produce a new :class:`Graph`.

Public API
----------
    NodeKind      - REGULAR / CONDITION / ENTRY / EXIT
    EdgeKind      - STRUCTURAL / ENTRY_SYNTHETIC / EXIT_SYNTHETIC / REDUCED / BYPASS
    Node          - a CFG node (identity, kind, name, root/exit-point flags)
    Edge          - a directed edge (identity, endpoints, kind, condition label)
    Graph         - immutable node/edge set with successor/predecessor indices
    GraphBuilder  - arena that allocates identities and builds graphs

Ordering
--------
Nodes and edges keep their insertion order.  ``successors``/``predecessors``
return neighbours in first-discovered order (the order of the edges that
reach them), without duplicates.  Every algorithm in the package iterates in
this order, which makes results reproducible run to run.
"""

from __future__ import annotations

import enum
from types import MappingProxyType
from typing import (
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .errors import GraphInvariantError, UnknownNodeError

_EMPTY_ATTRS: Mapping[str, str] = MappingProxyType({})


# ---------------------------------------------------------------------------
# Kinds
# ---------------------------------------------------------------------------


class NodeKind(enum.Enum):
    """Classification of a CFG node."""

    REGULAR = "regular"
    CONDITION = "condition"
    ENTRY = "entry"
    EXIT = "exit"


class EdgeKind(enum.Enum):
    """Classification of a CFG edge."""

    STRUCTURAL = "structural"
    ENTRY_SYNTHETIC = "entry-synthetic"
    EXIT_SYNTHETIC = "exit-synthetic"
    REDUCED = "reduced"
    BYPASS = "bypass"


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------


class Node:
    """A single CFG node.

    Attributes
    ----------
    id : int
        Stable identity inside the graph arena.
    kind : NodeKind
    name : str
        Display name.  For condition nodes this is also the condition
        identity used by the feasibility checker.
    is_root : bool
        Tagged as a control-flow root by the host store.
    is_exit_point : bool
        Tagged as a control-flow exit point by the host store.
    attrs : Mapping[str, str]
        Read-only string attributes carried over from the host store.
    """

    __slots__ = ("id", "kind", "name", "is_root", "is_exit_point", "attrs")

    def __init__(
        self,
        id: int,
        kind: NodeKind = NodeKind.REGULAR,
        name: str = "",
        is_root: bool = False,
        is_exit_point: bool = False,
        attrs: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.id = id
        self.kind = kind
        self.name = name
        self.is_root = is_root
        self.is_exit_point = is_exit_point
        self.attrs: Mapping[str, str] = (
            MappingProxyType(dict(attrs)) if attrs else _EMPTY_ATTRS
        )

    @property
    def is_condition(self) -> bool:
        return self.kind is NodeKind.CONDITION

    def __repr__(self) -> str:
        return f"Node(id={self.id}, kind={self.kind.value!r}, name={self.name!r})"

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other) -> bool:
        if isinstance(other, Node):
            return self.id == other.id
        return NotImplemented


NodeRef = Union[Node, int]


def node_id(node: NodeRef) -> int:
    """Return the arena identity of *node* (a :class:`Node` or a raw id)."""
    if isinstance(node, Node):
        return node.id
    return node


# ---------------------------------------------------------------------------
# Edge
# ---------------------------------------------------------------------------


class Edge:
    """A directed edge.

    Attributes
    ----------
    id : int
    src, dst : int
        Identities of the endpoint nodes.
    kind : EdgeKind
    condition : str or None
        Branch label on edges leaving condition nodes (``"true"``,
        ``"false"`` or a raw multi-way label).
    back_edge : bool
        Loop back edge as flagged by the host store.
    tags : frozenset[str]
    attrs : Mapping[str, str]
    """

    __slots__ = ("id", "src", "dst", "kind", "condition", "back_edge", "tags", "attrs")

    def __init__(
        self,
        id: int,
        src: int,
        dst: int,
        kind: EdgeKind = EdgeKind.STRUCTURAL,
        condition: Optional[str] = None,
        back_edge: bool = False,
        tags: Iterable[str] = (),
        attrs: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.id = id
        self.src = src
        self.dst = dst
        self.kind = kind
        self.condition = condition
        self.back_edge = back_edge
        self.tags: FrozenSet[str] = frozenset(tags)
        self.attrs: Mapping[str, str] = (
            MappingProxyType(dict(attrs)) if attrs else _EMPTY_ATTRS
        )

    @property
    def is_self_loop(self) -> bool:
        return self.src == self.dst

    def with_changes(self, **changes) -> "Edge":
        """Return a copy of this edge with some fields replaced."""
        fields = {name: getattr(self, name) for name in self.__slots__}
        fields.update(changes)
        return Edge(**fields)

    def __repr__(self) -> str:
        label = f", condition={self.condition!r}" if self.condition is not None else ""
        return (
            f"Edge(id={self.id}, {self.src} -> {self.dst}, "
            f"kind={self.kind.value!r}{label})"
        )

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other) -> bool:
        if isinstance(other, Edge):
            return self.id == other.id
        return NotImplemented


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


class Graph:
    """Immutable directed graph.

    Invariant: every edge's endpoints are members of the node set.  The
    constructor checks it and raises :class:`GraphInvariantError` otherwise.
    """

    __slots__ = ("_nodes", "_edges", "_out", "_in")

    def __init__(self, nodes: Iterable[Node] = (), edges: Iterable[Edge] = ()) -> None:
        self._nodes: Dict[int, Node] = {}
        for n in nodes:
            if n.id in self._nodes:
                raise GraphInvariantError(f"duplicate node identity {n.id}")
            self._nodes[n.id] = n
        self._edges: Dict[int, Edge] = {}
        self._out: Dict[int, List[Edge]] = {nid: [] for nid in self._nodes}
        self._in: Dict[int, List[Edge]] = {nid: [] for nid in self._nodes}
        for e in edges:
            if e.id in self._edges:
                raise GraphInvariantError(f"duplicate edge identity {e.id}")
            if e.src not in self._nodes or e.dst not in self._nodes:
                raise GraphInvariantError(
                    f"edge {e.id} ({e.src} -> {e.dst}) references a node "
                    f"outside the graph"
                )
            self._edges[e.id] = e
            self._out[e.src].append(e)
            self._in[e.dst].append(e)

    # ----- membership -------------------------------------------------------

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return tuple(self._nodes.values())

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return tuple(self._edges.values())

    def node(self, ref: NodeRef) -> Node:
        """Resolve *ref* to the graph's own :class:`Node` object."""
        try:
            return self._nodes[node_id(ref)]
        except KeyError:
            raise UnknownNodeError(f"node {ref!r} is not part of this graph") from None

    def edge(self, edge_id: int) -> Edge:
        try:
            return self._edges[edge_id]
        except KeyError:
            raise UnknownNodeError(f"edge {edge_id} is not part of this graph") from None

    def has_node(self, ref: NodeRef) -> bool:
        return node_id(ref) in self._nodes

    def __contains__(self, item) -> bool:
        if isinstance(item, Edge):
            return item.id in self._edges
        return self.has_node(item)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes.values())

    # ----- adjacency --------------------------------------------------------

    def out_edges(self, ref: NodeRef) -> Tuple[Edge, ...]:
        return tuple(self._out[self.node(ref).id])

    def in_edges(self, ref: NodeRef) -> Tuple[Edge, ...]:
        return tuple(self._in[self.node(ref).id])

    def successors(self, ref: NodeRef) -> List[Node]:
        """Successor nodes in first-discovered order, without duplicates."""
        seen: Dict[int, Node] = {}
        for e in self._out[self.node(ref).id]:
            if e.dst not in seen:
                seen[e.dst] = self._nodes[e.dst]
        return list(seen.values())

    def predecessors(self, ref: NodeRef) -> List[Node]:
        """Predecessor nodes in first-discovered order, without duplicates."""
        seen: Dict[int, Node] = {}
        for e in self._in[self.node(ref).id]:
            if e.src not in seen:
                seen[e.src] = self._nodes[e.src]
        return list(seen.values())

    def edges_between(self, src: NodeRef, dst: NodeRef) -> List[Edge]:
        """All direct edges ``src -> dst`` in insertion order."""
        target = self.node(dst).id
        return [e for e in self._out[self.node(src).id] if e.dst == target]

    def out_degree(self, ref: NodeRef) -> int:
        return len(self._out[self.node(ref).id])

    def in_degree(self, ref: NodeRef) -> int:
        return len(self._in[self.node(ref).id])

    # ----- tagged-node queries ---------------------------------------------

    def nodes_of_kind(self, *kinds: NodeKind) -> List[Node]:
        return [n for n in self._nodes.values() if n.kind in kinds]

    def roots(self) -> List[Node]:
        return [n for n in self._nodes.values() if n.is_root]

    def exit_points(self) -> List[Node]:
        return [n for n in self._nodes.values() if n.is_exit_point]

    def find(self, name: str) -> Node:
        """Return the first node whose display name is *name*."""
        for n in self._nodes.values():
            if n.name == name:
                return n
        raise UnknownNodeError(f"no node named {name!r}")

    # ----- derived graphs ---------------------------------------------------

    def without_edges(self, edges: Iterable[Edge]) -> "Graph":
        """Return a copy of this graph without *edges* (identities kept)."""
        drop = {e.id for e in edges}
        return Graph(
            self._nodes.values(),
            (e for e in self._edges.values() if e.id not in drop),
        )

    def subgraph(self, nodes: Iterable[NodeRef]) -> "Graph":
        """Induced subgraph on *nodes* (identities kept, order preserved)."""
        keep = {node_id(n) for n in nodes}
        return Graph(
            (n for n in self._nodes.values() if n.id in keep),
            (e for e in self._edges.values() if e.src in keep and e.dst in keep),
        )

    def max_node_id(self) -> int:
        return max(self._nodes, default=-1)

    def max_edge_id(self) -> int:
        return max(self._edges, default=-1)

    def __repr__(self) -> str:
        return f"Graph(nodes={len(self._nodes)}, edges={len(self._edges)})"


# ---------------------------------------------------------------------------
# GraphBuilder
# ---------------------------------------------------------------------------


class GraphBuilder:
    """Arena that allocates node/edge identities and assembles a Graph.

    Typical usage::

        b = GraphBuilder()
        a = b.add_node(NodeKind.CONDITION, "x > 0", is_root=True)
        t = b.add_node(name="then", is_exit_point=True)
        b.add_edge(a, t, condition="true")
        graph = b.build()
    """

    def __init__(self) -> None:
        self._nodes: Dict[int, Node] = {}
        self._edges: Dict[int, Edge] = {}
        self._next_node_id = 0
        self._next_edge_id = 0

    @classmethod
    def from_graph(cls, graph: Graph) -> "GraphBuilder":
        """Start a builder holding every element of *graph*.

        Fresh identities continue after the largest ones already used, so
        the original identities stay valid in the graph being built.
        """
        builder = cls()
        for n in graph.nodes:
            builder._nodes[n.id] = n
        for e in graph.edges:
            builder._edges[e.id] = e
        builder._next_node_id = graph.max_node_id() + 1
        builder._next_edge_id = graph.max_edge_id() + 1
        return builder

    def add_node(
        self,
        kind: NodeKind = NodeKind.REGULAR,
        name: str = "",
        is_root: bool = False,
        is_exit_point: bool = False,
        attrs: Optional[Mapping[str, str]] = None,
    ) -> Node:
        nid = self._next_node_id
        self._next_node_id += 1
        node = Node(
            nid,
            kind=kind,
            name=name or f"n{nid}",
            is_root=is_root,
            is_exit_point=is_exit_point,
            attrs=attrs,
        )
        self._nodes[nid] = node
        return node

    def add_edge(
        self,
        src: NodeRef,
        dst: NodeRef,
        kind: EdgeKind = EdgeKind.STRUCTURAL,
        condition: Optional[str] = None,
        back_edge: bool = False,
        tags: Iterable[str] = (),
        attrs: Optional[Mapping[str, str]] = None,
    ) -> Edge:
        s, d = node_id(src), node_id(dst)
        if s not in self._nodes or d not in self._nodes:
            raise GraphInvariantError(
                f"cannot connect {s} -> {d}: endpoint not in the builder"
            )
        eid = self._next_edge_id
        self._next_edge_id += 1
        edge = Edge(
            eid, s, d,
            kind=kind,
            condition=condition,
            back_edge=back_edge,
            tags=tags,
            attrs=attrs,
        )
        self._edges[eid] = edge
        return edge

    def node(self, ref: NodeRef) -> Node:
        try:
            return self._nodes[node_id(ref)]
        except KeyError:
            raise UnknownNodeError(f"node {ref!r} is not in the builder") from None

    @property
    def nodes(self) -> Sequence[Node]:
        return list(self._nodes.values())

    def build(self) -> Graph:
        return Graph(self._nodes.values(), self._edges.values())
