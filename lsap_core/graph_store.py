# lsap_core/graph_store.py
"""
lsap_core.graph_store
=====================

A mutable, tag-based graph store standing in for the host program database.

The analyses in this package are pure functions over :class:`Graph` values.
Tools built around them, however, usually keep program facts in one shared
store where passes annotate nodes and edges with tags that later passes
query.  :class:`TaggedGraphStore` provides that contract:

* enumerate nodes by kind, the control-flow roots and the exit points;
* read string attributes off nodes and edges (``condition`` is returned
  lower-cased, so ``"TRUE"`` and ``"true"`` read the same);
* create, tag, untag and delete nodes and edges;
* take :class:`Graph` snapshots of the whole store or of one function.

Every mutation that an analysis performs on a shared store goes through a
:class:`StoreTransaction`, which records what it created and which tags it
added, and can take all of it back with :meth:`StoreTransaction.undo`.
Running an analysis twice on the same store without undoing the first run
leaves stale tags and synthetic elements behind and corrupts later runs.
"""

from __future__ import annotations

import logging
from typing import (
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Union,
)

from .errors import GraphInvariantError, UnknownNodeError
from .graph_model import Edge, EdgeKind, Graph, Node, NodeKind, NodeRef, node_id

logger = logging.getLogger(__name__)

Element = Union[Node, Edge]


class TaggedGraphStore:
    """Shared, mutable node/edge store with free-form string tags."""

    def __init__(self) -> None:
        self._nodes: Dict[int, Node] = {}
        self._edges: Dict[int, Edge] = {}
        self._node_tags: Dict[int, Set[str]] = {}
        self._edge_tags: Dict[int, Set[str]] = {}
        self._next_node_id = 0
        self._next_edge_id = 0

    @classmethod
    def from_graph(cls, graph: Graph) -> "TaggedGraphStore":
        """Create a store holding *graph* with its identities unchanged."""
        store = cls()
        for n in graph.nodes:
            store._nodes[n.id] = n
            store._node_tags[n.id] = set()
        for e in graph.edges:
            store._edges[e.id] = e
            store._edge_tags[e.id] = set(e.tags)
        store._next_node_id = graph.max_node_id() + 1
        store._next_edge_id = graph.max_edge_id() + 1
        return store

    def import_graph(self, graph: Graph) -> Graph:
        """Copy *graph* into the store under fresh identities.

        Returns the copy as a :class:`Graph`, so callers can keep analysing
        the function with store identities.
        """
        mapping: Dict[int, int] = {}
        nodes: List[Node] = []
        for n in graph.nodes:
            created = self.create_node(
                n.kind, n.name,
                is_root=n.is_root, is_exit_point=n.is_exit_point, attrs=n.attrs,
            )
            mapping[n.id] = created.id
            nodes.append(created)
        edges: List[Edge] = []
        for e in graph.edges:
            edges.append(self.create_edge(
                mapping[e.src], mapping[e.dst],
                kind=e.kind, condition=e.condition, back_edge=e.back_edge,
                tags=e.tags, attrs=e.attrs,
            ))
        return Graph(nodes, edges)

    # ----- creation / deletion ------------------------------------------

    def create_node(
        self,
        kind: NodeKind = NodeKind.REGULAR,
        name: str = "",
        is_root: bool = False,
        is_exit_point: bool = False,
        attrs: Optional[Mapping[str, str]] = None,
        tags: Iterable[str] = (),
    ) -> Node:
        nid = self._next_node_id
        self._next_node_id += 1
        node = Node(
            nid, kind=kind, name=name or f"n{nid}",
            is_root=is_root, is_exit_point=is_exit_point, attrs=attrs,
        )
        self._nodes[nid] = node
        self._node_tags[nid] = set(tags)
        return node

    def create_edge(
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
            raise GraphInvariantError(f"cannot connect {s} -> {d}: endpoint not in store")
        eid = self._next_edge_id
        self._next_edge_id += 1
        edge = Edge(eid, s, d, kind=kind, condition=condition,
                    back_edge=back_edge, tags=tags, attrs=attrs)
        self._edges[eid] = edge
        self._edge_tags[eid] = set(edge.tags)
        return edge

    def delete(self, element: Element) -> None:
        """Remove *element*; deleting a node also deletes its incident edges."""
        if isinstance(element, Edge):
            self._edge(element.id)
            del self._edges[element.id]
            del self._edge_tags[element.id]
            return
        node = self.node(element)
        for e in [e for e in self._edges.values() if node.id in (e.src, e.dst)]:
            self.delete(e)
        del self._nodes[node.id]
        del self._node_tags[node.id]

    # ----- tags ---------------------------------------------------------

    def _tags(self, element: Element) -> Set[str]:
        if isinstance(element, Edge):
            self._edge(element.id)
            return self._edge_tags[element.id]
        return self._node_tags[self.node(element).id]

    def tag(self, element: Element, tag: str) -> bool:
        """Add *tag*; returns False if the element already carried it."""
        tags = self._tags(element)
        if tag in tags:
            return False
        tags.add(tag)
        return True

    def untag(self, element: Element, tag: str) -> bool:
        """Remove *tag*; returns False if the element did not carry it."""
        tags = self._tags(element)
        if tag not in tags:
            return False
        tags.discard(tag)
        return True

    def tags_of(self, element: Element) -> FrozenSet[str]:
        return frozenset(self._tags(element))

    def nodes_tagged(self, tag: str) -> List[Node]:
        return [self._nodes[i] for i, t in self._node_tags.items() if tag in t]

    def edges_tagged(self, tag: str) -> List[Edge]:
        return [self._edges[i] for i, t in self._edge_tags.items() if tag in t]

    # ----- host-store queries -------------------------------------------

    def node(self, ref: NodeRef) -> Node:
        try:
            return self._nodes[node_id(ref)]
        except KeyError:
            raise UnknownNodeError(f"node {ref!r} is not in the store") from None

    def _edge(self, edge_id: int) -> Edge:
        try:
            return self._edges[edge_id]
        except KeyError:
            raise UnknownNodeError(f"edge {edge_id} is not in the store") from None

    def has_node(self, ref: NodeRef) -> bool:
        return node_id(ref) in self._nodes

    def has_edge(self, edge: Union[Edge, int]) -> bool:
        return (edge.id if isinstance(edge, Edge) else edge) in self._edges

    def edge(self, edge_id: int) -> Edge:
        return self._edge(edge_id)

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return tuple(self._nodes.values())

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return tuple(self._edges.values())

    def nodes_of_kind(self, *kinds: NodeKind) -> List[Node]:
        return [n for n in self._nodes.values() if n.kind in kinds]

    def roots(self) -> List[Node]:
        return [n for n in self._nodes.values() if n.is_root]

    def exit_points(self) -> List[Node]:
        return [n for n in self._nodes.values() if n.is_exit_point]

    def node_attr(self, ref: NodeRef, name: str) -> Optional[str]:
        node = self.node(ref)
        if name == "name":
            return node.name
        return node.attrs.get(name)

    def edge_attr(self, edge: Union[Edge, int], name: str) -> Optional[str]:
        stored = self._edge(edge.id if isinstance(edge, Edge) else edge)
        if name == "condition":
            return stored.condition.lower() if stored.condition is not None else None
        return stored.attrs.get(name)

    def snapshot(self, nodes: Optional[Iterable[NodeRef]] = None) -> Graph:
        """Return the store (or the part induced by *nodes*) as a Graph.

        Edge tags in the snapshot reflect the store's current tags.
        """
        keep = None if nodes is None else {node_id(n) for n in nodes}
        ns = [n for n in self._nodes.values() if keep is None or n.id in keep]
        es = [
            e.with_changes(tags=frozenset(self._edge_tags[e.id]))
            for e in self._edges.values()
            if keep is None or (e.src in keep and e.dst in keep)
        ]
        return Graph(ns, es)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, item) -> bool:
        if isinstance(item, Edge):
            return self.has_edge(item)
        return self.has_node(item)

    def __repr__(self) -> str:
        return f"TaggedGraphStore(nodes={len(self._nodes)}, edges={len(self._edges)})"


class StoreTransaction:
    """Journal of the mutations one analysis made to a :class:`TaggedGraphStore`.

    All creations and tag additions go through the transaction so that
    :meth:`undo` can reverse exactly those changes.  ``undo`` is idempotent.
    """

    def __init__(self, store: TaggedGraphStore) -> None:
        self.store = store
        self.created_nodes: List[Node] = []
        self.created_edges: List[Edge] = []
        self.added_tags: List[Tuple[Element, str]] = []
        self._undone = False

    @property
    def undone(self) -> bool:
        return self._undone

    def create_node(self, *args, **kwargs) -> Node:
        node = self.store.create_node(*args, **kwargs)
        self.created_nodes.append(node)
        return node

    def create_edge(self, *args, **kwargs) -> Edge:
        edge = self.store.create_edge(*args, **kwargs)
        self.created_edges.append(edge)
        return edge

    def tag(self, element: Element, tag: str) -> None:
        if self.store.tag(element, tag):
            self.added_tags.append((element, tag))

    def undo(self) -> None:
        """Remove every element and tag this transaction introduced."""
        if self._undone:
            return
        for element, tag in reversed(self.added_tags):
            if element in self.store:
                self.store.untag(element, tag)
        for edge in reversed(self.created_edges):
            if self.store.has_edge(edge):
                self.store.delete(edge)
        for node in reversed(self.created_nodes):
            if self.store.has_node(node):
                self.store.delete(node)
        logger.debug(
            "undid %d node(s), %d edge(s), %d tag(s)",
            len(self.created_nodes), len(self.created_edges), len(self.added_tags),
        )
        self._undone = True
