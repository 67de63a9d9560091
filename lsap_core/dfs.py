# lsap_core/dfs.py
"""Depth-first pre-order traversal over an augmented CFG.

The traversal remembers the ``(from, to)`` pairs it has already crossed
rather than the nodes it has already emitted: every edge is traversed at
most once, and a node reached again through a different, previously unseen
edge is emitted again.
"""

from __future__ import annotations

from typing import Iterator, List, Set, Tuple

from .ctrlflow_graph import ControlFlowGraph
from .graph_model import Node, NodeRef


class DepthFirstPreorderIterator(Iterator[Node]):
    """Lazy depth-first pre-order sequence of CFG nodes.

    Args:
        cfg: The augmented CFG to walk.
        root: Start node (the master entry for dominance, the master exit
            for post-dominance).
        post_dominance: Walk predecessors instead of successors.

    The iterator is single-use: once exhausted it stays exhausted.
    Successors are pushed in reverse first-discovered order, so the first
    successor of a node is the first one visited.
    """

    def __init__(self, cfg: ControlFlowGraph, root: NodeRef, post_dominance: bool = False):
        self.cfg = cfg
        self.post_dominance = post_dominance
        self._to_do: List[Node] = [cfg.node(root)]
        self._visited_edges: Set[Tuple[int, int]] = set()

    def __iter__(self) -> "DepthFirstPreorderIterator":
        return self

    def __next__(self) -> Node:
        if not self._to_do:
            raise StopIteration
        node = self._to_do.pop()
        self._push_successors(node)
        return node

    def _successors(self, node: Node) -> List[Node]:
        if self.post_dominance:
            return self.cfg.predecessors(node)
        return self.cfg.successors(node)

    def _push_successors(self, node: Node) -> None:
        for succ in reversed(self._successors(node)):
            pair = (node.id, succ.id)
            if pair not in self._visited_edges:
                self._visited_edges.add(pair)
                self._to_do.append(succ)
