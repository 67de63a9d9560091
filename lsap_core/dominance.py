# lsap_core/dominance.py
"""
Dominance and post-dominance analysis over an augmented CFG.

Node A *dominates* B if every path from the root to B passes through A.
The *dominance frontier* of A is the set of nodes N such that A dominates
a predecessor of N but does not strictly dominate N.  Post-dominance is
dominance on the reversed graph, rooted at the master exit node.

The dominator sets are computed with the classical iterative data-flow
formulation [1]:

    dom(root) = {root}
    dom(n)    = {n} ∪ ⋂ { dom(p) | p ∈ preds(n) }

visiting nodes in a depth-first pre-order numbering (computed once with
:class:`~lsap_core.dfs.DepthFirstPreorderIterator`) until a full pass
changes nothing.  Frontiers are then derived from the immediate
dominators by walking up from each predecessor of a node [2].

Nodes that cannot be reached from the root take no part in any dominance
set; they are listed in :attr:`DominanceAnalysis.unreachable`.

References
----------
[1] Aho, Lam, Sethi, Ullman – "Compilers: Principles, Techniques, &
    Tools", 2e, §9.6.
[2] Cytron et al. – "Efficiently Computing Static Single Assignment Form
    and the Control Dependence Graph", TOPLAS 1991.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set

from .ctrlflow_graph import ControlFlowGraph
from .dfs import DepthFirstPreorderIterator
from .errors import UnreachableNodeError
from .graph_model import Node, NodeRef

logger = logging.getLogger(__name__)


class DominanceAnalysis:
    """Dominators, immediate dominators and dominance frontiers.

    Attributes after construction:
        root        : Node                   - entry (or exit for post-dominance)
        order       : tuple[Node, ...]       - DFS pre-order numbering
        unreachable : tuple[Node, ...]       - nodes with no path from root
        idom        : dict[Node, Node|None]  - immediate dominator

    ``post_dominance=True`` reverses every edge and swaps the roles of the
    entry and exit nodes.
    """

    def __init__(self, cfg: ControlFlowGraph, post_dominance: bool = False):
        self.cfg = cfg
        self.post_dominance = post_dominance
        self.root: Node = cfg.exit_node if post_dominance else cfg.entry_node

        self.order = self._preorder()
        reachable = set(self.order)
        self.unreachable = tuple(n for n in cfg.nodes if n not in reachable)
        if self.unreachable:
            logger.info(
                "%s analysis: %d node(s) unreachable from %s: %s",
                self._direction(), len(self.unreachable), self.root.name,
                ", ".join(n.name for n in self.unreachable),
            )

        self._dom: Dict[Node, FrozenSet[Node]] = self._compute_dominators()
        self.idom: Dict[Node, Optional[Node]] = self._compute_idoms()
        self._frontiers: Dict[Node, FrozenSet[Node]] = self._compute_frontiers()

    def _direction(self) -> str:
        return "post-dominance" if self.post_dominance else "dominance"

    # ----- graph direction ----------------------------------------------

    def _preds(self, node: Node) -> List[Node]:
        if self.post_dominance:
            return self.cfg.successors(node)
        return self.cfg.predecessors(node)

    # ----- internals ----------------------------------------------------

    def _preorder(self) -> tuple:
        seen: Dict[Node, None] = {}
        for node in DepthFirstPreorderIterator(self.cfg, self.root, self.post_dominance):
            if node not in seen:
                seen[node] = None
        return tuple(seen)

    def _compute_dominators(self) -> Dict[Node, FrozenSet[Node]]:
        universe = frozenset(self.order)
        dom: Dict[Node, FrozenSet[Node]] = {n: universe for n in self.order}
        dom[self.root] = frozenset((self.root,))

        passes = 0
        changed = True
        while changed:
            changed = False
            passes += 1
            for n in self.order:
                if n == self.root:
                    continue
                preds = [p for p in self._preds(n) if p in dom]
                new = frozenset.intersection(*(dom[p] for p in preds)) if preds else frozenset()
                new = new | {n}
                if new != dom[n]:
                    dom[n] = new
                    changed = True
        logger.debug("%s fixpoint reached after %d pass(es)", self._direction(), passes)
        return dom

    def _compute_idoms(self) -> Dict[Node, Optional[Node]]:
        idom: Dict[Node, Optional[Node]] = {self.root: None}
        for n in self.order:
            if n == self.root:
                continue
            strict = self._dom[n] - {n}
            # The immediate dominator is the strict dominator that is itself
            # dominated by all the others.
            idom[n] = next(
                (d for d in strict if self._dom[d] == strict), None
            )
        return idom

    def _compute_frontiers(self) -> Dict[Node, FrozenSet[Node]]:
        frontier: Dict[Node, Set[Node]] = {n: set() for n in self.order}
        for n in self.order:
            stop = self.idom[n]
            for p in self._preds(n):
                if p not in frontier:
                    continue
                runner: Optional[Node] = p
                while runner is not None and runner != stop:
                    frontier[runner].add(n)
                    runner = self.idom[runner]
        return {n: frozenset(s) for n, s in frontier.items()}

    def _check(self, ref: NodeRef) -> Node:
        node = self.cfg.node(ref)
        if node not in self._dom:
            raise UnreachableNodeError(
                f"{node.name} is unreachable from {self.root.name} "
                f"({self._direction()})"
            )
        return node

    # ----- public API ---------------------------------------------------

    def dominators(self, node: NodeRef) -> FrozenSet[Node]:
        """All nodes dominating *node*, including itself."""
        return self._dom[self._check(node)]

    def immediate_dominator(self, node: NodeRef) -> Optional[Node]:
        """The closest strict dominator of *node* (None for the root)."""
        return self.idom[self._check(node)]

    def dominates(self, a: NodeRef, b: NodeRef) -> bool:
        return self._check(a) in self.dominators(b)

    def strictly_dominates(self, a: NodeRef, b: NodeRef) -> bool:
        return self.cfg.node(a) != self.cfg.node(b) and self.dominates(a, b)

    def dominance_frontier(self, node: NodeRef) -> FrozenSet[Node]:
        """Frontier of *node*; empty for nodes unreachable from the root."""
        return self._frontiers.get(self.cfg.node(node), frozenset())

    @property
    def dominance_frontiers(self) -> Mapping[Node, FrozenSet[Node]]:
        return MappingProxyType(self._frontiers)

    def dominator_tree(self) -> Dict[Node, List[Node]]:
        """Map each node to the nodes it immediately dominates (DFS order)."""
        children: Dict[Node, List[Node]] = {n: [] for n in self.order}
        for n in self.order:
            parent = self.idom[n]
            if parent is not None:
                children[parent].append(n)
        return children

    def iterated_dominance_frontier(self, nodes: Iterable[NodeRef]) -> List[Node]:
        """Close *nodes* under the dominance frontier.

        Returns the seed nodes followed by every node added by the closure,
        in discovery order.
        """
        closure: Dict[Node, None] = {self.cfg.node(n): None for n in nodes}
        grown = True
        while grown:
            before = len(closure)
            for element in list(closure):
                for f in sorted(self.dominance_frontier(element), key=lambda x: x.id):
                    closure.setdefault(f, None)
            grown = len(closure) != before
        return list(closure)

    def __repr__(self) -> str:
        return (
            f"DominanceAnalysis({self._direction()}, root={self.root.name!r}, "
            f"reachable={len(self.order)}, unreachable={len(self.unreachable)})"
        )
