# lsap_core/feasibility.py
"""
lsap_core.feasibility
=====================

Path-feasibility queries over a function CFG.

:class:`FeasibilityChecker` enumerates, once per function, every maximal
path through the loop-free CFG (back edges removed) from each structural
root to each node without successors.  Queries then select paths by the
nodes they contain or avoid, collect the branch constraints each path
commits to, and ask a :class:`~lsap_core.sat_solver.ConstraintSolver`
whether any of those paths can actually execute.

A branch constraint is recorded whenever a condition node on the path is
followed by its successor through an edge labelled ``true`` or ``false``.
The variable is the condition node's name, so two condition nodes testing
the same named condition are correlated: a path that needs ``x > 0`` true
at one branch and false at another is infeasible.

Typical usage::

    checker = FeasibilityChecker(function_graph)
    if checker.check_path_feasibility(lock, unlock, excluded={other_unlock}):
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Collection, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .config import AnalysisConfig
from .ctrlflow_graph import ControlFlowGraph, loop_free_graph
from .errors import LsapError, PathLimitExceeded, SolverResourceExhausted, UnsupportedBranchCondition
from .graph_model import Edge, Graph, Node, NodeRef
from .sat_solver import Constraint, ConstraintSolver, make_solver

logger = logging.getLogger(__name__)

Path = Tuple[Node, ...]

TRUE_LABEL = "true"
FALSE_LABEL = "false"


@dataclass(frozen=True)
class FeasibilityResult:
    """Outcome of one query in :meth:`FeasibilityChecker.check_many`."""

    first: Optional[Node]
    second: Optional[Node]
    excluded: Tuple[Node, ...]
    feasible: bool
    error: Optional[LsapError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class PathVerdict:
    """Feasibility of the prefix of ``path`` that ends at ``node``."""

    node: Node
    path: Path
    constraints: Tuple[Constraint, ...] = field(default_factory=tuple)
    feasible: bool = True

    def __str__(self) -> str:
        names = " -> ".join(n.name for n in self.path)
        cs = " && ".join(str(c) for c in self.constraints)
        verdict = "feasible" if self.feasible else "infeasible"
        return f"{self.node.name}: [{names}] {verdict} [{cs}]"


class FeasibilityChecker:
    """Per-function path enumerator and feasibility oracle.

    Args:
        graph: The raw function graph.
        config: Limits and solver selection; defaults to ``AnalysisConfig()``.
        solver: Explicit solver; overrides ``config.solver_backend``.
        name: Function name used in log messages.

    Raises:
        MalformedGraph: no structural root, or an unflagged cycle with
            ``config.repair_cycles`` off.
        PathLimitExceeded: more than ``config.max_paths`` paths.
    """

    def __init__(
        self,
        graph: Graph,
        config: Optional[AnalysisConfig] = None,
        solver: Optional[ConstraintSolver] = None,
        name: Optional[str] = None,
    ) -> None:
        self.config = (config or AnalysisConfig()).validate()
        self.name = name
        self.cfg = ControlFlowGraph(graph, name)
        self.graph = loop_free_graph(graph, repair=self.config.repair_cycles)
        self.solver = solver or make_solver(self.config)
        self.diagnostics: List[UnsupportedBranchCondition] = []
        self._reported: Set[Tuple[int, int]] = set()
        self._paths: Tuple[Path, ...] = self._enumerate()

    def _label(self) -> str:
        return f" of {self.name!r}" if self.name else ""

    # ----- path enumeration ---------------------------------------------

    def _enumerate(self) -> Tuple[Path, ...]:
        limit = self.config.max_paths
        paths: List[Path] = []
        for root in self.cfg.roots:
            stack: List[Path] = [(root,)]
            while stack:
                path = stack.pop()
                children = self.graph.successors(path[-1])
                if not children:
                    paths.append(path)
                    if len(paths) > limit:
                        raise PathLimitExceeded(
                            f"CFG{self._label()} has more than {limit} paths", limit
                        )
                    continue
                for child in reversed(children):
                    stack.append(path + (child,))
        logger.info("CFG%s: enumerated %d path(s)", self._label(), len(paths))
        return tuple(paths)

    @property
    def paths(self) -> Tuple[Path, ...]:
        return self._paths

    def enumerate_paths(self) -> Tuple[Path, ...]:
        """All maximal paths; computed at construction, never recomputed."""
        return self._paths

    def _node(self, ref: NodeRef) -> Node:
        return self.graph.node(ref)

    def paths_containing_node(self, node: NodeRef) -> List[Path]:
        n = self._node(node)
        return [p for p in self._paths if n in p]

    def paths_containing_nodes(self, a: NodeRef, b: NodeRef) -> List[Path]:
        na, nb = self._node(a), self._node(b)
        return [p for p in self._paths if na in p and nb in p]

    def paths_between(
        self,
        first: Optional[NodeRef] = None,
        second: Optional[NodeRef] = None,
        excluded: Iterable[NodeRef] = (),
    ) -> List[Path]:
        """Paths selected by a ``check_path_feasibility`` query.

        * neither endpoint: every path;
        * only *second*: paths through it with no excluded node before it;
        * only *first*: paths through it with no excluded node after it;
        * both: *first* no later than *second* and no excluded node strictly
          between them (``first == second`` always qualifies).
        """
        n1 = self._node(first) if first is not None else None
        n2 = self._node(second) if second is not None else None
        avoid = {self._node(x) for x in excluded}

        def clean(segment: Sequence[Node]) -> bool:
            return not avoid.intersection(segment)

        selected: List[Path] = []
        for path in self._paths:
            if n1 is None and n2 is None:
                selected.append(path)
            elif n1 is None:
                if n2 in path and clean(path[:path.index(n2)]):
                    selected.append(path)
            elif n2 is None:
                if n1 in path and clean(path[path.index(n1) + 1:]):
                    selected.append(path)
            elif n1 in path and n2 in path:
                i1, i2 = path.index(n1), path.index(n2)
                if i1 > i2:
                    continue
                if n1 == n2 or clean(path[i1 + 1:i2]):
                    selected.append(path)
        return selected

    # ----- constraints --------------------------------------------------

    def _branch_edge(self, cond: Node, nxt: Node) -> Optional[Edge]:
        edges = self.graph.edges_between(cond, nxt)
        if len(edges) == 1:
            return edges[0]
        return next((e for e in edges if e.condition is not None), None)

    def _diagnose(self, cond: Node, nxt: Node, label: Optional[str]) -> None:
        key = (cond.id, nxt.id)
        if key in self._reported:
            return
        self._reported.add(key)
        if label is None:
            message = f"branch {cond.name!r} -> {nxt.name!r} has no condition label"
        else:
            message = f"cannot know the exact condition value {label!r} for {cond.name!r}"
        diag = UnsupportedBranchCondition(message, condition=cond.name, label=label)
        logger.warning("CFG%s: %s; constraint skipped", self._label(), message)
        self.diagnostics.append(diag)

    def constraints_for_path(
        self, path: Sequence[Node], until: Optional[NodeRef] = None
    ) -> List[Constraint]:
        """Branch constraints committed to by *path*.

        With *until*, only branches taken before that node are considered.
        """
        stop = self._node(until) if until is not None else None
        constraints: List[Constraint] = []
        for i, element in enumerate(path):
            if element == stop:
                break
            if not element.is_condition or i + 1 >= len(path):
                continue
            nxt = path[i + 1]
            edge = self._branch_edge(element, nxt)
            label = edge.condition if edge is not None else None
            lowered = label.lower() if label is not None else None
            if lowered == TRUE_LABEL:
                constraint = Constraint(element.name, True)
            elif lowered == FALSE_LABEL:
                constraint = Constraint(element.name, False)
            else:
                self._diagnose(element, nxt, label)
                continue
            if constraint not in constraints:
                constraints.append(constraint)
        return constraints

    def is_path_feasible(self, constraints: Iterable[Constraint]) -> bool:
        return self.solver.is_satisfiable(constraints)

    # ----- queries ------------------------------------------------------

    def check_path_feasibility(
        self,
        first: Optional[NodeRef] = None,
        second: Optional[NodeRef] = None,
        excluded: Iterable[NodeRef] = (),
    ) -> bool:
        """True iff some selected path ending at an exit point is feasible.

        See :meth:`paths_between` for how paths are selected.
        """
        candidates = self.paths_between(first, second, excluded)
        if not candidates:
            logger.debug("INFEASIBLE: no path matches the query")
            return False
        constraints: Optional[List[Constraint]] = None
        for path in candidates:
            if not path[-1].is_exit_point:
                continue
            constraints = self.constraints_for_path(path)
            if self.is_path_feasible(constraints):
                logger.debug("FEASIBLE: %s", _path_str(path))
                logger.debug("FEASIBLE: %s", _constraints_str(constraints))
                return True
        logger.debug(
            "INFEASIBLE: %s",
            "no constraints" if constraints is None else _constraints_str(constraints),
        )
        return False

    def check_feasibility(self, e1: NodeRef, e2: NodeRef) -> bool:
        """True iff a feasible path contains *e1* but not *e2*."""
        n1, n2 = self._node(e1), self._node(e2)
        for path in self._paths:
            if n1 in path and n2 not in path:
                if self.is_path_feasible(self.constraints_for_path(path)):
                    return True
        return False

    def check_many(
        self,
        queries: Iterable[Tuple[Optional[NodeRef], Optional[NodeRef], Collection[NodeRef]]],
    ) -> List[FeasibilityResult]:
        """Run several ``(first, second, excluded)`` queries.

        A solver resource failure is reported on its own result and does not
        stop the batch.
        """
        results: List[FeasibilityResult] = []
        for first, second, excluded in queries:
            n1 = self._node(first) if first is not None else None
            n2 = self._node(second) if second is not None else None
            avoid = tuple(self._node(x) for x in excluded)
            try:
                feasible = self.check_path_feasibility(n1, n2, avoid)
            except SolverResourceExhausted as exc:
                logger.warning("CFG%s: query abandoned: %s", self._label(), exc)
                results.append(FeasibilityResult(n1, n2, avoid, False, exc))
                continue
            results.append(FeasibilityResult(n1, n2, avoid, feasible))
        return results

    def feasibility_report(self, nodes: Optional[Iterable[NodeRef]] = None) -> List[PathVerdict]:
        """Per node, the verdict of every path prefix that reaches it."""
        targets = [self._node(n) for n in nodes] if nodes is not None else list(self.graph.nodes)
        verdicts: List[PathVerdict] = []
        for node in targets:
            for path in self.paths_containing_node(node):
                constraints = self.constraints_for_path(path, until=node)
                verdict = PathVerdict(
                    node, path, tuple(constraints), self.is_path_feasible(constraints)
                )
                logger.debug("%s", verdict)
                verdicts.append(verdict)
        return verdicts

    def condition_names(self) -> List[str]:
        """Distinct condition identities of the function, in graph order."""
        seen: Dict[str, None] = {}
        for n in self.graph.nodes:
            if n.is_condition:
                seen.setdefault(n.name, None)
        return list(seen)

    def __repr__(self) -> str:
        return (
            f"FeasibilityChecker(name={self.name!r}, paths={len(self._paths)}, "
            f"solver={self.solver.backend.value!r})"
        )


def _path_str(path: Sequence[Node]) -> str:
    return " -> ".join(n.name for n in path)


def _constraints_str(constraints: Sequence[Constraint]) -> str:
    return "[" + " && ".join(str(c) for c in constraints) + "]" if constraints else ""
