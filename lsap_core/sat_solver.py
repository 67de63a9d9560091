# lsap_core/sat_solver.py
"""
lsap_core.sat_solver
====================

Satisfiability of branch-constraint conjunctions.

A path through a CFG is described by the branch outcomes it commits to:
one boolean variable per distinct condition (named after its node), asserted positively for
a ``true`` edge and negated for a ``false`` edge.  A path is feasible iff
the conjunction of its constraints is satisfiable.

Because every constraint is a single literal, the conjunction is
unsatisfiable exactly when one condition is required both ways.
:class:`LiteralConflictSolver` decides that directly.
:class:`Z3ConstraintSolver` hands the same formula to Z3 and is the
extension point for richer (non-boolean) branch predicates.

Backends
--------
    "internal" - LiteralConflictSolver (default, no dependencies)
    "z3"       - Z3ConstraintSolver (needs the ``z3-solver`` distribution)
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import AnalysisConfig
from .errors import SolverResourceExhausted

logger = logging.getLogger(__name__)


class SolverBackend(enum.Enum):
    INTERNAL = "internal"
    Z3 = "z3"


@dataclass(frozen=True)
class Constraint:
    """``condition`` must evaluate to ``value`` on the path."""

    condition: str
    value: bool

    def negated(self) -> "Constraint":
        return Constraint(self.condition, not self.value)

    def __str__(self) -> str:
        return f"{self.condition}={'T' if self.value else 'F'}"


class ConstraintSolver(ABC):
    """Decides whether a conjunction of constraints is satisfiable."""

    backend: SolverBackend

    def __init__(self, max_conditions: int = 4096) -> None:
        self.max_conditions = max_conditions

    def _check_size(self, constraints: Sequence[Constraint]) -> int:
        distinct = len({c.condition for c in constraints})
        if distinct > self.max_conditions:
            raise SolverResourceExhausted(
                f"query uses {distinct} distinct conditions; "
                f"the limit is {self.max_conditions}",
                variables=distinct,
                limit=self.max_conditions,
            )
        return distinct

    @abstractmethod
    def is_satisfiable(self, constraints: Iterable[Constraint]) -> bool:
        """True iff some assignment satisfies every constraint.

        An empty constraint list is satisfiable.
        """


class LiteralConflictSolver(ConstraintSolver):
    """Unsatisfiable iff some condition is required both true and false."""

    backend = SolverBackend.INTERNAL

    def is_satisfiable(self, constraints: Iterable[Constraint]) -> bool:
        constraints = list(constraints)
        self._check_size(constraints)
        assignment: Dict[str, bool] = {}
        for c in constraints:
            previous = assignment.setdefault(c.condition, c.value)
            if previous != c.value:
                logger.debug("conflict on %s", c.condition)
                return False
        return True


class Z3ConstraintSolver(ConstraintSolver):
    """ConstraintSolver backed by Z3 (optional)."""

    backend = SolverBackend.Z3

    def __init__(self, timeout_ms: int = 30000, max_conditions: int = 4096) -> None:
        super().__init__(max_conditions)
        try:
            import z3
            self._z3 = z3
        except ImportError:
            raise ImportError("Z3 Python bindings ('z3-solver') required for Z3ConstraintSolver")
        self.timeout_ms = timeout_ms

    def is_satisfiable(self, constraints: Iterable[Constraint]) -> bool:
        constraints = list(constraints)
        self._check_size(constraints)
        z3 = self._z3
        solver = z3.Solver()
        solver.set("timeout", self.timeout_ms)
        variables: Dict[str, Any] = {}
        for c in constraints:
            var = variables.get(c.condition)
            if var is None:
                var = variables[c.condition] = z3.Bool(c.condition)
            solver.add(var if c.value else z3.Not(var))
        result = solver.check()
        if result == z3.unknown:
            # unknown (timeout) counts as feasible
            logger.warning("z3 returned unknown (%s); treating the path as feasible",
                           solver.reason_unknown())
            return True
        return result == z3.sat


def make_solver(config: Optional[AnalysisConfig] = None) -> ConstraintSolver:
    """Return the solver selected by ``config.solver_backend``."""
    config = config or AnalysisConfig()
    backend = SolverBackend(config.solver_backend)
    if backend is SolverBackend.Z3:
        return Z3ConstraintSolver(config.solver_timeout_ms, config.max_conditions)
    return LiteralConflictSolver(config.max_conditions)


def conflicting_conditions(constraints: Iterable[Constraint]) -> List[str]:
    """Conditions required with both values, in first-seen order."""
    seen: Dict[str, bool] = {}
    conflicts: Dict[str, None] = {}
    for c in constraints:
        if seen.setdefault(c.condition, c.value) != c.value:
            conflicts.setdefault(c.condition, None)
    return list(conflicts)
