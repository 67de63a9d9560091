# tests/test_sat_solver.py
"""
Tests for the constraint solvers.
"""

import pytest

from lsap_core.config import AnalysisConfig
from lsap_core.errors import ErrorCodes, SolverResourceExhausted
from lsap_core.sat_solver import (
    Constraint,
    LiteralConflictSolver,
    SolverBackend,
    conflicting_conditions,
    make_solver,
)


def T(condition):
    return Constraint(condition, True)


def F(condition):
    return Constraint(condition, False)


class TestConstraint:

    def test_equality(self):
        assert T("x") == Constraint("x", True)
        assert T("x") != F("x")
        assert T("x").negated() == F("x")

    def test_str(self):
        assert str(T("x > 0")) == "x > 0=T"


class TestLiteralConflictSolver:

    def test_empty_is_satisfiable(self):
        assert LiteralConflictSolver().is_satisfiable([])

    def test_consistent(self):
        assert LiteralConflictSolver().is_satisfiable([T("a"), F("b"), T("a")])

    def test_conflict(self):
        assert not LiteralConflictSolver().is_satisfiable([T("a"), F("b"), F("a")])

    def test_resource_limit(self):
        solver = LiteralConflictSolver(max_conditions=2)
        with pytest.raises(SolverResourceExhausted) as exc_info:
            solver.is_satisfiable([T("a"), T("b"), T("c")])
        assert exc_info.value.variables == 3
        assert exc_info.value.limit == 2
        assert exc_info.value.code == ErrorCodes.SOLVER_LIMIT

    def test_limit_counts_distinct_conditions(self):
        solver = LiteralConflictSolver(max_conditions=1)
        assert not solver.is_satisfiable([T("a"), F("a")])

    def test_conflicting_conditions(self):
        assert conflicting_conditions([T("a"), T("b"), F("a"), F("a")]) == ["a"]


class TestMakeSolver:

    def test_default_backend(self):
        solver = make_solver()
        assert isinstance(solver, LiteralConflictSolver)
        assert solver.backend is SolverBackend.INTERNAL

    def test_limits_propagate(self):
        solver = make_solver(AnalysisConfig(max_conditions=7))
        assert solver.max_conditions == 7


class TestZ3ConstraintSolver:

    @pytest.fixture
    def solver(self):
        pytest.importorskip("z3")
        return make_solver(AnalysisConfig(solver_backend="z3", solver_timeout_ms=5000))

    def test_backend(self, solver):
        assert solver.backend is SolverBackend.Z3
        assert solver.timeout_ms == 5000

    def test_agrees_with_literal_solver(self, solver):
        internal = LiteralConflictSolver()
        cases = [
            [],
            [T("a")],
            [T("a"), F("b")],
            [T("a"), F("a")],
            [F("x"), T("y"), T("x")],
        ]
        for constraints in cases:
            assert solver.is_satisfiable(constraints) == internal.is_satisfiable(constraints)

    def test_resource_limit(self):
        pytest.importorskip("z3")
        solver = make_solver(AnalysisConfig(solver_backend="z3", max_conditions=1))
        with pytest.raises(SolverResourceExhausted):
            solver.is_satisfiable([T("a"), T("b")])
