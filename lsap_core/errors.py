# lsap_core/errors.py
"""
Error and warning types for lsap-core.

Error hierarchy
───────────────
┌──────────────────────────────────────────────────────────────────────┐
│  LsapError (base)                                                    │
│  ├── MalformedGraph           - no structural root / unrepairable CFG │
│  ├── GraphInvariantError      - broken graph invariant (a bug)        │
│  ├── UnknownNodeError         - node is not part of the graph         │
│  ├── UnreachableNodeError     - dominator query on unreachable node   │
│  ├── PathLimitExceeded        - path enumeration ceiling hit          │
│  ├── SolverResourceExhausted  - too many conditions for one query     │
│  └── GraphSyntaxError         - textual CFG description rejected      │
│                                                                      │
│  LsapWarning (base, UserWarning)                                     │
│  ├── DisconnectedEventSet     - EFG has no Entry→Exit connection      │
│  └── UnsupportedBranchCondition - branch edge without true/false      │
└──────────────────────────────────────────────────────────────────────┘

Error codes follow the pattern ``LSAP-NNNN``:
  - 0001-0999: graph structure
  - 1000-1999: analysis limits and queries
  - 2000-2999: input syntax
  - 9000-9999: internal invariants
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Optional


@unique
class ErrorSeverity(Enum):
    """How bad a reported condition is."""

    FATAL = "fatal"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    def is_error(self) -> bool:
        return self in (ErrorSeverity.FATAL, ErrorSeverity.ERROR)


class ErrorCode:
    """A stable, printable error code (``LSAP-0001``)."""

    __slots__ = ("prefix", "number", "default_severity", "summary")

    def __init__(
        self,
        number: int,
        summary: str,
        default_severity: ErrorSeverity = ErrorSeverity.ERROR,
        prefix: str = "LSAP",
    ) -> None:
        self.prefix = prefix
        self.number = number
        self.summary = summary
        self.default_severity = default_severity

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code}, {self.summary!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.code == other.code
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)


class ErrorCodes:
    """Predefined error codes."""

    # graph structure (0001-0999)
    NO_STRUCTURAL_ROOT = ErrorCode(
        1, "function CFG has no control-flow root", ErrorSeverity.FATAL
    )
    CYCLIC_LOOP_FREE_GRAPH = ErrorCode(
        2, "CFG still cyclic after removing back edges", ErrorSeverity.FATAL
    )
    NO_EXIT_CONNECTION = ErrorCode(
        3, "event flow graph has no Entry/Exit connection", ErrorSeverity.WARNING
    )
    UNSUPPORTED_BRANCH = ErrorCode(
        4, "branch edge without a true/false label", ErrorSeverity.WARNING
    )

    # analysis limits and queries (1000-1999)
    UNKNOWN_NODE = ErrorCode(1000, "node is not part of the graph")
    UNREACHABLE_NODE = ErrorCode(1001, "node is unreachable from the root")
    PATH_LIMIT = ErrorCode(1002, "path enumeration ceiling exceeded")
    SOLVER_LIMIT = ErrorCode(1003, "too many distinct branch conditions")

    # input syntax (2000-2999)
    GRAPH_SYNTAX = ErrorCode(2000, "invalid textual CFG description")

    # internal invariants (9000-9999)
    INVARIANT_BROKEN = ErrorCode(
        9000, "graph invariant violated", ErrorSeverity.FATAL
    )


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class LsapError(Exception):
    """Base exception for all lsap-core errors."""

    default_code: ErrorCode = ErrorCodes.INVARIANT_BROKEN

    def __init__(self, message: str, code: Optional[ErrorCode] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    @property
    def severity(self) -> ErrorSeverity:
        return self.code.default_severity

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class MalformedGraph(LsapError):
    """The function's CFG cannot be analysed (no root, unrepairable cycle)."""

    default_code = ErrorCodes.NO_STRUCTURAL_ROOT


class GraphInvariantError(LsapError, AssertionError):
    """A structural invariant of a graph value does not hold.

    Raised for dangling edges, duplicate entry/exit nodes and reducer
    consistency failures.  These indicate a programming error, not bad data.
    """

    default_code = ErrorCodes.INVARIANT_BROKEN


class UnknownNodeError(LsapError, KeyError):
    """A node passed to a query does not belong to the analysed graph."""

    default_code = ErrorCodes.UNKNOWN_NODE

    def __str__(self) -> str:
        return LsapError.__str__(self)


class UnreachableNodeError(LsapError, KeyError):
    """Dominator information was requested for an unreachable node."""

    default_code = ErrorCodes.UNREACHABLE_NODE

    def __str__(self) -> str:
        return LsapError.__str__(self)


class PathLimitExceeded(LsapError):
    """Path enumeration produced more paths than the configured ceiling."""

    default_code = ErrorCodes.PATH_LIMIT

    def __init__(self, message: str, limit: int) -> None:
        super().__init__(message)
        self.limit = limit


class SolverResourceExhausted(LsapError):
    """A single feasibility query needs more variables than allowed."""

    default_code = ErrorCodes.SOLVER_LIMIT

    def __init__(self, message: str, variables: int, limit: int) -> None:
        super().__init__(message)
        self.variables = variables
        self.limit = limit


class GraphSyntaxError(LsapError):
    """A textual CFG description could not be parsed."""

    default_code = ErrorCodes.GRAPH_SYNTAX

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        if line is not None:
            message = f"line {line}, column {column}: {message}"
        super().__init__(message)
        self.line = line
        self.column = column


# ---------------------------------------------------------------------------
# Warnings
# ---------------------------------------------------------------------------

class LsapWarning(UserWarning):
    """Base class for non-fatal conditions reported by lsap-core."""

    default_code: ErrorCode = ErrorCodes.NO_EXIT_CONNECTION

    def __init__(self, message: str, code: Optional[ErrorCode] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class DisconnectedEventSet(LsapWarning):
    """The reduced graph has no path from Entry to Exit."""

    default_code = ErrorCodes.NO_EXIT_CONNECTION


class UnsupportedBranchCondition(LsapWarning):
    """A branch edge carries no interpretable true/false label.

    The constraint is skipped; the enclosing path is still evaluated.
    """

    default_code = ErrorCodes.UNSUPPORTED_BRANCH

    def __init__(self, message: str, condition: str, label: Optional[str]) -> None:
        super().__init__(message)
        self.condition = condition
        self.label = label
