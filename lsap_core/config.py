# lsap_core/config.py
"""Analysis configuration and logging setup."""

from __future__ import annotations

import dataclasses
import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Union

SOLVER_BACKENDS = ("internal", "z3")

_TRUE_STRINGS = frozenset(("1", "true", "yes", "on"))
_FALSE_STRINGS = frozenset(("0", "false", "no", "off"))


@dataclass
class AnalysisConfig:
    """Knobs shared by the feasibility checker and its solvers."""
    # Path enumeration
    max_paths: int = 10_000             # hard cap to avoid explosion
    repair_cycles: bool = True          # drop unflagged back edges instead of failing

    # Solver
    solver_backend: str = "internal"    # "internal", "z3"
    solver_timeout_ms: int = 30000
    max_conditions: int = 4096          # distinct conditions per query

    # Reporting
    verbose: int = 0

    def validate(self) -> "AnalysisConfig":
        """Raise ``ValueError`` on out-of-range values; return ``self``."""
        for name in ("max_paths", "max_conditions", "solver_timeout_ms"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        if self.solver_backend not in SOLVER_BACKENDS:
            raise ValueError(
                f"unknown solver backend {self.solver_backend!r} "
                f"(expected one of {', '.join(SOLVER_BACKENDS)})"
            )
        if self.verbose < 0:
            raise ValueError(f"verbose must be >= 0, got {self.verbose!r}")
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AnalysisConfig":
        """Build a validated config from a plain mapping.

        String values are coerced to the field's type, so the mapping may
        come straight from an INI section or command-line ``key=value``
        pairs.  Unknown keys raise ``ValueError``.
        """
        fields = {f.name: f for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - set(fields))
        if unknown:
            raise ValueError(f"unknown configuration key(s): {', '.join(unknown)}")
        values: Dict[str, Any] = {}
        for key, raw in data.items():
            default = fields[key].default
            values[key] = _coerce(key, raw, type(default))
        return cls(**values).validate()


def _coerce(key: str, raw: Any, kind: type) -> Any:
    if not isinstance(raw, str):
        return raw
    text = raw.strip()
    if kind is bool:
        lowered = text.lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f"{key}: expected a boolean, got {raw!r}")
    if kind is int:
        try:
            return int(text.replace("_", ""))
        except ValueError:
            raise ValueError(f"{key}: expected an integer, got {raw!r}") from None
    return text


def configure_logging(verbosity: Union[int, AnalysisConfig]) -> None:
    """Set up the ``lsap_core`` package logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG, or an :class:`AnalysisConfig`
        whose ``verbose`` field is used.
    """
    if isinstance(verbosity, AnalysisConfig):
        verbosity = verbosity.validate().verbose
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("lsap_core")
    root.setLevel(level)
    for old in [h for h in root.handlers if getattr(h, "_lsap_handler", False)]:
        root.removeHandler(old)
    handler._lsap_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
