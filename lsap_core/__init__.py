"""
lsap_core: CFG analysis core for lock/unlock pairing verification
=================================================================

Graph analyses that a static verifier of paired events (lock/unlock,
acquire/release) runs on every function's control-flow graph:

* augmenting a CFG with a single master entry and exit,
* dominance and post-dominance with dominance frontiers,
* reducing a CFG to the *event flow graph* of a set of event nodes,
* deciding whether some path between two events can actually execute.

Core modules
------------
graph_model
    Arena-backed immutable graphs (Node, Edge, Graph, GraphBuilder).
ctrlflow_graph
    ControlFlowGraph augmentation, back edges, loop-free graphs.
dfs
    Edge-deduplicating depth-first pre-order iterator.
dominance
    Dominator sets, immediate dominators, dominance frontiers.
event_flow
    Event flow graph reduction.
sat_solver
    Satisfiability of branch constraints (internal or Z3).
feasibility
    Path enumeration and feasibility queries.
graph_store
    Mutable tagged store with undoable transactions.
config
    AnalysisConfig and logging setup.

Addon modules
-------------
graph_text
    Textual CFG descriptions (needs ``parsimonious``).

Quick start
-----------
>>> from lsap_core import parse_function, FeasibilityChecker, node_named
>>> g = parse_function('''
...     function f {
...         node a condition "x" root
...         node d exit
...         a -> b [true]
...         a -> c [false]
...         b -> d
...         c -> d
...     }''')
>>> FeasibilityChecker(g).check_path_feasibility(node_named(g, "a"), node_named(g, "d"))
True
"""

from __future__ import annotations

import importlib
import logging
import sys
import warnings
from typing import List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__all__: List[str] = []          # populated incrementally below

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal registry: (module_name, list_of_names_to_import)
#
#   CORE: always imported; failure is fatal
#   ADDON: imported eagerly but failure only warns (package still usable)
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "ErrorSeverity",
        "ErrorCode",
        "ErrorCodes",
        "LsapError",
        "MalformedGraph",
        "GraphInvariantError",
        "UnknownNodeError",
        "UnreachableNodeError",
        "PathLimitExceeded",
        "SolverResourceExhausted",
        "GraphSyntaxError",
        "LsapWarning",
        "DisconnectedEventSet",
        "UnsupportedBranchCondition",
    ],
    "config": [
        "AnalysisConfig",
        "configure_logging",
    ],
    "graph_model": [
        "NodeKind",
        "EdgeKind",
        "Node",
        "Edge",
        "Graph",
        "GraphBuilder",
    ],
    "ctrlflow_graph": [
        "ControlFlowGraph",
        "detect_back_edges",
        "is_acyclic",
        "loop_free_graph",
        "CFG_MASTER_ENTRY_NODE",
        "CFG_MASTER_EXIT_NODE",
        "CFG_ENTRY_EDGE",
        "CFG_EXIT_EDGE",
    ],
    "dfs": [
        "DepthFirstPreorderIterator",
    ],
    "dominance": [
        "DominanceAnalysis",
    ],
    "graph_store": [
        "TaggedGraphStore",
        "StoreTransaction",
    ],
    "event_flow": [
        "EventFlowGraphTransformation",
        "EventFlowGraph",
        "EFG_NODE",
        "EFG_EDGE",
        "NEW_EFG_EDGE",
    ],
    "sat_solver": [
        "Constraint",
        "ConstraintSolver",
        "LiteralConflictSolver",
        "Z3ConstraintSolver",
        "SolverBackend",
        "make_solver",
    ],
    "feasibility": [
        "FeasibilityChecker",
        "FeasibilityResult",
        "PathVerdict",
    ],
}

_ADDON_MODULES = {
    "graph_text": [
        "parse_functions",
        "parse_function",
        "load_functions",
        "node_named",
    ],
}

# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def _load(module: str, exports: List[str], optional: bool) -> None:
    """Bind *exports* of ``lsap_core.<module>`` in the package namespace.

    A missing optional module (``graph_text`` without parsimonious) warns
    and leaves its names unbound; anything else propagates.
    """
    try:
        mod = importlib.import_module(f"{__name__}.{module}")
    except ImportError as exc:
        if not optional:
            raise
        warnings.warn(
            f"lsap_core.{module} is unavailable ({exc})", ImportWarning, stacklevel=2
        )
        _log.debug("skipped optional module %s: %s", module, exc)
        return
    package = sys.modules[__name__]
    for name in exports:
        setattr(package, name, getattr(mod, name))
    __all__.extend(exports)
    __all__.append(module)


for _module, _exports in _CORE_MODULES.items():
    _load(_module, _exports, optional=False)

for _module, _exports in _ADDON_MODULES.items():
    _load(_module, _exports, optional=True)

del _module, _exports


def list_submodules() -> List[str]:
    """Names of the core and addon submodules."""
    return sorted(set(_CORE_MODULES) | set(_ADDON_MODULES))
