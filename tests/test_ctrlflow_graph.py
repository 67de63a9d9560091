# tests/test_ctrlflow_graph.py
"""
Tests for CFG augmentation and loop-free graphs.
"""

import pytest

from lsap_core.ctrlflow_graph import (
    CFG_ENTRY_EDGE,
    CFG_EXIT_EDGE,
    CFG_MASTER_ENTRY_NODE,
    CFG_MASTER_EXIT_NODE,
    ControlFlowGraph,
    detect_back_edges,
    is_acyclic,
    loop_free_graph,
)
from lsap_core.errors import ErrorCodes, GraphInvariantError, MalformedGraph
from lsap_core.graph_model import EdgeKind, GraphBuilder, NodeKind
from tests.conftest import DIAMOND, EARLY_RETURN, LOOP, build, n, structural_edges


class TestAugmentation:

    def test_single_entry_and_exit(self, diamond):
        cfg = ControlFlowGraph(diamond)
        g = cfg.graph
        assert len(g.nodes_of_kind(NodeKind.ENTRY)) == 1
        assert len(g.nodes_of_kind(NodeKind.EXIT)) == 1
        assert g.in_degree(cfg.entry_node) == 0
        assert g.out_degree(cfg.exit_node) == 0
        assert cfg.entry_node.name == CFG_MASTER_ENTRY_NODE
        assert cfg.exit_node.name == CFG_MASTER_EXIT_NODE

    def test_entry_reaches_every_root(self):
        g = build(EARLY_RETURN)
        cfg = ControlFlowGraph(g)
        assert cfg.successors(cfg.entry_node) == [n(g, "entry")]
        assert cfg.predecessors(cfg.exit_node) == [n(g, "ret"), n(g, "out")]

    def test_synthetic_edges_tagged(self, diamond):
        cfg = ControlFlowGraph(diamond)
        entry_edges = cfg.graph.out_edges(cfg.entry_node)
        exit_edges = cfg.graph.in_edges(cfg.exit_node)
        assert all(e.kind is EdgeKind.ENTRY_SYNTHETIC for e in entry_edges)
        assert all(CFG_ENTRY_EDGE in e.tags for e in entry_edges)
        assert all(e.kind is EdgeKind.EXIT_SYNTHETIC for e in exit_edges)
        assert all(CFG_EXIT_EDGE in e.tags for e in exit_edges)

    def test_input_graph_untouched(self, diamond):
        before = (len(diamond), len(diamond.edges))
        cfg = ControlFlowGraph(diamond)
        assert (len(diamond), len(diamond.edges)) == before
        assert len(cfg.graph) == before[0] + 2
        for node in diamond.nodes:
            assert cfg.node(node.id) is node
        assert structural_edges(cfg.graph) == list(diamond.edges)

    def test_multiple_roots(self):
        b = GraphBuilder()
        r1 = b.add_node(is_root=True)
        r2 = b.add_node(is_root=True)
        x = b.add_node(is_exit_point=True)
        b.add_edge(r1, x)
        b.add_edge(r2, x)
        cfg = ControlFlowGraph(b.build())
        assert cfg.successors(cfg.entry_node) == [r1, r2]
        assert cfg.roots == [r1, r2]

    def test_no_root_is_malformed(self):
        b = GraphBuilder()
        b.add_node(is_exit_point=True)
        with pytest.raises(MalformedGraph) as exc_info:
            ControlFlowGraph(b.build(), name="f")
        assert exc_info.value.code == ErrorCodes.NO_STRUCTURAL_ROOT
        assert "LSAP-0001" in str(exc_info.value)

    def test_no_exit_point_warns(self, caplog):
        b = GraphBuilder()
        b.add_node(is_root=True)
        with caplog.at_level("WARNING", logger="lsap_core"):
            cfg = ControlFlowGraph(b.build(), name="spin")
        assert cfg.graph.in_degree(cfg.exit_node) == 0
        assert "no control-flow exit point" in caplog.text

    def test_existing_entry_node_rejected(self):
        b = GraphBuilder()
        b.add_node(NodeKind.ENTRY, is_root=True)
        with pytest.raises(GraphInvariantError):
            ControlFlowGraph(b.build())

    def test_reachable_from(self, diamond):
        cfg = ControlFlowGraph(diamond)
        assert cfg.reachable_from(cfg.entry_node) == set(cfg.nodes)
        assert cfg.reachable_from(n(diamond, "b"), reverse=True) == {
            n(diamond, "b"), n(diamond, "a"), cfg.entry_node,
        }


class TestBackEdges:

    def test_loop_back_edge_detected(self, loop):
        back = detect_back_edges(loop)
        assert [(e.src, e.dst) for e in back] == [(n(loop, "body").id, n(loop, "h").id)]
        assert not is_acyclic(loop)

    def test_diamond_is_acyclic(self, diamond):
        assert is_acyclic(diamond)

    def test_flagged_back_edges_removed(self, loop):
        dag = loop_free_graph(loop)
        assert is_acyclic(dag)
        assert len(dag.edges) == len(loop.edges) - 1
        assert all(not e.back_edge for e in dag.edges)

    def test_unflagged_cycle_repaired(self, caplog):
        g = build(LOOP.replace("[back]", ""))
        with caplog.at_level("WARNING", logger="lsap_core"):
            dag = loop_free_graph(g)
        assert is_acyclic(dag)
        assert "unflagged back edge" in caplog.text

    def test_unflagged_cycle_rejected_without_repair(self):
        g = build(LOOP.replace("[back]", ""))
        with pytest.raises(MalformedGraph) as exc_info:
            loop_free_graph(g, repair=False)
        assert exc_info.value.code == ErrorCodes.CYCLIC_LOOP_FREE_GRAPH

    def test_self_loop_is_a_cycle(self):
        b = GraphBuilder()
        x = b.add_node(is_root=True)
        b.add_edge(x, x)
        assert not is_acyclic(b.build())

    def test_acyclic_graph_unchanged(self):
        g = build(DIAMOND)
        assert loop_free_graph(g).edges == g.edges
