# tests/test_event_flow.py
"""
Tests for event flow graph reduction.
"""

import pytest

from lsap_core.ctrlflow_graph import CFG_ENTRY_EDGE, ControlFlowGraph
from lsap_core.errors import DisconnectedEventSet, UnknownNodeError
from lsap_core.event_flow import (
    EFG_EDGE,
    NEW_EFG_EDGE,
    EventFlowGraphTransformation,
)
from lsap_core.graph_model import EdgeKind, GraphBuilder
from tests.conftest import CORRELATED, DIAMOND, EARLY_RETURN, LOOP, build, ladder, n


def _reduce(graph, events):
    return EventFlowGraphTransformation(graph, events).construct_efg()


def _shape(efg):
    return [(e.src, e.dst, e.kind, e.condition) for e in efg.edges]


class TestRetainedSet:

    @pytest.mark.parametrize("text,events", [
        (DIAMOND, ["b"]),
        (DIAMOND, ["c", "d"]),
        (LOOP, ["body"]),
        (CORRELATED, ["lock", "unlock"]),
        (EARLY_RETURN, ["lock", "unlock"]),
    ])
    def test_retained_contains_entry_exit_and_events(self, text, events):
        g = build(text)
        efg = _reduce(g, [n(g, e) for e in events])
        retained = set(efg.retained)
        assert efg.entry in retained
        assert efg.exit in retained
        assert {n(g, e) for e in events} <= retained
        assert set(efg.graph.nodes) == retained

    @pytest.mark.parametrize("text,events", [
        (DIAMOND, []),
        (DIAMOND, ["b"]),
        (LOOP, ["body"]),
        (CORRELATED, ["unlock"]),
        (EARLY_RETURN, ["unlock"]),
    ])
    def test_no_dangling_edges(self, text, events):
        g = build(text)
        efg = _reduce(g, [n(g, e) for e in events])
        ids = {node.id for node in efg.retained}
        for e in efg.edges:
            assert e.src in ids and e.dst in ids

    def test_branch_kept_for_conditional_event(self):
        g = build(DIAMOND)
        efg = _reduce(g, [n(g, "b")])
        assert efg.retained == (n(g, "a"), n(g, "b"), efg.entry, efg.exit)
        assert efg.consumed == (n(g, "d"), n(g, "c"))

    def test_partition_covers_graph(self):
        g = build(EARLY_RETURN)
        efg = _reduce(g, [n(g, "lock")])
        cfg_nodes = set(ControlFlowGraph(g).nodes)
        assert set(efg.retained) | set(efg.consumed) == cfg_nodes
        assert not set(efg.retained) & set(efg.consumed)


class TestReducedEdges:

    def test_bypass_carries_branch_label(self):
        g = build(DIAMOND)
        a, b = n(g, "a"), n(g, "b")
        efg = _reduce(g, [b])
        assert efg.successors(a) == [b, efg.exit]
        (bypass,) = [e for e in efg.edges if e.src == a.id and e.dst == efg.exit.id]
        assert bypass.kind is EdgeKind.BYPASS
        assert bypass.condition == "false"
        assert NEW_EFG_EDGE in bypass.tags
        assert EFG_EDGE in bypass.tags

    def test_kept_edges_are_reduced(self):
        g = build(DIAMOND)
        a, b = n(g, "a"), n(g, "b")
        efg = _reduce(g, [b])
        (kept,) = [e for e in efg.edges if e.src == a.id and e.dst == b.id]
        assert kept.kind is EdgeKind.REDUCED
        assert kept.condition == "true"
        assert EdgeKind.STRUCTURAL.value in kept.tags
        assert EFG_EDGE in kept.tags

    def test_parallel_bypasses_collapsed(self):
        g = build(DIAMOND)
        efg = _reduce(g, [])
        pairs = [(e.src, e.dst) for e in efg.edges]
        assert pairs == [(efg.entry.id, efg.exit.id)]
        assert CFG_ENTRY_EDGE in efg.edges[0].tags
        assert not efg.disconnected

    def test_loop_header_retained(self):
        g = build(LOOP)
        h, body = n(g, "h"), n(g, "body")
        efg = _reduce(g, [body])
        assert set(efg.retained) == {efg.entry, h, body, efg.exit}
        assert efg.successors(h) == [body, efg.exit]
        assert efg.successors(body) == [h]

    def test_all_nodes_is_a_noop(self):
        g = build(DIAMOND)
        cfg = ControlFlowGraph(g)
        efg = EventFlowGraphTransformation(cfg, cfg.nodes).construct_efg()
        assert efg.consumed == ()
        assert [(e.src, e.dst, e.condition) for e in efg.edges] == [
            (e.src, e.dst, e.condition) for e in cfg.edges
        ]
        assert all(e.kind is EdgeKind.REDUCED for e in efg.edges)

    def test_ladder_event_keeps_only_its_branch(self):
        g = ladder(3)
        efg = _reduce(g, [g.find("l2")])
        names = {node.name for node in efg.retained}
        assert names == {"EFG_ENTRY", "EFG_EXIT", "l2", "c2"}

    def test_self_loop_on_consumed_node_dropped(self):
        b = GraphBuilder()
        r = b.add_node(name="r", is_root=True)
        s = b.add_node(name="s")
        e = b.add_node(name="e")
        x = b.add_node(name="x", is_exit_point=True)
        b.add_edge(r, s)
        b.add_edge(s, s)
        b.add_edge(s, e)
        b.add_edge(e, x)
        efg = _reduce(b.build(), [e])
        assert s in efg.consumed
        assert not any(edge.is_self_loop for edge in efg.edges)
        assert efg.successors(efg.entry) == [e]
        assert efg.successors(e) == [efg.exit]

    def test_consumed_node_joins_every_predecessor_to_every_successor(self):
        b = GraphBuilder()
        a = b.add_node(name="a", is_root=True)
        bb = b.add_node(name="b", is_root=True)
        m = b.add_node(name="m")
        c = b.add_node(name="c")
        d = b.add_node(name="d", is_exit_point=True)
        b.add_edge(a, m)
        b.add_edge(bb, m)
        b.add_edge(m, c)
        b.add_edge(m, d)
        b.add_edge(c, d)
        efg = _reduce(b.build(), [a, bb, d])
        assert set(efg.consumed) == {m, c}
        by_pair = {(edge.src, edge.dst): edge for edge in efg.edges}
        assert len(by_pair) == len(efg.edges)
        for src in (a, bb):
            assert by_pair[(src.id, d.id)].kind is EdgeKind.BYPASS
        assert efg.successors(a) == [d]
        assert efg.successors(bb) == [d]


class TestEdgeCases:

    def test_disconnected_event_set_warns(self):
        b = GraphBuilder()
        b.add_node(name="spin", is_root=True)
        g = b.build()
        with pytest.warns(DisconnectedEventSet):
            efg = _reduce(g, [])
        assert efg.disconnected
        assert efg.edges == ()
        assert set(efg.retained) == {efg.entry, efg.exit}

    def test_unreachable_event_dropped(self, caplog):
        b = GraphBuilder()
        r = b.add_node(name="r", is_root=True, is_exit_point=True)
        orphan = b.add_node(name="orphan")
        b.add_edge(orphan, r)
        g = b.build()
        with caplog.at_level("WARNING", logger="lsap_core"):
            efg = _reduce(g, [orphan])
        assert efg.events == ()
        assert orphan not in efg.retained
        assert "unreachable" in caplog.text

    def test_event_that_cannot_reach_exit_is_reported(self, caplog):
        g = build("""
        function spin {
            node r condition "go" root
            node x exit
            r -> spin [true]
            spin -> ev
            ev -> spin [back]
            r -> x [false]
        }
        """)
        ev = n(g, "ev")
        with caplog.at_level("WARNING", logger="lsap_core"):
            efg = _reduce(g, [ev])
        assert efg.events == (ev,)
        assert set(efg.retained) == {ev, efg.entry, efg.exit}
        assert "cannot reach the exit node" in caplog.text
        assert "ev" in caplog.text

    def test_unknown_event(self, diamond):
        with pytest.raises(UnknownNodeError):
            EventFlowGraphTransformation(diamond, [99])

    def test_deterministic(self):
        g = build(CORRELATED)
        events = [n(g, "lock"), n(g, "unlock")]
        first = _reduce(g, events)
        second = _reduce(g, events)
        assert first.retained == second.retained
        assert first.consumed == second.consumed
        assert _shape(first) == _shape(second)

    def test_input_graph_untouched(self):
        g = build(EARLY_RETURN)
        before = [(e.id, e.src, e.dst, e.kind) for e in g.edges]
        _reduce(g, [n(g, "lock")])
        assert [(e.id, e.src, e.dst, e.kind) for e in g.edges] == before
