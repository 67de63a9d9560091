# tests/test_dominance.py
"""
Tests for dominance / post-dominance analysis.
"""

import pytest

from lsap_core.ctrlflow_graph import ControlFlowGraph
from lsap_core.dominance import DominanceAnalysis
from lsap_core.errors import UnreachableNodeError
from lsap_core.graph_model import GraphBuilder
from tests.conftest import DIAMOND, LOOP, build, ladder, n


def _analysis(text, post=False):
    g = build(text)
    cfg = ControlFlowGraph(g)
    return g, cfg, DominanceAnalysis(cfg, post_dominance=post)


class TestDominators:

    @pytest.mark.parametrize("text", [DIAMOND, LOOP])
    def test_entry_dominates_everything(self, text):
        _, cfg, dom = _analysis(text)
        for node in cfg.nodes:
            assert dom.dominates(cfg.entry_node, node)
            assert dom.dominates(node, node)

    @pytest.mark.parametrize("text", [DIAMOND, LOOP])
    def test_transitivity(self, text):
        _, cfg, dom = _analysis(text)
        nodes = cfg.nodes
        for a in nodes:
            for b in nodes:
                for c in nodes:
                    if dom.dominates(a, b) and dom.dominates(b, c):
                        assert dom.dominates(a, c)

    def test_diamond_sets(self):
        g, cfg, dom = _analysis(DIAMOND)
        a, b, c, d = (n(g, x) for x in "abcd")
        assert dom.dominators(d) == {cfg.entry_node, a, d}
        assert dom.dominators(b) == {cfg.entry_node, a, b}
        assert not dom.dominates(b, d)
        assert dom.strictly_dominates(a, d)
        assert not dom.strictly_dominates(a, a)

    def test_immediate_dominators(self):
        g, cfg, dom = _analysis(DIAMOND)
        a, b, c, d = (n(g, x) for x in "abcd")
        assert dom.immediate_dominator(cfg.entry_node) is None
        assert dom.immediate_dominator(a) == cfg.entry_node
        assert dom.immediate_dominator(b) == a
        assert dom.immediate_dominator(d) == a
        assert dom.immediate_dominator(cfg.exit_node) == d

    def test_loop_dominators(self):
        g, cfg, dom = _analysis(LOOP)
        h, body, x = n(g, "h"), n(g, "body"), n(g, "x")
        assert dom.dominators(body) == {cfg.entry_node, h, body}
        assert dom.immediate_dominator(x) == h
        assert not dom.dominates(body, h)

    def test_dominator_tree(self):
        g, cfg, dom = _analysis(DIAMOND)
        tree = dom.dominator_tree()
        assert tree[n(g, "a")] == [n(g, "b"), n(g, "d"), n(g, "c")]
        assert tree[cfg.entry_node] == [n(g, "a")]


class TestFrontiers:

    def test_diamond_frontier(self):
        g, _, dom = _analysis(DIAMOND)
        d = n(g, "d")
        assert dom.dominance_frontier(n(g, "b")) == {d}
        assert dom.dominance_frontier(n(g, "c")) == {d}
        assert dom.dominance_frontier(d) == set()
        assert dom.dominance_frontier(n(g, "a")) == set()

    def test_loop_frontier(self):
        g, _, dom = _analysis(LOOP)
        h = n(g, "h")
        assert dom.dominance_frontier(n(g, "body")) == {h}
        assert dom.dominance_frontier(h) == {h}

    def test_post_dominance_frontier(self):
        g, cfg, pdom = _analysis(DIAMOND, post=True)
        a = n(g, "a")
        # b and c are control dependent on the branch at a.
        assert pdom.dominance_frontier(n(g, "b")) == {a}
        assert pdom.dominance_frontier(n(g, "c")) == {a}
        assert pdom.dominates(n(g, "d"), a)
        assert pdom.root == cfg.exit_node

    def test_iterated_frontier_ladder(self):
        g = ladder(2)
        cfg = ControlFlowGraph(g)
        pdom = DominanceAnalysis(cfg, post_dominance=True)
        closure = pdom.iterated_dominance_frontier([g.find("l1")])
        assert closure == [g.find("l1"), g.find("c1")]

    def test_frontiers_mapping(self):
        g, cfg, dom = _analysis(DIAMOND)
        assert set(dom.dominance_frontiers) == set(cfg.nodes)


class TestUnreachable:

    def _orphan_graph(self):
        b = GraphBuilder()
        r = b.add_node(name="r", is_root=True, is_exit_point=True)
        orphan = b.add_node(name="orphan")
        b.add_edge(orphan, r)
        return b.build(), orphan

    def test_unreachable_listed(self):
        g, orphan = self._orphan_graph()
        dom = DominanceAnalysis(ControlFlowGraph(g))
        assert dom.unreachable == (orphan,)

    def test_unreachable_query_raises(self):
        g, orphan = self._orphan_graph()
        dom = DominanceAnalysis(ControlFlowGraph(g))
        with pytest.raises(UnreachableNodeError):
            dom.dominators(orphan)
        assert dom.dominance_frontier(orphan) == set()

    def test_unreachable_does_not_disturb_reachable(self):
        g, orphan = self._orphan_graph()
        cfg = ControlFlowGraph(g)
        dom = DominanceAnalysis(cfg)
        r = g.find("r")
        assert dom.dominators(r) == {cfg.entry_node, r}
