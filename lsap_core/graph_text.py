# lsap_core/graph_text.py
"""
graph_text.py: textual CFG descriptions
=======================================

A small line-oriented language for writing function CFGs by hand, used to
import functions into a :class:`~lsap_core.graph_store.TaggedGraphStore`
and throughout the test-suite::

    function demo {
        node a condition "x > 0" root   # condition named "x > 0"
        node d exit
        a -> b [true]
        a -> c [false]
        b -> d
        c -> d
        d -> a [back]
    }

Node options:  ``condition``, ``root``, ``exit`` and a quoted display name
(the condition identity for condition nodes; defaults to the identifier).
Edge options:  ``true``, ``false``, ``cond=<label>``, ``back`` and
``key=value`` attributes, separated by commas or blanks.  Endpoints that are
never declared become regular nodes.  ``#`` starts a comment.

Usage::

    from lsap_core.graph_text import parse_function, node_named

    graph = parse_function(source)
    a = node_named(graph, "a")

Depends on:
    - parsimonious (PEG parser)
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from .errors import GraphSyntaxError, UnknownNodeError
from .graph_model import Graph, GraphBuilder, Node, NodeKind

logger = logging.getLogger(__name__)

IDENT_ATTR = "ident"


# ─────────────────────────────────────────────────────────────────
#  Grammar
# ─────────────────────────────────────────────────────────────────

CFG_GRAMMAR = Grammar(r'''
    document     = _ function*
    function     = "function" hs identifier _ "{" _ statement* "}" _

    statement    = (node_decl / edge_decl) _
    node_decl    = "node" hs identifier node_option*
    node_option  = hs (quoted / keyword)
    keyword      = ~r"(condition|root|exit)(?![A-Za-z0-9_.$])"

    edge_decl    = identifier hs? "->" hs? identifier edge_attrs?
    edge_attrs   = hs? "[" hs? edge_option (sep edge_option)* hs? "]"
    sep          = (hs? "," hs?) / hs
    edge_option  = assignment / flag
    assignment   = flag "=" (quoted / bare)
    flag         = ~r"[A-Za-z_][A-Za-z0-9_]*"

    identifier   = ~r"[A-Za-z_][A-Za-z0-9_.$]*"
    quoted       = ~r'"(?:[^"\\]|\\.)*"'
    bare         = ~r'[^\s,\]"]+'
    hs           = ~r"[ \t]+"
    _            = ~r"(?:\s|#[^\n]*)*"
''')


def _position(text: str, offset: int) -> Tuple[int, int]:
    line = text.count("\n", 0, offset) + 1
    column = offset - (text.rfind("\n", 0, offset) + 1) + 1
    return line, column


def _items(value: Any) -> List[Any]:
    # Unmatched optional/repeated rules visit to their (empty) text.
    return value if isinstance(value, list) else []


# ─────────────────────────────────────────────────────────────────
#  Visitor (parse tree → graphs)
# ─────────────────────────────────────────────────────────────────

class _NodeDecl:
    __slots__ = ("ident", "offset", "name", "flags")

    def __init__(self, ident: str, offset: int, name: Optional[str], flags: List[str]):
        self.ident = ident
        self.offset = offset
        self.name = name
        self.flags = flags


class _EdgeDecl:
    __slots__ = ("src", "dst", "offset", "options")

    def __init__(self, src: str, dst: str, offset: int, options: List[Tuple[str, Optional[str], int]]):
        self.src = src
        self.dst = dst
        self.offset = offset
        self.options = options


class CfgBuilder(NodeVisitor):
    """Transforms the parse tree into ``name -> Graph`` pairs."""

    unwrapped_exceptions = (GraphSyntaxError,)

    def __init__(self, text: str):
        self._text = text

    def _error(self, message: str, offset: int) -> GraphSyntaxError:
        line, column = _position(self._text, offset)
        return GraphSyntaxError(message, line, column)

    def generic_visit(self, node, visited_children):
        return visited_children or node.text

    # ----- terminals ----------------------------------------------------

    def visit_identifier(self, node, visited_children):
        return node.text

    def visit_flag(self, node, visited_children):
        return node.text

    def visit_keyword(self, node, visited_children):
        return node.text

    def visit_bare(self, node, visited_children):
        return node.text

    def visit_quoted(self, node, visited_children):
        return re.sub(r"\\(.)", r"\1", node.text[1:-1])

    # ----- nodes --------------------------------------------------------

    def visit_node_option(self, node, visited_children):
        _, (value,) = visited_children
        if node.children[1].text.startswith('"'):
            return ("name", value)
        return ("flag", value)

    def visit_node_decl(self, node, visited_children):
        _, _, ident, options = visited_children
        name: Optional[str] = None
        flags: List[str] = []
        for kind, value in _items(options):
            if kind == "name":
                name = value
            else:
                flags.append(value)
        return _NodeDecl(ident, node.start, name, flags)

    # ----- edges --------------------------------------------------------

    def visit_assignment(self, node, visited_children):
        key, _, (value,) = visited_children
        return (key, value, node.start)

    def visit_edge_option(self, node, visited_children):
        (option,) = visited_children
        if isinstance(option, tuple):
            return option
        return (option, None, node.start)

    def visit_edge_attrs(self, node, visited_children):
        _, _, _, first, rest, _, _ = visited_children
        return [first] + [item[1] for item in _items(rest)]

    def visit_edge_decl(self, node, visited_children):
        src, _, _, _, dst, attrs = visited_children
        options = _items(attrs)[0] if _items(attrs) else []
        return _EdgeDecl(src, dst, node.start, options)

    # ----- structure ----------------------------------------------------

    def visit_statement(self, node, visited_children):
        (decl,), _ = visited_children
        return decl

    def visit_function(self, node, visited_children):
        _, _, name, _, _, _, statements, _, _ = visited_children
        return (name, node.start, self._build(name, _items(statements)))

    def visit_document(self, node, visited_children):
        _, functions = visited_children
        result: "OrderedDict[str, Graph]" = OrderedDict()
        for name, offset, graph in _items(functions):
            if name in result:
                raise self._error(f"function {name!r} is defined twice", offset)
            result[name] = graph
        return result

    # ----- graph assembly -----------------------------------------------

    def _build(self, function: str, statements: List[Union[_NodeDecl, _EdgeDecl]]) -> Graph:
        declared: Dict[str, _NodeDecl] = {}
        for st in statements:
            if isinstance(st, _NodeDecl):
                if st.ident in declared:
                    raise self._error(
                        f"node {st.ident!r} is declared twice in {function!r}", st.offset
                    )
                declared[st.ident] = st

        builder = GraphBuilder()
        nodes: Dict[str, Node] = {}

        def ensure(ident: str) -> Node:
            if ident not in nodes:
                decl = declared.get(ident)
                flags = decl.flags if decl else []
                nodes[ident] = builder.add_node(
                    NodeKind.CONDITION if "condition" in flags else NodeKind.REGULAR,
                    (decl.name if decl and decl.name is not None else ident),
                    is_root="root" in flags,
                    is_exit_point="exit" in flags,
                    attrs={IDENT_ATTR: ident},
                )
            return nodes[ident]

        for st in statements:
            if isinstance(st, _NodeDecl):
                ensure(st.ident)
                continue
            src, dst = ensure(st.src), ensure(st.dst)
            condition: Optional[str] = None
            back = False
            attrs: Dict[str, str] = {}
            for key, value, offset in st.options:
                if value is None:
                    if key in ("true", "false"):
                        if condition is not None:
                            raise self._error(
                                f"edge {st.src} -> {st.dst} has two condition labels", offset
                            )
                        condition = key
                    elif key == "back":
                        back = True
                    else:
                        raise self._error(f"unknown edge option {key!r}", offset)
                elif key == "cond":
                    if condition is not None:
                        raise self._error(
                            f"edge {st.src} -> {st.dst} has two condition labels", offset
                        )
                    condition = value
                else:
                    attrs[key] = value
            builder.add_edge(src, dst, condition=condition, back_edge=back, attrs=attrs)

        graph = builder.build()
        logger.debug("parsed function %r: %r", function, graph)
        return graph


# ─────────────────────────────────────────────────────────────────
#  Public API
# ─────────────────────────────────────────────────────────────────

def parse_functions(text: str) -> "OrderedDict[str, Graph]":
    """Parse every ``function`` block of *text*, in source order."""
    try:
        tree = CFG_GRAMMAR.parse(text)
    except ParseError as exc:
        raise GraphSyntaxError(
            f"unexpected input {text[exc.pos:exc.pos + 20]!r}", exc.line(), exc.column()
        ) from None
    return CfgBuilder(text).visit(tree)


def parse_function(text: str) -> Graph:
    """Parse *text*, which must hold exactly one function."""
    functions = parse_functions(text)
    if len(functions) != 1:
        raise GraphSyntaxError(f"expected exactly one function, found {len(functions)}")
    return next(iter(functions.values()))


def load_functions(path: Union[str, Path]) -> "OrderedDict[str, Graph]":
    """Read and parse a CFG description file."""
    p = Path(path)
    logger.info("loading CFG descriptions from %s", p)
    return parse_functions(p.read_text(encoding="utf-8"))


def node_named(graph: Graph, ident: str) -> Node:
    """The node written as *ident* in the source text."""
    for n in graph.nodes:
        if n.attrs.get(IDENT_ATTR) == ident:
            return n
    raise UnknownNodeError(f"no node with identifier {ident!r}")
