"""Tests for recursive tree construction.

Exercises the recovery rules (orphan close tags, unclosed elements,
unterminated tags, the depth ceiling) together with the index invariants
that must hold for any input.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from xml_scaffold.shared import MAX_SAFE_DEPTH, DiagnosticSeverity, TreeConfig
from xml_scaffold.tree import NodeRole, ParseResult, XMLTreeBuilder, build, walk


def _check_indexes(nodes):
    """Assert pre-order global indexes and contiguous local indexes."""
    order = [node.global_index for node, _, _ in walk(nodes)]
    assert order == list(range(len(order)))
    assert [node.local_index for node in nodes] == list(range(len(nodes)))
    for node, _, _ in walk(nodes):
        if node.children:
            assert [c.local_index for c in node.children] == list(range(len(node.children)))


class TestWellFormedInput:
    """Test building from balanced markup."""

    def test_nested_elements(self):
        nodes = build("<root><item>value</item></root>")
        assert len(nodes) == 1
        root = nodes[0]
        assert root.role is NodeRole.OPEN_TAG
        assert root.tag == "root"
        assert root.raw == "<root>"
        item = root.children[0]
        assert item.tag == "item"
        assert item.children[0].raw == "value"
        assert not any(node.malformed for node, _, _ in walk(nodes))

    def test_quote_aware_tag(self):
        nodes = build('<el attr="a>b">text</el>')
        assert len(nodes) == 1
        assert nodes[0].raw == '<el attr="a>b">'
        assert nodes[0].malformed is None
        assert [c.raw for c in nodes[0].children] == ["text"]

    def test_cdata_is_single_text_child(self):
        nodes = build("<root><![CDATA[x < y && y > z]]></root>")
        root = nodes[0]
        assert root.malformed is None
        assert len(root.children) == 1
        assert root.children[0].role is NodeRole.TEXT_LEAF
        assert root.children[0].raw == "<![CDATA[x < y && y > z]]>"

    def test_whitespace_runs_are_elided(self):
        nodes = build("<a>\n  <b>x  y</b>\n</a>\n")
        assert len(nodes) == 1
        assert [c.tag for c in nodes[0].children] == ["b"]
        assert nodes[0].children[0].children[0].raw == "x  y"

    def test_multiple_top_level_nodes(self):
        source = '<?xml version="1.0"?>\n<!DOCTYPE r>\n<r/>\n<!-- end -->'
        nodes = build(source)
        assert [n.role for n in nodes] == [
            NodeRole.PROCESSING_INSTRUCTION,
            NodeRole.DOCTYPE,
            NodeRole.SELF_TAG,
            NodeRole.COMMENT,
        ]

    def test_index_invariants(self):
        source = "<r><a>1</a><!--c--><b/><?pi x?></r>text"
        nodes = build(source)
        _check_indexes(nodes)
        r = nodes[0]
        assert [c.global_index for c in r.children] == [1, 3, 4, 5]
        assert nodes[1].global_index == 6
        assert nodes[1].local_index == 1

    def test_namespace_prefix_is_part_of_name(self):
        nodes = build("<env:Envelope><env:Body/></env:Envelope>")
        assert nodes[0].tag == "env:Envelope"
        assert nodes[0].malformed is None
        assert nodes[0].children[0].tag == "env:Body"

    def test_self_tag_has_no_children(self):
        nodes = build("<a/>")
        assert nodes[0].children is None

    def test_empty_open_tag_has_empty_children(self):
        nodes = build("<a></a>")
        assert nodes[0].children == []

    def test_empty_input(self):
        assert build("") == []


class TestRecovery:
    """Test structural anomalies are kept and flagged."""

    def test_orphan_close_tag(self):
        nodes = build("<a/></orphan><b/>")
        assert [n.role for n in nodes] == [
            NodeRole.SELF_TAG,
            NodeRole.CLOSE_TAG,
            NodeRole.SELF_TAG,
        ]
        assert [n.global_index for n in nodes] == [0, 1, 2]
        assert nodes[0].malformed is None
        assert nodes[1].malformed is True
        assert nodes[1].tag == "orphan"
        assert nodes[2].malformed is None

    def test_mismatched_nesting(self):
        nodes = build("<a><b></a></b>")
        a = nodes[0]
        b = a.children[0]
        assert a.malformed is True
        assert b.malformed is None
        assert len(b.children) == 1
        assert b.children[0].role is NodeRole.CLOSE_TAG
        assert b.children[0].tag == "a"
        assert b.children[0].malformed is True
        _check_indexes(nodes)

    def test_unclosed_elements_keep_children(self):
        nodes = build("<a><b>text")
        a = nodes[0]
        b = a.children[0]
        assert a.malformed is True
        assert b.malformed is True
        assert b.children[0].raw == "text"
        assert b.children[0].malformed is None

    def test_close_match_is_exact(self):
        nodes = build("<a:x></b:x>")
        assert nodes[0].malformed is True
        assert nodes[0].children[0].tag == "b:x"
        assert nodes[0].children[0].malformed is True

    def test_unterminated_tag(self):
        nodes = build("<a><b")
        a = nodes[0]
        assert a.malformed is True
        leaf = a.children[0]
        assert leaf.role is NodeRole.OPEN_TAG
        assert leaf.malformed is True
        assert leaf.children == []

    def test_unterminated_comment_is_not_flagged(self):
        nodes = build("<a><!-- x")
        assert nodes[0].malformed is True
        assert nodes[0].children[0].role is NodeRole.COMMENT
        assert nodes[0].children[0].malformed is None

    def test_top_level_close_is_orphan(self):
        nodes = build("</a>")
        assert nodes[0].role is NodeRole.CLOSE_TAG
        assert nodes[0].malformed is True


class TestDepthCeiling:
    """Test the nesting depth guard."""

    def test_default_ceiling(self):
        source = "<a>" * 501
        result = XMLTreeBuilder().build(source)
        assert result.success is True
        assert result.performance.max_depth_reached == 500
        assert result.malformed_count == 501

        deepest = max(walk(result.nodes), key=lambda item: item[1])[0]
        assert deepest.global_index == 500
        assert deepest.malformed is True
        assert deepest.children == []

    def test_highest_allowed_ceiling(self):
        source = "<a>" * (MAX_SAFE_DEPTH + 1)
        result = XMLTreeBuilder(TreeConfig(max_depth=MAX_SAFE_DEPTH)).build(source)
        assert result.success is True
        assert result.performance.max_depth_reached == MAX_SAFE_DEPTH
        assert result.node_count == MAX_SAFE_DEPTH + 1
        _check_indexes(result.nodes)

    def test_limit_keeps_enclosing_frame_open(self):
        nodes = build("<a><b></b></a>", TreeConfig(max_depth=1))
        a = nodes[0]
        assert a.malformed is None
        assert [(c.role, c.tag) for c in a.children] == [
            (NodeRole.OPEN_TAG, "b"),
            (NodeRole.CLOSE_TAG, "b"),
        ]
        assert all(c.malformed is True for c in a.children)

    def test_zero_depth(self):
        nodes = build("<a></a>", TreeConfig(max_depth=0))
        assert len(nodes) == 2
        assert nodes[0].children == []
        assert all(n.malformed is True for n in nodes)

    def test_diagnostic_reported(self):
        result = XMLTreeBuilder(TreeConfig(max_depth=1)).build("<a><b/><c></c></a>")
        messages = [d.message for d in result.diagnostics]
        assert "Nesting depth limit exceeded" in messages

    def test_invalid_ceiling(self):
        with pytest.raises(ValueError):
            TreeConfig(max_depth=-1)


class TestXMLTreeBuilder:
    """Test the builder class with diagnostics and metrics."""

    def test_metrics(self):
        result = XMLTreeBuilder().build("<a><b/>x</a>")
        assert isinstance(result, ParseResult)
        assert result.node_count == 3
        assert result.malformed_count == 0
        assert result.is_well_formed is True
        assert result.performance.characters_processed == 12
        assert result.performance.max_depth_reached == 1
        assert result.diagnostics == []

    def test_empty_input_diagnostic(self):
        result = XMLTreeBuilder().build("")
        assert result.success is True
        assert len(result.document) == 0
        assert result.diagnostics[0].severity is DiagnosticSeverity.INFO

    def test_anomaly_position(self):
        result = XMLTreeBuilder().build("<a/>\n</orphan>")
        warnings = result.get_diagnostics_by_severity(DiagnosticSeverity.WARNING)
        assert len(warnings) == 1
        assert warnings[0].message == "Orphan close tag"
        assert warnings[0].position == {"line": 2, "column": 1, "offset": 5}
        assert warnings[0].details["tag"] == "orphan"
        assert result.has_errors() is False

    def test_diagnostics_can_be_disabled(self):
        builder = XMLTreeBuilder(TreeConfig(collect_diagnostics=False))
        result = builder.build("</orphan>")
        assert result.malformed_count == 1
        assert result.diagnostics == []

    def test_correlation_id_propagates(self):
        result = XMLTreeBuilder(correlation_id="req-7").build("</x>")
        assert result.correlation_id == "req-7"
        assert result.diagnostics[0].correlation_id == "req-7"

    def test_internal_failure_never_raises(self, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("xml_scaffold.tree.builder._run", explode)
        result = XMLTreeBuilder().build("<a/>")
        assert result.success is False
        assert len(result.document) == 0
        assert result.has_errors() is True
        assert "boom" in result.diagnostics[-1].message

    def test_summary(self):
        summary = XMLTreeBuilder().build("<a></b>").summary()
        assert summary["success"] is True
        assert summary["well_formed"] is False
        assert summary["node_count"] == 2
        assert summary["malformed_count"] == 2
        assert summary["top_level_count"] == 1
        assert summary["diagnostics"] == {"WARNING": 2}
        assert summary["performance"]["malformed_rate"] == 1.0

    def test_malformed_rate(self):
        result = XMLTreeBuilder().build("<a/></b><c/><d/>")
        assert result.performance.malformed_rate == 0.25
        assert XMLTreeBuilder().build("").performance.malformed_rate == 0.0

    def test_builds_are_independent(self):
        """Concurrent builds never share index counters."""
        sources = ["<a><b/></a>", "</x><y/>", "<p>t</p><q/>"] * 10
        expected = [[n.to_dict() for n in build(s)] for s in sources]
        with ThreadPoolExecutor(max_workers=4) as executor:
            actual = list(executor.map(lambda s: [n.to_dict() for n in build(s)], sources))
        assert actual == expected
        for nodes in (build(s) for s in sources):
            _check_indexes(nodes)
