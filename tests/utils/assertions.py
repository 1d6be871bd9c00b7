"""
Test Assertions
===============

Custom assertion helpers for sandbox evaluation, rendering and API responses.
"""

from typing import Any, Dict, List, Optional

from dsl_playground.core.dsl.nodes import NodeKind, NodeTree, UINode
from dsl_playground.models.schemas import (
    EvaluationResult,
    FaultKind,
    RenderResult,
    SourceLocation,
)


def assert_successful_evaluation(result: EvaluationResult) -> NodeTree:
    """Assert that an evaluation produced a node tree and return it."""
    assert isinstance(result, EvaluationResult)
    assert result.success is True, f"Unexpected fault: {result.fault}"
    assert result.fault is None
    assert isinstance(result.tree, NodeTree)
    assert_valid_tree(result.tree)
    return result.tree


def assert_fault(
    result: Any,
    kind: FaultKind,
    message_contains: Optional[str] = None,
) -> None:
    """Assert that an evaluation or render result failed with a fault of ``kind``."""
    assert result.success is False
    assert result.fault is not None
    assert result.fault.kind == kind, f"Expected {kind.value}, got {result.fault.kind.value}: {result.fault.message}"
    assert result.fault.message
    if message_contains:
        assert message_contains in result.fault.message, \
            f"Expected '{message_contains}' in '{result.fault.message}'"
    if isinstance(result, EvaluationResult):
        assert result.tree is None
    if isinstance(result, RenderResult):
        assert result.markup is None


def assert_location_within(location: Optional[SourceLocation], source: str) -> None:
    """Assert that a location lies within the source buffer."""
    assert location is not None
    lines = source.split("\n")
    assert 1 <= location.line <= len(lines)
    assert 1 <= location.column <= len(lines[location.line - 1]) + 1


def assert_valid_tree(tree: NodeTree) -> None:
    """Assert structural node invariants: leaves and voids have no children."""
    for node in tree.walk():
        if node.kind in (NodeKind.LEAF, NodeKind.VOID):
            assert not node.children, f"'{node.element}' must not have children"
        if node.kind == NodeKind.VOID:
            assert node.text is None


def assert_children(node: UINode, elements: List[str]) -> None:
    """Assert the element names of a node's children, in order."""
    assert [child.element for child in node.children] == elements


def assert_texts_in_order(markup: str, texts: List[str]) -> None:
    """Assert every text appears in the markup in the given order."""
    position = 0
    for text in texts:
        found = markup.find(text, position)
        assert found >= 0, f"'{text}' not found in order in {markup!r}"
        position = found + len(text)


def assert_valid_html_fragment(markup: str) -> None:
    """Assert basic HTML fragment shape."""
    assert isinstance(markup, str)
    assert markup.startswith("<")
    assert markup.endswith(">")
    assert "<script" not in markup.lower()


def assert_error_response(data: Dict[str, Any], error_code: Optional[str] = None) -> None:
    """Assert the structured error body returned by the API."""
    assert "error" in data
    assert "timestamp" in data
    assert "request_id" in data
    if error_code is not None:
        assert data["error_code"] == error_code


def assert_performance_within_threshold(elapsed_time: float, max_time: float = 5.0) -> None:
    """Assert that an operation finished within a time threshold."""
    assert elapsed_time <= max_time, f"Took {elapsed_time:.3f}s, expected at most {max_time:.3f}s"
