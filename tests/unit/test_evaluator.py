"""
Unit Tests for Sandbox Evaluator
================================

Evaluation of DSL programs into node trees, warnings and runtime faults.
"""

import pytest

from dsl_playground.core.dsl.errors import DSLTimeoutError
from dsl_playground.core.dsl.interpreter import ExecutionBudget
from dsl_playground.core.dsl.nodes import NodeKind
from dsl_playground.models.schemas import FaultKind

from tests.utils.assertions import (
    assert_children,
    assert_fault,
    assert_location_within,
    assert_successful_evaluation,
)


class TestBasicEvaluation:
    """Elements, arguments and nesting."""

    def test_single_text(self, evaluate):
        tree = assert_successful_evaluation(evaluate('text("Hello World")'))
        assert tree.node_count == 1
        assert tree.root.element == "text"
        assert tree.root.kind == NodeKind.LEAF
        assert tree.root.text == "Hello World"
        assert tree.root.children == []

    def test_hstack_justify_between(self, evaluate):
        source = 'hstack(justify: :between) { text("Left"); text("Right") }'
        tree = assert_successful_evaluation(evaluate(source))
        root = tree.root
        assert root.element == "hstack"
        assert "justify-between" in root.classes
        assert "flex-row" in root.classes
        assert "w-full" in root.classes
        assert_children(root, ["text", "text"])
        assert tree.texts() == ["Left", "Right"]

    def test_vstack_spacing(self, evaluate):
        tree = assert_successful_evaluation(evaluate('vstack(spacing: 4) { text("a") }'))
        assert {"flex", "flex-col", "items-center", "space-y-4"} <= set(tree.root.classes)

    def test_children_follow_document_order(self, evaluate, sample_source):
        tree = assert_successful_evaluation(evaluate(sample_source))
        assert_children(tree.root, ["text", "hstack"])
        row = tree.root.children[1]
        assert_children(row, ["button", "button", "button"])
        assert tree.texts() == ["Title", "Item 1", "Item 2", "Item 3"]

    def test_multiple_roots_wrapped_in_fragment(self, evaluate):
        tree = assert_successful_evaluation(evaluate('text("a")\ntext("b")'))
        assert tree.root.kind == NodeKind.FRAGMENT
        assert tree.node_count == 2

    def test_empty_source_warns(self, evaluate):
        result = evaluate("# nothing here\n")
        tree = assert_successful_evaluation(result)
        assert tree.root.kind == NodeKind.FRAGMENT
        assert any("produced no elements" in w for w in result.warnings)

    def test_node_locations(self, evaluate):
        source = 'vstack {\n  text("a")\n}'
        tree = assert_successful_evaluation(evaluate(source))
        child = tree.root.children[0]
        assert (child.location.line, child.location.column) == (2, 3)

    def test_keyword_extras_become_attributes(self, evaluate):
        tree = assert_successful_evaluation(evaluate('div(id: "main", data_role: "panel") { }'))
        assert tree.root.attributes["id"] == "main"
        assert tree.root.attributes["data-role"] == "panel"

    def test_image_is_void(self, evaluate):
        tree = assert_successful_evaluation(evaluate('image(src: "/a.png", alt: "A")'))
        assert tree.root.kind == NodeKind.VOID
        assert tree.root.attributes["src"] == "/a.png"

    def test_grid_columns(self, evaluate):
        tree = assert_successful_evaluation(evaluate('grid(columns: 3) { text("a") }'))
        assert {"grid", "grid-cols-1", "sm:grid-cols-2", "lg:grid-cols-3"} <= set(tree.root.classes)

    def test_decimal_list_uses_ol(self, evaluate):
        tree = assert_successful_evaluation(evaluate('list(style: :decimal) { list_item { text("a") } }'))
        assert tree.root.tag == "ol"


class TestModifiers:
    """Modifier chains applied to elements."""

    def test_classes_from_modifiers(self, evaluate):
        tree = assert_successful_evaluation(
            evaluate('text("Hi").font_size("2xl").bold.padding(4).bg("blue-500")')
        )
        assert tree.root.classes == ["text-2xl", "font-bold", "p-4", "bg-blue-500"]

    def test_hex_color_becomes_style(self, evaluate):
        tree = assert_successful_evaluation(evaluate('text("Hi").text_color("#ff0000")'))
        assert tree.root.styles == {"color": "#ff0000"}

    def test_hover_and_on_click(self, evaluate):
        tree = assert_successful_evaluation(
            evaluate('button("Go").hover("bg-blue-600 shadow").on_click("counter#increment")')
        )
        assert "hover:bg-blue-600" in tree.root.classes
        assert "hover:shadow" in tree.root.classes
        assert tree.root.attributes["data-action"] == "click->counter#increment"

    def test_style_declarations(self, evaluate):
        tree = assert_successful_evaluation(evaluate('div { }.style("color: red; Width: 10px")'))
        assert tree.root.styles == {"color": "red", "width": "10px"}

    def test_modifier_on_newline(self, evaluate):
        tree = assert_successful_evaluation(evaluate('text("Hi")\n  .bold\n  .italic'))
        assert tree.root.classes == ["font-bold", "italic"]

    def test_unknown_modifier_warns(self, evaluate):
        result = evaluate('text("Hi").sparkle')
        assert_successful_evaluation(result)
        assert result.warnings == ["line 1, column 1: Unknown modifier 'sparkle' on 'text' was ignored"]

    def test_undeclared_modifier_warns_but_applies(self, evaluate):
        result = evaluate('text("Hi").justify_between')
        tree = assert_successful_evaluation(result)
        assert "justify-between" in tree.root.classes
        assert any("not declared for 'text'" in w for w in result.warnings)

    def test_modifier_alias_applies_canonical_handler(self, evaluate):
        result = evaluate('text("Hi").background("blue-500").text_size("xl")')
        tree = assert_successful_evaluation(result)
        assert tree.root.classes == ["bg-blue-500", "text-xl"]
        assert result.warnings == []

    def test_bad_modifier_argument(self, evaluate):
        result = evaluate('text("Hi").bg("#zzzzzz")')
        assert_fault(result, FaultKind.RUNTIME_ERROR, "invalid hex color")


class TestControlFlow:
    """Variables, conditionals and iteration."""

    def test_times_loop(self, evaluate):
        tree = assert_successful_evaluation(evaluate('vstack {\n  3.times do |i|\n    text("Row #{i}")\n  end\n}'))
        assert tree.texts() == ["Row 0", "Row 1", "Row 2"]

    def test_each_over_array(self, evaluate):
        source = 'names = ["Ann", "Bob"]\nlist { names.each { |n| list_item { text(n.upcase) } } }'
        tree = assert_successful_evaluation(evaluate(source))
        assert tree.texts() == ["ANN", "BOB"]

    def test_conditionals(self, evaluate):
        source = 'x = 5\nif x > 3\n  text("big")\nelse\n  text("small")\nend'
        tree = assert_successful_evaluation(evaluate(source))
        assert tree.texts() == ["big"]

    def test_while_with_break(self, evaluate):
        source = (
            "i = 0\n"
            "vstack {\n"
            "  while true\n"
            "    i += 1\n"
            "    if i > 2\n"
            "      break\n"
            "    end\n"
            "    text(i)\n"
            "  end\n"
            "}"
        )
        tree = assert_successful_evaluation(evaluate(source))
        assert tree.texts() == ["1", "2"]

    def test_range_map(self, evaluate):
        tree = assert_successful_evaluation(evaluate('text((1..3).map { |n| n * 2 }.join(","))'))
        assert tree.root.text == "2,4,6"


class TestRuntimeFaults:
    """Runtime failures become located faults."""

    def test_unknown_element(self, evaluate):
        source = 'vstack {\n  texx("Hi")\n}'
        result = evaluate(source)
        assert_fault(result, FaultKind.RUNTIME_ERROR, "undefined element or method 'texx'")
        assert result.fault.cause == "RegistryMiss"
        assert result.fault.location.line == 2
        assert_location_within(result.fault.location, source)

    def test_enclosing_element_in_trace(self, evaluate):
        result = evaluate('vstack {\n  texx("Hi")\n}')
        assert "in vstack (line 1, column 1)" in result.fault.trace

    def test_undefined_value_method(self, evaluate):
        result = evaluate('text("a".shout)')
        assert_fault(result, FaultKind.RUNTIME_ERROR, "undefined method 'shout' for String")

    def test_missing_required_argument(self, evaluate):
        assert_fault(evaluate("text()"), FaultKind.RUNTIME_ERROR, "missing required argument 'content'")

    def test_leaf_with_block(self, evaluate):
        assert_fault(evaluate('text("a") { text("b") }'), FaultKind.RUNTIME_ERROR, "cannot contain child elements")

    def test_division_by_zero(self, evaluate):
        assert_fault(evaluate("text(1 / 0)"), FaultKind.RUNTIME_ERROR, "divided by 0")

    def test_break_outside_loop(self, evaluate):
        assert_fault(evaluate("break"), FaultKind.RUNTIME_ERROR, "'break' used outside of a loop")

    def test_modifier_called_as_function(self, evaluate):
        result = evaluate("bold")
        assert_fault(result, FaultKind.RUNTIME_ERROR, "'bold' is a modifier")

    def test_string_length_limit(self, evaluate):
        assert_fault(evaluate('text("ab" * 200000)'), FaultKind.RUNTIME_ERROR, "maximum size")

    def test_source_length_limit(self, evaluate, test_settings):
        source = 'text("a")\n' * (test_settings.max_source_length // 10 + 1)
        assert_fault(evaluate(source), FaultKind.RUNTIME_ERROR, "maximum length")

    def test_syntax_fault_from_evaluate(self, evaluate):
        result = evaluate('vstack {\n  text("a")\n}\n}')
        assert_fault(result, FaultKind.SYNTAX_ERROR, "Unmatched '}'")
        assert result.fault.location.line == 4

    def test_evaluations_are_independent(self, evaluate):
        assert_fault(evaluate("x = texx"), FaultKind.RUNTIME_ERROR)
        tree = assert_successful_evaluation(evaluate('text("ok")'))
        assert tree.node_count == 1


class TestValueMethodLimits:
    """Value methods stay within the size caps and the time budget."""

    def test_range_include_does_not_walk_the_range(self, evaluate):
        source = (
            "r = (1..1000000000000000000)\n"
            'text([r.include?(999999999999999999), r.include?(2.5), r.include?("a")].join(","))'
        )
        tree = assert_successful_evaluation(evaluate(source))
        assert tree.root.text == "true,false,false"

    @pytest.mark.parametrize(
        "expression",
        ["a.inspect", "a.to_s", '"#{a}"', '[a].join(",")'],
    )
    def test_shared_nested_array_display_is_capped(self, evaluate, expression):
        source = f"a = [1, 2, 3, 4, 5, 6, 7, 8, 9, 10]\n20.times {{ a = [a, a] }}\ntext({expression})"
        assert_fault(evaluate(source), FaultKind.RUNTIME_ERROR, "maximum length")

    def test_join_result_is_capped(self, evaluate):
        source = 's = "x" * 60000\ntext([s, s].join)'
        assert_fault(evaluate(source), FaultKind.RUNTIME_ERROR, "maximum length")

    def test_first_on_huge_range_is_capped(self, evaluate):
        result = evaluate("text((1..1000000000000000000).first(200000).length)")
        assert_fault(result, FaultKind.RUNTIME_ERROR, "range too large for 'first'")

    def test_last_with_count_beyond_length(self, evaluate):
        tree = assert_successful_evaluation(evaluate('text([1, 2, 3].last(5).join(","))'))
        assert tree.root.text == "1,2,3"

    def test_nested_array_equality(self, evaluate):
        tree = assert_successful_evaluation(evaluate("text([[1, 2], [3]] == [[1, 2], [3]])"))
        assert tree.root.text == "true"

    def test_array_difference_respects_budget(self, evaluate):
        source = "a = (1..40000).to_a\nb = (40001..80000).to_a\ntext((a - b).length)"
        assert_fault(evaluate(source), FaultKind.TIMEOUT)

    def test_round_digits_are_bounded(self, evaluate):
        assert_fault(evaluate("text(5.round(-100000))"), FaultKind.RUNTIME_ERROR, "round digits")

    def test_huge_integer_string_conversion(self, evaluate):
        result = evaluate('text(("9" * 5000).to_i)')
        assert_fault(result, FaultKind.RUNTIME_ERROR, "exceeds 4096 bits")


class TestExecutionBudget:
    """Cooperative deadline checks."""

    def test_check_within_budget(self):
        budget = ExecutionBudget(10.0)
        budget.check()

    def test_check_after_deadline(self):
        now = [0.0]
        budget = ExecutionBudget(2.0, clock=lambda: now[0])
        now[0] = 2.5
        with pytest.raises(DSLTimeoutError, match="time budget of 2 seconds"):
            budget.check()
        assert budget.elapsed == 2.5
