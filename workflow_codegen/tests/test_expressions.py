from __future__ import annotations

import ast

import pytest

from workflow_codegen.errors import InvalidExpression
from workflow_codegen.expr import ExpressionScope, compile_expression
from workflow_codegen.expr.parser import Compare, Logical, Member, Name, parse_expression, root_name


def _scope(**overrides) -> ExpressionScope:
    values = {
        "input_fields": frozenset({"input_as_text", "count"}),
        "state_fields": frozenset({"a", "b", "c", "flag", "items"}),
    }
    values.update(overrides)
    return ExpressionScope(**values)


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ('workflow.input_as_text == ""', 'workflow["input_as_text"] == ""'),
        ("(state.a || state.b) && state.c", '(state["a"] or state["b"]) and state["c"]'),
        ("state.a || state.b && state.c", 'state["a"] or state["b"] and state["c"]'),
        ("!(state.a == 1)", 'not state["a"] == 1'),
        ("!state.flag", 'not state["flag"]'),
        ("state.a - (state.b - 1)", 'state["a"] - (state["b"] - 1)'),
        ("(state.a - state.b) - 1", 'state["a"] - state["b"] - 1'),
        ("state.a * (state.b + 1)", 'state["a"] * (state["b"] + 1)'),
        ("state.a < state.b == true", '(state["a"] < state["b"]) == True'),
        ("state.flag == null", 'state["flag"] == None'),
        ("workflow.count >= 3 and not state.flag", 'workflow["count"] >= 3 and not state["flag"]'),
        ('"x" in state.items', '"x" in state["items"]'),
        ("state.items[0]", 'state["items"][0]'),
        ("-state.a", '-state["a"]'),
        ("string(workflow.count)", 'str(workflow["count"])'),
    ],
)
def test_expression_rendering(source: str, expected: str) -> None:
    assert compile_expression(source, _scope()) == expected


def test_input_resolves_to_previous_result() -> None:
    rendered = compile_expression("size(input.items) > 0", _scope(input_alias="agent_result"))

    assert rendered == 'len(agent_result["items"]) > 0'


def test_input_defaults_to_workflow_record() -> None:
    assert compile_expression('input.input_as_text != ""', _scope()) == 'workflow["input_as_text"] != ""'


def test_rendered_expressions_are_python_expressions() -> None:
    rendered = compile_expression('[state.a, {"k": state.b}]', _scope())

    tree = ast.parse(rendered, mode="eval")
    assert isinstance(tree.body, ast.List)
    assert rendered == '[state["a"], {"k": state["b"]}]'


def test_string_escapes_survive_rendering() -> None:
    rendered = compile_expression(r'workflow.input_as_text == "say \"hi\"\n"', _scope())

    compare = ast.parse(rendered, mode="eval").body
    assert ast.literal_eval(compare.comparators[0]) == 'say "hi"\n'


def test_unknown_input_field_is_rejected() -> None:
    with pytest.raises(InvalidExpression) as excinfo:
        compile_expression("workflow.missing == 1", _scope(node_id="check"))

    assert excinfo.value.node_id == "check"
    assert "missing" in str(excinfo.value)


def test_undeclared_state_is_rejected() -> None:
    with pytest.raises(InvalidExpression):
        compile_expression("state.nope", _scope())


def test_unknown_root_name_is_rejected() -> None:
    with pytest.raises(InvalidExpression) as excinfo:
        compile_expression("os.system", _scope())

    assert "Unknown name 'os'" in excinfo.value.reason


def test_unknown_function_is_rejected() -> None:
    with pytest.raises(InvalidExpression):
        compile_expression("eval(state.a)", _scope())


def test_number_too_large_for_a_float_is_rejected() -> None:
    source = "state.a > " + "9" * 400 + ".5"

    with pytest.raises(InvalidExpression) as excinfo:
        compile_expression(source, _scope(node_id="n1"))

    assert "out of range" in excinfo.value.reason


@pytest.mark.parametrize("source", ["state.a ==", "(state.a", "state.a $ 1", '"open', "", "   "])
def test_syntax_errors_raise_invalid_expression(source: str) -> None:
    with pytest.raises(InvalidExpression) as excinfo:
        compile_expression(source, _scope(node_id="n1"))

    assert excinfo.value.node_id == "n1"
    assert excinfo.value.expression == source


def test_parser_builds_precedence_tree() -> None:
    tree = parse_expression("state.a == 1 || state.b")

    assert isinstance(tree, Logical)
    assert tree.op == "||"
    assert isinstance(tree.left, Compare)
    assert isinstance(tree.right, Member)
    assert root_name(tree.right) == "state"
    assert root_name(Name("workflow")) == "workflow"
