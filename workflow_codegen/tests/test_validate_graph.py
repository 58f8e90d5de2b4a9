from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest

from workflow_codegen import compile_workflow, load_graph
from workflow_codegen.compiler.parse import load_workflow_file, parse_workflow
from workflow_codegen.errors import (
    InvalidExpression,
    InvalidSchema,
    MalformedGraph,
    UnknownNodeKind,
    WorkflowCompilerError,
)


def _node(node_id: str, kind: str, **config: Any) -> Dict[str, Any]:
    return {"id": node_id, "kind": kind, "config": config}


def _edge(source: str, target: str, branch: str = "none") -> Dict[str, Any]:
    return {"from": source, "to": target, "branch": branch}


def _workflow(
    nodes: List[Dict[str, Any]],
    edges: List[Dict[str, Any]],
    **extra: Any,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "entry_node_id": "start",
        "nodes": [_node("start", "start"), *nodes],
        "edges": edges,
    }
    payload.update(extra)
    return payload


def _if_graph(edges: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    return _workflow(
        [
            _node("check", "if", cases=[{"condition": 'workflow.input_as_text == ""'}]),
            _node("a", "transform", expression='{"branch": "a"}'),
            _node("end", "end"),
        ],
        edges
        if edges is not None
        else [
            _edge("start", "check"),
            _edge("check", "a", "true"),
            _edge("check", "end", "false"),
            _edge("a", "end"),
        ],
    )


def test_valid_graph_is_indexed() -> None:
    graph = load_graph(_if_graph())

    assert graph.entry_id == "start"
    assert graph.successor("check", "true") == "a"
    assert graph.successor("check", "false") == "end"
    assert graph.successor("end", "none") is None


def test_if_missing_false_edge_is_malformed() -> None:
    payload = _if_graph([
        _edge("start", "check"),
        _edge("check", "a", "true"),
        _edge("a", "end"),
    ])

    with pytest.raises(MalformedGraph) as excinfo:
        load_graph(payload)

    assert any("'false'" in problem for problem in excinfo.value.problems)


def test_unreachable_node_is_malformed() -> None:
    payload = _workflow(
        [_node("end", "end"), _node("orphan", "agent")],
        [_edge("start", "end"), _edge("orphan", "end")],
    )

    with pytest.raises(MalformedGraph) as excinfo:
        load_graph(payload)

    assert any("'orphan' is not reachable" in problem for problem in excinfo.value.problems)


def test_unlabeled_cycle_is_malformed() -> None:
    payload = _workflow(
        [_node("a", "agent"), _node("b", "transform", expression="{}")],
        [_edge("start", "a"), _edge("a", "b"), _edge("b", "a")],
    )

    with pytest.raises(MalformedGraph) as excinfo:
        load_graph(payload)

    assert any(problem.startswith("Unlabeled cycle") for problem in excinfo.value.problems)


def test_loop_body_cycle_is_allowed() -> None:
    payload = _workflow(
        [
            _node("loop", "while", condition="state.flag"),
            _node("a", "agent"),
            _node("end", "end"),
        ],
        [
            _edge("start", "loop"),
            _edge("loop", "a", "loopBody"),
            _edge("a", "loop"),
            _edge("loop", "end", "loopExit"),
        ],
        state={"flag": {"type": "bool", "default": False}},
    )

    load_graph(payload)


def test_inner_loop_body_returning_to_outer_loop_is_malformed() -> None:
    payload = _workflow(
        [
            _node("outer", "while", condition="state.flag"),
            _node("inner", "while", condition="state.flag"),
            _node("a", "transform", expression="{}"),
            _node("end", "end"),
        ],
        [
            _edge("start", "outer"),
            _edge("outer", "inner", "loopBody"),
            _edge("inner", "a", "loopBody"),
            _edge("a", "outer"),
            _edge("inner", "end", "loopExit"),
            _edge("outer", "end", "loopExit"),
        ],
        state={"flag": {"type": "bool", "default": True}},
    )

    load_graph(payload)
    with pytest.raises(MalformedGraph) as excinfo:
        compile_workflow(payload)

    assert excinfo.value.node_id == "outer"
    assert "innermost While" in str(excinfo.value)


def test_duplicate_branch_tags_are_malformed() -> None:
    payload = _if_graph([
        _edge("start", "check"),
        _edge("check", "a", "true"),
        _edge("check", "a", "case0"),
        _edge("check", "end", "false"),
        _edge("a", "end"),
    ])

    with pytest.raises(MalformedGraph) as excinfo:
        load_graph(payload)

    assert any("2 outgoing edges tagged 'case0'" in problem for problem in excinfo.value.problems)


def test_branch_tag_invalid_for_kind_is_malformed() -> None:
    payload = _workflow(
        [_node("a", "agent"), _node("end", "end")],
        [_edge("start", "a"), _edge("a", "end", "approve")],
    )

    with pytest.raises(MalformedGraph) as excinfo:
        load_graph(payload)

    assert any("not valid for agent node" in problem for problem in excinfo.value.problems)


def test_every_problem_is_reported_together() -> None:
    payload = _workflow(
        [_node("end", "end"), _node("orphan", "transform", expression="{}")],
        [_edge("start", "end"), _edge("start", "ghost")],
    )

    with pytest.raises(MalformedGraph) as excinfo:
        load_graph(payload)

    problems = excinfo.value.problems
    assert any("unknown node 'ghost'" in problem for problem in problems)
    assert any("'orphan' is not reachable" in problem for problem in problems)


def test_entry_must_be_start_node() -> None:
    payload = {
        "entry_node_id": "a",
        "nodes": [_node("a", "agent")],
        "edges": [],
    }

    with pytest.raises(MalformedGraph) as excinfo:
        load_graph(payload)

    assert "must be a start node" in str(excinfo.value)


def test_duplicate_node_ids_are_malformed() -> None:
    payload = _workflow([_node("start", "end")], [])

    with pytest.raises(MalformedGraph):
        load_graph(payload)


def test_branches_merging_on_non_end_node_are_malformed() -> None:
    payload = _workflow(
        [
            _node("check", "if", cases=[{"condition": "state.flag"}]),
            _node("a", "transform", expression="{}"),
            _node("b", "transform", expression="{}"),
            _node("merge", "agent"),
            _node("end", "end"),
        ],
        [
            _edge("start", "check"),
            _edge("check", "a", "case0"),
            _edge("check", "b", "false"),
            _edge("a", "merge"),
            _edge("b", "merge"),
            _edge("merge", "end"),
        ],
        state={"flag": {"type": "bool"}},
    )

    with pytest.raises(MalformedGraph) as excinfo:
        compile_workflow(payload)

    assert excinfo.value.node_id == "merge"


def test_unknown_node_kind_is_reported_by_name() -> None:
    payload = _workflow([_node("jump", "teleport")], [_edge("start", "jump")])

    with pytest.raises(UnknownNodeKind) as excinfo:
        compile_workflow(payload)

    assert excinfo.value.kind == "teleport"
    assert excinfo.value.node_id == "jump"


def test_condition_on_unknown_field_is_invalid_expression() -> None:
    payload = _if_graph()
    payload["nodes"][1]["config"]["cases"][0]["condition"] = "workflow.nope == 1"

    with pytest.raises(InvalidExpression) as excinfo:
        compile_workflow(payload)

    assert excinfo.value.node_id == "check"


def test_condition_syntax_error_is_invalid_expression() -> None:
    payload = _if_graph()
    payload["nodes"][1]["config"]["cases"][0]["condition"] = "workflow.input_as_text =="

    with pytest.raises(InvalidExpression):
        compile_workflow(payload)


def test_invalid_input_schema_is_invalid_schema() -> None:
    payload = _workflow(
        [_node("end", "end")],
        [_edge("start", "end")],
        input_schema={
            "type": "object",
            "properties": {"input_as_text": {"type": "not-a-type"}},
        },
    )

    with pytest.raises(InvalidSchema):
        compile_workflow(payload)


def test_invalid_agent_output_schema_is_invalid_schema() -> None:
    payload = _workflow(
        [
            _node(
                "a",
                "agent",
                output_format={"type": "json_schema", "schema": {"type": "not-a-type"}},
            ),
            _node("end", "end"),
        ],
        [_edge("start", "a"), _edge("a", "end")],
    )

    with pytest.raises(InvalidSchema):
        compile_workflow(payload)


def test_unknown_edge_tag_is_rejected_while_parsing() -> None:
    payload = _workflow([_node("end", "end")], [_edge("start", "end", "sideways")])

    with pytest.raises(MalformedGraph) as excinfo:
        parse_workflow(payload)

    assert any(problem.startswith("$.edges[0]") for problem in excinfo.value.problems)


def test_parse_accepts_json_text() -> None:
    payload = _workflow([_node("end", "end")], [_edge("start", "end")])

    definition = parse_workflow(json.dumps(payload))

    assert [node.kind for node in definition.nodes] == ["start", "end"]
    assert definition.edges[0].source == "start"


def test_non_finite_state_default_is_malformed() -> None:
    text = (
        '{"entry_node_id": "start", "state": {"ratio": {"type": "number", "default": NaN}},'
        ' "nodes": [{"id": "start", "kind": "start"}, {"id": "end", "kind": "end"}],'
        ' "edges": [{"from": "start", "to": "end"}]}'
    )

    with pytest.raises(MalformedGraph) as excinfo:
        compile_workflow(text)

    assert excinfo.value.problems == ["$.state.ratio.default: nan is not a finite number"]


def test_infinite_number_in_mapping_payload_is_malformed() -> None:
    payload = _workflow(
        [_node("a", "transform", expression="{}"), _node("end", "end")],
        [_edge("start", "a"), _edge("a", "end")],
        state={"limit": {"type": "number", "default": float("inf")}},
    )

    with pytest.raises(MalformedGraph, match="limit"):
        compile_workflow(payload)


def test_parse_rejects_non_object_payload() -> None:
    with pytest.raises(MalformedGraph):
        parse_workflow("[1, 2, 3]")


def test_load_workflow_file_reports_missing_file(tmp_path) -> None:
    with pytest.raises(MalformedGraph):
        load_workflow_file(tmp_path / "missing.json")


def test_all_errors_share_a_base_class() -> None:
    for error in (MalformedGraph, UnknownNodeKind, InvalidExpression, InvalidSchema):
        assert issubclass(error, WorkflowCompilerError)
