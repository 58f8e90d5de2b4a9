"""
Stage 1: Parse JSON into a strongly typed WorkflowDefinition.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Iterator, Mapping, Union

from pydantic import ValidationError

from workflow_codegen.errors import MalformedGraph, UnknownNodeKind
from workflow_codegen.schema.models import NODE_KINDS, WorkflowDefinition


def parse_workflow(payload: Any) -> WorkflowDefinition:
    """
    Accepts a JSON string, a mapping compatible with the WorkflowDefinition
    layout, or an existing WorkflowDefinition and returns a validated model.
    """

    if isinstance(payload, WorkflowDefinition):
        return payload

    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise MalformedGraph(f"Invalid workflow JSON payload: {exc}") from exc
    elif isinstance(payload, Mapping):
        data = payload
    else:
        raise MalformedGraph(
            f"Unsupported payload type {type(payload).__name__}; expected str or Mapping"
        )

    if not isinstance(data, Mapping):
        raise MalformedGraph("Workflow payload must be a JSON object")

    _check_node_kinds(data)
    non_finite = list(_non_finite_numbers(data, "$"))
    if non_finite:
        raise MalformedGraph([f"{location}: {value!r} is not a finite number" for location, value in non_finite])

    try:
        return WorkflowDefinition.model_validate(data)
    except ValidationError as exc:
        problems = [_format_validation_error(error) for error in exc.errors()]
        raise MalformedGraph(problems) from exc


def load_workflow_file(path: Union[str, Path]) -> WorkflowDefinition:
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise MalformedGraph(f"Cannot read workflow file {file_path}: {exc}") from exc
    return parse_workflow(text)


def _check_node_kinds(data: Mapping[str, Any]) -> None:
    # Reported before model validation, which would only say the union tag did not match.
    nodes = data.get("nodes")
    if not isinstance(nodes, list):
        return
    for raw in nodes:
        if not isinstance(raw, Mapping):
            continue
        kind = raw.get("kind")
        if isinstance(kind, str) and kind not in NODE_KINDS:
            node_id = raw.get("id")
            raise UnknownNodeKind(kind, node_id=node_id if isinstance(node_id, str) else None)


def _format_validation_error(error: Mapping[str, Any]) -> str:
    location = "$"
    for token in error.get("loc", ()):
        if isinstance(token, int):
            location += f"[{token}]"
        else:
            location += f".{token}"
    return f"{location}: {error.get('msg')}"


def _non_finite_numbers(value: Any, location: str) -> Iterator[tuple[str, float]]:
    # json.loads accepts NaN and Infinity; generated modules cannot spell them.
    if isinstance(value, float):
        if not math.isfinite(value):
            yield location, value
    elif isinstance(value, Mapping):
        for key, item in value.items():
            yield from _non_finite_numbers(item, f"{location}.{key}")
    elif isinstance(value, list):
        for index, item in enumerate(value):
            yield from _non_finite_numbers(item, f"{location}[{index}]")
