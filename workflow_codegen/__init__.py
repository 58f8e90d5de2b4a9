"""
Public entrypoint for compiling workflow graphs into Python source.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from shared.config import CodegenSettings, config
from workflow_codegen.compiler.assemble import generate_source
from workflow_codegen.compiler.graph import WorkflowGraph
from workflow_codegen.compiler.parse import load_workflow_file, parse_workflow
from workflow_codegen.compiler.validate_graph import validate_graph
from workflow_codegen.errors import (
    InvalidExpression,
    InvalidSchema,
    MalformedGraph,
    UnknownNodeKind,
    WorkflowCompilerError,
)


def load_graph(payload: Any) -> WorkflowGraph:
    """
    Parse and structurally validate a workflow, returning its graph arena.
    """

    graph = WorkflowGraph.build(parse_workflow(payload))
    validate_graph(graph)
    return graph


def compile_workflow(payload: Any, *, settings: Optional[CodegenSettings] = None) -> str:
    """
    Compile a workflow definition (JSON text, mapping or WorkflowDefinition)
    into the source of a Python module. Raises a WorkflowCompilerError
    subclass and returns nothing when the workflow cannot be compiled.
    """

    return generate_source(load_graph(payload), settings or config)


def compile_file(path: Union[str, Path], *, settings: Optional[CodegenSettings] = None) -> str:
    return generate_source(load_graph(load_workflow_file(path)), settings or config)


__all__ = [
    "CodegenSettings",
    "InvalidExpression",
    "InvalidSchema",
    "MalformedGraph",
    "UnknownNodeKind",
    "WorkflowCompilerError",
    "compile_file",
    "compile_workflow",
    "load_graph",
]
