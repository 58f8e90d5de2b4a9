from workflow_codegen.schema.models import (
    BranchTag,
    Edge,
    Node,
    NodeKind,
    StateDeclaration,
    StateType,
    WorkflowDefinition,
)

__all__ = [
    "BranchTag",
    "Edge",
    "Node",
    "NodeKind",
    "StateDeclaration",
    "StateType",
    "WorkflowDefinition",
]
