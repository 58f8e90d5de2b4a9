from __future__ import annotations

from typing import Any, Dict

from jsonschema.exceptions import SchemaError
from jsonschema.validators import Draft202012Validator, validator_for

from workflow_codegen.errors import InvalidSchema
from workflow_codegen.schema.models import JsonSchema

_PYTHON_TYPES: Dict[str, str] = {
    "string": "str",
    "number": "float",
    "integer": "int",
    "boolean": "bool",
    "array": "list",
    "object": "dict",
}


def check_schema(schema: JsonSchema, *, context: str) -> None:
    """
    Ensure the provided schema is itself valid JSON Schema.
    """

    if not isinstance(schema, dict):
        raise InvalidSchema(f"{context}: schema must be a JSON object")
    validator_cls = validator_for(schema, default=Draft202012Validator)
    try:
        validator_cls.check_schema(schema)
    except SchemaError as exc:
        raise InvalidSchema(f"{context}: {format_schema_error(exc)}") from exc


def format_schema_error(error: SchemaError, *, prefix: str = "$") -> str:
    """
    Convert a jsonschema.SchemaError into a human-friendly error string.
    """

    path = prefix
    for token in error.absolute_path:
        if isinstance(token, int):
            path += f"[{token}]"
        else:
            path += f".{token}"
    return f"{path}: {error.message}"


def python_type_name(property_schema: Any) -> str:
    """
    Map a property schema onto the annotation used in generated code.
    Unknown or missing types become ``Any``.
    """

    if not isinstance(property_schema, dict):
        return "Any"
    schema_type = property_schema.get("type")
    if isinstance(schema_type, list):
        concrete = [item for item in schema_type if item != "null"]
        schema_type = concrete[0] if len(concrete) == 1 else None
    if not isinstance(schema_type, str):
        return "Any"
    return _PYTHON_TYPES.get(schema_type, "Any")


__all__ = [
    "SchemaError",
    "check_schema",
    "format_schema_error",
    "python_type_name",
]
