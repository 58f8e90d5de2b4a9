"""
Guardrail node emission.

Each node is one pipeline stage: load its policy bundle, run the checks over
an input text, then derive a tripwire flag, the checked text and the stage
output. The linearizer turns the tripwire into a guarded continuation.
"""

from __future__ import annotations

from typing import Any, Dict, List

from workflow_codegen.compiler.context import (
    GUARDRAIL_CTX,
    WORKFLOW,
    Declaration,
    EmitContext,
    GuardSpec,
    NodeEmission,
    PathState,
    Section,
)
from workflow_codegen.compiler.statements import Raw, Sequence, Try
from workflow_codegen.emitters.literals import PyExpr, assignment, format_literal
from workflow_codegen.emitters.tools import SHARED_CLIENT_IMPORTS, shared_client_declaration
from workflow_codegen.expr.python import render_literal
from workflow_codegen.schema.models import GuardrailNode, GuardrailPolicy

HELPER_NAMES = (
    "guardrails_has_tripwire",
    "get_guardrail_checked_text",
    "build_guardrail_fail_output",
)

_FAILURE_KEYS = (
    "flagged",
    "confidence",
    "threshold",
    "hallucination_type",
    "hallucinated_statements",
    "verified_statements",
)


def policy_entry(policy: GuardrailPolicy) -> Dict[str, Any]:
    config = policy.config
    if policy.type == "moderation":
        return {"name": "Moderation", "config": {"categories": list(config.get("categories") or [])}}
    if policy.type == "pii":
        return {
            "name": "Contains PII",
            "config": {
                "block": config.get("block") is True,
                "entities": list(config.get("entities") or []),
            },
        }
    if policy.type == "jailbreak":
        return {
            "name": "Jailbreak",
            "config": {
                "model": config.get("model") or "gpt-4o-mini",
                "confidence_threshold": config.get("confidence_threshold") or 0.7,
            },
        }
    return {"name": policy.type, "config": dict(config)}


def helper_declaration(unit: str) -> Declaration:
    u1, u2, u3, u4 = unit, unit * 2, unit * 3, unit * 4
    keys = ", ".join(render_literal(key) for key in _FAILURE_KEYS)
    lines = (
        "",
        "def guardrails_has_tripwire(results):",
        f'{u1}return any(getattr(r, "tripwire_triggered", False) is True for r in (results or []))',
        "",
        "def get_guardrail_checked_text(results, fallback_text):",
        f"{u1}for r in (results or []):",
        f'{u2}info = getattr(r, "info", None) or {{}}',
        f'{u2}if isinstance(info, dict) and ("checked_text" in info):',
        f'{u3}return info.get("checked_text") or fallback_text',
        f"{u1}return fallback_text",
        "",
        "def build_guardrail_fail_output(results):",
        f"{u1}failures = []",
        f"{u1}for r in (results or []):",
        f'{u2}if getattr(r, "tripwire_triggered", False):',
        f'{u3}info = getattr(r, "info", None) or {{}}',
        f"{u3}failure = {{",
        f'{u4}"guardrail_name": info.get("guardrail_name"),',
        f"{u3}}}",
        f"{u3}for key in ({keys}):",
        f"{u4}if key in (info or {{}}):",
        f"{u4}{u1}failure[key] = info.get(key)",
        f"{u3}failures.append(failure)",
        f'{u1}return {{"failed": len(failures) > 0, "failures": failures}}',
    )
    return Declaration(key="guardrail_helpers", section=Section.guardrail_helpers, lines=lines)


def emit_guardrail(node: GuardrailNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    unit = ctx.indent
    config = node.config
    symbols = ctx.symbols

    bundle = symbols.allocate("guardrails_config")
    inputtext = symbols.allocate("guardrails_inputtext")
    result = symbols.allocate("guardrails_result")
    tripwire = symbols.allocate("guardrails_hastripwire")
    checked = symbols.allocate("guardrails_anonymizedtext")
    output = symbols.allocate("guardrails_output")

    if config.input and config.input.strip():
        source = ctx.expression(config.input, path, node.id)
    elif path.guardrail_text is not None:
        source = path.guardrail_text
    else:
        source = f"{WORKFLOW}[{render_literal(ctx.graph.definition.input_text_field)}]"

    bundle_value = {"guardrails": [policy_entry(policy) for policy in config.guardrails]}
    declarations = [
        shared_client_declaration(),
        Declaration(
            key=f"guardrails_bundle:{bundle}",
            section=Section.guardrail_bundles,
            lines=assignment(bundle, format_literal(bundle_value, unit)),
        ),
        helper_declaration(unit),
    ]

    stage = Raw.of(
        f"{result} = await run_guardrails({GUARDRAIL_CTX}, {inputtext}, \"text/plain\", "
        f"instantiate_guardrails(load_config_bundle({bundle})), suppress_tripwire=True)",
        f"{tripwire} = guardrails_has_tripwire({result})",
        f"{checked} = get_guardrail_checked_text({result}, {inputtext})",
        f"{output} = ({tripwire} and build_guardrail_fail_output({result} or [])) "
        f"or ({checked} or {inputtext})",
    )

    statements: List[Any] = [Raw.of(f"{inputtext} = {source}")]
    if config.continue_on_error:
        error = symbols.allocate("guardrails_error")
        error_record = symbols.allocate("guardrails_errorresult")
        handler = Sequence([
            Raw(assignment(
                error_record,
                format_literal(
                    {"message": PyExpr(f'getattr({error}, "message", "Unknown error")')},
                    unit,
                ),
            )),
            Raw.of(
                f"{result} = []",
                f"{tripwire} = False",
                f"{checked} = {inputtext}",
                f"{output} = {inputtext}",
            ),
        ])
        statements.append(Try(body=Sequence([stage]), error_name=error, handler=handler))
    else:
        statements.append(stage)

    return NodeEmission(
        statements=statements,
        result=output,
        imports=list(SHARED_CLIENT_IMPORTS) + [
            ("guardrails.runtime", "load_config_bundle"),
            ("guardrails.runtime", "instantiate_guardrails"),
            ("guardrails.runtime", "run_guardrails"),
        ],
        declarations=declarations,
        guard=GuardSpec(condition=tripwire, continue_when=False, fallback_value=output),
        checked_text=checked,
    )

