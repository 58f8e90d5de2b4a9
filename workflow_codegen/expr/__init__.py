from workflow_codegen.expr.python import ExpressionScope, compile_expression

__all__ = ["ExpressionScope", "compile_expression"]
