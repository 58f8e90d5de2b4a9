"""
Type-safe configuration for the workflow code generator using Pydantic Settings.

Settings load from environment variables prefixed with ``WORKFLOW_CODEGEN_``
and from a local .env file.

Usage:
    from shared.config import config

    source = compile_workflow(payload, settings=config)
"""
from typing import Literal, Optional
from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CodegenSettings(BaseSettings):
    """
    Options that shape the generated module.

    All configuration is loaded from environment variables or .env file.
    """
    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_CODEGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ============================================================================
    # Layout
    # ============================================================================

    indent: int = Field(default=2, ge=1, le=8, description="Spaces per indentation level in generated code")
    entrypoint_name: str = Field(default="run_workflow", description="Name of the generated async entrypoint")
    input_class_name: str = Field(default="WorkflowInput", description="Name of the generated input model class")

    # ============================================================================
    # Agent defaults
    # ============================================================================

    default_model: str = Field(default="gpt-5", description="Model used when an agent node does not name one")
    default_reasoning_effort: Optional[str] = Field(default="low", description="Reasoning effort used when an agent node sets none")
    default_reasoning_summary: Optional[str] = Field(default="auto", description="Reasoning summary used when an agent node sets none")

    # ============================================================================
    # Tool defaults
    # ============================================================================

    file_search_max_results: int = Field(default=10, ge=1, description="max_num_results for file search nodes without a limit")

    # ============================================================================
    # Logging
    # ============================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Level for the CLI logger"
    )

    @field_validator("entrypoint_name", "input_class_name")
    @classmethod
    def _is_identifier(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"{value!r} is not a valid Python identifier")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    # ============================================================================
    # Computed Properties
    # ============================================================================

    @computed_field
    @property
    def indent_unit(self) -> str:
        """Whitespace for one indentation level."""
        return " " * self.indent


# ============================================================================
# Global Config Instance
# ============================================================================

config = CodegenSettings()
