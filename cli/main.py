#!/usr/bin/env python3
"""
CLI for the workflow code generator.

Usage:
    workflow-codegen compile workflow.json -o workflow.py
    workflow-codegen validate workflow.json
    workflow-codegen config
"""
import json
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

# Load .env before the settings module reads the environment
load_dotenv()

console = Console()
err_console = Console(stderr=True)

# Global verbose flag
VERBOSE = False


def _report_error(exc: Exception) -> None:
    from workflow_codegen.errors import MalformedGraph

    err_console.print(f"[bold red]❌ {type(exc).__name__}:[/bold red]", highlight=False)
    if isinstance(exc, MalformedGraph):
        for problem in exc.problems:
            err_console.print(f"  • {problem}", highlight=False, markup=False)
    else:
        err_console.print(f"  {exc}", highlight=False, markup=False)
    if VERBOSE:
        err_console.print_exception()


def _logger():
    from shared.config import config as codegen_config
    from shared.logger import get_logger

    level = "DEBUG" if VERBOSE else codegen_config.log_level
    return get_logger("workflow_codegen", level)


@click.group()
@click.version_option(version="0.1.0", prog_name="workflow-codegen")
@click.option('--verbose', '-v', is_flag=True, help='Show debug logs and full error tracebacks')
def cli(verbose: bool):
    """
    Workflow Codegen - compile agent workflow graphs into Python modules.

    \b
    Commands:
      compile   - Generate the Python module for a workflow JSON file
      validate  - Check a workflow graph without writing anything
      config    - Show the active code generation settings

    \b
    Examples:
      workflow-codegen compile workflow.json -o workflow.py
      workflow-codegen -v validate workflow.json
    """
    global VERBOSE
    VERBOSE = verbose


@cli.command(name="compile")
@click.argument('workflow_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Write the module here instead of stdout')
def compile_command(workflow_file: Path, output: Optional[Path]):
    """
    Compile WORKFLOW_FILE into Python source.

    Nothing is written when compilation fails.
    """
    from workflow_codegen import compile_file
    from workflow_codegen.errors import WorkflowCompilerError

    logger = _logger()
    try:
        source = compile_file(workflow_file)
    except WorkflowCompilerError as exc:
        logger.debug("compilation of %s failed", workflow_file)
        _report_error(exc)
        sys.exit(1)

    if output is None:
        click.echo(source, nl=False)
        return

    output.write_text(source, encoding="utf-8")
    logger.info("wrote %s", output)
    console.print(f"[green]✓[/green] Wrote {output}", highlight=False)


@cli.command()
@click.argument('workflow_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(workflow_file: Path):
    """
    Validate the structure of WORKFLOW_FILE.
    """
    from workflow_codegen import load_graph
    from workflow_codegen.compiler.parse import load_workflow_file
    from workflow_codegen.errors import WorkflowCompilerError

    _logger()
    try:
        graph = load_graph(load_workflow_file(workflow_file))
    except WorkflowCompilerError as exc:
        _report_error(exc)
        sys.exit(1)

    console.print(Panel.fit(
        f"[bold green]✓ {graph.definition.name or workflow_file.name}[/bold green]\n"
        f"[dim]{len(graph.nodes)} nodes, {len(graph.definition.edges)} edges[/dim]",
        border_style="green"
    ))


@cli.command()
@click.option('--format', '-f', 'fmt', type=click.Choice(['json', 'table']), default='table', help='Output format')
def config(fmt: str):
    """
    Show current configuration.

    Displays settings loaded from WORKFLOW_CODEGEN_* environment variables and .env file.
    """
    from shared.config import config as codegen_config

    sections = {
        "Layout": [
            ("indent", "WORKFLOW_CODEGEN_INDENT"),
            ("entrypoint_name", "WORKFLOW_CODEGEN_ENTRYPOINT_NAME"),
            ("input_class_name", "WORKFLOW_CODEGEN_INPUT_CLASS_NAME"),
        ],
        "Agent Defaults": [
            ("default_model", "WORKFLOW_CODEGEN_DEFAULT_MODEL"),
            ("default_reasoning_effort", "WORKFLOW_CODEGEN_DEFAULT_REASONING_EFFORT"),
            ("default_reasoning_summary", "WORKFLOW_CODEGEN_DEFAULT_REASONING_SUMMARY"),
        ],
        "Tools": [
            ("file_search_max_results", "WORKFLOW_CODEGEN_FILE_SEARCH_MAX_RESULTS"),
        ],
        "Logging": [
            ("log_level", "WORKFLOW_CODEGEN_LOG_LEVEL"),
        ],
    }

    if fmt == 'json':
        output = {
            section: {attr: getattr(codegen_config, attr, None) for attr, _ in items}
            for section, items in sections.items()
        }
        click.echo(json.dumps(output, indent=2, default=str))
        return

    console.print(Panel.fit(
        "[bold cyan]Workflow Codegen Configuration[/bold cyan]",
        border_style="cyan"
    ))
    for section, items in sections.items():
        table = Table(title=section, box=box.ROUNDED)
        table.add_column("Setting", style="cyan")
        table.add_column("Env Variable", style="dim")
        table.add_column("Value")

        for attr, env_var in items:
            value = getattr(codegen_config, attr, None)
            display_value = "[dim]not set[/dim]" if value is None else str(value)
            table.add_row(attr, env_var, display_value)

        console.print(table)
        console.print()


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
