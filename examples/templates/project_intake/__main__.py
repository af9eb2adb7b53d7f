"""
CLI entry point for the Project Intake workflow.

Serves the orchestrator and its participant tools over MCP stdio.
"""

import json
import sys

import click

from mcp_workflow.observability import configure_logging

from .agent import default_workflow


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """Project Intake - collect and confirm the details of a new mobile project."""
    pass


@cli.command()
@click.option("--verbose", "-v", is_flag=True, help="Show execution details")
@click.option("--debug", is_flag=True, help="Show debug logging")
def serve(verbose, debug):
    """Run the MCP server on stdio."""
    config = default_workflow.config
    level = "DEBUG" if debug else "INFO" if verbose else config.log_level
    log_file = config.well_known_directory.workflow_logs_path if config.log_to_file else None
    # stdout carries JSON-RPC; logs go to stderr and the JSONL file
    configure_logging(level=level, format=config.log_format, log_file=log_file)

    mcp = default_workflow.create_server()
    mcp.run()


@cli.command()
@click.option("--json", "output_json", is_flag=True)
def info(output_json):
    """Show workflow information."""
    info_data = default_workflow.info()
    if output_json:
        click.echo(json.dumps(info_data, indent=2))
    else:
        click.echo(f"Workflow: {info_data['name']}")
        click.echo(f"Version: {info_data['version']}")
        click.echo(f"Description: {info_data['description']}")
        click.echo(f"\nNodes: {', '.join(info_data['nodes'])}")
        click.echo(f"Entry: {info_data['entry_node']}")
        click.echo(f"Failure: {info_data['failure_node']}")


@cli.command()
def validate():
    """Validate workflow structure."""
    validation = default_workflow.validate()
    if validation["valid"]:
        click.echo("Workflow is valid")
    else:
        click.echo("Workflow has errors:")
        for error in validation["errors"]:
            click.echo(f"  ERROR: {error}")
    sys.exit(0 if validation["valid"] else 1)


if __name__ == "__main__":
    cli()
