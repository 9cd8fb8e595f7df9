"""
AgentFlow PRO - Main Entry Point

CLI for the Designer Agent: chat your way to an automation blueprint,
then validate and inspect stored blueprints.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from agentflow.config import load_settings
from agentflow.designer import (
    AutomationBlueprint,
    ConversationManager,
    ConversationStage,
    ConversationState,
    DesignMode,
    parse_blueprint,
    validate_blueprint,
)
from agentflow.designer.credentials import all_credential_specs
from agentflow.exceptions import ConfigurationError
from agentflow.llm.router import build_router
from agentflow.observability.logging_config import configure_logging

root_env = Path(__file__).parent / ".env"
if root_env.exists():
    load_dotenv(root_env, override=True)
else:
    load_dotenv(override=True)

app = typer.Typer(
    name="agentflow",
    help="AgentFlow PRO - Designer Agent",
)
console = Console()

EXIT_WORDS = ("exit", "quit")


@app.callback()
def _setup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    configure_logging(level=logging.DEBUG if verbose else logging.WARNING)


def _read_json(path: Path) -> dict:
    """Read a JSON document, with a friendly error on failure."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        console.print(f"[red]File not found:[/] {path}")
        raise typer.Exit(code=1)
    except json.JSONDecodeError as e:
        console.print(f"[red]Not valid JSON:[/] {path} ({e})")
        raise typer.Exit(code=1)


def _blueprint_table(state: ConversationState) -> Table:
    blueprint = state.blueprint
    table = Table(title=f"Blueprint: {blueprint.workflow_name}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Workflow ID", blueprint.workflow_id)
    table.add_row("Type", blueprint.type)
    table.add_row("Status", blueprint.status)
    if isinstance(blueprint, AutomationBlueprint):
        table.add_row("Steps", str(len(blueprint.steps)))
        table.add_row("AI steps", str(len(blueprint.ai_steps)))
        table.add_row("Trigger", blueprint.triggers.type)
    else:
        table.add_row("Agents", str(len(blueprint.agents)))
        table.add_row("Has manager", str(blueprint.team_structure.has_manager))
    table.add_row("Integrations", ", ".join(i.service for i in blueprint.integrations) or "None")
    return table


# =========================================================================
# Commands
# =========================================================================


@app.command()
def chat(
    state_file: Optional[Path] = typer.Option(
        None, "--state-file", help="Load/save the session state here",
    ),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Owner of the session"),
    mode: str = typer.Option("automation", "--mode", help="automation | workforce"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings YAML"),
):
    """Design an automation by chatting with the Designer Agent."""
    if mode not in ("automation", "workforce"):
        console.print(f"[red]Unknown mode:[/] {mode} (use automation or workforce)")
        raise typer.Exit(code=1)

    try:
        settings = load_settings(config)
    except ConfigurationError as e:
        console.print(Panel(f"[red]{e}[/]", title="⚠ Configuration Error", border_style="red"))
        raise typer.Exit(code=1)

    manager = ConversationManager(user_id=user_id, generator=build_router(settings), settings=settings)

    if state_file is not None and state_file.exists():
        try:
            manager.load_state(state_file.read_text(encoding="utf-8"))
        except ValidationError as e:
            console.print(Panel(
                f"[red]{state_file} is not a saved session ({e.error_count()} error(s))[/]",
                title="⚠ State File Error", border_style="red",
            ))
            raise typer.Exit(code=1)
        console.print(f"[dim]Resumed session {manager.get_state().session_id} "
                      f"at stage {manager.stage.value}[/]")
    else:
        greeting = manager.initialize_conversation()
        if mode == "workforce":
            state = manager.get_state()
            state.design_mode = DesignMode.AI_WORKFORCE
            manager.load_state(state)
        console.print(Panel(greeting, title="Designer Agent", border_style="cyan"))

    async def _run():
        while manager.stage != ConversationStage.COMPLETE:
            message = Prompt.ask("[bold green]You[/]")
            if message.strip().lower() in EXIT_WORDS:
                break
            if not message.strip():
                continue

            reply = await manager.process_user_message(message)
            console.print(Panel(reply, title="Designer Agent", border_style="cyan"))

            state = manager.get_state()
            if state_file is not None:
                state_file.write_text(state.to_document(), encoding="utf-8")
            if state.blueprint is not None:
                console.print(_blueprint_table(state))

    asyncio.run(_run())


@app.command()
def validate(
    path: Path = typer.Argument(..., help="Stored blueprint JSON"),
):
    """Validate a stored blueprint."""
    document = _read_json(path)
    report = validate_blueprint(document)

    if report.is_valid:
        console.print(Panel(
            f"[green]Blueprint valid![/]\n\n"
            f"Workflow: {document.get('workflow_name')}\n"
            f"Type: {document.get('type', 'unknown')}",
            title=f"Blueprint: {path.name}",
        ))
        return

    errors = "\n".join(f"- {error}" for error in report.errors)
    console.print(Panel(
        f"[red]Blueprint invalid ({len(report.errors)} error(s))[/]\n\n{errors}",
        title=f"Blueprint: {path.name}",
        border_style="red",
    ))
    raise typer.Exit(code=1)


@app.command()
def platforms():
    """List the platforms the credential registry knows about."""
    table = Table(title="Credential Registry")
    table.add_column("Platform", style="cyan")
    table.add_column("Auth", style="white")
    table.add_column("Required fields", style="green")
    table.add_column("Scopes", style="yellow")

    for spec in all_credential_specs():
        table.add_row(
            spec.display_name,
            spec.auth_type,
            ", ".join(f.name for f in spec.required_fields),
            ", ".join(spec.scopes),
        )
    console.print(table)


@app.command()
def diagram(
    path: Path = typer.Argument(..., help="Stored blueprint JSON"),
):
    """Show the nodes and edges of a stored blueprint's diagram."""
    document = _read_json(path)
    try:
        blueprint = parse_blueprint(document)
    except ValueError as e:
        console.print(f"[red]Could not load blueprint:[/] {e}")
        raise typer.Exit(code=1)

    nodes = Table(title=f"Nodes ({len(blueprint.reactflow_diagram.nodes)})")
    nodes.add_column("ID", style="cyan")
    nodes.add_column("Type", style="white")
    nodes.add_column("Label", style="green")
    nodes.add_column("Position", style="dim")
    for node in blueprint.reactflow_diagram.nodes:
        nodes.add_row(
            node.id,
            node.type,
            str(node.data.get("label", "")),
            f"({node.position.x:g}, {node.position.y:g})",
        )

    edges = Table(title=f"Edges ({len(blueprint.reactflow_diagram.edges)})")
    edges.add_column("ID", style="cyan")
    edges.add_column("From", style="white")
    edges.add_column("To", style="white")
    edges.add_column("Label", style="green")
    for edge in blueprint.reactflow_diagram.edges:
        edges.add_row(edge.id, edge.source, edge.target, edge.label or "")

    console.print(nodes)
    console.print(edges)


if __name__ == "__main__":
    app()
