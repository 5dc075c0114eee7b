"""
Command-line interface for kubesage.

Main entry point for the kubesage CLI application.
"""
import asyncio

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from kubesage import __version__
from kubesage.agents.assistant import build_orchestrator, build_registry
from kubesage.config import load_config
from kubesage.llm.errors import LLMConfigurationError
from kubesage.utils.logging import bind_request, configure_logging

app = typer.Typer(
    name="kubesage",
    help="Ask questions about your Kubernetes cluster in plain language",
    add_completion=False,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging, including prompts and tool calls"),
) -> None:
    config = load_config()
    configure_logging("DEBUG" if verbose else config.log_level, json=config.log_json)


@app.command()
def ask(
    request: str = typer.Argument(..., help="What you want to know or do, e.g. 'list pods in kube-system'"),
    raw: bool = typer.Option(False, "--raw", help="Print the HTML response without highlighting"),
) -> None:
    """Answer a single request and print the HTML response."""
    config = load_config()
    try:
        orchestrator = build_orchestrator(config)
    except LLMConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    bind_request()
    html = asyncio.run(orchestrator.invoke(request))
    if raw:
        typer.echo(html)
    else:
        console.print(Syntax(html, "html", word_wrap=True))


@app.command("serve")
def serve(
    host: str = typer.Option(None, help="Host to bind the server to (default from config)"),
    port: int = typer.Option(None, help="Port to bind the server to (default from config)"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Start the kubesage REST API server."""
    import uvicorn

    config = load_config()
    host = host or config.api_host
    port = port or config.api_port
    console.print(f"[green]Starting kubesage API server on http://{host}:{port}[/green]")
    try:
        uvicorn.run("kubesage.api:app", host=host, port=port, reload=reload)
    except Exception as e:
        console.print(f"[red]Error starting server: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def tools() -> None:
    """List the cluster tools available to the assistant."""
    registry = build_registry(load_config())
    table = Table(title="kubesage Tools")
    table.add_column("Plugin", style="cyan")
    table.add_column("Tool", style="green", no_wrap=True)
    table.add_column("Description")
    for plugin in registry.plugins:
        for tool in plugin.get_tools():
            description = (tool.__doc__ or "").strip().splitlines()
            table.add_row(plugin.name, tool.__name__, description[0] if description else "")
    console.print(table)


@app.command()
def version() -> None:
    """Show the kubesage version."""
    console.print(f"kubesage {__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
