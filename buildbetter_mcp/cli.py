"""CLI for buildbetter-mcp."""

import json
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from . import config, server, utils
from .client import GraphQLClient
from .introspection import fetch_full_schema, snapshot_from_introspection
from .parser import validate_query_text
from .report import print_fields, print_kv, print_result, print_types, print_validation

app = typer.Typer(help="BuildBetter GraphQL MCP server")
schema_app = typer.Typer(help="Schema operations")
config_app = typer.Typer(help="Configuration")
app.add_typer(schema_app, name="schema")
app.add_typer(config_app, name="config")

console = Console()
# stdout carries the MCP transport, so logs always go to stderr
err_console = Console(stderr=True)

ConfigOption = typer.Option(None, "--config", help="Config file path")


def configure_logging(level: str = "INFO") -> None:
    """Route all logging through a rich handler on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _setup(config_path: Optional[str]) -> config.Config:
    cfg = config.load(config_path)
    configure_logging(cfg.log_level)
    return cfg


@app.command("serve")
def serve_cmd(config_path: Optional[str] = ConfigOption):
    """Start the MCP server on stdio."""
    try:
        cfg = _setup(config_path)
        if not cfg.api_key:
            logging.getLogger(__name__).warning("BUILDBETTER_API_KEY is not set; requests are sent unauthenticated")
        server.serve(cfg)
    except KeyboardInterrupt:
        raise typer.Exit(0)
    except Exception as e:
        err_console.print(f"[red]Error starting server: {e}[/red]")
        raise typer.Exit(1)


@schema_app.command("pull")
def schema_pull(
    out: Optional[str] = typer.Option(None, help="Write the raw introspection JSON to this file"),
    config_path: Optional[str] = ConfigOption,
):
    """Introspect the schema and print a summary."""
    try:
        cfg = _setup(config_path)
        console.print(f"[cyan]Fetching schema from {cfg.endpoint}...[/cyan]")
        raw = fetch_full_schema(GraphQLClient.from_config(cfg))
        snapshot = snapshot_from_introspection(raw)

        summary = {"url": cfg.endpoint, "hash": utils.sha256(raw), "types": len(snapshot.types)}
        if out:
            utils.ensure_dir(utils.dirname(out))
            utils.write_json(out, raw)
            summary["path"] = out
        print_kv("Schema pulled", summary)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command("types")
def types_cmd(config_path: Optional[str] = ConfigOption):
    """List browsable object types."""
    try:
        cfg = _setup(config_path)
        toolbox, _, _ = server.build_components(cfg)
        print_types(toolbox.resolver.browsable_types())
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command("fields")
def fields_cmd(
    type_name: str = typer.Argument(..., help="GraphQL type name"),
    config_path: Optional[str] = ConfigOption,
):
    """Show the fields of one type."""
    try:
        cfg = _setup(config_path)
        toolbox, _, _ = server.build_components(cfg)
        print_fields(type_name, toolbox.resolver.fields(type_name))
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command("query")
def query_cmd(
    query_file: str = typer.Argument(..., help="GraphQL query file"),
    variables: Optional[str] = typer.Option(None, help="Variables as a JSON object"),
    validate_only: bool = typer.Option(False, "--validate", help="Validate without executing"),
    config_path: Optional[str] = ConfigOption,
):
    """Run (or validate) a read-only query file."""
    try:
        cfg = _setup(config_path)
        toolbox, _, _ = server.build_components(cfg)
        text = utils.read_text(query_file)

        if validate_only:
            report = validate_query_text(text, toolbox.resolver)
            print_validation(report)
            exit_code = 0 if report.ok else 2
        else:
            arguments = {"query": text}
            if variables:
                arguments["variables"] = json.loads(variables)
            result = toolbox.call("run-query", arguments)
            print_result(result)
            exit_code = 2 if result.is_error else 0

        if exit_code != 0:
            raise typer.Exit(exit_code)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@config_app.command("init")
def config_init(path: Optional[str] = typer.Option(None, help="Where to write the example config")):
    """Write an example config file."""
    try:
        written = config.create_example_config(path)
        print_kv("Config written", {"path": written})
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
