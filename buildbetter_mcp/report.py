"""Console output for the CLI."""

from rich.console import Console
from rich.table import Table

from .introspection import FieldDescriptor, TypeDescriptor
from .parser import ValidationReport
from .resolver import format_type_ref
from .tools import ToolResult

console = Console()


def print_types(types: list[TypeDescriptor]) -> None:
    """Print browsable types with their descriptions."""
    console.print(f"\n[bold cyan]Object types ({len(types)})[/bold cyan]\n")

    table = Table(show_header=False, box=None)
    table.add_column("Type", style="cyan")
    table.add_column("Description", style="dim")
    for t in types:
        table.add_row(t.name, t.description or "")

    console.print(table)
    console.print()


def print_fields(type_name: str, fields: list[FieldDescriptor]) -> None:
    """Print fields of one type with formatted GraphQL types."""
    if not fields:
        console.print(f'[yellow]No fields found for type "{type_name}".[/yellow]')
        return

    console.print(f"\n[bold cyan]{type_name}[/bold cyan]\n")

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="cyan")
    table.add_column("Type", style="yellow")
    table.add_column("Description", style="dim")
    for f in fields:
        table.add_row(f.name, format_type_ref(f.type), f.description or "")

    console.print(table)
    console.print()


def print_validation(report: ValidationReport) -> None:
    """Print a validation report with one line per finding."""
    if report.ok:
        console.print("[green]✓ Query is valid[/green]")
    else:
        console.print("[red]✖ Query is invalid[/red]")
    for e in report.errors:
        console.print(f"  [red]✖[/red] {e}")
    for w in report.warnings:
        console.print(f"  [yellow]⚠[/yellow] {w}")


def print_result(result: ToolResult) -> None:
    """Print a tool result; error results are shown in red."""
    style = "red" if result.is_error else None
    for block in result.blocks:
        console.print(block.text, style=style, markup=False, highlight=False)


def print_kv(title: str, data: dict) -> None:
    """
    Print key-value pairs (for schema pull, config init).

    Args:
        title: Section title
        data: Key-value data
    """
    console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="yellow")

    for k, v in data.items():
        table.add_row(k, str(v))

    console.print(table)
    console.print()
