"""
CLI for the valuation engine.

Commands:
    ve dcf INPUT.json - Run a DCF valuation from a JSON input file
    ve multiples INPUT.json - Run a comparable multiples valuation
    ve history COMPANY_ID - List stored valuations for a company
    ve serve - Run the HTTP API
    ve config - Show current configuration
    ve version - Print version
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ve import __version__
from ve.config import Settings, get_settings
from ve.exceptions import ConfigurationError, DomainError, ValidationError
from ve.logging import setup_logging
from ve.service import ValuationService
from ve.types import ValuationMethod
from ve.valuation.engine import calculate
from ve.valuation.excel_export import ValuationExporter
from ve.valuation.results import DcfResult, MultiplesResult, ValuationResult
from ve.workspace.store import ValuationStore

app = typer.Typer(
    name="ve",
    help="Company valuation - DCF and comparable multiples",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show engine log messages")
    ] = False,
) -> None:
    """Configure logging before any command runs."""
    try:
        settings = get_settings()
    except ConfigurationError as e:
        error_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)
    setup_logging(
        log_level=settings.LOG_LEVEL if verbose else "WARNING",
        log_file=settings.LOG_FILE,
    )


def _load_input(path: Path) -> dict[str, Any]:
    """Read a JSON object from a file, exiting on failure."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        error_console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        error_console.print(f"[red]Error:[/red] {path} is not valid JSON: {e}")
        raise typer.Exit(1)
    if not isinstance(data, dict):
        error_console.print(f"[red]Error:[/red] {path} must contain a JSON object")
        raise typer.Exit(1)
    return data


def _money(value: float) -> str:
    return f"{value:,.2f}"


def _print_dcf(result: DcfResult) -> None:
    summary = Table(show_header=False, box=None)
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="green", justify="right")
    summary.add_row("WACC", f"{result.wacc:.2%}")
    summary.add_row("Terminal growth", f"{result.assumptions.terminal_growth_rate:.2%}")
    summary.add_row("PV of explicit FCF", _money(result.sum_of_present_values))
    summary.add_row("Terminal value", _money(result.terminal_value))
    summary.add_row("PV of terminal value", _money(result.present_value_of_terminal_value))
    summary.add_row("Enterprise value", _money(result.enterprise_value))
    summary.add_row("Net debt", _money(result.assumptions.net_debt))
    summary.add_row("[bold]Equity value[/bold]", f"[bold]{_money(result.equity_value)}[/bold]")
    if result.equity_value_per_share is not None:
        summary.add_row("Equity value per share", _money(result.equity_value_per_share))
    console.print(Panel(summary, title="DCF Valuation", expand=False))

    flows = Table(title="Free Cash Flows")
    flows.add_column("Year", justify="right")
    flows.add_column("FCF", justify="right")
    flows.add_column("Present value", justify="right")
    for i, (fcf, pv) in enumerate(zip(result.free_cash_flows, result.present_values)):
        flows.add_row(str(i + 1), _money(fcf), _money(pv))
    console.print(flows)

    matrix = result.sensitivity
    sens = Table(title="Sensitivity (equity value)")
    sens.add_column("WACC \\ g", style="cyan")
    for g in matrix.terminal_growth_values:
        sens.add_column(f"{g:.2%}", justify="right")
    mid = len(matrix.wacc_values) // 2
    for r, (wacc, row) in enumerate(zip(matrix.wacc_values, matrix.values)):
        cells = [
            f"[bold]{_money(v)}[/bold]" if r == mid and c == mid else _money(v)
            for c, v in enumerate(row)
        ]
        sens.add_row(f"{wacc:.2%}", *cells)
    console.print(sens)


def _print_multiples(result: MultiplesResult) -> None:
    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    for key, value in result.valuations.items():
        table.add_row(key, _money(value))
    if not result.valuations:
        table.add_row("[yellow]No complete multiple/metric pair[/yellow]", "")
    table.add_row("Average valuation", _money(result.average_valuation))
    table.add_row("Liquidity discount", f"{result.liquidity_discount:.2%}")
    table.add_row("Control premium", f"{result.control_premium:.2%}")
    table.add_row(
        "[bold]Adjusted valuation[/bold]", f"[bold]{_money(result.adjusted_valuation)}[/bold]"
    )
    console.print(Panel(table, title="Multiples Valuation", expand=False))


def _run(
    method: ValuationMethod,
    input_file: Path,
    as_json: bool,
    export: Optional[Path],
    company_id: Optional[int],
    notes: Optional[str],
) -> None:
    settings = get_settings()
    data = _load_input(input_file)

    result: ValuationResult
    try:
        if company_id is not None:
            settings.ensure_directories()
            store = ValuationStore(settings.DATABASE_PATH)
            try:
                service = ValuationService(store, settings.DEFAULT_PROJECTION_YEARS)
                record, result = service.record_valuation(
                    company_id, method, data, notes=notes
                )
            finally:
                store.close()
        else:
            result = calculate(
                method, data, default_projection_years=settings.DEFAULT_PROJECTION_YEARS
            )
    except ValidationError as e:
        error_console.print(f"[red]Invalid input:[/red] {e.message}")
        for violation in e.violations:
            error_console.print(f"  - {violation}")
        raise typer.Exit(1)
    except DomainError as e:
        error_console.print(f"[red]Valuation undefined:[/red] {e}")
        raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
    elif isinstance(result, DcfResult):
        _print_dcf(result)
    else:
        _print_multiples(result)

    if company_id is not None:
        console.print(f"[dim]Recorded valuation {record.id} for company {company_id}[/dim]")

    if export is not None:
        if not export.is_absolute():
            export = settings.OUTPUT_DIR / export
        for path in ValuationExporter().export(result, export):
            console.print(f"[dim]Exported {path}[/dim]")


InputFile = Annotated[Path, typer.Argument(help="JSON file with the valuation inputs")]
JsonOption = Annotated[bool, typer.Option("--json", help="Print the raw result JSON")]
ExportOption = Annotated[
    Optional[Path],
    typer.Option(
        "--export",
        "-e",
        help="Export to .xlsx, .json or a CSV directory (relative paths go under OUTPUT_DIR)",
    ),
]
CompanyOption = Annotated[
    Optional[int],
    typer.Option("--company-id", "-c", help="Record the valuation for this company"),
]
NotesOption = Annotated[Optional[str], typer.Option("--notes", help="Notes for the record")]


@app.command()
def dcf(
    input_file: InputFile,
    as_json: JsonOption = False,
    export: ExportOption = None,
    company_id: CompanyOption = None,
    notes: NotesOption = None,
) -> None:
    """Run a discounted cash flow valuation."""
    _run(ValuationMethod.DCF, input_file, as_json, export, company_id, notes)


@app.command()
def multiples(
    input_file: InputFile,
    as_json: JsonOption = False,
    export: ExportOption = None,
    company_id: CompanyOption = None,
    notes: NotesOption = None,
) -> None:
    """Run a comparable multiples valuation."""
    _run(ValuationMethod.MULTIPLES, input_file, as_json, export, company_id, notes)


@app.command()
def history(
    company_id: Annotated[int, typer.Argument(help="Company ID")],
) -> None:
    """List stored valuations for a company, newest first."""
    settings = get_settings()
    store = ValuationStore(settings.DATABASE_PATH)
    try:
        records = store.list_company_valuations(company_id)
    finally:
        store.close()

    if not records:
        console.print(f"[yellow]No valuations for company {company_id}.[/yellow]")
        return

    table = Table(title=f"Valuations for company {company_id}")
    table.add_column("ID", style="dim")
    table.add_column("Method", style="cyan")
    table.add_column("Status")
    table.add_column("Equity value", justify="right")
    table.add_column("Created")
    for record in records:
        status = "[green]completed[/green]" if record.is_completed else "[yellow]draft[/yellow]"
        equity = _money(record.equity_value) if record.equity_value is not None else "-"
        table.add_row(
            record.id,
            record.method.value,
            status,
            equity,
            record.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port")] = 8000,
) -> None:
    """Run the valuation HTTP API."""
    import uvicorn

    from ve.api.server import create_app

    uvicorn.run(create_app(), host=host, port=port, log_level="info")


@app.command()
def config() -> None:
    """Show current configuration."""
    settings: Settings = get_settings()

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"valuation-engine version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
