"""Main CLI application."""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import matplotlib.pyplot as plt
import structlog
import typer
from rich.console import Console
from rich.table import Table
import pandas as pd

from .. import app_api
from ..contracts.errors import ObsimError
from ..contracts.types import AxisScale, PlotType

app = typer.Typer(
    name="obsim",
    help="Observed vs simulated data mapping - align, compare and plot",
    no_args_is_help=True
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug log messages"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit log messages as JSON"),
):
    """Configure logging for all commands."""
    renderer = (
        structlog.processors.JSONRenderer() if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.add_log_level,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _load_config(config: Optional[Path]):
    if config:
        cfg = app_api.load_config_from_file(config)
        console.print(f"✓ Loaded configuration from {config}")
    else:
        cfg = app_api.load_config_from_file()
    return cfg


def _report_error(e: ObsimError) -> None:
    console.print(f"❌ {e.message}", style="red")
    if e.details:
        console.print(f"Details: {e.details}")


def _summary_table(summary: pd.DataFrame) -> Table:
    table = Table(title="Residual Summary")
    table.add_column("Group")
    for column in summary.columns:
        table.add_column(column)
    for group, row in summary.iterrows():
        table.add_row(
            str(group),
            *[f"{int(v)}" if col == "n" else f"{v:.4g}" for col, v in row.items()],
        )
    return table


@app.command()
def match(
    observed: Path = typer.Argument(..., help="Observed data file (CSV or Excel)"),
    simulated: Path = typer.Argument(..., help="Simulation result export (CSV)"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write aligned observations to this CSV file"
    ),
    on_missing: Optional[str] = typer.Option(
        None, "--on-missing", help="Groups without simulated output: 'raise' or 'skip'"
    ),
):
    """Match simulated values to observations and summarise residuals."""

    try:
        cfg = _load_config(config)
        if on_missing:
            if on_missing not in ("raise", "skip"):
                console.print(f"❌ --on-missing must be 'raise' or 'skip', got {on_missing!r}", style="red")
                raise typer.Exit(1)
            cfg.alignment.on_missing = on_missing

        result = app_api.compare(observed, simulated, cfg)
        console.print(
            f"✓ Matched {int(result.aligned['residual'].notna().sum())} of "
            f"{len(result.aligned)} observations"
        )
        console.print(_summary_table(result.summary))

        if output:
            result.aligned.to_csv(output, index=False)
            console.print(f"✓ Aligned data saved to {output}")

    except ObsimError as e:
        _report_error(e)
        raise typer.Exit(1)


@app.command()
def summary(
    observed: Path = typer.Argument(..., help="Observed data file (CSV or Excel)"),
    simulated: Path = typer.Argument(..., help="Simulation result export (CSV)"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the residual summary to this CSV file"
    ),
):
    """Print residual statistics per group."""

    try:
        cfg = _load_config(config)
        result = app_api.compare(observed, simulated, cfg)
        console.print(_summary_table(result.summary))

        if output:
            result.summary.to_csv(output)
            console.print(f"✓ Summary saved to {output}")

    except ObsimError as e:
        _report_error(e)
        raise typer.Exit(1)


@app.command()
def plot(
    observed: Path = typer.Argument(..., help="Observed data file (CSV or Excel)"),
    simulated: Path = typer.Argument(..., help="Simulation result export (CSV)"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    plot_types: Optional[List[str]] = typer.Option(
        None, "--type", "-t", help="Plot type, repeatable (default: all)"
    ),
    output_dir: Path = typer.Option(
        Path("plots"), "--output", "-o", help="Directory for saved figures"
    ),
    log_y: bool = typer.Option(False, "--log-y", help="Log-scale the y axis"),
    save_format: Optional[str] = typer.Option(None, "--format", help="Figure file format"),
):
    """Render comparison plots to files."""

    try:
        cfg = _load_config(config)
        try:
            selected = [PlotType(t) for t in plot_types] if plot_types else list(PlotType)
        except ValueError as e:
            console.print(f"❌ {e}. Choose from {[p.value for p in PlotType]}", style="red")
            raise typer.Exit(1)

        result = app_api.compare(observed, simulated, cfg)
        if log_y:
            result.mapping.set_axis_scale("y", AxisScale.LOG)

        updates = {"save_path": str(output_dir)}
        if save_format:
            updates["save_format"] = save_format
        plot_config = cfg.plot.with_updates(**updates)

        with console.status("Rendering plots..."):
            figures = app_api.render_plots(result.mapping, selected, plot_config)

        for plot_type, fig in figures.items():
            plt.close(fig)
            console.print(f"✓ {plot_type.value} saved to {output_dir}")

    except ObsimError as e:
        _report_error(e)
        raise typer.Exit(1)


@app.command()
def validate(
    config: Path = typer.Argument(..., help="Configuration file to validate")
):
    """Validate a configuration file."""

    try:
        app_api.load_config_from_file(config)
        console.print(f"✅ Configuration {config} is valid", style="green")

    except ObsimError as e:
        _report_error(e)
        raise typer.Exit(1)


@app.command()
def info():
    """Display package information."""

    from .. import __version__

    console.print(f"obsim v{__version__}")
    console.print()

    table = Table(title="Plot Types")
    table.add_column("Name")
    for plot_type in PlotType:
        table.add_row(plot_type.value)
    console.print(table)


if __name__ == "__main__":
    app()
