"""CLI entry point for training-load-server."""

import json
from pathlib import Path

import typer
import uvicorn

from training_load_server import __version__
from training_load_server.core.config import settings
from training_load_server.core.errors import TrainingLoadError
from training_load_server.services.estimator import MetricEstimator
from training_load_server.services.stream_metrics import StreamMetricsCalculator
from training_load_server.transformers.streams import StreamRecordTransformer

app = typer.Typer(
    name="training-load-server",
    help="Training load, periodization and plan feasibility server",
    no_args_is_help=True,
)


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (overrides config)"),
    port: int = typer.Option(None, help="Port to bind to (overrides config)"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
) -> None:
    """Start the API server.

    Example:
        training-load-server serve
        training-load-server serve --host 0.0.0.0 --port 8080 --reload
    """
    uvicorn.run(
        "training_load_server.app:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command()
def analyze(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON list of records"),
    category: str = typer.Option("bike", help="Activity category (bike, run, swim, ...)"),
    ftp: float = typer.Option(None, help="Functional threshold power (W)"),
    lthr: float = typer.Option(None, help="Lactate threshold heart rate (bpm)"),
    max_hr: float = typer.Option(None, help="Maximum heart rate (bpm)"),
    threshold_pace: float = typer.Option(None, help="Threshold pace (s/km)"),
) -> None:
    """Compute activity metrics from a JSON file of stream records.

    Missing thresholds fall back to defaults and lower the confidence.

    Example:
        training-load-server analyze ride.json --ftp 250
    """
    records = json.loads(path.read_text())
    if not isinstance(records, list):
        raise typer.BadParameter("expected a JSON list of records", param_hint="PATH")

    streams = StreamRecordTransformer.transform(records)
    if not streams.samples:
        typer.echo("No timestamped records found", err=True)
        raise typer.Exit(code=1)

    profile = MetricEstimator().build_profile(
        {"ftp": ftp, "lthr": lthr, "max_hr": max_hr, "threshold_pace": threshold_pace}
    )
    try:
        metrics = StreamMetricsCalculator().calculate(streams, profile, category)
    except TrainingLoadError as exc:
        typer.echo(exc.message, err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(metrics.to_bag(), indent=2, default=str))


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"training-load-server v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
