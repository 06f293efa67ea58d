import asyncio
import json
import time
import typer
from typing import Optional
from pathlib import Path
from .config import AppConfig
from .domain.models import AggregateReport, ProbeOutcome
from .exceptions import ConfigurationError, OrchestrationError
from .inspector import InspectorFacade
from .logging_config import configure_logging

app = typer.Typer(help="Database keep-alive and connectivity checks")

ConfigOption = typer.Option(None, "--config", "-c", help="Path to configuration file (defaults to DB1_URL, DB2_URL, ... from the environment)")


def _load(config: Optional[Path], verbose: bool = False) -> AppConfig:
    try:
        app_config = AppConfig.load(config)
    except ConfigurationError as e:
        typer.echo(f"Error loading config: {e}", err=True)
        raise typer.Exit(code=1)
    configure_logging("DEBUG" if verbose else app_config.log_level, app_config.json_logs)
    return app_config


def _echo_outcome(outcome: ProbeOutcome, verbose: bool) -> None:
    if outcome.ok:
        typer.secho(f"✅ {outcome.name}: {outcome.message}", fg=typer.colors.GREEN)
        if verbose and outcome.selected_item is not None:
            typer.echo(f"   {outcome.selected_table}: {json.dumps(outcome.selected_item, default=str)}")
    else:
        typer.secho(f"❌ {outcome.name}: {outcome.message}", fg=typer.colors.RED)


def _echo_report(report: AggregateReport, verbose: bool) -> None:
    for outcome in report.results:
        _echo_outcome(outcome, verbose)
    summary = report.summary
    typer.echo(
        f"{summary.successful}/{summary.total} reachable, "
        f"{summary.items_retrieved} items retrieved in {summary.execution_time_ms}ms"
    )


async def _run_once(facade: InspectorFacade, as_json: bool, verbose: bool) -> bool:
    if as_json:
        payload = await facade.check_now()
        typer.echo(json.dumps(payload, indent=2))
        return payload["ok"]

    try:
        report = await facade.run_diagnostics()
    except (ConfigurationError, OrchestrationError) as e:
        typer.secho(f"⚠️ {e}", fg=typer.colors.YELLOW, err=True)
        return False
    _echo_report(report, verbose)
    return report.ok


@app.command()
def check_conn(
    config: Optional[Path] = ConfigOption,
    as_json: bool = typer.Option(False, "--json", help="Print the JSON report instead of a summary"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """
    Connectivity check: probe every configured database once and exit.
    Exit code is 0 when at least one database answered.
    """
    app_config = _load(config, verbose)
    facade = InspectorFacade(app_config)

    if not as_json:
        typer.echo(f"Starting connectivity check for {len(facade.targets)} databases...")
    ok = asyncio.run(_run_once(facade, as_json, verbose))
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def watch(
    config: Optional[Path] = ConfigOption,
    interval: float = typer.Option(300.0, "--interval", "-i", min=1.0, help="Seconds between checks"),
    iterations: Optional[int] = typer.Option(None, "--iterations", "-n", min=1, help="Stop after N checks"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """
    Keep-alive mode: repeat the connectivity check every INTERVAL seconds.
    Table choices are remembered between rounds.
    """
    app_config = _load(config, verbose)
    facade = InspectorFacade(app_config)

    async def loop() -> None:
        count = 0
        while iterations is None or count < iterations:
            started = time.monotonic()
            typer.echo(f"[{time.strftime('%Y-%m-%d %H:%M:%S')}] checking {len(facade.targets)} databases")
            await _run_once(facade, as_json=False, verbose=verbose)
            count += 1
            if iterations is not None and count >= iterations:
                break
            await asyncio.sleep(max(0.0, interval - (time.monotonic() - started)))

    try:
        asyncio.run(loop())
    except KeyboardInterrupt:
        typer.echo("Stopped.")


@app.command()
def tables(
    config: Optional[Path] = ConfigOption,
    discover: bool = typer.Option(False, "--discover", help="Run one check first to fill in missing choices"),
):
    """
    Show the table chosen for each database, in a form ready to paste into
    the configuration file.
    """
    app_config = _load(config)
    facade = InspectorFacade(app_config)
    if discover:
        asyncio.run(_run_once(facade, as_json=False, verbose=False))

    memo = facade.memo.snapshot()
    for target in facade.targets:
        table = memo.get(target.index)
        typer.echo(f"{target.name}: {table if table is not None else '(not chosen yet)'}")


@app.command()
def serve(
    config: Optional[Path] = ConfigOption,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
):
    """
    Run the HTTP API (GET /api/ping-dbs) with uvicorn.
    """
    import uvicorn
    from .api import create_app

    app_config = _load(config)
    uvicorn.run(
        create_app(app_config),
        host=host or app_config.host,
        port=port or app_config.port,
        log_config=None,
    )


if __name__ == "__main__":
    app()
