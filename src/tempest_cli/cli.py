import asyncio
import json
import logging
import os
import sys
from typing import Any, Awaitable, Optional, TypeVar

import click
from dotenv import load_dotenv

from tempest_cli import __version__
from tempest_cli.config import Config, StationConfig, load_config, resolve_server_url
from tempest_cli.display import (
    Theme,
    render_current,
    render_forecast,
    render_history,
    render_stations,
    station_display_name,
)
from tempest_cli.errors import CONFIG_HINT, ConfigurationError, TempestError, describe_error
from tempest_cli.history import get_history, history_json, resolve_time_window
from tempest_cli.units import UNIT_SYSTEMS
from tempest_cli.weather import (
    WeatherService,
    clamp_forecast_days,
    current_json,
    forecast_json,
    stations_json,
)

load_dotenv()

logger = logging.getLogger("tempest")

T = TypeVar("T")


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    # Keep transport chatter out of --verbose output
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class AppContext:
    """Options shared by every command for one invocation"""

    def __init__(
        self,
        config_file: Optional[str],
        station: Optional[str],
        units: Optional[str],
        server: Optional[str],
        as_json: bool,
        no_color: bool,
        no_emoji: bool,
    ):
        self.config_file = config_file
        self.station_name = station
        self.units = units
        self.server = server
        self.as_json = as_json
        self.theme = Theme(no_color=no_color, no_emoji=no_emoji)
        self._config: Optional[Config] = None

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = load_config(self.config_file, units=self.units)
        return self._config

    def station(self) -> StationConfig:
        return self.config.resolve_station(self.station_name)

    def server_url(self) -> Optional[str]:
        return resolve_server_url(self.config, self.server)

    def output(self, document: Any, renderable: Any) -> None:
        if self.as_json:
            write_json(document)
        else:
            self.theme.console().print(renderable)


def write_json(document: Any) -> None:
    click.echo(json.dumps(document, indent=2, ensure_ascii=False))


def run(coro: Awaitable[T]) -> T:
    """Run a coroutine to completion; Ctrl-C cancels it and click reports Aborted!"""
    return asyncio.run(coro)


def fail(err: TempestError) -> click.ClickException:
    logger.debug("Command failed", exc_info=err)
    return click.ClickException(describe_error(err))


@click.group(invoke_without_command=True)
@click.option("--config", "config_file", type=click.Path(dir_okay=False), help="Config file (default ~/.config/tempest/config.yaml)")
@click.option("--station", envvar="TEMPEST_STATION", help="Station name from config")
@click.option("--units", type=click.Choice(UNIT_SYSTEMS, case_sensitive=False), envvar="TEMPEST_UNITS", help="Unit system")
@click.option("--server", envvar="TEMPEST_SERVER", help="tempestd server URL for local data")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("--no-emoji", is_flag=True, help="Use text symbols instead of emoji for condition icons")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_file, station, units, server, as_json, no_color, no_emoji, verbose):
    """Query current conditions, forecasts and history from a WeatherFlow Tempest station."""
    setup_logging(verbose)

    # https://no-color.org/
    if "NO_COLOR" in os.environ:
        no_color = True

    ctx.obj = AppContext(
        config_file=config_file,
        station=station,
        units=units.lower() if units else None,
        server=server,
        as_json=as_json,
        no_color=no_color,
        no_emoji=no_emoji,
    )
    if ctx.invoked_subcommand is None:
        ctx.invoke(current)


@cli.command()
@click.pass_obj
def current(app: AppContext):
    """Show current weather conditions."""
    try:
        station = app.station()
        units = app.config.unit_system
        service = WeatherService(app.server_url())
        obs, info = run(service.get_current(station, units))
    except TempestError as e:
        raise fail(e) from e

    app.output(
        current_json(obs, info, station, units),
        render_current(app.theme, obs, station_display_name(info, station.name), units),
    )


@cli.command()
@click.option("-d", "--days", default=5, show_default=True, help="Number of forecast days (max 10)")
@click.pass_obj
def forecast(app: AppContext, days: int):
    """Show the daily weather forecast."""
    days = clamp_forecast_days(days)
    try:
        station = app.station()
        units = app.config.unit_system
        service = WeatherService(app.server_url())
        result = run(service.get_forecast(station))
    except TempestError as e:
        raise fail(e) from e

    app.output(forecast_json(result, station, units, days), render_forecast(app.theme, result, days, units))


@cli.command()
@click.option("--date", "date_", help="Single day (YYYY-MM-DD)")
@click.option("--from", "from_", help="Range start (YYYY-MM-DD)")
@click.option("--to", "to", help="Range end, inclusive (YYYY-MM-DD)")
@click.option("--resolution", help="Data resolution: 1m, 5m, 30m, 3h (auto if omitted)")
@click.pass_obj
def history(app: AppContext, date_: Optional[str], from_: Optional[str], to: Optional[str], resolution: Optional[str]):
    """Show historical observations as a table."""
    try:
        station = app.station()
        window = resolve_time_window(date_, from_, to)
        units = app.config.unit_system
        result = run(
            get_history(
                station,
                window,
                units=units,
                resolution=resolution,
                server_url=app.server_url(),
            )
        )
    except TempestError as e:
        raise fail(e) from e

    app.output(history_json(result, station), render_history(app.theme, result.observations, units))


@cli.command()
@click.pass_obj
def stations(app: AppContext):
    """List configured stations with their status."""
    try:
        cfg = app.config
        if not cfg.stations:
            raise ConfigurationError("no stations configured", CONFIG_HINT)
        rows = run(WeatherService(app.server_url()).list_stations(cfg))
    except TempestError as e:
        raise fail(e) from e

    app.output(stations_json(rows), render_stations(app.theme, rows))


@cli.command()
def version():
    """Print the version."""
    click.echo(f"tempest {__version__}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
