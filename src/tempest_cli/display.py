"""Terminal rendering with rich."""

from typing import List, Optional

from rich import box
from rich.console import Console, Group, RenderableType
from rich.table import Table
from rich.text import Text

from tempest_cli.models import Forecast, Observation, Station, StationObservation, StationRow
from tempest_cli.units import IMPERIAL, celsius_to_fahrenheit, wind_direction_to_compass

ICONS = {
    "clear-day": ("☀️", "SUN"),
    "clear-night": ("🌙", "MOON"),
    "cloudy": ("☁️", "CLOUD"),
    "partly-cloudy-day": ("⛅", "PCLDY"),
    "partly-cloudy-night": ("☁️", "PCLDY"),
    "foggy": ("🌫️", "FOG"),
    "windy": ("💨", "WIND"),
    "possibly-rainy-day": ("🌦️", "RAIN?"),
    "possibly-rainy-night": ("🌧️", "RAIN?"),
    "rainy": ("🌧️", "RAIN"),
    "possibly-thunderstorm-day": ("⛈️", "TSTM?"),
    "possibly-thunderstorm-night": ("⛈️", "TSTM?"),
    "thunderstorm": ("⛈️", "TSTM"),
    "possibly-snow-day": ("🌨️", "SNOW?"),
    "possibly-snow-night": ("🌨️", "SNOW?"),
    "snow": ("❄️", "SNOW"),
    "possibly-sleet-day": ("🌨️", "SLEET?"),
    "possibly-sleet-night": ("🌨️", "SLEET?"),
    "sleet": ("🌨️", "SLEET"),
}


class Theme:
    """Styles and symbols used by the renderers"""

    def __init__(self, no_color: bool = False, no_emoji: bool = False):
        self.no_color = no_color
        self.no_emoji = no_emoji
        self.title = "bold" if no_color else "bold cyan"
        self.muted = "" if no_color else "dim"
        self.value = "bold"
        self.good = "" if no_color else "green"
        self.bad = "" if no_color else "red"
        self.header = "bold" if no_color else "bold bright_black"

    def console(self, **kwargs) -> Console:
        return Console(no_color=self.no_color, highlight=False, **kwargs)

    def icon(self, name: str) -> str:
        emoji, text = ICONS.get(name, ("", ""))
        return text if self.no_emoji else emoji


def format_temp(value: float, units: str) -> str:
    return f"{value:.1f}°F" if units == IMPERIAL else f"{value:.1f}°C"


def format_wind(value: float, units: str) -> str:
    return f"{value:.1f} mph" if units == IMPERIAL else f"{value:.1f} m/s"


def format_pressure(value: float, units: str) -> str:
    return f"{value:.2f} inHg" if units == IMPERIAL else f"{value:.1f} hPa"


def format_precip(value: float, units: str) -> str:
    return f"{value:.2f} in" if units == IMPERIAL else f"{value:.1f} mm"


def format_distance(value: float, units: str) -> str:
    return f"{value:.0f} mi" if units == IMPERIAL else f"{value:.0f} km"


def _title(theme: Theme, title: str, subtitle: str) -> Text:
    text = Text(title, style=theme.title)
    text.append(f"  {subtitle}", style=theme.muted)
    return text


def render_history(theme: Theme, observations: List[Observation], units: str) -> RenderableType:
    """Table of observations, already expressed in the given units"""
    heading = _title(theme, "History", f"{len(observations)} observations")
    if not observations:
        return Group(heading, Text("No observations in this time range", style=theme.muted))

    table = Table(box=box.SIMPLE_HEAD, header_style=theme.header, show_edge=False)
    table.add_column("Time", no_wrap=True)
    table.add_column("Temp", justify="right")
    table.add_column("Feels Like", justify="right")
    table.add_column("Hum%", justify="right")
    table.add_column("Wind")
    table.add_column("Pressure", justify="right")
    table.add_column("Rain", justify="right")
    table.add_column("UV", justify="right")

    for obs in observations:
        wind = f"{format_wind(obs.wind_avg, units)} {wind_direction_to_compass(obs.wind_direction)}"
        table.add_row(
            obs.timestamp.strftime("%m-%d %H:%M"),
            format_temp(obs.air_temperature, units),
            format_temp(obs.feels_like, units),
            f"{obs.relative_humidity:.0f}%",
            wind,
            format_pressure(obs.station_pressure, units),
            format_precip(obs.rain_accumulation, units),
            f"{obs.uv_index:.1f}",
        )
    return Group(heading, table)


def render_current(theme: Theme, obs: StationObservation, station_name: str, units: str) -> RenderableType:
    heading = _title(theme, station_name or "Current Conditions", obs.timestamp.strftime("%Y-%m-%d %H:%M %Z"))

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("field", style=theme.muted)
    table.add_column("value", style=theme.value)

    table.add_row("Temperature", format_temp(obs.air_temperature, units))
    table.add_row("Feels Like", format_temp(obs.feels_like, units))
    table.add_row("Dew Point", format_temp(obs.dew_point, units))
    table.add_row("Humidity", f"{obs.relative_humidity:.0f}%")
    wind = f"{format_wind(obs.wind_avg, units)} {wind_direction_to_compass(obs.wind_direction)}"
    table.add_row("Wind", f"{wind} (gust {format_wind(obs.wind_gust, units)})")
    pressure = format_pressure(obs.sea_level_pressure, units)
    if obs.pressure_trend:
        pressure = f"{pressure} ({obs.pressure_trend})"
    table.add_row("Pressure", pressure)
    table.add_row("UV Index", f"{obs.uv:.1f}")
    table.add_row("Solar", f"{obs.solar_radiation:.0f} W/m²")
    table.add_row("Rain Today", format_precip(obs.precip_accum_local_day, units))
    if obs.lightning_strike_count_last_3hr:
        table.add_row(
            "Lightning",
            f"{obs.lightning_strike_count_last_3hr} strikes, last "
            f"{format_distance(obs.lightning_strike_last_distance, units)} away",
        )
    return Group(heading, table)


def render_forecast(theme: Theme, forecast: Forecast, days: int, units: str) -> RenderableType:
    """Daily forecast; temperatures arrive in Celsius"""
    shown = forecast.daily[:days]
    heading = _title(theme, "Forecast", f"{len(shown)} days")

    table = Table(box=box.SIMPLE_HEAD, header_style=theme.header, show_edge=False)
    table.add_column("Day", no_wrap=True)
    table.add_column("", no_wrap=True)
    table.add_column("Conditions")
    table.add_column("High", justify="right")
    table.add_column("Low", justify="right")
    table.add_column("Precip", justify="right")

    for day in shown:
        high, low = day.high_temp, day.low_temp
        if units == IMPERIAL:
            high, low = celsius_to_fahrenheit(high), celsius_to_fahrenheit(low)
        precip = f"{day.precip_chance}%"
        if day.precip_type and day.precip_chance:
            precip = f"{precip} {day.precip_type}"
        table.add_row(
            day.date.strftime("%a %m-%d"),
            theme.icon(day.icon),
            day.conditions,
            format_temp(high, units),
            format_temp(low, units),
            precip,
        )
    return Group(heading, table)


def render_stations(theme: Theme, rows: List[StationRow]) -> RenderableType:
    table = Table(box=box.SIMPLE_HEAD, header_style=theme.header, show_edge=False)
    table.add_column("Name")
    table.add_column("Station", justify="right")
    table.add_column("Device", justify="right")
    table.add_column("Status")
    table.add_column("Last Observation")

    for row in rows:
        name = f"{row.station_name} ({row.config_name})"
        if row.is_default:
            name = f"{name} *"
        status = Text("online", style=theme.good) if row.online else Text("offline", style=theme.bad)
        last = row.last_observed.strftime("%Y-%m-%d %H:%M %Z") if row.last_observed else "-"
        table.add_row(name, str(row.station_id), str(row.device_id or "-"), status, last)

    return Group(_title(theme, "Stations", f"{len(rows)} configured"), table)


def station_display_name(info: Optional[Station], fallback: str) -> str:
    if info is not None and info.name:
        return info.name
    return fallback
