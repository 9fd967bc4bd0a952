import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from tempest_cli.config import Config, StationConfig
from tempest_cli.errors import TempestError
from tempest_cli.history import format_rfc3339
from tempest_cli.models import Forecast, Station, StationObservation, StationRow
from tempest_cli.tempest_api import TempestClient
from tempest_cli.tempestd import fetch_json
from tempest_cli.units import IMPERIAL, celsius_to_fahrenheit, convert_station_observation, wind_direction_to_compass

logger = logging.getLogger("tempest.weather")

MAX_FORECAST_DAYS = 10
ONLINE_THRESHOLD = timedelta(minutes=30)


class WeatherService:
    """Current conditions, forecast and station status for configured stations"""

    def __init__(self, server_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.server_url = server_url
        self.transport = transport

    async def get_current(self, station: StationConfig, units: str) -> Tuple[StationObservation, Station]:
        """Latest observation and station metadata, in the requested units"""
        logger.debug(f"Fetching current conditions for station {station.station_id} (server={self.server_url})")

        if self.server_url:
            obs = await fetch_json(
                self.server_url,
                f"/api/v1/stations/{station.station_id}/current?units={units}",
                StationObservation,
                transport=self.transport,
            )
            info = await fetch_json(
                self.server_url, f"/api/v1/stations/{station.station_id}", Station, transport=self.transport
            )
            return obs, info

        client = TempestClient(station.token, transport=self.transport)
        obs = await client.get_station_observation(station.station_id)
        info = await client.get_station(station.station_id)
        return convert_station_observation(obs, units), info

    async def get_forecast(self, station: StationConfig) -> Forecast:
        """Daily forecast in metric; tempestd first when configured, falling back to the cloud API"""
        if self.server_url:
            try:
                return await fetch_json(
                    self.server_url,
                    f"/api/v1/stations/{station.station_id}/forecast",
                    Forecast,
                    transport=self.transport,
                )
            except TempestError as e:
                # tempestd may not cache forecasts
                logger.debug(f"tempestd forecast failed, falling back to cloud API: {e}")

        client = TempestClient(station.token, transport=self.transport)
        return await client.get_forecast(station.station_id)

    async def _server_station_list(self) -> Dict[int, Station]:
        try:
            stations = await fetch_json(self.server_url, "/api/v1/stations", List[Station], transport=self.transport)
        except TempestError as e:
            logger.debug(f"tempestd stations list unavailable, falling back to per-station queries: {e}")
            return {}
        return {s.station_id: s for s in stations}

    async def _station_status(
        self, station: StationConfig, known: Dict[int, Station]
    ) -> Tuple[Optional[Station], Optional[StationObservation]]:
        if self.server_url:
            info = known.get(station.station_id)
            if info is None:
                info = await fetch_json(
                    self.server_url, f"/api/v1/stations/{station.station_id}", Station, transport=self.transport
                )
            current_path = f"/api/v1/stations/{station.station_id}/current"
            try:
                obs = await fetch_json(self.server_url, current_path, StationObservation, transport=self.transport)
            except TempestError:
                obs = None
            return info, obs

        client = TempestClient(station.token, transport=self.transport)
        info = await client.get_station(station.station_id)
        try:
            obs = await client.get_station_observation(station.station_id)
        except TempestError:
            # Station exists but has not reported
            obs = None
        return info, obs

    async def list_stations(self, cfg: Config, now: Optional[datetime] = None) -> List[StationRow]:
        """Status rows for every configured station, sorted by config name"""
        now = now or datetime.now(timezone.utc)
        known = await self._server_station_list() if self.server_url else {}

        async def row_for(name: str) -> StationRow:
            station = cfg.stations[name]
            row = StationRow(
                config_name=name,
                station_name=station.name or name,
                station_id=station.station_id,
                device_id=station.device_id,
                is_default=name == cfg.default_station,
            )
            try:
                info, obs = await self._station_status(station, known)
            except TempestError as e:
                logger.info(f"Station {name} ({station.station_id}) unavailable: {e}")
                return row

            updates: Dict[str, Any] = {"station_name": info.name or row.station_name}
            if obs is not None:
                observed = obs.timestamp
                if observed.tzinfo is None:
                    observed = observed.replace(tzinfo=timezone.utc)
                updates["last_observed"] = observed
                updates["online"] = now - observed < ONLINE_THRESHOLD
            return row.model_copy(update=updates)

        return list(await asyncio.gather(*(row_for(name) for name in cfg.station_names())))


def clamp_forecast_days(days: int) -> int:
    return max(1, min(days, MAX_FORECAST_DAYS))


def _station_meta(station: StationConfig, name: Optional[str] = None) -> Dict[str, Any]:
    return {"name": name or station.name, "station_id": station.station_id, "device_id": station.device_id}


def current_json(obs: StationObservation, info: Station, station: StationConfig, units: str) -> Dict[str, Any]:
    return {
        "station": _station_meta(station, info.name),
        "units": units,
        "timestamp": format_rfc3339(obs.timestamp),
        "temperature": obs.air_temperature,
        "feels_like": obs.feels_like,
        "dew_point": obs.dew_point,
        "humidity": obs.relative_humidity,
        "wind_speed": obs.wind_avg,
        "wind_gust": obs.wind_gust,
        "wind_lull": obs.wind_lull,
        "wind_direction": obs.wind_direction,
        "wind_direction_cardinal": wind_direction_to_compass(obs.wind_direction),
        "pressure": obs.sea_level_pressure,
        "pressure_trend": obs.pressure_trend,
        "uv_index": obs.uv,
        "solar_radiation": obs.solar_radiation,
        "rain_today": obs.precip_accum_local_day,
        "lightning_count": obs.lightning_strike_count_last_3hr,
        "lightning_distance": obs.lightning_strike_last_distance,
        "battery": obs.battery,
    }


def forecast_json(forecast: Forecast, station: StationConfig, units: str, days: int) -> Dict[str, Any]:
    daily = []
    for day in forecast.daily[:days]:
        high, low = day.high_temp, day.low_temp
        if units == IMPERIAL:
            high, low = celsius_to_fahrenheit(high), celsius_to_fahrenheit(low)
        item: Dict[str, Any] = {
            "date": day.date.isoformat(),
            "high_temp": high,
            "low_temp": low,
            "conditions": day.conditions,
            "icon": day.icon,
            "precip_chance": day.precip_chance,
        }
        if day.precip_type:
            item["precip_type"] = day.precip_type
        if day.sunrise:
            item["sunrise"] = format_rfc3339(day.sunrise)
        if day.sunset:
            item["sunset"] = format_rfc3339(day.sunset)
        daily.append(item)
    return {"station": _station_meta(station), "units": units, "daily": daily}


def stations_json(rows: List[StationRow]) -> List[Dict[str, Any]]:
    return [
        {
            "name": row.station_name,
            "station_id": row.station_id,
            "device_id": row.device_id,
            "status": "online" if row.online else "offline",
            "last_observation": format_rfc3339(row.last_observed) if row.last_observed else None,
        }
        for row in rows
    ]
