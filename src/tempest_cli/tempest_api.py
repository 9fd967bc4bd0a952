import asyncio
import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from tempest_cli.errors import (
    CONFIG_HINT,
    ConfigurationError,
    DecodeError,
    TransportError,
    UpstreamStatusError,
    transport_error,
)
from tempest_cli.models import Device, Forecast, ForecastDay, Observation, Station, StationObservation
from tempest_cli.tempestd import REQUEST_TIMEOUT, build_client, decode_body, read_limited
from tempest_cli.units import feels_like

logger = logging.getLogger("tempest.api")


def _epoch(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class TempestClient:
    """Client for the WeatherFlow Tempest cloud REST API"""

    BASE_URL = "https://swd.weatherflow.com/swd/rest"
    SOURCE = "WeatherFlow API"

    # Index of each value in an obs_st row from the device observations endpoint
    OBS_ST_MAPPING = {
        1: "wind_lull",  # m/s
        2: "wind_avg",  # m/s
        3: "wind_gust",  # m/s
        4: "wind_direction",  # degrees
        6: "station_pressure",  # hPa
        7: "air_temperature",  # °C
        8: "relative_humidity",  # %
        10: "uv_index",
        11: "solar_radiation",  # W/m²
        12: "rain_accumulation",  # mm over the report interval
        14: "lightning_avg_distance",  # km
        15: "lightning_strike_count",
        16: "battery",  # volts
    }

    STATION_OBS_FIELDS = (
        "air_temperature",
        "feels_like",
        "dew_point",
        "relative_humidity",
        "wind_avg",
        "wind_gust",
        "wind_lull",
        "wind_direction",
        "station_pressure",
        "sea_level_pressure",
        "pressure_trend",
        "uv",
        "solar_radiation",
        "precip_accum_local_day",
        "lightning_strike_count_last_3hr",
        "lightning_strike_last_distance",
    )

    def __init__(self, token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not token:
            raise ConfigurationError("an API token is required to use the WeatherFlow API", CONFIG_HINT)
        self._token = token
        self._transport = transport

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET an API path and return the decoded JSON body"""
        headers = {"Authorization": f"Bearer {self._token}", "Accept": "application/json"}

        async def request() -> bytes:
            async with build_client(self._transport, headers=headers) as client:
                try:
                    async with client.stream("GET", f"{self.BASE_URL}{path}", params=params) as response:
                        if response.status_code != httpx.codes.OK:
                            raise UpstreamStatusError(response.status_code, path, source=self.SOURCE)
                        return await read_limited(response, path)
                except httpx.TransportError as e:
                    raise transport_error(e, "the WeatherFlow API") from e

        logger.debug(f"GET {path} params={params}")
        try:
            body = await asyncio.wait_for(request(), timeout=REQUEST_TIMEOUT)
        except asyncio.TimeoutError as e:
            raise TransportError("request to the WeatherFlow API timed out", TransportError.TIMEOUT) from e
        return decode_body(body, path)

    def _parse_obs_row(self, row: List[Any]) -> Optional[Observation]:
        """Turn one obs_st array into a metric Observation"""
        if not row or row[0] is None:
            return None

        values: Dict[str, Any] = {"timestamp": _epoch(row[0])}
        for idx, field in self.OBS_ST_MAPPING.items():
            if idx < len(row) and row[idx] is not None:
                values[field] = row[idx]

        values["feels_like"] = feels_like(
            values.get("air_temperature", 0.0),
            values.get("relative_humidity", 0.0),
            values.get("wind_avg", 0.0),
        )
        return Observation(**values)

    async def get_device_observations(self, device_id: int, start: datetime, end: datetime) -> List[Observation]:
        """Fetch raw metric observations for a device over [start, end)"""
        path = f"/observations/device/{device_id}"
        params = {"time_start": int(start.timestamp()), "time_end": int(end.timestamp())}
        logger.info(f"Requesting observations for device {device_id} from {start.isoformat()} to {end.isoformat()}")

        data = await self._get_json(path, params)
        if not isinstance(data, dict):
            raise DecodeError(path, "expected a JSON object")

        observations = []
        for row in data.get("obs") or []:
            try:
                obs = self._parse_obs_row(row)
            except (TypeError, ValueError) as e:
                raise DecodeError(path, f"malformed observation row {row!r}: {e}") from e
            if obs is not None and start <= obs.timestamp < end:
                observations.append(obs)

        observations.sort(key=lambda o: o.timestamp)
        logger.info(f"Received {len(observations)} observations for device {device_id}")
        return observations

    async def get_station_observation(self, station_id: int) -> StationObservation:
        """Fetch the latest station-level observation"""
        path = f"/observations/station/{station_id}"
        data = await self._get_json(path)
        obs_list = data.get("obs") if isinstance(data, dict) else None
        if not obs_list:
            raise DecodeError(path, f"no observations available for station {station_id}")

        latest = obs_list[0]
        values = {key: latest[key] for key in self.STATION_OBS_FIELDS if latest.get(key) is not None}
        values["timestamp"] = _epoch(latest.get("timestamp"))
        try:
            return StationObservation(**values)
        except ValueError as e:
            raise DecodeError(path, str(e)) from e

    async def get_station(self, station_id: int) -> Station:
        """Fetch station metadata, including its devices"""
        path = f"/stations/{station_id}"
        data = await self._get_json(path)
        stations = data.get("stations") if isinstance(data, dict) else None
        if not stations:
            raise DecodeError(path, f"station {station_id} missing from response")

        raw = stations[0]
        try:
            return Station(
                station_id=raw.get("station_id", station_id),
                name=raw.get("name", ""),
                public_name=raw.get("public_name"),
                latitude=raw.get("latitude"),
                longitude=raw.get("longitude"),
                timezone=raw.get("timezone"),
                devices=[Device(**d) for d in raw.get("devices", []) if d.get("device_id") is not None],
            )
        except (TypeError, ValueError) as e:
            raise DecodeError(path, str(e)) from e

    async def get_forecast(self, station_id: int) -> Forecast:
        """Fetch the daily forecast in metric units"""
        path = "/better_forecast"
        params = {
            "station_id": station_id,
            "units_temp": "c",
            "units_wind": "mps",
            "units_pressure": "mb",
            "units_precip": "mm",
            "units_distance": "km",
        }
        data = await self._get_json(path, params)
        if not isinstance(data, dict):
            raise DecodeError(path, "expected a JSON object")

        tz: tzinfo = timezone.utc
        if data.get("timezone"):
            try:
                tz = ZoneInfo(data["timezone"])
            except (ZoneInfoNotFoundError, ValueError):
                logger.debug(f"Unknown station timezone {data['timezone']!r}, using UTC")

        days = []
        for item in (data.get("forecast") or {}).get("daily", []):
            try:
                days.append(
                    ForecastDay(
                        date=datetime.fromtimestamp(int(item["day_start_local"]), tz=tz).date(),
                        high_temp=item["air_temp_high"],
                        low_temp=item["air_temp_low"],
                        conditions=item.get("conditions", ""),
                        icon=item.get("icon", ""),
                        precip_chance=item.get("precip_probability", 0),
                        precip_type=item.get("precip_type"),
                        sunrise=_epoch(item.get("sunrise")),
                        sunset=_epoch(item.get("sunset")),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                raise DecodeError(path, f"malformed forecast day: {e}") from e

        return Forecast(daily=days)
