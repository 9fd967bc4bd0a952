"""Historical observations: time window, resolution, source dispatch and downsampling."""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from tempest_cli.config import StationConfig
from tempest_cli.errors import ConfigurationError, DecodeError, ValidationError
from tempest_cli.models import Observation, TimeWindow
from tempest_cli.tempest_api import TempestClient
from tempest_cli.tempestd import fetch_json
from tempest_cli.units import IMPERIAL, METRIC, convert_observation, wind_direction_to_compass

logger = logging.getLogger("tempest.history")

DATE_FORMAT = "%Y-%m-%d"
DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
DAY = timedelta(days=1)

# User-selectable resolutions, in ascending order
RESOLUTIONS = {
    "1m": timedelta(minutes=1),
    "5m": timedelta(minutes=5),
    "30m": timedelta(minutes=30),
    "3h": timedelta(hours=3),
}

# Upper span bound (inclusive) for each auto-selected resolution
AUTO_RESOLUTION_STEPS = [
    (DAY, RESOLUTIONS["1m"]),
    (7 * DAY, RESOLUTIONS["5m"]),
    (30 * DAY, RESOLUTIONS["30m"]),
]

_observation_list = TypeAdapter(List[Observation])


class HistoryResult(BaseModel):
    observations: List[Observation]
    window: TimeWindow
    units: str
    resolution: str
    source: str


def format_rfc3339(value: datetime) -> str:
    """Format an instant as RFC3339 with second precision, using Z for UTC"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if value.utcoffset() == timedelta(0):
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    return value.isoformat(timespec="seconds")


def _trim_number(value: float) -> str:
    return f"{value:.6f}".rstrip("0").rstrip(".")


def format_duration(interval: timedelta) -> str:
    """Generic duration text such as 10m0s, 1h30m0s or 45s"""
    micros = interval // timedelta(microseconds=1)
    if micros == 0:
        return "0s"
    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1_000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_trim_number(micros / 1_000)}ms"

    hours, rest = divmod(micros, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    seconds = _trim_number(rest / 1_000_000)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def _parse_date(value: str, flag: str) -> datetime:
    if not DATE_PATTERN.fullmatch(value):
        raise ValidationError(f"invalid {flag} format {value!r} (use YYYY-MM-DD)", flag=flag, expected="YYYY-MM-DD")
    try:
        parsed = datetime.strptime(value, DATE_FORMAT)
    except ValueError as e:
        raise ValidationError(f"invalid {flag} format (use YYYY-MM-DD): {e}", flag=flag, expected="YYYY-MM-DD") from e
    return parsed.replace(tzinfo=timezone.utc)


def resolve_time_window(
    date: Optional[str] = None,
    from_: Optional[str] = None,
    to: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TimeWindow:
    """
    Derive the [start, end) window for a history query.

    A single --date covers that whole UTC day and wins over --from/--to.
    A --from/--to range includes the whole --to day. With no flags the window
    is the 24 hours up to now.
    """
    if date:
        start = _parse_date(date, "--date")
        return TimeWindow(start=start, end=start + DAY)

    if from_ and to:
        start = _parse_date(from_, "--from")
        end = _parse_date(to, "--to") + DAY
        if start >= end:
            raise ValidationError(
                f"--from {from_} must not be after --to {to}", flag="--from", expected="YYYY-MM-DD"
            )
        return TimeWindow(start=start, end=end)

    if from_ or to:
        flag = "--to" if from_ else "--from"
        raise ValidationError("both --from and --to are required for a date range", flag=flag, expected="YYYY-MM-DD")

    now = now or datetime.now(timezone.utc)
    return TimeWindow(start=now - DAY, end=now)


def resolve_resolution(token: Optional[str], span: timedelta) -> timedelta:
    """Return the downsampling interval for an explicit token or a window span"""
    if token:
        interval = RESOLUTIONS.get(token)
        if interval is not None:
            return interval
        logger.warning(f"Unknown resolution {token!r}; choosing one from the time range instead")

    for limit, interval in AUTO_RESOLUTION_STEPS:
        if span <= limit:
            return interval
    return RESOLUTIONS["3h"]


def resolution_label(interval: timedelta) -> str:
    for label, value in RESOLUTIONS.items():
        if value == interval:
            return label
    return format_duration(interval)


def downsample(observations: List[Observation], interval: timedelta) -> List[Observation]:
    """
    Keep the first observation at or after each boundary.

    The boundary starts at the first timestamp and moves to
    accepted.timestamp + interval after every kept observation, so gaps in the
    output are never shorter than interval. Input must be sorted by timestamp.
    """
    if not observations:
        return []

    result = []
    boundary = observations[0].timestamp
    for obs in observations:
        if obs.timestamp < boundary:
            continue
        result.append(obs)
        boundary = obs.timestamp + interval
    return result


async def fetch_history_from_api(
    station: StationConfig,
    start: datetime,
    end: datetime,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[Observation]:
    """Fetch raw metric observations from the cloud API; history is indexed by device"""
    if station.device_id <= 0:
        raise ConfigurationError(
            "device_id is required for historical data",
            "Add device_id to the station in your config file or set TEMPEST_DEVICE_ID",
        )

    client = TempestClient(station.token, transport=transport)
    return await client.get_device_observations(station.device_id, start, end)


def _observations_from_payload(payload: Any, path: str) -> List[Observation]:
    if isinstance(payload, dict):
        if "observations" not in payload:
            raise DecodeError(path, "missing observations")
        payload = payload["observations"] or []
    if not isinstance(payload, list):
        raise DecodeError(path, "expected an observations list")
    try:
        return _observation_list.validate_python(payload)
    except PydanticValidationError as e:
        raise DecodeError(path, str(e)) from e


async def fetch_history_from_server(
    server_url: str,
    station_id: int,
    start: datetime,
    end: datetime,
    units: str,
    resolution: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[Observation]:
    """Fetch observations from tempestd, which converts units and aggregates server-side"""
    params = {
        "end": format_rfc3339(end),
        "resolution": resolution,
        "start": format_rfc3339(start),
        "units": units,
    }
    path = f"/api/v1/stations/{station_id}/observations?{urlencode(params)}"
    payload = await fetch_json(server_url, path, transport=transport)
    observations = _observations_from_payload(payload, path)
    return sorted(observations, key=lambda o: o.timestamp)


async def get_history(
    station: StationConfig,
    window: TimeWindow,
    units: str = METRIC,
    resolution: Optional[str] = None,
    server_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> HistoryResult:
    """
    Fetch history for a station from tempestd when server_url is set, else from the cloud API.

    Errors from the chosen source propagate; there is no fallback to the other one.
    """
    interval = resolve_resolution(resolution, window.span)
    label = resolution or resolution_label(interval)

    if server_url:
        logger.info(f"Step 1: Fetching history for station {station.station_id} from tempestd")
        observations = await fetch_history_from_server(
            server_url, station.station_id, window.start, window.end, units, label, transport=transport
        )
        source = "tempestd"
    else:
        logger.info(f"Step 1: Fetching history for device {station.device_id} from the WeatherFlow API")
        observations = await fetch_history_from_api(station, window.start, window.end, transport=transport)
        source = "api"

        # tempestd converts server-side; the cloud API always returns metric
        if units == IMPERIAL:
            logger.debug("Step 2: Converting observations to imperial")
            observations = [convert_observation(obs, IMPERIAL) for obs in observations]

    if interval > timedelta(0):
        before = len(observations)
        observations = downsample(observations, interval)
        logger.info(f"Step 3: Downsampled {before} observations to {len(observations)} at {label}")

    return HistoryResult(
        observations=observations,
        window=window,
        units=units,
        resolution=label,
        source=source,
    )


def history_json(result: HistoryResult, station: StationConfig) -> Dict[str, Any]:
    """Build the JSON document for the history command"""
    return {
        "station": {
            "name": station.name,
            "station_id": station.station_id,
            "device_id": station.device_id,
        },
        "units": result.units,
        "from": format_rfc3339(result.window.start),
        "to": format_rfc3339(result.window.end),
        "resolution": result.resolution,
        "observations": [
            {
                "timestamp": format_rfc3339(obs.timestamp),
                "temperature": obs.air_temperature,
                "feels_like": obs.feels_like,
                "humidity": obs.relative_humidity,
                "wind_speed": obs.wind_avg,
                "wind_direction": obs.wind_direction,
                "wind_direction_cardinal": wind_direction_to_compass(obs.wind_direction),
                "pressure": obs.station_pressure,
                "rain": obs.rain_accumulation,
                "uv_index": obs.uv_index,
            }
            for obs in result.observations
        ],
    }
