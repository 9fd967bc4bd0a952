import asyncio
from datetime import date, datetime, timezone

import httpx
import pytest

from tempest_cli.errors import ConfigurationError, DecodeError, TransportError, UpstreamStatusError
from tempest_cli.tempest_api import TempestClient

T0 = 1705312800  # 2024-01-15 10:00:00 UTC


def obs_row(ts, temp=21.3, humidity=65):
    return [ts, 0.5, 2.0, 3.5, 180, 3, 1012.5, temp, humidity, 50000, 3.2, 400, 0.1, 0, 12, 2, 2.6, 1]


def mock_api(routes, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        path = request.url.path.removeprefix("/swd/rest")
        if path not in routes:
            return httpx.Response(404)
        status, body = routes[path]
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


def test_client_requires_token():
    with pytest.raises(ConfigurationError, match="token"):
        TempestClient("")


@pytest.mark.asyncio
async def test_get_device_observations_parses_obs_rows():
    seen = []
    rows = [obs_row(T0 + 120, temp=22.0), obs_row(T0), obs_row(T0 + 60), obs_row(T0 + 3600)]
    client = TempestClient("secret", transport=mock_api({"/observations/device/2002": (200, {"obs": rows})}, seen))

    start = datetime.fromtimestamp(T0, tz=timezone.utc)
    end = datetime.fromtimestamp(T0 + 3600, tz=timezone.utc)
    observations = await client.get_device_observations(2002, start, end)

    assert [o.timestamp for o in observations] == [
        datetime.fromtimestamp(T0 + offset, tz=timezone.utc) for offset in (0, 60, 120)
    ]
    first = observations[0]
    assert first.wind_lull == 0.5
    assert first.wind_avg == 2.0
    assert first.wind_gust == 3.5
    assert first.wind_direction == 180
    assert first.station_pressure == 1012.5
    assert first.air_temperature == 21.3
    assert first.relative_humidity == 65
    assert first.uv_index == 3.2
    assert first.solar_radiation == 400
    assert first.rain_accumulation == 0.1
    assert first.lightning_avg_distance == 12
    assert first.lightning_strike_count == 2
    assert first.battery == 2.6
    assert first.feels_like == 21.3
    assert observations[2].air_temperature == 22.0

    request = seen[0]
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.url.params["time_start"] == str(T0)
    assert request.url.params["time_end"] == str(T0 + 3600)


@pytest.mark.asyncio
async def test_get_device_observations_skips_null_values():
    row = [T0, None, 2.0, None, 90, 3, 1000.0, 10.0, 80]
    client = TempestClient("secret", transport=mock_api({"/observations/device/2002": (200, {"obs": [row, None]})}))

    start = datetime.fromtimestamp(T0, tz=timezone.utc)
    observations = await client.get_device_observations(2002, start, datetime.fromtimestamp(T0 + 60, tz=timezone.utc))

    assert len(observations) == 1
    assert observations[0].wind_lull == 0.0
    assert observations[0].battery == 0.0


@pytest.mark.asyncio
async def test_get_device_observations_empty():
    client = TempestClient("secret", transport=mock_api({"/observations/device/2002": (200, {"obs": None})}))
    start = datetime.fromtimestamp(T0, tz=timezone.utc)
    assert await client.get_device_observations(2002, start, datetime.fromtimestamp(T0 + 60, tz=timezone.utc)) == []


@pytest.mark.asyncio
async def test_unauthorized_is_upstream_status_error():
    client = TempestClient("bad", transport=mock_api({"/observations/device/2002": (401, {"status": "unauthorized"})}))
    start = datetime.fromtimestamp(T0, tz=timezone.utc)

    with pytest.raises(UpstreamStatusError) as excinfo:
        await client.get_device_observations(2002, start, datetime.fromtimestamp(T0 + 60, tz=timezone.utc))
    assert excinfo.value.status_code == 401
    assert excinfo.value.source == "WeatherFlow API"


@pytest.mark.asyncio
async def test_get_station_observation():
    body = {
        "obs": [
            {
                "timestamp": T0,
                "air_temperature": 5.2,
                "feels_like": 3.1,
                "dew_point": 1.0,
                "relative_humidity": 80,
                "wind_avg": 2.5,
                "sea_level_pressure": 1020.1,
                "pressure_trend": "steady",
                "uv": 1,
                "precip_accum_local_day": None,
                "lightning_strike_count_last_3hr": 0,
            }
        ]
    }
    client = TempestClient("secret", transport=mock_api({"/observations/station/1001": (200, body)}))

    obs = await client.get_station_observation(1001)

    assert obs.timestamp == datetime.fromtimestamp(T0, tz=timezone.utc)
    assert obs.air_temperature == 5.2
    assert obs.pressure_trend == "steady"
    assert obs.precip_accum_local_day == 0.0


@pytest.mark.asyncio
async def test_get_station_observation_without_data():
    client = TempestClient("secret", transport=mock_api({"/observations/station/1001": (200, {"obs": []})}))
    with pytest.raises(DecodeError):
        await client.get_station_observation(1001)


@pytest.mark.asyncio
async def test_get_station():
    body = {
        "stations": [
            {
                "station_id": 1001,
                "name": "Backyard",
                "latitude": 41.88,
                "longitude": -87.63,
                "timezone": "America/Chicago",
                "devices": [{"device_id": 1, "device_type": "HB"}, {"device_id": 2002, "device_type": "ST"}],
            }
        ]
    }
    client = TempestClient("secret", transport=mock_api({"/stations/1001": (200, body)}))

    station = await client.get_station(1001)

    assert station.name == "Backyard"
    assert station.timezone == "America/Chicago"


@pytest.mark.asyncio
async def test_get_station_not_found():
    client = TempestClient("secret", transport=mock_api({}))
    with pytest.raises(UpstreamStatusError) as excinfo:
        await client.get_station(1001)
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_get_forecast_uses_station_timezone():
    # Local midnight 2024-01-15 in Tokyo is still 2024-01-14 in UTC
    tokyo_midnight = 1705276800 - 9 * 3600
    body = {
        "timezone": "Asia/Tokyo",
        "forecast": {
            "daily": [
                {
                    "day_start_local": tokyo_midnight,
                    "air_temp_high": 8.5,
                    "air_temp_low": 1.0,
                    "conditions": "Clear",
                    "icon": "clear-day",
                    "precip_probability": 10,
                    "sunrise": tokyo_midnight + 6 * 3600,
                    "sunset": tokyo_midnight + 17 * 3600,
                },
                {
                    "day_start_local": tokyo_midnight + 86400,
                    "air_temp_high": 6.0,
                    "air_temp_low": -1.0,
                    "conditions": "Snow Possible",
                    "icon": "possibly-snow-day",
                    "precip_probability": 40,
                    "precip_type": "snow",
                },
            ]
        },
    }
    seen = []
    client = TempestClient("secret", transport=mock_api({"/better_forecast": (200, body)}, seen))

    forecast = await client.get_forecast(1001)

    assert [d.date for d in forecast.daily] == [date(2024, 1, 15), date(2024, 1, 16)]
    assert forecast.daily[0].high_temp == 8.5
    assert forecast.daily[0].sunrise is not None
    assert forecast.daily[1].precip_type == "snow"
    assert seen[0].url.params["station_id"] == "1001"
    assert seen[0].url.params["units_temp"] == "c"


@pytest.mark.asyncio
async def test_get_forecast_malformed_day():
    body = {"forecast": {"daily": [{"day_start_local": T0}]}}
    client = TempestClient("secret", transport=mock_api({"/better_forecast": (200, body)}))
    with pytest.raises(DecodeError, match="malformed forecast day"):
        await client.get_forecast(1001)


@pytest.mark.asyncio
async def test_get_device_observations_tolerates_humidity_above_100():
    rows = [obs_row(T0 + 60 * i) for i in range(10)]
    rows[4] = obs_row(T0 + 240, humidity=100.4)
    client = TempestClient("secret", transport=mock_api({"/observations/device/2002": (200, {"obs": rows})}))

    start = datetime.fromtimestamp(T0, tz=timezone.utc)
    observations = await client.get_device_observations(2002, start, datetime.fromtimestamp(T0 + 600, tz=timezone.utc))

    assert len(observations) == 10
    assert observations[4].relative_humidity == 100.4


@pytest.mark.asyncio
async def test_request_deadline_is_enforced(monkeypatch):
    monkeypatch.setattr("tempest_cli.tempest_api.REQUEST_TIMEOUT", 0.05)
    never = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await never.wait()
        return httpx.Response(200, json={})

    client = TempestClient("secret", transport=httpx.MockTransport(handler))
    with pytest.raises(TransportError) as excinfo:
        await asyncio.wait_for(client.get_station(1001), timeout=2)
    assert excinfo.value.kind == TransportError.TIMEOUT
