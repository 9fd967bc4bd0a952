from datetime import datetime, timezone

import pytest

from tempest_cli.models import Observation
from tempest_cli.units import (
    IMPERIAL,
    METRIC,
    celsius_to_fahrenheit,
    convert_observation,
    fahrenheit_to_celsius,
    feels_like,
    hpa_to_inhg,
    km_to_miles,
    mm_to_inches,
    mps_to_mph,
    wind_direction_to_compass,
)


@pytest.mark.parametrize("c, f", [(0, 32), (100, 212), (-40, -40), (20, 68)])
def test_temperature_conversion(c, f):
    assert celsius_to_fahrenheit(c) == pytest.approx(f)
    assert fahrenheit_to_celsius(f) == pytest.approx(c)


def test_other_conversions():
    assert mps_to_mph(10) == pytest.approx(22.369, abs=0.001)
    assert hpa_to_inhg(1013.25) == pytest.approx(29.92, abs=0.01)
    assert mm_to_inches(25.4) == pytest.approx(1.0)
    assert km_to_miles(1.609344) == pytest.approx(1.0)


@pytest.mark.parametrize(
    "degrees, point",
    [(0, "N"), (359, "N"), (22.5, "NNE"), (45, "NE"), (90, "E"), (180, "S"), (270, "W"), (337.5, "NNW"), (-90, "W"), (720, "N")],
)
def test_wind_direction_to_compass(degrees, point):
    assert wind_direction_to_compass(degrees) == point


def test_feels_like_mild_is_air_temperature():
    assert feels_like(20.0, 50.0, 3.0) == 20.0


def test_feels_like_wind_chill():
    chilled = feels_like(0.0, 50.0, 5.0)
    assert -6.0 < chilled < -4.0


def test_feels_like_cold_and_calm():
    assert feels_like(0.0, 50.0, 0.5) == 0.0


def test_feels_like_heat_index():
    hot = feels_like(32.0, 70.0, 1.0)
    assert 38.0 < hot < 44.0


def test_convert_observation_metric_is_identity():
    obs = Observation(timestamp=datetime(2024, 1, 15, tzinfo=timezone.utc), air_temperature=20.0)
    assert convert_observation(obs, METRIC) is obs


def test_convert_observation_imperial():
    ts = datetime(2024, 1, 15, tzinfo=timezone.utc)
    obs = Observation(
        timestamp=ts,
        air_temperature=20.0,
        feels_like=20.0,
        relative_humidity=55.0,
        wind_avg=10.0,
        station_pressure=1013.25,
        rain_accumulation=25.4,
        lightning_avg_distance=1.609344,
    )

    converted = convert_observation(obs, IMPERIAL)

    assert converted.timestamp == ts
    assert converted.air_temperature == pytest.approx(68.0)
    assert converted.feels_like == pytest.approx(68.0)
    assert converted.relative_humidity == 55.0
    assert converted.wind_avg == pytest.approx(22.369, abs=0.001)
    assert converted.station_pressure == pytest.approx(29.92, abs=0.01)
    assert converted.rain_accumulation == pytest.approx(1.0)
    assert converted.lightning_avg_distance == pytest.approx(1.0)
    # Original untouched
    assert obs.air_temperature == 20.0
