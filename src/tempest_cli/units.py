"""Unit conversion helpers.

Observations arrive from the cloud API in metric: degrees Celsius, metres per
second, hectopascals, millimetres and kilometres. Imperial output uses
Fahrenheit, miles per hour, inches of mercury, inches and miles.
"""

import math

from tempest_cli.models import Observation, StationObservation

METRIC = "metric"
IMPERIAL = "imperial"
UNIT_SYSTEMS = (METRIC, IMPERIAL)

COMPASS_POINTS = [
    "N",
    "NNE",
    "NE",
    "ENE",
    "E",
    "ESE",
    "SE",
    "SSE",
    "S",
    "SSW",
    "SW",
    "WSW",
    "W",
    "WNW",
    "NW",
    "NNW",
]


def celsius_to_fahrenheit(c: float) -> float:
    return c * 9.0 / 5.0 + 32.0


def fahrenheit_to_celsius(f: float) -> float:
    return (f - 32.0) * 5.0 / 9.0


def mps_to_mph(mps: float) -> float:
    return mps * 2.2369362920544


def hpa_to_inhg(hpa: float) -> float:
    return hpa * 0.0295299830714


def mm_to_inches(mm: float) -> float:
    return mm / 25.4


def km_to_miles(km: float) -> float:
    return km * 0.621371192


def wind_direction_to_compass(degrees: float) -> str:
    """Convert a bearing in degrees to a 16-point compass direction"""
    idx = round((degrees % 360) / 22.5) % 16
    return COMPASS_POINTS[idx]


def feels_like(temp_c: float, humidity: float, wind_mps: float) -> float:
    """Apparent temperature in Celsius.

    Wind chill (NWS 2001) below 10 °C with wind above 3 mph, Rothfusz heat
    index at or above 26.7 °C, otherwise the air temperature itself.
    """
    temp_f = celsius_to_fahrenheit(temp_c)
    wind_mph = mps_to_mph(wind_mps)

    if temp_f <= 50.0 and wind_mph > 3.0:
        v = wind_mph**0.16
        chill_f = 35.74 + 0.6215 * temp_f - 35.75 * v + 0.4275 * temp_f * v
        return fahrenheit_to_celsius(chill_f)

    if temp_f >= 80.0:
        rh = humidity
        hi_f = (
            -42.379
            + 2.04901523 * temp_f
            + 10.14333127 * rh
            - 0.22475541 * temp_f * rh
            - 0.00683783 * temp_f**2
            - 0.05481717 * rh**2
            + 0.00122874 * temp_f**2 * rh
            + 0.00085282 * temp_f * rh**2
            - 0.00000199 * temp_f**2 * rh**2
        )
        # NWS low and high humidity adjustments
        if rh < 13 and temp_f <= 112.0:
            hi_f -= ((13.0 - rh) / 4.0) * math.sqrt((17.0 - abs(temp_f - 95.0)) / 17.0)
        elif rh > 85 and temp_f <= 87.0:
            hi_f += ((rh - 85.0) / 10.0) * ((87.0 - temp_f) / 5.0)
        return fahrenheit_to_celsius(hi_f)

    return temp_c


def convert_observation(obs: Observation, system: str) -> Observation:
    """Return a copy of a metric observation expressed in the given unit system"""
    if system != IMPERIAL:
        return obs
    return obs.model_copy(
        update={
            "air_temperature": celsius_to_fahrenheit(obs.air_temperature),
            "feels_like": celsius_to_fahrenheit(obs.feels_like),
            "wind_avg": mps_to_mph(obs.wind_avg),
            "wind_gust": mps_to_mph(obs.wind_gust),
            "wind_lull": mps_to_mph(obs.wind_lull),
            "station_pressure": hpa_to_inhg(obs.station_pressure),
            "sea_level_pressure": hpa_to_inhg(obs.sea_level_pressure),
            "rain_accumulation": mm_to_inches(obs.rain_accumulation),
            "lightning_avg_distance": km_to_miles(obs.lightning_avg_distance),
        }
    )


def convert_station_observation(obs: StationObservation, system: str) -> StationObservation:
    if system != IMPERIAL:
        return obs
    return obs.model_copy(
        update={
            "air_temperature": celsius_to_fahrenheit(obs.air_temperature),
            "feels_like": celsius_to_fahrenheit(obs.feels_like),
            "dew_point": celsius_to_fahrenheit(obs.dew_point),
            "wind_avg": mps_to_mph(obs.wind_avg),
            "wind_gust": mps_to_mph(obs.wind_gust),
            "wind_lull": mps_to_mph(obs.wind_lull),
            "station_pressure": hpa_to_inhg(obs.station_pressure),
            "sea_level_pressure": hpa_to_inhg(obs.sea_level_pressure),
            "precip_accum_local_day": mm_to_inches(obs.precip_accum_local_day),
            "lightning_strike_last_distance": km_to_miles(obs.lightning_strike_last_distance),
        }
    )
