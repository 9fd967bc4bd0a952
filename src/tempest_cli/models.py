from datetime import date, datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TimeWindow(BaseModel):
    """Half-open interval [start, end) of instants"""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "TimeWindow":
        if self.start >= self.end:
            raise ValueError(f"window start {self.start} must be before end {self.end}")
        return self

    @property
    def span(self) -> timedelta:
        return self.end - self.start


class Observation(BaseModel):
    """A single point-in-time reading from a Tempest device"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    timestamp: datetime
    air_temperature: float = 0.0
    feels_like: float = 0.0
    relative_humidity: float = 0.0
    wind_avg: float = 0.0
    wind_gust: float = 0.0
    wind_lull: float = 0.0
    wind_direction: float = 0.0
    station_pressure: float = 0.0
    sea_level_pressure: float = 0.0
    rain_accumulation: float = 0.0
    uv_index: float = 0.0
    solar_radiation: float = 0.0
    lightning_strike_count: int = 0
    lightning_avg_distance: float = 0.0
    battery: float = 0.0
    station_id: Optional[int] = None


class StationObservation(BaseModel):
    """Latest station-level conditions"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    timestamp: datetime
    air_temperature: float = 0.0
    feels_like: float = 0.0
    dew_point: float = 0.0
    relative_humidity: float = 0.0
    wind_avg: float = 0.0
    wind_gust: float = 0.0
    wind_lull: float = 0.0
    wind_direction: float = 0.0
    station_pressure: float = 0.0
    sea_level_pressure: float = 0.0
    pressure_trend: Optional[str] = None
    uv: float = 0.0
    solar_radiation: float = 0.0
    precip_accum_local_day: float = 0.0
    lightning_strike_count_last_3hr: int = 0
    lightning_strike_last_distance: float = 0.0
    battery: float = 0.0


class Device(BaseModel):
    model_config = ConfigDict(extra="ignore")

    device_id: int
    device_type: Optional[str] = None
    serial_number: Optional[str] = None


class Station(BaseModel):
    model_config = ConfigDict(extra="ignore")

    station_id: int
    name: str = ""
    public_name: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    timezone: Optional[str] = None
    devices: List[Device] = Field(default_factory=list)


class ForecastDay(BaseModel):
    model_config = ConfigDict(extra="ignore")

    date: date
    high_temp: float
    low_temp: float
    conditions: str = ""
    icon: str = ""
    precip_chance: int = 0
    precip_type: Optional[str] = None
    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None


class Forecast(BaseModel):
    model_config = ConfigDict(extra="ignore")

    daily: List[ForecastDay] = Field(default_factory=list)


class StationRow(BaseModel):
    """Status line for one configured station"""

    config_name: str
    station_name: str
    station_id: int
    device_id: int = 0
    is_default: bool = False
    online: bool = False
    last_observed: Optional[datetime] = None
