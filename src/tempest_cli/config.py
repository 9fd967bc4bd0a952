import logging
import os
import stat
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from tempest_cli.errors import CONFIG_HINT, ConfigurationError
from tempest_cli.tempestd import validate_server_url
from tempest_cli.units import IMPERIAL, METRIC, UNIT_SYSTEMS

logger = logging.getLogger("tempest.config")

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "tempest" / "config.yaml"


class StationConfig(BaseModel):
    """Per-station settings"""

    token: str = ""
    station_id: int = 0
    device_id: int = 0
    name: str = ""


class DaemonConfig(BaseModel):
    server: str = ""


class Config(BaseSettings):
    """
    Application configuration.
    Sources, highest priority first: explicit overrides, TEMPEST_* environment,
    .env file, YAML config file.
    """

    default_station: str = ""
    units: str = IMPERIAL
    stations: Dict[str, StationConfig] = Field(default_factory=dict)
    tempestd: DaemonConfig = Field(default_factory=DaemonConfig)
    # Flat alias for tempestd.server
    server: str = ""

    model_config = SettingsConfigDict(
        env_prefix="TEMPEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        yaml_file=DEFAULT_CONFIG_PATH,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, dotenv_settings, YamlConfigSettingsSource(settings_cls))

    @field_validator("units")
    @classmethod
    def _check_units(cls, value: str) -> str:
        value = (value or IMPERIAL).strip().lower()
        if value not in UNIT_SYSTEMS:
            raise ValueError(f"units must be 'metric' or 'imperial', got {value!r}")
        return value

    @property
    def is_imperial(self) -> bool:
        return self.units == IMPERIAL

    @property
    def unit_system(self) -> str:
        return IMPERIAL if self.is_imperial else METRIC

    def effective_server_url(self) -> str:
        """Return the daemon URL from tempestd.server or the flat server key"""
        return self.tempestd.server or self.server

    def station_names(self) -> List[str]:
        return sorted(self.stations)

    def resolve_station(self, name: Optional[str] = None) -> StationConfig:
        """Return the named station, the default station, or the first configured one"""
        name = name or self.default_station
        if not name:
            names = self.station_names()
            if not names:
                raise ConfigurationError("no stations configured", CONFIG_HINT)
            name = names[0]

        station = self.stations.get(name)
        if station is None:
            available = ", ".join(self.station_names())
            raise ConfigurationError(f"station {name!r} not found; available: {available}")

        # Fall back to the config key for display
        if not station.name:
            station = station.model_copy(update={"name": name})
        return station


def resolve_config_path(config_file: Optional[str] = None) -> Tuple[Path, bool]:
    """Return the config file path and whether it was chosen explicitly"""
    if config_file:
        return Path(config_file).expanduser(), True
    env_path = os.getenv("TEMPEST_CONFIG")
    if env_path:
        return Path(env_path).expanduser(), True
    return DEFAULT_CONFIG_PATH, False


def apply_env_overrides(cfg: Config) -> Config:
    """Apply TEMPEST_TOKEN, TEMPEST_STATION_ID and TEMPEST_DEVICE_ID to the default station"""
    token = os.getenv("TEMPEST_TOKEN", "")
    station_id = os.getenv("TEMPEST_STATION_ID", "")
    device_id = os.getenv("TEMPEST_DEVICE_ID", "")

    if not (token or station_id or device_id):
        return cfg

    name = cfg.default_station or "default"
    station = cfg.stations.get(name, StationConfig())
    updates: Dict[str, Any] = {}
    if token:
        updates["token"] = token
    if station_id:
        try:
            updates["station_id"] = int(station_id)
        except ValueError:
            logger.warning(f"Ignoring non-numeric TEMPEST_STATION_ID={station_id!r}")
    if device_id:
        try:
            updates["device_id"] = int(device_id)
        except ValueError:
            logger.warning(f"Ignoring non-numeric TEMPEST_DEVICE_ID={device_id!r}")

    stations = dict(cfg.stations)
    stations[name] = station.model_copy(update=updates)
    return cfg.model_copy(update={"default_station": name, "stations": stations})


def check_config_permissions(path: Path) -> None:
    """Warn when the config file, which may hold API tokens, is readable by others"""
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
    except OSError:
        return
    if mode & 0o044:
        logger.warning(
            f"Config file {path} is readable by others (mode {mode:04o}). Consider: chmod 600 {path}"
        )


def load_config(config_file: Optional[str] = None, **overrides: Any) -> Config:
    """Load configuration from file and environment, applying explicit overrides"""
    path, explicit = resolve_config_path(config_file)
    if path.is_file():
        logger.debug(f"Loading config file {path}")
        check_config_permissions(path)
    elif explicit:
        logger.warning(f"Cannot read config file {path}")

    # Bind the YAML source to the resolved path for this load only
    settings_cls = type(
        "Config",
        (Config,),
        {"model_config": SettingsConfigDict(**{**Config.model_config, "yaml_file": path})},
    )
    overrides = {key: value for key, value in overrides.items() if value}

    try:
        cfg = settings_cls(**overrides)
    except (ValueError, yaml.YAMLError) as e:
        # pydantic.ValidationError is a ValueError
        raise ConfigurationError(f"parsing config: {e}") from e

    return apply_env_overrides(cfg)


def resolve_server_url(cfg: Config, override: Optional[str] = None) -> Optional[str]:
    """Return the daemon URL from the --server option or config, or None when unset or invalid"""
    url = override or cfg.effective_server_url()
    if not url:
        return None
    try:
        validate_server_url(url)
    except ConfigurationError as e:
        logger.warning(f"Ignoring invalid server URL {url!r}: {e}")
        return None
    return url
