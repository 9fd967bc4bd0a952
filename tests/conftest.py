from datetime import datetime, timedelta, timezone

import pytest

from tempest_cli.config import Config, StationConfig
from tempest_cli.models import Observation


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the developer's TEMPEST_* variables, .env and config file out of the tests."""
    monkeypatch.setitem(Config.model_config, "yaml_file", tmp_path / "no-config.yaml")
    monkeypatch.setattr("tempest_cli.config.DEFAULT_CONFIG_PATH", tmp_path / "no-config.yaml")
    for name in (
        "TEMPEST_CONFIG",
        "TEMPEST_TOKEN",
        "TEMPEST_STATION_ID",
        "TEMPEST_DEVICE_ID",
        "TEMPEST_UNITS",
        "TEMPEST_SERVER",
        "TEMPEST_STATION",
        "NO_COLOR",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def station():
    return StationConfig(token="test-token", station_id=1001, device_id=2002, name="Home")


@pytest.fixture
def minute_observations():
    """Sixty observations one minute apart starting 2024-01-15 10:00 UTC."""
    base = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
    return [Observation(timestamp=base + timedelta(minutes=i), air_temperature=float(i)) for i in range(60)]


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "default_station: home\n"
        "units: metric\n"
        "stations:\n"
        "  home:\n"
        "    token: abc123\n"
        "    station_id: 1001\n"
        "    device_id: 2002\n"
        "  cabin:\n"
        "    token: def456\n"
        "    station_id: 3003\n"
        "    name: Lake Cabin\n"
    )
    path.chmod(0o600)
    return path
