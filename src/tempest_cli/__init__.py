"""Command-line client for WeatherFlow Tempest weather stations."""

__version__ = "0.1.0"
