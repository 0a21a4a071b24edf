"""Tools the model can ask the program to run."""

from chattrace.tools.flights import create_flight_catalog
from chattrace.tools.registry import ToolCatalog
from chattrace.tools.weather import create_weather_catalog

__all__ = ["ToolCatalog", "create_flight_catalog", "create_weather_catalog"]
