"""Weather and temperature lookup tools."""

from pydantic import BaseModel, Field

from chattrace.tools.registry import ToolCatalog

UNAVAILABLE = "Unavailable"

WEATHER_BY_CITY = {
    "seattle": "Nice weather",
    "new york city": "Good weather",
}

TEMPERATURE_BY_CITY = {
    "seattle": "75",
    "new york city": "80",
}


class WeatherInput(BaseModel):
    """Input schema for the weather tool."""

    city: str = Field(
        ...,
        description="The name of the city for which weather info is requested",
        examples=["Seattle", "New York City"],
    )


class TemperatureInput(BaseModel):
    """Input schema for the temperature tool."""

    city: str = Field(
        ...,
        description="The name of the city for which temperature info is requested",
        examples=["Seattle", "New York City"],
    )


def get_weather(arguments: WeatherInput) -> str:
    """Describe the weather in a city, or ``Unavailable`` for unknown cities."""
    return WEATHER_BY_CITY.get(arguments.city.strip().lower(), UNAVAILABLE)


def get_temperature(arguments: TemperatureInput) -> str:
    """Current temperature in a city, or ``Unavailable`` for unknown cities."""
    return TEMPERATURE_BY_CITY.get(arguments.city.strip().lower(), UNAVAILABLE)


def register_weather_tools(catalog: ToolCatalog) -> ToolCatalog:
    """Add ``get_weather`` and ``get_temperature`` to a catalog."""
    catalog.register(
        "get_weather",
        "Returns description of the weather in the specified city",
        WeatherInput,
        get_weather,
    )
    catalog.register(
        "get_temperature",
        "Returns the current temperature for the specified city",
        TemperatureInput,
        get_temperature,
    )
    return catalog


def create_weather_catalog() -> ToolCatalog:
    """Create a catalog holding the weather and temperature tools."""
    return register_weather_tools(ToolCatalog())
