"""Flight information lookup tool."""

import json

from pydantic import BaseModel, Field

from chattrace.tools.registry import ToolCatalog

NO_FLIGHTS = {"error": "No flights found between the cities"}

FLIGHTS_BY_ROUTE = {
    ("seattle", "miami"): {
        "airline": "Delta",
        "flight_number": "DL123",
        "flight_date": "May 7th, 2024",
        "flight_time": "10:00AM",
    },
}


class FlightRouteInput(BaseModel):
    """Input schema for the flight information tool."""

    origin_city: str = Field(
        ...,
        description="The name of the city where the flight originates",
        examples=["Seattle"],
    )
    destination_city: str = Field(
        ...,
        description="The flight destination city",
        examples=["Miami"],
    )


def get_flight_info(arguments: FlightRouteInput) -> str:
    """Look up the next flight between two cities, returned as a JSON document."""
    route = (arguments.origin_city.strip().lower(), arguments.destination_city.strip().lower())
    return json.dumps(FLIGHTS_BY_ROUTE.get(route, NO_FLIGHTS))


def register_flight_tools(catalog: ToolCatalog) -> ToolCatalog:
    """Add ``get_flight_info`` to a catalog."""
    catalog.register(
        "get_flight_info",
        (
            "Returns information about the next flight between two cities. "
            "This includes the name of the airline, flight number and the date and time "
            "of the next flight, in JSON format."
        ),
        FlightRouteInput,
        get_flight_info,
    )
    return catalog


def create_flight_catalog() -> ToolCatalog:
    """Create a catalog holding the flight information tool."""
    return register_flight_tools(ToolCatalog())
