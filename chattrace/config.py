"""Environment-based settings for the sample programs."""

import os

from pydantic import BaseModel, Field, ValidationError

from chattrace.clients.anthropic import ClientConfig
from chattrace.errors import ConfigurationError
from chattrace.services.conversation import DEFAULT_MAX_ITERATIONS
from chattrace.telemetry import DEFAULT_OTLP_ENDPOINT


class Settings(BaseModel):
    """Settings read from the environment."""

    api_key: str | None = None
    base_url: str | None = None
    model: str = ClientConfig.model
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)
    service_name: str = "chattrace"
    otlp_endpoint: str = DEFAULT_OTLP_ENDPOINT
    log_level: str = "INFO"

    def client_config(self) -> ClientConfig:
        """Build the completion client configuration."""
        return ClientConfig(model=self.model)

    def require_api_key(self) -> str:
        """Get the API key, failing when it is not configured."""
        if not self.api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY environment variable is required")
        return self.api_key


def load_settings() -> Settings:
    """Read settings from environment variables.

    Returns:
        Settings with defaults for any variable that is not set

    Raises:
        ConfigurationError: If a variable holds an invalid value
    """
    values = {
        "api_key": os.getenv("ANTHROPIC_API_KEY"),
        "base_url": os.getenv("ANTHROPIC_BASE_URL"),
        "model": os.getenv("CHATTRACE_MODEL"),
        "max_iterations": os.getenv("CHATTRACE_MAX_ITERATIONS"),
        "service_name": os.getenv("OTEL_SERVICE_NAME"),
        "otlp_endpoint": os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"),
        "log_level": os.getenv("LOG_LEVEL"),
    }
    try:
        return Settings.model_validate({key: value for key, value in values.items() if value})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
