"""Command-line entry point for the traced tool-calling samples."""

import argparse
import sys
from collections.abc import Callable
from dataclasses import dataclass

from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from chattrace.clients.anthropic import AnthropicClient
from chattrace.config import Settings, load_settings
from chattrace.errors import ChatTraceError
from chattrace.models.llm import Message, SystemMessage, UserMessage
from chattrace.services.conversation import ConversationLoop
from chattrace.telemetry import Telemetry
from chattrace.tools import create_flight_catalog, create_weather_catalog
from chattrace.tools.registry import ToolCatalog
from chattrace.utils.logging import LogConfig, get_logger, setup_logging

logger = get_logger(__name__)


@dataclass(frozen=True)
class Sample:
    """One runnable sample conversation."""

    span_name: str
    system_prompt: str
    user_prompt: str
    catalog_factory: Callable[[], ToolCatalog]
    streaming: bool

    def seed_messages(self, user_prompt: str | None = None) -> list[Message]:
        return [SystemMessage(text=self.system_prompt), UserMessage(text=user_prompt or self.user_prompt)]


SAMPLES: dict[str, Sample] = {
    "weather": Sample(
        span_name="contoso-weather-temperature-app",
        system_prompt="You are a helpful assistant.",
        user_prompt="What is the weather and temperature in Seattle?",
        catalog_factory=create_weather_catalog,
        streaming=False,
    ),
    "flight": Sample(
        span_name="contoso-flight-info-app",
        system_prompt="You are an assistant that helps users find flight information.",
        user_prompt="What is the next flight from Seattle to Miami?",
        catalog_factory=create_flight_catalog,
        streaming=True,
    ),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chattrace",
        description="Run a traced tool-calling conversation against a hosted chat-completion model.",
    )
    parser.add_argument("sample", choices=list(SAMPLES.keys()), help="Sample conversation to run")
    parser.add_argument("--prompt", help="Replace the sample's user prompt")
    parser.add_argument("--model", "-m", help="Model ID (defaults to CHATTRACE_MODEL or the client default)")
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Maximum number of model calls before giving up",
    )
    parser.add_argument(
        "--stream",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Force the streaming or non-streaming completion call",
    )
    parser.add_argument("--console-traces", action="store_true", help="Print finished spans to stdout")
    parser.add_argument("--otlp-endpoint", help="OTLP/HTTP collector endpoint (defaults to OTEL_EXPORTER_OTLP_ENDPOINT)")
    parser.add_argument("--no-otlp", action="store_true", help="Do not export spans over OTLP")
    return parser


def run_sample(
    sample: Sample,
    settings: Settings,
    telemetry: Telemetry,
    console: Console,
    prompt: str | None = None,
    streaming: bool | None = None,
) -> int:
    """Run one sample and print the model's answer.

    Returns:
        Process exit code
    """
    tracer = telemetry.tracer()

    try:
        client = AnthropicClient(
            api_key=settings.require_api_key(),
            base_url=settings.base_url,
            config=settings.client_config(),
            tracer=tracer,
        )
        loop = ConversationLoop(
            client,
            sample.catalog_factory(),
            tracer,
            max_iterations=settings.max_iterations,
            streaming=sample.streaming if streaming is None else streaming,
            span_name=sample.span_name,
        )
        result = loop.run(sample.seed_messages(prompt))
    except ChatTraceError as e:
        logger.error(f"Conversation failed: {e}")
        console.print(f"[red]❌ {type(e).__name__}: {e}[/red]")
        return 1

    console.print(
        Panel(
            Markdown(result.content or "_(no content returned)_"),
            title="[bold green]Model response[/bold green]",
            subtitle=f"[dim]{result.turns} turns, {result.usage.total_tokens} tokens[/dim]",
            border_style="green",
            padding=(1, 2),
        )
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the samples."""
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.max_iterations is not None and args.max_iterations < 1:
        parser.error("--max-iterations must be at least 1")
    console = Console()

    try:
        settings = load_settings()
    except ChatTraceError as e:
        console.print(f"[red]❌ {e}[/red]")
        return 2

    updates = {}
    if args.model:
        updates["model"] = args.model
    if args.max_iterations is not None:
        updates["max_iterations"] = args.max_iterations
    settings = settings.model_copy(update=updates)

    setup_logging(LogConfig(level=settings.log_level))

    telemetry = Telemetry.create(
        service_name=settings.service_name,
        otlp_endpoint=None if args.no_otlp else (args.otlp_endpoint or settings.otlp_endpoint),
        console=args.console_traces,
    )
    try:
        return run_sample(
            SAMPLES[args.sample],
            settings,
            telemetry,
            console,
            prompt=args.prompt,
            streaming=args.stream,
        )
    finally:
        telemetry.shutdown()


if __name__ == "__main__":
    sys.exit(main())
