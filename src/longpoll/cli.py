"""Command-line interface for longpoll."""

import argparse
import asyncio
import contextlib
import signal
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError
from rich.console import Console

from . import __version__
from .core.poller import LongPollClient
from .errors import ConfigurationError, LongPollError, PollCancelledError
from .logging_config import setup_logging, verbosity_level
from .models.config import PollConfig, expand_env_vars, merge_headers
from .models.directive import Directive
from .transport.protocols import PollResponse

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="longpoll",
        description="Long-poll an HTTP endpoint and print every response",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Poll until interrupted, retrying failures forever
  longpoll https://api.example.com/events

  # Stop after 10 responses, give up after 5 consecutive failures
  longpoll https://api.example.com/events --max-responses 10 --max-retries 5

  # POST a body with every poll and send an auth header
  longpoll https://api.example.com/poll -d 'cursor=0' -H 'Authorization: Bearer $TOKEN'

  # Follow the URL the server hands back in a response header
  longpoll https://api.example.com/poll --follow-header X-Next-Poll
        """,
    )

    parser.add_argument("url", nargs="?", help="URL to poll")

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="YAML file with PollConfig settings (command-line flags override it)",
    )

    # Request settings
    request_group = parser.add_argument_group("request settings")
    request_group.add_argument(
        "--method",
        "-X",
        default=None,
        help="HTTP method (default: GET, or POST when --data is given)",
    )
    request_group.add_argument(
        "--header",
        "-H",
        action="append",
        default=[],
        metavar="'NAME: VALUE'",
        help="Extra request header (repeatable; $VAR is expanded from the environment)",
    )
    request_group.add_argument(
        "--data",
        "-d",
        default=None,
        help="Request body sent with every poll",
    )
    request_group.add_argument(
        "--timeout",
        "-t",
        type=float,
        default=None,
        help="Timeout for each poll request in seconds (default: 60)",
    )

    # Retry settings
    retry_group = parser.add_argument_group("retry settings")
    retry_group.add_argument(
        "--retry-delay",
        type=float,
        default=None,
        help="Seconds to wait after a failed request (default: 1)",
    )
    retry_group.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help="Consecutive retries before giving up, -1 for unlimited (default: -1)",
    )
    retry_group.add_argument(
        "--backoff",
        type=float,
        default=None,
        help="Multiply the retry delay by this factor per consecutive failure (default: 1)",
    )
    retry_group.add_argument(
        "--max-retry-delay",
        type=float,
        default=None,
        help="Upper bound for the backed-off retry delay in seconds",
    )

    # Session settings
    session_group = parser.add_argument_group("session settings")
    session_group.add_argument(
        "--max-responses",
        "-n",
        type=int,
        default=None,
        help="Stop after this many successful responses",
    )
    session_group.add_argument(
        "--follow-header",
        default=None,
        metavar="NAME",
        help="Poll the URL found in this response header next, when present",
    )

    # Output
    output_group = parser.add_argument_group("output")
    output_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    output_group.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Print response bodies only",
    )
    output_group.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file",
    )

    return parser


def parse_header(raw: str) -> tuple[str, str]:
    """Split a 'Name: value' header argument."""
    name, sep, value = raw.partition(":")
    name = name.strip()
    if not sep or not name:
        raise ConfigurationError(f"Invalid header {raw!r}, expected 'Name: value'")
    return name, value.strip()


def build_config(args: argparse.Namespace) -> PollConfig:
    """
    Build a PollConfig from a YAML file (if given) and CLI overrides.

    Raises:
        ConfigurationError: If the file cannot be read or a value is invalid
    """
    try:
        base = PollConfig.from_yaml_file(args.config) if args.config else PollConfig()
    except ImportError as e:
        raise ConfigurationError("PyYAML is required for --config (pip install longpoll[yaml])") from e
    except OSError as e:
        raise ConfigurationError(f"Could not read config file {args.config}: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config file {args.config}: {e}") from e

    overrides: dict[str, Any] = {}
    if args.timeout is not None:
        overrides["poll_timeout"] = args.timeout
    if args.retry_delay is not None:
        overrides["retry_delay"] = args.retry_delay
    if args.max_retries is not None:
        overrides["max_retries"] = args.max_retries
    if args.backoff is not None:
        overrides["backoff_factor"] = args.backoff
    if args.max_retry_delay is not None:
        overrides["max_retry_delay"] = args.max_retry_delay

    if args.header:
        headers = dict(base.headers)
        for raw in args.header:
            name, value = parse_header(raw)
            headers = merge_headers(headers, {name: expand_env_vars(value)})
        overrides["headers"] = headers

    if args.data is not None:
        payload = args.data.encode()
        overrides["body_factory"] = lambda: payload
        if args.method is None:
            overrides["method"] = "POST"
    if args.method is not None:
        overrides["method"] = args.method

    try:
        return base.updated(**overrides)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def run_poller(args: argparse.Namespace) -> int:
    """Run a polling session with given arguments."""
    console = Console()

    if not args.url:
        console.print("[red]Error:[/red] Please provide a URL to poll")
        return EXIT_ERROR

    setup_logging(level=verbosity_level(args.verbose, args.quiet), log_file=args.log_file, force=True)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return EXIT_ERROR

    received = 0

    async def on_response(response: PollResponse) -> Directive:
        nonlocal received
        received += 1
        body = await response.text()

        if not args.quiet:
            console.print(f"[bold green]{response.status}[/bold green] {response.url}")
        console.print(body, markup=False, highlight=False)

        next_url = ""
        if args.follow_header:
            next_url = response.headers.get(args.follow_header, "")

        if args.max_responses is not None and received >= args.max_responses:
            return Directive.stop(next_url)
        return Directive.proceed(next_url)

    async def run() -> int:
        if not args.quiet:
            console.print(f"[bold blue]longpoll[/bold blue] v{__version__}")
            console.print(f"Target: {args.url} ({config.method})")
            console.print()

        async with LongPollClient(config) as client:
            loop = asyncio.get_running_loop()
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(signal.SIGINT, client.stop_all)

            try:
                await client.poll(args.url, on_response)
            except PollCancelledError:
                if not args.quiet:
                    console.print(f"[yellow]Cancelled[/yellow] after {received} response(s)")
                return EXIT_CANCELLED
            except LongPollError as e:
                console.print(f"[red]Error:[/red] {e}")
                return EXIT_ERROR
            finally:
                with contextlib.suppress(NotImplementedError):
                    loop.remove_signal_handler(signal.SIGINT)

            if not args.quiet:
                stats = client.stats
                console.print()
                console.print("[bold]Results:[/bold]")
                console.print(f"  Responses: {received}")
                console.print(f"  Attempts: {stats.attempts}")
                console.print(f"  Failures: {stats.failures}")
            return EXIT_OK

    return asyncio.run(run())


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    return run_poller(args)


if __name__ == "__main__":
    sys.exit(main())
