"""Entry point for syscheck — `syscheck` console script."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from syscheck.api.server import create_app
from syscheck.config import ConfigurationError, Settings, load_settings
from syscheck.health.engine import Status, build_client
from syscheck.health.scheduler import CheckLoop
from syscheck.health.store import ResultStore, StoreSnapshot

console = Console()

# Seconds uvicorn waits for in-flight requests on shutdown
GRACEFUL_SHUTDOWN = 5


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def run_server(settings: Settings) -> None:
    """Start the daemon: check loop in the background, /health + /metrics in front."""
    console.print(
        Panel.fit(
            f"[bold]syscheck daemon[/bold]\n"
            f"Listen:   {settings.listen_host}:{settings.listen_port}\n"
            f"Targets:  {len(settings.target_list)}\n"
            f"Timeout:  {settings.timeout}s\n"
            f"Interval: {settings.interval}s\n"
            f"Metrics:  {settings.metrics_backend}",
            title="syscheck",
            border_style="green",
        )
    )
    uvicorn.run(
        create_app(settings),
        host=settings.listen_host,
        port=settings.listen_port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=GRACEFUL_SHUTDOWN,
    )
    console.print("[dim]syscheck shut down cleanly[/dim]")


async def check_once(settings: Settings) -> StoreSnapshot:
    """Run a single pass over every target and return the resulting snapshot."""
    store = ResultStore(settings.target_list)
    with build_client(settings.timeout) as client:
        check_loop = CheckLoop(client, store, settings.interval)
        try:
            await check_loop.run_once()
        finally:
            await check_loop.stop()
    return store.snapshot()


def run_cli(settings: Settings) -> int:
    """One-shot mode: probe every target once, print a table, exit non-zero if degraded."""
    snapshot = asyncio.run(check_once(settings))

    table = Table(title="syscheck")
    table.add_column("Target")
    table.add_column("Status", justify="right")
    table.add_column("Error")
    for result in snapshot.results.values():
        style = "green" if result.ok else "red"
        table.add_row(
            result.target,
            f"[{style}]{result.status_code}[/{style}]",
            result.last_error,
        )
    console.print(table)

    status = snapshot.status
    colour = "green" if status is Status.HEALTHY else "red"
    console.print(
        f"[bold {colour}]{status.value}[/bold {colour}] "
        f"[dim]({snapshot.success_count} ok / {snapshot.failure_count} failed)[/dim]"
    )
    return 0 if status is Status.HEALTHY else 1


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--targets", help="comma-separated HTTP targets")
    parser.add_argument("--timeout", help="per-request timeout, e.g. 5s or 500ms")
    parser.add_argument("--log-level", dest="log_level", help="DEBUG, INFO, WARNING, ...")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="syscheck HTTP health-check daemon")
    sub = parser.add_subparsers(dest="command")

    # Daemon mode
    serve_parser = sub.add_parser("serve", help="Poll targets and serve /health and /metrics")
    _add_common_flags(serve_parser)
    serve_parser.add_argument("--interval", help="health-check period, e.g. 30s")
    serve_parser.add_argument("--listen", help="HTTP server address, e.g. :8080")
    serve_parser.add_argument(
        "--metrics-backend", dest="metrics_backend", choices=["text", "prometheus"],
    )

    # One-shot mode
    check_parser = sub.add_parser("check", help="Probe every target once and report")
    _add_common_flags(check_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command not in ("serve", "check"):
        parser.print_help()
        sys.exit(1)

    overrides = {k: v for k, v in vars(args).items() if k != "command"}
    try:
        settings = load_settings(**overrides)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(2)

    _configure_logging(settings.log_level)

    if args.command == "serve":
        run_server(settings)
    else:
        sys.exit(run_cli(settings))


if __name__ == "__main__":
    main()
