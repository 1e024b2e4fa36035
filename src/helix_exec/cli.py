"""helix CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from helix_exec import __version__
from helix_exec.config import SettingsError, SettingsLoader
from helix_exec.telemetry import configure_telemetry


@click.group()
@click.version_option(version=__version__, prog_name="helix")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Settings YAML (defaults to <data_dir>/config.yaml).",
)
@click.option("--log-level", default=None, help="Override the configured log level.")
@click.option(
    "--otel-endpoint",
    default=None,
    help="Export spans to this OTLP/gRPC endpoint (needs helix-exec[otel]).",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    otel_endpoint: str | None,
) -> None:
    """helix — sandboxed command execution and stdio plugins."""
    try:
        settings = SettingsLoader(config_path).load()
    except SettingsError as exc:
        raise click.ClickException(str(exc)) from exc

    level = (log_level or settings.log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    telemetry = settings.telemetry
    if otel_endpoint:
        telemetry = telemetry.model_copy(update={"enabled": True, "otlp_endpoint": otel_endpoint})
    try:
        configure_telemetry(telemetry)
    except ImportError as exc:
        raise click.ClickException(str(exc)) from exc

    ctx.obj = settings


# Register subcommands
from helix_exec.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
