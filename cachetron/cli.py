"""Cachetron CLI - config scaffolding and the metrics dashboard."""

from __future__ import annotations

from pathlib import Path

import click

from .config import default_config_path, load_settings, write_default_config
from .errors import ConfigurationError
from .observability import configure_logging


@click.group(invoke_without_command=True)
@click.version_option(package_name="cachetron")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Cachetron - cache backend abstraction with adaptive TTL."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("init")
@click.option(
    "--path",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write cachetron.json (default: project root).",
)
def init_command(config_path: Path | None) -> None:
    """Create cachetron.json in the project root."""
    target = config_path or default_config_path()
    if write_default_config(target):
        click.echo(f"Created cachetron config at: {target}")
    else:
        click.echo(f"cachetron.json already exists at: {target}")


@cli.command("dashboard")
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", default=None, type=int, help="Port number (default: $PORT or 3000).")
@click.option(
    "--static-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory with prebuilt dashboard assets.",
)
def dashboard_command(host: str, port: int | None, static_dir: Path | None) -> None:
    """Start the Cachetron dashboard."""
    import uvicorn

    from .dashboard import create_dashboard_app

    try:
        settings = load_settings()
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    configure_logging(settings.log_level, settings.log_format)
    app = create_dashboard_app(settings.metrics_path, static_dir)
    bind_port = port or settings.dashboard_port

    click.echo(f"Dashboard running at http://{host}:{bind_port}")
    uvicorn.run(app, host=host, port=bind_port, log_level="warning")


@cli.command("help")
@click.pass_context
def help_command(ctx: click.Context) -> None:
    """Show this help message."""
    click.echo(ctx.parent.get_help() if ctx.parent else ctx.get_help())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
