"""CLI entry point for Skill Relay."""

from __future__ import annotations

import logging
import secrets
import sys
from pathlib import Path

import click
import yaml

from . import __version__
from .config import DEFAULT_CONFIG_PATH, LoggingConfig, RelayConfig, mask_secret
from .exceptions import ConfigError

logger = logging.getLogger("skill-relay")


# ── Helpers ──────────────────────────────────────────────


def _configure_logging(settings: LoggingConfig) -> None:
    """Console logging plus an optional rotating file."""
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    level = getattr(logging, settings.level.upper(), logging.INFO)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(log_format, datefmt=date_format))
    handlers: list[logging.Handler] = [console]

    if settings.file:
        from logging.handlers import RotatingFileHandler

        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path, maxBytes=5 * 1024 * 1024, backupCount=2
        )
        file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    for noisy in ("aiohttp.access", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _load(config_path: str | None) -> RelayConfig:
    from .config import load_config

    try:
        return load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


def _log_startup(config: RelayConfig) -> None:
    api_key = config.auth.api_key
    logger.info("Proxy server running on port %d", config.server.port)
    logger.info("API key configured: %s", "yes" if api_key else "no")
    logger.info("API key length: %d", len(api_key))
    logger.info("Default backend URL: %s", config.backend.default_url)


# ── CLI Commands ─────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="skill-relay")
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("--host", default=None, help="Override listen host")
@click.option("--port", default=None, type=int, help="Override HTTP port")
@click.pass_context
def main(
    ctx: click.Context, config_path: str | None, host: str | None, port: int | None
) -> None:
    """Skill Relay: route voice commands to camera backends."""
    if ctx.invoked_subcommand is not None:
        return

    from aiohttp import web

    from .api import create_relay_app

    config = _load(config_path)
    if host:
        config.server.host = host
    if port:
        config.server.port = port

    _configure_logging(config.logging)
    _log_startup(config)

    app = create_relay_app(config)
    web.run_app(
        app,
        host=config.server.host,
        port=config.server.port,
        print=lambda x: logger.info(x),
    )


@main.command()
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def init(config_path: str | None, force: bool) -> None:
    """Write a config file with a freshly generated API key."""
    from .config import save_config

    target = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
    if target.exists() and not force:
        raise click.ClickException(
            f"{target} already exists (use --force to overwrite)"
        )

    config = RelayConfig()
    config.auth.api_key = secrets.token_urlsafe(32)
    path = save_config(config, target)

    click.echo(f"Config written to {path}")
    click.echo(f"API key generated: {mask_secret(config.auth.api_key)}")
    click.echo("Send it from your backends in the X-API-Key header.")


@main.command("show-config")
@click.option("--config", "config_path", default=None, help="Config file path")
def show_config(config_path: str | None) -> None:
    """Print the effective configuration (API key masked)."""
    config = _load(config_path)
    data = config.model_dump()
    data["auth"]["api_key"] = mask_secret(config.auth.api_key)
    click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False), nl=False)


if __name__ == "__main__":
    main()
