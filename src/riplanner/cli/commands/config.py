import click
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from rich.logging import RichHandler
from rich.syntax import Syntax

from ...core.config import Settings, load_settings
from ...core.exceptions import ConfigurationError
from ...core.logging import setup_logging

CONFIG_ERROR_EXIT_CODE = 2


def load_cli_settings(ctx, overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """Load settings for a command, exiting with status 2 on configuration errors"""
    console = ctx.obj['console']
    config_file = ctx.obj.get('config_file')
    try:
        return load_settings(Path(config_file) if config_file else None, overrides)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        ctx.exit(CONFIG_ERROR_EXIT_CODE)


def configure_logging(ctx, settings: Settings) -> None:
    """Route application logging through rich, honouring the logging section"""
    console = ctx.obj['console']
    level = "DEBUG" if ctx.obj.get('debug') else settings.logging.level
    setup_logging(
        level=level,
        log_file=settings.logging.file,
        structured=settings.logging.structured,
        console=settings.logging.console,
        audit_file=settings.logging.audit_file,
        console_handler=RichHandler(console=console, rich_tracebacks=True, show_path=False),
    )


@click.command('show-config')
@click.option('--format', '-f', 'fmt', type=click.Choice(['yaml', 'json']), default='yaml',
              help='Output format')
@click.pass_context
def show_config(ctx, fmt):
    """
    Show the effective configuration

    Merges the configuration file, RIPLANNER_* environment variables and
    defaults, and validates the result.

    Examples:
        riplanner show-config
        riplanner --config planner.yaml show-config -f json
    """
    console = ctx.obj['console']
    settings = load_cli_settings(ctx)

    if fmt == 'json':
        console.print_json(settings.model_dump_json(indent=2))
    else:
        text = yaml.dump(settings.model_dump(mode="json"), default_flow_style=False, sort_keys=False)
        console.print(Syntax(text, "yaml"))

    for message in settings.warnings():
        console.print(f"[yellow]Warning:[/yellow] {message}")
