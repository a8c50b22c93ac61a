import click
from rich.console import Console

from .. import __version__
from .commands import config, plan

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name='riplanner')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--config', 'config_file', type=click.Path(dir_okay=False), help='Path to configuration file')
@click.pass_context
def cli(ctx, debug, config_file):
    """
    Reservation planner - commitment purchase planning for AWS

    Turns Cost Explorer recommendations for Reserved Instances and Savings
    Plans into a reviewed purchase plan, and optionally buys it.
    """
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug
    ctx.obj['config_file'] = config_file
    ctx.obj['console'] = console


# Register commands
cli.add_command(plan.plan)
cli.add_command(config.show_config)


@cli.command()
@click.pass_context
def version(ctx):
    """Show version information"""
    console.print(f"[bold blue]Reservation planner[/bold blue] version [green]{__version__}[/green]")
    console.print("Reserved Instance and Savings Plans purchase planning")


if __name__ == '__main__':
    cli()
