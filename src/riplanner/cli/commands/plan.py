import click
import threading
from pathlib import Path
from typing import Any, Dict, List
from rich.prompt import Confirm
from rich.table import Table

from ...core.exceptions import RIPlannerError
from ...core.models import PaymentOption, Recommendation, ServiceType, Term
from ...orchestrator import RunSummary, build_aws_orchestrator
from ...reporting import read_recommendations_csv, write_purchase_results_csv, write_recommendations_csv
from .config import configure_logging, load_cli_settings

SERVICE_CHOICES = [s.value for s in ServiceType]

FILTER_OPTIONS = [
    'include_regions', 'exclude_regions',
    'include_instance_types', 'exclude_instance_types',
    'include_engines', 'exclude_engines',
    'include_accounts', 'exclude_accounts',
]


def build_overrides(options: Dict[str, Any]) -> Dict[str, Any]:
    """Settings overrides for the options that were actually given"""
    pipeline: Dict[str, Any] = {}
    purchase: Dict[str, Any] = {}
    aws: Dict[str, Any] = {}

    for name in ('coverage', 'override_count', 'max_instances', 'lookback_hours'):
        if options.get(name) is not None:
            pipeline[name] = options[name]
    for name in FILTER_OPTIONS:
        if options.get(name):
            pipeline[name] = options[name]
    if options.get('include_extended_support'):
        pipeline['include_extended_support'] = True

    if options.get('purchase'):
        purchase['dry_run'] = False
    if options.get('yes'):
        purchase['skip_confirmation'] = True
    for name in ('term', 'payment_option', 'lookback_days', 'include_sp_types', 'exclude_sp_types'):
        if options.get(name):
            purchase[name] = options[name]

    for name in ('profile', 'validation_profile', 'regions', 'services'):
        if options.get(name):
            aws[name] = options[name]
    if options.get('all_services'):
        aws['all_services'] = True

    overrides: Dict[str, Any] = {}
    for section, values in (('pipeline', pipeline), ('purchase', purchase), ('aws', aws)):
        if values:
            overrides[section] = values
    if options.get('input_csv'):
        overrides['reporting'] = {'csv_input': options['input_csv']}
    return overrides


@click.command()
@click.option('--purchase', is_flag=True, help='Buy the plan (default is a dry run)')
@click.option('--yes', '-y', is_flag=True, help='Skip the purchase confirmation prompt')
@click.option('--input-csv', type=click.Path(exists=True, dir_okay=False),
              help='Read recommendations from a CSV file instead of Cost Explorer')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write the final plan to a CSV file')
@click.option('--coverage', type=float, help='Percentage of each recommendation to buy (0-100)')
@click.option('--override-count', type=int, help='Buy exactly this many of every recommendation')
@click.option('--max-instances', type=int, help='Cap on the total number of instances in the plan')
@click.option('--include-regions', help='Comma separated regions to keep')
@click.option('--exclude-regions', help='Comma separated regions to drop')
@click.option('--include-instance-types', help='Comma separated instance types to keep')
@click.option('--exclude-instance-types', help='Comma separated instance types to drop')
@click.option('--include-engines', help='Comma separated engines to keep')
@click.option('--exclude-engines', help='Comma separated engines to drop')
@click.option('--include-accounts', help='Comma separated account names to keep')
@click.option('--exclude-accounts', help='Comma separated account names to drop')
@click.option('--lookback-hours', type=int, help='Window for treating existing reservations as duplicates')
@click.option('--include-extended-support', is_flag=True,
              help='Keep instances running engine versions in extended support')
@click.option('--services', '-s', help=f"Comma separated services ({', '.join(SERVICE_CHOICES)})")
@click.option('--all-services', is_flag=True, help='Process every supported service')
@click.option('--regions', '-r', help='Comma separated regions to query')
@click.option('--term', type=click.Choice([t.value for t in Term]), help='Commitment term')
@click.option('--payment', 'payment_option', type=click.Choice([p.value for p in PaymentOption]),
              help='Payment option')
@click.option('--lookback-days', type=click.Choice(['7', '30', '60']), help='Cost Explorer lookback period')
@click.option('--include-sp-types', help='Comma separated Savings Plan types to query')
@click.option('--exclude-sp-types', help='Comma separated Savings Plan types to skip')
@click.option('--profile', help='AWS profile for recommendations and purchases')
@click.option('--validation-profile', help='AWS profile for RDS inventory lookups')
@click.pass_context
def plan(ctx, **options):
    """
    Build a purchase plan from recommendations

    Recommendations are filtered, scaled by coverage, reconciled against
    reservations bought in the last day and stripped of database instances in
    extended support before anything is bought.

    Examples:
        riplanner plan --services rds,elasticache --coverage 50
        riplanner plan --input-csv recommendations.csv --purchase
        riplanner plan --all-services --max-instances 20 -o plan.csv
    """
    console = ctx.obj['console']
    if options.get('lookback_days'):
        options['lookback_days'] = int(options['lookback_days'])

    settings = load_cli_settings(ctx, build_overrides(options))
    configure_logging(ctx, settings)

    mode = "[bold red]PURCHASE[/bold red]" if not settings.purchase.dry_run else "[green]dry run[/green]"
    console.print(f"\n[bold]Reservation Planner[/bold] ({mode})")
    console.print(f"Term: [cyan]{settings.purchase.term.value}[/cyan]  "
                  f"Payment: [cyan]{settings.purchase.payment_option.value}[/cyan]  "
                  f"Coverage: [cyan]{settings.pipeline.coverage:g}%[/cyan]")
    for message in settings.warnings():
        console.print(f"[yellow]Warning:[/yellow] {message}")

    cancel_event = threading.Event()

    def confirm(recs: List[Recommendation]) -> bool:
        _display_plan(console, recs, title="Purchase Plan")
        return Confirm.ask("\n[yellow]Do you want to purchase these reservations?[/yellow]", default=False)

    orchestrator = build_aws_orchestrator(settings, confirm=confirm, cancel_event=cancel_event)

    try:
        csv_input = settings.reporting.csv_input
        if csv_input:
            recommendations = read_recommendations_csv(
                csv_input, settings.purchase.term, settings.purchase.payment_option
            )
            console.print(f"Loaded [cyan]{len(recommendations)}[/cyan] recommendations from {csv_input}")
            coverage_explicit = 'coverage' in settings.pipeline.model_fields_set
            summary = orchestrator.run_from_recommendations(recommendations, coverage_explicit=coverage_explicit)
        else:
            with console.status("[bold green]Fetching recommendations..."):
                summary = orchestrator.run()
    except KeyboardInterrupt:
        cancel_event.set()
        console.print("[yellow]Interrupted, no further purchases will be attempted[/yellow]")
        ctx.exit(130)
    except RIPlannerError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        ctx.exit(1)

    _display_plan(console, summary.plan)
    _display_service_stats(console, summary)

    output = options.get('output') or settings.reporting.csv_output
    if output:
        path = write_recommendations_csv(summary.plan, output)
        console.print(f"\n✓ Plan saved to [green]{path}[/green]")
        if summary.results:
            output = Path(output)
            results_path = write_purchase_results_csv(
                summary.results, output.with_name(f"{output.stem}-results{output.suffix or '.csv'}")
            )
            console.print(f"✓ Purchase results saved to [green]{results_path}[/green]")

    _display_summary(console, summary)
    if summary.failed and not summary.dry_run:
        ctx.exit(1)


def _display_plan(console, recommendations: List[Recommendation], title: str = "Final Plan"):
    """Display the plan in a table"""
    if not recommendations:
        console.print("\n[yellow]No recommendations left to purchase[/yellow]")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Service", style="cyan")
    table.add_column("Region")
    table.add_column("Type", style="magenta")
    table.add_column("Engine")
    table.add_column("Account")
    table.add_column("Count", justify="right", style="green")
    table.add_column("Savings/mo", justify="right", style="yellow")

    for rec in recommendations:
        count = f"${rec.hourly_commitment:.3f}/h" if rec.is_savings_plan else str(rec.count)
        table.add_row(
            rec.service.display_name,
            rec.region or "global",
            rec.resource_type,
            rec.engine or "-",
            rec.account_name or rec.account or "-",
            count,
            f"${rec.estimated_savings:,.2f}",
        )

    console.print("\n")
    console.print(table)


def _display_service_stats(console, summary: RunSummary):
    if not summary.services:
        return

    table = Table(title="Services", show_header=True, header_style="bold cyan")
    table.add_column("Service", style="cyan")
    table.add_column("Regions", justify="right")
    table.add_column("Found", justify="right")
    table.add_column("Selected", justify="right")
    table.add_column("Instances", justify="right", style="green")
    table.add_column("Savings/mo", justify="right", style="yellow")
    table.add_column("OK", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")

    for stats in summary.services.values():
        table.add_row(
            stats.service.display_name,
            str(len(stats.regions_processed)),
            str(stats.recommendations_found),
            str(stats.recommendations_selected),
            str(stats.instances),
            f"${stats.estimated_savings:,.2f}",
            str(stats.successful),
            str(stats.failed),
        )

    console.print(table)


def _display_summary(console, summary: RunSummary):
    console.print(f"\n[bold]Plan Summary:[/bold]")
    console.print(f"  Recommendations: [bold green]{summary.plan_size}[/bold green]")
    console.print(f"  Instances: [bold green]{summary.total_instances}[/bold green]")
    console.print(f"  Estimated savings: [bold yellow]${summary.total_savings:,.2f}/month[/bold yellow]")
    if summary.results:
        label = "Simulated" if summary.dry_run else "Purchased"
        console.print(f"  {label}: [green]{summary.successful}[/green]  Failed: [red]{summary.failed}[/red]")
        for result in summary.results:
            if not result.success:
                console.print(f"    [red]✗[/red] {result.recommendation.label()}: {result.error}")
    for error in summary.errors:
        console.print(f"  [red]Error[/red] {error.get('service', '')} {error.get('region', '')}: {error['error']}")
