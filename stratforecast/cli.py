#!/usr/bin/env python3
"""
Command-line interface for Stratforecast.
"""

import json
import sys

import click
from rich.console import Console
from rich.table import Table

from .config import Config
from .exceptions import StratforecastError
from .milestone_analytics import MilestoneAnalyticsEngine
from .prediction_engine import PredictionEngine
from .snapshot import load_snapshot
from .utils import logger

console = Console()

CONFIDENCE_COLORS = {"High": "green", "Medium": "yellow", "Low": "red"}
INSIGHT_COLORS = {"success": "green", "warning": "yellow", "error": "red", "info": "blue"}


def _fail(message: str, error: Exception):
    console.print(f"[red]Error:[/red] {error}")
    logger.error(f"{message}: {error}", exc_info=True)
    sys.exit(1)


def _probability_color(probability: int) -> str:
    if probability >= 70:
        return "green"
    if probability >= 40:
        return "yellow"
    return "red"


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True), help='Config file path')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.option('--quiet', '-q', is_flag=True, help='Quiet output')
@click.pass_context
def cli(ctx, config, verbose, quiet):
    """Stratforecast - completion forecasts and milestone analytics"""
    ctx.ensure_object(dict)
    ctx.obj['config'] = Config(config)

    if verbose:
        logger.setLevel('DEBUG')
    elif quiet:
        logger.setLevel('ERROR')
    else:
        logger.setLevel(ctx.obj['config'].config.logging.level.upper())


@cli.command()
@click.argument('snapshot', type=click.Path(exists=True))
@click.option('--operation', '-o', 'operation_id', help='Predict a single operation by id')
@click.option('--format', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@click.pass_context
def predict(ctx, snapshot, operation_id, format):
    """Forecast completion for in-flight operations."""
    try:
        data = load_snapshot(snapshot)
        engine = PredictionEngine(config=ctx.obj['config'].prediction)
        engine.train_model(data.operations)

        if operation_id:
            targets = [data.get_operation(operation_id)]
        else:
            targets = [op for op in data.operations if not op.is_completed]

        results = [(op, engine.predict(op, data.operations)) for op in targets]
    except (StratforecastError, KeyError) as e:
        _fail("Prediction error", e)
        return

    if format == 'json':
        payload = {
            op.id: prediction.to_dict() if prediction else None
            for op, prediction in results
        }
        click.echo(json.dumps(payload, indent=2))
        return

    if not results:
        console.print("[yellow]No in-flight operations to forecast[/yellow]")
        return

    table = Table(title="Operation Forecasts")
    table.add_column("Operation", style="cyan")
    table.add_column("Progress", justify="right")
    table.add_column("Days Left", justify="right")
    table.add_column("ETA", style="blue")
    table.add_column("On Time", justify="right")
    table.add_column("Confidence")
    table.add_column("Risks", style="red")

    for op, prediction in results:
        if prediction is None:
            table.add_row(op.title, f"{op.progress}%", "-", "completed", "-", "-", "")
            continue
        confidence = prediction.confidence_level.value
        probability = prediction.probability_on_time
        table.add_row(
            op.title,
            f"{op.progress}%",
            str(prediction.days_remaining),
            prediction.estimated_completion_date.strftime('%Y-%m-%d'),
            f"[{_probability_color(probability)}]{probability}%[/{_probability_color(probability)}]",
            f"[{CONFIDENCE_COLORS[confidence]}]{confidence}[/{CONFIDENCE_COLORS[confidence]}]",
            "\n".join(prediction.risk_factors),
        )

    console.print(table)

    if operation_id and results[0][1] and results[0][1].recommendations:
        console.print("\n[blue]Recommendations:[/blue]")
        for i, rec in enumerate(results[0][1].recommendations, 1):
            console.print(f"  {i}. {rec}")


@cli.command()
@click.argument('snapshot', type=click.Path(exists=True))
@click.option('--format', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@click.pass_context
def analytics(ctx, snapshot, format):
    """Show portfolio milestone analytics."""
    try:
        data = load_snapshot(snapshot)
        engine = MilestoneAnalyticsEngine(
            data.initiatives, data.operations, config=ctx.obj['config'].analytics
        )
        report = engine.generate_analytics()
    except StratforecastError as e:
        _fail("Analytics error", e)
        return

    if format == 'json':
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    console.print("\n[bold]Milestone Analytics[/bold]")
    console.print(f"Milestones: {report.completed_milestones}/{report.total_milestones} completed")
    console.print(f"Completion Rate: [green]{report.completion_rate:.1f}%[/green]")
    console.print(f"Overdue: [red]{report.overdue_milestones}[/red]  "
                  f"Upcoming (7d): [blue]{report.upcoming_milestones}[/blue]")
    console.print(f"Average Completion Time: {report.average_completion_time:.1f} days")

    metrics = report.performance_metrics
    console.print("\n[cyan]Performance:[/cyan]")
    console.print(f"  On-time delivery:     {metrics.on_time_delivery:.1f}%")
    console.print(f"  Team efficiency:      {metrics.team_efficiency:.1f}%")
    console.print(f"  Resource utilization: {metrics.resource_utilization:.1f}%")

    risk = report.risk_assessment
    console.print(
        f"\n[cyan]Risk (next 30 days):[/cyan] high {risk.high_risk_milestones}, "
        f"medium {risk.medium_risk_milestones}, low {risk.low_risk_milestones}"
    )
    for constraint in risk.resource_constraints + risk.dependency_risks:
        console.print(f"  • {constraint}")

    if report.bottlenecks:
        table = Table(title="Bottlenecks")
        table.add_column("Milestone", style="cyan")
        table.add_column("Initiative")
        table.add_column("Delay", justify="right", style="red")
        table.add_column("Impact", justify="right")

        for bottleneck in report.bottlenecks[:5]:
            table.add_row(
                bottleneck.milestone_title,
                bottleneck.initiative_title,
                f"{bottleneck.delay_days}d",
                f"{bottleneck.impact_score:.1f}",
            )
        console.print(table)

    trend = Table(title="Trend")
    trend.add_column("Period")
    trend.add_column("Created", justify="right")
    trend.add_column("Completed", justify="right")
    trend.add_column("Overdue", justify="right")
    trend.add_column("Rate", justify="right")
    for period in report.trend_data:
        trend.add_row(period.period, str(period.created), str(period.completed),
                      str(period.overdue), f"{period.completion_rate:.1f}%")
    console.print(trend)


@cli.command()
@click.argument('snapshot', type=click.Path(exists=True))
@click.option('--format', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@click.pass_context
def insights(ctx, snapshot, format):
    """Show prioritized milestone insights."""
    try:
        data = load_snapshot(snapshot)
        engine = MilestoneAnalyticsEngine(
            data.initiatives, data.operations, config=ctx.obj['config'].analytics
        )
        results = engine.generate_insights()
    except StratforecastError as e:
        _fail("Insights error", e)
        return

    if format == 'json':
        click.echo(json.dumps([insight.to_dict() for insight in results], indent=2))
        return

    if not results:
        console.print("[green]✓[/green] No insights - milestones look healthy")
        return

    for insight in results:
        color = INSIGHT_COLORS[insight.type.value]
        console.print(
            f"[{color}]{insight.type.value.upper()}[/{color}] "
            f"[bold]{insight.title}[/bold] ({insight.priority.value})"
        )
        console.print(f"  {insight.description}")
        if insight.recommendation:
            console.print(f"  → {insight.recommendation}")


@cli.group('config')
def config_group():
    """Configuration commands."""
    pass


@config_group.command('init')
@click.option('--path', '-p', default='.stratforecast.yaml', help='Config file to create')
@click.option('--force', '-f', is_flag=True, help='Overwrite an existing file')
def config_init(path, force):
    """Write a default configuration file."""
    from pathlib import Path

    if Path(path).exists() and not force:
        console.print("[yellow]⚠[/yellow] Configuration file already exists. Use --force to overwrite.")
        return

    Config.create_default(path)
    console.print(f"[green]✓[/green] Created configuration file: {path}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == '__main__':
    main()
