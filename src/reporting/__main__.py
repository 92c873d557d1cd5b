"""CLI entry point for reporting module."""

import argparse
import asyncio
import json
import logging
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy import select

from src.core.config import settings
from src.core.database import async_session_factory
from src.core.utils import as_utc
from src.reporting.database import ScheduledReportModel
from src.reporting.errors import ReportingError
from src.reporting.scheduler import report_scheduler
from src.reporting.workflow import ReportEngine

console = Console()


async def _generate(args):
    parameters = json.loads(args.params) if args.params else {}
    engine = ReportEngine(output_dir=args.output_dir)
    artifact = await engine.generate(args.template_id, parameters, args.format)
    console.print(Panel(
        f"[bold]File:[/bold] {artifact.path}\n"
        f"[bold]Format:[/bold] {artifact.format.value}\n"
        f"[bold]Records:[/bold] {artifact.record_count}",
        title="📄 Report generated",
        border_style="green",
    ))


def _discard_artifacts(args):
    # The one-shot cleanup jobs never fire once this process exits
    if args.keep_artifacts:
        return
    removed = report_scheduler.run_pending_cleanups()
    if removed:
        console.print(f"[dim]Removed {removed} delivered report file(s)[/dim]")


async def _run(args):
    outcome = await report_scheduler.run_now(args.report_id)
    if outcome.success:
        console.print(f"[green]✓ Scheduled report {args.report_id} executed[/green] -> {outcome.artifact.path}")
    else:
        console.print(f"[red]✗ Scheduled report {args.report_id} failed:[/red] {outcome.error}")

    if outcome.deliveries:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Recipient", width=35)
        table.add_column("Method", width=15)
        table.add_column("Result", width=30)
        for delivery in outcome.deliveries:
            result = "[green]delivered[/green]" if delivery.success else f"[red]{delivery.error}[/red]"
            table.add_row(delivery.email or "-", delivery.method, result)
        console.print(table)
    _discard_artifacts(args)


async def _due(args):
    summary = await report_scheduler.process_due_reports()
    console.print(Panel(
        "\n".join(f"[bold]{key.title()}:[/bold] {value}" for key, value in summary.items()),
        title="⏱ Scheduler tick",
        border_style="blue",
    ))
    _discard_artifacts(args)


async def _list(args):
    async with async_session_factory() as session:
        stmt = select(ScheduledReportModel).order_by(ScheduledReportModel.next_run)
        if args.active_only:
            stmt = stmt.where(ScheduledReportModel.is_active.is_(True))
        reports = (await session.execute(stmt)).scalars().all()

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", justify="right", width=5)
    table.add_column("Name", width=30)
    table.add_column("Frequency", width=10)
    table.add_column("Format", width=6)
    table.add_column("Active", justify="center", width=6)
    table.add_column("Next run (UTC)", width=20)
    table.add_column("Runs", justify="right", width=5)
    table.add_column("Failures", justify="right", width=8)
    for report in reports:
        table.add_row(
            str(report.id),
            report.name[:30],
            (report.schedule or {}).get("frequency", "-"),
            report.format,
            "✓" if report.is_active else "-",
            as_utc(report.next_run).strftime("%Y-%m-%d %H:%M"),
            str(report.run_count or 0),
            str(report.failure_count or 0),
        )
    console.print(table)


def _sweep(args):
    removed = report_scheduler.cleanup_old_reports(args.days)
    console.print(f"Removed {removed} report files older than {args.days or settings.artifact_retention_days} days")


def main():
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description='Generate and run HTD scheduled reports',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate a CSV from template 3 for January
  python -m src.reporting generate 3 --format CSV --params '{"start_date": "2024-01-01", "end_date": "2024-01-31"}'

  # Execute scheduled report 7 now
  python -m src.reporting run 7

  # Run one scheduler tick (all due reports)
  python -m src.reporting due

  # Show scheduled reports
  python -m src.reporting list --active-only
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    generate = subparsers.add_parser('generate', help='Generate a report from a template')
    generate.add_argument('template_id', type=int)
    generate.add_argument('--format', choices=['PDF', 'EXCEL', 'CSV', 'JSON'], help='Override the template format')
    generate.add_argument('--params', help='Runtime parameters as a JSON object')
    generate.add_argument('--output-dir', default=None, help=f'Output directory (default: {settings.reports_dir})')

    run = subparsers.add_parser('run', help='Execute a scheduled report immediately')
    run.add_argument('report_id', type=int)
    run.add_argument('--keep-artifacts', action='store_true', help='Keep the generated file after delivery')

    due = subparsers.add_parser('due', help='Process all due scheduled reports once')
    due.add_argument('--keep-artifacts', action='store_true', help='Keep generated files after delivery')

    list_cmd = subparsers.add_parser('list', help='List scheduled reports')
    list_cmd.add_argument('--active-only', action='store_true')

    sweep = subparsers.add_parser('sweep', help='Delete old report files')
    sweep.add_argument('--days', type=int, help='Retention in days')

    args = parser.parse_args()
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    commands = {'generate': _generate, 'run': _run, 'due': _due, 'list': _list}
    try:
        if args.command == 'sweep':
            _sweep(args)
        else:
            asyncio.run(commands[args.command](args))
    except KeyboardInterrupt:
        console.print("\n\nCancelled.")
        sys.exit(1)
    except ReportingError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
