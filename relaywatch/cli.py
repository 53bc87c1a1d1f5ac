#!/usr/bin/env python3
"""
relaywatch CLI - Command Line Interface for MEV-Boost relay queries

Shows which relays the upcoming proposers are registered with, which slots
will most likely be vanilla blocks, and the relays' bid traces.
"""

import click
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import pandas as pd
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box

from . import RelayWatch
from .constants import MAX_BIDTRACE_LIMIT
from .config import ConfigManager
from .exceptions import RelayWatchError
from .models import (
    BuilderBidsReceivedOptions, EpochWindow, Network, PayloadDeliveredQueryOptions,
    QueryResult, RegistrationReport
)
from .normalizer import slot_relay_frame, vanilla_slots

console = Console()

CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])

OUTPUT_FORMATS = ['table', 'json', 'csv', 'parquet']


def format_output(df: pd.DataFrame, format: str, output_file: Optional[str] = None):
    """Format and output the DataFrame according to specified format."""
    if df is None or df.empty:
        console.print("[yellow]No data found[/yellow]")
        return

    if format == 'table':
        table = Table(box=box.ROUNDED)

        for col in df.columns:
            table.add_column(str(col), overflow="fold")

        for _, row in df.head(100).iterrows():
            table.add_row(*[str(val) for val in row])

        console.print(table)
        if len(df) > 100:
            console.print(f"\n[dim]Showing first 100 of {len(df)} rows[/dim]")

    elif format == 'json':
        output = df.to_json(orient='records', indent=2)
        if output_file:
            Path(output_file).write_text(output)
            console.print(f"[green]Data saved to {output_file}[/green]")
        else:
            click.echo(output)

    elif format == 'csv':
        if output_file:
            df.to_csv(output_file, index=False)
            console.print(f"[green]Data saved to {output_file}[/green]")
        else:
            click.echo(df.to_csv(index=False))

    elif format == 'parquet':
        if not output_file:
            output_file = f"relaywatch_output_{datetime.now().strftime('%Y%m%d_%H%M%S')}.parquet"
        df.to_parquet(output_file, index=False, engine='fastparquet')
        console.print(f"[green]Data saved to {output_file}[/green]")


def print_failures(results: Dict[str, QueryResult]):
    """Report relays that could not answer."""
    for name in sorted(results):
        result = results[name]
        if not result.ok:
            console.print(f"[yellow]{name}: {result.error.value} ({result.detail})[/yellow]")


def output_options(f):
    """Decorator for output options."""
    f = click.option('--format', '-f', type=click.Choice(OUTPUT_FORMATS), default='table', help='Output format')(f)
    f = click.option('--output', '-O', help='Output file path (required for parquet format)')(f)
    f = click.option('--config', type=click.Path(exists=True), help='Config file path')(f)
    return f


def relay_options(f):
    """Decorator for relay selection and window options."""
    f = click.option('--relay', '-r', multiple=True, help='Relay name or alias (repeatable, default: all)')(f)
    f = click.option('--epoch', '-e', type=int, help='First epoch of the window (default: current epoch)')(f)
    f = click.option('--network', '-n', type=click.Choice([n.value for n in Network]), help='Network for the default window (default: from config)')(f)
    f = click.option('--timeout', type=float, help='Deadline in seconds for the whole query')(f)
    return f


def make_client(config: Optional[str], network: Optional[str] = None) -> RelayWatch:
    config_path = Path(config) if config else None
    try:
        if network is None:
            return RelayWatch(config_path=config_path)
        loaded = ConfigManager(config_path).load()
        return RelayWatch(config=loaded.model_copy(update={"network": Network(network)}))
    except RelayWatchError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def run_query(description: str, func, *args, **kwargs) -> Any:
    """Run a client call with a spinner, exiting on relaywatch errors."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console,
    ) as progress:
        progress.add_task(description=description, total=None)
        try:
            return func(*args, **kwargs)
        except RelayWatchError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)


def parse_selection(relay: Tuple[str, ...]) -> Optional[List[str]]:
    return list(relay) if relay else None


def parse_window(epoch: Optional[int]) -> Optional[EpochWindow]:
    if epoch is None:
        return None
    if epoch < 0:
        raise click.BadParameter(f"Invalid epoch: {epoch}")
    return EpochWindow.from_epoch(epoch)


def registration_frame(report: RegistrationReport) -> pd.DataFrame:
    rows = []
    for name in sorted(report.results):
        result = report.results[name]
        registration = report.registrations.get(name)
        rows.append({
            'relay': name,
            'status': 'registered' if registration else result.error.value if result.error else 'ignored',
            'fee_recipient': registration.fee_recipient if registration else None,
            'gas_limit': registration.gas_limit if registration else None,
            'timestamp': registration.registered_at.isoformat() if registration else None,
        })
    return pd.DataFrame(rows)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name='relaywatch')
def cli():
    """
    relaywatch CLI - Query MEV-Boost relays

    Find out which relays the proposers of the current and next epoch are
    registered with, and which slots will most likely be vanilla blocks.

    Examples:

      # Setup configuration
      relaywatch setup

      # Slot -> relays map for the current and next epoch
      relaywatch slots

      # Where is a validator registered?
      relaywatch registration 0xacb2...c5d3 --relay flashbots --relay ultrasound
    """
    pass


@cli.command()
@click.option('--force', is_flag=True, help='Overwrite an existing configuration')
def setup(force):
    """Write a configuration template to the home directory."""
    manager = ConfigManager()
    if manager.config_path.exists() and not force:
        console.print(f"[yellow]Configuration already exists at {manager.config_path}[/yellow]")
        if not click.confirm("Do you want to overwrite it?"):
            return
    path = manager.save_template()
    console.print(f"[green]✓[/green] Configuration created at {path}")


@cli.command('relays')
@output_options
def relays_command(format, output, config):
    """List known relays."""
    watch = make_client(config)
    df = pd.DataFrame([
        {'name': relay.name, 'url': relay.url, 'pubkey': relay.pubkey}
        for relay in watch.list_relays()
    ])
    format_output(df, format, output)


@cli.command('registration')
@click.argument('pubkey')
@click.option('--relay', '-r', multiple=True, help='Relay name or alias (repeatable, default: all)')
@click.option('--timeout', type=float, help='Deadline in seconds for the whole query')
@output_options
def registration_command(pubkey, relay, timeout, format, output, config):
    """Show which relays PUBKEY is registered with."""
    watch = make_client(config)
    report = run_query(
        "Querying relays...",
        watch.get_validator_registration_on_all_relays,
        pubkey, parse_selection(relay), timeout
    )
    format_output(registration_frame(report), format, output)
    console.print(
        f"\n[dim]Registered with {len(report.registrations)} of {len(report.results)} relays[/dim]"
    )


@cli.command('slots')
@relay_options
@click.option('--all-slots', is_flag=True, help='Include slots no relay reported')
@output_options
def slots_command(relay, epoch, network, timeout, all_slots, format, output, config):
    """Map upcoming slots to the relays their proposers registered with."""
    watch = make_client(config, network)
    report = run_query(
        "Querying relays...",
        watch.get_validator_registration_for_all_slots,
        parse_window(epoch), parse_selection(relay), timeout
    )
    df = slot_relay_frame(report.slots, report.window if all_slots else None)
    format_output(df, format, output)
    print_failures(report.results)


@cli.command('vanilla')
@relay_options
@output_options
def vanilla_command(relay, epoch, network, timeout, format, output, config):
    """List upcoming slots no relay knows the proposer of."""
    watch = make_client(config, network)
    report = run_query(
        "Querying relays...",
        watch.get_validator_registration_for_all_slots,
        parse_window(epoch), parse_selection(relay), timeout
    )
    slots = vanilla_slots(report.slots, report.window)
    format_output(pd.DataFrame({'slot': slots}), format, output)
    print_failures(report.results)
    console.print(f"\n[dim]{len(slots)} of {report.window.size} slots without a relay registration[/dim]")


@cli.command('payloads')
@click.option('--relay', '-r', required=True, help='Relay name')
@click.option('--slot', '-s', type=int, help='Slot number')
@click.option('--cursor', type=int, help='Return payloads at or before this slot')
@click.option('--limit', '-l', type=click.IntRange(1, MAX_BIDTRACE_LIMIT), default=100, help='Max rows to return')
@output_options
def payloads_command(relay, slot, cursor, limit, format, output, config):
    """Payloads a relay delivered to proposers."""
    watch = make_client(config)
    options = PayloadDeliveredQueryOptions(slot=slot, cursor=cursor, limit=limit)
    result = run_query("Querying relay...", watch.get_payload_delivered_bidtraces, relay, options)
    if not result.ok:
        print_failures({relay: result})
        sys.exit(1)
    format_output(pd.DataFrame([trace.model_dump() for trace in result.value]), format, output)


@cli.command('bids')
@click.option('--relay', '-r', required=True, help='Relay name')
@click.option('--slot', '-s', type=int, help='Slot number')
@click.option('--builder', help='Builder public key')
@click.option('--limit', '-l', type=click.IntRange(1, MAX_BIDTRACE_LIMIT), default=100, help='Max rows to return')
@output_options
def bids_command(relay, slot, builder, limit, format, output, config):
    """Block submissions a relay received from builders."""
    watch = make_client(config)
    options = BuilderBidsReceivedOptions(slot=slot, builder_pubkey=builder, limit=limit)
    result = run_query("Querying relay...", watch.get_builder_blocks_received, relay, options)
    if not result.ok:
        print_failures({relay: result})
        sys.exit(1)
    format_output(pd.DataFrame([bid.model_dump() for bid in result.value]), format, output)


def main():
    cli()


if __name__ == '__main__':
    main()
