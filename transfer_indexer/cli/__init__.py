# transfer_indexer/cli/__init__.py

"""
Transfer indexer CLI

Usage: python -m transfer_indexer.cli [command] [options]
"""

import signal
import sys

import click

from ..core.errors import IndexerError
from ..core.logging import IndexerLogger


def _load_container(ctx):
    from .. import create_indexer
    
    if 'container' not in ctx.obj:
        try:
            ctx.obj['container'] = create_indexer()
        except IndexerError as e:
            click.echo(f"❌ {e}", err=True)
            sys.exit(2)
    return ctx.obj['container']


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, verbose):
    """Transfer Indexer - sync recipient token transfers and serve lottery assignments"""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    
    IndexerLogger.configure(
        log_level="DEBUG" if verbose else "INFO",
        console_enabled=True,
        file_enabled=False,
        structured_format=False
    )


@cli.command('init-db')
@click.pass_context
def init_db(ctx):
    """Create the transfer table if it does not exist"""
    from ..database.connection import DatabaseManager
    
    container = _load_container(ctx)
    db_manager = container.get(DatabaseManager)
    db_manager.initialize()
    try:
        db_manager.ensure_schema()
    finally:
        db_manager.shutdown()
    click.echo("✅ Schema ready")


@cli.command()
@click.pass_context
def backfill(ctx):
    """Sync historical transfers up to the current chain head"""
    from ..sync.engine import TransferSyncEngine
    
    engine = _load_container(ctx).get(TransferSyncEngine)
    try:
        inserted = engine.backfill()
    finally:
        engine.stop()
    click.echo(f"✅ Backfill complete: {inserted} transfers inserted, cursor at block {engine.cursor}")


def _interrupt(signum, frame):
    raise KeyboardInterrupt


@cli.command()
@click.option('--skip-backfill', is_flag=True, help='Start polling from the stored cursor right away')
@click.pass_context
def run(ctx, skip_backfill):
    """Backfill, then poll for new transfers until interrupted"""
    from ..sync.engine import TransferSyncEngine
    
    engine = _load_container(ctx).get(TransferSyncEngine)
    # SIGTERM stops the sync the same way Ctrl-C does
    previous = signal.signal(signal.SIGTERM, _interrupt)
    try:
        if not skip_backfill:
            engine.backfill()
        engine.start_polling()
    except KeyboardInterrupt:
        click.echo("\nReceived interrupt, stopping...")
    finally:
        signal.signal(signal.SIGTERM, previous)
        engine.stop()


@cli.command()
@click.pass_context
def status(ctx):
    """Show the stored cursor against the chain head"""
    from ..sync.engine import TransferSyncEngine
    
    engine = _load_container(ctx).get(TransferSyncEngine)
    engine.connect()
    try:
        engine.db_manager.ensure_schema()
        synced = engine.latest_synced_block()
        chain_head = engine.get_chain_head()
    finally:
        engine.stop()
    
    click.echo(f"Mode:          {engine.mode}")
    click.echo(f"Synced block:  {synced or 'never synced'}")
    click.echo(f"Chain head:    {chain_head}")
    click.echo(f"Endpoint:      {engine.pool.active_url}")
