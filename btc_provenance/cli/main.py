"""Command-line interface for the Bitcoin provenance crawler."""

import sys
import json
from typing import Optional
import click
import structlog

from btc_provenance.models.config import CrawlerConfig
from btc_provenance.models.provenance import ProvenanceVertex
from btc_provenance.core.arguments import LaunchArgumentError
from btc_provenance.core.block_source import BlockSource
from btc_provenance.core.checkpoint import CheckpointStore
from btc_provenance.core.crawler import CrawlStatus
from btc_provenance.core.errors import BlockFetchError
from btc_provenance.core.graph_mapper import GraphMapper
from btc_provenance.core.reporter import BitcoinProvenanceReporter
from btc_provenance.core.rpc_client import BitcoinRPCClient
from btc_provenance.core.sink import CountingGraphSink
from btc_provenance.utils.logging import setup_logging

logger = structlog.get_logger(__name__)


@click.group()
@click.option('--config-file', '-c', type=click.Path(exists=True),
              help='Path to configuration file')
@click.option('--log-level', '-l', default='INFO',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level')
@click.pass_context
def cli(ctx, config_file: Optional[str], log_level: str):
    """Bitcoin Provenance Crawler CLI."""
    ctx.ensure_object(dict)

    try:
        if config_file:
            config = CrawlerConfig(_env_file=config_file)
        else:
            config = CrawlerConfig()

        config.log_level = log_level
        setup_logging(config)

        ctx.obj['config'] = config

    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


def _launch_arguments(args: Optional[str], start_height: Optional[int],
                      end_height: Optional[int]) -> str:
    """Merge --args with explicit height options; explicit options win."""
    tokens = (args or "").split()
    if start_height is not None:
        tokens = [t for t in tokens if not t.startswith("start=")] + [f"start={start_height}"]
    if end_height is not None:
        tokens = [t for t in tokens if not t.startswith("end=")] + [f"end={end_height}"]
    return " ".join(tokens)


@cli.command()
@click.option('--start-height', '-s', type=int, default=None,
              help='First block height (default: resume after checkpoint)')
@click.option('--end-height', '-e', type=int, default=None,
              help='Last block height (default: unbounded)')
@click.option('--args', 'args', default=None,
              help='Launch arguments, e.g. "start=100 end=105"')
@click.pass_context
def crawl(ctx, start_height: Optional[int], end_height: Optional[int], args: Optional[str]):
    """Crawl blocks and stream their provenance graph."""
    config = ctx.obj['config']
    sink = CountingGraphSink()

    try:
        reporter = BitcoinProvenanceReporter(config, sink)

        if not reporter.test_connection():
            click.echo("❌ Failed to connect to Bitcoin Core", err=True)
            sys.exit(1)

        handle = reporter.launch(_launch_arguments(args, start_height, end_height))
        click.echo("🔄 Crawling... press Ctrl+C to stop after the current block")

        try:
            while handle.is_running:
                handle.join(1.0)
        except KeyboardInterrupt:
            click.echo("\n🛑 Stopping after the current block...")
        finally:
            # Closes the RPC session even when the crawl thread raised
            result = reporter.shutdown()

    except LaunchArgumentError as e:
        click.echo(f"❌ Invalid launch arguments: {e}", err=True)
        sys.exit(2)
    except Exception as e:
        logger.error("Crawl failed", error=str(e))
        click.echo(f"❌ Crawl failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"📊 Blocks processed: {result.blocks_processed:,}")
    click.echo(f"📊 Transactions processed: {result.transactions_processed:,}")
    click.echo(f"📊 Last height: {result.last_height}")
    click.echo(json.dumps(sink.summary(), indent=2))

    if result.status == CrawlStatus.FAILED:
        click.echo(f"❌ Crawl stopped at height {result.failed_height}: {result.error}", err=True)
        sys.exit(1)

    click.echo(f"✅ Crawl {result.status.value}")


@cli.command()
@click.argument('height', type=int)
@click.option('--output', '-o', type=click.File('w'), default='-',
              help='Output file (default: stdout)')
@click.pass_context
def map_block(ctx, height: int, output):
    """Map a single block and print its graph fragment as JSON."""
    config = ctx.obj['config']
    rpc_client = BitcoinRPCClient(config)

    try:
        block = BlockSource.from_config(config, rpc_client).fetch(height)
        result = GraphMapper().map(block)

        positions = {}
        elements = []
        for position, element in enumerate(result.elements):
            if isinstance(element, ProvenanceVertex):
                positions[id(element)] = position
                elements.append({
                    'type': 'vertex',
                    'kind': element.kind.value,
                    'annotations': element.annotations,
                })
            else:
                elements.append({
                    'type': 'edge',
                    'kind': element.kind.value,
                    'source': positions[id(element.source)],
                    'destination': positions[id(element.destination)],
                    'annotations': element.annotations,
                })

        json.dump({'height': height, 'elements': elements}, output, indent=2)

    except BlockFetchError as e:
        click.echo(f"❌ Failed to fetch block {height}: {e}", err=True)
        sys.exit(1)
    finally:
        rpc_client.close()


@cli.command()
@click.pass_context
def checkpoint(ctx):
    """Show the last ingested block height."""
    config = ctx.obj['config']
    height = CheckpointStore(config.checkpoint_file).get()

    if height is None:
        click.echo("No checkpoint: the next crawl starts at height 0")
    else:
        click.echo(f"Last ingested height: {height:,} (next crawl starts at {height + 1:,})")


@cli.command()
@click.confirmation_option(prompt='Reset the checkpoint so the next crawl starts from genesis?')
@click.pass_context
def reset_checkpoint(ctx):
    """Clear the checkpoint."""
    config = ctx.obj['config']

    if CheckpointStore(config.checkpoint_file).reset():
        click.echo("✅ Checkpoint cleared")
    else:
        click.echo("❌ Failed to clear checkpoint", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def test_connection(ctx):
    """Test the connection to Bitcoin Core."""
    config = ctx.obj['config']
    rpc_client = BitcoinRPCClient(config)

    click.echo("🔍 Testing Bitcoin Core connection...")
    try:
        if rpc_client.test_connection():
            click.echo("✅ Bitcoin Core connection successful")
        else:
            click.echo("❌ Bitcoin Core connection failed", err=True)
            sys.exit(1)
    finally:
        rpc_client.close()


@cli.command()
def version():
    """Show version information."""
    from btc_provenance import __version__, __description__

    click.echo(f"Bitcoin Provenance Crawler v{__version__}")
    click.echo(__description__)


if __name__ == '__main__':
    cli()
