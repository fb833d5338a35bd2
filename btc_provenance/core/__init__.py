"""Core crawling components."""

from btc_provenance.core.rpc_client import BitcoinRPCClient, BitcoinRPCError
from btc_provenance.core.hash_index import BlockHashIndex
from btc_provenance.core.transaction_parser import TransactionParser
from btc_provenance.core.block_source import BlockSource
from btc_provenance.core.errors import (
    BlockFetchError,
    BlockNotFoundError,
    TransientFetchError,
    MalformedBlockError,
)
from btc_provenance.core.graph_mapper import GraphMapper, MappingResult, structural_signature
from btc_provenance.core.checkpoint import CheckpointStore
from btc_provenance.core.sink import GraphSink, InMemoryGraphSink, CountingGraphSink
from btc_provenance.core.crawler import Crawler, CrawlerState, CrawlResult, CrawlStatus
from btc_provenance.core.arguments import LaunchArguments, LaunchArgumentError, parse_launch_arguments
from btc_provenance.core.reporter import BitcoinProvenanceReporter, CrawlHandle

__all__ = [
    "BitcoinRPCClient",
    "BitcoinRPCError",
    "BlockHashIndex",
    "TransactionParser",
    "BlockSource",
    "BlockFetchError",
    "BlockNotFoundError",
    "TransientFetchError",
    "MalformedBlockError",
    "GraphMapper",
    "MappingResult",
    "structural_signature",
    "CheckpointStore",
    "GraphSink",
    "InMemoryGraphSink",
    "CountingGraphSink",
    "Crawler",
    "CrawlerState",
    "CrawlResult",
    "CrawlStatus",
    "LaunchArguments",
    "LaunchArgumentError",
    "parse_launch_arguments",
    "BitcoinProvenanceReporter",
    "CrawlHandle",
]
