"""
Bitcoin Provenance Crawler

Walks the Bitcoin blockchain block by block through a Bitcoin Core node and
turns blocks, transactions, outputs and addresses into a provenance graph
that is streamed to a downstream sink.
"""

__version__ = "1.0.0"
__author__ = "Bitcoin Data Engineering Team"
__description__ = "Provenance graph crawler for Bitcoin using Bitcoin Core RPC/REST"

from btc_provenance.core.crawler import Crawler
from btc_provenance.core.graph_mapper import GraphMapper
from btc_provenance.core.block_source import BlockSource
from btc_provenance.core.checkpoint import CheckpointStore
from btc_provenance.core.reporter import BitcoinProvenanceReporter
from btc_provenance.models.config import CrawlerConfig

__all__ = [
    "Crawler",
    "GraphMapper",
    "BlockSource",
    "CheckpointStore",
    "BitcoinProvenanceReporter",
    "CrawlerConfig",
]
