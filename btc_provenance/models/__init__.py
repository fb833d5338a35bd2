"""Data models and configuration."""

from btc_provenance.models.config import CrawlerConfig
from btc_provenance.models.blockchain import Block, Transaction, Vin, Vout, SkippedVout
from btc_provenance.models.provenance import (
    VertexKind,
    EdgeKind,
    ProvenanceVertex,
    ProvenanceEdge,
    GraphElement,
)

__all__ = [
    "CrawlerConfig",
    "Block",
    "Transaction",
    "Vin",
    "Vout",
    "SkippedVout",
    "VertexKind",
    "EdgeKind",
    "ProvenanceVertex",
    "ProvenanceEdge",
    "GraphElement",
]
