"""Provenance graph elements produced from blocks."""

from enum import Enum
from typing import Dict, Union
from dataclasses import dataclass, field


class VertexKind(str, Enum):
    """Vertex types of the provenance graph."""
    BLOCK_ACTIVITY = "BlockActivity"
    TRANSACTION_ACTIVITY = "TransactionActivity"
    OUTPUT_ENTITY = "OutputEntity"
    INPUT_ENTITY = "InputEntity"
    ADDRESS_AGENT = "AddressAgent"


class EdgeKind(str, Enum):
    """Relationship types of the provenance graph."""
    INFORMS = "Informs"
    USES = "Uses"
    GENERATES = "Generates"
    ATTRIBUTES_TO = "AttributesTo"


@dataclass
class ProvenanceVertex:
    """A typed vertex carrying string annotations.

    Equality is by value (kind and annotations). Every occurrence in the
    source data is still a separate instance; sinks that need identity
    should key on ``id(vertex)``.
    """
    kind: VertexKind
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass
class ProvenanceEdge:
    """A typed, directed edge between two vertices."""
    kind: EdgeKind
    source: ProvenanceVertex
    destination: ProvenanceVertex
    annotations: Dict[str, str] = field(default_factory=dict)


GraphElement = Union[ProvenanceVertex, ProvenanceEdge]
