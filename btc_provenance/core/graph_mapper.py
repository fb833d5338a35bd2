"""Mapping of blocks onto provenance graph elements."""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import structlog

from btc_provenance.models.blockchain import Block, Transaction, Vout
from btc_provenance.models.provenance import (
    VertexKind, EdgeKind, ProvenanceVertex, ProvenanceEdge, GraphElement
)

logger = structlog.get_logger(__name__)


@dataclass
class MappingResult:
    """Ordered graph fragment for one block plus its BlockActivity vertex."""
    elements: List[GraphElement]
    block_vertex: ProvenanceVertex

    @property
    def vertex_count(self) -> int:
        return sum(1 for element in self.elements if isinstance(element, ProvenanceVertex))

    @property
    def edge_count(self) -> int:
        return sum(1 for element in self.elements if isinstance(element, ProvenanceEdge))


class GraphMapper:
    """
    Deterministic transform from a ``Block`` to provenance graph elements.

    Every vertex is emitted before any edge that references it. Vertices are
    never deduplicated: an address appearing on several outputs yields one
    AddressAgent vertex per occurrence.
    """

    def map(self, block: Block,
            previous_block_vertex: Optional[ProvenanceVertex] = None) -> MappingResult:
        """
        Build the graph fragment of ``block``.

        Args:
            block: Parsed block
            previous_block_vertex: BlockActivity vertex of the last emitted
                block, or None for the first block of a run

        Returns:
            MappingResult whose ``block_vertex`` becomes the next
            ``previous_block_vertex``.
        """
        elements: List[GraphElement] = []

        block_vertex = self._block_vertex(block)
        elements.append(block_vertex)

        for tx in block.transactions:
            self._map_transaction(tx, block_vertex, elements)

        if previous_block_vertex is not None:
            elements.append(ProvenanceEdge(EdgeKind.INFORMS, block_vertex, previous_block_vertex))

        result = MappingResult(elements=elements, block_vertex=block_vertex)
        logger.debug("Mapped block",
                     height=block.height,
                     vertices=result.vertex_count,
                     edges=result.edge_count,
                     linked=previous_block_vertex is not None)
        return result

    def _block_vertex(self, block: Block) -> ProvenanceVertex:
        return ProvenanceVertex(VertexKind.BLOCK_ACTIVITY, {
            "blockHash": block.hash,
            "blockHeight": str(block.height),
            "blockConfirmations": str(block.confirmations),
            "blockTime": str(block.time),
            "blockDifficulty": str(block.difficulty),
            "blockChainwork": block.chainwork,
        })

    def _map_transaction(self, tx: Transaction, block_vertex: ProvenanceVertex,
                         elements: List[GraphElement]):
        annotations = {"transactionHash": tx.txid}
        if tx.locktime != 0:
            annotations["transactionLoctime"] = str(tx.locktime)
        if tx.coinbase is not None:
            annotations["coinbaseValue"] = tx.coinbase

        tx_vertex = ProvenanceVertex(VertexKind.TRANSACTION_ACTIVITY, annotations)
        elements.append(tx_vertex)
        elements.append(ProvenanceEdge(EdgeKind.INFORMS, tx_vertex, block_vertex))

        for vin in tx.vins:
            if vin.is_coinbase:
                continue
            input_vertex = ProvenanceVertex(VertexKind.INPUT_ENTITY, {
                "transactionHash": vin.txid,
                "transactionIndex": str(vin.vout),
            })
            elements.append(input_vertex)
            elements.append(ProvenanceEdge(EdgeKind.USES, tx_vertex, input_vertex))

        for vout in tx.vouts:
            self._map_output(tx, vout, tx_vertex, elements)

    def _map_output(self, tx: Transaction, vout: Vout, tx_vertex: ProvenanceVertex,
                    elements: List[GraphElement]):
        output_vertex = ProvenanceVertex(VertexKind.OUTPUT_ENTITY, {
            "transactionHash": tx.txid,
            "transactionIndex": str(vout.index),
        })
        elements.append(output_vertex)
        elements.append(ProvenanceEdge(
            EdgeKind.GENERATES, output_vertex, tx_vertex,
            {"transactionValue": str(vout.value)}
        ))

        for address in vout.addresses:
            address_vertex = ProvenanceVertex(VertexKind.ADDRESS_AGENT, {"address": address})
            elements.append(address_vertex)
            elements.append(ProvenanceEdge(EdgeKind.ATTRIBUTES_TO, output_vertex, address_vertex))


def structural_signature(elements: List[GraphElement],
                         external: Tuple[ProvenanceVertex, ...] = ()) -> List[tuple]:
    """
    Describe an element list by position.

    Vertices become ``(kind, annotations)``; edges become ``(kind, source,
    destination, annotations)`` where endpoints are positions in
    ``elements``, or ``("external", i)`` for the i-th vertex of
    ``external`` (e.g. the previous block vertex). Two fragments are
    structurally identical when their signatures are equal.
    """
    positions: Dict[int, tuple] = {}
    for i, vertex in enumerate(external):
        positions[id(vertex)] = ("external", i)

    signature = []
    for position, element in enumerate(elements):
        if isinstance(element, ProvenanceVertex):
            positions[id(element)] = ("element", position)
            signature.append((element.kind.value, tuple(sorted(element.annotations.items()))))
        elif isinstance(element, ProvenanceEdge):
            signature.append((
                element.kind.value,
                positions.get(id(element.source), ("unknown",)),
                positions.get(id(element.destination), ("unknown",)),
                tuple(sorted(element.annotations.items())),
            ))
        else:
            raise TypeError(f"Unexpected graph element: {type(element).__name__}")
    return signature
