"""Downstream graph sink interface and simple implementations."""

import threading
from collections import Counter
from typing import Dict, List, Protocol

from btc_provenance.models.provenance import ProvenanceVertex, ProvenanceEdge, GraphElement


class GraphSink(Protocol):
    """Consumer of provenance graph elements."""

    def append_vertex(self, vertex: ProvenanceVertex) -> None:
        """Accept a vertex."""
        ...

    def append_edge(self, edge: ProvenanceEdge) -> None:
        """Accept an edge whose endpoints were appended earlier."""
        ...

    def backlog_size(self) -> int:
        """Number of accepted elements not yet consumed downstream."""
        ...


class InMemoryGraphSink:
    """
    Buffers elements in arrival order.

    ``drain()`` hands the buffered elements to a consumer and empties the
    backlog. ``received`` keeps every element ever appended.
    """

    def __init__(self, keep_history: bool = True):
        self.keep_history = keep_history
        self.received: List[GraphElement] = []
        self._pending: List[GraphElement] = []
        self._lock = threading.Lock()

    def append_vertex(self, vertex: ProvenanceVertex) -> None:
        self._append(vertex)

    def append_edge(self, edge: ProvenanceEdge) -> None:
        self._append(edge)

    def _append(self, element: GraphElement):
        with self._lock:
            self._pending.append(element)
            if self.keep_history:
                self.received.append(element)

    def backlog_size(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain(self) -> List[GraphElement]:
        """Remove and return all pending elements."""
        with self._lock:
            pending, self._pending = self._pending, []
        return pending

    @property
    def vertices(self) -> List[ProvenanceVertex]:
        return [e for e in self.received if isinstance(e, ProvenanceVertex)]

    @property
    def edges(self) -> List[ProvenanceEdge]:
        return [e for e in self.received if isinstance(e, ProvenanceEdge)]


class CountingGraphSink:
    """Discards elements, keeping per-kind counts. Never builds a backlog."""

    def __init__(self):
        self.vertex_counts: Counter = Counter()
        self.edge_counts: Counter = Counter()

    def append_vertex(self, vertex: ProvenanceVertex) -> None:
        self.vertex_counts[vertex.kind.value] += 1

    def append_edge(self, edge: ProvenanceEdge) -> None:
        self.edge_counts[edge.kind.value] += 1

    def backlog_size(self) -> int:
        return 0

    def summary(self) -> Dict[str, Dict[str, int]]:
        return {
            'vertices': dict(self.vertex_counts),
            'edges': dict(self.edge_counts),
        }
