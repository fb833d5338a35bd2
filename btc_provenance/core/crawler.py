"""Sequential block crawler feeding provenance graph fragments to a sink."""

import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple
import structlog

from btc_provenance.models.blockchain import Block
from btc_provenance.models.config import CrawlerConfig
from btc_provenance.models.provenance import ProvenanceVertex, ProvenanceEdge, GraphElement
from btc_provenance.core.block_source import BlockSource
from btc_provenance.core.checkpoint import CheckpointStore
from btc_provenance.core.errors import BlockFetchError, BlockNotFoundError
from btc_provenance.core.graph_mapper import GraphMapper
from btc_provenance.core.sink import GraphSink

logger = structlog.get_logger(__name__)


class CrawlStatus(str, Enum):
    """How a crawl run ended."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class CrawlerState:
    """State carried from one height to the next within a run."""
    height: int
    previous_block_vertex: Optional[ProvenanceVertex] = None
    last_emitted_height: Optional[int] = None
    blocks_processed: int = 0
    transactions_processed: int = 0

    def advance(self, block: Block, block_vertex: ProvenanceVertex) -> "CrawlerState":
        """State after ``block`` has been emitted."""
        return replace(
            self,
            height=block.height + 1,
            previous_block_vertex=block_vertex,
            last_emitted_height=block.height,
            blocks_processed=self.blocks_processed + 1,
            transactions_processed=self.transactions_processed + len(block.transactions),
        )


@dataclass
class CrawlResult:
    """Outcome of ``Crawler.run``."""
    status: CrawlStatus
    start_height: int
    end_height: Optional[int]
    last_height: Optional[int]
    blocks_processed: int = 0
    transactions_processed: int = 0
    failed_height: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != CrawlStatus.FAILED


@dataclass
class FetchOutcome:
    """Result of fetching one height under the retry budget."""
    block: Optional[Block] = None
    error: Optional[BlockFetchError] = None
    attempts: int = 0
    elapsed: float = 0.0


class ProgressMeter:
    """Logs block and transaction rates once per interval."""

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self.clock = clock
        self.window_start = clock()
        self.recent_blocks = 0
        self.recent_transactions = 0
        self.total_blocks = 0
        self.total_transactions = 0

    def record(self, block: Block) -> bool:
        """Count a processed block. Returns True when a rate line was logged."""
        tx_count = len(block.transactions)
        self.recent_blocks += 1
        self.recent_transactions += tx_count
        self.total_blocks += 1
        self.total_transactions += tx_count

        elapsed = self.clock() - self.window_start
        if elapsed < self.interval or elapsed <= 0:
            return False

        minutes = elapsed / 60.0
        logger.info("Crawl rate",
                    blocks_per_min=round(self.recent_blocks / minutes, 2),
                    txs_per_min=round(self.recent_transactions / minutes, 2),
                    total_blocks=self.total_blocks,
                    total_txs=self.total_transactions,
                    height=block.height)

        self.window_start = self.clock()
        self.recent_blocks = 0
        self.recent_transactions = 0
        return True


class Crawler:
    """
    Walks the chain height by height and emits each block's graph fragment.

    Heights are processed strictly in order on the calling thread. The
    only state shared with other threads is the cancellation event, which
    is checked at height boundaries and while throttled.
    """

    def __init__(self, block_source: BlockSource, sink: GraphSink,
                 checkpoint_store: CheckpointStore, config: CrawlerConfig,
                 mapper: Optional[GraphMapper] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.block_source = block_source
        self.sink = sink
        self.checkpoint_store = checkpoint_store
        self.config = config
        self.mapper = mapper or GraphMapper()
        self.clock = clock
        self.sleep = sleep
        self.logger = logger.bind(component="crawler")

    def resolve_start(self, start_height: Optional[int]) -> Tuple[int, Optional[int]]:
        """
        Determine the first height to emit.

        Returns:
            Tuple of (start height, checkpoint the start was derived from or None).
        """
        if start_height is not None:
            return start_height, None

        checkpoint = self.checkpoint_store.get()
        if checkpoint is None:
            return 0, None
        return checkpoint + 1, checkpoint

    def run(self, start_height: Optional[int] = None, end_height: Optional[int] = None,
            cancel_event: Optional[threading.Event] = None) -> CrawlResult:
        """
        Crawl from ``start_height`` through ``end_height`` inclusive.

        Args:
            start_height: First height (None resumes after the checkpoint)
            end_height: Last height (None runs until cancelled or failed)
            cancel_event: Set by another thread to stop at the next height boundary

        Raises:
            Any exception raised by the sink; sink failures end the run.
        """
        if cancel_event is None:
            cancel_event = threading.Event()

        start, resumed_from = self.resolve_start(start_height)
        state = CrawlerState(height=start)

        self.logger.info("Starting crawl",
                         start_height=start,
                         end_height=end_height,
                         resumed_from=resumed_from)

        if resumed_from is not None and self.config.relink_on_resume:
            outcome = self._fetch_with_retry(resumed_from)
            if outcome.block is None:
                return self._failed(state, start, end_height, resumed_from, outcome)
            # Only the link vertex is kept; the fragment was emitted by the previous run
            link_vertex = self.mapper.map(outcome.block).block_vertex
            state = replace(state, previous_block_vertex=link_vertex)
            self.logger.info("Recovered chain link from checkpointed block", height=resumed_from)

        progress = ProgressMeter(self.config.progress_log_interval, clock=self.clock)

        while end_height is None or state.height <= end_height:
            if cancel_event.is_set() or not self._wait_for_backlog(cancel_event):
                return self._finish(CrawlStatus.CANCELLED, state, start, end_height)

            outcome = self._fetch_with_retry(state.height)
            if outcome.block is None:
                return self._failed(state, start, end_height, state.height, outcome)

            block = outcome.block
            result = self.mapper.map(block, state.previous_block_vertex)
            self._emit(result.elements)

            state = state.advance(block, result.block_vertex)
            self.checkpoint_store.set(block.height)
            progress.record(block)

            self.logger.debug("Block emitted",
                              height=block.height,
                              tx_count=len(block.transactions),
                              elements=len(result.elements))

        return self._finish(CrawlStatus.COMPLETED, state, start, end_height)

    def _wait_for_backlog(self, cancel_event: threading.Event) -> bool:
        """Block while the sink backlog is above the limit. False if cancelled meanwhile."""
        throttled = False
        backlog = self.sink.backlog_size()
        while backlog > self.config.max_backlog:
            if cancel_event.is_set():
                return False
            if not throttled:
                self.logger.info("Sink backlog above limit, throttling",
                                 backlog=backlog,
                                 max_backlog=self.config.max_backlog)
                throttled = True
            self.sleep(self.config.backlog_poll_interval)
            backlog = self.sink.backlog_size()

        if throttled:
            self.logger.info("Sink backlog drained, resuming")
        return not cancel_event.is_set()

    def _fetch_with_retry(self, height: int) -> FetchOutcome:
        """Fetch ``height``, retrying every failure until the retry budget runs out."""
        started = self.clock()
        attempts = 0

        while True:
            attempts += 1
            try:
                block = self.block_source.fetch(height)
                return FetchOutcome(block=block, attempts=attempts,
                                    elapsed=self.clock() - started)
            except BlockFetchError as e:
                last_error = e

            elapsed = self.clock() - started
            if elapsed + self.config.retry_pause_seconds > self.config.retry_budget_seconds:
                return FetchOutcome(error=last_error, attempts=attempts, elapsed=elapsed)

            if isinstance(last_error, BlockNotFoundError):
                self.logger.debug("Block not available yet, waiting",
                                  height=height, attempt=attempts)
            else:
                self.logger.warning("Block fetch failed, retrying",
                                    height=height,
                                    attempt=attempts,
                                    error_type=type(last_error).__name__,
                                    error=str(last_error))
            self.sleep(self.config.retry_pause_seconds)

    def _emit(self, elements: List[GraphElement]):
        for element in elements:
            if isinstance(element, ProvenanceVertex):
                self.sink.append_vertex(element)
            elif isinstance(element, ProvenanceEdge):
                self.sink.append_edge(element)
            else:
                raise TypeError(f"Unexpected graph element: {type(element).__name__}")

    def _failed(self, state: CrawlerState, start: int, end_height: Optional[int],
                height: int, outcome: FetchOutcome) -> CrawlResult:
        self.logger.error("Retry budget exhausted, stopping crawl",
                          height=height,
                          attempts=outcome.attempts,
                          elapsed_seconds=round(outcome.elapsed, 1),
                          error=str(outcome.error))
        result = self._finish(CrawlStatus.FAILED, state, start, end_height)
        result.failed_height = height
        result.error = str(outcome.error)
        return result

    def _finish(self, status: CrawlStatus, state: CrawlerState, start: int,
                end_height: Optional[int]) -> CrawlResult:
        if status != CrawlStatus.FAILED:
            self.logger.info("Crawl finished",
                             status=status.value,
                             last_height=state.last_emitted_height,
                             blocks=state.blocks_processed,
                             transactions=state.transactions_processed)
        return CrawlResult(
            status=status,
            start_height=start,
            end_height=end_height,
            last_height=state.last_emitted_height,
            blocks_processed=state.blocks_processed,
            transactions_processed=state.transactions_processed,
        )
