"""Reporter lifecycle: wiring, background launch and shutdown."""

import threading
from typing import Optional
import structlog

from btc_provenance.models.config import CrawlerConfig
from btc_provenance.core.arguments import parse_launch_arguments
from btc_provenance.core.block_source import BlockSource
from btc_provenance.core.checkpoint import CheckpointStore
from btc_provenance.core.crawler import Crawler, CrawlResult
from btc_provenance.core.rpc_client import BitcoinRPCClient
from btc_provenance.core.sink import GraphSink

logger = structlog.get_logger(__name__)


class CrawlHandle:
    """Cancellable handle on a crawl running in a background thread."""

    def __init__(self, crawler: Crawler, start_height: Optional[int], end_height: Optional[int],
                 name: str = "BitcoinProvenance-Crawler"):
        self.cancel_event = threading.Event()
        self.result: Optional[CrawlResult] = None
        self.exception: Optional[BaseException] = None
        self._thread = threading.Thread(
            target=self._run,
            args=(crawler, start_height, end_height),
            name=name,
            daemon=True,
        )

    def _run(self, crawler: Crawler, start_height: Optional[int], end_height: Optional[int]):
        try:
            self.result = crawler.run(start_height, end_height, cancel_event=self.cancel_event)
        except Exception as e:
            self.exception = e
            logger.exception("Crawl terminated by unexpected error", error=str(e))

    def start(self) -> "CrawlHandle":
        self._thread.start()
        return self

    def cancel(self):
        """Ask the crawl to stop at the next height boundary."""
        self.cancel_event.set()

    def join(self, timeout: Optional[float] = None) -> Optional[CrawlResult]:
        """
        Wait for the crawl to end and return its result (None if still running).

        Re-raises the exception that terminated the crawl, e.g. a sink failure.
        """
        self._thread.join(timeout)
        if self.exception is not None:
            raise self.exception
        return self.result

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()


class BitcoinProvenanceReporter:
    """Builds the crawl pipeline from configuration and runs it in the background."""

    def __init__(self, config: CrawlerConfig, sink: GraphSink,
                 rpc_client: Optional[BitcoinRPCClient] = None,
                 block_source: Optional[BlockSource] = None,
                 checkpoint_store: Optional[CheckpointStore] = None):
        self.config = config
        self.sink = sink
        self.logger = logger.bind(component="bitcoin_provenance_reporter")

        self.rpc_client = rpc_client or BitcoinRPCClient(config)
        self.block_source = block_source or BlockSource.from_config(config, self.rpc_client)
        self.checkpoint_store = checkpoint_store or CheckpointStore(config.checkpoint_file)
        self.crawler = Crawler(self.block_source, sink, self.checkpoint_store, config)

        self.handle: Optional[CrawlHandle] = None

    def test_connection(self) -> bool:
        """Check that the ledger endpoint answers."""
        return self.rpc_client.test_connection()

    def launch(self, arguments: Optional[str] = None) -> CrawlHandle:
        """
        Start crawling in a background thread.

        Args:
            arguments: ``"start=<int> end=<int>"``, both optional

        Raises:
            LaunchArgumentError: if the arguments are invalid
            RuntimeError: if a crawl is already running
        """
        if self.handle is not None and self.handle.is_running:
            raise RuntimeError("A crawl is already running")

        parsed = parse_launch_arguments(arguments)
        self.logger.info("Launching crawl", start=parsed.start, end=parsed.end)

        self.handle = CrawlHandle(self.crawler, parsed.start, parsed.end).start()
        return self.handle

    def shutdown(self, timeout: Optional[float] = None) -> Optional[CrawlResult]:
        """Cancel the running crawl, wait for it and close the endpoint session."""
        result = None
        try:
            if self.handle is not None:
                self.handle.cancel()
                result = self.handle.join(timeout)
                if self.handle.is_running:
                    self.logger.warning("Crawl still running after shutdown timeout", timeout=timeout)
        finally:
            self.rpc_client.close()
            self.logger.info("Reporter shut down")
        return result
