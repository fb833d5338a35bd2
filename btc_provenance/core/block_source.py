"""Single-block fetching from a Bitcoin Core endpoint."""

from typing import Any, Dict, Optional
import structlog

from btc_provenance.models.blockchain import Block
from btc_provenance.models.config import CrawlerConfig
from btc_provenance.core.errors import (
    BlockFetchError,
    BlockNotFoundError,
    TransientFetchError,
    MalformedBlockError,
)
from btc_provenance.core.hash_index import BlockHashIndex
from btc_provenance.core.rpc_client import (
    BitcoinRPCClient, BitcoinRPCError, RPC_INVALID_ADDRESS_OR_KEY, RPC_INVALID_PARAMETER
)
from btc_provenance.core.transaction_parser import TransactionParser

logger = structlog.get_logger(__name__)

NOT_FOUND_RPC_CODES = (RPC_INVALID_PARAMETER, RPC_INVALID_ADDRESS_OR_KEY)


class BlockSource:
    """
    Fetches one block by height and parses it into a ``Block``.

    Stateless apart from the hash index used in ``rest`` mode. Each call
    issues its requests once; failures surface as ``BlockNotFoundError``,
    ``TransientFetchError`` or ``MalformedBlockError``.
    """

    def __init__(self, rpc_client: BitcoinRPCClient, mode: str = "rpc",
                 hash_index: Optional[BlockHashIndex] = None,
                 parser: Optional[TransactionParser] = None):
        if mode not in ("rpc", "rest"):
            raise ValueError(f"Unknown endpoint mode: {mode}")
        if mode == "rest" and hash_index is None:
            raise ValueError("rest mode requires a block hash index")

        self.rpc_client = rpc_client
        self.mode = mode
        self.hash_index = hash_index
        self.parser = parser or TransactionParser()
        self.logger = logger.bind(component="block_source", mode=mode)

    @classmethod
    def from_config(cls, config: CrawlerConfig, rpc_client: BitcoinRPCClient) -> "BlockSource":
        """Create a block source for the configured endpoint mode."""
        hash_index = None
        if config.endpoint_mode == "rest":
            hash_index = BlockHashIndex(
                rpc_client,
                config.hash_index_file,
                batch_size=config.hash_request_batch
            )
        return cls(rpc_client, mode=config.endpoint_mode, hash_index=hash_index)

    def fetch(self, height: int) -> Block:
        """Fetch and parse the block at ``height``."""
        try:
            raw_block = self._fetch_raw(height)
        except BitcoinRPCError as e:
            raise self._classify(e, height) from e
        except (OSError, UnicodeDecodeError) as e:
            # Hash index file could not be read or written
            raise TransientFetchError(f"Block hash index unavailable: {e}", height=height) from e

        try:
            block = self.parser.parse_block(raw_block)
        except MalformedBlockError as e:
            e.height = height
            raise

        if block.height != height:
            raise MalformedBlockError(
                f"Requested height {height} but endpoint returned {block.height}",
                height=height
            )
        return block

    def _fetch_raw(self, height: int) -> Dict[str, Any]:
        if self.mode == "rpc":
            block_hash = self.rpc_client.get_block_hash(height)
            return self.rpc_client.get_block(block_hash, verbosity=2)

        block_hash = self.hash_index.lookup(height)
        if block_hash is None:
            raise BlockNotFoundError(f"No block hash known for height {height}", height=height)
        return self.rpc_client.get_rest_block(block_hash)

    def _classify(self, error: BitcoinRPCError, height: int) -> BlockFetchError:
        """Map a transport/RPC failure onto the fetch error taxonomy."""
        if error.code in NOT_FOUND_RPC_CODES or (error.code is None and error.status_code == 404):
            return BlockNotFoundError(str(error), height=height)
        return TransientFetchError(str(error), height=height)
