"""Local height to block hash index backed by a tab-separated cache file."""

import os
from pathlib import Path
from typing import Dict, List, Optional
import structlog

from btc_provenance.core.rpc_client import (
    BitcoinRPCClient, BitcoinRPCError, RPC_INVALID_PARAMETER
)

logger = structlog.get_logger(__name__)


class BlockHashIndex:
    """
    Resolves block heights to hashes for endpoints addressed by hash.

    Hashes are kept in memory and mirrored to ``path`` as ``height<TAB>hash``
    lines. Missing heights are fetched with batched ``getblockhash`` calls,
    starting at the first height not yet known, until the chain tip.
    """

    def __init__(self, rpc_client: BitcoinRPCClient, path: str, batch_size: int = 1000):
        self.rpc_client = rpc_client
        self.path = Path(path)
        self.batch_size = batch_size
        self._hashes: Dict[int, str] = {}
        self._loaded = False
        self.logger = logger.bind(component="block_hash_index")

    def __len__(self) -> int:
        return len(self._hashes)

    def load(self) -> Dict[int, str]:
        """Load cached hashes from disk, keeping the contiguous prefix from height 0."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)

        cached: Dict[int, str] = {}
        for line_no, line in enumerate(self.path.read_text().splitlines(), start=1):
            if not line.strip():
                continue
            parts = line.split("\t")
            try:
                height = int(parts[0])
                block_hash = parts[1].strip()
            except (ValueError, IndexError):
                self.logger.warning("Ignoring corrupt hash index line",
                                    path=str(self.path), line=line_no)
                continue
            if block_hash:
                cached[height] = block_hash

        self._hashes = {}
        height = 0
        while height in cached:
            self._hashes[height] = cached[height]
            height += 1

        if len(self._hashes) != len(cached):
            self.logger.warning("Hash index has gaps, truncating",
                                kept=len(self._hashes), found=len(cached))

        self._loaded = True
        self.logger.info("Hash index loaded", path=str(self.path), heights=len(self._hashes))
        return self._hashes

    def refresh(self) -> int:
        """
        Fetch hashes above the known prefix from the node.

        Returns:
            Number of new hashes added.

        Raises:
            BitcoinRPCError: if the node cannot be reached or returns an
                error other than "height out of range".
        """
        if not self._loaded:
            self.load()

        start = len(self._hashes)
        added = 0

        while True:
            heights = list(range(start, start + self.batch_size))
            entries = self.rpc_client.batch("getblockhash", [[h] for h in heights])
            batch_hashes = self._parse_batch(heights, entries)

            for height, block_hash in batch_hashes:
                self._hashes[height] = block_hash
            added += len(batch_hashes)

            if len(batch_hashes) < self.batch_size:
                break
            start += self.batch_size

        if added:
            self._write()
            self.logger.info("Hash index refreshed", added=added, tip=len(self._hashes) - 1)

        return added

    def _parse_batch(self, heights: List[int], entries: List[dict]) -> List[tuple]:
        """Pair heights with returned hashes, stopping at the chain tip."""
        hashes = []
        for height, entry in zip(heights, entries):
            error = entry.get('error')
            if error:
                if error.get('code') == RPC_INVALID_PARAMETER:
                    # Height beyond the tip
                    break
                raise BitcoinRPCError(
                    f"RPC Error {error.get('code')}: {error.get('message')}",
                    code=error.get('code')
                )
            result = entry.get('result')
            if not isinstance(result, str):
                raise BitcoinRPCError(f"Unexpected getblockhash result for height {height}")
            hashes.append((height, result))
        return hashes

    def _write(self):
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w") as f:
            for height in range(len(self._hashes)):
                f.write(f"{height}\t{self._hashes[height]}\n")
        os.replace(tmp_path, self.path)

    def lookup(self, height: int) -> Optional[str]:
        """Get the hash for ``height``, refreshing from the node on a miss."""
        if not self._loaded:
            self.load()

        block_hash = self._hashes.get(height)
        if block_hash is None:
            self.refresh()
            block_hash = self._hashes.get(height)
        return block_hash
