"""Block fetch error taxonomy."""

from typing import Optional


class BlockFetchError(Exception):
    """Base error for a failed block fetch."""

    def __init__(self, message: str, height: Optional[int] = None):
        super().__init__(message)
        self.height = height


class BlockNotFoundError(BlockFetchError):
    """The endpoint has no block at the requested height (yet)."""


class TransientFetchError(BlockFetchError):
    """Network or service failure; the same request may succeed later."""


class MalformedBlockError(BlockFetchError):
    """The response lacks fields needed to build the block or a transaction."""
