"""Blockchain data models for Bitcoin."""

from decimal import Decimal
from typing import Optional, Tuple
from dataclasses import dataclass


@dataclass(frozen=True)
class Vin:
    """Transaction input.

    A coinbase input has no referenced output: ``txid`` is None.
    """
    txid: Optional[str] = None
    vout: int = 0

    @property
    def is_coinbase(self) -> bool:
        return self.txid is None


@dataclass(frozen=True)
class Vout:
    """Transaction output with its destination addresses."""
    value: Decimal
    index: int
    addresses: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SkippedVout:
    """An output that could not be parsed and was left out of its transaction."""
    index: Optional[int]
    reason: str


@dataclass(frozen=True)
class Transaction:
    """Transaction-level data structure."""
    txid: str
    locktime: int = 0
    coinbase: Optional[str] = None
    vins: Tuple[Vin, ...] = ()
    vouts: Tuple[Vout, ...] = ()
    skipped_vouts: Tuple[SkippedVout, ...] = ()

    @property
    def is_coinbase(self) -> bool:
        return self.coinbase is not None


@dataclass(frozen=True)
class Block:
    """Block-level data structure."""
    hash: str
    height: int
    confirmations: int
    time: int
    difficulty: int
    chainwork: str
    transactions: Tuple[Transaction, ...] = ()
