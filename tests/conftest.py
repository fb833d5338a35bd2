"""Pytest configuration and fixtures for provenance crawler tests."""

import pytest
from decimal import Decimal
from typing import Any, Dict, List

from btc_provenance.models.blockchain import Block, Transaction, Vin, Vout
from btc_provenance.models.config import CrawlerConfig
from btc_provenance.core.errors import BlockNotFoundError


GENESIS_HASH = "000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f"
GENESIS_TXID = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"
GENESIS_ADDRESS = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
GENESIS_COINBASE = (
    "04ffff001d0104455468652054696d65732030332f4a616e2f32303039204368616e63656c6c6f72"
    "206f6e206272696e6b206f66207365636f6e64206261696c6f757420666f722062616e6b73"
)


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================

@pytest.fixture
def config(tmp_path):
    """Crawler configuration writing into a temporary directory."""
    return CrawlerConfig(
        bitcoin_rpc_host="127.0.0.1",
        bitcoin_rpc_port=18443,
        bitcoin_rpc_user="test_user",
        bitcoin_rpc_password="test_pass",
        checkpoint_file=str(tmp_path / "crawler.progress"),
        hash_index_file=str(tmp_path / "block_hashes.tsv"),
        retry_pause_seconds=10.0,
        retry_budget_seconds=60.0,
        max_backlog=100,
        backlog_poll_interval=1.0,
        progress_log_interval=60.0,
        log_file=None,
    )


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ============================================================================
# RAW ENDPOINT DATA FIXTURES
# ============================================================================

@pytest.fixture
def raw_genesis_block() -> Dict[str, Any]:
    """Genesis block as returned by getblock with verbosity 2."""
    return {
        "hash": GENESIS_HASH,
        "confirmations": 820000,
        "height": 0,
        "time": 1231006505,
        "difficulty": 1,
        "chainwork": "0000000000000000000000000000000000000000000000000000000100010001",
        "tx": [
            {
                "txid": GENESIS_TXID,
                "locktime": 0,
                "vin": [{"coinbase": GENESIS_COINBASE, "sequence": 4294967295}],
                "vout": [
                    {
                        "value": 50.0,
                        "n": 0,
                        "scriptPubKey": {
                            "hex": "4104678afdb0fe5548271967f1a67130b7105cd6a828e03909a67962e0ea1f61deb6"
                                   "49f6bc3f4cef38c4f35504e51ec112de5c384df7ba0b8d578a4c702b6bf11d5fac",
                            "type": "pubkey",
                            "addresses": [GENESIS_ADDRESS],
                        },
                    }
                ],
            }
        ],
    }


@pytest.fixture
def raw_spending_block() -> Dict[str, Any]:
    """Block with a coinbase and one spending transaction with three outputs."""
    return {
        "hash": "00000000000000000001b2c3",
        "confirmations": 10,
        "height": 170,
        "time": 1231731025,
        "difficulty": 1.52,
        "chainwork": "000000000000000000000000000000000000000000000000000000ab00ab00ab",
        "tx": [
            {
                "txid": "b1fea52486ce0c62bb442b530a3f0132b826c74e473d1f2c220bfa78111c5082",
                "locktime": 0,
                "vin": [{"coinbase": "04ffff001d0102", "sequence": 4294967295}],
                "vout": [
                    {"value": 50.0, "n": 0,
                     "scriptPubKey": {"type": "pubkeyhash",
                                      "address": "1PSSGeFHDnKNxiEyFrD1wcEaHr9hrQDDWc"}},
                ],
            },
            {
                "txid": "f4184fc596403b9d638783cf57adfe4c75c605f6356fbc91338530e9831e9e16",
                "locktime": 5000,
                "vin": [{"txid": "0437cd7f8525ceed2324359c2d0ba26006d92d856a9c20fa0241106ee5a597c9",
                         "vout": 0, "sequence": 4294967295}],
                "vout": [
                    {"value": 10.0, "n": 0,
                     "scriptPubKey": {"type": "pubkeyhash",
                                      "addresses": ["12cbQLTFMXRnSzktFkuoG3eHoMeFtpTu3S"]}},
                    {"value": 0.0, "n": 1,
                     "scriptPubKey": {"type": "nulldata", "hex": "6a0b68656c6c6f20776f726c64"}},
                    {"value": 40.0, "n": 2,
                     "scriptPubKey": {"type": "pubkeyhash",
                                      "addresses": ["12cbQLTFMXRnSzktFkuoG3eHoMeFtpTu3S"]}},
                ],
            },
        ],
    }


# ============================================================================
# DOMAIN FIXTURES
# ============================================================================

def make_block(height: int, tx_count: int = 1) -> Block:
    """Small synthetic block: one coinbase plus ``tx_count - 1`` spends."""
    transactions = [
        Transaction(
            txid=f"coinbase-{height}",
            coinbase="04ffff",
            vins=(Vin(),),
            vouts=(Vout(value=Decimal("50"), index=0, addresses=(f"addr-{height}",)),),
        )
    ]
    for i in range(1, tx_count):
        transactions.append(Transaction(
            txid=f"tx-{height}-{i}",
            vins=(Vin(txid=f"coinbase-{height - 1}", vout=0),),
            vouts=(Vout(value=Decimal("1.5"), index=0, addresses=(f"addr-{height}-{i}",)),),
        ))
    return Block(
        hash=f"hash-{height}",
        height=height,
        confirmations=1000 - height,
        time=1231006505 + height * 600,
        difficulty=1,
        chainwork=f"{height:064x}",
        transactions=tuple(transactions),
    )


class FakeBlockSource:
    """Block source serving synthetic blocks up to ``tip`` with scripted failures."""

    def __init__(self, tip: int = 1000, failures: Dict[int, List[Exception]] = None):
        self.tip = tip
        self.failures = {h: list(errors) for h, errors in (failures or {}).items()}
        self.calls: List[int] = []

    def fetch(self, height: int) -> Block:
        self.calls.append(height)
        pending = self.failures.get(height)
        if pending:
            raise pending.pop(0)
        if height > self.tip:
            raise BlockNotFoundError(f"height {height} beyond tip", height=height)
        return make_block(height)


@pytest.fixture
def block_factory():
    return make_block


@pytest.fixture
def fake_source():
    return FakeBlockSource()
