"""Utility functions and helpers."""

from btc_provenance.utils.logging import setup_logging
from btc_provenance.utils.bitcoin import (
    decode_address,
    extract_addresses,
    get_script_type,
)

__all__ = [
    "setup_logging",
    "decode_address",
    "extract_addresses",
    "get_script_type",
]
