"""Block and transaction parsing into domain models."""

from decimal import Decimal, InvalidOperation
from typing import Dict, Any, List, Union
import structlog

from btc_provenance.models.blockchain import (
    Block, Transaction, Vin, Vout, SkippedVout
)
from btc_provenance.core.errors import MalformedBlockError
from btc_provenance.utils.bitcoin import extract_addresses

logger = structlog.get_logger(__name__)

REQUIRED_BLOCK_FIELDS = ('hash', 'height', 'confirmations', 'time', 'difficulty', 'chainwork', 'tx')
REQUIRED_TX_FIELDS = ('txid', 'vin', 'vout')


class TransactionParser:
    """Parse raw Bitcoin Core block JSON into immutable domain objects."""

    def __init__(self):
        self.logger = logger.bind(component="transaction_parser")

    def parse_block(self, block_data: Dict[str, Any]) -> Block:
        """
        Parse a verbose block (``getblock`` verbosity 2 or REST ``.json``).

        Raises:
            MalformedBlockError: if the block or one of its transactions is
                missing a required field.
        """
        if not isinstance(block_data, dict):
            raise MalformedBlockError("Block data is not an object")

        missing = [name for name in REQUIRED_BLOCK_FIELDS if name not in block_data]
        if missing:
            raise MalformedBlockError(f"Block is missing fields: {', '.join(missing)}",
                                      height=block_data.get('height'))

        try:
            height = int(block_data['height'])
            transactions = tuple(
                self.parse_transaction(tx_data) for tx_data in block_data['tx']
            )
            block = Block(
                hash=str(block_data['hash']),
                height=height,
                confirmations=int(block_data['confirmations']),
                time=int(block_data['time']),
                difficulty=int(block_data['difficulty']),
                chainwork=str(block_data['chainwork']),
                transactions=transactions,
            )
        except (TypeError, ValueError) as e:
            raise MalformedBlockError(f"Block has invalid field values: {e}",
                                      height=block_data.get('height')) from e

        skipped = sum(len(tx.skipped_vouts) for tx in transactions)
        self.logger.debug("Parsed block",
                          height=block.height,
                          tx_count=len(transactions),
                          skipped_vouts=skipped)
        return block

    def parse_transaction(self, tx_data: Dict[str, Any]) -> Transaction:
        """Parse one transaction, leaving out outputs that cannot be parsed."""
        if not isinstance(tx_data, dict):
            raise MalformedBlockError("Transaction data is not an object")

        missing = [name for name in REQUIRED_TX_FIELDS if name not in tx_data]
        if missing:
            raise MalformedBlockError(
                f"Transaction {tx_data.get('txid', 'unknown')} is missing fields: {', '.join(missing)}"
            )

        tx_hash = str(tx_data['txid'])

        vins = []
        coinbase = None
        for vin_data in tx_data['vin']:
            vin = parse_vin(vin_data)
            if vin.is_coinbase and coinbase is None:
                coinbase = str(vin_data.get('coinbase', ''))
            vins.append(vin)

        vouts: List[Vout] = []
        skipped: List[SkippedVout] = []
        for vout_data in tx_data['vout']:
            result = parse_vout(vout_data)
            if isinstance(result, SkippedVout):
                # Null-data and non-standard outputs have no address list
                self.logger.warning("Skipping unparseable output",
                                    tx_hash=tx_hash,
                                    vout_index=result.index,
                                    reason=result.reason)
                skipped.append(result)
            else:
                vouts.append(result)

        return Transaction(
            txid=tx_hash,
            locktime=int(tx_data.get('locktime', 0) or 0),
            coinbase=coinbase,
            vins=tuple(vins),
            vouts=tuple(vouts),
            skipped_vouts=tuple(skipped),
        )


def parse_vin(vin_data: Dict[str, Any]) -> Vin:
    """Parse transaction input data.

    An input without a ``txid`` reference is a coinbase input.
    """
    if not isinstance(vin_data, dict):
        raise MalformedBlockError("Transaction input is not an object")

    if 'txid' not in vin_data:
        return Vin()

    try:
        return Vin(txid=str(vin_data['txid']), vout=int(vin_data.get('vout', 0)))
    except (TypeError, ValueError) as e:
        raise MalformedBlockError(f"Transaction input has invalid vout: {e}") from e


def parse_vout(vout_data: Dict[str, Any]) -> Union[Vout, SkippedVout]:
    """Parse transaction output data.

    Returns a ``SkippedVout`` instead of raising when the output lacks a
    value, an index, or a decodable address list.
    """
    if not isinstance(vout_data, dict):
        return SkippedVout(index=None, reason="output is not an object")

    raw_index = vout_data.get('n')
    try:
        index = int(raw_index)
    except (TypeError, ValueError):
        return SkippedVout(index=None, reason="missing or invalid output index")

    if 'value' not in vout_data:
        return SkippedVout(index=index, reason="missing value")
    try:
        value = Decimal(str(vout_data['value']))
    except InvalidOperation:
        return SkippedVout(index=index, reason="invalid value")

    script_pub_key = vout_data.get('scriptPubKey')
    if not isinstance(script_pub_key, dict):
        return SkippedVout(index=index, reason="missing scriptPubKey")

    addresses = extract_addresses(script_pub_key)
    if addresses is None:
        return SkippedVout(
            index=index,
            reason=f"no address for script type {script_pub_key.get('type', 'unknown')}"
        )

    return Vout(value=value, index=index, addresses=tuple(addresses))
