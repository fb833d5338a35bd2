"""Unit tests for block and transaction parsing."""

import pytest
from decimal import Decimal
from structlog.testing import capture_logs

from btc_provenance.core.errors import MalformedBlockError
from btc_provenance.core.transaction_parser import TransactionParser, parse_vin, parse_vout
from btc_provenance.models.blockchain import SkippedVout, Vout


class TestTransactionParser:
    """Test suite for TransactionParser."""

    @pytest.fixture
    def parser(self):
        return TransactionParser()

    def test_parse_genesis_block(self, parser, raw_genesis_block):
        """Test the genesis block parses into one coinbase transaction."""
        block = parser.parse_block(raw_genesis_block)

        assert block.height == 0
        assert block.hash == raw_genesis_block["hash"]
        assert block.difficulty == 1
        assert len(block.transactions) == 1

        tx = block.transactions[0]
        assert tx.is_coinbase
        assert tx.coinbase == raw_genesis_block["tx"][0]["vin"][0]["coinbase"]
        assert tx.vins[0].is_coinbase
        assert tx.vouts[0].value == Decimal("50.0")
        assert tx.vouts[0].addresses == ("1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa",)

    def test_difficulty_truncated_to_integer(self, parser, raw_spending_block):
        """Test fractional difficulty is truncated."""
        block = parser.parse_block(raw_spending_block)

        assert block.difficulty == 1

    def test_unparseable_vout_is_skipped(self, parser, raw_spending_block):
        """Test a null-data output is left out without failing the transaction."""
        block = parser.parse_block(raw_spending_block)
        tx = block.transactions[1]

        assert [vout.index for vout in tx.vouts] == [0, 2]
        assert len(tx.skipped_vouts) == 1
        assert tx.skipped_vouts[0].index == 1
        assert tx.locktime == 5000
        assert not tx.is_coinbase

    def test_skipped_vout_logs_warning(self, parser, raw_spending_block):
        """Test a skipped output is reported with its transaction and index."""
        with capture_logs() as logs:
            block = parser.parse_block(raw_spending_block)

        warnings = [entry for entry in logs if entry["event"] == "Skipping unparseable output"]
        assert len(warnings) == 1
        assert warnings[0]["log_level"] == "warning"
        assert warnings[0]["tx_hash"] == block.transactions[1].txid
        assert warnings[0]["vout_index"] == 1

    def test_non_string_script_hex_skips_only_that_output(self, parser, raw_genesis_block):
        """Test a script hex of the wrong type does not fail the block."""
        raw_genesis_block["tx"][0]["vout"][0]["scriptPubKey"] = {"hex": 1234}

        block = parser.parse_block(raw_genesis_block)

        tx = block.transactions[0]
        assert tx.vouts == ()
        assert len(tx.skipped_vouts) == 1
        assert tx.skipped_vouts[0].index == 0

    def test_single_address_field_supported(self, parser, raw_spending_block):
        """Test the newer single ``address`` field is read."""
        block = parser.parse_block(raw_spending_block)

        assert block.transactions[0].vouts[0].addresses == ("1PSSGeFHDnKNxiEyFrD1wcEaHr9hrQDDWc",)

    @pytest.mark.parametrize("field", ["hash", "height", "confirmations", "time",
                                       "difficulty", "chainwork", "tx"])
    def test_missing_block_field_is_malformed(self, parser, raw_genesis_block, field):
        """Test that any missing block field raises MalformedBlockError."""
        del raw_genesis_block[field]

        with pytest.raises(MalformedBlockError):
            parser.parse_block(raw_genesis_block)

    def test_missing_txid_is_malformed(self, parser, raw_genesis_block):
        """Test a transaction without txid fails the block."""
        del raw_genesis_block["tx"][0]["txid"]

        with pytest.raises(MalformedBlockError):
            parser.parse_block(raw_genesis_block)

    def test_missing_locktime_defaults_to_zero(self, parser, raw_genesis_block):
        del raw_genesis_block["tx"][0]["locktime"]

        block = parser.parse_block(raw_genesis_block)

        assert block.transactions[0].locktime == 0

    def test_non_object_block_is_malformed(self, parser):
        with pytest.raises(MalformedBlockError):
            parser.parse_block(None)


class TestParseVin:
    """Tests for input parsing."""

    def test_coinbase_input(self):
        vin = parse_vin({"coinbase": "04ffff001d", "sequence": 1})

        assert vin.is_coinbase
        assert vin.txid is None

    def test_reference_input(self):
        vin = parse_vin({"txid": "abc", "vout": 3})

        assert not vin.is_coinbase
        assert vin.txid == "abc"
        assert vin.vout == 3

    def test_reference_without_vout_defaults_to_zero(self):
        assert parse_vin({"txid": "abc"}).vout == 0


class TestParseVout:
    """Tests for output parsing."""

    def test_address_list(self):
        result = parse_vout({"value": 1.25, "n": 4,
                             "scriptPubKey": {"addresses": ["a", "b"]}})

        assert result == Vout(value=Decimal("1.25"), index=4, addresses=("a", "b"))

    def test_address_decoded_from_script_hex(self):
        """Test a P2PKH script without address fields is decoded."""
        result = parse_vout({"value": 50, "n": 0, "scriptPubKey": {
            "hex": "76a91462e907b15cbf27d5425399ebf6f0fb50ebb88f1888ac"}})

        assert isinstance(result, Vout)
        assert result.addresses == ("1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa",)

    def test_missing_value_skipped(self):
        result = parse_vout({"n": 2, "scriptPubKey": {"addresses": ["a"]}})

        assert isinstance(result, SkippedVout)
        assert result.index == 2

    def test_missing_index_skipped(self):
        result = parse_vout({"value": 1, "scriptPubKey": {"addresses": ["a"]}})

        assert isinstance(result, SkippedVout)
        assert result.index is None

    def test_nonstandard_script_skipped(self):
        result = parse_vout({"value": 1, "n": 0,
                             "scriptPubKey": {"type": "nonstandard", "hex": "51"}})

        assert isinstance(result, SkippedVout)
        assert "nonstandard" in result.reason

    def test_non_string_script_hex_skipped(self):
        result = parse_vout({"value": 1, "n": 3, "scriptPubKey": {"hex": 1234}})

        assert isinstance(result, SkippedVout)
        assert result.index == 3
