"""Bitcoin-specific utility functions."""

import hashlib
import base58
from typing import Optional, Dict, Any, List
import structlog

logger = structlog.get_logger(__name__)

# Mainnet version bytes
P2PKH_VERSION = b'\x00'
P2SH_VERSION = b'\x05'


def get_script_type(script_hex: str) -> str:
    """Determine script type from script hex."""
    if not script_hex:
        return "unknown"

    try:
        script_bytes = bytes.fromhex(script_hex)
    except (TypeError, ValueError):
        return "unknown"

    # P2PKH: OP_DUP OP_HASH160 <pubKeyHash> OP_EQUALVERIFY OP_CHECKSIG
    if (len(script_bytes) == 25 and
        script_bytes[0] == 0x76 and  # OP_DUP
        script_bytes[1] == 0xa9 and  # OP_HASH160
        script_bytes[2] == 0x14 and  # Push 20 bytes
        script_bytes[23] == 0x88 and # OP_EQUALVERIFY
        script_bytes[24] == 0xac):   # OP_CHECKSIG
        return "P2PKH"

    # P2SH: OP_HASH160 <scriptHash> OP_EQUAL
    if (len(script_bytes) == 23 and
        script_bytes[0] == 0xa9 and  # OP_HASH160
        script_bytes[1] == 0x14 and  # Push 20 bytes
        script_bytes[22] == 0x87):   # OP_EQUAL
        return "P2SH"

    # P2WPKH: OP_0 <20-byte-pubkey-hash>
    if (len(script_bytes) == 22 and
        script_bytes[0] == 0x00 and
        script_bytes[1] == 0x14):
        return "P2WPKH"

    # P2WSH: OP_0 <32-byte-script-hash>
    if (len(script_bytes) == 34 and
        script_bytes[0] == 0x00 and
        script_bytes[1] == 0x20):
        return "P2WSH"

    # P2TR: OP_1 <32-byte-taproot-output>
    if (len(script_bytes) == 34 and
        script_bytes[0] == 0x51 and
        script_bytes[1] == 0x20):
        return "P2TR"

    # P2PK: <pubkey> OP_CHECKSIG
    if (len(script_bytes) in [35, 67] and
        script_bytes[-1] == 0xac):
        return "P2PK"

    # Multisig: OP_M <pubkey1> ... <pubkeyN> OP_N OP_CHECKMULTISIG
    if (len(script_bytes) > 3 and
        0x51 <= script_bytes[0] <= 0x60 and
        script_bytes[-1] == 0xae):
        return "MULTISIG"

    if script_bytes[0] == 0x6a:  # OP_RETURN
        return "OP_RETURN"

    return "NON_STANDARD"


def decode_address(script_hex: str, script_type: Optional[str] = None) -> Optional[str]:
    """Extract a base58 address from an output script.

    Only P2PKH and P2SH scripts are decoded; other script types return None.
    """
    if not script_hex:
        return None

    try:
        script_bytes = bytes.fromhex(script_hex)
    except (TypeError, ValueError) as e:
        logger.warning("Failed to decode address", script_hex=script_hex, error=str(e))
        return None

    if not script_type:
        script_type = get_script_type(script_hex)

    if script_type == "P2PKH":
        # Pubkey hash is bytes 3-22
        return _hash160_to_address(P2PKH_VERSION, script_bytes[3:23])

    if script_type == "P2SH":
        # Script hash is bytes 2-21
        return _hash160_to_address(P2SH_VERSION, script_bytes[2:22])

    return None


def _hash160_to_address(version_byte: bytes, hash160: bytes) -> str:
    """Base58Check encode a hash160 with the given version byte."""
    payload = version_byte + hash160
    checksum = hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:4]
    return base58.b58encode(payload + checksum).decode('ascii')


def extract_addresses(script_pub_key: Dict[str, Any]) -> Optional[List[str]]:
    """Get the destination addresses of an output script.

    Bitcoin Core before v22 reports an ``addresses`` list, later versions a
    single ``address``. Falls back to decoding the script hex. Returns None
    when no address can be determined.
    """
    addresses = script_pub_key.get('addresses')
    if isinstance(addresses, list) and addresses:
        return [str(address) for address in addresses]

    address = script_pub_key.get('address')
    if isinstance(address, str) and address:
        return [address]

    script_hex = script_pub_key.get('hex')
    decoded = decode_address(script_hex) if isinstance(script_hex, str) else None
    if decoded:
        return [decoded]

    return None
