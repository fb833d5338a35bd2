"""Bitcoin Core JSON-RPC and REST client for blockchain data access."""

import time
from typing import Dict, Any, Optional, List
import requests
import structlog

from btc_provenance.models.config import CrawlerConfig

logger = structlog.get_logger(__name__)

# Bitcoin Core RPC error codes
RPC_INVALID_ADDRESS_OR_KEY = -5
RPC_INVALID_PARAMETER = -8


class BitcoinRPCError(Exception):
    """Bitcoin RPC specific error.

    ``code`` is the RPC error code when the node answered with an error
    object; ``status_code`` is the HTTP status when the request itself failed.
    """

    def __init__(self, message: str, code: Optional[int] = None,
                 status_code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class BitcoinRPCClient:
    """Bitcoin Core client issuing single requests without retries.

    Retrying is left to the caller so that the total time spent on one
    block can be bounded in one place.
    """

    def __init__(self, config: CrawlerConfig):
        self.config = config
        self.session = requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'btc-provenance/1.0.0'
        })

        self.rpc_url = config.rpc_url
        self.rest_url = config.rest_url
        self.auth = (config.bitcoin_rpc_user, config.bitcoin_rpc_password)
        self.timeout = config.bitcoin_rpc_timeout

        logger.info("Bitcoin RPC client initialized",
                    host=config.bitcoin_rpc_host,
                    port=config.bitcoin_rpc_port,
                    mode=config.endpoint_mode)

    def _payload(self, method: str, params: List[Any], request_id: Any) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params
        }

    def _post(self, payload: Any) -> Any:
        """POST a JSON-RPC payload and return the decoded body."""
        try:
            response = self.session.post(
                self.rpc_url,
                json=payload,
                auth=self.auth,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise BitcoinRPCError(f"RPC request failed: {e}") from e

        # Bitcoin Core reports RPC errors with a non-2xx status and a JSON body
        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and data.get('error') is not None:
            error = data['error']
            error_msg = error.get('message', 'Unknown RPC error')
            error_code = error.get('code', -1)
            raise BitcoinRPCError(f"RPC Error {error_code}: {error_msg}",
                                  code=error_code,
                                  status_code=response.status_code)

        if not response.ok:
            raise BitcoinRPCError(f"RPC HTTP error {response.status_code}",
                                  status_code=response.status_code)

        if data is None:
            raise BitcoinRPCError("RPC response is not valid JSON",
                                  status_code=response.status_code)

        return data

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make a single RPC request and return its result."""
        if params is None:
            params = []

        data = self._post(self._payload(method, params, int(time.time() * 1000)))
        if not isinstance(data, dict):
            raise BitcoinRPCError(f"Unexpected RPC response for {method}")
        return data.get('result')

    def batch(self, method: str, params_list: List[List[Any]]) -> List[Dict[str, Any]]:
        """
        Send several calls of one method in a single batched request.

        Args:
            method: RPC method name
            params_list: Parameters for each call; the call id is its position

        Returns:
            Raw response entries (``id``, ``result``, ``error``) ordered by id.
        """
        if not params_list:
            return []

        payload = [
            self._payload(method, params, index)
            for index, params in enumerate(params_list)
        ]
        data = self._post(payload)

        if not isinstance(data, list):
            raise BitcoinRPCError(f"Unexpected batch response for {method}")

        return sorted(data, key=lambda entry: entry.get('id', 0))

    def get_blockchain_info(self) -> Dict[str, Any]:
        """Get blockchain information."""
        return self.call("getblockchaininfo")

    def get_block_hash(self, height: int) -> str:
        """Get block hash by height."""
        return self.call("getblockhash", [height])

    def get_block(self, block_hash: str, verbosity: int = 2) -> Dict[str, Any]:
        """
        Get block data by hash.

        Args:
            block_hash: Block hash
            verbosity: 0=hex, 1=json without tx, 2=json with tx details
        """
        return self.call("getblock", [block_hash, verbosity])

    def get_rest_block(self, block_hash: str) -> Dict[str, Any]:
        """Get block data with transaction details from the REST interface."""
        url = f"{self.rest_url}/block/{block_hash}.json"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise BitcoinRPCError(f"REST request failed: {e}") from e

        if not response.ok:
            raise BitcoinRPCError(f"REST HTTP error {response.status_code}",
                                  status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise BitcoinRPCError(f"REST response is not valid JSON: {e}",
                                  status_code=response.status_code) from e

    def test_connection(self) -> bool:
        """Test RPC connection."""
        try:
            info = self.get_blockchain_info()
            logger.info("RPC connection successful",
                        chain=info.get('chain'),
                        blocks=info.get('blocks'))
            return True
        except BitcoinRPCError as e:
            logger.error("RPC connection failed", error=str(e))
            return False

    def close(self):
        """Close the RPC session."""
        self.session.close()
        logger.info("RPC client session closed")
