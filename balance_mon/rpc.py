import logging
from typing import Any, Optional, Protocol
from web3 import AsyncWeb3, Web3
from web3.providers import AsyncHTTPProvider

logger = logging.getLogger(__name__)

# bytes4(keccak256("nonce()")) on the Safe contract
SAFE_NONCE_SELECTOR = bytes.fromhex('affed0e0')


class RpcError(Exception):
    """A JSON-RPC request returned an error or a result we could not decode."""

    def __init__(self, method: str, message: str, response: Optional[Any] = None):
        super().__init__(f"{method}: {message}")
        self.method = method
        self.response = response


class RpcClient(Protocol):
    async def get_balance(self, address: str) -> int: ...

    async def call(self, target: str, data: bytes) -> bytes: ...


class Web3Rpc:
    def __init__(self, rpc_url: str, timeout: int = 30):
        self.rpc_url = rpc_url
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={'timeout': timeout}))

    async def _request(self, method: str, params: list) -> Any:
        response = await self.w3.provider.make_request(method, params)
        if not isinstance(response, dict):
            raise RpcError(method, f"unexpected response {response!r}", response)
        if response.get('error'):
            raise RpcError(method, f"node returned error {response['error']}", response)
        if 'result' not in response or response['result'] is None:
            raise RpcError(method, f"invalid response format {response!r}", response)
        return response['result']

    async def get_balance(self, address: str) -> int:
        result = await self._request('eth_getBalance', [address, 'latest'])
        try:
            return int(result, 16)
        except (TypeError, ValueError) as e:
            raise RpcError('eth_getBalance', f"balance is not a hex quantity: {result!r}") from e

    async def call(self, target: str, data: bytes) -> bytes:
        result = await self._request('eth_call', [{'to': target, 'data': Web3.to_hex(data)}, 'latest'])
        try:
            return Web3.to_bytes(hexstr=result)
        except (TypeError, ValueError) as e:
            raise RpcError('eth_call', f"return data is not hex: {result!r}") from e

    async def get_block_number(self) -> int:
        result = await self._request('eth_blockNumber', [])
        try:
            return int(result, 16)
        except (TypeError, ValueError) as e:
            raise RpcError('eth_blockNumber', f"block number is not a hex quantity: {result!r}") from e

    async def close(self):
        """Close the aiohttp session cached by the provider."""
        await self.w3.provider.disconnect()

    async def check_connection(self) -> bool:
        """Log whether the endpoint answers; never raises."""
        logger.info(f"Attempting to connect to {self.rpc_url}")
        try:
            block_number = await self.get_block_number()
            logger.info(f"Successfully connected to {self.rpc_url} (block: {block_number})")
            return True
        except Exception as e:
            logger.error(f"Failed to get block number from {self.rpc_url}: {str(e)}")
            logger.error(f"Error type: {type(e).__name__}")
            return False
