from typing import Dict, List, Optional, Tuple, Union

from balance_mon.config import Account, AccountRegistry
from balance_mon.metrics import BalanceSample, ErrorEvent, NonceSample

Outcome = Union[int, bytes, Exception]


class FakeRpc:
    def __init__(
        self,
        balances: Optional[Dict[str, Outcome]] = None,
        nonces: Optional[Dict[str, Outcome]] = None,
    ) -> None:
        self.balances = balances or {}
        self.nonces = nonces or {}
        self.calls: List[Tuple[str, str]] = []

    async def get_balance(self, address: str) -> int:
        self.calls.append(("get_balance", address))
        result = self.balances.get(address, 0)
        if isinstance(result, Exception):
            raise result
        return result

    async def call(self, target: str, data: bytes) -> bytes:
        self.calls.append(("call", target))
        self.last_call_data = data
        result = self.nonces.get(target, b"\x00")
        if isinstance(result, Exception):
            raise result
        return result


class FakeMetrics:
    def __init__(self) -> None:
        self.balances: List[BalanceSample] = []
        self.nonces: List[NonceSample] = []
        self.errors: List[ErrorEvent] = []
        self.ticks: List[Optional[float]] = []

    def set_balance(self, sample: BalanceSample) -> None:
        self.balances.append(sample)

    def set_safe_nonce(self, sample: NonceSample) -> None:
        self.nonces.append(sample)

    def inc_rpc_error(self, event: ErrorEvent) -> None:
        self.errors.append(event)

    def mark_tick(self, timestamp: Optional[float] = None) -> None:
        self.ticks.append(timestamp)


def registry(*accounts: Tuple[str, str, bool]) -> AccountRegistry:
    return AccountRegistry(tuple(Account(a, n, s) for a, n, s in accounts))
