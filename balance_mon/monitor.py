import time
import asyncio
import logging
from typing import Optional
from .config import Account, AccountRegistry, DEFAULT_LOOP_INTERVAL_MS
from .metrics import (
    BalanceSample, NonceSample, ErrorEvent, MetricsSink,
    BALANCE_ERROR, SAFE_NONCE_ERROR
)
from .rpc import RpcClient, RpcError, SAFE_NONCE_SELECTOR

logger = logging.getLogger(__name__)


class BalanceMonitor:
    """Polls balances and Safe nonces for a fixed set of accounts.

    One tick walks the registry in order, one account and one RPC call at a
    time. A failed read is logged and counted, then the tick moves on; gauges
    keep their previous value. ``run`` repeats ticks with a fixed delay of
    ``loop_interval_ms`` between the end of one tick and the start of the next,
    until ``shutdown`` is called.
    """

    def __init__(
        self,
        accounts: AccountRegistry,
        rpc: RpcClient,
        metrics: MetricsSink,
        loop_interval_ms: int = DEFAULT_LOOP_INTERVAL_MS,
    ):
        self.accounts = accounts
        self.rpc = rpc
        self.metrics = metrics
        self.loop_interval_ms = loop_interval_ms
        self.running = False
        self.started_at: Optional[float] = None
        self.last_tick_completed: Optional[float] = None
        self._stop = asyncio.Event()

    @property
    def loop_interval(self) -> float:
        return self.loop_interval_ms / 1000

    def _record_error(self, account: Account, event: ErrorEvent, err: Exception):
        logger.info(
            f"got unexpected RPC error section={event.section} name={event.operation} "
            f"address={account.address} nickname={account.nickname} err={err!r}"
        )
        self.metrics.inc_rpc_error(event)

    async def fetch_balance(self, account: Account) -> Optional[BalanceSample]:
        try:
            balance = await self.rpc.get_balance(account.address)
            sample = BalanceSample(account.address, account.nickname, balance)
            logger.info(
                f"got balance address={account.address} nickname={account.nickname} balance={balance}"
            )
            self.metrics.set_balance(sample)
            return sample
        except Exception as e:
            self._record_error(account, BALANCE_ERROR, e)
            return None

    async def fetch_safe_nonce(self, account: Account) -> Optional[NonceSample]:
        try:
            data = await self.rpc.call(account.address, SAFE_NONCE_SELECTOR)
            if not data:
                raise RpcError('eth_call', f"empty return data from {account.address}")
            nonce = int.from_bytes(data, 'big')
            sample = NonceSample(account.address, account.nickname, nonce)
            logger.info(
                f"got nonce address={account.address} nickname={account.nickname} nonce={nonce}"
            )
            self.metrics.set_safe_nonce(sample)
            return sample
        except Exception as e:
            self._record_error(account, SAFE_NONCE_ERROR, e)
            return None

    async def tick(self):
        for account in self.accounts:
            await self.fetch_balance(account)
            if account.safe:
                await self.fetch_safe_nonce(account)

        self.last_tick_completed = time.monotonic()
        self.metrics.mark_tick()

    async def run(self):
        logger.info("Starting balance monitoring...")
        self.running = True
        self.started_at = time.monotonic()

        while self.running and not self._stop.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Error in monitoring loop")

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.loop_interval)
            except asyncio.TimeoutError:
                pass

        self.running = False
        logger.info("Balance monitoring stopped")

    def is_healthy(self, now: Optional[float] = None) -> bool:
        """True while ticks keep completing within two loop intervals."""
        now = time.monotonic() if now is None else now
        window = self.loop_interval * 2
        if self.last_tick_completed is not None:
            return now - self.last_tick_completed < window
        # the first tick may still be in flight
        return self.started_at is not None and now - self.started_at < window

    async def shutdown(self):
        logger.info("Shutting down balance monitor...")
        self.running = False
        self._stop.set()
