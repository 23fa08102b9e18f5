import time
from dataclasses import dataclass
from typing import Optional, Protocol, Union
from prometheus_client import CollectorRegistry, Counter, Gauge, REGISTRY

# Prometheus stores samples as float64. Integers above 2**53 lose low-order
# precision; anything at or above FLOAT_OVERFLOW raises OverflowError.
FLOAT_EXACT_LIMIT = 2 ** 53
FLOAT_OVERFLOW = 2 ** 1024

SECTION_BALANCES = 'balances'
SECTION_SAFE_NONCE = 'safeNonce'


@dataclass(frozen=True)
class BalanceSample:
    address: str
    nickname: str
    balance_wei: int


@dataclass(frozen=True)
class NonceSample:
    address: str
    nickname: str
    nonce: int


@dataclass(frozen=True)
class ErrorEvent:
    section: str
    operation: str


BALANCE_ERROR = ErrorEvent(SECTION_BALANCES, 'getBalance')
SAFE_NONCE_ERROR = ErrorEvent(SECTION_SAFE_NONCE, 'getSafeNonce')


def to_gauge_value(value: int) -> float:
    """Coerce a uint256-sized integer into the gauge's float domain."""
    return float(value)


class MetricsSink(Protocol):
    def set_balance(self, sample: BalanceSample) -> None: ...

    def set_safe_nonce(self, sample: NonceSample) -> None: ...

    def inc_rpc_error(self, event: ErrorEvent) -> None: ...

    def mark_tick(self, timestamp: Optional[float] = None) -> None: ...


class PrometheusMetrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = REGISTRY if registry is None else registry

        self.balances = Gauge(
            'balances',
            'Balances of addresses',
            ['address', 'nickname'],
            registry=self.registry
        )
        self.safe_nonces = Gauge(
            'safeNonces',
            'Safe nonce',
            ['address', 'nickname'],
            registry=self.registry
        )
        self.unexpected_rpc_errors = Counter(
            'unexpectedRpcErrors',
            'Number of unexpected RPC errors',
            ['section', 'name'],
            registry=self.registry
        )
        self.last_tick = Gauge(
            'balance_mon_last_tick_timestamp',
            'Timestamp of the last completed monitoring tick',
            registry=self.registry
        )
        self.health = Gauge(
            'balance_mon_health',
            'Health status of the monitor (1 = healthy, 0 = unhealthy)',
            registry=self.registry
        )

    def set_balance(self, sample: BalanceSample) -> None:
        value = to_gauge_value(sample.balance_wei)
        self.balances.labels(address=sample.address, nickname=sample.nickname).set(value)

    def set_safe_nonce(self, sample: NonceSample) -> None:
        value = to_gauge_value(sample.nonce)
        self.safe_nonces.labels(address=sample.address, nickname=sample.nickname).set(value)

    def inc_rpc_error(self, event: ErrorEvent) -> None:
        self.unexpected_rpc_errors.labels(section=event.section, name=event.operation).inc()

    def mark_tick(self, timestamp: Optional[float] = None) -> None:
        self.last_tick.set(time.time() if timestamp is None else timestamp)

    def set_health(self, healthy: Union[bool, int]) -> None:
        self.health.set(1 if healthy else 0)
