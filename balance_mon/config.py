import os
import json
import yaml
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_LOOP_INTERVAL_MS = 60_000
DEFAULT_RPC_TIMEOUT = 30
DEFAULT_HOST = '0.0.0.0'
DEFAULT_PORT = 7300

# yaml key -> environment variable that overrides it
ENV_OVERRIDES = {
    'rpc_url': 'BALANCE_MON__RPC',
    'accounts': 'BALANCE_MON__ACCOUNTS',
    'loop_interval_ms': 'BALANCE_MON__LOOP_INTERVAL_MS',
    'rpc_timeout': 'BALANCE_MON__RPC_TIMEOUT',
    'host': 'METRICS_SERVER_HOST',
    'port': 'METRICS_SERVER_PORT',
    'log_level': 'LOG_LEVEL',
}


class ConfigError(ValueError):
    """Raised when the configuration cannot be turned into valid settings."""


@dataclass(frozen=True)
class Account:
    address: str
    nickname: str
    safe: bool = False


class AccountRegistry:
    """Ordered, read-only collection of the accounts to monitor."""

    def __init__(self, accounts: Tuple[Account, ...] = ()):
        self._accounts = tuple(accounts)

    def __iter__(self) -> Iterator[Account]:
        return iter(self._accounts)

    def __len__(self) -> int:
        return len(self._accounts)

    def __repr__(self) -> str:
        return f"AccountRegistry({list(self._accounts)!r})"


def _parse_account(index: int, data: Any) -> Account:
    if not isinstance(data, dict):
        raise ConfigError(f"accounts[{index}] must be an object, got {type(data).__name__}")

    for field_name in ('address', 'nickname'):
        if field_name not in data:
            raise ConfigError(f"accounts[{index}] is missing required field '{field_name}'")
        if not isinstance(data[field_name], str) or not data[field_name]:
            raise ConfigError(f"accounts[{index}].{field_name} must be a non-empty string")

    safe = data.get('safe', False)
    if not isinstance(safe, bool):
        raise ConfigError(f"accounts[{index}].safe must be a boolean, got {safe!r}")

    return Account(address=data['address'], nickname=data['nickname'], safe=safe)


def parse_accounts(raw: Any) -> AccountRegistry:
    """Build the account registry from a JSON string or an already decoded list.

    Each entry must look like ``{"address": str, "nickname": str, "safe": bool}``;
    ``safe`` may be omitted and defaults to false.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigError(f"accounts is not valid JSON: {e}") from e

    if not isinstance(raw, list):
        raise ConfigError(f"accounts must be an array, got {type(raw).__name__}")

    return AccountRegistry(tuple(_parse_account(i, item) for i, item in enumerate(raw)))


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}") from e
    if number <= 0:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    return number


def parse_log_level(value: Any) -> str:
    level = str(value).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"log_level must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL, got {value!r}")
    return level


class Config:
    def __init__(self, config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        config: Dict[str, Any] = {}
        if config_path and os.path.exists(config_path):
            logger.info(f"Loading config from {config_path}")
            with open(config_path, 'r') as f:
                try:
                    config = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Could not parse {config_path}: {e}") from e
            if not isinstance(config, dict):
                raise ConfigError(f"{config_path} must contain a mapping at the top level")
        elif config_path:
            logger.info(f"Config file {config_path} not found, using environment only")

        environ = os.environ if environ is None else environ
        for key, env_name in ENV_OVERRIDES.items():
            if environ.get(env_name):
                config[key] = environ[env_name]

        if not config.get('rpc_url'):
            raise ConfigError("rpc_url is required (set it in the config file or BALANCE_MON__RPC)")
        if 'accounts' not in config:
            raise ConfigError("accounts is required (set it in the config file or BALANCE_MON__ACCOUNTS)")

        self.rpc_url: str = str(config['rpc_url'])
        self.accounts = parse_accounts(config['accounts'])
        self.loop_interval_ms = _positive_int(
            'loop_interval_ms', config.get('loop_interval_ms', DEFAULT_LOOP_INTERVAL_MS)
        )
        self.rpc_timeout = _positive_int('rpc_timeout', config.get('rpc_timeout', DEFAULT_RPC_TIMEOUT))
        self.host: str = str(config.get('host', DEFAULT_HOST))
        self.port = _positive_int('port', config.get('port', DEFAULT_PORT))
        self.log_level = parse_log_level(config.get('log_level', 'INFO'))

        logger.info(f"Monitoring {len(self.accounts)} accounts every {self.loop_interval_ms} ms")
