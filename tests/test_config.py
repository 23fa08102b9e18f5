import json

import pytest

from balance_mon.config import (
    DEFAULT_LOOP_INTERVAL_MS,
    Account,
    Config,
    ConfigError,
    parse_accounts,
)

ACCOUNTS = [
    {"address": "0xAA", "nickname": "alice", "safe": False},
    {"address": "0xBB", "nickname": "bob", "safe": True},
]


class TestParseAccounts:
    def test_json_string(self):
        accounts = parse_accounts(json.dumps(ACCOUNTS))
        assert list(accounts) == [
            Account("0xAA", "alice", False),
            Account("0xBB", "bob", True),
        ]

    def test_decoded_list_keeps_order_across_iterations(self):
        accounts = parse_accounts(list(reversed(ACCOUNTS)))
        first = [a.nickname for a in accounts]
        second = [a.nickname for a in accounts]
        assert first == second == ["bob", "alice"]
        assert len(accounts) == 2

    def test_safe_defaults_to_false(self):
        accounts = parse_accounts([{"address": "0xAA", "nickname": "alice"}])
        assert list(accounts) == [Account("0xAA", "alice", False)]

    def test_empty_list(self):
        assert list(parse_accounts("[]")) == []

    def test_accounts_are_immutable(self):
        account = next(iter(parse_accounts(ACCOUNTS)))
        with pytest.raises(AttributeError):
            account.address = "0xCC"

    @pytest.mark.parametrize(
        "raw, message",
        [
            ("not json", "not valid JSON"),
            ('{"address": "0xAA"}', "must be an array"),
            (42, "must be an array"),
            ([{"nickname": "alice", "safe": False}], "missing required field 'address'"),
            ([{"address": "0xAA", "safe": False}], "missing required field 'nickname'"),
            ([{"address": 1, "nickname": "alice"}], "address must be a non-empty string"),
            ([{"address": "0xAA", "nickname": "alice", "safe": "yes"}], "safe must be a boolean"),
            (["0xAA"], "must be an object"),
        ],
    )
    def test_malformed(self, raw, message):
        with pytest.raises(ConfigError, match=message):
            parse_accounts(raw)


class TestConfig:
    def write(self, tmp_path, text):
        path = tmp_path / "config.yaml"
        path.write_text(text)
        return str(path)

    def test_from_yaml(self, tmp_path):
        path = self.write(
            tmp_path,
            """
rpc_url: http://localhost:8545
loop_interval_ms: 5000
port: 9100
accounts:
  - address: "0xAA"
    nickname: alice
    safe: false
  - address: "0xBB"
    nickname: bob
    safe: true
""",
        )
        config = Config(path, environ={})

        assert config.rpc_url == "http://localhost:8545"
        assert config.loop_interval_ms == 5000
        assert config.port == 9100
        assert config.host == "0.0.0.0"
        assert [a.safe for a in config.accounts] == [False, True]

    def test_environment_only(self, tmp_path):
        config = Config(
            str(tmp_path / "missing.yaml"),
            environ={
                "BALANCE_MON__RPC": "http://node:8545",
                "BALANCE_MON__ACCOUNTS": json.dumps(ACCOUNTS),
            },
        )

        assert config.rpc_url == "http://node:8545"
        assert config.loop_interval_ms == DEFAULT_LOOP_INTERVAL_MS
        assert len(config.accounts) == 2

    def test_environment_overrides_file(self, tmp_path):
        path = self.write(tmp_path, "rpc_url: http://file\naccounts: []\nloop_interval_ms: 1000\n")
        config = Config(path, environ={"BALANCE_MON__LOOP_INTERVAL_MS": "250"})

        assert config.rpc_url == "http://file"
        assert config.loop_interval_ms == 250

    def test_missing_rpc_url(self, tmp_path):
        path = self.write(tmp_path, "accounts: []\n")
        with pytest.raises(ConfigError, match="rpc_url is required"):
            Config(path, environ={})

    def test_missing_accounts(self, tmp_path):
        path = self.write(tmp_path, "rpc_url: http://localhost:8545\n")
        with pytest.raises(ConfigError, match="accounts is required"):
            Config(path, environ={})

    def test_malformed_accounts_fail(self, tmp_path):
        path = self.write(
            tmp_path,
            "rpc_url: http://localhost:8545\naccounts:\n  - nickname: alice\n",
        )
        with pytest.raises(ConfigError, match="address"):
            Config(path, environ={})

    @pytest.mark.parametrize("value", ["0", "-5", "soon"])
    def test_bad_interval(self, tmp_path, value):
        path = self.write(tmp_path, "rpc_url: http://x\naccounts: []\n")
        with pytest.raises(ConfigError, match="loop_interval_ms"):
            Config(path, environ={"BALANCE_MON__LOOP_INTERVAL_MS": value})

    def test_top_level_must_be_mapping(self, tmp_path):
        path = self.write(tmp_path, "- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            Config(path, environ={})

    def test_log_level(self, tmp_path):
        path = self.write(tmp_path, "rpc_url: http://x\naccounts: []\nlog_level: debug\n")
        assert Config(path, environ={}).log_level == "DEBUG"

        with pytest.raises(ConfigError, match="log_level"):
            Config(path, environ={"LOG_LEVEL": "verbose"})
