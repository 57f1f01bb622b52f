import pytest

from vaults_monitor import cli
from vaults_monitor.cli import main, parse_args
from vaults_monitor.config import MonitorConfig, load_config
from vaults_monitor.errors import ConfigurationError, FetchError

VAULT = "0x" + "ab" * 20
ENV = {"RPC_HTTP_URL": "https://rpc.example.invalid", "VAULT_ADDRESS": VAULT}


def test_load_config_from_environment():
    config = load_config(parse_args([]), ENV)

    assert config == MonitorConfig(rpc_url="https://rpc.example.invalid", vault_address=VAULT)
    assert config.poll_interval_s == 60
    assert config.max_consecutive_failures == 1
    assert config.use_cache
    assert not config.once


def test_flags_override_environment():
    other = "0x" + "cd" * 20
    args = parse_args(
        [
            "--rpc-url",
            "https://other.invalid",
            "--vault",
            other,
            "--interval",
            "15",
            "--max-consecutive-failures",
            "3",
            "--page-size",
            "50",
            "--log-level",
            "debug",
            "--no-cache",
            "--once",
        ]
    )
    env = {**ENV, "POLL_INTERVAL_S": "120", "MAX_CONSECUTIVE_FAILURES": "9", "LOG_LEVEL": "ERROR"}

    config = load_config(args, env)

    assert config.rpc_url == "https://other.invalid"
    assert config.vault_address == other
    assert config.poll_interval_s == 15
    assert config.max_consecutive_failures == 3
    assert config.page_size == 50
    assert config.log_level == "DEBUG"
    assert not config.use_cache
    assert config.once


def test_interval_and_budget_from_environment():
    env = {**ENV, "POLL_INTERVAL_S": "30", "MAX_CONSECUTIVE_FAILURES": "4"}
    config = load_config(parse_args([]), env)
    assert config.poll_interval_s == 30
    assert config.max_consecutive_failures == 4


@pytest.mark.parametrize(
    ("argv", "env", "message"),
    [
        ([], {"VAULT_ADDRESS": VAULT}, "RPC URL is required"),
        ([], {"RPC_HTTP_URL": "https://rpc.example.invalid"}, "Vault address is required"),
        (["--vault", "0x1234"], ENV, "Invalid vault address"),
        (["--vault", "0x" + "0" * 40], ENV, "Invalid vault address"),
        (["--interval", "0"], ENV, "poll interval must be > 0"),
        ([], {**ENV, "MAX_CONSECUTIVE_FAILURES": "many"}, "must be an integer"),
        (["--log-level", "loud"], ENV, "log level"),
    ],
)
def test_load_config_errors(argv, env, message):
    with pytest.raises(ConfigurationError, match=message):
        load_config(parse_args(argv), env)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ("RPC_HTTP_URL", "VAULT_ADDRESS", "POLL_INTERVAL_S", "MAX_CONSECUTIVE_FAILURES", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    # keep load_dotenv() away from any real .env
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)


def test_main_returns_2_on_missing_configuration(clean_env, capsys):
    assert main(["--once"]) == 2
    assert "RPC URL is required" in capsys.readouterr().err


def test_main_runs_with_resolved_configuration(clean_env, monkeypatch):
    seen = []
    monkeypatch.setattr(cli, "run", lambda config: seen.append(config) or 0)

    assert main(["--rpc-url", "https://rpc.example.invalid", "--vault", VAULT, "--once"]) == 0
    (config,) = seen
    assert config.once
    assert config.vault_address == VAULT


def test_run_returns_1_on_fatal_fetch_error(monkeypatch):
    class FakeWeb3:
        HTTPProvider = staticmethod(lambda url, request_kwargs=None: url)

        def __init__(self, provider):
            self.provider = provider

        def is_connected(self):
            return True

    def broken_resolve(w3, vault_address):
        raise FetchError("execution reverted")

    monkeypatch.setattr("web3.Web3", FakeWeb3)
    monkeypatch.setattr(cli, "resolve_vault_contracts", broken_resolve)

    config = MonitorConfig(rpc_url="https://rpc.example.invalid", vault_address=VAULT, once=True)
    assert cli.run(config) == 1


def test_run_returns_2_when_rpc_unreachable(monkeypatch, capsys):
    class OfflineWeb3:
        HTTPProvider = staticmethod(lambda url, request_kwargs=None: url)

        def __init__(self, provider):
            self.provider = provider

        def is_connected(self):
            return False

    monkeypatch.setattr("web3.Web3", OfflineWeb3)

    config = MonitorConfig(rpc_url="https://rpc.example.invalid", vault_address=VAULT)
    assert cli.run(config) == 2
    assert "failed to connect" in capsys.readouterr().err
