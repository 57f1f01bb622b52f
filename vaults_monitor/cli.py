"""CLI and main logic."""

import argparse
import logging
import os
import sys

from dotenv import find_dotenv, load_dotenv

from vaults_monitor.config import MonitorConfig, load_config
from vaults_monitor.contracts import resolve_vault_contracts
from vaults_monitor.errors import ConfigurationError, FetchError
from vaults_monitor.monitor import WithdrawalMonitor
from vaults_monitor.onchain import ChainSnapshotSource
from vaults_monitor.reporting import LogReporter, configure_logging

logger = logging.getLogger("vaults_monitor")


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(
        description="Monitor a vault's pending withdrawals and warn when one would make the vault liquidatable."
    )
    p.add_argument(
        "--rpc-url",
        default=None,
        help="RPC URL. Required if RPC_HTTP_URL environment variable is not set.",
    )
    p.add_argument(
        "--vault",
        default=None,
        help="Vault contract address. Required if VAULT_ADDRESS environment variable is not set.",
    )
    p.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between evaluation cycles (env POLL_INTERVAL_S, default 60).",
    )
    p.add_argument(
        "--max-consecutive-failures",
        type=int,
        default=None,
        help="Exit after this many consecutive failed cycles (env MAX_CONSECUTIVE_FAILURES, default 1).",
    )
    p.add_argument(
        "--page-size",
        type=int,
        default=None,
        help="Depositor records read per RPC call (default 200).",
    )
    p.add_argument("--log-level", default=None, help="Log level (env LOG_LEVEL, default INFO).")
    p.add_argument(
        "--no-cache",
        action="store_true",
        help="Disable caching of spot market metadata for this run.",
    )
    p.add_argument("--once", action="store_true", help="Run a single cycle and exit.")
    return p.parse_args(argv)


def run(config: MonitorConfig) -> int:
    """Connect, resolve contracts and run the monitor until a fatal error."""
    from web3 import Web3  # pylint: disable=import-outside-toplevel

    logger.info("Starting withdrawals monitor")
    logger.info(" Vault: %s", config.vault_address)

    w3 = Web3(Web3.HTTPProvider(config.rpc_url, request_kwargs={"timeout": config.request_timeout_s}))
    if not w3.is_connected():
        print(f"Error: failed to connect to RPC at {config.rpc_url}", file=sys.stderr)
        return 2

    try:
        contracts = resolve_vault_contracts(w3, config.vault_address)
        logger.info(" Trading account: %s", contracts.user_account)

        source = ChainSnapshotSource(w3, contracts, page_size=config.page_size, use_cache=config.use_cache)
        monitor = WithdrawalMonitor(source, LogReporter())
        monitor.run_forever(
            config.poll_interval_s,
            max_consecutive_failures=config.max_consecutive_failures,
            max_cycles=1 if config.once else None,
        )
    except FetchError as ex:
        logger.error("Fatal: %s", ex)
        return 1
    except KeyboardInterrupt:
        logger.info("Withdrawals monitor stopped.")
    return 0


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)
    load_dotenv(find_dotenv(usecwd=True))

    try:
        config = load_config(args, os.environ)
        configure_logging(config.log_level)
    except ConfigurationError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2

    return run(config)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
