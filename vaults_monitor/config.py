"""Runtime configuration from command-line flags and environment variables."""

import argparse
import re
from collections.abc import Mapping
from dataclasses import dataclass

from vaults_monitor.constants import (
    DEFAULT_DEPOSITORS_PAGE_SIZE,
    DEFAULT_MAX_CONSECUTIVE_FAILURES,
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_TIMEOUT,
    ENV_LOG_LEVEL,
    ENV_MAX_CONSECUTIVE_FAILURES,
    ENV_POLL_INTERVAL,
    ENV_RPC_URL,
    ENV_VAULT_ADDRESS,
    LOG_LEVELS,
)
from vaults_monitor.errors import ConfigurationError
from vaults_monitor.formatters import is_zero_address

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class MonitorConfig:
    """Everything needed to start the monitor."""

    rpc_url: str
    vault_address: str
    poll_interval_s: int = DEFAULT_POLL_INTERVAL_S
    max_consecutive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES
    page_size: int = DEFAULT_DEPOSITORS_PAGE_SIZE
    request_timeout_s: int = DEFAULT_TIMEOUT
    log_level: str = "INFO"
    use_cache: bool = True
    once: bool = False


def _positive_int(value: str | int | None, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        n = int(value)
    except (TypeError, ValueError) as ex:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from ex
    if n <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {n}")
    return n


def load_config(args: argparse.Namespace, environ: Mapping[str, str]) -> MonitorConfig:
    """Merge parsed flags over environment variables. Flags win."""
    rpc_url = args.rpc_url or environ.get(ENV_RPC_URL)
    if not rpc_url:
        raise ConfigurationError(f"RPC URL is required. Provide --rpc-url or set {ENV_RPC_URL}.")

    vault_address = (args.vault or environ.get(ENV_VAULT_ADDRESS) or "").strip()
    if not vault_address:
        raise ConfigurationError(f"Vault address is required. Provide --vault or set {ENV_VAULT_ADDRESS}.")
    if not _ADDRESS_RE.match(vault_address) or is_zero_address(vault_address):
        raise ConfigurationError(f"Invalid vault address: {vault_address!r}")

    log_level = (args.log_level or environ.get(ENV_LOG_LEVEL) or "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(f"log level must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    return MonitorConfig(
        rpc_url=rpc_url,
        vault_address=vault_address,
        poll_interval_s=_positive_int(
            args.interval if args.interval is not None else environ.get(ENV_POLL_INTERVAL),
            "poll interval",
            DEFAULT_POLL_INTERVAL_S,
        ),
        max_consecutive_failures=_positive_int(
            (
                args.max_consecutive_failures
                if args.max_consecutive_failures is not None
                else environ.get(ENV_MAX_CONSECUTIVE_FAILURES)
            ),
            "max consecutive failures",
            DEFAULT_MAX_CONSECUTIVE_FAILURES,
        ),
        page_size=_positive_int(args.page_size, "page size", DEFAULT_DEPOSITORS_PAGE_SIZE),
        log_level=log_level,
        use_cache=not args.no_cache,
        once=args.once,
    )
