"""Decoding of contract call results into models."""

import logging
from collections.abc import Mapping
from typing import Any

from vaults_monitor.errors import MalformedStateError
from vaults_monitor.formatters import as_int, decode_name, is_zero_address, normalize_address
from vaults_monitor.models import (
    DepositorRecord,
    SettlementAssetMeta,
    Vault,
    WithdrawRequest,
    liquidation_status_from_raw,
)
from vaults_monitor.validation import validate_vault

logger = logging.getLogger(__name__)


def _fields(entry: Any, names: tuple[str, ...], what: str) -> dict[str, Any]:
    """Read struct fields from a dict-like or tuple entry (web3.py may decode either way)."""
    if isinstance(entry, Mapping):
        missing = [n for n in names if n not in entry]
        if missing:
            raise MalformedStateError(f"{what}: missing fields {missing}")
        return {n: entry[n] for n in names}
    try:
        values = tuple(entry)
    except TypeError as ex:
        raise MalformedStateError(f"{what}: unexpected entry type {type(entry).__name__}") from ex
    if len(values) < len(names):
        raise MalformedStateError(f"{what}: expected {len(names)} fields, got {len(values)}")
    return dict(zip(names, values))


def parse_vault_info(entry: Any, *, address: str, validate: bool = True) -> Vault:
    """Parse vaultInfo() output.

    VaultInfo struct fields:
        0: totalShares (uint256)
        1: totalWithdrawRequested (uint256)
        2: redeemPeriod (uint64)
        3: liquidationStartTs (int64)
        4: liquidationDelegate (address) - zero address when unset
        5: spotMarketIndex (uint16)
    """
    raw = _fields(
        entry,
        (
            "totalShares",
            "totalWithdrawRequested",
            "redeemPeriod",
            "liquidationStartTs",
            "liquidationDelegate",
            "spotMarketIndex",
        ),
        f"vaultInfo({address})",
    )
    try:
        start_ts = as_int(raw["liquidationStartTs"])
        delegate = None if is_zero_address(raw["liquidationDelegate"]) else normalize_address(raw["liquidationDelegate"])
        vault = Vault(
            address=address,
            total_shares=as_int(raw["totalShares"]),
            total_withdraw_requested=as_int(raw["totalWithdrawRequested"]),
            redeem_period=as_int(raw["redeemPeriod"]),
            liquidation=liquidation_status_from_raw(start_ts, delegate),
            spot_market_index=as_int(raw["spotMarketIndex"]),
        )
    except (TypeError, ValueError) as ex:
        raise MalformedStateError(f"vaultInfo({address}): {ex}") from ex

    if validate:
        issues = validate_vault(vault, raw_liquidation_start_ts=start_ts, raw_delegate_set=delegate is not None)
        for issue in issues:
            logger.warning("Validation warning: %s", issue)

    return vault


def parse_depositor_info(entry: Any) -> DepositorRecord:
    """Parse a batchDepositorsInfo() entry.

    DepositorInfo struct fields:
        0: depositor (address)
        1: authority (address)
        2: withdrawRequestShares (uint256)
        3: withdrawRequestTs (int64)
    """
    raw = _fields(
        entry,
        ("depositor", "authority", "withdrawRequestShares", "withdrawRequestTs"),
        "batchDepositorsInfo entry",
    )
    try:
        return DepositorRecord(
            address=normalize_address(raw["depositor"]),
            authority=normalize_address(raw["authority"]),
            last_withdraw_request=WithdrawRequest(
                shares=as_int(raw["withdrawRequestShares"]),
                ts=as_int(raw["withdrawRequestTs"]),
            ),
        )
    except (TypeError, ValueError) as ex:
        raise MalformedStateError(f"batchDepositorsInfo entry: {ex}") from ex


def parse_spot_market_info(entry: Any, *, market_index: int) -> SettlementAssetMeta:
    """Parse spotMarket(marketIndex) output: (name bytes32, decimals uint8, mint address)."""
    raw = _fields(entry, ("name", "decimals"), f"spotMarket({market_index})")
    try:
        decimals = as_int(raw["decimals"])
        symbol = decode_name(raw["name"])
    except (TypeError, ValueError) as ex:
        raise MalformedStateError(f"spotMarket({market_index}): {ex}") from ex
    if decimals < 0:
        raise MalformedStateError(f"spotMarket({market_index}): negative decimals: {decimals}")
    return SettlementAssetMeta(market_index=market_index, symbol=symbol, decimals=decimals)
