"""Validation logic for vault and depositor records."""

from vaults_monitor.errors import MalformedStateError
from vaults_monitor.models import DepositorRecord, Liquidating, Vault


def validate_vault(vault: Vault, *, raw_liquidation_start_ts: int = 0, raw_delegate_set: bool = False) -> list[str]:
    """
    Validate vault record invariants.

    Negative amounts cannot come from a well-formed record and raise MalformedStateError.
    Everything else is returned as a list of warnings.
    """
    issues: list[str] = []

    # 1. Non-negative values (all unsigned on-chain)
    non_negative_fields = {
        "totalShares": vault.total_shares,
        "totalWithdrawRequested": vault.total_withdraw_requested,
        "redeemPeriod": vault.redeem_period,
    }
    for name, value in non_negative_fields.items():
        if value < 0:
            raise MalformedStateError(f"Vault {vault.address}: negative {name}: {value}")

    # 2. liquidationStartTs and liquidationDelegate are set and cleared together
    ts_set = raw_liquidation_start_ts != 0
    if ts_set != raw_delegate_set:
        issues.append(
            f"Vault {vault.address}: inconsistent liquidation fields: "
            f"liquidationStartTs={raw_liquidation_start_ts}, delegate {'set' if raw_delegate_set else 'empty'} "
            f"(treated as not liquidating)"
        )

    # 3. Withdrawals cannot be priced without outstanding shares
    if vault.total_shares == 0 and vault.total_withdraw_requested > 0:
        issues.append(
            f"Vault {vault.address}: totalWithdrawRequested={vault.total_withdraw_requested} "
            f"but totalShares=0"
        )

    if isinstance(vault.liquidation, Liquidating) and vault.liquidation.started_at < 0:
        raise MalformedStateError(f"Vault {vault.address}: negative liquidationStartTs: {vault.liquidation.started_at}")

    return issues


def validate_depositor(depositor: DepositorRecord, vault: Vault) -> list[str]:
    """Validate a depositor record against its vault. Returns list of warnings."""
    issues: list[str] = []
    request = depositor.last_withdraw_request

    if request.shares < 0:
        raise MalformedStateError(f"Depositor {depositor.address}: negative withdraw request shares: {request.shares}")

    if request.shares > vault.total_shares:
        issues.append(
            f"Depositor {depositor.address} (authority {depositor.authority}): "
            f"requested {request.shares} shares > vault totalShares {vault.total_shares}"
        )

    return issues
