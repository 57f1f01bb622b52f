"""Liquidation-risk evaluation of a vault snapshot.

Everything here is a pure function of an `EvaluationSnapshot` and the cycle time `now`.
Two independent checks run every cycle:

- vault level: are the total pending withdrawals larger than what the vault can pay out?
- depositor level: would honoring a single pending request make the vault liquidatable
  (or is the vault already being liquidated)?
"""

from vaults_monitor.formatters import max_of, mul_div, scale_to_display
from vaults_monitor.models import (
    DepositorAssessment,
    DepositorRecord,
    EvaluationResult,
    EvaluationSnapshot,
    RiskEvent,
)

VAULT_OVER_CAPACITY = "vault_over_capacity"
DEPOSITOR_LIQUIDATABLE = "depositor_liquidatable"
INVARIANT_VIOLATION = "invariant_violation"

VAULT_OVER_CAPACITY_MSG = (
    "Total withdrawals requested: %(requested)s %(symbol)s greater than current withdraw limit: "
    "%(capacity)s %(symbol)s, withdrawal attempts will fail"
)
DEPOSITOR_LIQUIDATABLE_MSG = (
    "Vault is liquidatable, user %(authority)s is attempting to withdraw %(withdraw_amount)s %(symbol)s, "
    "free collateral available: %(capacity)s %(symbol)s"
)
ZERO_TOTAL_SHARES_MSG = (
    "Cannot price withdraw request of user %(authority)s for %(shares)s shares: vault has zero total shares"
)
UNPRICED_LIQUIDATABLE_MSG = (
    "Vault is liquidatable, user %(authority)s is attempting to withdraw %(shares)s shares, "
    "free collateral available: %(capacity)s %(symbol)s"
)


def derive_withdraw_capacity(with_margin_buffer: int, without_margin_buffer: int) -> int:
    """The operative withdrawal ceiling is the least restrictive of the two risk-engine limits."""
    return max_of(with_margin_buffer, without_margin_buffer)


def check_vault_capacity(snapshot: EvaluationSnapshot) -> tuple[bool, list[RiskEvent]]:
    """Compare total pending withdrawals against the vault's withdrawal capacity."""
    vault = snapshot.vault
    exceeds = vault.total_withdraw_requested > snapshot.withdraw_capacity
    if not exceeds:
        return False, []

    decimals = snapshot.asset.decimals
    event = RiskEvent(
        level="warn",
        kind=VAULT_OVER_CAPACITY,
        message=VAULT_OVER_CAPACITY_MSG,
        fields={
            "vault": vault.address,
            "requested": scale_to_display(vault.total_withdraw_requested, decimals),
            "capacity": scale_to_display(snapshot.withdraw_capacity, decimals),
            "symbol": snapshot.asset.symbol,
        },
    )
    return True, [event]


def assess_depositor(depositor: DepositorRecord, snapshot: EvaluationSnapshot, now: int) -> DepositorAssessment:
    """
    Evaluate the liquidation predicate for one depositor's pending request.

    Raises ArithmeticInvariantViolation if the vault has zero total shares.
    """
    vault = snapshot.vault
    request = depositor.last_withdraw_request

    redeem_period_elapsed = now - request.ts >= vault.redeem_period
    # Proportional redemption of vault equity, multiply first then truncate.
    withdraw_amount = mul_div(request.shares, snapshot.vault_equity, vault.total_shares)
    vault_cannot_cover = withdraw_amount >= snapshot.withdraw_capacity
    already_liquidating = vault.is_liquidating

    liquidatable = already_liquidating or (redeem_period_elapsed and vault_cannot_cover)

    return DepositorAssessment(
        authority=depositor.authority,
        withdraw_amount=withdraw_amount,
        redeem_period_elapsed=redeem_period_elapsed,
        vault_cannot_cover=vault_cannot_cover,
        already_liquidating=already_liquidating,
        liquidatable=liquidatable,
    )


def _liquidatable_event(assessment: DepositorAssessment, snapshot: EvaluationSnapshot, shares: int) -> RiskEvent:
    decimals = snapshot.asset.decimals
    unpriced = assessment.withdraw_amount is None
    return RiskEvent(
        level="warn",
        kind=DEPOSITOR_LIQUIDATABLE,
        message=UNPRICED_LIQUIDATABLE_MSG if unpriced else DEPOSITOR_LIQUIDATABLE_MSG,
        fields={
            "vault": snapshot.vault.address,
            "authority": assessment.authority,
            "shares": shares,
            "withdraw_amount": None if unpriced else scale_to_display(assessment.withdraw_amount, decimals),
            "capacity": scale_to_display(snapshot.withdraw_capacity, decimals),
            "symbol": snapshot.asset.symbol,
            "already_liquidating": assessment.already_liquidating,
        },
    )


def _unpriced_assessment(depositor: DepositorRecord, snapshot: EvaluationSnapshot, now: int) -> DepositorAssessment:
    """Assessment of a request that cannot be priced because the vault has zero total shares."""
    vault = snapshot.vault
    return DepositorAssessment(
        authority=depositor.authority,
        withdraw_amount=None,
        redeem_period_elapsed=now - depositor.last_withdraw_request.ts >= vault.redeem_period,
        vault_cannot_cover=False,
        already_liquidating=True,
        liquidatable=True,
    )


def evaluate(snapshot: EvaluationSnapshot, now: int) -> EvaluationResult:
    """
    Run the vault-level and per-depositor checks over a snapshot.

    `now` (epoch seconds) is sampled once by the caller and shared by every depositor.
    Nothing is evaluated when no withdrawal is pending.
    """
    if snapshot.vault.total_withdraw_requested == 0:
        return EvaluationResult(events=(), assessments=(), exceeds_capacity=False, short_circuited=True)

    exceeds, events = check_vault_capacity(snapshot)
    assessments: list[DepositorAssessment] = []

    for depositor in snapshot.depositors:
        request = depositor.last_withdraw_request
        if not request.is_pending:
            continue

        if snapshot.vault.total_shares == 0:
            events.append(
                RiskEvent(
                    level="warn",
                    kind=INVARIANT_VIOLATION,
                    message=ZERO_TOTAL_SHARES_MSG,
                    fields={
                        "vault": snapshot.vault.address,
                        "authority": depositor.authority,
                        "shares": request.shares,
                    },
                )
            )
            # A liquidating vault flags every pending request, priced or not.
            if not snapshot.vault.is_liquidating:
                continue
            assessment = _unpriced_assessment(depositor, snapshot, now)
        else:
            assessment = assess_depositor(depositor, snapshot, now)

        assessments.append(assessment)
        if assessment.liquidatable:
            events.append(_liquidatable_event(assessment, snapshot, request.shares))

    return EvaluationResult(
        events=tuple(events),
        assessments=tuple(assessments),
        exceeds_capacity=exceeds,
        short_circuited=False,
    )
