"""Data models for vault withdrawal monitoring."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal, Union


@dataclass(frozen=True)
class VaultContracts:
    """Container for contract addresses resolved from the vault contract."""

    vault: str
    user_account: str
    risk_engine: str


@dataclass(frozen=True)
class NotLiquidating:
    """The vault is not being liquidated."""


@dataclass(frozen=True)
class Liquidating:
    """The vault is under liquidation since `started_at` (epoch seconds), driven by `delegate`."""

    started_at: int
    delegate: str


LiquidationStatus = Union[NotLiquidating, Liquidating]


def liquidation_status_from_raw(start_ts: int, delegate: str | None) -> LiquidationStatus:
    """
    Build the liquidation status from the two raw ledger fields.

    On-chain, "not in liquidation" is encoded as a zero start timestamp together with an
    empty (zero-address) delegate. Only when both are set is the vault liquidating.
    """
    if start_ts != 0 and delegate is not None:
        return Liquidating(started_at=start_ts, delegate=delegate)
    return NotLiquidating()


@dataclass(frozen=True)
class Vault:
    """Aggregate vault record."""

    address: str
    total_shares: int
    # Sum of pending withdrawal amounts, in settlement-asset base units.
    total_withdraw_requested: int
    # Minimum age (seconds) of a withdrawal request before it is payable.
    redeem_period: int
    liquidation: LiquidationStatus
    spot_market_index: int

    @property
    def is_liquidating(self) -> bool:
        return isinstance(self.liquidation, Liquidating)


@dataclass(frozen=True)
class WithdrawRequest:
    """Pending withdrawal request embedded in a depositor record."""

    shares: int
    ts: int

    @property
    def is_pending(self) -> bool:
        return self.shares != 0


@dataclass(frozen=True)
class DepositorRecord:
    """One claim-holder of the vault."""

    address: str
    authority: str
    last_withdraw_request: WithdrawRequest


@dataclass(frozen=True)
class SettlementAssetMeta:
    """Display metadata of the settlement (deposit) asset."""

    market_index: int
    symbol: str
    decimals: int


@dataclass(frozen=True)
class EvaluationSnapshot:
    """Point-in-time input to the evaluator, assembled fresh every cycle."""

    vault: Vault
    depositors: tuple[DepositorRecord, ...]
    # Both amounts are in settlement-asset base units.
    vault_equity: int
    withdraw_capacity: int
    asset: SettlementAssetMeta
    block_number: int | None = None


@dataclass(frozen=True)
class RiskEvent:
    """A leveled event for the reporting sink. `message` is a %-style template over `fields`."""

    level: Literal["warn", "info"]
    kind: str
    message: str
    fields: dict[str, Any] = field(default_factory=dict)

    def display_fields(self) -> dict[str, Any]:
        """Fields with amounts in plain notation (never `1E-7`)."""
        return {k: f"{v:f}" if isinstance(v, Decimal) else v for k, v in self.fields.items()}

    def render(self) -> str:
        return self.message % self.display_fields()


@dataclass(frozen=True)
class DepositorAssessment:
    """Outcome of the liquidation predicate for one depositor."""

    authority: str
    # None when the vault has zero total shares and the request cannot be priced.
    withdraw_amount: int | None
    redeem_period_elapsed: bool
    vault_cannot_cover: bool
    already_liquidating: bool
    liquidatable: bool


@dataclass(frozen=True)
class EvaluationResult:
    """Everything one evaluation produced."""

    events: tuple[RiskEvent, ...]
    assessments: tuple[DepositorAssessment, ...]
    exceeds_capacity: bool
    short_circuited: bool

    @property
    def liquidatable(self) -> tuple[DepositorAssessment, ...]:
        return tuple(a for a in self.assessments if a.liquidatable)
