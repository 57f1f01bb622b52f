"""Cycle driver: fetch a snapshot, evaluate it, report, then repeat on a fixed interval."""

import logging
import time
from typing import Callable, Protocol

from vaults_monitor.errors import FetchError
from vaults_monitor.evaluator import derive_withdraw_capacity, evaluate
from vaults_monitor.formatters import format_amount
from vaults_monitor.models import (
    DepositorRecord,
    EvaluationResult,
    EvaluationSnapshot,
    RiskEvent,
    SettlementAssetMeta,
    Vault,
)
from vaults_monitor.onchain import VaultUserAccount

logger = logging.getLogger(__name__)


class SnapshotSource(Protocol):
    """What the driver needs from the ledger (see `vaults_monitor.onchain.ChainSnapshotSource`)."""

    def pin_block(self) -> int: ...

    def fetch_vault(self) -> Vault: ...

    def fetch_depositors(self, vault: Vault | None = None, *, show_progress: bool = False) -> list[DepositorRecord]: ...

    def compute_vault_equity(self, vault: Vault) -> int: ...

    def subscribe_vault_user(self) -> VaultUserAccount: ...

    def refresh_vault_user(self, user: VaultUserAccount) -> None: ...

    def compute_withdraw_capacity(
        self, user: VaultUserAccount, market_index: int, *, with_margin_buffer: bool
    ) -> int: ...

    def fetch_settlement_asset_meta(self, market_index: int) -> SettlementAssetMeta: ...


class Reporter(Protocol):
    def report(self, events: tuple[RiskEvent, ...]) -> int: ...


class WithdrawalMonitor:
    """
    Owns the long-lived trading-account handle and runs evaluation cycles.

    The first cycle subscribes the handle and logs a startup summary; later cycles refresh
    the handle and stay silent unless a warning fires.
    """

    def __init__(self, source: SnapshotSource, reporter: Reporter, *, clock: Callable[[], float] = time.time) -> None:
        self.source = source
        self.reporter = reporter
        self.clock = clock
        self.vault_user: VaultUserAccount | None = None
        self.cycles = 0

    @property
    def first_run(self) -> bool:
        return self.cycles == 0

    def _withdraw_capacity(self, vault: Vault) -> int:
        if self.vault_user is None:
            self.vault_user = self.source.subscribe_vault_user()
        else:
            self.source.refresh_vault_user(self.vault_user)

        with_buffer = self.source.compute_withdraw_capacity(
            self.vault_user, vault.spot_market_index, with_margin_buffer=True
        )
        without_buffer = self.source.compute_withdraw_capacity(
            self.vault_user, vault.spot_market_index, with_margin_buffer=False
        )
        return derive_withdraw_capacity(with_buffer, without_buffer)

    def build_snapshot(self, vault: Vault, block_number: int | None = None) -> EvaluationSnapshot:
        """Assemble the evaluator input for `vault` from the source."""
        withdraw_capacity = self._withdraw_capacity(vault)
        depositors = self.source.fetch_depositors(vault, show_progress=self.first_run)
        vault_equity = self.source.compute_vault_equity(vault)
        asset = self.source.fetch_settlement_asset_meta(vault.spot_market_index)
        return EvaluationSnapshot(
            vault=vault,
            depositors=tuple(depositors),
            vault_equity=vault_equity,
            withdraw_capacity=withdraw_capacity,
            asset=asset,
            block_number=block_number,
        )

    def _log_startup_summary(self, snapshot: EvaluationSnapshot) -> None:
        asset = snapshot.asset
        logger.info("Withdrawal monitor started:")
        logger.info(
            "  Current withdrawals requested: %s",
            format_amount(snapshot.vault.total_withdraw_requested, asset.decimals, asset.symbol),
        )
        logger.info(
            "  Free collateral:               %s",
            format_amount(snapshot.withdraw_capacity, asset.decimals, asset.symbol),
        )

    def run_cycle(self) -> EvaluationResult | None:
        """
        Run one fetch -> evaluate -> report cycle.

        Returns None when a later cycle finds no pending withdrawals (nothing else is fetched).
        FetchError propagates to the caller.
        """
        first_run = self.first_run
        block = self.source.pin_block()
        vault = self.source.fetch_vault()

        if vault.total_withdraw_requested == 0 and not first_run:
            logger.debug("No withdrawals requested at block %s", block)
            self.cycles += 1
            return None

        snapshot = self.build_snapshot(vault, block)
        if first_run:
            self._log_startup_summary(snapshot)

        result = evaluate(snapshot, now=int(self.clock()))
        self.reporter.report(result.events)
        logger.debug(
            "Cycle at block %s: %d events, %d/%d pending requests liquidatable",
            block,
            len(result.events),
            len(result.liquidatable),
            len(result.assessments),
        )
        self.cycles += 1
        return result

    def run_forever(
        self,
        interval_s: float,
        *,
        max_consecutive_failures: int = 1,
        max_cycles: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Run cycles on a fixed interval until `max_cycles` (forever if None).

        Cycles never overlap: one that overruns the interval is followed immediately by the
        next, without catching up on missed ticks. A failure of the first cycle is always
        fatal; later FetchErrors propagate once `max_consecutive_failures` cycles in a row fail.
        """
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        if max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be >= 1")

        failures = 0
        ran = 0
        next_run = monotonic()
        while max_cycles is None or ran < max_cycles:
            started = monotonic()
            try:
                self.run_cycle()
                failures = 0
            except FetchError as ex:
                if self.first_run:
                    raise
                failures += 1
                if failures >= max_consecutive_failures:
                    logger.error("Giving up after %d consecutive failed cycles: %s", failures, ex)
                    raise
                logger.warning("Cycle failed (%d/%d consecutive): %s", failures, max_consecutive_failures, ex)
            ran += 1

            if max_cycles is not None and ran >= max_cycles:
                break

            next_run = max(next_run + interval_s, started)
            delay = next_run - monotonic()
            if delay > 0:
                sleep(delay)
            else:
                next_run = monotonic()
