"""Onchain data fetching from the vault contract and its risk engine."""

import logging
import sys
from typing import TYPE_CHECKING, Any, Callable

from tqdm import tqdm

from vaults_monitor.cache import cache_key, get_cached, set_cached
from vaults_monitor.constants import DEFAULT_DEPOSITORS_PAGE_SIZE, RISK_ENGINE_MIN_ABI, VAULT_MIN_ABI
from vaults_monitor.errors import FetchError, MalformedStateError
from vaults_monitor.formatters import as_int
from vaults_monitor.models import DepositorRecord, SettlementAssetMeta, Vault, VaultContracts
from vaults_monitor.parsing import parse_depositor_info, parse_spot_market_info, parse_vault_info
from vaults_monitor.validation import validate_depositor

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover

logger = logging.getLogger(__name__)


def call_view(fn: Callable[..., Any], *args: Any, what: str, block_identifier: int | str = "latest") -> Any:
    """Call a contract view function, turning any failure into a FetchError."""
    try:
        return fn(*args).call(block_identifier=block_identifier)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise FetchError(f"{what} failed at block {block_identifier}: {ex}") from ex


def _non_negative(value: Any, what: str) -> int:
    try:
        amount = as_int(value)
    except (TypeError, ValueError) as ex:
        raise MalformedStateError(f"{what}: not an integer: {value!r}") from ex
    if amount < 0:
        raise MalformedStateError(f"{what}: negative amount: {amount}")
    return amount


class VaultUserAccount:
    """
    Long-lived handle on the vault's trading account ("virtual user").

    Created once by `ChainSnapshotSource.subscribe_vault_user` and refreshed, not recreated,
    on later cycles. Reads are pinned to the block of the latest refresh.
    """

    def __init__(self, address: str, risk_engine_contract: Any) -> None:
        self.address = address
        self._risk_engine = risk_engine_contract
        self.block_identifier: int | str | None = None

    @property
    def subscribed(self) -> bool:
        return self.block_identifier is not None

    def fetch_accounts(self, block_identifier: int | str) -> None:
        """
        Re-pin the handle to `block_identifier`.

        No RPC call is made here. Account state is read lazily by `withdrawal_limit` at the pinned block.
        """
        self.block_identifier = block_identifier

    def withdrawal_limit(self, market_index: int, *, with_margin_buffer: bool) -> int:
        """Maximum amount of `market_index` the account can withdraw, in base units."""
        if not self.subscribed:
            raise FetchError(f"trading account {self.address} is not subscribed")
        what = f"withdrawalLimit({self.address}, {market_index}, withMarginBuffer={with_margin_buffer})"
        raw = call_view(
            self._risk_engine.functions.withdrawalLimit,
            self.address,
            market_index,
            with_margin_buffer,
            what=what,
            block_identifier=self.block_identifier,
        )
        return _non_negative(raw, what)


class ChainSnapshotSource:
    """Reads everything the evaluator needs for one vault, pinned to a single block per cycle."""

    def __init__(
        self,
        w3: "Web3",
        contracts: VaultContracts,
        *,
        page_size: int = DEFAULT_DEPOSITORS_PAGE_SIZE,
        use_cache: bool = True,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be > 0")
        self._w3 = w3
        self.contracts = contracts
        self.vault_address = contracts.vault
        self.page_size = page_size
        self.use_cache = use_cache
        self._vault = w3.eth.contract(address=contracts.vault, abi=VAULT_MIN_ABI)
        self._risk_engine = w3.eth.contract(address=contracts.risk_engine, abi=RISK_ENGINE_MIN_ABI)
        self.block_identifier: int | str = "latest"

    def pin_block(self) -> int:
        """Pin all following reads to the current head block."""
        try:
            block = int(self._w3.eth.block_number)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            raise FetchError(f"eth_blockNumber failed: {ex}") from ex
        self.block_identifier = block
        return block

    def fetch_vault(self) -> Vault:
        """Fetch and decode the vault record."""
        raw = call_view(
            self._vault.functions.vaultInfo,
            what=f"vaultInfo({self.vault_address})",
            block_identifier=self.block_identifier,
        )
        return parse_vault_info(raw, address=self.vault_address)

    def fetch_depositors(self, vault: Vault | None = None, *, show_progress: bool = False) -> list[DepositorRecord]:
        """Fetch all depositor records in batches, in on-chain order."""
        count = _non_negative(
            call_view(
                self._vault.functions.depositorsCount,
                what=f"depositorsCount({self.vault_address})",
                block_identifier=self.block_identifier,
            ),
            "depositorsCount",
        )

        out: list[DepositorRecord] = []
        with tqdm(
            total=count,
            desc="👥 Reading depositors",
            unit="depositor",
            file=sys.stderr,
            disable=not show_progress,
        ) as pbar:
            for offset in range(0, count, self.page_size):
                batch = call_view(
                    self._vault.functions.batchDepositorsInfo,
                    offset,
                    self.page_size,
                    what=f"batchDepositorsInfo({offset}, {self.page_size})",
                    block_identifier=self.block_identifier,
                )
                for entry in batch:
                    out.append(parse_depositor_info(entry))
                pbar.update(len(batch))

        if len(out) != count:
            logger.warning("depositorsCount=%d but %d depositor records were returned", count, len(out))

        if vault is not None:
            for depositor in out:
                for issue in validate_depositor(depositor, vault):
                    logger.warning("Validation warning: %s", issue)

        return out

    def compute_vault_equity(self, vault: Vault) -> int:
        """Vault equity in settlement-asset base units."""
        what = f"equityInDepositAsset({vault.address})"
        raw = call_view(self._vault.functions.equityInDepositAsset, what=what, block_identifier=self.block_identifier)
        return _non_negative(raw, what)

    def subscribe_vault_user(self) -> VaultUserAccount:
        """One-time setup of the trading-account handle."""
        user = VaultUserAccount(self.contracts.user_account, self._risk_engine)
        user.fetch_accounts(self.block_identifier)
        logger.debug("Subscribed to trading account %s at block %s", user.address, user.block_identifier)
        return user

    def refresh_vault_user(self, user: VaultUserAccount) -> None:
        """Refresh an existing handle to the currently pinned block."""
        user.fetch_accounts(self.block_identifier)

    def compute_withdraw_capacity(self, user: VaultUserAccount, market_index: int, *, with_margin_buffer: bool) -> int:
        """One of the two risk-engine withdrawal-limit estimates for the trading account."""
        return user.withdrawal_limit(market_index, with_margin_buffer=with_margin_buffer)

    def fetch_settlement_asset_meta(self, market_index: int) -> SettlementAssetMeta:
        """Fetch symbol and decimals of a spot market. Market metadata never changes, so it is cached."""
        key = cache_key("spot_market", self.contracts.risk_engine.lower(), market_index)
        if self.use_cache:
            cached = get_cached(key)
            if cached is not None:
                try:
                    return SettlementAssetMeta(**cached)
                except TypeError:
                    logger.debug("Ignoring stale spot market cache entry for market %d", market_index)

        raw = call_view(
            self._risk_engine.functions.spotMarket,
            market_index,
            what=f"spotMarket({market_index})",
            block_identifier=self.block_identifier,
        )
        meta = parse_spot_market_info(raw, market_index=market_index)

        if self.use_cache:
            set_cached(key, meta.__dict__)
        return meta
