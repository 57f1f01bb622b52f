import pytest

from vaults_monitor.contracts import resolve_vault_contracts
from vaults_monitor.errors import FetchError, MalformedStateError
from vaults_monitor.models import SettlementAssetMeta, VaultContracts
from vaults_monitor.onchain import ChainSnapshotSource, VaultUserAccount

VAULT = "0x" + "11" * 20
USER = "0x" + "22" * 20
RISK_ENGINE = "0x" + "33" * 20
ZERO_ADDRESS = "0x" + "0" * 40


class FakeCall:
    def __init__(self, contract, name, args):
        self.contract = contract
        self.name = name
        self.args = args

    def call(self, block_identifier="latest"):
        self.contract.calls.append((self.name, self.args, block_identifier))
        handler = self.contract.handlers[self.name]
        if isinstance(handler, Exception):
            raise handler
        return handler(*self.args) if callable(handler) else handler


class FakeFunctions:
    def __init__(self, contract):
        self._contract = contract

    def __getattr__(self, name):
        return lambda *args: FakeCall(self._contract, name, args)


class FakeContract:
    def __init__(self, **handlers):
        self.handlers = handlers
        self.calls = []
        self.functions = FakeFunctions(self)

    def called(self, name):
        return [c for c in self.calls if c[0] == name]


class FakeEth:
    def __init__(self, contracts, block_number=100):
        self._contracts = contracts
        self.block_number = block_number

    def contract(self, address, abi):
        assert abi
        return self._contracts[address]


class FakeWeb3:
    def __init__(self, contracts, block_number=100):
        self.eth = FakeEth(contracts, block_number)

    @staticmethod
    def to_checksum_address(address):
        return address


def _depositor_entries(n):
    return [("0x" + f"{i:040x}", "0x" + f"{i + 1000:040x}", i * 10, 1_700_000_000 + i) for i in range(n)]


def make_source(*, depositors=5, page_size=2, use_cache=False, **risk_handlers):
    entries = _depositor_entries(depositors)
    vault = FakeContract(
        vaultInfo=(1000, 500, 600, 0, ZERO_ADDRESS, 0),
        depositorsCount=len(entries),
        batchDepositorsInfo=lambda offset, limit: entries[offset : offset + limit],
        equityInDepositAsset=10_000,
    )
    handlers = {
        "withdrawalLimit": lambda user, market_index, buffered: 400 if buffered else 900,
        "spotMarket": (b"USDC" + b"\x00" * 28, 6, ZERO_ADDRESS),
    }
    handlers.update(risk_handlers)
    risk_engine = FakeContract(**handlers)
    w3 = FakeWeb3({VAULT: vault, RISK_ENGINE: risk_engine})
    source = ChainSnapshotSource(
        w3,
        VaultContracts(vault=VAULT, user_account=USER, risk_engine=RISK_ENGINE),
        page_size=page_size,
        use_cache=use_cache,
    )
    return source, w3, vault, risk_engine


def test_reads_are_pinned_to_one_block():
    source, w3, vault_contract, _ = make_source()
    assert source.pin_block() == 100

    vault = source.fetch_vault()
    assert vault.total_withdraw_requested == 500
    assert source.compute_vault_equity(vault) == 10_000

    w3.eth.block_number = 101
    source.fetch_depositors()
    assert {c[2] for c in vault_contract.calls} == {100}


def test_fetch_depositors_pages_through_all_records_in_order():
    source, _, vault_contract, _ = make_source(depositors=5, page_size=2)
    source.pin_block()

    depositors = source.fetch_depositors()

    assert [d.last_withdraw_request.shares for d in depositors] == [0, 10, 20, 30, 40]
    assert [c[1] for c in vault_contract.called("batchDepositorsInfo")] == [(0, 2), (2, 2), (4, 2)]


def test_fetch_depositors_with_no_records_skips_batches():
    source, _, vault_contract, _ = make_source(depositors=0)
    assert source.fetch_depositors() == []
    assert vault_contract.called("batchDepositorsInfo") == []


def test_vault_user_is_refreshed_not_recreated():
    source, w3, _, risk_engine = make_source()
    source.pin_block()
    user = source.subscribe_vault_user()
    assert user.subscribed
    assert user.address == USER

    assert source.compute_withdraw_capacity(user, 0, with_margin_buffer=True) == 400
    assert source.compute_withdraw_capacity(user, 0, with_margin_buffer=False) == 900

    w3.eth.block_number = 150
    source.pin_block()
    source.refresh_vault_user(user)
    assert user.block_identifier == 150
    assert risk_engine.called("withdrawalLimit")[-1][2] == 100

    source.compute_withdraw_capacity(user, 0, with_margin_buffer=True)
    assert risk_engine.called("withdrawalLimit")[-1] == ("withdrawalLimit", (USER, 0, True), 150)


def test_withdrawal_limit_requires_subscription():
    user = VaultUserAccount(USER, FakeContract(withdrawalLimit=1))
    with pytest.raises(FetchError, match="not subscribed"):
        user.withdrawal_limit(0, with_margin_buffer=True)


def test_negative_withdrawal_limit_is_malformed():
    source, _, _, _ = make_source(withdrawalLimit=-1)
    user = source.subscribe_vault_user()
    with pytest.raises(MalformedStateError):
        source.compute_withdraw_capacity(user, 0, with_margin_buffer=False)


def test_failed_call_raises_fetch_error_with_cause():
    source, _, _, _ = make_source(spotMarket=ConnectionError("boom"))
    with pytest.raises(FetchError, match="spotMarket") as excinfo:
        source.fetch_settlement_asset_meta(0)
    assert isinstance(excinfo.value.__cause__, ConnectionError)


def test_failed_block_number_raises_fetch_error():
    source, w3, _, _ = make_source()

    class BrokenEth(FakeEth):
        @property
        def block_number(self):
            raise TimeoutError("rpc timeout")

        @block_number.setter
        def block_number(self, value):
            pass

    w3.eth = BrokenEth({})
    with pytest.raises(FetchError, match="eth_blockNumber"):
        source.pin_block()


def test_settlement_asset_meta_is_cached(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    source, _, _, risk_engine = make_source(use_cache=True)

    meta = source.fetch_settlement_asset_meta(0)
    assert meta == SettlementAssetMeta(market_index=0, symbol="USDC", decimals=6)

    risk_engine.handlers["spotMarket"] = ConnectionError("should not be called")
    assert source.fetch_settlement_asset_meta(0) == meta
    assert len(risk_engine.called("spotMarket")) == 1


def test_settlement_asset_meta_without_cache(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    source, _, _, risk_engine = make_source(use_cache=False)

    source.fetch_settlement_asset_meta(0)
    source.fetch_settlement_asset_meta(0)
    assert len(risk_engine.called("spotMarket")) == 2


def test_page_size_must_be_positive():
    _, w3, _, _ = make_source()
    with pytest.raises(ValueError):
        ChainSnapshotSource(w3, VaultContracts(vault=VAULT, user_account=USER, risk_engine=RISK_ENGINE), page_size=0)


def test_resolve_vault_contracts():
    vault_contract = FakeContract(userAccount=USER, riskEngine=RISK_ENGINE)
    contracts = resolve_vault_contracts(FakeWeb3({VAULT: vault_contract}), VAULT)
    assert contracts == VaultContracts(vault=VAULT, user_account=USER, risk_engine=RISK_ENGINE)


def test_resolve_vault_contracts_rejects_missing_trading_account():
    vault_contract = FakeContract(userAccount=ZERO_ADDRESS, riskEngine=RISK_ENGINE)
    with pytest.raises(FetchError, match="no trading account"):
        resolve_vault_contracts(FakeWeb3({VAULT: vault_contract}), VAULT)


def test_resolve_vault_contracts_wraps_rpc_errors():
    vault_contract = FakeContract(userAccount=ValueError("execution reverted"), riskEngine=RISK_ENGINE)
    with pytest.raises(FetchError, match="execution reverted"):
        resolve_vault_contracts(FakeWeb3({VAULT: vault_contract}), VAULT)
