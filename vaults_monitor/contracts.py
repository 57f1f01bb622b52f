"""Contract interaction functions."""

from typing import TYPE_CHECKING

from vaults_monitor.constants import VAULT_MIN_ABI
from vaults_monitor.errors import FetchError
from vaults_monitor.formatters import is_zero_address
from vaults_monitor.models import VaultContracts

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover


def resolve_vault_contracts(w3: "Web3", vault_address: str) -> VaultContracts:
    """
    Resolve the vault's trading account and risk engine addresses from the vault contract.

    The vault contract is the single entry point; nothing else needs to be configured.
    """
    vault_addr = w3.to_checksum_address(vault_address)
    vault = w3.eth.contract(address=vault_addr, abi=VAULT_MIN_ABI)

    try:
        user_account = vault.functions.userAccount().call()
        risk_engine = vault.functions.riskEngine().call()
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise FetchError(f"failed to resolve contracts from vault {vault_addr}: {ex}") from ex

    if is_zero_address(user_account):
        raise FetchError(f"vault {vault_addr} has no trading account")
    if is_zero_address(risk_engine):
        raise FetchError(f"vault {vault_addr} has no risk engine")

    return VaultContracts(
        vault=vault_addr,
        user_account=w3.to_checksum_address(user_account),
        risk_engine=w3.to_checksum_address(risk_engine),
    )
