import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception
from web3.types import TxReceipt

from poop_backend.blockchain.networks import get_rpc_url, get_vault_address
from poop_backend.config import settings
from poop_backend.errors import ChainCallError, ConfigurationError

logger = logging.getLogger(__name__)

POOP_VAULT_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "string", "name": "poopId", "type": "string"},
        ],
        "name": "claimFor",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

DEFAULT_GAS_LIMIT = 200000
RECEIPT_POLL_INTERVAL = 2


@dataclass(frozen=True)
class PayoutReceipt:
    tx_hash: str
    block_number: Optional[int]


async def wait_for_transaction_receipt(w3: Web3, tx_hash: str, timeout: int = 300) -> TxReceipt:
    """
    Poll for a transaction receipt without blocking the event loop.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        try:
            receipt = w3.eth.get_transaction_receipt(tx_hash)
            if receipt is not None:
                return receipt
        except TransactionNotFound:
            pass
        await asyncio.sleep(RECEIPT_POLL_INTERVAL)
    raise TimeoutError(f"Transaction {tx_hash} not mined within {timeout} seconds")


def build_transaction_with_standard_gas(w3: Web3, contract_function, from_address: str) -> dict:
    """
    Build a transaction at the network gas price with a 10% buffer on the estimate.
    """
    tx = contract_function.build_transaction({
        "from": from_address,
        "chainId": w3.eth.chain_id,
        "nonce": w3.eth.get_transaction_count(from_address, "pending"),
        "gasPrice": w3.eth.gas_price,
    })
    try:
        tx["gas"] = int(w3.eth.estimate_gas(tx) * 1.1)
    except (ContractLogicError, ValueError) as e:
        logger.warning(f"[VAULT] Gas estimation failed: {e}, using default {DEFAULT_GAS_LIMIT}")
        tx["gas"] = DEFAULT_GAS_LIMIT
    return tx


class VaultPayoutClient:
    """Sends PoopVault.claimFor transactions with the backend owner key."""

    def __init__(self, private_key: Optional[str], receipt_timeout: int = 300):
        self.private_key = private_key
        self.receipt_timeout = receipt_timeout

    def _signer(self) -> LocalAccount:
        if not self.private_key:
            raise ConfigurationError("POOP_VAULT_OWNER_PRIVATE_KEY not configured")
        try:
            return Account.from_key(self.private_key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid POOP_VAULT_OWNER_PRIVATE_KEY: {e}") from e

    def _web3(self, chain_id: int) -> Web3:
        try:
            rpc_url = get_rpc_url(chain_id)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        w3 = Web3(Web3.HTTPProvider(rpc_url))
        if not w3.is_connected():
            raise ChainCallError(f"Failed to connect to node for chain {chain_id}")
        return w3

    async def claim_for(self, chain_id: int, recipient: str, amount_raw: int, gift_id: str) -> PayoutReceipt:
        """
        Call claimFor(recipient, amount_raw, gift_id) and wait for confirmation.

        Raises ChainCallError on any RPC, signing, revert or timeout failure.
        """
        vault_address = get_vault_address(chain_id)
        if not vault_address:
            raise ConfigurationError(f"PoopVault not deployed on chain {chain_id}")
        signer = self._signer()
        w3 = self._web3(chain_id)

        try:
            contract = w3.eth.contract(address=Web3.to_checksum_address(vault_address), abi=POOP_VAULT_ABI)
            tx = build_transaction_with_standard_gas(
                w3,
                contract.functions.claimFor(Web3.to_checksum_address(recipient), amount_raw, gift_id),
                signer.address,
            )
            signed_tx = signer.sign_transaction(tx)
            tx_hash = Web3.to_hex(w3.eth.send_raw_transaction(signed_tx.raw_transaction))
            logger.info(f"[CLAIM] Transaction sent: {tx_hash}")

            receipt = await wait_for_transaction_receipt(w3, tx_hash, timeout=self.receipt_timeout)
        except (Web3Exception, ValueError, TypeError, TimeoutError, OSError) as e:
            raise ChainCallError(f"Failed to claim on contract: {e}") from e

        if receipt.get("status", 0) != 1:
            raise ChainCallError(f"claimFor transaction reverted: {tx_hash}")

        logger.info(f"[CLAIM] Transaction confirmed: {tx_hash} block={receipt.get('blockNumber')}")
        return PayoutReceipt(tx_hash=tx_hash, block_number=receipt.get("blockNumber"))


def get_payout_client() -> VaultPayoutClient:
    return VaultPayoutClient(settings.POOP_VAULT_OWNER_PRIVATE_KEY, receipt_timeout=settings.CLAIM_TX_TIMEOUT_SECONDS)
