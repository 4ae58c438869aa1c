"""
Claim orchestration: VERIFIED -> CLAIMED through an on-chain payout.

The payout call waits for transaction confirmation, which can take from a
few seconds to minutes; the claim request is a long-poll and server
timeouts must be sized for ``CLAIM_TX_TIMEOUT_SECONDS``.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from web3 import Web3

from poop_backend.blockchain.networks import get_token_info
from poop_backend.blockchain.units import parse_units
from poop_backend.blockchain.vault import VaultPayoutClient
from poop_backend.database import GiftStore, UserStore
from poop_backend.errors import (
    AuthenticationError,
    ConfigurationError,
    InvalidStateError,
    MismatchError,
    NotFoundError,
    ValidationError,
)
from poop_backend.models.gift import GiftState, can_transition, previous_states
from poop_backend.services.identity import PrivyIdentityProvider
from poop_backend.services.recipients import ensure_single_onboarding

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimResult:
    gift_id: str
    wallet_address: str
    amount: Decimal
    tx_hash: str
    block_number: Optional[int]
    state_committed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "poopId": self.gift_id,
            "walletAddress": self.wallet_address,
            "amount": str(self.amount),
            "txHash": self.tx_hash,
            "blockNumber": self.block_number,
            "state": GiftState.CLAIMED.value,
            "stateCommitted": self.state_committed,
        }


class ClaimOrchestrator:
    def __init__(
        self,
        gifts: GiftStore,
        users: UserStore,
        identity: PrivyIdentityProvider,
        payouts: VaultPayoutClient,
    ):
        self.gifts = gifts
        self.users = users
        self.identity = identity
        self.payouts = payouts

    async def claim(self, access_token: str, gift_id: str, wallet_address: str) -> ClaimResult:
        if not access_token:
            raise AuthenticationError("Access token is required")
        if not gift_id:
            raise ValidationError("POOP ID is required")
        if not wallet_address or not Web3.is_address(wallet_address):
            raise ValidationError("A valid wallet address is required")

        identity = self.identity.resolve(access_token)
        if not identity.valid or not identity.email:
            raise AuthenticationError("Email not found in Privy user account")

        gift = self.gifts.get(gift_id)
        if gift is None:
            raise NotFoundError(f"POOP not found: {gift_id}")
        if not can_transition(gift.state, GiftState.CLAIMED):
            raise InvalidStateError(f"POOP is not in VERIFIED state. Current state: {gift.state.value}")

        if identity.email.lower() != gift.recipient_email.lower():
            raise MismatchError("User email does not match POOP recipient email")

        if gift.recipient_user_id:
            recipient = self.users.get(gift.recipient_user_id)
            if recipient is None:
                raise NotFoundError(f"Recipient user not found: {gift.recipient_user_id}")
            if recipient.address.lower() != wallet_address.lower():
                raise MismatchError("Wallet address does not match recipient user address")
            ensure_single_onboarding(self.gifts, recipient, gift.id)

        token = get_token_info(gift.chain_id)
        if token is None:
            raise ConfigurationError(f"Token info not configured for chain {gift.chain_id}")
        amount_raw = parse_units(gift.amount, token.decimals)

        logger.info(
            f"[CLAIM] Calling claimFor poop_id={gift.id} chain={gift.chain_id} "
            f"to={wallet_address} amount={gift.amount} amount_raw={amount_raw}"
        )
        receipt = await self.payouts.claim_for(gift.chain_id, wallet_address, amount_raw, gift.id)

        # The payout is irreversible from here on: never raise, only log
        committed = False
        try:
            updated = self.gifts.transition(
                gift.id,
                expected=previous_states(GiftState.CLAIMED),
                target=GiftState.CLAIMED,
                tx_hash=receipt.tx_hash,
                block_number=receipt.block_number,
            )
            committed = updated is not None
            if not committed:
                logger.error(
                    f"[CLAIM:RECONCILE] Payout sent but POOP left VERIFIED state before commit "
                    f"poop_id={gift.id} tx={receipt.tx_hash}"
                )
        except Exception as e:
            logger.error(
                f"[CLAIM:RECONCILE] Payout sent but updating POOP state failed "
                f"poop_id={gift.id} tx={receipt.tx_hash} error={e}"
            )

        if committed:
            logger.info(f"[CLAIM:SUCCESS] POOP claimed poop_id={gift.id} tx={receipt.tx_hash}")
        return ClaimResult(
            gift_id=gift.id,
            wallet_address=wallet_address,
            amount=gift.amount,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
            state_committed=committed,
        )
