"""
Apply decoded PoopVault events to gift records.

Both processors are idempotent: Alchemy redelivers events, so an event whose
target state is already reached returns a successful no-op result. Writes go
through ``GiftStore.transition`` which only succeeds while the record is
still in an expected prior state, closing the lost-update race between
concurrent deliveries (or a delivery racing a claim).
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from poop_backend.database import GiftStore, UserStore
from poop_backend.errors import InvalidStateError, MismatchError, NotFoundError
from poop_backend.models.gift import Gift, GiftState, can_transition, previous_states

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultEventParams:
    gift_id: str
    sender: str
    amount: Decimal
    token_symbol: str
    tx_hash: str
    block_number: int
    chain_id: int


@dataclass(frozen=True)
class ProcessResult:
    success: bool
    message: str
    gift_id: str
    state: GiftState
    applied: bool
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "poopId": self.gift_id,
            "state": self.state.value,
            "applied": self.applied,
            "txHash": self.tx_hash,
            "blockNumber": self.block_number,
        }


def _load_gift(gifts: GiftStore, gift_id: str, tag: str) -> Gift:
    gift = gifts.get(gift_id)
    if gift is None:
        logger.error(f"[{tag}:ERROR] POOP not found poop_id={gift_id}")
        raise NotFoundError(f"POOP not found: {gift_id}")
    return gift


class DepositProcessor:
    """CREATED -> FUNDED on a Deposit event."""

    def __init__(self, gifts: GiftStore, users: UserStore):
        self.gifts = gifts
        self.users = users

    def _check_event_matches(self, gift: Gift, params: VaultEventParams) -> None:
        if gift.chain_id != params.chain_id:
            raise MismatchError(
                f"Deposit chain {params.chain_id} does not match POOP chain {gift.chain_id}"
            )
        if gift.amount != params.amount:
            raise MismatchError(
                f"Deposit amount {params.amount} {params.token_symbol} does not match POOP amount {gift.amount}"
            )
        sender = self.users.get(gift.sender_user_id)
        if sender is not None and sender.address.lower() != params.sender.lower():
            raise MismatchError(
                f"Deposit sender {params.sender} does not match POOP sender {sender.address}"
            )

    def process(self, params: VaultEventParams) -> ProcessResult:
        logger.info(
            f"[DEPOSIT:PROCESSING] poop_id={params.gift_id} sender={params.sender} "
            f"amount={params.amount} {params.token_symbol} tx={params.tx_hash} "
            f"block={params.block_number} chain={params.chain_id}"
        )
        gift = _load_gift(self.gifts, params.gift_id, "DEPOSIT")

        if gift.state == GiftState.FUNDED:
            logger.warning(f"[DEPOSIT:WARNING] POOP already funded poop_id={gift.id}")
            return ProcessResult(True, "POOP already funded", gift.id, gift.state, applied=False)

        if not can_transition(gift.state, GiftState.FUNDED):
            logger.error(
                f"[DEPOSIT:ERROR] Invalid POOP state for funding poop_id={gift.id} "
                f"current={gift.state.value} expected={GiftState.CREATED.value}"
            )
            raise InvalidStateError(f"Invalid POOP state: expected CREATED, got {gift.state.value}")

        self._check_event_matches(gift, params)

        updated = self.gifts.transition(
            gift.id,
            expected=previous_states(GiftState.FUNDED),
            target=GiftState.FUNDED,
            tx_hash=params.tx_hash,
            block_number=params.block_number,
        )
        if updated is None:
            # Lost a race with another writer: re-read to see who won
            current = _load_gift(self.gifts, gift.id, "DEPOSIT")
            if current.state == GiftState.FUNDED:
                return ProcessResult(True, "POOP already funded", current.id, current.state, applied=False)
            raise InvalidStateError(f"Invalid POOP state: expected CREATED, got {current.state.value}")

        logger.info(
            f"[DEPOSIT:SUCCESS] POOP funded poop_id={updated.id} "
            f"previous={gift.state.value} new={updated.state.value} tx={params.tx_hash}"
        )
        return ProcessResult(
            True,
            "POOP funded successfully",
            updated.id,
            updated.state,
            applied=True,
            tx_hash=params.tx_hash,
            block_number=params.block_number,
        )


class CancellationProcessor:
    """CREATED | FUNDED | VERIFIED -> CANCELLED on a Cancelled event."""

    CANCELLABLE = previous_states(GiftState.CANCELLED)

    def __init__(self, gifts: GiftStore):
        self.gifts = gifts

    def process(self, params: VaultEventParams) -> ProcessResult:
        logger.info(
            f"[CANCELLATION:PROCESSING] poop_id={params.gift_id} sender={params.sender} "
            f"amount={params.amount} {params.token_symbol} tx={params.tx_hash} "
            f"block={params.block_number} chain={params.chain_id}"
        )
        gift = _load_gift(self.gifts, params.gift_id, "CANCELLATION")

        if gift.state == GiftState.CANCELLED:
            logger.warning(f"[CANCELLATION:WARNING] POOP already cancelled poop_id={gift.id}")
            return ProcessResult(True, "POOP already cancelled", gift.id, gift.state, applied=False)

        if gift.state == GiftState.CLAIMED:
            # The vault should make this impossible on-chain; never mask it
            logger.error(f"[CANCELLATION:ERROR] Cannot cancel already claimed POOP poop_id={gift.id}")
            raise InvalidStateError("Cannot cancel POOP: already claimed")

        updated = self.gifts.transition(
            gift.id,
            expected=self.CANCELLABLE,
            target=GiftState.CANCELLED,
            tx_hash=params.tx_hash,
            block_number=params.block_number,
        )
        if updated is None:
            current = _load_gift(self.gifts, gift.id, "CANCELLATION")
            if current.state == GiftState.CANCELLED:
                return ProcessResult(True, "POOP already cancelled", current.id, current.state, applied=False)
            raise InvalidStateError(f"Cannot cancel POOP in state {current.state.value}")

        logger.info(
            f"[CANCELLATION:SUCCESS] POOP cancelled poop_id={updated.id} "
            f"previous={gift.state.value} new={updated.state.value} tx={params.tx_hash}"
        )
        return ProcessResult(
            True,
            "POOP cancelled successfully",
            updated.id,
            updated.state,
            applied=True,
            tx_hash=params.tx_hash,
            block_number=params.block_number,
        )
