from decimal import Decimal
from typing import Any, Dict, List, Optional

from poop_backend.config.settings import DEFAULT_CHAIN_ID
from poop_backend.database import GiftStore, UserStore
from poop_backend.errors import NotFoundError, ValidationError
from poop_backend.models.gift import GiftState, normalize_amount
from poop_backend.services.users import validate_email

SENT_STATES = [GiftState.FUNDED, GiftState.VERIFIED, GiftState.CLAIMED, GiftState.CANCELLED]
PENDING_STATES = [GiftState.FUNDED]


def create_gift(
    gifts: GiftStore,
    users: UserStore,
    sender_address: str,
    recipient_email: str,
    amount: Any,
    chain_id: int = DEFAULT_CHAIN_ID,
) -> Dict[str, Any]:
    """
    Create a POOP in CREATED state. The returned id is what the sender passes
    to the vault's deposit call.
    """
    if not sender_address:
        raise ValidationError("Sender address is required")
    email = validate_email(recipient_email, "Recipient email")

    try:
        value = normalize_amount(amount)
    except ValueError as e:
        raise ValidationError(f"Invalid amount: {e}") from e
    if value <= Decimal(0):
        raise ValidationError("Amount must be greater than 0")

    sender = users.get_by_address(sender_address)
    if sender is None:
        raise NotFoundError("Sender user not found. Please complete your profile first.")

    gift = gifts.create(sender.id, email, value, chain_id)
    return gift.to_dict()


def list_sent_gifts(
    gifts: GiftStore,
    users: UserStore,
    sender_address: Optional[str] = None,
    username: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """POOPs sent by a user, most recent first. Unfunded drafts are left out."""
    if not sender_address and not username:
        raise ValidationError("Either sender address or username is required")

    user = users.get_by_address(sender_address) if sender_address else users.get_by_username(username)
    if user is None:
        return []
    return [gift.to_dict() for gift in gifts.list_by_sender(user.id, SENT_STATES)]


def list_recipient_gifts(gifts: GiftStore, users: UserStore, recipient_email: str) -> List[Dict[str, Any]]:
    """FUNDED POOPs waiting for an email, with the sender's username."""
    email = validate_email(recipient_email, "Recipient email")
    pending = gifts.list_by_recipient_email(email, PENDING_STATES)
    senders = users.get_many(gift.sender_user_id for gift in pending)

    results = []
    for gift in pending:
        data = gift.to_dict()
        sender = senders.get(gift.sender_user_id)
        data["sender_username"] = sender.username if sender else None
        results.append(data)
    return results
