import logging
from typing import Any, Dict

from poop_backend.database import GiftStore, UserStore
from poop_backend.errors import InvalidStateError, MismatchError, NotFoundError, ValidationError
from poop_backend.models.gift import GiftState, User, can_transition, previous_states

logger = logging.getLogger(__name__)

# One human, one completed onboarding
ONBOARDED_STATES = [GiftState.VERIFIED, GiftState.CLAIMED]


def ensure_single_onboarding(gifts: GiftStore, user: User, gift_id: str) -> None:
    """Refuse a second VERIFIED/CLAIMED gift for the same identity."""
    others = [gift for gift in gifts.list_by_recipient_user(user.id, ONBOARDED_STATES) if gift.id != gift_id]
    if others:
        raise MismatchError(
            f"User {user.id} has already completed onboarding with POOP {others[0].id}"
        )


def verify_user_and_associate_gift(gifts: GiftStore, users: UserStore, user_id: str, gift_id: str) -> Dict[str, Any]:
    """
    FUNDED -> VERIFIED: mark the identity verified and bind it as the gift's recipient.

    Checks run before any write, so a rejected request leaves both records
    untouched. The identity write is idempotent and the gift write is
    conditional on FUNDED, so a failed second write can be retried.
    """
    if not user_id:
        raise ValidationError("User ID is required")
    if not gift_id:
        raise ValidationError("POOP ID is required")

    user = users.get(user_id)
    if user is None:
        raise NotFoundError(f"User not found: {user_id}")

    gift = gifts.get(gift_id)
    if gift is None:
        raise NotFoundError(f"POOP not found: {gift_id}")

    if not can_transition(gift.state, GiftState.VERIFIED):
        raise InvalidStateError(f"POOP is not in FUNDED state. Current state: {gift.state.value}")

    if user.email and user.email.strip().lower() != gift.recipient_email.lower():
        raise MismatchError("User email does not match POOP recipient email")

    ensure_single_onboarding(gifts, user, gift.id)

    if users.mark_verified(user.id) is None:
        raise NotFoundError(f"User not found: {user_id}")

    updated = gifts.transition(
        gift.id,
        expected=previous_states(GiftState.VERIFIED),
        target=GiftState.VERIFIED,
        recipient_user_id=user.id,
    )
    if updated is None:
        current = gifts.get(gift.id)
        state = current.state.value if current else "MISSING"
        logger.error(
            f"[VERIFY:ERROR] User verified but POOP association failed poop_id={gift.id} "
            f"user_id={user.id} state={state}"
        )
        raise InvalidStateError(f"Failed to associate user with POOP: state changed to {state}")

    logger.info(f"[VERIFY:SUCCESS] POOP verified poop_id={updated.id} recipient_user_id={user.id}")
    return {
        "success": True,
        "userId": user.id,
        "poopId": updated.id,
        "verified": True,
        "state": updated.state.value,
    }
