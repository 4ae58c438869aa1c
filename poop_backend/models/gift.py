from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from poop_backend.blockchain.units import parse_units, to_decimal

AMOUNT_DECIMALS = 6


class GiftState(str, Enum):
    CREATED = "CREATED"
    FUNDED = "FUNDED"
    VERIFIED = "VERIFIED"
    CLAIMED = "CLAIMED"
    CANCELLED = "CANCELLED"


# Legal transitions; CLAIMED and CANCELLED are terminal
TRANSITIONS = {
    GiftState.CREATED: {GiftState.FUNDED, GiftState.CANCELLED},
    GiftState.FUNDED: {GiftState.VERIFIED, GiftState.CANCELLED},
    GiftState.VERIFIED: {GiftState.CLAIMED, GiftState.CANCELLED},
    GiftState.CLAIMED: set(),
    GiftState.CANCELLED: set(),
}


def can_transition(current: GiftState, target: GiftState) -> bool:
    return target in TRANSITIONS[current]


def previous_states(target: GiftState) -> List[GiftState]:
    """States a gift may be in for a write that moves it to ``target``."""
    return [state for state in GiftState if target in TRANSITIONS[state]]


def normalize_amount(value: Any) -> Decimal:
    """Store representation of an amount: Decimal with 6 fractional digits."""
    return to_decimal(parse_units(value, AMOUNT_DECIMALS), AMOUNT_DECIMALS)


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass
class Gift:
    id: str
    sender_user_id: str
    recipient_email: str
    amount: Decimal
    chain_id: int
    state: GiftState
    recipient_user_id: Optional[str] = None
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Gift":
        return cls(
            id=row["id"],
            sender_user_id=row["sender_user_id"],
            recipient_email=row["recipient_email"],
            amount=normalize_amount(row["amount"]),
            chain_id=int(row["chain_id"]),
            state=GiftState(row["state"]),
            recipient_user_id=row.get("recipient_user_id"),
            tx_hash=row.get("tx_hash"),
            block_number=row.get("block_number"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sender_user_id": self.sender_user_id,
            "recipient_email": self.recipient_email,
            "recipient_user_id": self.recipient_user_id,
            "amount": str(self.amount),
            "chain_id": self.chain_id,
            "state": self.state.value,
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class User:
    id: str
    address: str
    username: Optional[str] = None
    email: Optional[str] = None
    verified: bool = False
    self_uniqueness_id: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "User":
        return cls(
            id=row["id"],
            address=row["address"],
            username=row.get("username"),
            email=row.get("email"),
            verified=bool(row.get("verified") or False),
            self_uniqueness_id=row.get("self_uniqueness_id"),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "address": self.address,
            "username": self.username,
            "hasUsername": bool(self.username),
            "email": self.email,
            "verified": self.verified,
            "self_uniqueness_id": self.self_uniqueness_id,
            "created_at": self.created_at,
        }
