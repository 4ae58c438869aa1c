import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from fastapi import Depends
from postgrest.exceptions import APIError
from supabase import Client

from poop_backend.config.settings import get_supabase_client
from poop_backend.errors import StoreError
from poop_backend.models.gift import Gift, GiftState, User

logger = logging.getLogger(__name__)

GIFTS_TABLE = "poops"
USERS_TABLE = "users"


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _execute(query, action: str) -> List[Dict[str, Any]]:
    try:
        result = query.execute()
    except APIError as e:
        logger.error(f"[DB:ERROR] {action} failed: {e.message}")
        raise StoreError(f"Failed to {action}: {e.message}") from e
    return result.data or []


class GiftStore:
    """Access to the ``poops`` table. Every state change is a conditional update."""

    def __init__(self, client: Client):
        self.client = client

    def get(self, gift_id: str) -> Optional[Gift]:
        rows = _execute(
            self.client.table(GIFTS_TABLE).select("*").eq("id", gift_id).limit(1),
            "fetch POOP",
        )
        return Gift.from_row(rows[0]) if rows else None

    def create(self, sender_user_id: str, recipient_email: str, amount: Decimal, chain_id: int) -> Gift:
        now = utcnow_iso()
        rows = _execute(
            self.client.table(GIFTS_TABLE).insert({
                "id": str(uuid.uuid4()),
                "sender_user_id": sender_user_id,
                "recipient_email": recipient_email,
                # numeric(20, 6): sent as text so no precision is lost
                "amount": str(amount),
                "chain_id": chain_id,
                "state": GiftState.CREATED.value,
                "created_at": now,
                "updated_at": now,
            }),
            "create POOP",
        )
        return Gift.from_row(rows[0])

    def transition(
        self,
        gift_id: str,
        expected: Iterable[GiftState],
        target: GiftState,
        **fields: Any,
    ) -> Optional[Gift]:
        """
        Move a gift to ``target`` only if its state is still one of ``expected``.

        Returns the updated gift, or None when no row matched (the gift is
        missing or another writer changed its state first).
        """
        values = dict(fields)
        values["state"] = target.value
        values["updated_at"] = utcnow_iso()
        rows = _execute(
            self.client.table(GIFTS_TABLE)
            .update(values)
            .eq("id", gift_id)
            .in_("state", [state.value for state in expected]),
            "update POOP state",
        )
        return Gift.from_row(rows[0]) if rows else None

    def list_by_sender(self, sender_user_id: str, states: Iterable[GiftState]) -> List[Gift]:
        rows = _execute(
            self.client.table(GIFTS_TABLE)
            .select("*")
            .eq("sender_user_id", sender_user_id)
            .in_("state", [state.value for state in states])
            .order("created_at", desc=True),
            "fetch POOPs",
        )
        return [Gift.from_row(row) for row in rows]

    def list_by_recipient_email(self, recipient_email: str, states: Iterable[GiftState]) -> List[Gift]:
        rows = _execute(
            self.client.table(GIFTS_TABLE)
            .select("*")
            .eq("recipient_email", recipient_email)
            .in_("state", [state.value for state in states])
            .order("created_at", desc=True),
            "fetch recipient POOPs",
        )
        return [Gift.from_row(row) for row in rows]

    def list_by_recipient_user(self, recipient_user_id: str, states: Iterable[GiftState]) -> List[Gift]:
        rows = _execute(
            self.client.table(GIFTS_TABLE)
            .select("*")
            .eq("recipient_user_id", recipient_user_id)
            .in_("state", [state.value for state in states]),
            "fetch POOPs for recipient user",
        )
        return [Gift.from_row(row) for row in rows]


class UserStore:
    """Access to the ``users`` table."""

    def __init__(self, client: Client):
        self.client = client

    def _get_by(self, column: str, value: Any) -> Optional[User]:
        rows = _execute(
            self.client.table(USERS_TABLE).select("*").eq(column, value).limit(1),
            "fetch user",
        )
        return User.from_row(rows[0]) if rows else None

    def get(self, user_id: str) -> Optional[User]:
        return self._get_by("id", user_id)

    def get_by_address(self, address: str) -> Optional[User]:
        return self._get_by("address", address)

    def get_by_username(self, username: str) -> Optional[User]:
        return self._get_by("username", username.lower())

    def get_by_email(self, email: str) -> Optional[User]:
        return self._get_by("email", email)

    def get_by_uniqueness_id(self, uniqueness_id: str) -> Optional[User]:
        return self._get_by("self_uniqueness_id", uniqueness_id)

    def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        rows = _execute(
            self.client.table(USERS_TABLE).select("*").in_("id", ids),
            "fetch users",
        )
        return {row["id"]: User.from_row(row) for row in rows}

    def create(self, address: str, username: str, email: Optional[str] = None) -> User:
        now = utcnow_iso()
        rows = _execute(
            self.client.table(USERS_TABLE).insert({
                "id": str(uuid.uuid4()),
                "address": address,
                "username": username.lower(),
                "email": email,
                "verified": False,
                "created_at": now,
                "updated_at": now,
            }),
            "create user",
        )
        return User.from_row(rows[0])

    def mark_verified(self, user_id: str, uniqueness_id: Optional[str] = None) -> Optional[User]:
        """Set ``verified`` (and the uniqueness id when given). Neither is ever cleared."""
        values: Dict[str, Any] = {"verified": True, "updated_at": utcnow_iso()}
        if uniqueness_id:
            values["self_uniqueness_id"] = uniqueness_id
        rows = _execute(
            self.client.table(USERS_TABLE).update(values).eq("id", user_id),
            "update user verified status",
        )
        return User.from_row(rows[0]) if rows else None


def get_gift_store(client: Client = Depends(get_supabase_client)) -> GiftStore:
    return GiftStore(client)


def get_user_store(client: Client = Depends(get_supabase_client)) -> UserStore:
    return UserStore(client)
