"""
Shared fixtures: an in-memory stand-in for the Supabase query builder and
builders for signed Alchemy webhook payloads.
"""
import hashlib
import hmac
import json
import uuid
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest
from eth_abi import encode
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError
from web3 import Web3

from poop_backend.blockchain.events import VAULT_EVENT_DATA_TYPES, event_topic
from poop_backend.blockchain.networks import POOP_VAULT_ADDRESSES, CELO_MAINNET
from poop_backend.config.settings import get_supabase_client
from poop_backend.database import GiftStore, UserStore
from poop_backend.main import app

SIGNING_KEY = "whsec_test_signing_key"
SENDER_ADDRESS = "0x1111111111111111111111111111111111111111"
RECIPIENT_ADDRESS = "0x2222222222222222222222222222222222222222"
VAULT_ADDRESS = POOP_VAULT_ADDRESSES[CELO_MAINNET]


class FakeQuery:
    """Records one chained postgrest call and applies it on ``execute()``."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload: Optional[Dict[str, Any]] = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.order_by = None
        self.max_rows = None

    def select(self, *columns):
        self.op = "select"
        return self

    def insert(self, row):
        self.op = "insert"
        self.payload = row
        return self

    def update(self, values):
        self.op = "update"
        self.payload = values
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def execute(self):
        if self.db.fail_with is not None:
            raise APIError({"message": self.db.fail_with, "code": "500"})

        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "insert":
            row = dict(self.payload)
            rows.append(row)
            return SimpleNamespace(data=[dict(row)])

        if self.op == "update" and self.table in self.db.before_update:
            # Lets a test play the part of a concurrent writer
            self.db.before_update.pop(self.table)(self.db)

        matches = [row for row in rows if all(check(row) for check in self.filters)]
        if self.op == "update":
            for row in matches:
                row.update(self.payload)
            self.db.updates.append((self.table, dict(self.payload)))
            return SimpleNamespace(data=[dict(row) for row in matches])

        if self.order_by:
            column, desc = self.order_by
            matches = sorted(matches, key=lambda row: row.get(column) or "", reverse=desc)
        if self.max_rows is not None:
            matches = matches[:self.max_rows]
        return SimpleNamespace(data=[dict(row) for row in matches])


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {"users": [], "poops": []}
        self.updates: List[Any] = []
        self.before_update: Dict[str, Callable[["FakeSupabase"], None]] = {}
        self.fail_with: Optional[str] = None

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def row(self, table: str, row_id: str) -> Dict[str, Any]:
        return next(row for row in self.tables[table] if row["id"] == row_id)

    def add_user(self, **fields) -> Dict[str, Any]:
        row = {
            "id": str(uuid.uuid4()),
            "address": SENDER_ADDRESS,
            "username": "alice",
            "email": None,
            "verified": False,
            "self_uniqueness_id": None,
            "created_at": "2025-01-01T00:00:00+00:00",
        }
        row.update(fields)
        self.tables["users"].append(row)
        return row

    def add_gift(self, sender_user_id: str, **fields) -> Dict[str, Any]:
        row = {
            "id": str(uuid.uuid4()),
            "sender_user_id": sender_user_id,
            "recipient_email": "bob@example.com",
            "recipient_user_id": None,
            "amount": "25.000000",
            "chain_id": CELO_MAINNET,
            "state": "CREATED",
            "tx_hash": None,
            "block_number": None,
            "created_at": "2025-01-01T00:00:00+00:00",
            "updated_at": "2025-01-01T00:00:00+00:00",
        }
        row.update(fields)
        self.tables["poops"].append(row)
        return row


def build_log(
    event_name: str,
    gift_id: str,
    amount_raw: int,
    sender: str = SENDER_ADDRESS,
    contract: str = VAULT_ADDRESS,
    tx_hash: Optional[str] = None,
    index: int = 0,
) -> Dict[str, Any]:
    """A log entry as Alchemy's GraphQL webhook delivers it."""
    return {
        "index": index,
        "account": {"address": contract},
        "topics": [
            event_topic(event_name),
            "0x" + "00" * 12 + sender[2:].lower(),
        ],
        "data": Web3.to_hex(encode(VAULT_EVENT_DATA_TYPES, [amount_raw, gift_id])),
        "transaction": {"hash": tx_hash or "0x" + uuid.uuid4().hex * 2},
    }


def build_payload(logs: List[Dict[str, Any]], network: str = "CELO_MAINNET", block_number: int = 31337) -> bytes:
    payload = {
        "webhookId": "wh_test",
        "type": "GRAPHQL",
        "event": {
            "network": network,
            "data": {"block": {"number": block_number, "logs": logs}},
        },
    }
    return json.dumps(payload).encode("utf-8")


def sign(body: bytes, key: str = SIGNING_KEY) -> str:
    return hmac.new(key.encode("utf-8"), body, hashlib.sha256).hexdigest()


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def gift_store(fake_db):
    return GiftStore(fake_db)


@pytest.fixture
def user_store(fake_db):
    return UserStore(fake_db)


@pytest.fixture
def sender(fake_db):
    return fake_db.add_user(username="alice", address=SENDER_ADDRESS, email="alice@example.com")


@pytest.fixture
def recipient(fake_db):
    return fake_db.add_user(username="bob", address=RECIPIENT_ADDRESS, email="bob@example.com")


@pytest.fixture
def signing_key(monkeypatch):
    monkeypatch.delenv("ALCHEMY_WEBHOOK_SIGNING_KEY_42220", raising=False)
    monkeypatch.setenv("ALCHEMY_WEBHOOK_SIGNING_KEY", SIGNING_KEY)
    return SIGNING_KEY


@pytest.fixture
def client(fake_db, signing_key):
    app.dependency_overrides[get_supabase_client] = lambda: fake_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
