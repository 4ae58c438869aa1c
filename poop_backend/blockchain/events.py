from dataclasses import dataclass
from typing import List

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from poop_backend.errors import DecodeError

DEPOSIT_EVENT = "Deposit"
CANCELLED_EVENT = "Cancelled"

VAULT_EVENT_SIGNATURES = {
    DEPOSIT_EVENT: "Deposit(address,uint256,string)",
    CANCELLED_EVENT: "Cancelled(address,uint256,string)",
}

# Non-indexed fields: uint256 amount, string giftId
VAULT_EVENT_DATA_TYPES = ["uint256", "string"]


@dataclass(frozen=True)
class DecodedVaultEvent:
    event: str
    sender: str
    amount_raw: int
    gift_id: str


def event_topic(event_name: str) -> str:
    return Web3.to_hex(Web3.keccak(text=VAULT_EVENT_SIGNATURES[event_name]))


def _hex_to_bytes(value, field_name: str) -> bytes:
    if not isinstance(value, str):
        raise DecodeError(f"{field_name} must be a hex string")
    text = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise DecodeError(f"{field_name} is not valid hex") from e


def decode_vault_log(topics: List[str], data: str, event_name: str) -> DecodedVaultEvent:
    """
    Decode a PoopVault log emitted as ``event <Name>(address indexed sender, uint256 amount, string giftId)``.

    Raises DecodeError when the topics or data do not have that shape.
    """
    if event_name not in VAULT_EVENT_SIGNATURES:
        raise DecodeError(f"Unknown vault event: {event_name}")
    if not isinstance(topics, list) or len(topics) != 2:
        raise DecodeError(f"Expected 2 topics for {event_name}, got {len(topics) if isinstance(topics, list) else 'none'}")

    signature_topic = _hex_to_bytes(topics[0], "topics[0]")
    if signature_topic != Web3.keccak(text=VAULT_EVENT_SIGNATURES[event_name]):
        raise DecodeError(f"Log is not a {event_name} event")

    sender_topic = _hex_to_bytes(topics[1], "topics[1]")
    if len(sender_topic) != 32 or any(sender_topic[:12]):
        raise DecodeError("Indexed sender is not a padded address")
    sender = Web3.to_checksum_address(sender_topic[12:])

    try:
        amount_raw, gift_id = decode(VAULT_EVENT_DATA_TYPES, _hex_to_bytes(data, "data"))
    except (DecodingError, ValueError, OverflowError) as e:
        raise DecodeError(f"Failed to decode {event_name} data: {e}") from e

    if not gift_id:
        raise DecodeError(f"{event_name} event carries an empty gift id")

    return DecodedVaultEvent(event=event_name, sender=sender, amount_raw=amount_raw, gift_id=gift_id)
