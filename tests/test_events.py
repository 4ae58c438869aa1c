import pytest
from eth_abi import encode
from web3 import Web3

from poop_backend.blockchain.events import (
    CANCELLED_EVENT,
    DEPOSIT_EVENT,
    decode_vault_log,
    event_topic,
)
from poop_backend.errors import DecodeError

from conftest import SENDER_ADDRESS, build_log


def test_event_topics_are_keccak_of_signature():
    assert event_topic(DEPOSIT_EVENT) == Web3.to_hex(Web3.keccak(text="Deposit(address,uint256,string)"))
    assert event_topic(CANCELLED_EVENT) == Web3.to_hex(Web3.keccak(text="Cancelled(address,uint256,string)"))
    assert event_topic(DEPOSIT_EVENT) != event_topic(CANCELLED_EVENT)


class TestDecodeVaultLog:
    def test_decodes_deposit(self):
        log = build_log(DEPOSIT_EVENT, "gift-123", 25_000_000)

        decoded = decode_vault_log(log["topics"], log["data"], DEPOSIT_EVENT)

        assert decoded.event == DEPOSIT_EVENT
        assert decoded.sender == Web3.to_checksum_address(SENDER_ADDRESS)
        assert decoded.amount_raw == 25_000_000
        assert decoded.gift_id == "gift-123"

    def test_decodes_cancelled(self):
        log = build_log(CANCELLED_EVENT, "gift-456", 1)

        decoded = decode_vault_log(log["topics"], log["data"], CANCELLED_EVENT)

        assert decoded.gift_id == "gift-456"
        assert decoded.amount_raw == 1

    def test_sender_is_checksummed(self):
        sender = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"
        log = build_log(DEPOSIT_EVENT, "gift-1", 5, sender=sender)

        decoded = decode_vault_log(log["topics"], log["data"], DEPOSIT_EVENT)

        assert decoded.sender == Web3.to_checksum_address(sender)

    def test_wrong_event_signature(self):
        log = build_log(CANCELLED_EVENT, "gift-1", 5)
        with pytest.raises(DecodeError, match="not a Deposit event"):
            decode_vault_log(log["topics"], log["data"], DEPOSIT_EVENT)

    @pytest.mark.parametrize("topics", [None, [], ["0x00"], ["0x00", "0x00", "0x00"]])
    def test_wrong_topic_count(self, topics):
        log = build_log(DEPOSIT_EVENT, "gift-1", 5)
        with pytest.raises(DecodeError):
            decode_vault_log(topics, log["data"], DEPOSIT_EVENT)

    def test_sender_topic_not_an_address(self):
        log = build_log(DEPOSIT_EVENT, "gift-1", 5)
        topics = [log["topics"][0], "0x" + "ff" * 32]
        with pytest.raises(DecodeError, match="padded address"):
            decode_vault_log(topics, log["data"], DEPOSIT_EVENT)

    def test_truncated_data(self):
        log = build_log(DEPOSIT_EVENT, "gift-1", 5)
        with pytest.raises(DecodeError):
            decode_vault_log(log["topics"], log["data"][:66], DEPOSIT_EVENT)

    def test_non_hex_data(self):
        log = build_log(DEPOSIT_EVENT, "gift-1", 5)
        with pytest.raises(DecodeError, match="not valid hex"):
            decode_vault_log(log["topics"], "0xzz", DEPOSIT_EVENT)

    def test_empty_gift_id(self):
        log = build_log(DEPOSIT_EVENT, "gift-1", 5)
        data = Web3.to_hex(encode(["uint256", "string"], [5, ""]))
        with pytest.raises(DecodeError, match="empty gift id"):
            decode_vault_log(log["topics"], data, DEPOSIT_EVENT)

    def test_unknown_event_name(self):
        log = build_log(DEPOSIT_EVENT, "gift-1", 5)
        with pytest.raises(DecodeError, match="Unknown vault event"):
            decode_vault_log(log["topics"], log["data"], "Claimed")
