import hashlib
import hmac

from poop_backend.blockchain.signature import compute_alchemy_signature, verify_alchemy_signature

KEY = "whsec_test"
BODY = b'{"event":{"network":"CELO_MAINNET"}}'


def expected_signature(body: bytes, key: str = KEY) -> str:
    return hmac.new(key.encode("utf-8"), body, hashlib.sha256).hexdigest()


class TestAlchemySignature:
    def test_compute_matches_hmac_sha256(self):
        assert compute_alchemy_signature(BODY, KEY) == expected_signature(BODY)

    def test_valid_signature_accepted(self):
        assert verify_alchemy_signature(BODY, expected_signature(BODY), KEY) is True

    def test_uppercase_hex_accepted(self):
        assert verify_alchemy_signature(BODY, expected_signature(BODY).upper(), KEY) is True

    def test_missing_signature_rejected(self):
        assert verify_alchemy_signature(BODY, None, KEY) is False
        assert verify_alchemy_signature(BODY, "", KEY) is False

    def test_wrong_key_rejected(self):
        assert verify_alchemy_signature(BODY, expected_signature(BODY, "other"), KEY) is False

    def test_tampered_body_rejected(self):
        signature = expected_signature(BODY)
        tampered = BODY.replace(b"MAINNET", b"SEPOLIA")
        assert verify_alchemy_signature(tampered, signature, KEY) is False

    def test_reserialized_body_rejected(self):
        # The digest covers the exact bytes received, not an equivalent JSON document
        signature = expected_signature(BODY)
        assert verify_alchemy_signature(b'{"event": {"network": "CELO_MAINNET"}}', signature, KEY) is False

    def test_non_ascii_signature_rejected(self):
        assert verify_alchemy_signature(BODY, "sïgnature", KEY) is False
