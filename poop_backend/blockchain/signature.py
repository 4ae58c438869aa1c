import hashlib
import hmac
from typing import Optional

ALCHEMY_SIGNATURE_HEADER = "x-alchemy-signature"


def compute_alchemy_signature(raw_body: bytes, signing_key: str) -> str:
    return hmac.new(signing_key.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_alchemy_signature(raw_body: bytes, signature: Optional[str], signing_key: str) -> bool:
    """
    Check the HMAC-SHA256 hex digest Alchemy sends over the exact request bytes.
    """
    if not signature:
        return False
    expected = compute_alchemy_signature(raw_body, signing_key)
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().lower().encode("utf-8"))
