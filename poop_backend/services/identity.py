"""
Adapters for the external identity collaborators.

Privy (bearer credential -> email) and the Self proof verifier (proof ->
validity + uniqueness nullifier) answer with loosely shaped JSON. All the
shape probing lives here; callers only ever see ``IdentityResult``.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from jose import JWTError, jwt

from poop_backend.errors import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

PRIVY_API_URL = "https://auth.privy.io/api/v1"
PRIVY_ISSUER = "privy.io"
PRIVY_ALGORITHMS = ["ES256"]
REQUEST_TIMEOUT = 15


@dataclass(frozen=True)
class IdentityResult:
    valid: bool
    email: Optional[str] = None
    uniqueness_id: Optional[str] = None
    subject: Optional[str] = None


def _first_str(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def extract_privy_email(user: Dict[str, Any]) -> Optional[str]:
    """Email of a Privy user, wherever this API version put it."""
    accounts = user.get("linked_accounts") or user.get("linkedAccounts") or []
    for account in accounts:
        if not isinstance(account, dict):
            continue
        if account.get("type") == "email" or account.get("emailAddress"):
            email = _first_str(account.get("emailAddress"), account.get("address"), account.get("email"))
            if email:
                return email

    direct = user.get("email")
    if isinstance(direct, dict):
        return _first_str(direct.get("address"), direct.get("emailAddress"))
    return _first_str(direct)


class PrivyIdentityProvider:
    """Resolves a Privy access token to the user's email."""

    def __init__(self, app_id: Optional[str], app_secret: Optional[str], verification_key: Optional[str]):
        self.app_id = app_id
        self.app_secret = app_secret
        self.verification_key = verification_key

    def _verify_token(self, access_token: str) -> str:
        try:
            claims = jwt.decode(
                access_token,
                self.verification_key,
                algorithms=PRIVY_ALGORITHMS,
                audience=self.app_id,
                issuer=PRIVY_ISSUER,
            )
        except JWTError as e:
            raise AuthenticationError(f"Invalid or expired token: {e}") from e

        user_id = claims.get("sub")
        if not user_id:
            raise AuthenticationError("Invalid or expired token: user ID not found in Privy token")
        return user_id

    def _fetch_user(self, user_id: str) -> Dict[str, Any]:
        try:
            response = requests.get(
                f"{PRIVY_API_URL}/users/{user_id}",
                auth=(self.app_id, self.app_secret),
                headers={"privy-app-id": self.app_id},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"[PRIVY] Failed to fetch user {user_id}: {e}")
            raise AuthenticationError(f"Invalid or expired token: {e}") from e

    def resolve(self, access_token: str) -> IdentityResult:
        if not (self.app_id and self.app_secret and self.verification_key):
            raise ConfigurationError("Privy authentication not configured")
        if not access_token:
            raise AuthenticationError("Access token is required")

        user_id = self._verify_token(access_token)
        email = extract_privy_email(self._fetch_user(user_id))
        if not email:
            raise AuthenticationError("Email not found in Privy user account")
        return IdentityResult(valid=True, email=email, subject=user_id)


def normalize_self_result(result: Dict[str, Any], public_signals: List[str]) -> IdentityResult:
    """Map a Self verifier answer onto IdentityResult."""
    details = result.get("isValidDetails") or {}
    valid = details.get("isValid") if isinstance(details, dict) and "isValid" in details else None
    if valid is None:
        valid = result.get("isValid", result.get("valid", False))

    user_data = result.get("userData") or {}
    subject = _first_str(
        user_data.get("userIdentifier") if isinstance(user_data, dict) else None,
        result.get("userIdentifier"),
        result.get("userId"),
    )

    disclose = result.get("discloseOutput") or {}
    # The first public signal carries document-specific uniqueness data
    uniqueness_id = _first_str(
        disclose.get("nullifier") if isinstance(disclose, dict) else None,
        result.get("nullifier"),
        public_signals[0] if public_signals else None,
    )
    return IdentityResult(valid=bool(valid), uniqueness_id=uniqueness_id, subject=subject)


class SelfProofVerifier:
    """Forwards Self identity proofs to the configured verifier service."""

    def __init__(self, verifier_url: Optional[str], scope: str, mock_passport: bool = True):
        self.verifier_url = verifier_url
        self.scope = scope
        self.mock_passport = mock_passport

    def verify(
        self,
        attestation_id: int,
        proof: Dict[str, Any],
        public_signals: List[str],
        user_context_data: str,
    ) -> IdentityResult:
        if not self.verifier_url:
            raise ConfigurationError("SELF_VERIFIER_URL must be configured")

        logger.info(
            f"[SELF] Verifying proof attestation_id={attestation_id} "
            f"public_signals={len(public_signals)} user_context={user_context_data[:50]}..."
        )
        try:
            response = requests.post(
                self.verifier_url,
                json={
                    "attestationId": attestation_id,
                    "proof": proof,
                    "publicSignals": public_signals,
                    "userContextData": user_context_data,
                    "scope": self.scope,
                    "mockPassport": self.mock_passport,
                    # Passport and biometric ID card only, no age/country/OFAC rules
                    "allowedIds": [1, 2],
                    "userIdentifierType": "uuid",
                },
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"[SELF] Verifier call failed: {e}")
            raise AuthenticationError(f"Verification failed: {e}") from e

        result = normalize_self_result(payload if isinstance(payload, dict) else {}, public_signals)
        logger.info(f"[SELF] Verification result valid={result.valid} user={result.subject}")
        return result
