from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from poop_backend.config import settings
from poop_backend.services.identity import PrivyIdentityProvider, SelfProofVerifier

# Bearer scheme for Privy access tokens
bearer_scheme = HTTPBearer(auto_error=False)


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Extract the Privy access token from the Authorization header.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token is required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


def get_identity_provider() -> PrivyIdentityProvider:
    return PrivyIdentityProvider(
        settings.PRIVY_APP_ID,
        settings.PRIVY_APP_SECRET,
        settings.PRIVY_VERIFICATION_KEY,
    )


def get_self_verifier() -> SelfProofVerifier:
    return SelfProofVerifier(settings.SELF_VERIFIER_URL, settings.SELF_SCOPE, settings.SELF_MOCK_PASSPORT)
