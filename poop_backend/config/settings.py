import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from supabase import create_client, Client

from poop_backend.errors import ConfigurationError

# Load .env file from the project root
project_root = Path(__file__).resolve().parents[2]
load_dotenv(project_root / ".env")

# Environment variables
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
PRIVY_APP_ID = os.getenv("PRIVY_APP_ID")
PRIVY_APP_SECRET = os.getenv("PRIVY_APP_SECRET")
PRIVY_VERIFICATION_KEY = os.getenv("PRIVY_VERIFICATION_KEY")
POOP_VAULT_OWNER_PRIVATE_KEY = os.getenv("POOP_VAULT_OWNER_PRIVATE_KEY")
SELF_VERIFIER_URL = os.getenv("SELF_VERIFIER_URL")
SELF_SCOPE = os.getenv("SELF_SCOPE", "poop-verification")
# Mock passports are accepted unless explicitly disabled
SELF_MOCK_PASSPORT = os.getenv("SELF_MOCK_PASSPORT", "true").lower() != "false"
BACKEND_URL = os.getenv("BACKEND_URL") or os.getenv("NEXT_PUBLIC_BACKEND_URL", "")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
DEBUG = os.getenv("DEBUG", "False").lower() == "true"
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
CLAIM_TX_TIMEOUT_SECONDS = int(os.getenv("CLAIM_TX_TIMEOUT_SECONDS", "300"))

# Celo mainnet
DEFAULT_CHAIN_ID = 42220


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Supabase client built with the service role key (bypasses RLS).
    """
    if not SUPABASE_URL or not SUPABASE_URL.startswith("https://"):
        raise ConfigurationError(f"Invalid SUPABASE_URL: {SUPABASE_URL}")
    if not SUPABASE_SERVICE_ROLE_KEY:
        raise ConfigurationError("SUPABASE_SERVICE_ROLE_KEY environment variable is not set")
    return create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)


def get_webhook_signing_key(chain_id: int) -> Optional[str]:
    """
    Alchemy signing key for a chain. The chain-specific key wins over the
    global fallback.
    """
    return os.getenv(f"ALCHEMY_WEBHOOK_SIGNING_KEY_{chain_id}") or os.getenv("ALCHEMY_WEBHOOK_SIGNING_KEY")
