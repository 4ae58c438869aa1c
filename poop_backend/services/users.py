import re
from typing import Any, Dict, Optional

from poop_backend.database import UserStore
from poop_backend.errors import ValidationError
from poop_backend.models.gift import normalize_email

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,20}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_email(email: Optional[str], field_name: str = "Email") -> str:
    if not email:
        raise ValidationError(f"{field_name} is required")
    if not EMAIL_PATTERN.match(email.strip()):
        raise ValidationError(f"Invalid {field_name.lower()} format")
    return normalize_email(email)


def validate_username(username: Optional[str]) -> str:
    if not username:
        raise ValidationError("Username is required")
    if not USERNAME_PATTERN.match(username):
        raise ValidationError(
            "Username must be 3-20 characters and contain only letters, numbers, underscores, or hyphens"
        )
    return username.lower()


def check_user(users: UserStore, address: str) -> Dict[str, Any]:
    """Check if a user exists with the given wallet address."""
    if not address:
        raise ValidationError("Address is required")
    user = users.get_by_address(address)
    if user is None:
        return {"exists": False, "user": None}
    return {"exists": True, "user": user.to_dict()}


def check_username(users: UserStore, username: str) -> Dict[str, Any]:
    normalized = validate_username(username)
    return {"available": users.get_by_username(normalized) is None, "username": username}


def check_email(users: UserStore, email: str) -> Dict[str, Any]:
    normalized = validate_email(email)
    return {"available": users.get_by_email(normalized) is None, "email": normalized}


def create_user(users: UserStore, address: str, username: str, email: Optional[str] = None) -> Dict[str, Any]:
    if not address:
        raise ValidationError("Wallet address is required")
    normalized = validate_username(username)
    normalized_email = validate_email(email) if email else None

    if users.get_by_username(normalized) is not None:
        raise ValidationError("Username already taken")
    if users.get_by_address(address) is not None:
        raise ValidationError("Address already registered")
    if normalized_email and users.get_by_email(normalized_email) is not None:
        raise ValidationError("Email already registered")

    user = users.create(address, normalized, normalized_email)
    return {
        "id": user.id,
        "address": user.address,
        "username": user.username,
        "email": user.email,
        "created_at": user.created_at,
    }
