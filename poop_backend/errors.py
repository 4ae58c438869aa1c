from fastapi import status


class PoopError(Exception):
    """Base class for every error the POOP services raise."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ValidationError(PoopError):
    """Request input is missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST


class DecodeError(PoopError):
    """A contract log does not match the expected event ABI."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(PoopError):
    """Bad webhook signature or bad bearer credential."""

    status_code = status.HTTP_401_UNAUTHORIZED


class MismatchError(PoopError):
    """Ownership or binding check failed. Never retried."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(PoopError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(PoopError):
    """Operation is illegal in the gift's current state."""

    status_code = status.HTTP_409_CONFLICT


class ConfigurationError(PoopError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class StoreError(PoopError):
    """The backing store rejected or failed a query."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ChainCallError(PoopError):
    """RPC or transaction failure. Safe to retry, nothing was persisted."""

    status_code = status.HTTP_502_BAD_GATEWAY
