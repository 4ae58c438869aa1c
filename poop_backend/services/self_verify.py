import logging
from typing import Any, Dict, List

from poop_backend.database import UserStore
from poop_backend.errors import AuthenticationError, MismatchError, NotFoundError, ValidationError
from poop_backend.services.identity import SelfProofVerifier

logger = logging.getLogger(__name__)


def verify_identity_proof(
    verifier: SelfProofVerifier,
    users: UserStore,
    attestation_id: int,
    proof: Dict[str, Any],
    public_signals: List[str],
    user_context_data: str,
) -> Dict[str, Any]:
    """
    Verify a Self identity proof and record the document's uniqueness id.

    A document may back a single identity: a nullifier already stored for
    another user is rejected, and a user's stored nullifier is never replaced.
    """
    if not attestation_id or not proof or not public_signals or not user_context_data:
        raise ValidationError("Proof, publicSignals, attestationId and userContextData are required")

    result = verifier.verify(attestation_id, proof, public_signals, user_context_data)
    if not result.valid:
        raise AuthenticationError("Verification failed")
    if not result.subject:
        raise AuthenticationError("User identifier not found in verification result")

    user = users.get(result.subject)
    if user is None:
        raise NotFoundError(f"User not found: {result.subject}")

    if result.uniqueness_id:
        existing = users.get_by_uniqueness_id(result.uniqueness_id)
        if existing is not None and existing.id != user.id:
            logger.warning(f"[SELF] Document reuse rejected user_id={user.id} owner={existing.id}")
            raise MismatchError("This document has already been used by another user")
        if user.self_uniqueness_id and user.self_uniqueness_id != result.uniqueness_id:
            raise MismatchError("User is already verified with a different document")

    users.mark_verified(user.id, result.uniqueness_id)
    logger.info(f"[SELF] User verified user_id={user.id}")

    return {
        "status": "success",
        "result": True,
        "userId": user.id,
        "attestationId": attestation_id,
    }
