from fastapi import APIRouter, Depends, HTTPException

from poop_backend.database import UserStore, get_user_store
from poop_backend.errors import PoopError
from poop_backend.models.schemas import SelfVerifyRequest
from poop_backend.services.identity import SelfProofVerifier
from poop_backend.services.self_verify import verify_identity_proof
from poop_backend.utils.auth import get_self_verifier

router = APIRouter()


@router.post("/verify")
async def verify_self_proof(
    request: SelfVerifyRequest,
    users: UserStore = Depends(get_user_store),
    verifier: SelfProofVerifier = Depends(get_self_verifier),
):
    """Called by Self's relayers once the user completes document verification."""
    try:
        return verify_identity_proof(
            verifier,
            users,
            request.attestationId,
            request.proof.model_dump(),
            request.publicSignals,
            request.userContextData,
        )
    except PoopError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
