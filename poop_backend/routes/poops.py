import json
import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from poop_backend.blockchain.vault import VaultPayoutClient, get_payout_client
from poop_backend.database import GiftStore, UserStore, get_gift_store, get_user_store
from poop_backend.errors import PoopError
from poop_backend.models.schemas import PoopClaim, PoopCreate, PoopVerify
from poop_backend.services import gifts as gift_service
from poop_backend.services.claims import ClaimOrchestrator
from poop_backend.services.identity import PrivyIdentityProvider
from poop_backend.services.recipients import verify_user_and_associate_gift
from poop_backend.utils.auth import get_bearer_token, get_identity_provider

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_poop_create(request: Request) -> PoopCreate:
    """
    Parse the body with JSON numbers kept as Decimal so amounts never pass
    through float.
    """
    try:
        payload = json.loads(await request.body(), parse_float=Decimal)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")
    try:
        return PoopCreate.model_validate(payload)
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors(include_url=False))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": PoopCreate.model_json_schema()}},
            "required": True,
        },
    },
)
async def create_poop(
    poop: PoopCreate = Depends(_read_poop_create),
    gifts: GiftStore = Depends(get_gift_store),
    users: UserStore = Depends(get_user_store),
):
    try:
        return gift_service.create_gift(gifts, users, poop.senderAddress, poop.recipientEmail, poop.amount)
    except PoopError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("")
async def get_user_poops(
    address: Optional[str] = None,
    username: Optional[str] = None,
    gifts: GiftStore = Depends(get_gift_store),
    users: UserStore = Depends(get_user_store),
):
    try:
        return gift_service.list_sent_gifts(gifts, users, address, username)
    except PoopError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/recipient")
async def get_recipient_poops(
    email: str,
    gifts: GiftStore = Depends(get_gift_store),
    users: UserStore = Depends(get_user_store),
):
    try:
        return gift_service.list_recipient_gifts(gifts, users, email)
    except PoopError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/verify")
async def verify_poop_recipient(
    request: PoopVerify,
    gifts: GiftStore = Depends(get_gift_store),
    users: UserStore = Depends(get_user_store),
):
    """Associate a verified user as the recipient of a FUNDED POOP."""
    try:
        return verify_user_and_associate_gift(gifts, users, request.userId, request.poopId)
    except PoopError as e:
        logger.error(f"[VERIFY:ERROR] poop_id={request.poopId} user_id={request.userId} error={e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/claim")
async def claim_poop(
    request: PoopClaim,
    access_token: str = Depends(get_bearer_token),
    gifts: GiftStore = Depends(get_gift_store),
    users: UserStore = Depends(get_user_store),
    identity: PrivyIdentityProvider = Depends(get_identity_provider),
    payouts: VaultPayoutClient = Depends(get_payout_client),
):
    """
    Pay a VERIFIED POOP out to the recipient's wallet.

    Waits for the payout transaction to confirm before answering.
    """
    orchestrator = ClaimOrchestrator(gifts, users, identity, payouts)
    try:
        result = await orchestrator.claim(access_token, request.poopId, request.walletAddress)
        return result.to_dict()
    except PoopError as e:
        logger.error(f"[CLAIM:ERROR] poop_id={request.poopId} error={e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
