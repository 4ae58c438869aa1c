"""
Webhook Routes

Receive PoopVault event notifications from Alchemy (GraphQL payload format):
- /api/webhooks/alchemy/deposit: Deposit events
- /api/webhooks/alchemy/cancelled: Cancelled events

Every batch is acknowledged with 200 once authenticated, even when single
events fail, so Alchemy does not retry-storm a batch with one poison log.
"""
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from poop_backend.blockchain.events import CANCELLED_EVENT, DEPOSIT_EVENT, decode_vault_log
from poop_backend.blockchain.networks import get_chain_id_from_network, get_token_info, get_vault_address
from poop_backend.blockchain.signature import ALCHEMY_SIGNATURE_HEADER, verify_alchemy_signature
from poop_backend.blockchain.units import format_units, to_decimal
from poop_backend.config.settings import get_webhook_signing_key
from poop_backend.database import GiftStore, UserStore, get_gift_store, get_user_store
from poop_backend.models.schemas import WebhookSummary
from poop_backend.services.processors import (
    CancellationProcessor,
    DepositProcessor,
    ProcessResult,
    VaultEventParams,
)

logger = logging.getLogger(__name__)

router = APIRouter()

EventProcessor = Callable[[VaultEventParams], ProcessResult]


def _extract_block(payload: Any) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Return (block, error) for an Alchemy GraphQL payload."""
    if not isinstance(payload, dict) or not isinstance(payload.get("event"), dict):
        return None, "Missing event"
    data = payload["event"].get("data")
    block = data.get("block") if isinstance(data, dict) else None
    if not isinstance(block, dict) or not isinstance(block.get("logs"), list):
        return None, "Missing logs in GraphQL payload"
    return block, None


def handle_vault_webhook(
    raw_body: bytes,
    signature: Optional[str],
    event_name: str,
    process: EventProcessor,
) -> Tuple[int, WebhookSummary]:
    """
    Authenticate an Alchemy batch and apply each PoopVault log through ``process``.

    Returns the HTTP status and the summary body.
    """
    try:
        payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.error("[WEBHOOK:ERROR] Body is not valid JSON")
        return status.HTTP_400_BAD_REQUEST, WebhookSummary(success=False, error="Invalid JSON payload")

    block, shape_error = _extract_block(payload)
    if block is None:
        logger.error(f"[WEBHOOK:ERROR] {shape_error}")
        return status.HTTP_400_BAD_REQUEST, WebhookSummary(success=False, error=shape_error)

    logs = block["logs"]
    network = payload["event"].get("network")
    chain_id = get_chain_id_from_network(network)
    if chain_id is None:
        logger.error(f"[WEBHOOK:ERROR] Unknown network network={network}")
        return status.HTTP_400_BAD_REQUEST, WebhookSummary(success=False, error=f"Unknown network: {network}")

    token = get_token_info(chain_id)
    if token is None:
        logger.error(f"[WEBHOOK:ERROR] Token info not configured for chain chain={chain_id}")
        return (
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            WebhookSummary(success=False, error="Token info not configured for this chain"),
        )

    signing_key = get_webhook_signing_key(chain_id)
    if not signing_key:
        logger.error(
            f"[WEBHOOK:ERROR] Signing key not configured chain={chain_id} "
            f"env=ALCHEMY_WEBHOOK_SIGNING_KEY_{chain_id}"
        )
        return (
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            WebhookSummary(success=False, error="Webhook signing key not configured"),
        )

    if not verify_alchemy_signature(raw_body, signature, signing_key):
        received = f"{signature[:20]}..." if signature else "none"
        logger.error(f"[WEBHOOK:ERROR] Invalid signature chain={chain_id} received={received}")
        return status.HTTP_401_UNAUTHORIZED, WebhookSummary(success=False, error="Invalid signature")

    vault_address = get_vault_address(chain_id)
    if not vault_address:
        logger.error(f"[WEBHOOK:ERROR] Contract not deployed on this chain chain={chain_id}")
        return (
            status.HTTP_400_BAD_REQUEST,
            WebhookSummary(success=False, error="Contract not deployed on this chain"),
        )

    block_number = block.get("number")
    logger.info(
        f"[WEBHOOK:PROCESSING] event={event_name} chain={chain_id} network={network} "
        f"block={block_number} logs={len(logs)} contract={vault_address}"
    )

    processed = 0
    for position, log in enumerate(logs):
        log = log if isinstance(log, dict) else {}
        log_index = log.get("index", position)
        tx_hash = (log.get("transaction") or {}).get("hash")
        try:
            emitter = str((log.get("account") or {}).get("address") or "").lower()
            if emitter != vault_address.lower():
                logger.warning(
                    f"[WEBHOOK:WARNING] Log from unknown contract, skipping "
                    f"received={emitter} expected={vault_address.lower()} log_index={log_index}"
                )
                continue

            decoded = decode_vault_log(log.get("topics"), log.get("data"), event_name)
            amount = to_decimal(decoded.amount_raw, token.decimals)
            logger.info(
                f"[WEBHOOK:DECODED] {event_name} event poop_id={decoded.gift_id} sender={decoded.sender} "
                f"amount={format_units(decoded.amount_raw, token.decimals)} {token.symbol} tx={tx_hash} block={block_number}"
            )

            process(VaultEventParams(
                gift_id=decoded.gift_id,
                sender=decoded.sender,
                amount=amount,
                token_symbol=token.symbol,
                tx_hash=tx_hash,
                block_number=block_number,
                chain_id=chain_id,
            ))
            processed += 1
        except Exception as e:
            # A poison log is counted as failed; the rest of the batch goes on
            logger.error(
                f"[WEBHOOK:ERROR] Error processing log error={e} type={type(e).__name__} "
                f"log_index={log_index} tx={tx_hash}"
            )

    logger.info(f"[WEBHOOK:DONE] event={event_name} processed={processed} total={len(logs)}")
    return status.HTTP_200_OK, WebhookSummary(success=True, processed=processed, total=len(logs))


async def _respond(request: Request, event_name: str, process: EventProcessor) -> JSONResponse:
    logger.info(f"[WEBHOOK:RECEIVED] {event_name} webhook")
    raw_body = await request.body()
    try:
        status_code, summary = handle_vault_webhook(
            raw_body,
            request.headers.get(ALCHEMY_SIGNATURE_HEADER),
            event_name,
            process,
        )
    except Exception as e:
        # Still 200 so Alchemy does not retry; the error is logged for investigation
        logger.exception(f"[WEBHOOK:ERROR] Webhook handler error: {e}")
        status_code, summary = status.HTTP_200_OK, WebhookSummary(success=False, error=str(e))
    return JSONResponse(status_code=status_code, content=summary.model_dump(exclude_none=True))


@router.post("/alchemy/deposit")
async def alchemy_deposit_webhook(
    request: Request,
    gifts: GiftStore = Depends(get_gift_store),
    users: UserStore = Depends(get_user_store),
):
    return await _respond(request, DEPOSIT_EVENT, DepositProcessor(gifts, users).process)


@router.post("/alchemy/cancelled")
async def alchemy_cancelled_webhook(
    request: Request,
    gifts: GiftStore = Depends(get_gift_store),
):
    return await _respond(request, CANCELLED_EVENT, CancellationProcessor(gifts).process)
