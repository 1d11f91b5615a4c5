from __future__ import annotations

import json
from datetime import datetime, timezone

import stripe
import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from invite_hub.billing.webhooks import handle_stripe_event
from invite_hub.core.config import get_settings
from invite_hub.db.repo.products_repo import ProductsRepo
from invite_hub.db.session import SessionLocal
from invite_hub.workers.tasks.referrals import on_payment_succeeded_async

router = APIRouter(tags=["stripe"])
logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/webhooks/stripe/{product_slug}")
async def stripe_webhook(product_slug: str, request: Request) -> JSONResponse:
    webhook_secret = get_settings().stripe_webhook_secrets.get(product_slug, "").strip()
    if not webhook_secret:
        logger.error("stripe_webhook_not_configured", product_slug=product_slug)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook not configured")

    signature = request.headers.get("stripe-signature")
    if not signature:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing stripe-signature header")

    payload = await request.body()
    try:
        event = stripe.Webhook.construct_event(payload, signature, webhook_secret)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        logger.warning(
            "stripe_webhook_invalid_signature",
            product_slug=product_slug,
            error_type=type(exc).__name__,
        )
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid signature")

    event_body = json.loads(payload)
    data_object = event_body.get("data", {}).get("object", {})
    now_utc = datetime.now(timezone.utc)

    try:
        async with SessionLocal.begin() as session:
            product = await ProductsRepo.get_by_slug(session, product_slug)
            if product is None:
                logger.error("stripe_webhook_product_not_found", product_slug=product_slug)
                return _error(status.HTTP_404_NOT_FOUND, "Product not found")

            result = await handle_stripe_event(
                session,
                product=product,
                event_type=event.type,
                data_object=data_object,
                now_utc=now_utc,
            )
    except Exception:
        logger.exception(
            "stripe_webhook_handler_failed",
            product_slug=product_slug,
            event_type=event.type,
            event_id=event.id,
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook handler failed")

    logger.info(
        "stripe_webhook_processed",
        product_slug=product_slug,
        event_type=event.type,
        event_id=event.id,
        outcome=result.outcome,
    )
    if result.check_referral and result.member_id is not None:
        await on_payment_succeeded_async(result.member_id, now_utc=now_utc)

    return JSONResponse(status_code=status.HTTP_200_OK, content={"received": True})
