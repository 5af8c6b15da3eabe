"""
BizFlow Pro - Payment confirmation (Stripe webhook)

POST /api/webhooks/stripe
- Stripe-Signature verified against STRIPE_WEBHOOK_SECRET, invalid -> 400
- checkout.session.completed with metadata.orderId -> order COMPLETED
- any other event is acknowledged and ignored
"""

import json
import logging
import stripe
from fastapi import APIRouter, HTTPException, Request

import config
from services.errors import NotFoundError, InvalidOrderStatusError
from services.orders import update_order_status

logger = logging.getLogger("payments")

router = APIRouter(prefix="/webhooks", tags=["Payments"])


@router.post("/stripe")
async def stripe_webhook(request: Request):
    payload = await request.body()
    signature = request.headers.get("stripe-signature", "")

    if not config.STRIPE_WEBHOOK_SECRET:
        logger.error("[STRIPE] STRIPE_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=400, detail="Webhook secret not configured")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), signature, config.STRIPE_WEBHOOK_SECRET
        )
        event = json.loads(payload)
    except Exception as e:
        logger.warning(f"[STRIPE] Webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")

    event_type = event.get("type")
    if event_type != "checkout.session.completed":
        return {"received": True}

    session = (event.get("data") or {}).get("object") or {}
    order_id = (session.get("metadata") or {}).get("orderId")
    if not order_id:
        logger.info(f"[STRIPE] {event_type} without orderId, ignored")
        return {"received": True}

    try:
        await update_order_status(order_id, "COMPLETED", user="stripe")
    except NotFoundError:
        logger.warning(f"[STRIPE] order {order_id} not found")
    except InvalidOrderStatusError as e:
        logger.warning(f"[STRIPE] order {order_id} not updated: {e}")
    else:
        logger.info(f"[STRIPE] payment confirmed for order {order_id}")
    return {"received": True}
