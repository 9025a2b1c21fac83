"""
Lipila Webhook

Lipila calls back here when a collection settles. The billing record is
found by transaction id and moved to the mapped status:

    Successful -> paid, Failed -> failed, Cancelled -> cancelled,
    Pending or anything else -> pending

NOTE: Lipila does not sign callbacks. The payload is only trusted as far
as it names a transaction we created; everything else is a 404.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from datetime import datetime

from shiteni.database import get_db
from shiteni.models.subscription import BillingRecord
from shiteni.schemas.subscription import LipilaWebhookPayload, WebhookResponse
from shiteni.core.exceptions import InvalidInputError, RecordNotFoundError
from shiteni.services.billing import apply_payment_status, map_gateway_status
from shiteni.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/lipila", response_model=WebhookResponse)
async def lipila_webhook(
    payload: LipilaWebhookPayload,
    db: Session = Depends(get_db)
):
    if not payload.transaction_id or not payload.status:
        raise InvalidInputError("Missing required fields")

    logger.info(
        f"Lipila webhook: {payload.transaction_id} -> {payload.status}",
        extra={"transaction_id": payload.transaction_id, "event_type": "lipila_webhook"}
    )

    billing = db.query(BillingRecord).filter(
        BillingRecord.lipila_transaction_id == payload.transaction_id
    ).first()

    if not billing:
        log_security_event(
            "webhook_unknown_transaction",
            {"transaction_id": payload.transaction_id, "external_id": payload.external_id},
            logger
        )
        raise RecordNotFoundError("Billing record")

    if payload.amount is not None and abs(payload.amount - billing.amount) > 0.01:
        logger.warning(
            f"Webhook amount {payload.amount} differs from invoice {billing.invoice_number} ({billing.amount})",
            extra={"vendor_id": billing.vendor_id, "transaction_id": payload.transaction_id}
        )

    apply_payment_status(db, billing, map_gateway_status(payload.status), datetime.utcnow())
    db.commit()

    return WebhookResponse(
        success=True,
        message="Webhook processed successfully",
        transactionId=payload.transaction_id,
        status=payload.status,
        billingRecordId=billing.id,
    )


@router.get("/lipila")
async def lipila_webhook_check():
    """Lets Lipila (and us) verify the callback URL is reachable."""
    return {
        "message": "Lipila webhook endpoint is active",
        "timestamp": datetime.utcnow().isoformat(),
    }
