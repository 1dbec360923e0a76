"""
Observability writes: audit log rows and payment event rows.

These run strictly after the payment status change they describe has been
committed. A failure here is logged and counted, rolled back on its own,
and never surfaces to the caller.
"""

from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.models.audit_log import AuditLog
from tourbook.models.payment_event import PaymentEvent
from tourbook.core.metrics import record_observability_failure
from tourbook.core.logging import get_logger

logger = get_logger(__name__)


class AuditAction:
    BOOKING_CREATED = "BOOKING_CREATED"
    PAYMENT_INITIALIZED = "PAYMENT_INITIALIZED"
    PAYMENT_RESET = "PAYMENT_RESET"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"


async def record_audit_log(
    db: AsyncSession,
    action: str,
    metadata: dict[str, Any],
    booking_id: Optional[str] = None,
) -> bool:
    """Append an audit row. Returns False when the write was dropped."""
    try:
        db.add(AuditLog(action=action, booking_id=booking_id, log_metadata=metadata))
        await db.commit()
    except SQLAlchemyError as e:
        logger.error("audit_log_write_failed", action=action, booking_id=booking_id, error=str(e))
        record_observability_failure("audit_log")
        await db.rollback()
        return False
    return True


async def record_payment_event(
    db: AsyncSession,
    booking_id: str,
    event: str,
    metadata: dict[str, Any],
    provider_transaction_id: Optional[str] = None,
) -> bool:
    """Append a payment event row. Returns False when the write was dropped."""
    try:
        db.add(
            PaymentEvent(
                booking_id=booking_id,
                event=event,
                provider_transaction_id=provider_transaction_id,
                event_metadata=metadata,
            )
        )
        await db.commit()
    except SQLAlchemyError as e:
        logger.error("payment_event_write_failed", event_name=event, booking_id=booking_id, error=str(e))
        record_observability_failure("payment_event")
        await db.rollback()
        return False
    return True
