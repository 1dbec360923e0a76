from tourbook.models.tour import TourPackage
from tourbook.models.booking import Booking, BookingStatus, PaymentStatus
from tourbook.models.payment_event import PaymentEvent
from tourbook.models.audit_log import AuditLog

__all__ = [
    "TourPackage",
    "Booking", "BookingStatus", "PaymentStatus",
    "PaymentEvent",
    "AuditLog",
]
