from tourbook.schemas.tour import TourResponse, TourListResponse
from tourbook.schemas.booking import (
    BookingCreate, BookingResponse, BookingSearchResponse, PaymentResetResponse,
)
from tourbook.schemas.payment import (
    PaymentInitializeRequest, PaymentInitializeResponse,
    WebhookPaymentData, WebhookPayload, WebhookAck,
)

__all__ = [
    "TourResponse", "TourListResponse",
    "BookingCreate", "BookingResponse", "BookingSearchResponse", "PaymentResetResponse",
    "PaymentInitializeRequest", "PaymentInitializeResponse",
    "WebhookPaymentData", "WebhookPayload", "WebhookAck",
]
