from app.models.user import User
from app.models.bus import Bus
from app.models.seat import Seat
from app.models.route import Route
from app.models.schedule import Schedule
from app.models.booking import Booking, BookingStatus, PaymentStatus
from app.models.payment import Payment
from app.models.audit_log import AuditLog

__all__ = [
    "User",
    "Bus",
    "Seat",
    "Route",
    "Schedule",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "Payment",
    "AuditLog",
]
