"""Application error taxonomy.

Services raise these; ``app.main`` renders them as ``{"error": ..., "code": ...}``
with the class's HTTP status. Anything that is not an ``AppError`` is logged
and collapsed to a generic 500.
"""


class AppError(Exception):
    status_code = 500
    code = "internal_error"
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    message = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class ValidationFailed(AppError):
    status_code = 400
    code = "validation_failed"
    message = "Invalid request"


class InsufficientSeats(AppError):
    status_code = 400
    code = "insufficient_seats"
    message = "Not enough seats available"


class SeatConflict(AppError):
    status_code = 400
    code = "seat_conflict"
    message = "Some seats are already booked"


class AlreadyCancelled(AppError):
    status_code = 400
    code = "already_cancelled"
    message = "Booking already cancelled"


class BookingNotPayable(AppError):
    status_code = 400
    code = "booking_not_payable"
    message = "Booking cannot be paid"


class TicketUnavailable(AppError):
    status_code = 409
    code = "ticket_unavailable"
    message = "Ticket is only available after payment"


class PaymentServiceUnavailable(AppError):
    status_code = 503
    code = "payment_service_unavailable"
    message = "Payment service not configured"


class InvalidGatewayResponse(AppError):
    status_code = 502
    code = "invalid_gateway_response"
    message = "Invalid payment gateway response"


class GatewayError(AppError):
    status_code = 502
    code = "gateway_error"
    message = "Payment gateway request failed"


class InternalError(AppError):
    pass
