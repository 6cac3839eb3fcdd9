from __future__ import annotations

import io
from datetime import datetime, timezone

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from app.core.config import settings
from app.core.errors import TicketUnavailable
from app.models.booking import Booking, BookingStatus, PaymentStatus


def render_ticket_pdf_bytes(*, booking_id: str, passengers: list[dict], seat_ids: list[str], origin: str,
                            destination: str, departure: datetime, arrival: datetime, operator: str,
                            bus_type: str, total_amount: int, currency: str, payment_status: str) -> bytes:
    """Return an A4 PDF bytes. Pure function."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    _, h = A4

    # Header
    c.setFont("Helvetica-Bold", 18)
    c.drawString(40, h - 60, f"{settings.APP_NAME} - E-Ticket")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 80, f"Booking ID: {booking_id}")
    c.drawString(40, h - 96, f"Bus: {operator} ({bus_type})")

    # Trip block
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, h - 130, "Trip")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 148, f"From: {origin}")
    c.drawString(40, h - 164, f"To:   {destination}")
    c.drawString(40, h - 180, f"Departure: {departure.strftime('%Y-%m-%d %H:%M')}")
    c.drawString(40, h - 196, f"Arrival:   {arrival.strftime('%Y-%m-%d %H:%M')}")
    c.drawString(40, h - 212, f"Seats: {', '.join(seat_ids)}")

    # Passengers, one line each, paired with their seat where one exists
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, h - 250, "Passengers")
    c.setFont("Helvetica", 11)
    y = h - 268
    for i, p in enumerate(passengers):
        seat = seat_ids[i] if i < len(seat_ids) else "-"
        c.drawString(40, y, f"{i + 1}. {p.get('name', '')}  age {p.get('age', '-')}  {p.get('gender', '')}  seat {seat}")
        y -= 16

    # Payment
    y -= 20
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, y, "Payment")
    c.setFont("Helvetica", 11)
    c.drawString(40, y - 18, f"Total: {currency} {total_amount:,}")
    c.drawString(40, y - 34, f"Status: {payment_status}")

    # Footer
    c.setFont("Helvetica", 9)
    c.drawString(40, 40, "Please show this ticket and a valid ID when boarding.")
    c.drawString(40, 26, f"Generated: {datetime.now(timezone.utc).isoformat()}")

    c.showPage()
    c.save()
    return buf.getvalue()


def ticket_for_booking(booking: Booking) -> bytes:
    if booking.status != BookingStatus.CONFIRMED or booking.payment_status != PaymentStatus.PAID:
        raise TicketUnavailable()
    schedule = booking.schedule
    if schedule is None:
        raise TicketUnavailable("Schedule for this booking no longer exists")
    return render_ticket_pdf_bytes(
        booking_id=booking.id,
        passengers=list(booking.passenger_details or []),
        seat_ids=list(booking.seat_ids or []),
        origin=schedule.route.origin,
        destination=schedule.route.destination,
        departure=schedule.departure_time,
        arrival=schedule.arrival_time,
        operator=schedule.bus.operator,
        bus_type=schedule.bus.type,
        total_amount=booking.total_amount,
        currency=settings.GATEWAY_CURRENCY,
        payment_status=booking.payment_status,
    )
