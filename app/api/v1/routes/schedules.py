from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_clock
from app.core.clock import Clock
from app.core.errors import ValidationFailed
from app.models.bus import Bus
from app.models.route import Route
from app.schemas.booking import ScheduleBookingOut, parse_date_param
from app.schemas.schedule import BusOut, RouteOut, ScheduleOut, SeatOut
from app.services.booking_service import booked_seats, confirmed_bookings_for_schedule
from app.services.schedule_service import find_routes, resolve_schedule, search_schedules

router = APIRouter(tags=["schedules"])


def _date_param(value: Optional[str]):
    if not value:
        return None
    try:
        return parse_date_param(value)
    except ValueError:
        raise ValidationFailed("date must be YYYY-MM-DD or an ISO datetime")


def route_out(r: Route) -> RouteOut:
    return RouteOut(id=r.id, origin=r.origin, destination=r.destination, distance=r.distance,
                    duration=r.duration, baseFare=r.base_fare)


def bus_out(b: Bus, with_seats: bool = False) -> BusOut:
    return BusOut(
        id=b.id,
        operator=b.operator,
        type=b.type,
        totalSeats=b.total_seats,
        amenities=list(b.amenities or []),
        seats=[SeatOut(id=s.id, number=s.number, type=s.type) for s in b.seats] if with_seats else None,
    )


def schedule_out(s, with_seats: bool = False, booked: Optional[list[str]] = None) -> ScheduleOut:
    """Works for stored schedules and for search candidates alike."""
    return ScheduleOut(
        id=s.id,
        busId=s.bus_id,
        routeId=s.route_id,
        departureTime=s.departure_time,
        arrivalTime=s.arrival_time,
        availableSeats=s.available_seats,
        fare=s.fare,
        bus=bus_out(s.bus, with_seats=with_seats),
        route=route_out(s.route),
        bookedSeatIds=booked,
    )


@router.get("/routes", response_model=list[RouteOut])
def list_routes(origin: str = "", destination: str = "", db: Session = Depends(get_db)):
    if not origin or not destination:
        raise ValidationFailed("Origin and destination are required")
    return [route_out(r) for r in find_routes(db, origin, destination)]


@router.get("/schedules", response_model=list[ScheduleOut])
def list_schedules(
    routeId: Optional[str] = None,
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    date: Optional[str] = None,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    candidates = search_schedules(
        db,
        today=clock().date(),
        route_id=routeId,
        origin=origin,
        destination=destination,
        on_date=_date_param(date),
    )
    return [schedule_out(c) for c in candidates]


@router.get("/schedule/{schedule_id}", response_model=ScheduleOut)
def get_schedule(schedule_id: str, date: Optional[str] = None, db: Session = Depends(get_db),
                 clock: Clock = Depends(get_clock)):
    """Concrete schedule with its seat map; a generated id is stored on first lookup."""
    schedule = resolve_schedule(db, schedule_id, _date_param(date), today=clock().date())
    return schedule_out(schedule, with_seats=True, booked=booked_seats(db, schedule.id))


@router.get("/schedule/{schedule_id}/bookings", response_model=list[ScheduleBookingOut])
def get_schedule_bookings(schedule_id: str, db: Session = Depends(get_db)):
    return [
        ScheduleBookingOut(id=b.id, seatIds=list(b.seat_ids or []), status=b.status, createdAt=b.created_at)
        for b in confirmed_bookings_for_schedule(db, schedule_id)
    ]
