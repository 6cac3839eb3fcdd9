"""
Virtual schedules: candidate departures derived from route + bus + slot index.

Search never writes. A candidate becomes a real ``schedules`` row the first
time a booking or a direct lookup references its id (materialization).
Listing and materialization both go through ``compute_slot`` so the fare and
times a customer saw in search results are the ones that get stored.

Slot convention: for slot index ``i`` the departure hour is ``6 + 3i`` on
routes leaving Jakarta and ``7 + 2i`` elsewhere (mod 24), then staggered by
``15 * i`` minutes.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationFailed
from app.models.booking import Booking, BookingStatus
from app.models.bus import Bus
from app.models.route import Route
from app.models.schedule import Schedule
from app.services.audit_service import log_audit

logger = logging.getLogger(__name__)

GENERATED_PREFIX = "generated"
MAX_SLOTS_PER_ROUTE = 5
SLOT_STAGGER_MINUTES = 15


@dataclass(frozen=True)
class ScheduleKey:
    """Identity of a virtual schedule; rendered as ``generated-{route}-{bus}-{slot}`` in storage."""

    route_id: str
    bus_id: str
    slot_index: int

    def to_id(self) -> str:
        return f"{GENERATED_PREFIX}-{self.route_id}-{self.bus_id}-{self.slot_index}"

    @classmethod
    def parse(cls, schedule_id: str) -> ScheduleKey | None:
        parts = (schedule_id or "").split("-")
        if len(parts) != 4 or parts[0] != GENERATED_PREFIX:
            return None
        _, route_id, bus_id, index = parts
        if not route_id or not bus_id:
            return None
        if not (index.isascii() and index.isdigit()):
            return None
        slot_index = int(index)
        if slot_index >= MAX_SLOTS_PER_ROUTE:
            return None
        return cls(route_id=route_id, bus_id=bus_id, slot_index=slot_index)


def is_virtual_id(schedule_id: str) -> bool:
    return (schedule_id or "").startswith(GENERATED_PREFIX + "-")


@dataclass(frozen=True)
class SlotTimes:
    departure_time: datetime
    arrival_time: datetime
    fare: int


@dataclass
class ScheduleCandidate:
    id: str
    bus: Bus
    route: Route
    departure_time: datetime
    arrival_time: datetime
    available_seats: int
    fare: int

    @property
    def bus_id(self) -> str:
        return self.bus.id

    @property
    def route_id(self) -> str:
        return self.route.id


def fare_multiplier(bus_type: str) -> float:
    multiplier = 1.0
    if "Executive" in bus_type:
        multiplier = 1.2
    # Sleeper wins when a type mentions both
    if "Sleeper" in bus_type:
        multiplier = 1.4
    return multiplier


def compute_fare(base_fare: int, bus_type: str) -> int:
    # round half up, same as the fares quoted to the web client
    return int(math.floor(base_fare * fare_multiplier(bus_type or "") + 0.5))


def departure_hour(origin: str, slot_index: int) -> int:
    if "jakarta" in (origin or "").lower():
        base_hour = 6 + slot_index * 3
    else:
        base_hour = 7 + slot_index * 2
    return base_hour % 24


def compute_slot(route: Route, bus: Bus, slot_index: int, travel_date: date) -> SlotTimes:
    departure = datetime.combine(travel_date, time(departure_hour(route.origin, slot_index)))
    departure += timedelta(minutes=slot_index * SLOT_STAGGER_MINUTES)
    arrival = departure + timedelta(minutes=route.duration_minutes)
    return SlotTimes(
        departure_time=departure,
        arrival_time=arrival,
        fare=compute_fare(route.base_fare, bus.type),
    )


def confirmed_seat_counts(db: Session, schedule_ids: list[str]) -> dict[str, int]:
    """Seats held by CONFIRMED bookings, per schedule id."""
    if not schedule_ids:
        return {}
    rows = db.execute(
        select(Booking.schedule_id, Booking.seat_ids).where(
            Booking.schedule_id.in_(schedule_ids),
            Booking.status == BookingStatus.CONFIRMED,
        )
    ).all()
    counts: dict[str, int] = {}
    for schedule_id, seat_ids in rows:
        counts[schedule_id] = counts.get(schedule_id, 0) + len(seat_ids or [])
    return counts


def list_buses(db: Session) -> list[Bus]:
    return list(db.scalars(select(Bus).order_by(Bus.created_at.asc(), Bus.id.asc())))


def _contains_pattern(text: str) -> str:
    escaped = text.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def find_routes(db: Session, origin: str, destination: str) -> list[Route]:
    """Case-insensitive substring match on both ends of the route."""
    return list(db.scalars(
        select(Route)
        .where(
            func.lower(Route.origin).like(_contains_pattern(origin), escape="\\"),
            func.lower(Route.destination).like(_contains_pattern(destination), escape="\\"),
        )
        .order_by(Route.created_at.asc(), Route.id.asc())
    ))


def list_candidates(db: Session, route: Route, buses: list[Bus], on_date: date | None, today: date) -> list[ScheduleCandidate]:
    """Candidate schedules for one route on one date. Read-only."""
    if on_date is None or on_date < today:
        on_date = today

    count = min(MAX_SLOTS_PER_ROUTE, len(buses))
    keys = [ScheduleKey(route_id=route.id, bus_id=buses[i].id, slot_index=i) for i in range(count)]
    booked = confirmed_seat_counts(db, [k.to_id() for k in keys])

    candidates = []
    for key, bus in zip(keys, buses):
        slot = compute_slot(route, bus, key.slot_index, on_date)
        schedule_id = key.to_id()
        candidates.append(ScheduleCandidate(
            id=schedule_id,
            bus=bus,
            route=route,
            departure_time=slot.departure_time,
            arrival_time=slot.arrival_time,
            available_seats=max(0, bus.total_seats - booked.get(schedule_id, 0)),
            fare=slot.fare,
        ))
    candidates.sort(key=lambda c: c.departure_time)
    return candidates


def search_schedules(
    db: Session,
    *,
    today: date,
    route_id: str | None = None,
    origin: str | None = None,
    destination: str | None = None,
    on_date: date | None = None,
) -> list[ScheduleCandidate]:
    if route_id:
        route = db.get(Route, route_id)
        routes = [route] if route else []
    elif origin and destination:
        routes = find_routes(db, origin, destination)
    else:
        raise ValidationFailed("Route ID or origin/destination is required")

    if not routes:
        return []
    buses = list_buses(db)
    if not buses:
        return []

    out: list[ScheduleCandidate] = []
    for route in routes:
        out.extend(list_candidates(db, route, buses, on_date, today))
    out.sort(key=lambda c: c.departure_time)
    return out


def materialize_schedule(db: Session, schedule_id: str, travel_date: date | None = None, *, today: date) -> Schedule:
    """Persist a virtual schedule under its own id. Returns the existing row if there is one."""
    existing = db.get(Schedule, schedule_id)
    if existing is not None:
        return existing

    key = ScheduleKey.parse(schedule_id)
    if key is None:
        raise NotFound("Schedule not found")
    route = db.get(Route, key.route_id)
    bus = db.get(Bus, key.bus_id)
    if route is None or bus is None:
        raise NotFound("Schedule not found")

    if travel_date is None:
        travel_date = today + timedelta(days=1)
    slot = compute_slot(route, bus, key.slot_index, travel_date)
    booked = confirmed_seat_counts(db, [schedule_id]).get(schedule_id, 0)

    schedule = Schedule(
        id=schedule_id,
        bus_id=bus.id,
        route_id=route.id,
        departure_time=slot.departure_time,
        arrival_time=slot.arrival_time,
        available_seats=max(0, bus.total_seats - booked),
        fare=slot.fare,
    )
    db.add(schedule)
    log_audit(db, actor_user_id="system", action="schedule.materialized", entity_type="schedule", entity_id=schedule_id,
              details={"travelDate": travel_date.isoformat(), "fare": slot.fare, "availableSeats": schedule.available_seats})
    try:
        db.commit()
    except IntegrityError:
        # Another request materialized the same id first; theirs is identical by construction.
        db.rollback()
        existing = db.get(Schedule, schedule_id)
        if existing is None:
            raise
        return existing
    logger.info("materialized schedule %s departing %s", schedule_id, slot.departure_time.isoformat())
    db.refresh(schedule)
    return schedule


def resolve_schedule(db: Session, schedule_id: str, travel_date: date | None = None, *, today: date) -> Schedule:
    """Concrete schedule for an id, materializing virtual ids on first reference."""
    schedule = db.get(Schedule, schedule_id)
    if schedule is not None:
        return schedule
    if not is_virtual_id(schedule_id):
        raise NotFound("Schedule not found")
    return materialize_schedule(db, schedule_id, travel_date, today=today)
