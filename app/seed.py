"""Idempotent demo data: Indonesian bus operators, routes and a test customer.

Schedules are not seeded; they are generated from routes and buses on demand.
"""
import logging

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.models.bus import Bus
from app.models.route import Route
from app.models.seat import Seat
from app.models.user import User

logger = logging.getLogger(__name__)

BUSES = [
    ("Primajasa", "AC Seater", 40, ["WiFi", "Charging Port", "AC", "Reading Light"]),
    ("Pahala Kencana", "AC Sleeper", 30, ["WiFi", "Charging Port", "AC", "Blanket", "Pillow"]),
    ("Sinar Jaya", "Executive", 35, ["WiFi", "Charging Port", "AC", "Snack", "Water"]),
    ("Rosalia Indah", "AC Executive", 32, ["WiFi", "Charging Port", "AC", "Entertainment", "Snack"]),
    ("Harapan Jaya", "AC Seater", 45, ["WiFi", "Charging Port", "AC", "Reading Light"]),
    ("Gunung Harta", "AC Sleeper", 28, ["WiFi", "Charging Port", "AC", "Blanket", "Pillow", "Entertainment"]),
    ("Kramat Djati", "Executive", 36, ["WiFi", "Charging Port", "AC", "Snack", "Water", "Reading Light"]),
    ("Budiman", "AC Seater", 42, ["WiFi", "Charging Port", "AC", "Reading Light"]),
]

# (origin, destination, distance km, duration minutes, base fare IDR)
ROUTES = [
    ("Jakarta", "Bandung", 150, 180, 150000),
    ("Jakarta", "Yogyakarta", 560, 480, 250000),
    ("Jakarta", "Surabaya", 800, 720, 350000),
    ("Jakarta", "Semarang", 450, 360, 200000),
    ("Bandung", "Yogyakarta", 420, 360, 180000),
    ("Surabaya", "Malang", 90, 120, 100000),
    ("Yogyakarta", "Solo", 65, 90, 80000),
    ("Medan", "Padang", 460, 360, 200000),
    ("Denpasar", "Ubud", 35, 60, 60000),
    ("Jakarta", "Denpasar", 1150, 1200, 450000),
]


def seat_type(n: int) -> str:
    # 2+2 layout: first and last seat of every row is at the window
    return "Window" if n % 4 in (0, 1) else "Aisle"


def ensure_user(db: Session, email: str, password: str, name: str, phone: str):
    u = db.scalars(select(User).where(User.email == email)).first()
    if u:
        return
    db.add(User(email=email, name=name, phone=phone, password_hash=hash_password(password), is_active=True))
    db.commit()


def ensure_bus(db: Session, operator: str, bus_type: str, total_seats: int, amenities: list[str]) -> Bus:
    bus = db.scalars(select(Bus).where(Bus.operator == operator, Bus.type == bus_type)).first()
    if bus:
        return bus
    bus = Bus(operator=operator, type=bus_type, total_seats=total_seats, amenities=amenities)
    db.add(bus)
    db.flush()
    for n in range(1, total_seats + 1):
        db.add(Seat(bus_id=bus.id, number=str(n), type=seat_type(n)))
    db.commit()
    return bus


def ensure_route(db: Session, origin: str, destination: str, distance: int, duration: int, base_fare: int):
    exists = db.scalars(select(Route).where(Route.origin == origin, Route.destination == destination)).first()
    if exists:
        return
    db.add(Route(origin=origin, destination=destination, distance=distance, duration=duration, base_fare=base_fare))
    db.commit()


def run(db: Session):
    # If migrations haven't been applied yet, seeding must not crash the API.
    try:
        db.execute(text("SELECT 1 FROM users LIMIT 1"))
    except (ProgrammingError, OperationalError):
        db.rollback()
        logger.warning("users table not found yet. Skipping seeding (run alembic upgrade head).")
        return

    ensure_user(db, "test@example.com", "password123", "Test User", "+6281234567890")
    for operator, bus_type, seats, amenities in BUSES:
        ensure_bus(db, operator, bus_type, seats, amenities)
    for origin, destination, distance, duration, fare in ROUTES:
        ensure_route(db, origin, destination, distance, duration, fare)
    logger.info("seed complete: %d buses, %d routes", len(BUSES), len(ROUTES))
