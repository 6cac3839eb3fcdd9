import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///./unused-test.db")
os.environ["ENV"] = "test"

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_clock, get_gateway
from app.core.clock import fixed_clock
from app.core.config import settings
from app.core.security import create_access_token, hash_password
from app.db.session import Database
from app.main import create_app
from app.models.bus import Bus
from app.models.route import Route
from app.models.seat import Seat
from app.models.user import User
from app.services.schedule_service import ScheduleKey
from app.services.xendit_client import XenditError

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=ZoneInfo("Asia/Jakarta"))
TODAY = NOW.date()
TRAVEL_DATE = date(2026, 3, 12)


class FakeGateway:
    """Stands in for XenditClient; records every invoice request."""

    def __init__(self):
        self.requests = []
        self.response = None
        self.error = None
        self._n = 0

    def create_invoice(self, payload: dict) -> dict:
        self.requests.append(payload)
        if self.error:
            raise XenditError(self.error)
        if self.response is not None:
            return self.response
        self._n += 1
        return {"id": f"inv_{self._n}", "invoice_url": f"https://checkout.example/inv_{self._n}", "status": "PENDING"}


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'test.db'}").connect()
    db.create_all()
    yield db
    db.disconnect()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(database, gateway):
    app = create_app(database)
    app.dependency_overrides[get_clock] = lambda: fixed_clock(NOW)
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c


@pytest.fixture
def xendit_configured(monkeypatch):
    monkeypatch.setattr(settings, "XENDIT_SECRET_KEY", "xnd_development_test")


def make_user(db, email="rina@example.com", name="Rina", phone="+628111111111", password="secret123") -> User:
    user = User(email=email, name=name, phone=phone, password_hash=hash_password(password), is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_bus(db, operator="Primajasa", bus_type="AC Seater", total_seats=40) -> Bus:
    bus = Bus(operator=operator, type=bus_type, total_seats=total_seats, amenities=["AC"])
    db.add(bus)
    db.flush()
    for n in range(1, total_seats + 1):
        db.add(Seat(bus_id=bus.id, number=str(n), type="Window" if n % 4 in (0, 1) else "Aisle"))
    db.commit()
    db.refresh(bus)
    return bus


def make_route(db, origin="Jakarta", destination="Bandung", base_fare=150000, duration=180) -> Route:
    route = Route(origin=origin, destination=destination, distance=150, duration=duration, base_fare=base_fare)
    db.add(route)
    db.commit()
    db.refresh(route)
    return route


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def virtual_id(route: Route, bus: Bus, slot_index: int = 0) -> str:
    return ScheduleKey(route_id=route.id, bus_id=bus.id, slot_index=slot_index).to_id()


def booking_body(schedule_id: str, seats: list[str], amount: int | None = None, travel_date: date = TRAVEL_DATE) -> dict:
    return {
        "scheduleId": schedule_id,
        "seatIds": seats,
        "passengerDetails": [{"name": f"Passenger {s}", "age": 30, "gender": "FEMALE"} for s in seats],
        "totalAmount": amount if amount is not None else 150000 * len(seats),
        "travelDate": travel_date.isoformat(),
    }


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def other_user(db):
    return make_user(db, email="budi@example.com", name="Budi")


@pytest.fixture
def route(db):
    return make_route(db)


@pytest.fixture
def bus(db):
    return make_bus(db)


@pytest.fixture
def schedule_id(route, bus):
    return virtual_id(route, bus)


@pytest.fixture
def booking(client, user, schedule_id):
    r = client.post("/api/v1/bookings", json=booking_body(schedule_id, ["1", "2"]), headers=auth_headers(user))
    assert r.status_code == 201, r.text
    return r.json()
