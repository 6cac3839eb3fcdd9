from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class RouteOut(BaseModel):
    id: str
    origin: str
    destination: str
    distance: Optional[int] = None
    duration: Optional[int] = None
    baseFare: int


class SeatOut(BaseModel):
    id: str
    number: str
    type: str


class BusOut(BaseModel):
    id: str
    operator: str
    type: str
    totalSeats: int
    amenities: List[str] = []
    seats: Optional[List[SeatOut]] = None


class ScheduleOut(BaseModel):
    id: str
    busId: str
    routeId: str
    departureTime: datetime
    arrivalTime: datetime
    availableSeats: int
    fare: int
    bus: BusOut
    route: RouteOut
    bookedSeatIds: Optional[List[str]] = None
