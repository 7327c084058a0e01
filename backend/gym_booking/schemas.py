from datetime import date, datetime, time
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .domain.services import UserStatus
from .models import Admin, ClassSession, Client, Reservation
from .usecases.classes import AttendeeRoster, ClassDetail, ClassListing
from .usecases.reservations import CancellationOutcome, ReservationOutcome
from .utils.time import utc_naive_to_iso


class PersonRead(BaseModel):
    id: str
    name: str
    avatar_url: Optional[str] = None

    @classmethod
    def from_db(cls, person: Admin | Client) -> "PersonRead":
        return cls(id=person.id, name=person.name)


class ClassSummary(BaseModel):
    id: str
    title: str
    start_at: datetime
    end_at: datetime
    timezone: str
    instructor: PersonRead
    capacity: int
    reserved_count: int
    waitlist_count: int = 0
    user_status: UserStatus = UserStatus.NONE
    location: Optional[str] = None
    is_cancelled: bool = False
    updated_at: datetime

    @field_serializer("start_at", "end_at", "updated_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return utc_naive_to_iso(dt)

    @classmethod
    def from_listing(cls, listing: ClassListing, *, timezone: str) -> "ClassSummary":
        class_session = listing.class_session
        return cls(
            id=class_session.id,
            title=class_session.title,
            start_at=class_session.start_time,
            end_at=class_session.end_time,
            timezone=timezone,
            instructor=PersonRead.from_db(class_session.instructor),
            capacity=class_session.capacity,
            reserved_count=listing.reserved_count,
            waitlist_count=listing.waitlist_count,
            user_status=listing.user_status,
            location=class_session.location,
            is_cancelled=class_session.is_cancelled,
            # Sessions carry no modification stamp; the start time is stable.
            updated_at=class_session.start_time,
        )


class ClassDetailRead(ClassSummary):
    description: str = ""
    participants: List[PersonRead] = Field(default_factory=list)
    participants_count: int = 0

    @classmethod
    def from_detail(cls, detail: ClassDetail, *, timezone: str) -> "ClassDetailRead":
        class_session = detail.class_session
        participants = [PersonRead.from_db(client) for client in detail.participants]
        return cls(
            id=class_session.id,
            title=class_session.title,
            start_at=class_session.start_time,
            end_at=class_session.end_time,
            timezone=timezone,
            instructor=PersonRead.from_db(class_session.instructor),
            capacity=class_session.capacity,
            reserved_count=detail.reserved_count,
            waitlist_count=detail.waitlist_count,
            user_status=detail.user_status,
            location=class_session.location,
            is_cancelled=class_session.is_cancelled,
            updated_at=class_session.start_time,
            description=class_session.description or "",
            participants=participants,
            participants_count=len(participants),
        )


class ClassListResponse(BaseModel):
    success: bool = True
    classes: List[ClassSummary]


class ClassDetailResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    class_: ClassDetailRead = Field(alias="class")


class ReservationCreate(BaseModel):
    waitlist: bool = False


class ReservationResponse(BaseModel):
    success: bool = True
    reservation_id: str
    status: Literal["reserved"] = "reserved"
    reserved_count: int
    waitlist_count: int = 0
    user_status: UserStatus = UserStatus.RESERVED

    @classmethod
    def from_outcome(cls, outcome: ReservationOutcome) -> "ReservationResponse":
        return cls(
            reservation_id=outcome.reservation_id,
            reserved_count=outcome.reserved_count,
            waitlist_count=outcome.waitlist_count,
            user_status=outcome.user_status,
        )


class CancellationResponse(BaseModel):
    success: bool = True
    status: Literal["cancelled"] = "cancelled"
    reserved_count: int
    waitlist_count: int = 0
    user_status: UserStatus = UserStatus.NONE

    @classmethod
    def from_outcome(cls, outcome: CancellationOutcome) -> "CancellationResponse":
        return cls(
            reserved_count=outcome.reserved_count,
            waitlist_count=outcome.waitlist_count,
            user_status=outcome.user_status,
        )


class MyReservationRead(BaseModel):
    reservation_id: str
    class_id: str
    title: str
    location: Optional[str] = None
    start_at: datetime
    end_at: datetime
    reserved_at: datetime

    @field_serializer("start_at", "end_at", "reserved_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return utc_naive_to_iso(dt)

    @classmethod
    def from_db(cls, *, reservation: Reservation, class_session: ClassSession) -> "MyReservationRead":
        return cls(
            reservation_id=reservation.id,
            class_id=class_session.id,
            title=class_session.title,
            location=class_session.location,
            start_at=class_session.start_time,
            end_at=class_session.end_time,
            reserved_at=reservation.created_at,
        )


class MyReservationsResponse(BaseModel):
    success: bool = True
    reservations: List[MyReservationRead]


class ClassCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=255)
    capacity: int = Field(ge=0)
    start_time: datetime
    end_time: datetime
    is_cancelled: bool = False


class RecurringClassCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=255)
    capacity: int = Field(ge=0)
    days: List[Literal["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]]
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    is_cancelled: bool = False


class ClassUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=255)
    capacity: Optional[int] = Field(default=None, ge=0)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_cancelled: Optional[bool] = None


class AdminClassRead(BaseModel):
    id: str
    title: str
    description: Optional[str]
    location: Optional[str]
    capacity: int
    start_at: datetime
    end_at: datetime
    is_cancelled: bool
    instructor_id: str

    @field_serializer("start_at", "end_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return utc_naive_to_iso(dt)

    @classmethod
    def from_db(cls, *, class_session: ClassSession) -> "AdminClassRead":
        return cls(
            id=class_session.id,
            title=class_session.title,
            description=class_session.description,
            location=class_session.location,
            capacity=class_session.capacity,
            start_at=class_session.start_time,
            end_at=class_session.end_time,
            is_cancelled=class_session.is_cancelled,
            instructor_id=class_session.instructor_id,
        )


class AdminClassResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    class_: AdminClassRead = Field(alias="class")


class AdminClassListResponse(BaseModel):
    success: bool = True
    classes: List[AdminClassRead]
    message: str


class AttendeesUpdate(BaseModel):
    client_ids: List[str] = Field(default_factory=list)


class AttendeeRead(BaseModel):
    reservation_id: str
    client_id: str
    checked_in_by_id: Optional[str]
    created_at: datetime

    @field_serializer("created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return utc_naive_to_iso(dt)

    @classmethod
    def from_db(cls, reservation: Reservation) -> "AttendeeRead":
        return cls(
            reservation_id=reservation.id,
            client_id=reservation.client_id,
            checked_in_by_id=reservation.checked_in_by_id,
            created_at=reservation.created_at,
        )


class AdminAttendeesResponse(BaseModel):
    success: bool = True
    class_id: str
    capacity: int
    reserved_count: int
    attendees: List[AttendeeRead]

    @classmethod
    def from_roster(cls, roster: AttendeeRoster) -> "AdminAttendeesResponse":
        return cls(
            class_id=roster.class_session.id,
            capacity=roster.class_session.capacity,
            reserved_count=len(roster.attendees),
            attendees=[AttendeeRead.from_db(reservation) for reservation in roster.attendees],
        )
