from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import DateTime, Integer, String, Text


def new_id() -> str:
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    pass


class Admin(Base):
    __tablename__ = "admins"
    __table_args__ = (UniqueConstraint("email", name="uq_admins_email"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    sessions: Mapped[list["ClassSession"]] = relationship(back_populates="instructor")


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    reservations: Mapped[list["Reservation"]] = relationship(back_populates="client")


class ClassSession(Base):
    __tablename__ = "class_sessions"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_class_sessions_time"),
        CheckConstraint("capacity >= 0", name="chk_class_sessions_capacity"),
        Index("idx_class_sessions_start", "start_time"),
        Index("idx_class_sessions_instructor", "instructor_id"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    is_cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    instructor_id: Mapped[str] = mapped_column(ForeignKey("admins.id"), nullable=False)

    instructor: Mapped["Admin"] = relationship(back_populates="sessions")
    reservations: Mapped[list["Reservation"]] = relationship(back_populates="session")


class Reservation(Base):
    """One client's seat in one class session.

    Rows are inserted on reserve and deleted on cancel; they are never updated
    by the booking flow. An admin replacing the attendee list deletes every row
    of the session and inserts new ones stamped with `checked_in_by_id`.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("session_id", "client_id", name="uq_reservations_session_client"),
        Index("idx_reservations_session", "session_id"),
        Index("idx_reservations_client", "client_id"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    session_id: Mapped[str] = mapped_column(ForeignKey("class_sessions.id"), nullable=False)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), nullable=False)
    checked_in_by_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    session: Mapped["ClassSession"] = relationship(back_populates="reservations")
    client: Mapped["Client"] = relationship(back_populates="reservations")
