"""SQLAlchemy tables for the local record store."""
import uuid
from datetime import datetime, UTC

import bcrypt
from sqlalchemy import (
    Column, String, DateTime, Date, Integer, Float, JSON, Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Local identity: credentials plus profile metadata."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    profile = Column(JSON, nullable=False, default=dict)  # name, role, phone, ...
    created_at = Column(DateTime, default=utc_now, nullable=False)

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash password using bcrypt."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        """Verify password against hash."""
        return bcrypt.checkpw(password.encode(), password_hash.encode())

    def __repr__(self):
        return f"<User(id={self.id}, role={(self.profile or {}).get('role')})>"


class AuthToken(Base):
    """Opaque access tokens issued by the local identity provider."""
    __tablename__ = "auth_tokens"

    token = Column(String(64), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    expires_at = Column(Float, nullable=False, index=True)  # epoch seconds
    created_at = Column(DateTime, default=utc_now, nullable=False)


class PasswordResetRequest(Base):
    """One-time reset token; only its bcrypt hash is stored."""
    __tablename__ = "password_reset_requests"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    token_hash = Column(String(255), nullable=False)
    expires_at = Column(Float, nullable=False)  # epoch seconds
    used_at = Column(Float, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)


class WorkingHours(Base):
    """Weekly working window (day_of_week 0=Sunday)."""
    __tablename__ = "working_hours"

    id = Column(String(36), primary_key=True, default=new_id)
    doctor_id = Column(String(36), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(8), nullable=False)
    end_time = Column(String(8), nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    __table_args__ = (Index("ix_working_hours_doctor_day", "doctor_id", "day_of_week"),)


class Vacation(Base):
    __tablename__ = "vacations"

    id = Column(String(36), primary_key=True, default=new_id)
    doctor_id = Column(String(36), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)


class Appointment(Base):
    """Appointment rows.

    slot_key holds "doctor|date|start" while the appointment occupies its slot
    and NULL once cancelled, so the unique constraint only covers active
    bookings.
    """
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=new_id)
    doctor_id = Column(String(36), nullable=False, index=True)
    patient_id = Column(String(36), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(8), nullable=False)
    end_time = Column(String(8), nullable=False)
    status = Column(String(20), nullable=False, default="scheduled")
    notes = Column(String(2000), nullable=True)
    slot_key = Column(String(120), nullable=True, unique=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    @staticmethod
    def make_slot_key(doctor_id: str, day, start_time: str) -> str:
        return f"{doctor_id}|{day.isoformat()}|{start_time}"

    def __repr__(self):
        return f"<Appointment(id={self.id}, date={self.date}, start={self.start_time}, status={self.status})>"


class LoginAttempt(Base):
    """Failed login attempts shared by every process using the database."""
    __tablename__ = "login_attempts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    identifier = Column(String(255), nullable=False, index=True)
    attempted_at = Column(Float, nullable=False, index=True)  # epoch seconds
