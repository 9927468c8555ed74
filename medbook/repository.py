"""Record store for working hours, vacations and appointments.

Pattern: Thin wrapper around SQLAlchemy, converting rows to domain models.
Booking uniqueness is enforced by the appointments.slot_key constraint.
"""
from datetime import date
from typing import List, Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from medbook.database_models import Appointment, Base, Vacation, WorkingHours
from medbook.errors import (
    AppointmentNotFoundError,
    ScheduleEntryNotFoundError,
    SlotAlreadyTakenError,
)
from medbook.models import (
    AppointmentInterval,
    AppointmentStatus,
    VacationRange,
    WorkingHoursEntry,
)


def _to_working_hours(row: WorkingHours) -> WorkingHoursEntry:
    return WorkingHoursEntry(
        id=row.id,
        doctor_id=row.doctor_id,
        day_of_week=row.day_of_week,
        start_time=row.start_time,
        end_time=row.end_time
    )


def _to_vacation(row: Vacation) -> VacationRange:
    return VacationRange(
        id=row.id,
        doctor_id=row.doctor_id,
        start_date=row.start_date,
        end_date=row.end_date,
        reason=row.reason
    )


def _to_appointment(row: Appointment) -> AppointmentInterval:
    return AppointmentInterval(
        id=row.id,
        doctor_id=row.doctor_id,
        patient_id=row.patient_id,
        date=row.date,
        start_time=row.start_time,
        end_time=row.end_time,
        status=AppointmentStatus(row.status),
        notes=row.notes
    )


class ScheduleRepository:
    """SQLAlchemy-backed store for a clinic's scheduling records."""

    def __init__(self, database_url: str):
        """
        Initialize repository with database connection.

        Args:
            database_url: SQLAlchemy connection string
        """
        self.engine = create_engine(database_url, pool_pre_ping=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

    # Working hours

    def add_working_hours(self, doctor_id: str, entry: WorkingHoursEntry) -> WorkingHoursEntry:
        """Add a weekly window. Several windows per weekday are allowed (split shifts)."""
        with self.SessionLocal() as db:
            row = WorkingHours(
                doctor_id=doctor_id,
                day_of_week=entry.day_of_week,
                start_time=entry.start_time,
                end_time=entry.end_time
            )
            db.add(row)
            db.commit()
            return _to_working_hours(row)

    def delete_working_hours(self, entry_id: str, doctor_id: Optional[str] = None) -> None:
        """
        Delete a window, optionally scoped to its owning doctor.

        Raises:
            ScheduleEntryNotFoundError: If entry doesn't exist
        """
        with self.SessionLocal() as db:
            query = db.query(WorkingHours).filter(WorkingHours.id == entry_id)
            if doctor_id is not None:
                query = query.filter(WorkingHours.doctor_id == doctor_id)
            deleted = query.delete()
            db.commit()

        if not deleted:
            raise ScheduleEntryNotFoundError(f"Working hours {entry_id} not found")

    def list_working_hours(self, doctor_id: str, day_of_week: Optional[int] = None) -> List[WorkingHoursEntry]:
        with self.SessionLocal() as db:
            query = db.query(WorkingHours).filter(WorkingHours.doctor_id == doctor_id)
            if day_of_week is not None:
                query = query.filter(WorkingHours.day_of_week == day_of_week)
            rows = query.order_by(WorkingHours.day_of_week, WorkingHours.start_time).all()
            return [_to_working_hours(row) for row in rows]

    # Vacations

    def add_vacation(self, doctor_id: str, vacation: VacationRange) -> VacationRange:
        with self.SessionLocal() as db:
            row = Vacation(
                doctor_id=doctor_id,
                start_date=vacation.start_date,
                end_date=vacation.end_date,
                reason=vacation.reason
            )
            db.add(row)
            db.commit()
            return _to_vacation(row)

    def delete_vacation(self, vacation_id: str, doctor_id: Optional[str] = None) -> None:
        """
        Delete a vacation, optionally scoped to its owning doctor.

        Raises:
            ScheduleEntryNotFoundError: If vacation doesn't exist
        """
        with self.SessionLocal() as db:
            query = db.query(Vacation).filter(Vacation.id == vacation_id)
            if doctor_id is not None:
                query = query.filter(Vacation.doctor_id == doctor_id)
            deleted = query.delete()
            db.commit()

        if not deleted:
            raise ScheduleEntryNotFoundError(f"Vacation {vacation_id} not found")

    def list_vacations(
        self,
        doctor_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> List[VacationRange]:
        """
        List vacations, optionally only those overlapping [start, end].

        Args:
            doctor_id: Doctor identifier
            start: Range start (inclusive)
            end: Range end (inclusive)
        """
        with self.SessionLocal() as db:
            query = db.query(Vacation).filter(Vacation.doctor_id == doctor_id)
            if end is not None:
                query = query.filter(Vacation.start_date <= end)
            if start is not None:
                query = query.filter(Vacation.end_date >= start)
            rows = query.order_by(Vacation.start_date).all()
            return [_to_vacation(row) for row in rows]

    # Appointments

    def list_appointments(self, doctor_id: str, on_date: date) -> List[AppointmentInterval]:
        """All appointments (cancelled included) for a doctor on a date."""
        with self.SessionLocal() as db:
            rows = db.query(Appointment).filter(
                Appointment.doctor_id == doctor_id,
                Appointment.date == on_date
            ).order_by(Appointment.start_time).all()
            return [_to_appointment(row) for row in rows]

    def list_patient_appointments(self, patient_id: str) -> List[AppointmentInterval]:
        with self.SessionLocal() as db:
            rows = db.query(Appointment).filter(
                Appointment.patient_id == patient_id
            ).order_by(Appointment.date, Appointment.start_time).all()
            return [_to_appointment(row) for row in rows]

    def get_appointment(self, appointment_id: str) -> AppointmentInterval:
        """
        Raises:
            AppointmentNotFoundError: If appointment doesn't exist
        """
        with self.SessionLocal() as db:
            row = db.query(Appointment).filter(Appointment.id == appointment_id).first()
            if not row:
                raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
            return _to_appointment(row)

    def insert_appointment(
        self,
        doctor_id: str,
        patient_id: str,
        on_date: date,
        start_time: str,
        end_time: str,
        notes: Optional[str] = None
    ) -> AppointmentInterval:
        """
        Insert a scheduled appointment.

        Raises:
            SlotAlreadyTakenError: An active appointment already holds the slot
        """
        with self.SessionLocal() as db:
            row = Appointment(
                doctor_id=doctor_id,
                patient_id=patient_id,
                date=on_date,
                start_time=start_time,
                end_time=end_time,
                status=AppointmentStatus.SCHEDULED.value,
                notes=notes,
                slot_key=Appointment.make_slot_key(doctor_id, on_date, start_time)
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise SlotAlreadyTakenError(
                    f"Slot {on_date.isoformat()} {start_time} is already booked"
                ) from e
            return _to_appointment(row)

    def update_appointment_status(self, appointment_id: str, status: AppointmentStatus) -> AppointmentInterval:
        """
        Change status; cancelling releases the slot for new bookings.

        Raises:
            AppointmentNotFoundError: If appointment doesn't exist
        """
        with self.SessionLocal() as db:
            row = db.query(Appointment).filter(Appointment.id == appointment_id).first()
            if not row:
                raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

            row.status = status.value
            if status == AppointmentStatus.CANCELLED:
                row.slot_key = None
            db.commit()
            return _to_appointment(row)
