# campusgate/models/guest_request.py
"""
Guest visit requests and their guests.
A student hosts one or more guests on a given date / time window.
The guest list is fixed at creation; approval only fills in entry codes.
entry_code is unique across ALL guests, not just within one request.
"""

import uuid

from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Time, Text, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship
from campusgate.database import Base
from campusgate.models.enums import VisitStatus, values
from campusgate.utils.clock import utcnow


class GuestVisitRequest(Base):
    __tablename__ = "guest_requests"
    __table_args__ = (
        CheckConstraint(
            "status IN (" + ", ".join(f"'{v}'" for v in values(VisitStatus)) + ")",
            name="guest_requests_status_check",
        ),
        CheckConstraint("entry_time_start <= exit_time_end", name="guest_requests_window_check"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    purpose = Column(Text, nullable=False)
    arrival_date = Column(Date, nullable=False)
    entry_time_start = Column(Time, nullable=False)
    exit_time_end = Column(Time, nullable=False)
    vehicle_numbers = Column(String(200))
    hostel_room = Column(String(50))          # snapshot at submission time
    student_mobile = Column(String(30))       # snapshot at submission time
    status = Column(String(20), nullable=False, default=VisitStatus.PENDING.value, index=True)
    approved_by = Column(String(36), ForeignKey("users.id"))
    rejection_reason = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime)

    guests = relationship(
        "Guest", back_populates="request", order_by="Guest.position", cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<GuestVisitRequest {self.id} student={self.student_id} status={self.status}>"


class Guest(Base):
    __tablename__ = "guests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    request_id = Column(String(36), ForeignKey("guest_requests.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)   # order within the request
    name = Column(String(200), nullable=False)
    relation = Column(String(100), nullable=False)
    mobile = Column(String(30))
    entry_code = Column(String(12), unique=True, index=True)    # null until approval
    code_issued_at = Column(DateTime)

    request = relationship("GuestVisitRequest", back_populates="guests")

    def __repr__(self):
        return f"<Guest {self.id} name={self.name} code={self.entry_code}>"
