# campusgate/schemas/guest_request.py
from datetime import date, datetime, time
from typing import Optional
from pydantic import Field
from campusgate.models.enums import MovementType, VisitStatus
from campusgate.schemas.base import CamelModel
from campusgate.schemas.movement_log import MovementRecordOut


class GuestIn(CamelModel):
    name: str
    relation: str
    mobile: Optional[str] = None


class GuestOut(CamelModel):
    id: str
    name: str
    relation: str
    mobile: Optional[str]
    entry_code: Optional[str]


class VisitRequestCreate(CamelModel):
    student_ref: str
    purpose: str
    arrival_date: date
    entry_time_start: time
    exit_time_end: time
    vehicle_numbers: Optional[str] = None
    hostel_room: Optional[str] = None       # defaults to the student's profile
    student_mobile: Optional[str] = None    # defaults to the student's profile
    guests: list[GuestIn] = Field(min_length=1)


class VisitStatusUpdate(CamelModel):
    status: VisitStatus                     # APPROVED | REJECTED
    approver_ref: str
    rejection_reason: Optional[str] = None


class VisitRequestOut(CamelModel):
    id: str
    student_ref: str
    student_name: str
    purpose: str
    arrival_date: date
    entry_time_start: time
    exit_time_end: time
    vehicle_numbers: Optional[str]
    hostel_room: Optional[str]
    student_mobile: Optional[str]
    status: str
    approver_ref: Optional[str]
    approver_name: Optional[str] = None
    rejection_reason: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]
    guests: list[GuestOut]
    code_issuance_failures: list[str] = []  # guest ids still lacking a code


class ExpireVisitsIn(CamelModel):
    as_of: Optional[date] = None


class ExpireVisitsOut(CamelModel):
    expired: list[str]
    count: int


class GuestLookupOut(CamelModel):
    request: VisitRequestOut
    guest: GuestOut


class GuestMovementCreate(CamelModel):
    movement_type: MovementType
    officer_ref: str


class GuestMovementOut(CamelModel):
    movement: MovementRecordOut
    guest: GuestOut
    request_id: str
