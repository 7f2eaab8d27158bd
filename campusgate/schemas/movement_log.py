# campusgate/schemas/movement_log.py
from datetime import datetime
from typing import Optional
from campusgate.models.enums import EntityType, MovementStatus, MovementType
from campusgate.schemas.base import CamelModel


class MovementCreate(CamelModel):
    movement_type: MovementType
    entity_type: EntityType
    entity_ref: str
    officer_ref: Optional[str] = None   # absent for student self-service → PENDING
    remarks: Optional[str] = None


class MovementResolve(CamelModel):
    status: MovementStatus              # COMPLETED | REJECTED
    officer_ref: str
    rejection_reason: Optional[str] = None


class MovementRecordOut(CamelModel):
    id: int
    movement_type: str
    entity_type: str
    entity_ref: str
    student_ref: Optional[str]
    guest_ref: Optional[str]
    vendor_ref: Optional[str]
    user_name: str
    college_id: Optional[str] = None    # students only
    guest_entry_code: Optional[str] = None
    status: str
    officer_ref: Optional[str]
    officer_name: Optional[str] = None
    timestamp: datetime
    created_at: datetime
    resolved_at: Optional[datetime]
    remarks: Optional[str]
