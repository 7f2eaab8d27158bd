# campusgate/routers/movements.py
"""
Movement ledger endpoints.
GET  /movements              - ledger view, COMPLETED only unless ?status= is given
GET  /movements/pending      - gate queue of outstanding student requests
POST /movements              - record a movement (student request, or officer-logged)
PATCH /movements/student/{id} - gate officer resolves a pending student request
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from campusgate.database import get_db
from campusgate.models.movement_log import MovementLog
from campusgate.models.user import User
from campusgate.schemas.movement_log import MovementCreate, MovementRecordOut, MovementResolve
from campusgate.services import gate_orchestrator, ledger_service
from campusgate.services.directory_service import get_display_name, get_guest

router = APIRouter()


def movement_out(db: Session, log: MovementLog) -> MovementRecordOut:
    """Ledger row → wire format, with display names resolved through the directory."""
    student = db.get(User, log.student_id) if log.student_id else None
    guest = get_guest(db, log.guest_id) if log.guest_id else None
    return MovementRecordOut(
        id=log.id,
        movement_type=log.movement_type,
        entity_type=log.entity_type,
        entity_ref=log.entity_ref,
        student_ref=log.student_id,
        guest_ref=log.guest_id,
        vendor_ref=log.vendor_id,
        user_name=get_display_name(db, log.entity_ref),
        college_id=student.student_id if student else None,
        guest_entry_code=guest.entry_code if guest else None,
        status=log.status,
        officer_ref=log.officer_id,
        officer_name=get_display_name(db, log.officer_id) if log.officer_id else None,
        timestamp=log.timestamp,
        created_at=log.created_at,
        resolved_at=log.resolved_at,
        remarks=log.remarks,
    )


@router.get("/movements", response_model=list[MovementRecordOut], summary="Movement ledger (newest first)")
def list_movements(
    entity_ref: Optional[str] = Query(None, alias="entityRef"),
    entity_type: Optional[str] = Query(None, alias="entityType"),
    movement_type: Optional[str] = Query(None, alias="movementType"),
    status: Optional[str] = None,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Only COMPLETED movements unless a status is asked for explicitly."""
    logs = ledger_service.list_movements(
        db, entity_ref=entity_ref, entity_type=entity_type,
        movement_type=movement_type, status=status, limit=limit,
    )
    return [movement_out(db, log) for log in logs]


@router.get("/movements/pending", response_model=list[MovementRecordOut], summary="Pending student requests")
def list_pending(
    student_ref: Optional[str] = Query(None, alias="studentRef"),
    movement_type: Optional[str] = Query(None, alias="movementType"),
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    logs = ledger_service.list_pending_requests(db, student_ref=student_ref, movement_type=movement_type, limit=limit)
    return [movement_out(db, log) for log in logs]


@router.post("/movements", response_model=MovementRecordOut, status_code=201, summary="Record a movement")
def create_movement(body: MovementCreate, db: Session = Depends(get_db)):
    """
    STUDENT without officerRef → PENDING request.
    Anything with an officerRef → COMPLETED immediately. GUEST / VENDOR require one.
    """
    log = gate_orchestrator.record_movement(
        db, body.entity_type, body.movement_type, body.entity_ref,
        officer_ref=body.officer_ref, remarks=body.remarks,
    )
    return movement_out(db, log)


@router.patch("/movements/student/{record_id}", response_model=MovementRecordOut,
              summary="Resolve a pending student request")
def resolve_student_request(record_id: int, body: MovementResolve, db: Session = Depends(get_db)):
    log = gate_orchestrator.resolve_student_request(
        db, record_id, body.officer_ref, body.status, rejection_reason=body.rejection_reason,
    )
    return movement_out(db, log)
