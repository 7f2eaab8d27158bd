# campusgate/services/ledger_service.py
"""
Movement ledger: append new movement rows and apply the one-shot
PENDING → COMPLETED | REJECTED transition on student requests.

How it works:
  - Student without an officer  → row created PENDING (a request, waiting at the gate queue)
  - Anything logged by an officer → row created COMPLETED (no pending phase)
  - A gate officer resolves a PENDING student row exactly once; the row's
    status moves with a conditional UPDATE, so two officers racing on the
    same request cannot both succeed
  - Rows are never deleted or edited outside that transition

These functions flush but do not commit. Callers wrap them in database.atomic().
"""

from typing import Optional
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from campusgate import errors
from campusgate.config import settings
from campusgate.models.enums import EntityType, MovementStatus, MovementType
from campusgate.models.movement_log import MovementLog
from campusgate.models.subject import StudentSubject, subject_for
from campusgate.utils.clock import utcnow
from campusgate.utils.logger import get_logger

logger = get_logger(__name__)

RESOLUTION_OUTCOMES = {MovementStatus.COMPLETED, MovementStatus.REJECTED}


def parse_movement_type(value) -> MovementType:
    try:
        return MovementType(value)
    except ValueError:
        raise errors.ValidationError(f"Invalid movementType '{value}'. Must be ENTRY or EXIT") from None


def parse_status(value) -> MovementStatus:
    try:
        return MovementStatus(value)
    except ValueError:
        raise errors.ValidationError(
            f"Invalid status '{value}'. Must be one of PENDING, COMPLETED, REJECTED"
        ) from None


def _has_pending(db: Session, student_ref: str, movement_type: MovementType) -> bool:
    return db.query(MovementLog.id).filter(
        MovementLog.student_id == student_ref,
        MovementLog.movement_type == movement_type.value,
        MovementLog.status == MovementStatus.PENDING.value,
    ).first() is not None


def record_movement(db: Session, entity_type, movement_type, entity_ref: str,
                    officer_ref: Optional[str] = None, remarks: Optional[str] = None) -> MovementLog:
    """Append one ledger row. Status is decided by the subject variant."""
    subject = subject_for(entity_type, entity_ref)
    kind = parse_movement_type(movement_type)
    status = subject.initial_status(officer_ref)

    if isinstance(subject, StudentSubject) and _has_pending(db, subject.ref, kind):
        logger.warning(f"[Ledger] Duplicate {kind.value} request refused for student {subject.ref}")
        raise errors.DuplicateRequest(
            f"Student {subject.ref} already has a pending {kind.value} request"
        )

    now = utcnow()
    log = MovementLog(
        movement_type=kind.value,
        status=status.value,
        officer_id=officer_ref,
        timestamp=now,
        created_at=now,
        resolved_at=None if status == MovementStatus.PENDING else now,
        remarks=remarks or None,
    )
    log.subject = subject

    try:
        with db.begin_nested():
            db.add(log)
    except IntegrityError as exc:
        # Lost a race against a concurrent request for the same student/type
        if status == MovementStatus.PENDING:
            logger.warning(f"[Ledger] Concurrent duplicate {kind.value} request for student {subject.ref}")
            raise errors.DuplicateRequest(
                f"Student {subject.ref} already has a pending {kind.value} request"
            ) from exc
        raise

    logger.info(
        f"[Ledger] #{log.id} {subject.entity_type.value}:{subject.ref} {kind.value} → {status.value}"
    )
    return log


def resolve_student_request(db: Session, record_id: int, officer_ref: str, outcome,
                            rejection_reason: Optional[str] = None) -> MovementLog:
    """
    PENDING → COMPLETED | REJECTED, once. The precondition lives in the UPDATE's
    WHERE clause so the check and the write are one statement.
    Resolution time replaces `timestamp`; created_at keeps the request time.
    """
    try:
        target = MovementStatus(outcome)
    except ValueError:
        target = None
    if target not in RESOLUTION_OUTCOMES:
        raise errors.ValidationError(f"Invalid status '{outcome}'. Must be COMPLETED or REJECTED")
    if not officer_ref:
        raise errors.ValidationError("officerRef is required when resolving a request")

    record = db.get(MovementLog, record_id)
    if record is None or record.entity_type != EntityType.STUDENT.value:
        raise errors.EntityNotFound(f"Student movement request {record_id} not found")

    now = utcnow()
    values = {
        "status": target.value,
        "officer_id": officer_ref,
        "timestamp": now,
        "resolved_at": now,
    }
    if target == MovementStatus.REJECTED:
        note = "Request rejected by gate staff"
        if rejection_reason:
            note = f"{note}: {rejection_reason}"
        values["remarks"] = f"{record.remarks} | {note}" if record.remarks else note

    result = db.execute(
        update(MovementLog)
        .where(MovementLog.id == record_id, MovementLog.status == MovementStatus.PENDING.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = db.query(MovementLog.status).filter(MovementLog.id == record_id).scalar()
        logger.warning(f"[Ledger] #{record_id} is {current}, resolution to {target.value} refused")
        raise errors.InvalidTransition(
            f"Request {record_id} is {current} and cannot be resolved again"
        )

    db.refresh(record)
    logger.info(f"[Ledger] #{record_id} resolved → {target.value} by officer {officer_ref}")
    return record


def get_movement(db: Session, record_id: int) -> MovementLog:
    record = db.get(MovementLog, record_id)
    if record is None:
        raise errors.EntityNotFound(f"Movement {record_id} not found")
    return record


def _clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return settings.LEDGER_DEFAULT_LIMIT
    if limit < 1:
        raise errors.ValidationError("limit must be a positive integer")
    return min(limit, settings.LEDGER_MAX_LIMIT)


def list_movements(db: Session, entity_ref: Optional[str] = None, entity_type=None,
                   movement_type=None, status=None, limit: Optional[int] = None,
                   default_status: MovementStatus = MovementStatus.COMPLETED) -> list[MovementLog]:
    """
    Ledger view, newest first. With no explicit status only COMPLETED rows
    are returned: PENDING rows are requests, not movements.
    """
    q = db.query(MovementLog)
    q = q.filter(MovementLog.status == (parse_status(status) if status else default_status).value)
    if entity_ref:
        q = q.filter(or_(
            MovementLog.student_id == entity_ref,
            MovementLog.guest_id == entity_ref,
            MovementLog.vendor_id == entity_ref,
        ))
    if entity_type:
        try:
            q = q.filter(MovementLog.entity_type == EntityType(entity_type).value)
        except ValueError:
            raise errors.ValidationError(f"Invalid entityType '{entity_type}'") from None
    if movement_type:
        q = q.filter(MovementLog.movement_type == parse_movement_type(movement_type).value)
    return (
        q.order_by(MovementLog.timestamp.desc(), MovementLog.id.desc())
        .limit(_clamp_limit(limit))
        .all()
    )


def list_pending_requests(db: Session, student_ref: Optional[str] = None, movement_type=None,
                          limit: Optional[int] = None) -> list[MovementLog]:
    """Gate queue: outstanding student requests, newest first."""
    return list_movements(
        db,
        entity_ref=student_ref,
        entity_type=EntityType.STUDENT,
        movement_type=movement_type,
        status=MovementStatus.PENDING,
        limit=limit,
    )
