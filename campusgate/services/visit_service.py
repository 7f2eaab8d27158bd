# campusgate/services/visit_service.py
"""
Guest visit workflow: a student hosts N guests on a date / time window.

Lifecycle:
  PENDING ──approve──▶ APPROVED   every guest without a code gets one
          ──reject───▶ REJECTED   no codes, rejection reason kept
          ──expire───▶ EXPIRED    arrival date passed while still pending
COMPLETED exists in the vocabulary but nothing here produces it yet.

Approval and code issuance share one transaction. A guest whose code could
not be issued after the bounded retries does not block the approval; it is
reported back in VisitResolution.issuance_failures and can be filled later
with reissue_missing_codes().

These functions flush but do not commit. Callers wrap them in database.atomic().
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional
from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload
from campusgate import errors
from campusgate.models.enums import EntityType, VisitStatus
from campusgate.models.guest_request import Guest, GuestVisitRequest
from campusgate.models.user import User
from campusgate.services.directory_service import require_entity
from campusgate.services.entry_code_service import CodeGenerator, issue_entry_code
from campusgate.utils.clock import utcnow
from campusgate.utils.logger import get_logger

logger = get_logger(__name__)

RESOLUTION_OUTCOMES = {VisitStatus.APPROVED, VisitStatus.REJECTED}


@dataclass
class VisitResolution:
    request: GuestVisitRequest
    issuance_failures: list[errors.CodeIssuanceFailed] = field(default_factory=list)

    @property
    def failed_guest_ids(self) -> list[str]:
        return [f.guest_id for f in self.issuance_failures]


def _field(guest, name: str):
    if isinstance(guest, Mapping):
        return guest.get(name)
    return getattr(guest, name, None)


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def create_visit_request(db: Session, student_ref: str, purpose: str, arrival_date: date,
                         entry_time_start, exit_time_end, guests: Iterable,
                         vehicle_numbers: Optional[str] = None, hostel_room: Optional[str] = None,
                         student_mobile: Optional[str] = None) -> GuestVisitRequest:
    """
    Persist a PENDING request with all guests code-less.
    Room and mobile are copied from the student's profile now (unless given),
    so later profile edits do not rewrite what the request said.
    """
    guests = list(guests or [])
    if not _clean(purpose):
        raise errors.ValidationError("purpose is required")
    if arrival_date is None or entry_time_start is None or exit_time_end is None:
        raise errors.ValidationError("arrivalDate, entryTimeStart and exitTimeEnd are required")
    if entry_time_start > exit_time_end:
        raise errors.ValidationError("entryTimeStart must not be later than exitTimeEnd")
    if not guests:
        raise errors.ValidationError("At least one guest is required")
    for i, guest in enumerate(guests, start=1):
        if not _clean(_field(guest, "name")) or not _clean(_field(guest, "relation")):
            raise errors.ValidationError(f"Guest #{i} needs both name and relation")

    require_entity(db, student_ref, EntityType.STUDENT)
    student = db.get(User, student_ref)

    request = GuestVisitRequest(
        student_id=student_ref,
        purpose=purpose.strip(),
        arrival_date=arrival_date,
        entry_time_start=entry_time_start,
        exit_time_end=exit_time_end,
        vehicle_numbers=_clean(vehicle_numbers),
        hostel_room=_clean(hostel_room) or student.hostel_room,
        student_mobile=_clean(student_mobile) or student.mobile_number,
        status=VisitStatus.PENDING.value,
        created_at=utcnow(),
    )
    request.guests = [
        Guest(
            position=i,
            name=_clean(_field(g, "name")),
            relation=_clean(_field(g, "relation")),
            mobile=_clean(_field(g, "mobile")),
            entry_code=None,
        )
        for i, g in enumerate(guests)
    ]
    db.add(request)
    db.flush()
    logger.info(f"[Visits] Request {request.id} by student {student_ref} for {len(guests)} guest(s) on {arrival_date}")
    return request


def get_visit_request(db: Session, request_id: str) -> GuestVisitRequest:
    request = (
        db.query(GuestVisitRequest)
        .options(selectinload(GuestVisitRequest.guests))
        .filter(GuestVisitRequest.id == request_id)
        .first()
    )
    if request is None:
        raise errors.EntityNotFound(f"Guest request {request_id} not found")
    return request


def list_visit_requests(db: Session, student_ref: Optional[str] = None, status=None) -> list[GuestVisitRequest]:
    q = db.query(GuestVisitRequest).options(selectinload(GuestVisitRequest.guests))
    if student_ref:
        q = q.filter(GuestVisitRequest.student_id == student_ref)
    if status:
        try:
            q = q.filter(GuestVisitRequest.status == VisitStatus(status).value)
        except ValueError:
            raise errors.ValidationError(f"Invalid status '{status}'") from None
    return q.order_by(GuestVisitRequest.created_at.desc()).all()


def _issue_missing_codes(db: Session, request: GuestVisitRequest,
                         generator: Optional[CodeGenerator]) -> list[errors.CodeIssuanceFailed]:
    failures = []
    for guest in request.guests:
        if guest.entry_code:
            continue
        try:
            code = issue_entry_code(db, guest, generator=generator)
            logger.info(f"[Codes] Guest {guest.name} ({guest.id}) → {code}")
        except errors.CodeIssuanceFailed as exc:
            logger.error(f"[Codes] Request {request.id}: {exc.message}")
            failures.append(exc)
    return failures


def resolve_visit_request(db: Session, request_id: str, outcome, approver_ref: str,
                          rejection_reason: Optional[str] = None,
                          code_generator: Optional[CodeGenerator] = None) -> VisitResolution:
    """
    PENDING → APPROVED | REJECTED, once. The approver must already be checked
    by the caller (directory_service.require_officer).
    """
    try:
        target = VisitStatus(outcome)
    except ValueError:
        target = None
    if target not in RESOLUTION_OUTCOMES:
        raise errors.ValidationError(f"Invalid status '{outcome}'. Must be APPROVED or REJECTED")

    values = {"status": target.value, "approved_by": approver_ref, "updated_at": utcnow()}
    if target == VisitStatus.REJECTED:
        values["rejection_reason"] = _clean(rejection_reason)

    result = db.execute(
        update(GuestVisitRequest)
        .where(GuestVisitRequest.id == request_id,
               GuestVisitRequest.status == VisitStatus.PENDING.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = db.query(GuestVisitRequest.status).filter(GuestVisitRequest.id == request_id).scalar()
        if current is None:
            raise errors.EntityNotFound(f"Guest request {request_id} not found")
        logger.warning(f"[Visits] Request {request_id} is {current}, {target.value} refused")
        raise errors.InvalidTransition(f"Guest request {request_id} is {current} and cannot be resolved again")

    request = get_visit_request(db, request_id)
    db.refresh(request)
    logger.info(f"[Visits] Request {request_id} → {target.value} by {approver_ref}")

    failures = []
    if target == VisitStatus.APPROVED:
        failures = _issue_missing_codes(db, request, code_generator)
    return VisitResolution(request=request, issuance_failures=failures)


def reissue_missing_codes(db: Session, request_id: str,
                          code_generator: Optional[CodeGenerator] = None) -> VisitResolution:
    """Fill codes for guests an earlier approval could not serve. Never replaces a code."""
    request = get_visit_request(db, request_id)
    if request.status != VisitStatus.APPROVED.value:
        raise errors.InvalidTransition(f"Guest request {request_id} is {request.status}; codes are issued only when APPROVED")
    failures = _issue_missing_codes(db, request, code_generator)
    return VisitResolution(request=request, issuance_failures=failures)


def find_guest_by_code(db: Session, code: str) -> tuple[GuestVisitRequest, Guest]:
    """
    Gate lookup. Only guests of APPROVED requests resolve, whatever the code
    column says, since the code and the approval are separate facts.
    """
    code = _clean(code)
    if not code:
        raise errors.ValidationError("code is required")
    guest = (
        db.query(Guest)
        .join(GuestVisitRequest, Guest.request_id == GuestVisitRequest.id)
        .filter(Guest.entry_code == code, GuestVisitRequest.status == VisitStatus.APPROVED.value)
        .first()
    )
    if guest is None:
        logger.warning(f"[Visits] Code {code} does not match an approved guest")
        raise errors.EntityNotFound("Invalid code or guest not approved")
    return guest.request, guest


def require_approved_guest(db: Session, guest_id: str) -> Guest:
    """A guest may pass the gate only while their request is APPROVED."""
    guest = (
        db.query(Guest)
        .join(GuestVisitRequest, Guest.request_id == GuestVisitRequest.id)
        .filter(Guest.id == guest_id, GuestVisitRequest.status == VisitStatus.APPROVED.value)
        .first()
    )
    if guest is None:
        logger.warning(f"[Visits] Guest {guest_id} has no approved request")
        raise errors.EntityNotFound("Invalid code or guest not approved")
    return guest


def expire_visit_requests(db: Session, as_of: Optional[date] = None) -> list[str]:
    """PENDING requests whose arrival date is before `as_of` (default today) → EXPIRED."""
    as_of = as_of or utcnow().date()
    stale = [
        row[0] for row in db.query(GuestVisitRequest.id).filter(
            GuestVisitRequest.status == VisitStatus.PENDING.value,
            GuestVisitRequest.arrival_date < as_of,
        ).all()
    ]
    if not stale:
        return []
    result = db.execute(
        update(GuestVisitRequest)
        .where(GuestVisitRequest.id.in_(stale), GuestVisitRequest.status == VisitStatus.PENDING.value)
        .values(status=VisitStatus.EXPIRED.value, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    logger.info(f"[Visits] Expired {result.rowcount} pending request(s) with arrival before {as_of}")
    return stale

