# campusgate/routers/visits.py
"""
Guest visit requests: submission, approval / rejection, gate code lookup.
GET   /visits                       - list (filter by studentRef / status)
GET   /visits/{id}                  - one request with its guests
POST  /visits                       - student submits a request (PENDING)
PATCH /visits/{id}/status           - council / staff approves or rejects
POST  /visits/{id}/reissue-codes    - fill codes an approval could not issue
POST  /visits/expire                - mark stale pending requests EXPIRED
GET   /visits/codes/{code}          - gate looks up an approved guest
POST  /visits/codes/{code}/movement - gate logs the guest's entry / exit
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from campusgate.database import get_db
from campusgate.models.guest_request import Guest, GuestVisitRequest
from campusgate.routers.movements import movement_out
from campusgate.schemas.guest_request import (
    ExpireVisitsIn, ExpireVisitsOut, GuestLookupOut, GuestMovementCreate, GuestMovementOut,
    GuestOut, VisitRequestCreate, VisitRequestOut, VisitStatusUpdate,
)
from campusgate.services import gate_orchestrator, visit_service
from campusgate.services.directory_service import get_display_name

router = APIRouter()


def guest_out(guest: Guest) -> GuestOut:
    return GuestOut.model_validate(guest)


def visit_out(db: Session, request: GuestVisitRequest, failed_guest_ids=None) -> VisitRequestOut:
    return VisitRequestOut(
        id=request.id,
        student_ref=request.student_id,
        student_name=get_display_name(db, request.student_id),
        purpose=request.purpose,
        arrival_date=request.arrival_date,
        entry_time_start=request.entry_time_start,
        exit_time_end=request.exit_time_end,
        vehicle_numbers=request.vehicle_numbers,
        hostel_room=request.hostel_room,
        student_mobile=request.student_mobile,
        status=request.status,
        approver_ref=request.approved_by,
        approver_name=get_display_name(db, request.approved_by) if request.approved_by else None,
        rejection_reason=request.rejection_reason,
        created_at=request.created_at,
        updated_at=request.updated_at,
        guests=[guest_out(g) for g in request.guests],
        code_issuance_failures=list(failed_guest_ids or []),
    )


@router.get("/visits", response_model=list[VisitRequestOut], summary="List guest visit requests")
def list_visits(
    student_ref: Optional[str] = Query(None, alias="studentRef"),
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return [visit_out(db, r) for r in visit_service.list_visit_requests(db, student_ref=student_ref, status=status)]


@router.post("/visits/expire", response_model=ExpireVisitsOut, summary="Expire stale pending requests")
def expire_visits(body: ExpireVisitsIn, db: Session = Depends(get_db)):
    expired = gate_orchestrator.expire_visit_requests(db, as_of=body.as_of)
    return ExpireVisitsOut(expired=expired, count=len(expired))


@router.get("/visits/codes/{code}", response_model=GuestLookupOut, summary="Find an approved guest by entry code")
def lookup_code(code: str, db: Session = Depends(get_db)):
    request, guest = visit_service.find_guest_by_code(db, code)
    return GuestLookupOut(request=visit_out(db, request), guest=guest_out(guest))


@router.post("/visits/codes/{code}/movement", response_model=GuestMovementOut, status_code=201,
             summary="Log an approved guest's entry / exit")
def record_guest_movement(code: str, body: GuestMovementCreate, db: Session = Depends(get_db)):
    log, request, guest = gate_orchestrator.record_guest_movement_by_code(
        db, code, body.movement_type, body.officer_ref,
    )
    return GuestMovementOut(movement=movement_out(db, log), guest=guest_out(guest), request_id=request.id)


@router.get("/visits/{request_id}", response_model=VisitRequestOut, summary="Get one visit request")
def get_visit(request_id: str, db: Session = Depends(get_db)):
    return visit_out(db, visit_service.get_visit_request(db, request_id))


@router.post("/visits", response_model=VisitRequestOut, status_code=201, summary="Submit a visit request")
def create_visit(body: VisitRequestCreate, db: Session = Depends(get_db)):
    request = gate_orchestrator.create_visit_request(
        db,
        student_ref=body.student_ref,
        purpose=body.purpose,
        arrival_date=body.arrival_date,
        entry_time_start=body.entry_time_start,
        exit_time_end=body.exit_time_end,
        guests=body.guests,
        vehicle_numbers=body.vehicle_numbers,
        hostel_room=body.hostel_room,
        student_mobile=body.student_mobile,
    )
    return visit_out(db, request)


@router.patch("/visits/{request_id}/status", response_model=VisitRequestOut, summary="Approve or reject")
def resolve_visit(request_id: str, body: VisitStatusUpdate, db: Session = Depends(get_db)):
    """On approval every guest receives a unique entry code."""
    resolution = gate_orchestrator.resolve_visit_request(
        db, request_id, body.status, body.approver_ref, rejection_reason=body.rejection_reason,
    )
    return visit_out(db, resolution.request, resolution.failed_guest_ids)


@router.post("/visits/{request_id}/reissue-codes", response_model=VisitRequestOut,
             summary="Issue codes missing from an approved request")
def reissue_codes(request_id: str, db: Session = Depends(get_db)):
    resolution = gate_orchestrator.reissue_missing_codes(db, request_id)
    return visit_out(db, resolution.request, resolution.failed_guest_ids)
