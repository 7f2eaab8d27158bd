# campusgate/services/gate_orchestrator.py
"""
Single entry point for every ledger / visit mutation.

Each call:
  1. validates the input and every reference against the directory
     (unknown student / guest / vendor → EntityNotFound, unknown or
     non-staff officer → InvalidApprover, guest whose request is not
     APPROVED → EntityNotFound)
  2. delegates to ledger_service / visit_service
  3. runs inside one store transaction (database.atomic), so a failure at
     any step leaves nothing behind

Flows:
  - student self-service   → record_movement(STUDENT, ..., officer_ref=None) → PENDING
  - gate resolves request  → resolve_student_request
  - guest at the gate      → record_guest_movement_by_code (code → approved guest → COMPLETED)
  - vendor at the gate     → record_vendor_movement (officer always required → COMPLETED)
"""

from datetime import date
from typing import Iterable, Optional
from sqlalchemy.orm import Session
from campusgate import errors
from campusgate.database import atomic
from campusgate.models.enums import EntityType
from campusgate.models.guest_request import Guest, GuestVisitRequest
from campusgate.models.movement_log import MovementLog
from campusgate.models.subject import GuestSubject, subject_for
from campusgate.services import directory_service, ledger_service, visit_service
from campusgate.services.entry_code_service import CodeGenerator
from campusgate.services.visit_service import VisitResolution
from campusgate.utils.logger import get_logger

logger = get_logger(__name__)


def record_movement(db: Session, entity_type, movement_type, entity_ref: str,
                    officer_ref: Optional[str] = None, remarks: Optional[str] = None) -> MovementLog:
    subject = subject_for(entity_type, entity_ref)
    ledger_service.parse_movement_type(movement_type)
    with atomic(db):
        directory_service.require_entity(db, subject.ref, subject.entity_type)
        if isinstance(subject, GuestSubject):
            visit_service.require_approved_guest(db, subject.ref)
        if officer_ref is not None:
            directory_service.require_officer(db, officer_ref)
        log = ledger_service.record_movement(
            db, subject.entity_type, movement_type, subject.ref,
            officer_ref=officer_ref, remarks=remarks,
        )
    return log


def resolve_student_request(db: Session, record_id: int, officer_ref: str, outcome,
                            rejection_reason: Optional[str] = None) -> MovementLog:
    with atomic(db):
        directory_service.require_officer(db, officer_ref)
        log = ledger_service.resolve_student_request(
            db, record_id, officer_ref, outcome, rejection_reason=rejection_reason,
        )
    return log


def record_vendor_movement(db: Session, vendor_ref: str, movement_type, officer_ref: str,
                           vehicle_number: Optional[str] = None,
                           remarks: Optional[str] = None) -> MovementLog:
    """Vendors never get a pending phase: the officer is mandatory."""
    if not officer_ref:
        raise errors.ValidationError("officerRef is required for vendor movements")
    vendor = directory_service.get_vendor(db, vendor_ref)
    if vendor is not None and not vendor.is_active:
        raise errors.ValidationError(f"Vendor {vendor.name} is inactive")
    final_remarks = (remarks or "").strip()
    if vehicle_number and vehicle_number.strip():
        vehicle = f"Vehicle: {vehicle_number.strip()}"
        final_remarks = f"{final_remarks} | {vehicle}" if final_remarks else vehicle
    log = record_movement(db, EntityType.VENDOR, movement_type, vendor_ref,
                          officer_ref=officer_ref, remarks=final_remarks or None)
    logger.info(f"[Orchestrator] Vendor {vendor_ref} {log.movement_type} recorded by {officer_ref}")
    return log


def record_guest_movement_by_code(db: Session, code: str, movement_type,
                                  officer_ref: str) -> tuple[MovementLog, GuestVisitRequest, Guest]:
    """Gate staff types the guest's code; only approved guests get through."""
    if not officer_ref:
        raise errors.ValidationError("officerRef is required for guest movements")
    request, guest = visit_service.find_guest_by_code(db, code)
    host = directory_service.get_display_name(db, request.student_id)
    remarks = f"Guest of {host}. Code: {guest.entry_code}. Purpose: {request.purpose}"
    log = record_movement(db, EntityType.GUEST, movement_type, guest.id,
                          officer_ref=officer_ref, remarks=remarks)
    return log, request, guest


def create_visit_request(db: Session, student_ref: str, purpose: str, arrival_date: date,
                         entry_time_start, exit_time_end, guests: Iterable,
                         vehicle_numbers: Optional[str] = None, hostel_room: Optional[str] = None,
                         student_mobile: Optional[str] = None) -> GuestVisitRequest:
    with atomic(db):
        request = visit_service.create_visit_request(
            db, student_ref, purpose, arrival_date, entry_time_start, exit_time_end, guests,
            vehicle_numbers=vehicle_numbers, hostel_room=hostel_room, student_mobile=student_mobile,
        )
    return request


def resolve_visit_request(db: Session, request_id: str, outcome, approver_ref: str,
                          rejection_reason: Optional[str] = None,
                          code_generator: Optional[CodeGenerator] = None) -> VisitResolution:
    with atomic(db):
        directory_service.require_officer(db, approver_ref)
        resolution = visit_service.resolve_visit_request(
            db, request_id, outcome, approver_ref,
            rejection_reason=rejection_reason, code_generator=code_generator,
        )
    if resolution.issuance_failures:
        logger.error(
            f"[Orchestrator] Request {request_id} approved with "
            f"{len(resolution.issuance_failures)} guest(s) still lacking a code"
        )
    return resolution


def reissue_missing_codes(db: Session, request_id: str,
                          code_generator: Optional[CodeGenerator] = None) -> VisitResolution:
    with atomic(db):
        resolution = visit_service.reissue_missing_codes(db, request_id, code_generator=code_generator)
    return resolution


def expire_visit_requests(db: Session, as_of: Optional[date] = None) -> list[str]:
    with atomic(db):
        expired = visit_service.expire_visit_requests(db, as_of=as_of)
    return expired
