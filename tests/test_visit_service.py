# tests/test_visit_service.py
"""Unit tests for the guest visit workflow."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import date, time
from campusgate import errors
from campusgate.models.enums import VisitStatus
from campusgate.models.guest_request import Guest, GuestVisitRequest
from campusgate.services import gate_orchestrator, visit_service
from campusgate.services.entry_code_service import seeded_generator

GUESTS = [
    {"name": "Meena Rao", "relation": "Mother", "mobile": "9876500001"},
    {"name": "Vikram Rao", "relation": "Father"},
]


def submit(db, student, guests=GUESTS, **overrides):
    fields = dict(
        purpose="Parents' day",
        arrival_date=date(2030, 3, 15),
        entry_time_start=time(10, 0),
        exit_time_end=time(18, 0),
        guests=guests,
    )
    fields.update(overrides)
    return gate_orchestrator.create_visit_request(db, student.id, **fields)


class TestCreateVisitRequest:
    def test_pending_without_codes(self, db, student):
        request = submit(db, student)
        assert request.status == VisitStatus.PENDING.value
        assert [g.name for g in request.guests] == ["Meena Rao", "Vikram Rao"]
        assert all(g.entry_code is None for g in request.guests)

    def test_snapshots_student_profile(self, db, student):
        request = submit(db, student)
        student.hostel_room = "C-999"
        db.commit()
        assert visit_service.get_visit_request(db, request.id).hostel_room == "B-101"
        assert request.student_mobile == "9000000000"

    def test_explicit_room_overrides_profile(self, db, student):
        assert submit(db, student, hostel_room="A-1").hostel_room == "A-1"

    def test_needs_a_guest(self, db, student):
        with pytest.raises(errors.ValidationError):
            submit(db, student, guests=[])

    def test_guest_needs_name_and_relation(self, db, student):
        with pytest.raises(errors.ValidationError):
            submit(db, student, guests=[{"name": "X", "relation": " "}])

    def test_window_must_be_ordered(self, db, student):
        with pytest.raises(errors.ValidationError):
            submit(db, student, entry_time_start=time(19, 0), exit_time_end=time(9, 0))

    def test_purpose_required(self, db, student):
        with pytest.raises(errors.ValidationError):
            submit(db, student, purpose="   ")

    def test_unknown_student(self, db):
        class Nobody:
            id = "missing"
        with pytest.raises(errors.EntityNotFound):
            submit(db, Nobody)
        assert db.query(GuestVisitRequest).count() == 0


class TestResolveVisitRequest:
    def test_approve_issues_distinct_codes(self, db, student, council):
        request = submit(db, student)
        resolution = gate_orchestrator.resolve_visit_request(db, request.id, "APPROVED", council.id)
        codes = [g.entry_code for g in resolution.request.guests]
        assert resolution.request.status == VisitStatus.APPROVED.value
        assert resolution.request.approved_by == council.id
        assert all(codes) and len(set(codes)) == len(codes)
        assert resolution.issuance_failures == []

    def test_reject_keeps_reason_and_no_codes(self, db, student, council):
        request = submit(db, student)
        resolution = gate_orchestrator.resolve_visit_request(
            db, request.id, "REJECTED", council.id, rejection_reason="Exam week",
        )
        assert resolution.request.status == VisitStatus.REJECTED.value
        assert resolution.request.rejection_reason == "Exam week"
        assert all(g.entry_code is None for g in resolution.request.guests)

    def test_cannot_resolve_twice(self, db, student, council):
        request = submit(db, student)
        gate_orchestrator.resolve_visit_request(db, request.id, "REJECTED", council.id)
        with pytest.raises(errors.InvalidTransition):
            gate_orchestrator.resolve_visit_request(db, request.id, "APPROVED", council.id)
        assert db.query(Guest).filter(Guest.entry_code.isnot(None)).count() == 0

    def test_round_trip_then_second_approval_fails(self, db, student, council):
        request = submit(db, student)
        fetched = visit_service.get_visit_request(db, request.id)
        assert len(fetched.guests) == 2
        assert [g.entry_code for g in fetched.guests] == [None, None]

        gate_orchestrator.resolve_visit_request(db, request.id, "APPROVED", council.id)
        codes = [g.entry_code for g in visit_service.get_visit_request(db, request.id).guests]
        assert all(codes) and codes[0] != codes[1]
        with pytest.raises(errors.InvalidTransition):
            gate_orchestrator.resolve_visit_request(db, request.id, "APPROVED", council.id)
        assert [g.entry_code for g in visit_service.get_visit_request(db, request.id).guests] == codes

    def test_invalid_outcome(self, db, student, council):
        request = submit(db, student)
        with pytest.raises(errors.ValidationError):
            gate_orchestrator.resolve_visit_request(db, request.id, "COMPLETED", council.id)

    def test_unknown_request(self, db, council):
        with pytest.raises(errors.EntityNotFound):
            gate_orchestrator.resolve_visit_request(db, "nope", "APPROVED", council.id)

    def test_unknown_approver_leaves_request_pending(self, db, student):
        request = submit(db, student)
        with pytest.raises(errors.InvalidApprover):
            gate_orchestrator.resolve_visit_request(db, request.id, "APPROVED", "ghost-user")
        db.expire_all()
        assert visit_service.get_visit_request(db, request.id).status == VisitStatus.PENDING.value

    def test_student_cannot_approve(self, db, make_student):
        host, other = make_student("Host"), make_student("Other")
        request = submit(db, host)
        with pytest.raises(errors.InvalidApprover):
            gate_orchestrator.resolve_visit_request(db, request.id, "APPROVED", other.id)

    def test_failed_issuance_reported_and_reissued(self, db, student, council):
        request = submit(db, student)
        taken = submit(db, student, guests=[{"name": "Early", "relation": "Friend"}])
        gate_orchestrator.resolve_visit_request(db, taken.id, "APPROVED", council.id,
                                                code_generator=lambda: "1234")

        resolution = gate_orchestrator.resolve_visit_request(
            db, request.id, "APPROVED", council.id, code_generator=lambda: "1234",
        )
        assert resolution.request.status == VisitStatus.APPROVED.value
        assert len(resolution.failed_guest_ids) == 2

        codes = iter(["2001", "2002"])
        retry = gate_orchestrator.reissue_missing_codes(db, request.id, code_generator=lambda: next(codes))
        assert retry.issuance_failures == []
        assert sorted(g.entry_code for g in retry.request.guests) == ["2001", "2002"]

    def test_reissue_requires_approval(self, db, student):
        request = submit(db, student)
        with pytest.raises(errors.InvalidTransition):
            gate_orchestrator.reissue_missing_codes(db, request.id)

    def test_ten_thousand_codes_are_unique(self, db, make_student, council):
        """The 4-digit space has 9000 codes, so some approvals must report failures."""
        host = make_student("Busy Host")
        generator = seeded_generator(20240101)
        requests = [
            GuestVisitRequest(
                student_id=host.id, purpose="Load", arrival_date=date(2030, 1, 1),
                entry_time_start=time(9, 0), exit_time_end=time(17, 0),
                status=VisitStatus.PENDING.value,
                guests=[Guest(position=0, name=f"G{i}", relation="Friend")],
            )
            for i in range(10000)
        ]
        db.add_all(requests)
        db.commit()

        failures = 0
        for request in requests:
            resolution = visit_service.resolve_visit_request(
                db, request.id, "APPROVED", council.id, code_generator=generator,
            )
            failures += len(resolution.issuance_failures)
        db.commit()

        codes = [row[0] for row in db.query(Guest.entry_code).filter(Guest.entry_code.isnot(None)).all()]
        assert len(codes) == len(set(codes))
        assert len(codes) + failures == 10000
        assert len(codes) <= 9000


class TestGuestLookup:
    def test_find_by_code(self, db, student, council):
        request = submit(db, student)
        resolution = gate_orchestrator.resolve_visit_request(db, request.id, "APPROVED", council.id)
        guest = resolution.request.guests[1]
        found_request, found_guest = visit_service.find_guest_by_code(db, guest.entry_code)
        assert found_request.id == request.id
        assert found_guest.id == guest.id

    def test_unknown_code(self, db):
        with pytest.raises(errors.EntityNotFound):
            visit_service.find_guest_by_code(db, "0000")

    def test_code_without_approval_is_refused(self, db, student):
        """A code column alone is not enough: the request must be APPROVED."""
        request = submit(db, student)
        request.guests[0].entry_code = "4444"
        db.commit()
        with pytest.raises(errors.EntityNotFound):
            visit_service.find_guest_by_code(db, "4444")

    def test_code_of_rejected_request_is_refused(self, db, student, council):
        request = submit(db, student)
        gate_orchestrator.resolve_visit_request(db, request.id, "REJECTED", council.id)
        request.guests[0].entry_code = "5151"
        db.commit()
        with pytest.raises(errors.EntityNotFound):
            visit_service.find_guest_by_code(db, "5151")

    def test_guest_movement_by_code(self, db, student, council, officer):
        request = submit(db, student)
        resolution = gate_orchestrator.resolve_visit_request(db, request.id, "APPROVED", council.id)
        guest = resolution.request.guests[0]
        log, found_request, found_guest = gate_orchestrator.record_guest_movement_by_code(
            db, guest.entry_code, "ENTRY", officer.id,
        )
        assert log.status == "COMPLETED"
        assert log.guest_id == guest.id
        assert log.remarks == f"Guest of Asha Rao. Code: {guest.entry_code}. Purpose: Parents' day"


class TestExpireVisitRequests:
    def test_expires_only_stale_pending(self, db, student, council):
        stale = submit(db, student, arrival_date=date(2030, 1, 1))
        fresh = submit(db, student, arrival_date=date(2030, 2, 1))
        approved = submit(db, student, arrival_date=date(2030, 1, 1))
        gate_orchestrator.resolve_visit_request(db, approved.id, "APPROVED", council.id)

        expired = gate_orchestrator.expire_visit_requests(db, as_of=date(2030, 1, 15))
        assert expired == [stale.id]
        db.expire_all()
        assert visit_service.get_visit_request(db, stale.id).status == VisitStatus.EXPIRED.value
        assert visit_service.get_visit_request(db, fresh.id).status == VisitStatus.PENDING.value
        assert visit_service.get_visit_request(db, approved.id).status == VisitStatus.APPROVED.value

    def test_expired_request_cannot_be_approved(self, db, student, council):
        request = submit(db, student, arrival_date=date(2030, 1, 1))
        gate_orchestrator.expire_visit_requests(db, as_of=date(2030, 1, 2))
        with pytest.raises(errors.InvalidTransition):
            gate_orchestrator.resolve_visit_request(db, request.id, "APPROVED", council.id)
