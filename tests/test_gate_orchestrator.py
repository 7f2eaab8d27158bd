# tests/test_gate_orchestrator.py
"""Unit tests for vendor flows, directory checks and transaction wrapping."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import date, time
from unittest.mock import MagicMock, patch
from sqlalchemy.exc import OperationalError
from campusgate import errors
from campusgate.database import atomic
from campusgate.models.movement_log import MovementLog
from campusgate.services import directory_service, gate_orchestrator


def submit_visit(db, student):
    return gate_orchestrator.create_visit_request(
        db, student.id, "Weekend visit", date(2030, 6, 1), time(10, 0), time(17, 0),
        [{"name": "Nila", "relation": "Cousin"}],
    )


class TestVendorMovement:
    def test_vehicle_number_appended_to_remarks(self, db, vendor, officer):
        log = gate_orchestrator.record_vendor_movement(
            db, vendor.id, "ENTRY", officer.id, vehicle_number=" KA01AB1234 ", remarks="Vegetables",
        )
        assert log.remarks == "Vegetables | Vehicle: KA01AB1234"
        assert log.status == "COMPLETED"

    def test_vehicle_only(self, db, vendor, officer):
        log = gate_orchestrator.record_vendor_movement(db, vendor.id, "EXIT", officer.id, vehicle_number="TN09")
        assert log.remarks == "Vehicle: TN09"

    def test_no_remarks(self, db, vendor, officer):
        log = gate_orchestrator.record_vendor_movement(db, vendor.id, "EXIT", officer.id)
        assert log.remarks is None

    def test_officer_required(self, db, vendor):
        with pytest.raises(errors.ValidationError):
            gate_orchestrator.record_vendor_movement(db, vendor.id, "ENTRY", "")

    def test_inactive_vendor_refused(self, db, vendor, officer):
        vendor.is_active = False
        db.commit()
        with pytest.raises(errors.ValidationError):
            gate_orchestrator.record_vendor_movement(db, vendor.id, "ENTRY", officer.id)

    def test_unknown_vendor(self, db, officer):
        with pytest.raises(errors.EntityNotFound):
            gate_orchestrator.record_vendor_movement(db, "no-vendor", "ENTRY", officer.id)


class TestGuestMovement:
    def test_unknown_code(self, db, officer):
        with pytest.raises(errors.EntityNotFound):
            gate_orchestrator.record_guest_movement_by_code(db, "9999", "ENTRY", officer.id)
        assert db.query(MovementLog).count() == 0

    def test_officer_required(self, db):
        with pytest.raises(errors.ValidationError):
            gate_orchestrator.record_guest_movement_by_code(db, "9999", "ENTRY", None)

    @pytest.mark.parametrize("outcome", [None, "REJECTED"])
    def test_guest_of_unapproved_request_refused_by_ref(self, db, student, council, officer, outcome):
        request = submit_visit(db, student)
        if outcome:
            gate_orchestrator.resolve_visit_request(db, request.id, outcome, council.id)
        guest = request.guests[0]
        with pytest.raises(errors.EntityNotFound):
            gate_orchestrator.record_movement(db, "GUEST", "ENTRY", guest.id, officer_ref=officer.id)
        assert db.query(MovementLog).count() == 0

    def test_guest_of_expired_request_refused_by_ref(self, db, student, officer):
        request = submit_visit(db, student)
        gate_orchestrator.expire_visit_requests(db, as_of=date(2031, 1, 1))
        with pytest.raises(errors.EntityNotFound):
            gate_orchestrator.record_movement(db, "GUEST", "ENTRY", request.guests[0].id,
                                              officer_ref=officer.id)

    def test_guest_of_approved_request_logged_by_ref(self, db, student, council, officer):
        request = submit_visit(db, student)
        gate_orchestrator.resolve_visit_request(db, request.id, "APPROVED", council.id)
        log = gate_orchestrator.record_movement(db, "GUEST", "ENTRY", request.guests[0].id,
                                                officer_ref=officer.id)
        assert log.status == "COMPLETED"
        assert log.guest_id == request.guests[0].id


class TestDirectory:
    def test_display_name_fallback(self, db, student, vendor):
        assert directory_service.get_display_name(db, student.id) == "Asha Rao"
        assert directory_service.get_display_name(db, vendor.id) == "Ravi Kumar"
        assert directory_service.get_display_name(db, "missing") == "Unknown"
        assert directory_service.get_display_name(db, None) == "Unknown"

    def test_register_user_normalises_role(self, db):
        with atomic(db):
            user = directory_service.register_user(db, " Priya ", "gate_staff")
        assert user.role == "GATE_STAFF"
        assert user.full_name == "Priya"

    def test_register_user_bad_role(self, db):
        with pytest.raises(errors.ValidationError):
            directory_service.register_user(db, "Priya", "janitor")

    def test_list_vendors_filter(self, db, vendor):
        with atomic(db):
            directory_service.register_vendor(db, "Old Laundry", is_active=False)
        assert [v.name for v in directory_service.list_vendors(db, is_active=True)] == ["Ravi Kumar"]
        assert len(directory_service.list_vendors(db)) == 2


class TestAtomic:
    def test_store_failure_becomes_persistence_error(self):
        db = MagicMock()
        db.commit.side_effect = OperationalError("COMMIT", {}, Exception("connection lost"))
        with pytest.raises(errors.PersistenceError) as exc_info:
            with atomic(db):
                pass
        db.rollback.assert_called_once()
        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_typed_errors_pass_through(self):
        db = MagicMock()
        with pytest.raises(errors.InvalidTransition):
            with atomic(db):
                raise errors.InvalidTransition("already resolved")
        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_store_failure_during_record(self, db, student, officer):
        with patch("campusgate.services.ledger_service.record_movement",
                   side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
            with pytest.raises(errors.PersistenceError):
                gate_orchestrator.record_movement(db, "STUDENT", "ENTRY", student.id, officer_ref=officer.id)
        assert db.query(MovementLog).count() == 0
