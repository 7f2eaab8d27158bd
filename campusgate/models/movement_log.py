# campusgate/models/movement_log.py
"""
The movement ledger. One row per entry/exit event (or student request).
Rows are appended and transitioned, never deleted or rewritten.

Store-level guards mirror the service rules:
  - exactly one of student_id / guest_id / vendor_id, matching entity_type
  - PENDING only for STUDENT rows, and only while no officer is attached
  - at most one PENDING row per (student, movement_type)

`timestamp` is last-touched time (overwritten on resolution) and drives
ordering and occupancy. created_at / resolved_at keep both ends.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, ForeignKey, CheckConstraint, Index, text,
)
from campusgate.database import Base
from campusgate.models.enums import EntityType, MovementStatus, MovementType, values
from campusgate.models.subject import (
    GuestSubject, MovementSubject, REF_COLUMNS, StudentSubject, VendorSubject,
)


def _in(column: str, enum_cls) -> str:
    return f"{column} IN (" + ", ".join(f"'{v}'" for v in values(enum_cls)) + ")"


_SINGLE_REF = " OR ".join(
    f"(entity_type = '{kind}' AND "
    + " AND ".join(f"{col} IS {'NOT ' if col == own else ''}NULL" for col in REF_COLUMNS)
    + ")"
    for kind, own in (("STUDENT", "student_id"), ("GUEST", "guest_id"), ("VENDOR", "vendor_id"))
)


class MovementLog(Base):
    __tablename__ = "movement_logs"
    __table_args__ = (
        CheckConstraint(_in("movement_type", MovementType), name="movement_logs_type_check"),
        CheckConstraint(_in("entity_type", EntityType), name="movement_logs_entity_check"),
        CheckConstraint(_in("status", MovementStatus), name="movement_logs_status_check"),
        CheckConstraint(_SINGLE_REF, name="movement_logs_single_ref_check"),
        CheckConstraint("status <> 'PENDING' OR entity_type = 'STUDENT'",
                        name="movement_logs_pending_student_check"),
        CheckConstraint(
            "(status = 'PENDING' AND officer_id IS NULL) OR (status <> 'PENDING' AND officer_id IS NOT NULL)",
            name="movement_logs_officer_check",
        ),
        Index(
            "uq_movement_logs_one_pending", "student_id", "movement_type",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
        Index("ix_movement_logs_status_timestamp", "status", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    movement_type = Column(String(10), nullable=False)            # ENTRY | EXIT
    entity_type = Column(String(10), nullable=False, index=True)  # STUDENT | GUEST | VENDOR
    student_id = Column(String(36), ForeignKey("users.id"), index=True)
    guest_id = Column(String(36), ForeignKey("guests.id"), index=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), index=True)
    status = Column(String(10), nullable=False)                   # PENDING | COMPLETED | REJECTED
    officer_id = Column(String(36), ForeignKey("users.id"))       # recording / resolving gate officer
    timestamp = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)
    resolved_at = Column(DateTime)
    remarks = Column(Text)

    @property
    def subject(self) -> MovementSubject:
        if self.student_id is not None:
            return StudentSubject(self.student_id)
        if self.guest_id is not None:
            return GuestSubject(self.guest_id)
        return VendorSubject(self.vendor_id)

    @subject.setter
    def subject(self, subject: MovementSubject):
        for col in REF_COLUMNS:
            setattr(self, col, subject.ref if col == subject.column else None)
        self.entity_type = subject.entity_type.value

    @property
    def entity_ref(self) -> str:
        return self.subject.ref

    def __repr__(self):
        return f"<MovementLog {self.id} {self.entity_type}:{self.entity_ref} {self.movement_type} {self.status}>"
