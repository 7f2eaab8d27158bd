# campusgate/models/subject.py
"""
Who a movement is about. Exactly one of three variants, so a ledger row can
never point at two entities, or at none.

The variant also owns the status rule for new rows: only a student acting
without an officer produces a PENDING request. Guests and vendors are logged
by gate staff who are physically present, so their rows are born COMPLETED.
"""

from dataclasses import dataclass
from typing import ClassVar, Optional, Union

from campusgate.errors import ValidationError
from campusgate.models.enums import EntityType, MovementStatus


@dataclass(frozen=True)
class StudentSubject:
    ref: str
    entity_type: ClassVar[EntityType] = EntityType.STUDENT
    column: ClassVar[str] = "student_id"

    def initial_status(self, officer_ref: Optional[str]) -> MovementStatus:
        return MovementStatus.PENDING if officer_ref is None else MovementStatus.COMPLETED


@dataclass(frozen=True)
class _WitnessedSubject:
    ref: str

    def initial_status(self, officer_ref: Optional[str]) -> MovementStatus:
        if officer_ref is None:
            raise ValidationError(f"officerRef is required for {self.entity_type.value} movements")
        return MovementStatus.COMPLETED


@dataclass(frozen=True)
class GuestSubject(_WitnessedSubject):
    entity_type: ClassVar[EntityType] = EntityType.GUEST
    column: ClassVar[str] = "guest_id"


@dataclass(frozen=True)
class VendorSubject(_WitnessedSubject):
    entity_type: ClassVar[EntityType] = EntityType.VENDOR
    column: ClassVar[str] = "vendor_id"


MovementSubject = Union[StudentSubject, GuestSubject, VendorSubject]

_VARIANTS = {cls.entity_type: cls for cls in (StudentSubject, GuestSubject, VendorSubject)}
REF_COLUMNS = tuple(cls.column for cls in _VARIANTS.values())


def subject_for(entity_type, ref: Optional[str]) -> MovementSubject:
    """Build the variant for an entity type string/enum. Raises ValidationError on bad input."""
    try:
        kind = EntityType(entity_type)
    except ValueError:
        raise ValidationError(
            f"Invalid entityType '{entity_type}'. Must be one of STUDENT, GUEST, VENDOR"
        ) from None
    if not ref or not str(ref).strip():
        raise ValidationError(f"{_VARIANTS[kind].column} is required for {kind.value} entity type")
    return _VARIANTS[kind](str(ref).strip())
