# campusgate/models/enums.py
"""Closed vocabularies stored as plain strings in the tables."""

import enum


class MovementType(str, enum.Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"


class EntityType(str, enum.Enum):
    STUDENT = "STUDENT"
    GUEST = "GUEST"
    VENDOR = "VENDOR"


class MovementStatus(str, enum.Enum):
    PENDING = "PENDING"       # STUDENT only
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class VisitStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"


class UserRole(str, enum.Enum):
    STUDENT = "STUDENT"
    GATE_STAFF = "GATE_STAFF"
    COUNCIL = "COUNCIL"


def values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]
