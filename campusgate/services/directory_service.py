# campusgate/services/directory_service.py
"""
Entity directory: students / staff (users), vendors, and guests.
Read-only for the ledger and visit workflow. Registration helpers exist for
the seed script and the vendor onboarding endpoint; profile editing does not.
"""

from typing import Optional
from sqlalchemy.orm import Session
from campusgate import errors
from campusgate.models.enums import EntityType, UserRole
from campusgate.models.guest_request import Guest
from campusgate.models.user import User
from campusgate.models.vendor import Vendor
from campusgate.utils.logger import get_logger

logger = get_logger(__name__)

OFFICER_ROLES = {UserRole.GATE_STAFF.value, UserRole.COUNCIL.value}


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)


def get_vendor(db: Session, vendor_id: str) -> Optional[Vendor]:
    return db.get(Vendor, vendor_id)


def get_guest(db: Session, guest_id: str) -> Optional[Guest]:
    return db.get(Guest, guest_id)


def list_vendors(db: Session, is_active: Optional[bool] = None) -> list[Vendor]:
    q = db.query(Vendor)
    if is_active is not None:
        q = q.filter(Vendor.is_active == is_active)
    return q.order_by(Vendor.name.asc()).all()


def list_student_ids(db: Session) -> list[str]:
    return [row[0] for row in db.query(User.id).filter(User.role == UserRole.STUDENT.value).all()]


def entity_exists(db: Session, ref: str, entity_type) -> bool:
    """True if `ref` names an existing entity of `entity_type`."""
    kind = EntityType(entity_type)
    if kind == EntityType.STUDENT:
        user = db.get(User, ref)
        return user is not None and user.role == UserRole.STUDENT.value
    if kind == EntityType.GUEST:
        return db.get(Guest, ref) is not None
    return db.get(Vendor, ref) is not None


def get_display_name(db: Session, ref: Optional[str]) -> str:
    """Human name for any directory ref. Falls back to 'Unknown'."""
    if not ref:
        return "Unknown"
    for model, attr in ((User, "full_name"), (Guest, "name"), (Vendor, "name")):
        row = db.get(model, ref)
        if row is not None:
            return getattr(row, attr) or "Unknown"
    return "Unknown"


def require_entity(db: Session, ref: str, entity_type):
    """Fail fast with EntityNotFound instead of writing an orphaned reference."""
    if not entity_exists(db, ref, entity_type):
        kind = EntityType(entity_type).value
        logger.warning(f"[Directory] Unknown {kind} reference {ref}")
        raise errors.EntityNotFound(f"{kind.capitalize()} {ref} not found")


def require_officer(db: Session, ref: Optional[str]) -> User:
    """Officers and approvers must be existing staff or council users."""
    if not ref:
        raise errors.ValidationError("An officer / approver reference is required")
    user = db.get(User, ref)
    if user is None:
        logger.warning(f"[Directory] Approver {ref} does not exist")
        raise errors.InvalidApprover(
            f"User with ID {ref} does not exist. Please ensure the user is properly registered."
        )
    if user.role not in OFFICER_ROLES:
        logger.warning(f"[Directory] User {ref} with role {user.role} cannot approve or resolve")
        raise errors.InvalidApprover(f"User {ref} ({user.role}) is not gate staff or council")
    return user


def register_user(db: Session, full_name: str, role: str = UserRole.STUDENT.value, **profile) -> User:
    """Add a directory user. Caller owns the transaction."""
    if not full_name or not full_name.strip():
        raise errors.ValidationError("full_name is required")
    try:
        role = UserRole(role.upper()).value
    except ValueError:
        raise errors.ValidationError(f"Invalid role '{role}'") from None
    user = User(full_name=full_name.strip(), role=role, **profile)
    db.add(user)
    db.flush()
    logger.info(f"[Directory] Registered {role} {user.full_name} ({user.id})")
    return user


def register_vendor(db: Session, name: str, company_name: Optional[str] = None,
                    category: Optional[str] = None, is_active: bool = True) -> Vendor:
    if not name or not name.strip():
        raise errors.ValidationError("Vendor name is required")
    vendor = Vendor(name=name.strip(), company_name=company_name, category=category, is_active=is_active)
    db.add(vendor)
    db.flush()
    logger.info(f"[Directory] Registered vendor {vendor.name} ({vendor.id})")
    return vendor
