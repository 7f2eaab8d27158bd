# campusgate/services/occupancy_service.py
"""
Occupancy: is an entity inside or outside campus right now?

Derived from the ledger on every call, never stored:
  - only COMPLETED rows count (PENDING requests and REJECTED rows never move anyone)
  - the latest COMPLETED row by timestamp wins; ENTRY → inside, EXIT → outside
  - no COMPLETED row at all → inside (a student who never logged a movement
    is assumed to already be on campus)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from campusgate.models.enums import EntityType, MovementStatus, MovementType
from campusgate.models.movement_log import MovementLog
from campusgate.services.directory_service import list_student_ids
from campusgate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OccupancyRecord:
    entity_ref: str
    is_inside: bool
    last_movement_time: Optional[datetime] = None
    last_movement_type: Optional[str] = None

    @classmethod
    def default(cls, entity_ref: str) -> "OccupancyRecord":
        return cls(entity_ref=entity_ref, is_inside=True)

    @classmethod
    def from_movement(cls, entity_ref: str, movement_type: str, timestamp: datetime) -> "OccupancyRecord":
        return cls(
            entity_ref=entity_ref,
            is_inside=movement_type == MovementType.ENTRY.value,
            last_movement_time=timestamp,
            last_movement_type=movement_type,
        )


def get_occupancy(db: Session, entity_ref: str) -> OccupancyRecord:
    latest = (
        db.query(MovementLog.movement_type, MovementLog.timestamp)
        .filter(
            MovementLog.status == MovementStatus.COMPLETED.value,
            or_(
                MovementLog.student_id == entity_ref,
                MovementLog.guest_id == entity_ref,
                MovementLog.vendor_id == entity_ref,
            ),
        )
        .order_by(MovementLog.timestamp.desc(), MovementLog.id.desc())
        .first()
    )
    if latest is None:
        return OccupancyRecord.default(entity_ref)
    return OccupancyRecord.from_movement(entity_ref, latest.movement_type, latest.timestamp)


def get_occupancy_batch(db: Session, entity_refs: Optional[Iterable[str]] = None) -> dict[str, OccupancyRecord]:
    """
    Occupancy for many entities from ONE ranked scan of the ledger.
    No refs → every student in the directory (dashboard view).
    """
    refs = None if entity_refs is None else list(dict.fromkeys(entity_refs))
    population = refs if refs is not None else list_student_ids(db)
    if not population:
        return {}

    entity_ref = func.coalesce(MovementLog.student_id, MovementLog.guest_id, MovementLog.vendor_id)
    ranked = (
        select(
            entity_ref.label("ref"),
            MovementLog.movement_type.label("movement_type"),
            MovementLog.timestamp.label("timestamp"),
            func.row_number().over(
                partition_by=entity_ref,
                order_by=(MovementLog.timestamp.desc(), MovementLog.id.desc()),
            ).label("rn"),
        )
        .where(MovementLog.status == MovementStatus.COMPLETED.value)
    )
    if refs is not None:
        ranked = ranked.where(entity_ref.in_(refs))
    else:
        ranked = ranked.where(MovementLog.entity_type == EntityType.STUDENT.value)
    ranked = ranked.subquery()

    latest = {
        row.ref: OccupancyRecord.from_movement(row.ref, row.movement_type, row.timestamp)
        for row in db.execute(
            select(ranked.c.ref, ranked.c.movement_type, ranked.c.timestamp).where(ranked.c.rn == 1)
        )
    }
    result = {ref: latest.get(ref) or OccupancyRecord.default(ref) for ref in population}
    inside = sum(1 for r in result.values() if r.is_inside)
    logger.debug(f"[Occupancy] {inside}/{len(result)} inside")
    return result
