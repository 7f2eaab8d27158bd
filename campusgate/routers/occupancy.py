# campusgate/routers/occupancy.py
"""Derived inside/outside state - read only, computed from the ledger on every call."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from campusgate.database import get_db
from campusgate.schemas.occupancy import OccupancyBatchOut, OccupancyOut
from campusgate.services.occupancy_service import OccupancyRecord, get_occupancy, get_occupancy_batch

router = APIRouter()


def _out(record: OccupancyRecord) -> OccupancyOut:
    return OccupancyOut(
        entity_ref=record.entity_ref,
        is_inside=record.is_inside,
        last_movement_time=record.last_movement_time,
        last_movement_type=record.last_movement_type,
    )


@router.get("/occupancy", response_model=OccupancyBatchOut, summary="Occupancy for many entities")
def get_all_occupancy(entity_refs: Optional[str] = Query(None, alias="entityRefs"), db: Session = Depends(get_db)):
    """Comma-separated entityRefs, or every student when omitted."""
    refs = [r.strip() for r in entity_refs.split(",") if r.strip()] if entity_refs else None
    batch = get_occupancy_batch(db, refs)
    return OccupancyBatchOut(
        occupancy={ref: _out(rec) for ref, rec in batch.items()},
        total=len(batch),
        inside=sum(1 for rec in batch.values() if rec.is_inside),
    )


@router.get("/occupancy/{entity_ref}", response_model=OccupancyOut, summary="Occupancy for one entity")
def get_entity_occupancy(entity_ref: str, db: Session = Depends(get_db)):
    return _out(get_occupancy(db, entity_ref))
