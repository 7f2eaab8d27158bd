# campusgate/routers/vendors.py
"""Vendor directory + gate-logged vendor movements (always COMPLETED)."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from campusgate import errors
from campusgate.database import atomic, get_db
from campusgate.models.vendor import Vendor
from campusgate.routers.movements import movement_out
from campusgate.schemas.vendor import VendorCreate, VendorMovementCreate, VendorMovementOut, VendorOut
from campusgate.services import directory_service, gate_orchestrator

router = APIRouter()


def vendor_out(vendor: Vendor) -> VendorOut:
    return VendorOut(
        id=vendor.id,
        name=vendor.name,
        company=vendor.company_name or vendor.name,
        category=vendor.category or "Other",
        is_active=vendor.is_active,
    )


@router.get("/vendors", response_model=list[VendorOut], summary="List vendors")
def list_vendors(is_active: Optional[bool] = Query(None, alias="isActive"), db: Session = Depends(get_db)):
    return [vendor_out(v) for v in directory_service.list_vendors(db, is_active=is_active)]


@router.get("/vendors/{vendor_id}", response_model=VendorOut, summary="Get one vendor")
def get_vendor(vendor_id: str, db: Session = Depends(get_db)):
    vendor = directory_service.get_vendor(db, vendor_id)
    if vendor is None:
        raise errors.EntityNotFound(f"Vendor {vendor_id} not found")
    return vendor_out(vendor)


@router.post("/vendors", response_model=VendorOut, status_code=201, summary="Register a vendor")
def register_vendor(body: VendorCreate, db: Session = Depends(get_db)):
    with atomic(db):
        vendor = directory_service.register_vendor(
            db, body.name, company_name=body.company_name, category=body.category, is_active=body.is_active,
        )
    return vendor_out(vendor)


@router.post("/vendors/{vendor_id}/movement", response_model=VendorMovementOut, status_code=201,
             summary="Log a vendor entry / exit")
def record_vendor_movement(vendor_id: str, body: VendorMovementCreate, db: Session = Depends(get_db)):
    log = gate_orchestrator.record_vendor_movement(
        db, vendor_id, body.movement_type, body.officer_ref,
        vehicle_number=body.vehicle_number, remarks=body.remarks,
    )
    return VendorMovementOut(vendor=vendor_out(directory_service.get_vendor(db, vendor_id)),
                             movement=movement_out(db, log))
