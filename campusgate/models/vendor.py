# campusgate/models/vendor.py
"""
Registered vendors (canteen, laundry, courier...).
Vendor movements are always logged by gate staff and land COMPLETED.
"""

import uuid

from sqlalchemy import Column, String, DateTime, Boolean
from campusgate.database import Base
from campusgate.utils.clock import utcnow


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False, index=True)
    company_name = Column(String(200))
    category = Column(String(100))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Vendor {self.id} name={self.name} active={self.is_active}>"
