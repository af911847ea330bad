# gatehouse/models/entry.py
"""
Gate entry table: one row per vehicle/driver entering a facility.
exit_time is NULL while the vehicle is on premises and is set once on exit.
cached_data holds a denormalised snapshot of driver/vehicle fields taken at
registration time (driver_name, driver_document, vehicle_plate, ...).
"""

import uuid
from sqlalchemy import Column, String, DateTime, Text, JSON
from gatehouse.database import Base


class Entry(Base):
    __tablename__ = "entries"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    tenant_id = Column(String(64), nullable=False, index=True)
    entry_time = Column(DateTime, index=True)
    exit_time = Column(DateTime)
    driver_id = Column(String(64))
    vehicle_id = Column(String(64))
    cached_data = Column(JSON)
    notes = Column(Text)
    registered_by = Column(String(64))
    exit_registered_by = Column(String(64))

    def __repr__(self):
        return f"<Entry {self.id} tenant={self.tenant_id} open={self.exit_time is None}>"
