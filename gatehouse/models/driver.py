# gatehouse/models/driver.py
"""Registered drivers table. Used for totals and photo lookup in rankings."""

import uuid
from sqlalchemy import Column, String, DateTime
from gatehouse.database import Base


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    tenant_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    document = Column(String(50))
    photo_url = Column(String(500))
    created_by = Column(String(64))
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Driver {self.id} name={self.name}>"
