# gatehouse/models/occurrence.py
"""
Occurrences table: incident reports logged at the gatehouse.
Independent of entries: the two are only correlated by time bucket.
"""

import uuid
from sqlalchemy import Column, String, DateTime, Text
from gatehouse.database import Base


class Occurrence(Base):
    __tablename__ = "occurrences"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    tenant_id = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    severity = Column(String(20))
    created_by = Column(String(64))

    def __repr__(self):
        return f"<Occurrence {self.id} title={self.title}>"
