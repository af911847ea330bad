# gatehouse/models/tenant.py
"""
Tenants table: one row per company/site.
A "matriz" (head office) may own "filial" (branch) rows pointing back to it
through parent_id. The relation is a plain lookup: no FK constraint, so
dangling or cyclic parent_id values are possible and tolerated by readers.
"""

import uuid
from sqlalchemy import Column, String, DateTime
from gatehouse.database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    name = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False, default="matriz")   # matriz | filial
    parent_id = Column(String(64), index=True)                   # set on filial rows
    owner_id = Column(String(64), index=True)
    created_by = Column(String(64), index=True)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Tenant {self.id} name={self.name} type={self.type}>"
