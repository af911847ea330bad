# gatehouse/models/profile.py
"""
User profiles table: role and tenant scope for each authenticated user.
allowed_tenants / allowed_pages are stored as JSON; legacy rows may hold a
bare string instead of a list (normalised by schemas.profile.UserProfile).
"""

from sqlalchemy import Column, String, DateTime, JSON
from gatehouse.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    user_id = Column(String(64), primary_key=True)
    email = Column(String(200))
    role = Column(String(20), nullable=False, default="operator")   # admin | operator | viewer
    tenant_id = Column(String(64), index=True)
    allowed_tenants = Column(JSON)
    allowed_pages = Column(JSON)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Profile {self.user_id} role={self.role} tenant={self.tenant_id}>"
