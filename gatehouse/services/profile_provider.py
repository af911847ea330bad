# gatehouse/services/profile_provider.py
"""
Auth/profile provider: who is calling, and what they may see.
The HTTP layer identifies the caller by the X-User-Id header; the profile row
is then read from the profiles table.
"""

from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gatehouse.models.profile import Profile
from gatehouse.schemas.profile import AuthUser, UserProfile
from gatehouse.services.errors import DocumentStoreError, ProfileMissingError
from gatehouse.utils.logger import get_logger

logger = get_logger(__name__)


class ProfileProvider(ABC):
    @abstractmethod
    def current_user(self) -> Optional[AuthUser]:
        ...

    @abstractmethod
    def current_profile(self) -> Optional[UserProfile]:
        ...

    def require(self) -> tuple[AuthUser, UserProfile]:
        """Both user and profile, or ProfileMissingError."""
        user = self.current_user()
        if user is None:
            raise ProfileMissingError("No authenticated user")
        profile = self.current_profile()
        if profile is None:
            raise ProfileMissingError(f"No profile for user {user.id}")
        return user, profile


class StaticProfileProvider(ProfileProvider):
    """Fixed user/profile pair, for scripts and tests."""

    def __init__(self, user: Optional[AuthUser], profile: Optional[UserProfile]):
        self._user = user
        self._profile = profile

    def current_user(self):
        return self._user

    def current_profile(self):
        return self._profile


class SqlProfileProvider(ProfileProvider):
    def __init__(self, db: Session, user_id: Optional[str]):
        self.db = db
        self.user_id = user_id
        self._row = None
        self._loaded = False

    def _load(self) -> Optional[Profile]:
        if not self._loaded and self.user_id:
            try:
                self._row = self.db.query(Profile).filter(Profile.user_id == self.user_id).first()
            except SQLAlchemyError as e:
                raise DocumentStoreError(f"Cannot read profile {self.user_id}: {e}") from e
            self._loaded = True
        return self._row

    def current_user(self) -> Optional[AuthUser]:
        if not self.user_id:
            return None
        row = self._load()
        return AuthUser(id=self.user_id, email=row.email if row else None)

    def current_profile(self) -> Optional[UserProfile]:
        row = self._load()
        if row is None:
            logger.warning(f"[AUTH] No profile row for user {self.user_id}")
            return None
        return UserProfile.model_validate(row)
