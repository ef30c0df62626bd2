"""Signed-in principal lookup.

Client-side authentication lives outside this package; the backup engine
only needs to know who the current user is.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from .config import get_config


class AuthContext(Protocol):
    """Anything that can report the currently signed-in user."""

    @property
    def current_user_id(self) -> Optional[str]: ...


@dataclass
class UserSession:
    """A fixed principal, e.g. the local user configured in the environment."""

    user_id: Optional[str] = None

    @property
    def current_user_id(self) -> Optional[str]:
        return self.user_id

    @classmethod
    def from_config(cls) -> "UserSession":
        """Create a session for STUDYTRACKER_USER_ID (may be anonymous)."""
        return cls(user_id=get_config().user_id)
