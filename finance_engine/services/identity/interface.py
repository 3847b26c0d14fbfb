"""
Session / Identity Interface

Authentication lives outside the engine. The engine only needs one
answer from it: which user is making this request, if any.
"""

from abc import ABC, abstractmethod
from typing import Optional


class UnauthorizedError(Exception):
    """No valid session for the request."""
    pass


class SessionProvider(ABC):
    """Resolves the authenticated user of the current request."""

    @abstractmethod
    async def get_current_user_id(self) -> Optional[str]:
        """
        Return the authenticated user id, or None when there is no session.
        """
        pass

    async def require_user_id(self) -> str:
        """
        Return the authenticated user id.

        Raises:
            UnauthorizedError: If there is no valid session
        """
        user_id = await self.get_current_user_id()
        if not user_id:
            raise UnauthorizedError("No authenticated session")
        return user_id


class StaticSessionProvider(SessionProvider):
    """Session provider bound to a fixed user (or to nobody)."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id

    async def get_current_user_id(self) -> Optional[str]:
        return self._user_id
