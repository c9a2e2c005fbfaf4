"""Session record cache operations."""

from datetime import datetime, timezone
from typing import Any

from app.core.logging import get_logger
from app.services.cache import keys
from app.services.cache.base import BaseCacheOperations
from app.services.cache.constants import TTL_SESSION

logger = get_logger(__name__)

SESSION_FIELDS = ("userId", "name", "email", "role", "loginTime")


class SessionCacheMixin(BaseCacheOperations):
    """Short-lived login records keyed by user id.

    A session record only speeds up profile lookups for an already verified
    token. Its absence never affects whether a request is authenticated.
    """

    session_ttl: int = TTL_SESSION

    async def set_session(
        self,
        user_id: int,
        name: str,
        email: str,
        role: str,
        login_time: datetime | None = None,
    ) -> bool:
        """Write the session record, replacing any previous one."""
        record = {
            "userId": user_id,
            "name": name,
            "email": email,
            "role": role,
            "loginTime": (login_time or datetime.now(timezone.utc)).isoformat(),
        }
        stored = await self.set_json(keys.session_key(user_id), record, self.session_ttl)
        if not stored:
            logger.debug("Session record not stored", user_id=user_id)
        return stored

    async def get_session(self, user_id: int) -> dict[str, Any] | None:
        """Get the session record, or None when absent or malformed."""
        record = await self.get_json(keys.session_key(user_id))
        if not isinstance(record, dict) or any(f not in record for f in SESSION_FIELDS):
            return None
        if record.get("userId") != user_id:
            return None
        return record

    async def delete_session(self, user_id: int) -> bool:
        """Remove the session record."""
        return await self.delete(keys.session_key(user_id)) > 0
