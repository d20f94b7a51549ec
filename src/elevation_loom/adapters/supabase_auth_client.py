"""Supabase authentication for the remote store."""

import asyncio
import logging
from dataclasses import dataclass, field

from supabase import Client

from elevation_loom.domain.errors import AuthenticationError
from elevation_loom.services.auth import AuthProvider

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseAuthProvider(AuthProvider):
    """Resolves the current user, signing in anonymously when needed."""

    client: Client
    fixed_user_id: str | None = None
    timeout_seconds: float = 10.0
    _user_id: str | None = None
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def get_current_user_id(self) -> str:
        """Return the user id, signing in anonymously on first use."""
        known = self.get_current_user_id_sync()
        if known:
            return known
        async with self._lock:
            if self._user_id:
                return self._user_id
            try:
                response = await asyncio.wait_for(
                    asyncio.to_thread(self.client.auth.sign_in_anonymously),
                    timeout=self.timeout_seconds,
                )
            except Exception as exc:
                raise AuthenticationError(f"User authentication failed: {exc}") from exc
            user = getattr(response, "user", None)
            user_id = getattr(user, "id", None)
            if not user_id:
                raise AuthenticationError(
                    "User authentication failed - no user id available"
                )
            self._user_id = str(user_id)
            _logger.info("Signed in anonymously as %s", self._user_id)
            return self._user_id

    def get_current_user_id_sync(self) -> str | None:
        """Return an already established user id without signing in."""
        if self.fixed_user_id:
            return self.fixed_user_id
        if self._user_id:
            return self._user_id
        try:
            session = self.client.auth.get_session()
        except Exception as exc:
            _logger.debug("No Supabase session available: %s", exc)
            return None
        user = getattr(session, "user", None)
        user_id = getattr(user, "id", None)
        return str(user_id) if user_id else None
