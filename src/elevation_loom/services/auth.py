"""Authentication port used by the remote store."""

from typing import Protocol


class AuthProvider(Protocol):
    """Supplies the identity that scopes remote documents."""

    async def get_current_user_id(self) -> str:
        """Return the user id, raising ``AuthenticationError`` if unavailable."""

    def get_current_user_id_sync(self) -> str | None:
        """Return an already-known user id without blocking."""
