"""Supabase-backed remote store for week records."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from supabase import Client

from elevation_loom.domain.errors import (
    AuthenticationError,
    NetworkError,
    SerializationError,
)
from elevation_loom.domain.result import Err, Ok, Result
from elevation_loom.domain.weeks import (
    WeekRecord,
    record_from_document,
    record_to_document,
)
from elevation_loom.services.auth import AuthProvider
from elevation_loom.services.storage import RemoteStore


@dataclass
class SupabaseWeekRepository(RemoteStore):
    """Supabase implementation of the remote week store.

    Rows are scoped by ``user_id`` and keyed by ``week_key``. Calls are not
    retried here.
    """

    client: Client
    auth: AuthProvider
    table: str = "weeks"
    timeout_seconds: float = 10.0

    async def get(self, key: str) -> Result[WeekRecord | None]:
        """Return the week for the current user, if present."""
        try:
            user_id = await self.auth.get_current_user_id()
            response = await self._execute(
                lambda: self.client.table(self.table)
                .select("document")
                .eq("user_id", user_id)
                .eq("week_key", key)
                .limit(1)
                .execute()
            )
        except (AuthenticationError, NetworkError) as exc:
            return Err(exc.to_error_info())
        if not response.data:
            return Ok(None)
        try:
            return Ok(record_from_document(response.data[0].get("document")))
        except SerializationError as exc:
            return Err(exc.to_error_info())

    async def put(self, key: str, record: WeekRecord) -> Result[None]:
        """Create or replace the week for the current user."""
        try:
            user_id = await self.auth.get_current_user_id()
            payload = {
                "user_id": user_id,
                "week_key": key,
                "iso_year": record.iso_year,
                "iso_week": record.iso_week,
                "document": record_to_document(record),
                "last_modified": record.last_modified.isoformat(),
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
            await self._execute(
                lambda: self.client.table(self.table)
                .upsert(payload, on_conflict="user_id,week_key")
                .execute()
            )
        except (AuthenticationError, NetworkError) as exc:
            return Err(exc.to_error_info())
        return Ok(None)

    async def _execute(self, call: Callable[[], Any]) -> Any:
        """Run a blocking Supabase call off the event loop with a timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(call), timeout=self.timeout_seconds
            )
        except TimeoutError as exc:
            raise NetworkError(
                f"Supabase request timed out after {self.timeout_seconds}s"
            ) from exc
        except Exception as exc:
            raise NetworkError(f"Supabase request failed: {exc}") from exc
