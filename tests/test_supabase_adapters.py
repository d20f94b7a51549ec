"""Tests for Supabase adapter implementations."""

import asyncio
import time
from dataclasses import dataclass, field
from types import SimpleNamespace

import pytest

from elevation_loom.adapters.supabase_auth_client import SupabaseAuthProvider
from elevation_loom.adapters.supabase_week_repository import SupabaseWeekRepository
from elevation_loom.domain.errors import AuthenticationError, ErrorKind
from elevation_loom.domain.result import Err, Ok
from elevation_loom.domain.weeks import record_to_document
from tests.conftest import make_week

USER_ID = "7d1f3c9e-0000-4000-8000-000000000001"


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "upsert": []}
    )
    last_payload: object | None = None
    last_on_conflict: str | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)
    error: Exception | None = None
    delay: float = 0.0

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def upsert(  # type: ignore[no-untyped-def]
        self, payload, on_conflict: str = ""
    ) -> "FakeTable":
        self._action = "upsert"
        self.last_payload = payload
        self.last_on_conflict = on_conflict
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeAuth:
    user_id: str | None = USER_ID
    session_user_id: str | None = None
    sign_in_error: Exception | None = None
    session_error: Exception | None = None
    sign_ins: int = 0

    def sign_in_anonymously(self) -> SimpleNamespace:
        self.sign_ins += 1
        if self.sign_in_error is not None:
            raise self.sign_in_error
        user = SimpleNamespace(id=self.user_id) if self.user_id else None
        return SimpleNamespace(user=user)

    def get_session(self) -> SimpleNamespace | None:
        if self.session_error is not None:
            raise self.session_error
        if self.session_user_id is None:
            return None
        return SimpleNamespace(user=SimpleNamespace(id=self.session_user_id))


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)
    auth: FakeAuth = field(default_factory=FakeAuth)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def _repository(
    client: FakeSupabaseClient, timeout_seconds: float = 10.0
) -> SupabaseWeekRepository:
    auth = SupabaseAuthProvider(client, fixed_user_id=USER_ID)
    return SupabaseWeekRepository(client, auth, timeout_seconds=timeout_seconds)


def test_week_repository_get_parses_document() -> None:
    client = FakeSupabaseClient()
    table = client.table("weeks")
    table.queue("select", [{"document": record_to_document(make_week())}])

    result = asyncio.run(_repository(client).get("2026-W07"))

    assert result == Ok(make_week())
    assert table.last_filters == [("user_id", USER_ID), ("week_key", "2026-W07")]


def test_week_repository_get_missing_row() -> None:
    client = FakeSupabaseClient()

    assert asyncio.run(_repository(client).get("2026-W07")) == Ok(None)


def test_week_repository_get_unusable_document() -> None:
    client = FakeSupabaseClient()
    client.table("weeks").queue("select", [{"document": "corrupt"}])

    result = asyncio.run(_repository(client).get("2026-W07"))

    assert isinstance(result, Err)
    assert result.error.kind is ErrorKind.SERIALIZATION


def test_week_repository_put_upserts_scoped_row() -> None:
    client = FakeSupabaseClient()
    table = client.table("weeks")
    week = make_week()

    result = asyncio.run(_repository(client).put(week.key, week))

    assert result == Ok(None)
    assert table.last_on_conflict == "user_id,week_key"
    assert isinstance(table.last_payload, dict)
    assert table.last_payload["user_id"] == USER_ID
    assert table.last_payload["week_key"] == "2026-W07"
    assert table.last_payload["document"] == record_to_document(week)


def test_week_repository_maps_client_errors_to_network() -> None:
    client = FakeSupabaseClient()
    client.table("weeks").error = RuntimeError("connection reset")

    result = asyncio.run(_repository(client).put("2026-W07", make_week()))

    assert isinstance(result, Err)
    assert result.error.kind is ErrorKind.NETWORK
    assert "connection reset" in result.error.message


def test_week_repository_times_out() -> None:
    client = FakeSupabaseClient()
    client.table("weeks").delay = 0.2

    result = asyncio.run(_repository(client, timeout_seconds=0.01).get("2026-W07"))

    assert isinstance(result, Err)
    assert result.error.kind is ErrorKind.NETWORK
    assert "timed out" in result.error.message


def test_week_repository_reports_authentication_failure() -> None:
    client = FakeSupabaseClient(auth=FakeAuth(sign_in_error=RuntimeError("denied")))
    repository = SupabaseWeekRepository(client, SupabaseAuthProvider(client))

    result = asyncio.run(repository.get("2026-W07"))

    assert isinstance(result, Err)
    assert result.error.kind is ErrorKind.AUTHENTICATION
    assert client.tables == {}


def test_auth_provider_signs_in_once() -> None:
    client = FakeSupabaseClient()
    provider = SupabaseAuthProvider(client)

    assert provider.get_current_user_id_sync() is None
    assert asyncio.run(provider.get_current_user_id()) == USER_ID
    assert asyncio.run(provider.get_current_user_id()) == USER_ID
    assert provider.get_current_user_id_sync() == USER_ID
    assert client.auth.sign_ins == 1


def test_auth_provider_reuses_existing_session() -> None:
    client = FakeSupabaseClient(auth=FakeAuth(session_user_id="session-user"))
    provider = SupabaseAuthProvider(client)

    assert asyncio.run(provider.get_current_user_id()) == "session-user"
    assert client.auth.sign_ins == 0


def test_auth_provider_fixed_user_skips_sign_in() -> None:
    client = FakeSupabaseClient()
    provider = SupabaseAuthProvider(client, fixed_user_id="configured")

    assert provider.get_current_user_id_sync() == "configured"
    assert asyncio.run(provider.get_current_user_id()) == "configured"
    assert client.auth.sign_ins == 0


def test_auth_provider_session_error_reads_as_signed_out() -> None:
    client = FakeSupabaseClient(auth=FakeAuth(session_error=RuntimeError("no storage")))

    assert SupabaseAuthProvider(client).get_current_user_id_sync() is None


def test_auth_provider_without_user_id_fails() -> None:
    client = FakeSupabaseClient(auth=FakeAuth(user_id=None))
    provider = SupabaseAuthProvider(client)

    with pytest.raises(AuthenticationError):
        asyncio.run(provider.get_current_user_id())
