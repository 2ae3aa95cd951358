from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from portal_auth.errors import LegacyDirectoryError
from portal_auth.models import LegacyIdentity, LegacyProfile


class LegacyDirectory:
    """Read-only lookups against the identity store that predates the portal."""

    async def find_identity_by_email(self, email: str) -> LegacyIdentity | None:
        raise NotImplementedError

    async def find_profile_by_id(self, legacy_id: str) -> LegacyProfile | None:
        raise NotImplementedError

    async def exists(self, email: str) -> bool:
        raise NotImplementedError

    async def ping(self) -> None:
        raise NotImplementedError


class InMemoryLegacyDirectory(LegacyDirectory):
    def __init__(
        self,
        identities: list[LegacyIdentity] | None = None,
        profiles: list[LegacyProfile] | None = None,
    ) -> None:
        self._identities: dict[str, LegacyIdentity] = {}
        self._profiles: dict[str, LegacyProfile] = {}
        for identity in identities or []:
            self.add_identity(identity)
        for profile in profiles or []:
            self.add_profile(profile)

    def add_identity(self, identity: LegacyIdentity) -> None:
        self._identities[identity.email] = identity

    def add_profile(self, profile: LegacyProfile) -> None:
        self._profiles[profile.legacy_id] = profile

    async def find_identity_by_email(self, email: str) -> LegacyIdentity | None:
        return self._identities.get(email)

    async def find_profile_by_id(self, legacy_id: str) -> LegacyProfile | None:
        return self._profiles.get(legacy_id)

    async def exists(self, email: str) -> bool:
        return email in self._identities

    async def ping(self) -> None:
        return None


class SupabaseLegacyDirectory(LegacyDirectory):
    """Legacy directory served by a Supabase project through its PostgREST API."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        accounts_table: str = "UserAccounts",
        details_table: str = "UserDetails",
        timeout_seconds: float = 5.0,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._service_key = service_key
        self._accounts_table = accounts_table
        self._details_table = details_table
        self._timeout_seconds = timeout_seconds
        self._client_factory = client_factory

    async def find_identity_by_email(self, email: str) -> LegacyIdentity | None:
        row = await self._select_one(self._accounts_table, column="email", value=email)
        if row is None:
            return None
        return _parse_identity(row)

    async def find_profile_by_id(self, legacy_id: str) -> LegacyProfile | None:
        row = await self._select_one(self._details_table, column="id", value=legacy_id)
        if row is None:
            return None
        return _parse_profile(row)

    async def exists(self, email: str) -> bool:
        row = await self._select_one(self._accounts_table, column="email", value=email, select="id")
        return row is not None

    async def ping(self) -> None:
        await self._get(self._accounts_table, params={"select": "id", "limit": "1"})

    async def _select_one(
        self,
        table: str,
        *,
        column: str,
        value: str,
        select: str = "*",
    ) -> dict[str, Any] | None:
        rows = await self._get(table, params={column: f"eq.{value}", "select": select, "limit": "1"})
        if not rows:
            return None
        row = rows[0]
        if not isinstance(row, dict):
            raise LegacyDirectoryError(f"unexpected row shape from {table}")
        return row

    async def _get(self, table: str, *, params: dict[str, str]) -> list[Any]:
        headers = {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
            "Accept": "application/json",
        }
        try:
            factory = self._client_factory or (lambda: httpx.AsyncClient(timeout=self._timeout_seconds))
            async with factory() as client:
                response = await client.get(f"{self._base_url}/rest/v1/{table}", params=params, headers=headers)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise LegacyDirectoryError(f"legacy directory timed out querying {table}") from exc
        except httpx.HTTPStatusError as exc:
            raise LegacyDirectoryError(
                f"legacy directory returned {exc.response.status_code} for {table}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LegacyDirectoryError(f"legacy directory request to {table} failed") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise LegacyDirectoryError(f"legacy directory sent non-JSON body for {table}") from exc
        if not isinstance(payload, list):
            raise LegacyDirectoryError(f"legacy directory sent non-list body for {table}")
        return payload


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_identity(row: dict[str, Any]) -> LegacyIdentity:
    legacy_id = _text(row.get("id"))
    email = _text(row.get("email"))
    if legacy_id is None or email is None:
        raise LegacyDirectoryError("legacy account row is missing id or email")
    return LegacyIdentity(
        legacy_id=legacy_id,
        email=email,
        password=str(row.get("password") or ""),
        status=_text(row.get("status")),
        consent=bool(row.get("consent", False)),
    )


def _parse_profile(row: dict[str, Any]) -> LegacyProfile:
    legacy_id = _text(row.get("id"))
    if legacy_id is None:
        raise LegacyDirectoryError("legacy details row is missing id")
    name = row.get("name")
    if not isinstance(name, dict):
        name = {}
    return LegacyProfile(
        legacy_id=legacy_id,
        first_name=_text(name.get("first")),
        last_name=_text(name.get("last")),
        user_type=_text(row.get("userType")),
        user_role=_text(row.get("userRole")),
        sex=_text(row.get("sex")),
        phone=_text(row.get("phone")),
    )
