"""
Role Resolver: typed `users` profile and the capability set derived from it.

Why:
    Authorization in the portal is a pure function of five boolean columns on
    the `users` row. Reading that row lives here so guards, the dashboard and
    the header share one validated record instead of loose dicts.

Security:
    PostgREST is called with the user's own access token so row-level security
    applies; the anon key alone never reads another user's row.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional
import logging

import httpx
from postgrest.exceptions import APIError
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .domain import ROLE_FLAGS, ROLE_LABELS
from .errors import NetworkError, ProfileInvalid, ProfileNotFound, ProfileReadError
from .sessions import SessionSnapshot


logger = logging.getLogger("sipet.identity_access")

USERS_TABLE = "users"

# PostgREST: "JSON object requested, multiple (or no) rows returned"
NO_ROWS_CODE = "PGRST116"


class UserProfile(BaseModel):
    """One row of the `users` table (columns the auth layer cares about)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: Optional[str] = None
    auth_user_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    second_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    dni: Optional[str] = None
    codigo_matricula: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    faculty: Optional[str] = None
    professional_school: Optional[str] = None
    created_at: Optional[datetime] = None

    is_student: bool = False
    is_advisor: bool = False
    is_reviewer: bool = False
    is_coordinator: bool = False
    is_administrator: bool = False
    first_time_setup_completed: bool = False

    @field_validator("id", "auth_user_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        return str(value) if value is not None else value

    @field_validator(
        "email",
        "first_name",
        "second_name",
        "last_name",
        "full_name",
        "dni",
        "codigo_matricula",
        "phone",
        "avatar_url",
        "faculty",
        "professional_school",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator(*ROLE_FLAGS, "first_time_setup_completed", mode="before")
    @classmethod
    def _null_flag_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name.strip()
        parts = [p.strip() for p in (self.first_name, self.last_name) if p]
        if parts:
            return " ".join(parts)
        return self.email or ""

    def capabilities(self) -> "RoleCapabilitySet":
        return RoleCapabilitySet(**{flag: getattr(self, flag) for flag in ROLE_FLAGS})


@dataclass(frozen=True)
class RoleCapabilitySet:
    is_student: bool = False
    is_advisor: bool = False
    is_reviewer: bool = False
    is_coordinator: bool = False
    is_administrator: bool = False

    @property
    def needs_setup(self) -> bool:
        """True when no flag is set: the user has not completed onboarding."""
        return not any(getattr(self, flag) for flag in ROLE_FLAGS)

    def has(self, flag: str) -> bool:
        if flag not in ROLE_FLAGS:
            raise ValueError(f"unknown role flag: {flag}")
        return bool(getattr(self, flag))

    def any_of(self, flags: Iterable[str]) -> bool:
        return any(self.has(flag) for flag in flags)

    def granted(self) -> tuple[str, ...]:
        return tuple(flag for flag in ROLE_FLAGS if getattr(self, flag))

    def labels(self) -> tuple[str, ...]:
        return tuple(ROLE_LABELS[flag] for flag in self.granted())


def _users_query(client, session: SessionSnapshot):
    client.postgrest.auth(session.access_token)
    return client.table(USERS_TABLE)


def _translate(exc: Exception, action: str):
    if isinstance(exc, httpx.HTTPError):
        logger.warning("users %s failed (transport): %s", action, exc.__class__.__name__)
        return NetworkError()
    code = getattr(exc, "code", None)
    if code == NO_ROWS_CODE:
        return ProfileNotFound()
    logger.warning("users %s failed: code=%s", action, code)
    return ProfileReadError()


class RoleResolver:
    """Read-only access to the caller's `users` row.

    Behavior:
        - One read per call, keyed by `auth_user_id`; no writes, no retries.
        - Missing row raises ProfileNotFound (a provisioning defect, not a
          transient failure).
    """

    def __init__(self, client_provider):
        self._client_provider = client_provider

    def load_profile(self, session: SessionSnapshot) -> UserProfile:
        try:
            result = (
                _users_query(self._client_provider(), session)
                .select("*")
                .eq("auth_user_id", session.subject)
                .limit(1)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise _translate(exc, "read") from exc
        rows = result.data or []
        if not rows:
            raise ProfileNotFound()
        try:
            return UserProfile.model_validate(rows[0])
        except ValidationError as exc:
            logger.warning("users row failed validation: %s error(s)", exc.error_count())
            raise ProfileInvalid() from exc

    def resolve_roles(self, session: SessionSnapshot) -> RoleCapabilitySet:
        return self.load_profile(session).capabilities()


class ProfileWriter:
    """Single-update writer used when onboarding completes."""

    def __init__(self, client_provider):
        self._client_provider = client_provider

    def complete_onboarding(self, session: SessionSnapshot, update: dict[str, Any]) -> UserProfile:
        """Write profile fields and role flags in one update.

        `first_time_setup_completed` is always set; a partially written profile
        is never observable because there is exactly one request.
        """
        payload = dict(update)
        payload["first_time_setup_completed"] = True
        try:
            result = (
                _users_query(self._client_provider(), session)
                .update(payload)
                .eq("auth_user_id", session.subject)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise _translate(exc, "update") from exc
        rows = result.data or []
        if not rows:
            raise ProfileNotFound()
        try:
            return UserProfile.model_validate(rows[0])
        except ValidationError as exc:
            raise ProfileInvalid() from exc


__all__ = [
    "USERS_TABLE",
    "UserProfile",
    "RoleCapabilitySet",
    "RoleResolver",
    "ProfileWriter",
]
