"""
Error taxonomy for the identity_access bounded context.

Why: Routes should never see SDK exception types (supabase_auth, postgrest,
httpx). Adapters translate them into these classes, each carrying a stable
`code` that the web layer maps to user-facing messages and JSON payloads.
"""
from __future__ import annotations


class AuthError(Exception):
    """Base class for all auth-layer failures."""

    code = "auth_error"

    def __init__(self, code: str | None = None):
        super().__init__(code or self.code)
        if code:
            self.code = code


class InvalidCredentials(AuthError):
    """The store rejected email/password (or the provider denied consent)."""

    code = "invalid_credentials"


class EmailNotConfirmed(AuthError):
    code = "email_not_confirmed"


class NetworkError(AuthError):
    """Transport failure talking to the Session Store."""

    code = "network_error"


class ProfileNotFound(AuthError):
    """Authenticated subject without `users` row (provisioning defect)."""

    code = "profile_not_found"


class ProfileInvalid(AuthError):
    code = "profile_invalid"


class ProfileReadError(AuthError):
    code = "profile_read_failed"


class AlreadyLoggedOut(AuthError):
    code = "already_logged_out"


class WeakPassword(AuthError):
    code = "weak_password"


class SessionMissing(AuthError):
    code = "session_missing"


class InvalidAuthCode(AuthError):
    code = "invalid_auth_code"


class AuthProviderError(AuthError):
    code = "auth_provider_error"


class StepIncomplete(Exception):
    """Raised by the onboarding wizard when a gated step is not complete."""

    def __init__(self, step: int, missing: tuple[str, ...]):
        super().__init__(f"step {step} incomplete")
        self.step = step
        self.missing = missing


__all__ = [
    "AuthError",
    "InvalidCredentials",
    "EmailNotConfirmed",
    "NetworkError",
    "ProfileNotFound",
    "ProfileInvalid",
    "ProfileReadError",
    "AlreadyLoggedOut",
    "WeakPassword",
    "SessionMissing",
    "InvalidAuthCode",
    "AuthProviderError",
    "StepIncomplete",
]
