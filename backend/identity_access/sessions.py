"""
Auth Session Manager and session-change event bus.

Why:
    Wrap the Supabase auth SDK behind a small, typed surface so routes never
    touch SDK objects or SDK exceptions. The manager owns establishing,
    refreshing and tearing down the session held in the request's cookies.

Design:
    - `SessionSnapshot` is the immutable view of a session the rest of the
      system sees (no SDK types leak out).
    - `SessionEvents` is an explicit, ordered bus. The manager bridges exactly
      one SDK subscription into it; handlers re-derive state from the event's
      session each time, so repeated events (TOKEN_REFRESHED then SIGNED_IN)
      are harmless.
    - Every sign-in path scrubs previously owned artifacts before the SDK call
      is issued. Scrubbing is synchronous and queued ahead of the SDK's own
      writes, so the new identity's cookies are always the last writes.

Security:
    A session read from cookies is only believed after its access token has
    been verified (locally with python-jose, or remotely via GoTrue).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional
import logging
import time

import httpx
from supabase_auth.constants import STORAGE_KEY
from supabase_auth.errors import (
    AuthApiError,
    AuthError as SDKAuthError,
    AuthInvalidCredentialsError,
    AuthRetryableError,
    AuthSessionMissingError,
    AuthWeakPasswordError,
)

from .artifacts import ArtifactStorage
from .domain import MIN_PASSWORD_LENGTH, OAUTH_PROVIDERS, AuthState
from .errors import (
    AlreadyLoggedOut,
    AuthError,
    AuthProviderError,
    EmailNotConfirmed,
    InvalidAuthCode,
    InvalidCredentials,
    NetworkError,
    SessionMissing,
    WeakPassword,
)
from .supabase_client import SupabaseConfig
from .tokens import UNVERIFIABLE, AccessTokenVerificationError, verify_access_token


logger = logging.getLogger("sipet.identity_access")

SESSION_EVENT_NAMES = (
    "INITIAL_SESSION",
    "SIGNED_IN",
    "SIGNED_OUT",
    "TOKEN_REFRESHED",
    "USER_UPDATED",
    "PASSWORD_RECOVERY",
)

SessionHandler = Callable[[str, Optional["SessionSnapshot"]], None]


@dataclass(frozen=True)
class SessionSnapshot:
    subject: str
    email: str
    provider: str
    issued_at: int
    expires_at: int
    email_confirmed: bool
    access_token: str = field(default="", repr=False)

    @classmethod
    def from_sdk(cls, session: Any) -> "SessionSnapshot":
        user = session.user
        expires_in = int(getattr(session, "expires_in", 0) or 0)
        expires_at = int(getattr(session, "expires_at", 0) or (time.time() + expires_in))
        app_metadata = getattr(user, "app_metadata", None) or {}
        confirmed_at = getattr(user, "email_confirmed_at", None) or getattr(user, "confirmed_at", None)
        return cls(
            subject=str(user.id),
            email=str(getattr(user, "email", "") or ""),
            provider=str(app_metadata.get("provider") or "email"),
            issued_at=expires_at - expires_in,
            expires_at=expires_at,
            email_confirmed=confirmed_at is not None,
            access_token=str(session.access_token),
        )


def state_for(session: Optional[SessionSnapshot]) -> AuthState:
    if session is None:
        return AuthState.ANONYMOUS
    if not session.email_confirmed:
        return AuthState.AUTHENTICATED_UNVERIFIED
    return AuthState.AUTHENTICATED


class Subscription:
    """Handle returned by `SessionEvents.subscribe`; `unsubscribe()` is idempotent."""

    def __init__(self, bus: "SessionEvents", handler: SessionHandler):
        self._bus = bus
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._bus._remove(self)


class SessionEvents:
    """Ordered, synchronous session-change bus.

    Behavior:
        - Handlers run in registration order.
        - A failing handler is logged and does not stop delivery to the others.
        - After `close()` every emit is dropped, so late events never reach an
          owner that has already been torn down.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, handler: SessionHandler) -> Subscription:
        sub = Subscription(self, handler)
        if self._closed:
            sub.active = False
            return sub
        self._subscriptions.append(sub)
        return sub

    def emit(self, event: str, session: Optional[SessionSnapshot]) -> None:
        if self._closed:
            logger.debug("Dropped session event after close: %s", event)
            return
        for sub in list(self._subscriptions):
            if not sub.active:
                continue
            try:
                sub.handler(event, session)
            except Exception as exc:
                logger.warning("Session event handler failed (%s): %s", event, exc.__class__.__name__)

    def close(self) -> None:
        for sub in list(self._subscriptions):
            sub.unsubscribe()
        self._closed = True

    def _remove(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass


def _translate(exc: Exception, default: type[AuthError] = AuthError) -> AuthError:
    """Map SDK/transport exceptions onto the auth-layer taxonomy."""
    if isinstance(exc, (AuthRetryableError, httpx.HTTPError)):
        return NetworkError()
    if isinstance(exc, AuthSessionMissingError):
        return SessionMissing()
    if isinstance(exc, AuthWeakPasswordError):
        return WeakPassword()
    if isinstance(exc, AuthInvalidCredentialsError):
        return InvalidCredentials()
    if isinstance(exc, AuthApiError):
        code = (exc.code or "").lower()
        message = (exc.message or "").lower()
        if code == "email_not_confirmed" or "email not confirmed" in message:
            return EmailNotConfirmed()
        if code == "invalid_credentials" or "invalid login credentials" in message:
            return InvalidCredentials()
        if code == "weak_password":
            return WeakPassword()
        if (exc.status or 0) >= 500:
            return NetworkError()
        if default is AuthError:
            return AuthError(code or None)
    return default()


_SDK_ERRORS = (SDKAuthError, httpx.HTTPError)


def _sign_out_error(exc: Exception) -> AuthError:
    if isinstance(exc, AuthSessionMissingError) or getattr(exc, "code", None) == "session_not_found":
        return AlreadyLoggedOut()
    return _translate(exc)


class AuthSessionManager:
    """Owns the session of one request context.

    Parameters:
        client_provider: zero-arg callable returning the Supabase client
            (built lazily; anonymous requests without auth cookies never need one).
        storage: cookie-backed SDK storage of this request.
        cfg: Supabase configuration (token verification, project ref).
        events: bus the SDK events are bridged into.
        host: request host; sign-in also expires Domain-scoped leftovers on it.
    """

    def __init__(
        self,
        client_provider: Callable[[], Any],
        storage: ArtifactStorage,
        cfg: SupabaseConfig,
        events: SessionEvents | None = None,
        *,
        token_verifier: Callable[..., dict] = verify_access_token,
        host: str = "",
    ):
        self._client_provider = client_provider
        self.storage = storage
        self.cfg = cfg
        self.events = events if events is not None else SessionEvents()
        self.host = host
        self._token_verifier = token_verifier
        self._state = AuthState.UNKNOWN
        self._session: Optional[SessionSnapshot] = None
        self._sdk_subscription = None
        # First subscriber: keeps state in sync before any other handler runs.
        self.events.subscribe(self._track_state)

    # --- State ------------------------------------------------------------------

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def session(self) -> Optional[SessionSnapshot]:
        return self._session

    def _resolve(self, session: Optional[SessionSnapshot]) -> None:
        self._session = session
        self._state = state_for(session)

    def _track_state(self, event: str, session: Optional[SessionSnapshot]) -> None:
        if event == "SIGNED_OUT":
            self._resolve(None)
        elif session is not None:
            self._resolve(session)

    @property
    def client(self):
        client = self._client_provider()
        if self._sdk_subscription is None:
            self._sdk_subscription = client.auth.on_auth_state_change(self._bridge)
        return client

    def _bridge(self, event: str, sdk_session: Any) -> None:
        snapshot = SessionSnapshot.from_sdk(sdk_session) if sdk_session is not None else None
        self.events.emit(str(event), snapshot)

    # --- Session reads ------------------------------------------------------------

    def get_current_session(self) -> Optional[SessionSnapshot]:
        """Return the verified session of this context or None.

        Never raises for "no session"; raises NetworkError on transport failure.
        A session whose refresh or verification fails counts as anonymous and
        its artifacts are queued for removal.
        """
        if self._state != AuthState.UNKNOWN:
            return self._session
        if not self.storage.owned_present():
            self._resolve(None)
            self.events.emit("INITIAL_SESSION", None)
            return None
        try:
            sdk_session = self.client.auth.get_session()
        except _SDK_ERRORS as exc:
            err = _translate(exc)
            if isinstance(err, NetworkError):
                raise err from exc
            logger.info("Stored session rejected: %s", err.code)
            sdk_session = None
        snapshot = SessionSnapshot.from_sdk(sdk_session) if sdk_session is not None else None
        if snapshot is not None and not self._verify(snapshot):
            snapshot = None
        if snapshot is None:
            self.storage.scrub()
        self._resolve(snapshot)
        self.events.emit("INITIAL_SESSION", snapshot)
        return snapshot

    def _verify(self, snapshot: SessionSnapshot) -> bool:
        try:
            claims = self._token_verifier(access_token=snapshot.access_token, cfg=self.cfg)
        except AccessTokenVerificationError as exc:
            if exc.code == UNVERIFIABLE:
                return self._verify_remote(snapshot)
            if exc.code == "jwks_fetch_failed":
                raise NetworkError() from exc
            logger.warning("Access token rejected: %s", exc.code)
            return False
        return str(claims.get("sub")) == snapshot.subject

    def _verify_remote(self, snapshot: SessionSnapshot) -> bool:
        try:
            resp = self.client.auth.get_user(snapshot.access_token)
        except _SDK_ERRORS as exc:
            err = _translate(exc)
            if isinstance(err, NetworkError):
                raise err from exc
            logger.warning("Access token rejected by auth server: %s", err.code)
            return False
        user = getattr(resp, "user", None)
        return user is not None and str(user.id) == snapshot.subject

    # --- Sign-in ------------------------------------------------------------------

    def _prepare_sign_in(self, keep: tuple[str, ...] = ()) -> None:
        """Scrub every owned artifact of a previous identity before a new sign-in."""
        expired = self.storage.scrub(keep=keep, host=self.host)
        if expired:
            logger.info("Scrubbed %s stale auth artifact(s) before sign-in", len(expired))
        self._resolve(None)

    def sign_in_with_password(self, email: str, password: str) -> SessionSnapshot:
        self._prepare_sign_in()
        try:
            resp = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except _SDK_ERRORS as exc:
            raise _translate(exc, InvalidCredentials) from exc
        if resp.session is None:
            raise EmailNotConfirmed()
        snapshot = SessionSnapshot.from_sdk(resp.session)
        self._resolve(snapshot)
        return snapshot

    def sign_in_with_oauth_provider(
        self,
        provider: str,
        *,
        redirect_to: str,
        force_account_selection: bool = False,
    ) -> str:
        """Return the provider consent URL; the caller issues the redirect.

        Completion is observed on /auth/callback (SIGNED_IN), not here.
        """
        if provider not in OAUTH_PROVIDERS:
            raise AuthProviderError()
        self._prepare_sign_in()
        query: dict[str, str] = {}
        if provider == "google":
            query["access_type"] = "offline"
        if force_account_selection:
            query["prompt"] = "select_account"
        options: dict[str, Any] = {"redirect_to": redirect_to}
        if query:
            options["query_params"] = query
        if provider == "azure":
            options["scopes"] = "email"
        try:
            resp = self.client.auth.sign_in_with_oauth({"provider": provider, "options": options})
        except _SDK_ERRORS as exc:
            raise _translate(exc, AuthProviderError) from exc
        return str(resp.url)

    def exchange_code(self, auth_code: str) -> SessionSnapshot:
        """Complete a PKCE redirect (OAuth, email confirmation or recovery link)."""
        verifier_key = f"{STORAGE_KEY}-code-verifier"
        if not auth_code or self.storage.get_item(verifier_key) is None:
            raise InvalidAuthCode()
        self._prepare_sign_in(keep=(self.storage.artifacts.verifier_cookie,))
        try:
            resp = self.client.auth.exchange_code_for_session({"auth_code": auth_code})
        except _SDK_ERRORS as exc:
            raise _translate(exc, InvalidAuthCode) from exc
        if resp.session is None:
            raise InvalidAuthCode()
        snapshot = SessionSnapshot.from_sdk(resp.session)
        self._resolve(snapshot)
        return snapshot

    def sign_up(
        self,
        email: str,
        password: str,
        *,
        first_name: str,
        last_name: str,
        student_code: str | None = None,
        redirect_to: str,
    ) -> Optional[SessionSnapshot]:
        """Register a new account; returns None while email confirmation is pending."""
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise WeakPassword()
        self._prepare_sign_in()
        data = {
            "first_name": first_name,
            "last_name": last_name,
            "full_name": f"{first_name} {last_name}".strip(),
        }
        if student_code:
            data["codigo_matricula"] = student_code
        try:
            resp = self.client.auth.sign_up(
                {
                    "email": email,
                    "password": password,
                    "options": {"data": data, "email_redirect_to": redirect_to},
                }
            )
        except _SDK_ERRORS as exc:
            raise _translate(exc) from exc
        if resp.session is None:
            return None
        snapshot = SessionSnapshot.from_sdk(resp.session)
        self._resolve(snapshot)
        return snapshot

    def resend_verification(self, email: str, *, redirect_to: str) -> None:
        try:
            self.client.auth.resend(
                {"type": "signup", "email": email, "options": {"email_redirect_to": redirect_to}}
            )
        except _SDK_ERRORS as exc:
            raise _translate(exc) from exc

    def request_password_reset(self, email: str, *, redirect_to: str) -> None:
        """Ask the store to mail a recovery link.

        Rejections are logged and not surfaced so the response never reveals
        whether an account exists; transport failures raise NetworkError.
        """
        try:
            self.client.auth.reset_password_for_email(email, {"redirect_to": redirect_to})
        except _SDK_ERRORS as exc:
            err = _translate(exc)
            if isinstance(err, NetworkError):
                raise err from exc
            logger.info("Password reset request rejected: %s", err.code)

    def update_password(self, new_password: str) -> None:
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise WeakPassword()
        if self.get_current_session() is None:
            raise SessionMissing()
        try:
            self.client.auth.update_user({"password": new_password})
        except _SDK_ERRORS as exc:
            raise _translate(exc) from exc

    # --- Sign-out -------------------------------------------------------------------

    def sign_out(self, scope: str = "global") -> None:
        """Revoke the session at the store; local cleanup is the caller's job.

        A missing or already revoked session is a benign double logout.
        """
        if scope not in ("global", "local", "others"):
            raise ValueError("invalid_scope")
        if not self.storage.owned_present():
            logger.debug("Sign-out without session artifacts (already logged out)")
            self._resolve(None)
            return
        try:
            self.client.auth.sign_out({"scope": scope})
        except _SDK_ERRORS as exc:
            err = _sign_out_error(exc)
            if isinstance(err, NetworkError):
                raise err from exc
            logger.info("Sign-out rejected by store (treated as logged out): %s", err.code)
        if scope != "others":
            self._resolve(None)

    # --- Subscriptions --------------------------------------------------------------

    def on_session_change(self, callback: SessionHandler) -> Subscription:
        """Register a listener; the owner must call `unsubscribe()` on teardown."""
        return self.events.subscribe(callback)

    def close(self) -> None:
        if self._sdk_subscription is not None:
            try:
                self._sdk_subscription.unsubscribe()
            except (KeyError, AttributeError):
                pass
            self._sdk_subscription = None
        self.events.close()


__all__ = [
    "SESSION_EVENT_NAMES",
    "SessionSnapshot",
    "Subscription",
    "SessionEvents",
    "AuthSessionManager",
    "state_for",
]
