"""
Logout Controller: full session teardown for one request context.

Behavior:
    Steps run in a fixed order and are each best-effort; a failure is logged,
    recorded in the report and never aborts the remaining steps. The web route
    always answers with the landing redirect afterwards, so the browser is
    never left in a half-logged-out state.

    1. Remote sign-out (scope=global, revokes every device).
    2. Expire every owned cookie on the host-only, Domain=host and Domain=.host
       variants (browsers key cookies by domain and path).
    3. Set the durable force-account-selection flag.
    4. Scrub remaining owned artifacts (everything owned except the flag).
    5. Clear in-memory state and close the event bus.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging

from .artifacts import (
    FORCE_ACCOUNT_SELECTION_COOKIE,
    FORCE_ACCOUNT_SELECTION_MAX_AGE,
    ArtifactStorage,
)
from .sessions import AuthSessionManager


logger = logging.getLogger("sipet.identity_access.logout")

LOGOUT_STEPS = ("remote_sign_out", "expire_cookies", "force_account_selection", "scrub", "clear_state")


@dataclass
class LogoutReport:
    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.failed


class LogoutController:
    def __init__(self, sessions: AuthSessionManager, storage: ArtifactStorage, host: str = ""):
        self.sessions = sessions
        self.storage = storage
        self.host = host

    def logout(self) -> LogoutReport:
        report = LogoutReport()
        steps = (
            ("remote_sign_out", self._remote_sign_out),
            ("expire_cookies", self._expire_cookies),
            ("force_account_selection", self._force_account_selection),
            ("scrub", self._scrub),
            ("clear_state", self._clear_state),
        )
        for name, step in steps:
            try:
                step()
            except Exception as exc:
                logger.warning("Logout step %s failed: %s", name, exc.__class__.__name__)
                report.failed.append(name)
            else:
                report.completed.append(name)
        return report

    def _remote_sign_out(self) -> None:
        self.sessions.sign_out(scope="global")

    def _expire_cookies(self) -> None:
        self.storage.expire_everywhere(self.host)

    def _force_account_selection(self) -> None:
        self.storage.set_cookie(
            FORCE_ACCOUNT_SELECTION_COOKIE,
            "true",
            max_age=FORCE_ACCOUNT_SELECTION_MAX_AGE,
        )

    def _scrub(self) -> None:
        self.storage.scrub()

    def _clear_state(self) -> None:
        self.sessions.events.emit("SIGNED_OUT", None)
        self.sessions.close()


__all__ = ["LOGOUT_STEPS", "LogoutController", "LogoutReport"]
