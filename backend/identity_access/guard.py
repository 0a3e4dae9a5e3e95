"""
Navigation Guard: page-entry decisions for protected portal pages.

Why:
    Protected HTML must only be produced after a positive decision. The guard
    returns a decision object first; the web layer renders either the page or
    a redirect, never both.

Behavior (in order):
    1. No session -> `/`; unverified email -> `/?email_pending=true`;
       transport failure -> `/?error=network`.
    2. Profile read; any error fails closed -> `/?error=<code>`. Without role
       flags the page either renders onboarding inline or redirects to
       `/dashboard`, depending on its policy.
    3. Missing required flag -> silent redirect to `/dashboard` (no 403 page,
       so the role topology is not disclosed).

Permissions:
    The guard only reads; it never writes the profile.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
import logging

from .domain import AuthState
from .errors import AuthError, NetworkError
from .profiles import RoleCapabilitySet, RoleResolver, UserProfile
from .sessions import AuthSessionManager, SessionSnapshot


logger = logging.getLogger("sipet.identity_access")

LANDING_PATH = "/"
DASHBOARD_PATH = "/dashboard"

# The only places a guard may send the browser to.
REDIRECT_TARGETS = frozenset(
    {"/", "/dashboard", "/tesista", "/docente", "/coordinador", "/admin", "/auth/callback", "/auth/reset-password"}
)


@dataclass(frozen=True)
class PagePolicy:
    path: str
    required_any: frozenset[str] = frozenset()
    onboarding: str = "redirect"  # "redirect" | "inline"

    def __post_init__(self):
        if self.onboarding not in ("redirect", "inline"):
            raise ValueError("onboarding must be 'redirect' or 'inline'")


PAGE_POLICIES: dict[str, PagePolicy] = {
    "/dashboard": PagePolicy("/dashboard", onboarding="inline"),
    "/tesista": PagePolicy("/tesista", frozenset({"is_student"})),
    # One portal serves advisors and reviewers.
    "/docente": PagePolicy("/docente", frozenset({"is_advisor", "is_reviewer"})),
    "/coordinador": PagePolicy("/coordinador", frozenset({"is_coordinator"})),
    "/admin": PagePolicy("/admin", frozenset({"is_administrator"})),
}


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    redirect_to: Optional[str] = None
    session: Optional[SessionSnapshot] = field(default=None, repr=False)
    profile: Optional[UserProfile] = field(default=None, repr=False)
    capabilities: Optional[RoleCapabilitySet] = None
    show_onboarding: bool = False

    @classmethod
    def redirect(cls, target: str) -> "GuardDecision":
        base = target.split("?", 1)[0]
        if base not in REDIRECT_TARGETS:
            raise ValueError(f"redirect target not allowed: {base}")
        return cls(allowed=False, redirect_to=target)


def _error_param(exc: AuthError) -> str:
    return "network" if isinstance(exc, NetworkError) else exc.code


class NavigationGuard:
    def __init__(self, sessions: AuthSessionManager, resolver: RoleResolver):
        self.sessions = sessions
        self.resolver = resolver

    def check(self, policy: PagePolicy) -> GuardDecision:
        try:
            session = self.sessions.get_current_session()
        except NetworkError:
            logger.warning("Guard %s: session read failed (network)", policy.path)
            return GuardDecision.redirect("/?error=network")
        if session is None:
            return GuardDecision.redirect(LANDING_PATH)
        if self.sessions.state == AuthState.AUTHENTICATED_UNVERIFIED:
            return GuardDecision.redirect("/?email_pending=true")

        try:
            profile = self.resolver.load_profile(session)
        except AuthError as exc:
            logger.warning("Guard %s: profile unavailable (%s)", policy.path, exc.code)
            return GuardDecision.redirect(f"/?error={_error_param(exc)}")
        caps = profile.capabilities()

        if caps.needs_setup:
            if policy.onboarding == "inline":
                return GuardDecision(
                    allowed=True,
                    session=session,
                    profile=profile,
                    capabilities=caps,
                    show_onboarding=True,
                )
            return GuardDecision.redirect(DASHBOARD_PATH)

        if policy.required_any and not caps.any_of(policy.required_any):
            logger.debug("Guard %s: role mismatch, redirecting to dashboard", policy.path)
            return GuardDecision.redirect(DASHBOARD_PATH)

        return GuardDecision(allowed=True, session=session, profile=profile, capabilities=caps)


__all__ = [
    "PagePolicy",
    "PAGE_POLICIES",
    "GuardDecision",
    "NavigationGuard",
    "REDIRECT_TARGETS",
]
