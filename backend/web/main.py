"SIPeT portal"
from __future__ import annotations

from pathlib import Path
import os
import logging
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles

# Component Imports
from components import Layout
from components.pages import DashboardPage, LandingPage, PortalPage, render_wizard

# Auth Imports
from identity_access.context import SessionContext
from identity_access.domain import AuthState
from identity_access.errors import AuthError, NetworkError
from identity_access.guard import PAGE_POLICIES, GuardDecision
from identity_access.onboarding import OnboardingWizard
from identity_access.supabase_client import build_client, load_supabase_config
import sys as _sys

from auth_utils import NO_STORE, auth_redirect, cookie_opts
import config as _cfg

# Ensure legacy imports consistently reference the same module instance.
if __name__ == "main":
    _sys.modules.setdefault("backend.web.main", _sys.modules[__name__])
elif __name__ == "backend.web.main":
    _sys.modules["main"] = _sys.modules[__name__]


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via SIPET_ENABLE_DOTENV (default true outside pytest).
    """
    if "pytest" in _sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("SIPET_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------


class AuthSettings:
    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return os.getenv("SIPET_ENV", "dev").lower()

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env


logger = logging.getLogger("sipet.web")
SETTINGS = AuthSettings()
SUPABASE_CFG = load_supabase_config()
# Injectable: tests replace the factory with a fake Supabase client.
CLIENT_FACTORY = build_client

app = FastAPI(title="SIPeT", description="Sistema de Proyectos de Tesis", version="0.1.0")

# --- Static Files & Routers -----------------------------------------------------

static_dir = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

from routes.auth import auth_router
from routes.onboarding import onboarding_router

# --- Auth Helpers & Middleware --------------------------------------------------


def _session_cookie_options() -> dict:
    return cookie_opts(SETTINGS.environment)


def _needs_auth_context(path: str) -> bool:
    return not (path.startswith("/static/") or path in ("/health", "/favicon.ico"))


def auth_context(request: Request) -> SessionContext:
    """Return the per-request session context created by the middleware."""
    return request.state.auth


@app.middleware("http")
async def session_context(request: Request, call_next):
    """Own one SessionContext per request.

    Behavior:
        - Builds the context from the request cookies (no client is created
          until a route actually talks to Supabase).
        - Writes queued cookie mutations (session, scrubbing, logout) onto the
          response, then closes the context so no subscription outlives the
          request.
    """
    if not _needs_auth_context(request.url.path):
        return await call_next(request)
    ctx = SessionContext(
        SUPABASE_CFG,
        request.cookies,
        host=request.url.hostname or "",
        client_factory=CLIENT_FACTORY,
    )
    request.state.auth = ctx
    try:
        response = await call_next(request)
        ctx.commit(response, _session_cookie_options())
        return response
    finally:
        ctx.close()


# --- Security Headers Middleware ----------------------------------------------


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    if SETTINGS.environment == "prod":
        # Harden CSP in production: avoid 'unsafe-inline' to reduce XSS surface.
        csp = (
            "default-src 'self'; script-src 'self' https://unpkg.com; style-src 'self'; "
            "img-src 'self' data:; font-src 'self' data:; connect-src 'self'; form-action 'self' https:;"
        )
    else:
        csp = (
            "default-src 'self'; script-src 'self' 'unsafe-inline' https://unpkg.com; style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; font-src 'self' data:; connect-src 'self'; form-action 'self' https: http:;"
        )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    # Origin/Referer fallback in CSRF checks without leaking cross-site paths.
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if SETTINGS.environment == "prod":
        response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    # HSTS: always on (dev = prod)
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Rendering helpers ----------------------------------------------------------


def _layout_response(
    request: Request,
    layout: Layout,
    *,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> HTMLResponse:
    """Render Layout and return a private HTMLResponse.

    Why:
        Every page here depends on the caller's cookies (session, banners), so
        none of them may be cached by a shared proxy.
    Behavior:
        - Renders the complete document including `<head>` and header.
        - Always sets `Cache-Control: private, no-store`; merges caller headers.
    Permissions:
        None. Route handlers must run the navigation guard before rendering
        protected content.
    """
    response = HTMLResponse(content=layout.render(), status_code=status_code)
    response.headers["Cache-Control"] = NO_STORE
    if headers:
        for key, value in headers.items():
            response.headers[key] = value
    return response


def header_user(decision: GuardDecision) -> dict:
    """Header view of the signed-in user (never includes tokens)."""
    profile = decision.profile
    caps = decision.capabilities
    return {
        "name": profile.display_name if profile else "",
        "email": (profile.email if profile else None) or (decision.session.email if decision.session else ""),
        "roles": list(caps.labels()) if caps else [],
        "flags": list(caps.granted()) if caps else [],
    }


def render_landing(request: Request, *, status_code: int = 200, **page_kwargs) -> HTMLResponse:
    layout = Layout(
        title="Iniciar sesión",
        content=LandingPage(**page_kwargs).render(),
        user=None,
        current_path="/",
    )
    return _layout_response(request, layout, status_code=status_code)


def guard_page(request: Request, path: str) -> tuple[GuardDecision, Response | None]:
    """Run the navigation guard; returns (decision, redirect response or None).

    Protected markup is only rendered by callers when the second item is None.
    """
    decision = auth_context(request).guard.check(PAGE_POLICIES[path])
    if not decision.allowed:
        return decision, auth_redirect(request, decision.redirect_to or "/")
    return decision, None


def render_dashboard(
    request: Request,
    decision: GuardDecision,
    *,
    wizard: OnboardingWizard | None = None,
    error: str | None = None,
    open_wizard: bool = False,
    verified: bool = False,
    status_code: int = 200,
) -> HTMLResponse:
    caps = decision.capabilities
    wizard_html = ""
    if decision.show_onboarding and (wizard is not None or open_wizard):
        wizard_html = render_wizard(wizard or OnboardingWizard(), error)
    content = DashboardPage(
        display_name=decision.profile.display_name if decision.profile else "",
        granted=caps.granted() if caps else (),
        needs_setup=decision.show_onboarding,
        wizard_html=wizard_html,
        verified=verified,
    ).render()
    layout = Layout(title="Panel principal", content=content, user=header_user(decision), current_path="/dashboard")
    return _layout_response(request, layout, status_code=status_code)


# --- Pages ------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse)
async def home(
    request: Request,
    logout: str | None = None,
    email_pending: str | None = None,
    reset_sent: str | None = None,
    error: str | None = None,
):
    """Landing page.

    Behavior:
        - `?logout=true`: banner only; leftover session artifacts of the old
          identity are scrubbed locally (no remote call).
        - A verified session is sent to /dashboard; an unverified one sees the
          email-pending banner with a resend form.
    """
    ctx = auth_context(request)
    after_logout = logout == "true"
    pending = email_pending == "true"
    pending_email = ""
    if after_logout:
        if ctx.storage.owned_present():
            ctx.storage.scrub()
    else:
        try:
            session = ctx.sessions.get_current_session()
        except NetworkError:
            session = None
            error = error or "network"
        if session is not None and ctx.sessions.state == AuthState.AUTHENTICATED:
            return auth_redirect(request, "/dashboard")
        if session is not None and ctx.sessions.state == AuthState.AUTHENTICATED_UNVERIFIED:
            pending = True
            pending_email = session.email
    return render_landing(
        request,
        after_logout=after_logout,
        email_pending=pending,
        pending_email=pending_email,
        reset_sent=reset_sent == "true",
        error=error,
    )


@app.get("/dashboard", response_class=HTMLResponse)
async def dashboard(request: Request, onboarding: str | None = None, verified: str | None = None):
    decision, redirect = guard_page(request, "/dashboard")
    if redirect is not None:
        return redirect
    return render_dashboard(request, decision, open_wizard=onboarding == "open", verified=verified == "true")


async def _portal(request: Request, path: str) -> Response:
    decision, redirect = guard_page(request, path)
    if redirect is not None:
        return redirect
    caps = decision.capabilities
    page = PortalPage(path, caps.labels() if caps else ())
    layout = Layout(title=page.title, content=page.render(), user=header_user(decision), current_path=path)
    return _layout_response(request, layout)


@app.get("/tesista", response_class=HTMLResponse)
async def tesista_portal(request: Request):
    return await _portal(request, "/tesista")


@app.get("/docente", response_class=HTMLResponse)
async def docente_portal(request: Request):
    return await _portal(request, "/docente")


@app.get("/coordinador", response_class=HTMLResponse)
async def coordinador_portal(request: Request):
    return await _portal(request, "/coordinador")


@app.get("/admin", response_class=HTMLResponse)
async def admin_portal(request: Request):
    return await _portal(request, "/admin")


# --- API --------------------------------------------------------------------------


@app.get("/api/me")
async def get_me(request: Request):
    headers = {"Cache-Control": NO_STORE}
    ctx = auth_context(request)
    try:
        session = ctx.sessions.get_current_session()
    except NetworkError:
        return JSONResponse({"error": "network_error"}, status_code=503, headers=headers)
    if session is None:
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=headers)

    payload = {
        "sub": session.subject,
        "email": session.email,
        "provider": session.provider,
        "email_confirmed": session.email_confirmed,
        "expires_at": datetime.fromtimestamp(session.expires_at, tz=timezone.utc).isoformat(timespec="seconds"),
        "name": "",
        "roles": [],
        "needs_setup": True,
    }
    try:
        profile = ctx.resolver.load_profile(session)
    except AuthError as exc:
        logger.warning("/api/me profile unavailable: %s", exc.code)
        payload["profile_error"] = exc.code
        return JSONResponse(payload, headers=headers)
    caps = profile.capabilities()
    payload.update(name=profile.display_name, roles=list(caps.granted()), needs_setup=caps.needs_setup)
    return JSONResponse(payload, headers=headers)


# --- Other Routes & App Includes -----------------------------------------------

app.include_router(auth_router)
app.include_router(onboarding_router)


@app.get("/health")
async def health_check():
    # Minimal health endpoint used by orchestrators and tests.
    return JSONResponse({"status": "ok"}, headers={"Cache-Control": NO_STORE})
