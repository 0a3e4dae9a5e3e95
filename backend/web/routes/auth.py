"""
Authentication-related FastAPI routes (router-only module).

Why:
    Keep auth endpoints in a dedicated router so the session lifecycle
    (sign-in, registration, recovery, callback, logout) lives in one place.

Notes:
    - This module imports `main` inside functions to reuse the shared Supabase
      config, the per-request SessionContext and the landing renderer without
      creating an import cycle.
    - Every response carries `Cache-Control: private, no-store`.
    - Form POSTs are same-origin checked (CSRF); HTMX callers receive
      `204 + HX-Redirect` instead of a 303.
"""

from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, Response

from auth_utils import auth_redirect
from components import Layout
from components.forms import ResetPasswordForm
from identity_access.artifacts import FORCE_ACCOUNT_SELECTION_COOKIE
from identity_access.domain import OAUTH_PROVIDERS
from identity_access.errors import (
    AuthError,
    EmailNotConfirmed,
    InvalidCredentials,
    NetworkError,
    SessionMissing,
)
from .security import _is_same_origin, csrf_forbidden


auth_router = APIRouter(tags=["Auth"])  # explicit paths, no prefix
logger = logging.getLogger("sipet.web.auth")


def _resolve_active_main(request: Request):
    """Return the active main module whose app matches the request.app.

    Tests may import the app as either `main` or `backend.web.main`. Prefer the
    module whose `app` object is identical to the ASGI app on the request.
    """
    import sys as _sys

    candidates = [m for m in (_sys.modules.get("main"), _sys.modules.get("backend.web.main")) if m]
    for m in candidates:
        if getattr(m, "app", None) is getattr(request, "app", None):
            return m
    return candidates[0] if candidates else None


def _request_app_base(request: Request) -> str:
    """Derive the browser-facing app base from the incoming request.

    Honors trusted proxy headers when SIPET_TRUST_PROXY=true; otherwise uses
    ASGI's scheme/host. Returns scheme://host[:port].
    """
    trust_proxy = (os.getenv("SIPET_TRUST_PROXY", "false") or "").lower() == "true"
    scheme = (request.url.scheme or "http").lower()
    if request.url.hostname:
        host = f"{request.url.hostname}:{request.url.port}" if request.url.port else request.url.hostname
    else:
        host = request.headers.get("host") or ""
    if trust_proxy:
        xf_proto = (request.headers.get("x-forwarded-proto") or scheme).split(",")[0].strip()
        xf_host = (request.headers.get("x-forwarded-host") or host).split(",")[0].strip()
        scheme = (xf_proto or scheme).lower()
        host = xf_host or host
    return f"{scheme}://{host}"


def _site_base(request: Request) -> str:
    """Base URL for `redirect_to` links; SIPET_SITE_URL wins over the request."""
    mod = _resolve_active_main(request)
    configured = getattr(getattr(mod, "SUPABASE_CFG", None), "site_url", None)
    return (configured or _request_app_base(request)).rstrip("/")


def _form_str(form, name: str) -> str:
    value = form.get(name)
    return value.strip() if isinstance(value, str) else ""


def _error_param(exc: AuthError) -> str:
    return "network" if isinstance(exc, NetworkError) else exc.code


def _status_for(exc: AuthError) -> int:
    if isinstance(exc, NetworkError):
        return 503
    if isinstance(exc, (InvalidCredentials, EmailNotConfirmed)):
        return 401
    return 400


@auth_router.post("/auth/login")
async def auth_login(request: Request):
    """
    Email/password sign-in.

    Behavior:
        - Scrubs every owned artifact of a previous identity before the store
          is contacted (inside the session manager).
        - Success: 303 to /dashboard. Failure: landing page with an inline
          message (400 missing fields, 401 rejected, 503 store unreachable).
    Permissions:
        Public.
    """
    if not _is_same_origin(request):
        return csrf_forbidden()
    mod = _resolve_active_main(request)
    form = await request.form()
    email = _form_str(form, "email")
    password = form.get("password") if isinstance(form.get("password"), str) else ""
    values = {"email": email}
    if not email or not password:
        return mod.render_landing(request, status_code=400, login_error="missing_fields", values=values)
    try:
        mod.auth_context(request).sessions.sign_in_with_password(email, password)
    except AuthError as exc:
        logger.info("Password sign-in failed: %s", exc.code)
        return mod.render_landing(request, status_code=_status_for(exc), login_error=_error_param(exc), values=values)
    return auth_redirect(request, "/dashboard", 303)


@auth_router.post("/auth/oauth/{provider}")
async def auth_oauth(request: Request, provider: str):
    """
    Start OAuth (Google / Microsoft) with PKCE.

    Behavior:
        - Scrubs owned artifacts first; the code verifier is written afterwards.
        - Forces the provider's account chooser after a logout: when the
          durable flag cookie is present or the form carries `logout=true`.
          The flag is consumed here.
        - 303 to the provider consent URL.
    Permissions:
        Public.
    """
    if not _is_same_origin(request):
        return csrf_forbidden()
    if provider not in OAUTH_PROVIDERS:
        return auth_redirect(request, "/?error=auth_provider_error", 303)
    ctx = _resolve_active_main(request).auth_context(request)
    form = await request.form()
    force = (
        ctx.storage.get_cookie(FORCE_ACCOUNT_SELECTION_COOKIE) == "true"
        or _form_str(form, "logout") == "true"
        or request.query_params.get("logout") == "true"
    )
    try:
        url = ctx.sessions.sign_in_with_oauth_provider(
            provider,
            redirect_to=f"{_site_base(request)}/auth/callback",
            force_account_selection=force,
        )
    except AuthError as exc:
        logger.warning("OAuth start failed (%s): %s", provider, exc.code)
        target = "/?error=network" if isinstance(exc, NetworkError) else "/?error=auth_error"
        return auth_redirect(request, target, 303)
    if force:
        ctx.storage.expire(FORCE_ACCOUNT_SELECTION_COOKIE)
    return auth_redirect(request, url, 303)


@auth_router.post("/auth/register")
async def auth_register(request: Request):
    """
    Register a new account.

    Behavior:
        - Validates required fields, password length and confirmation.
        - Email confirmation pending: 303 to `/?email_pending=true`.
        - Immediate session (confirmation disabled at the store): 303 to /dashboard.
    Permissions:
        Public.
    """
    if not _is_same_origin(request):
        return csrf_forbidden()
    mod = _resolve_active_main(request)
    form = await request.form()
    values = {name: _form_str(form, name) for name in ("first_name", "last_name", "student_code", "email")}
    password = form.get("password") if isinstance(form.get("password"), str) else ""
    confirm = form.get("password_confirm") if isinstance(form.get("password_confirm"), str) else ""
    if not (values["first_name"] and values["last_name"] and values["email"] and password):
        return mod.render_landing(request, status_code=400, register_error="missing_fields", values=values)
    if password != confirm:
        return mod.render_landing(request, status_code=400, register_error="password_mismatch", values=values)
    try:
        session = mod.auth_context(request).sessions.sign_up(
            values["email"],
            password,
            first_name=values["first_name"],
            last_name=values["last_name"],
            student_code=values["student_code"] or None,
            redirect_to=f"{_site_base(request)}/auth/callback?verified=true",
        )
    except AuthError as exc:
        logger.info("Registration failed: %s", exc.code)
        return mod.render_landing(request, status_code=_status_for(exc), register_error=_error_param(exc), values=values)
    if session is None:
        return auth_redirect(request, "/?email_pending=true", 303)
    return auth_redirect(request, "/dashboard", 303)


@auth_router.post("/auth/resend")
async def auth_resend(request: Request):
    """Resend the verification email; always lands on the pending banner."""
    if not _is_same_origin(request):
        return csrf_forbidden()
    mod = _resolve_active_main(request)
    form = await request.form()
    email = _form_str(form, "email")
    target = "/?email_pending=true"
    if email:
        try:
            mod.auth_context(request).sessions.resend_verification(
                email, redirect_to=f"{_site_base(request)}/auth/callback?verified=true"
            )
        except AuthError as exc:
            logger.warning("Resend verification failed: %s", exc.code)
            target = f"/?email_pending=true&error={_error_param(exc)}"
    return auth_redirect(request, target, 303)


@auth_router.post("/auth/forgot")
async def auth_forgot(request: Request):
    """
    Request a password reset email.

    Security:
        Always answers with the same neutral banner so the response does not
        reveal whether an account exists; only transport failures differ.
    """
    if not _is_same_origin(request):
        return csrf_forbidden()
    mod = _resolve_active_main(request)
    form = await request.form()
    email = _form_str(form, "email")
    if email:
        try:
            mod.auth_context(request).sessions.request_password_reset(
                email, redirect_to=f"{_site_base(request)}/auth/callback?type=recovery"
            )
        except NetworkError:
            return auth_redirect(request, "/?error=network", 303)
    return auth_redirect(request, "/?reset_sent=true", 303)


def _reset_page(request: Request, *, error: str | None = None, status_code: int = 200) -> HTMLResponse:
    mod = _resolve_active_main(request)
    content = f"""
    <div class="container">
        <h1>Restablecer contraseña</h1>
        {ResetPasswordForm(error).render()}
    </div>
    """
    layout = Layout(title="Restablecer contraseña", content=content, user=None, current_path="/auth/reset-password")
    return mod._layout_response(request, layout, status_code=status_code)


@auth_router.get("/auth/reset-password", response_class=HTMLResponse)
async def auth_reset_password_form(request: Request):
    """Show the new-password form; requires the recovery session from the callback."""
    ctx = _resolve_active_main(request).auth_context(request)
    try:
        session = ctx.sessions.get_current_session()
    except NetworkError:
        return auth_redirect(request, "/?error=network")
    if session is None:
        return auth_redirect(request, "/?error=session_missing")
    return _reset_page(request)


@auth_router.post("/auth/reset-password")
async def auth_reset_password(request: Request):
    if not _is_same_origin(request):
        return csrf_forbidden()
    ctx = _resolve_active_main(request).auth_context(request)
    form = await request.form()
    password = form.get("password") if isinstance(form.get("password"), str) else ""
    confirm = form.get("password_confirm") if isinstance(form.get("password_confirm"), str) else ""
    if password != confirm:
        return _reset_page(request, error="password_mismatch", status_code=400)
    try:
        ctx.sessions.update_password(password)
    except SessionMissing:
        return auth_redirect(request, "/?error=session_missing", 303)
    except AuthError as exc:
        logger.info("Password update failed: %s", exc.code)
        return _reset_page(request, error=_error_param(exc), status_code=_status_for(exc))
    return auth_redirect(request, "/dashboard", 303)


@auth_router.get("/auth/callback")
async def auth_callback(
    request: Request,
    code: str | None = None,
    type: str | None = None,
    verified: str | None = None,
    error: str | None = None,
):
    """
    Complete an OAuth, email-confirmation or recovery redirect (PKCE).

    Behavior:
        - Provider error (`?error=`): 302 to `/?error=auth_error`.
        - Missing or rejected code: 302 to `/?error=callback_error`.
        - Success: 302 to /dashboard, `/auth/reset-password` for recovery
          links, keeping `verified=true` for confirmation links.
    Permissions:
        Public.
    """
    if error:
        logger.info("Auth provider returned an error")
        return auth_redirect(request, "/?error=auth_error")
    if not code:
        return auth_redirect(request, "/?error=callback_error")
    ctx = _resolve_active_main(request).auth_context(request)
    try:
        ctx.sessions.exchange_code(code)
    except NetworkError:
        return auth_redirect(request, "/?error=network")
    except AuthError as exc:
        logger.warning("Code exchange failed: %s", exc.code)
        return auth_redirect(request, "/?error=callback_error")
    if type == "recovery":
        return auth_redirect(request, "/auth/reset-password")
    if verified == "true":
        return auth_redirect(request, "/dashboard?verified=true")
    return auth_redirect(request, "/dashboard")


async def _logout(request: Request, status_code: int) -> Response:
    ctx = _resolve_active_main(request).auth_context(request)
    report = ctx.logout_controller.logout()
    if not report.clean:
        logger.warning("Logout finished with failed steps: %s", ",".join(report.failed))
    return auth_redirect(request, "/?logout=true", status_code)


@auth_router.post("/auth/logout")
async def auth_logout(request: Request):
    """
    Full logout: remote revoke, cookie teardown, force account chooser.

    Behavior:
        - Every step is best-effort; the response is always the landing
          redirect with `logout=true` (303, or 204 + HX-Redirect for HTMX).
        - Idempotent: a second call yields the same response.
    Permissions:
        Public (works with or without a session).
    """
    if not _is_same_origin(request):
        return csrf_forbidden()
    return await _logout(request, 303)


@auth_router.get("/auth/logout")
async def auth_logout_link(request: Request):
    """Link fallback for clients that cannot POST; same teardown as the form."""
    return await _logout(request, 302)
