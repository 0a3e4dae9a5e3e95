"""
Onboarding wizard routes.

Why:
    Users without any role flag complete their profile in a three-step wizard
    rendered inline on the dashboard. Steps travel between requests as form
    fields; only the final submit writes to the `users` table (one update).

Permissions:
    Signed-in users whose profile has no role flag yet. Everyone else is sent
    back through the navigation guard (landing page or dashboard).
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from auth_utils import NO_STORE, auth_redirect, is_htmx
from components.pages import render_wizard
from identity_access.errors import AuthError, NetworkError, StepIncomplete
from identity_access.guard import PAGE_POLICIES
from identity_access.onboarding import LAST_STEP, OnboardingData, OnboardingWizard
from .auth import _resolve_active_main
from .security import _is_same_origin, csrf_forbidden


onboarding_router = APIRouter(tags=["Onboarding"])
logger = logging.getLogger("sipet.web.auth")


def _guard_onboarding(request: Request):
    """Return (decision, None) when onboarding may run, else (None, redirect)."""
    mod = _resolve_active_main(request)
    decision = mod.auth_context(request).guard.check(PAGE_POLICIES["/dashboard"])
    if not decision.allowed:
        return None, auth_redirect(request, decision.redirect_to or "/", 303)
    if not decision.show_onboarding:
        # Roles already assigned; onboarding never runs twice.
        return None, auth_redirect(request, "/dashboard", 303)
    return decision, None


def _wizard_response(request: Request, decision, wizard: OnboardingWizard, *, error: str | None = None, status_code: int = 200):
    if is_htmx(request):
        return HTMLResponse(
            render_wizard(wizard, error),
            status_code=status_code,
            headers={"Cache-Control": NO_STORE},
        )
    mod = _resolve_active_main(request)
    return mod.render_dashboard(request, decision, wizard=wizard, error=error, status_code=status_code)


def _step_from(form) -> int:
    raw = form.get("step")
    try:
        return int(raw) if isinstance(raw, str) else 1
    except ValueError:
        return 1


@onboarding_router.post("/onboarding/step", response_class=HTMLResponse)
async def onboarding_step(request: Request):
    """
    Navigate or re-validate the wizard.

    Behavior:
        - `action=next`: advance when the current step is complete; otherwise
          stay and show which fields are missing (400).
        - `action=back`: previous step, entered values preserved.
        - `action=validate` (HTMX on input): same step, refreshed gating.
    """
    if not _is_same_origin(request):
        return csrf_forbidden()
    decision, redirect = _guard_onboarding(request)
    if redirect is not None:
        return redirect
    form = await request.form()
    wizard = OnboardingWizard(OnboardingData.from_form(form), _step_from(form))
    action = form.get("action")
    if action == "back":
        wizard.back()
    elif action == "next":
        try:
            wizard.advance()
        except StepIncomplete:
            return _wizard_response(request, decision, wizard, error="missing_fields", status_code=400)
    return _wizard_response(request, decision, wizard)


@onboarding_router.post("/onboarding", response_class=HTMLResponse)
async def onboarding_submit(request: Request):
    """
    Final submit: one `users` update with profile fields, role flags and
    `first_time_setup_completed=true`.

    Behavior:
        - Incomplete data re-renders the first incomplete step (400).
        - Store errors re-render step 3 with every entered value kept and an
          inline message (503 network, 400 otherwise).
        - Success: 303 to /dashboard (HTMX: HX-Redirect).
    """
    if not _is_same_origin(request):
        return csrf_forbidden()
    decision, redirect = _guard_onboarding(request)
    if redirect is not None:
        return redirect
    form = await request.form()
    wizard = OnboardingWizard(OnboardingData.from_form(form), LAST_STEP)
    try:
        payload = wizard.profile_update()
    except StepIncomplete as exc:
        wizard.step = exc.step
        return _wizard_response(request, decision, wizard, error="missing_fields", status_code=400)
    ctx = _resolve_active_main(request).auth_context(request)
    try:
        ctx.writer.complete_onboarding(decision.session, payload)
    except AuthError as exc:
        logger.warning("Onboarding update failed: %s", exc.code)
        code = "network" if isinstance(exc, NetworkError) else exc.code
        return _wizard_response(
            request, decision, wizard, error=code, status_code=503 if isinstance(exc, NetworkError) else 400
        )
    logger.info("Onboarding completed (role=%s)", wizard.data.role)
    return auth_redirect(request, "/dashboard", 303)
