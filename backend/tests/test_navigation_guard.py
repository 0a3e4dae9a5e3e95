"""
Navigation Guard decisions.

Order matters: session, email verification, profile, onboarding, role. Every
negative decision carries one of the fixed redirect targets and no profile.
"""
from __future__ import annotations

import httpx
import pytest

from identity_access.context import SessionContext
from identity_access.guard import PAGE_POLICIES, GuardDecision, PagePolicy
from supabase_fakes import TEST_CFG, FakeSupabaseWorld


@pytest.fixture
def world() -> FakeSupabaseWorld:
    return FakeSupabaseWorld(TEST_CFG)


def _check(world, path, cookies=None):
    ctx = SessionContext(TEST_CFG, cookies or {}, client_factory=world.factory)
    return ctx.guard.check(PAGE_POLICIES[path])


def _user(world, email="ana@example.edu", *, confirmed=True, **profile):
    account = world.add_account(email, confirmed=confirmed, profile=profile if profile else None)
    return world.session_cookies(account)


def test_anonymous_is_sent_to_landing(world):
    decision = _check(world, "/dashboard")
    assert decision == GuardDecision(allowed=False, redirect_to="/")


def test_unverified_email_is_sent_to_pending_banner(world):
    cookies = _user(world, confirmed=False, is_student=True)
    decision = _check(world, "/tesista", cookies)
    assert decision.redirect_to == "/?email_pending=true"
    assert decision.profile is None


def test_store_outage_fails_closed(world):
    cookies = _user(world, is_student=True)
    world.fail("get_session", httpx.ConnectError("down"))
    assert _check(world, "/tesista", cookies).redirect_to == "/?error=network"


def test_profile_errors_fail_closed(world):
    cookies = _user(world)  # no users row
    decision = _check(world, "/dashboard", cookies)
    assert not decision.allowed
    assert decision.redirect_to == "/?error=profile_not_found"


def test_dashboard_renders_onboarding_inline_without_roles(world):
    cookies = _user(world, first_name="Ana")
    decision = _check(world, "/dashboard", cookies)
    assert decision.allowed
    assert decision.show_onboarding
    assert decision.capabilities.needs_setup


def test_portal_without_roles_redirects_to_dashboard(world):
    cookies = _user(world, first_name="Ana")
    assert _check(world, "/tesista", cookies).redirect_to == "/dashboard"


def test_role_mismatch_redirects_silently_to_dashboard(world):
    cookies = _user(world, is_student=True)
    decision = _check(world, "/coordinador", cookies)
    assert decision.redirect_to == "/dashboard"
    assert decision.profile is None


@pytest.mark.parametrize("flag", ["is_advisor", "is_reviewer"])
def test_docente_portal_accepts_advisor_or_reviewer(world, flag):
    cookies = _user(world, **{flag: True})
    decision = _check(world, "/docente", cookies)
    assert decision.allowed
    assert not decision.show_onboarding


def test_admin_requires_administrator_flag(world):
    assert _check(world, "/admin", _user(world, "a@x.edu", is_coordinator=True)).redirect_to == "/dashboard"
    assert _check(world, "/admin", _user(world, "b@x.edu", is_administrator=True)).allowed


def test_redirect_targets_are_allow_listed():
    with pytest.raises(ValueError):
        GuardDecision.redirect("https://evil.example.com/")
    assert GuardDecision.redirect("/?error=network").redirect_to == "/?error=network"


def test_page_policy_validates_onboarding_mode():
    with pytest.raises(ValueError):
        PagePolicy("/x", onboarding="sometimes")
