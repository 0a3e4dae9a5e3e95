"""
PKCE callback, registration, verification resend and password recovery.

Callback contract:
- `?error=` from the provider -> `/?error=auth_error`
- missing code or missing verifier -> `/?error=callback_error`
- success -> /dashboard (`?verified=true` kept), recovery -> /auth/reset-password
"""
from __future__ import annotations

from pathlib import Path
import sys

import httpx
import pytest
from httpx import ASGITransport


REPO_ROOT = Path(__file__).resolve().parents[2]
WEB_DIR = REPO_ROOT / "backend" / "web"
if str(WEB_DIR) not in sys.path:
    sys.path.insert(0, str(WEB_DIR))
import main  # type: ignore


pytestmark = pytest.mark.anyio("asyncio")

SESSION_COOKIE = "sb-abcdefgh-auth-token"
VERIFIER_COOKIE = "sb-abcdefgh-auth-token-code-verifier"


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="https://test")


def _session_written(resp: httpx.Response) -> bool:
    return any(
        h.startswith(f"{SESSION_COOKIE}=") and "Max-Age=0" not in h for h in resp.headers.get_list("set-cookie")
    )


# --- Callback ---------------------------------------------------------------------


@pytest.mark.anyio
async def test_callback_provider_error():
    async with _client() as client:
        resp = await client.get("/auth/callback?error=access_denied&error_description=nope")
    assert resp.status_code == 302
    assert resp.headers["location"] == "/?error=auth_error"
    assert resp.headers.get("Cache-Control") == "private, no-store"


@pytest.mark.anyio
async def test_callback_without_code():
    async with _client() as client:
        resp = await client.get("/auth/callback")
    assert resp.headers["location"] == "/?error=callback_error"


@pytest.mark.anyio
async def test_callback_without_verifier_is_rejected(supabase_world):
    supabase_world.add_account("ana@example.edu")
    code = supabase_world.issue_code("ana@example.edu")
    async with _client() as client:
        resp = await client.get(f"/auth/callback?code={code}")
    assert resp.headers["location"] == "/?error=callback_error"
    assert supabase_world.called("exchange_code_for_session") == []


@pytest.mark.anyio
async def test_callback_with_unknown_code(supabase_world):
    async with _client() as client:
        client.cookies.set(VERIFIER_COOKIE, "verifier-1")
        resp = await client.get("/auth/callback?code=bogus")
    assert resp.headers["location"] == "/?error=callback_error"
    assert not _session_written(resp)


@pytest.mark.anyio
async def test_callback_success_writes_session(supabase_world):
    supabase_world.add_account("ana@example.edu", profile={"is_student": True})
    code = supabase_world.issue_code("ana@example.edu")
    async with _client() as client:
        client.cookies.set(VERIFIER_COOKIE, "verifier-1")
        resp = await client.get(f"/auth/callback?code={code}")
    assert resp.status_code == 302
    assert resp.headers["location"] == "/dashboard"
    assert _session_written(resp)
    verifier = [h for h in resp.headers.get_list("set-cookie") if h.startswith(f"{VERIFIER_COOKIE}=")]
    assert verifier and all("Max-Age=0" in h for h in verifier)


@pytest.mark.anyio
async def test_callback_keeps_verified_marker(supabase_world):
    supabase_world.add_account("new@example.edu", confirmed=False, profile={"first_name": "Nina"})
    code = supabase_world.issue_code("new@example.edu")
    async with _client() as client:
        client.cookies.set(VERIFIER_COOKIE, "verifier-1")
        resp = await client.get(f"/auth/callback?code={code}&verified=true")
        dash = await client.get("/dashboard?verified=true")
    assert resp.headers["location"] == "/dashboard?verified=true"
    assert 'data-banner="verified"' in dash.text


@pytest.mark.anyio
async def test_callback_network_failure(supabase_world):
    supabase_world.fail("exchange_code_for_session", httpx.ConnectError("down"))
    async with _client() as client:
        client.cookies.set(VERIFIER_COOKIE, "verifier-1")
        resp = await client.get("/auth/callback?code=abc")
    assert resp.headers["location"] == "/?error=network"


# --- Registration -----------------------------------------------------------------


REGISTRATION = {
    "first_name": "Nina",
    "last_name": "Quispe",
    "student_code": "2020123456",
    "email": "nina@example.edu",
    "password": "pw-123456",
    "password_confirm": "pw-123456",
}


@pytest.mark.anyio
async def test_register_pending_confirmation(supabase_world):
    async with _client() as client:
        resp = await client.post("/auth/register", data=REGISTRATION)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/?email_pending=true"
    assert not _session_written(resp)
    (_, email, options), = supabase_world.called("sign_up")
    assert email == "nina@example.edu"
    assert options["email_redirect_to"] == "https://test/auth/callback?verified=true"
    assert options["data"]["codigo_matricula"] == "2020123456"
    assert options["data"]["full_name"] == "Nina Quispe"


@pytest.mark.anyio
async def test_register_with_autoconfirm_signs_in(supabase_world):
    supabase_world.autoconfirm = True
    async with _client() as client:
        resp = await client.post("/auth/register", data=REGISTRATION)
    assert resp.headers["location"] == "/dashboard"
    assert _session_written(resp)


@pytest.mark.anyio
@pytest.mark.parametrize(
    "overrides, code",
    [
        ({"password_confirm": "other-pass"}, "password_mismatch"),
        ({"first_name": "  "}, "missing_fields"),
        ({"password": "abc", "password_confirm": "abc"}, "weak_password"),
    ],
)
async def test_register_validation_errors(supabase_world, overrides, code):
    async with _client() as client:
        resp = await client.post("/auth/register", data={**REGISTRATION, **overrides})
    assert resp.status_code == 400
    assert f'data-error="{code}"' in resp.text
    assert 'value="nina@example.edu"' in resp.text
    assert "pw-123456" not in resp.text
    assert supabase_world.called("sign_up") == []


@pytest.mark.anyio
async def test_register_existing_account(supabase_world):
    supabase_world.add_account("nina@example.edu")
    async with _client() as client:
        resp = await client.post("/auth/register", data=REGISTRATION)
    assert resp.status_code == 400
    assert 'data-error="user_already_exists"' in resp.text


@pytest.mark.anyio
async def test_resend_verification(supabase_world):
    async with _client() as client:
        resp = await client.post("/auth/resend", data={"email": "nina@example.edu"})
    assert resp.headers["location"] == "/?email_pending=true"
    (_, email, options), = supabase_world.called("resend")
    assert email == "nina@example.edu"
    assert options == {"email_redirect_to": "https://test/auth/callback?verified=true"}


# --- Recovery ---------------------------------------------------------------------


@pytest.mark.anyio
async def test_forgot_password_answers_neutrally(supabase_world):
    async with _client() as client:
        resp = await client.post("/auth/forgot", data={"email": "nobody@example.edu"})
        landing = await client.get(resp.headers["location"])
    assert resp.headers["location"] == "/?reset_sent=true"
    assert 'data-banner="reset-sent"' in landing.text
    (_, _, options), = supabase_world.called("reset_password_for_email")
    assert options == {"redirect_to": "https://test/auth/callback?type=recovery"}


@pytest.mark.anyio
async def test_forgot_password_network_failure(supabase_world):
    supabase_world.fail("reset_password_for_email", httpx.ConnectError("down"))
    async with _client() as client:
        resp = await client.post("/auth/forgot", data={"email": "ana@example.edu"})
    assert resp.headers["location"] == "/?error=network"


@pytest.mark.anyio
async def test_reset_password_requires_session():
    async with _client() as client:
        resp = await client.get("/auth/reset-password")
    assert resp.status_code == 302
    assert resp.headers["location"] == "/?error=session_missing"


@pytest.mark.anyio
async def test_recovery_link_then_new_password(supabase_world):
    account = supabase_world.add_account("ana@example.edu", "old-password", profile={"is_student": True})
    code = supabase_world.issue_code("ana@example.edu")
    async with _client() as client:
        client.cookies.set(VERIFIER_COOKIE, "verifier-1")
        callback = await client.get(f"/auth/callback?code={code}&type=recovery")
        form = await client.get("/auth/reset-password")
        mismatch = await client.post(
            "/auth/reset-password", data={"password": "new-pass-1", "password_confirm": "new-pass-2"}
        )
        done = await client.post(
            "/auth/reset-password", data={"password": "new-pass-1", "password_confirm": "new-pass-1"}
        )

    assert callback.headers["location"] == "/auth/reset-password"
    assert form.status_code == 200
    assert 'action="/auth/reset-password"' in form.text
    assert mismatch.status_code == 400
    assert 'data-error="password_mismatch"' in mismatch.text
    assert done.status_code == 303
    assert done.headers["location"] == "/dashboard"
    assert account.password == "new-pass-1"


@pytest.mark.anyio
async def test_reset_password_post_without_session():
    async with _client() as client:
        resp = await client.post(
            "/auth/reset-password", data={"password": "new-pass-1", "password_confirm": "new-pass-1"}
        )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/?error=session_missing"
