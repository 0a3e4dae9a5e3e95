"""
Logout contract.

- POST /auth/logout: 303 to `/?logout=true` (HTMX: 204 + HX-Redirect).
- Every owned cookie is expired on host-only, Domain=host and Domain=.host.
- The durable force-account-selection flag is set; unrelated cookies stay.
- Idempotent: a second logout answers identically and does not call the store.
- After logout no protected page renders any protected markup.
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
FLAG_COOKIE = "sipet-force-account-selection"


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="https://test")


async def _signed_in(client: httpx.AsyncClient, world, **profile) -> None:
    # Real sign-in, so the cookie jar holds exactly what the server set.
    world.add_account("ana@example.edu", "pw-123456", profile=profile or {"is_student": True})
    resp = await client.post("/auth/login", data={"email": "ana@example.edu", "password": "pw-123456"})
    assert resp.status_code == 303


def _headers_for(resp: httpx.Response, name: str) -> list[str]:
    return [h for h in resp.headers.get_list("set-cookie") if h.startswith(f"{name}=")]


@pytest.mark.anyio
async def test_logout_expires_session_on_every_domain_variant(supabase_world):
    async with _client() as client:
        await _signed_in(client, supabase_world)
        client.cookies.set("theme", "dark")
        resp = await client.post("/auth/logout")

    assert resp.status_code == 303
    assert resp.headers["location"] == "/?logout=true"
    assert resp.headers.get("Cache-Control") == "private, no-store"

    session_headers = _headers_for(resp, SESSION_COOKIE)
    assert session_headers and all("Max-Age=0" in h for h in session_headers)
    domains = {next((p.strip() for p in h.split(";") if p.strip().startswith("Domain=")), "") for h in session_headers}
    assert domains == {"", "Domain=test", "Domain=.test"}
    assert len(_headers_for(resp, "sb-access-token")) == 3
    assert _headers_for(resp, "theme") == []
    assert supabase_world.called("sign_out") == [("sign_out", "global")]


@pytest.mark.anyio
async def test_logout_sets_durable_force_account_selection_flag(supabase_world):
    async with _client() as client:
        await _signed_in(client, supabase_world)
        resp = await client.post("/auth/logout")
    flags = _headers_for(resp, FLAG_COOKIE)
    assert len(flags) == 1
    assert flags[0].startswith(f"{FLAG_COOKIE}=true")
    assert "Max-Age=31536000" in flags[0]
    assert "HttpOnly" in flags[0]


@pytest.mark.anyio
async def test_second_logout_is_identical_and_skips_the_store(supabase_world):
    async with _client() as client:
        await _signed_in(client, supabase_world)
        first = await client.post("/auth/logout")
        second = await client.post("/auth/logout")

    assert (first.status_code, first.headers["location"]) == (second.status_code, second.headers["location"])
    assert len(supabase_world.called("sign_out")) == 1


@pytest.mark.anyio
async def test_logout_remote_failure_still_clears_locally(supabase_world):
    supabase_world.fail("sign_out", httpx.ConnectError("down"))
    async with _client() as client:
        await _signed_in(client, supabase_world)
        resp = await client.post("/auth/logout")
        dash = await client.get("/dashboard")

    assert resp.status_code == 303
    assert all("Max-Age=0" in h for h in _headers_for(resp, SESSION_COOKIE))
    assert dash.status_code == 302
    assert dash.headers["location"] == "/"


@pytest.mark.anyio
async def test_logout_htmx_and_get_variants(supabase_world):
    async with _client() as client:
        await _signed_in(client, supabase_world)
        htmx = await client.post("/auth/logout", headers={"HX-Request": "true"})
        link = await client.get("/auth/logout")
    assert htmx.status_code == 204
    assert htmx.headers.get("HX-Redirect") == "/?logout=true"
    assert link.status_code == 302
    assert link.headers["location"] == "/?logout=true"


@pytest.mark.anyio
async def test_cross_origin_logout_is_forbidden(supabase_world):
    async with _client() as client:
        await _signed_in(client, supabase_world)
        resp = await client.post("/auth/logout", headers={"Origin": "https://evil.example.com"})
    assert resp.status_code == 403
    assert resp.json()["detail"] == "csrf_violation"
    assert supabase_world.called("sign_out") == []


@pytest.mark.anyio
async def test_after_logout_protected_pages_render_no_protected_markup(supabase_world):
    async with _client() as client:
        await _signed_in(client, supabase_world, is_student=True, full_name="Ana Rojas")
        before = await client.get("/tesista")
        await client.post("/auth/logout")
        pages = [await client.get(path) for path in ("/dashboard", "/tesista", "/docente", "/coordinador", "/admin")]
        landing = await client.get("/?logout=true")

    assert before.status_code == 200 and "Ana Rojas" in before.text
    for page in pages:
        assert page.status_code == 302
        assert page.headers["location"] == "/"
        assert page.text == ""
    assert 'data-banner="logout"' in landing.text
    assert "Ana Rojas" not in landing.text
    assert 'name="logout" value="true"' in landing.text
