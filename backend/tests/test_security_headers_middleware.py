"""
Global security headers: middleware coverage.

HTML, JSON and redirect responses carry CSP, XFO, XCTO, Referrer-Policy,
Permissions-Policy and HSTS (dev = prod). Production additionally drops
'unsafe-inline' from the CSP and sets COOP.
"""

from __future__ import annotations

from pathlib import Path
import sys

import pytest
import httpx
from httpx import ASGITransport


REPO_ROOT = Path(__file__).resolve().parents[2]
WEB_DIR = REPO_ROOT / "backend" / "web"
if str(WEB_DIR) not in sys.path:
    sys.path.insert(0, str(WEB_DIR))
import main  # type: ignore


pytestmark = pytest.mark.anyio("asyncio")


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="https://test")


def _assert_base_headers(hdrs) -> None:
    assert "Content-Security-Policy" in hdrs
    assert hdrs["X-Frame-Options"] == "SAMEORIGIN"
    assert hdrs["X-Content-Type-Options"] == "nosniff"
    assert hdrs["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "camera=()" in hdrs["Permissions-Policy"]
    assert hdrs["Strict-Transport-Security"].startswith("max-age=31536000")


@pytest.mark.anyio
@pytest.mark.parametrize("path", ["/", "/health", "/api/me", "/dashboard"])
async def test_responses_include_security_headers(path):
    async with _client() as client:
        resp = await client.get(path)
    _assert_base_headers(resp.headers)


@pytest.mark.anyio
async def test_dev_csp_allows_inline_and_has_no_coop():
    async with _client() as client:
        resp = await client.get("/")
    assert "'unsafe-inline'" in resp.headers["Content-Security-Policy"]
    assert "Cross-Origin-Opener-Policy" not in resp.headers


@pytest.mark.anyio
async def test_prod_hardens_csp_and_sets_coop():
    main.SETTINGS.override_environment("prod")
    try:
        async with _client() as client:
            resp = await client.get("/")
    finally:
        main.SETTINGS.override_environment(None)
    _assert_base_headers(resp.headers)
    csp = resp.headers["Content-Security-Policy"]
    assert "'unsafe-inline'" not in csp
    assert "default-src 'self'" in csp
    assert resp.headers["Cross-Origin-Opener-Policy"] == "same-origin"
