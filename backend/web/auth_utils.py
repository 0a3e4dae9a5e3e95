"""
Shared authentication utilities.

Why:
    Avoid duplicating cookie policy and auth response conventions across the
    main app and the auth/onboarding routers. Keeping single helpers keeps the
    `Cache-Control` and HTMX redirect behavior consistent.

Design:
    `cookie_opts` is pure: it accepts an environment string and returns the
    cookie flags. The response helpers only depend on Starlette responses.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import RedirectResponse, Response


NO_STORE = "private, no-store"


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    Returns a mapping with keys:
      - secure: True
      - samesite: "lax"  # Allow top-level OAuth redirects to send the verifier cookie
    """
    # "Strict" would suppress the PKCE verifier cookie on the redirect back
    # from Google/Microsoft and break the callback.
    return {"secure": True, "samesite": "lax"}


def is_htmx(request: Request) -> bool:
    return "HX-Request" in request.headers


def auth_redirect(request: Request, url: str, status_code: int = 302) -> Response:
    """Redirect that also works for HTMX requests (204 + HX-Redirect).

    All auth redirects are private; they must never be cached by a proxy.
    """
    if is_htmx(request):
        return Response(status_code=204, headers={"HX-Redirect": url, "Cache-Control": NO_STORE})
    resp = RedirectResponse(url=url, status_code=status_code)
    resp.headers["Cache-Control"] = NO_STORE
    return resp
