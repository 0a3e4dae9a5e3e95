"""
Supabase configuration and per-request client factory.

Why: Keep web framework independent wiring in the bounded context. The web
adapter builds one client per request, bound to a cookie-backed storage, so
no session state is shared between browsers (no module-level singleton).

Security: Only the public anon key is used here. Row-level security applies
because reads are authorised with the user's own access token.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse
import os

import httpx
from supabase import ClientOptions

# Small indirection to ease monkeypatching in tests
import supabase as sb


DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class SupabaseConfig:
    url: str  # e.g., https://abcd1234.supabase.co
    anon_key: str  # public anon key; never the service role key
    jwt_secret: Optional[str] = None  # enables local access-token verification
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    site_url: Optional[str] = None  # browser-facing app base, e.g., https://sipet.example.edu

    @property
    def project_ref(self) -> str:
        """First DNS label of the project host (same rule supabase-js uses for cookie names)."""
        host = urlparse(self.url).hostname or ""
        return host.split(".")[0] or "local"

    @property
    def auth_cookie_name(self) -> str:
        return f"sb-{self.project_ref}-auth-token"

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)


def load_supabase_config() -> SupabaseConfig:
    raw_timeout = (os.getenv("SUPABASE_TIMEOUT_SECONDS") or "").strip()
    try:
        timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_SECONDS
    except ValueError:
        timeout = DEFAULT_TIMEOUT_SECONDS
    if timeout <= 0:
        timeout = DEFAULT_TIMEOUT_SECONDS
    return SupabaseConfig(
        url=(os.getenv("SUPABASE_URL") or "http://127.0.0.1:54321").strip().rstrip("/"),
        anon_key=(os.getenv("SUPABASE_ANON_KEY") or "").strip(),
        jwt_secret=(os.getenv("SUPABASE_JWT_SECRET") or "").strip() or None,
        timeout_seconds=timeout,
        site_url=(os.getenv("SIPET_SITE_URL") or "").strip().rstrip("/") or None,
    )


def build_client(cfg: SupabaseConfig, storage: Any):
    """Create a Supabase client whose auth session lives in `storage`.

    Behavior:
        - PKCE flow so the code verifier is an owned cookie, not a URL fragment.
        - No background refresh timer; sessions are refreshed on read.
        - One httpx client bounds every call (auth and PostgREST) by the
          configured timeout. The caller closes it via `client.options.httpx_client`.
    """
    http_client = httpx.Client(timeout=cfg.timeout_seconds)
    options = ClientOptions(
        storage=storage,
        flow_type="pkce",
        auto_refresh_token=False,
        persist_session=True,
        postgrest_client_timeout=cfg.timeout_seconds,
        httpx_client=http_client,
    )
    return sb.create_client(cfg.url, cfg.anon_key, options=options)
