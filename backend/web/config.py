"""
Configuration and startup security checks for SIPeT.

Why: A thesis portal holds student identity data; an accidental insecure
deployment must not start. This module provides a single guard that enforces
minimal production safety constraints without burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os


PLACEHOLDER_PREFIXES = ("CHANGE_ME", "DUMMY", "YOUR_")


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _is_placeholder(value: str) -> bool:
    return not value or value.upper().startswith(PLACEHOLDER_PREFIXES)


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - SUPABASE_ANON_KEY must be set and not a placeholder.
    - The browser-facing key must not be the service role key (that key
      bypasses row-level security and must never reach a cookie-bound client).
    - SUPABASE_URL and SIPET_SITE_URL must use https.
    """

    env = os.getenv("SIPET_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Public anon key
    anon = (os.getenv("SUPABASE_ANON_KEY", "") or "").strip()
    if _is_placeholder(anon):
        raise SystemExit(
            "Refusing to start: SUPABASE_ANON_KEY is unset or a placeholder in production."
        )

    # 2) Never run the session client with the service role key
    srole = (os.getenv("SUPABASE_SERVICE_ROLE_KEY", "") or "").strip()
    if srole and srole == anon:
        raise SystemExit(
            "Refusing to start: SUPABASE_ANON_KEY equals SUPABASE_SERVICE_ROLE_KEY. Use the public anon key."
        )

    # 3) Endpoints must use HTTPS in production-like environments
    def _must_be_https(url_value: str, var_name: str, *, required: bool) -> None:
        val = (url_value or "").strip().lower()
        if not val:
            if required:
                raise SystemExit(f"Refusing to start: {var_name} is unset in production.")
            return
        if not val.startswith("https://"):
            raise SystemExit(
                f"Refusing to start: {var_name} must use https in production."
            )

    _must_be_https(os.getenv("SUPABASE_URL", ""), "SUPABASE_URL", required=True)
    _must_be_https(os.getenv("SIPET_SITE_URL", ""), "SIPET_SITE_URL", required=False)
