"""
Access-token verification for Supabase sessions read from cookies.

Why: The SDK trusts whatever session JSON sits in its storage. On the server
that storage is a browser cookie, so the access token must be verified before
the session is believed. Keeping the cryptography here lets us unit test it
without the web adapter.

Security: Validates signature (project JWT secret for HS256, or the project's
JWKS for asymmetric keys), audience `authenticated`, issuer and expiry.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple
import time

import requests
from jose import jwt
from jose.exceptions import JOSEError

from .supabase_client import SupabaseConfig


class AccessTokenVerificationError(Exception):
    """Raised when the access token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


# Verification impossible without a key (HS256 and no secret configured).
UNVERIFIABLE = "unverifiable"

EXPECTED_AUDIENCE = "authenticated"
MAX_CLOCK_SKEW_SECONDS = 5


@dataclass
class _CacheEntry:
    jwks: Dict[str, object]
    expires_at: float


class JWKSCache:
    """Very small in-memory cache for the project's JWKS document."""

    def __init__(self, ttl_seconds: int = 600):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, _CacheEntry] = {}

    def get(self, cfg: SupabaseConfig) -> Dict[str, object]:
        now = time.time()
        entry = self._entries.get(cfg.url)
        if entry and entry.expires_at > now:
            return entry.jwks

        jwks = self._fetch(cfg)
        self._entries[cfg.url] = _CacheEntry(jwks=jwks, expires_at=now + self.ttl_seconds)
        return jwks

    def _fetch(self, cfg: SupabaseConfig) -> Dict[str, object]:
        url = f"{cfg.url}/auth/v1/.well-known/jwks.json"
        try:
            resp = requests.get(url, headers={"apikey": cfg.anon_key}, timeout=cfg.timeout_seconds)
        except requests.RequestException as exc:
            raise AccessTokenVerificationError("jwks_fetch_failed") from exc
        if resp.status_code != 200:
            raise AccessTokenVerificationError("jwks_fetch_failed")
        try:
            jwks = resp.json()
        except ValueError as exc:
            raise AccessTokenVerificationError("jwks_invalid") from exc
        if not isinstance(jwks, dict) or "keys" not in jwks:
            raise AccessTokenVerificationError("jwks_invalid")
        return jwks


JWKS_CACHE = JWKSCache()


def verify_access_token(
    *,
    access_token: str,
    cfg: SupabaseConfig,
    cache: JWKSCache | None = None,
) -> Dict[str, object]:
    """Validate a Supabase access token and return its claims.

    Raises
    ------
    AccessTokenVerificationError:
        `unverifiable` when the token is HS256 and no JWT secret is configured
        (callers fall back to asking the auth server); any other code means
        the token must not be trusted.
    """
    try:
        header = jwt.get_unverified_header(access_token)
    except JOSEError as exc:
        raise AccessTokenVerificationError("malformed_token") from exc
    alg = str(header.get("alg") or "")

    key, algorithms = _resolve_key(header, alg, cfg, cache or JWKS_CACHE)
    try:
        claims = jwt.decode(
            access_token,
            key,
            algorithms=algorithms,
            audience=EXPECTED_AUDIENCE,
            issuer=f"{cfg.url}/auth/v1",
            options={
                "verify_signature": True,
                "verify_aud": True,
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "verify_at_hash": False,
            },
        )
    except JOSEError as exc:
        raise AccessTokenVerificationError("invalid_access_token") from exc

    _validate_temporal_claims(claims)
    if not claims.get("sub"):
        raise AccessTokenVerificationError("invalid_access_token")
    return claims


def _resolve_key(header: Dict[str, object], alg: str, cfg: SupabaseConfig, cache: JWKSCache) -> Tuple[object, list[str]]:
    if alg == "HS256":
        if not cfg.jwt_secret:
            raise AccessTokenVerificationError(UNVERIFIABLE)
        return cfg.jwt_secret, ["HS256"]
    if alg not in ("RS256", "ES256"):
        raise AccessTokenVerificationError("unsupported_alg")
    kid = header.get("kid")
    if not kid:
        raise AccessTokenVerificationError("missing_kid")
    key_dict = _find_key(cache.get(cfg), str(kid))
    if not key_dict:
        raise AccessTokenVerificationError("unknown_kid")
    return key_dict, [alg]


def _find_key(jwks: Dict[str, object], kid: str) -> Dict[str, object] | None:
    keys = jwks.get("keys")
    if not isinstance(keys, list):
        return None
    for key in keys:
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    return None


def _validate_temporal_claims(claims: Dict[str, object]) -> None:
    now = time.time()
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise AccessTokenVerificationError("invalid_access_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise AccessTokenVerificationError("expired_access_token")

    iat = claims.get("iat")
    if isinstance(iat, (int, float)) and iat - MAX_CLOCK_SKEW_SECONDS > now:
        raise AccessTokenVerificationError("invalid_access_token")
