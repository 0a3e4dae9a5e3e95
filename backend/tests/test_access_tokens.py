"""
Access-token verification (python-jose).

Covers HS256 with the project secret, the "unverifiable" fallback signal when
no secret is configured, JWKS lookups for asymmetric keys and the claim checks
(audience, issuer, expiry).
"""
from __future__ import annotations

from dataclasses import replace

import pytest
import requests

from identity_access import tokens
from identity_access.tokens import (
    UNVERIFIABLE,
    AccessTokenVerificationError,
    JWKSCache,
    verify_access_token,
)
from supabase_fakes import TEST_CFG, mint_access_token


def _code(excinfo) -> str:
    return excinfo.value.code


def test_valid_hs256_token_returns_claims():
    token = mint_access_token(TEST_CFG, "user-1", "ana@example.edu")
    claims = verify_access_token(access_token=token, cfg=TEST_CFG)
    assert claims["sub"] == "user-1"
    assert claims["aud"] == "authenticated"


def test_wrong_secret_is_rejected():
    token = mint_access_token(TEST_CFG, "user-1", "a@x.edu", secret="another-secret-entirely-0000000000")
    with pytest.raises(AccessTokenVerificationError) as exc:
        verify_access_token(access_token=token, cfg=TEST_CFG)
    assert _code(exc) == "invalid_access_token"


def test_expired_token_is_rejected():
    token = mint_access_token(TEST_CFG, "user-1", "a@x.edu", lifetime=-60)
    with pytest.raises(AccessTokenVerificationError) as exc:
        verify_access_token(access_token=token, cfg=TEST_CFG)
    assert _code(exc) == "expired_access_token"


def test_wrong_audience_and_issuer_are_rejected():
    bad_aud = mint_access_token(TEST_CFG, "user-1", "a@x.edu", aud="anon")
    bad_iss = mint_access_token(TEST_CFG, "user-1", "a@x.edu", iss="https://evil.example.com/auth/v1")
    for token in (bad_aud, bad_iss):
        with pytest.raises(AccessTokenVerificationError) as exc:
            verify_access_token(access_token=token, cfg=TEST_CFG)
        assert _code(exc) == "invalid_access_token"


def test_malformed_token_is_rejected():
    with pytest.raises(AccessTokenVerificationError) as exc:
        verify_access_token(access_token="not-a-jwt", cfg=TEST_CFG)
    assert _code(exc) == "malformed_token"


def test_hs256_without_secret_is_unverifiable():
    cfg = replace(TEST_CFG, jwt_secret=None)
    token = mint_access_token(TEST_CFG, "user-1", "a@x.edu")
    with pytest.raises(AccessTokenVerificationError) as exc:
        verify_access_token(access_token=token, cfg=cfg)
    assert _code(exc) == UNVERIFIABLE


class _Resp:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def test_jwks_cache_fetches_once_within_ttl(monkeypatch: pytest.MonkeyPatch):
    calls = []

    def fake_get(url, headers=None, timeout=None):
        calls.append((url, headers, timeout))
        return _Resp(payload={"keys": [{"kid": "k1", "kty": "RSA"}]})

    monkeypatch.setattr(tokens.requests, "get", fake_get)
    cache = JWKSCache(ttl_seconds=60)

    assert cache.get(TEST_CFG)["keys"][0]["kid"] == "k1"
    cache.get(TEST_CFG)

    assert len(calls) == 1
    url, headers, timeout = calls[0]
    assert url == "https://abcdefgh.supabase.co/auth/v1/.well-known/jwks.json"
    assert headers == {"apikey": "test-anon-key"}
    assert timeout == TEST_CFG.timeout_seconds


def test_jwks_transport_failure_maps_to_fetch_failed(monkeypatch: pytest.MonkeyPatch):
    def fake_get(url, headers=None, timeout=None):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(tokens.requests, "get", fake_get)
    with pytest.raises(AccessTokenVerificationError) as exc:
        JWKSCache().get(TEST_CFG)
    assert _code(exc) == "jwks_fetch_failed"


def test_jwks_invalid_document(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(tokens.requests, "get", lambda url, headers=None, timeout=None: _Resp(payload={"nope": 1}))
    with pytest.raises(AccessTokenVerificationError) as exc:
        JWKSCache().get(TEST_CFG)
    assert _code(exc) == "jwks_invalid"


def test_asymmetric_token_with_unknown_kid(monkeypatch: pytest.MonkeyPatch):
    from jose import jwt

    class _StubCache:
        def get(self, cfg):
            return {"keys": [{"kid": "other"}]}

    # Signature is never checked: the key lookup fails first.
    monkeypatch.setattr(jwt, "get_unverified_header", lambda token: {"alg": "RS256", "kid": "k-missing"})
    with pytest.raises(AccessTokenVerificationError) as exc:
        verify_access_token(access_token="x.y.z", cfg=TEST_CFG, cache=_StubCache())
    assert _code(exc) == "unknown_kid"


def test_unsupported_algorithm(monkeypatch: pytest.MonkeyPatch):
    from jose import jwt

    monkeypatch.setattr(jwt, "get_unverified_header", lambda token: {"alg": "none"})
    with pytest.raises(AccessTokenVerificationError) as exc:
        verify_access_token(access_token="x.y.z", cfg=TEST_CFG)
    assert _code(exc) == "unsupported_alg"
