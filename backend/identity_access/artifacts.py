"""
Auth artifacts: exact-name allow-list and cookie-backed SDK storage.

Why:
    The Supabase SDK persists its session through a key/value storage. On the
    server that storage must be the browser's cookie jar, and teardown must
    remove exactly the cookies the auth layer created: never a pattern match
    against whatever the browser happens to send.

Design:
    - `AuthArtifacts` knows every cookie name the auth layer may own. Names
      written during a session are additionally recorded in a manifest cookie,
      so teardown is a set-difference (owned - kept) over known names.
    - `ArtifactStorage` implements the SDK storage interface over the request
      cookies plus a queue of pending mutations. `commit()` turns the queue into
      `Set-Cookie` headers on the outgoing response.

Security:
    Cookies are HttpOnly; values are base64url encoded and chunked below the
    browser's per-cookie size limit.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Tuple
import base64
import binascii
import logging
import re

from supabase_auth import SyncSupportedStorage
from supabase_auth.constants import STORAGE_KEY

from .supabase_client import SupabaseConfig


logger = logging.getLogger("sipet.identity_access")

# Durable flag: next OAuth sign-in must show the provider's account chooser.
FORCE_ACCOUNT_SELECTION_COOKIE = "sipet-force-account-selection"
FORCE_ACCOUNT_SELECTION_MAX_AGE = 365 * 24 * 3600

# Token cookies written by older supabase-js helpers; still owned so stale copies get removed.
LEGACY_TOKEN_COOKIES = ("sb-access-token", "sb-refresh-token")

MAX_CHUNKS = 5
CHUNK_SIZE = 3180
VALUE_PREFIX = "base64-"
MANIFEST_SEPARATOR = "|"

_COOKIE_NAME_RE = re.compile(r"^[A-Za-z0-9._\-]{1,128}$")


class AuthArtifacts:
    """Exact cookie names owned by the auth layer for one Supabase project."""

    def __init__(self, cfg: SupabaseConfig):
        self.session_cookie = cfg.auth_cookie_name
        self.verifier_cookie = f"{cfg.auth_cookie_name}-code-verifier"
        self.manifest_cookie = f"sb-{cfg.project_ref}-auth-artifacts"
        self._extra_prefix = f"sb-{cfg.project_ref}-"

    def chunk_names(self, base: str) -> Tuple[str, ...]:
        return tuple(f"{base}.{i}" for i in range(MAX_CHUNKS))

    def static_names(self) -> frozenset[str]:
        names = {self.session_cookie, self.verifier_cookie, self.manifest_cookie}
        names.update(self.chunk_names(self.session_cookie))
        names.update(LEGACY_TOKEN_COOKIES)
        return frozenset(names)

    def owned_names(self, recorded: Iterable[str] = ()) -> frozenset[str]:
        """Return every owned name: the static allow-list plus recorded names.

        The force-account-selection flag is never owned; it must survive teardown.
        """
        names = set(self.static_names())
        names.update(n for n in recorded if _COOKIE_NAME_RE.match(n))
        names.discard(FORCE_ACCOUNT_SELECTION_COOKIE)
        return frozenset(names)

    def cookie_name_for(self, key: str) -> str:
        """Map an SDK storage key to its cookie name."""
        if key == STORAGE_KEY:
            return self.session_cookie
        if key == f"{STORAGE_KEY}-code-verifier":
            return self.verifier_cookie
        suffix = key[len(STORAGE_KEY):] if key.startswith(STORAGE_KEY) else key
        safe = re.sub(r"[^A-Za-z0-9_\-]", "-", suffix).strip("-") or "item"
        return f"{self.session_cookie}-{safe}"


@dataclass
class CookieMutation:
    name: str
    value: str
    domain: Optional[str] = None
    max_age: Optional[int] = None  # None = session cookie
    delete: bool = False


def encode_value(value: str) -> str:
    raw = base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{VALUE_PREFIX}{raw}"


def decode_value(value: str) -> Optional[str]:
    if not value.startswith(VALUE_PREFIX):
        return value
    raw = value[len(VALUE_PREFIX):]
    try:
        padded = raw + "=" * (-len(raw) % 4)
        return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True).decode("utf-8")
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None


class ArtifactStorage(SyncSupportedStorage):
    """SDK storage over request cookies with queued response mutations."""

    def __init__(self, cookies: Mapping[str, str], artifacts: AuthArtifacts):
        self.artifacts = artifacts
        self._jar: Dict[str, str] = dict(cookies)
        self._pending: Dict[Tuple[str, Optional[str]], CookieMutation] = {}
        raw_manifest = self._jar.get(artifacts.manifest_cookie, "")
        self._recorded = {n for n in raw_manifest.split(MANIFEST_SEPARATOR) if n}

    # --- SDK storage interface ------------------------------------------------

    def get_item(self, key: str) -> Optional[str]:
        name = self.artifacts.cookie_name_for(key)
        if name in self._jar:
            return decode_value(self._jar[name])
        parts = []
        for chunk in self.artifacts.chunk_names(name):
            if chunk not in self._jar:
                break
            parts.append(self._jar[chunk])
        if not parts:
            return None
        return decode_value("".join(parts))

    def set_item(self, key: str, value: str) -> None:
        name = self.artifacts.cookie_name_for(key)
        encoded = encode_value(value)
        chunk_names = self.artifacts.chunk_names(name)
        if len(encoded) <= CHUNK_SIZE:
            self._write(name, encoded)
            for chunk in chunk_names:
                self._expire_if_known(chunk)
        else:
            pieces = [encoded[i:i + CHUNK_SIZE] for i in range(0, len(encoded), CHUNK_SIZE)]
            if len(pieces) > MAX_CHUNKS:
                raise ValueError("auth_cookie_too_large")
            self._expire_if_known(name)
            for chunk, piece in zip(chunk_names, pieces):
                self._write(chunk, piece)
            for chunk in chunk_names[len(pieces):]:
                self._expire_if_known(chunk)
        self._write_manifest()

    def remove_item(self, key: str) -> None:
        name = self.artifacts.cookie_name_for(key)
        self._expire_if_known(name)
        for chunk in self.artifacts.chunk_names(name):
            self._expire_if_known(chunk)
        self._write_manifest()

    # --- Teardown ---------------------------------------------------------------

    @property
    def present_names(self) -> frozenset[str]:
        return frozenset(self._jar)

    @property
    def recorded_names(self) -> frozenset[str]:
        return frozenset(self._recorded)

    def owned_present(self) -> frozenset[str]:
        """Owned names that are currently readable (request cookies + pending writes)."""
        return self.artifacts.owned_names(self._recorded) & self.present_names

    def scrub(self, keep: Iterable[str] = (), host: str = "") -> frozenset[str]:
        """Expire every owned artifact except `keep`; returns the expired names.

        Teardown is a set-difference over exact names: (owned & present) - keep.
        With `host`, the Domain=host and Domain=.host copies are expired too.
        """
        keep_set = set(keep) | {FORCE_ACCOUNT_SELECTION_COOKIE}
        targets = (self.owned_present() | self._recorded) - keep_set
        variants = _domain_variants(host)
        for name in sorted(targets):
            self.expire(name)
            for domain in variants:
                self._queue(CookieMutation(name=name, value="", domain=domain, max_age=0, delete=True))
        self._recorded.clear()
        return frozenset(targets)

    def expire_everywhere(self, host: str) -> frozenset[str]:
        """Expire every owned name on host-only, `host` and `.host` domain variants.

        Browsers key cookies by exact domain+path, so a cookie set with a
        Domain attribute survives a host-only deletion (and vice versa).
        """
        names = self.artifacts.owned_names(self._recorded)
        variants = _domain_variants(host)
        for name in sorted(names):
            self.expire(name)
            for domain in variants:
                self._queue(CookieMutation(name=name, value="", domain=domain, max_age=0, delete=True))
        return names

    # --- Generic cookie helpers ---------------------------------------------

    def set_cookie(self, name: str, value: str, *, max_age: Optional[int] = None) -> None:
        self._jar[name] = value
        self._queue(CookieMutation(name=name, value=value, max_age=max_age))

    def expire(self, name: str) -> None:
        self._jar.pop(name, None)
        self._queue(CookieMutation(name=name, value="", max_age=0, delete=True))

    def get_cookie(self, name: str) -> Optional[str]:
        return self._jar.get(name)

    def pending(self) -> Tuple[CookieMutation, ...]:
        return tuple(self._pending.values())

    def commit(self, response, cookie_opts: Mapping[str, object]) -> None:
        """Write queued mutations as Set-Cookie headers (last write per name/domain wins)."""
        for mutation in self._pending.values():
            kwargs = dict(
                key=mutation.name,
                value=mutation.value,
                httponly=True,
                secure=bool(cookie_opts.get("secure", True)),
                samesite=cookie_opts.get("samesite", "lax"),
                path="/",
            )
            if mutation.domain:
                kwargs["domain"] = mutation.domain
            if mutation.delete:
                kwargs["expires"] = 0
                kwargs["max_age"] = 0
            elif mutation.max_age is not None:
                kwargs["max_age"] = mutation.max_age
            response.set_cookie(**kwargs)
        self._pending.clear()

    # --- Internals --------------------------------------------------------------

    def _write(self, name: str, value: str) -> None:
        self._jar[name] = value
        self._recorded.add(name)
        self._queue(CookieMutation(name=name, value=value))

    def _expire_if_known(self, name: str) -> None:
        if name in self._jar or name in self._recorded:
            self.expire(name)
        self._recorded.discard(name)

    def _write_manifest(self) -> None:
        manifest = self.artifacts.manifest_cookie
        names = sorted(n for n in self._recorded if n != manifest)
        if names:
            value = MANIFEST_SEPARATOR.join(names)
            self._jar[manifest] = value
            self._queue(CookieMutation(name=manifest, value=value))
        elif manifest in self._jar:
            self.expire(manifest)

    def _queue(self, mutation: CookieMutation) -> None:
        key = (mutation.name, mutation.domain)
        # Re-insert so the newest mutation is also the last one committed.
        self._pending.pop(key, None)
        self._pending[key] = mutation


def _domain_variants(host: str) -> Tuple[str, ...]:
    bare = (host or "").split(":")[0].strip().lower().lstrip(".")
    if not bare:
        return ()
    return (bare, f".{bare}")


__all__ = [
    "FORCE_ACCOUNT_SELECTION_COOKIE",
    "FORCE_ACCOUNT_SELECTION_MAX_AGE",
    "LEGACY_TOKEN_COOKIES",
    "AuthArtifacts",
    "ArtifactStorage",
    "CookieMutation",
    "encode_value",
    "decode_value",
]
