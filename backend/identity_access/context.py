"""
Per-request session context.

Why:
    Replaces a module-level SDK singleton with an explicitly owned object. The
    web middleware creates one context per request, hands it to routes via
    `request.state.auth`, commits its cookie mutations to the response and
    closes it afterwards. Tests substitute the client factory.
"""
from __future__ import annotations

from typing import Any, Callable, Mapping, Optional
import logging

from .artifacts import ArtifactStorage, AuthArtifacts
from .errors import NetworkError
from .guard import NavigationGuard
from .logout import LogoutController
from .profiles import ProfileWriter, RoleResolver
from .sessions import AuthSessionManager, SessionEvents
from .supabase_client import SupabaseConfig, build_client


logger = logging.getLogger("sipet.identity_access")

ClientFactory = Callable[[SupabaseConfig, ArtifactStorage], Any]


class SessionContext:
    def __init__(
        self,
        cfg: SupabaseConfig,
        cookies: Mapping[str, str],
        *,
        host: str = "",
        client_factory: ClientFactory = build_client,
    ):
        self.cfg = cfg
        self.host = host
        self._client_factory = client_factory
        self._client: Optional[Any] = None
        self._closed = False
        self.artifacts = AuthArtifacts(cfg)
        self.storage = ArtifactStorage(cookies, self.artifacts)
        self.events = SessionEvents()
        self.sessions = AuthSessionManager(self.client, self.storage, cfg, self.events, host=host)
        self.resolver = RoleResolver(self.client)
        self.writer = ProfileWriter(self.client)
        self.guard = NavigationGuard(self.sessions, self.resolver)
        self.logout_controller = LogoutController(self.sessions, self.storage, host)

    @property
    def closed(self) -> bool:
        return self._closed

    def client(self):
        """Return the Supabase client, building it on first use."""
        if self._closed:
            raise RuntimeError("session context is closed")
        if self._client is None:
            if not self.cfg.is_configured:
                logger.warning("Supabase client requested without SUPABASE_ANON_KEY")
                raise NetworkError("service_unavailable")
            self._client = self._client_factory(self.cfg, self.storage)
        return self._client

    def commit(self, response, cookie_opts: Mapping[str, object]) -> None:
        self.storage.commit(response, cookie_opts)

    def close(self) -> None:
        if self._closed:
            return
        self.sessions.close()
        client = self._client
        self._closed = True
        self._client = None
        http_client = getattr(getattr(client, "options", None), "httpx_client", None)
        if http_client is not None:
            try:
                http_client.close()
            except Exception as exc:
                logger.warning("Closing HTTP client failed: %s", exc.__class__.__name__)


__all__ = ["ClientFactory", "SessionContext"]
