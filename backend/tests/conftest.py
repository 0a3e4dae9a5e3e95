"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors).
Every test runs against an in-memory Supabase project (see
`supabase_fakes.py`); nothing reaches the network.
"""
import importlib
import sys
from pathlib import Path
import pytest

# Ensure modules in backend/ and backend/web are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
WEB_DIR = BACKEND_DIR / "web"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(REPO_ROOT), str(BACKEND_DIR), str(WEB_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _main_modules():
    # Only `main` is imported here; `backend.web.main` is patched when a test loaded it.
    modules = [sys.modules.get("main") or importlib.import_module("main")]
    alias = sys.modules.get("backend.web.main")
    if alias is not None and alias not in modules:
        modules.append(alias)
    return modules


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Clear env-driven toggles so every test starts from dev defaults.

    Why:
        Prod semantics (CSP, COOP, startup guard) and proxy trust are opted
        into per test. Leftovers from a developer shell must not leak in.
    """
    for var in ("SIPET_ENV", "SIPET_TRUST_PROXY", "SIPET_SITE_URL", "SIPET_ENABLE_DOTENV"):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def supabase_world(monkeypatch: pytest.MonkeyPatch):
    """Install a fresh in-memory Supabase project for every test.

    Behavior:
        - Replaces `main.CLIENT_FACTORY` and `main.SUPABASE_CFG` on both module
          aliases, so per-request SessionContexts talk to the fake.
        - Resets the JWKS cache so no keys leak between tests.
        - Returns the world; tests arrange accounts and profiles on it.
    """
    from supabase_fakes import TEST_CFG, FakeSupabaseWorld
    from identity_access import tokens

    world = FakeSupabaseWorld(TEST_CFG)
    for mod in _main_modules():
        monkeypatch.setattr(mod, "CLIENT_FACTORY", world.factory, raising=False)
        monkeypatch.setattr(mod, "SUPABASE_CFG", TEST_CFG, raising=False)
    monkeypatch.setattr(tokens, "JWKS_CACHE", tokens.JWKSCache())
    yield world


@pytest.fixture(autouse=True)
def _reset_settings_environment_override():
    """Reset main.SETTINGS.override_environment between tests.

    Why:
        Some tests temporarily force `prod` semantics via
        `main.SETTINGS.override_environment("prod")`. If a test aborts early
        or misses cleanup, the override can leak into unrelated tests in a full
        run.
    """
    for mod in _main_modules():
        if hasattr(mod, "SETTINGS"):
            mod.SETTINGS.override_environment(None)
    yield
    for mod in _main_modules():
        if hasattr(mod, "SETTINGS"):
            mod.SETTINGS.override_environment(None)
