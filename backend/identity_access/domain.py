"""
Identity domain constants and simple helpers.

Why:
- Centralize the role flags of the `users` table so guards, onboarding and
  the dashboard never drift apart.
- Keep terms aligned with the portal glossary (Tesista, Asesor, Revisor,
  Coordinador).
"""

from __future__ import annotations

from enum import Enum

# Column names of the five independent role flags, in display order.
ROLE_FLAGS = (
    "is_student",
    "is_advisor",
    "is_reviewer",
    "is_coordinator",
    "is_administrator",
)

# Roles a user may pick during onboarding. Reviewer is granted by administrators only.
SELECTABLE_ROLES = ("estudiante", "docente", "coordinador")

# Onboarding role -> flags granted in the single completion update.
# "docente" grants advisor and reviewer: one faculty member, two capabilities.
ROLE_GRANTS: dict[str, frozenset[str]] = {
    "estudiante": frozenset({"is_student"}),
    "docente": frozenset({"is_advisor", "is_reviewer"}),
    "coordinador": frozenset({"is_coordinator"}),
}

ROLE_LABELS = {
    "is_student": "Tesista",
    "is_advisor": "Asesor",
    "is_reviewer": "Revisor",
    "is_coordinator": "Coordinador",
    "is_administrator": "Administrador",
}

# Supported OAuth providers (Supabase provider ids).
OAUTH_PROVIDERS = frozenset({"google", "azure"})

MIN_PASSWORD_LENGTH = 6


class AuthState(str, Enum):
    """Per-context authentication state.

    UNKNOWN until the first session read resolves; afterwards exactly one of
    the three resolved states.
    """

    UNKNOWN = "unknown"
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    AUTHENTICATED_UNVERIFIED = "authenticated_unverified"


def grants_for_role(role: str) -> frozenset[str]:
    """Return the role flags granted by an onboarding role selection.

    Raises KeyError for roles that cannot be self-selected (e.g. reviewer).
    """
    return ROLE_GRANTS[role]


__all__ = [
    "ROLE_FLAGS",
    "SELECTABLE_ROLES",
    "ROLE_GRANTS",
    "ROLE_LABELS",
    "OAUTH_PROVIDERS",
    "MIN_PASSWORD_LENGTH",
    "AuthState",
    "grants_for_role",
]
