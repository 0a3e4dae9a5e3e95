"""
Header Component for SIPeT

Renders the signed-in identity (name, email, roles), role-based portal links
and the logout control.
"""

from typing import Optional, Dict, Any, List, Tuple
from .base import Component


# (href, label, flags that unlock the link; empty = every signed-in user)
PORTAL_LINKS: List[Tuple[str, str, Tuple[str, ...]]] = [
    ("/dashboard", "Inicio", ()),
    ("/tesista", "Tesista", ("is_student",)),
    ("/docente", "Docente", ("is_advisor", "is_reviewer")),
    ("/coordinador", "Coordinador", ("is_coordinator",)),
    ("/admin", "Administración", ("is_administrator",)),
]


class Header(Component):
    """Identity header with role-based links"""

    def __init__(self, user: Optional[Dict[str, Any]] = None, current_path: str = "/"):
        """
        Args:
            user: dict with 'name', 'email', 'roles' (labels) and 'flags' (granted flag names)
            current_path: The current URL path for active link highlighting
        """
        self.user = user
        self.current_path = current_path

    def render(self) -> str:
        if not self.user:
            return """
    <header class="site-header" role="banner">
        <a class="brand" href="/">SIPeT</a>
    </header>"""

        links = "".join(self._render_link(href, label) for href, label in self._visible_links())
        roles = ", ".join(self.user.get("roles") or []) or "Sin rol asignado"
        name = self.user.get("name")
        email = self.user.get("email")
        return f"""
    <header class="site-header" role="banner">
        <a class="brand" href="/dashboard">SIPeT</a>
        <nav class="site-nav" role="navigation" aria-label="Navegación principal">
            {links}
        </nav>
        <div class="user-info">
            <div class="user-name">{self.escape(name)}</div>
            <div class="user-email">{self.escape(email)}</div>
            <div class="user-role">{self.escape(roles)}</div>
        </div>
        {self._render_logout()}
    </header>"""

    def _visible_links(self) -> List[Tuple[str, str]]:
        granted = set(self.user.get("flags") or []) if self.user else set()
        return [
            (href, label)
            for href, label, flags in PORTAL_LINKS
            if not flags or granted.intersection(flags)
        ]

    def _render_link(self, href: str, label: str) -> str:
        active = href == self.current_path
        attrs = self.attributes(
            href=href,
            class_=self.classes("nav-link", active=active),
            aria_current="page" if active else None,
        )
        return f"<a {attrs}>{self.escape(label)}</a>"

    def _render_logout(self) -> str:
        """Render logout as a plain form POST.

        Rationale: logout must end in a full page navigation so nothing of the
        old identity survives in the DOM; no HTMX attributes here.
        """
        return """
        <form method="post" action="/auth/logout" class="logout-form">
            <button type="submit" class="btn btn-secondary" data-action="logout">Cerrar sesión</button>
        </form>"""
