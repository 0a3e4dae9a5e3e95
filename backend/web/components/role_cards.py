"""
Dashboard role cards.

One card per self-service role. Without any role flag every card is locked
and opens the onboarding wizard instead of navigating to a portal.
"""

from typing import Optional, Tuple

from .base import Component

ONBOARDING_HREF = "/dashboard?onboarding=open#onboarding-wizard"

# (flag, label, portal href, description)
ROLE_CARDS: Tuple[Tuple[str, str, str, str], ...] = (
    ("is_student", "Tesista", "/tesista", "Registra tu proyecto, avances y sustentación."),
    ("is_advisor", "Asesor", "/docente", "Acompaña a tus tesistas y aprueba avances."),
    ("is_reviewer", "Revisor", "/docente", "Evalúa los proyectos asignados como jurado."),
    ("is_coordinator", "Coordinador", "/coordinador", "Gestiona líneas de investigación y asignaciones."),
)


class RoleCard(Component):
    """A single role card; state is one of "open", "locked" or "unavailable"."""

    def __init__(self, flag: str, label: str, href: str, description: str, state: str = "open"):
        self.flag = flag
        self.label = label
        self.href = href
        self.description = description
        self.state = state

    def render(self) -> str:
        inner = (
            f'<span class="role-card-title">{self.escape(self.label)}</span>'
            f'<span class="role-card-text">{self.escape(self.description)}</span>'
        )
        css = self.classes("role-card", locked=self.state == "locked", unavailable=self.state == "unavailable")
        if self.state == "unavailable":
            attrs = self.attributes(class_=css, data_role=self.flag, aria_disabled="true")
            return f"<div {attrs}>{inner}</div>"
        if self.state == "locked":
            attrs = self.attributes(
                href=ONBOARDING_HREF,
                class_=css,
                data_role=self.flag,
                data_locked="true",
                aria_label=f"{self.label} (bloqueado: completa tu perfil)",
            )
            return f'<a {attrs}><span class="role-card-lock" aria-hidden="true">&#128274;</span>{inner}</a>'
        attrs = self.attributes(href=self.href, class_=css, data_role=self.flag)
        return f"<a {attrs}>{inner}</a>"


class RoleCardGrid(Component):
    def __init__(self, granted: Tuple[str, ...], needs_setup: bool):
        self.granted = set(granted)
        self.needs_setup = needs_setup

    def _state_for(self, flag: str) -> str:
        if self.needs_setup:
            return "locked"
        return "open" if flag in self.granted else "unavailable"

    def render(self, heading: Optional[str] = None) -> str:
        cards = "".join(
            RoleCard(flag, label, href, text, self._state_for(flag)).render()
            for flag, label, href, text in ROLE_CARDS
        )
        heading_html = f"<h2>{self.escape(heading)}</h2>" if heading else ""
        return f'<section class="role-cards" aria-label="Roles">{heading_html}<div class="role-card-grid">{cards}</div></section>'
