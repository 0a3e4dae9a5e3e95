"""
Page bodies for the landing page, dashboard and role portals.

Only content; `Layout` adds the document chrome and header.
"""

from typing import Optional

from .base import Component
from .forms import (
    ForgotPasswordForm,
    LoginForm,
    OAuthButtons,
    OnboardingWizardForm,
    RegisterForm,
    ResendVerificationForm,
    error_box,
)
from .role_cards import RoleCardGrid


class Banner(Component):
    def __init__(self, text: str, kind: str = "info", marker: Optional[str] = None):
        self.text = text
        self.kind = kind
        self.marker = marker

    def render(self) -> str:
        attrs = self.attributes(class_=f"banner banner-{self.kind}", role="status", data_banner=self.marker)
        return f"<div {attrs}>{self.escape(self.text)}</div>"


class LandingPage(Component):
    """Unauthenticated entry: sign-in, OAuth, registration and recovery."""

    def __init__(
        self,
        *,
        after_logout: bool = False,
        email_pending: bool = False,
        pending_email: str = "",
        reset_sent: bool = False,
        error: Optional[str] = None,
        login_error: Optional[str] = None,
        register_error: Optional[str] = None,
        values: Optional[dict] = None,
    ):
        self.after_logout = after_logout
        self.email_pending = email_pending
        self.pending_email = pending_email
        self.reset_sent = reset_sent
        self.error = error
        self.login_error = login_error
        self.register_error = register_error
        self.values = values or {}

    def _banners(self) -> str:
        banners = []
        if self.after_logout:
            banners.append(Banner("Cerraste sesión correctamente.", "success", "logout").render())
        if self.email_pending:
            banners.append(
                Banner(
                    "Te enviamos un correo de verificación. Confirma tu correo para continuar.",
                    "info",
                    "email-pending",
                ).render()
            )
        if self.reset_sent:
            banners.append(
                Banner(
                    "Si existe una cuenta con ese correo, recibirás un enlace para restablecer tu contraseña.",
                    "info",
                    "reset-sent",
                ).render()
            )
        if self.error:
            banners.append(error_box(self.error))
        return "".join(banners)

    def render(self) -> str:
        resend_html = ResendVerificationForm(self.pending_email).render() if self.email_pending else ""
        login_html = LoginForm(self.login_error, self.values).render()
        oauth_html = OAuthButtons(self.after_logout).render()
        register_html = RegisterForm(self.register_error, self.values).render()
        forgot_html = ForgotPasswordForm().render()
        return f"""
        <div class="container landing">
            <h1>Sistema de Proyectos de Tesis</h1>
            {self._banners()}
            {resend_html}
            <div class="landing-grid">
                <section class="card" aria-labelledby="login-title">
                    <h2 id="login-title">Iniciar sesión</h2>
                    {login_html}
                    <div class="divider">o</div>
                    {oauth_html}
                </section>
                <section class="card" aria-labelledby="register-title">
                    <h2 id="register-title">Crear cuenta</h2>
                    {register_html}
                </section>
                <section class="card" aria-labelledby="forgot-title">
                    <h2 id="forgot-title">Recuperar contraseña</h2>
                    {forgot_html}
                </section>
            </div>
        </div>
        """


class DashboardPage(Component):
    def __init__(
        self,
        *,
        display_name: str,
        granted: tuple,
        needs_setup: bool,
        wizard_html: str = "",
        verified: bool = False,
    ):
        self.display_name = display_name
        self.granted = granted
        self.needs_setup = needs_setup
        self.wizard_html = wizard_html
        self.verified = verified

    def render(self) -> str:
        notice = ""
        if self.verified:
            notice += Banner("Tu correo fue verificado.", "success", "verified").render()
        if self.needs_setup:
            notice += Banner(
                "Aún no tienes un rol asignado. Completa tu perfil para acceder a los portales.",
                "warning",
                "needs-setup",
            ).render()
        cards = RoleCardGrid(self.granted, self.needs_setup).render("Tus portales")
        return f"""
        <div class="container dashboard">
            <h1>Hola, {self.escape(self.display_name)}</h1>
            {notice}
            {cards}
            {self.wizard_html}
        </div>
        """


def render_wizard(wizard, error: Optional[str] = None) -> str:
    return OnboardingWizardForm(wizard, error).render()


PORTAL_COPY = {
    "/tesista": ("Portal del Tesista", "Aquí gestionarás tu proyecto de tesis, borradores y sustentación."),
    "/docente": ("Portal Docente", "Aquí verás los proyectos que asesoras y los que revisas como jurado."),
    "/coordinador": ("Portal del Coordinador", "Aquí gestionarás líneas de investigación y asignaciones."),
    "/admin": ("Administración", "Aquí se gestionan usuarios y roles del sistema."),
}


class PortalPage(Component):
    def __init__(self, path: str, role_labels: tuple = ()):
        self.title, self.text = PORTAL_COPY[path]
        self.path = path
        self.role_labels = role_labels

    def render(self) -> str:
        roles = ", ".join(self.role_labels)
        return f"""
        <div class="container portal" data-portal="{self.escape(self.path)}">
            <h1>{self.escape(self.title)}</h1>
            <p>{self.escape(self.text)}</p>
            <p class="text-muted">Roles activos: {self.escape(roles)}</p>
        </div>
        """
