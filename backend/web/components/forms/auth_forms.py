"""
Auth form components (landing page and password reset).

All forms post with a full page navigation: a successful sign-in changes the
cookies of the whole browser, so partial swaps would keep stale markup.
"""
from typing import Optional

from components.base import Component
from .fields import TextInputField
from .messages import message_for
from .submit import SubmitButton


def error_box(code: Optional[str]) -> str:
    if not code:
        return ""
    return (
        f'<div class="form-error" role="alert" data-error="{Component.escape(code)}">'
        f"{Component.escape(message_for(code))}</div>"
    )


class LoginForm(Component):
    """Email/password sign-in form."""

    def __init__(self, error: Optional[str] = None, values: Optional[dict] = None):
        self.error = error
        self.values = values or {}

    def render(self) -> str:
        email_html = TextInputField("email", "Correo electrónico", required=True).render(
            value=self.values.get("email", ""), input_type="email", autocomplete="email", class_="form-input"
        )
        password_html = TextInputField("password", "Contraseña", required=True).render(
            input_type="password", autocomplete="current-password", class_="form-input"
        )
        submit_html = SubmitButton("Iniciar sesión").render()
        return f"""
        <form method="post" action="/auth/login" class="auth-form login-form">
            {email_html}
            {password_html}
            {error_box(self.error)}
            <div class="form-actions">
                {submit_html}
                <a class="link-muted" href="#forgot-password">¿Olvidaste tu contraseña?</a>
            </div>
        </form>
        """


class OAuthButtons(Component):
    """Google / Microsoft sign-in buttons.

    After a logout the hidden `logout` marker asks the route to force the
    provider's account chooser.
    """

    PROVIDERS = (("google", "Continuar con Google"), ("azure", "Continuar con Microsoft"))

    def __init__(self, after_logout: bool = False):
        self.after_logout = after_logout

    def render(self) -> str:
        marker = '<input type="hidden" name="logout" value="true">' if self.after_logout else ""
        buttons = []
        for provider, label in self.PROVIDERS:
            buttons.append(
                f'<form method="post" action="/auth/oauth/{provider}" class="oauth-form">'
                f"{marker}"
                f'<button type="submit" class="btn btn-oauth btn-{provider}">{self.escape(label)}</button>'
                "</form>"
            )
        return '<div class="oauth-buttons">' + "".join(buttons) + "</div>"


class RegisterForm(Component):
    """Account registration form (email confirmation follows)."""

    FIELDS = (
        ("first_name", "Nombres", True, "text", "given-name"),
        ("last_name", "Apellidos", True, "text", "family-name"),
        ("student_code", "Código de matrícula (opcional)", False, "text", "off"),
        ("email", "Correo electrónico", True, "email", "email"),
    )

    def __init__(self, error: Optional[str] = None, values: Optional[dict] = None):
        self.error = error
        self.values = values or {}

    def render(self) -> str:
        rendered = []
        for name, label, required, kind, auto in self.FIELDS:
            field = TextInputField(name, label, required=required, input_id=f"register-{name}")
            rendered.append(
                field.render(value=self.values.get(name, ""), input_type=kind, autocomplete=auto, class_="form-input")
            )
        for name, label, help_text in (
            ("password", "Contraseña", "Mínimo 6 caracteres."),
            ("password_confirm", "Confirmar contraseña", None),
        ):
            field = TextInputField(name, label, required=True, help_text=help_text, input_id=f"register-{name}")
            rendered.append(field.render(input_type="password", autocomplete="new-password", class_="form-input"))
        fields_html = "\n".join(rendered)
        submit_html = SubmitButton("Crear cuenta").render()
        return f"""
        <form method="post" action="/auth/register" class="auth-form register-form">
            {fields_html}
            {error_box(self.error)}
            <div class="form-actions">
                {submit_html}
            </div>
        </form>
        """


class ResendVerificationForm(Component):
    def __init__(self, email: str = ""):
        self.email = email

    def render(self) -> str:
        email_html = TextInputField("email", "Correo electrónico", required=True, input_id="resend-email").render(
            value=self.email, input_type="email", autocomplete="email", class_="form-input"
        )
        submit_html = SubmitButton("Reenviar correo de verificación", variant="secondary").render()
        return f"""
        <form method="post" action="/auth/resend" class="auth-form resend-form">
            {email_html}
            <div class="form-actions">{submit_html}</div>
        </form>
        """


class ForgotPasswordForm(Component):
    def render(self) -> str:
        email_html = TextInputField("email", "Correo electrónico", required=True, input_id="forgot-email").render(
            input_type="email", autocomplete="email", class_="form-input"
        )
        submit_html = SubmitButton("Enviar enlace de recuperación", variant="secondary").render()
        return f"""
        <form method="post" action="/auth/forgot" class="auth-form forgot-form" id="forgot-password">
            {email_html}
            <div class="form-actions">{submit_html}</div>
        </form>
        """


class ResetPasswordForm(Component):
    """New password form shown inside the recovery session."""

    def __init__(self, error: Optional[str] = None):
        self.error = error

    def render(self) -> str:
        password_html = TextInputField(
            "password", "Nueva contraseña", required=True, help_text="Mínimo 6 caracteres."
        ).render(input_type="password", autocomplete="new-password", class_="form-input")
        confirm_html = TextInputField("password_confirm", "Confirmar contraseña", required=True).render(
            input_type="password", autocomplete="new-password", class_="form-input"
        )
        submit_html = SubmitButton("Actualizar contraseña").render()
        return f"""
        <form method="post" action="/auth/reset-password" class="auth-form reset-form">
            {password_html}
            {confirm_html}
            {error_box(self.error)}
            <div class="form-actions">{submit_html}</div>
        </form>
        """
