"""
Form components for SIPeT.

Provides the field building blocks plus the auth and onboarding forms.
"""

from .fields import FormField, TextInputField, SelectField, RadioGroupField
from .submit import SubmitButton
from .messages import ERROR_MESSAGES, message_for
from .auth_forms import (
    ForgotPasswordForm,
    LoginForm,
    OAuthButtons,
    RegisterForm,
    ResendVerificationForm,
    ResetPasswordForm,
    error_box,
)
from .onboarding_form import OnboardingWizardForm

__all__ = [
    "FormField",
    "TextInputField",
    "SelectField",
    "RadioGroupField",
    "SubmitButton",
    "ERROR_MESSAGES",
    "message_for",
    "ForgotPasswordForm",
    "LoginForm",
    "OAuthButtons",
    "RegisterForm",
    "ResendVerificationForm",
    "ResetPasswordForm",
    "error_box",
    "OnboardingWizardForm",
]
