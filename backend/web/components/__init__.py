# SIPeT Component System
# Pure Python Components for server-rendered HTML

from .base import Component
from .layout import Layout
from .header import Header
from .role_cards import RoleCard, RoleCardGrid
from .forms import (
    FormField,
    TextInputField,
    SelectField,
    RadioGroupField,
    SubmitButton,
    LoginForm,
    RegisterForm,
    ResetPasswordForm,
    OnboardingWizardForm,
)

__all__ = [
    "Component",
    "Layout",
    "Header",
    "RoleCard",
    "RoleCardGrid",
    "FormField",
    "TextInputField",
    "SelectField",
    "RadioGroupField",
    "SubmitButton",
    "LoginForm",
    "RegisterForm",
    "ResetPasswordForm",
    "OnboardingWizardForm",
]
