"""
User-facing messages for auth and onboarding error codes.

Single mapping so routes, banners and forms never drift apart. Codes come
from `identity_access.errors` plus a few route-level codes.
"""

from typing import Optional

DEFAULT_MESSAGE = "Ocurrió un error inesperado. Inténtalo nuevamente."

ERROR_MESSAGES = {
    "invalid_credentials": "Correo o contraseña incorrectos.",
    "email_not_confirmed": "Debes confirmar tu correo electrónico antes de iniciar sesión.",
    "network": "No se pudo conectar con el servidor. Inténtalo nuevamente.",
    "network_error": "No se pudo conectar con el servidor. Inténtalo nuevamente.",
    "service_unavailable": "El servicio de autenticación no está disponible en este momento.",
    "profile_not_found": "Tu cuenta no tiene un perfil asociado. Contacta al administrador del sistema.",
    "profile_invalid": "Tu perfil tiene datos inválidos. Contacta al administrador del sistema.",
    "profile_read_failed": "No se pudo cargar tu perfil. Inténtalo nuevamente.",
    "weak_password": "La contraseña debe tener al menos 6 caracteres.",
    "password_mismatch": "Las contraseñas no coinciden.",
    "session_missing": "Tu sesión expiró. Vuelve a iniciar sesión.",
    "invalid_auth_code": "El enlace de acceso no es válido o ya expiró.",
    "callback_error": "El enlace de acceso no es válido o ya expiró.",
    "auth_error": "No se pudo completar el inicio de sesión con el proveedor.",
    "auth_provider_error": "No se pudo completar el inicio de sesión con el proveedor.",
    "missing_fields": "Completa todos los campos obligatorios.",
    "user_already_exists": "Ya existe una cuenta con este correo electrónico.",
}


def message_for(code: Optional[str]) -> str:
    if not code:
        return ""
    return ERROR_MESSAGES.get(code, DEFAULT_MESSAGE)
