"""Taxonomía de errores del Core.

Reglas:
- Todo fallo de dominio hereda de `OutsetaError`; la CLI lo traduce a exit code 1.
- Ningún componente reintenta: los errores se propagan tal cual al llamador.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_ERROR_MESSAGE_FIELDS: tuple[str, ...] = ("ErrorMessage", "Message")


def resolve_error_message(payload: Any, status_text: str | None = None, status_code: int | None = None) -> str:
    """Devuelve el mejor texto de error disponible en una respuesta fallida.

    Orden: `ErrorMessage`, `Message`, texto de estado del transporte y, como
    último recurso, `HTTP <code>`. Siempre devuelve un string no vacío.
    """

    if isinstance(payload, Mapping):
        for field in _ERROR_MESSAGE_FIELDS:
            value = payload.get(field)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if status_text and status_text.strip():
        return status_text.strip()
    if status_code is not None:
        return f"HTTP {status_code}"
    return "Unknown error"


class OutsetaError(Exception):
    """Base de todos los errores del dominio."""


class ConfigurationError(OutsetaError):
    """Falta configuración obligatoria (subdominio, API key/secret)."""


class ValidationError(OutsetaError):
    """Entrada local mal formada, detectada antes de cualquier llamada de red."""


class PreconditionError(OutsetaError):
    """Falta una relación remota obligatoria (suscripción, add-on...)."""


class ApiError(OutsetaError):
    """Una llamada remota devolvió un estado no exitoso o un cuerpo inesperado."""

    def __init__(
        self,
        endpoint: str,
        status_code: int,
        detail: str,
        *,
        validation_errors: Sequence[Any] = (),
    ) -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        self.detail = detail
        self.validation_errors = list(validation_errors)
        super().__init__(f"{endpoint}: [{status_code}] {detail}")


class KeySetVerificationError(OutsetaError):
    """Firma, expiración o JWKS inválidos al verificar contra el key set."""

    def __init__(self, cause: str) -> None:
        self.cause = cause
        super().__init__(f"JWK Set verification failed: {cause}")


class ProfileVerificationError(OutsetaError):
    """El endpoint de perfil rechazó el token."""

    def __init__(self, status_code: int | None, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        status = f"[{status_code}] " if status_code is not None else ""
        super().__init__(f"Profile endpoint verification failed: {status}{detail}")
