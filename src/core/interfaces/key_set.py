"""Contrato del proveedor de claves públicas (JWKS).

Por qué Protocol:
- La verificación no sabe de dónde salen las claves; un decorador con caché
  podría envolver al proveedor remoto sin tocar el verificador.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from jwt import PyJWKSet


@runtime_checkable
class KeySetProvider(Protocol):
    """Devuelve el key set publicado por el tenant."""

    async def get_key_set(self) -> PyJWKSet:
        ...
