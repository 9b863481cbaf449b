"""Contrato del cliente de la API de Outseta.

Reglas de diseño:
- Cada llamada es asíncrona (I/O HTTP) y se resuelve antes de lanzar la siguiente.
- Un estado no exitoso se traduce a `core.errors.ApiError`.
"""

from __future__ import annotations

from typing import Any, Literal, Mapping, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

AuthMode = Literal["tenant", "bearer", "none"]

ModelT = TypeVar("ModelT", bound=BaseModel)


@runtime_checkable
class OutsetaApi(Protocol):
    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        auth: AuthMode = "tenant",
        bearer_token: str | None = None,
    ) -> Any:
        """Ejecuta la llamada y devuelve el cuerpo JSON decodificado."""

        ...

    async def request_model(
        self,
        model: type[ModelT],
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        auth: AuthMode = "tenant",
        bearer_token: str | None = None,
    ) -> ModelT:
        """Como `request`, pero valida el cuerpo contra `model`."""

        ...
