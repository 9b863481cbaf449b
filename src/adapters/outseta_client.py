"""Cliente HTTP/JSON para la API REST de Outseta.

Responsabilidad:
- Añadir la cabecera `Authorization` adecuada (tenant, bearer o ninguna).
- Decodificar el JSON de respuesta y volcarlo al log en nivel DEBUG.
- Traducir estados no exitosos a `ApiError` con el mejor mensaje disponible.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import httpx
from pydantic import ValidationError as PydanticValidationError

from adapters.http_client import build_async_client
from core.config import AppSettings
from core.domain.models import ValidationErrorDetail
from core.errors import ApiError, ValidationError, resolve_error_message
from core.interfaces.api import AuthMode, ModelT, OutsetaApi

logger = logging.getLogger(__name__)


def parse_validation_errors(payload: Any) -> list[ValidationErrorDetail]:
    """Aplana `EntityValidationErrors[].ValidationErrors[]`."""

    if not isinstance(payload, dict):
        return []
    entities = payload.get("EntityValidationErrors")
    if not isinstance(entities, list):
        return []

    details: list[ValidationErrorDetail] = []
    for entity in entities:
        if not isinstance(entity, dict):
            continue
        type_name = entity.get("TypeName") or "Entity"
        errors = entity.get("ValidationErrors")
        if not isinstance(errors, list):
            continue
        for error in errors:
            if not isinstance(error, dict):
                continue
            details.append(
                ValidationErrorDetail(
                    type_name=str(type_name),
                    property_name=error.get("PropertyName"),
                    error_message=error.get("ErrorMessage"),
                )
            )
    return details


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


class OutsetaClient(OutsetaApi):
    """Implementación de `OutsetaApi` sobre `httpx.AsyncClient`."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._owns_http = http is None
        self._http = http or build_async_client(self._settings)

    async def __aenter__(self) -> "OutsetaClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _auth_headers(self, auth: AuthMode, bearer_token: str | None) -> dict[str, str]:
        if auth == "tenant":
            return {"Authorization": self._settings.authorization_header}
        if auth == "bearer":
            if not bearer_token:
                raise ValidationError("A bearer token is required for this call")
            return {"Authorization": f"Bearer {bearer_token}"}
        return {}

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None,
        json_body: Any,
        auth: AuthMode,
        bearer_token: str | None,
    ) -> tuple[httpx.Response, Any]:
        headers = self._auth_headers(auth, bearer_token)
        response = await self._http.request(
            method,
            path,
            params=dict(params) if params else None,
            json=json_body,
            headers=headers,
        )
        payload = _decode_body(response)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "--- %s %s response [%s] ---\n%s",
                method,
                path,
                response.status_code,
                json.dumps(payload, indent=2, ensure_ascii=False),
            )

        if not response.is_success:
            raise ApiError(
                path,
                response.status_code,
                resolve_error_message(payload, response.reason_phrase, response.status_code),
                validation_errors=parse_validation_errors(payload),
            )
        return response, payload

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
        _, payload = await self._send(
            method,
            path,
            params=params,
            json_body=json,
            auth=auth,
            bearer_token=bearer_token,
        )
        return payload

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
        response, payload = await self._send(
            method,
            path,
            params=params,
            json_body=json,
            auth=auth,
            bearer_token=bearer_token,
        )
        try:
            return model.model_validate(payload)
        except PydanticValidationError as exc:
            raise ApiError(
                path,
                response.status_code,
                f"Unexpected response shape for {model.__name__} ({exc.error_count()} validation errors)",
            ) from exc
