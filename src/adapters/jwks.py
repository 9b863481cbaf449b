"""Proveedor remoto del JWKS del tenant.

Consulta `https://<subdomain>.outseta.com/.well-known/jwks` sin credenciales.
Cada llamada descarga el key set de nuevo; no hay caché.
"""

from __future__ import annotations

import logging

from jwt import PyJWKSet

from core.interfaces.api import OutsetaApi
from core.interfaces.key_set import KeySetProvider

logger = logging.getLogger(__name__)

JWKS_PATH = "/.well-known/jwks"


class RemoteKeySetProvider(KeySetProvider):
    def __init__(self, client: OutsetaApi) -> None:
        self._client = client

    async def get_key_set(self) -> PyJWKSet:
        data = await self._client.request("GET", JWKS_PATH, auth="none")
        key_set = PyJWKSet.from_dict(data if isinstance(data, dict) else {})
        logger.debug("Fetched %d signing key(s) from %s", len(key_set.keys), JWKS_PATH)
        return key_set
