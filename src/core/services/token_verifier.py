"""JWT verification against an Outseta tenant.

Two independent paths are available:

- key set: the token signature and expiry are checked locally with the
  tenant's published JWKS (PyJWT).
- profile endpoint: the token is sent as a bearer credential to
  `/api/v1/profile`; the remote service accepting it is the verification
  signal. The claims shown alongside the profile come from an *unverified*
  local decode and must not be trusted on their own.

`verify` runs one or both paths; under `both` the first failure aborts the
whole operation.
"""

from __future__ import annotations

import logging

import httpx
import jwt
from jwt import PyJWK, PyJWKSet
from pydantic import ValidationError as PydanticValidationError

from core.domain.models import (
    Profile,
    ProfileVerification,
    TokenClaims,
    VerificationMethod,
    VerificationResult,
)
from core.errors import (
    ApiError,
    KeySetVerificationError,
    ProfileVerificationError,
    ValidationError,
)
from core.interfaces.api import OutsetaApi
from core.interfaces.key_set import KeySetProvider

logger = logging.getLogger(__name__)

PROFILE_PATH = "/api/v1/profile"

# Only public-key algorithms; "none" and shared-secret HS* are never accepted.
SIGNING_ALGORITHMS = frozenset(
    {"RS256", "RS384", "RS512", "PS256", "PS384", "PS512", "ES256", "ES384", "ES512", "EdDSA"}
)

# JWK `kty` each algorithm family signs with.
_KEY_TYPES = {"RS": "RSA", "PS": "RSA", "ES": "EC", "Ed": "OKP"}


def ensure_token_shape(token: str) -> str:
    """Return the stripped token or raise `ValidationError`.

    A JWT must be non-empty and split into exactly three dot-separated parts.
    """

    candidate = (token or "").strip()
    if not candidate:
        raise ValidationError("JWT token is required")
    if len(candidate.split(".")) != 3:
        raise ValidationError("Invalid JWT format. JWT should have three parts separated by dots.")
    return candidate


def _select_signing_key(key_set: PyJWKSet, header: dict) -> PyJWK:
    kid = header.get("kid")
    keys = list(key_set.keys)

    if kid is None:
        if len(keys) == 1:
            return keys[0]
        raise KeySetVerificationError("token header has no 'kid' and the key set holds several keys")

    for key in keys:
        if key.key_id == kid:
            return key
    raise KeySetVerificationError(f"no signing key found in the key set for kid '{kid}'")


def _describe(exc: Exception) -> str:
    if isinstance(exc, PydanticValidationError):
        return f"unexpected token claims ({exc.error_count()} validation errors)"
    return str(exc) or type(exc).__name__


def _check_key_type(signing_key: PyJWK, algorithm: str) -> None:
    expected = _KEY_TYPES[algorithm[:2]]
    if signing_key.key_type != expected:
        raise KeySetVerificationError(
            f"token algorithm '{algorithm}' does not match the {signing_key.key_type} key '{signing_key.key_id}'"
        )


class TokenVerifier:
    """Verifies bearer tokens issued by the tenant."""

    def __init__(self, client: OutsetaApi, key_sets: KeySetProvider) -> None:
        self._client = client
        self._key_sets = key_sets

    async def verify_with_key_set(self, token: str) -> TokenClaims:
        token = ensure_token_shape(token)
        logger.debug("Verifying token with JWK Set...")

        try:
            key_set = await self._key_sets.get_key_set()
            header = jwt.get_unverified_header(token)
            algorithm = header.get("alg")
            if not isinstance(algorithm, str) or algorithm not in SIGNING_ALGORITHMS:
                raise KeySetVerificationError(f"unsupported signing algorithm '{algorithm}'")
            signing_key = _select_signing_key(key_set, header)
            _check_key_type(signing_key, algorithm)
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=[algorithm],
                options={"verify_aud": False},
            )
            claims = TokenClaims.model_validate(payload)
        except (jwt.PyJWTError, ApiError, httpx.HTTPError, ValueError) as exc:
            raise KeySetVerificationError(_describe(exc)) from exc

        logger.debug("Token verified successfully with JWK Set")
        return claims

    async def verify_with_profile_endpoint(self, token: str) -> ProfileVerification:
        token = ensure_token_shape(token)
        logger.debug("Verifying token with Profile endpoint...")

        try:
            profile = await self._client.request_model(
                Profile,
                "GET",
                PROFILE_PATH,
                params={"fields": "*"},
                auth="bearer",
                bearer_token=token,
            )
        except ApiError as exc:
            raise ProfileVerificationError(exc.status_code, exc.detail) from exc
        except httpx.HTTPError as exc:
            raise ProfileVerificationError(None, str(exc) or type(exc).__name__) from exc

        # Display only: the remote acceptance above is what verified the token.
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
            claims = TokenClaims.model_validate(payload)
        except (jwt.PyJWTError, ValueError) as exc:
            raise ProfileVerificationError(None, f"could not decode token claims: {_describe(exc)}") from exc

        logger.debug("Token verified successfully with Profile endpoint")
        return ProfileVerification(claims=claims, profile=profile)

    async def verify(
        self,
        token: str,
        method: VerificationMethod | str = VerificationMethod.BOTH,
    ) -> VerificationResult:
        token = ensure_token_shape(token)
        try:
            method = VerificationMethod(method)
        except ValueError as exc:
            raise ValidationError(f"Unknown verification method: {method!r}") from exc
        result = VerificationResult()

        if method.uses_key_set:
            logger.info("Method 1: verifying with JWK Set")
            result.keyset_payload = await self.verify_with_key_set(token)

        if method.uses_profile:
            logger.info("Method 2: verifying with Profile endpoint")
            verification = await self.verify_with_profile_endpoint(token)
            result.profile_payload = verification.claims
            result.profile_data = verification.profile

        return result
