"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from adapters.http_client import build_async_client
from adapters.outseta_client import OutsetaClient
from core.config import AppSettings

Handler = Callable[[httpx.Request], httpx.Response]


@dataclass
class FakeOutseta:
    """In-memory stand-in for the Outseta API that records every request."""

    routes: dict[tuple[str, str], Any] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def add(self, method: str, path: str, body: Any = None, status: int = 200) -> None:
        """Register a JSON response (or a callable returning an `httpx.Response`)."""

        if callable(body):
            self.routes[(method.upper(), path)] = body
        else:
            self.routes[(method.upper(), path)] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"Message": f"No route for {request.method} {request.url.path}"})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    def calls(self, method: str | None = None, path: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        subdomain="acme",
        api_key="test-key",
        api_secret="test-secret",
        _env_file=None,
    )


@pytest.fixture
def fake_api() -> FakeOutseta:
    return FakeOutseta()


@pytest.fixture
def client_factory(settings: AppSettings, fake_api: FakeOutseta) -> Callable[..., OutsetaClient]:
    def _build(_settings: AppSettings | None = None) -> OutsetaClient:
        http = build_async_client(settings, transport=httpx.MockTransport(fake_api.handler))
        return OutsetaClient(settings, http=http)

    return _build


@pytest.fixture
def client(client_factory: Callable[..., OutsetaClient]) -> OutsetaClient:
    return client_factory()


@pytest.fixture(scope="session")
def signing_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_signing_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def jwks(signing_key: rsa.RSAPrivateKey) -> dict[str, Any]:
    jwk = RSAAlgorithm.to_jwk(signing_key.public_key(), as_dict=True)
    jwk.update({"kid": "k1", "use": "sig", "alg": "RS256"})
    return {"keys": [jwk]}


@pytest.fixture
def make_token(signing_key: rsa.RSAPrivateKey) -> Callable[..., str]:
    def _make(
        claims: dict[str, Any] | None = None,
        *,
        key: Any = None,
        kid: str | None = "k1",
        ttl: int = 3600,
        algorithm: str = "RS256",
    ) -> str:
        now = int(time.time())
        payload = {
            "sub": "p1",
            "email": "jane@example.com",
            "name": "Jane Doe",
            "outseta:accountUid": "A1",
            "outseta:isPrimary": "1",
            "iat": now,
            "exp": now + ttl,
        }
        payload.update(claims or {})
        headers = {"kid": kid} if kid else None
        return jwt.encode(payload, key or signing_key, algorithm=algorithm, headers=headers)

    return _make
