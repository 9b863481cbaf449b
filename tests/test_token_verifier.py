"""Unit tests for the JWT verifier."""

from __future__ import annotations

import time

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from jwt import PyJWKSet

from adapters.jwks import JWKS_PATH, RemoteKeySetProvider
from core.domain.models import VerificationMethod
from core.errors import KeySetVerificationError, ProfileVerificationError, ValidationError
from core.services.token_verifier import PROFILE_PATH, TokenVerifier, ensure_token_shape

PROFILE = {
    "Uid": "p1",
    "Email": "jane@example.com",
    "FirstName": "Jane",
    "LastName": "Doe",
    "Account": {"Uid": "A1", "Name": "Acme Inc"},
    "Unexpected": {"kept": True},
}


@pytest.fixture
def verifier(client, fake_api, jwks):
    fake_api.add("GET", JWKS_PATH, jwks)
    fake_api.add("GET", PROFILE_PATH, PROFILE)
    return TokenVerifier(client, RemoteKeySetProvider(client))


class StaticKeySet:
    """Key set provider that never touches the network."""

    def __init__(self, jwks):
        self.jwks = jwks
        self.calls = 0

    async def get_key_set(self) -> PyJWKSet:
        self.calls += 1
        return PyJWKSet.from_dict(self.jwks)


class TestTokenShape:
    @pytest.mark.parametrize("token", ["", "   ", "abc", "a.b", "a.b.c.d", "a..b.c"])
    async def test_malformed_token_rejected_before_network(self, verifier, fake_api, token):
        for method in VerificationMethod:
            with pytest.raises(ValidationError):
                await verifier.verify(token, method)
        with pytest.raises(ValidationError):
            await verifier.verify_with_key_set(token)
        with pytest.raises(ValidationError):
            await verifier.verify_with_profile_endpoint(token)

        assert fake_api.requests == []

    def test_token_is_stripped(self):
        assert ensure_token_shape("  a.b.c \n") == "a.b.c"


class TestKeySetVerification:
    async def test_valid_token_returns_claims(self, verifier, make_token):
        claims = await verifier.verify_with_key_set(make_token())

        assert claims.sub == "p1"
        assert claims.email == "jane@example.com"
        assert claims.account_uid == "A1"

    async def test_key_set_fetched_without_credentials(self, verifier, fake_api, make_token):
        await verifier.verify_with_key_set(make_token())

        (request,) = fake_api.calls("GET", JWKS_PATH)
        assert "Authorization" not in request.headers
        assert request.url.host == "acme.outseta.com"

    async def test_expired_token_fails(self, verifier, make_token):
        with pytest.raises(KeySetVerificationError) as excinfo:
            await verifier.verify_with_key_set(make_token(ttl=-60))

        assert "expired" in str(excinfo.value).lower()
        assert str(excinfo.value).startswith("JWK Set verification failed:")

    async def test_signature_from_another_key_fails(self, verifier, make_token, other_signing_key):
        with pytest.raises(KeySetVerificationError):
            await verifier.verify_with_key_set(make_token(key=other_signing_key))

    async def test_unknown_kid_fails(self, verifier, make_token):
        with pytest.raises(KeySetVerificationError, match="kid 'other'"):
            await verifier.verify_with_key_set(make_token(kid="other"))

    async def test_token_without_kid_uses_single_key(self, verifier, make_token):
        claims = await verifier.verify_with_key_set(make_token(kid=None))

        assert claims.sub == "p1"

    async def test_algorithm_not_matching_key_type_fails(self, verifier, make_token):
        ec_key = ec.generate_private_key(ec.SECP256R1())

        with pytest.raises(KeySetVerificationError, match="does not match the RSA key 'k1'"):
            await verifier.verify_with_key_set(make_token(key=ec_key, algorithm="ES256"))

    async def test_fractional_timestamps_are_accepted(self, verifier, make_token):
        now = time.time()

        claims = await verifier.verify_with_key_set(make_token({"iat": now, "exp": now + 3600}))

        assert claims.exp == pytest.approx(now + 3600)

    async def test_claims_of_unexpected_type_fail(self, verifier, make_token):
        with pytest.raises(KeySetVerificationError, match="unexpected token claims"):
            await verifier.verify_with_key_set(make_token({"name": 42}))

    async def test_audience_claim_is_not_enforced(self, verifier, make_token):
        claims = await verifier.verify_with_key_set(make_token({"aud": "some-client"}))

        assert claims.model_extra["aud"] == "some-client"

    async def test_key_set_endpoint_error_carries_cause(self, verifier, fake_api, make_token):
        fake_api.add("GET", JWKS_PATH, {"Message": "Service unavailable"}, status=503)

        with pytest.raises(KeySetVerificationError) as excinfo:
            await verifier.verify_with_key_set(make_token())

        assert "Service unavailable" in excinfo.value.cause

    async def test_unreachable_key_set_endpoint(self, verifier, fake_api, make_token):
        def _boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fake_api.add("GET", JWKS_PATH, _boom)

        with pytest.raises(KeySetVerificationError, match="connection refused"):
            await verifier.verify_with_key_set(make_token())

    async def test_key_set_provider_is_pluggable(self, client, fake_api, jwks, make_token):
        provider = StaticKeySet(jwks)
        verifier = TokenVerifier(client, provider)

        await verifier.verify_with_key_set(make_token())
        await verifier.verify_with_key_set(make_token())

        assert provider.calls == 2
        assert fake_api.requests == []


class TestProfileVerification:
    async def test_returns_profile_and_unverified_claims(self, verifier, fake_api, make_token):
        token = make_token()

        result = await verifier.verify_with_profile_endpoint(token)

        assert result.profile.uid == "p1"
        assert result.profile.account.name == "Acme Inc"
        assert result.claims.sub == "p1"
        (request,) = fake_api.calls("GET", PROFILE_PATH)
        assert request.headers["Authorization"] == f"Bearer {token}"
        assert request.url.params["fields"] == "*"

    async def test_claims_are_not_signature_checked(self, verifier, make_token, other_signing_key):
        # The remote service accepted the token; the local decode is display-only.
        result = await verifier.verify_with_profile_endpoint(make_token(key=other_signing_key))

        assert result.claims.sub == "p1"

    async def test_display_claims_of_unexpected_type_fail(self, verifier, make_token):
        with pytest.raises(ProfileVerificationError, match="could not decode token claims"):
            await verifier.verify_with_profile_endpoint(make_token({"email": ["a", "b"]}))

    async def test_rejected_token_carries_status_and_message(self, verifier, fake_api, make_token):
        fake_api.add("GET", PROFILE_PATH, {"ErrorMessage": "Token is invalid"}, status=401)

        with pytest.raises(ProfileVerificationError) as excinfo:
            await verifier.verify_with_profile_endpoint(make_token())

        assert excinfo.value.status_code == 401
        assert excinfo.value.detail == "Token is invalid"
        assert str(excinfo.value) == "Profile endpoint verification failed: [401] Token is invalid"

    async def test_rejection_without_body_uses_status_text(self, verifier, fake_api, make_token):
        fake_api.add("GET", PROFILE_PATH, lambda request: httpx.Response(401))

        with pytest.raises(ProfileVerificationError) as excinfo:
            await verifier.verify_with_profile_endpoint(make_token())

        assert excinfo.value.detail == "Unauthorized"


class TestVerify:
    async def test_both_runs_key_set_then_profile(self, verifier, fake_api, make_token):
        result = await verifier.verify(make_token())

        assert result.keyset_payload.sub == "p1"
        assert result.profile_payload.sub == "p1"
        assert result.profile_data.email == "jane@example.com"
        assert [r.url.path for r in fake_api.requests] == [JWKS_PATH, PROFILE_PATH]

    async def test_key_set_only(self, verifier, fake_api, make_token):
        result = await verifier.verify(make_token(), "keyset")

        assert result.keyset_payload is not None
        assert result.profile_payload is None
        assert result.profile_data is None
        assert fake_api.calls(path=PROFILE_PATH) == []

    async def test_jwks_alias_selects_key_set(self, verifier, make_token):
        result = await verifier.verify(make_token(), "jwks")

        assert result.keyset_payload is not None
        assert result.profile_data is None

    async def test_profile_only(self, verifier, fake_api, make_token):
        result = await verifier.verify(make_token(), VerificationMethod.PROFILE)

        assert result.keyset_payload is None
        assert result.profile_data is not None
        assert fake_api.calls(path=JWKS_PATH) == []

    async def test_both_fails_when_key_set_fails(self, verifier, fake_api, make_token):
        with pytest.raises(KeySetVerificationError):
            await verifier.verify(make_token(ttl=-60), "both")

        assert fake_api.calls(path=PROFILE_PATH) == []

    async def test_both_fails_when_profile_fails(self, verifier, fake_api, make_token):
        fake_api.add("GET", PROFILE_PATH, {"Message": "Person is inactive"}, status=401)

        with pytest.raises(ProfileVerificationError, match="Person is inactive"):
            await verifier.verify(make_token(), "both")

    async def test_unknown_method(self, verifier, fake_api, make_token):
        with pytest.raises(ValidationError):
            await verifier.verify(make_token(), "offline")

        assert fake_api.requests == []
