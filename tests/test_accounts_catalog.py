"""Unit tests for account and plan catalog services."""

from __future__ import annotations

import pytest

from core.domain.models import PlanDraft, Registration
from core.errors import ApiError, ValidationError
from core.services.accounts import AccountService
from core.services.catalog import PLAN_FAMILIES_PATH, PLANS_PATH, CatalogService


@pytest.fixture
def accounts(client):
    return AccountService(client)


@pytest.fixture
def catalog(client):
    return CatalogService(client)


async def test_register_posts_person_and_account(accounts, fake_api):
    fake_api.add("POST", "/api/v1/crm/registrations", {"Uid": "A9", "Name": "Acme Inc"})
    registration = Registration(
        plan_uid="basic",
        email="jane@example.com",
        first_name="Jane",
        account_name="Acme Inc",
        account_mascot="Otter",
    )

    account = await accounts.register(registration)

    assert account.uid == "A9"
    (request,) = fake_api.requests
    body = fake_api.body(request)
    assert body["Name"] == "Acme Inc"
    assert body["Subscriptions"] == [{"BillingRenewalTerm": 2, "Plan": {"Uid": "basic"}}]
    assert body["PersonAccount"][0]["IsPrimary"] is True
    assert body["PersonAccount"][0]["Person"]["Email"] == "jane@example.com"


async def test_issue_token(accounts, fake_api):
    fake_api.add("POST", "/api/v1/tokens", {"access_token": "a.b.c", "token_type": "bearer", "expires_in": 3600})

    token = await accounts.issue_token(" jane@example.com ")

    assert token.access_token == "a.b.c"
    assert fake_api.body(fake_api.requests[0]) == {"username": "jane@example.com"}


async def test_issue_token_requires_email(accounts, fake_api):
    with pytest.raises(ValidationError):
        await accounts.issue_token("")

    assert fake_api.requests == []


async def test_find_accounts_by_email_deduplicates(accounts, fake_api):
    fake_api.add(
        "GET",
        "/api/v1/crm/people",
        {
            "metadata": {"total": 2},
            "items": [
                {"Uid": "p1", "PersonAccount": [{"Account": {"Uid": "A1", "Name": "Acme"}}]},
                {
                    "Uid": "p2",
                    "PersonAccount": [
                        {"Account": {"Uid": "A1", "Name": "Acme"}},
                        {"Account": {"Uid": "A2", "Name": "Globex"}},
                        {"IsPrimary": False},
                    ],
                },
            ],
        },
    )

    found = await accounts.find_accounts_by_email("jane@example.com")

    assert [account.uid for account in found] == ["A1", "A2"]
    (request,) = fake_api.requests
    assert request.url.params["Email"] == "jane@example.com"


async def test_list_plans_and_families(catalog, fake_api):
    fake_api.add("GET", PLANS_PATH, {"items": [{"Uid": "basic", "Name": "Basic", "MonthlyRate": 10}]})
    fake_api.add("GET", PLAN_FAMILIES_PATH, {"items": [{"Uid": "fam", "Name": "Default"}]})

    plans = await catalog.list_plans()
    families = await catalog.list_plan_families()

    assert plans[0].monthly_rate == 10
    assert families[0].uid == "fam"


async def test_create_plan(catalog, fake_api):
    fake_api.add("POST", PLANS_PATH, {"Uid": "new", "Name": "Pro"})

    plan = await catalog.create_plan(PlanDraft(name="Pro", monthly_rate=29.0, plan_family_uid="fam"))

    assert plan.uid == "new"
    body = fake_api.body(fake_api.requests[0])
    assert body["PlanFamily"] == {"Uid": "fam"}
    assert body["TrialPeriodDays"] == 14
    assert body["AccountRegistrationMode"] == 1


async def test_create_plan_rejected(catalog, fake_api):
    fake_api.add("POST", PLANS_PATH, {"Message": "Plan family not found"}, status=404)

    with pytest.raises(ApiError, match="Plan family not found"):
        await catalog.create_plan(PlanDraft(name="Pro", monthly_rate=29.0, plan_family_uid="nope"))
