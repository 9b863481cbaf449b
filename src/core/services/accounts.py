"""Account registration, server-side login and account lookup."""

from __future__ import annotations

import logging

from core.domain.models import Account, Page, PersonRecord, Registration, TokenResponse
from core.errors import ValidationError
from core.interfaces.api import OutsetaApi

logger = logging.getLogger(__name__)

PEOPLE_ACCOUNT_FIELDS = (
    "Uid,Email,"
    "PersonAccount.*,"
    "PersonAccount.Account.Uid,"
    "PersonAccount.Account.Name,"
    "PersonAccount.Account.CurrentSubscription.*,"
    "PersonAccount.Account.CurrentSubscription.Plan.*"
)


class AccountService:
    def __init__(self, client: OutsetaApi) -> None:
        self._client = client

    async def register(self, registration: Registration) -> Account:
        """Creates a person and its account subscribed to `registration.plan_uid`.

        Outseta sends the person a confirmation email; they must set a password
        before logging in themselves.
        """

        return await self._client.request_model(
            Account,
            "POST",
            "/api/v1/crm/registrations",
            json=registration.to_payload(),
        )

    async def issue_token(self, email: str) -> TokenResponse:
        """Server-side login on behalf of `email` (no password needed)."""

        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required")
        return await self._client.request_model(
            TokenResponse,
            "POST",
            "/api/v1/tokens",
            json={"username": email},
        )

    async def find_accounts_by_email(self, email: str) -> list[Account]:
        """Distinct accounts linked to the people registered with `email`."""

        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required")

        page = await self._client.request_model(
            Page[PersonRecord],
            "GET",
            "/api/v1/crm/people",
            params={"Email": email, "fields": PEOPLE_ACCOUNT_FIELDS},
        )

        accounts: dict[str, Account] = {}
        for person in page.items:
            for link in person.person_account:
                if link.account is not None and link.account.uid not in accounts:
                    accounts[link.account.uid] = link.account
        logger.debug("Found %d account(s) for %s", len(accounts), email)
        return list(accounts.values())
