"""Subscription changes and usage reporting.

Every operation here follows the same chain of dependent calls:

1. fetch the account, asking only for the fields needed downstream;
2. locate the required nested value (current subscription, or the add-on
   subscription matching an add-on UID) and fail with `PreconditionError`
   when it is missing;
3. submit the mutation built from what was just observed.

Nothing is retried and nothing is rolled back: a failure before step 3 means
the mutation was never sent. There is no optimistic concurrency token, so the
remote state can change between the fetch and the mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from core.domain.models import (
    Account,
    Subscription,
    SubscriptionAddOn,
    SubscriptionChangePreview,
    UsageRecord,
)
from core.errors import PreconditionError, ValidationError
from core.interfaces.api import OutsetaApi

logger = logging.getLogger(__name__)

ACCOUNT_SUBSCRIPTION_FIELDS = "Uid,Name,CurrentSubscription.*"
ACCOUNT_ADD_ON_FIELDS = (
    "Uid,Name,CurrentSubscription.*,"
    "CurrentSubscription.SubscriptionAddOns.*,"
    "CurrentSubscription.SubscriptionAddOns.AddOn.*"
)
USAGE_PATH = "/api/v1/billing/usage"


def _require(value: str, label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{label} is required")
    return cleaned


def format_usage_date(moment: datetime) -> str:
    """ISO-8601 en UTC con milisegundos y sufijo `Z`."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class PlanChange:
    """A plan change ready to be submitted (or previewed)."""

    subscription_uid: str
    start_immediately: bool
    payload: dict[str, Any]

    @property
    def query(self) -> dict[str, str]:
        return {"startImmediately": "true" if self.start_immediately else "false"}


class SubscriptionService:
    def __init__(self, client: OutsetaApi) -> None:
        self._client = client

    async def fetch_account(self, account_uid: str, fields: str = ACCOUNT_SUBSCRIPTION_FIELDS) -> Account:
        account_uid = _require(account_uid, "Account UID")
        account = await self._client.request_model(
            Account,
            "GET",
            f"/api/v1/crm/accounts/{account_uid}",
            params={"fields": fields},
        )
        logger.debug("Account data fetched for: %s", account_uid)
        return account

    @staticmethod
    def require_current_subscription(account: Account) -> Subscription:
        if account.current_subscription is None:
            raise PreconditionError(f"Account {account.uid} does not have an active subscription")
        return account.current_subscription

    async def prepare_plan_change(
        self,
        account_uid: str,
        plan_uid: str,
        start_immediately: bool = False,
    ) -> PlanChange:
        """Steps 1-2 shared by `change_plan` and `preview_plan_change`."""

        plan_uid = _require(plan_uid, "Plan UID")
        account = await self.fetch_account(account_uid, ACCOUNT_SUBSCRIPTION_FIELDS)
        subscription = self.require_current_subscription(account)
        logger.debug("Found current subscription: %s", subscription.uid)

        return PlanChange(
            subscription_uid=subscription.uid,
            start_immediately=start_immediately,
            payload={
                "Plan": {"Uid": plan_uid},
                "BillingRenewalTerm": subscription.billing_renewal_term,
                "Account": {"Uid": account.uid},
            },
        )

    async def change_plan(
        self,
        account_uid: str,
        plan_uid: str,
        start_immediately: bool = False,
    ) -> Subscription:
        change = await self.prepare_plan_change(account_uid, plan_uid, start_immediately)
        return await self._client.request_model(
            Subscription,
            "PUT",
            f"/api/v1/billing/subscriptions/{change.subscription_uid}/changeSubscription",
            params=change.query,
            json=change.payload,
        )

    async def preview_plan_change(
        self,
        account_uid: str,
        plan_uid: str,
        start_immediately: bool = False,
    ) -> SubscriptionChangePreview:
        """Projected invoice for the change; nothing is committed remotely."""

        change = await self.prepare_plan_change(account_uid, plan_uid, start_immediately)
        return await self._client.request_model(
            SubscriptionChangePreview,
            "PUT",
            f"/api/v1/billing/subscriptions/{change.subscription_uid}/changesubscriptionpreview",
            params=change.query,
            json=change.payload,
        )

    @staticmethod
    def require_usage_add_on(account: Account, add_on_uid: str) -> SubscriptionAddOn:
        subscription = SubscriptionService.require_current_subscription(account)
        target = subscription.find_add_on(add_on_uid)
        if target is None:
            raise PreconditionError(
                f"Subscription for add-on with UID {add_on_uid} not found for account {account.uid}"
            )
        if target.add_on is None or not target.add_on.is_usage_billed:
            raise PreconditionError(f"Add-on with UID {add_on_uid} is not a usage add-on for account {account.uid}")
        return target

    async def record_usage(
        self,
        account_uid: str,
        add_on_uid: str,
        amount: int,
        usage_date: datetime | None = None,
    ) -> UsageRecord:
        add_on_uid = _require(add_on_uid, "Add-on UID")
        if amount <= 0:
            raise ValidationError("Amount must be a positive number")

        account = await self.fetch_account(account_uid, ACCOUNT_ADD_ON_FIELDS)
        target = self.require_usage_add_on(account, add_on_uid)
        logger.debug("Found add-on subscription: %s", target.uid)

        payload = {
            "UsageDate": format_usage_date(usage_date or datetime.now(timezone.utc)),
            "Amount": amount,
            "SubscriptionAddOn": {"Uid": target.uid},
        }
        return await self._client.request_model(UsageRecord, "POST", USAGE_PATH, json=payload)
