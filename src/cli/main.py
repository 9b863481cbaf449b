"""Typer application: one command per Outseta demo flow.

Each command prompts for whatever was not passed as an option, runs the
corresponding core service and renders the result with Rich. Exit codes:
0 on success or Ctrl+C, 1 on any failure.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from pathlib import Path
from types import FrameType
from typing import Any, Coroutine, TypeVar

import httpx
import typer
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.logging import RichHandler

from adapters.json_exporter import export_model_json
from adapters.jwks import RemoteKeySetProvider
from adapters.outseta_client import OutsetaClient
from cli.doctor import app as doctor_app
from cli.prompts import ask_choice, ask_text, non_negative_float, positive_int
from cli.ui_components import (
    account_label,
    build_claims_table,
    build_preview_table,
    build_profile_panel,
    build_usage_table,
    plan_label,
    print_banner,
    print_validation_errors,
    strip_html,
)
from core.config import AppSettings
from core.domain.models import Account, Plan, PlanDraft, Registration, VerificationMethod, VerificationResult
from core.errors import ApiError, OutsetaError, PreconditionError, ValidationError
from core.services.accounts import AccountService
from core.services.catalog import CatalogService
from core.services.subscriptions import SubscriptionService
from core.services.token_verifier import TokenVerifier, ensure_token_shape

T = TypeVar("T")
InputT = TypeVar("InputT", bound=BaseModel)

app = typer.Typer(no_args_is_help=True, help="Demo commands for the Outseta REST API.")
app.add_typer(doctor_app, name="doctor")

_console = Console()

_METHOD_LABELS: dict[VerificationMethod, str] = {
    VerificationMethod.BOTH: "Both methods (JWK Set + Profile Endpoint)",
    VerificationMethod.KEYSET: "JWK Set verification only",
    VerificationMethod.PROFILE: "Profile Endpoint verification only",
}


def build_client(settings: AppSettings | None = None) -> OutsetaClient:
    return OutsetaClient(settings or AppSettings())


def configure_logging(verbose: bool) -> None:
    level: int | str = logging.DEBUG if verbose else AppSettings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, markup=False)],
        force=True,
    )


def _run(coro: Coroutine[Any, Any, T], failure: str) -> T:
    """Runs a flow and maps domain/transport failures to exit code 1."""

    try:
        return asyncio.run(coro)
    except (OutsetaError, httpx.HTTPError) as exc:
        _console.print(f"\n[red]💥 {failure}:[/red] {exc}\n", highlight=False)
        if isinstance(exc, ApiError) and exc.validation_errors:
            print_validation_errors(_console, exc.validation_errors)
        raise typer.Exit(code=1) from exc


def _build_input(model: type[InputT], **data: Any) -> InputT:
    """Builds a request model from prompted values; bad values become `ValidationError`."""

    try:
        return model(**data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or model.__name__
        raise ValidationError(f"Invalid {field}: {first['msg']}") from exc


def _validate_token(raw: str) -> str | None:
    try:
        ensure_token_shape(raw)
    except ValidationError as exc:
        return str(exc)
    return None


def _required(label: str):
    def _check(raw: str) -> str | None:
        return None if raw.strip() else f"{label} is required"

    return _check


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests and responses (DEBUG)."),
) -> None:
    configure_logging(verbose)


# --------------------------------------------------------------------------- verify-jwt


def render_verification(result: VerificationResult) -> None:
    _console.print("\n🎉 [bold]JWT Verification Complete![/bold]\n")
    if result.keyset_payload:
        _console.print(build_claims_table(result.keyset_payload, title="User Information (JWK Set verification)"))
    if result.profile_data:
        _console.print(build_profile_panel(result.profile_data))
    _console.print("\n[green]✅ Token is valid and verified![/green]")


async def _verify_flow(token: str, method: VerificationMethod) -> VerificationResult:
    async with build_client() as client:
        verifier = TokenVerifier(client, RemoteKeySetProvider(client))
        return await verifier.verify(token, method)


@app.command("verify-jwt")
def verify_jwt(
    token: str | None = typer.Option(None, "--token", help="JWT access token to verify."),
    method: VerificationMethod | None = typer.Option(None, "--method", case_sensitive=False),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the result as JSON."),
) -> None:
    """Verify an access token with the JWK Set and/or the profile endpoint."""

    print_banner(
        _console,
        "JWT Token Verification",
        "1. JWK Set verification • 2. Profile Endpoint verification",
    )
    token = ask_text(_console, "  JWT Token to verify", value=token, validate=_validate_token)
    if method is None:
        methods = list(_METHOD_LABELS)
        method = methods[ask_choice(_console, "Verification method", [_METHOD_LABELS[m] for m in methods])]

    _console.print("\n🚀 Verifying JWT token...\n")
    result = _run(_verify_flow(token, method), "JWT verification failed")
    render_verification(result)

    if output is not None:
        path = export_model_json(model=result, output_path=output)
        _console.print(f"[dim]Saved result to {path}[/dim]")


# --------------------------------------------------------------------------- login


@app.command()
def login(email: str | None = typer.Option(None, "--email", help="Email of the person to log in.")) -> None:
    """Generate an access token on behalf of a person (server side)."""

    _console.print("🔑 Login")
    email = ask_text(_console, "  Email", value=email, validate=_required("Email"))

    async def _flow():
        async with build_client() as client:
            return await AccountService(client).issue_token(email)

    _console.print("\n🚀 Generating token for user...\n")
    token = _run(_flow(), "Failed to generate token")
    _console.print("🎉 Success! Token generated.\n")
    _console.print(f"   • Token type: {token.token_type}")
    _console.print(f"   • JWT: {token.access_token[:40]}...", highlight=False)
    _console.print(f"   • Expires in: {token.expires_in} seconds\n")


# --------------------------------------------------------------------------- register


async def _pick_plan(catalog: CatalogService, *, exclude_uid: str | None = None, title: str = "Select a plan") -> Plan:
    plans = await catalog.list_plans()
    if not plans:
        raise PreconditionError("No plans found.")
    available = [plan for plan in plans if plan.uid != exclude_uid] if exclude_uid else plans
    if not available:
        raise PreconditionError("No other plans available for upgrade/downgrade.")
    return available[ask_choice(_console, title, [plan_label(plan) for plan in available])]


@app.command()
def register(plan_uid: str | None = typer.Option(None, "--plan-uid", help="Plan to subscribe the account to.")) -> None:
    """Register a person and their account on a plan."""

    async def _flow() -> Account:
        async with build_client() as client:
            plan_id = plan_uid or (await _pick_plan(CatalogService(client))).uid

            _console.print("👤 Enter Person details:")
            email = ask_text(_console, "  Email", default=f"jane+{int(time.time() * 1000)}@example.com")
            first_name = ask_text(_console, "  First Name", default="Jane")
            last_name = ask_text(_console, "  Last Name", default="Doe")
            coffee = ask_text(_console, "  Coffee Preference", default="Latte")

            _console.print("🏢 Enter Account details:")
            account_name = ask_text(_console, "  Name", default="Acme Inc")
            mascot = ask_text(_console, "  Mascot", default="Roadrunner")

            registration = _build_input(
                Registration,
                plan_uid=plan_id,
                email=email,
                first_name=first_name,
                last_name=last_name,
                coffee_preference=coffee,
                account_name=account_name,
                account_mascot=mascot,
            )
            _console.print("\n🚀 Registering user...\n")
            return await AccountService(client).register(registration)

    account = _run(_flow(), "Failed to register user")
    _console.print(
        "[yellow]📮 A confirmation email has been sent to the user. They must follow the link in the email "
        "to set their password and activate their account before logging in.[/yellow]\n"
    )
    contact = account.primary_contact
    _console.print(f"   • Email: {contact.email if contact else None}")
    _console.print(f"   • First Name: {contact.first_name if contact else None}")
    _console.print(f"   • Last Name: {contact.last_name if contact else None}")
    _console.print(f"   • Coffee Preference: {contact.coffee_preference if contact else None}")
    _console.print(f"   • Company Name: {account.name}")
    _console.print(f"   • Company Mascot: {account.mascot}\n")
    _console.print("ℹ️  You may generate a token on their behalf server side (see the `login` command).\n")


# --------------------------------------------------------------------------- change-plan


async def _pick_account(accounts: AccountService, email: str) -> Account:
    _console.print("\n🔍 Searching for accounts...")
    found = await accounts.find_accounts_by_email(email)
    if not found:
        raise PreconditionError(f"No accounts found for email: {email}")
    if len(found) == 1:
        account = found[0]
        _console.print(f"\n✅ Found account: {account.name} (UID: {account.uid})")
        if account.current_plan_name:
            _console.print(f"   Current plan: {account.current_plan_name}")
        return account
    _console.print(f"\n📋 Found {len(found)} accounts for {email}:")
    return found[ask_choice(_console, "Select an account", [account_label(a) for a in found])]


@app.command("change-plan")
def change_plan(
    account_uid: str | None = typer.Option(None, "--account-uid", help="Skip the email lookup."),
    email: str | None = typer.Option(None, "--email", help="Email used to look the account up."),
    plan_uid: str | None = typer.Option(None, "--plan-uid", help="Plan to switch to."),
    preview: bool = typer.Option(False, "--preview", help="Show the financial effect and ask before applying."),
    start_immediately: bool = typer.Option(False, "--start-immediately", help="Apply the change right away."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation after the preview."),
) -> None:
    """Change the subscription plan of an account."""

    async def _flow():
        async with build_client() as client:
            subscriptions = SubscriptionService(client)
            if account_uid:
                account = await subscriptions.fetch_account(account_uid)
            else:
                lookup = ask_text(_console, "Enter the user's email address", value=email, validate=_required("Email"))
                account = await _pick_account(AccountService(client), lookup)

            if account.current_subscription is None:
                raise PreconditionError(f'Account "{account.name}" does not have an active subscription to change.')

            current_plan = account.current_subscription.plan
            if plan_uid:
                plan = Plan(uid=plan_uid)
            else:
                _console.print("\n📦 Fetching available plans...")
                plan = await _pick_plan(
                    CatalogService(client),
                    exclude_uid=current_plan.uid if current_plan else None,
                    title="Select a new plan",
                )

            if preview:
                projected = await subscriptions.preview_plan_change(account.uid, plan.uid, start_immediately)
                _console.print(build_preview_table(projected))
                if not yes and not typer.confirm("Apply this plan change?", default=False):
                    return account, plan, None

            _console.print("\n🚀 Changing subscription plan...\n")
            result = await subscriptions.change_plan(account.uid, plan.uid, start_immediately)
            return account, plan, result

    account, plan, result = _run(_flow(), "Failed to change plan")
    if result is None:
        _console.print("No changes made.")
        return
    _console.print("\n🎉 Success! Subscription plan changed.\n")
    _console.print(f"   Account: {account.name}")
    _console.print(f"   Subscription UID: {result.uid}")
    _console.print(f"   New Plan: {plan.name or plan.uid}")
    if plan.monthly_rate is not None:
        _console.print(f"   Monthly Rate: ${plan.monthly_rate}")
    _console.print()


# --------------------------------------------------------------------------- track-usage


@app.command("track-usage")
def track_usage(
    account_uid: str | None = typer.Option(None, "--account-uid"),
    add_on_uid: str | None = typer.Option(None, "--add-on-uid"),
    amount: int | None = typer.Option(None, "--amount", help="Usage units to record (positive)."),
) -> None:
    """Record usage against a usage-billed add-on of an account."""

    account_uid = ask_text(_console, "Enter the Account UID", value=account_uid, validate=_required("Account UID"))
    add_on_uid = ask_text(_console, "Enter the Add-on UID", value=add_on_uid, validate=_required("Add-on UID"))
    units = int(
        ask_text(
            _console,
            "Enter the usage amount",
            value=str(amount) if amount is not None else None,
            validate=positive_int,
        )
    )

    async def _flow():
        async with build_client() as client:
            return await SubscriptionService(client).record_usage(account_uid, add_on_uid, units)

    _console.print("\n🚀 Track usage...\n")
    record = _run(_flow(), "Failed to track usage")
    _console.print("🎉 Success! Usage record created\n")
    _console.print(build_usage_table(record))


# --------------------------------------------------------------------------- create-plan


@app.command("create-plan")
def create_plan(
    name: str | None = typer.Option(None, "--name"),
    monthly_rate: float | None = typer.Option(None, "--monthly-rate", min=0),
    trial_period_days: int | None = typer.Option(None, "--trial-days", min=0),
    plan_family_uid: str | None = typer.Option(None, "--plan-family-uid"),
) -> None:
    """Create a plan inside a plan family."""

    async def _flow() -> Plan:
        async with build_client() as client:
            catalog = CatalogService(client)
            family_uid = plan_family_uid
            if not family_uid:
                _console.print("\n📦 Fetching available plan families...")
                families = await catalog.list_plan_families()
                if not families:
                    raise PreconditionError("No plan families found.")
                labels = [
                    f"{f.name} (UID: {f.uid})" + (f" - {strip_html(f.description)}" if f.description else "")
                    for f in families
                ]
                family = families[ask_choice(_console, "Select a plan family", labels)]
                _console.print(f"\n✅ Selected plan family: {family.name} (UID: {family.uid})\n")
                family_uid = family.uid

            draft = _build_input(
                PlanDraft,
                name=ask_text(_console, "Plan Name", value=name, default="Test Plan"),
                monthly_rate=float(
                    ask_text(
                        _console,
                        "Monthly Rate (USD)",
                        value=str(monthly_rate) if monthly_rate is not None else None,
                        default="9.99",
                        validate=non_negative_float,
                    )
                ),
                trial_period_days=(
                    trial_period_days
                    if trial_period_days is not None
                    else typer.prompt("Trial Period Days", default=14, type=int)
                ),
                is_active=typer.confirm("Is Active?", default=True),
                plan_family_uid=family_uid,
            )
            _console.print("\n🚀 Creating plan...\n")
            return await catalog.create_plan(draft)

    plan = _run(_flow(), "Failed to create plan")
    _console.print("🎉 Success! Plan created.\n")
    _console.print(f"   Plan UID: {plan.uid}")
    _console.print(f"   Plan Name: {plan.name}")
    _console.print(f"   Monthly Rate: {plan.monthly_rate}")
    _console.print(f"   Trial Period Days: {plan.trial_period_days}")
    _console.print(f"   Is Active: {plan.is_active}\n")


# --------------------------------------------------------------------------- entrypoint


def _exit_cleanly() -> None:
    _console.print("\nExited.")
    raise SystemExit(0)


def _exit_on_interrupt(signum: int, frame: FrameType | None) -> None:
    _exit_cleanly()


def run() -> None:
    signal.signal(signal.SIGINT, _exit_on_interrupt)
    try:
        app()
    except KeyboardInterrupt:
        _exit_cleanly()
