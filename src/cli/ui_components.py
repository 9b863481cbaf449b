"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import (
    Account,
    Plan,
    Profile,
    SubscriptionChangePreview,
    TokenClaims,
    UsageRecord,
    ValidationErrorDetail,
)

_TAG_RE = re.compile(r"<[^>]+>")


def strip_html(value: str | None) -> str:
    """Quita etiquetas HTML de las descripciones de planes."""

    return _TAG_RE.sub("", value or "").strip()


def _timestamp(value: int | float | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _money(value: float | None) -> str:
    return "-" if value is None else f"${value:,.2f}"


def print_banner(console: Console, title: str, subtitle: str) -> None:
    """Imprime la cabecera de un comando interactivo."""

    body = Align.center(
        Text.assemble(Text(title, style="bold cyan"), "\n", Text(subtitle, style="dim")),
        vertical="middle",
    )
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_choices_table(title: str, labels: list[str]) -> Table:
    table = Table(title=title, show_header=False)
    table.add_column("#", style="cyan", no_wrap=True, justify="right")
    table.add_column("Option", style="white")
    for index, label in enumerate(labels, start=1):
        table.add_row(str(index), label)
    return table


def plan_label(plan: Plan) -> str:
    label = f"{plan.name} (UID: {plan.uid})"
    if plan.monthly_rate is not None:
        label += f" - ${plan.monthly_rate}/month"
    description = strip_html(plan.description)
    if description:
        label += f" - {description}"
    return label


def account_label(account: Account) -> str:
    plan_name = account.current_plan_name
    suffix = f" - Current plan: {plan_name}" if plan_name else " - No active subscription"
    return f"{account.name} (UID: {account.uid}){suffix}"


def build_claims_table(claims: TokenClaims, *, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Claim", style="bright_green", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Person UID", str(claims.sub))
    table.add_row("Email", str(claims.email))
    table.add_row("Name", str(claims.name))
    table.add_row("Account UID", str(claims.account_uid))
    table.add_row("Is Primary", str(claims.is_primary))
    table.add_row("Issued At", _timestamp(claims.iat))
    table.add_row("Expires At", _timestamp(claims.exp))
    return table


def build_profile_panel(profile: Profile) -> Panel:
    body = Text()
    body.append(f"Person UID: {profile.uid}\n")
    body.append(f"Email: {profile.email}\n")
    body.append(f"First Name: {profile.first_name}\n")
    body.append(f"Last Name: {profile.last_name}\n")
    if profile.profile_image_url:
        body.append(f"Profile Image: {profile.profile_image_url}\n")
    if profile.account:
        body.append(f"Account Name: {profile.account.name}\n")
        body.append(f"Account UID: {profile.account.uid}\n")
    return Panel(body, title=Text("Extended Profile (Profile Endpoint)", style="bold yellow"), border_style="yellow")


def build_preview_table(preview: SubscriptionChangePreview) -> Table:
    table = Table(title="Plan change preview")
    table.add_column("Item", style="cyan")
    table.add_column("Amount", style="white", justify="right")
    for item in preview.line_items:
        table.add_row(item.description or "-", _money(item.amount))
    table.add_section()
    table.add_row("Subtotal", _money(preview.subtotal))
    table.add_row("Tax", _money(preview.tax))
    table.add_row("Total", _money(preview.total), style="bold")
    table.add_row("Balance", _money(preview.balance))
    table.add_row("Refunded", _money(preview.refunded_amount))
    return table


def build_usage_table(record: UsageRecord) -> Table:
    table = Table(title="Usage record", show_header=False)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Usage UID", str(record.uid))
    table.add_row("Usage Date", str(record.usage_date))
    table.add_row("Amount", str(record.amount))
    table.add_row("Created", str(record.created))
    table.add_row("Updated", str(record.updated))
    return table


def print_validation_errors(console: Console, errors: list[ValidationErrorDetail]) -> None:
    console.print("\n[yellow]🔎 Validation errors:[/yellow]")
    for error in errors:
        console.print(f"  {error}", markup=False)
    console.print()
