"""Interactive prompt helpers on top of `typer.prompt`."""

from __future__ import annotations

from typing import Callable

import typer
from rich.console import Console

from cli.ui_components import build_choices_table

Validator = Callable[[str], str | None]


def ask_text(
    console: Console,
    label: str,
    *,
    value: str | None = None,
    default: str | None = None,
    validate: Validator | None = None,
    hide_input: bool = False,
) -> str:
    """Returns `value` when given, otherwise asks until `validate` accepts the input.

    `validate` returns an error message, or None when the input is acceptable.
    A pre-supplied `value` that fails validation ends the command with exit code 1.
    """

    if value is not None:
        error = validate(value) if validate else None
        if error:
            console.print(f"[red]{error}[/red]")
            raise typer.Exit(code=1)
        return value.strip()

    while True:
        raw = typer.prompt(label, default=default, hide_input=hide_input)
        answer = str(raw).strip()
        error = validate(answer) if validate else None
        if error is None and answer:
            return answer
        console.print(f"[red]{error or f'{label.strip()} is required'}[/red]")


def ask_choice(console: Console, title: str, labels: list[str], *, default: int = 1) -> int:
    """Shows a numbered list and returns the zero-based index picked."""

    console.print(build_choices_table(title, labels))
    while True:
        picked = typer.prompt(title, default=default, type=int)
        if 1 <= picked <= len(labels):
            return picked - 1
        console.print(f"[red]Pick a number between 1 and {len(labels)}[/red]")


def positive_int(raw: str) -> str | None:
    try:
        value = int(raw)
    except ValueError:
        return "Amount must be a positive number"
    return None if value > 0 else "Amount must be a positive number"


def non_negative_float(raw: str) -> str | None:
    try:
        value = float(raw)
    except ValueError:
        return "Please enter a valid positive number"
    return None if value >= 0 else "Please enter a valid positive number"
