"""Flask CLI commands for refresh-token housekeeping and incident response."""

from __future__ import annotations

import logging
from datetime import timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from lending_api.infra import get_refresh_token_store
from lending_api.services._shared.ports import RevocationReason
from lending_api.services.sessions import ExpiryPolicy, RevocationManager

LOGGER = logging.getLogger(__name__)

REVOKE_REASONS = [r.value for r in RevocationReason if r is not RevocationReason.ROTATED]


@click.group("tokens")
def tokens_cli() -> None:
    """Refresh-token maintenance commands."""


@tokens_cli.command("purge")
@click.option(
    "--retention-days",
    type=click.IntRange(min=0),
    default=None,
    help="Keep inactive records this many days (default: REFRESH_TOKEN_RETENTION_DAYS).",
)
@with_appcontext
def purge_command(retention_days: int | None) -> None:
    """Delete records expired or revoked before the retention window."""
    days = (
        retention_days
        if retention_days is not None
        else int(current_app.config["REFRESH_TOKEN_RETENTION_DAYS"])
    )
    policy = ExpiryPolicy(
        store=get_refresh_token_store(),
        retention=timedelta(days=days),
    )
    removed = policy.sweep()
    click.echo(f"Purged {removed} refresh token(s) older than {days} day(s).")


@tokens_cli.command("revoke-user")
@click.argument("user_id")
@click.option(
    "--reason",
    type=click.Choice(REVOKE_REASONS),
    default=RevocationReason.USER_LOGOUT_ALL.value,
    show_default=True,
)
@with_appcontext
def revoke_user_command(user_id: str, reason: str) -> None:
    """Revoke every active refresh token of USER_ID."""
    manager = RevocationManager(store=get_refresh_token_store())
    count = manager.revoke_all_for_user(user_id, RevocationReason(reason))
    LOGGER.warning("tokens.revoke_user", extra={"user_id": user_id, "count": count})
    click.echo(f"Revoked {count} refresh token(s) for user {user_id}.")
