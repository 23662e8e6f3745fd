"""deck-auth CLI — run the API and administer accounts.

Usage:
    deck-auth serve                          # Run the API with uvicorn
    deck-auth set-role <uid> moderator       # Promote a user (bootstrap the first moderator)
    deck-auth reconcile                      # Report Auth users without profiles and vice versa
    deck-auth reconcile --fix                # ...and repair them

Admin commands talk to Firebase directly with the service account from
DECK_SERVICE_ACCOUNT_PATH; they do not go through the HTTP API, because
the first moderator can't be created through a moderator-only endpoint.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import sys

import click
import structlog

from deck_auth import __version__
from deck_auth.config import settings
from deck_auth.schemas.account import Role

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when an event loop is already running
    (e.g. CliRunner invoked from an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _account_service():
    """Build an AccountService against the configured Firebase project."""
    from deck_auth.firebase.context import FirebaseContext
    from deck_auth.services import build_account_service

    return build_account_service(FirebaseContext.from_settings(settings))


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="deck-auth")
def main():
    """Deck Auth — account management API and admin tools."""
    # Logs go to stderr, looked up per call, so stdout stays parseable (reconcile --json)
    structlog.configure(logger_factory=lambda *args: structlog.PrintLogger(sys.stderr))


@main.command()
@click.option("--host", default=None, help=f"Bind host (default {settings.host})")
@click.option("--port", default=None, type=int, help=f"Bind port (default {settings.port})")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "deck_auth.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command("set-role")
@click.argument("uid")
@click.argument("role", type=click.Choice([r.value for r in Role]))
def set_role(uid: str, role: str):
    """Set the role stored in a user's profile."""
    svc = _account_service()
    result = _run(svc.set_role(uid, Role(role)))
    if not result.success:
        _fail(str(result.message))
    click.secho(f"{uid} is now {role}", fg="green")


@main.command()
@click.option("--fix", is_flag=True, help="Create missing profiles and delete orphaned ones")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
def reconcile(fix: bool, as_json: bool):
    """Compare Firebase Auth users against Firestore profiles."""
    svc = _account_service()
    result = _run(svc.reconcile(fix=fix))
    if not result.success:
        _fail(str(result.message))

    report = result.value
    if as_json:
        click.echo(json.dumps(report.model_dump(), indent=2))
        return

    click.secho(
        f"{report.identities} Auth users, {report.profiles} profiles", bold=True
    )
    for uid in report.missing_profiles:
        mark = " (created)" if uid in report.created_profiles else ""
        click.secho(f"  missing profile: {uid}{mark}", fg="yellow")
    for uid in report.orphaned_profiles:
        mark = " (deleted)" if uid in report.deleted_profiles else ""
        click.secho(f"  orphaned profile: {uid}{mark}", fg="red")
    if not report.missing_profiles and not report.orphaned_profiles:
        click.secho("  in sync", fg="green")


if __name__ == "__main__":
    main()
