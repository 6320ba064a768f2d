from __future__ import annotations

import typer

from .config import settings
from .db.session import SessionLocal
from .services.auth import AuthError, AuthService
from .services.documents import prune_orphaned_objects
from .services.storage import get_document_storage

app = typer.Typer(help="DocuCollect administrative CLI")


@app.command()
def sign_in(
    email: str = typer.Argument(..., help="Account email"),
    password: str = typer.Option(..., prompt=True, hide_input=True, help="Account password"),
) -> None:
    """Sign in through the hosted auth service and print the session cookie."""
    try:
        session = AuthService().sign_in_with_password(email, password)
    except AuthError as exc:
        typer.echo(f"Sign-in failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"Account: {session.account.email} ({session.account.id})")
    typer.echo(f"Email confirmed: {session.account.email_confirmed}")
    typer.echo("\nPaste these cookies into your HTTP client:")
    typer.echo(f"{settings.cookie_name}={session.access_token}")
    typer.echo(f"{settings.refresh_cookie_name}={session.refresh_token}")


@app.command()
def send_magic_link(email: str = typer.Argument(...)) -> None:
    """Send a one-time login link to an email address."""
    try:
        AuthService().send_magic_link(email)
    except AuthError as exc:
        typer.echo(f"Could not send magic link: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Magic link sent to {email}.")


@app.command()
def prune_orphans(
    apply: bool = typer.Option(False, "--apply", help="Delete the objects instead of listing them"),
) -> None:
    """List or delete stored documents that no document row references."""
    db = SessionLocal()
    try:
        storage = get_document_storage()
        orphans = prune_orphaned_objects(db, storage, apply=apply)
    finally:
        db.close()

    for key in orphans:
        typer.echo(key)
    verb = "Deleted" if apply else "Found"
    typer.echo(f"{verb} {len(orphans)} orphaned object(s) in bucket {storage.bucket}")


if __name__ == "__main__":
    app()
