from __future__ import annotations

import typer

from .config import settings
from .db.bootstrap import ensure_owner_user, run_migrations
from .db.session import SessionLocal
from .services.auth import AuthError, AuthService

app = typer.Typer(help="WolfCRM administrative CLI")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind"),
    port: int = typer.Option(settings.port, "--port", "-p", show_default=True, help="Port to listen on"),
) -> None:
    """Run the API under uvicorn."""
    import uvicorn

    uvicorn.run("wolfcrm.main:app", host=host, port=port, log_level="info")


@app.command()
def migrate() -> None:
    """Upgrade the schema and make sure the configured owner exists."""
    run_migrations()
    ensure_owner_user()
    typer.echo("Schema is up to date")


@app.command()
def create_user(email: str = typer.Argument(..., help="User email")) -> None:
    """Create a user, or report the existing one."""
    with SessionLocal() as db:
        user = AuthService(db).get_or_create_user(email)
        db.commit()
        typer.echo(f"User {user.email} ({user.id})")


@app.command()
def send_code(email: str = typer.Argument(...)) -> None:
    """Issue a login code and deliver it through the configured channel."""
    with SessionLocal() as db:
        try:
            issued = AuthService(db).request_code(email)
        except AuthError as exc:
            typer.echo(f"Could not issue code: {exc}", err=True)
            raise typer.Exit(code=1) from exc
        typer.echo(f"Login code sent to {email} via {issued.delivery}, expires {issued.expires_at.isoformat()}")


@app.command()
def create_session(email: str = typer.Argument(..., help="User email to authenticate as")) -> None:
    """Mint a bearer token for manual testing."""
    with SessionLocal() as db:
        service = AuthService(db)
        user = service.get_or_create_user(email)
        token = service.start_session(user)
        typer.echo(f"User: {user.email}")
        typer.echo("\nSend this header with API requests:")
        typer.echo(f"Authorization: Bearer {token}")


if __name__ == "__main__":
    app()
