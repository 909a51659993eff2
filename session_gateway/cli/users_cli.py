# session_gateway/cli/users_cli.py
import asyncio
from typing import Annotated

import typer

from ..errors import GatewayError
from ..identity.sqlite_identity_provider import SQLiteIdentityProvider
from ..identity.models import Principal
from ..settings import Settings

app = typer.Typer(
    name="users",
    help="Manage local gateway accounts (writes the SQLite user table directly).",
    no_args_is_help=True
)


async def _create_user(db_path: str, email: str, password: str, display_name: str, role: str) -> Principal:
    provider = SQLiteIdentityProvider(db_path=db_path)
    await provider.initialize()
    try:
        return await provider.register_user(email=email, password=password, display_name=display_name, role=role)
    finally:
        await provider.teardown()


@app.command("create")
def create_user(
    email: Annotated[str, typer.Option(prompt="Email", help="Login email for the account.")],
    display_name: Annotated[str, typer.Option(prompt="Display name", help="Name shown to other users.")],
    password: Annotated[
        str,
        typer.Option(prompt=True, hide_input=True, confirmation_prompt=True, help="Account password.")
    ],
    role: str = typer.Option("user", help="Role stored on the principal (e.g., user, admin)."),
):
    """Create a local account."""
    if len(password) < 8:
        typer.secho("Error: password must be at least 8 characters.", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    db_path = Settings().sqlite_db_path
    try:
        principal = asyncio.run(_create_user(db_path, email, password, display_name, role))
    except GatewayError as e:
        typer.secho(f"Error: {e.error_description or e.error}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.secho(
        f"Created user '{principal.email}' (id {principal.user_id}, role {principal.role}) in {db_path}.",
        fg=typer.colors.GREEN
    )


if __name__ == "__main__":
    app()
