# session_gateway/cli/main_cli.py
import typer

from . import users_cli
from .utils_cli import make_api_request
from ..utils.keys import generate_session_secret

# Main CLI application with help enabled when no arguments are provided
app = typer.Typer(
    name="gateway",
    help="Session Gateway Command Line Interface.",
    no_args_is_help=True
)

# Register account commands under 'users' subcommand
app.add_typer(users_cli.app, name="users")


@app.callback()
def main_callback():
    """
    Session Gateway CLI.
    Use 'gateway users --help' for account commands.
    """
    pass


@app.command("health")
def health():
    """Query GET /health on a running gateway."""
    data = make_api_request("GET", "/health")
    if data.get("store") != "connected":
        typer.secho(f"Session store is {data.get('store')}.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)


@app.command("generate-secret")
def generate_secret():
    """Print a new random value for SESSION_SECRET."""
    typer.echo(generate_session_secret())
    typer.echo("Add this to your .env file as SESSION_SECRET", err=True)


def cli_entry_point():
    """Entry point function for console script registration in pyproject.toml"""
    app()


if __name__ == "__main__":
    cli_entry_point()
