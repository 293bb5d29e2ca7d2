"""
Main CLI command registration.
"""
import typer

from .db import cleanup_tokens, create_admin, init_db
from .server import run_server

app = typer.Typer(help="Darna authentication service CLI")


@app.callback()
def main_callback():
    """Darna auth command line interface."""
    pass


app.command("run")(run_server)
app.command("init-db")(init_db)
app.command("create-admin")(create_admin)
app.command("cleanup-tokens")(cleanup_tokens)

__all__ = ["app"]
