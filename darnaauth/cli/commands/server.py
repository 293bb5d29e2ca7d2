"""
Server commands.
"""
from typing import Optional

import typer

from ...core.config import get_settings
from ..utils import print_success


def run_server(
    host: Optional[str] = typer.Option(None, help="Bind address (defaults to DARNA_HOST)"),
    port: Optional[int] = typer.Option(None, help="Port (defaults to DARNA_PORT)"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
    workers: int = typer.Option(1, help="Number of worker processes"),
) -> None:
    """Run the API server."""
    # Import uvicorn only when needed
    import uvicorn

    settings = get_settings()
    host = host or settings.HOST
    port = port or settings.PORT

    print_success(f"Starting {settings.APP_NAME} at http://{host}:{port}{settings.API_PREFIX}")
    uvicorn.run(
        "darnaauth:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level=settings.LOG_LEVEL.lower(),
    )
