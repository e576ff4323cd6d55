from __future__ import annotations

import sys
from typing import Optional

import typer
import uvicorn

from song_catalog.api import create_app
from song_catalog.config import get_settings
from song_catalog.persistence import available_backends
from song_catalog.utils.logging import configure_logging

app = typer.Typer(help="Song Catalog CLI.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    if settings.backend == "postgres":
        target = f"{settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    else:
        target = settings.lmdb_path
    typer.echo(
        f"backend={settings.backend} ({target}) | "
        f"flush_policy={settings.flush_policy} interval={settings.flush_interval_ms}ms "
        f"idle_timeout={settings.flush_idle_timeout_s}s | "
        f"http={settings.http_host}:{settings.http_port}"
    )


@app.command()
def backends() -> None:
    """
    List available persistence backends.
    """
    typer.echo("Available backends: " + ", ".join(available_backends()))


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from settings)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port (default from settings)."),
    backend: Optional[str] = typer.Option(
        None,
        "--backend",
        "-b",
        help="Persistence backend (e.g., lmdb, postgres).",
    ),
) -> None:
    """
    Run the HTTP server with the background flush scheduler.
    """
    settings = get_settings()
    if backend is not None:
        if backend not in available_backends():
            raise typer.BadParameter(
                f"Unknown backend '{backend}'. Available: {', '.join(available_backends())}",
                param_hint="--backend",
            )
        settings = settings.model_copy(update={"backend": backend})
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)

    bind_host = host or settings.http_host
    bind_port = port or settings.http_port
    typer.echo(f"The server is listening on {bind_host}:{bind_port} (backend={settings.backend}).")
    uvicorn.run(
        create_app(settings),
        host=bind_host,
        port=bind_port,
        log_config=None,
    )


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
