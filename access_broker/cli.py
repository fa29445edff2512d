"""Command line interface for the access broker."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

import typer

from .client import ActionsClientError, export_access_token, request_access_token
from .errors import BrokerError
from .models import Authority
from .policy import PolicyEvaluator, parse_policy

app = typer.Typer(help="CLI for the repository access token broker")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the process."""
    level = (level or os.getenv("ACCESS_BROKER_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.callback()
def main() -> None:
    """Access broker CLI entry point."""
    pass


@app.command("serve")
def serve(
    host: str = "127.0.0.1",
    port: int = 8000,
    config: Optional[Path] = typer.Option(None, help="Path to a YAML config file"),
    log_level: Optional[str] = typer.Option(None, help="Logging level, default INFO"),
) -> None:
    """
    Run the token exchange endpoint.

    The GitHub App credential is read from GITHUB_APP_ID and
    GITHUB_APP_PRIVATE_KEY unless the config file provides it.

    Example:
        access-broker serve --port 8080
    """
    import uvicorn

    from .config import load_config
    from .server import create_app

    configure_logging(log_level)
    try:
        application = create_app(load_config(str(config) if config else None))
    except BrokerError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    uvicorn.run(application, host=host, port=port, log_level=(log_level or "info").lower())


@app.command("request")
def request(
    endpoint: str,
    repo: str = typer.Option("self", help="Target repository or 'self'"),
    id_token: Optional[str] = typer.Option(
        None, envvar="ACCESS_BROKER_ID_TOKEN", help="ID token, fetched from the Actions runtime if omitted"
    ),
) -> None:
    """
    Request an access token from a broker inside a GitHub Actions job.

    The token is masked in the job log, exported as GITHUB_ACCESS_TOKEN and
    set as the step output 'token'.

    Example:
        access-broker request https://broker.example.com --repo octo-org/tools
    """
    try:
        result = request_access_token(endpoint, repo, id_token=id_token)
    except ActionsClientError as e:
        typer.secho(f"::error::{e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    token = result["token"]
    typer.echo(f"::add-mask::{token}")
    export_access_token(token)
    typer.echo(f"repo: {result.get('repo')}")
    typer.echo(f"expires_at: {result.get('expires_at')}")
    for scope, level in sorted((result.get("permissions") or {}).items()):
        typer.echo(f"{scope}: {level}")


@app.command("check-policy")
def check_policy(
    path: Path,
    source: str = typer.Option(..., help="Repository requesting access"),
    target: str = typer.Option(..., help="Repository the access file belongs to"),
    authority: List[str] = typer.Option(
        [], help="Permission held by the App, as scope=level (repeatable)"
    ),
) -> None:
    """
    Evaluate a local access file without contacting GitHub.

    Example:
        access-broker check-policy .github/access.yaml --source octo-org/app \\
            --target octo-org/tools --authority contents=write
    """
    if not path.exists():
        typer.secho("Specified path does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    granted = {}
    for item in authority:
        scope, sep, level = item.partition("=")
        if not sep:
            typer.secho(f"Invalid authority '{item}', expected scope=level", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        granted[scope.strip()] = level.strip()

    try:
        policy = parse_policy(path.read_bytes())
    except BrokerError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    permissions = PolicyEvaluator().evaluate(
        policy, source, target, Authority(installation_id=0, permissions=granted)
    )
    if not permissions:
        typer.echo("No permission granted")
        raise typer.Exit(code=2)
    for scope, level in sorted(permissions.items()):
        typer.echo(f"{scope}: {level}")
