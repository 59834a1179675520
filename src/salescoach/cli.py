"""
SalesCoach CLI - command-line interface for the SalesCoach backend.

Minimal CLI providing server management, database setup, and one-off
conversation analysis for operators.
"""

import json
from typing import Optional

import typer
from rich.console import Console

from salescoach.logging_config import setup_logging

app = typer.Typer(
    name="salescoach",
    help="SalesCoach - AI sales conversation training backend",
    no_args_is_help=True,
)

console = Console()


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (default: API_HOST)"),
    port: int = typer.Option(None, help="Port to bind to (default: API_PORT)"),
    reload: Optional[bool] = typer.Option(
        None, "--reload/--no-reload", help="Auto-reload (default: API_RELOAD)"
    ),
) -> None:
    """
    Start the FastAPI server.

    Runs the SalesCoach API server.
    """
    import uvicorn

    from salescoach.config import settings

    host = host or settings.api_host
    port = port or settings.api_port
    if reload is None:
        reload = settings.api_reload

    console.print("[bold green]Starting SalesCoach API server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print(f"\n  API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "salescoach.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command("init-db")
def init_db_command() -> None:
    """
    Create all tables directly from the models.

    Intended for local SQLite databases; use `alembic upgrade head`
    against PostgreSQL.
    """
    from salescoach.config import settings
    from salescoach.db.connection import init_db

    console.print(f"[bold blue]Initializing database:[/bold blue] {settings.database_url}")
    init_db()
    console.print("[green]✓ Tables created[/green]")


@app.command()
def analyze(
    conversation_id: str = typer.Argument(..., help="Voice provider conversation id"),
    auth_id: str = typer.Option(
        None, "--auth-id", help="Attribute the analysis to this profile's auth id"
    ),
    output_json: bool = typer.Option(False, "--json", help="Print the full payload"),
) -> None:
    """
    Analyze one conversation (or print its cached analysis).

    Uses the same cache as the API, so a conversation is sent to the LLM
    at most once.
    """
    from salescoach.analysis import AnalysisCache, ConversationAnalyzer
    from salescoach.api.dependencies import get_llm_provider, get_voice_client
    from salescoach.config import settings
    from salescoach.db.connection import db_session
    from salescoach.db.repositories import ProfileRepository
    from salescoach.exceptions import SalesCoachError
    from salescoach.voice import TranscriptFetcher

    try:
        setup_logging(context="cli")
    except PermissionError:
        import logging

        logging.basicConfig(level=logging.INFO)

    voice_client = get_voice_client()
    provider = get_llm_provider()
    if voice_client is None:
        console.print("[bold red]Error:[/bold red] ELEVENLABS_API_KEY not set")
        raise typer.Exit(1)
    if provider is None:
        console.print(
            f"[bold red]Error:[/bold red] no API key for LLM provider "
            f"'{settings.llm_provider}'"
        )
        raise typer.Exit(1)

    fetcher = TranscriptFetcher(
        voice_client,
        max_retries=settings.transcript_max_retries,
        retry_delay=settings.transcript_retry_delay_seconds,
        retry_after_seconds=settings.transcript_retry_after_seconds,
    )

    console.print(f"[bold blue]Analyzing conversation:[/bold blue] {conversation_id}")

    try:
        with db_session() as session:
            analyzer = ConversationAnalyzer(
                AnalysisCache(session),
                fetcher,
                provider,
                temperature=settings.analysis_temperature,
                max_tokens=settings.analysis_max_tokens,
            )
            profiles = ProfileRepository(session)
            outcome = analyzer.analyze(
                conversation_id,
                attribute=lambda: profiles.get_by_auth_id(auth_id) if auth_id else None,
            )
    except SalesCoachError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if output_json:
        console.print_json(json.dumps(outcome.payload, default=str))
        return

    analysis = outcome.payload.get("analysis") or {}
    source = "cache" if outcome.cached else "LLM"
    console.print(f"[green]✓ Analysis ready[/green] (from {source})")
    console.print(f"  Overall score: {analysis.get('overall_score')}")
    console.print(f"  Summary: {analysis.get('conversation_summary')}")
    if outcome.session_id:
        console.print(f"  Stored under session: {outcome.session_id}")


if __name__ == "__main__":
    app()
