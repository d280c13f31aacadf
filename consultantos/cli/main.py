"""ConsultantOS CLI: main entry point using Typer."""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

app = typer.Typer(
    name="consultantos",
    help="Source ingestion and retrieval for ConsultantOS.",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_time=False)],
    )


@app.command()
def init(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Create the database schema and a default config file."""
    _setup_logging(verbose)

    async def _init():
        from pathlib import Path

        from consultantos.storage.db import close_db, init_db

        console.print("[bold]Setting up ConsultantOS[/bold]", style="green")

        config_dir = Path.home() / ".config/consultantos"
        config_dir.mkdir(parents=True, exist_ok=True)
        console.print(f"  Config dir: {config_dir}")

        console.print("  Initializing database...")
        await init_db()
        await close_db()
        console.print("  Database ready.")

        config_path = config_dir / "config.toml"
        if not config_path.exists():
            config_path.write_text(
                "[general]\n"
                'db_url = "postgresql+asyncpg://localhost/consultantos"\n'
                'log_level = "INFO"\n\n'
                "[anthropic]\n"
                '# api_key = ""  # Or set ANTHROPIC_API_KEY env var\n'
                'model = "claude-haiku-4-5-20251001"\n'
                'summary_model = "claude-sonnet-4-5-20250929"\n\n'
                "[embeddings]\n"
                '# api_key = ""  # Or set OPENAI_API_KEY env var\n'
                'embedding_model = "text-embedding-3-small"\n'
                "embedding_dim = 1536\n\n"
                "[ingestion]\n"
                "chunk_size = 1000\n"
                "chunk_overlap = 200\n\n"
                "[worker]\n"
                "poll_interval_seconds = 5\n"
                "lease_seconds = 300\n"
            )
            console.print(f"  Config written: {config_path}")

        console.print("\n[bold green]ConsultantOS initialized![/bold green]")
        console.print("\nNext steps:")
        console.print("  1. Start the API:    [cyan]consultantos serve[/cyan]")
        console.print("  2. Start a worker:   [cyan]consultantos worker[/cyan]")

    asyncio.run(_init())


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Run the HTTP API."""
    _setup_logging(verbose)

    import uvicorn

    from consultantos.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "consultantos.api.routes:app",
        host=host or settings.api.host,
        port=port or settings.api.port,
        reload=reload,
        log_level="debug" if verbose else "info",
    )


@app.command()
def worker(
    once: bool = typer.Option(False, "--once", help="Drain the queue once and exit"),
    interval: Optional[float] = typer.Option(None, "--interval", "-i", help="Poll interval in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Process queued ingestion jobs (summaries, embeddings, insights)."""
    _setup_logging(verbose)

    from consultantos.daemon import run_worker

    total = asyncio.run(run_worker(poll_interval=interval, once=once))
    if once:
        console.print(f"Processed {total} jobs")


@app.command()
def status(
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Show source, chunk and job counts."""
    _setup_logging(verbose)

    async def _status():
        from rich.table import Table
        from sqlalchemy import func, select

        from consultantos.storage.ai_log import get_ai_cost_summary
        from consultantos.storage.db import close_db, get_session
        from consultantos.storage.jobs import get_job_stats
        from consultantos.storage.models import ActionItem, Client, Source, SourceChunk, TranscriptUpload

        async with get_session() as session:
            counts = {}
            for model, name in [
                (Client, "clients"),
                (Source, "sources"),
                (SourceChunk, "chunks"),
                (TranscriptUpload, "transcripts"),
                (ActionItem, "action_items"),
            ]:
                result = await session.execute(select(func.count()).select_from(model))
                counts[name] = result.scalar()

            result = await session.execute(
                select(Source.processing_status, func.count()).group_by(Source.processing_status)
            )
            statuses = {row[0]: row[1] for row in result.all()}
            jobs = await get_job_stats(session)
            costs = await get_ai_cost_summary(session)

            failed = await session.execute(
                select(Source.name, Source.processing_error)
                .where(Source.processing_status == "failed")
                .order_by(Source.updated_at.desc())
                .limit(5)
            )
            failures = failed.all()
        await close_db()

        console.print("\n[bold]ConsultantOS Status[/bold]\n")

        table = Table(title="Data Counts")
        table.add_column("Entity", style="cyan")
        table.add_column("Count", style="green", justify="right")
        for name, count in counts.items():
            table.add_row(name, str(count))
        console.print(table)

        if statuses:
            console.print("\n[bold]Source processing:[/bold]")
            for name, count in sorted(statuses.items()):
                console.print(f"  {name}: {count}")

        if jobs:
            console.print("\n[bold]Jobs:[/bold]")
            for name, count in sorted(jobs.items()):
                console.print(f"  {name}: {count}")

        if costs:
            console.print("\n[bold]AI usage:[/bold]")
            for call_type, summary in sorted(costs.items()):
                console.print(f"  {call_type}: {summary['calls']} calls (${summary['cost_usd']:.4f})")

        if failures:
            console.print("\n[bold red]Recent failures:[/bold red]")
            for name, error in failures:
                console.print(f"  {name}: {error}")

    asyncio.run(_status())


@app.command()
def search(
    query: str = typer.Argument(help="Search query"),
    user_id: str = typer.Option(..., "--user", "-u", envvar="CONSULTANTOS_USER_ID", help="Owner user id"),
    client_id: Optional[str] = typer.Option(None, "--client", "-c", help="Restrict to one client"),
    limit: int = typer.Option(10, "--limit", "-n", help="Max results"),
    min_similarity: Optional[float] = typer.Option(None, "--min-similarity", help="Drop weaker matches"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Semantic search over indexed source chunks."""
    _setup_logging(verbose)

    async def _search():
        from uuid import UUID

        from rich.table import Table

        from consultantos.storage.db import close_db, get_session
        from consultantos.storage.vectors import search_similar_chunks

        async with get_session() as session:
            results = await search_similar_chunks(
                session,
                query,
                user_id,
                client_id=UUID(client_id) if client_id else None,
                limit=limit,
                min_similarity=min_similarity,
            )
        await close_db()

        if not results:
            console.print("[dim]No matching chunks.[/dim]")
            return

        table = Table(title=f"Results for: {query}")
        table.add_column("Score", style="green", justify="right")
        table.add_column("Source", style="cyan")
        table.add_column("#", justify="right")
        table.add_column("Content")
        for r in results:
            snippet = r["content"].replace("\n", " ")
            table.add_row(
                f"{r['similarity']:.3f}",
                r["sourceName"],
                str(r["chunkIndex"]),
                snippet[:120] + ("..." if len(snippet) > 120 else ""),
            )
        console.print(table)

    asyncio.run(_search())


@app.command()
def reprocess(
    source_id: str = typer.Argument(help="Source id to reprocess"),
    user_id: str = typer.Option(..., "--user", "-u", envvar="CONSULTANTOS_USER_ID", help="Owner user id"),
    now: bool = typer.Option(False, "--now", help="Process immediately instead of waiting for a worker"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Regenerate a source's summary and chunks."""
    _setup_logging(verbose)

    async def _reprocess():
        from uuid import UUID

        from consultantos.errors import NotFoundError, SourceBusyError
        from consultantos.ingestion.pipeline import reprocess_source
        from consultantos.storage.db import close_db, get_session
        from consultantos.worker import process_pending_jobs

        try:
            async with get_session() as session:
                source = await reprocess_source(session, UUID(source_id), user_id)
                name = source.name
        except NotFoundError:
            console.print(f"[red]Source not found: {source_id}[/red]")
            raise typer.Exit(1)
        except SourceBusyError:
            console.print(f"[yellow]Source {source_id} is already processing[/yellow]")
            raise typer.Exit(1)

        console.print(f"Queued reprocessing for [cyan]{name}[/cyan]")
        if now:
            processed = await process_pending_jobs()
            console.print(f"Processed {processed} jobs")
        await close_db()

    asyncio.run(_reprocess())


def main():
    """Entry point for the consultantos CLI."""
    app()


if __name__ == "__main__":
    main()
