"""
CLI Main - Typer-based command-line interface.

Usage:
    knowdex index --force
    knowdex search "singleton pattern" --scenario lint
    knowdex stats
    knowdex cache-cleanup
    knowdex serve
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from knowdex.config import KnowdexError, get_settings

app = typer.Typer(
    name="knowdex",
    help="Knowdex - Local knowledge-base indexing and retrieval",
    add_completion=False,
)
console = Console()


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Configure logging from settings before any command runs."""
    level = "DEBUG" if verbose else get_settings().log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command()
def index(
    force: bool = typer.Option(False, "--force", "-f", help="Re-embed and rewrite every chunk"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Compute changes without writing"),
) -> None:
    """Index the configured directories into the vector store."""
    asyncio.run(_index_async(force, dry_run))


async def _index_async(force: bool, dry_run: bool) -> None:
    from knowdex.interfaces.api.deps import cleanup_services, get_pipeline, init_services

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Loading index...", total=None)
        try:
            await init_services()
            progress.update(task, description="Indexing documents...")
            stats = await get_pipeline().run(force=force, dry_run=dry_run)
        except KnowdexError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(1)
        finally:
            await cleanup_services()

    mode = "Dry run" if dry_run else ("Full rebuild" if stats.full_rebuild else "Incremental")
    table = Table(title=f"Indexing Summary ({mode})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Documents", str(stats.documents))
    table.add_row("Chunks", str(stats.scanned))
    table.add_row("Upserted", str(stats.upserted))
    table.add_row("Skipped (unchanged)", str(stats.skipped))
    table.add_row("Embedded", str(stats.embedded))
    table.add_row("Removed", str(stats.removed))
    table.add_row("Errors", str(stats.errors))
    table.add_row("Duration", f"{stats.duration_ms:.0f} ms")
    console.print(table)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    scenario: str | None = typer.Option(None, "--scenario", "-s", help="lint, generate, search, learning"),
    language: str | None = typer.Option(None, "--language", "-l", help="Preferred language"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of results"),
) -> None:
    """Search the index through the retrieval funnel."""
    asyncio.run(_search_async(query, scenario, language, limit))


async def _search_async(query: str, scenario: str | None, language: str | None, limit: int) -> None:
    from knowdex.domains.search import RankingCandidate, SearchContext
    from knowdex.interfaces.api.deps import cleanup_services, get_funnel, get_vector_store, init_services

    try:
        await init_services()
        items = await get_vector_store().list_items()
        candidates = [RankingCandidate.from_item(item) for item in items]
        result = await get_funnel().execute_with_trace(
            query, candidates, SearchContext(scenario=scenario, language=language)
        )
    except KnowdexError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await cleanup_services()

    if not result.candidates:
        console.print(Panel("The index is empty. Run `knowdex index` first.", style="yellow"))
        return

    table = Table(title=f"Results for '{query}' (scenario: {result.scenario})")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Source", style="dim")
    table.add_column("Score", style="green", justify="right")
    table.add_column("Relevance", justify="right")
    table.add_column("Authority", justify="right")
    table.add_column("Recency", justify="right")

    for rank, candidate in enumerate(result.candidates[:limit], 1):
        score = candidate.context_score or candidate.ranker_score or candidate.coarse_score or 0.0
        signals = candidate.signals
        table.add_row(
            str(rank),
            candidate.title,
            str(candidate.metadata.get("source_path") or ""),
            f"{score:.3f}",
            f"{signals.relevance:.2f}" if signals else "-",
            f"{signals.authority:.2f}" if signals else "-",
            f"{signals.recency:.2f}" if signals else "-",
        )
    console.print(table)

    stages = ", ".join(
        f"{s.name}{'*' if s.fallback else ''} {s.output_count}" for s in result.stages
    )
    console.print(f"[dim]Stages: {stages}  (* = fallback)[/dim]")


@app.command()
def stats() -> None:
    """Show index and embedding cache statistics."""
    asyncio.run(_stats_async())


async def _stats_async() -> None:
    from knowdex.interfaces.api.deps import get_embedding_cache, get_vector_store, init_services

    await init_services()
    store = get_vector_store()
    store_stats = await store.get_stats()
    manifest = await store.manifests.read()
    cache_stats = get_embedding_cache().stats()

    table = Table(title="Index Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Items", str(store_stats.count))
    table.add_row("Items with vectors", str(store_stats.has_vector_count))
    table.add_row("Dimension", str(store_stats.dimension or "-"))
    table.add_row("Index file", store_stats.index_path)
    table.add_row("Index size", f"{store_stats.index_bytes / 1024:.1f} KB")
    table.add_row("Requires rebuild", "yes" if store_stats.requires_rebuild else "no")
    if manifest is not None:
        table.add_row("Index version", str(manifest.index_version))
        table.add_row("Embedding model", manifest.embedding_model or "-")
        table.add_row("Last full rebuild", manifest.last_full_rebuild or "-")
        table.add_row("Updated", manifest.updated_at or "-")
    table.add_row("Cached embeddings", f"{cache_stats.size}/{cache_stats.max_size}")
    console.print(table)


@app.command("cache-cleanup")
def cache_cleanup() -> None:
    """Remove expired embedding cache entries."""
    asyncio.run(_cache_cleanup_async())


async def _cache_cleanup_async() -> None:
    from knowdex.interfaces.api.deps import get_embedding_cache

    cache = get_embedding_cache()
    if not cache.enabled:
        console.print("[yellow]Embedding cache is disabled[/yellow]")
        return
    await cache.load()
    removed = await cache.cleanup()
    console.print(f"[green]Removed {removed} expired cache entries[/green]")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("\n[green]Starting Knowdex API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "knowdex.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version() -> None:
    """Show version information."""
    from knowdex import __version__

    console.print(f"Knowdex v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
