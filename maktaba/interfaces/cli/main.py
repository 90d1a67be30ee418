"""
CLI Main - Typer-based command-line interface.

Usage:
    maktaba search "الصبر على البلاء"
    maktaba search "الصبر" --refine --reranker gpt-oss-120b
    maktaba init --catalog catalog.json
    maktaba serve
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from maktaba.domains.search import RerankerType, SearchMode, SearchRequest, SearchResponse

app = typer.Typer(
    name="maktaba",
    help="Maktaba - Hybrid search over Arabic books, Quran and hadith",
    add_completion=False,
)
console = Console()


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    mode: SearchMode = typer.Option(SearchMode.HYBRID, "--mode", "-m", help="Search mode"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of passages"),
    refine: bool = typer.Option(False, "--refine", "-r", help="Expand the query with an LLM"),
    reranker: RerankerType = typer.Option(RerankerType.NONE, "--reranker", help="Reranker"),
    book_id: str | None = typer.Option(None, "--book", "-b", help="Restrict to one book"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Search books, Quran and hadith."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        request = SearchRequest(
            query=query,
            mode=mode,
            limit=limit,
            refine=refine,
            reranker=reranker,
            book_id=book_id,
            include_debug=verbose,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid options:[/red] {e}")
        raise typer.Exit(1)
    asyncio.run(_search_async(request))


async def _search_async(request: SearchRequest) -> None:
    """Async search implementation."""
    from maktaba.config import MaktabaError
    from maktaba.interfaces.api.deps import cleanup_services, get_search_engine, init_services

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Searching...", total=None)
        try:
            await init_services()
            response = await get_search_engine().search(request)
        except MaktabaError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(1)
        finally:
            await cleanup_services()

    _print_response(response)


def _print_response(response: SearchResponse) -> None:
    """Render per-corpus result tables."""
    console.print(f"\n[yellow]Query:[/yellow] {response.query}  [dim]({response.count} results)[/dim]")
    for expanded in response.expanded_queries[1:]:
        console.print(f"[dim]  + {expanded.query} (weight {expanded.weight})[/dim]")
    if response.reranker_timed_out:
        console.print("[yellow]Reranker timed out; showing fused order[/yellow]")

    if response.passages:
        table = Table(title="Passages")
        table.add_column("Book", style="cyan")
        table.add_column("Page", justify="right")
        table.add_column("Score", justify="right", style="green")
        table.add_column("Text")
        for p in response.passages:
            table.add_row(p.book_id, str(p.page_number), f"{p.final_score:.3f}", p.text_snippet[:120])
        console.print(table)

    if response.verses:
        table = Table(title="Quran")
        table.add_column("Ayah", style="cyan")
        table.add_column("Score", justify="right", style="green")
        table.add_column("Text")
        for v in response.verses:
            table.add_row(f"{v.surah_number}:{v.ayah_number}", f"{v.final_score:.3f}", v.text[:120])
        console.print(table)

    if response.narrations:
        table = Table(title="Hadith")
        table.add_column("Collection", style="cyan")
        table.add_column("Number", justify="right")
        table.add_column("Score", justify="right", style="green")
        table.add_column("Text")
        for n in response.narrations:
            table.add_row(n.collection_slug, n.hadith_number, f"{n.final_score:.3f}", n.text[:120])
        console.print(table)

    if response.authors:
        table = Table(title="Authors")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Died (AH)", justify="right")
        table.add_column("Books", justify="right")
        for a in response.authors:
            table.add_row(a.author_id, a.name_arabic, a.death_date_hijri or "", str(a.books_count))
        console.print(table)

    if response.debug_stats is not None:
        console.print_json(response.debug_stats.model_dump_json())


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    from maktaba.config import get_settings

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("\n[green]Starting Maktaba API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "maktaba.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def init(
    catalog: Path | None = typer.Option(
        None, "--catalog", "-c", help="JSON file of authors and books to load"
    ),
) -> None:
    """Create the book metadata database."""
    asyncio.run(_init_async(catalog))


async def _init_async(catalog: Path | None = None) -> None:
    """Async initialization."""
    from maktaba.adapters import SQLiteRepository
    from maktaba.config import MaktabaError, get_settings

    settings = get_settings()
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)

    repo = SQLiteRepository(settings.db_path)
    try:
        await repo.initialize()
        if catalog is not None:
            authors, books = await repo.import_catalog(catalog)
            console.print(f"[dim]Loaded {authors} authors and {books} books from {catalog}[/dim]")
        count = await repo.get_book_count()
    except MaktabaError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await repo.close()

    console.print("\n[green]Initialization complete![/green]")
    console.print(f"[dim]Database: {settings.db_path} ({count} books)[/dim]")


@app.command()
def version() -> None:
    """Show version information."""
    from maktaba import __version__

    console.print(f"Maktaba v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
