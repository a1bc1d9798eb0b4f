"""
Command-line interface for newsrag.

Commands:
    serve       - Start the FastAPI server
    add-article - Store an article from a text file (and chunk it)
    chunk       - Create chunks for one article or all of them
    ask         - Show the chunks most relevant to a question
    version     - Show version information
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from newsrag.exceptions import NewsRagError

app = typer.Typer(
    name="newsrag",
    help="Chunking, embedding and retrieval for the news chat assistant",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL"),
) -> None:
    """Configure logging before any command runs."""
    from newsrag.logging_setup import configure_logging

    configure_logging(log_level)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind (default from settings)"),
    port: Optional[int] = typer.Option(None, help="Port to bind (default from settings)"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Start the FastAPI server."""
    import uvicorn

    from newsrag.config import settings

    host = host or settings.api_host
    port = port or settings.api_port
    console.print(f"[green]Starting newsrag server on {host}:{port}[/green]")

    uvicorn.run(
        "newsrag.api.main:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command("add-article")
def add_article(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Text file with the article body"),
    article_id: Optional[str] = typer.Option(None, "--id", help="Article id (generated if omitted)"),
    title: str = typer.Option("", help="Headline"),
    link: Optional[str] = typer.Option(None, help="Source URL"),
    chunk: bool = typer.Option(True, "--chunk/--no-chunk", help="Chunk and embed right away"),
) -> None:
    """Store an article from a text file."""
    from newsrag.resources import get_store, get_synchronizer

    content = path.read_text(encoding="utf-8")

    try:
        article = get_store().add_article(content, article_id=article_id, title=title, link=link)
    except NewsRagError as e:
        console.print(f"[red]Could not save article: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Saved article {article.id} ({len(content):,} chars)[/green]")

    if not chunk:
        return

    try:
        result = get_synchronizer().ensure_chunks(article)
    except NewsRagError as e:
        console.print(f"[red]Chunking failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]  ✓ {result.created} chunks created[/green]")


@app.command()
def chunk(
    article_id: Optional[str] = typer.Argument(None, help="Article to chunk"),
    all_articles: bool = typer.Option(False, "--all", help="Chunk every article"),
    only_unchunked: bool = typer.Option(False, "--only-unchunked", help="With --all, skip chunked articles"),
    force: bool = typer.Option(False, "--force", "-f", help="Replace existing chunks"),
    chunk_size: Optional[int] = typer.Option(None, help="Chunk size in characters"),
    overlap: Optional[int] = typer.Option(None, help="Overlap in characters"),
) -> None:
    """Create chunks for one article, or for all articles with --all."""
    from newsrag.resources import get_store, get_synchronizer

    if bool(article_id) == all_articles:
        console.print("[red]Pass either an ARTICLE_ID or --all[/red]")
        raise typer.Exit(2)

    synchronizer = get_synchronizer()

    if article_id:
        try:
            result = synchronizer.ensure_chunks(
                article_id, force=force, chunk_size=chunk_size, overlap=overlap
            )
        except NewsRagError as e:
            console.print(f"[red]Chunking failed: {e}[/red]")
            raise typer.Exit(1)

        if result.skipped_existing:
            console.print(f"[yellow]Article {article_id} already has chunks. Use --force to rebuild.[/yellow]")
        else:
            console.print(f"[green]Created {result.created} chunks for {article_id}[/green]")
        for error in result.errors:
            console.print(f"[red]  ✗ {error}[/red]")
        return

    article_ids = get_store().list_article_ids(only_unchunked=only_unchunked)
    if not article_ids:
        console.print("[yellow]No articles to chunk.[/yellow]")
        return

    with console.status(f"[bold green]Chunking {len(article_ids)} articles..."):
        report = synchronizer.ensure_chunks_bulk(
            article_ids, force=force, chunk_size=chunk_size, overlap=overlap
        )

    table = Table(title="Chunking results")
    table.add_column("Article", style="cyan")
    table.add_column("Status")
    table.add_column("Chunks", justify="right")
    table.add_column("Error", style="red")

    for outcome in report.outcomes:
        if not outcome.ok:
            state = "[red]failed[/red]"
        elif outcome.skipped_existing:
            state = "[yellow]skipped[/yellow]"
        else:
            state = "[green]chunked[/green]"
        table.add_row(outcome.article_id, state, str(outcome.created), outcome.error or "")

    console.print(table)
    console.print(
        f"  Chunked: {report.succeeded}  Skipped: {report.skipped}  "
        f"Failed: {report.failed}  Chunks created: {report.chunks_created}"
    )

    if report.failed:
        raise typer.Exit(1)


@app.command()
def ask(
    article_id: str = typer.Argument(..., help="Article to search"),
    question: str = typer.Argument(..., help="Question about the article"),
    limit: Optional[int] = typer.Option(None, help="Number of chunks to show"),
) -> None:
    """Show the chunks of an article most relevant to a question."""
    from newsrag.resources import get_retriever

    console.print(f"[blue]Question:[/blue] {question}\n")

    try:
        results = get_retriever().search(article_id, question, limit)
    except NewsRagError as e:
        console.print(f"[red]Retrieval failed: {e}[/red]")
        raise typer.Exit(1)

    if not results:
        console.print("[yellow]No extra context available for this article.[/yellow]")
        return

    for rank_position, scored in enumerate(results, 1):
        console.print(
            f"[cyan]{rank_position}. chunk {scored.chunk.chunk_index}[/cyan] "
            f"[dim](similarity {scored.score:.3f})[/dim]"
        )
        console.print(scored.chunk.chunk_text)
        console.print()


@app.command()
def version() -> None:
    """Show version information."""
    from newsrag import __version__

    console.print(f"newsrag v{__version__}")


if __name__ == "__main__":
    app()
