"""CLI interface for vault-search."""

import json
import logging
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from vaultsearch import __version__
from vaultsearch.config import settings
from vaultsearch.retrieval.errors import RetrievalError
from vaultsearch.retrieval.hybrid import HybridRetriever, build_retriever
from vaultsearch.retrieval.models import RetrievalOptions, RetrievedPassage
from vaultsearch.retrieval.titles import extract_note_titles
from vaultsearch.vault.catalog import VaultCatalog

# Configure logging with Rich
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(message)s",
    handlers=[RichHandler(rich_tracebacks=True)],
)

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="vault-search",
    help="Retrieve grounding passages from a personal note vault",
)

console = Console()

SNIPPET_LENGTH = 160


def _set_verbose_logging(verbose: bool) -> Optional[int]:
    if not verbose:
        return None
    root_logger = logging.getLogger()
    previous_level = root_logger.level
    root_logger.setLevel(logging.DEBUG)
    return previous_level


def _snippet(text: str, max_length: int = SNIPPET_LENGTH) -> str:
    collapsed = " ".join(text.split())
    if len(collapsed) <= max_length:
        return collapsed
    return collapsed[: max_length - 3].rstrip() + "..."


def _make_retriever(max_k: Optional[int], min_score: Optional[float], debug: bool) -> HybridRetriever:
    options = RetrievalOptions(
        min_similarity_score=settings.min_similarity_score if min_score is None else min_score,
        max_k=settings.max_k if max_k is None else max_k,
    )
    return build_retriever(settings, debug=debug or settings.retrieval_debug, options=options)


def _print_results(results: List[RetrievedPassage]) -> None:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", width=3)
    table.add_column("Source", width=8)
    table.add_column("Score", justify="right", width=7)
    table.add_column("Note", overflow="fold")
    table.add_column("Snippet", overflow="fold")

    for rank, item in enumerate(results, start=1):
        source_style = "green" if item.source == "explicit" else "cyan"
        table.add_row(
            str(rank),
            f"[{source_style}]{item.source}[/{source_style}]",
            f"{item.score:.3f}" if item.score is not None else "-",
            escape(item.path),
            escape(_snippet(item.content)) or "-",
        )

    console.print(table)


@app.command()
def search(
    query: str = typer.Argument(
        ...,
        help="Question to retrieve passages for; name notes as double-bracket links",
    ),
    max_k: Optional[int] = typer.Option(
        None,
        "--max-k",
        "-k",
        min=1,
        help="Maximum number of passages to return",
    ),
    min_score: Optional[float] = typer.Option(
        None,
        "--min-score",
        "-m",
        help="Minimum similarity score for vector hits",
    ),
    no_hyde: bool = typer.Option(
        False,
        "--no-hyde",
        help="Embed the query as written instead of a hypothetical answer",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Log a trace of every retrieval stage",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print one JSON object per passage",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
):
    """Retrieve the passages that would ground an answer to QUERY."""

    previous_level = _set_verbose_logging(verbose)
    logging.getLogger("sentence_transformers").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        retriever = _make_retriever(max_k, min_score, debug)
        results = retriever.retrieve_sync(query, bypass_rewrite=no_hyde)
    except (RetrievalError, ValueError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc
    finally:
        if previous_level is not None:
            logging.getLogger().setLevel(previous_level)

    if as_json:
        for item in results:
            typer.echo(json.dumps(item.to_dict(), default=str))
        return

    if not results:
        console.print("[yellow]No matching passages found[/yellow]")
        return

    console.print("\n[bold blue]Retrieved Passages[/bold blue]\n")
    _print_results(results)


@app.command()
def titles(
    query: str = typer.Argument(
        ...,
        help="Query containing double-bracket note links",
    ),
):
    """Show the note titles a query names and the files they resolve to."""

    note_titles = extract_note_titles(query)
    if not note_titles:
        console.print("[yellow]No note references found[/yellow]")
        return

    catalog = VaultCatalog(settings.vault_path)
    for title in note_titles:
        path = catalog.resolve_title(title)
        if path:
            console.print(f"  [cyan]{escape(title)}[/cyan] → [green]{escape(path)}[/green]")
        else:
            console.print(f"  [cyan]{escape(title)}[/cyan] → [yellow]not found[/yellow]")


@app.command()
def version():
    """Show version information."""
    console.print(f"[cyan]vault-search[/cyan] v{__version__}")


def main():
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]Error: {e}[/red]")
        logger.exception("Unhandled exception")
        sys.exit(1)


if __name__ == "__main__":
    main()
