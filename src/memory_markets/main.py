import logging
from typing import Annotated, NoReturn

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .config import resolve_db_path, resolve_summary_index_path
from .embeddings import EmbeddingProvider
from .search import MarketplaceSearch, SearchResult
from .storage import DuckDBListingStore, PackageListing

logger = logging.getLogger(__name__)

app = Typer(help="Search and list knowledge packages on the marketplace.")
console = Console()

DbPathOption = Annotated[
    str | None,
    Option("--db-path", help="Listing database path (default: ~/.memory_markets/registry.duckdb)."),
]
IndexPathOption = Annotated[
    str | None,
    Option("--index-path", help="Summary index path (default: ~/.memory_markets/summary-index.json)."),
]


def build_embedding_provider() -> EmbeddingProvider | None:
    """Return an embedding provider, or None when no API key is configured."""
    try:
        return EmbeddingProvider()
    except ValueError:
        return None


def _open_engine(
    db_path: str | None,
    index_path: str | None,
    *,
    with_embeddings: bool = True,
) -> tuple[DuckDBListingStore, MarketplaceSearch]:
    store = DuckDBListingStore(resolve_db_path(db_path))
    engine = MarketplaceSearch(
        store,
        embedding_provider=build_embedding_provider() if with_embeddings else None,
        index_path=resolve_summary_index_path(index_path),
    )
    return store, engine


def _fail(message: str) -> NoReturn:
    console.print(f"[bold red]{message}[/]")
    raise Exit(code=1)


def _results_table(query: str, results: list[SearchResult]) -> Table:
    table = Table(title=f"Results for '{query}'", title_justify="left")
    table.add_column("#", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Price", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Match", style="magenta")
    for rank, result in enumerate(results, start=1):
        table.add_row(
            str(rank),
            result.listing.id,
            result.listing.name,
            f"{result.listing.price:g}",
            f"{result.score:.3f}",
            result.match_type,
        )
    return table


@app.command("list")
def list_package(
    package_id: Annotated[str, Option("--id", help="Unique package id.")],
    name: Annotated[str, Option("--name", "-n", help="Package name.")],
    description: Annotated[str, Option("--description", "-d", help="What the package covers.")] = "",
    tags: Annotated[str, Option("--tags", help="Comma-separated tags.")] = "",
    price: Annotated[float, Option("--price", help="Listing price.")] = 0.0,
    package_path: Annotated[str, Option("--path", help="Path of the exported package.")] = "",
    creator: Annotated[str | None, Option("--creator", help="Creator wallet address.")] = None,
    db_path: DbPathOption = None,
    index_path: IndexPathOption = None,
) -> None:
    """List a knowledge package and index its summary for semantic search."""
    store = DuckDBListingStore(resolve_db_path(db_path))
    try:
        listing = PackageListing(
            id=package_id,
            name=name,
            description=description,
            tags=tags,
            price=price,
            package_path=package_path,
            creator_address=creator,
        )
        store.list_package(listing)
        console.print(f"[bold green]Listed[/] {listing.id} ({listing.name})")

        try:
            engine = MarketplaceSearch(
                store,
                embedding_provider=build_embedding_provider(),
                index_path=resolve_summary_index_path(index_path),
            )
            engine.index_package_summary(listing.id, listing.summary_text())
            console.print("[dim]Summary indexed for semantic search.[/]")
        except Exception as exc:
            logger.warning("Summary indexing failed for %s: %s", listing.id, exc)
            console.print(
                f"[yellow]Semantic indexing skipped:[/] {exc}\n"
                "[dim]The package remains discoverable by keyword.[/]"
            )
    finally:
        store.close()


@app.command()
def search(
    query: Annotated[str, Argument(help="Free-text search query.")],
    limit: Annotated[int, Option("--limit", "-l", help="Maximum results.")] = 10,
    keyword_only: Annotated[bool, Option("--keyword-only", help="Skip semantic search.")] = False,
    db_path: DbPathOption = None,
    index_path: IndexPathOption = None,
) -> None:
    """Search listed packages by keyword and meaning."""
    if not query.strip():
        _fail("Query must not be empty.")

    store, engine = _open_engine(db_path, index_path, with_embeddings=not keyword_only)
    try:
        if not engine.index_matches_provider:
            console.print("[yellow]Run reindex: summary index dimensions differ.[/]")
        try:
            results = engine.search(query, limit=limit)
        except Exception as exc:
            logger.warning("Semantic search failed, using keyword results: %s", exc)
            console.print(f"[yellow]Semantic search unavailable:[/] {exc}")
            results = engine.keyword_search(query)[:limit]

        if not results:
            console.print(f"No packages match '{query}'.")
            return
        console.print(_results_table(query, results))
    finally:
        store.close()


@app.command()
def show(
    package_id: Annotated[str, Argument(help="Package id.")],
    db_path: DbPathOption = None,
) -> None:
    """Show one listing with its sales and rating."""
    store = DuckDBListingStore(resolve_db_path(db_path))
    try:
        listing = store.get_package(package_id)
        if listing is None:
            _fail(f"Package not found: {package_id}")
        rating = store.get_package_rating(package_id)
        rating_text = (
            f"{rating.average:.1f}/5 ({rating.count} ratings)" if rating else "not rated"
        )
        content = (
            f"**{listing.name}**\n\n{listing.description or '_No description._'}\n\n"
            f"- Tags: {', '.join(listing.tag_list) or '-'}\n"
            f"- Price: {listing.price:g}\n"
            f"- Sold: {listing.times_sold}\n"
            f"- Rating: {rating_text}\n"
            f"- Path: `{listing.package_path or '-'}`"
        )
        console.print(
            Panel(
                Markdown(content),
                title_align="left",
                title=listing.id,
                border_style="bold cyan",
            )
        )
    finally:
        store.close()


@app.command()
def sell(
    package_id: Annotated[str, Argument(help="Package id.")],
    buyer: Annotated[str, Option("--buyer", help="Buyer wallet address.")],
    amount: Annotated[float, Option("--amount", help="Amount paid.")],
    tx_hash: Annotated[str, Option("--tx-hash", help="Settlement transaction hash.")],
    db_path: DbPathOption = None,
) -> None:
    """Record a completed sale of a package."""
    store = DuckDBListingStore(resolve_db_path(db_path))
    try:
        try:
            sale_id = store.record_sale(package_id, buyer, amount, tx_hash)
        except KeyError:
            _fail(f"Package not found: {package_id}")
        console.print(f"[bold green]Recorded sale #{sale_id}[/] of {package_id}")
    finally:
        store.close()


@app.command()
def rate(
    package_id: Annotated[str, Argument(help="Package id.")],
    rater: Annotated[str, Option("--rater", help="Rater wallet address.")],
    stars: Annotated[int, Option("--stars", help="Rating from 1 to 5.")],
    comment: Annotated[str, Option("--comment", help="Optional comment.")] = "",
    db_path: DbPathOption = None,
) -> None:
    """Rate a package."""
    store = DuckDBListingStore(resolve_db_path(db_path))
    try:
        try:
            store.rate_package(package_id, rater, stars, comment)
        except KeyError:
            _fail(f"Package not found: {package_id}")
        except ValueError as exc:
            _fail(str(exc))
        console.print(f"[bold green]Rated[/] {package_id} {stars}/5")
    finally:
        store.close()


@app.command()
def reindex(
    db_path: DbPathOption = None,
    index_path: IndexPathOption = None,
) -> None:
    """Rebuild the summary index from every listed package."""
    store, engine = _open_engine(db_path, index_path)
    try:
        if engine.embedding_provider is None:
            _fail("GOOGLE_API_KEY not found; cannot embed package summaries.")
        with console.status("Embedding package summaries..."):
            count = engine.rebuild_summary_index(store.get_all_packages())
        console.print(f"[bold green]Indexed {count} package summaries.[/]")
    finally:
        store.close()
