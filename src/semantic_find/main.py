import asyncio
from pathlib import Path
from typing import Annotated, Any

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .backend import run_server
from .config import SearchSettings, resolve_cache_path
from .content import PageDocument, Segmenter
from .logging_utils import setup_logging
from .session import OutcomeKind, SearchSessionController, SessionState
from .storage import DuckDBPageStore

app = Typer(help="Semantic search over the visible text of a web page.")


def _load_document(page: Path) -> PageDocument:
    html = page.read_text(encoding="utf-8", errors="replace")
    return PageDocument.from_html(html, url=page.resolve().as_uri())


async def run_search(
    page: Path,
    query: str,
    *,
    output: Path | None = None,
    backend_url: str | None = None,
    encoder: str | None = None,
    cache_db: str | None = None,
    top_k: int | None = None,
    threshold: float | None = None,
) -> OutcomeKind:
    console = Console()
    overrides: dict[str, Any] = {}
    if backend_url:
        overrides["backend_url"] = backend_url
    if encoder:
        overrides["local_encoder"] = encoder
    if top_k is not None:
        overrides["top_k"] = top_k
    if threshold is not None:
        overrides["similarity_threshold"] = threshold
    settings = SearchSettings.from_env(**overrides)

    cache_path = cache_db or settings.cache_db_path
    store = DuckDBPageStore(resolve_cache_path(cache_path)) if cache_path else None
    document = _load_document(page)

    with console.status(status="Extracting page content...") as status:

        def on_status(state: SessionState) -> None:
            if state.status_text:
                status.update(state.status_text)

        controller = SearchSessionController(
            document, settings, store=store, on_status=on_status
        )
        try:
            await controller.activate()
            outcome = await controller.submit_query(query)
        finally:
            if store is not None:
                store.close()
        status.stop()

    for warning in outcome.warnings:
        console.print(f"[bold yellow]Warning:[/] {warning}")

    if outcome.kind == OutcomeKind.RESULTS:
        for index, result in enumerate(outcome.results, start=1):
            panel = Panel(
                Markdown(result.chunk.text),
                title_align="left",
                title=f"Result {index} (score {result.score:.3f})",
                subtitle=result.chunk.dom_path,
                subtitle_align="left",
                border_style="bold green" if index == 1 else "bold cyan",
            )
            console.print(panel)
    border = "bold green" if outcome.ok else "bold red"
    console.print(Panel(outcome.status, title="Status", title_align="left", border_style=border))

    if output is not None:
        output.write_text(document.to_html(), encoding="utf-8")
        console.print(f"Highlighted page written to [bold]{output}[/]")
    return outcome.kind


@app.command()
def search(
    page: Annotated[Path, Argument(help="HTML file to search.", exists=True, dir_okay=False)],
    query: Annotated[str, Option("--query", "-q", help="What to look for, in plain words.")],
    output: Annotated[
        Path | None,
        Option("--output", "-o", help="Write the page with highlighted matches here."),
    ] = None,
    backend_url: Annotated[
        str | None,
        Option("--backend-url", help="Model host service to embed with before falling back."),
    ] = None,
    encoder: Annotated[
        str | None,
        Option("--encoder", help="Local encoder: minilm, genai or hash."),
    ] = None,
    cache_db: Annotated[
        str | None,
        Option("--cache-db", help="DuckDB file used to reuse page embeddings."),
    ] = None,
    top_k: Annotated[int | None, Option("--top-k", help="Maximum results.")] = None,
    threshold: Annotated[
        float | None, Option("--threshold", help="Minimum similarity score.")
    ] = None,
) -> None:
    """Rank the page's passages against a query and highlight the matches."""
    setup_logging()
    kind = asyncio.run(
        run_search(
            page,
            query,
            output=output,
            backend_url=backend_url,
            encoder=encoder,
            cache_db=cache_db,
            top_k=top_k,
            threshold=threshold,
        )
    )
    if kind in (OutcomeKind.ERROR, OutcomeKind.REJECTED):
        raise Exit(code=1)


@app.command()
def chunks(
    page: Annotated[Path, Argument(help="HTML file to segment.", exists=True, dir_okay=False)],
) -> None:
    """Show the chunks a page would be split into."""
    setup_logging()
    console = Console()
    settings = SearchSettings.from_env()
    segments = Segmenter(settings.segmenter).segment_document(_load_document(page))
    if not segments:
        console.print("[bold red]No content found to search[/]")
        return

    table = Table(title=f"{len(segments)} chunks")
    table.add_column("#", justify="right")
    table.add_column("Path", style="cyan")
    table.add_column("Text")
    for index, chunk in enumerate(segments, start=1):
        table.add_row(str(index), chunk.dom_path, chunk.text)
    console.print(table)


@app.command()
def serve(
    host: Annotated[str, Option("--host", help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, Option("--port", help="Port to listen on.")] = 8000,
    encoder: Annotated[
        str, Option("--encoder", help="Encoder hosted by the service.")
    ] = "minilm",
) -> None:
    """Run the model host service that sessions can embed through."""
    setup_logging("INFO")
    run_server(host=host, port=port, encoder=encoder)
