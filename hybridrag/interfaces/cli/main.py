"""
CLI Main - Typer-based command-line interface.

Usage:
    hybridrag init
    hybridrag add list "Quarterly Plan" --owner u1 --tenant acme
    hybridrag search "quarterly" --as u1
    hybridrag context "what is due this quarter?" --as u1 --budget 300
    hybridrag worker
    hybridrag backfill
    hybridrag serve
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from hybridrag.config import HybridRAGError, get_settings, setup_logging
from hybridrag.container import EngineContainer, build_container

app = typer.Typer(
    name="hybridrag",
    help="HybridRAG - Hybrid search and RAG context assembly",
    add_completion=False,
)
console = Console()

T = TypeVar("T")


def _run(action: Callable[[EngineContainer], Awaitable[T]], load_indexes: bool = True) -> T:
    """Build the engine, run one async action, close the engine."""
    settings = get_settings()
    setup_logging(settings.log_level)

    async def runner() -> T:
        container = await build_container(settings, load_indexes=load_indexes)
        try:
            return await action(container)
        finally:
            await container.close()

    try:
        return asyncio.run(runner())
    except HybridRAGError as e:
        console.print(f"[red]Error:[/red] [{e.code.value}] {e.message}")
        raise typer.Exit(1)


@app.command()
def init() -> None:
    """Create the database and verify the embedding configuration."""

    async def action(container: EngineContainer) -> int:
        return await container.load_indexes()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Initializing database and indexes...", total=None)
        vectors = _run(action, load_indexes=False)

    settings = get_settings()
    console.print("\n[green]Initialization complete![/green]")
    console.print(f"[dim]Database: {settings.db_path}[/dim]")
    console.print(f"[dim]Vectors loaded: {vectors} (D={settings.embedding_dimension})[/dim]")


@app.command()
def add(
    entity_type: str = typer.Argument(..., help="list, list_item, comment or tag"),
    title: str = typer.Argument(..., help="Title (comments: ignored)"),
    body: str = typer.Option("", "--body", "-b", help="Body / description / comment text"),
    owner: str = typer.Option(..., "--owner", "-o", help="Owning principal id"),
    tenant: str | None = typer.Option(None, "--tenant", "-t", help="Tenant id (lists and tags)"),
    public: bool = typer.Option(False, "--public", help="Publicly readable (lists and tags)"),
    parent: int | None = typer.Option(None, "--parent", "-p", help="Parent entity id"),
    parent_type: str = typer.Option("list", "--parent-type", help="Parent entity type"),
) -> None:
    """Create a searchable entity (queued for embedding)."""
    from hybridrag.domains.entities import EntityRef, EntityType, Visibility

    async def action(container: EngineContainer):
        return await container.entities.create(
            EntityType(entity_type),
            owner_id=owner,
            title=title,
            body=body,
            visibility=Visibility.PUBLIC_READ if public else Visibility.PRIVATE,
            tenant_id=tenant,
            parent=(
                EntityRef(entity_type=EntityType(parent_type), entity_id=parent)
                if parent is not None
                else None
            ),
        )

    entity = _run(action, load_indexes=False)
    console.print(f"[green]Created[/green] {entity.ref} [dim](queued for embedding)[/dim]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    principal_id: str | None = typer.Option(None, "--as", help="Principal id (default: anonymous)"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Number of results (default: configured)"),
    entity_types: list[str] | None = typer.Option(None, "--type", help="Restrict to entity type"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """Search everything the principal can see."""
    from hybridrag.domains.entities import EntityType
    from hybridrag.domains.search import SearchQuery

    async def action(container: EngineContainer):
        principal = await container.principals.load(principal_id)
        return await container.engine.execute(
            SearchQuery(
                query=query,
                limit=limit,
                entity_types=tuple(EntityType(t) for t in entity_types) if entity_types else None,
            ),
            principal,
        )

    outcome = _run(action)

    if as_json:
        console.print_json(json.dumps([r.to_dict() for r in outcome.results]))
        return

    if not outcome.results:
        console.print(f"[yellow]No results for:[/yellow] {query}")
        return

    table = Table(title=f"Results for '{query}'")
    table.add_column("#", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Match")
    table.add_column("Locator", style="dim")
    for rank, result in enumerate(outcome.results, 1):
        table.add_row(
            str(rank),
            result.entity_type.value,
            result.title,
            f"{result.combined_score:.4f}",
            result.source,
            result.locator,
        )
    console.print(table)

    if outcome.degraded:
        degraded = [t.value for t in [*outcome.timed_out, *outcome.lexical_only]]
        console.print(f"[yellow]Degraded:[/yellow] {', '.join(degraded)}")


@app.command()
def context(
    query: str = typer.Argument(..., help="User question"),
    principal_id: str | None = typer.Option(None, "--as", help="Principal id (default: anonymous)"),
    budget: int | None = typer.Option(None, "--budget", "-b", help="Context token budget"),
    sources: int | None = typer.Option(None, "--sources", "-s", help="Results to consider"),
) -> None:
    """Assemble a RAG context block for a question."""

    async def action(container: EngineContainer):
        principal = await container.principals.load(principal_id)
        return await container.context_builder.build_context(
            query, principal, token_budget=budget, max_sources=sources
        )

    rag_context = _run(action)

    console.print(Panel(rag_context.prompt_text, title="Prompt"))
    table = Table(title=f"Sources ({rag_context.tokens_used}/{rag_context.token_budget} tokens)")
    table.add_column("N", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Locator", style="dim")
    for source in rag_context.sources:
        table.add_row(str(source.source_number), source.label, source.title, source.locator)
    console.print(table)


@app.command()
def worker(
    once: bool = typer.Option(False, "--once", help="Process one batch and exit"),
) -> None:
    """Run the embedding worker."""

    async def action(container: EngineContainer):
        if once:
            return await container.worker.run_once()
        console.print("[green]Embedding worker running[/green] [dim](Ctrl+C to stop)[/dim]")
        return await container.worker.run_forever()

    try:
        report = _run(action, load_indexes=False)
    except KeyboardInterrupt:
        console.print("\n[yellow]Worker stopped[/yellow]")
        return

    console.print(
        f"claimed={report.claimed} generated={report.generated} skipped={report.skipped} "
        f"superseded={report.superseded} retried={report.retried} failed={report.failed}"
    )


@app.command()
def backfill(
    aged: bool = typer.Option(True, "--aged/--no-aged", help="Also refresh vectors past the staleness age"),
) -> None:
    """Enqueue embedding jobs for stale, missing and aged vectors."""

    async def action(container: EngineContainer) -> int:
        return await container.worker.enqueue_backfill(include_aged=aged)

    count = _run(action, load_indexes=False)
    console.print(f"[green]Enqueued {count} embedding jobs[/green]")


@app.command()
def stats() -> None:
    """Show entity, staleness and job queue statistics."""

    async def action(container: EngineContainer):
        return await container.store.get_stats()

    data = _run(action, load_indexes=False)

    table = Table(title="Entities")
    table.add_column("Type", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Stale", justify="right", style="yellow")
    table.add_column("No vector", justify="right", style="red")
    for entity_type, counts in data["entities"].items():
        table.add_row(
            entity_type,
            str(counts["total"]),
            str(counts["stale"]),
            str(counts["without_vector"]),
        )
    console.print(table)
    jobs = ", ".join(f"{status}={count}" for status, count in sorted(data["jobs"].items()))
    console.print(f"[dim]Jobs: {jobs or 'none'}[/dim]")


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

    console.print("\n[green]Starting HybridRAG API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "hybridrag.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version() -> None:
    """Show version information."""
    from hybridrag import __version__

    console.print(f"HybridRAG v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
