"""
Command Line Interface for the illustration version graph.
"""

import asyncio
from typing import List, NoReturn, Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..config import get_settings
from ..db.base import get_session_local, init_database
from ..logging_config import configure_logging
from ..versioning.enrichment import enrich
from ..versioning.enums import LineageFilter, SortKey, StatusFilter, VersionStatus
from ..versioning.errors import VersionGraphError
from ..versioning.lineage import VersionTreeNode
from ..versioning.query import ALL_PROVIDERS, GalleryQuery, apply_query
from ..versioning.services import GenerationRecordService, VersionGraphService
from ..versioning.statistics import compute_statistics

app = typer.Typer(help="Illustration Version Graph - lineages of generated illustrations")
console = Console()

STATUS_EMOJI = {
    VersionStatus.ACTIVE: "🟢",
    VersionStatus.ARCHIVED: "📦",
    VersionStatus.SUPERSEDED: "⏹️",
}


def _fail(exc: VersionGraphError) -> NoReturn:
    console.print(f"❌ {exc.message}")
    raise typer.Exit(code=1)


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the HTTP API."""
    settings = get_settings()
    rprint(Panel.fit(f"🖼️ Starting {settings.app_name}", style="bold blue"))
    uvicorn.run(
        "illustration_versions.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
    )


@app.command("init-db")
def init_db():
    """Create the database tables."""
    configure_logging()
    asyncio.run(init_database())
    console.print("✅ Database initialized")


def _add_branch(parent: Tree, node: VersionTreeNode) -> None:
    version = node.version
    label = f"{STATUS_EMOJI.get(version.status, '❓')} {version.label} [{version.type.value}]"
    if version.branch_name:
        label += f" ({version.branch_name})"
    label += f" [dim]{version.id}[/dim]"
    child = parent.add(label)
    for sub in node.children:
        _add_branch(child, sub)


@app.command()
def tree(root_version_id: str = typer.Argument(..., help="Root version of the lineage")):
    """Render a lineage as a tree."""
    with get_session_local()() as db:
        try:
            lineage = VersionGraphService(db).index_for_root(root_version_id).build_tree(
                root_version_id
            )
        except VersionGraphError as exc:
            _fail(exc)

    rendered = Tree(
        f"Lineage {root_version_id} · {lineage.total_versions} versions · depth {lineage.max_depth}"
    )
    _add_branch(rendered, lineage.tree)
    console.print(rendered)

    table = Table(title="Branches", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="yellow")
    table.add_column("Head", style="green")
    table.add_column("Versions", style="blue")
    table.add_column("Active")
    for branch in lineage.branches:
        table.add_row(
            branch.name,
            branch.head_version_id,
            str(len(branch.version_ids)),
            "🟢" if branch.is_active else "🔴",
        )
    console.print(table)


@app.command()
def stats(
    project_id: str = typer.Argument(..., help="Project to summarise"),
    root_version_id: Optional[str] = typer.Option(None, help="Restrict to one lineage"),
):
    """Show version statistics of a project or lineage."""
    with get_session_local()() as db:
        service = VersionGraphService(db)
        try:
            nodes = (
                service.list_by_root(root_version_id)
                if root_version_id
                else service.load_version_graph(project_id)
            )
        except VersionGraphError as exc:
            _fail(exc)

    statistics = compute_statistics(nodes)
    table = Table(title=f"Statistics: {project_id}", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for name, value in statistics.model_dump().items():
        if isinstance(value, dict):
            value = ", ".join(f"{k}={v}" for k, v in value.items())
        elif isinstance(value, list):
            value = ", ".join(value)
        table.add_row(name.replace("_", " "), str(value) or "-")
    console.print(table)


@app.command()
def gallery(
    project_id: str = typer.Argument(..., help="Project to list"),
    provider: str = typer.Option(ALL_PROVIDERS, help="Provider name or 'all'"),
    status: StatusFilter = typer.Option(StatusFilter.ALL, help="Generation status"),
    lineage: LineageFilter = typer.Option(LineageFilter.ALL, help="Lineage filter"),
    search: str = typer.Option("", help="Free-text search"),
    sort_by: SortKey = typer.Option(SortKey.DATE, help="Sort key"),
    order: Optional[List[str]] = typer.Option(None, help="Ids in display order (custom sort)"),
    limit: Optional[int] = typer.Option(None, help="Maximum records to fetch"),
):
    """List a project's enriched generation records."""
    with get_session_local()() as db:
        generations = GenerationRecordService(db).fetch_generation_history(project_id, limit=limit)
        records = enrich(generations, VersionGraphService(db).load_version_graph(project_id))

    view = apply_query(
        records,
        GalleryQuery(
            project_id=project_id,
            provider=provider,
            status=status,
            lineage=lineage,
            search=search,
            sort_by=sort_by,
            custom_order=order or [],
        ),
    )

    table = Table(
        title=f"Gallery: {project_id} ({len(view)}/{len(records)})",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Id", style="dim")
    table.add_column("Prompt")
    table.add_column("Provider", style="yellow")
    table.add_column("Model", style="blue")
    table.add_column("Status", style="green")
    table.add_column("Version", style="magenta")
    table.add_column("Lineage")
    for record in view:
        prompt = record.original_prompt
        version = ""
        lineage_info = ""
        if record.has_version_data:
            version = f"v{record.version_number}"
            if record.is_latest_version:
                version += " ★"
            lineage_info = f"{record.total_versions} versions"
        table.add_row(
            record.id,
            prompt[:50] + "..." if len(prompt) > 50 else prompt,
            record.provider,
            record.model,
            record.status.value,
            version,
            lineage_info,
        )
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"Illustration Version Graph v{__version__}", style="bold green"))


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
