from contextlib import contextmanager
from typing import Annotated, Iterator, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .config import StoreSettings
from .errors import ProjectSearchError
from .logging_setup import configure_logging
from .search import SearchHit
from .services import Services, build_services
from .storage import Project

app = Typer(help="Store project postings and search them by keyword or meaning.")
console = Console()

_settings_overrides: dict[str, Optional[str]] = {"backend": None, "db_path": None}


@app.callback()
def main(
    backend: Annotated[
        Optional[str],
        Option("--backend", help="Storage backend: duckdb, memory or local."),
    ] = None,
    db_path: Annotated[
        Optional[str],
        Option("--db-path", help="DuckDB file (or JSON file for the local backend)."),
    ] = None,
    log_level: Annotated[
        Optional[str],
        Option("--log-level", help="Log level for diagnostic output."),
    ] = None,
) -> None:
    _settings_overrides["backend"] = backend
    _settings_overrides["db_path"] = db_path
    configure_logging(log_level)


@contextmanager
def open_services() -> Iterator[Services]:
    """Build services for one command and turn store errors into a clean exit."""
    try:
        services = build_services(
            StoreSettings.from_env(
                backend=_settings_overrides["backend"],
                db_path=_settings_overrides["db_path"],
            )
        )
    except ValueError as exc:
        console.print(
            Panel(str(exc), title="Configuration error", title_align="left", border_style="bold red")
        )
        raise Exit(code=1)

    try:
        yield services
    except ProjectSearchError as exc:
        console.print(
            Panel(
                str(exc),
                title=f"Error ({exc.code})",
                title_align="left",
                border_style="bold red",
            )
        )
        raise Exit(code=1)
    finally:
        services.close()


def _print_project(project: Project, *, title: str = "Project") -> None:
    tags = ", ".join(sorted(project.tags)) or "-"
    content = (
        f"[bold]#{project.id} {project.title}[/]\n"
        f"Budget: {project.budget:,.2f}\n"
        f"Owner: {project.owner_id}\n"
        f"Tags: {tags}\n"
        f"Embedding: {'yes' if project.has_embedding else 'no (keyword-only)'}\n\n"
        f"{project.description}"
    )
    console.print(Panel(content, title=title, title_align="left", border_style="bold green"))


def _print_hits(hits: list[SearchHit], *, title: str) -> None:
    table = Table(title=title, title_justify="left")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Budget", justify="right")
    table.add_column("Tags")
    table.add_column("Score", justify="right")
    for hit in hits:
        project = hit.project
        table.add_row(
            str(project.id),
            project.title,
            f"{project.budget:,.2f}",
            ", ".join(sorted(project.tags)),
            f"{hit.score:.4f}" if hit.score is not None else "-",
        )
    console.print(table)


@app.command()
def add(
    title: Annotated[str, Option("--title", help="Project title.")],
    budget: Annotated[float, Option("--budget", help="Project budget (>= 0).")],
    owner: Annotated[int, Option("--owner", help="Owner user id.")],
    description: Annotated[str, Option("--description", "-d", help="Project description.")] = "",
    tag: Annotated[Optional[list[str]], Option("--tag", "-t", help="Tag (repeatable).")] = None,
) -> None:
    """Create a project."""
    with open_services() as services:
        project = services.store.create_project(title, budget, description, tag or [], owner)
        _print_project(project, title="Created")


@app.command()
def edit(
    project_id: Annotated[int, Argument(help="Project id.")],
    editor: Annotated[Optional[int], Option("--editor", help="Editing user id.")] = None,
    title: Annotated[Optional[str], Option("--title")] = None,
    budget: Annotated[Optional[float], Option("--budget")] = None,
    description: Annotated[Optional[str], Option("--description", "-d")] = None,
    tag: Annotated[
        Optional[list[str]],
        Option("--tag", "-t", help="Replacement tag set (repeatable)."),
    ] = None,
) -> None:
    """Edit a project. Fields not given keep their stored value."""
    with open_services() as services:
        current = services.store.get_project_by_id(project_id)
        project = services.store.edit_project(
            project_id,
            title if title is not None else current.title,
            budget if budget is not None else current.budget,
            description if description is not None else current.description,
            tag if tag is not None else current.tags,
            editor,
        )
        _print_project(project, title="Updated")


@app.command()
def delete(project_id: Annotated[int, Argument(help="Project id.")]) -> None:
    """Delete a project with its tags and embedding."""
    with open_services() as services:
        services.store.delete_project(project_id)
        console.print(f"[bold]Deleted project {project_id}[/]")


@app.command()
def show(project_id: Annotated[int, Argument(help="Project id.")]) -> None:
    """Show one project."""
    with open_services() as services:
        _print_project(services.store.get_project_by_id(project_id))


@app.command()
def tag(
    project_id: Annotated[int, Argument(help="Project id.")],
    tags: Annotated[list[str], Argument(help="Tags to add.")],
) -> None:
    """Add tags to a project."""
    with open_services() as services:
        _print_project(services.store.add_tags(project_id, tags), title="Tagged")


@app.command()
def untag(
    project_id: Annotated[int, Argument(help="Project id.")],
    tags: Annotated[list[str], Argument(help="Tags to remove.")],
) -> None:
    """Remove tags from a project."""
    with open_services() as services:
        _print_project(services.store.remove_tags(project_id, tags), title="Untagged")


@app.command()
def search(
    query: Annotated[str, Argument(help="Free-text query.")],
    keyword: Annotated[bool, Option("--keyword", help="Substring match only.")] = False,
    limit: Annotated[Optional[int], Option("--limit", "-n")] = None,
    timeout: Annotated[
        Optional[float], Option("--timeout", help="Seconds to wait for the query embedding.")
    ] = None,
) -> None:
    """Search projects by meaning, falling back to keyword matching."""
    with open_services() as services:
        if keyword:
            projects = services.search.search_keyword(query)
            if limit is not None:
                projects = projects[:limit]
            _print_hits([SearchHit(project=p) for p in projects], title="Keyword matches")
            return
        result = services.search.search_semantic(query, timeout=timeout, limit=limit)
        title = "Semantic matches"
        if result.matched_by == "keyword":
            title = "Keyword matches (semantic search unavailable)"
        _print_hits(list(result.hits), title=title)


@app.command()
def mine(owner: Annotated[int, Argument(help="Owner user id.")]) -> None:
    """List the projects owned by a user."""
    with open_services() as services:
        projects = services.store.list_projects_for_owner(owner)
        _print_hits([SearchHit(project=p) for p in projects], title=f"Projects of {owner}")


@app.command()
def backfill() -> None:
    """Embed projects that were stored without an embedding."""
    with open_services() as services:
        written = services.store.backfill_embeddings()
        console.print(f"[bold]Embedded {written} project(s)[/]")


@app.command()
def serve(
    host: Annotated[str, Option("--host")] = "127.0.0.1",
    port: Annotated[int, Option("--port")] = 8000,
) -> None:
    """Run the HTTP API on the selected backend."""
    from . import server

    with open_services() as services:
        server.set_services(services)
        try:
            server.run_server(host=host, port=port)
        finally:
            server.set_services(None)
