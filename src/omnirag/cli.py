"""
Command-line interface for omnirag.

Commands:
    serve     - Start the FastAPI server
    index     - Index files or directories
    search    - Search indexed chunks
    ask       - Ask a question over indexed or attached files
    models    - List models for a provider
    project   - Manage the project library
    overview  - Summarize one document
    exam      - Generate a quiz from a project
    timeline  - Extract a timeline from a project
    version   - Show version information
"""

import asyncio
from pathlib import Path
from typing import Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from omnirag.errors import OmniError

app = typer.Typer(
    name="omnirag",
    help="Local document indexing, retrieval and LLM routing",
    add_completion=False,
)
project_app = typer.Typer(help="Manage the project library")
app.add_typer(project_app, name="project")
console = Console()


def _services():
    from omnirag.config import get_settings
    from omnirag.logging_setup import configure_logging
    from omnirag.services import build_services

    settings = get_settings()
    configure_logging(settings.log_level)
    return build_services(settings)


def _fail(error: OmniError) -> None:
    console.print(f"[red]{error.message}[/red]")
    raise typer.Exit(1)


def _indexed_scope(services) -> list[str]:
    return [f.file_id for f in services.store.list_files()]


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind (defaults to settings)"),
    port: Optional[int] = typer.Option(None, help="Port to bind (defaults to settings)"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Start the FastAPI server."""
    import uvicorn

    from omnirag.config import get_settings

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    console.print(f"[green]Starting omnirag server on {host}:{port}[/green]")

    uvicorn.run(
        "omnirag.api.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=1,  # single writer per index database
    )


@app.command()
def index(
    paths: list[Path] = typer.Argument(..., help="Files or directories to index"),
    recursive: bool = typer.Option(True, help="Descend into subdirectories"),
) -> None:
    """Index files into the chunk store, replacing earlier versions."""
    from omnirag.retrieval.indexer import discover_files

    services = _services()
    files: list[Path] = []
    for path in paths:
        if not path.exists():
            console.print(f"[red]Path not found: {path}[/red]")
            raise typer.Exit(1)
        files.extend(discover_files(path, recursive) if path.is_dir() else [path])

    if not files:
        console.print("[yellow]No supported files found.[/yellow]")
        return

    console.print(f"[blue]Indexing {len(files)} files...[/blue]\n")

    def progress(name: str, count: int) -> None:
        if count:
            console.print(f"[green]  ✓ {name}: {count} chunks[/green]")

    with console.status("[bold green]Extracting..."):
        report = services.indexer.index_paths(files, on_progress=progress)

    for file_id, reason in report.unreadable.items():
        console.print(f"[yellow]  - {Path(file_id).name}: {reason}[/yellow]")
    for file_id, message in report.failed.items():
        console.print(f"[red]  ✗ {Path(file_id).name}: {message}[/red]")

    console.print("\n[bold green]✓ Indexing complete![/bold green]")
    console.print(f"  Files indexed: {len(report.indexed)}")
    console.print(f"  Total chunks: {report.total_chunks}")
    services.close()
    if report.failed:
        raise typer.Exit(1)


@app.command()
def search(
    query: str = typer.Argument(..., help="Text to look for"),
    scope: Optional[list[Path]] = typer.Option(None, "--scope", "-s", help="Restrict to these files"),
) -> None:
    """Search indexed chunks (all indexed files unless --scope is given)."""
    from omnirag.retrieval.indexer import file_identity

    services = _services()
    scope_ids = [file_identity(p) for p in scope] if scope else _indexed_scope(services)
    results = services.retriever.search(query, scope_ids)
    services.close()

    if not results:
        console.print("[yellow]No indexed content in scope.[/yellow]")
        return

    table = Table(title=f"Results for '{query}'")
    table.add_column("File", style="cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Text", style="green")
    for r in results:
        table.add_row(r.file_name, str(r.chunk_index), r.text)
    console.print(table)


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to ask"),
    file: Optional[list[Path]] = typer.Option(None, "--file", "-f", help="Attach a file"),
    project: Optional[UUID] = typer.Option(None, help="Use this project's library instead of the active one"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output"),
) -> None:
    """Ask a question, answered from attached files or the index."""
    from omnirag.chat.service import new_session

    services = _services()
    session = new_session(attached_files=_indexed_scope(services))
    session.attached_project_id = project

    console.print(f"[blue]Question:[/blue] {question}\n")
    with console.status("[bold green]Thinking..."):
        reply = asyncio.run(services.chat.send_message(session, question, attachments=file or []))
    services.close()

    console.print("[green]Answer:[/green]")
    console.print(Markdown(reply.content))
    console.print()

    if reply.sources:
        console.print("[blue]Sources:[/blue]")
        for source in reply.sources:
            console.print(f"  • {source}")
        console.print()

    if verbose:
        table = Table(title="Metadata")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Mode", services.router.mode().value)
        table.add_row("Suggested Action", reply.suggested_action or "N/A")
        table.add_row("Session", session.title)
        console.print(table)


@app.command()
def models(
    provider: Optional[str] = typer.Argument(None, help="Provider (defaults to the configured one)"),
) -> None:
    """List available models for a provider."""
    from omnirag.config import get_settings
    from omnirag.errors import ProviderError
    from omnirag.llm.ollama_client import OllamaClient
    from omnirag.llm.router import LOCAL_PROVIDERS, PROVIDER_MODELS

    settings = get_settings()
    provider = (provider or settings.provider).lower()

    if provider in LOCAL_PROVIDERS:
        client = OllamaClient(settings.ollama_url, settings.ollama_default_model, settings.provider_timeout)
        try:
            names = asyncio.run(client.list_models())
        except ProviderError as e:
            _fail(e)
    elif provider in PROVIDER_MODELS:
        names = PROVIDER_MODELS[provider]
    else:
        console.print(f"[red]Unknown provider: {provider}[/red]")
        raise typer.Exit(1)

    for name in names:
        console.print(f"  • {name}")


# =============================================================================
# Project library
# =============================================================================


@project_app.command("list")
def project_list() -> None:
    """List projects and their files."""
    services = _services()
    table = Table(title="Projects")
    table.add_column("Active", justify="center")
    table.add_column("Name", style="cyan")
    table.add_column("Files", justify="right")
    table.add_column("ID", style="dim")
    for p in services.library.projects:
        table.add_row("●" if p.is_active else "", p.name, str(len(p.files)), str(p.id))
    console.print(table)


@project_app.command("create")
def project_create(name: str = typer.Argument(..., help="Project name")) -> None:
    """Create an (inactive) project."""
    services = _services()
    try:
        project = services.library.create_project(name)
    except OmniError as e:
        _fail(e)
    console.print(f"[green]Created project {project.name} ({project.id})[/green]")


@project_app.command("activate")
def project_activate(project_id: UUID = typer.Argument(..., help="Project ID")) -> None:
    """Make a project the single active one."""
    from omnirag.library.projects import ProjectNotFound

    services = _services()
    try:
        services.library.set_active_project(project_id)
    except ProjectNotFound:
        console.print(f"[red]Project not found: {project_id}[/red]")
        raise typer.Exit(1)
    except OmniError as e:
        _fail(e)
    console.print(f"[green]Activated {project_id}[/green]")


@project_app.command("add-file")
def project_add_file(
    project_id: UUID = typer.Argument(..., help="Project ID"),
    path: Path = typer.Argument(..., help="File to add"),
) -> None:
    """Read a file into a project."""
    from omnirag.library.projects import ProjectNotFound

    services = _services()
    try:
        added = services.library.add_file(project_id, path)
    except ProjectNotFound:
        console.print(f"[red]Project not found: {project_id}[/red]")
        raise typer.Exit(1)
    except OmniError as e:
        _fail(e)
    if added is None:
        console.print(f"[yellow]{path.name} is already in the project.[/yellow]")
        return
    console.print(f"[green]Added {added.name} ({added.id})[/green]")


@project_app.command("remove-file")
def project_remove_file(
    project_id: UUID = typer.Argument(..., help="Project ID"),
    file_id: UUID = typer.Argument(..., help="File ID"),
) -> None:
    """Remove a file from a project."""
    from omnirag.library.projects import ProjectNotFound

    services = _services()
    try:
        services.library.remove_file(project_id, file_id)
    except ProjectNotFound:
        console.print(f"[red]Project not found: {project_id}[/red]")
        raise typer.Exit(1)
    except OmniError as e:
        _fail(e)
    console.print("[green]Removed.[/green]")


@project_app.command("delete")
def project_delete(project_id: UUID = typer.Argument(..., help="Project ID")) -> None:
    """Delete a project."""
    from omnirag.library.projects import ProjectNotFound

    services = _services()
    try:
        services.library.delete_project(project_id)
    except ProjectNotFound:
        console.print(f"[red]Project not found: {project_id}[/red]")
        raise typer.Exit(1)
    except OmniError as e:
        _fail(e)
    console.print("[green]Deleted.[/green]")


@project_app.command("rename")
def project_rename(
    project_id: UUID = typer.Argument(..., help="Project ID"),
    name: str = typer.Argument(..., help="New name"),
) -> None:
    """Rename a project."""
    from omnirag.library.projects import ProjectNotFound

    services = _services()
    try:
        services.library.rename_project(project_id, name)
    except ProjectNotFound:
        console.print(f"[red]Project not found: {project_id}[/red]")
        raise typer.Exit(1)
    except OmniError as e:
        _fail(e)
    console.print(f"[green]Renamed to {name}[/green]")


# =============================================================================
# Specialized tasks
# =============================================================================


def _project_context(services, project_id: Optional[UUID]) -> tuple[Optional[UUID], str]:
    project = (
        services.library.get_project(project_id) if project_id else services.library.active_project
    )
    if project is None:
        console.print("[red]No such project (and no active project).[/red]")
        raise typer.Exit(1)
    return project.id, services.library.context_for(project)


@app.command()
def overview(path: Path = typer.Argument(..., help="Document to summarize")) -> None:
    """Summarize one document."""
    from omnirag.tasks.overview import summarize_document

    services = _services()
    try:
        text = services.extractor.extract(path)
        with console.status("[bold green]Summarizing..."):
            summary = asyncio.run(summarize_document(services.router, path.name, text))
    except OmniError as e:
        _fail(e)
    console.print(Markdown(summary))


@app.command()
def exam(
    project: Optional[UUID] = typer.Option(None, help="Project (defaults to the active one)"),
    count: int = typer.Option(5, min=1, help="Number of questions"),
) -> None:
    """Generate and save a multiple-choice quiz from a project's files."""
    from omnirag.tasks.exam import generate_exam

    services = _services()
    project_id, context = _project_context(services, project)
    try:
        with console.status("[bold green]Writing exam..."):
            quiz = asyncio.run(
                generate_exam(services.router, context, services.quizzes, project_id, count)
            )
    except OmniError as e:
        _fail(e)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]{quiz.name}[/bold]\n")
    for n, q in enumerate(quiz.questions, 1):
        console.print(f"[cyan]{n}. {q.question_text}[/cyan]")
        for i, option in enumerate(q.options):
            marker = "[green]✓[/green]" if i == q.correct_answer_index else " "
            console.print(f"   {marker} {chr(65 + i)}. {option}")
        if q.explanation:
            console.print(f"   [dim]{q.explanation}[/dim]")
        console.print()


@app.command()
def timeline(
    project: Optional[UUID] = typer.Option(None, help="Project (defaults to the active one)"),
) -> None:
    """Extract a chronological timeline from a project's files."""
    from omnirag.tasks.timeline import generate_timeline

    services = _services()
    _, context = _project_context(services, project)
    try:
        with console.status("[bold green]Building timeline..."):
            result = asyncio.run(generate_timeline(services.router, context))
    except OmniError as e:
        _fail(e)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(Markdown(result))


@app.command()
def version() -> None:
    """Show version information."""
    from omnirag import __version__

    console.print(f"omnirag v{__version__}")


if __name__ == "__main__":
    app()
