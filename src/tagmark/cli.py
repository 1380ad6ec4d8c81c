"""Command line front end: input surface and list view over the bookmark store."""

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .config import settings
from .models.bookmark import Bookmark, ImportRecord
from .services.bookmark_cache import BookmarkCache
from .services.bookmark_list import BookmarkListController
from .services.bookmark_store import BookmarkStore, StoreError, create_store
from .services.input_parser import document_from_text, parse_document
from .services.reconciliation import OverlayConflictError
from .services.search import format_date
from .services.tag_service import aggregate_tags

app = typer.Typer(help="Tagmark bookmarks CLI")
console = Console()


def _open_store() -> BookmarkStore:
    store = create_store(settings)
    if store is None:
        console.print("[red]Bookmark store not configured (set TAGMARK_STORE_URL)[/red]")
        raise typer.Exit(1)
    return store


def _controller(store: BookmarkStore) -> BookmarkListController:
    controller = BookmarkListController(
        store,
        BookmarkCache(settings.cache_path, settings.cache_key),
        metadata_timeout=settings.metadata_timeout,
        failure_policy=settings.creation_failure_policy,
        retry_attempts=settings.creation_retry_attempts,
    )
    controller.load_cache()
    controller.attach()
    return controller


def _print_bookmarks(bookmarks: list[Bookmark], title: str) -> None:
    if not bookmarks:
        console.print("[yellow]No bookmarks found[/yellow]")
        return

    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Tags", style="magenta")
    table.add_column("Date", style="dim", justify="right")

    for bookmark in bookmarks:
        table.add_row(bookmark.id, bookmark.title[:60], ", ".join(bookmark.tags), format_date(bookmark.created_at))

    console.print(table)


def _run(coro):
    return asyncio.run(coro)


@app.command()
def add(
    text: str = typer.Argument(..., help='URL, @tags and an optional title, e.g. "example.com @news cool site"'),
):
    """Add a bookmark."""

    async def _add() -> None:
        store = _open_store()
        try:
            controller = _controller(store)
            parsed = parse_document(document_from_text(text), max_depth=settings.max_document_depth)
            if not parsed.is_submission:
                console.print(f"[yellow]Not a URL: {parsed.query!r}[/yellow]")
                raise typer.Exit(1)
            temp_id = await controller.submit(parsed)
            if temp_id not in controller.stored_ids:
                reason = controller.failures.get(temp_id, "the store rejected it")
                console.print(f"[red]Failed to add {parsed.url}: {reason}[/red]")
                raise typer.Exit(1)
            console.print(f"[green]Added {parsed.url}[/green]")
        finally:
            await store.aclose()

    _run(_add())


@app.command(name="list")
def list_bookmarks(query: str = typer.Argument("", help="Search in titles, URLs and tags")):
    """List bookmarks, optionally filtered."""

    async def _list() -> None:
        store = _open_store()
        try:
            controller = _controller(store)
            if not await controller.refresh() and not controller.bookmarks:
                console.print("[red]Could not load bookmarks[/red]")
                raise typer.Exit(1)
            visible = controller.visible(query)
            _print_bookmarks(visible, f"Bookmarks ({len(visible)})")
        finally:
            await store.aclose()

    _run(_list())


@app.command()
def edit(
    bookmark_id: str,
    text: str = typer.Argument(..., help='New URL, @tags and optional title'),
):
    """Replace a bookmark's URL, tags and title."""

    async def _edit() -> None:
        store = _open_store()
        try:
            controller = _controller(store)
            await controller.refresh()
            parsed = parse_document(document_from_text(text), max_depth=settings.max_document_depth)
            if not parsed.is_submission:
                console.print(f"[yellow]Not a URL: {parsed.query!r}[/yellow]")
                raise typer.Exit(1)
            if await controller.submit(parsed, editing_id=bookmark_id):
                console.print(f"[green]Updated {bookmark_id}[/green]")
            else:
                console.print(f"[red]Failed to update {bookmark_id}[/red]")
                raise typer.Exit(1)
        except KeyError:
            console.print(f"[red]Bookmark not found: {bookmark_id}[/red]")
            raise typer.Exit(1)
        finally:
            await store.aclose()

    _run(_edit())


@app.command()
def delete(bookmark_id: str):
    """Delete a bookmark."""

    async def _delete() -> None:
        store = _open_store()
        try:
            controller = _controller(store)
            await controller.refresh()
            if await controller.delete(bookmark_id):
                console.print(f"[green]Deleted {bookmark_id}[/green]")
            else:
                console.print(f"[red]Failed to delete {bookmark_id}[/red]")
                raise typer.Exit(1)
        except (KeyError, OverlayConflictError):
            console.print(f"[red]Bookmark not found: {bookmark_id}[/red]")
            raise typer.Exit(1)
        finally:
            await store.aclose()

    _run(_delete())


@app.command(name="refresh-favicon")
def refresh_favicon(bookmark_id: str):
    """Re-scrape and store a bookmark's favicon."""

    async def _refresh() -> None:
        store = _open_store()
        try:
            controller = _controller(store)
            await controller.refresh()
            if await controller.refresh_favicon(bookmark_id):
                bookmark = controller.get(bookmark_id)
                console.print(f"[green]Favicon: {bookmark.favicon if bookmark else '?'}[/green]")
            else:
                console.print(f"[red]Failed to refresh favicon for {bookmark_id}[/red]")
                raise typer.Exit(1)
        except KeyError:
            console.print(f"[red]Bookmark not found: {bookmark_id}[/red]")
            raise typer.Exit(1)
        finally:
            await store.aclose()

    _run(_refresh())


@app.command()
def tags(
    first_seen: bool = typer.Option(False, "--first-seen", help="Keep first-seen order instead of frequency"),
):
    """Show tags with their usage counts."""

    async def _tags() -> None:
        store = _open_store()
        try:
            bookmarks = await store.list_bookmarks()
        except StoreError as e:
            console.print(f"[red]Could not load bookmarks: {e}[/red]")
            raise typer.Exit(1)
        finally:
            await store.aclose()

        counts = aggregate_tags(
            bookmarks,
            sort_by_frequency=not first_seen,
            case_insensitive=settings.tag_case_insensitive,
        )
        if not counts:
            console.print("[yellow]No tags[/yellow]")
            return

        table = Table(title=f"Tags ({len(counts)})")
        table.add_column("Tag", style="magenta")
        table.add_column("Bookmarks", justify="right")
        for item in counts:
            table.add_row(item.tag, str(item.count))
        console.print(table)

    _run(_tags())


@app.command(name="import")
def import_bookmarks(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON export: [{title, url, tags}]"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate without importing"),
):
    """Bulk import bookmarks from a JSON export."""
    try:
        records = [ImportRecord.model_validate(item) for item in json.loads(path.read_text(encoding="utf-8"))]
    except (ValueError, TypeError) as e:
        console.print(f"[red]Invalid import file: {e}[/red]")
        raise typer.Exit(1)

    if dry_run:
        console.print(f"[yellow]Would import {len(records)} bookmarks[/yellow]")
        return

    async def _import() -> int:
        store = _open_store()
        try:
            return await store.import_bookmarks(records)
        finally:
            await store.aclose()

    try:
        imported = _run(_import())
    except (StoreError, ValueError) as e:
        console.print(f"[red]Import failed: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Imported {imported} bookmarks[/green]")


def main() -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app()


if __name__ == "__main__":
    main()
