"""applifecycle CLI Entry Point"""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from applifecycle.core.config import get_lifecycle_settings
from applifecycle.repository import FileStatePersistenceRepository, StatePersistenceError
from applifecycle.utils.logger import configure_logging

app = typer.Typer(name="applifecycle", help="Inspect saved app state snapshots")
console = Console()

StorageDirOption = typer.Option(
    None, "--storage-dir", "-d", help="Storage root (default: LIFECYCLE_STORAGE_DIR)"
)


def _open_repository(storage_dir: Path | None) -> FileStatePersistenceRepository:
    settings = get_lifecycle_settings()
    configure_logging(level="WARNING", json_logs=settings.json_logs)
    return FileStatePersistenceRepository(
        storage_dir or settings.storage_dir,
        compression_threshold=settings.compression_threshold,
    )


def _run(coro):
    try:
        return asyncio.run(coro)
    except StatePersistenceError as e:
        console.print(f"Error: {e.message}", style="bold red")
        raise typer.Exit(code=1) from e


@app.command()
def stats(storage_dir: Path | None = StorageDirOption):
    """Show memento statistics"""

    async def _stats():
        repo = _open_repository(storage_dir)
        await repo.initialize()
        try:
            return await repo.get_statistics()
        finally:
            await repo.dispose()

    statistics = _run(_stats())
    console.print(f"Mementos: {statistics.total_mementos}", style="bold green")
    console.print(f"Total size: {statistics.total_size_bytes} bytes")
    if statistics.total_mementos:
        console.print(f"Oldest: {statistics.oldest_memento.isoformat()}")
        console.print(f"Newest: {statistics.newest_memento.isoformat()}")
        console.print(f"Average age: {int(statistics.average_age.total_seconds())}s")
        for originator, count in sorted(statistics.originator_counts.items()):
            console.print(f"  {originator}: {count}", style="blue")


@app.command("list")
def list_mementos(storage_dir: Path | None = StorageDirOption):
    """List saved mementos, oldest first"""

    async def _list():
        repo = _open_repository(storage_dir)
        await repo.initialize()
        try:
            return await repo.get_all_mementos()
        finally:
            await repo.dispose()

    mementos = _run(_list())
    if not mementos:
        console.print("No saved mementos", style="yellow")
        return

    table = Table(title="Saved mementos")
    table.add_column("ID")
    table.add_column("Timestamp")
    table.add_column("State")
    table.add_column("Route")
    for memento in mementos:
        table.add_row(
            memento.id,
            memento.timestamp.isoformat(),
            str(memento.lifecycle_state),
            memento.current_route,
        )
    console.print(table)


@app.command()
def show(memento_id: str, storage_dir: Path | None = StorageDirOption):
    """Print a memento as JSON"""

    async def _show():
        repo = _open_repository(storage_dir)
        await repo.initialize()
        try:
            return await repo.get_memento_by_id(memento_id)
        finally:
            await repo.dispose()

    memento = _run(_show())
    if memento is None:
        console.print(f"Memento not found: {memento_id}", style="bold red")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(memento.to_dict()))


@app.command()
def delete(memento_id: str, storage_dir: Path | None = StorageDirOption):
    """Delete a memento"""

    async def _delete():
        repo = _open_repository(storage_dir)
        await repo.initialize()
        try:
            return await repo.delete_memento(memento_id)
        finally:
            await repo.dispose()

    if not _run(_delete()):
        console.print(f"Memento not found: {memento_id}", style="bold red")
        raise typer.Exit(code=1)
    console.print(f"Deleted {memento_id}", style="green")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm deletion"),
    storage_dir: Path | None = StorageDirOption,
):
    """Delete every saved memento"""
    if not yes:
        console.print("Refusing to clear without --yes", style="yellow")
        raise typer.Exit(code=1)

    async def _clear():
        repo = _open_repository(storage_dir)
        await repo.initialize()
        try:
            await repo.clear_all_mementos()
        finally:
            await repo.dispose()

    _run(_clear())
    console.print("All mementos cleared", style="green")


if __name__ == "__main__":
    app()
