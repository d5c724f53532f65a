import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from decodey_sync.auth import StaticAuthProvider
from decodey_sync.config import SyncPolicy
from decodey_sync.coordinator import ReconciliationCoordinator
from decodey_sync.db.store import LocalGameStore, SQLiteBookkeepingStore
from decodey_sync.errors import SyncError
from decodey_sync.metrics import configure_logging
from decodey_sync.pending import PendingUploadQueue
from decodey_sync.strategy import Trigger
from decodey_sync.transport.http_transport import HTTPGameTransport
from decodey_sync.utils.timestamps import format_timestamp

app = typer.Typer(help="Decodey game reconciliation CLI")
console = Console()
logger = logging.getLogger("cli")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
):
    configure_logging(level=log_level, json_format=json_logs)


@app.command()
def init(db_path: str = typer.Argument(..., help="Path to SQLite database")):
    """Create the local game store."""
    with LocalGameStore(db_path) as store:
        store.initialize()
    console.print(f"[green]Initialized game store at {db_path}[/green]")


@app.command()
def status(
    db_path: str = typer.Argument(..., help="Path to SQLite database"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Count games for this user"),
):
    """Show sync bookkeeping and local game counts."""
    with LocalGameStore(db_path) as store:
        store.initialize()
        bookkeeping_store = SQLiteBookkeepingStore(store)
        bookkeeping = bookkeeping_store.load()
        pending = PendingUploadQueue(bookkeeping_store)

        table = Table(title="Sync Status")
        table.add_column("Property", style="cyan")
        table.add_column("Value", style="magenta")

        def fmt(value):
            return format_timestamp(value) if value is not None else "Never"

        table.add_row("Last Attempt", fmt(bookkeeping.last_sync_attempt))
        table.add_row("Last Success", fmt(bookkeeping.last_successful_sync))
        table.add_row("Last Full Sync", fmt(bookkeeping.last_full_sync))
        table.add_row("Launch Count", str(bookkeeping.launch_count))
        table.add_row("Pending Uploads", str(len(pending)))

        if user:
            games = store.list_for_owner(user)
            table.add_row("Local Games", str(len(games)))
            table.add_row("Completed Games", str(sum(1 for g in games if g.is_terminal)))

        console.print(table)


@app.command()
def reconcile(
    db_path: str = typer.Argument(..., help="Path to SQLite database"),
    server: str = typer.Option(..., "--server", "-s", help="Game server base URL"),
    token: Optional[str] = typer.Option(None, "--token", envvar="DECODEY_SYNC_TOKEN", help="Access token"),
    user: str = typer.Option(..., "--user", "-u", help="Signed-in user id"),
    trigger: Trigger = typer.Option(Trigger.MANUAL, "--trigger", "-t", help="Sync trigger"),
):
    """Run one reconciliation cycle."""
    auth = StaticAuthProvider(base_url=server, user_id=user, token=token)
    policy = SyncPolicy.from_env()

    async def run():
        with LocalGameStore(db_path) as store:
            store.initialize()
            transport = HTTPGameTransport(auth, policy)
            try:
                coordinator = ReconciliationCoordinator(
                    auth, store, SQLiteBookkeepingStore(store), transport, policy
                )
                return await coordinator.reconcile(trigger)
            finally:
                await transport.close()

    console.print(f"Reconciling with {server} ({trigger.value})...")
    outcome = asyncio.run(run())

    if outcome.report is not None and outcome.report.errors:
        errors = Table(title="Failed Operations")
        errors.add_column("Game")
        errors.add_column("Operation")
        errors.add_column("Error")
        for err in outcome.report.errors:
            errors.add_row(err.game_id, err.operation.value, err.error)
        console.print(errors)

    if outcome.success:
        console.print(f"[green]{outcome.message}[/green]")
    else:
        console.print(f"[red]{outcome.message}[/red]")
        raise typer.Exit(code=1)


@app.command()
def flush(
    db_path: str = typer.Argument(..., help="Path to SQLite database"),
    server: str = typer.Option(..., "--server", "-s", help="Game server base URL"),
    token: Optional[str] = typer.Option(None, "--token", envvar="DECODEY_SYNC_TOKEN", help="Access token"),
):
    """Upload queued finished games."""
    auth = StaticAuthProvider(base_url=server, token=token)
    policy = SyncPolicy.from_env()

    async def run():
        with LocalGameStore(db_path) as store:
            store.initialize()
            queue = PendingUploadQueue(SQLiteBookkeepingStore(store))
            transport = HTTPGameTransport(auth, policy)
            try:
                return await queue.flush(transport)
            finally:
                await transport.close()

    try:
        uploaded = asyncio.run(run())
    except SyncError as e:
        console.print(f"[red]Flush failed: {e}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Uploaded {uploaded} games[/green]")


if __name__ == "__main__":
    app()
