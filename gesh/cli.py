"""
GESH CLI Tool

Command-line interface for running the gateway and talking to it.

Usage:
    gesh serve                                  - Start the gateway
    gesh push APP ROOT DEVICE EVENT FILE        - Upload a blob
    gesh pull APP ROOT DEVICE EVENT [-o FILE]   - Download a blob
    gesh ls APP ROOT [--device DEVICE]          - List a root's entries
    gesh rm APP ROOT DEVICE EVENT               - Delete a blob
    gesh check APP ROOT                         - Audit index vs blob files
"""
import asyncio
import sys
from pathlib import Path

import click
import httpx
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gesh import __version__

# Load environment variables
load_dotenv()

console = Console()

DEFAULT_API_BASE = "http://localhost:3000"


def sync_url(api: str, app_id: str, root_id: str, *parts: str) -> str:
    return "/".join([api.rstrip("/"), "v1", "sync", app_id, root_id, *parts])


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def fail(response: httpx.Response) -> None:
    """Print an API error and exit."""
    try:
        message = response.json().get("error", response.text)
    except ValueError:
        message = response.text
    console.print(f"[red]✗ {response.status_code}: {message}[/red]")
    sys.exit(1)


api_option = click.option(
    "--api",
    envvar="GESH_API_URL",
    default=DEFAULT_API_BASE,
    show_default=True,
    help="Gateway base URL",
)
token_option = click.option(
    "--token",
    envvar="GESH_TOKEN",
    required=True,
    help="Bearer token of the root (or set GESH_TOKEN)",
)


@click.group()
@click.version_option(version=__version__, prog_name="GESH")
def main():
    """
    GESH - gateway for storing and syncing opaque encrypted blobs.
    """
    pass


@main.command()
@click.option("--host", default=None, help="Bind address (defaults to HOST)")
@click.option("--port", default=None, type=int, help="Port to run server on (defaults to PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """
    Start the GESH server.

    Example:
        gesh serve --port 3000
    """
    import uvicorn

    from gesh.config import get_settings

    settings = get_settings()
    host = host or settings.HOST
    port = port or settings.PORT

    console.print(Panel(
        f"[bold green]Starting GESH v{__version__}[/bold green]\n\n"
        f"Listening: [cyan]http://{host}:{port}[/cyan]\n"
        f"Blobs: [cyan]{settings.BLOB_BASE_DIR}[/cyan]\n"
        f"Metadata: [cyan]{settings.METADATA_BASE_DIR}[/cyan]\n\n"
        f"[dim]Press Ctrl+C to stop[/dim]",
        border_style="green"
    ))

    uvicorn.run(
        "gesh.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


@main.command()
@click.argument("app_id")
@click.argument("root_id")
@click.argument("device_id")
@click.argument("event_id")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@api_option
@token_option
def push(app_id: str, root_id: str, device_id: str, event_id: str, file: Path, api: str, token: str):
    """
    Upload FILE as the blob for DEVICE/EVENT.

    Example:
        gesh push app1 root1 devA ev1 ./event.bin
    """
    try:
        response = httpx.put(
            sync_url(api, app_id, root_id, device_id, event_id),
            content=file.read_bytes(),
            headers={**auth_headers(token), "Content-Type": "application/octet-stream"},
            timeout=60.0,
        )
    except httpx.HTTPError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        sys.exit(1)

    if response.status_code not in (200, 201):
        fail(response)

    data = response.json()
    verb = "Created" if response.status_code == 201 else "Updated"
    console.print(f"[green]✓[/green] {verb} {device_id}/{event_id} ({data['size']} bytes at {data['created_at']})")


@main.command()
@click.argument("app_id")
@click.argument("root_id")
@click.argument("device_id")
@click.argument("event_id")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), help="Write to file instead of stdout")
@api_option
@token_option
def pull(app_id: str, root_id: str, device_id: str, event_id: str, output: Path | None, api: str, token: str):
    """
    Download the blob for DEVICE/EVENT.

    Example:
        gesh pull app1 root1 devA ev1 -o event.bin
    """
    try:
        response = httpx.get(
            sync_url(api, app_id, root_id, device_id, event_id),
            headers=auth_headers(token),
            timeout=60.0,
        )
    except httpx.HTTPError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        sys.exit(1)

    if response.status_code != 200:
        fail(response)

    if output is None:
        click.get_binary_stream("stdout").write(response.content)
        return
    output.write_bytes(response.content)
    console.print(f"[green]✓[/green] Wrote {len(response.content)} bytes to [cyan]{output}[/cyan]")


@main.command()
@click.argument("app_id")
@click.argument("root_id")
@click.option("--device", default=None, help="Only show entries of this device")
@api_option
@token_option
def ls(app_id: str, root_id: str, device: str | None, api: str, token: str):
    """
    List the blob entries of a root.

    Example:
        gesh ls app1 root1 --device devA
    """
    try:
        response = httpx.get(
            sync_url(api, app_id, root_id),
            params={"deviceId": device} if device else None,
            headers=auth_headers(token),
            timeout=30.0,
        )
    except httpx.HTTPError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        sys.exit(1)

    if response.status_code != 200:
        fail(response)

    entries = response.json()
    if not entries:
        console.print("[yellow]No entries found.[/yellow]")
        return

    table = Table(title=f"{app_id}/{root_id} ({len(entries)} entries)", show_header=True, header_style="bold cyan")
    table.add_column("Device", style="cyan")
    table.add_column("Event")
    table.add_column("Created")
    table.add_column("Size", justify="right")

    for entry in entries:
        table.add_row(entry["device_id"], entry["event_id"], entry["created_at"], str(entry["size"]))

    console.print(table)


@main.command()
@click.argument("app_id")
@click.argument("root_id")
@click.argument("device_id")
@click.argument("event_id")
@api_option
@token_option
def rm(app_id: str, root_id: str, device_id: str, event_id: str, api: str, token: str):
    """
    Delete the blob for DEVICE/EVENT.

    Example:
        gesh rm app1 root1 devA ev1
    """
    try:
        response = httpx.delete(
            sync_url(api, app_id, root_id, device_id, event_id),
            headers=auth_headers(token),
            timeout=30.0,
        )
    except httpx.HTTPError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        sys.exit(1)

    if response.status_code != 204:
        fail(response)
    console.print(f"[green]✓[/green] Deleted {device_id}/{event_id}")


@main.command()
@click.argument("app_id")
@click.argument("root_id")
@click.option("--blob-dir", default=None, help="Blob base directory (defaults to BLOB_BASE_DIR)")
@click.option("--metadata-dir", default=None, help="Metadata base directory (defaults to METADATA_BASE_DIR)")
def check(app_id: str, root_id: str, blob_dir: str | None, metadata_dir: str | None):
    """
    Compare a root's metadata index with the blob files on disk.

    Reads the local storage directories directly; the server does not need
    to be running. Exits with status 1 when the two disagree.

    Example:
        gesh check app1 root1
    """
    from gesh.config import get_settings
    from gesh.errors import GeshError
    from gesh.storage import RootKey, StorageConfig, SyncService

    settings = get_settings()
    config = StorageConfig(
        blob_root=blob_dir or settings.BLOB_BASE_DIR,
        metadata_root=metadata_dir or settings.METADATA_BASE_DIR,
    )
    service = SyncService.from_config(config)

    try:
        report = asyncio.run(service.audit(RootKey.parse(app_id, root_id)))
    except GeshError as e:
        console.print(f"[red]✗ {e.message}[/red]" + (f" [dim]({e.detail})[/dim]" if e.detail else ""))
        sys.exit(2)

    console.print(f"Indexed entries: [cyan]{report.indexed}[/cyan]  Blob files: [cyan]{report.stored}[/cyan]")
    if report.consistent:
        console.print(f"[green]✓ {app_id}/{root_id} is consistent[/green]")
        return

    table = Table(title="Divergence", show_header=True, header_style="bold red")
    table.add_column("Problem")
    table.add_column("Device", style="cyan")
    table.add_column("Event")
    for key in report.missing_blobs:
        table.add_row("indexed, blob missing", key.device_id, key.event_id)
    for key in report.orphan_blobs:
        table.add_row("blob without entry", key.device_id, key.event_id)
    console.print(table)
    sys.exit(1)


if __name__ == "__main__":
    main()
