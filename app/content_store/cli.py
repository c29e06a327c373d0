#!/usr/bin/env python3
"""CLI commands for content store."""

import json

import click

from app.content_store.config import get_content_service
from app.content_store.models import GateFailure


@click.group()
def cli():
    """Content store management commands."""
    pass


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print counts as JSON")
def status(as_json):
    """Show content store status."""
    service = get_content_service()
    stats = service.stats()

    if as_json:
        click.echo(json.dumps(stats.to_dict()))
        return

    click.echo("Content Store Status:")
    click.echo(f"  Total records: {stats.total}")
    click.echo(f"  Active: {stats.active}")
    click.echo(f"  Expired (awaiting sweep): {stats.expired}")
    click.echo(f"  Text: {stats.text_count}")
    click.echo(f"  Files: {stats.blob_count}")
    click.echo(f"  Blob backend: {service.blobs.name}")


@cli.command()
def sweep():
    """Remove every expired record now."""
    removed = get_content_service().sweep()
    click.echo(f"Removed {removed} expired record(s)")


@cli.command()
@click.argument("handle")
def inspect(handle):
    """Inspect a record without counting a view."""
    record = get_content_service().inspect(handle)
    if record is None:
        click.echo(f"Content {handle} not found", err=True)
        raise SystemExit(1)

    click.echo(f"Handle: {record.handle}")
    click.echo(f"  Type: {record.kind.value}")
    click.echo(f"  Created: {record.created_at.isoformat()}")
    click.echo(f"  Expires: {record.expires_at.isoformat()}")
    views = record.view_count
    limit = "unlimited" if record.max_views is None else record.max_views
    click.echo(f"  Views: {views} of {limit}")
    click.echo(f"  One-time view: {'yes' if record.one_time_view else 'no'}")
    click.echo(f"  Password: {'yes' if record.requires_password else 'no'}")
    if record.blob_meta is not None:
        meta = record.blob_meta
        click.echo(f"  File: {meta.filename} ({meta.size} bytes, {meta.media_type})")
        click.echo(f"  Locator: {record.payload}")


@cli.command()
@click.argument("handle")
@click.option("--password", default=None, help="Password of a protected record")
def delete(handle, password):
    """Delete a record and its file."""
    outcome = get_content_service().delete(handle, password)
    if isinstance(outcome, GateFailure):
        click.echo(f"Not deleted: {outcome.outcome.value}", err=True)
        raise SystemExit(1)
    click.echo(f"Deleted {handle}")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host, port, reload):
    """Run the API server."""
    import uvicorn

    click.echo(f"Starting LinkVault API on http://{host}:{port}")
    uvicorn.run("app.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()
