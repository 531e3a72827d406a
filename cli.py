"""Admin CLI for the error logs service."""

from __future__ import annotations

import asyncio
import os
import uuid

import click


def run_async(coro):
    """Run an async function in a new event loop."""
    return asyncio.run(coro)


@click.group()
def cli():
    """Error logs service administration CLI."""
    pass


# --- Setup ---


@cli.command()
def setup():
    """Run database migrations."""
    click.echo("Running database migrations...")
    _run_migrations()
    click.echo("Setup complete.")


def _run_migrations():
    """Run Alembic migrations using the Python API."""
    from alembic import command
    from alembic.config import Config

    # Look for alembic.ini in /app (Docker) or alongside this script (local)
    for candidate in ["/app/alembic.ini", os.path.join(os.path.dirname(__file__), "alembic.ini")]:
        if os.path.exists(candidate):
            alembic_cfg = Config(candidate)
            script_dir = os.path.join(os.path.dirname(candidate), "alembic")
            if os.path.isdir(script_dir):
                alembic_cfg.set_main_option("script_location", script_dir)
            command.upgrade(alembic_cfg, "head")
            return

    click.echo("  Warning: alembic.ini not found, skipping migrations.")


# --- API keys ---


@cli.group()
def apikey():
    """API key management commands."""
    pass


@apikey.command("create")
@click.option("--name", required=True, help="Human-readable key name")
@click.option("--project-id", default=None, help="Optional project UUID")
def create_api_key(name, project_id):
    """Create an ingestion API key. The raw key is printed once."""
    run_async(_create_api_key(name, project_id))


async def _create_api_key(name, project_id):
    from modules.error_logs.auth import generate_api_key, hash_api_key
    from shared.database import dispose_engine, get_session_factory
    from shared.models.api_key import ApiKey

    raw_key = generate_api_key()
    session_factory = get_session_factory()
    async with session_factory() as session:
        api_key = ApiKey(
            id=uuid.uuid4(),
            key_hash=hash_api_key(raw_key),
            name=name,
            project_id=uuid.UUID(project_id) if project_id else None,
            active=True,
        )
        session.add(api_key)
        await session.commit()
        click.echo(f"Created API key {api_key.id} ({name})")
        click.echo(f"  Key: {raw_key}")
        click.echo("  Store it now; it cannot be shown again.")

    await dispose_engine()


@apikey.command("revoke")
@click.option("--id", "key_id", required=True, help="API key ID")
def revoke_api_key(key_id):
    """Deactivate an API key."""
    run_async(_revoke_api_key(key_id))


async def _revoke_api_key(key_id):
    from sqlalchemy import select

    from shared.database import dispose_engine, get_session_factory
    from shared.models.api_key import ApiKey

    session_factory = get_session_factory()
    async with session_factory() as session:
        result = await session.execute(
            select(ApiKey).where(ApiKey.id == uuid.UUID(key_id))
        )
        api_key = result.scalar_one_or_none()
        if not api_key:
            click.echo(f"Error: API key {key_id} not found")
        else:
            api_key.active = False
            await session.commit()
            click.echo(f"Revoked API key {key_id} ({api_key.name})")

    await dispose_engine()


@apikey.command("list")
def list_api_keys():
    """List API keys and when they were last used."""
    run_async(_list_api_keys())


async def _list_api_keys():
    from sqlalchemy import select

    from shared.database import dispose_engine, get_session_factory
    from shared.models.api_key import ApiKey

    session_factory = get_session_factory()
    async with session_factory() as session:
        result = await session.execute(select(ApiKey).order_by(ApiKey.created_at))
        keys = result.scalars().all()

        if not keys:
            click.echo("No API keys found.")
        for k in keys:
            state = "active" if k.active else "revoked"
            last_used = k.last_used.isoformat() if k.last_used else "never"
            click.echo(f"{k.id} | {k.name} | {state} | last used: {last_used}")

    await dispose_engine()


# --- Queue ---


@cli.group()
def queue():
    """Ingestion queue commands."""
    pass


@queue.command("status")
def queue_status():
    """Show pending queue depth and recent-buffer size."""
    run_async(_queue_status())


async def _queue_status():
    from modules.error_logs.queue import RECENT_ERRORS_KEY, IngestionQueue
    from shared.redis import close_redis, get_redis

    try:
        redis_client = await get_redis()
        pending = await IngestionQueue(redis_client).depth()
        recent = await redis_client.llen(RECENT_ERRORS_KEY)
        click.echo(f"Pending: {pending}")
        click.echo(f"Recent buffer: {recent}")
    except Exception as e:
        click.echo(f"Error connecting to Redis: {e}")
    finally:
        await close_redis()


if __name__ == "__main__":
    cli()
