"""CLI interface for aihub."""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import sys
from pathlib import Path

import click

from . import __version__
from .config import CHAT_MODELS, DATA_DIR, IMAGE_MODELS, LOG_FORMAT, PREFS_PATH


def _open_store():
    from .storage import PreferenceStore

    return PreferenceStore(PREFS_PATH)


def _mask(key: str) -> str:
    if not key:
        return click.style("not set", fg="yellow")
    return f"{key[:4]}…{key[-2:]}" if len(key) > 8 else "•" * len(key)


def _notice(text: str):
    click.echo(click.style(text, fg="yellow"), err=True)


@click.group()
@click.version_option(version=__version__, prog_name="aihub")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr")
def cli(verbose: bool):
    """aihub: chat with Mistral and generate images with Gemini.

    Sessions and settings are kept in a local preference store. Save your
    API keys first with `aihub settings set`.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


@cli.group(invoke_without_command=True)
@click.pass_context
def settings(ctx: click.Context):
    """Show the saved settings."""
    if ctx.invoked_subcommand is not None:
        return

    store = _open_store()
    s = store.load_settings()
    store.close()

    click.echo()
    click.echo(click.style("Settings", bold=True))
    click.echo(f"  Mistral key:  {_mask(s.mistral_key)}")
    click.echo(f"  Gemini key:   {_mask(s.gemini_key)}")
    click.echo(f"  Chat model:   {s.chat_model}")
    click.echo(f"  Image model:  {s.image_model}")
    click.echo()


@settings.command("set")
@click.option("--mistral-key", help="Mistral API key (chat)")
@click.option("--gemini-key", help="Google API key (image and sketch)")
@click.option("--chat-model", type=click.Choice(CHAT_MODELS))
@click.option("--image-model", type=click.Choice(IMAGE_MODELS))
def settings_set(
    mistral_key: str | None,
    gemini_key: str | None,
    chat_model: str | None,
    image_model: str | None,
):
    """Save API keys and model choices."""
    from .models import Settings

    store = _open_store()
    current = store.load_settings()
    updates = {
        "mistral_key": mistral_key,
        "gemini_key": gemini_key,
        "chat_model": chat_model,
        "image_model": image_model,
    }
    merged = Settings.model_validate(
        {**current.model_dump(), **{k: v for k, v in updates.items() if v is not None}}
    )
    store.save_settings(merged)
    store.close()
    click.echo(click.style("Saved!", fg="green"))


@cli.command()
def sessions():
    """List chat sessions, newest first."""
    from .sessions import SessionRepository

    store = _open_store()
    repo = SessionRepository(store)
    items = repo.list_sessions()
    store.close()

    if not items:
        click.echo("No chats yet. Start one with `aihub new` or `aihub chat`.")
        return

    for s in items:
        preview = s.messages[-1].content if s.messages else "Empty"
        preview = preview.replace("\n", " ")[:60]
        click.echo(f"{click.style(s.title, bold=True)}  ({len(s.messages)} msgs)")
        click.echo(f"  ID: {s.id}")
        click.echo(f"  {preview}")


@cli.command()
def new():
    """Create an empty chat session and print its ID."""
    from .sessions import SessionRepository

    store = _open_store()
    session = SessionRepository(store).create_session()
    store.close()
    click.echo(session.id)


@cli.command()
@click.argument("session_id")
def delete(session_id: str):
    """Delete a chat session."""
    from .sessions import SessionRepository

    store = _open_store()
    SessionRepository(store).delete_session(session_id)
    store.close()
    click.echo(f"Deleted {session_id}")


@cli.command()
@click.argument("session_id")
def show(session_id: str):
    """Print a chat transcript."""
    from .errors import SessionNotFound
    from .sessions import SessionRepository

    store = _open_store()
    try:
        session = SessionRepository(store).get_session(session_id)
    except SessionNotFound as e:
        raise click.ClickException(e.message) from e
    finally:
        store.close()

    click.echo(click.style(session.title, bold=True))
    click.echo()
    for msg in session.messages:
        _echo_message(msg)


def _echo_message(msg):
    colors = {"user": "cyan", "assistant": "green", "system": "red"}
    label = click.style(msg.role.capitalize(), fg=colors.get(msg.role), bold=True)
    content = "[image]" if msg.is_image else msg.content
    click.echo(f"{label}: {content}")
    click.echo()


@cli.command()
@click.argument("session_id", required=False)
def chat(session_id: str | None):
    """Chat in a session (a new one if no ID is given). Type /back to leave."""
    from .backends import BackendAdapter
    from .errors import SessionNotFound
    from .flow import ChatFlow
    from .sessions import SessionRepository

    store = _open_store()
    repo = SessionRepository(store)
    settings_ = store.load_settings()

    if session_id is None:
        session_id = repo.create_session().id
    try:
        repo.get_session(session_id)
    except SessionNotFound as e:
        store.close()
        raise click.ClickException(e.message) from e

    async def _loop():
        async with BackendAdapter(settings_) as adapter:
            flow = ChatFlow(repo, adapter, settings_, session_id, on_notice=_notice)
            for msg in flow.transcript:
                _echo_message(msg)
            while True:
                prompt = await asyncio.to_thread(
                    click.prompt, click.style("You", fg="cyan", bold=True), prompt_suffix="> "
                )
                if prompt.strip() == "/back":
                    flow.leave()
                    return
                shown = len(flow.transcript)
                await flow.send(prompt)
                for msg in flow.transcript[shown:]:
                    if msg.role != "user":
                        _echo_message(msg)

    try:
        asyncio.run(_loop())
    except (click.Abort, EOFError):
        click.echo()
    finally:
        store.close()


def _write_result(flow, output: Path):
    if flow.result_image is None:
        raise click.ClickException("No image generated.")
    output.parent.mkdir(parents=True, exist_ok=True)
    flow.result_image.save(output)
    click.echo(click.style(f"Saved {output}", fg="green"))


@cli.command()
@click.argument("prompt")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default="image.png")
def image(prompt: str, output: Path):
    """Generate an image from a text prompt."""
    from .backends import BackendAdapter
    from .flow import ImageFlow

    store = _open_store()
    settings_ = store.load_settings()
    store.close()

    async def _run():
        async with BackendAdapter(settings_) as adapter:
            flow = ImageFlow(adapter, settings_, on_notice=_notice)
            await flow.generate(prompt)
            return flow

    _write_result(asyncio.run(_run()), output)


@cli.command("sketch")
@click.argument("strokes_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default="sketch.png")
@click.option("--prompt", default="", help="Instruction, e.g. 'Make it realistic'")
@click.option("--width", type=int, default=512, show_default=True)
@click.option("--height", type=int, default=512, show_default=True)
@click.option("--raster-only", is_flag=True, help="Write the rasterized sketch without calling Gemini")
def sketch_cmd(strokes_path: Path, output: Path, prompt: str, width: int, height: int, raster_only: bool):
    """Turn a sketch into an image.

    STROKES_PATH is a JSON file holding a list of strokes, each a list of
    [x, y] drag points.
    """
    from . import sketch
    from .backends import BackendAdapter
    from .flow import ImageFlow

    try:
        drags = json.loads(strokes_path.read_text(encoding="utf-8"))
        strokes = sketch.strokes_from_points(drags)
    except (json.JSONDecodeError, TypeError, IndexError, ValueError) as e:
        raise click.ClickException(f"Could not read strokes: {e}") from e

    if raster_only:
        decoded = sketch.decode(sketch.rasterize(strokes, width, height))
        if decoded is None:
            raise click.ClickException("Canvas size must be positive.")
        output.parent.mkdir(parents=True, exist_ok=True)
        decoded.save(output)
        click.echo(click.style(f"Saved {output}", fg="green"))
        return

    store = _open_store()
    settings_ = store.load_settings()
    store.close()

    async def _run():
        async with BackendAdapter(settings_) as adapter:
            flow = ImageFlow(adapter, settings_, on_notice=_notice)
            await flow.generate_from_sketch(strokes, width, height, prompt)
            return flow

    _write_result(asyncio.run(_run()), output)


@cli.command()
def serve():
    """Start the MCP server (stdio transport)."""
    from .server import mcp

    mcp.run(transport="stdio")


@cli.command()
def stats():
    """Show statistics about your stored chats."""
    if not PREFS_PATH.exists():
        click.echo("No data found. Start a chat first:")
        click.echo("  aihub chat")
        return

    store = _open_store()
    s = store.get_stats()
    store.close()

    click.echo()
    click.echo(click.style("aihub Statistics", bold=True))
    click.echo(f"  Sessions:       {s['total_sessions']:,}")
    click.echo(f"  Messages:       {s['total_messages']:,}")
    click.echo(f"  Avg msgs/chat:  {s['avg_messages_per_session']}")
    if s["oldest_activity"]:
        click.echo(f"  Activity:       {s['oldest_activity']} → {s['newest_activity']}")

    db_size = sum(f.stat().st_size for f in PREFS_PATH.parent.glob(f"{PREFS_PATH.name}*") if f.is_file())
    click.echo(f"  Storage:        {db_size / 1024:.1f} KB")
    click.echo(f"  Location:       {DATA_DIR}")
    click.echo()


@cli.command()
@click.confirmation_option(prompt="This will delete all chats and settings. Are you sure?")
def reset():
    """Delete all stored data and start fresh."""
    if DATA_DIR.exists():
        shutil.rmtree(DATA_DIR)
        click.echo(f"Deleted {DATA_DIR}")
    else:
        click.echo("No data to delete.")
