"""FastMCP server exposing chat sessions and image generation as tools."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone

from mcp.server.fastmcp import FastMCP, Image

from .backends import BackendAdapter
from .config import LOG_FORMAT, PREFS_PATH
from .errors import SessionNotFound
from .flow import ChatFlow, ImageFlow
from .sessions import SessionRepository
from .storage import PreferenceStore

# Logging to stderr only: stdout is the MCP JSON-RPC transport
logging.basicConfig(
    level=logging.WARNING,
    format=LOG_FORMAT,
    stream=sys.stderr,
)

mcp = FastMCP(
    "aihub",
    instructions=(
        "Chat with Mistral models and generate images with Gemini. "
        "Use list_sessions to browse saved chats and get_session to read one. "
        "Use create_session and send_message to continue a conversation. "
        "Use generate_image to create an image from a text prompt."
    ),
)

# Singletons reused across tool calls
_store: PreferenceStore | None = None
_repository: SessionRepository | None = None


def _get_store() -> PreferenceStore:
    global _store
    if _store is None:
        _store = PreferenceStore(PREFS_PATH)
    return _store


def _get_repository() -> SessionRepository:
    global _repository
    if _repository is None:
        _repository = SessionRepository(_get_store())
    return _repository


def _format_ts(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


@mcp.tool()
def list_sessions(limit: int = 20) -> str:
    """List saved chat sessions, newest first.

    Args:
        limit: Maximum number of sessions (default 20)
    """
    sessions = _get_repository().list_sessions()[:limit]
    if not sessions:
        return "No chat sessions yet. Use create_session to start one."

    lines = [f"{len(sessions)} chat sessions:\n"]
    for i, s in enumerate(sessions, 1):
        lines.append(f"{i}. **{s.title}** ({_format_ts(s.last_modified)})")
        lines.append(f"   ID: `{s.id}` | {len(s.messages)} msgs")
    return "\n".join(lines)


@mcp.tool()
def get_session(session_id: str) -> str:
    """Read a full chat transcript.

    Args:
        session_id: The session ID (from list_sessions)
    """
    try:
        session = _get_repository().get_session(session_id)
    except SessionNotFound as e:
        return e.message

    lines = [f"# {session.title}", f"Last activity: {_format_ts(session.last_modified)}", ""]
    for msg in session.messages:
        content = "[image]" if msg.is_image else msg.content
        lines.append(f"**{msg.role.capitalize()}**: {content}")
        lines.append("")
    return "\n".join(lines)


@mcp.tool()
def create_session() -> str:
    """Create an empty chat session and return its ID."""
    return _get_repository().create_session().id


@mcp.tool()
def delete_session(session_id: str) -> str:
    """Delete a chat session.

    Args:
        session_id: The session ID to delete
    """
    _get_repository().delete_session(session_id)
    return f"Deleted {session_id}"


@mcp.tool()
async def send_message(session_id: str, prompt: str) -> str:
    """Send a message in a chat session and return the assistant's reply.

    Args:
        session_id: The session ID (from create_session or list_sessions)
        prompt: The user message
    """
    repository = _get_repository()
    settings = _get_store().load_settings()
    notices: list[str] = []

    try:
        async with BackendAdapter(settings) as adapter:
            flow = ChatFlow(repository, adapter, settings, session_id, on_notice=notices.append)
            reply = await flow.send(prompt)
    except SessionNotFound as e:
        return e.message

    if reply is not None:
        return reply.content
    if notices:
        return "\n".join(notices)
    return flow.transcript[-1].content


@mcp.tool()
async def generate_image(prompt: str):
    """Generate an image from a text prompt with the saved image model.

    Args:
        prompt: What the image should show
    """
    settings = _get_store().load_settings()
    notices: list[str] = []

    async with BackendAdapter(settings) as adapter:
        flow = ImageFlow(adapter, settings, on_notice=notices.append)
        reply = await flow.generate(prompt)

    if reply is not None and flow.result_image is not None:
        fmt = reply.content[len("data:image/"):].split(";", 1)[0]
        return Image(data=reply.image_bytes(), format=fmt)
    return "\n".join(notices) or "No image returned"
