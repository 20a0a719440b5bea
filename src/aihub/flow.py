"""Orchestration of user input, repository mutation and backend calls.

A flow is one input surface: it allows a single request in flight, checks
preconditions before any I/O, and turns every failure into a notice instead
of raising.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from enum import Enum

from PIL import Image

from . import sketch
from .backends import BackendAdapter, variant_for_settings
from .config import SKETCH_DEFAULT_PROMPT
from .errors import AIHubError, AuthMissing, EmptyResult, PreconditionFailure, SessionNotFound
from .models import Message, Role, Settings, Stroke
from .schemas import InlineData
from .sessions import SessionRepository

logger = logging.getLogger(__name__)

Notify = Callable[[str], None]


class FlowState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"


def _log_notice(text: str) -> None:
    logger.warning("%s", text)


class _Flow:
    def __init__(self, adapter: BackendAdapter, settings: Settings, on_notice: Notify | None = None):
        self.adapter = adapter
        self.settings = settings
        self.on_notice = on_notice or _log_notice
        self.state = FlowState.IDLE
        self._inflight: asyncio.Task | None = None
        self._left = False

    def _check_idle(self):
        if self.state is FlowState.SENDING:
            raise PreconditionFailure("A request is already in progress")

    async def _dispatch(self, history: Sequence[Message], options) -> Message | None:
        """Run one backend call; None means it was cancelled by ``leave``."""
        self._inflight = asyncio.ensure_future(self.adapter.generate(list(history), options))
        try:
            return await self._inflight
        except asyncio.CancelledError:
            if self._left:
                logger.debug("Dropped in-flight request after leaving")
                return None
            raise
        finally:
            self._inflight = None

    def leave(self):
        """Cancel the in-flight request, e.g. when the user navigates away."""
        self._left = True
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()


class ChatFlow(_Flow):
    """Chat surface bound to one session.

    ``transcript`` is what the user sees: the persisted messages plus
    system-role error notes, which are never written to the store.
    """

    def __init__(
        self,
        repository: SessionRepository,
        adapter: BackendAdapter,
        settings: Settings,
        session_id: str,
        on_notice: Notify | None = None,
    ):
        super().__init__(adapter, settings, on_notice)
        self.repository = repository
        self.session = repository.get_session(session_id)
        self.transcript: list[Message] = list(self.session.messages)

    async def send(self, prompt: str) -> Message | None:
        """Send a prompt; returns the reply, or None on any failure."""
        try:
            self._check_idle()
            if not prompt.strip():
                raise PreconditionFailure("Prompt is empty")
            if not self.settings.mistral_key.strip():
                raise AuthMissing("No Mistral Key!")
        except PreconditionFailure as e:
            self.on_notice(e.message)
            return None

        self.state = FlowState.SENDING
        self._left = False
        try:
            user_msg = Message(role=Role.USER, content=prompt)
            self.session = self.repository.append_message(self.session.id, user_msg)
            self.transcript.append(user_msg)

            options = variant_for_settings(self.settings, "chat")
            reply = await self._dispatch(self.session.messages, options)
            if reply is None:
                return None

            self.session = self.repository.append_message(self.session.id, reply)
            self.transcript.append(reply)
            return reply
        except SessionNotFound as e:
            self.on_notice(e.message)
            return None
        except AIHubError as e:
            self.transcript.append(Message(role=Role.SYSTEM, content=f"Error: {e.message}"))
            return None
        finally:
            self.state = FlowState.IDLE


class ImageFlow(_Flow):
    """Text-to-image and sketch-to-image surface.

    The decoded result lands in ``result_image``; a text answer (usually a
    refusal) is passed to ``on_notice`` instead.
    """

    def __init__(self, adapter: BackendAdapter, settings: Settings, on_notice: Notify | None = None):
        super().__init__(adapter, settings, on_notice)
        self.result_image: Image.Image | None = None
        self.result: Message | None = None

    async def generate(self, prompt: str) -> Message | None:
        if not prompt.strip():
            self.on_notice("Prompt is empty")
            return None
        options = variant_for_settings(self.settings, "image")
        return await self._run([Message(role=Role.USER, content=prompt)], options)

    async def generate_from_sketch(
        self, strokes: Sequence[Stroke], width: int, height: int, prompt: str = ""
    ) -> Message | None:
        if not self.settings.gemini_key.strip():
            self.on_notice("Set Gemini Key!")
            return None
        if not any(s.segments for s in strokes):
            self.on_notice("Draw first!")
            return None

        encoded = sketch.rasterize(strokes, width, height)
        if not encoded:
            self.on_notice("Canvas has no size yet")
            return None

        text = prompt if prompt.strip() else SKETCH_DEFAULT_PROMPT
        options = variant_for_settings(
            self.settings, "image", image=InlineData(mime_type="image/png", data=encoded)
        )
        return await self._run([Message(role=Role.USER, content=text)], options)

    async def _run(self, history: list[Message], options) -> Message | None:
        try:
            self._check_idle()
            credential = self.adapter.requires_credential(options)
            if credential is not None and not credential.strip():
                raise AuthMissing("Set Gemini Key!")
        except PreconditionFailure as e:
            self.on_notice(e.message)
            return None

        self.state = FlowState.SENDING
        self._left = False
        self.result_image = None
        self.result = None
        try:
            reply = await self._dispatch(history, options)
        except EmptyResult as e:
            self.on_notice(e.fallback_text or e.message)
            return None
        except AIHubError as e:
            self.on_notice(f"Error: {e.message}")
            return None
        finally:
            self.state = FlowState.IDLE

        if reply is None:
            return None
        if not reply.is_image:
            self.on_notice(reply.content)
            return reply

        self.result_image = sketch.decode(reply.content)
        if self.result_image is None:
            self.on_notice("Error: returned image could not be decoded")
            return None
        self.result = reply
        return reply
