"""Uniform async adapter over the chat and image generation backends.

Each backend is a tagged variant with its own request/response mapping:

- ``ChatVariant``: Mistral chat completions, bearer credential.
- ``MultimodalVariant``: Gemini ``generateContent``, query-string credential,
  text parts plus an optional inline image.
- ``ImageUrlVariant``: Pollinations image-by-URL, no credential, raw image body.

All of them normalize into a single ``Message``. Image results are returned as
data-URI messages.
"""

from __future__ import annotations

import base64
import logging
import random
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Annotated, Literal
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, ValidationError

from .config import (
    CHAT_TEMPERATURE,
    DEFAULT_CHAT_MODEL,
    DEFAULT_IMAGE_MODEL,
    GEMINI_BASE_URL,
    IMAGE_DEFAULT_SIZE,
    MISTRAL_BASE_URL,
    POLLINATIONS_MODEL,
    POLLINATIONS_URL_TEMPLATE,
    REQUEST_TIMEOUT_SECONDS,
)
from .errors import AuthMissing, EmptyResult, MalformedResponse, PreconditionFailure, TransportError
from .models import Message, Role, Settings
from .schemas import (
    ChatRequest,
    ChatResponse,
    GeminiContent,
    GeminiPart,
    GeminiRequest,
    GeminiResponse,
    InlineData,
    WireMessage,
)

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)


class ChatVariant(BaseModel):
    kind: Literal["chat"] = "chat"
    model: str = DEFAULT_CHAT_MODEL
    temperature: float = CHAT_TEMPERATURE


class MultimodalVariant(BaseModel):
    kind: Literal["multimodal"] = "multimodal"
    model: str = DEFAULT_IMAGE_MODEL
    image: InlineData | None = None


class ImageUrlVariant(BaseModel):
    kind: Literal["image_url"] = "image_url"
    width: int = IMAGE_DEFAULT_SIZE
    height: int = IMAGE_DEFAULT_SIZE


BackendVariant = Annotated[
    ChatVariant | MultimodalVariant | ImageUrlVariant, Field(discriminator="kind")
]


def variant_for_settings(
    settings: Settings,
    kind: Literal["chat", "image"] = "chat",
    image: InlineData | None = None,
) -> BackendVariant:
    """Pick the variant matching the saved model choice."""
    if kind == "chat":
        return ChatVariant(model=settings.chat_model)
    if settings.image_model == POLLINATIONS_MODEL and image is None:
        return ImageUrlVariant()
    model = DEFAULT_IMAGE_MODEL if settings.image_model == POLLINATIONS_MODEL else settings.image_model
    return MultimodalVariant(model=model, image=image)


def _inline_from_data_uri(content: str) -> InlineData:
    header, data = content.split(",", 1)
    return InlineData(mime_type=header[len("data:"):].split(";", 1)[0], data=data)


def _require(credential: str, name: str) -> str:
    if not credential.strip():
        raise AuthMissing(f"No {name} key configured")
    return credential.strip()


class BackendAdapter:
    """Dispatches a message history to one backend variant.

    The HTTP client is injected; when none is given the adapter creates and
    owns one with a fixed timeout.
    """

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
        *,
        mistral_base_url: str = MISTRAL_BASE_URL,
        gemini_base_url: str = GEMINI_BASE_URL,
        image_url_template: str = POLLINATIONS_URL_TEMPLATE,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        token_factory: Callable[[], int] | None = None,
    ) -> None:
        self.settings = settings
        self.mistral_base_url = mistral_base_url.rstrip("/")
        self.gemini_base_url = gemini_base_url.rstrip("/")
        self.image_url_template = image_url_template
        self.timeout = timeout
        self._token_factory = token_factory or (lambda: random.randint(0, 999_999_999))
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> BackendAdapter:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            await self._client.aclose()

    def requires_credential(self, options: BackendVariant) -> str | None:
        """Return the credential the variant authenticates with, or None."""
        if isinstance(options, ChatVariant):
            return self.settings.mistral_key
        if isinstance(options, MultimodalVariant):
            return self.settings.gemini_key
        return None

    async def generate(
        self,
        history: Sequence[Message],
        options: BackendVariant,
    ) -> Message:
        """Send the whole ordered history to the backend and normalize the reply."""
        if isinstance(options, ChatVariant):
            return await self._generate_chat(history, options)
        if isinstance(options, MultimodalVariant):
            return await self._generate_multimodal(history, options)
        if isinstance(options, ImageUrlVariant):
            return await self._generate_image_url(history, options)
        raise TypeError(f"Unsupported backend variant: {type(options).__name__}")

    async def _send(self, label: str, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, timeout=self.timeout, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("%s request timed out: %s", label, e)
            raise TransportError(f"{label} request timed out") from e
        except httpx.HTTPError as e:
            logger.warning("%s request failed: %s", label, e)
            raise TransportError(f"{label} request failed: {e}") from e

        if not response.is_success:
            body = response.text
            logger.warning("%s returned HTTP %d: %s", label, response.status_code, body[:200])
            raise TransportError(
                f"{label} returned HTTP {response.status_code}", response.status_code, body
            )
        return response

    @staticmethod
    def _parse(label: str, response: httpx.Response, model: type[BaseModel]):
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MalformedResponse(
                f"{label} returned an unexpected response", response.status_code, response.text
            ) from e

    async def _generate_chat(self, history: Sequence[Message], options: ChatVariant) -> Message:
        key = _require(self.settings.mistral_key, "Mistral")
        request = ChatRequest(
            model=options.model,
            messages=[WireMessage(role=m.role, content=m.content) for m in history],
            temperature=options.temperature,
        )
        response = await self._send(
            "Mistral",
            "POST",
            f"{self.mistral_base_url}/v1/chat/completions",
            headers={"Authorization": f"Bearer {key}"},
            json=request.model_dump(),
        )
        parsed: ChatResponse = self._parse("Mistral", response, ChatResponse)

        if not parsed.choices or not parsed.choices[0].message.content:
            raise EmptyResult("Mistral returned no completion")
        return Message(role=Role.ASSISTANT, content=parsed.choices[0].message.content)

    async def _generate_multimodal(
        self, history: Sequence[Message], options: MultimodalVariant
    ) -> Message:
        key = _require(self.settings.gemini_key, "Gemini")
        parts = [
            GeminiPart(inline_data=_inline_from_data_uri(m.content)) if m.is_image else GeminiPart(text=m.content)
            for m in history
        ]
        if options.image is not None:
            parts.append(GeminiPart(inline_data=options.image))
        if not parts:
            raise PreconditionFailure("Nothing to send")

        request = GeminiRequest(contents=[GeminiContent(parts=parts)])
        response = await self._send(
            "Gemini",
            "POST",
            f"{self.gemini_base_url}/v1beta/models/{options.model}:generateContent",
            params={"key": key},
            json=request.model_dump(exclude_none=True),
        )
        parsed: GeminiResponse = self._parse("Gemini", response, GeminiResponse)

        found = parsed.parts()
        for part in found:
            if part.inline_data is not None and part.inline_data.data:
                return Message.image(part.inline_data.mime_type, part.inline_data.data)

        # No image: the model usually explains a refusal in its first text part
        for part in found:
            if part.text:
                logger.info("Gemini returned text instead of an image")
                return Message(role=Role.ASSISTANT, content=part.text)

        feedback = parsed.prompt_feedback
        if feedback is not None and feedback.block_reason:
            raise EmptyResult(
                "No image returned", fallback_text=f"Request blocked: {feedback.block_reason}"
            )
        raise EmptyResult("No image returned")

    async def _generate_image_url(
        self, history: Sequence[Message], options: ImageUrlVariant
    ) -> Message:
        if not history or not history[-1].content.strip():
            raise PreconditionFailure("Prompt is empty")

        url = self.image_url_template.format(
            prompt=quote(history[-1].content, safe=""),
            token=self._token_factory(),
            width=options.width,
            height=options.height,
        )
        response = await self._send("Pollinations", "GET", url)

        mime_type = response.headers.get("content-type", "image/jpeg").split(";", 1)[0].strip()
        if not mime_type.startswith("image/"):
            raise MalformedResponse(
                f"Pollinations returned {mime_type} instead of an image",
                response.status_code,
                response.text[:500],
            )
        if not response.content:
            raise EmptyResult("No image returned")

        return Message.image(mime_type, base64.b64encode(response.content).decode("ascii"))
