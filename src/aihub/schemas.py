"""Request and response shapes for the Mistral, Gemini and Pollinations APIs."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# Mistral chat completions


class WireMessage(BaseModel):
    role: str
    content: str | None = None


class ChatRequest(BaseModel):
    model: str
    messages: list[WireMessage]
    temperature: float


class Choice(BaseModel):
    message: WireMessage


class ChatResponse(BaseModel):
    choices: list[Choice] = []


# Gemini generateContent


class InlineData(BaseModel):
    """Base64 payload embedded in a request or response body."""

    model_config = ConfigDict(populate_by_name=True)

    mime_type: str = Field(validation_alias=AliasChoices("mime_type", "mimeType"))
    data: str


class GeminiPart(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str | None = None
    inline_data: InlineData | None = Field(
        default=None, validation_alias=AliasChoices("inline_data", "inlineData")
    )


class GeminiContent(BaseModel):
    parts: list[GeminiPart] = []
    role: str | None = None


class GeminiRequest(BaseModel):
    contents: list[GeminiContent]


class GeminiCandidate(BaseModel):
    content: GeminiContent | None = None


class GeminiPromptFeedback(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    block_reason: str | None = Field(
        default=None, validation_alias=AliasChoices("block_reason", "blockReason")
    )


class GeminiResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    candidates: list[GeminiCandidate] | None = None
    prompt_feedback: GeminiPromptFeedback | None = Field(
        default=None, validation_alias=AliasChoices("prompt_feedback", "promptFeedback")
    )

    def parts(self) -> list[GeminiPart]:
        """All parts across all candidates, in response order."""
        found: list[GeminiPart] = []
        for candidate in self.candidates or []:
            if candidate.content:
                found.extend(candidate.content.parts)
        return found
