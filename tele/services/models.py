"""Wire-level data models for the remote AI services.

``AnalysisRecord`` and ``PromptRecord`` are decoded from untrusted model
output, so every field is validated. The ``synthetic`` flag is a private
attribute: validation never reads it and serialization never writes it. Only
``as_synthetic()`` sets it.
"""

from __future__ import annotations

from typing import Annotated, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class _LocalRecord(BaseModel):
    """Record that can be marked as locally synthesized."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    _synthetic: bool = PrivateAttr(default=False)

    @property
    def synthetic(self) -> bool:
        return self._synthetic

    def as_synthetic(self) -> Self:
        """Return a copy flagged as produced by a mock service."""
        copy = self.model_copy()
        copy._synthetic = True
        return copy


class AnalysisRecord(_LocalRecord):
    """Scene analysis of the full frame and its zoomed crop."""

    capture_id: str | None = None
    scene_summary_full: str | None = None
    scene_summary_crop: str | None = None
    quality_flags_crop: str | None = None
    constraints: str | None = None

    def missing_required_fields(self) -> list[str]:
        """Return the names of fields the consistency check needs but lacks."""
        required = {
            "scene_summary_full": self.scene_summary_full,
            "scene_summary_crop": self.scene_summary_crop,
            "quality_flags_crop": self.quality_flags_crop,
        }
        return [name for name, value in required.items() if not (value or "").strip()]

    @property
    def combined_summary(self) -> str:
        """Return the full and crop summaries joined as one text."""
        return " ".join(part for part in (self.scene_summary_full, self.scene_summary_crop) if part)


class PromptRecord(_LocalRecord):
    """Enhancement prompt compiled from an analysis."""

    capture_id: str | None = None
    nb_prompt: str = Field(min_length=1)
    nb_negative: str = ""
    render_notes: str | None = None


class TextPart(BaseModel):
    """Plain-text chat content part."""

    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    url: str


class ImagePart(BaseModel):
    """Inline image chat content part, carried as a data URL."""

    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl

    @classmethod
    def from_base64(cls, encoded: str, mime_type: str = "image/jpeg") -> ImagePart:
        """Build an image part from base64 data."""
        return cls(image_url=ImageUrl(url=f"data:{mime_type};base64,{encoded}"))


ContentPart = Annotated[TextPart | ImagePart, Field(discriminator="type")]


class ChatMessage(BaseModel):
    """One chat-completions message."""

    role: Literal["system", "user", "assistant"]
    content: list[ContentPart]

    @classmethod
    def text(cls, role: Literal["system", "user", "assistant"], text: str) -> ChatMessage:
        """Build a single-part text message."""
        return cls(role=role, content=[TextPart(text=text)])

    def to_payload(self) -> dict[str, object]:
        """Serialize for the request body.

        Single text parts are flattened to a plain string, which every
        OpenAI-compatible backend accepts; anything else stays a part list.
        """
        if len(self.content) == 1 and isinstance(self.content[0], TextPart):
            return {"role": self.role, "content": self.content[0].text}
        return {"role": self.role, "content": [part.model_dump() for part in self.content]}


class ChatResponseMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str = "assistant"
    content: str | None = None


class ChatChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    index: int = 0
    message: ChatResponseMessage
    finish_reason: str | None = None


class ChatCompletionResponse(BaseModel):
    """Subset of a chat-completions response the pipeline reads."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    model: str | None = None
    choices: list[ChatChoice] = Field(default_factory=list)

    @property
    def first_content(self) -> str:
        """Return the first choice's text, or an empty object when absent."""
        if not self.choices or not self.choices[0].message.content:
            return "{}"
        return self.choices[0].message.content
