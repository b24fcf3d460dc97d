"""Result and option models for transcription and formatting calls."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_FORMAT_MODEL = "gpt-3.5-turbo"
DEFAULT_FORMAT_TEMPERATURE = 0.7
DEFAULT_FORMAT_MAX_TOKENS = 2000


@dataclass
class TranscriptionResult:
    """Outcome of one transcription job.

    Failures are values, not exceptions: ``success`` is False and ``error``
    carries a human-readable message.
    """

    success: bool
    text: Optional[str] = None
    error: Optional[str] = None
    duration: Optional[float] = None

    @classmethod
    def failure(cls, error: str) -> "TranscriptionResult":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization, omitting unset fields."""
        data: Dict[str, Any] = {"success": self.success}
        if self.text is not None:
            data["text"] = self.text
        if self.error is not None:
            data["error"] = self.error
        if self.duration is not None:
            data["duration"] = self.duration
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptionResult":
        """Create from dictionary."""
        return cls(
            success=bool(data["success"]),
            text=data.get("text"),
            error=data.get("error"),
            duration=data.get("duration"),
        )


@dataclass
class FormatResult:
    """Outcome of one formatting call."""

    success: bool
    formatted_text: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None
    model: Optional[str] = None
    error: Optional[str] = None
    details: Optional[Any] = None

    @classmethod
    def failure(cls, error: str, details: Optional[Any] = None) -> "FormatResult":
        return cls(success=False, error=error, details=details)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization, omitting unset fields."""
        data: Dict[str, Any] = {"success": self.success}
        for name in ("formatted_text", "usage", "model", "error", "details"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


class TranscriptionOptions(BaseModel):
    """Options forwarded to the transcription endpoint.

    Only fields that were set participate in cache key derivation, so
    ``TranscriptionOptions()`` and no options at all hit the same entry.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    language: Optional[Literal["ja", "en", "zh"]] = Field(
        None, description="Spoken language hint"
    )
    temperature: Optional[float] = Field(None, ge=0.0, le=1.0, description="Sampling temperature")
    response_format: Optional[Literal["json", "text"]] = Field(
        None, description="Response encoding requested from the service"
    )

    def to_key_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class FormatOptions(BaseModel):
    """Options for the text-formatting endpoint."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    prompt: Optional[str] = Field(None, description="System prompt override")
    model: Optional[str] = Field(None, description=f"Chat model (default {DEFAULT_FORMAT_MODEL})")
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, gt=0)

    def to_key_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

    @property
    def effective_model(self) -> str:
        return self.model or DEFAULT_FORMAT_MODEL

    @property
    def effective_temperature(self) -> float:
        return DEFAULT_FORMAT_TEMPERATURE if self.temperature is None else self.temperature

    @property
    def effective_max_tokens(self) -> int:
        return self.max_tokens or DEFAULT_FORMAT_MAX_TOKENS
