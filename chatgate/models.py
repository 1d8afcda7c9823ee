from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class CompletionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    messages: list[ChatMessage]
    stream: bool = True

    def provider_messages(self) -> list[dict[str, Any]]:
        """Messages as plain dicts, in order, including any extra keys."""
        return [m.model_dump() for m in self.messages]


@dataclass(frozen=True)
class UploadResult:
    object_key: str
    public_url: str
    file_name: str
    content_type: str
    size_bytes: int
    was_preexisting: bool


class UploadResponse(BaseModel):
    model_config = ConfigDict(validate_by_name=True)

    message: str
    repeat: bool
    file_path: str = Field(alias="filePath")
    public_url: str = Field(alias="publicUrl")
    file_name: str = Field(alias="fileName")
    file_type: str = Field(alias="fileType")
    file_size: int = Field(alias="fileSize")

    @classmethod
    def from_result(cls, result: UploadResult) -> "UploadResponse":
        message = "File already exists" if result.was_preexisting else "File uploaded"
        return cls(
            message=message,
            repeat=result.was_preexisting,
            file_path=result.object_key,
            public_url=result.public_url,
            file_name=result.file_name,
            file_type=result.content_type,
            file_size=result.size_bytes,
        )
