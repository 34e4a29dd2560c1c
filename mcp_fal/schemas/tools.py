from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GenerateImageArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prompt: str | None = None
    output_path: str | None = None
    model: str | None = None
    reference_images: list[str] | None = None
    aspect_ratio: str | None = None
    output_format: str = "png"
    resolution: str = "1K"
    num_images: int = 1
    enable_web_search: bool = False


class TextContent(BaseModel):
    type: str = "text"
    text: str


class ToolResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: list[TextContent]
    is_error: bool = Field(default=False, alias="isError")
    meta: dict[str, Any] | None = Field(default=None, alias="_meta")

    @classmethod
    def text(cls, text: str, meta: dict[str, Any] | None = None) -> "ToolResult":
        return cls(content=[TextContent(text=text)], meta=meta)

    @classmethod
    def error(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=f"Error: {text}")], is_error=True)

    def to_dict(self) -> dict[str, Any]:
        """Protocol shape: isError only when set, _meta only when present."""
        out = self.model_dump(by_alias=True, exclude_none=True)
        if not self.is_error:
            out.pop("isError", None)
        return out
