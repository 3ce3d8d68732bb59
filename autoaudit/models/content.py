from typing import Optional
from pydantic import BaseModel, Field, model_validator


class SourceFile(BaseModel):
    filename: str
    content: bytes

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return ""
        return self.filename.rsplit(".", 1)[-1].lower()


class ExtractedContent(BaseModel):
    """Either inline text or an opaque binary blob, never both"""
    text: Optional[str] = None
    binary: Optional[bytes] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _one_payload(self):
        if (self.text is None) == (self.binary is None):
            raise ValueError("exactly one of text or binary must be set")
        if self.binary is not None and not self.mime_type:
            raise ValueError("binary content requires a mime type")
        if self.text is not None and self.mime_type is not None:
            raise ValueError("text content carries no mime type")
        return self

    @property
    def is_binary(self) -> bool:
        return self.binary is not None
