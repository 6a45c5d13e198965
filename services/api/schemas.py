from __future__ import annotations

from pydantic import BaseModel, Field


class FileOut(BaseModel):
    name: str = Field(..., description="Storage key the file was written under")
    original_name: str
    size: int = Field(..., ge=0)
    url: str
    thumbnail_url: str | None = None


class ErrorOut(BaseModel):
    error: str
    message: str
    details: dict[str, str] = Field(default_factory=dict)
