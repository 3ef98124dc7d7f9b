"""Data models for conversion output."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class ConversionResult(BaseModel):
    """Summary of one export call."""

    mode: Literal["sections", "merged"] = "sections"
    output_path: Path  # Directory (sections) or file (merged)
    files: list[Path] = Field(default_factory=list)
    images_dir: Path | None = None
    images: list[str] = Field(default_factory=list)  # File names under images_dir
    warnings: list[str] = Field(default_factory=list)
