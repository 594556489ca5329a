"""
File set models shared by every stage after parsing.

A ``RawFileSet`` maps relative, slash-separated, extension-included paths to
file contents. It is the only file shape used inside the pipeline.
"""
from typing import Dict, List, Mapping
from enum import Enum
from pydantic import BaseModel, Field

RawFileSet = Dict[str, str]

MIN_CONTENT_LENGTH = 10


class FileKind(str, Enum):
    """Canonical file categories used for relocation"""
    SCREEN = "screen"
    COMPONENT = "component"
    NAVIGATION = "navigation"
    CONFIG = "config"
    UTIL = "util"
    ASSET = "asset"
    ROOT = "root"


class FileAnalysis(BaseModel):
    """Per-file classification result; transient"""
    original_path: str
    suggested_path: str
    file_kind: FileKind
    imports_found: List[str] = Field(default_factory=list)
    exports_found: List[str] = Field(default_factory=list)
    pinned: bool = False

    @property
    def relocated(self) -> bool:
        return self.original_path != self.suggested_path


def has_usable_content(content: object, min_length: int = MIN_CONTENT_LENGTH) -> bool:
    """True when content is a string longer than min_length once stripped"""
    return isinstance(content, str) and len(content.strip()) > min_length


def clean_file_set(files: Mapping[str, str], min_length: int = MIN_CONTENT_LENGTH) -> RawFileSet:
    """Drop empty, whitespace-only, and too-short entries, keeping order"""
    return {
        path: content
        for path, content in files.items()
        if path and has_usable_content(content, min_length)
    }
