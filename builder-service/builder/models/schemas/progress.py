"""
Progress events reported to observers while a plan executes.
"""
from typing import Callable, Optional
from enum import Enum
from pydantic import BaseModel, Field


class ProgressKind(str, Enum):
    LOG = "log"
    FILE_COMPLETE = "file_complete"
    COMPLETE = "complete"
    ERROR = "error"


class ProgressFile(BaseModel):
    """File payload attached to file_complete events"""
    path: str
    content: str
    is_complete: bool = True


class ProgressEvent(BaseModel):
    """Progress update during generation"""
    kind: ProgressKind
    message: str = ""
    file: Optional[ProgressFile] = None
    progress_fraction: Optional[float] = Field(default=None, ge=0.0, le=1.0)


ProgressCallback = Callable[[ProgressEvent], None]
