"""
Schema system for the app skeleton generator.

This module provides the data models shared by every pipeline stage.
"""

from .analysis import (
    AppType,
    ComplexityLevel,
    NavigationStyle,
    DataNeeds,
    AppAnalysis,
)

from .plan import (
    Chunk,
    PlanMetadata,
    GenerationPlan,
)

from .files import (
    RawFileSet,
    MIN_CONTENT_LENGTH,
    FileKind,
    FileAnalysis,
    clean_file_set,
    has_usable_content,
)

from .progress import (
    ProgressKind,
    ProgressFile,
    ProgressEvent,
    ProgressCallback,
)

__all__ = [
    # Analysis
    "AppType",
    "ComplexityLevel",
    "NavigationStyle",
    "DataNeeds",
    "AppAnalysis",

    # Plan
    "Chunk",
    "PlanMetadata",
    "GenerationPlan",

    # Files
    "RawFileSet",
    "MIN_CONTENT_LENGTH",
    "FileKind",
    "FileAnalysis",
    "clean_file_set",
    "has_usable_content",

    # Progress
    "ProgressKind",
    "ProgressFile",
    "ProgressEvent",
    "ProgressCallback",
]
