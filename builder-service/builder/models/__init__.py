"""
Models package - schemas and prompt templates.

Exports:
- schemas: all data models shared by the pipeline
- prompts: system and chunk prompt templates
"""

from .schemas import (
    AppType,
    ComplexityLevel,
    NavigationStyle,
    DataNeeds,
    AppAnalysis,
    Chunk,
    PlanMetadata,
    GenerationPlan,
    RawFileSet,
    FileKind,
    FileAnalysis,
    ProgressKind,
    ProgressEvent,
)

__all__ = [
    "AppType",
    "ComplexityLevel",
    "NavigationStyle",
    "DataNeeds",
    "AppAnalysis",
    "Chunk",
    "PlanMetadata",
    "GenerationPlan",
    "RawFileSet",
    "FileKind",
    "FileAnalysis",
    "ProgressKind",
    "ProgressEvent",
]
