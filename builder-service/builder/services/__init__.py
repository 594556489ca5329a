"""
Services - classification, generation and the orchestrating pipeline.
"""

from builder.services.pipeline import (
    default_pipeline,
    GenerationPipeline,
    PipelineError,
    PipelineResult,
    PipelineState,
    ChunkReport,
    run_pipeline,
)

__all__ = [
    'default_pipeline',
    'GenerationPipeline',
    'PipelineError',
    'PipelineResult',
    'PipelineState',
    'ChunkReport',
    'run_pipeline',
]
