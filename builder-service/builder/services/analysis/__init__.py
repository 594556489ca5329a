"""
Prompt analysis - rule-based classification of app requests.
"""

from builder.services.analysis.prompt_classifier import (
    prompt_classifier,
    PromptClassifier,
    ClassificationError,
    classify,
    extract_app_name,
    ordered_features,
)

__all__ = [
    'prompt_classifier',
    'PromptClassifier',
    'ClassificationError',
    'classify',
    'extract_app_name',
    'ordered_features',
]
