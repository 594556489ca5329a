"""
Prompt templates for chunked skeleton generation.

``prompts.APP_SKELETON`` holds the system prompt shared by every chunk of a
plan (output contract plus the analysis summary) and the per-chunk user
prompt naming the files that chunk must produce.
"""
from .templates import PromptLibrary, PromptTemplate, PromptType

prompts = PromptLibrary()


def get_template(prompt_type: PromptType) -> PromptTemplate:
    return prompts.get(prompt_type)


__all__ = ["PromptLibrary", "PromptTemplate", "PromptType", "prompts", "get_template"]
