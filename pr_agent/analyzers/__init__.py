"""Prompt rendering and model-response interpretation."""

from pr_agent.analyzers.inline_extractor import InlineAnnotationExtractor, extract_inline_comments
from pr_agent.analyzers.prompt_builder import PromptBuilder
from pr_agent.analyzers.response_normalizer import ResponseNormalizer

__all__ = [
    "InlineAnnotationExtractor",
    "PromptBuilder",
    "ResponseNormalizer",
    "extract_inline_comments",
]
