"""Prompt Construction Package"""

from chadcommit.prompts.builder import PromptBuilder, PromptConfig, PromptError, request_cost, DEFAULT_MAX_CHARS

__all__ = [
    "PromptBuilder",
    "PromptConfig",
    "PromptError",
    "request_cost",
    "DEFAULT_MAX_CHARS",
]
