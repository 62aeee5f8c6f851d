"""Streaming Chat Completion Package"""

from chadcommit.llm.base import (
    DEFAULT_ENDPOINT,
    MODELS,
    SYSTEM_PROMPT,
    ChatMessage,
    CompletionRequest,
    LLMError,
    MalformedStreamChunk,
    ProviderRejected,
    TransportFailure,
    validate_commit_message,
)
from chadcommit.llm.cancellation import CancellationSignal
from chadcommit.llm.session import CompletionSession
from chadcommit.llm.sse import SSEParser

__all__ = [
    "DEFAULT_ENDPOINT",
    "MODELS",
    "SYSTEM_PROMPT",
    "ChatMessage",
    "CompletionRequest",
    "LLMError",
    "MalformedStreamChunk",
    "ProviderRejected",
    "TransportFailure",
    "CancellationSignal",
    "CompletionSession",
    "SSEParser",
    "validate_commit_message",
]
