"""Chat Completion Types and Errors"""

import re
from dataclasses import dataclass

from chadcommit import COMMIT_TYPE_NAMES


DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"

MODELS = (
    "gpt-3.5-turbo",
    "gpt-4",
    "gpt-4-1106-preview",
    "gpt-3.5-turbo-0125",
)

ROLES = ("system", "user", "assistant")

# Emoji in the example lines are part of the suggested format
SYSTEM_PROMPT = (
    "Analyze a git diff and make a short conventional commit message, follow this template: "
    "🚀feat(scope) [message]\n🛠️refactor(scope) [message]\n⚙️chore(scope) [message]; "
    "Response example: 🚀feat(player) add captions\n🛠️refactor(player) support new formats\n"
    "⚙️chore(dependencies) upgrade terser to 5.16.6"
)


def validate_commit_message(content: str) -> tuple[bool, str]:
    """Check that a finished response looks like a conventional commit message."""
    if not content or len(content.strip()) < 10:
        return False, "Response too short"

    types_pattern = '|'.join(COMMIT_TYPE_NAMES)
    # Leading emoji and the colon are optional in the default template
    pattern = rf'^\W*({types_pattern})(\(.+?\))?!?:?\s'
    first_line = content.strip().split('\n')[0]

    if not re.match(pattern, first_line):
        return False, f"Missing conventional commit format. Got: {first_line[:50]}"

    return True, ""


@dataclass(frozen=True)
class ChatMessage:
    """One role-tagged message of a chat completion request."""
    role: str
    content: str

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role}")

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class CompletionRequest:
    """Immutable body of one streaming chat completion call."""
    messages: tuple[ChatMessage, ...]
    model: str
    max_tokens: int = 256

    @property
    def stream(self) -> bool:
        return True

    def to_payload(self) -> dict:
        return {
            "messages": [m.to_dict() for m in self.messages],
            "model": self.model,
            "max_tokens": self.max_tokens,
            "stream": self.stream,
        }


class LLMError(Exception):
    """Raised when a completion request fails."""
    pass


class ProviderRejected(LLMError):
    """The endpoint answered with an error instead of a stream."""

    def __init__(self, status_code: int, code: str = "unknown", message: str = ""):
        self.status_code = status_code
        self.code = code
        self.message = message
        detail = f"OpenAI: {status_code} {code}"
        if message:
            detail += f" - {message}"
        super().__init__(detail)


class MalformedStreamChunk(LLMError):
    """A data: line of the event stream did not hold valid JSON."""

    def __init__(self, line: str):
        self.line = line
        super().__init__(f"Malformed stream chunk: {line[:80]!r}")


class TransportFailure(LLMError):
    """The connection failed before or during streaming."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Connection to OpenAI failed: {str(cause) or type(cause).__name__}")
