"""Prompt Builder - Turn staged changes into chat messages."""

from dataclasses import dataclass

from chadcommit.git import StagedChanges
from chadcommit.llm import ChatMessage, SYSTEM_PROMPT

# Longest request (characters across all messages) sent to the endpoint
DEFAULT_MAX_CHARS = 4500


class PromptError(Exception):
    """Raised when the assembled prompt can't be sent."""
    pass


@dataclass
class PromptConfig:
    """User-provided context that shapes the prompt."""
    prompt: str = SYSTEM_PROMPT
    hint: str | None = None


def request_cost(messages: list[ChatMessage]) -> int:
    """Characters across every message content."""
    return sum(len(m.content) for m in messages)


class PromptBuilder:
    """Constructs the system/user message pair for a suggestion."""

    def build(
        self,
        changes: StagedChanges,
        diffs: list[str],
        config: PromptConfig | None = None,
    ) -> list[ChatMessage]:
        config = config or PromptConfig()
        return [
            ChatMessage(role="system", content=config.prompt),
            ChatMessage(role="user", content=self._build_user_content(changes, diffs, config)),
        ]

    def _build_user_content(self, changes: StagedChanges, diffs: list[str], config: PromptConfig) -> str:
        deleted = [f"DELETED: {f.path};" for f in changes.deleted]
        renamed = [f"RENAMED: {f.original_path} to {f.path};" for f in changes.renamed]

        content = "\n\n".join([
            "\n".join(diffs),
            "\n".join(deleted),
            "\n".join(renamed),
        ])

        hint = self._build_hints_section(config)
        if hint:
            content = f"{content}\n\n{hint}"
        return content

    def _build_hints_section(self, config: PromptConfig) -> str:
        if not config.hint:
            return ""

        return f"""<context>
The developer provided this context about the changes:
"{config.hint}"
</context>"""

    def check_budget(self, messages: list[ChatMessage], max_chars: int = DEFAULT_MAX_CHARS) -> int:
        """Reject requests over the character budget. Returns the cost."""
        cost = request_cost(messages)
        if cost > max_chars:
            raise PromptError(
                f"Too many staged changes ({cost} characters, limit {max_chars}). "
                "Stage fewer files and try again."
            )
        return cost
