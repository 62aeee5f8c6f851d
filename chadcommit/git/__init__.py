"""Git Operations Package"""

from chadcommit.git.analyzer import GitAnalyzer, GitError, FileChange, StagedChanges, parse_name_status

__all__ = [
    "GitAnalyzer",
    "GitError",
    "FileChange",
    "StagedChanges",
    "parse_name_status",
]
