"""Git Analyzer - Extract staged changes from git."""

import subprocess
from dataclasses import dataclass, field

# First letter of a --name-status entry -> change status
STATUS_CODES = {
    'M': 'modified',
    'A': 'added',
    'D': 'deleted',
    'R': 'renamed',
    'C': 'copied',
    'T': 'type-changed',
}


@dataclass
class FileChange:
    """Represents a single staged file."""
    status: str
    path: str
    original_path: str | None = None

    @property
    def has_diff(self) -> bool:
        """Deleted and renamed files are described by a single line instead of a diff."""
        return self.status not in ('deleted', 'renamed')


@dataclass
class StagedChanges:
    """Complete picture of what's staged for commit."""
    files: list[FileChange] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def is_empty(self) -> bool:
        return len(self.files) == 0

    @property
    def deleted(self) -> list[FileChange]:
        return [f for f in self.files if f.status == 'deleted']

    @property
    def renamed(self) -> list[FileChange]:
        return [f for f in self.files if f.status == 'renamed']


class GitError(Exception):
    """Raised when git operations fail."""
    pass


def parse_name_status(output: str) -> list[FileChange]:
    """Parse 'git diff --name-status -M' output."""
    files = []
    for line in output.strip().split('\n'):
        parts = line.split('\t')
        if len(parts) < 2 or not parts[0]:
            continue
        status = STATUS_CODES.get(parts[0][0], 'modified')
        if status in ('renamed', 'copied') and len(parts) >= 3:
            files.append(FileChange(status=status, path=parts[2], original_path=parts[1]))
        else:
            files.append(FileChange(status=status, path=parts[1]))
    return files


class GitAnalyzer:
    """Extracts staged changes from git."""

    def __init__(self):
        self._verify_git_available()
        self._verify_in_repo()

    def _run_git(self, *args: str) -> str:
        """Run a git command and return stdout."""
        try:
            result = subprocess.run(
                ['git', *args],
                capture_output=True,
                text=True,
                check=True,
                encoding='utf-8',
                errors='replace'
            )
            return result.stdout
        except subprocess.CalledProcessError as e:
            raise GitError(f"Git command failed: git {' '.join(args)}\n{e.stderr}")
        except FileNotFoundError:
            raise GitError("Git is not installed or not in PATH")

    def _verify_git_available(self) -> None:
        """Fail fast if git isn't available."""
        try:
            self._run_git('--version')
        except GitError:
            raise GitError("Git is not installed or not in PATH")

    def _verify_in_repo(self) -> None:
        """Fail fast if we're not in a git repository."""
        try:
            self._run_git('rev-parse', '--git-dir')
        except GitError:
            raise GitError("Failed to find a Git repository!")

    def get_staged_changes(self) -> StagedChanges:
        output = self._run_git('diff', '--staged', '--name-status', '-M')
        if not output.strip():
            return StagedChanges()
        return StagedChanges(files=parse_name_status(output))

    def file_diff(self, path: str) -> str:
        """Staged diff of a single file."""
        return self._run_git('diff', '--staged', '--', path)

    def collect_diffs(self, changes: StagedChanges) -> list[str]:
        """Diffs of every staged file that is neither deleted nor renamed."""
        return [self.file_diff(f.path) for f in changes.files if f.has_diff]
