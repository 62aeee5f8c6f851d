"""
chadCommit

Streams a suggested commit message for the staged git changes.
"""

__version__ = "0.3.5"

# Centralized commit types - single source of truth
# Used by: cli/utils.py (cleanup), llm/base.py (validation)
COMMIT_TYPES = {
    'feat': 'A new feature or capability',
    'fix': 'A bug fix',
    'refactor': 'Code restructuring without behavior change',
    'chore': 'Maintenance tasks, dependencies, tooling',
    'docs': 'Documentation only changes',
    'test': 'Adding or updating tests',
    'style': 'Formatting, whitespace, no code change',
    'perf': 'Performance improvement',
    'ci': 'CI/CD configuration changes',
    'build': 'Build system or external dependency changes',
}

COMMIT_TYPE_NAMES = list(COMMIT_TYPES.keys())
