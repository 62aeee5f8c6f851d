"""Terminal Output Formatting Package"""

import re
import sys
import os


class Colors:
    """ANSI escape codes for terminal colors."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    CYAN = '\033[36m'
    MAGENTA = '\033[35m'


def _supports_color() -> bool:
    if os.environ.get('NO_COLOR'):
        return False
    if os.environ.get('FORCE_COLOR'):
        return True
    if not hasattr(sys.stdout, 'isatty') or not sys.stdout.isatty():
        return False
    if sys.platform == 'win32':
        try:
            import ctypes
            kernel32 = ctypes.windll.kernel32
            kernel32.SetConsoleMode(kernel32.GetStdHandle(-11), 7)
            return True
        except (AttributeError, OSError):
            return False
    return True


def _supports_unicode() -> bool:
    if sys.platform == 'win32':
        try:
            '✓'.encode(sys.stdout.encoding or 'utf-8')
            return True
        except (UnicodeEncodeError, LookupError):
            return False
    return True


COLORS_ENABLED = _supports_color()
UNICODE_ENABLED = _supports_unicode()

CHECK = '✓' if UNICODE_ENABLED else '[OK]'
CROSS = '✗' if UNICODE_ENABLED else '[X]'


def _colorize(text: str, *codes: str) -> str:
    if not COLORS_ENABLED:
        return text
    return f"{''.join(codes)}{text}{Colors.RESET}"


def success(text: str) -> str:
    return _colorize(text, Colors.GREEN)


def error(text: str) -> str:
    return _colorize(text, Colors.RED)


def warning(text: str) -> str:
    return _colorize(text, Colors.YELLOW)


def info(text: str) -> str:
    return _colorize(text, Colors.CYAN)


def dim(text: str) -> str:
    return _colorize(text, Colors.DIM)


def bold(text: str) -> str:
    return _colorize(text, Colors.BOLD)


def print_success(message: str) -> None:
    print(f"{success(CHECK)} {message}")


def print_error(message: str) -> None:
    print(f"{error(CROSS)} {error(message)}", file=sys.stderr)


def print_warning(message: str) -> None:
    print(f"{warning('⚠')} {warning(message)}" if UNICODE_ENABLED else f"[!] {message}")


COMMIT_TYPE_COLORS = {
    'feat': Colors.GREEN,
    'fix': Colors.RED,
    'refactor': Colors.YELLOW,
    'docs': Colors.CYAN,
    'test': Colors.MAGENTA,
    'perf': Colors.GREEN,
    'chore': Colors.DIM,
    'style': Colors.DIM,
    'ci': Colors.CYAN,
    'build': Colors.CYAN,
}


def colorize_commit_type(message: str) -> str:
    """Color the commit type prefix on the first line of a commit message."""
    if not COLORS_ENABLED:
        return message
    lines = message.split('\n')
    match = re.match(r'^(\W*)(\w+)(\([^)]*\))?(!?:?)', lines[0])
    if match:
        color = COMMIT_TYPE_COLORS.get(match.group(2))
        if color:
            lead = match.group(1)
            prefix = match.group(0)[len(lead):]
            lines[0] = lead + _colorize(prefix, Colors.BOLD, color) + lines[0][len(match.group(0)):]
    return '\n'.join(lines)


class StreamPrinter:
    """Text sink that echoes cumulative text as it grows.

    Each call receives the whole text so far; only the unseen tail is written.
    """

    def __init__(self, stream=None):
        self._stream = stream
        self._shown = 0

    @property
    def started(self) -> bool:
        return self._shown > 0

    def __call__(self, text: str) -> None:
        stream = self._stream or sys.stdout
        stream.write(text[self._shown:])
        stream.flush()
        self._shown = len(text)

    def finish(self) -> None:
        if self.started:
            (self._stream or sys.stdout).write('\n')
            self._shown = 0


__all__ = [
    "Colors", "COLORS_ENABLED", "UNICODE_ENABLED",
    "CHECK", "CROSS",
    "success", "error", "warning", "info", "dim", "bold",
    "print_success", "print_error", "print_warning",
    "colorize_commit_type", "StreamPrinter", "COMMIT_TYPE_COLORS",
]
