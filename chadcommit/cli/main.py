"""CLI Main Entry Point"""

import asyncio
import logging
import os
import signal
import sys
import time

from chadcommit.config import Config, load_config
from chadcommit.coordinator import InvocationCoordinator
from chadcommit.git import GitAnalyzer, GitError, StagedChanges
from chadcommit.llm import CancellationSignal, CompletionRequest, CompletionSession, validate_commit_message
from chadcommit.prompts import PromptBuilder, PromptConfig
from chadcommit.output import success, warning, dim, bold, print_error, print_warning, CHECK, StreamPrinter, colorize_commit_type

from chadcommit.cli.args import parse_args
from chadcommit.cli.commands import display_config, run_setup, run_install_completion
from chadcommit.cli.utils import FileSink, clean_commit_message, copy_to_clipboard, edit_message

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    'modified': 'M',
    'added': 'A',
    'deleted': 'D',
    'renamed': 'R',
    'copied': 'C',
    'type-changed': 'T',
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    # httpx/httpcore debug output drowns the stream
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _display_file_list(changes: StagedChanges, max_shown: int = 8) -> None:
    """Show which files will be analyzed, collapsing long lists."""
    if changes.is_empty:
        return
    print(bold("Staged changes:"))
    shown = changes.files[:max_shown]
    remaining = changes.total_files - len(shown)
    for change in shown:
        label = STATUS_LABELS.get(change.status, '?')
        if change.original_path:
            print(dim(f"  {label} {change.original_path} -> {change.path}"))
        else:
            print(dim(f"  {label} {change.path}"))
    if remaining > 0:
        print(dim(f"  ... and {remaining} more files"))


def _display_message(message: str) -> None:
    """Display commit message with horizontal rules and colored type."""
    colored = colorize_commit_type(message)
    lines = colored.split('\n')
    # Use raw message for width calculation (no ANSI codes)
    raw_lines = message.split('\n')
    width = max((len(line) for line in raw_lines), default=40)
    print(f"\n{dim('─' * width)}")
    print(bold(lines[0]))
    for line in lines[1:]:
        print(line)
    print(dim('─' * width))


def _copy_and_report(message: str, no_copy: bool) -> None:
    """Copy message to clipboard and print result."""
    if no_copy:
        return
    copied, reason = copy_to_clipboard(message)
    if copied:
        print(f"{success(CHECK)} Copied to clipboard!")
    else:
        print(f"{warning('!')} Could not copy to clipboard{': ' + reason if reason else ''}")
        print(dim("  Select the message above to copy manually."))


def _apply_overrides(args, config: Config) -> Config:
    """Resolve API key and model.

    Precedence: CLI args > environment variables > config file
    """
    config.api_key = os.environ.get('OPENAI_API_KEY') or config.api_key
    config.model = args.model or os.environ.get('CHADCOMMIT_MODEL') or config.model
    for message in config.validate():
        print(f"Config warning: {message}", file=sys.stderr)
    return config


class SuggestJob:
    """One suggestion: staged changes -> prompt -> streamed completion.

    Called by the coordinator with a fresh cancellation signal per run.
    """

    def __init__(self, config: Config, hint: str | None = None, output: str | None = None,
                 is_pipe: bool = False, session: CompletionSession | None = None):
        self.config = config
        self.hint = hint
        self.output = output
        self.is_pipe = is_pipe
        self.session = session or CompletionSession(endpoint=config.endpoint, timeout=config.timeout)
        self.builder = PromptBuilder()
        self.timings: dict[str, float] = {}
        self.cost = 0
        self.printer: StreamPrinter | None = None

    def _make_sink(self):
        sinks = []
        self.printer = None
        if not self.is_pipe:
            self.printer = StreamPrinter()
            sinks.append(self.printer)
        if self.output:
            sinks.append(FileSink(self.output))

        def sink(text: str) -> None:
            for s in sinks:
                s(text)

        return sink

    def _build_request(self) -> CompletionRequest:
        self.config.require_ready()

        t0 = time.time()
        analyzer = GitAnalyzer()
        changes = analyzer.get_staged_changes()
        if changes.is_empty:
            raise GitError("No staged changes. Run 'git add' first.")
        diffs = analyzer.collect_diffs(changes)
        self.timings['git'] = time.time() - t0

        if not self.is_pipe:
            _display_file_list(changes, self.config.max_file_display)

        messages = self.builder.build(changes, diffs, PromptConfig(prompt=self.config.prompt, hint=self.hint))
        self.cost = self.builder.check_budget(messages, self.config.max_request_chars)
        logger.debug("Request: %d messages, %d chars", len(messages), self.cost)

        return CompletionRequest(
            messages=tuple(messages),
            model=self.config.model,
            max_tokens=self.config.max_tokens,
        )

    async def __call__(self, cancel_signal: CancellationSignal) -> str | None:
        request = self._build_request()

        if not self.is_pipe:
            print(f"\nAsking {bold(request.model)}... {dim('(Ctrl-C to cancel)')}\n", flush=True)

        t0 = time.time()
        try:
            return await self.session.start(request, self.config.api_key, cancel_signal, self._make_sink())
        finally:
            self.timings['generate'] = time.time() - t0
            if self.printer:
                self.printer.finish()


def _confirm_cancel() -> bool:
    print(dim("\nCancelling..."), file=sys.stderr, flush=True)
    return True


async def _trigger(coordinator: InvocationCoordinator) -> str | None:
    """Run one invocation, routing Ctrl-C to the coordinator as a second trigger.

    Ctrl-C only ever cancels. It is ignored once the coordinator is idle, so
    a burst of presses never starts a new invocation. Pressing it is already
    the user's choice to cancel, so the confirmation (`_confirm_cancel`)
    always accepts and just prints a notice.
    """
    loop = asyncio.get_running_loop()
    offering = False

    async def offer_cancel():
        nonlocal offering
        if offering or not coordinator.busy:
            return
        offering = True
        try:
            await coordinator.trigger()
        finally:
            offering = False

    try:
        loop.add_signal_handler(signal.SIGINT, lambda: asyncio.ensure_future(offer_cancel()))
        installed = True
    except (NotImplementedError, RuntimeError):
        # Windows event loops: Ctrl-C arrives as KeyboardInterrupt instead
        installed = False

    try:
        return await coordinator.trigger()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def _print_verbose_stats(args, is_pipe: bool, job: SuggestJob, message: str) -> None:
    """Print request size and timing statistics."""
    if not args.verbose or is_pipe:
        return
    print()
    print(dim(f"  Request: {job.cost} chars (limit {job.config.max_request_chars})"))
    print(dim(f"  Response: {len(message)} chars"))
    print(dim(f"  Timings: git={job.timings.get('git', 0):.2f}s, generate={job.timings.get('generate', 0):.2f}s"))


def _handle_interactive_action(job: SuggestJob, message: str):
    """Handle interactive edit/regenerate prompt.

    Returns:
        tuple: (action, message) where action is 'done', 'edited', or 'regenerate'
    """
    try:
        action = input(f"\n{dim('(e)dit, (r)egenerate, or Enter to accept: ')}").strip().lower()
    except (KeyboardInterrupt, EOFError):
        return 'done', message

    if action == 'e':
        edited = edit_message(message)
        if edited:
            return 'edited', edited
        return 'done', message
    elif action == 'r':
        try:
            regen_hint = input(f"{dim('  Hint (Enter to skip): ')}").strip()
        except (KeyboardInterrupt, EOFError):
            return 'done', message
        if regen_hint:
            job.hint = regen_hint
        return 'regenerate', message

    return 'done', message


def _generate_commit_flow(args, config: Config) -> int:
    """Main commit message generation flow.

    Returns:
        int: Exit code
    """
    is_pipe = not sys.stdout.isatty()
    is_interactive = sys.stdin.isatty() and not is_pipe

    failures: list[Exception] = []
    job = SuggestJob(config, hint=args.hint, output=args.output, is_pipe=is_pipe)
    coordinator = InvocationCoordinator(job, _confirm_cancel, failures.append)

    while True:
        failures.clear()
        try:
            result = asyncio.run(_trigger(coordinator))
        except KeyboardInterrupt:
            result = None

        if failures:
            print_error(str(failures[0]))
            return 1
        if result is None:
            print(dim("Cancelled."), file=sys.stderr)
            return 0

        message = clean_commit_message(result)
        if not message:
            print_error("Empty response from OpenAI. Try again or change the prompt.")
            return 1
        if args.output:
            FileSink(args.output)(message)

        _print_verbose_stats(args, is_pipe, job, message)

        # Pipe mode: output raw message and exit
        if is_pipe:
            print(message)
            return 0

        is_valid, reason = validate_commit_message(message)
        if not is_valid:
            print_warning(reason)

        _display_message(message)
        _copy_and_report(message, args.no_copy)

        if not is_interactive:
            break

        action, message = _handle_interactive_action(job, message)
        if action == 'edited':
            if args.output:
                FileSink(args.output)(message)
            _display_message(message)
            _copy_and_report(message, args.no_copy)
            break
        elif action == 'regenerate':
            print("\nRegenerating...")
            continue
        else:
            break

    return 0


def _handle_subcommands(args):
    """Handle subcommands that exit early.

    Returns:
        tuple: (exit_code, should_exit) - exit_code if should_exit is True
    """
    if args.install_completion:
        return run_install_completion(), True
    if args.display_config:
        return display_config(), True
    if args.setup:
        return run_setup(), True
    return 0, False


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    args = parse_args(argv)
    _configure_logging(args.verbose)

    exit_code, should_exit = _handle_subcommands(args)
    if should_exit:
        return exit_code

    config = _apply_overrides(args, load_config())
    return _generate_commit_flow(args, config)
