"""CLI Argument Parsing"""

import argparse
import argcomplete

from chadcommit import __version__
from chadcommit.llm import MODELS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='chadcommit',
        description='Suggest a conventional commit message for the staged changes',
        epilog='Example: chadcommit (streams the message, then copies it to the clipboard)'
    )

    parser.add_argument('-v', '--version', action='version', version=f'%(prog)s {__version__}')

    # Generation options
    parser.add_argument('--hint', type=str, metavar='TEXT', help='Add context: --hint "fixing the login bug"')
    parser.add_argument('-m', '--model', type=str, choices=MODELS, help='GPT model')

    # Output options
    parser.add_argument('-o', '--output', type=str, metavar='PATH', help='Keep PATH updated with the message while it streams (e.g. .git/COMMIT_EDITMSG)')
    parser.add_argument('--no-copy', action='store_true', help='Print message only, do not copy to clipboard')
    parser.add_argument('--verbose', action='store_true', help='Show debug info (request size, timings)')

    # Setup/config
    parser.add_argument('--setup', action='store_true', help='Configure API key and defaults')
    parser.add_argument('--display-config', action='store_true', help='Show current configuration')
    parser.add_argument('--install-completion', action='store_true', help='Install shell tab completion')

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    argcomplete.autocomplete(parser)
    return parser.parse_args(argv)
