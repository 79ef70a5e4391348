"""
Command line entry point for textcore.

This module handles:
- Command line argument parsing
- Logging configuration
- Settings loading
- The compare, sed and info commands
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, List, TextIO

from PyQt6.QtCore import QCoreApplication

from textcore.core.diff.text_diff import TextDiffEngine, TextCompareOptions
from textcore.core.errors import TextCoreError
from textcore.core.models import DiffResult
from textcore.core.search.sed import SedCommandParser
from textcore.services.file_io import FileIOService
from textcore.services.settings import ApplicationSettings, SettingsManager
from textcore.workers.load_worker import LargeFileLoadWorker


# =============================================================================
# Constants
# =============================================================================

APP_NAME = "textcore"
APP_VERSION = "1.0.0"

EXIT_OK = 0
EXIT_DIFFERENCES = 1
EXIT_ERROR = 2


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class CommandLineArgs:
    """Parsed command line arguments."""
    command: str = ""
    left_path: Optional[str] = None
    right_path: Optional[str] = None
    expression: Optional[str] = None
    file_path: Optional[str] = None
    encoding: Optional[str] = None
    config_file: Optional[str] = None
    log_level: str = "WARNING"
    log_file: Optional[str] = None
    show_equal: bool = True


# =============================================================================
# Logging Setup
# =============================================================================

class LogFormatter(logging.Formatter):
    """Custom log formatter with colors for console."""

    COLORS = {
        logging.INFO: '\033[32m',      # Green
        logging.WARNING: '\033[33m',   # Yellow
        logging.ERROR: '\033[31m',     # Red
        logging.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True, stream: Optional[TextIO] = None):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        stream = stream or sys.stderr
        self.use_colors = use_colors and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        if self.use_colors:
            color = self.COLORS.get(record.levelno, '')
            return f"{color}{formatted}{self.RESET}"

        return formatted


def setup_logging(level: str = "WARNING", log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure application logging.

    Console output goes to stderr so command output on stdout stays clean.

    Args:
        level: Log level string
        log_file: Optional file path for logging

    Returns:
        Root logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(LogFormatter(use_colors=True, stream=sys.stderr))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(
            log_file,
            encoding='utf-8'
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(LogFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    return root_logger


# =============================================================================
# Command Line Parsing
# =============================================================================

def parse_arguments(args: Optional[List[str]] = None) -> CommandLineArgs:
    """
    Parse command line arguments.

    Args:
        args: Arguments to parse (defaults to sys.argv)

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Large-file text inspection and comparison",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s compare file1.txt file2.txt     Side-by-side diff of two files
  %(prog)s sed 's/foo/bar/g' file.txt      Print file with substitution applied
  %(prog)s info huge.log                   Encoding, line ending and line count
        """
    )

    parser.add_argument(
        '-c', '--config',
        help='Settings file path'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default='WARNING',
        help='Log level'
    )
    parser.add_argument(
        '--log-file',
        help='Also write log records to this file'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'{APP_NAME} {APP_VERSION}'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    compare_parser = subparsers.add_parser('compare', help='Compare two text files')
    compare_parser.add_argument('left', help='Original file')
    compare_parser.add_argument('right', help='Changed file')
    compare_parser.add_argument(
        '-q', '--changes-only',
        action='store_true',
        help='Only print changed rows'
    )

    sed_parser = subparsers.add_parser('sed', help='Apply a s/pattern/replacement/flags expression')
    sed_parser.add_argument('expression', help='Substitution expression')
    sed_parser.add_argument('file', help='Input file')
    sed_parser.add_argument('-e', '--encoding', help='Input encoding (auto-detect if omitted)')

    info_parser = subparsers.add_parser('info', help='Describe a (large) text file')
    info_parser.add_argument('file', help='File to inspect')
    info_parser.add_argument('-e', '--encoding', help='Encoding (auto-detect if omitted)')

    parsed = parser.parse_args(args)

    result = CommandLineArgs(command=parsed.command)
    result.config_file = parsed.config
    result.log_file = parsed.log_file

    if parsed.command == 'compare':
        result.left_path = parsed.left
        result.right_path = parsed.right
        result.show_equal = not parsed.changes_only
    elif parsed.command == 'sed':
        result.expression = parsed.expression
        result.file_path = parsed.file
        result.encoding = parsed.encoding
    else:
        result.file_path = parsed.file
        result.encoding = parsed.encoding

    if parsed.verbose:
        result.log_level = 'DEBUG'
    else:
        result.log_level = parsed.log_level

    return result


# =============================================================================
# Commands
# =============================================================================

def format_diff(result: DiffResult, show_equal: bool = True) -> List[str]:
    """Render a diff as marker-prefixed side-by-side rows."""
    rows = []
    width = max((len(line.text) for line in result.left.lines), default=0)
    width = min(width, 60)

    for left, right in result.iter_rows():
        if not show_equal and not left.is_changed:
            continue
        marker = right.prefix if left.is_padding else left.prefix
        rows.append(f"{marker} {left.text[:width]:<{width}} | {right.text}")

    return rows


def run_compare(args: CommandLineArgs, settings: ApplicationSettings) -> int:
    engine = TextDiffEngine(TextCompareOptions.from_settings(settings.diff))
    result = engine.compare_files(args.left_path, args.right_path)

    print(f"--- {result.left.title}")
    print(f"+++ {result.right.title}")
    for row in format_diff(result, args.show_equal):
        print(row)
    print(f"{result.diff_count} sections, {result.statistics}")

    return EXIT_OK if result.is_identical else EXIT_DIFFERENCES


def run_sed(args: CommandLineArgs, settings: ApplicationSettings) -> int:
    ok, command = SedCommandParser.try_parse(args.expression)
    if not ok:
        logging.error(f"Invalid substitution expression: {args.expression}")
        return EXIT_ERROR

    content = FileIOService().read_text(args.file_path, encoding=args.encoding)
    parser = SedCommandParser(settings.substitution)
    result, count = parser.execute(command, content.content)

    sys.stdout.write(result)
    print(f"{count} replacements", file=sys.stderr)
    return EXIT_OK


def run_info(args: CommandLineArgs, settings: ApplicationSettings) -> int:
    """Load a file batch by batch with the load worker and describe it."""
    app = QCoreApplication.instance() or QCoreApplication([APP_NAME])

    worker = LargeFileLoadWorker(args.file_path, args.encoding, settings.source)
    worker.signals.progress.connect(
        lambda current, total, message: logging.debug(
            f"info - {current}/{total} bytes, {message}"
        )
    )
    # Run in this thread; signals are delivered directly.
    worker.run()

    if worker.error is not None:
        error_type, message = worker.error
        logging.error(f"{error_type}: {message}")
        return EXIT_ERROR

    with worker.result as source:
        print(f"File:        {source.file_path}")
        print(f"Size:        {source.file_size} bytes")
        print(f"Encoding:    {source.encoding}")
        print(f"Line ending: {source.detected_line_ending.name}")
        print(f"Characters:  {source.length}")
        print(f"Lines:       {source.line_count}")

    return EXIT_OK


COMMANDS = {
    'compare': run_compare,
    'sed': run_sed,
    'info': run_info,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command line main entry point.

    Returns:
        Exit code (0 for success, 1 for differences, 2 for errors)
    """
    args = parse_arguments(argv)

    log_file = Path(args.log_file) if args.log_file else None
    logger = setup_logging(args.log_level, log_file)
    logger.info(f"Starting {APP_NAME} v{APP_VERSION} at {datetime.now():%Y-%m-%d %H:%M:%S}")

    config = Path(args.config_file) if args.config_file else None
    settings = SettingsManager(config).settings

    try:
        return COMMANDS[args.command](args, settings)
    except (TextCoreError, OSError, LookupError, ValueError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return EXIT_ERROR


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == '__main__':
    sys.exit(main())
