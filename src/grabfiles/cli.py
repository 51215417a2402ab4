"""
CLI entrypoint for grabfiles.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pyperclip

from . import __version__
from .config import DEFAULT_OUTPUT_NAME, Overrides
from .errors import GrabfilesError, OutputError
from .log import setup_logging
from .processing import grab_contents
from .selection import select_files
from .stats import DEFAULT_TOP_FILES, print_report

log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="grabfiles",
        description=(
            "Concatenate the files of a directory into one text blob, respecting git "
            "context. Includes a directory tree, per-file headers and PDF text by default."
        ),
    )
    p.add_argument("target", nargs="?", type=Path, help="Directory or repository (default: cwd)")

    dest = p.add_mutually_exclusive_group()
    dest.add_argument(
        "-o",
        "--output",
        type=Path,
        nargs="?",
        const=Path(DEFAULT_OUTPUT_NAME),
        metavar="FILE",
        help=f"Write output to FILE (default: {DEFAULT_OUTPUT_NAME})",
    )
    dest.add_argument("-c", "--clipboard", action="store_true", help="Copy output to the clipboard")

    p.add_argument(
        "-e",
        "--exclude",
        dest="exclude_patterns",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Exclude files matching PATTERN (.gitignore syntax). Repeatable.",
    )
    p.add_argument("--no-headers", action="store_true", help="Omit '--- FILE: ---' headers")
    p.add_argument("--no-tree", action="store_true", help="Omit the directory tree")
    p.add_argument("--no-pdf", action="store_true", help="Do not extract text from PDF files")
    p.add_argument(
        "--include-default-output",
        action="store_true",
        help=f"Do not auto-exclude '{DEFAULT_OUTPUT_NAME}'",
    )
    p.add_argument("--no-git", action="store_true", help="Ignore git and walk the directory")
    p.add_argument("--tracked-only", action="store_true", help="Only include files tracked by git")
    p.add_argument(
        "-u",
        "--include-untracked",
        action="store_true",
        help=argparse.SUPPRESS,
    )
    p.add_argument("--all-repo", action="store_true", help="Use the whole repository even from a subdirectory")
    p.add_argument("--no-config", action="store_true", help="Ignore config and ignore files")
    p.add_argument("--config", dest="config_path", type=Path, metavar="FILE", help="Extra config file")
    p.add_argument("-s", "--stats", action="store_true", help="Print output statistics to stderr")
    p.add_argument(
        "--top-files",
        type=int,
        nargs="?",
        const=DEFAULT_TOP_FILES,
        metavar="N",
        help=f"With stats, list the N largest files by tokens (default {DEFAULT_TOP_FILES})",
    )
    p.add_argument("--token-ratio", type=float, metavar="FLOAT", help="Characters per token")
    p.add_argument("--tokens-exclude-tree", action="store_true", help="Ignore the tree when counting tokens")
    p.add_argument("--tokens-exclude-headers", action="store_true", help="Ignore headers when counting tokens")
    p.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def overrides_from_args(ns: argparse.Namespace) -> Overrides:
    return Overrides(
        exclude_patterns=list(ns.exclude_patterns),
        tracked_only=ns.tracked_only,
        include_untracked=ns.include_untracked,
        all_repo=ns.all_repo,
        no_git=ns.no_git,
        no_config=ns.no_config,
        config_path=ns.config_path,
        output_path=ns.output,
        no_headers=ns.no_headers,
        no_tree=ns.no_tree,
        no_pdf=ns.no_pdf,
        include_default_output=ns.include_default_output,
        print_stats=ns.stats,
        top_files=ns.top_files,
        token_ratio=ns.token_ratio,
        tokens_exclude_tree=ns.tokens_exclude_tree,
        tokens_exclude_headers=ns.tokens_exclude_headers,
    )


def write_output(content: str, ns: argparse.Namespace) -> str:
    """Send *content* to its destination and return a label for it."""
    if ns.clipboard:
        try:
            pyperclip.copy(content)
        except pyperclip.PyperclipException as e:
            raise OutputError(f"Could not copy to clipboard: {e}") from e
        log.info("Copied %d characters to the clipboard.", len(content))
        return "Clipboard"

    if ns.output is not None:
        out_path = ns.output
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            with out_path.open("w", encoding="utf-8", newline="\n") as fh:
                fh.write(content)
        except OSError as e:
            raise OutputError(f"Could not write output file '{out_path}': {e}") from e
        log.info("Wrote output to %s", out_path)
        return f"File ({out_path})"

    sys.stdout.write(content)
    sys.stdout.flush()
    return "stdout"


def main(argv: Optional[List[str]] = None) -> None:
    try:
        ns = _build_parser().parse_args(argv)
        setup_logging(ns.verbose)
        target = ns.target if ns.target is not None else Path.cwd()
        log.debug("Parsed arguments: %s", ns)

        selection = select_files(target, overrides_from_args(ns))
        policy = selection.policy
        grabbed = grab_contents(selection)

        if not grabbed.content:
            log.info("No content was generated.")
            if policy.stats.enabled:
                print("Output Size: 0 bytes, 0 words, tokens≈0", file=sys.stderr)
            return

        destination = write_output(grabbed.content, ns)
        if policy.stats.enabled:
            print_report(
                grabbed.content,
                grabbed.files,
                policy.stats,
                destination,
                sys.stderr,
                has_tree=policy.include_tree,
                has_headers=policy.add_headers,
            )

    except GrabfilesError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        log.debug("Unexpected error", exc_info=True)
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
