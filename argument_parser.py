#!/usr/bin/env python3
"""Command line argument parsing and configuration building."""

from __future__ import annotations

import argparse
import os
import sys
from typing import Optional, Sequence

from config import (DEFAULT_BRANCH, DEFAULT_SOURCE_REMOTE,
                    DEFAULT_TARGET_REMOTE, TMP_WORKTREE, AccessConfig, Config,
                    PublishConfig, PublishStrategy, RemoteConfig)
from logging_utils import Logger
from security import SecurityValidator

# Exit codes
EXIT_INVALID_ARGUMENTS = 2


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="labtohub",
        description="Publish GitLab's main branch (origin/main) onto GitHub's main "
        "branch (github/main) without touching your working tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -m "Fix typo"
  %(prog)s -m "Release 1.2" --strategy squash
  %(prog)s -m "Sync" --yes --check-access
  %(prog)s --source-remote gitlab --target-remote origin -m "Sync"
        """,
    )
    return parser


def _add_message_arguments(parser: argparse.ArgumentParser) -> None:
    """Add commit message and confirmation arguments to parser."""
    parser.add_argument(
        "-m",
        "--message",
        dest="message",
        help="Commit/merge message; also names the content branch "
        "(prompted for when omitted)",
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        dest="assume_yes",
        help="Do not ask for confirmation; accept the default for every prompt",
    )


def _add_remote_arguments(parser: argparse.ArgumentParser) -> None:
    """Add remote and branch selection arguments to parser."""
    parser.add_argument(
        "--source-remote",
        dest="source_remote",
        default=DEFAULT_SOURCE_REMOTE,
        help=f"Remote to copy from, never written to (default: {DEFAULT_SOURCE_REMOTE})",
    )
    parser.add_argument(
        "--target-remote",
        dest="target_remote",
        default=DEFAULT_TARGET_REMOTE,
        help=f"Remote to publish to (default: {DEFAULT_TARGET_REMOTE})",
    )
    parser.add_argument(
        "--branch",
        dest="branch",
        default=DEFAULT_BRANCH,
        help=f"Branch mirrored on both remotes (default: {DEFAULT_BRANCH})",
    )


def _add_behavior_arguments(parser: argparse.ArgumentParser) -> None:
    """Add behavior and configuration arguments to parser."""
    parser.add_argument(
        "-s",
        "--strategy",
        dest="strategy",
        choices=[strategy.value for strategy in PublishStrategy],
        default=os.getenv("LABTOHUB_STRATEGY", PublishStrategy.MERGE.value),
        help="merge: copy through a --no-ff merge; squash: one squash commit per "
        "run on a persistent publish branch (default: merge, or LABTOHUB_STRATEGY)",
    )
    parser.add_argument(
        "--worktree-dir",
        dest="worktree_dir",
        default=TMP_WORKTREE,
        help=f"Temporary worktree directory (default: {TMP_WORKTREE})",
    )
    parser.add_argument(
        "--check-access",
        action="store_true",
        dest="check_access",
        help="Verify GitLab read and GitHub push access through their APIs "
        "(uses GITLAB_TOKEN and GITHUB_TOKEN)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        dest="verbose",
        help="Show every git command that is run",
    )


def _validate_parsed_arguments(args) -> Config:
    """Validate parsed arguments and build the configuration."""
    try:
        message: Optional[str] = None
        if args.message is not None and args.message.strip():
            message = SecurityValidator.validate_message(args.message)

        remotes = RemoteConfig(
            source=SecurityValidator.validate_remote_name(args.source_remote),
            target=SecurityValidator.validate_remote_name(args.target_remote),
            branch=SecurityValidator.validate_branch_name(args.branch),
        )
        if remotes.source == remotes.target:
            raise ValueError("source and target remotes must differ")

        publish = PublishConfig(
            strategy=PublishStrategy(args.strategy),
            worktree_dir=SecurityValidator.validate_file_path(args.worktree_dir),
            assume_yes=args.assume_yes,
        )
    except ValueError as e:
        Logger.error(f"configuration validation error: {e}")
        sys.exit(EXIT_INVALID_ARGUMENTS)

    access = AccessConfig(
        check_access=args.check_access,
        gitlab_token=os.getenv("GITLAB_TOKEN") or None,
        github_token=os.getenv("GITHUB_TOKEN") or None,
    )

    return Config(
        message=message,
        remotes=remotes,
        publish=publish,
        access=access,
        verbose=args.verbose,
    )


def parse_arguments(argv: Optional[Sequence[str]] = None) -> Config:
    """Parse command line arguments and return configuration object."""
    parser = _create_argument_parser()
    _add_message_arguments(parser)
    _add_remote_arguments(parser)
    _add_behavior_arguments(parser)

    args = parser.parse_args(argv)
    if args.strategy not in [strategy.value for strategy in PublishStrategy]:
        parser.error(f"invalid LABTOHUB_STRATEGY: {args.strategy!r}")

    return _validate_parsed_arguments(args)
