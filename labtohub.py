#!/usr/bin/env python3
"""
labtohub - Publish the main branch of a GitLab remote onto GitHub.

The tool fetches `origin/main` (GitLab) and `github/main` (GitHub), builds
the new GitHub state inside a temporary git worktree, and pushes it. Your
checkout and the GitLab history are never modified.
"""

from __future__ import annotations

import sys
from typing import NoReturn, Optional, Sequence

from argument_parser import parse_arguments
from logging_utils import Logger
from mirror_orchestrator import MirrorOrchestrator


def main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    cfg = parse_arguments(argv)
    Logger.set_verbose(cfg.verbose)
    orchestrator = MirrorOrchestrator(cfg)
    sys.exit(orchestrator.run())


if __name__ == "__main__":
    main()
