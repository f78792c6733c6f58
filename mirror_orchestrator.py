#!/usr/bin/env python3
"""Main orchestrator for publishing the GitLab main branch to GitHub."""

from __future__ import annotations

from typing import Optional

import click

from config import Config
from git_runner import GitCommandError, GitRunner
from logging_utils import Logger
from preflight import PreflightError, RemotePreflight
from publisher import PublishError, PublishResult, create_publisher
from security import SecurityValidator
from utils import branch_name_from_message

# Exit codes
EXIT_SUCCESS = 0
EXIT_EXECUTION_ERROR = 1
EXIT_INVALID_ARGUMENTS = 2
EXIT_PREFLIGHT_ERROR = 20
EXIT_ABORTED = 130


class MirrorOrchestrator:
    def __init__(self, cfg: Config, git: Optional[GitRunner] = None) -> None:
        self.cfg = cfg
        self.git = git or GitRunner()
        self.preflight = RemotePreflight(cfg.remotes, cfg.access, git=self.git)
        self.publisher = create_publisher(
            cfg.remotes, cfg.publish, git=self.git, confirm=self._confirm
        )

    def _confirm(self, prompt: str, default: bool) -> bool:
        if self.cfg.publish.assume_yes:
            return default
        return click.confirm(prompt, default=default)

    def _resolve_message(self) -> str:
        if self.cfg.message:
            return self.cfg.message
        message = click.prompt("Enter merge message")
        return SecurityValidator.validate_message(message)

    def run(self) -> int:
        try:
            message = self._resolve_message()
            branch = branch_name_from_message(message)

            remotes = self.cfg.remotes
            Logger.info(f"strategy: {self.cfg.publish.strategy.value}")
            Logger.info(f"branch to create: '{branch}'")
            Logger.info(f"merge message: \"{message}\"")
            Logger.info(f"publishing {remotes.source_ref} -> {remotes.target_ref}")
            if not self.cfg.publish.assume_yes and not click.confirm(
                "Proceed? Uses a temporary worktree; your current files stay untouched.",
                default=False,
            ):
                Logger.warn("aborted")
                return EXIT_ABORTED

            self.preflight.run()
            result = self.publisher.publish(message, branch)
        except click.Abort:
            Logger.warn("aborted")
            return EXIT_ABORTED
        except ValueError as e:
            Logger.error(f"invalid message: {e}")
            return EXIT_INVALID_ARGUMENTS
        except PreflightError as e:
            Logger.error(f"preflight failed: {e}")
            return EXIT_PREFLIGHT_ERROR
        except GitCommandError as e:
            Logger.error(str(e))
            if e.stderr:
                Logger.error(e.stderr.strip())
            return EXIT_EXECUTION_ERROR
        except PublishError as e:
            Logger.error(str(e))
            return EXIT_EXECUTION_ERROR
        except Exception as e:
            Logger.error(f"unexpected error: {e}")
            return EXIT_EXECUTION_ERROR

        self._report(result, branch)
        return EXIT_SUCCESS

    def _report(self, result: PublishResult, branch: str) -> None:
        remotes = self.cfg.remotes
        if result is PublishResult.NO_CHANGES:
            Logger.success("done: no changes to publish")
        elif result is PublishResult.FORCE_PUBLISHED:
            Logger.success(
                f"done: {remotes.target_ref} force-updated from {remotes.source_ref} "
                "(worktree cleaned)"
            )
        else:
            Logger.success(
                f"done: {remotes.source_ref} copied onto {remotes.target_ref} "
                f"via branch '{branch}' (worktree cleaned)"
            )
