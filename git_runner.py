#!/usr/bin/env python3
"""Thin wrapper around the git executable."""

from __future__ import annotations

import subprocess
from typing import Optional, Sequence

from logging_utils import Logger


class GitCommandError(Exception):
    """A git invocation exited with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"command failed (exit {returncode}): {' '.join(self.command)}"
        )


class GitRunner:
    """Runs git commands, optionally against another working tree via -C."""

    def __init__(self, git: str = "git") -> None:
        self.git = git

    def _build(self, args: Sequence[str], cwd: Optional[str]) -> list:
        command = [self.git]
        if cwd:
            command.extend(["-C", cwd])
        command.extend(args)
        return command

    def run(self, *args: str, cwd: Optional[str] = None) -> None:
        """Run git with inherited stdio; raise GitCommandError on failure."""
        command = self._build(args, cwd)
        Logger.debug(f"$ {' '.join(command)}")
        try:
            completed = subprocess.run(command, check=False)
        except OSError as e:
            raise GitCommandError(command, 127, str(e)) from e
        if completed.returncode != 0:
            raise GitCommandError(command, completed.returncode)

    def output(self, *args: str, cwd: Optional[str] = None) -> str:
        """Run git capturing stdout; return it stripped."""
        command = self._build(args, cwd)
        Logger.debug(f"$ {' '.join(command)}")
        try:
            completed = subprocess.run(
                command,
                check=False,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise GitCommandError(command, 127, str(e)) from e
        if completed.returncode != 0:
            raise GitCommandError(command, completed.returncode, completed.stderr)
        return completed.stdout.strip()

    def succeeds(self, *args: str, cwd: Optional[str] = None) -> bool:
        """Run a git query whose exit status is the answer."""
        command = self._build(args, cwd)
        Logger.debug(f"$ {' '.join(command)}")
        try:
            completed = subprocess.run(
                command,
                check=False,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise GitCommandError(command, 127, str(e)) from e
        return completed.returncode == 0
