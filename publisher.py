#!/usr/bin/env python3
"""Publish the source remote's branch onto the target remote's branch.

Two strategies share the same skeleton: fetch both remotes, work inside a
temporary worktree so the user's checkout is never touched, and push the
staging branch to the target. The source remote is only ever fetched from.
"""

from __future__ import annotations

import os
import shutil
from enum import Enum
from typing import Callable, List, Optional

from config import PublishConfig, PublishStrategy, RemoteConfig
from git_runner import GitRunner
from logging_utils import Logger

ConfirmCallback = Callable[[str, bool], bool]

# Marks a content branch as ours, so a leftover from a killed run can be reclaimed.
CONTENT_BRANCH_KEY = "labtohub-content"


class PublishResult(Enum):
    """Outcome of a publish run."""
    PUBLISHED = "published"
    FORCE_PUBLISHED = "force-published"
    NO_CHANGES = "no-changes"


class PublishError(Exception):
    """The publish sequence refused to continue."""


def _accept_default(_prompt: str, default: bool) -> bool:
    return default


class Publisher:
    """Base class holding the steps shared by every strategy."""

    def __init__(
        self,
        remotes: RemoteConfig,
        publish: PublishConfig,
        git: Optional[GitRunner] = None,
        confirm: Optional[ConfirmCallback] = None,
    ) -> None:
        self.remotes = remotes
        self.publish_config = publish
        self.git = git or GitRunner()
        self.confirm = confirm or _accept_default
        self.worktree = publish.worktree_dir
        self.staging_branch = publish.staging_branch
        self.target_present = False
        self._worktree_created = False
        self._created_branches: List[str] = []

    def fetch_remotes(self) -> None:
        remotes = self.remotes
        Logger.info(f"fetching {remotes.target_ref} and {remotes.source_ref}...")

        # An absent or empty target branch means this is the first publish.
        heads = self.git.output(
            "ls-remote", "--heads", remotes.target, f"refs/heads/{remotes.branch}"
        )
        self.target_present = bool(heads)
        if self.target_present:
            self.git.run("fetch", remotes.target, remotes.branch)
        else:
            Logger.warn(f"{remotes.target_ref} does not exist yet")

        self.git.run("fetch", remotes.source, remotes.branch)

    def remove_existing_worktree(self) -> None:
        """Drop a worktree left behind by an interrupted run, if any."""
        if not self.git.succeeds("worktree", "remove", "--force", self.worktree):
            if os.path.isdir(self.worktree):
                Logger.debug(f"removing stale directory '{self.worktree}'")
                shutil.rmtree(self.worktree, ignore_errors=True)
        self.git.succeeds("worktree", "prune")

    def branch_exists(self, branch: str) -> bool:
        return self.git.succeeds("rev-parse", "--verify", "--quiet", f"refs/heads/{branch}")

    def force_publish_snapshot(self, message: str) -> None:
        """Push a single root commit carrying the source tree to the target."""
        remotes = self.remotes
        Logger.info(
            f"force-publishing a snapshot of {remotes.source_ref} to {remotes.target_ref}..."
        )
        sha = self.git.output("commit-tree", "-m", message, f"{remotes.source_ref}^{{tree}}")
        self.git.run(
            "push", "--force", remotes.target, f"{sha}:refs/heads/{remotes.branch}"
        )
        # Record the published state locally so the next run starts from it.
        if not self.git.succeeds("branch", "--force", self.staging_branch, sha):
            Logger.warn(f"could not move '{self.staging_branch}' to the published commit")

    def overwrite_with_source(self) -> None:
        Logger.info(f"overwriting worktree with {self.remotes.source_ref} contents...")
        self.git.run(
            "restore",
            "--source",
            self.remotes.source_ref,
            "--staged",
            "--worktree",
            ".",
            cwd=self.worktree,
        )
        self.git.run("clean", "-fd", cwd=self.worktree)

    def commit_worktree(self, message: str) -> bool:
        """Commit everything staged in the worktree; False when nothing changed."""
        self.git.run("add", "-A", cwd=self.worktree)
        if self.git.succeeds("diff", "--cached", "--quiet", cwd=self.worktree):
            Logger.info(
                f"no differences between {self.remotes.target_ref} and "
                f"{self.remotes.source_ref}; nothing to commit"
            )
            return False
        self.git.run("commit", "-m", message, cwd=self.worktree)
        return True

    def push_to_target(self, force: bool = False) -> None:
        target = self.remotes.target
        Logger.info(
            f"{'force-pushing' if force else 'pushing'} '{self.staging_branch}' "
            f"to {self.remotes.target_ref}..."
        )
        args = ["push"]
        if force:
            args.append("--force")
        args.extend([target, f"{self.staging_branch}:refs/heads/{self.remotes.branch}"])
        self.git.run(*args, cwd=self.worktree)

    def cleanup(self) -> None:
        """Remove the temporary worktree and any branch this run created."""
        if self._worktree_created:
            Logger.debug(f"removing temporary worktree '{self.worktree}'")
            self.git.succeeds("worktree", "remove", "--force", self.worktree)
            if os.path.isdir(self.worktree):
                shutil.rmtree(self.worktree, ignore_errors=True)
            self.git.succeeds("worktree", "prune")
            self._worktree_created = False

        for branch in self._created_branches:
            if not self.git.succeeds("branch", "-D", branch):
                Logger.warn(f"failed to delete temporary branch '{branch}'")
        self._created_branches = []

    def publish(self, message: str, content_branch: str) -> PublishResult:
        self.fetch_remotes()
        try:
            self.remove_existing_worktree()
            if not self.target_present:
                self.force_publish_snapshot(message)
                return PublishResult.FORCE_PUBLISHED
            return self._publish(message, content_branch)
        finally:
            self.cleanup()

    def _publish(self, message: str, content_branch: str) -> PublishResult:
        raise NotImplementedError


class WorktreeMergePublisher(Publisher):
    """Copy the source tree onto the target branch through a --no-ff merge."""

    def add_base_worktree(self) -> None:
        Logger.info(
            f"adding temporary worktree '{self.worktree}' from {self.remotes.target_ref}..."
        )
        self._worktree_created = True
        self.git.run(
            "worktree",
            "add",
            "--force",
            "-B",
            self.staging_branch,
            self.worktree,
            self.remotes.target_ref,
        )

    def is_leftover_content_branch(self, branch: str) -> bool:
        return self.git.succeeds("config", "--get", f"branch.{branch}.{CONTENT_BRANCH_KEY}")

    def create_content_branch(self, branch: str) -> None:
        if branch == self.staging_branch:
            raise PublishError(
                f"branch '{branch}' is the staging branch; choose a different message"
            )
        if self.branch_exists(branch):
            if not self.is_leftover_content_branch(branch):
                raise PublishError(
                    f"branch '{branch}' already exists; choose a different message"
                )
            Logger.warn(f"deleting branch '{branch}' left behind by an interrupted run")
            self.git.run("branch", "-D", branch)

        Logger.info(f"creating branch '{branch}' in worktree...")
        self._created_branches.append(branch)
        self.git.run("switch", "-C", branch, cwd=self.worktree)
        # Removed together with the branch by `branch -D`.
        self.git.run("config", f"branch.{branch}.{CONTENT_BRANCH_KEY}", "true")

    def merge_into_staging(self, branch: str, message: str) -> None:
        Logger.info(f"merging '{branch}' into '{self.staging_branch}'...")
        self.git.run("switch", self.staging_branch, cwd=self.worktree)
        self.git.run(
            "merge", "--no-ff", "--no-edit", branch, "-m", message, cwd=self.worktree
        )

    def _publish(self, message: str, content_branch: str) -> PublishResult:
        self.add_base_worktree()
        self.create_content_branch(content_branch)
        self.overwrite_with_source()
        if not self.commit_worktree(message):
            return PublishResult.NO_CHANGES
        self.merge_into_staging(content_branch, message)
        self.push_to_target()
        return PublishResult.PUBLISHED


class SquashPublisher(Publisher):
    """Squash the source changes into one commit on a persistent publish branch."""

    def add_publish_worktree(self) -> None:
        Logger.info(f"adding temporary worktree '{self.worktree}' on '{self.staging_branch}'...")
        self._worktree_created = True
        if self.branch_exists(self.staging_branch):
            self.git.run("worktree", "add", "--force", self.worktree, self.staging_branch)
        else:
            self.git.run(
                "worktree",
                "add",
                "--force",
                "-b",
                self.staging_branch,
                self.worktree,
                self.remotes.target_ref,
            )

    def fast_forward(self) -> bool:
        """Fast-forward the publish branch; False when it has diverged."""
        return self.git.succeeds(
            "merge", "--ff-only", self.remotes.target_ref, cwd=self.worktree
        )

    def reset_to_target(self) -> None:
        Logger.info(f"resetting '{self.staging_branch}' to {self.remotes.target_ref}...")
        self.git.run("reset", "--hard", self.remotes.target_ref, cwd=self.worktree)

    def shares_history_with_target(self) -> bool:
        return self.git.succeeds("merge-base", self.staging_branch, self.remotes.target_ref)

    def _publish(self, message: str, content_branch: str) -> PublishResult:
        # Unrelated histories cannot be squashed onto; replace the target outright.
        if self.branch_exists(self.staging_branch) and not self.shares_history_with_target():
            Logger.warn(
                f"'{self.staging_branch}' shares no history with {self.remotes.target_ref}"
            )
            self.force_publish_snapshot(message)
            return PublishResult.FORCE_PUBLISHED

        self.add_publish_worktree()

        force = False
        if not self.fast_forward():
            target_ref = self.remotes.target_ref
            Logger.warn(f"local branch '{self.staging_branch}' has diverged from {target_ref}")
            if self.confirm(f"Reset '{self.staging_branch}' to {target_ref}?", True):
                self.reset_to_target()
            else:
                Logger.warn(f"keeping local history; {target_ref} will be force-updated")
                force = True

        self.overwrite_with_source()
        committed = self.commit_worktree(message)
        if not committed and not force:
            return PublishResult.NO_CHANGES

        self.push_to_target(force=force)
        return PublishResult.FORCE_PUBLISHED if force else PublishResult.PUBLISHED


PUBLISHERS = {
    PublishStrategy.MERGE: WorktreeMergePublisher,
    PublishStrategy.SQUASH: SquashPublisher,
}


def create_publisher(
    remotes: RemoteConfig,
    publish: PublishConfig,
    git: Optional[GitRunner] = None,
    confirm: Optional[ConfirmCallback] = None,
) -> Publisher:
    return PUBLISHERS[publish.strategy](remotes, publish, git=git, confirm=confirm)
