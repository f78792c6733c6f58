#!/usr/bin/env python3
"""Configuration dataclasses for labtohub."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

TMP_WORKTREE = ".labtohub-tmp"
MAIN_STAGING_BRANCH = "labtohub-main"

DEFAULT_SOURCE_REMOTE = "origin"
DEFAULT_TARGET_REMOTE = "github"
DEFAULT_BRANCH = "main"


class PublishStrategy(Enum):
    """Enumeration for the ways the source branch is published to the target."""
    MERGE = "merge"
    SQUASH = "squash"


@dataclass
class RemoteConfig:
    """Names of the remotes and the branch mirrored between them."""
    source: str = DEFAULT_SOURCE_REMOTE
    target: str = DEFAULT_TARGET_REMOTE
    branch: str = DEFAULT_BRANCH

    @property
    def source_ref(self) -> str:
        return f"{self.source}/{self.branch}"

    @property
    def target_ref(self) -> str:
        return f"{self.target}/{self.branch}"


@dataclass
class PublishConfig:
    """Publish behavior configuration."""
    strategy: PublishStrategy = PublishStrategy.MERGE
    worktree_dir: str = TMP_WORKTREE
    staging_branch: str = MAIN_STAGING_BRANCH
    assume_yes: bool = False


@dataclass
class AccessConfig:
    """Optional hosting API credentials used by the preflight access check."""
    check_access: bool = False
    gitlab_token: Optional[str] = None
    github_token: Optional[str] = None


@dataclass
class Config:
    """Main configuration for a labtohub run."""
    message: Optional[str]
    remotes: RemoteConfig
    publish: PublishConfig
    access: AccessConfig
    verbose: bool = False
