#!/usr/bin/env python3
"""Preflight checks run before anything is fetched or pushed."""

from __future__ import annotations

from typing import Optional

import github
import gitlab
import requests

from config import AccessConfig, RemoteConfig
from git_runner import GitCommandError, GitRunner
from logging_utils import Logger
from utils import RemoteLocation, parse_remote_url

PUBLIC_GITHUB_HOST = "github.com"
PUBLIC_GITHUB_API = "https://api.github.com"


class PreflightError(Exception):
    """A remote is missing or not usable with the provided credentials."""


class RemotePreflight:
    """Checks that both remotes exist and, optionally, that we may use them."""

    def __init__(
        self,
        remotes: RemoteConfig,
        access: AccessConfig,
        git: Optional[GitRunner] = None,
    ) -> None:
        self.remotes = remotes
        self.access = access
        self.git = git or GitRunner()

    def remote_url(self, name: str) -> str:
        try:
            return self.git.output("remote", "get-url", name)
        except GitCommandError as e:
            raise PreflightError(
                f"git remote '{name}' is not configured "
                f"(add it with: git remote add {name} <url>)"
            ) from e

    def check_remotes(self) -> None:
        if self.remotes.source == self.remotes.target:
            raise PreflightError("source and target remotes must differ")
        source_url = self.remote_url(self.remotes.source)
        target_url = self.remote_url(self.remotes.target)
        Logger.debug(f"source remote '{self.remotes.source}': {source_url}")
        Logger.debug(f"target remote '{self.remotes.target}': {target_url}")

    def check_access(self) -> None:
        """Verify read access to the source project and push access to the target."""
        self._check_gitlab_access(self._location(self.remotes.source))
        self._check_github_access(self._location(self.remotes.target))

    def run(self) -> None:
        self.check_remotes()
        if self.access.check_access:
            self.check_access()

    def _location(self, remote: str) -> RemoteLocation:
        url = self.remote_url(remote)
        try:
            return parse_remote_url(url)
        except ValueError as e:
            raise PreflightError(f"cannot check access for '{remote}': {e}") from e

    @staticmethod
    def _gitlab_api_url(location: RemoteLocation) -> str:
        scheme = "http" if location.scheme == "http" else "https"
        return f"{scheme}://{location.host}"

    @staticmethod
    def _github_api_url(location: RemoteLocation) -> str:
        if location.host == PUBLIC_GITHUB_HOST:
            return PUBLIC_GITHUB_API
        return f"https://{location.host}/api/v3"

    def _check_gitlab_access(self, location: RemoteLocation) -> None:
        if not self.access.gitlab_token:
            Logger.warn("GITLAB_TOKEN not set; skipping source access check")
            return

        api_url = self._gitlab_api_url(location)
        Logger.info(f"checking gitlab project: {location.path}")
        try:
            api = gitlab.Gitlab(url=api_url, private_token=self.access.gitlab_token)
            api.auth()
            project = api.projects.get(location.path)
        except gitlab.exceptions.GitlabAuthenticationError as e:
            raise PreflightError(f"authentication error (gitlab): {e}") from e
        except gitlab.exceptions.GitlabGetError as e:
            raise PreflightError(
                f"gitlab project '{location.path}' not found or not visible: {e}"
            ) from e
        except (gitlab.exceptions.GitlabError, requests.RequestException) as e:
            raise PreflightError(f"failed to contact gitlab API at {api_url}: {e}") from e

        Logger.debug(f"gitlab project id: {getattr(project, 'id', '?')}")

    def _check_github_access(self, location: RemoteLocation) -> None:
        if not self.access.github_token:
            Logger.warn("GITHUB_TOKEN not set; skipping target access check")
            return

        api_url = self._github_api_url(location)
        Logger.info(f"checking github repository: {location.path}")
        try:
            auth = github.Auth.Token(self.access.github_token)
            if api_url != PUBLIC_GITHUB_API:
                api = github.Github(base_url=api_url, auth=auth)
            else:
                api = github.Github(auth=auth)
            repo = api.get_repo(location.path)
            can_push = bool(repo.permissions and repo.permissions.push)
        except github.BadCredentialsException as e:
            raise PreflightError("authentication failed (github): invalid token") from e
        except github.UnknownObjectException as e:
            raise PreflightError(
                f"github repository '{location.path}' not found or not visible"
            ) from e
        except github.GithubException as e:
            raise PreflightError(f"github error: {e}") from e
        except requests.RequestException as e:
            raise PreflightError(f"failed to contact github API at {api_url}: {e}") from e

        if not can_push:
            raise PreflightError(
                f"token lacks push permission on github repository '{location.path}'"
            )
