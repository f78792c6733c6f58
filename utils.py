#!/usr/bin/env python3
"""Utility functions for labtohub."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

DEFAULT_BRANCH_NAME = "new"

_SCP_LIKE_URL = re.compile(r"^(?:[^@/]+@)?(?P<host>[^:/]+):(?P<path>[^/].*)$")


@dataclass(frozen=True)
class RemoteLocation:
    """Host and project path of a git remote URL."""
    host: str
    path: str
    scheme: str


def branch_name_from_message(message: str) -> str:
    """Derive a branch name from a commit message.

    ASCII letters and digits are lowercased, everything else becomes '-',
    runs of '-' are collapsed and stripped from both ends.
    Example: '  Fix typo!' -> 'fix-typo'
    """
    name = "".join(
        c.lower() if c.isascii() and c.isalnum() else "-" for c in message.strip()
    )
    name = re.sub(r"-+", "-", name).strip("-")
    return name or DEFAULT_BRANCH_NAME


def _strip_git_suffix(path: str) -> str:
    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    return path


def parse_remote_url(url: str) -> RemoteLocation:
    """Split a git remote URL into host and project path.

    Accepts https://, http://, ssh:// and scp-like (git@host:group/repo.git)
    URLs. Credentials embedded in the URL are dropped.
    """
    url = url.strip()
    if "://" in url:
        parsed = urlparse(url)
        if parsed.scheme not in ("https", "http", "ssh") or not parsed.hostname:
            raise ValueError(f"unsupported remote URL: {url}")
        host = parsed.hostname
        if parsed.port and parsed.scheme != "ssh":
            host = f"{host}:{parsed.port}"
        path = _strip_git_suffix(parsed.path)
        scheme = parsed.scheme
    else:
        match = _SCP_LIKE_URL.match(url)
        if not match:
            raise ValueError(f"unsupported remote URL: {url}")
        host = match.group("host")
        path = _strip_git_suffix(match.group("path"))
        scheme = "ssh"

    if not path or "/" not in path:
        raise ValueError(f"remote URL has no group/project path: {url}")

    return RemoteLocation(host=host, path=path, scheme=scheme)
