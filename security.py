#!/usr/bin/env python3
"""Input validation and log sanitization for labtohub."""

import os
import re


class SecurityValidator:
    """Security validation utilities for input sanitization and validation."""

    MAX_REMOTE_NAME_LENGTH = 100
    MAX_BRANCH_NAME_LENGTH = 255
    MAX_MESSAGE_LENGTH = 4096
    MAX_PATH_LENGTH = 500

    SAFE_REMOTE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
    SAFE_BRANCH_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")

    @classmethod
    def validate_remote_name(cls, name: str) -> str:
        """Validate a git remote name."""
        if not name or not isinstance(name, str):
            raise ValueError("Remote name must be a non-empty string")

        if len(name) > cls.MAX_REMOTE_NAME_LENGTH:
            raise ValueError(
                f"Remote name exceeds maximum length of {cls.MAX_REMOTE_NAME_LENGTH}"
            )

        if name.startswith("-"):
            raise ValueError("Remote name must not start with '-'")

        if not cls.SAFE_REMOTE_NAME_PATTERN.match(name):
            raise ValueError("Remote name contains invalid characters")

        return name

    @classmethod
    def validate_branch_name(cls, name: str) -> str:
        """Validate a branch name against the subset of git ref rules we accept."""
        if not name or not isinstance(name, str):
            raise ValueError("Branch name must be a non-empty string")

        if len(name) > cls.MAX_BRANCH_NAME_LENGTH:
            raise ValueError(
                f"Branch name exceeds maximum length of {cls.MAX_BRANCH_NAME_LENGTH}"
            )

        if not cls.SAFE_BRANCH_NAME_PATTERN.match(name):
            raise ValueError("Branch name contains invalid characters")

        if (
            name.startswith(("-", "/", "."))
            or name.endswith(("/", ".", ".lock"))
            or ".." in name
            or "//" in name
            or "/." in name
        ):
            raise ValueError(f"'{name}' is not a valid git branch name")

        return name

    @classmethod
    def validate_message(cls, message: str) -> str:
        """Validate a commit message: non-blank, bounded, no control characters."""
        if not isinstance(message, str) or not message.strip():
            raise ValueError("Message must be a non-empty string")

        if len(message) > cls.MAX_MESSAGE_LENGTH:
            raise ValueError(
                f"Message exceeds maximum length of {cls.MAX_MESSAGE_LENGTH}"
            )

        if any(ord(c) < 32 for c in message if c not in "\t\n"):
            raise ValueError("Message contains null bytes or control characters")

        return message.strip()

    @classmethod
    def validate_file_path(cls, path: str) -> str:
        """Validate a relative or absolute directory path."""
        if not path or not isinstance(path, str):
            raise ValueError("File path must be a non-empty string")

        if len(path) > cls.MAX_PATH_LENGTH:
            raise ValueError(
                f"File path exceeds maximum length of {cls.MAX_PATH_LENGTH}"
            )

        if "\x00" in path:
            raise ValueError("File path contains null bytes")

        if ".." in path.replace("\\", "/").split("/"):
            raise ValueError("File path contains path traversal sequences")

        normalized = os.path.normpath(path)
        if normalized in (".", os.sep):
            raise ValueError("File path must name a dedicated directory")

        return normalized

    @classmethod
    def sanitize_for_logging(cls, message: str) -> str:
        """Sanitize message for safe logging by removing potential credentials."""
        if not message:
            return message

        patterns = [
            (r"https?://[^:/@\s]+:[^@\s]+@", "https://[REDACTED]@"),  # URLs with credentials
            # Assignments only; prose like "token not set" stays readable.
            (r"token\s*[=:]\s*[^\s]+", "token=[REDACTED]"),
            (r"password\s*[=:]\s*[^\s]+", "password=[REDACTED]"),
            (r"glpat-[A-Za-z0-9_-]+", "[GITLAB_TOKEN_REDACTED]"),
            (r"gh[pousr]_[A-Za-z0-9_]+", "[GITHUB_TOKEN_REDACTED]"),
        ]

        sanitized = message
        for pattern, replacement in patterns:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

        return sanitized
