"""
Storage and validation for the GitHub Personal Access Token.

The token lives in ~/.rulebook/credentials.json (owner-only permissions)
and is shared by every GitHub repository in the registry.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from git import Git, GitCommandError

from rulebook.config import Config, write_json_atomic
from rulebook.repository.errors import CredentialError, TokenNotFoundError
from rulebook.repository.models import RepositoryEntry


logger = logging.getLogger(__name__)

GITHUB_TOKEN_KEY = "github_pat"
TOKEN_VALIDATION_TIMEOUT = 10
_MIN_TOKEN_LENGTH = 20
_VALID_TOKEN_PREFIXES = ("ghp_", "github_pat_", "gho_", "ghu_", "ghs_")


def mask_token(token: str) -> str:
    token = token.strip()
    if len(token) <= 8:
        return "•" * len(token)
    return token[:4] + "•" * (len(token) - 8) + token[-4:]


class CredentialManager:
    """
    Token store for GitHub repositories.

    Uses the same JSON-file layout as the rest of the config directory,
    stored in ~/.rulebook/credentials.json
    """

    def __init__(self, config_dir: Path | None = None):
        self.config_dir = config_dir or Config.config_dir()
        self.credentials_file = self.config_dir / "credentials.json"

    def _load_all(self) -> dict[str, Any]:
        if not self.credentials_file.exists():
            return {}
        try:
            with self.credentials_file.open(encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            logger.warning("Could not read credentials file at %s", self.credentials_file)
            return {}
        return data if isinstance(data, dict) else {}

    def _save_all(self, data: dict[str, Any]) -> None:
        # Owner-only temp file, renamed over the old one.
        write_json_atomic(self.credentials_file, data)

    # ── Format / remote validation ────────────────────────────────────

    @staticmethod
    def validate_token_format(token: str) -> None:
        token = token.strip()
        if not token:
            raise CredentialError("token cannot be empty")
        if len(token) < _MIN_TOKEN_LENGTH:
            raise CredentialError(f"token too short (minimum {_MIN_TOKEN_LENGTH} characters)")
        if not token.startswith(_VALID_TOKEN_PREFIXES):
            raise CredentialError(
                "token does not match expected GitHub PAT format (should start with ghp_ or github_pat_)"
            )

    def validate_token_against_url(self, token: str, url: str) -> None:
        """Check ``url`` with ``git ls-remote`` using ``token`` for auth."""
        from rulebook.repository.git_source import authenticated_url, is_authentication_error

        self.validate_token_format(token)
        if not url.strip():
            raise CredentialError("repository URL is required for token validation")
        try:
            auth_url = authenticated_url(url, token.strip())
        except ValueError as exc:
            raise CredentialError(f"invalid repository URL: {exc}") from exc

        git_cmd = Git()
        git_cmd.update_environment(GIT_TERMINAL_PROMPT="0", GIT_ASKPASS="echo")
        try:
            git_cmd.ls_remote("--heads", auth_url, kill_after_timeout=TOKEN_VALIDATION_TIMEOUT)
        except GitCommandError as exc:
            if is_authentication_error(exc):
                raise CredentialError("token is invalid or expired") from exc
            message = str(exc).lower()
            if "not found" in message:
                raise CredentialError("repository not found or token lacks access to it") from exc
            if exc.status == -9 or "timed out" in message or "timeout" in message:
                raise CredentialError("timed out while validating token") from exc
            raise CredentialError(f"failed to validate token: {exc.stderr.strip() or exc}") from exc
        logger.debug("Token validated against %s", url)

    def validate_token_against_entries(self, token: str, entries: Iterable[RepositoryEntry]) -> None:
        self.validate_token_format(token)
        for entry in entries:
            if not entry.is_remote or not entry.remote_url:
                continue
            try:
                self.validate_token_against_url(token, entry.remote_url)
            except CredentialError as exc:
                raise CredentialError(f"{entry.name}: {exc}") from exc

    # ── Storage ───────────────────────────────────────────────────────

    def store(self, token: str) -> None:
        data = self._load_all()
        data[GITHUB_TOKEN_KEY] = token.strip()
        try:
            self._save_all(data)
        except OSError as exc:
            raise CredentialError(f"failed to store token in credential store: {exc}") from exc
        logger.info("Stored GitHub token %s", mask_token(token))

    def get(self) -> str:
        env_token = Config.get("rulebook_github_token")
        if env_token and env_token.strip():
            return env_token.strip()
        token = self._load_all().get(GITHUB_TOKEN_KEY)
        if token is None:
            raise TokenNotFoundError()
        if not isinstance(token, str) or not token.strip():
            raise TokenNotFoundError(
                "stored token is empty - please update authentication in Settings → Update GitHub PAT"
            )
        return token
