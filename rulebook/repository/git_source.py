"""
Git-backed repository source.

Wraps GitPython for the operations the settings screen needs: cloning a
remote into its clone path, fetching updates, checking whether a working
tree is dirty and checking whether a branch exists on ``origin``.
"""

from __future__ import annotations

import logging
import os
import re
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote, urlparse

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from rulebook.repository.errors import GitSourceError, TokenNotFoundError, ValidationError
from rulebook.repository.models import GitURLInfo
from rulebook.repository.paths import expand_path


if TYPE_CHECKING:
    from rulebook.repository.credentials import CredentialManager


logger = logging.getLogger(__name__)

_SSH_URL_RE = re.compile(r"^(?:ssh://)?git@(?P<host>[^:/]+)[:/](?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$")
_BRANCH_INVALID_CHARS = ("~", "^", ":", "?", "*", "[", "\\", " ", "\t", "\n")
_AUTH_PATTERNS = ("401", "403", "unauthorized", "forbidden", "authentication", "could not read username")
_NOT_FOUND_PATTERNS = ("404", "not found")
_NETWORK_PATTERNS = ("network", "connection", "timeout", "timed out", "could not resolve host")


class DirectoryStatus(Enum):
    EMPTY = "empty"
    SAME_REPO = "same repository"
    DIFFERENT_REPO = "different repository"
    CONFLICT = "non-empty directory"


def parse_git_url(url: str) -> GitURLInfo:
    """Split a GitHub-style URL into host, owner and repo.

    Supports ``git@host:owner/repo(.git)`` and ``https://host/[owner/]repo(.git)``.
    The owner may be empty or span several path segments for self-hosted remotes.
    """
    url = url.strip()
    if not url:
        raise ValueError("URL cannot be empty")

    match = _SSH_URL_RE.match(url)
    if match:
        return GitURLInfo(host=match["host"], owner=match["owner"], repo=match["repo"])

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError(f"unsupported URL format: {url}")
    parts = [p for p in parsed.path.split("/") if p]
    if not parts:
        raise ValueError("URL must include a repository name")
    repo = parts[-1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not repo:
        raise ValueError("URL must include a repository name")
    host = parsed.hostname if parsed.port is None else f"{parsed.hostname}:{parsed.port}"
    return GitURLInfo(host=host, owner="/".join(parts[:-1]), repo=repo)


def normalize_remote_url(url: str) -> str:
    info = parse_git_url(url)
    return f"https://{info.host}/{info.slug}".lower()


def validate_github_url(url: str) -> None:
    url = url.strip()
    if not url:
        raise ValidationError("repository URL cannot be empty")
    try:
        parse_git_url(url)
    except ValueError as exc:
        raise ValidationError(f"invalid repository URL format: {exc}") from exc


def validate_branch_name(branch: str) -> None:
    branch = branch.strip()
    if not branch:
        return
    if " " in branch:
        raise ValidationError("branch name cannot contain spaces")
    if branch.startswith("/") or branch.endswith("/"):
        raise ValidationError("branch name cannot start or end with /")
    if ".." in branch:
        raise ValidationError("branch name cannot contain consecutive dots (..)")
    for char in _BRANCH_INVALID_CHARS:
        if char in branch:
            raise ValidationError(f"branch name cannot contain '{char}'")
    if branch == "." or branch.endswith(".lock"):
        raise ValidationError(f"invalid branch name: {branch}")


def authenticated_url(url: str, token: str) -> str:
    """HTTPS URL with the token injected as basic-auth credentials."""
    info = parse_git_url(url)
    return f"https://token:{quote(token, safe='')}@{info.host}/{info.slug}.git"


def is_authentication_error(exc: BaseException) -> bool:
    message = str(exc).lower()
    return any(pattern in message for pattern in _AUTH_PATTERNS)


def translate_git_error(exc: BaseException, url: str = "") -> GitSourceError:
    message = str(exc).lower()
    target = f" ({url})" if url else ""
    if any(pattern in message for pattern in _AUTH_PATTERNS):
        return GitSourceError(
            f"authentication failed{target}: check that your GitHub token is valid and has repository access"
        )
    if any(pattern in message for pattern in _NOT_FOUND_PATTERNS):
        return GitSourceError(f"repository not found{target}: check the URL and your access rights")
    if any(pattern in message for pattern in _NETWORK_PATTERNS):
        return GitSourceError(f"network error{target}: check your internet connection and try again")
    return GitSourceError(str(exc))


def check_directory_status(path: str, remote_url: str) -> DirectoryStatus:
    target = Path(expand_path(path))
    if not target.exists():
        return DirectoryStatus.EMPTY
    if not target.is_dir():
        return DirectoryStatus.CONFLICT
    if next(target.iterdir(), None) is None:
        return DirectoryStatus.EMPTY
    if not (target / ".git").exists():
        return DirectoryStatus.CONFLICT

    try:
        repo = Repo(target)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return DirectoryStatus.DIFFERENT_REPO
    try:
        origin_url = repo.remotes.origin.url
    except (AttributeError, ValueError):
        return DirectoryStatus.DIFFERENT_REPO
    finally:
        repo.close()

    try:
        if normalize_remote_url(origin_url) == normalize_remote_url(remote_url):
            return DirectoryStatus.SAME_REPO
    except ValueError:
        pass
    return DirectoryStatus.DIFFERENT_REPO


def is_working_tree_dirty(path: str) -> bool:
    """True when the working tree at ``path`` has modified or untracked files."""
    try:
        repo = Repo(expand_path(path))
    except (InvalidGitRepositoryError, NoSuchPathError) as exc:
        raise GitSourceError(f"failed to open repository: {exc}") from exc
    try:
        return repo.is_dirty(untracked_files=True)
    except GitCommandError as exc:
        raise GitSourceError(f"failed to get repository status: {exc}") from exc
    finally:
        repo.close()


class GitSource:
    def __init__(
        self,
        remote_url: str,
        branch: str | None,
        path: str,
        credentials: CredentialManager | None = None,
    ) -> None:
        self.remote_url = remote_url
        self.branch = branch
        self.path = path
        self._credentials = credentials

    def __repr__(self) -> str:
        return f"GitSource(remote_url={self.remote_url!r}, branch={self.branch!r}, path={self.path!r})"

    @property
    def local_path(self) -> str:
        return os.path.abspath(os.path.normpath(expand_path(self.path)))

    def _credential_manager(self) -> CredentialManager:
        if self._credentials is None:
            from rulebook.repository.credentials import CredentialManager

            self._credentials = CredentialManager()
        return self._credentials

    def _stored_token(self) -> str | None:
        try:
            return self._credential_manager().get()
        except TokenNotFoundError:
            return None

    # ── Prepare ───────────────────────────────────────────────────────

    def prepare(self) -> str:
        """Make sure the clone path holds this remote and return it."""
        logger.info("Preparing git source %s at %s", self.remote_url, self.path)
        if not self.remote_url.strip():
            raise GitSourceError("remote URL cannot be empty")
        if not self.path.strip():
            raise GitSourceError("clone path cannot be empty")
        try:
            parse_git_url(self.remote_url)
        except ValueError as exc:
            raise GitSourceError(f"invalid remote URL: {exc}") from exc
        if ".." in self.path:
            raise GitSourceError("invalid local path: path traversal not allowed")

        target = self.local_path
        status = check_directory_status(target, self.remote_url)
        if status is DirectoryStatus.DIFFERENT_REPO:
            raise GitSourceError(
                f"directory contains different git repository at {target}: "
                "please resolve manually by removing or relocating the existing directory"
            )
        if status is DirectoryStatus.CONFLICT:
            raise GitSourceError(
                f"directory conflict at {target} ({status.value}): "
                "please resolve manually by removing or relocating the existing directory"
            )

        if status is DirectoryStatus.EMPTY:
            self._clone_with_auth(target)
        else:
            self._fetch_with_auth(target)
        return target

    def _clone(self, target: str, url: str) -> None:
        kwargs: dict[str, object] = {}
        if self.branch:
            kwargs["branch"] = self.branch
        Path(target).parent.mkdir(parents=True, exist_ok=True)
        repo = Repo.clone_from(url, target, env={"GIT_TERMINAL_PROMPT": "0"}, **kwargs)
        if url != self.remote_url:
            # Keep the token out of .git/config.
            repo.remotes.origin.set_url(self.remote_url)
        repo.close()

    def _clone_with_auth(self, target: str) -> None:
        logger.info("Cloning %s into %s", self.remote_url, target)
        try:
            self._clone(target, self.remote_url)
            return
        except GitCommandError as exc:
            if not is_authentication_error(exc):
                raise translate_git_error(exc, self.remote_url) from exc
            first_error = exc

        token = self._stored_token()
        if token is None:
            raise GitSourceError(
                "GitHub authentication required: configure a Personal Access Token in Settings"
            ) from first_error
        logger.debug("Anonymous clone failed, retrying with stored token")
        try:
            self._clone(target, authenticated_url(self.remote_url, token))
        except GitCommandError as exc:
            raise translate_git_error(exc, self.remote_url) from exc

    # ── Fetch ─────────────────────────────────────────────────────────

    def fetch_updates(self) -> None:
        logger.info("Manual fetch requested for %s at %s", self.remote_url, self.path)
        target = self.local_path
        if not os.path.exists(target):
            raise GitSourceError(f"repository does not exist at {target} - cannot fetch updates")
        self._fetch_with_auth(target)

    def _fetch_with_auth(self, target: str) -> None:
        try:
            self._fetch(target, token=None)
            return
        except GitCommandError as exc:
            if not is_authentication_error(exc):
                raise translate_git_error(exc, self.remote_url) from exc
            first_error = exc

        token = self._stored_token()
        if token is None:
            raise GitSourceError(
                "GitHub authentication required: configure a Personal Access Token in Settings"
            ) from first_error
        logger.debug("Anonymous fetch failed, retrying with stored token")
        try:
            self._fetch(target, token=token)
        except GitCommandError as exc:
            raise translate_git_error(exc, self.remote_url) from exc

    def _fetch(self, target: str, token: str | None) -> None:
        try:
            repo = Repo(target)
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise GitSourceError(f"failed to open existing repository: {exc}") from exc

        try:
            if repo.is_dirty(untracked_files=True):
                logger.warning("Working tree at %s has uncommitted changes, skipping sync", target)
                return

            origin = repo.remotes.origin
            with repo.git.custom_environment(GIT_TERMINAL_PROMPT="0"):
                if token:
                    repo.git.fetch(authenticated_url(self.remote_url, token), "+refs/heads/*:refs/remotes/origin/*", "--force")
                else:
                    origin.fetch(force=True)

            branch = self.branch or self._default_branch(repo)
            if branch:
                self._checkout(repo, branch)
        finally:
            repo.close()

    @staticmethod
    def _default_branch(repo: Repo) -> str | None:
        try:
            head = repo.git.symbolic_ref("refs/remotes/origin/HEAD", "--short")
        except GitCommandError:
            return None
        return head.split("/", 1)[1] if "/" in head else None

    @staticmethod
    def _checkout(repo: Repo, branch: str) -> None:
        remote_ref = f"origin/{branch}"
        if remote_ref not in [ref.name for ref in repo.remotes.origin.refs]:
            raise GitSourceError(f"branch '{branch}' does not exist on remote 'origin'")
        if branch in repo.heads:
            repo.heads[branch].checkout()
            repo.git.reset("--hard", remote_ref)
        else:
            repo.git.checkout("-b", branch, "--track", remote_ref)
        logger.info("Checked out %s", remote_ref)

    # ── Inspection ────────────────────────────────────────────────────

    def is_working_tree_dirty(self) -> bool:
        return is_working_tree_dirty(self.local_path)

    def branch_exists_on_remote(self, name: str) -> bool:
        """Look for ``origin/<name>`` among the remote-tracking refs."""
        if not name.strip():
            return True
        try:
            repo = Repo(self.local_path)
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise GitSourceError(f"failed to open repository: {exc}") from exc
        try:
            return f"origin/{name}" in [ref.name for ref in repo.remotes.origin.refs]
        except (AttributeError, ValueError) as exc:
            raise GitSourceError(f"failed to check remote branch: {exc}") from exc
        finally:
            repo.close()


def validate_remote_branch_exists(path: str, branch: str, remote_url: str = "") -> None:
    if not branch.strip():
        return
    source = GitSource(remote_url, branch, path)
    if not source.branch_exists_on_remote(branch):
        raise GitSourceError(
            f"branch '{branch}' does not exist on remote 'origin' - "
            "fetch the repository first or use a valid branch name"
        )
