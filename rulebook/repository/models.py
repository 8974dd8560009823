from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from rulebook.repository.errors import ValidationError


MAX_NAME_LENGTH = 100


class RepositoryType(str, Enum):
    LOCAL = "local"
    GITHUB = "github"

    @property
    def display_name(self) -> str:
        return "GitHub Repository" if self is RepositoryType.GITHUB else "Local Directory"


@dataclass(slots=True)
class RepositoryEntry:
    id: str
    name: str
    type: RepositoryType
    created_at: int
    path: str
    remote_url: str | None = None
    branch: str | None = None
    last_sync_time: int | None = None

    @property
    def is_remote(self) -> bool:
        return self.type is RepositoryType.GITHUB

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "created_at": self.created_at,
            "path": self.path,
        }
        if self.remote_url is not None:
            data["remote_url"] = self.remote_url
        if self.branch is not None:
            data["branch"] = self.branch
        if self.last_sync_time is not None:
            data["last_sync_time"] = self.last_sync_time
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RepositoryEntry:
        try:
            repo_type = RepositoryType(str(data.get("type", "")))
        except ValueError as exc:
            raise ValidationError(f"invalid repository type {data.get('type')!r}") from exc
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            type=repo_type,
            created_at=int(data.get("created_at") or 0),
            path=str(data.get("path", "")),
            remote_url=data.get("remote_url"),
            branch=data.get("branch"),
            last_sync_time=data.get("last_sync_time"),
        )


@dataclass(slots=True)
class PreparedRepository:
    """Registry entry decorated for the settings list."""

    entry: RepositoryEntry
    local_path: str
    status: str = "ready"
    message: str = ""

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def title(self) -> str:
        return self.entry.name

    @property
    def description(self) -> str:
        icon = "🔗" if self.entry.is_remote else "📁"
        return f"{icon} {self.entry.type.value} • {self.local_path}"

    @property
    def is_ready(self) -> bool:
        return self.status == "ready"


@dataclass(slots=True)
class GitURLInfo:
    host: str
    owner: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}" if self.owner else self.repo


def validate_repository_name(name: str) -> None:
    trimmed = name.strip()
    if not trimmed:
        raise ValidationError("repository name cannot be empty")
    if len(trimmed) > MAX_NAME_LENGTH:
        raise ValidationError(f"repository name must be {MAX_NAME_LENGTH} characters or less")
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in trimmed):
        raise ValidationError("repository name contains invalid control characters")


def validate_repository_entry(entry: RepositoryEntry) -> None:  # noqa: PLR0912
    if not entry.id:
        raise ValidationError("repository ID cannot be empty")
    prefix, _, timestamp = entry.id.rpartition("-")
    if not prefix:
        raise ValidationError(f"invalid repository ID format {entry.id!r} (expected: name-timestamp)")
    if not timestamp.isdigit():
        raise ValidationError(f"invalid repository ID format {entry.id!r} (timestamp must be numeric)")

    validate_repository_name(entry.name)

    if entry.created_at <= 0:
        raise ValidationError(
            f"invalid created_at timestamp: {entry.created_at} (must be positive Unix timestamp)"
        )
    if not entry.path.strip():
        raise ValidationError("repository path cannot be empty")
    if "\x00" in entry.path:
        raise ValidationError("repository path contains null bytes")

    if entry.is_remote:
        if not (entry.remote_url or "").strip():
            raise ValidationError("github repository must have a remote URL")
        if entry.branch is not None and not entry.branch.strip():
            raise ValidationError("branch cannot be empty string (use None for default branch)")
        if entry.last_sync_time is not None and entry.last_sync_time <= 0:
            raise ValidationError(
                f"last_sync_time must be positive Unix timestamp, got: {entry.last_sync_time}"
            )
    else:
        if entry.remote_url:
            raise ValidationError("local repository should not have a remote URL")
        if entry.branch:
            raise ValidationError("local repository should not have a branch")


def validate_all_repositories(entries: list[RepositoryEntry]) -> None:
    seen_ids: dict[str, str] = {}
    for entry in entries:
        if entry.id in seen_ids:
            raise ValidationError(
                f"duplicate repository ID {entry.id!r} found in repositories "
                f"{seen_ids[entry.id]!r} and {entry.name!r}"
            )
        seen_ids[entry.id] = entry.name

    seen_names: dict[str, str] = {}
    for entry in entries:
        key = entry.name.strip()
        if key in seen_names:
            raise ValidationError(f"duplicate repository name found: {seen_names[key]!r} and {entry.name!r}")
        seen_names[key] = entry.name

    problems = []
    for idx, entry in enumerate(entries):
        try:
            validate_repository_entry(entry)
        except ValidationError as exc:
            problems.append(f"repository[{idx}] ({entry.name}): {exc}")
    if problems:
        raise ValidationError("repository validation failed:\n  - " + "\n  - ".join(problems))
