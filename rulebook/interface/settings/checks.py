"""Registry-wide uniqueness rules shared by the add and edit flows."""

from rulebook.config import Registry
from rulebook.repository.errors import ValidationError
from rulebook.repository.git_source import normalize_remote_url
from rulebook.repository.models import validate_repository_name
from rulebook.repository.paths import same_path


def ensure_name_available(registry: Registry, name: str, exclude_id: str | None = None) -> str:
    """Validate ``name`` and return it trimmed. Comparison is case-sensitive."""
    trimmed = name.strip()
    validate_repository_name(trimmed)
    for entry in registry:
        if entry.id != exclude_id and entry.name.strip() == trimmed:
            raise ValidationError("repository name already exists")
    return trimmed


def ensure_path_available(registry: Registry, path: str, exclude_id: str | None = None) -> None:
    for entry in registry:
        if entry.id != exclude_id and same_path(entry.path, path):
            raise ValidationError(f"path already used by repository '{entry.name}'")


def _comparable_url(url: str) -> str:
    try:
        return normalize_remote_url(url)
    except ValueError:
        return url.strip().lower()


def ensure_url_available(registry: Registry, url: str, exclude_id: str | None = None) -> None:
    wanted = _comparable_url(url)
    for entry in registry:
        if entry.id == exclude_id or not entry.remote_url:
            continue
        if _comparable_url(entry.remote_url) == wanted:
            raise ValidationError(f"repository URL already used by repository '{entry.name}'")
