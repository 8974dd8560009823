import logging
import os

from rulebook.repository.errors import (
    PathValidationError,
    PreparationError,
    RulebookError,
    ValidationError,
)
from rulebook.repository.git_source import GitSource
from rulebook.repository.models import PreparedRepository, RepositoryEntry, validate_all_repositories
from rulebook.repository.paths import expand_path, validate_storage_path


logger = logging.getLogger(__name__)


def _prepare_local(path: str) -> str:
    trimmed = path.strip()
    if not trimmed:
        raise RulebookError("local source path cannot be empty")
    clean = os.path.normpath(expand_path(trimmed))
    try:
        validate_storage_path(clean)
    except PathValidationError as exc:
        raise RulebookError(f"invalid local source path: {exc}") from exc
    if not os.path.exists(clean):
        raise RulebookError(f"local source directory does not exist: {clean}")
    if not os.path.isdir(clean):
        raise RulebookError(f"local source path is not a directory: {clean}")
    return os.path.abspath(clean)


def prepare_repository(entry: RepositoryEntry, source: GitSource | None = None) -> str:
    """Validate or materialise one entry and return its local path."""
    try:
        if entry.is_remote:
            source = source or GitSource(entry.remote_url or "", entry.branch, entry.path)
            local_path = source.prepare()
        else:
            local_path = _prepare_local(entry.path)
    except RulebookError as exc:
        raise RulebookError(f"failed to prepare repository {entry.id} ({entry.name}): {exc}") from exc
    logger.info("Repository %s prepared at %s", entry.name, local_path)
    return local_path


def prepare_all_repositories(entries: list[RepositoryEntry]) -> list[PreparedRepository]:
    logger.info("Preparing %d repositories", len(entries))
    try:
        validate_all_repositories(entries)
    except ValidationError as exc:
        raise PreparationError(
            f"repository validation failed: {exc}",
            prepared=[_failed_row(entry, str(exc)) for entry in entries],
        ) from exc

    prepared: list[PreparedRepository] = []
    failures: list[str] = []
    for entry in entries:
        try:
            local_path = prepare_repository(entry)
        except RulebookError as exc:
            logger.error("Repository preparation failed for %s: %s", entry.name, exc)
            failures.append(f"repository {entry.id} ({entry.name}): {exc}")
            prepared.append(_failed_row(entry, str(exc)))
            continue
        prepared.append(PreparedRepository(entry=entry, local_path=local_path))

    if failures:
        raise PreparationError(
            f"failed to prepare {len(failures)} repositories:\n  - " + "\n  - ".join(failures),
            prepared=prepared,
        )
    return prepared


def _failed_row(entry: RepositoryEntry, message: str) -> PreparedRepository:
    return PreparedRepository(
        entry=entry,
        local_path=expand_path(entry.path),
        status="error",
        message=message,
    )
