import logging
import os
from collections.abc import Callable

from rulebook.interface.settings.messages import Command, Message
from rulebook.repository.errors import RulebookError
from rulebook.repository.git_source import is_working_tree_dirty
from rulebook.repository.models import RepositoryEntry
from rulebook.repository.paths import expand_path


logger = logging.getLogger(__name__)

DirtyResult = Callable[[bool, str | None], Message]


def uncommitted_changes_message(path: str) -> str:
    return (
        f"repository has uncommitted changes at {path}. "
        "Commit and push them, or discard them with 'git reset --hard HEAD', then try again"
    )


class DirtyCheckCoordinator:
    """Builds commands that ask git whether an entry's clone has local changes.

    The caller supplies the constructor for its own flow's result message,
    so a result can only ever be consumed by the flow that asked for it.
    """

    def __init__(self, checker: Callable[[str], bool] = is_working_tree_dirty):
        self._checker = checker

    def check(self, entry: RepositoryEntry | None, done: DirtyResult) -> Command:
        if entry is None or not entry.is_remote:
            return lambda: done(False, None)

        path = entry.path

        def run() -> Message:
            target = expand_path(path)
            if not os.path.exists(target):
                logger.debug("No clone at %s, treating as clean", target)
                return done(False, None)
            try:
                dirty = self._checker(target)
            except RulebookError as exc:
                logger.warning("Dirty check failed for %s: %s", target, exc)
                return done(False, f"failed to check repository status: {exc}")
            return done(dirty, None)

        return run
