"""Rename, edit-branch and edit-clone-path flows."""

import logging
import os
from typing import TYPE_CHECKING

from rulebook.config import Registry
from rulebook.interface.settings import messages as msg
from rulebook.interface.settings.checks import ensure_name_available, ensure_path_available
from rulebook.interface.settings.dirty_check import uncommitted_changes_message
from rulebook.interface.settings.messages import Command
from rulebook.interface.settings.states import ChangeOption, SettingsState
from rulebook.repository.errors import GitSourceError, ValidationError
from rulebook.repository.git_source import validate_branch_name
from rulebook.repository.models import RepositoryEntry
from rulebook.repository.paths import is_directory_empty, same_path, validate_and_expand_local_path


if TYPE_CHECKING:
    from rulebook.interface.settings.controller import SettingsController


logger = logging.getLogger(__name__)

S = SettingsState

BRANCH_PLACEHOLDER = "main (leave empty for default)"
CONFIRM_KEYS = ("enter", "y", "Y")
CANCEL_KEYS = ("escape", "n", "N")


class EditFlowsMixin:
    # ── Rename ────────────────────────────────────────────────────────

    def _start_rename(self: "SettingsController", entry: RepositoryEntry) -> None:
        self.change_kind = ChangeOption.CHANGE_REPO_NAME
        self.transition_to(S.UPDATE_REPO_NAME)
        self.input.reset(entry.name, placeholder=entry.name)

    def _handle_update_repo_name(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            self._back_to_actions()
            return None
        if key != "enter":
            return None
        entry = self._require_entry()
        if entry is None:
            return None
        try:
            self.new_name = ensure_name_available(self.registry, self.input.value, exclude_id=entry.id)
        except ValidationError as exc:
            self.error = str(exc)
            return None
        self.has_changes = True
        self.transition_to(S.EDIT_NAME_CONFIRM)
        return None

    def _handle_edit_name_confirm(self: "SettingsController", key: str) -> Command | None:
        if key in CANCEL_KEYS:
            self._back_to_actions()
            return None
        if key not in CONFIRM_KEYS:
            return None
        entry = self._require_entry()
        if entry is None:
            return None
        repository_id, name = entry.id, self.new_name

        def mutate(registry: Registry) -> None:
            target = registry.find_by_id(repository_id)
            ensure_name_available(registry, name, exclude_id=repository_id)
            logger.info("Renaming repository %s: %r -> %r", repository_id, target.name, name)
            target.name = name

        return self._mutation(msg.EditNameError, mutate)

    def _handle_edit_name_error(self: "SettingsController", _key: str) -> Command | None:
        self._back_to_actions()
        return None

    # ── Edit branch ───────────────────────────────────────────────────

    def _start_edit_branch(self: "SettingsController", entry: RepositoryEntry) -> None:
        self.change_kind = ChangeOption.GITHUB_BRANCH
        self.transition_to(S.UPDATE_GITHUB_BRANCH)
        self.input.reset(entry.branch or "", placeholder=BRANCH_PLACEHOLDER)

    def _handle_update_github_branch(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            self._back_to_actions()
            return None
        if key != "enter":
            return None
        entry = self._require_entry()
        if entry is None:
            return None
        branch = self.input.value.strip()
        try:
            validate_branch_name(branch)
        except ValidationError as exc:
            self._enter_error(S.EDIT_BRANCH_ERROR, str(exc))
            return None
        self.new_branch = branch
        self.has_changes = True
        return self._issue(self.dirty_check.check(entry, msg.EditBranchDirtyState))

    def _on_edit_branch_dirty_state(
        self: "SettingsController", event: msg.EditBranchDirtyState
    ) -> Command | None:
        if self.state is not S.UPDATE_GITHUB_BRANCH:
            logger.debug("Ignoring branch dirty-check result in %s", self.state)
            return None
        entry = self._require_entry()
        if entry is None:
            return None
        self.is_dirty = event.is_dirty
        if event.error:
            self._enter_error(S.EDIT_BRANCH_ERROR, event.error)
        elif event.is_dirty:
            self._enter_error(S.EDIT_BRANCH_ERROR, uncommitted_changes_message(entry.path))
        else:
            self.transition_to(S.EDIT_BRANCH_CONFIRM)
        return None

    def _handle_edit_branch_confirm(self: "SettingsController", key: str) -> Command | None:
        if key in CANCEL_KEYS:
            self._back_to_actions()
            return None
        if key not in CONFIRM_KEYS:
            return None
        entry = self._require_entry()
        if entry is None:
            return None
        repository_id, branch = entry.id, self.new_branch

        def mutate(registry: Registry) -> None:
            target = registry.find_by_id(repository_id)
            if branch:
                source = self._source_for(target)
                try:
                    exists = source.branch_exists_on_remote(branch)
                except GitSourceError as exc:
                    raise GitSourceError(f"branch validation failed: {exc}") from exc
                if not exists:
                    raise GitSourceError(
                        f"branch validation failed: branch '{branch}' does not exist on remote 'origin' - "
                        "fetch the repository first or use a valid branch name"
                    )
            logger.info("Switching %s to branch %s", target.name, branch or "(default)")
            target.branch = branch or None

        def fetch(registry: Registry) -> None:
            self._source_for(registry.find_by_id(repository_id)).fetch_updates()

        return self._mutation(msg.EditBranchError, mutate, after_persist=fetch)

    def _handle_edit_branch_error(self: "SettingsController", _key: str) -> Command | None:
        self._back_to_actions()
        return None

    # ── Edit clone path ───────────────────────────────────────────────

    def _start_edit_clone_path(self: "SettingsController", entry: RepositoryEntry) -> None:
        self.change_kind = ChangeOption.GITHUB_PATH
        self.transition_to(S.UPDATE_GITHUB_PATH)
        self.input.reset("", placeholder=entry.path)

    def _handle_update_github_path(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            self._back_to_actions()
            return None
        if key != "enter":
            return None
        entry = self._require_entry()
        if entry is None:
            return None

        raw = self.input.value.strip() or self.input.placeholder
        try:
            path = validate_and_expand_local_path(raw)
            ensure_path_available(self.registry, path, exclude_id=entry.id)
        except ValidationError as exc:
            self._enter_error(S.EDIT_CLONE_PATH_ERROR, str(exc))
            return None
        if (
            not same_path(path, entry.path)
            and not is_directory_empty(path)
            and not os.path.exists(os.path.join(path, ".git"))
        ):
            self._enter_error(
                S.EDIT_CLONE_PATH_ERROR,
                f"directory is not empty: {path}. Choose an empty or new directory",
            )
            return None

        self.new_path = path
        self.has_changes = True
        # The check runs against the current clone, which is what gets abandoned.
        return self._issue(self.dirty_check.check(entry, msg.EditClonePathDirtyState))

    def _on_edit_clone_path_dirty_state(
        self: "SettingsController", event: msg.EditClonePathDirtyState
    ) -> Command | None:
        if self.state is not S.UPDATE_GITHUB_PATH:
            logger.debug("Ignoring clone path dirty-check result in %s", self.state)
            return None
        entry = self._require_entry()
        if entry is None:
            return None
        self.is_dirty = event.is_dirty
        if event.error:
            self._enter_error(S.EDIT_CLONE_PATH_ERROR, event.error)
        elif event.is_dirty:
            self._enter_error(S.EDIT_CLONE_PATH_ERROR, uncommitted_changes_message(entry.path))
        else:
            self.transition_to(S.EDIT_CLONE_PATH_CONFIRM)
        return None

    def _handle_edit_clone_path_confirm(self: "SettingsController", key: str) -> Command | None:
        if key in CANCEL_KEYS:
            self._back_to_actions()
            return None
        if key not in CONFIRM_KEYS:
            return None
        entry = self._require_entry()
        if entry is None:
            return None
        repository_id, path = entry.id, self.new_path

        def mutate(registry: Registry) -> None:
            target = registry.find_by_id(repository_id)
            ensure_path_available(registry, path, exclude_id=repository_id)
            logger.info("Moving clone of %s: %s -> %s (old directory kept)", target.name, target.path, path)
            target.path = path

        return self._mutation(msg.EditClonePathError, mutate)

    def _handle_edit_clone_path_error(self: "SettingsController", _key: str) -> Command | None:
        self._back_to_actions()
        return None
