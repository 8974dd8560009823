"""Manual refresh, delete and update-token flows."""

import logging
from typing import TYPE_CHECKING

from rulebook.config import Registry
from rulebook.interface.settings import messages as msg
from rulebook.interface.settings.dirty_check import uncommitted_changes_message
from rulebook.interface.settings.messages import Command, Message
from rulebook.interface.settings.states import ChangeOption, SettingsState
from rulebook.repository.errors import CredentialError, RulebookError, ValidationError
from rulebook.repository.models import RepositoryEntry


if TYPE_CHECKING:
    from rulebook.interface.settings.controller import SettingsController


logger = logging.getLogger(__name__)

S = SettingsState

TOKEN_PLACEHOLDER = "ghp_xxxxxxxxxxxxxxxxxxxx"
LAST_REPOSITORY_MESSAGE = "cannot delete the last repository: at least one repository must remain configured"


class ManageFlowsMixin:
    # ── Manual refresh ────────────────────────────────────────────────

    def _start_manual_refresh(self: "SettingsController", _entry: RepositoryEntry) -> None:
        self.change_kind = ChangeOption.MANUAL_REFRESH
        self.last_refresh_error = None
        self.transition_to(S.MANUAL_REFRESH)

    def _handle_manual_refresh(self: "SettingsController", key: str) -> Command | None:
        if key in ("escape", "n", "N"):
            self._back_to_actions()
            return None
        if key not in ("enter", "y", "Y"):
            return None
        entry = self._require_entry()
        if entry is None:
            return None
        logger.info("Manual refresh requested for %s", entry.name)
        return self._issue(self.dirty_check.check(entry, msg.RefreshDirtyState))

    def _on_refresh_dirty_state(self: "SettingsController", event: msg.RefreshDirtyState) -> Command | None:
        if self.state is not S.MANUAL_REFRESH:
            logger.debug("Ignoring refresh dirty-check result in %s", self.state)
            return None
        entry = self._require_entry()
        if entry is None:
            return None
        self.is_dirty = event.is_dirty
        if event.error or event.is_dirty:
            self.last_refresh_error = event.error or uncommitted_changes_message(entry.path)
            self._enter_error(S.REFRESH_ERROR, self.last_refresh_error)
            return None

        self.refresh_in_progress = True
        self.transition_to(S.REFRESH_IN_PROGRESS)
        source = self._source_for(entry)

        def run() -> Message:
            try:
                source.fetch_updates()
            except RulebookError as exc:
                logger.error("Manual refresh of %s failed: %s", entry.name, exc)
                return msg.RefreshComplete(success=False, error=str(exc))
            logger.info("Manual refresh of %s finished", entry.name)
            return msg.RefreshComplete(success=True)

        return self._issue(run)

    def _handle_refresh_in_progress(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            # A running fetch cannot be interrupted.
            logger.info("Cancel requested during refresh; waiting for it to finish")
        return None

    def _on_refresh_complete(self: "SettingsController", event: msg.RefreshComplete) -> Command | None:
        self.refresh_in_progress = False
        if self.state is not S.REFRESH_IN_PROGRESS:
            logger.warning("Refresh finished while in %s", self.state)
            return None
        if event.success:
            self.last_refresh_error = None
            self.reset_scratch()
            self.transition_to(S.MAIN_MENU)
        else:
            self.last_refresh_error = event.error or "refresh failed"
            self._enter_error(S.REFRESH_ERROR, self.last_refresh_error)
        return None

    def _handle_refresh_error(self: "SettingsController", _key: str) -> Command | None:
        self.last_refresh_error = None
        self._back_to_actions()
        return None

    # ── Delete ────────────────────────────────────────────────────────

    def _start_delete(self: "SettingsController", _entry: RepositoryEntry) -> None:
        self.change_kind = ChangeOption.DELETE
        self.transition_to(S.CONFIRM_DELETE)

    def _handle_confirm_delete(self: "SettingsController", key: str) -> Command | None:
        if key in ("escape", "n", "N"):
            self._back_to_actions()
            return None
        if key not in ("y", "Y"):
            return None
        entry = self._require_entry()
        if entry is None:
            return None
        if len(self.registry) <= 1:
            self._enter_error(S.DELETE_ERROR, LAST_REPOSITORY_MESSAGE)
            return None
        if entry.is_remote:
            return self._issue(self.dirty_check.check(entry, msg.DeleteDirtyState))
        return self._delete(entry)

    def _on_delete_dirty_state(self: "SettingsController", event: msg.DeleteDirtyState) -> Command | None:
        if self.state is not S.CONFIRM_DELETE:
            logger.debug("Ignoring delete dirty-check result in %s", self.state)
            return None
        entry = self._require_entry()
        if entry is None:
            return None
        self.is_dirty = event.is_dirty
        if event.error:
            self._enter_error(S.DELETE_ERROR, event.error)
        elif event.is_dirty:
            self._enter_error(S.DELETE_ERROR, uncommitted_changes_message(entry.path))
        else:
            return self._delete(entry)
        return None

    def _delete(self: "SettingsController", entry: RepositoryEntry) -> Command:
        repository_id = entry.id

        def mutate(registry: Registry) -> None:
            if len(registry) <= 1:
                raise ValidationError(LAST_REPOSITORY_MESSAGE)
            removed = registry.remove(repository_id)
            logger.info("Removed repository %s (files left at %s)", removed.name, removed.path)

        return self._mutation(msg.DeleteError, mutate, removed_id=repository_id)

    def _handle_delete_error(self: "SettingsController", _key: str) -> Command | None:
        self._back_to_actions()
        return None

    # ── Update token ──────────────────────────────────────────────────

    def _start_update_token(self: "SettingsController") -> None:
        self.change_kind = ChangeOption.GITHUB_PAT
        self.transition_to(S.UPDATE_GITHUB_PAT)
        self.input.reset(placeholder=TOKEN_PLACEHOLDER, password=True)

    def _handle_update_github_pat(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            self._back_to_main_menu()
            return None
        if key != "enter":
            return None

        token = self.input.value.strip()
        if not token:
            self._enter_error(S.UPDATE_PAT_ERROR, "PAT cannot be empty")
            return None
        try:
            self.credentials.validate_token_format(token)
        except CredentialError as exc:
            self._enter_error(S.UPDATE_PAT_ERROR, f"invalid PAT format: {exc}")
            return None
        self.new_token = token
        self.has_changes = True

        credentials = self.credentials
        entries = self.registry.remote_entries()

        def run() -> Message:
            try:
                credentials.validate_token_against_entries(token, entries)
            except CredentialError as exc:
                return msg.UpdateTokenError(f"PAT validation failed: {exc}")
            return msg.TokenValidated()

        return self._issue(run)

    def _on_token_validated(self: "SettingsController", _event: msg.TokenValidated) -> Command | None:
        if self.state is not S.UPDATE_GITHUB_PAT:
            logger.debug("Ignoring token validation result in %s", self.state)
            return None
        self.transition_to(S.UPDATE_PAT_CONFIRM)
        return None

    def _handle_update_pat_confirm(self: "SettingsController", key: str) -> Command | None:
        if key in ("escape", "n", "N"):
            self._back_to_main_menu()
            return None
        if key not in ("enter", "y", "Y"):
            return None

        token = self.new_token
        credentials = self.credentials
        registry = self.registry.copy()

        def run() -> Message:
            try:
                credentials.validate_token_against_entries(token, registry.remote_entries())
            except CredentialError as exc:
                return msg.UpdateTokenError(f"PAT validation failed: {exc}")
            try:
                credentials.store(token)
            except CredentialError as exc:
                return msg.UpdateTokenError(f"failed to store GitHub token: {exc}")
            logger.info("GitHub token updated")
            prepared, warning = self._reprepare(registry)
            return msg.SettingsComplete(registry, prepared, warning=warning)

        return self._issue(run)

    def _handle_update_pat_error(self: "SettingsController", _key: str) -> Command | None:
        self._back_to_main_menu()
        return None
