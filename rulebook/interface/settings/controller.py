"""
Settings controller.

One state variable decides which key handler runs. Anything that touches
git, the filesystem or the credential store is handed back to the host as
a command; its result comes back through ``update`` as a message. State is
only ever changed from ``update``.
"""

import logging
import time
from collections.abc import Callable
from typing import Any, ClassVar

from rulebook.config import Registry
from rulebook.interface.settings import messages as msg
from rulebook.interface.settings.dirty_check import DirtyCheckCoordinator
from rulebook.interface.settings.flows_add import AddFlowsMixin
from rulebook.interface.settings.flows_edit import EditFlowsMixin
from rulebook.interface.settings.flows_manage import ManageFlowsMixin
from rulebook.interface.settings.messages import Command, Message
from rulebook.interface.settings.states import (
    ERROR_STATES,
    FLOW_STATES,
    INPUT_STATES,
    SHARED_STATES,
    ChangeOption,
    SettingsState,
    flow_of,
)
from rulebook.interface.settings.widgets import MenuEntry, MenuList, TextInput
from rulebook.repository.credentials import CredentialManager
from rulebook.repository.errors import PreparationError, RepositoryNotFoundError, RulebookError
from rulebook.repository.git_source import GitSource
from rulebook.repository.models import PreparedRepository, RepositoryEntry
from rulebook.repository.preparation import prepare_all_repositories, prepare_repository


logger = logging.getLogger(__name__)

S = SettingsState

REPOSITORY_KEY_PREFIX = "repo:"
ADD_REPOSITORY_KEY = "action:add_repository"
UPDATE_TOKEN_KEY = "action:update_token"

Mutator = Callable[[Registry], None]


class SettingsController(AddFlowsMixin, EditFlowsMixin, ManageFlowsMixin):
    KEY_HANDLERS: ClassVar[dict[SettingsState, str]] = {
        S.MAIN_MENU: "_handle_main_menu",
        S.COMPLETE: "_handle_complete",
        S.REPOSITORY_ACTIONS: "_handle_repository_actions",
        S.ADD_REPOSITORY_TYPE: "_handle_add_repository_type",
        S.ADD_LOCAL_NAME: "_handle_add_local_name",
        S.ADD_LOCAL_PATH: "_handle_add_local_path",
        S.ADD_LOCAL_ERROR: "_handle_add_local_error",
        S.ADD_REMOTE_NAME: "_handle_add_remote_name",
        S.ADD_REMOTE_URL: "_handle_add_remote_url",
        S.ADD_REMOTE_BRANCH: "_handle_add_remote_branch",
        S.ADD_REMOTE_PATH: "_handle_add_remote_path",
        S.ADD_REMOTE_TOKEN: "_handle_add_remote_token",
        S.ADD_REMOTE_ERROR: "_handle_add_remote_error",
        S.UPDATE_REPO_NAME: "_handle_update_repo_name",
        S.EDIT_NAME_CONFIRM: "_handle_edit_name_confirm",
        S.EDIT_NAME_ERROR: "_handle_edit_name_error",
        S.UPDATE_GITHUB_BRANCH: "_handle_update_github_branch",
        S.EDIT_BRANCH_CONFIRM: "_handle_edit_branch_confirm",
        S.EDIT_BRANCH_ERROR: "_handle_edit_branch_error",
        S.UPDATE_GITHUB_PATH: "_handle_update_github_path",
        S.EDIT_CLONE_PATH_CONFIRM: "_handle_edit_clone_path_confirm",
        S.EDIT_CLONE_PATH_ERROR: "_handle_edit_clone_path_error",
        S.MANUAL_REFRESH: "_handle_manual_refresh",
        S.REFRESH_IN_PROGRESS: "_handle_refresh_in_progress",
        S.REFRESH_ERROR: "_handle_refresh_error",
        S.CONFIRM_DELETE: "_handle_confirm_delete",
        S.DELETE_ERROR: "_handle_delete_error",
        S.UPDATE_GITHUB_PAT: "_handle_update_github_pat",
        S.UPDATE_PAT_CONFIRM: "_handle_update_pat_confirm",
        S.UPDATE_PAT_ERROR: "_handle_update_pat_error",
    }

    MESSAGE_HANDLERS: ClassVar[dict[type, str]] = {
        msg.SettingsComplete: "_on_settings_complete",
        msg.RefreshComplete: "_on_refresh_complete",
        msg.EditBranchDirtyState: "_on_edit_branch_dirty_state",
        msg.EditClonePathDirtyState: "_on_edit_clone_path_dirty_state",
        msg.RefreshDirtyState: "_on_refresh_dirty_state",
        msg.DeleteDirtyState: "_on_delete_dirty_state",
        msg.TokenNeeded: "_on_token_needed",
        msg.TokenRejected: "_on_token_rejected",
        msg.TokenValidated: "_on_token_validated",
    }

    # Failure messages and the flow whose error state shows them.
    FLOW_ERRORS: ClassVar[dict[type, str]] = {
        msg.AddLocalError: "add_local",
        msg.AddRemoteError: "add_remote",
        msg.EditNameError: "rename",
        msg.EditBranchError: "edit_branch",
        msg.EditClonePathError: "edit_clone_path",
        msg.DeleteError: "delete",
        msg.UpdateTokenError: "update_token",
    }

    def __init__(
        self,
        registry: Registry | None = None,
        *,
        credentials: CredentialManager | None = None,
        prepare_all: Callable[[list[RepositoryEntry]], list[PreparedRepository]] = prepare_all_repositories,
        prepare_one: Callable[..., str] = prepare_repository,
        source_factory: Callable[[RepositoryEntry], GitSource] | None = None,
        dirty_check: DirtyCheckCoordinator | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.registry = registry if registry is not None else Registry()
        self.credentials = credentials or CredentialManager()
        self._prepare_all = prepare_all
        self._prepare_one = prepare_one
        self._source_factory = source_factory
        self.dirty_check = dirty_check or DirtyCheckCoordinator()
        self._clock = clock or (lambda: int(time.time()))

        self.state = S.MAIN_MENU
        self.selected_repository_id: str | None = None
        self.change_kind: ChangeOption | None = None

        self.prepared: list[PreparedRepository] = []
        self.menu = MenuList()
        self.actions = MenuList()
        self.type_menu = MenuList()
        self.input = TextInput()

        self.error: str | None = None
        self.notice: str | None = None
        self.is_dirty = False
        self.refresh_in_progress = False
        self.last_refresh_error: str | None = None
        self.pending = False
        self.quit_requested = False
        # Bumped by every applied mutation; older loads are stale.
        self.generation = 0
        self.width = 80
        self.height = 24

        self.reset_scratch()
        self._init_type_menu()
        self._rebuild_menu()

    # ── Entry points ──────────────────────────────────────────────────

    def init(self) -> Command:
        """Command that prepares the registry the controller was built with."""
        registry = self.registry.copy()
        generation = self.generation

        def run() -> Message:
            try:
                prepared = self._prepare_all(registry.repositories)
            except PreparationError as exc:
                logger.warning("Initial preparation finished with errors: %s", exc)
                return msg.RegistryLoaded(registry, exc.prepared, str(exc), generation=generation)
            return msg.RegistryLoaded(registry, prepared, generation=generation)

        return run

    def update(self, event: Message) -> Command | None:
        if isinstance(event, msg.KeyPress):
            return self._on_key(event.key)
        if isinstance(event, msg.InputChanged):
            self._on_input_changed(event.value)
            return None
        if isinstance(event, msg.Resize):
            self.width, self.height = event.width, event.height
            return None
        if isinstance(event, msg.RegistryLoaded):
            self._on_registry_loaded(event)
            return None

        self.pending = False
        flow = self.FLOW_ERRORS.get(type(event))
        if flow is not None:
            self._on_flow_error(flow, event.error)  # type: ignore[union-attr]
            return None
        handler_name = self.MESSAGE_HANDLERS.get(type(event))
        if handler_name is None:
            logger.warning("Unhandled settings message %r", event)
            return None
        result: Command | None = getattr(self, handler_name)(event)
        return result

    # ── Dispatch ──────────────────────────────────────────────────────

    def _on_key(self, key: str) -> Command | None:
        if key == "ctrl+c":
            logger.info("Quit requested in %s", self.state)
            self.quit_requested = True
            return None
        if self.pending and self.state is not S.REFRESH_IN_PROGRESS:
            logger.debug("Ignoring %s in %s while a command is running", key, self.state)
            return None
        result: Command | None = getattr(self, self.KEY_HANDLERS[self.state])(key)
        return result

    def _on_input_changed(self, value: str) -> None:
        if self.state not in INPUT_STATES or self.pending:
            return
        if value == self.input.value:
            return
        self.input.set_value(value)
        self.error = None

    def _on_registry_loaded(self, event: msg.RegistryLoaded) -> None:
        if event.generation != self.generation:
            logger.info("Discarding registry load from before the last saved change")
            return
        if event.registry is not None:
            self.registry = event.registry
        self.prepared = list(event.prepared)
        self.notice = event.error
        self._rebuild_menu()

    def command_failed(self, error: str) -> None:
        """A command raised instead of returning a message."""
        self.pending = False
        self.refresh_in_progress = False
        flow = flow_of(self.state)
        if flow in ERROR_STATES:
            if self.state is S.REFRESH_IN_PROGRESS:
                self.last_refresh_error = error
            self._enter_error(ERROR_STATES[flow], error)
        else:
            self.notice = error

    def _on_flow_error(self, flow: str, error: str) -> None:
        if self.state not in FLOW_STATES[flow]:
            logger.warning("Error for inactive %s flow while in %s: %s", flow, self.state, error)
            self.notice = error
            return
        self._enter_error(ERROR_STATES[flow], error)

    def _on_settings_complete(self, event: msg.SettingsComplete) -> None:
        self.registry = event.registry
        self.generation += 1
        self.prepared = list(event.prepared)
        if event.removed_id is not None and event.removed_id == self.selected_repository_id:
            self.selected_repository_id = None
        self._rebuild_menu()
        self.reset_scratch()
        self.transition_to(S.COMPLETE)
        self.notice = event.warning
        logger.info("Settings updated (%d repositories)", len(self.registry))

    # ── State helpers ─────────────────────────────────────────────────

    def transition_to(self, state: SettingsState) -> None:
        if state is not self.state:
            logger.debug("Settings %s -> %s", self.state, state)
        self.state = state
        self.error = None
        if state not in SHARED_STATES:
            self.notice = None

    def _enter_error(self, state: SettingsState, message: str) -> None:
        logger.warning("%s: %s", state, message)
        self.transition_to(state)
        self.error = message

    def reset_scratch(self) -> None:
        self.new_name = ""
        self.new_path = ""
        self.new_remote_url = ""
        self.new_branch = ""
        self.new_token = ""
        self.has_changes = False
        self.change_kind = None
        if self.input.password:
            self.input.reset()

    def _back_to_actions(self) -> None:
        self.reset_scratch()
        if self.selected_entry() is None:
            self.transition_to(S.MAIN_MENU)
            return
        self._rebuild_actions()
        self.transition_to(S.REPOSITORY_ACTIONS)

    def _back_to_main_menu(self) -> None:
        self.reset_scratch()
        self.transition_to(S.MAIN_MENU)

    def _issue(self, command: Command) -> Command:
        self.pending = True
        return command

    def selected_entry(self) -> RepositoryEntry | None:
        if self.selected_repository_id is None:
            return None
        try:
            return self.registry.find_by_id(self.selected_repository_id)
        except RepositoryNotFoundError:
            return None

    def _require_entry(self) -> RepositoryEntry | None:
        entry = self.selected_entry()
        if entry is None:
            logger.warning("Selected repository %s is gone", self.selected_repository_id)
            self.selected_repository_id = None
            self._back_to_main_menu()
        return entry

    def _source_for(self, entry: RepositoryEntry) -> GitSource:
        if self._source_factory is not None:
            return self._source_factory(entry)
        return GitSource(entry.remote_url or "", entry.branch, entry.path, credentials=self.credentials)

    # ── Menus ─────────────────────────────────────────────────────────

    def _rebuild_menu(self) -> None:
        rows = {row.id: row for row in self.prepared}
        items = []
        for entry in self.registry:
            row = rows.get(entry.id)
            if row is None:
                hint = f"{'🔗' if entry.is_remote else '📁'} {entry.type.value} • {entry.path}"
            elif row.is_ready:
                hint = row.description
            else:
                hint = "⚠️  " + (row.message.splitlines() or ["not ready"])[0]
            items.append(MenuEntry(f"{REPOSITORY_KEY_PREFIX}{entry.id}", entry.name, hint))
        items.append(MenuEntry(ADD_REPOSITORY_KEY, "➕ Add New Repository", "Add a local or GitHub repository"))
        items.append(
            MenuEntry(
                UPDATE_TOKEN_KEY,
                "🔑 Update GitHub PAT",
                "Update Personal Access Token for GitHub repositories",
            )
        )
        self.menu.set_items(items, keep_key=True)
        self._rebuild_actions()

    def _rebuild_actions(self) -> None:
        entry = self.selected_entry()
        if entry is None:
            self.actions.set_items([])
            return
        items: list[MenuEntry] = []
        if entry.is_remote:
            items.append(
                MenuEntry(
                    ChangeOption.GITHUB_BRANCH.value,
                    "🌿 Update GitHub Branch",
                    f"Current: {entry.branch or 'default branch'}",
                )
            )
            items.append(
                MenuEntry(ChangeOption.GITHUB_PATH.value, "📂 Update Clone Path", f"Current: {entry.path}")
            )
        items.append(
            MenuEntry(ChangeOption.CHANGE_REPO_NAME.value, "✏️ Change Repository Name", f"Current: {entry.name}")
        )
        if entry.is_remote:
            items.append(
                MenuEntry(ChangeOption.MANUAL_REFRESH.value, "🔄 Manual Refresh", "Pull latest changes from GitHub")
            )
        if len(self.registry) > 1:
            items.append(
                MenuEntry(ChangeOption.DELETE.value, "🗑️  Delete Repository", "Remove from the repository list")
            )
        items.append(MenuEntry(ChangeOption.BACK.value, "← Back to Repository List"))
        self.actions.set_items(items, keep_key=True)

    def _handle_main_menu(self, key: str) -> Command | None:
        if key == "up":
            self.menu.move_up()
        elif key == "down":
            self.menu.move_down()
        elif key == "escape":
            logger.info("Leaving settings")
            self.quit_requested = True
        elif key == "enter":
            choice = self.menu.current
            if choice is None:
                return None
            self.reset_scratch()
            if choice.key == ADD_REPOSITORY_KEY:
                self.change_kind = ChangeOption.ADD_NEW_REPOSITORY
                self.type_menu.reset()
                self.transition_to(S.ADD_REPOSITORY_TYPE)
            elif choice.key == UPDATE_TOKEN_KEY:
                self._start_update_token()
            elif choice.key.startswith(REPOSITORY_KEY_PREFIX):
                self.selected_repository_id = choice.key[len(REPOSITORY_KEY_PREFIX) :]
                self._rebuild_actions()
                self.actions.reset()
                self.transition_to(S.REPOSITORY_ACTIONS)
        return None

    def _handle_repository_actions(self, key: str) -> Command | None:
        entry = self._require_entry()
        if entry is None:
            return None
        if key == "up":
            self.actions.move_up()
        elif key == "down":
            self.actions.move_down()
        elif key == "escape":
            self._back_to_main_menu()
        elif key == "enter" and self.actions.current is not None:
            option = ChangeOption(self.actions.current.key)
            starters: dict[ChangeOption, Callable[[RepositoryEntry], None]] = {
                ChangeOption.GITHUB_BRANCH: self._start_edit_branch,
                ChangeOption.GITHUB_PATH: self._start_edit_clone_path,
                ChangeOption.CHANGE_REPO_NAME: self._start_rename,
                ChangeOption.MANUAL_REFRESH: self._start_manual_refresh,
                ChangeOption.DELETE: self._start_delete,
            }
            if option is ChangeOption.BACK:
                self._back_to_main_menu()
            else:
                self.reset_scratch()
                self.change_kind = option
                starters[option](entry)
        return None

    def _handle_complete(self, _key: str) -> Command | None:
        self.transition_to(S.MAIN_MENU)
        return None

    # ── Mutation & reconciliation ─────────────────────────────────────

    def _mutation_runner(
        self,
        fail: Callable[[str], Message],
        mutate: Mutator,
        *,
        after_persist: Callable[[Registry], Any] | None = None,
        removed_id: str | None = None,
    ) -> Command:
        """Build the command that mutates, persists and re-prepares a registry copy.

        The live registry is only swapped in when the resulting
        ``SettingsComplete`` reaches ``update``.
        """
        registry = self.registry.copy()

        def run() -> Message:
            try:
                mutate(registry)
            except RulebookError as exc:
                logger.error("Settings change rejected: %s", exc)
                return fail(str(exc))
            try:
                registry.persist()
            except OSError as exc:
                logger.exception("Failed to save repository configuration")
                return fail(f"failed to save configuration: {exc}")

            warnings = []
            if after_persist is not None:
                try:
                    after_persist(registry)
                except RulebookError as exc:
                    logger.warning("Post-save step failed: %s", exc)
                    warnings.append(str(exc))
            prepared, warning = self._reprepare(registry)
            if warning:
                warnings.append(warning)
            return msg.SettingsComplete(
                registry,
                prepared,
                removed_id=removed_id,
                warning="\n".join(warnings) or None,
            )

        return run

    def _mutation(self, fail: Callable[[str], Message], mutate: Mutator, **kwargs: Any) -> Command:
        return self._issue(self._mutation_runner(fail, mutate, **kwargs))

    def _reprepare(self, registry: Registry) -> tuple[list[PreparedRepository], str | None]:
        try:
            return self._prepare_all(registry.repositories), None
        except PreparationError as exc:
            logger.warning("Repositories prepared with errors: %s", exc)
            return list(exc.prepared), str(exc)
