"""Add-local and add-remote flows, including the inline token step."""

import logging
import os
from typing import TYPE_CHECKING

from rulebook.config import Registry
from rulebook.interface.settings import messages as msg
from rulebook.interface.settings.checks import (
    ensure_name_available,
    ensure_path_available,
    ensure_url_available,
)
from rulebook.interface.settings.messages import Command, Message
from rulebook.interface.settings.states import ChangeOption, SettingsState
from rulebook.interface.settings.widgets import MenuEntry
from rulebook.repository.errors import CredentialError, RulebookError, ValidationError
from rulebook.repository.git_source import validate_branch_name, validate_github_url
from rulebook.repository.models import RepositoryEntry, RepositoryType
from rulebook.repository.paths import (
    derive_clone_path,
    is_directory_empty,
    validate_and_expand_local_path,
)


if TYPE_CHECKING:
    from rulebook.interface.settings.controller import SettingsController


logger = logging.getLogger(__name__)

S = SettingsState

TYPE_OPTIONS = (
    MenuEntry(RepositoryType.LOCAL.value, "📁 Local Directory", "Store rules in a local directory on your filesystem"),
    MenuEntry(
        RepositoryType.GITHUB.value,
        "🌐 GitHub Repository",
        "Sync rules with a GitHub repository (requires authentication)",
    ),
)

NAME_PLACEHOLDER = "My Rules"
LOCAL_PATH_PLACEHOLDER = "~/rules"
URL_PLACEHOLDER = "https://github.com/owner/repo.git"
BRANCH_PLACEHOLDER = "main (leave empty for default)"
TOKEN_PLACEHOLDER = "ghp_xxxxxxxxxxxxxxxxxxxx"

_DIFFERENT_REPO_MARKER = "directory contains different git repository"


def friendly_prepare_error(exc: Exception) -> str:
    message = str(exc)
    if _DIFFERENT_REPO_MARKER in message:
        return (
            "The clone path already contains a different git repository. "
            "Choose another clone path, or move the existing directory out of the way and try again."
        )
    return message


def _unique_id(registry: Registry, name: str, created_at: int) -> tuple[str, int]:
    taken = {entry.id for entry in registry}
    repository_id = Registry.generate_id(name, created_at)
    while repository_id in taken:
        created_at += 1
        repository_id = Registry.generate_id(name, created_at)
    return repository_id, created_at


class AddFlowsMixin:
    def _init_type_menu(self: "SettingsController") -> None:
        self.type_menu.set_items(list(TYPE_OPTIONS))

    def _handle_add_repository_type(self: "SettingsController", key: str) -> Command | None:
        if key == "up":
            self.type_menu.move_up()
        elif key == "down":
            self.type_menu.move_down()
        elif key == "escape":
            self._back_to_main_menu()
        elif key == "enter" and self.type_menu.current is not None:
            self.input.reset(placeholder=NAME_PLACEHOLDER)
            if self.type_menu.current.key == RepositoryType.GITHUB.value:
                self.transition_to(S.ADD_REMOTE_NAME)
            else:
                self.transition_to(S.ADD_LOCAL_NAME)
        return None

    def _accept_new_name(self: "SettingsController") -> bool:
        try:
            self.new_name = ensure_name_available(self.registry, self.input.value)
        except ValidationError as exc:
            self.error = str(exc)
            return False
        self.has_changes = True
        return True

    def _leave_add_flow(self: "SettingsController") -> None:
        self.reset_scratch()
        self.change_kind = ChangeOption.ADD_NEW_REPOSITORY
        self.transition_to(S.ADD_REPOSITORY_TYPE)

    # ── Add local ─────────────────────────────────────────────────────

    def _handle_add_local_name(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            self._leave_add_flow()
        elif key == "enter" and self._accept_new_name():
            self.transition_to(S.ADD_LOCAL_PATH)
            self.input.reset(self.new_path, placeholder=LOCAL_PATH_PLACEHOLDER)
        return None

    def _handle_add_local_path(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            self.transition_to(S.ADD_LOCAL_NAME)
            self.input.reset(self.new_name, placeholder=NAME_PLACEHOLDER)
            return None
        if key != "enter":
            return None

        raw = self.input.value.strip()
        if not raw:
            self.error = "path cannot be empty"
            return None
        try:
            path = validate_and_expand_local_path(raw)
            ensure_path_available(self.registry, path)
        except ValidationError as exc:
            self.error = str(exc)
            return None
        self.new_path = path
        self.has_changes = True
        return self._create_local()

    def _create_local(self: "SettingsController") -> Command:
        name, path = self.new_name, self.new_path
        created_at = self._clock()

        def mutate(registry: Registry) -> None:
            ensure_name_available(registry, name)
            ensure_path_available(registry, path)
            try:
                os.makedirs(path, exist_ok=True)
            except OSError as exc:
                raise RulebookError(f"failed to create directory {path}: {exc}") from exc
            repository_id, stamp = _unique_id(registry, name, created_at)
            entry = RepositoryEntry(
                id=repository_id,
                name=name,
                type=RepositoryType.LOCAL,
                created_at=stamp,
                path=path,
            )
            self._prepare_one(entry)
            registry.append(entry)
            logger.info("Added local repository %s at %s", name, path)

        return self._mutation(msg.AddLocalError, mutate)

    def _handle_add_local_error(self: "SettingsController", _key: str) -> Command | None:
        self.transition_to(S.ADD_LOCAL_PATH)
        self.input.reset(self.new_path, placeholder=LOCAL_PATH_PLACEHOLDER)
        return None

    # ── Add remote ────────────────────────────────────────────────────

    def _handle_add_remote_name(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            self._leave_add_flow()
        elif key == "enter" and self._accept_new_name():
            self.transition_to(S.ADD_REMOTE_URL)
            self.input.reset(self.new_remote_url, placeholder=URL_PLACEHOLDER)
        return None

    def _handle_add_remote_url(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            self.transition_to(S.ADD_REMOTE_NAME)
            self.input.reset(self.new_name, placeholder=NAME_PLACEHOLDER)
            return None
        if key != "enter":
            return None

        url = self.input.value.strip()
        try:
            validate_github_url(url)
            ensure_url_available(self.registry, url)
        except ValidationError as exc:
            self.error = str(exc)
            return None
        self.new_remote_url = url
        self.has_changes = True
        self.transition_to(S.ADD_REMOTE_BRANCH)
        self.input.reset(self.new_branch, placeholder=BRANCH_PLACEHOLDER)
        return None

    def _handle_add_remote_branch(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            self.transition_to(S.ADD_REMOTE_URL)
            self.input.reset(self.new_remote_url, placeholder=URL_PLACEHOLDER)
            return None
        if key != "enter":
            return None

        branch = self.input.value.strip()
        try:
            validate_branch_name(branch)
        except ValidationError as exc:
            self.error = str(exc)
            return None
        self.new_branch = branch
        self.transition_to(S.ADD_REMOTE_PATH)
        self.input.reset(self.new_path, placeholder=derive_clone_path(self.new_remote_url))
        return None

    def _handle_add_remote_path(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            self.transition_to(S.ADD_REMOTE_BRANCH)
            self.input.reset(self.new_branch, placeholder=BRANCH_PLACEHOLDER)
            return None
        if key != "enter":
            return None

        raw = self.input.value.strip() or self.input.placeholder
        try:
            path = validate_and_expand_local_path(raw)
            ensure_path_available(self.registry, path)
        except ValidationError as exc:
            self.error = str(exc)
            return None
        if not is_directory_empty(path):
            if os.path.exists(os.path.join(path, ".git")):
                self.error = (
                    f"directory already contains a Git repository: {path}. "
                    "Choose an empty directory or remove the existing clone"
                )
            else:
                self.error = f"directory is not empty: {path}. Choose an empty or new directory"
            return None

        self.new_path = path
        self.has_changes = True
        return self._issue(self._create_remote(token=None))

    def _create_remote(self: "SettingsController", token: str | None) -> Command:
        """Command that resolves a token and then creates the remote entry.

        Without ``token`` the stored one is used, and a missing or rejected
        stored token asks the user for one. With ``token`` it is validated
        against the URL and stored before the entry is created.
        """
        name, url, branch, path = self.new_name, self.new_remote_url, self.new_branch, self.new_path
        created_at = self._clock()
        credentials = self.credentials

        def mutate(registry: Registry) -> None:
            ensure_name_available(registry, name)
            ensure_url_available(registry, url)
            ensure_path_available(registry, path)
            repository_id, stamp = _unique_id(registry, name, created_at)
            entry = RepositoryEntry(
                id=repository_id,
                name=name,
                type=RepositoryType.GITHUB,
                created_at=stamp,
                path=path,
                remote_url=url,
                branch=branch or None,
            )
            try:
                self._prepare_one(entry, self._source_for(entry))
            except RulebookError as exc:
                raise RulebookError(friendly_prepare_error(exc)) from exc
            registry.append(entry)
            logger.info("Added GitHub repository %s (%s) at %s", name, url, path)

        create = self._mutation_runner(msg.AddRemoteError, mutate)

        def run() -> Message:
            if token is None:
                try:
                    stored = credentials.get()
                    credentials.validate_token_against_url(stored, url)
                except CredentialError as exc:
                    logger.info("GitHub token needed for %s: %s", url, exc)
                    return msg.TokenNeeded(str(exc))
            else:
                try:
                    credentials.validate_token_against_url(token, url)
                except CredentialError as exc:
                    return msg.TokenRejected(f"PAT validation failed: {exc}")
                try:
                    credentials.store(token)
                except CredentialError as exc:
                    return msg.TokenRejected(f"failed to store PAT: {exc}")
            return create()

        return run

    def _on_token_needed(self: "SettingsController", event: msg.TokenNeeded) -> Command | None:
        if self.state is not S.ADD_REMOTE_PATH:
            logger.warning("Ignoring token request in %s", self.state)
            return None
        self.transition_to(S.ADD_REMOTE_TOKEN)
        self.input.reset(placeholder=TOKEN_PLACEHOLDER, password=True)
        return None

    def _handle_add_remote_token(self: "SettingsController", key: str) -> Command | None:
        if key == "escape":
            self.new_token = ""
            self.transition_to(S.ADD_REMOTE_PATH)
            self.input.reset(self.new_path, placeholder=derive_clone_path(self.new_remote_url))
            return None
        if key != "enter":
            return None

        token = self.input.value.strip()
        if not token:
            self.error = "PAT cannot be empty"
            return None
        try:
            self.credentials.validate_token_format(token)
        except CredentialError as exc:
            self.error = f"invalid PAT format: {exc}"
            return None
        self.new_token = token
        return self._issue(self._create_remote(token=token))

    def _on_token_rejected(self: "SettingsController", event: msg.TokenRejected) -> Command | None:
        if self.state is not S.ADD_REMOTE_TOKEN:
            logger.warning("Ignoring token rejection in %s: %s", self.state, event.error)
            return None
        self.error = event.error
        return None

    def _handle_add_remote_error(self: "SettingsController", _key: str) -> Command | None:
        self.new_token = ""
        self.transition_to(S.ADD_REMOTE_PATH)
        self.input.reset(self.new_path, placeholder=derive_clone_path(self.new_remote_url))
        return None
