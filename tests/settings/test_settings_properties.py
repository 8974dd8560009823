from unittest.mock import MagicMock

import pytest

from rulebook.config import Config, Registry
from rulebook.interface.settings import messages as msg
from rulebook.interface.settings.controller import SettingsController
from rulebook.interface.settings.messages import KeyPress
from rulebook.interface.settings.states import (
    SHARED_STATES,
    ChangeOption,
    SettingsState as S,
    allowed_targets,
    flow_of,
)
from rulebook.interface.settings.views import RENDERERS, render_plain

from repo_entries import fake_prepare_all, local_entry, remote_entry


REMOTE_ID = "rules-1700000000"
LOCAL_ID = "notes-1700000000"


@pytest.fixture
def populated(make_harness, tmp_path):
    clone = tmp_path / "rules"
    clone.mkdir()
    harness = make_harness(
        remote_entry(REMOTE_ID, "Rules", str(clone)),
        local_entry(LOCAL_ID, "Notes", str(tmp_path / "notes")),
    )
    harness.controller.selected_repository_id = REMOTE_ID
    return harness


def test_every_state_has_a_key_handler_and_renderer() -> None:
    for state in S:
        assert state in SettingsController.KEY_HANDLERS, state
        assert callable(getattr(SettingsController, SettingsController.KEY_HANDLERS[state]))
        assert state in RENDERERS, state


def test_every_state_renders(populated) -> None:
    controller = populated.controller
    controller.new_name = "Renamed"
    controller.new_path = "/srv/rules"
    controller.new_remote_url = "https://github.com/acme/rules.git"
    controller.new_token = "ghp_abcdefghijklmnopqrstuvwxyz"
    for state in S:
        controller.state = state
        assert render_plain(controller).strip()


def test_every_state_belongs_to_exactly_one_flow() -> None:
    for state in S:
        assert flow_of(state)


@pytest.mark.parametrize("state", [state for state in S if state not in SHARED_STATES])
@pytest.mark.parametrize("key", ["up", "down", "enter", "escape", "y", "n", "x"])
def test_key_handlers_only_reach_their_own_flow(populated, state, key) -> None:
    controller = populated.controller
    controller.state = state

    controller.update(KeyPress(key))

    assert controller.state in allowed_targets(state)


def test_reset_scratch_clears_every_field(populated) -> None:
    controller = populated.controller
    controller.new_name = "x"
    controller.new_path = "/tmp/x"
    controller.new_remote_url = "https://github.com/acme/x"
    controller.new_branch = "develop"
    controller.new_token = "ghp_secret"
    controller.has_changes = True
    controller.change_kind = ChangeOption.GITHUB_PAT
    controller.input.reset("ghp_secret", password=True)

    controller.reset_scratch()

    assert controller.new_name == ""
    assert controller.new_path == ""
    assert controller.new_remote_url == ""
    assert controller.new_branch == ""
    assert controller.new_token == ""
    assert controller.has_changes is False
    assert controller.change_kind is None
    assert controller.input.value == ""
    assert controller.input.password is False


def _on_disk() -> list[dict]:
    return [entry.to_dict() for entry in Registry.load()]


def test_disk_matches_memory_after_rename(populated) -> None:
    populated.select_repository(REMOTE_ID)
    populated.choose_action(ChangeOption.CHANGE_REPO_NAME.value)
    populated.submit("Team Rules")
    populated.press("y")

    assert populated.state is S.COMPLETE
    assert _on_disk() == [entry.to_dict() for entry in populated.controller.registry]
    assert populated.controller.registry.find_by_id(REMOTE_ID).name == "Team Rules"


def test_disk_matches_memory_after_delete(populated) -> None:
    populated.select_repository(LOCAL_ID)
    populated.choose_action(ChangeOption.DELETE.value)
    populated.press("y")

    assert populated.state is S.COMPLETE
    assert _on_disk() == [entry.to_dict() for entry in populated.controller.registry]
    assert [entry.id for entry in populated.controller.registry] == [REMOTE_ID]
    assert populated.controller.selected_repository_id is None


@pytest.mark.parametrize("count", [1, 2, 3, 4])
def test_delete_offered_only_with_two_or_more(make_harness, tmp_path, count) -> None:
    entries = [local_entry(f"repo{i}-1700000000", f"Repo {i}", str(tmp_path / f"repo{i}")) for i in range(count)]
    h = make_harness(*entries)

    h.select_repository(entries[0].id)
    keys = [item.key for item in h.controller.actions.items]

    assert (ChangeOption.DELETE.value in keys) is (count >= 2)


def test_delete_attempt_with_one_entry_does_not_mutate(make_harness, tmp_path) -> None:
    entry = remote_entry(REMOTE_ID, "Rules", str(tmp_path / "rules"))
    h = make_harness(entry)
    h.controller.selected_repository_id = REMOTE_ID
    h.controller.state = S.CONFIRM_DELETE

    h.press("Y")

    assert h.state is S.DELETE_ERROR
    assert [e.id for e in h.controller.registry] == [REMOTE_ID]
    assert h.dirty.calls == []
    assert not Config.config_file().exists()


def _count_rebuilds(controller: SettingsController) -> MagicMock:
    spy = MagicMock(wraps=controller._rebuild_menu)
    controller._rebuild_menu = spy  # type: ignore[method-assign]
    return spy


def test_menu_rebuilt_once_per_rename(populated) -> None:
    prepare_all = MagicMock(side_effect=fake_prepare_all)
    populated.controller._prepare_all = prepare_all
    spy = _count_rebuilds(populated.controller)

    populated.select_repository(LOCAL_ID)
    populated.choose_action(ChangeOption.CHANGE_REPO_NAME.value)
    populated.submit("Notebook")
    populated.press("enter")

    assert populated.state is S.COMPLETE
    assert spy.call_count == 1
    assert prepare_all.call_count == 1
    labels = [item.label for item in populated.controller.menu.items]
    assert "Notebook" in labels


def test_menu_rebuilt_once_per_add_local(populated, tmp_path) -> None:
    prepare_all = MagicMock(side_effect=fake_prepare_all)
    populated.controller._prepare_all = prepare_all
    spy = _count_rebuilds(populated.controller)

    populated.controller.menu.select_key("action:add_repository")
    populated.press("enter", "enter")
    populated.submit("Drafts")
    populated.submit(str(tmp_path / "drafts"))

    assert populated.state is S.COMPLETE
    assert spy.call_count == 1
    assert prepare_all.call_count == 1
    assert (tmp_path / "drafts").is_dir()


def test_menu_rebuilt_once_per_delete(populated) -> None:
    spy = _count_rebuilds(populated.controller)

    populated.select_repository(REMOTE_ID)
    populated.choose_action(ChangeOption.DELETE.value)
    populated.press("y")

    assert populated.state is S.COMPLETE
    assert spy.call_count == 1
    assert len(populated.controller.menu.items) == 3


def test_rename_to_own_name_is_allowed_and_leaves_file_unchanged(populated) -> None:
    populated.controller.registry.persist()
    before = Config.config_file().read_bytes()

    populated.select_repository(REMOTE_ID)
    populated.choose_action(ChangeOption.CHANGE_REPO_NAME.value)
    populated.submit("Rules")
    assert populated.state is S.EDIT_NAME_CONFIRM
    populated.press("enter")

    assert populated.state is S.COMPLETE
    assert Config.config_file().read_bytes() == before


def test_two_renames_equal_one(make_harness, populated, tmp_path) -> None:
    for name in ("Interim", "Final"):
        populated.select_repository(REMOTE_ID)
        populated.choose_action(ChangeOption.CHANGE_REPO_NAME.value)
        populated.submit(name)
        populated.press("enter")
        assert populated.state is S.COMPLETE
        populated.press("enter")
    twice = _on_disk()

    clone = tmp_path / "rules"
    once = make_harness(
        remote_entry(REMOTE_ID, "Rules", str(clone)),
        local_entry(LOCAL_ID, "Notes", str(tmp_path / "notes")),
    )
    once.select_repository(REMOTE_ID)
    once.choose_action(ChangeOption.CHANGE_REPO_NAME.value)
    once.submit("Final")
    once.press("enter")

    assert _on_disk() == twice


def _walk_to_remote_url(h) -> None:
    h.controller.menu.select_key("action:add_repository")
    h.press("enter", "down", "enter")
    h.submit("Another")
    assert h.state is S.ADD_REMOTE_URL


def test_add_remote_rejects_duplicate_url(populated) -> None:
    _walk_to_remote_url(populated)
    populated.submit("git@github.com:ACME/rules.git")

    assert populated.state is S.ADD_REMOTE_URL
    assert populated.controller.error == "repository URL already used by repository 'Rules'"


def test_add_remote_rejects_malformed_url(populated) -> None:
    _walk_to_remote_url(populated)
    populated.submit("not a url")

    assert populated.state is S.ADD_REMOTE_URL
    assert populated.controller.error.startswith("invalid repository URL format")


@pytest.mark.parametrize("branch", ["has space", "a..b", "/lead", "feature.lock", "what?"])
def test_add_remote_rejects_malformed_branch(populated, branch) -> None:
    _walk_to_remote_url(populated)
    populated.submit("https://github.com/acme/other.git")
    populated.submit(branch)

    assert populated.state is S.ADD_REMOTE_BRANCH
    assert populated.controller.error


def _walk_to_remote_path(h) -> None:
    _walk_to_remote_url(h)
    h.submit("https://github.com/acme/other.git")
    h.submit("")
    assert h.state is S.ADD_REMOTE_PATH


def test_add_remote_rejects_duplicate_path(populated, tmp_path) -> None:
    _walk_to_remote_path(populated)
    populated.submit(str(tmp_path / "notes"))

    assert populated.state is S.ADD_REMOTE_PATH
    assert populated.controller.error == "path already used by repository 'Notes'"


def test_add_remote_rejects_directory_with_existing_clone(populated, tmp_path) -> None:
    target = tmp_path / "existing"
    (target / ".git").mkdir(parents=True)
    _walk_to_remote_path(populated)
    populated.submit(str(target))

    assert populated.state is S.ADD_REMOTE_PATH
    assert populated.controller.error.startswith("directory already contains a Git repository")


def test_add_remote_rejects_non_empty_directory(populated, tmp_path) -> None:
    target = tmp_path / "occupied"
    target.mkdir()
    (target / "README.md").write_text("hi", encoding="utf-8")
    _walk_to_remote_path(populated)
    populated.submit(str(target))

    assert populated.state is S.ADD_REMOTE_PATH
    assert populated.controller.error.startswith("directory is not empty")


@pytest.mark.parametrize(
    ("state", "stray"),
    [
        (S.UPDATE_GITHUB_BRANCH, msg.RefreshDirtyState(True)),
        (S.UPDATE_GITHUB_BRANCH, msg.DeleteDirtyState(True)),
        (S.UPDATE_GITHUB_PATH, msg.EditBranchDirtyState(True)),
        (S.MANUAL_REFRESH, msg.EditClonePathDirtyState(True)),
        (S.CONFIRM_DELETE, msg.RefreshDirtyState(False)),
    ],
)
def test_dirty_result_for_another_flow_is_ignored(populated, state, stray) -> None:
    controller = populated.controller
    controller.state = state

    assert controller.update(stray) is None

    assert controller.state is state
    assert controller.error is None
    assert controller.is_dirty is False


def test_dirty_result_reaches_its_own_flow(populated) -> None:
    controller = populated.controller
    controller.state = S.UPDATE_GITHUB_PATH

    controller.update(msg.EditClonePathDirtyState(False))

    assert controller.state is S.EDIT_CLONE_PATH_CONFIRM
