import asyncio
from unittest.mock import MagicMock

from rulebook.config import Registry
from rulebook.interface.settings.app import DirectorySuggester, SettingsApp
from rulebook.interface.settings.controller import SettingsController
from rulebook.interface.settings.states import SettingsState as S

from repo_entries import fake_prepare_all, local_entry


def test_directory_suggester_completes_absolute_paths(tmp_path) -> None:
    (tmp_path / "RulesRepo").mkdir()
    (tmp_path / "readme.txt").write_text("x", encoding="utf-8")

    suggestion = asyncio.run(DirectorySuggester().get_suggestion(str(tmp_path / "ru")))

    assert suggestion == f"{tmp_path / 'RulesRepo'}/"


def test_directory_suggester_hides_hidden_directories_by_default(tmp_path) -> None:
    (tmp_path / ".cache").mkdir()
    (tmp_path / "configs").mkdir()
    suggester = DirectorySuggester()

    assert asyncio.run(suggester.get_suggestion(f"{tmp_path}/c")) == f"{tmp_path / 'configs'}/"
    assert asyncio.run(suggester.get_suggestion(f"{tmp_path}/.")) == f"{tmp_path / '.cache'}/"


def test_directory_suggester_supports_tilde_paths(tmp_path, monkeypatch) -> None:
    home = tmp_path / "home"
    (home / "rules").mkdir(parents=True)
    monkeypatch.setenv("HOME", str(home))

    suggester = DirectorySuggester()

    assert asyncio.run(suggester.get_suggestion("~/ru")) == "~/rules/"
    assert asyncio.run(suggester.get_suggestion("relative")) is None


def test_app_routes_bound_keys_to_controller(config_root, tmp_path) -> None:
    controller = SettingsController(
        Registry([local_entry("notes-1700000000", "Notes", str(tmp_path / "notes"))]),
        credentials=MagicMock(),
        prepare_all=fake_prepare_all,
    )
    app = SettingsApp(controller)

    async def scenario() -> None:
        async with app.run_test() as pilot:
            await pilot.press("down")
            await pilot.pause()
            assert controller.menu.current.label == "➕ Add New Repository"

            await pilot.press("enter")
            await pilot.pause()
            assert controller.state is S.ADD_REPOSITORY_TYPE

            await pilot.press("escape")
            await pilot.pause()
            assert controller.state is S.MAIN_MENU

            await pilot.press("escape")

    asyncio.run(scenario())

    assert controller.quit_requested is True


def test_directory_suggester_keeps_trailing_dot_after_tilde(tmp_path, monkeypatch) -> None:
    home = tmp_path / "home"
    (home / ".rulebook").mkdir(parents=True)
    (home / "notes").mkdir()
    monkeypatch.setenv("HOME", str(home))

    assert asyncio.run(DirectorySuggester().get_suggestion("~/.")) == "~/.rulebook/"
