from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from rulebook.config import Config, Registry
from rulebook.interface.settings.controller import REPOSITORY_KEY_PREFIX, SettingsController
from rulebook.interface.settings.dirty_check import DirtyCheckCoordinator
from rulebook.interface.settings.messages import Command, InputChanged, KeyPress
from rulebook.repository.models import RepositoryEntry

from repo_entries import fake_prepare_all


class DirtyFlag:
    """Checker stand-in whose answer tests can flip."""

    def __init__(self) -> None:
        self.dirty = False
        self.calls: list[str] = []

    def __call__(self, path: str) -> bool:
        self.calls.append(path)
        return self.dirty


class Harness:
    def __init__(self, controller: SettingsController, dirty: DirtyFlag, sources: dict[str, MagicMock]):
        self.controller = controller
        self.dirty = dirty
        self.sources = sources

    @property
    def state(self):
        return self.controller.state

    def run(self, command: Command | None) -> None:
        """Run a command chain synchronously, feeding each result back."""
        while command is not None:
            command = self.controller.update(command())

    def press(self, *keys: str) -> None:
        for key in keys:
            self.run(self.controller.update(KeyPress(key)))

    def type(self, text: str) -> None:
        self.controller.update(InputChanged(text))

    def submit(self, text: str) -> None:
        self.type(text)
        self.press("enter")

    def select_repository(self, repository_id: str) -> None:
        menu = self.controller.menu
        assert menu.select_key(f"{REPOSITORY_KEY_PREFIX}{repository_id}")
        self.press("enter")

    def choose_action(self, key: str) -> None:
        assert self.controller.actions.select_key(key)
        self.press("enter")

    def source_for(self, entry: RepositoryEntry) -> MagicMock:
        source = self.sources.get(entry.id)
        if source is None:
            source = MagicMock(name=f"GitSource[{entry.id}]")
            source.branch_exists_on_remote.return_value = True
            self.sources[entry.id] = source
        return source


@pytest.fixture
def config_root(monkeypatch, tmp_path):
    root = tmp_path / ".rulebook"
    monkeypatch.setattr(Config, "config_dir", classmethod(lambda _cls: root))
    monkeypatch.setattr(Config, "_config_file_override", None)
    return root


@pytest.fixture
def credentials() -> MagicMock:
    return MagicMock(name="CredentialManager")


@pytest.fixture
def make_harness(config_root, credentials) -> Callable[..., Harness]:
    def factory(*entries: RepositoryEntry, prepare_all=fake_prepare_all, prepare_one=None) -> Harness:
        registry = Registry(list(entries), init_time=1700000000)
        dirty = DirtyFlag()
        sources: dict[str, MagicMock] = {}
        holder: list[Harness] = []
        controller = SettingsController(
            registry,
            credentials=credentials,
            prepare_all=prepare_all,
            prepare_one=prepare_one or MagicMock(name="prepare_one", return_value="/prepared"),
            source_factory=lambda entry: holder[0].source_for(entry),
            dirty_check=DirtyCheckCoordinator(checker=dirty),
            clock=lambda: 1700000100,
        )
        harness = Harness(controller, dirty, sources)
        holder.append(harness)
        harness.run(controller.init())
        return harness

    return factory
