from unittest.mock import MagicMock

import pytest

from rulebook.repository.errors import GitSourceError, PreparationError, RulebookError
from rulebook.repository.models import RepositoryEntry, RepositoryType
from rulebook.repository.preparation import prepare_all_repositories, prepare_repository


def _local(name: str, path) -> RepositoryEntry:
    return RepositoryEntry(
        id=f"{name.lower()}-1700000000",
        name=name,
        type=RepositoryType.LOCAL,
        created_at=1700000000,
        path=str(path),
    )


def _remote(name: str, path) -> RepositoryEntry:
    return RepositoryEntry(
        id=f"{name.lower()}-1700000000",
        name=name,
        type=RepositoryType.GITHUB,
        created_at=1700000000,
        path=str(path),
        remote_url="https://github.com/acme/rules.git",
    )


def test_local_directory_is_prepared_in_place(tmp_path) -> None:
    (tmp_path / "notes").mkdir()

    assert prepare_repository(_local("Notes", f"{tmp_path}/notes/")) == str(tmp_path / "notes")


def test_missing_local_directory_fails(tmp_path) -> None:
    with pytest.raises(RulebookError, match=r"notes-1700000000 \(Notes\): local source directory does not exist"):
        prepare_repository(_local("Notes", tmp_path / "notes"))


def test_local_file_is_not_a_directory(tmp_path) -> None:
    (tmp_path / "notes").write_text("x", encoding="utf-8")

    with pytest.raises(RulebookError, match="not a directory"):
        prepare_repository(_local("Notes", tmp_path / "notes"))


def test_remote_entry_delegates_to_git_source(tmp_path) -> None:
    source = MagicMock()
    source.prepare.return_value = str(tmp_path / "rules")

    assert prepare_repository(_remote("Rules", tmp_path / "rules"), source=source) == str(tmp_path / "rules")
    source.prepare.assert_called_once_with()


def test_remote_failure_names_the_entry(tmp_path) -> None:
    source = MagicMock()
    source.prepare.side_effect = GitSourceError("network error: check your internet connection")

    with pytest.raises(RulebookError, match=r"^failed to prepare repository rules-1700000000 \(Rules\): network"):
        prepare_repository(_remote("Rules", tmp_path / "rules"), source=source)


def test_prepare_all_returns_ready_rows(tmp_path) -> None:
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()

    prepared = prepare_all_repositories([_local("Alpha", tmp_path / "a"), _local("Beta", tmp_path / "b")])

    assert [row.title for row in prepared] == ["Alpha", "Beta"]
    assert all(row.is_ready for row in prepared)


def test_prepare_all_keeps_going_after_a_failure(tmp_path) -> None:
    (tmp_path / "b").mkdir()
    entries = [_local("Alpha", tmp_path / "a"), _local("Beta", tmp_path / "b")]

    with pytest.raises(PreparationError) as info:
        prepare_all_repositories(entries)

    assert str(info.value).startswith("failed to prepare 1 repositories")
    assert [row.status for row in info.value.prepared] == ["error", "ready"]
    assert "does not exist" in info.value.prepared[0].message


def test_prepare_all_stops_on_invalid_registry(tmp_path) -> None:
    (tmp_path / "a").mkdir()
    entries = [_local("Alpha", tmp_path / "a"), _local("Alpha", tmp_path / "a")]

    with pytest.raises(PreparationError, match="repository validation failed") as info:
        prepare_all_repositories(entries)

    assert [row.status for row in info.value.prepared] == ["error", "error"]
