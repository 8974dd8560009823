import os

import pytest

from rulebook.config import Config
from rulebook.repository.errors import PathValidationError
from rulebook.repository.paths import (
    check_writable,
    derive_clone_path,
    expand_path,
    is_directory_empty,
    is_reserved_directory,
    same_path,
    validate_and_expand_local_path,
    validate_storage_path,
)


def test_expand_path_only_touches_home_prefix(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    assert expand_path("~/rules") == str(tmp_path / "rules")
    assert expand_path("~") == str(tmp_path)
    assert expand_path("/srv/~rules") == "/srv/~rules"


@pytest.mark.parametrize(
    ("path", "message"),
    [
        ("", "cannot be empty"),
        ("/srv/../etc", "path traversal not allowed"),
        ("relative/dir", "must be absolute"),
        ("/etc", "reserved"),
        ("/usr/bin/rules", "reserved"),
    ],
)
def test_validate_storage_path_rejects(path, message) -> None:
    with pytest.raises(PathValidationError, match=message):
        validate_storage_path(path)


def test_validate_storage_path_requires_existing_parent(tmp_path) -> None:
    with pytest.raises(PathValidationError, match="parent directory does not exist"):
        validate_storage_path(str(tmp_path / "missing" / "rules"))
    validate_storage_path(str(tmp_path / "rules"))


def test_symlink_into_reserved_directory_is_rejected(tmp_path) -> None:
    link = tmp_path / "sneaky"
    link.symlink_to("/etc")
    with pytest.raises(PathValidationError, match="reserved directory"):
        validate_storage_path(str(link))


def test_root_is_reserved() -> None:
    assert is_reserved_directory("/") is True


def test_temp_directories_are_allowed(tmp_path) -> None:
    assert is_reserved_directory(str(tmp_path)) is False


def test_validate_and_expand_normalizes(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    assert validate_and_expand_local_path("  ~/rules/  ") == str(tmp_path / "rules")


def test_check_writable_rejects_files(tmp_path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")
    with pytest.raises(PathValidationError, match="not a directory"):
        check_writable(str(target))


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="permission bits are not enforced")
def test_check_writable_rejects_read_only_parent(tmp_path) -> None:
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0o500)
    try:
        with pytest.raises(PathValidationError, match="not writable"):
            check_writable(str(locked / "rules"))
    finally:
        locked.chmod(0o700)


def test_is_directory_empty(tmp_path) -> None:
    assert is_directory_empty(str(tmp_path / "missing")) is True
    assert is_directory_empty(str(tmp_path)) is True
    (tmp_path / "file").write_text("x", encoding="utf-8")
    assert is_directory_empty(str(tmp_path)) is False
    assert is_directory_empty(str(tmp_path / "file")) is False


def test_derive_clone_path_uses_repo_name(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(Config, "data_dir", classmethod(lambda _cls: tmp_path / "repos"))
    assert derive_clone_path("https://github.com/acme/rules.git") == str(tmp_path / "repos" / "rules")
    assert derive_clone_path("git@github.com:acme/style-guide.git") == str(tmp_path / "repos" / "style-guide")
    assert derive_clone_path("nonsense") == str(tmp_path / "repos")


def test_same_path() -> None:
    assert same_path("/srv/rules/", "/srv/rules")
    assert not same_path("/srv/rules", "/srv/Rules")
