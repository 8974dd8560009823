import contextlib
import copy
import json
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Any

from rulebook.repository.errors import RepositoryNotFoundError
from rulebook.repository.models import RepositoryEntry


logger = logging.getLogger(__name__)

_ID_SLUG_RE = re.compile(r"[^a-z0-9]+")


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write JSON via a temp file in the same directory and `os.replace`. Raises OSError."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
    try:
        with contextlib.suppress(OSError):
            os.chmod(tmp_name, 0o600)  # may fail on Windows
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


class Config:
    """Configuration Manager for rulebook."""

    rulebook_config_dir = None
    rulebook_data_dir = None
    rulebook_github_token = None
    rulebook_log_level = "INFO"

    # Config file override (set via --config CLI arg)
    _config_file_override: Path | None = None
    _CONFIG_FILE_NAME = "config.json"
    _CONFIG_VERSION = "1.0"
    _VERSION_KEY = "version"
    _INIT_TIME_KEY = "init_time"
    _REPOSITORIES_KEY = "repositories"

    @classmethod
    def get(cls, name: str) -> str | None:
        env_name = name.upper()
        default = getattr(cls, name, None)
        return os.getenv(env_name, default)

    @classmethod
    def config_dir(cls) -> Path:
        override = cls.get("rulebook_config_dir")
        if override:
            return Path(override).expanduser()
        return Path.home() / ".rulebook"

    @classmethod
    def config_file(cls) -> Path:
        if cls._config_file_override is not None:
            return cls._config_file_override
        return cls.config_dir() / cls._CONFIG_FILE_NAME

    @classmethod
    def data_dir(cls) -> Path:
        override = cls.get("rulebook_data_dir")
        if override:
            return Path(override).expanduser()
        return cls.config_dir() / "repositories"

    @classmethod
    def log_dir(cls) -> Path:
        return cls.config_dir() / "logs"

    @classmethod
    def set_config_file(cls, path: Path | str | None) -> None:
        cls._config_file_override = Path(path).expanduser() if path else None

    @classmethod
    def load(cls) -> dict[str, Any]:
        path = cls.config_file()
        if not path.exists():
            return {}
        try:
            with path.open("r", encoding="utf-8") as f:
                data: dict[str, Any] = json.load(f)
                return data
        except (json.JSONDecodeError, OSError):
            logger.warning("Could not read config file at %s", path)
            return {}

    @classmethod
    def write(cls, config: dict[str, Any]) -> None:
        """Write the config atomically (temp file + rename). Raises OSError."""
        write_json_atomic(cls.config_file(), config)

    @classmethod
    def save(cls, config: dict[str, Any]) -> bool:
        try:
            cls.write(config)
        except OSError:
            logger.exception("Failed to save config to %s", cls.config_file())
            return False
        return True

    @classmethod
    def load_registry(cls) -> "Registry":
        saved = cls.load()
        if not isinstance(saved, dict):
            saved = {}
        raw_entries = saved.get(cls._REPOSITORIES_KEY, [])
        if not isinstance(raw_entries, list):
            raw_entries = []

        entries: list[RepositoryEntry] = []
        for raw in raw_entries:
            if not isinstance(raw, dict):
                continue
            try:
                entries.append(RepositoryEntry.from_dict(raw))
            except (ValueError, TypeError):
                logger.warning("Skipping malformed repository entry: %r", raw)

        init_time = saved.get(cls._INIT_TIME_KEY)
        if not isinstance(init_time, int):
            init_time = 0
        return Registry(entries, init_time=init_time)

    @classmethod
    def save_registry(cls, registry: "Registry") -> None:
        saved = cls.load()
        if not isinstance(saved, dict):
            saved = {}
        if not registry.init_time:
            registry.init_time = int(time.time())
        saved[cls._VERSION_KEY] = cls._CONFIG_VERSION
        saved[cls._INIT_TIME_KEY] = registry.init_time
        saved[cls._REPOSITORIES_KEY] = [entry.to_dict() for entry in registry.repositories]
        cls.write(saved)


class Registry:
    """In-memory repository list backed by the config file."""

    def __init__(self, repositories: list[RepositoryEntry] | None = None, init_time: int = 0):
        self.repositories: list[RepositoryEntry] = list(repositories or [])
        self.init_time = init_time

    def __len__(self) -> int:
        return len(self.repositories)

    def __iter__(self):
        return iter(self.repositories)

    @classmethod
    def load(cls) -> "Registry":
        return Config.load_registry()

    def find_by_id(self, repository_id: str) -> RepositoryEntry:
        for entry in self.repositories:
            if entry.id == repository_id:
                return entry
        raise RepositoryNotFoundError(repository_id)

    def find_by_name(self, name: str) -> RepositoryEntry:
        for entry in self.repositories:
            if entry.name == name:
                return entry
        raise RepositoryNotFoundError(name)

    def remote_entries(self) -> list[RepositoryEntry]:
        return [entry for entry in self.repositories if entry.is_remote]

    def append(self, entry: RepositoryEntry) -> None:
        self.repositories.append(entry)

    def remove(self, repository_id: str) -> RepositoryEntry:
        for idx, entry in enumerate(self.repositories):
            if entry.id == repository_id:
                return self.repositories.pop(idx)
        raise RepositoryNotFoundError(repository_id)

    def copy(self) -> "Registry":
        return Registry(copy.deepcopy(self.repositories), init_time=self.init_time)

    def replace(self, repositories: list[RepositoryEntry]) -> None:
        self.repositories = list(repositories)

    def persist(self) -> None:
        Config.save_registry(self)
        logger.info("Saved %d repositories to %s", len(self.repositories), Config.config_file())

    @staticmethod
    def generate_id(name: str, created_at: int) -> str:
        slug = _ID_SLUG_RE.sub("-", name.lower()).strip("-") or "repo"
        return f"{slug}-{created_at}"
