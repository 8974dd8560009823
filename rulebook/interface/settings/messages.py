"""
Events consumed by the settings controller.

Key presses and input edits come from the host; everything else is the
result of a command the controller handed back to the host.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union


if TYPE_CHECKING:
    from rulebook.config import Registry
    from rulebook.repository.models import PreparedRepository


@dataclass(frozen=True, slots=True)
class KeyPress:
    key: str


@dataclass(frozen=True, slots=True)
class InputChanged:
    value: str


@dataclass(frozen=True, slots=True)
class Resize:
    width: int
    height: int


@dataclass(slots=True)
class RegistryLoaded:
    registry: Registry | None
    prepared: list[PreparedRepository] = field(default_factory=list)
    error: str | None = None
    generation: int = 0


@dataclass(slots=True)
class SettingsComplete:
    """A mutation was persisted; carries the new registry and prepared rows."""

    registry: Registry
    prepared: list[PreparedRepository] = field(default_factory=list)
    removed_id: str | None = None
    warning: str | None = None


@dataclass(frozen=True, slots=True)
class RefreshComplete:
    success: bool
    error: str | None = None


# ── Dirty-state results, one per flow that guards on uncommitted changes ──


@dataclass(frozen=True, slots=True)
class EditBranchDirtyState:
    is_dirty: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class EditClonePathDirtyState:
    is_dirty: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class RefreshDirtyState:
    is_dirty: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class DeleteDirtyState:
    is_dirty: bool
    error: str | None = None


# ── Flow failures ─────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class AddLocalError:
    error: str


@dataclass(frozen=True, slots=True)
class AddRemoteError:
    error: str


@dataclass(frozen=True, slots=True)
class EditNameError:
    error: str


@dataclass(frozen=True, slots=True)
class EditBranchError:
    error: str


@dataclass(frozen=True, slots=True)
class EditClonePathError:
    error: str


@dataclass(frozen=True, slots=True)
class DeleteError:
    error: str


@dataclass(frozen=True, slots=True)
class UpdateTokenError:
    error: str


# ── Token steps ───────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TokenNeeded:
    reason: str = ""


@dataclass(frozen=True, slots=True)
class TokenRejected:
    """Token entered during add-remote was refused; shown inline."""

    error: str


@dataclass(frozen=True, slots=True)
class TokenValidated:
    pass


Message = Union[
    KeyPress,
    InputChanged,
    Resize,
    RegistryLoaded,
    SettingsComplete,
    RefreshComplete,
    EditBranchDirtyState,
    EditClonePathDirtyState,
    RefreshDirtyState,
    DeleteDirtyState,
    AddLocalError,
    AddRemoteError,
    EditNameError,
    EditBranchError,
    EditClonePathError,
    DeleteError,
    UpdateTokenError,
    TokenNeeded,
    TokenRejected,
    TokenValidated,
]

Command = Callable[[], Message]

DIRTY_STATE_MESSAGES = (
    EditBranchDirtyState,
    EditClonePathDirtyState,
    RefreshDirtyState,
    DeleteDirtyState,
)
