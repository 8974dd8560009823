"""
Pure renderers, one per settings state.

``render(controller)`` picks the renderer for the current state and returns
a ``ScreenView``; the Textual host paints it, tests read ``to_text().plain``.
Renderers only read controller fields.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rich.style import Style
from rich.text import Text

from rulebook.interface.settings.states import INPUT_STATES, SettingsState
from rulebook.interface.settings.widgets import MenuList, TextInput
from rulebook.repository.credentials import mask_token


if TYPE_CHECKING:
    from rulebook.interface.settings.controller import SettingsController


S = SettingsState

MENU_VISIBLE_ROWS = 12

CONFIRM_HELP = "enter/y confirm • esc/n cancel"
DISMISS_HELP = "press any key to go back"
INPUT_HELP = "enter submit • esc back"
MENU_HELP = "↑/↓ navigate • enter select • esc back"


@dataclass(frozen=True, slots=True)
class SettingsTheme:
    accent: str = "#22d3ee"
    selected_hint: str = "#0e7490"
    menu_label: str = "#8a8a8a"
    menu_hint: str = "#555555"
    body: str = "#c0c0c0"
    warning: str = "#facc15"
    error: str = "#f87171"
    success: str = "#4ade80"


DEFAULT_THEME = SettingsTheme()


@dataclass(slots=True)
class ScreenView:
    title: str
    subtitle: str = ""
    help: str = ""
    body: Text = field(default_factory=Text)
    menu: MenuList | None = None
    input_label: str | None = None
    input: TextInput | None = None
    error: str | None = None
    notice: str | None = None

    @property
    def shows_input(self) -> bool:
        return self.input is not None

    def to_text(self, theme: SettingsTheme = DEFAULT_THEME, top_row: int = 0) -> Text:
        text = Text()
        text.append(self.title, style=Style(color=theme.accent, bold=True))
        if self.subtitle:
            text.append("\n" + self.subtitle, style=Style(color=theme.menu_label))
        if self.body.plain:
            text.append("\n\n")
            text.append_text(self.body)
        if self.menu is not None and self.menu.items:
            text.append("\n\n")
            text.append_text(menu_text(self.menu, theme, top_row))
        if self.input is not None:
            text.append("\n\n")
            text.append_text(input_text(self.input_label or "", self.input, theme))
        if self.notice:
            text.append("\n\n" + self.notice, style=Style(color=theme.warning))
        if self.error:
            text.append("\n\n" + self.error, style=Style(color=theme.error, bold=True))
        if self.help:
            text.append("\n\n" + self.help, style=Style(color=theme.menu_hint, italic=True))
        return text


def pluralize(count: int, singular: str = "repository", plural: str = "repositories") -> str:
    return f"{count} {singular if count == 1 else plural}"


def visible_window(menu: MenuList, top_row: int, rows: int = MENU_VISIBLE_ROWS) -> tuple[int, int]:
    """Slice of ``menu`` to show so that the selection stays visible."""
    total = len(menu.items)
    if menu.selected < top_row:
        top_row = menu.selected
    elif menu.selected >= top_row + rows:
        top_row = menu.selected - rows + 1
    top_row = max(0, min(top_row, max(0, total - rows)))
    return top_row, min(top_row + rows, total)


def menu_text(menu: MenuList, theme: SettingsTheme = DEFAULT_THEME, top_row: int = 0) -> Text:
    start, end = visible_window(menu, top_row)
    total = len(menu.items)
    out = Text()
    if start > 0:
        out.append("  ↑ more\n", style=Style(color=theme.menu_hint, italic=True))
    for idx in range(start, end):
        entry = menu.items[idx]
        if idx == menu.selected:
            label_style = Style(color=theme.accent, bold=True)
            hint_style = Style(color=theme.selected_hint)
            out.append("> ", style=label_style)
        else:
            label_style = Style(color=theme.menu_label)
            hint_style = Style(color=theme.menu_hint)
            out.append("  ", style=label_style)
        out.append(entry.label.strip(), style=label_style)
        if entry.hint:
            out.append(f"  {entry.hint}", style=hint_style)
        if idx < end - 1:
            out.append("\n")
    if end < total:
        out.append(f"\n  ↓ more ({total - end})", style=Style(color=theme.menu_hint, italic=True))
    return out


def input_text(label: str, field_input: TextInput, theme: SettingsTheme = DEFAULT_THEME) -> Text:
    out = Text()
    if label:
        out.append(f"{label}: ", style=Style(color=theme.menu_label, bold=True))
    if field_input.value:
        shown = "•" * len(field_input.value) if field_input.password else field_input.value
        out.append(shown, style=Style(color=theme.accent))
    else:
        out.append(field_input.placeholder, style=Style(color=theme.menu_hint, italic=True))
    return out


def _body(*lines: str, theme: SettingsTheme = DEFAULT_THEME) -> Text:
    return Text("\n".join(lines), style=Style(color=theme.body))


def _warning(text: Text, *lines: str, theme: SettingsTheme = DEFAULT_THEME) -> Text:
    if text.plain:
        text.append("\n\n")
    text.append("\n".join(lines), style=Style(color=theme.warning))
    return text


def _dirty_instructions(path: str) -> tuple[str, ...]:
    return (
        "⚠️  Uncommitted Changes Detected",
        "",
        f"The working copy at {path} has local modifications.",
        "To continue, either:",
        f"  • commit and push them:  cd {path} && git add -A && git commit && git push",
        f"  • or discard them:       cd {path} && git reset --hard HEAD",
    )


def _branch_label(branch: str | None) -> str:
    return branch or "default branch"


# ── Renderers ─────────────────────────────────────────────────────────


def _main_menu(c: SettingsController) -> ScreenView:
    return ScreenView(
        title="⚙️  Settings",
        subtitle=f"{pluralize(len(c.registry))} configured",
        help="↑/↓ navigate • enter select • esc exit",
        menu=c.menu,
    )


def _complete(c: SettingsController) -> ScreenView:
    return ScreenView(
        title="✅ Settings Updated",
        subtitle=f"{pluralize(len(c.registry))} configured",
        body=_body("Your changes have been saved."),
        help="press any key to continue",
    )


def _repository_actions(c: SettingsController) -> ScreenView:
    entry = c.selected_entry()
    if entry is None:
        return ScreenView(title="⚙️  Repository Actions", body=_body("Repository not found."), help=DISMISS_HELP)
    details = [f"{entry.type.display_name} • {entry.path}"]
    if entry.is_remote:
        details.append(f"{entry.remote_url} ({_branch_label(entry.branch)})")
    return ScreenView(
        title=f"⚙️  Repository Actions: {entry.name}",
        subtitle="\n".join(details),
        help=MENU_HELP,
        menu=c.actions,
    )


def _add_repository_type(c: SettingsController) -> ScreenView:
    return ScreenView(
        title="➕ Add New Repository",
        subtitle="Where should the rules live?",
        help=MENU_HELP,
        menu=c.type_menu,
    )


def _input_screen(c: SettingsController, title: str, subtitle: str, label: str, *body: str) -> ScreenView:
    return ScreenView(
        title=title,
        subtitle=subtitle,
        body=_body(*body),
        help="working..." if c.pending else INPUT_HELP,
        input_label=label,
        input=c.input,
    )


def _add_local_name(c: SettingsController) -> ScreenView:
    return _input_screen(c, "📁 Add Local Repository", "Step 1 of 2: repository name", "Name")


def _add_local_path(c: SettingsController) -> ScreenView:
    return _input_screen(
        c,
        "📁 Add Local Repository",
        f"Step 2 of 2: directory for '{c.new_name}'",
        "Path",
        "Absolute path or ~/path. The directory is created if it does not exist.",
    )


def _add_remote_name(c: SettingsController) -> ScreenView:
    return _input_screen(c, "🌐 Add GitHub Repository", "Step 1 of 4: repository name", "Name")


def _add_remote_url(c: SettingsController) -> ScreenView:
    return _input_screen(
        c,
        "🌐 Add GitHub Repository",
        "Step 2 of 4: repository URL",
        "URL",
        "HTTPS (https://github.com/owner/repo.git) or SSH (git@github.com:owner/repo.git).",
    )


def _add_remote_branch(c: SettingsController) -> ScreenView:
    return _input_screen(
        c,
        "🌐 Add GitHub Repository",
        "Step 3 of 4: branch",
        "Branch",
        "Leave empty to track the remote's default branch.",
    )


def _add_remote_path(c: SettingsController) -> ScreenView:
    return _input_screen(
        c,
        "🌐 Add GitHub Repository",
        "Step 4 of 4: clone path",
        "Path",
        f"Leave empty to clone into {c.input.placeholder}.",
        "The directory must not exist yet or be empty.",
    )


def _add_remote_token(c: SettingsController) -> ScreenView:
    return _input_screen(
        c,
        "🔑 GitHub Authentication Required",
        f"A Personal Access Token is needed to access {c.new_remote_url}",
        "Token",
        "The token is stored once and used for every GitHub repository.",
        "Create one at https://github.com/settings/tokens with read access to the repository.",
    )


def _error_screen(c: SettingsController, title: str, dirty_path: str | None = None) -> ScreenView:
    body = Text()
    if dirty_path is not None and c.is_dirty:
        _warning(body, *_dirty_instructions(dirty_path))
    return ScreenView(title=title, body=body, error=c.error, help=DISMISS_HELP)


def _add_error(c: SettingsController) -> ScreenView:
    return _error_screen(c, "❌ Could Not Add Repository")


def _update_repo_name(c: SettingsController) -> ScreenView:
    entry = c.selected_entry()
    return _input_screen(
        c,
        "✏️ Change Repository Name",
        f"Current: {entry.name if entry else ''}",
        "Name",
    )


def _edit_name_confirm(c: SettingsController) -> ScreenView:
    entry = c.selected_entry()
    old = entry.name if entry else ""
    return ScreenView(
        title="✏️ Confirm Name Change",
        body=_body(f"{old}  →  {c.new_name}"),
        help="working..." if c.pending else CONFIRM_HELP,
    )


def _edit_name_error(c: SettingsController) -> ScreenView:
    return _error_screen(c, "❌ Rename Failed")


def _update_github_branch(c: SettingsController) -> ScreenView:
    entry = c.selected_entry()
    return _input_screen(
        c,
        "🌿 Update GitHub Branch",
        f"Current: {_branch_label(entry.branch if entry else None)}",
        "Branch",
        "Leave empty to track the remote's default branch.",
    )


def _edit_branch_confirm(c: SettingsController) -> ScreenView:
    entry = c.selected_entry()
    old = _branch_label(entry.branch if entry else None)
    return ScreenView(
        title="🌿 Confirm Branch Change",
        body=_body(
            f"{old}  →  {_branch_label(c.new_branch or None)}",
            "",
            "The branch is checked on the remote, then the working copy is switched to it.",
        ),
        help="working..." if c.pending else CONFIRM_HELP,
    )


def _selected_path(c: SettingsController) -> str:
    entry = c.selected_entry()
    return entry.path if entry else ""


def _edit_branch_error(c: SettingsController) -> ScreenView:
    return _error_screen(c, "❌ Branch Update Failed", _selected_path(c))


def _update_github_path(c: SettingsController) -> ScreenView:
    return _input_screen(
        c,
        "📂 Update Clone Path",
        f"Current: {_selected_path(c)}",
        "Path",
        "Leave empty to keep the current path.",
    )


def _edit_clone_path_confirm(c: SettingsController) -> ScreenView:
    old = _selected_path(c)
    body = _body(f"{old}  →  {c.new_path}", "", "The repository is cloned into the new path.")
    _warning(
        body,
        f"⚠️  The existing clone at {old} is not deleted.",
        "Remove it manually once you no longer need it.",
    )
    return ScreenView(
        title="📂 Confirm Clone Path Change",
        body=body,
        help="working..." if c.pending else CONFIRM_HELP,
    )


def _edit_clone_path_error(c: SettingsController) -> ScreenView:
    return _error_screen(c, "❌ Clone Path Update Failed", _selected_path(c))


def _manual_refresh(c: SettingsController) -> ScreenView:
    entry = c.selected_entry()
    lines = []
    if entry is not None:
        lines.append(f"Fetch {entry.remote_url} ({_branch_label(entry.branch)}) into {entry.path}?")
    lines.append("Uncommitted local changes block the refresh.")
    return ScreenView(
        title="🔄 Manual Refresh",
        subtitle="Pull latest changes from GitHub",
        body=_body(*lines),
        help="checking working copy..." if c.pending else "y/enter refresh • n/esc cancel",
    )


def _refresh_in_progress(_c: SettingsController) -> ScreenView:
    return ScreenView(
        title="🔄 Refreshing...",
        subtitle="Syncing with remote repository...",
        help="please wait, the refresh cannot be cancelled",
    )


def _refresh_error(c: SettingsController) -> ScreenView:
    view = _error_screen(c, "❌ Refresh Failed", _selected_path(c))
    view.error = c.last_refresh_error or c.error
    if not c.is_dirty:
        view.body = _body(
            "Common reasons:",
            "  • Network connectivity issues",
            "  • Authentication problems (check your GitHub PAT)",
            "  • Uncommitted local changes",
            "  • The tracked branch no longer exists on the remote",
        )
    return view


def _confirm_delete(c: SettingsController) -> ScreenView:
    entry = c.selected_entry()
    if entry is None:
        return ScreenView(title="🗑️  Delete Repository", help=DISMISS_HELP)
    body = _body(f"Remove '{entry.name}' from the repository list?")
    if entry.is_remote:
        _warning(
            body,
            f"The clone at {entry.path} is not deleted.",
            "Remove it manually if you no longer need it.",
        )
    else:
        _warning(body, f"Your files in {entry.path} are left untouched.")
    return ScreenView(
        title="🗑️  Delete Repository",
        body=body,
        help="working..." if c.pending else "y delete • n/esc cancel",
    )


def _delete_error(c: SettingsController) -> ScreenView:
    return _error_screen(c, "❌ Delete Failed", _selected_path(c))


def _update_github_pat(c: SettingsController) -> ScreenView:
    count = len(c.registry.remote_entries())
    if count:
        note = f"The token will be validated against {pluralize(count)}."
    else:
        note = "No GitHub repositories are configured yet; only the token format is checked."
    return _input_screen(
        c,
        "🔑 Update GitHub PAT",
        "Update Personal Access Token for GitHub repositories",
        "Token",
        note,
    )


def _update_pat_confirm(c: SettingsController) -> ScreenView:
    count = len(c.registry.remote_entries())
    return ScreenView(
        title="🔑 Confirm Token Update",
        body=_body(f"Token {mask_token(c.new_token)} is valid for {pluralize(count)}.", "Save it?"),
        help="working..." if c.pending else CONFIRM_HELP,
    )


def _update_pat_error(c: SettingsController) -> ScreenView:
    return _error_screen(c, "❌ Token Update Failed")


RENDERERS: dict[SettingsState, Callable[[SettingsController], ScreenView]] = {
    S.MAIN_MENU: _main_menu,
    S.COMPLETE: _complete,
    S.REPOSITORY_ACTIONS: _repository_actions,
    S.ADD_REPOSITORY_TYPE: _add_repository_type,
    S.ADD_LOCAL_NAME: _add_local_name,
    S.ADD_LOCAL_PATH: _add_local_path,
    S.ADD_LOCAL_ERROR: _add_error,
    S.ADD_REMOTE_NAME: _add_remote_name,
    S.ADD_REMOTE_URL: _add_remote_url,
    S.ADD_REMOTE_BRANCH: _add_remote_branch,
    S.ADD_REMOTE_PATH: _add_remote_path,
    S.ADD_REMOTE_TOKEN: _add_remote_token,
    S.ADD_REMOTE_ERROR: _add_error,
    S.UPDATE_REPO_NAME: _update_repo_name,
    S.EDIT_NAME_CONFIRM: _edit_name_confirm,
    S.EDIT_NAME_ERROR: _edit_name_error,
    S.UPDATE_GITHUB_BRANCH: _update_github_branch,
    S.EDIT_BRANCH_CONFIRM: _edit_branch_confirm,
    S.EDIT_BRANCH_ERROR: _edit_branch_error,
    S.UPDATE_GITHUB_PATH: _update_github_path,
    S.EDIT_CLONE_PATH_CONFIRM: _edit_clone_path_confirm,
    S.EDIT_CLONE_PATH_ERROR: _edit_clone_path_error,
    S.MANUAL_REFRESH: _manual_refresh,
    S.REFRESH_IN_PROGRESS: _refresh_in_progress,
    S.REFRESH_ERROR: _refresh_error,
    S.CONFIRM_DELETE: _confirm_delete,
    S.DELETE_ERROR: _delete_error,
    S.UPDATE_GITHUB_PAT: _update_github_pat,
    S.UPDATE_PAT_CONFIRM: _update_pat_confirm,
    S.UPDATE_PAT_ERROR: _update_pat_error,
}


def render(controller: SettingsController) -> ScreenView:
    view = RENDERERS[controller.state](controller)
    if controller.state in INPUT_STATES and view.error is None:
        view.error = controller.error
    if view.notice is None and controller.state in (S.MAIN_MENU, S.COMPLETE):
        view.notice = controller.notice
    return view


def render_plain(controller: SettingsController) -> str:
    return render(controller).to_text().plain
