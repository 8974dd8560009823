import logging
import threading
from pathlib import Path
from typing import ClassVar

from rich.style import Style
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.suggester import Suggester
from textual.widgets import Input, Static

from rulebook.config import Registry
from rulebook.interface.settings.controller import SettingsController
from rulebook.interface.settings.messages import Command, InputChanged, KeyPress, Message, Resize
from rulebook.interface.settings.states import SettingsState
from rulebook.interface.settings.views import DEFAULT_THEME, SettingsTheme, menu_text, render, visible_window
from rulebook.interface.settings.widgets import TextInput


logger = logging.getLogger(__name__)

_PATH_STATES = frozenset(
    {SettingsState.ADD_LOCAL_PATH, SettingsState.ADD_REMOTE_PATH, SettingsState.UPDATE_GITHUB_PATH}
)
_BOUND_KEYS = frozenset({"up", "down", "enter", "escape", "ctrl+c"})


class DirectorySuggester(Suggester):
    """Suggests existing directories while a path is typed."""

    def __init__(self) -> None:
        super().__init__(use_cache=False, case_sensitive=True)

    @staticmethod
    def _format_suggestion(original: str, suggestion: Path) -> str:
        if original.startswith("~"):
            try:
                relative = suggestion.relative_to(Path.home())
            except ValueError:
                return str(suggestion) + "/"
            return "~/" if relative == Path(".") else f"~/{relative.as_posix()}/"
        return str(suggestion) + "/"

    async def get_suggestion(self, value: str) -> str | None:
        raw = value.strip()
        if not raw or not (raw.startswith("/") or raw.startswith("~")) or "/" not in raw:
            return None
        # Split before building a Path, which would swallow a trailing "."
        head, _, prefix = raw.rpartition("/")
        try:
            parent = Path(head + "/").expanduser()
            if not parent.is_dir():
                return None
            show_hidden = prefix.startswith(".")
            children = sorted(
                (
                    c
                    for c in parent.iterdir()
                    if c.is_dir()
                    and (show_hidden or not c.name.startswith("."))
                    and c.name.lower().startswith(prefix.lower())
                ),
                key=lambda x: x.name.lower(),
            )
        except OSError:
            return None
        if children:
            return self._format_suggestion(raw, children[0])
        return None


class SettingsApp(App[None]):  # type: ignore[misc]
    CSS_PATH = "assets/settings_styles.tcss"

    BINDINGS: ClassVar[list[Binding]] = [  # type: ignore[assignment]
        Binding("up", "press('up')", "Up", show=False, priority=True),
        Binding("down", "press('down')", "Down", show=False, priority=True),
        Binding("enter", "press('enter')", "Select", show=False, priority=True),
        Binding("escape", "press('escape')", "Back", show=False, priority=True),
        Binding("ctrl+c", "press('ctrl+c')", "Quit", show=False, priority=True),
    ]

    def __init__(self, controller: SettingsController, theme: SettingsTheme = DEFAULT_THEME) -> None:
        super().__init__()
        self.controller = controller
        self._palette = theme
        self._menu_top_row = 0
        self._dir_suggester = DirectorySuggester()

    def compose(self) -> ComposeResult:
        yield Vertical(
            Static("", id="settings_title"),
            Static("", id="settings_subtitle"),
            Static("", id="settings_body"),
            Static("", id="settings_menu"),
            Input(placeholder="", id="settings_input"),
            Static("", id="settings_status"),
            Static("", id="settings_hint"),
            id="settings_root",
        )

    def on_mount(self) -> None:
        self.title = "rulebook"
        self.query_one("#settings_input", Input).display = False
        self._render_panel()
        self._run_command(self.controller.init())

    # ── Controller plumbing ───────────────────────────────────────────

    def feed(self, message: Message) -> None:
        command = self.controller.update(message)
        if self.controller.quit_requested:
            self.exit()
            return
        self._render_panel()
        if command is not None:
            self._run_command(command)

    def _run_command(self, command: Command) -> None:
        threading.Thread(target=self._execute, args=(command,), daemon=True).start()

    def _execute(self, command: Command) -> None:
        try:
            result = command()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Settings command failed")
            self.call_from_thread(self._on_command_crash, str(exc))
            return
        self.call_from_thread(self.feed, result)

    def _on_command_crash(self, error: str) -> None:
        self.controller.command_failed(f"unexpected error: {error}")
        self._render_panel()

    # ── Rendering ─────────────────────────────────────────────────────

    def _render_panel(self) -> None:
        theme = self._palette
        view = render(self.controller)

        self.query_one("#settings_title", Static).update(
            Text(view.title, style=Style(color=theme.accent, bold=True))
        )
        subtitle = self.query_one("#settings_subtitle", Static)
        subtitle.update(Text(view.subtitle or " ", style=Style(color=theme.menu_label)))

        body = self.query_one("#settings_body", Static)
        body.display = bool(view.body.plain)
        body.update(view.body)

        menu_widget = self.query_one("#settings_menu", Static)
        if view.menu is not None and view.menu.items:
            self._menu_top_row, _ = visible_window(view.menu, self._menu_top_row)
            menu_widget.update(menu_text(view.menu, theme, self._menu_top_row))
            menu_widget.display = True
        else:
            self._menu_top_row = 0
            menu_widget.display = False

        self._sync_input(view.input)

        status = Text()
        if view.notice:
            status.append(view.notice, style=Style(color=theme.warning))
        if view.error:
            if status.plain:
                status.append("\n")
            status.append(view.error, style=Style(color=theme.error, bold=True))
        self.query_one("#settings_status", Static).update(status if status.plain else " ")

        self.query_one("#settings_hint", Static).update(
            Text(view.help or " ", style=Style(color=theme.menu_hint, italic=True))
        )

    def _sync_input(self, field_input: TextInput | None) -> None:
        input_widget = self.query_one("#settings_input", Input)
        if field_input is None:
            input_widget.display = False
            return
        input_widget.placeholder = field_input.placeholder
        input_widget.password = field_input.password
        input_widget.max_length = field_input.char_limit
        input_widget.suggester = self._dir_suggester if self.controller.state in _PATH_STATES else None
        if input_widget.value != field_input.value:
            input_widget.value = field_input.value
            input_widget.cursor_position = len(field_input.value)
        input_widget.display = True
        if not input_widget.has_focus:
            input_widget.focus()

    # ── Events ────────────────────────────────────────────────────────

    def action_press(self, key: str) -> None:
        self.feed(KeyPress(key))

    def on_key(self, event: events.Key) -> None:
        if event.key in _BOUND_KEYS:
            return
        if self.query_one("#settings_input", Input).display:
            return
        event.prevent_default()
        self.feed(KeyPress(event.key))

    def on_input_changed(self, event: Input.Changed) -> None:
        self.feed(InputChanged(event.value))

    def on_resize(self, event: events.Resize) -> None:
        self.feed(Resize(event.size.width, event.size.height))


def run_settings(registry: Registry | None = None) -> None:
    registry = registry if registry is not None else Registry.load()
    logger.info("Opening settings with %d repositories", len(registry))
    SettingsApp(SettingsController(registry)).run()
