from dataclasses import dataclass, field


DEFAULT_CHAR_LIMIT = 256


@dataclass(slots=True)
class MenuEntry:
    key: str
    label: str
    hint: str = ""


@dataclass(slots=True)
class MenuList:
    """Selectable list with wrap-around cursor movement."""

    items: list[MenuEntry] = field(default_factory=list)
    selected: int = 0

    def set_items(self, items: list[MenuEntry], keep_key: bool = False) -> None:
        current = self.current.key if keep_key and self.current else None
        self.items = list(items)
        self.selected = 0
        if current is not None:
            self.select_key(current)

    def select_key(self, key: str) -> bool:
        for idx, entry in enumerate(self.items):
            if entry.key == key:
                self.selected = idx
                return True
        return False

    @property
    def current(self) -> MenuEntry | None:
        if not 0 <= self.selected < len(self.items):
            return None
        return self.items[self.selected]

    def move_up(self) -> None:
        if self.items:
            self.selected = (self.selected - 1) % len(self.items)

    def move_down(self) -> None:
        if self.items:
            self.selected = (self.selected + 1) % len(self.items)

    def reset(self) -> None:
        self.selected = 0


@dataclass(slots=True)
class TextInput:
    value: str = ""
    placeholder: str = ""
    password: bool = False
    char_limit: int = DEFAULT_CHAR_LIMIT

    def set_value(self, value: str) -> None:
        self.value = value[: self.char_limit]

    def reset(self, value: str = "", placeholder: str = "", password: bool = False) -> None:
        self.placeholder = placeholder
        self.password = password
        self.set_value(value)

    @property
    def submitted(self) -> str:
        """Trimmed value, falling back to nothing when blank."""
        return self.value.strip()
