from rulebook.interface.settings.widgets import MenuEntry, MenuList, TextInput


def _menu() -> MenuList:
    return MenuList([MenuEntry("a", "Alpha"), MenuEntry("b", "Beta"), MenuEntry("c", "Gamma")])


def test_menu_wraps_in_both_directions() -> None:
    menu = _menu()
    menu.move_up()
    assert menu.current.key == "c"
    menu.move_down()
    assert menu.current.key == "a"


def test_set_items_keeps_selected_key_when_asked() -> None:
    menu = _menu()
    menu.select_key("b")

    menu.set_items([MenuEntry("z", "Zeta"), MenuEntry("b", "Beta")], keep_key=True)
    assert menu.current.key == "b"

    menu.set_items([MenuEntry("z", "Zeta"), MenuEntry("b", "Beta")])
    assert menu.current.key == "z"


def test_set_items_falls_back_to_first_when_key_vanishes() -> None:
    menu = _menu()
    menu.select_key("c")
    menu.set_items([MenuEntry("a", "Alpha")], keep_key=True)
    assert menu.selected == 0


def test_reading_current_does_not_move_the_cursor() -> None:
    menu = _menu()
    menu.select_key("c")

    assert menu.current.key == "c"
    assert menu.current.key == "c"
    assert menu.selected == 2

    menu.set_items([MenuEntry("a", "Alpha")], keep_key=True)
    assert menu.selected == 0
    assert menu.current.key == "a"


def test_empty_menu_has_no_current() -> None:
    menu = MenuList()
    menu.move_down()
    assert menu.current is None


def test_text_input_respects_char_limit() -> None:
    field = TextInput(char_limit=5)
    field.set_value("abcdefgh")
    assert field.value == "abcde"


def test_text_input_reset_restores_normal_echo() -> None:
    field = TextInput()
    field.reset("secret", placeholder="token", password=True)
    assert field.password is True
    field.reset()
    assert (field.value, field.placeholder, field.password) == ("", "", False)
    field.set_value("  padded  ")
    assert field.submitted == "padded"
