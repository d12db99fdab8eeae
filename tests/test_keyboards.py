from datetime import date

from keyboards import Choice, choice_grid, date_button_text, main_menu_kb, parse_cb, qty_kb, yes_cancel_kb
from pagination import paginate


TODAY = date(2025, 1, 10)


def test_callback_data():
    assert parse_cb("product:12") == ("product", "12")
    assert parse_cb("cancel:") == ("cancel", "")
    assert parse_cb("") == ("", "")


def test_choice_grid_rows():
    choices = [Choice(f"P{i}", str(i)) for i in range(5)]
    markup = choice_grid(paginate(choices, 4, 0), "product")
    rows = [[b.callback_data for b in row] for row in markup.inline_keyboard]
    assert rows == [
        ["product:0", "product:1", "product:2"],
        ["product:3"],
        ["page:1"],
        ["cancel:"],
    ]


def test_small_keyboards():
    assert [b.callback_data for row in qty_kb().inline_keyboard for b in row] == [
        "qty:1", "qty:2", "qty:3", "qty:other", "cancel:",
    ]
    assert [b.callback_data for row in yes_cancel_kb().inline_keyboard for b in row] == ["confirm:yes", "cancel:"]


def test_date_button():
    assert date_button_text(TODAY, TODAY) == "🗓️10.01.2025"
    assert date_button_text(date(2025, 1, 8), TODAY) == "👀08.01.2025"


def test_main_menu():
    markup = main_menu_kb(date(2025, 1, 8), TODAY, "Olha")
    rows = [[b.text for b in row] for row in markup.keyboard]
    assert rows == [
        ["Продажа", "Приход", "Списание", "Переоценка"],
        ["Возврат", "Отчёт", "🤵 Olha", "👀08.01.2025"],
    ]
