from dataclasses import dataclass
from datetime import date

from aiogram.types import InlineKeyboardButton, KeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder, ReplyKeyboardBuilder

from dates import format_date, recent_days
from pagination import Page, chunk
from texts import ICO, MSG, OPS, WORD, Operation

COLUMNS = 3

# callback keys, data is "key:value"
CB_PRODUCT = "product"
CB_PRICE = "price"
CB_PAGE = "page"
CB_QTY = "qty"
CB_CONFIRM = "confirm"
CB_CANCEL = "cancel"
NEW = "new"
OTHER = "other"


@dataclass(frozen=True)
class Choice:
    text: str
    value: str
    emoji: str = ""

    @property
    def label(self) -> str:
        return f"{self.emoji} {self.text}".strip()


def cb(key: str, value="") -> str:
    return f"{key}:{value}"


def parse_cb(data: str) -> tuple[str, str]:
    key, _, value = (data or "").partition(":")
    return key, value


def choice_grid(page: Page[Choice], key: str):
    ikb = InlineKeyboardBuilder()
    for row in chunk(page.items, COLUMNS):
        ikb.row(*[InlineKeyboardButton(text=c.label, callback_data=cb(key, c.value)) for c in row])

    nav = []
    if page.has_prev:
        nav.append(InlineKeyboardButton(text=MSG["prev"], callback_data=cb(CB_PAGE, page.page - 1)))
    if page.has_next:
        nav.append(InlineKeyboardButton(text=MSG["next"], callback_data=cb(CB_PAGE, page.page + 1)))
    if nav:
        ikb.row(*nav)
    ikb.row(InlineKeyboardButton(text=f"{ICO['cancel']} {MSG['cancel']}", callback_data=cb(CB_CANCEL)))
    return ikb.as_markup()


def cancel_kb():
    ikb = InlineKeyboardBuilder()
    ikb.button(text=f"{ICO['cancel']} {MSG['cancel']}", callback_data=cb(CB_CANCEL))
    return ikb.as_markup()


def yes_cancel_kb():
    ikb = InlineKeyboardBuilder()
    ikb.button(text=f"{ICO['ok']} {MSG['yes']}", callback_data=cb(CB_CONFIRM, "yes"))
    ikb.button(text=f"{ICO['cancel']} {MSG['cancel']}", callback_data=cb(CB_CANCEL))
    ikb.adjust(2)
    return ikb.as_markup()


def qty_kb():
    ikb = InlineKeyboardBuilder()
    for n in (1, 2, 3):
        ikb.button(text=str(n), callback_data=cb(CB_QTY, n))
    ikb.button(text=MSG["other"], callback_data=cb(CB_QTY, OTHER))
    ikb.button(text=f"{ICO['cancel']} {MSG['cancel']}", callback_data=cb(CB_CANCEL))
    ikb.adjust(3, 2)
    return ikb.as_markup()


def date_button_text(selected: date, today: date) -> str:
    if selected == today:
        return f"{ICO['today']}{format_date(today)}"
    return f"{ICO['day']}{format_date(selected)}"


def seller_button_text(seller: str) -> str:
    return f"{ICO['seller']} {seller}"


def main_menu_kb(selected: date, today: date, seller: str):
    kb = ReplyKeyboardBuilder()
    for op in (Operation.SALE, Operation.INCOME, Operation.OUTCOME, Operation.DISCOUNT):
        kb.button(text=OPS[op]["op"])
    kb.button(text=OPS[Operation.RETURN]["op"])
    kb.button(text=WORD["report"])
    kb.button(text=seller_button_text(seller))
    kb.button(text=date_button_text(selected, today))
    kb.adjust(4, 4)
    return kb.as_markup(resize_keyboard=True)


def date_pick_kb(today: date):
    day_before, yesterday = recent_days(today)
    kb = ReplyKeyboardBuilder()
    kb.row(
        KeyboardButton(text=format_date(day_before)),
        KeyboardButton(text=format_date(yesterday)),
        KeyboardButton(text=WORD["today"]),
    )
    return kb.as_markup(resize_keyboard=True)
