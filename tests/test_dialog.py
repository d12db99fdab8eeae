from datetime import date
from decimal import Decimal

import pytest

from dialog import (
    Active, AppendLedger, Answer, ButtonPress, ConfirmDraft, Context, DateEntry, Edit, GoodsDraft, Idle,
    NewPriceDraft, PriceDraft, PricesDraft, ProductDraft, QtyDraft, QtyInputDraft, Send, SetSelectedDate,
    ShowMainMenu, ShowPayroll, ShowReport, StripChoices, TextInput, dump_state, load_state, parse_price,
    parse_qty, transition, with_message,
)
from keyboards import date_button_text
from ledger import LedgerRow
from texts import MSG, Operation


TODAY = date(2025, 1, 10)
PRODUCTS = [("Bread", "🍞"), ("Milk", "")]


def ctx(**kw):
    kw.setdefault("today", TODAY)
    kw.setdefault("products", PRODUCTS)
    kw.setdefault("prices", [Decimal("25"), Decimal("30")])
    return Context(**kw)


def press(key, value="", message_id=100):
    return ButtonPress(key, value, f"cb-{key}-{value}", message_id)


def callbacks(markup):
    return [b.callback_data for row in markup.inline_keyboard for b in row]


def appends(out):
    return [c.row for c in out.commands if isinstance(c, AppendLedger)]


def run(state, events, c, message_ids):
    """Feed events one by one, giving every tracked Send a new message id."""
    outs = []
    for event in events:
        out = transition(state, event, c)
        state = out.state
        if any(isinstance(cmd, Send) and cmd.track for cmd in out.commands):
            state = with_message(state, next(message_ids))
        assert load_state(*dump_state(state)) == state
        outs.append(out)
    return state, outs


def test_sale_by_buttons():
    c = ctx()
    out = transition(Idle(), TextInput("Продажа"), c)
    assert out.state == Active(Operation.SALE, GoodsDraft(None, 0))
    send = out.commands[0]
    assert isinstance(send, Send) and send.track
    assert callbacks(send.markup) == ["product:0", "product:1", "cancel:"]

    state = with_message(out.state, 100)
    out = transition(state, press("product", "0"), c)
    assert out.state == Active(Operation.SALE, PricesDraft(100, "Bread", 0))
    assert isinstance(out.commands[0], Edit)
    assert callbacks(out.commands[0].markup) == ["price:25", "price:30", "cancel:"]
    assert out.commands[-1] == Answer("cb-product-0")

    out = transition(out.state, press("price", "25"), c)
    assert out.state == Active(Operation.SALE, QtyDraft(100, "Bread", Decimal("25")))

    out = transition(out.state, press("qty", "2"), c)
    assert out.state == Active(Operation.SALE, ConfirmDraft(100, "Bread", Decimal("25"), 2))
    assert callbacks(out.commands[0].markup) == ["confirm:yes", "cancel:"]

    out = transition(out.state, press("confirm", "yes"), c)
    assert out.state == Idle()
    assert appends(out) == [LedgerRow(TODAY, "Продажа", "Bread", 2, Decimal("25"), None)]
    edit = out.commands[1]
    assert isinstance(edit, Edit) and edit.message_id == 100
    assert "Продажа сохранена" in edit.text and "= 50" in edit.text


def test_income_with_typed_values():
    c = ctx(prices=[])
    state, outs = run(Idle(), [
        TextInput("Приход"),
        press("product", "new", 100),
        TextInput("  Kefir  "),
        TextInput("abc"),
        TextInput("12,5"),
        press("qty", "other", 102),
        TextInput("0"),
        TextInput("4"),
        press("confirm", "yes", 103),
    ], c, iter(range(100, 200)))

    assert "product:new" in callbacks(outs[0].commands[0].markup)
    assert outs[1].state == Active(Operation.INCOME, ProductDraft(100))
    assert outs[2].state == Active(Operation.INCOME, PriceDraft(None, "Kefir"))
    assert outs[2].commands[0] == StripChoices(100)
    assert outs[3].commands == [Send(MSG["bad_price"])]
    assert outs[4].state == Active(Operation.INCOME, QtyDraft(None, "Kefir", Decimal("12.5")))
    assert outs[5].state == Active(Operation.INCOME, QtyInputDraft(102, "Kefir", Decimal("12.5")))
    assert outs[6].commands == [Send(MSG["bad_qty"])]
    assert outs[7].commands[0] == StripChoices(102)
    assert state == Idle()
    assert appends(outs[8]) == [LedgerRow(TODAY, "Приход", "Kefir", 4, Decimal("12.5"), None)]
    assert sum(len(appends(o)) for o in outs) == 1


def test_discount_asks_for_new_price():
    c = ctx(selected_date=date(2025, 1, 5))
    state, outs = run(Idle(), [
        TextInput("Переоценка"),
        press("product", "1", 100),
        press("price", "30", 100),
        press("qty", "5", 100),
        TextInput("-1"),
        TextInput("27"),
        press("confirm", "yes", 101),
    ], c, iter(range(100, 200)))

    assert outs[3].state == Active(Operation.DISCOUNT, NewPriceDraft(100, "Milk", Decimal("30"), 5))
    assert outs[4].commands == [Send(MSG["bad_price"])]
    assert outs[5].state == Active(Operation.DISCOUNT, ConfirmDraft(None, "Milk", Decimal("30"), 5, Decimal("27")))
    assert appends(outs[6]) == [LedgerRow(date(2025, 1, 5), "Переоценка", "Milk", 5, Decimal("30"), Decimal("27"))]
    assert "-15" in outs[6].commands[1].text
    assert state == Idle()


DRAFTS = [
    GoodsDraft(100),
    ProductDraft(100),
    PricesDraft(100, "Milk"),
    PriceDraft(100, "Milk"),
    QtyDraft(100, "Milk", Decimal("30")),
    QtyInputDraft(100, "Milk", Decimal("30")),
    NewPriceDraft(100, "Milk", Decimal("30"), 2),
    ConfirmDraft(100, "Milk", Decimal("30"), 2),
]


@pytest.mark.parametrize("draft", DRAFTS)
def test_cancel_at_every_stage(draft):
    out = transition(Active(Operation.SALE, draft), press("cancel"), ctx())
    assert out.state == Idle()
    assert appends(out) == []
    assert Edit(100, "Продажа отменена") in out.commands


@pytest.mark.parametrize("draft", DRAFTS)
def test_dump_load(draft):
    state = Active(Operation.RETURN, draft)
    assert load_state(*dump_state(state)) == state


def test_broken_session_resets():
    assert load_state("sale_bogus", "{}") == Idle()
    assert load_state("sale_qty", "not json") == Idle()
    assert load_state("sale_qty", '{"message_id": 1}') == Idle()
    assert load_state("", "") == Idle()
    assert load_state("date_enter", "") == DateEntry()


def test_confirm_redelivered_after_reset():
    out = transition(Idle(), press("confirm", "yes"), ctx())
    assert out.state == Idle()
    assert appends(out) == []
    assert out.commands == [Answer("cb-confirm-yes", MSG["outdated"])]


def test_button_from_older_message():
    state = Active(Operation.SALE, ConfirmDraft(100, "Milk", Decimal("30"), 2))
    out = transition(state, press("confirm", "yes", message_id=99), ctx())
    assert out.state == state
    assert appends(out) == []


def test_wrong_button_for_stage():
    state = Active(Operation.SALE, ConfirmDraft(100, "Milk", Decimal("30"), 2))
    out = transition(state, press("qty", "3"), ctx())
    assert out.state == state
    assert out.commands == [Answer("cb-qty-3", MSG["outdated"])]


def test_text_ignored_where_no_text_expected():
    state = Active(Operation.SALE, GoodsDraft(100))
    assert transition(state, TextInput("hello"), ctx()).commands == []


def test_product_list_changed():
    state = Active(Operation.SALE, GoodsDraft(100))
    out = transition(state, press("product", "7"), ctx())
    assert out.state == state
    assert out.commands[0] == Answer("cb-product-7", MSG["list_changed"])
    assert len([c for c in out.commands if isinstance(c, Answer)]) == 1


def test_new_price_offered_when_no_known_prices():
    state = with_message(transition(Idle(), TextInput("Продажа"), ctx(prices=[])).state, 100)
    out = transition(state, press("product", "1"), ctx(prices=[]))
    assert callbacks(out.commands[0].markup) == ["price:new", "cancel:"]


def test_goods_pages():
    products = [(f"P{i}", "") for i in range(20)]
    c = ctx(products=products)
    out = transition(Idle(), TextInput("Возврат"), c)
    assert "Товары 1/2" in out.commands[0].text
    assert "page:1" in callbacks(out.commands[0].markup)

    out = transition(with_message(out.state, 100), press("page", "1"), c)
    assert out.state == Active(Operation.RETURN, GoodsDraft(100, 1))
    assert "Товары 2/2" in out.commands[0].text
    cbs = callbacks(out.commands[0].markup)
    assert "page:0" in cbs and "product:19" in cbs and "page:2" not in cbs


def test_menu_restarts_dialog():
    state = Active(Operation.SALE, QtyDraft(100, "Milk", Decimal("30")))
    out = transition(state, TextInput("Списание"), ctx())
    assert out.state == Active(Operation.OUTCOME, GoodsDraft(None, 0))
    assert out.commands[0] == StripChoices(100)


def test_start_greets_and_resets():
    state = Active(Operation.SALE, GoodsDraft(100))
    out = transition(state, TextInput("/start"), ctx(first_name="Anna"))
    assert out.state == Idle()
    assert out.commands == [StripChoices(100), ShowMainMenu("Добро пожаловать, Anna!", TODAY)]


def test_report_and_payroll_use_selected_date():
    c = ctx(selected_date=date(2025, 1, 5))
    assert transition(Idle(), TextInput("Отчёт"), c).commands == [ShowReport(date(2025, 1, 5))]
    assert transition(Idle(), TextInput("🤵 Olha"), c).commands == [ShowPayroll(date(2025, 1, 5))]


def test_date_entry():
    c = ctx()
    out = transition(Idle(), TextInput(date_button_text(TODAY, TODAY)), c)
    assert out.state == DateEntry()
    assert out.commands[0].text == MSG["choose_date"]
    keys = [b.text for row in out.commands[0].markup.keyboard for b in row]
    assert keys == ["08.01.2025", "09.01.2025", "Сегодня"]

    out = transition(DateEntry(), TextInput("31.04"), c)
    assert out.state == DateEntry()
    assert out.commands == [Send(MSG["bad_date"])]

    out = transition(DateEntry(), TextInput("5.1"), c)
    assert out.state == Idle()
    assert out.commands[0] == SetSelectedDate(date(2025, 1, 5))
    assert out.commands[1].selected == date(2025, 1, 5)

    out = transition(DateEntry(), TextInput("Сегодня"), c)
    assert out.commands[0] == SetSelectedDate(None)
    assert out.commands[1].selected == TODAY


@pytest.mark.parametrize("text, expected", [
    ("3", 3), (" 12 ", 12), ("1000000", 1000000),
    ("0", None), ("-3", None), ("2.5", None), ("²", None), ("٣", None),
    ("1000001", None), ("99999999999999999999", None),
])
def test_parse_qty(text, expected):
    assert parse_qty(text) == expected


@pytest.mark.parametrize("text, expected", [
    ("25", Decimal("25")), ("12,5", Decimal("12.5")), ("10.50", Decimal("10.5")), ("0", Decimal("0")),
    ("10.555", None), ("-1", None), ("NaN", None), ("1e30", None), ("abc", None), ("", None),
])
def test_parse_price(text, expected):
    assert parse_price(text) == expected


def test_typed_qty_out_of_range_asks_again():
    state = Active(Operation.SALE, QtyInputDraft(100, "Milk", Decimal("30")))
    for text in ("²", "99999999999999999999"):
        out = transition(state, TextInput(text), ctx())
        assert out.state == state
        assert out.commands == [Send(MSG["bad_qty"])]


def test_price_with_extra_decimals_asks_again():
    state = Active(Operation.INCOME, PriceDraft(100, "Kefir"))
    out = transition(state, TextInput("10.555"), ctx())
    assert out.state == state
    assert out.commands == [Send(MSG["bad_price"])]


@pytest.mark.parametrize("value", ["²", "99999999999999999999"])
def test_odd_product_index(value):
    state = Active(Operation.SALE, GoodsDraft(100))
    out = transition(state, press("product", value), ctx())
    assert out.state == state
    assert out.commands[0] == Answer(f"cb-product-{value}", MSG["list_changed"])


def test_odd_page_value():
    state = Active(Operation.SALE, GoodsDraft(100))
    out = transition(state, press("page", "²"), ctx())
    assert out.state == state
