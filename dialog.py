"""
Conversation state machine.

`transition(state, event, ctx)` is pure: it returns the next state and a list
of commands (messages to send or edit, ledger appends, reports) that the
executor in handlers.py runs afterwards.
"""
import json
import logging
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Callable, ClassVar, Union

import keyboards as kbs
from ledger import LedgerRow, plain
from pagination import paginate
from reports import fmt_amount, fmt_signed, h
from storage import Settings, dec, sub_msg
from texts import ICO, MSG, OPS, REV, WORD, Operation
from dates import parse_flexible_date, format_date


log = logging.getLogger(__name__)


class Stage(str, Enum):
    GOODS = "goods"
    PRODUCT_NEW = "productnew"
    PRICES = "prices"
    PRICE_INPUT = "price_input"
    QTY = "qty"
    QTY_INPUT = "qty_input"
    PRICE_OTHER = "price_other"
    CONFIRM = "confirm"


DATE_ENTER = "date_enter"


# ---- drafts: what each stage knows about the operation being recorded ----

@dataclass(frozen=True)
class GoodsDraft:
    stage: ClassVar[Stage] = Stage.GOODS
    message_id: int | None = None
    page: int = 0


@dataclass(frozen=True)
class ProductDraft:
    stage: ClassVar[Stage] = Stage.PRODUCT_NEW
    message_id: int | None = None


@dataclass(frozen=True)
class PricesDraft:
    stage: ClassVar[Stage] = Stage.PRICES
    message_id: int | None
    product: str
    page: int = 0


@dataclass(frozen=True)
class PriceDraft:
    stage: ClassVar[Stage] = Stage.PRICE_INPUT
    message_id: int | None
    product: str


@dataclass(frozen=True)
class QtyDraft:
    stage: ClassVar[Stage] = Stage.QTY
    message_id: int | None
    product: str
    price: Decimal


@dataclass(frozen=True)
class QtyInputDraft(QtyDraft):
    stage: ClassVar[Stage] = Stage.QTY_INPUT


@dataclass(frozen=True)
class NewPriceDraft:
    stage: ClassVar[Stage] = Stage.PRICE_OTHER
    message_id: int | None
    product: str
    price: Decimal
    qty: int


@dataclass(frozen=True)
class ConfirmDraft:
    stage: ClassVar[Stage] = Stage.CONFIRM
    message_id: int | None
    product: str
    price: Decimal
    qty: int
    new_price: Decimal | None = None


Draft = Union[GoodsDraft, ProductDraft, PricesDraft, PriceDraft, QtyDraft, QtyInputDraft, NewPriceDraft, ConfirmDraft]

DRAFTS = {d.stage: d for d in (
    GoodsDraft, ProductDraft, PricesDraft, PriceDraft, QtyDraft, QtyInputDraft, NewPriceDraft, ConfirmDraft
)}


# ---- states ----

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class DateEntry:
    pass


@dataclass(frozen=True)
class Active:
    operation: Operation
    draft: Draft

    @property
    def stage(self) -> Stage:
        return self.draft.stage


DialogState = Union[Idle, DateEntry, Active]


def dump_state(state: DialogState) -> tuple[str, str]:
    if isinstance(state, Active):
        data = {k: (plain(v) if isinstance(v, Decimal) else v) for k, v in asdict(state.draft).items()}
        return f"{state.operation.value}_{state.stage.value}", json.dumps(data, ensure_ascii=False)
    if isinstance(state, DateEntry):
        return DATE_ENTER, ""
    return "", ""


def load_state(step: str, pending: str) -> DialogState:
    step = (step or "").strip()
    if not step:
        return Idle()
    if step == DATE_ENTER:
        return DateEntry()

    op_value, _, stage_value = step.partition("_")
    try:
        op = Operation(op_value)
        cls = DRAFTS[Stage(stage_value)]
        raw = json.loads(pending) if pending else {}
        kwargs = {}
        for f in fields(cls):
            if f.name not in raw:
                continue
            value = raw[f.name]
            if f.name in ("price", "new_price") and value is not None:
                value = Decimal(str(value))
            elif f.name in ("message_id", "page", "qty") and value is not None:
                value = int(value)
            kwargs[f.name] = value
        return Active(op, cls(**kwargs))
    except (ValueError, KeyError, TypeError, InvalidOperation):
        log.warning("Broken session step %r / %r, reset to idle", step, pending)
        return Idle()


# ---- events ----

@dataclass(frozen=True)
class TextInput:
    text: str


@dataclass(frozen=True)
class ButtonPress:
    key: str
    value: str = ""
    callback_id: str = ""
    message_id: int | None = None


Event = Union[TextInput, ButtonPress]


class Kind(str, Enum):
    TEXT = "text"
    PRODUCT = kbs.CB_PRODUCT
    PRICE = kbs.CB_PRICE
    PAGE = kbs.CB_PAGE
    QTY = kbs.CB_QTY
    CONFIRM = kbs.CB_CONFIRM
    CANCEL = kbs.CB_CANCEL
    UNKNOWN = "unknown"


def kind_of(event: Event) -> Kind:
    if isinstance(event, TextInput):
        return Kind.TEXT
    try:
        return Kind(event.key)
    except ValueError:
        return Kind.UNKNOWN


# ---- commands ----

@dataclass(frozen=True)
class Send:
    text: str
    markup: object = None
    track: bool = False  # remember the message id in the draft


@dataclass(frozen=True)
class Edit:
    message_id: int | None
    text: str
    markup: object = None
    track: bool = False


@dataclass(frozen=True)
class StripChoices:
    message_id: int | None


@dataclass(frozen=True)
class Answer:
    callback_id: str
    text: str = ""


@dataclass(frozen=True)
class AppendLedger:
    row: LedgerRow


@dataclass(frozen=True)
class SetSelectedDate:
    value: date | None


@dataclass(frozen=True)
class ShowMainMenu:
    text: str
    selected: date


@dataclass(frozen=True)
class ShowReport:
    target: date


@dataclass(frozen=True)
class ShowPayroll:
    target: date


Command = Union[Send, Edit, StripChoices, Answer, AppendLedger, SetSelectedDate, ShowMainMenu, ShowReport, ShowPayroll]


@dataclass
class Outcome:
    state: DialogState
    commands: list[Command] = field(default_factory=list)


@dataclass(frozen=True)
class Context:
    today: date
    selected_date: date | None = None
    settings: Settings = field(default_factory=Settings)
    products: list[tuple[str, str]] = field(default_factory=list)
    prices: list[Decimal] = field(default_factory=list)
    first_name: str = ""

    @property
    def work_date(self) -> date:
        return self.selected_date or self.today


def with_message(state: DialogState, message_id: int | None) -> DialogState:
    if isinstance(state, Active) and message_id is not None:
        return Active(state.operation, replace(state.draft, message_id=message_id))
    return state


def product_in_focus(state: DialogState, event: Event, products: list[tuple[str, str]]) -> str | None:
    """Product whose known prices the next transition may need."""
    if isinstance(event, ButtonPress) and event.key == kbs.CB_PRODUCT and is_number(event.value):
        idx = int(event.value)
        if 0 <= idx < len(products):
            return products[idx][0]
    if isinstance(state, Active):
        return getattr(state.draft, "product", None)
    return None


# ---- input parsing ----

MAX_QTY = 10**6
MAX_PRICE = Decimal("1000000000")
CENT = Decimal("0.01")


def is_number(s: str) -> bool:
    return s.isascii() and s.isdigit()


def parse_qty(text: str) -> int | None:
    t = (text or "").strip()
    if not is_number(t):
        return None
    qty = int(t)
    return qty if 0 < qty <= MAX_QTY else None


def parse_price(text: str) -> Decimal | None:
    try:
        p = dec(text)
    except InvalidOperation:
        return None
    if not p.is_finite() or p < 0 or p > MAX_PRICE:
        return None
    # money columns keep two decimals
    if p != p.quantize(CENT):
        return None
    return p


# ---- views ----

def op_label(op: Operation) -> str:
    return OPS[op]["op"]


def goods_view(op: Operation, ctx: Context, page: int):
    choices = [kbs.Choice(name, str(i), emoji) for i, (name, emoji) in enumerate(ctx.products)]
    if op == Operation.INCOME:
        choices.append(kbs.Choice(MSG["new_product"], kbs.NEW, ICO["new"]))
    p = paginate(choices, ctx.settings.per_page, page)
    text = MSG["goods_page"].format(op=op_label(op), page=p.page + 1, pages=p.total_pages)
    return text, kbs.choice_grid(p, kbs.CB_PRODUCT), p.page


def prices_view(op: Operation, product: str, ctx: Context, page: int):
    choices = [kbs.Choice(fmt_amount(price), plain(price)) for price in ctx.prices]
    if op == Operation.INCOME or not ctx.prices:
        choices.append(kbs.Choice(MSG["new_price"], kbs.NEW, ICO["new"]))
    p = paginate(choices, ctx.settings.per_page, page)
    pages = f" {p.page + 1}/{p.total_pages}" if p.total_pages > 1 else ""
    text = MSG["prices_page"].format(op=op_label(op), product=h(product), pages=pages)
    return text, kbs.choice_grid(p, kbs.CB_PRICE), p.page


def qty_text(op: Operation, product: str, price: Decimal) -> str:
    return MSG["select_qty"].format(op=op_label(op), product=h(product), price=fmt_amount(price), cur=WORD["currency"])


def confirm_text(op: Operation, d: ConfirmDraft) -> str:
    if d.new_price is not None:
        return MSG["confirm_discount"].format(
            prompt=OPS[op]["prompt"], product=h(d.product), qty=d.qty,
            price=fmt_amount(d.price), new_price=fmt_amount(d.new_price),
        )
    return MSG["confirm"].format(prompt=OPS[op]["prompt"], product=h(d.product), qty=d.qty, price=fmt_amount(d.price))


def saved_text(op: Operation, d: ConfirmDraft, entry_date: date) -> str:
    common = dict(
        saved=OPS[op]["saved"], product=h(d.product), qty=d.qty, price=fmt_amount(d.price),
        date_word=WORD["date"], date=format_date(entry_date),
    )
    if d.new_price is not None:
        delta = d.qty * (d.new_price - d.price)
        return MSG["saved_discount"].format(new_price=fmt_amount(d.new_price), total=fmt_signed(delta), **common)
    return MSG["saved"].format(total=fmt_amount(d.qty * d.price), **common)


def target_message(state: Active, event: Event) -> int | None:
    if isinstance(event, ButtonPress) and event.message_id is not None:
        return event.message_id
    return state.draft.message_id


# ---- menu commands, honored from any state ----

def is_date_button(text: str) -> bool:
    return ICO["today"] in text or ICO["day"] in text


def strip_active(state: DialogState) -> list:
    if isinstance(state, Active) and state.draft.message_id is not None:
        return [StripChoices(state.draft.message_id)]
    return []


def menu_command(state: DialogState, text: str, ctx: Context) -> Outcome | None:
    if text == "/start" or text.startswith("/start "):
        greeting = sub_msg(ctx.settings.start_msg, {"name": h(ctx.first_name)})
        return Outcome(Idle(), strip_active(state) + [ShowMainMenu(greeting, ctx.work_date)])

    op = REV.get(text)
    if op is not None:
        body, markup, page = goods_view(op, ctx, 0)
        return Outcome(Active(op, GoodsDraft(None, page)), strip_active(state) + [Send(body, markup, track=True)])

    if text == WORD["report"]:
        return Outcome(state, [ShowReport(ctx.work_date)])

    if text.startswith(ICO["seller"]):
        return Outcome(state, [ShowPayroll(ctx.work_date)])

    if is_date_button(text):
        return Outcome(DateEntry(), strip_active(state) + [Send(MSG["choose_date"], kbs.date_pick_kb(ctx.today))])
    return None


def enter_date(state: DateEntry, text: str, ctx: Context) -> Outcome:
    if text == WORD["today"]:
        chosen, stored = ctx.today, None
    else:
        parsed = parse_flexible_date(text, ctx.today)
        if not parsed.valid:
            return Outcome(state, [Send(MSG["bad_date"])])
        chosen, stored = parsed.value, parsed.value

    msg = MSG["date_set"].format(date_word=WORD["date"], date=format_date(chosen))
    return Outcome(Idle(), [SetSelectedDate(stored), ShowMainMenu(msg, chosen)])


# ---- operation stages ----

def pick_product(state: Active, event: ButtonPress, ctx: Context) -> Outcome:
    op, mid = state.operation, target_message(state, event)
    if event.value == kbs.NEW:
        text = MSG["enter_product"].format(op=op_label(op))
        return Outcome(Active(op, ProductDraft(mid)), [Edit(mid, text, kbs.cancel_kb())])

    idx = int(event.value) if is_number(event.value) else -1
    if not 0 <= idx < len(ctx.products):
        body, markup, page = goods_view(op, ctx, state.draft.page)
        return Outcome(
            Active(op, GoodsDraft(mid, page)),
            [Answer(event.callback_id, MSG["list_changed"]), Edit(mid, body, markup)],
        )

    product = ctx.products[idx][0]
    body, markup, page = prices_view(op, product, ctx, 0)
    return Outcome(Active(op, PricesDraft(mid, product, page)), [Edit(mid, body, markup)])


def turn_page(state: Active, event: ButtonPress, ctx: Context) -> Outcome:
    op, mid, d = state.operation, target_message(state, event), state.draft
    page = int(event.value) if is_number(event.value) else 0
    if isinstance(d, PricesDraft):
        body, markup, page = prices_view(op, d.product, ctx, page)
        draft = PricesDraft(mid, d.product, page)
    else:
        body, markup, page = goods_view(op, ctx, page)
        draft = GoodsDraft(mid, page)
    return Outcome(Active(op, draft), [Edit(mid, body, markup)])


def pick_price(state: Active, event: ButtonPress, ctx: Context) -> Outcome:
    op, mid, d = state.operation, target_message(state, event), state.draft
    if event.value == kbs.NEW:
        text = MSG["enter_price"].format(op=op_label(op), product=h(d.product))
        return Outcome(Active(op, PriceDraft(mid, d.product)), [Edit(mid, text, kbs.cancel_kb())])

    price = parse_price(event.value)
    if price is None:
        return Outcome(state, [Answer(event.callback_id, MSG["outdated"])])
    return Outcome(
        Active(op, QtyDraft(mid, d.product, price)),
        [Edit(mid, qty_text(op, d.product, price), kbs.qty_kb())],
    )


def enter_product(state: Active, event: TextInput, ctx: Context) -> Outcome:
    op = state.operation
    product = " ".join(event.text.split())
    if not product or len(product) > 150:
        return Outcome(state, [Send(MSG["bad_product"])])
    text = MSG["enter_price_new_product"].format(op=op_label(op), product=h(product))
    return Outcome(
        Active(op, PriceDraft(None, product)),
        [StripChoices(state.draft.message_id), Send(text, kbs.cancel_kb(), track=True)],
    )


def enter_price(state: Active, event: TextInput, ctx: Context) -> Outcome:
    op, d = state.operation, state.draft
    price = parse_price(event.text)
    if price is None:
        return Outcome(state, [Send(MSG["bad_price"])])
    return Outcome(
        Active(op, QtyDraft(None, d.product, price)),
        [StripChoices(d.message_id), Send(qty_text(op, d.product, price), kbs.qty_kb(), track=True)],
    )


def after_qty(op: Operation, d: QtyDraft, qty: int, mid: int | None, edit: bool) -> Outcome:
    if op == Operation.DISCOUNT:
        nxt = NewPriceDraft(mid, d.product, d.price, qty)
        text = MSG["enter_new_price"].format(
            op=op_label(op), product=h(d.product), qty=qty, price=fmt_amount(d.price), cur=WORD["currency"],
        )
        markup = kbs.cancel_kb()
    else:
        nxt = ConfirmDraft(mid, d.product, d.price, qty)
        text = confirm_text(op, nxt)
        markup = kbs.yes_cancel_kb()

    if edit:
        return Outcome(Active(op, nxt), [Edit(mid, text, markup)])
    return Outcome(Active(op, replace(nxt, message_id=None)), [StripChoices(mid), Send(text, markup, track=True)])


def pick_qty(state: Active, event: ButtonPress, ctx: Context) -> Outcome:
    op, mid, d = state.operation, target_message(state, event), state.draft
    if event.value == kbs.OTHER:
        text = MSG["enter_qty"].format(op=op_label(op), product=h(d.product), price=fmt_amount(d.price), cur=WORD["currency"])
        return Outcome(Active(op, QtyInputDraft(mid, d.product, d.price)), [Edit(mid, text, kbs.cancel_kb())])

    qty = parse_qty(event.value)
    if qty is None:
        return Outcome(state, [Answer(event.callback_id, MSG["outdated"])])
    return after_qty(op, d, qty, mid, edit=True)


def enter_qty(state: Active, event: TextInput, ctx: Context) -> Outcome:
    qty = parse_qty(event.text)
    if qty is None:
        return Outcome(state, [Send(MSG["bad_qty"])])
    return after_qty(state.operation, state.draft, qty, state.draft.message_id, edit=False)


def enter_new_price(state: Active, event: TextInput, ctx: Context) -> Outcome:
    op, d = state.operation, state.draft
    new_price = parse_price(event.text)
    if new_price is None:
        return Outcome(state, [Send(MSG["bad_price"])])
    nxt = ConfirmDraft(None, d.product, d.price, d.qty, new_price)
    return Outcome(
        Active(op, nxt),
        [StripChoices(d.message_id), Send(confirm_text(op, nxt), kbs.yes_cancel_kb(), track=True)],
    )


def confirm(state: Active, event: ButtonPress, ctx: Context) -> Outcome:
    op, mid, d = state.operation, target_message(state, event), state.draft
    entry_date = ctx.work_date
    row = LedgerRow(
        entry_date=entry_date,
        label=op_label(op),
        product=d.product,
        qty=d.qty,
        price=d.price,
        new_price=d.new_price if op == Operation.DISCOUNT else None,
    )
    return Outcome(Idle(), [AppendLedger(row), Edit(mid, saved_text(op, d, entry_date))])


def cancel(state: Active, event: ButtonPress, ctx: Context) -> Outcome:
    return Outcome(Idle(), [Edit(target_message(state, event), OPS[state.operation]["cancelled"])])


Handler = Callable[[Active, Event, Context], Outcome]

TRANSITIONS: dict[tuple[Stage, Kind], Handler] = {
    (Stage.GOODS, Kind.PRODUCT): pick_product,
    (Stage.GOODS, Kind.PAGE): turn_page,
    (Stage.PRICES, Kind.PAGE): turn_page,
    (Stage.PRICES, Kind.PRICE): pick_price,
    (Stage.PRODUCT_NEW, Kind.TEXT): enter_product,
    (Stage.PRICE_INPUT, Kind.TEXT): enter_price,
    (Stage.QTY, Kind.QTY): pick_qty,
    (Stage.QTY_INPUT, Kind.TEXT): enter_qty,
    (Stage.PRICE_OTHER, Kind.TEXT): enter_new_price,
    (Stage.CONFIRM, Kind.CONFIRM): confirm,
}
TRANSITIONS.update({(stage, Kind.CANCEL): cancel for stage in Stage})


def is_stale(state: Active, event: Event) -> bool:
    return (
        isinstance(event, ButtonPress)
        and event.message_id is not None
        and state.draft.message_id is not None
        and event.message_id != state.draft.message_id
    )


def dispatch(state: DialogState, event: Event, ctx: Context) -> Outcome:
    if isinstance(event, TextInput):
        text = (event.text or "").strip()
        out = menu_command(state, text, ctx)
        if out is not None:
            return out
        if isinstance(state, DateEntry):
            return enter_date(state, text, ctx)
        event = TextInput(text)

    kind = kind_of(event)
    if isinstance(state, Active) and not is_stale(state, event):
        handler = TRANSITIONS.get((state.stage, kind))
        if handler is not None:
            return handler(state, event, ctx)

    if isinstance(event, ButtonPress):
        if kind == Kind.CANCEL and not isinstance(state, Active):
            return Outcome(Idle(), [Edit(event.message_id, MSG["cancelled"])])
        return Outcome(state, [Answer(event.callback_id, MSG["outdated"])])
    return Outcome(state, [])


def transition(state: DialogState, event: Event, ctx: Context) -> Outcome:
    out = dispatch(state, event, ctx)
    if isinstance(event, ButtonPress) and not any(isinstance(c, Answer) for c in out.commands):
        out.commands.append(Answer(event.callback_id))
    return out
