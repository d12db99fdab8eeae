import asyncio
import logging
import weakref
from dataclasses import dataclass
from datetime import date, datetime

import pytz
from aiogram import Bot, F, Router
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest
from aiogram.types import CallbackQuery, Message, Update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import keyboards as kbs
from dialog import (
    AppendLedger, Answer, ButtonPress, Context, DialogState, Edit, Event, Outcome, Send,
    SetSelectedDate, ShowMainMenu, ShowPayroll, ShowReport, StripChoices, TextInput,
    dump_state, load_state, product_in_focus, transition, with_message,
)
from ledger import aggregate_day, daily_sales
from payroll import calculate_payroll, fill_sales, seller_for
from reports import format_day_report, format_payroll, h
from storage import CatalogStore, LedgerStore, ScheduleStore, SessionStore, Settings, SettingsStore, sub_msg
from texts import OPS, REV, WORD, Operation
from dates import today_in


log = logging.getLogger(__name__)

router = Router()

UNCHANGED = object()

# One update at a time per user, entries vanish once no task holds the lock
_locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()


def user_lock(user_id: int) -> asyncio.Lock:
    lock = _locks.get(user_id)
    if lock is None:
        lock = _locks[user_id] = asyncio.Lock()
    return lock


class Transport:
    """Messaging calls for one chat. Failures are logged and never raised."""

    def __init__(self, bot: Bot, chat_id: int):
        self.bot = bot
        self.chat_id = chat_id

    async def send(self, text: str, markup=None) -> int | None:
        try:
            msg = await self.bot.send_message(self.chat_id, text, reply_markup=markup)
            return msg.message_id
        except TelegramAPIError as e:
            log.error("send_message to %s failed: %s", self.chat_id, e)
            return None

    async def edit(self, message_id: int, text: str, markup=None) -> bool:
        try:
            await self.bot.edit_message_text(text=text, chat_id=self.chat_id, message_id=message_id, reply_markup=markup)
            return True
        except TelegramBadRequest as e:
            if "message is not modified" in str(e):
                return True
            log.warning("edit_message_text %s/%s failed: %s", self.chat_id, message_id, e)
            return False
        except TelegramAPIError as e:
            log.error("edit_message_text %s/%s failed: %s", self.chat_id, message_id, e)
            return False

    async def strip_choices(self, message_id: int):
        try:
            await self.bot.edit_message_reply_markup(chat_id=self.chat_id, message_id=message_id, reply_markup=None)
        except TelegramBadRequest as e:
            if "message is not modified" not in str(e):
                log.warning("edit_message_reply_markup %s/%s failed: %s", self.chat_id, message_id, e)
        except TelegramAPIError as e:
            log.error("edit_message_reply_markup %s/%s failed: %s", self.chat_id, message_id, e)

    async def answer(self, callback_id: str, text: str = ""):
        if not callback_id:
            return
        try:
            await self.bot.answer_callback_query(callback_id, text=text or None)
        except TelegramAPIError as e:
            log.warning("answer_callback_query %s failed: %s", callback_id, e)


@dataclass(frozen=True)
class Incoming:
    user_id: int
    chat_id: int
    update_id: int
    event: Event
    first_name: str = ""
    sent_at: datetime | None = None


def local_today(sent_at: datetime | None, tz_name: str) -> date:
    if sent_at is None or sent_at.year < 2000:
        return today_in(tz_name)
    if sent_at.tzinfo is None:
        sent_at = pytz.utc.localize(sent_at)
    return sent_at.astimezone(pytz.timezone(tz_name)).date()


class Executor:
    """Runs the commands of one transition against the stores and the chat."""

    def __init__(self, s: AsyncSession, transport: Transport, ctx: Context):
        self.s = s
        self.t = transport
        self.ctx = ctx
        self.appends = []
        self.selected = UNCHANGED

    def stage_writes(self, out: Outcome):
        for c in out.commands:
            if isinstance(c, AppendLedger):
                self.appends.append(c.row)
            elif isinstance(c, SetSelectedDate):
                self.selected = c.value

    async def write(self, user_id: int):
        ledger = LedgerStore(self.s)
        catalog = CatalogStore(self.s)
        for row in self.appends:
            await ledger.append(row, user_id=user_id)
            if REV.get(row.label) == Operation.INCOME:
                await catalog.ensure_product(row.product)
            log.info("Ledger +%s %s %s×%s by %s", row.label, row.product, row.qty, row.price, user_id)

    async def run(self, out: Outcome) -> DialogState:
        state = out.state
        for c in out.commands:
            if isinstance(c, Send):
                mid = await self.t.send(c.text, c.markup)
                if c.track:
                    state = with_message(state, mid)
            elif isinstance(c, Edit):
                ok = c.message_id is not None and await self.t.edit(c.message_id, c.text, c.markup)
                if not ok:
                    state = with_message(state, await self.t.send(c.text, c.markup))
            elif isinstance(c, StripChoices):
                if c.message_id is not None:
                    await self.t.strip_choices(c.message_id)
            elif isinstance(c, Answer):
                await self.t.answer(c.callback_id, c.text)
            elif isinstance(c, ShowMainMenu):
                await self.t.send(c.text, await self.main_menu(c.selected))
            elif isinstance(c, ShowReport):
                await self.t.send(await self.day_report(c.target))
            elif isinstance(c, ShowPayroll):
                await self.t.send(await self.payroll(c.target))
        return state

    async def main_menu(self, selected: date):
        rows = await ScheduleStore(self.s).scan()
        seller = seller_for(rows, selected, WORD["seller"])
        return kbs.main_menu_kb(selected, self.ctx.today, seller)

    async def day_report(self, target: date) -> str:
        rows = await LedgerStore(self.s).scan()
        report = aggregate_day(rows, target, self.ctx.settings.opening_balance)
        if report.skipped:
            log.warning("Report %s: %s ledger rows skipped", target, report.skipped)
        return format_day_report(report, self.ctx.settings.rest_url)

    async def payroll(self, target: date) -> str:
        schedule = await ScheduleStore(self.s).scan()
        sales = daily_sales(await LedgerStore(self.s).scan())
        result = calculate_payroll(
            fill_sales(schedule, sales), target.year, target.month,
            self.ctx.settings.pay_rates, self.ctx.today, forecast=True,
        )
        return format_payroll(result)


async def deny(transport: Transport, inc: Incoming, settings: Settings):
    text = sub_msg(settings.deny_msg, {"name": h(inc.first_name or "Друг")})
    if isinstance(inc.event, ButtonPress):
        await transport.answer(inc.event.callback_id, text)
    await transport.send(text)


async def handle(Session: async_sessionmaker[AsyncSession], transport: Transport, inc: Incoming, tz_name: str):
    async with Session() as s:
        sessions = SessionStore(s)
        settings = await SettingsStore(s).get_all()
        user = await sessions.get(inc.user_id)
        if not user or not user.active:
            log.info("Access denied for %s", inc.user_id)
            return await deny(transport, inc, settings)

        if inc.update_id and inc.update_id <= (user.last_update_id or 0):
            log.info("Update %s from %s already handled, skipped", inc.update_id, inc.user_id)
            if isinstance(inc.event, ButtonPress):
                await transport.answer(inc.event.callback_id)
            return

        state = load_state(user.step, user.pending)
        catalog = CatalogStore(s)
        products = await catalog.list_products()
        focus = product_in_focus(state, inc.event, products)
        prices = await catalog.list_known_prices(focus, OPS[Operation.INCOME]["op"]) if focus else []

        ctx = Context(
            today=local_today(inc.sent_at, tz_name),
            selected_date=user.selected_date,
            settings=settings,
            products=products,
            prices=prices,
            first_name=inc.first_name,
        )
        out = transition(state, inc.event, ctx)
        log.debug("User %s: %s -> %s", inc.user_id, dump_state(state)[0] or "idle", dump_state(out.state)[0] or "idle")

        ex = Executor(s, transport, ctx)
        ex.stage_writes(out)
        selected = user.selected_date if ex.selected is UNCHANGED else ex.selected

        # ledger rows, the new step and the update id land together
        await ex.write(inc.user_id)
        step, pending = dump_state(out.state)
        await sessions.save(inc.user_id, step, pending, selected, inc.update_id or None)
        await s.commit()

        new_state = await ex.run(out)
        if new_state != out.state:
            step, pending = dump_state(new_state)
            await sessions.save(inc.user_id, step, pending, selected)
            await s.commit()


async def process_update(Session: async_sessionmaker[AsyncSession], transport: Transport, inc: Incoming, tz_name: str):
    try:
        async with user_lock(inc.user_id):
            await handle(Session, transport, inc, tz_name)
    except Exception:
        log.exception("Update %s from %s failed", inc.update_id, inc.user_id)


@router.message(F.text)
async def on_text(message: Message, bot: Bot, event_update: Update, sessionmaker, tz_name: str):
    if not message.from_user:
        return
    inc = Incoming(
        user_id=message.from_user.id,
        chat_id=message.chat.id,
        update_id=event_update.update_id,
        event=TextInput(message.text or ""),
        first_name=message.from_user.first_name or "",
        sent_at=message.date,
    )
    await process_update(sessionmaker, Transport(bot, message.chat.id), inc, tz_name)


def from_callback(cq: CallbackQuery, update_id: int, now: datetime | None = None) -> Incoming:
    # the message date is when the keyboard was sent, not when it was pressed
    key, value = kbs.parse_cb(cq.data)
    return Incoming(
        user_id=cq.from_user.id,
        chat_id=cq.message.chat.id,
        update_id=update_id,
        event=ButtonPress(key, value, cq.id, cq.message.message_id),
        first_name=cq.from_user.first_name or "",
        sent_at=now or datetime.now(pytz.utc),
    )


@router.callback_query()
async def on_callback(cq: CallbackQuery, bot: Bot, event_update: Update, sessionmaker, tz_name: str):
    if not cq.message:
        return await cq.answer()
    inc = from_callback(cq, event_update.update_id)
    await process_update(sessionmaker, Transport(bot, cq.message.chat.id), inc, tz_name)
