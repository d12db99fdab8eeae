import logging
import re
from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ledger import LedgerRow, article
from models import Base, Goods, LedgerEntry, RestItem, ScheduleEntry, Setting, User
from payroll import PayRates, ScheduleRow


log = logging.getLogger(__name__)


def make_engine(db_url: str) -> AsyncEngine:
    return create_async_engine(db_url, echo=False)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine, Session: async_sessionmaker[AsyncSession], owner_id: int = 0, owner_name: str = ""):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if owner_id:
        async with Session() as s:
            u = await s.get(User, owner_id)
            if not u:
                s.add(User(user_id=owner_id, name=owner_name, active=True, created_at=datetime.utcnow()))
                await s.commit()


def dec(s) -> Decimal:
    s = str(s if s is not None else "").strip().replace(",", ".").replace(" ", "")
    return Decimal(s)


def sub_msg(template: str, data: dict) -> str:
    return re.sub(r"\{(\w+)\}", lambda m: str(data.get(m.group(1), m.group(0))), template)


@dataclass(frozen=True)
class Settings:
    start_msg: str = "Добро пожаловать, {name}!"
    deny_msg: str = "⛔ {name}, у вас нет доступа к этому боту."
    opening_balance: Decimal = Decimal("0")
    per_page: int = 15
    rest_url: str = ""
    base_salary: Decimal = Decimal("500")
    commission_rate: Decimal = Decimal("0.05")
    bonus_threshold: Decimal = Decimal("10000")
    bonus_per_threshold: Decimal = Decimal("100")

    @classmethod
    def from_mapping(cls, raw: dict[str, str]) -> "Settings":
        values = {}
        for f in fields(cls):
            value = (raw.get(f.name) or "").strip()
            if not value:
                continue
            try:
                if f.type in (Decimal, "Decimal"):
                    values[f.name] = dec(value)
                elif f.type in (int, "int"):
                    values[f.name] = int(value)
                else:
                    values[f.name] = value
            except (InvalidOperation, ValueError):
                log.warning("Bad value %r for setting %s, default used", value, f.name)
        return cls(**values)

    @property
    def pay_rates(self) -> PayRates:
        return PayRates(
            base=self.base_salary,
            commission_rate=self.commission_rate,
            bonus_threshold=self.bonus_threshold,
            bonus_per_threshold=self.bonus_per_threshold,
        )


class SettingsStore:
    def __init__(self, s: AsyncSession):
        self.s = s

    async def get_all(self) -> Settings:
        rows = (await self.s.execute(select(Setting))).scalars().all()
        return Settings.from_mapping({r.key.strip(): r.value for r in rows if r.key})

    async def set(self, key: str, value: str):
        row = await self.s.get(Setting, key)
        if row:
            row.value = value
        else:
            self.s.add(Setting(key=key, value=value))


class SessionStore:
    def __init__(self, s: AsyncSession):
        self.s = s

    async def get(self, user_id: int) -> User | None:
        return await self.s.get(User, int(user_id))

    async def save(self, user_id: int, step: str, pending: str, selected_date: date | None,
                   last_update_id: int | None = None):
        values = {"step": step, "pending": pending, "selected_date": selected_date}
        if last_update_id is not None:
            values["last_update_id"] = last_update_id
        await self.s.execute(update(User).where(User.user_id == int(user_id)).values(**values))


class LedgerStore:
    def __init__(self, s: AsyncSession):
        self.s = s

    async def append(self, row: LedgerRow, user_id: int = 0):
        if row.qty <= 0 or row.price < 0:
            raise ValueError(f"Invalid ledger row: qty={row.qty} price={row.price}")
        self.s.add(LedgerEntry(
            entry_date=row.entry_date,
            op_label=row.label,
            product=row.product,
            qty=row.qty,
            price=row.price,
            new_price=row.new_price,
            article=row.article,
            new_article=article(row.product, row.new_price) if row.new_price is not None else "",
            user_id=user_id,
        ))

    async def scan(self) -> list[LedgerRow]:
        rows = (await self.s.execute(select(LedgerEntry).order_by(LedgerEntry.id))).scalars().all()
        return [
            LedgerRow(
                entry_date=r.entry_date,
                label=r.op_label,
                product=r.product,
                qty=int(r.qty),
                price=Decimal(r.price),
                new_price=Decimal(r.new_price) if r.new_price is not None else None,
            )
            for r in rows
        ]


class CatalogStore:
    def __init__(self, s: AsyncSession):
        self.s = s

    async def list_products(self) -> list[tuple[str, str]]:
        rows = (await self.s.execute(select(Goods).order_by(Goods.position, Goods.id))).scalars().all()
        return [(g.name, g.emoji or "") for g in rows]

    async def list_known_prices(self, product: str, income_label: str = "") -> list[Decimal]:
        prices = set((await self.s.execute(
            select(RestItem.price).where(RestItem.product == product)
        )).scalars().all())
        if income_label:
            prices |= set((await self.s.execute(
                select(LedgerEntry.price).where(LedgerEntry.product == product, LedgerEntry.op_label == income_label)
            )).scalars().all())
        return sorted(Decimal(p) for p in prices if p is not None)

    async def ensure_product(self, name: str):
        exists = await self.s.scalar(select(Goods.id).where(Goods.name == name))
        if not exists:
            last = await self.s.scalar(select(Goods.position).order_by(Goods.position.desc()).limit(1))
            self.s.add(Goods(name=name, emoji="", position=(last or 0) + 1))


class ScheduleStore:
    def __init__(self, s: AsyncSession):
        self.s = s

    async def scan(self) -> list[ScheduleRow]:
        rows = (await self.s.execute(select(ScheduleEntry).order_by(ScheduleEntry.id))).scalars().all()
        return [
            ScheduleRow(r.work_date, (r.seller or "").strip(), Decimal(r.sales) if r.sales is not None else None)
            for r in rows
        ]
