from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import String, Integer, Numeric, Date, DateTime, Boolean, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), default="")
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    step: Mapped[str] = mapped_column(String(40), default="")
    pending: Mapped[str] = mapped_column(Text, default="")  # JSON of the stage draft
    selected_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_update_id: Mapped[int] = mapped_column(Integer, default=0)


class LedgerEntry(Base):
    __tablename__ = "ledger"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    entry_date: Mapped[date] = mapped_column(Date, index=True)

    op_label: Mapped[str] = mapped_column(String(40), index=True)  # "Продажа"/"Приход"/...
    product: Mapped[str] = mapped_column(String(150), index=True)
    qty: Mapped[int] = mapped_column(Integer)
    price: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    new_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)

    article: Mapped[str] = mapped_column(String(200), default="")
    new_article: Mapped[str] = mapped_column(String(200), default="")

    user_id: Mapped[int] = mapped_column(Integer, default=0)


class Goods(Base):
    __tablename__ = "goods"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(150), unique=True, index=True)
    emoji: Mapped[str] = mapped_column(String(16), default="")
    position: Mapped[int] = mapped_column(Integer, default=0)


class RestItem(Base):
    __tablename__ = "rest"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product: Mapped[str] = mapped_column(String(150), index=True)
    price: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    qty: Mapped[int] = mapped_column(Integer, default=0)


class ScheduleEntry(Base):
    __tablename__ = "schedule"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    work_date: Mapped[date] = mapped_column(Date, index=True)
    seller: Mapped[str] = mapped_column(String(120))
    sales: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)


class Setting(Base):
    __tablename__ = "settings"
    key: Mapped[str] = mapped_column(String(60), primary_key=True)
    value: Mapped[str] = mapped_column(Text, default="")
