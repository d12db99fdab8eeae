import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping


@dataclass(frozen=True)
class ScheduleRow:
    work_date: date
    seller: str
    sales: Decimal | None = None


@dataclass(frozen=True)
class PayRates:
    base: Decimal
    commission_rate: Decimal
    bonus_threshold: Decimal
    bonus_per_threshold: Decimal


@dataclass
class SellerStats:
    name: str
    sales: Decimal = Decimal("0")
    days: int = 0
    share_pct: int = 0


@dataclass
class Payroll:
    year: int
    month: int
    sellers: list[SellerStats] = field(default_factory=list)
    actual_sales: Decimal = Decimal("0")
    forecast_sales: Decimal | None = None
    days_passed: int = 0
    days_remaining: int = 0
    base: Decimal = Decimal("0")
    commission: Decimal = Decimal("0")
    bonus: Decimal = Decimal("0")

    @property
    def final_sales(self) -> Decimal:
        return self.forecast_sales if self.forecast_sales is not None else self.actual_sales

    @property
    def salary(self) -> Decimal:
        return self.base + self.commission + self.bonus


def round_half_up(x: Decimal) -> Decimal:
    return Decimal(x).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def fill_sales(rows: Iterable[ScheduleRow], sales_by_date: Mapping[date, Decimal]) -> list[ScheduleRow]:
    # Days without a written amount take the sale total from the ledger
    out = []
    for r in rows:
        if r.sales is None:
            r = ScheduleRow(r.work_date, r.seller, sales_by_date.get(r.work_date, Decimal("0")))
        out.append(r)
    return out


def seller_for(rows: Iterable[ScheduleRow], d: date, default: str) -> str:
    seller = default
    for r in rows:
        if r.work_date == d and r.seller:
            seller = r.seller
    return seller


def calculate_payroll(rows: Iterable[ScheduleRow], year: int, month: int, rates: PayRates,
                      today: date, forecast: bool = False) -> Payroll:
    """
    Monthly pay estimate from the attendance log.

    Pay = base + round(sales * rate) + floor(sales / threshold) * bonus. For the
    current month with `forecast` set, sales are extrapolated linearly from the
    average of the days already passed.
    """
    stats: dict[str, SellerStats] = {}
    actual = Decimal("0")
    passed_dates = set()

    for r in rows:
        if (r.work_date.year, r.work_date.month) != (year, month):
            continue
        amount = Decimal(r.sales or 0)
        s = stats.setdefault(r.seller, SellerStats(r.seller))
        s.sales += amount
        s.days += 1
        if r.work_date <= today:
            actual += amount
            passed_dates.add(r.work_date)

    result = Payroll(year=year, month=month, actual_sales=actual, days_passed=len(passed_dates))

    is_current = (today.year, today.month) == (year, month)
    if forecast and is_current:
        days_in_month = calendar.monthrange(year, month)[1]
        result.days_remaining = days_in_month - today.day
        if result.days_passed > 0 and result.days_remaining > 0:
            avg_per_day = actual / result.days_passed
            result.forecast_sales = actual + round_half_up(avg_per_day * result.days_remaining)

    total_seller_sales = sum((s.sales for s in stats.values()), Decimal("0"))
    for s in stats.values():
        s.share_pct = int(round_half_up(100 * s.sales / total_seller_sales)) if total_seller_sales else 0
    result.sellers = sorted(stats.values(), key=lambda s: s.sales, reverse=True)

    final = result.final_sales
    result.base = Decimal(rates.base)
    result.commission = round_half_up(final * Decimal(rates.commission_rate))
    if rates.bonus_threshold > 0:
        result.bonus = (final // Decimal(rates.bonus_threshold)) * Decimal(rates.bonus_per_threshold)
    return result
