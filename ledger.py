import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from texts import REV, Operation


log = logging.getLogger(__name__)

# Report order of sections
ORDER = [Operation.SALE, Operation.RETURN, Operation.INCOME, Operation.OUTCOME, Operation.DISCOUNT]

# Stock value effect of each operation type
SIGN = {
    Operation.SALE: -1,
    Operation.RETURN: 1,
    Operation.INCOME: 1,
    Operation.OUTCOME: -1,
    Operation.DISCOUNT: 1,
}


@dataclass(frozen=True)
class LedgerRow:
    entry_date: date
    label: str
    product: str
    qty: int
    price: Decimal
    new_price: Decimal | None = None

    @property
    def article(self) -> str:
        return article(self.product, self.price)


def plain(x: Decimal) -> str:
    return format(Decimal(x).normalize(), "f")


def article(product: str, price: Decimal) -> str:
    return f"{product}_{plain(price)}"


@dataclass
class ItemLine:
    product: str
    price: Decimal
    qty: int = 0

    @property
    def amount(self) -> Decimal:
        return self.qty * self.price


@dataclass(frozen=True)
class DiscountLine:
    product: str
    qty: int
    price: Decimal
    new_price: Decimal

    @property
    def delta(self) -> Decimal:
        return self.qty * (self.new_price - self.price)


@dataclass
class Section:
    operation: Operation
    items: list[ItemLine] = field(default_factory=list)
    discounts: list[DiscountLine] = field(default_factory=list)
    total: Decimal = Decimal("0")

    @property
    def signed_total(self) -> Decimal:
        return SIGN[self.operation] * self.total


@dataclass
class DayReport:
    target: date
    sections: list[Section]
    grand_total: Decimal | None
    start_balance: Decimal
    end_balance: Decimal
    skipped: int = 0


def resolve(row: LedgerRow) -> Operation | None:
    op = REV.get((row.label or "").strip())
    if op is None:
        log.warning("Unknown operation %r in ledger row %s %s, skipped", row.label, row.entry_date, row.product)
        return None
    if op == Operation.DISCOUNT and row.new_price is None:
        log.warning("Discount without new price in ledger row %s %s, skipped", row.entry_date, row.product)
        return None
    return op


def row_value(op: Operation, row: LedgerRow) -> Decimal:
    if op == Operation.DISCOUNT:
        return row.qty * (row.new_price - row.price)
    return row.qty * row.price


def aggregate_day(rows: Iterable[LedgerRow], target: date, opening_balance: Decimal) -> DayReport:
    """
    Day summary for `target` plus the stock value at the start and end of it.

    Rows dated before the target are carried into the start balance, rows of
    the target day are grouped by article, later rows are ignored.
    """
    prev = {op: Decimal("0") for op in ORDER}
    items: dict[Operation, dict[str, ItemLine]] = {op: {} for op in ORDER}
    discounts: list[DiscountLine] = []
    skipped = 0

    for row in rows:
        if row.entry_date > target:
            continue
        op = resolve(row)
        if op is None:
            skipped += 1
            continue

        if row.entry_date < target:
            prev[op] += row_value(op, row)
        elif op == Operation.DISCOUNT:
            discounts.append(DiscountLine(row.product, row.qty, row.price, row.new_price))
        else:
            group = items[op].setdefault(row.article, ItemLine(row.product, row.price))
            group.qty += row.qty

    start = Decimal(opening_balance) + sum((SIGN[op] * prev[op] for op in ORDER), Decimal("0"))

    sections = []
    for op in ORDER:
        if op == Operation.DISCOUNT:
            if not discounts:
                continue
            total = sum((d.delta for d in discounts), Decimal("0"))
            sections.append(Section(op, discounts=discounts, total=total))
        elif items[op]:
            lines = list(items[op].values())
            total = sum((i.amount for i in lines), Decimal("0"))
            sections.append(Section(op, items=lines, total=total))

    day_total = sum((s.signed_total for s in sections), Decimal("0"))
    return DayReport(
        target=target,
        sections=sections,
        grand_total=day_total if len(sections) >= 2 else None,
        start_balance=start,
        end_balance=start + day_total,
        skipped=skipped,
    )


def daily_sales(rows: Iterable[LedgerRow]) -> dict[date, Decimal]:
    totals: dict[date, Decimal] = defaultdict(lambda: Decimal("0"))
    for row in rows:
        if REV.get((row.label or "").strip()) == Operation.SALE:
            totals[row.entry_date] += row.qty * row.price
    return dict(totals)
