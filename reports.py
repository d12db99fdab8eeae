import html
from decimal import Decimal

from ledger import DayReport, Section
from payroll import Payroll
from texts import ICO, OPS, WORD, Operation
from dates import format_date


MONTHS = [
    "январь", "февраль", "март", "апрель", "май", "июнь",
    "июль", "август", "сентябрь", "октябрь", "ноябрь", "декабрь",
]


def h(s: str) -> str:
    return html.escape((s or "").strip(), quote=False)


def fmt_amount(x: Decimal) -> str:
    x = Decimal(x)
    if x == x.to_integral_value():
        return f"{int(x):,}".replace(",", " ")
    return f"{x:,.2f}".replace(",", " ")


def fmt_signed(x: Decimal) -> str:
    x = Decimal(x)
    if x > 0:
        return f"+{fmt_amount(x)}"
    if x < 0:
        return f"-{fmt_amount(-x)}"
    return "0"


def section_lines(section: Section) -> list[str]:
    cur = WORD["currency"]
    lines = [f"<b>{OPS[section.operation]['op']}:</b>"]
    if section.operation == Operation.DISCOUNT:
        for d in section.discounts:
            lines.append(
                f"{ICO['discount']}{h(d.product)} {d.qty}×{fmt_amount(d.price)} → "
                f"{d.qty}×{fmt_amount(d.new_price)} ({fmt_signed(d.delta)})"
            )
    else:
        for item in section.items:
            lines.append(f"{ICO['item']}{h(item.product)} {item.qty}×{fmt_amount(item.price)}")
    lines.append(f"Итого: <b>{fmt_signed(section.signed_total)}</b> {cur}")
    return lines


def format_day_report(report: DayReport, rest_url: str = "") -> str:
    cur = WORD["currency"]
    lines = [f"<b>ОТЧЁТ за {format_date(report.target)}</b>", ""]

    for section in report.sections:
        lines.extend(section_lines(section))
        lines.append("")

    if report.grand_total is not None:
        lines.append(f"<b>Итого за день: {fmt_signed(report.grand_total)}</b> {cur}")
        lines.append("")

    lines.append("<b>Остаток товаров:</b>")
    lines.append(f"{ICO['money']} начало дня: <b>{fmt_amount(report.start_balance)}</b> {cur}")
    lines.append(f"{ICO['money']} конец дня: <b>{fmt_amount(report.end_balance)}</b> {cur}")

    if rest_url:
        lines.append("")
        lines.append(f'{ICO["rest"]} <a href="{html.escape(rest_url)}">Остатки</a>')
    return "\n".join(lines)


def format_payroll(payroll: Payroll) -> str:
    cur = WORD["currency"]
    title = f"<b>Зарплата за {MONTHS[payroll.month - 1]} {payroll.year}</b>"
    if payroll.forecast_sales is not None:
        title += " (прогноз)"
    lines = [title, ""]

    if not payroll.sellers:
        lines.append("Нет данных графика за этот месяц.")
        lines.append("")
    for s in payroll.sellers:
        lines.append(f"{ICO['seller']} {h(s.name)}: {s.days} дн., {fmt_amount(s.sales)} {cur} ({s.share_pct}%)")
    if payroll.sellers:
        lines.append("")

    lines.append(f"Продажи: <b>{fmt_amount(payroll.actual_sales)}</b> {cur} за {payroll.days_passed} дн.")
    if payroll.forecast_sales is not None:
        lines.append(f"Прогноз продаж: <b>{fmt_amount(payroll.forecast_sales)}</b> {cur} "
                     f"(ещё {payroll.days_remaining} дн.)")
    lines.append(f"Ставка: {fmt_amount(payroll.base)} {cur}")
    lines.append(f"Процент: {fmt_amount(payroll.commission)} {cur}")
    lines.append(f"Бонус: {fmt_amount(payroll.bonus)} {cur}")
    lines.append(f"Зарплата: <b>{fmt_amount(payroll.salary)}</b> {cur}")
    return "\n".join(lines)
