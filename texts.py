from enum import Enum


class Operation(str, Enum):
    SALE = "sale"
    INCOME = "income"
    OUTCOME = "outcome"
    DISCOUNT = "discount"
    RETURN = "return"


# op: ledger label and menu button, the rest are dialog messages
OPS = {
    Operation.SALE: {
        "op": "Продажа", "prompt": "Подтвердите продажу:",
        "saved": "Продажа сохранена", "cancelled": "Продажа отменена",
    },
    Operation.INCOME: {
        "op": "Приход", "prompt": "Подтвердите приход:",
        "saved": "Приход сохранён", "cancelled": "Приход отменён",
    },
    Operation.OUTCOME: {
        "op": "Списание", "prompt": "Подтвердите списание:",
        "saved": "Списание сохранено", "cancelled": "Списание отменено",
    },
    Operation.DISCOUNT: {
        "op": "Переоценка", "prompt": "Подтвердите переоценку:",
        "saved": "Переоценка сохранена", "cancelled": "Переоценка отменена",
    },
    Operation.RETURN: {
        "op": "Возврат", "prompt": "Подтвердите возврат:",
        "saved": "Возврат сохранён", "cancelled": "Возврат отменён",
    },
}

REV = {data["op"]: op for op, data in OPS.items()}

WORD = {
    "report": "Отчёт",
    "seller": "Продавец",
    "date": "Дата",
    "today": "Сегодня",
    "currency": "₴",
}

ICO = {
    "today": "🗓️",
    "day": "👀",
    "seller": "🤵",
    "new": "🆕",
    "ok": "✅",
    "cancel": "❌",
    "item": "🔸",
    "discount": "🔹",
    "money": "💵",
    "rest": "🟢",
}

MSG = {
    "yes": "Да",
    "cancel": "Отмена",
    "prev": "◀ Назад",
    "next": "Вперед ▶",
    "other": "Другое…",
    "new_product": "Новый товар…",
    "new_price": "Новая цена…",
    "cancelled": "Отменено",
    "goods_page": "<b>{op}.</b> Товары {page}/{pages}:",
    "prices_page": "<b>{op}: {product}.</b> Цены{pages}:",
    "enter_product": "<b>{op}:</b>\n\nВведите название товара:",
    "enter_price": "<b>{op}: {product}</b>\n\nВведите цену:",
    "enter_price_new_product": "<b>{op}: {product}</b>\n\nВведите цену нового товара:",
    "select_qty": "<b>{op}: {product} по {price} {cur}.</b> Количество:",
    "enter_qty": "<b>{op}: {product}</b> по <b>{price}</b> {cur}.\n\nВведите количество:",
    "enter_new_price": "<b>{op}: {product} {qty}</b> × <b>{price}</b> {cur}.\n\nВведите новую цену:",
    "confirm": "{prompt}\n\n<b>{product} {qty}</b> × <b>{price}</b>\n\nВсё верно?",
    "confirm_discount": "{prompt}\n\n<b>{product} {qty}</b> × <i>{price}</i> → <b>{new_price}</b>\n\nВсё верно?",
    "saved": "{saved}\n\n<b>{product} {qty} × {price}</b> = {total}\n{date_word}: <b>{date}</b>",
    "saved_discount": "{saved}\n\n<b>{product} {qty} × <i>{price}</i> → {new_price}</b> = {total}\n{date_word}: <b>{date}</b>",
    "bad_qty": "Количество должно быть целым числом от 1 до 1 000 000. Введите количество:",
    "bad_price": "Цена должна быть числом не меньше нуля, не больше двух знаков после запятой. Введите цену:",
    "bad_product": "Название товара не может быть пустым. Введите название:",
    "choose_date": "Выберите или введите дату в формате ДД.ММ.ГГГГ:",
    "bad_date": "Неверная дата. Введите дату в формате ДД.ММ.ГГГГ:",
    "date_set": "{date_word}: <b>{date}</b>",
    "outdated": "Кнопка устарела",
    "list_changed": "Список изменился, выберите ещё раз",
}
