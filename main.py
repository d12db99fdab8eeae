import asyncio
import logging

from aiohttp import web

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums.parse_mode import ParseMode
from aiogram.webhook.aiohttp_server import SimpleRequestHandler, setup_application

import config
from handlers import router
from storage import init_db, make_engine, make_sessionmaker


log = logging.getLogger("posbot")


def setup_logging():
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    )


def build(Session) -> tuple[Bot, Dispatcher]:
    bot = Bot(config.BOT_TOKEN, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    dp = Dispatcher(sessionmaker=Session, tz_name=config.TIMEZONE)
    dp.include_router(router)
    return bot, dp


async def index(request: web.Request) -> web.Response:
    return web.Response(text="Webhook ready.")


def run_webhook(bot: Bot, dp: Dispatcher, prepare):
    async def on_startup(bot: Bot):
        await prepare()
        await bot.set_webhook(
            f"{config.WEBHOOK_URL}{config.WEBHOOK_PATH}",
            secret_token=config.WEBHOOK_SECRET or None,
            drop_pending_updates=False,
        )
        log.info("Webhook set to %s%s", config.WEBHOOK_URL, config.WEBHOOK_PATH)

    dp.startup.register(on_startup)

    app = web.Application()
    app.router.add_get("/", index)
    SimpleRequestHandler(
        dispatcher=dp,
        bot=bot,
        secret_token=config.WEBHOOK_SECRET or None,
    ).register(app, path=config.WEBHOOK_PATH)
    setup_application(app, dp, bot=bot)

    log.info("=== BOT STARTED OK (webhook, port %s) ===", config.PORT)
    web.run_app(app, host=config.HOST, port=config.PORT)


async def run_polling(bot: Bot, dp: Dispatcher, prepare):
    await prepare()
    await bot.delete_webhook(drop_pending_updates=True)
    log.info("=== BOT STARTED OK (polling) ===")
    await dp.start_polling(bot)


def main():
    setup_logging()
    if not config.BOT_TOKEN:
        raise RuntimeError("BOT_TOKEN is not set")

    log.info("=== BOOT ===")
    log.info("TOKEN set: %s", bool(config.BOT_TOKEN))
    log.info("DB_URL: %s", config.DB_URL)
    log.info("OWNER_ID: %s", config.OWNER_ID)

    engine = make_engine(config.DB_URL)
    Session = make_sessionmaker(engine)

    async def prepare():
        await init_db(engine, Session, config.OWNER_ID, config.OWNER_NAME)

    bot, dp = build(Session)
    if config.WEBHOOK_URL:
        run_webhook(bot, dp, prepare)
    else:
        asyncio.run(run_polling(bot, dp, prepare))


if __name__ == "__main__":
    main()
