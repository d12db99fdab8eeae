import os

from dotenv import load_dotenv


load_dotenv()

BOT_TOKEN = os.getenv("BOT_TOKEN", "")
DB_URL = os.getenv("DB_URL", "sqlite+aiosqlite:////var/data/data.db")

OWNER_ID = int(os.getenv("OWNER_ID", "0") or 0)
OWNER_NAME = os.getenv("OWNER_NAME", "Owner")

TIMEZONE = os.getenv("TIMEZONE", "Europe/Kyiv")

# Webhook mode is used when WEBHOOK_URL is set, long polling otherwise
WEBHOOK_URL = os.getenv("WEBHOOK_URL", "").rstrip("/")
WEBHOOK_PATH = os.getenv("WEBHOOK_PATH", "/")
WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000") or 3000)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
