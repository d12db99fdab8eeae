from datetime import date
from decimal import Decimal

import pytest

from models import Goods, RestItem, ScheduleEntry, User
from storage import init_db, make_engine, make_sessionmaker


OWNER_ID = 1


@pytest.fixture
async def Session(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    Session = make_sessionmaker(engine)
    await init_db(engine, Session, OWNER_ID, "Anna")
    yield Session
    await engine.dispose()


@pytest.fixture
async def shop(Session):
    async with Session() as s:
        s.add_all([
            Goods(name="Bread", emoji="🍞", position=1),
            Goods(name="Milk", emoji="", position=2),
            RestItem(product="Bread", price=Decimal("25"), qty=10),
            RestItem(product="Milk", price=Decimal("20"), qty=5),
            RestItem(product="Milk", price=Decimal("18"), qty=3),
            ScheduleEntry(work_date=date(2025, 1, 10), seller="Olha", sales=None),
            User(user_id=2, name="Blocked", active=False),
        ])
        await s.commit()
    return Session


class FakeTransport:
    def __init__(self, edit_ok: bool = True):
        self.edit_ok = edit_ok
        self.next_id = 100
        self.sent = []
        self.edits = []
        self.stripped = []
        self.answers = []

    async def send(self, text, markup=None):
        self.next_id += 1
        self.sent.append((self.next_id, text, markup))
        return self.next_id

    async def edit(self, message_id, text, markup=None):
        self.edits.append((message_id, text, markup))
        return self.edit_ok

    async def strip_choices(self, message_id):
        self.stripped.append(message_id)

    async def answer(self, callback_id, text=""):
        self.answers.append((callback_id, text))


@pytest.fixture
def transport():
    return FakeTransport()
