import asyncio
import os
import tempfile
from pathlib import Path
from urllib.parse import parse_qs, urlparse

# Configure before the application modules read their settings
_DB_DIR = tempfile.mkdtemp(prefix="restopos-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ["ENV_MODE"] = "development"
os.environ["SEED_SAMPLE_DATA"] = "false"
os.environ["TOKEN_SECRET"] = "test-token-secret"
os.environ["CUSTOMER_APP_URL"] = "http://localhost:3000"

import pytest
from fastapi.testclient import TestClient

import restopos.models  # noqa: F401  (registers tables on Base.metadata)
from restopos.database import Base, async_session_maker, engine
from restopos.models import MenuItem, Table


async def _reset_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def _add_rows(rows: list) -> list[int]:
    async with async_session_maker() as session:
        session.add_all(rows)
        await session.commit()
        return [row.id for row in rows]


@pytest.fixture(autouse=True)
def fresh_database():
    """Every test starts from empty tables."""
    asyncio.run(_reset_schema())
    yield


@pytest.fixture()
def menu() -> dict[str, int]:
    """Tables 3 and 4 plus a small menu. Returns menu item ids by name."""
    asyncio.run(_add_rows([
        Table(table_number=3, capacity=4, location="Indoor"),
        Table(table_number=4, capacity=2, location="Terrace"),
    ]))
    ids = asyncio.run(_add_rows([
        MenuItem(name="Es Cendol", price=15000, category="Beverage", available=True),
        MenuItem(name="Es Teh Manis", price=8000, category="Beverage", available=True),
        MenuItem(name="Rendang Daging", price=55000, category="Main Course", available=False),
    ]))
    return {"cendol": ids[0], "teh": ids[1], "rendang": ids[2]}


@pytest.fixture()
def client():
    from restopos.main import app

    with TestClient(app) as test_client:
        yield test_client


def token_from_qr_url(qr_url: str) -> str:
    return parse_qs(urlparse(qr_url).query)["token"][0]


def join(ws, event: str) -> None:
    ws.send_json({"event": event})
    ack = ws.receive_json()
    assert ack["event"] == "joined"


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now
